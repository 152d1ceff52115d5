"""
Evaluation API
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from defensehub.core.database import get_db
from defensehub.schemas.evaluation import EvaluationSave, EvaluationRescore, EvaluationResponse
from defensehub.services.evaluation_store import evaluation_store
from defensehub.services.registration_ledger import registration_ledger

router = APIRouter(tags=["Evaluations"])


@router.put("/evaluations", response_model=EvaluationResponse)
async def save_evaluation(data: EvaluationSave, db: AsyncSession = Depends(get_db)):
    """Create or re-score the caller's evaluation of a registration"""
    return await evaluation_store.save_evaluation(db, data)


@router.put("/evaluations/{evaluation_id}", response_model=EvaluationResponse)
async def rescore_evaluation(
    evaluation_id: str,
    data: EvaluationRescore,
    db: AsyncSession = Depends(get_db)
):
    """Re-score an evaluation by id; only its own evaluator may do this"""
    return await evaluation_store.rescore_evaluation(db, evaluation_id, data)


@router.get("/registrations/{registration_id}/evaluations", response_model=List[EvaluationResponse])
async def list_registration_evaluations(registration_id: str, db: AsyncSession = Depends(get_db)):
    await registration_ledger.get_registration(db, registration_id)
    return await evaluation_store.list_for_registration(db, registration_id)
