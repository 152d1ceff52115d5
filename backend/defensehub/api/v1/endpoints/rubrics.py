"""
Rubric API
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from defensehub.core.database import get_db
from defensehub.schemas.rubric import RubricCreate, CriteriaReplace, RubricResponse
from defensehub.services.rubric_store import rubric_store

router = APIRouter(prefix="/rubrics", tags=["Rubrics"])


@router.post("", response_model=RubricResponse, status_code=201)
async def create_rubric(data: RubricCreate, db: AsyncSession = Depends(get_db)):
    return await rubric_store.create_rubric(db, data)


@router.get("/{rubric_id}", response_model=RubricResponse)
async def get_rubric(rubric_id: str, db: AsyncSession = Depends(get_db)):
    return await rubric_store.get_rubric(db, rubric_id)


@router.put("/{rubric_id}/criteria", response_model=RubricResponse)
async def replace_criteria(rubric_id: str, data: CriteriaReplace, db: AsyncSession = Depends(get_db)):
    """Replace the criteria list; the rubric version is bumped"""
    return await rubric_store.replace_criteria(db, rubric_id, data)
