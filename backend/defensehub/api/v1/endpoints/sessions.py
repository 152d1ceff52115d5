"""
Defense Session API

- Session creation and lookup
- Topic browsing for students
- Registration list
- Outcome reports
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from defensehub.core.database import get_db
from defensehub.models.evaluation import EvaluationType
from defensehub.schemas.outcomes import EvaluationSource, OutcomeMatrix
from defensehub.schemas.registration import RegistrationResponse
from defensehub.schemas.session import DefenseSessionCreate, DefenseSessionResponse
from defensehub.schemas.topic import AvailableTopicResponse, TopicResponse
from defensehub.services.outcome_aggregation import build_outcome_report
from defensehub.services.registration_ledger import registration_ledger
from defensehub.services.session_service import session_service
from defensehub.services.topic_catalog import topic_catalog

router = APIRouter(prefix="/sessions", tags=["Defense Sessions"])


@router.post("", response_model=DefenseSessionResponse, status_code=201)
async def create_session(
    data: DefenseSessionCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create a defense session"""
    return await session_service.create_session(db, data)


@router.get("/{session_id}", response_model=DefenseSessionResponse)
async def get_session(session_id: str, db: AsyncSession = Depends(get_db)):
    return await session_service.get_session(db, session_id)


@router.get("/{session_id}/topics/available", response_model=List[AvailableTopicResponse])
async def list_available_topics(session_id: str, db: AsyncSession = Depends(get_db)):
    """Topics a student can still register for, with live occupancy"""
    await session_service.get_session(db, session_id)
    available = await topic_catalog.list_available_topics(db, session_id)
    return [
        AvailableTopicResponse(
            **TopicResponse.model_validate(topic).model_dump(),
            occupancy=occupied,
            remaining_slots=topic.max_students - occupied,
        )
        for topic, occupied in available
    ]


@router.get("/{session_id}/registrations", response_model=List[RegistrationResponse])
async def list_registrations(session_id: str, db: AsyncSession = Depends(get_db)):
    await session_service.get_session(db, session_id)
    return await registration_ledger.list_registrations(db, session_id)


@router.get("/{session_id}/outcomes", response_model=OutcomeMatrix)
async def get_outcome_report(
    session_id: str,
    report_type: EvaluationType = Query(...),
    source: EvaluationSource = Query(...),
    db: AsyncSession = Depends(get_db)
):
    """
    Per-student CLO averages for one report type and evaluation source.

    ``has_outcome_data`` is false when the rubric maps no criterion to an
    outcome; clients show a "no outcome data" state instead of an empty table.
    """
    return await build_outcome_report(db, session_id, report_type, source)
