"""
Registration API

Endpoints for the registration ledger and topic allocation:
- Registration creation and lookup
- Topic registration and cancellation
- Supervisor confirmation
- Reporting status (withdraw / exempt)
- Internship supervisor assignment
"""
from fastapi import APIRouter, Depends
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from defensehub.core.database import get_db
from defensehub.core.exceptions import TopicNotOpenError
from defensehub.schemas.registration import (
    RegistrationCreate,
    RegistrationResponse,
    RegisterTopicRequest,
    TopicDecisionRequest,
    ReportingStatusUpdate,
    InternshipSupervisorAssignment,
)
from defensehub.services.allocation_engine import allocation_engine
from defensehub.services.registration_ledger import registration_ledger
from defensehub.services.settings_service import settings_service

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.post("", response_model=RegistrationResponse, status_code=201)
async def create_registration(data: RegistrationCreate, db: AsyncSession = Depends(get_db)):
    """Administrative creation of a student's registration in a session"""
    return await registration_ledger.create_registration(db, data)


@router.get("/{registration_id}", response_model=RegistrationResponse)
async def get_registration(registration_id: str, db: AsyncSession = Depends(get_db)):
    return await registration_ledger.get_registration(db, registration_id)


@router.post("/{registration_id}/topic", response_model=RegistrationResponse)
async def register_topic(
    registration_id: str,
    data: RegisterTopicRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Register for a topic.

    Answers 409 ``CAPACITY_EXCEEDED`` when the topic filled up first; the
    client should reload the available topic list.
    """
    flags = await settings_service.get_flags(db)
    if not flags.allow_student_registration:
        raise TopicNotOpenError(data.topic_id, "topic registration is closed")
    return await allocation_engine.register(db, registration_id, data.topic_id)


@router.delete("/{registration_id}/topic", response_model=RegistrationResponse)
async def cancel_topic(registration_id: str, db: AsyncSession = Depends(get_db)):
    """Release the registered topic"""
    flags = await settings_service.get_flags(db)
    return await allocation_engine.cancel(
        db,
        registration_id,
        allow_approved=flags.allow_cancel_approved_registration,
    )


@router.post("/{registration_id}/topic/decision", response_model=RegistrationResponse)
async def decide_topic(
    registration_id: str,
    data: TopicDecisionRequest,
    db: AsyncSession = Depends(get_db)
):
    """Supervisor approves or rejects a pending topic registration"""
    return await allocation_engine.decide(db, registration_id, data.supervisor_id, data.approve)


@router.put("/{registration_id}/reporting-status", response_model=RegistrationResponse)
async def set_reporting_status(
    registration_id: str,
    data: ReportingStatusUpdate,
    db: AsyncSession = Depends(get_db)
):
    return await registration_ledger.set_reporting_status(db, registration_id, data)


@router.put("/internship-supervisor", response_model=List[RegistrationResponse])
async def assign_internship_supervisor(
    data: InternshipSupervisorAssignment,
    db: AsyncSession = Depends(get_db)
):
    """Assign an internship supervisor to a batch of registrations"""
    return await registration_ledger.assign_internship_supervisor(
        db,
        data.registration_ids,
        data.internship_supervisor_id,
        data.internship_supervisor_name,
    )
