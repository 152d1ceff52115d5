"""
Defense Session Schemas
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from defensehub.core.types import as_naive_utc
from defensehub.models.defense_session import SessionType, SessionStatus


class DefenseSessionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    session_type: SessionType = SessionType.combined
    status: SessionStatus = SessionStatus.upcoming
    start_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    expected_report_date: Optional[datetime] = None
    council_graduation_rubric_id: Optional[str] = None
    council_internship_rubric_id: Optional[str] = None
    supervisor_graduation_rubric_id: Optional[str] = None
    company_internship_rubric_id: Optional[str] = None

    @field_validator("start_date", "registration_deadline", "expected_report_date")
    @classmethod
    def store_as_naive_utc(cls, v):
        return as_naive_utc(v) if v is not None else v


class DefenseSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    session_type: SessionType
    status: SessionStatus
    start_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    expected_report_date: Optional[datetime] = None
    council_graduation_rubric_id: Optional[str] = None
    council_internship_rubric_id: Optional[str] = None
    supervisor_graduation_rubric_id: Optional[str] = None
    company_internship_rubric_id: Optional[str] = None
    created_at: datetime
