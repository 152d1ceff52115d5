"""
Defense Session Model

A defense session groups one cohort of graduation and/or internship
registrations, the topics offered to them, and the rubrics used to grade them.
"""
from sqlalchemy import Column, String, Text, DateTime, Enum as SQLEnum
import enum

from defensehub.core.database import Base
from defensehub.core.types import GUID, generate_uuid, utcnow


class SessionType(str, enum.Enum):
    graduation = "graduation"
    internship = "internship"
    combined = "combined"


class SessionStatus(str, enum.Enum):
    upcoming = "upcoming"
    ongoing = "ongoing"
    completed = "completed"


class DefenseSession(Base):
    __tablename__ = "defense_sessions"

    id = Column(GUID, primary_key=True, default=generate_uuid)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    session_type = Column(SQLEnum(SessionType, values_callable=lambda obj: [e.value for e in obj]),
                          nullable=False, default=SessionType.combined)
    status = Column(SQLEnum(SessionStatus, values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=SessionStatus.upcoming)

    # Key dates (naive UTC)
    start_date = Column(DateTime, nullable=True)
    registration_deadline = Column(DateTime, nullable=True)
    expected_report_date = Column(DateTime, nullable=True)

    # Rubric slots, one per (evaluation source, report type) pair
    council_graduation_rubric_id = Column(GUID, nullable=True)
    council_internship_rubric_id = Column(GUID, nullable=True)
    supervisor_graduation_rubric_id = Column(GUID, nullable=True)
    company_internship_rubric_id = Column(GUID, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def includes_internship(self) -> bool:
        return self.session_type in (SessionType.internship, SessionType.combined)

    @property
    def includes_graduation(self) -> bool:
        return self.session_type in (SessionType.graduation, SessionType.combined)

    def __repr__(self):
        return f"<DefenseSession {self.name} ({self.status})>"
