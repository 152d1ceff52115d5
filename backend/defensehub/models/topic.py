"""
Project Topic Model

Supervisor-proposed topics. Several records may describe the same offering
(batch re-imports), so capacity is always counted per identity key
(session_id, title, supervisor_id) rather than per record.
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index, CheckConstraint, Enum as SQLEnum
import enum

from defensehub.core.database import Base
from defensehub.core.types import GUID, generate_uuid, utcnow


class TopicStatus(str, enum.Enum):
    draft = "draft"
    approved = "approved"
    taken = "taken"


class Topic(Base):
    __tablename__ = "project_topics"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    session_id = Column(GUID, ForeignKey("defense_sessions.id", ondelete="CASCADE"), nullable=False)

    supervisor_id = Column(String(36), nullable=False)
    supervisor_name = Column(String(255), nullable=False)

    title = Column(String(500), nullable=False)
    summary = Column(Text, nullable=True)
    objectives = Column(Text, nullable=True)
    expected_results = Column(Text, nullable=True)
    field = Column(String(255), nullable=True)

    max_students = Column(Integer, nullable=False, default=1)
    status = Column(SQLEnum(TopicStatus, values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=TopicStatus.draft)

    # Optimistic concurrency counter, bumped by every allocation write
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_project_topics_identity", "session_id", "title", "supervisor_id"),
        CheckConstraint("max_students > 0", name="ck_project_topics_max_students"),
    )

    @property
    def identity_key(self):
        return (self.session_id, self.title, self.supervisor_id)

    def __repr__(self):
        return f"<Topic {self.title} [{self.status}]>"
