"""
Evaluation Model

Scores one evaluator gave one registration against one rubric. The identity
(evaluator, registration, rubric) never changes; the scores may be replaced
by the same evaluator until grading closes.
"""
from sqlalchemy import Column, String, Float, Text, DateTime, ForeignKey, JSON, UniqueConstraint, Index, Enum as SQLEnum
import enum

from defensehub.core.database import Base
from defensehub.core.types import GUID, generate_uuid, utcnow


class EvaluationType(str, enum.Enum):
    graduation = "graduation"
    internship = "internship"


class Evaluation(Base):
    __tablename__ = "evaluations"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    session_id = Column(GUID, ForeignKey("defense_sessions.id", ondelete="CASCADE"), nullable=False)
    registration_id = Column(GUID, ForeignKey("defense_registrations.id", ondelete="CASCADE"), nullable=False)
    evaluator_id = Column(String(36), nullable=False)
    rubric_id = Column(GUID, ForeignKey("rubrics.id"), nullable=False)
    evaluation_type = Column(SQLEnum(EvaluationType, values_callable=lambda obj: [e.value for e in obj]),
                             nullable=False)

    # [{"criterion_id": str, "score": float}]
    scores = Column(JSON, nullable=False, default=list)
    total_score = Column(Float, nullable=False, default=0.0)
    comments = Column(Text, nullable=True)

    evaluated_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("evaluator_id", "registration_id", "rubric_id", name="uq_evaluation_identity"),
        Index("ix_evaluations_session_type", "session_id", "evaluation_type"),
    )

    def __repr__(self):
        return f"<Evaluation {self.evaluator_id} -> {self.registration_id} ({self.evaluation_type})>"
