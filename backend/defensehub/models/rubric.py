"""
Rubric Models

A rubric is an ordered list of scoring criteria. Each criterion may be tagged
with learning-outcome identifiers (PLO, PI, CLO); untagged criteria still count
towards raw totals but are ignored by outcome reports.
"""
from sqlalchemy import Column, String, Integer, Float, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from defensehub.core.database import Base
from defensehub.core.types import GUID, generate_uuid, utcnow


class Rubric(Base):
    __tablename__ = "rubrics"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Bumped each time the criteria list is replaced
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    criteria = relationship(
        "RubricCriterion",
        back_populates="rubric",
        cascade="all, delete-orphan",
        order_by="RubricCriterion.position",
        lazy="selectin",
    )

    @property
    def max_total_score(self) -> float:
        return sum(c.max_score for c in self.criteria)

    def __repr__(self):
        return f"<Rubric {self.name} v{self.version}>"


class RubricCriterion(Base):
    __tablename__ = "rubric_criteria"

    # Criterion ids are referenced from stored evaluation scores, so they are
    # caller-supplied and stable across rubric versions
    id = Column(String(64), primary_key=True)
    rubric_id = Column(GUID, ForeignKey("rubrics.id", ondelete="CASCADE"), primary_key=True)

    name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    max_score = Column(Float, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    plo = Column(String(50), nullable=True)
    pi = Column(String(50), nullable=True)
    clo = Column(String(50), nullable=True)

    rubric = relationship("Rubric", back_populates="criteria")

    def __repr__(self):
        return f"<RubricCriterion {self.id} max={self.max_score}>"
