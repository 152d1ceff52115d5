"""
Evaluation Schemas
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List
from datetime import datetime

from defensehub.models.evaluation import EvaluationType


class ScoreEntry(BaseModel):
    criterion_id: str = Field(..., min_length=1)
    score: float = Field(..., ge=0)


class EvaluationSave(BaseModel):
    """Create or re-score the caller's own evaluation"""
    registration_id: str
    evaluator_id: str = Field(..., min_length=1)
    rubric_id: str
    evaluation_type: EvaluationType
    scores: List[ScoreEntry]
    comments: Optional[str] = None

    @model_validator(mode='after')
    def one_score_per_criterion(self):
        ids = [s.criterion_id for s in self.scores]
        if len(ids) != len(set(ids)):
            raise ValueError("each criterion may be scored only once")
        return self


class EvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    registration_id: str
    evaluator_id: str
    rubric_id: str
    evaluation_type: EvaluationType
    scores: List[ScoreEntry]
    total_score: float
    comments: Optional[str] = None
    evaluated_at: datetime


class EvaluationRescore(BaseModel):
    """Replace the scores of an existing evaluation; only its evaluator may do this"""
    evaluator_id: str = Field(..., min_length=1)
    scores: List[ScoreEntry]
    comments: Optional[str] = None

    @model_validator(mode='after')
    def one_score_per_criterion(self):
        ids = [s.criterion_id for s in self.scores]
        if len(ids) != len(set(ids)):
            raise ValueError("each criterion may be scored only once")
        return self
