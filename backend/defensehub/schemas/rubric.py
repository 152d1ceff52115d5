"""
Rubric Schemas
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List


def _blank_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class CriterionIn(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    max_score: float = Field(..., gt=0)
    plo: Optional[str] = Field(None, max_length=50)
    pi: Optional[str] = Field(None, max_length=50)
    clo: Optional[str] = Field(None, max_length=50)

    @field_validator('plo', 'pi', 'clo', mode='before')
    @classmethod
    def empty_tags_are_unmapped(cls, v):
        return _blank_to_none(v)


class RubricCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    criteria: List[CriterionIn] = Field(default_factory=list)

    @model_validator(mode='after')
    def unique_criterion_ids(self):
        ids = [c.id for c in self.criteria]
        if len(ids) != len(set(ids)):
            raise ValueError("criterion ids must be unique within a rubric")
        return self


class CriteriaReplace(BaseModel):
    criteria: List[CriterionIn]

    @model_validator(mode='after')
    def unique_criterion_ids(self):
        ids = [c.id for c in self.criteria]
        if len(ids) != len(set(ids)):
            raise ValueError("criterion ids must be unique within a rubric")
        return self


class CriterionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    max_score: float
    position: int
    plo: Optional[str] = None
    pi: Optional[str] = None
    clo: Optional[str] = None


class RubricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    version: int
    max_total_score: float
    criteria: List[CriterionResponse]
