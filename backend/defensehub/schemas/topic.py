"""
Project Topic Schemas
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from defensehub.models.topic import TopicStatus


class TopicCreate(BaseModel):
    """Schema for a supervisor proposing a topic"""
    session_id: str
    supervisor_id: str = Field(..., min_length=1)
    supervisor_name: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=500)
    summary: Optional[str] = None
    objectives: Optional[str] = None
    expected_results: Optional[str] = None
    field: Optional[str] = Field(None, max_length=255)
    max_students: int = Field(default=1, gt=0, description="Number of students the topic can take")

    @field_validator('title')
    @classmethod
    def strip_title(cls, v):
        # Title is part of the identity key, keep it canonical
        return v.strip()


class TopicResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    supervisor_id: str
    supervisor_name: str
    title: str
    summary: Optional[str] = None
    objectives: Optional[str] = None
    expected_results: Optional[str] = None
    field: Optional[str] = None
    max_students: int
    status: TopicStatus
    created_at: datetime


class AvailableTopicResponse(TopicResponse):
    """Topic as listed to students, with live occupancy"""
    occupancy: int
    remaining_slots: int
