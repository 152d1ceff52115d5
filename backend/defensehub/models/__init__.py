# Re-export all models for convenient imports
from defensehub.models.defense_session import DefenseSession, SessionType, SessionStatus
from defensehub.models.topic import Topic, TopicStatus
from defensehub.models.registration import (
    Registration,
    ProjectRegistrationStatus,
    SubmissionStatus,
    ReportingStatus,
    Track,
    TOPIC_DERIVED_FIELDS,
)
from defensehub.models.rubric import Rubric, RubricCriterion
from defensehub.models.evaluation import Evaluation, EvaluationType
from defensehub.models.system_setting import SystemSetting

__all__ = [
    # Sessions
    "DefenseSession",
    "SessionType",
    "SessionStatus",
    # Topics
    "Topic",
    "TopicStatus",
    # Registrations
    "Registration",
    "ProjectRegistrationStatus",
    "SubmissionStatus",
    "ReportingStatus",
    "Track",
    "TOPIC_DERIVED_FIELDS",
    # Grading
    "Rubric",
    "RubricCriterion",
    "Evaluation",
    "EvaluationType",
    # Admin
    "SystemSetting",
]
