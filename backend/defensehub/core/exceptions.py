"""
Custom Exceptions for DefenseHub
================================

Services raise these instead of generic Exception so the API layer can turn
every domain failure into a typed, localisable error payload.

Usage:
    from defensehub.core.exceptions import CapacityExceededError

    if occupancy >= topic.max_students:
        raise CapacityExceededError(topic.id, topic.max_students)

All subclasses carry an ``http_status`` used by the exception handler in
``defensehub.main``.
"""

from typing import Optional, Any, Dict


class DefenseHubError(Exception):
    """Base exception for all DefenseHub errors"""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(DefenseHubError):
    """Base class for not found errors"""

    http_status = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class DefenseSessionNotFoundError(ResourceNotFoundError):
    def __init__(self, session_id: str):
        super().__init__("Defense session", session_id)


class TopicNotFoundError(ResourceNotFoundError):
    def __init__(self, topic_id: str):
        super().__init__("Topic", topic_id)


class RegistrationNotFoundError(ResourceNotFoundError):
    def __init__(self, registration_id: str):
        super().__init__("Registration", registration_id)


class RubricNotFoundError(ResourceNotFoundError):
    def __init__(self, rubric_id: str):
        super().__init__("Rubric", rubric_id)


class EvaluationNotFoundError(ResourceNotFoundError):
    def __init__(self, evaluation_id: str):
        super().__init__("Evaluation", evaluation_id)


# ============================================
# Validation Errors (422-type)
# ============================================

class ValidationError(DefenseHubError):
    """Input validation failed"""

    http_status = 422

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class DuplicateRegistrationError(DefenseHubError):
    """A student already has a registration in this defense session"""

    http_status = 409

    def __init__(self, session_id: str, student_doc_id: str):
        super().__init__(
            "Student already has a registration in this session",
            code="DUPLICATE_REGISTRATION",
            details={"session_id": session_id, "student_doc_id": student_doc_id}
        )


# ============================================
# Topic Allocation Errors (recoverable, 409)
# ============================================

class AllocationError(DefenseHubError):
    """Base class for topic allocation failures - the caller may retry"""

    http_status = 409


class AlreadyRegisteredError(AllocationError):
    """Registration already has a topic bound"""

    def __init__(self, registration_id: str, topic_id: Optional[str] = None):
        super().__init__(
            "A topic is already registered; cancel it before choosing another",
            code="ALREADY_REGISTERED",
            details={"registration_id": registration_id, "topic_id": topic_id}
        )


class CapacityExceededError(AllocationError):
    """Topic has no free slot left"""

    def __init__(self, topic_id: str, max_students: Optional[int] = None):
        details: Dict[str, Any] = {"topic_id": topic_id}
        if max_students is not None:
            details["max_students"] = max_students
        super().__init__(
            "This topic is already full, please choose another topic",
            code="CAPACITY_EXCEEDED",
            details=details
        )


class NotRegisteredError(AllocationError):
    """No topic is bound to the registration"""

    def __init__(self, registration_id: str):
        super().__init__(
            "No topic is currently registered",
            code="NOT_REGISTERED",
            details={"registration_id": registration_id}
        )


class TopicNotOpenError(AllocationError):
    """Topic cannot be registered for (not approved, other session, registration closed)"""

    def __init__(self, topic_id: str, reason: str):
        super().__init__(
            f"Topic is not open for registration: {reason}",
            code="TOPIC_NOT_OPEN",
            details={"topic_id": topic_id, "reason": reason}
        )


class NotTopicSupervisorError(AllocationError):
    """Only the supervisor bound to the registration may confirm or reject it"""

    http_status = 403

    def __init__(self, registration_id: str, supervisor_id: str):
        super().__init__(
            "Only the supervisor of this topic can decide on the registration",
            code="NOT_TOPIC_SUPERVISOR",
            details={"registration_id": registration_id, "supervisor_id": supervisor_id}
        )


class CancellationNotAllowedError(AllocationError):
    """Caller policy forbids releasing an approved allocation"""

    def __init__(self, registration_id: str):
        super().__init__(
            "An approved topic registration can no longer be cancelled",
            code="CANCELLATION_NOT_ALLOWED",
            details={"registration_id": registration_id}
        )


class StaleWriteError(AllocationError):
    """Precondition changed between read and commit.

    Retried inside the allocation engine. A register call that runs out of
    retries reports CapacityExceededError instead.
    """

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} '{entity_id}' was modified concurrently",
            code="STALE_WRITE",
            details={"entity": entity, "entity_id": entity_id}
        )


# ============================================
# Status Track Errors (409, never retried)
# ============================================

class StatusTrackError(DefenseHubError):
    """Base class for submission track failures"""

    http_status = 409


class TrackNotWritableError(StatusTrackError):
    """Submission attempted outside its gating window"""

    def __init__(self, registration_id: str, track: str, reason: str):
        super().__init__(
            reason,
            code="TRACK_NOT_WRITABLE",
            details={"registration_id": registration_id, "track": track}
        )


class InvalidTransitionError(StatusTrackError):
    """Status change not present in the transition table"""

    def __init__(self, track: str, from_status: Optional[str], to_status: Optional[str]):
        super().__init__(
            f"Cannot move {track} from '{from_status or 'none'}' to '{to_status or 'none'}'",
            code="INVALID_TRANSITION",
            details={"track": track, "from_status": from_status, "to_status": to_status}
        )


# ============================================
# Evaluation Errors
# ============================================

class EvaluationError(DefenseHubError):
    """Base class for evaluation store failures"""

    http_status = 422


class EvaluationOwnershipError(EvaluationError):
    """An evaluator tried to modify another evaluator's scores"""

    http_status = 403

    def __init__(self, evaluation_id: str, evaluator_id: str):
        super().__init__(
            "Evaluation belongs to another evaluator",
            code="EVALUATION_NOT_OWNED",
            details={"evaluation_id": evaluation_id, "evaluator_id": evaluator_id}
        )


class ScoreValidationError(EvaluationError):
    """Score entry does not fit the rubric"""

    def __init__(self, criterion_id: str, message: str):
        super().__init__(
            message,
            code="INVALID_SCORE",
            details={"criterion_id": criterion_id}
        )


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: DefenseHubError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
