"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """Actor is not permitted to act on the step"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Missing or malformed required field"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


class NoStepsError(DomainError):
    """Workflow definition has zero steps"""
    error_code = "NO_STEPS"
    http_status = 400


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class DocumentNotFoundError(NotFoundError):
    """Document not found in its collection"""
    error_code = "DOCUMENT_NOT_FOUND"


class WorkflowNotFoundError(NotFoundError):
    """Workflow definition not found"""
    error_code = "WORKFLOW_NOT_FOUND"


class StepNotFoundError(NotFoundError):
    """Step not found in workflow definition"""
    error_code = "STEP_NOT_FOUND"


class StaleStepError(NotFoundError):
    """Request names a step the document is no longer on"""
    error_code = "STALE_STEP"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class InvalidStateError(ConflictError):
    """Status change not permitted from the current status"""
    error_code = "INVALID_STATE"


class ImmutableViolation(DomainError):
    """Mutation attempted on an existing audit entry"""
    error_code = "IMMUTABLE_VIOLATION"
    http_status = 409


# Infrastructure Errors
class InternalError(DomainError):
    """Storage or transport failure"""
    error_code = "INTERNAL_ERROR"
    http_status = 500


class StorageError(InternalError):
    """Persistence layer unavailable or failed"""
    error_code = "STORAGE_ERROR"


class NotificationDeliveryError(InternalError):
    """Notification could not be delivered"""
    error_code = "NOTIFICATION_DELIVERY_ERROR"
    http_status = 502
