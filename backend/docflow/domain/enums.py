"""Domain Enums - All enumeration types"""
from enum import Enum


class SubjectStatus(str, Enum):
    """Workflow status of a document"""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({
    SubjectStatus.COMPLETED,
    SubjectStatus.REJECTED,
    SubjectStatus.CANCELLED,
})


# in_progress -> in_progress is only legal when the current step moves
ALLOWED_STATUS_TRANSITIONS = {
    SubjectStatus.NOT_STARTED: {SubjectStatus.IN_PROGRESS},
    SubjectStatus.IN_PROGRESS: {
        SubjectStatus.IN_PROGRESS,
        SubjectStatus.COMPLETED,
        SubjectStatus.REJECTED,
        SubjectStatus.CANCELLED,
    },
    SubjectStatus.COMPLETED: set(),
    SubjectStatus.REJECTED: set(),
    SubjectStatus.CANCELLED: set(),
}


class StepType(str, Enum):
    """Workflow step types"""
    APPROVAL = "approval"
    REVIEW = "review"
    SIGN_OFF = "sign-off"
    COMMENT_ONLY = "comment-only"


class ConditionOperator(str, Enum):
    """Operators for step-entry conditions"""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    CONTAINS = "contains"


class AuditAction(str, Enum):
    """Action tokens written by the engine itself

    User actions are free-form tokens (e.g. "approved", "rejected",
    "commented"); these are the ones the system writes on its own.
    """
    TRIGGERED = "triggered"
    COMPLETED = "completed"
    ESCALATED = "escalated"
