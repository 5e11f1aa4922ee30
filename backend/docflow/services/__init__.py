"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService, create_workflow_service
from .notification_service import (
    LoggingNotificationDispatcher,
    WebhookNotificationDispatcher,
    create_notification_dispatcher,
)

__all__ = [
    "WorkflowService",
    "create_workflow_service",
    "LoggingNotificationDispatcher",
    "WebhookNotificationDispatcher",
    "create_notification_dispatcher",
]
