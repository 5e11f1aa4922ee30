"""Notification Service - Step assignment alerts

Delivery is best effort. The engine calls notify() after a transition has
committed and logs any exception raised here without undoing the transition.
"""
from typing import Any, Dict, Optional
import httpx

from ..domain.models import Actor, RoleAssignee, Step, Subject, WorkflowDefinition
from ..domain.errors import NotificationDeliveryError
from ..domain.interfaces import NotificationDispatcher
from ..config.settings import settings
from ..utils.time import format_iso, utc_now
from ..utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


def build_payload(
    definition: WorkflowDefinition,
    step: Step,
    subject: Subject,
    actor: Optional[Actor]
) -> Dict[str, Any]:
    """Notification body shared by all dispatchers"""
    assignee = step.assigned_to
    if isinstance(assignee, RoleAssignee):
        recipient = {"type": "role", "role": assignee.role}
    else:
        recipient = {"type": "user", "user_id": assignee.user_id}

    return {
        "event": "step_assigned",
        "workflow_id": definition.workflow_id,
        "workflow_name": definition.name,
        "collection_id": subject.collection_id,
        "document_id": subject.document_id,
        "step_id": step.step_id,
        "step_name": step.name,
        "step_type": step.step_type.value,
        "sla_hours": step.sla_hours,
        "assigned_to": recipient,
        "triggered_by": actor.id if actor else None,
        "status": subject.status.value,
        "sent_at": format_iso(utc_now()),
        "correlation_id": get_correlation_id(),
    }


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Writes the notification to the application log only"""

    def notify(
        self,
        definition: WorkflowDefinition,
        step: Step,
        subject: Subject,
        actor: Optional[Actor]
    ) -> None:
        payload = build_payload(definition, step, subject, actor)
        logger.info(
            f"Notify {payload['assigned_to']} about step '{step.name}' on {subject.document_id}",
            extra={
                "document_id": subject.document_id,
                "collection_id": subject.collection_id,
                "workflow_id": definition.workflow_id,
                "step_id": step.step_id,
            }
        )


class WebhookNotificationDispatcher(NotificationDispatcher):
    """
    POSTs the notification as JSON to a configured URL

    Raises NotificationDeliveryError on transport errors and non-2xx
    responses so the caller can log the failure.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[httpx.Client] = None
    ):
        self.url = url or settings.notification_webhook_url
        timeout = timeout_seconds or settings.notification_timeout_seconds
        self._client = client or httpx.Client(timeout=timeout)

    def notify(
        self,
        definition: WorkflowDefinition,
        step: Step,
        subject: Subject,
        actor: Optional[Actor]
    ) -> None:
        payload = build_payload(definition, step, subject, actor)
        headers = {"Content-Type": "application/json"}
        if payload["correlation_id"]:
            headers["X-Correlation-ID"] = payload["correlation_id"]

        try:
            response = self._client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(
                f"Webhook request failed: {e}",
                details={"url": self.url, "step_id": step.step_id}
            )

        if response.status_code >= 300:
            raise NotificationDeliveryError(
                f"Webhook returned {response.status_code}",
                details={"url": self.url, "step_id": step.step_id, "status_code": response.status_code}
            )

        logger.info(
            f"Webhook notification delivered for step '{step.step_id}'",
            extra={"document_id": subject.document_id, "step_id": step.step_id}
        )

    def close(self) -> None:
        self._client.close()


def create_notification_dispatcher() -> NotificationDispatcher:
    """Webhook dispatcher when a URL is configured, otherwise log-only"""
    if settings.notification_webhook_url:
        return WebhookNotificationDispatcher()
    return LoggingNotificationDispatcher()
