"""Workflow Service - Document workflow operations exposed to the API"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..domain.models import Actor, Subject, WorkflowDefinition
from ..domain.enums import AuditAction, SubjectStatus
from ..domain.errors import (
    ConcurrencyError, DomainError, StaleStepError, ValidationError, WorkflowNotFoundError
)
from ..domain.interfaces import (
    AuditLog, NotificationDispatcher, SubjectStore, UnitOfWork, WorkflowDefinitionStore
)
from ..engine import TransitionEngine
from ..repositories import (
    InMemoryStorage, InMemorySubjectStore, InMemoryWorkflowStore, InMemoryAuditLog,
    InMemoryUnitOfWork, MongoSubjectRepository, MongoWorkflowRepository,
    MongoAuditRepository, MongoUnitOfWork
)
from .notification_service import create_notification_dispatcher
from ..config.settings import settings
from ..utils.time import ensure_utc, is_sla_breached, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowService:
    """
    Service for document workflow operations

    Loads subjects and definitions, delegates transitions to the engine and
    then re-evaluates the document so comment-only steps whose conditions
    hold complete without a human action.
    """

    def __init__(
        self,
        subject_store: SubjectStore,
        workflow_store: WorkflowDefinitionStore,
        audit_log: AuditLog,
        unit_of_work: UnitOfWork,
        notification_dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now
    ):
        self.subject_store = subject_store
        self.workflow_store = workflow_store
        self.audit_log = audit_log
        self.clock = clock
        self.engine = TransitionEngine(
            subject_store=subject_store,
            audit_log=audit_log,
            unit_of_work=unit_of_work,
            notification_dispatcher=notification_dispatcher,
            clock=clock
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def trigger(
        self,
        collection_id: str,
        document_id: str,
        actor: Optional[Actor],
        workflow_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Start a workflow on a document (no-op if one is already running)"""
        subject = self.subject_store.read(collection_id, document_id)
        definition = self._resolve_definition(subject, workflow_id)

        subject = self.engine.initiate(definition, subject, actor)
        subject = self._settle_committed(definition, subject)
        return self._summary(subject)

    def action(
        self,
        collection_id: str,
        document_id: str,
        step_id: str,
        action: str,
        actor: Actor,
        outcome: Optional[str] = None,
        comment: Optional[str] = None,
        workflow_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Record a user action on the current step"""
        subject = self.subject_store.read(collection_id, document_id)
        if subject.workflow_id is None:
            raise StaleStepError(
                "No workflow has been started on this document",
                details={"collection_id": collection_id, "document_id": document_id}
            )
        if workflow_id and workflow_id != subject.workflow_id:
            raise StaleStepError(
                f"Document is not running workflow {workflow_id}",
                details={"workflow_id": workflow_id, "current_workflow_id": subject.workflow_id}
            )
        definition = self.workflow_store.find_by_id(subject.workflow_id)

        advanced = self.engine.advance(
            definition,
            subject,
            step_id,
            action=action,
            outcome=outcome,
            actor=actor,
            comment=comment
        )
        settled = self._settle_committed(definition, advanced)

        result = self._summary(settled)
        result["next_step_id"] = advanced.current_step_id
        return result

    def reevaluate_document(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        """Document-changed hook; safe to call repeatedly"""
        subject = self.subject_store.read(collection_id, document_id)

        if subject.workflow_id is not None:
            definition = self.workflow_store.find_by_id(subject.workflow_id)
        elif subject.status == SubjectStatus.NOT_STARTED:
            applicable = self.workflow_store.find_applicable(collection_id)
            if not applicable:
                logger.info(
                    f"No workflow applies to collection '{collection_id}'",
                    extra={"collection_id": collection_id, "document_id": document_id}
                )
                return self._summary(subject)
            definition = applicable[0]
        else:
            return self._summary(subject)

        subject = self._settle(definition, subject)
        return self._summary(subject)

    def status(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        """Current workflow state and history of a document"""
        subject = self.subject_store.read(collection_id, document_id)
        definition = None
        if subject.workflow_id is not None:
            definition = self.workflow_store.find_by_id(subject.workflow_id)

        current_step = None
        if definition is not None and subject.status == SubjectStatus.IN_PROGRESS:
            step = definition.get_step(subject.current_step_id)
            if step is not None:
                current_step = {
                    "step_id": step.step_id,
                    "name": step.name,
                    "step_type": step.step_type.value,
                    "assigned_to": step.assigned_to.model_dump(),
                    "sla_hours": step.sla_hours,
                    "step_entered_at": subject.step_entered_at,
                    "sla_breached": is_sla_breached(
                        subject.step_entered_at, step.sla_hours, self.clock()
                    ),
                }

        history = self.audit_log.query(document_id, collection_id)
        return {
            "document_id": subject.document_id,
            "collection_id": subject.collection_id,
            "status": subject.status.value,
            "workflow": (
                {"workflow_id": definition.workflow_id, "name": definition.name}
                if definition else None
            ),
            "current_step": current_step,
            "history": [entry.model_dump() for entry in history],
        }

    def escalate_overdue(self, now: Optional[datetime] = None) -> int:
        """
        Escalate every in-progress document whose current step is past its SLA

        A step is escalated at most once per entry. Failures on one document
        are logged and the sweep continues.

        Returns:
            Number of escalations written
        """
        now = now or self.clock()
        escalated = 0

        for definition in self.workflow_store.list_all():
            if not any(step.sla_hours for step in definition.steps):
                continue

            for collection_id in definition.applies_to:
                for subject in self.subject_store.find_in_progress(collection_id):
                    if subject.workflow_id != definition.workflow_id:
                        continue
                    if self._already_escalated(subject):
                        continue
                    try:
                        if self.engine.escalate(definition, subject, now):
                            escalated += 1
                    except DomainError as e:
                        logger.error(
                            f"Escalation failed for {subject.document_id}: {e.message}",
                            extra={
                                "document_id": subject.document_id,
                                "collection_id": subject.collection_id,
                                "error_code": e.error_code,
                            }
                        )

        if escalated:
            logger.info(f"SLA sweep escalated {escalated} document(s)")
        return escalated

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_definition(
        self,
        subject: Subject,
        workflow_id: Optional[str]
    ) -> WorkflowDefinition:
        if workflow_id:
            definition = self.workflow_store.find_by_id(workflow_id)
            if subject.collection_id not in definition.applies_to:
                raise ValidationError(
                    f"Workflow '{definition.name}' does not apply to collection '{subject.collection_id}'",
                    details={"workflow_id": workflow_id, "collection_id": subject.collection_id}
                )
            return definition

        if subject.workflow_id is not None:
            return self.workflow_store.find_by_id(subject.workflow_id)

        applicable = self.workflow_store.find_applicable(subject.collection_id)
        if not applicable:
            raise WorkflowNotFoundError(
                f"No workflow applies to collection '{subject.collection_id}'",
                details={"collection_id": subject.collection_id}
            )
        return applicable[0]

    def _settle(self, definition: WorkflowDefinition, subject: Subject) -> Subject:
        """Re-evaluate until the document stops moving"""
        for _ in range(len(definition.steps) + 1):
            try:
                updated = self.engine.reevaluate(definition, subject)
            except ConcurrencyError:
                # Another writer moved the document; retry against its state
                logger.info(
                    "Re-evaluation superseded, retrying with fresh state",
                    extra={"document_id": subject.document_id, "collection_id": subject.collection_id}
                )
                subject = self.subject_store.read(subject.collection_id, subject.document_id)
                continue
            if updated.version == subject.version:
                return updated
            subject = updated
        return subject

    def _settle_committed(self, definition: WorkflowDefinition, subject: Subject) -> Subject:
        """
        Settle after a transition that has already committed

        The caller's transition stands either way, so a failure while
        settling is logged and the stored state returned.
        """
        try:
            return self._settle(definition, subject)
        except DomainError as e:
            logger.warning(
                f"Follow-up re-evaluation failed for {subject.document_id}: {e.message}",
                extra={
                    "document_id": subject.document_id,
                    "collection_id": subject.collection_id,
                    "error_code": e.error_code,
                }
            )
            return self.subject_store.read(subject.collection_id, subject.document_id)

    def _already_escalated(self, subject: Subject) -> bool:
        if subject.step_entered_at is None:
            return False
        entered_at = ensure_utc(subject.step_entered_at)
        for entry in self.audit_log.query(subject.document_id, subject.collection_id):
            if (
                entry.action == AuditAction.ESCALATED.value
                and entry.step_id == subject.current_step_id
                and ensure_utc(entry.timestamp) >= entered_at
            ):
                return True
        return False

    def _summary(self, subject: Subject) -> Dict[str, Any]:
        return {
            "document_id": subject.document_id,
            "collection_id": subject.collection_id,
            "status": subject.status.value,
            "workflow_id": subject.workflow_id,
            "current_step_id": subject.current_step_id,
        }


def create_workflow_service() -> WorkflowService:
    """Build the service on the configured storage backend"""
    dispatcher = create_notification_dispatcher()

    if settings.uses_memory_storage:
        storage = InMemoryStorage()
        logger.info("Using in-memory storage backend")
        return WorkflowService(
            subject_store=InMemorySubjectStore(storage),
            workflow_store=InMemoryWorkflowStore(storage),
            audit_log=InMemoryAuditLog(storage),
            unit_of_work=InMemoryUnitOfWork(storage),
            notification_dispatcher=dispatcher
        )

    return WorkflowService(
        subject_store=MongoSubjectRepository(),
        workflow_store=MongoWorkflowRepository(),
        audit_log=MongoAuditRepository(),
        unit_of_work=MongoUnitOfWork(),
        notification_dispatcher=dispatcher
    )
