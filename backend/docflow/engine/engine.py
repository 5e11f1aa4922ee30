"""
Transition Engine - The Brain of the System

This module contains the TransitionEngine class that drives a document
through its workflow definition.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Constructor with store, log, transaction and dispatcher dependencies

2. OPERATIONS
   - initiate: Bind a workflow and enter its first step (idempotent)
   - advance: Record an action and move to the next step or complete
   - reevaluate: Re-check the current step after the document changed
   - escalate: Raise an SLA escalation for an overdue step

3. HELPERS
   - _authorize: Actor vs. assignee gate
   - _commit: Audit append + subject write as one unit of work
   - _notify: Fire-and-forget notification dispatch

=============================================================================
DEPENDENCIES
=============================================================================

Ports (injected):
    - SubjectStore: Document workflow fields, version-gated writes
    - AuditLog: Append-only workflow log
    - UnitOfWork: Transaction spanning the two above
    - NotificationDispatcher: Step assignment alerts

Guards & Resolvers:
    - AuthorizationGuard: Authorization checks
    - ConditionEvaluator: Step-entry conditions
    - TransitionResolver: Branch table / sequential next step
    - AuditWriter: Build and append log entries

=============================================================================
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..domain.models import Actor, AuditEntry, Step, Subject, WorkflowDefinition
from ..domain.enums import (
    SubjectStatus, StepType, AuditAction, ALLOWED_STATUS_TRANSITIONS
)
from ..domain.errors import (
    AuthorizationError, ConcurrencyError, InvalidStateError, NoStepsError,
    StaleStepError, StepNotFoundError, ValidationError
)
from ..domain.interfaces import (
    AuditLog, NotificationDispatcher, SubjectStore, UnitOfWork
)
from .authorization_guard import AuthorizationGuard
from .condition_evaluator import ConditionEvaluator
from .transition_resolver import TransitionResolver
from .audit_writer import AuditWriter
from ..utils.time import utc_now, is_sla_breached
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TransitionEngine:
    """
    The Transition Engine - state machine per document

    Responsibilities:
    - Start a workflow on a document exactly once
    - Gate actions on the step's assignee
    - Resolve branch or sequential successor and complete at the end
    - Commit each transition together with its audit entry
    - Notify assignees without letting delivery failures affect state
    """

    def __init__(
        self,
        subject_store: SubjectStore,
        audit_log: AuditLog,
        unit_of_work: UnitOfWork,
        notification_dispatcher: NotificationDispatcher,
        condition_evaluator: Optional[ConditionEvaluator] = None,
        authorization_guard: Optional[AuthorizationGuard] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.subject_store = subject_store
        self.unit_of_work = unit_of_work
        self.notification_dispatcher = notification_dispatcher
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()
        self.authorization_guard = authorization_guard or AuthorizationGuard()
        self.transition_resolver = TransitionResolver()
        self.audit_writer = AuditWriter(audit_log)
        self.clock = clock

    # =========================================================================
    # Initiate
    # =========================================================================

    def initiate(
        self,
        definition: WorkflowDefinition,
        subject: Subject,
        actor: Optional[Actor] = None
    ) -> Subject:
        """
        Start a workflow on a document

        Algorithm:
        1. Return the subject untouched if it has already started
        2. Enter the first step (status, workflow, step, entry time)
        3. Write the "triggered" entry in the same unit of work
        4. Notify the first step's assignee

        Raises:
            NoStepsError: If the definition has no steps
            ConcurrencyError: If another writer changed the document and it
                is still not started
        """
        if subject.status != SubjectStatus.NOT_STARTED:
            logger.info(
                f"Workflow already started on {subject.collection_id}/{subject.document_id}, skipping",
                extra=self._log_extra(subject)
            )
            return subject

        first_step = definition.first_step()
        if first_step is None:
            raise NoStepsError(
                f"Workflow '{definition.name}' has no steps defined",
                details={"workflow_id": definition.workflow_id}
            )

        self._check_status_change(subject, SubjectStatus.IN_PROGRESS)
        now = self.clock()
        entry = self.audit_writer.build_entry(
            workflow_id=definition.workflow_id,
            subject=subject,
            step_id=first_step.step_id,
            action=AuditAction.TRIGGERED.value,
            actor=actor,
            timestamp=now,
            comment="Workflow initiated"
        )
        patch = {
            "status": SubjectStatus.IN_PROGRESS,
            "workflow_id": definition.workflow_id,
            "current_step_id": first_step.step_id,
            "step_entered_at": now,
        }

        try:
            updated = self._commit(subject, patch, entry)
        except ConcurrencyError:
            # A concurrent trigger may have won; that is the idempotent case
            fresh = self.subject_store.read(subject.collection_id, subject.document_id)
            if fresh.status != SubjectStatus.NOT_STARTED:
                logger.info(
                    "Concurrent initiation detected, returning current state",
                    extra=self._log_extra(fresh)
                )
                return fresh
            raise

        logger.info(
            f"Workflow '{definition.name}' started at step '{first_step.step_id}'",
            extra=self._log_extra(updated, actor)
        )
        self._notify(definition, first_step, updated, actor)
        return updated

    # =========================================================================
    # Advance
    # =========================================================================

    def advance(
        self,
        definition: WorkflowDefinition,
        subject: Subject,
        current_step_id: str,
        action: str,
        outcome: Optional[str] = None,
        actor: Optional[Actor] = None,
        comment: Optional[str] = None
    ) -> Subject:
        """
        Record an action on the current step and move on

        Algorithm:
        1. Locate the step and reject stale requests
        2. Authorize the actor (no trace left when denied)
        3. Resolve next step: branch table, then sequential order, else None
        4. Commit audit entry + subject write together (version-gated)
        5. Notify the new step's assignee if it is active and actionable

        Raises:
            StepNotFoundError: Step is not part of the definition
            StaleStepError: Document is no longer on that step
            AuthorizationError: Actor is not the step's assignee
            ConcurrencyError: Another transition committed first
        """
        if not action:
            raise ValidationError("action is required", details={"step_id": current_step_id})

        current_step = definition.get_step(current_step_id)
        if current_step is None:
            raise StepNotFoundError(
                f"Step '{current_step_id}' not found in workflow '{definition.name}'",
                details={"workflow_id": definition.workflow_id, "step_id": current_step_id}
            )

        if (
            subject.status != SubjectStatus.IN_PROGRESS
            or subject.workflow_id != definition.workflow_id
            or subject.current_step_id != current_step_id
        ):
            raise StaleStepError(
                f"Document is not at step '{current_step_id}'",
                details={
                    "requested_step_id": current_step_id,
                    "current_step_id": subject.current_step_id,
                    "status": subject.status.value,
                }
            )

        self._authorize(current_step, subject, actor)

        next_step_id = self.transition_resolver.resolve_next_step(definition, current_step, outcome)
        now = self.clock()

        patch: Dict[str, Any]
        if next_step_id is not None:
            self._check_status_change(subject, SubjectStatus.IN_PROGRESS)
            patch = {"current_step_id": next_step_id, "step_entered_at": now}
        else:
            self._check_status_change(subject, SubjectStatus.COMPLETED)
            patch = {"status": SubjectStatus.COMPLETED, "current_step_id": None}

        entry = self.audit_writer.build_entry(
            workflow_id=definition.workflow_id,
            subject=subject,
            step_id=current_step.step_id,
            action=action,
            actor=actor,
            timestamp=now,
            outcome=outcome,
            comment=comment
        )
        updated = self._commit(subject, patch, entry)

        if next_step_id is None:
            logger.info(
                f"Workflow '{definition.name}' completed",
                extra=self._log_extra(updated, actor, action=action, outcome=outcome)
            )
            return updated

        logger.info(
            f"Advanced {current_step.step_id} -> {next_step_id}",
            extra=self._log_extra(updated, actor, action=action, outcome=outcome)
        )

        next_step = definition.get_step(next_step_id)
        if not self.condition_evaluator.evaluate(updated, next_step.conditions):
            logger.info(
                f"Conditions for step '{next_step.name}' not met, waiting",
                extra=self._log_extra(updated)
            )
        elif next_step.step_type != StepType.COMMENT_ONLY:
            self._notify(definition, next_step, updated, actor)

        return updated

    # =========================================================================
    # Reevaluate
    # =========================================================================

    def reevaluate(self, definition: WorkflowDefinition, subject: Subject) -> Subject:
        """
        Re-check a document after its data changed

        Safe to call any number of times for the same change: initiate is
        idempotent and the automatic advance is version-gated.
        """
        if subject.status == SubjectStatus.NOT_STARTED:
            return self.initiate(definition, subject, actor=None)

        if subject.status != SubjectStatus.IN_PROGRESS:
            return subject

        if subject.workflow_id != definition.workflow_id:
            logger.warning(
                f"Document is bound to workflow '{subject.workflow_id}', not '{definition.workflow_id}'",
                extra=self._log_extra(subject)
            )
            return subject

        current_step = definition.get_step(subject.current_step_id)
        if current_step is None:
            raise StepNotFoundError(
                f"Current step '{subject.current_step_id}' not found in workflow '{definition.name}'",
                details={"workflow_id": definition.workflow_id, "step_id": subject.current_step_id}
            )

        if not self.condition_evaluator.evaluate(subject, current_step.conditions):
            logger.info(
                f"Conditions for step '{current_step.name}' not met, waiting",
                extra=self._log_extra(subject)
            )
            return subject

        if current_step.step_type != StepType.COMMENT_ONLY:
            return subject  # A human action is still required

        return self.advance(
            definition,
            subject,
            current_step.step_id,
            action=AuditAction.COMPLETED.value,
            outcome=AuditAction.COMPLETED.value,
            actor=None,
            comment="Comment-only step auto-completed"
        )

    # =========================================================================
    # Escalate
    # =========================================================================

    def escalate(
        self,
        definition: WorkflowDefinition,
        subject: Subject,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Raise an escalation if the current step is past its SLA

        Never moves the document. Meant to be called by an external timer.

        Returns:
            True if an escalation entry was written
        """
        now = now or self.clock()

        if subject.status != SubjectStatus.IN_PROGRESS or subject.workflow_id != definition.workflow_id:
            return False

        step = definition.get_step(subject.current_step_id)
        if step is None or step.sla_hours is None:
            return False

        if not is_sla_breached(subject.step_entered_at, step.sla_hours, now):
            return False

        self.audit_writer.write_escalated(
            workflow_id=definition.workflow_id,
            subject=subject,
            step_id=step.step_id,
            sla_hours=step.sla_hours,
            timestamp=now
        )
        logger.warning(
            f"Step '{step.name}' exceeded its SLA of {step.sla_hours:g}h",
            extra=self._log_extra(subject)
        )
        self._notify(definition, step, subject, None)
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _authorize(self, step: Step, subject: Subject, actor: Optional[Actor]) -> None:
        """Allow the assignee, or the system on comment-only steps"""
        if actor is None:
            if step.step_type == StepType.COMMENT_ONLY:
                return
            raise AuthorizationError(
                "System actions are only permitted on comment-only steps",
                details={"step_id": step.step_id}
            )

        if not self.authorization_guard.is_authorized(actor, step.assigned_to):
            logger.warning(
                f"Actor {actor.id} is not assigned to step '{step.step_id}'",
                extra=self._log_extra(subject, actor)
            )
            raise AuthorizationError(
                "You are not authorized to perform this action on this step",
                details={"step_id": step.step_id}
            )

    def _commit(self, subject: Subject, patch: Dict[str, Any], entry: AuditEntry) -> Subject:
        """Append the audit entry and write the subject as one unit"""
        with self.unit_of_work.transaction() as session:
            self.audit_writer.write(entry, session=session)
            return self.subject_store.write(
                subject.collection_id,
                subject.document_id,
                patch,
                expected_version=subject.version,
                session=session
            )

    def _check_status_change(self, subject: Subject, new_status: SubjectStatus) -> None:
        if new_status not in ALLOWED_STATUS_TRANSITIONS[subject.status]:
            raise InvalidStateError(
                f"Illegal status change: {subject.status.value} -> {new_status.value}",
                details={"document_id": subject.document_id}
            )

    def _notify(
        self,
        definition: WorkflowDefinition,
        step: Step,
        subject: Subject,
        actor: Optional[Actor]
    ) -> None:
        """Dispatch a notification; failures are logged, never raised"""
        try:
            self.notification_dispatcher.notify(definition, step, subject, actor)
        except Exception as e:
            logger.warning(
                f"Notification for step '{step.step_id}' failed: {e}",
                extra=self._log_extra(subject, actor)
            )

    def _log_extra(
        self,
        subject: Subject,
        actor: Optional[Actor] = None,
        **fields: Any
    ) -> Dict[str, Any]:
        extra = {
            "document_id": subject.document_id,
            "collection_id": subject.collection_id,
            "workflow_id": subject.workflow_id,
            "step_id": subject.current_step_id,
            "status": subject.status.value,
            "actor_id": actor.id if actor else None,
        }
        extra.update({k: v for k, v in fields.items() if v is not None})
        return extra
