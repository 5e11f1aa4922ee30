"""Audit Writer - Build and append workflow log entries"""
from datetime import datetime
from typing import Any, Optional

from ..domain.models import Actor, AuditEntry, Subject
from ..domain.enums import AuditAction
from ..domain.interfaces import AuditLog
from ..utils.idgen import generate_audit_entry_id
from ..utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


class AuditWriter:
    """
    Write audit entries (append-only)

    Every engine transition produces exactly one entry. Entries written
    with a session commit or roll back together with the subject write.
    """

    def __init__(self, audit_log: AuditLog):
        self.audit_log = audit_log

    def build_entry(
        self,
        workflow_id: str,
        subject: Subject,
        step_id: str,
        action: str,
        actor: Optional[Actor],
        timestamp: datetime,
        outcome: Optional[str] = None,
        comment: Optional[str] = None
    ) -> AuditEntry:
        """Build an entry without persisting it"""
        return AuditEntry(
            entry_id=generate_audit_entry_id(),
            workflow_id=workflow_id,
            document_id=subject.document_id,
            collection_id=subject.collection_id,
            step_id=step_id,
            action=action,
            actor_id=actor.id if actor else None,
            timestamp=timestamp,
            outcome=outcome,
            comment=comment,
            correlation_id=get_correlation_id()
        )

    def write(self, entry: AuditEntry, session: Any = None) -> str:
        """Append an entry"""
        entry_id = self.audit_log.append(entry, session=session)
        logger.info(
            f"Audit entry {entry_id}: {entry.action}",
            extra={
                "document_id": entry.document_id,
                "collection_id": entry.collection_id,
                "step_id": entry.step_id,
                "action": entry.action,
                "actor_id": entry.actor_id,
            }
        )
        return entry_id

    def write_escalated(
        self,
        workflow_id: str,
        subject: Subject,
        step_id: str,
        sla_hours: float,
        timestamp: datetime
    ) -> str:
        """Write SLA escalation entry (system actor)"""
        entry = self.build_entry(
            workflow_id=workflow_id,
            subject=subject,
            step_id=step_id,
            action=AuditAction.ESCALATED.value,
            actor=None,
            timestamp=timestamp,
            comment=f"Step exceeded SLA of {sla_hours:g}h"
        )
        return self.write(entry)
