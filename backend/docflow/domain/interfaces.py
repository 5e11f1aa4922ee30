"""
Collaborator interfaces (ports) consumed by the transition engine.

Storage, delivery and transaction handling are injected so the engine can run
against MongoDB in production and in-memory doubles in tests.
"""
from abc import ABC, abstractmethod
from typing import Any, ContextManager, Dict, List, Optional

from .errors import ImmutableViolation
from .models import Actor, AuditEntry, Step, Subject, WorkflowDefinition


class UnitOfWork(ABC):
    """Commits a subject write and its audit append as one unit"""

    @abstractmethod
    def transaction(self) -> ContextManager[Any]:
        """
        Open a transaction and yield a session handle.

        Everything written with the yielded session commits when the block
        exits normally and is discarded if it raises.
        """


class SubjectStore(ABC):
    """Persistence for a document's workflow fields"""

    @abstractmethod
    def read(self, collection_id: str, document_id: str) -> Subject:
        """Load a subject or raise DocumentNotFoundError"""

    @abstractmethod
    def write(
        self,
        collection_id: str,
        document_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int],
        session: Any = None
    ) -> Subject:
        """
        Apply a patch of workflow fields.

        Raises ConcurrencyError if the stored version no longer equals
        expected_version. The version is bumped on every successful write.
        """

    @abstractmethod
    def find_in_progress(self, collection_id: str) -> List[Subject]:
        """Subjects of a collection currently inside a workflow"""


class WorkflowDefinitionStore(ABC):
    """Lookup of workflow definitions"""

    @abstractmethod
    def find_by_id(self, workflow_id: str) -> WorkflowDefinition:
        """Load a definition or raise WorkflowNotFoundError"""

    @abstractmethod
    def find_applicable(self, collection_id: str) -> List[WorkflowDefinition]:
        """Definitions whose applies_to contains the collection, oldest first"""

    @abstractmethod
    def list_all(self) -> List[WorkflowDefinition]:
        """Every stored definition"""

    @abstractmethod
    def save(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Insert or replace a definition"""


class AuditLog(ABC):
    """Append-only record of workflow actions"""

    @abstractmethod
    def append(self, entry: AuditEntry, session: Any = None) -> str:
        """Append an entry and return its entry_id"""

    @abstractmethod
    def query(self, document_id: str, collection_id: str) -> List[AuditEntry]:
        """Entries for a document, newest first, later insertions first on ties"""

    def update(self, entry_id: str, changes: Dict[str, Any]) -> None:
        raise ImmutableViolation(
            "Workflow logs are immutable and cannot be updated",
            details={"entry_id": entry_id}
        )

    def delete(self, entry_id: str) -> None:
        raise ImmutableViolation(
            "Workflow logs are immutable and cannot be deleted",
            details={"entry_id": entry_id}
        )


class NotificationDispatcher(ABC):
    """Best-effort delivery of step assignment alerts"""

    @abstractmethod
    def notify(
        self,
        definition: WorkflowDefinition,
        step: Step,
        subject: Subject,
        actor: Optional[Actor]
    ) -> None:
        """Deliver a notice; may raise, callers log and swallow failures"""
