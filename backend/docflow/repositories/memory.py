"""
In-memory implementations of the storage ports.

Used by tests and by STORAGE_BACKEND=memory for local demos. All stores
built on one InMemoryStorage share its lock, so a transaction holds every
store exclusively until it commits or rolls back.
"""
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..domain.models import AuditEntry, Subject, WorkflowDefinition
from ..domain.enums import SubjectStatus
from ..domain.errors import ConcurrencyError, DocumentNotFoundError, WorkflowNotFoundError
from ..domain.interfaces import AuditLog, SubjectStore, UnitOfWork, WorkflowDefinitionStore
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

WRITABLE_FIELDS = {"status", "workflow_id", "current_step_id", "step_entered_at"}


class InMemoryStorage:
    """Shared state behind the in-memory stores"""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.subjects: Dict[Tuple[str, str], Subject] = {}
        self.workflows: Dict[str, WorkflowDefinition] = {}
        self.logs: List[AuditEntry] = []
        self.sequence = 0


class MemorySession:
    """Undo log for one transaction"""

    def __init__(self) -> None:
        self._undo: List[Callable[[], None]] = []

    def on_rollback(self, action: Callable[[], None]) -> None:
        self._undo.append(action)

    def rollback(self) -> None:
        for action in reversed(self._undo):
            action()
        self._undo.clear()


class InMemoryUnitOfWork(UnitOfWork):

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    @contextmanager
    def transaction(self) -> Iterator[MemorySession]:
        with self.storage.lock:
            session = MemorySession()
            try:
                yield session
            except Exception:
                session.rollback()
                raise


class InMemorySubjectStore(SubjectStore):

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def put_document(
        self,
        collection_id: str,
        document_id: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Subject:
        """Create a document or replace its data, keeping its workflow fields"""
        key = (collection_id, document_id)
        with self.storage.lock:
            current = self.storage.subjects.get(key)
            if current is None:
                current = Subject(
                    document_id=document_id,
                    collection_id=collection_id,
                    data=dict(data or {})
                )
            else:
                current = current.model_copy(update={"data": dict(data or {})})
            self.storage.subjects[key] = current
            return current.model_copy(deep=True)

    def read(self, collection_id: str, document_id: str) -> Subject:
        with self.storage.lock:
            subject = self.storage.subjects.get((collection_id, document_id))
            if subject is None:
                raise DocumentNotFoundError(
                    f"Document {document_id} not found in {collection_id}",
                    details={"collection_id": collection_id, "document_id": document_id}
                )
            return subject.model_copy(deep=True)

    def write(
        self,
        collection_id: str,
        document_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int],
        session: Any = None
    ) -> Subject:
        unknown = set(patch) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not writable workflow fields: {sorted(unknown)}")

        key = (collection_id, document_id)
        with self.storage.lock:
            current = self.storage.subjects.get(key)
            if current is None:
                raise DocumentNotFoundError(
                    f"Document {document_id} not found in {collection_id}",
                    details={"collection_id": collection_id, "document_id": document_id}
                )
            if expected_version is not None and current.version != expected_version:
                raise ConcurrencyError(
                    f"Document {document_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version, "current_version": current.version}
                )

            updated = current.model_copy(update={**patch, "version": current.version + 1})
            self.storage.subjects[key] = updated
            if session is not None:
                session.on_rollback(lambda: self.storage.subjects.__setitem__(key, current))
            return updated.model_copy(deep=True)

    def find_in_progress(self, collection_id: str) -> List[Subject]:
        with self.storage.lock:
            return [
                subject.model_copy(deep=True)
                for (coll, _), subject in self.storage.subjects.items()
                if coll == collection_id and subject.status == SubjectStatus.IN_PROGRESS
            ]


class InMemoryWorkflowStore(WorkflowDefinitionStore):

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def find_by_id(self, workflow_id: str) -> WorkflowDefinition:
        with self.storage.lock:
            definition = self.storage.workflows.get(workflow_id)
        if definition is None:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return definition

    def find_applicable(self, collection_id: str) -> List[WorkflowDefinition]:
        return [d for d in self.list_all() if collection_id in d.applies_to]

    def list_all(self) -> List[WorkflowDefinition]:
        with self.storage.lock:
            # Stable sort keeps insertion order for equal timestamps
            return sorted(self.storage.workflows.values(), key=lambda d: d.created_at)

    def save(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        with self.storage.lock:
            existing = self.storage.workflows.get(definition.workflow_id)
            if definition.created_at is None:
                created_at = existing.created_at if existing else utc_now()
                definition = definition.model_copy(update={"created_at": created_at})
            self.storage.workflows[definition.workflow_id] = definition
        logger.info(
            f"Saved workflow: {definition.workflow_id}",
            extra={"workflow_id": definition.workflow_id}
        )
        return definition


class InMemoryAuditLog(AuditLog):

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def append(self, entry: AuditEntry, session: Any = None) -> str:
        with self.storage.lock:
            self.storage.sequence += 1
            stored = entry.model_copy(update={"sequence": self.storage.sequence})
            self.storage.logs.append(stored)
            if session is not None:
                session.on_rollback(lambda: self.storage.logs.remove(stored))
        return stored.entry_id

    def query(self, document_id: str, collection_id: str) -> List[AuditEntry]:
        with self.storage.lock:
            entries = [
                e for e in self.storage.logs
                if e.document_id == document_id and e.collection_id == collection_id
            ]
        return sorted(entries, key=lambda e: (e.timestamp, e.sequence), reverse=True)
