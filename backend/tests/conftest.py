"""
Pytest Configuration and Fixtures

Everything runs against the in-memory stores; no MongoDB is needed.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from docflow.domain.interfaces import NotificationDispatcher
from docflow.domain.models import Actor, Step, Subject, WorkflowDefinition
from docflow.engine import TransitionEngine
from docflow.repositories.memory import (
    InMemoryAuditLog,
    InMemoryStorage,
    InMemorySubjectStore,
    InMemoryUnitOfWork,
    InMemoryWorkflowStore,
)
from docflow.services.workflow_service import WorkflowService

FIXED_NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
COLLECTION = "documents"


class FixedClock:
    """Clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float) -> None:
        self.now = self.now + timedelta(hours=hours)


class RecordingDispatcher(NotificationDispatcher):
    """Records (step_id, document_id, actor_id) for every notice"""

    def __init__(self):
        self.calls: List[Tuple[str, str, Optional[str]]] = []

    def notify(self, definition: WorkflowDefinition, step: Step, subject: Subject, actor: Optional[Actor]) -> None:
        self.calls.append((step.step_id, subject.document_id, actor.id if actor else None))

    @property
    def step_ids(self) -> List[str]:
        return [call[0] for call in self.calls]


class FailingDispatcher(NotificationDispatcher):
    def notify(self, definition, step, subject, actor) -> None:
        raise RuntimeError("mail relay unreachable")


# =============================================================================
# Storage
# =============================================================================

@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def subject_store(storage) -> InMemorySubjectStore:
    return InMemorySubjectStore(storage)


@pytest.fixture
def workflow_store(storage) -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore(storage)


@pytest.fixture
def audit_log(storage) -> InMemoryAuditLog:
    return InMemoryAuditLog(storage)


@pytest.fixture
def unit_of_work(storage) -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(storage)


# =============================================================================
# Engine & Service
# =============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FIXED_NOW)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def engine(subject_store, audit_log, unit_of_work, dispatcher, clock) -> TransitionEngine:
    return TransitionEngine(
        subject_store=subject_store,
        audit_log=audit_log,
        unit_of_work=unit_of_work,
        notification_dispatcher=dispatcher,
        clock=clock
    )


@pytest.fixture
def service(subject_store, workflow_store, audit_log, unit_of_work, dispatcher, clock) -> WorkflowService:
    return WorkflowService(
        subject_store=subject_store,
        workflow_store=workflow_store,
        audit_log=audit_log,
        unit_of_work=unit_of_work,
        notification_dispatcher=dispatcher,
        clock=clock
    )


# =============================================================================
# Actors
# =============================================================================

@pytest.fixture
def editor() -> Actor:
    return Actor(id="u-editor", email="editor@example.com", display_name="Eddie Editor", roles=["editor"])


@pytest.fixture
def legal() -> Actor:
    return Actor(id="u-legal", email="legal@example.com", display_name="Lee Legal", roles=["legal"])


@pytest.fixture
def outsider() -> Actor:
    return Actor(id="u-viewer", email="viewer@example.com", roles=["viewer"])


# =============================================================================
# Definitions & Documents
# =============================================================================

@pytest.fixture
def doc_review() -> WorkflowDefinition:
    """Editorial approval followed by legal sign-off"""
    return WorkflowDefinition.model_validate({
        "workflow_id": "WF-doc-review",
        "name": "Doc Review",
        "applies_to": [COLLECTION],
        "created_at": FIXED_NOW,
        "steps": [
            {
                "step_id": "draft-review",
                "name": "Draft Review",
                "step_type": "approval",
                "assigned_to": {"assignee_type": "role", "role": "editor"},
                "sla_hours": 24,
                "next_steps": [
                    {"outcome": "approved", "next_step_id": "legal"},
                    {"outcome": "rejected", "next_step_id": "revise"},
                ],
            },
            {
                "step_id": "legal",
                "name": "Legal Sign-off",
                "step_type": "sign-off",
                "assigned_to": {"assignee_type": "role", "role": "legal"},
            },
        ],
    })


@pytest.fixture
def new_document(subject_store) -> Subject:
    return subject_store.put_document(COLLECTION, "doc-1", {"title": "Quarterly report", "amount": 1500})


@pytest.fixture
def seeded_service(service, workflow_store, doc_review, new_document) -> WorkflowService:
    workflow_store.save(doc_review)
    return service
