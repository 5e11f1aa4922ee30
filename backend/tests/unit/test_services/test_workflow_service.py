"""Tests for WorkflowService (engine + in-memory stores end to end)"""

import logging

import pytest

from docflow.domain.errors import (
    AuthorizationError,
    DocumentNotFoundError,
    StaleStepError,
    ValidationError,
    WorkflowNotFoundError,
)
from docflow.domain.models import WorkflowDefinition
from tests.conftest import COLLECTION


@pytest.fixture
def gated_publish(workflow_store):
    """Comment-only notice that waits for a large amount, then legal sign-off"""
    definition = WorkflowDefinition.model_validate({
        "workflow_id": "WF-gated",
        "name": "Gated Publish",
        "applies_to": ["memos"],
        "steps": [
            {
                "step_id": "notice",
                "name": "Finance Notice",
                "step_type": "comment-only",
                "assigned_to": {"assignee_type": "role", "role": "finance"},
                "conditions": [{"field": "amount", "operator": "greaterThan", "value": 5000}],
            },
            {
                "step_id": "legal",
                "name": "Legal Sign-off",
                "step_type": "sign-off",
                "assigned_to": {"assignee_type": "role", "role": "legal"},
            },
        ],
    })
    return workflow_store.save(definition)


@pytest.fixture
def broken_notice(workflow_store):
    """Review, then a comment-only notice whose completion branch names a missing step"""
    definition = WorkflowDefinition.model_validate({
        "workflow_id": "WF-broken-notice",
        "name": "Broken Notice",
        "applies_to": ["memos"],
        "steps": [
            {
                "step_id": "review",
                "name": "Review",
                "step_type": "approval",
                "assigned_to": {"assignee_type": "role", "role": "editor"},
            },
            {
                "step_id": "notice",
                "name": "Notice",
                "step_type": "comment-only",
                "assigned_to": {"assignee_type": "role", "role": "finance"},
                "next_steps": [{"outcome": "completed", "next_step_id": "archive"}],
            },
        ],
    })
    return workflow_store.save(definition)


class TestDocReviewScenario:

    def test_trigger_approve_and_sign_off(self, seeded_service, audit_log, editor, legal):
        started = seeded_service.trigger(COLLECTION, "doc-1", editor)

        assert started["status"] == "in_progress"
        assert started["current_step_id"] == "draft-review"
        history = audit_log.query("doc-1", COLLECTION)
        assert [e.action for e in history] == ["triggered"]

        moved = seeded_service.action(
            COLLECTION, "doc-1", step_id="draft-review", action="approved", actor=editor, outcome="approved"
        )
        assert moved["next_step_id"] == "legal"
        assert moved["current_step_id"] == "legal"

        done = seeded_service.action(
            COLLECTION, "doc-1", step_id="legal", action="approved", actor=legal, outcome="approved"
        )
        assert done["status"] == "completed"
        assert done["current_step_id"] is None
        assert done["next_step_id"] is None
        assert len(audit_log.query("doc-1", COLLECTION)) == 3

    def test_status_reports_step_and_history(self, seeded_service, editor):
        seeded_service.trigger(COLLECTION, "doc-1", editor)
        seeded_service.action(COLLECTION, "doc-1", "draft-review", "approved", editor, outcome="approved",
                              comment="Looks good")

        status = seeded_service.status(COLLECTION, "doc-1")

        assert status["status"] == "in_progress"
        assert status["workflow"] == {"workflow_id": "WF-doc-review", "name": "Doc Review"}
        assert status["current_step"]["step_id"] == "legal"
        assert status["current_step"]["assigned_to"] == {"assignee_type": "role", "role": "legal"}
        assert [h["action"] for h in status["history"]] == ["approved", "triggered"]
        assert status["history"][0]["comment"] == "Looks good"

    def test_status_of_untouched_document(self, seeded_service):
        status = seeded_service.status(COLLECTION, "doc-1")

        assert status["status"] == "not_started"
        assert status["workflow"] is None
        assert status["current_step"] is None
        assert status["history"] == []


class TestTrigger:

    def test_repeated_trigger_is_a_noop(self, seeded_service, audit_log, editor):
        first = seeded_service.trigger(COLLECTION, "doc-1", editor)
        second = seeded_service.trigger(COLLECTION, "doc-1", editor)

        assert first == second
        assert len(audit_log.query("doc-1", COLLECTION)) == 1

    def test_no_applicable_workflow(self, service, subject_store, editor):
        subject_store.put_document("invoices", "inv-1", {})

        with pytest.raises(WorkflowNotFoundError):
            service.trigger("invoices", "inv-1", editor)

    def test_named_workflow_must_apply_to_collection(self, seeded_service, subject_store, editor):
        subject_store.put_document("invoices", "inv-1", {})

        with pytest.raises(ValidationError):
            seeded_service.trigger("invoices", "inv-1", editor, workflow_id="WF-doc-review")

    def test_unknown_document(self, seeded_service, editor):
        with pytest.raises(DocumentNotFoundError):
            seeded_service.trigger(COLLECTION, "missing", editor)


class TestAction:

    def test_action_before_trigger_is_stale(self, seeded_service, editor):
        with pytest.raises(StaleStepError):
            seeded_service.action(COLLECTION, "doc-1", "draft-review", "approved", editor)

    def test_action_naming_another_workflow_is_stale(self, seeded_service, editor):
        seeded_service.trigger(COLLECTION, "doc-1", editor)

        with pytest.raises(StaleStepError):
            seeded_service.action(COLLECTION, "doc-1", "draft-review", "approved", editor, workflow_id="WF-other")

    def test_wrong_role_is_forbidden(self, seeded_service, legal, editor):
        seeded_service.trigger(COLLECTION, "doc-1", editor)

        with pytest.raises(AuthorizationError):
            seeded_service.action(COLLECTION, "doc-1", "draft-review", "approved", legal, outcome="approved")

    def test_committed_action_survives_failed_follow_up(
        self, service, broken_notice, subject_store, audit_log, editor, caplog
    ):
        subject_store.put_document("memos", "memo-1", {})
        service.trigger("memos", "memo-1", editor)

        with caplog.at_level(logging.WARNING):
            result = service.action("memos", "memo-1", "review", "approved", editor, outcome="approved")

        assert result["current_step_id"] == "notice"
        assert result["next_step_id"] == "notice"
        assert subject_store.read("memos", "memo-1").current_step_id == "notice"
        assert [e.action for e in audit_log.query("memo-1", "memos")] == ["approved", "triggered"]
        assert "Follow-up re-evaluation failed" in caplog.text

    def test_committed_trigger_survives_failed_follow_up(self, service, workflow_store, subject_store, editor):
        workflow_store.save(WorkflowDefinition.model_validate({
            "workflow_id": "WF-notice-first",
            "name": "Notice First",
            "applies_to": ["memos"],
            "steps": [{
                "step_id": "notice",
                "name": "Notice",
                "step_type": "comment-only",
                "assigned_to": {"assignee_type": "role", "role": "finance"},
                "next_steps": [{"outcome": "completed", "next_step_id": "archive"}],
            }],
        }))
        subject_store.put_document("memos", "memo-2", {})

        result = service.trigger("memos", "memo-2", editor)

        assert result["status"] == "in_progress"
        assert result["current_step_id"] == "notice"


class TestReevaluateDocument:

    def test_starts_applicable_workflow(self, seeded_service, audit_log):
        result = seeded_service.reevaluate_document(COLLECTION, "doc-1")

        assert result["status"] == "in_progress"
        assert audit_log.query("doc-1", COLLECTION)[0].actor_id is None

    def test_without_applicable_workflow_nothing_happens(self, service, subject_store):
        subject_store.put_document("invoices", "inv-1", {})

        assert service.reevaluate_document("invoices", "inv-1")["status"] == "not_started"

    def test_data_change_releases_comment_only_step(
        self, service, gated_publish, subject_store, audit_log, dispatcher, editor
    ):
        subject_store.put_document("memos", "memo-1", {"amount": 1500})
        started = service.trigger("memos", "memo-1", editor)
        assert started["current_step_id"] == "notice"

        subject_store.put_document("memos", "memo-1", {"amount": 9000})
        result = service.reevaluate_document("memos", "memo-1")

        assert result["current_step_id"] == "legal"
        latest = audit_log.query("memo-1", "memos")[0]
        assert latest.action == "completed"
        assert latest.actor_id is None
        assert dispatcher.step_ids[-1] == "legal"

    def test_repeated_delivery_is_harmless(self, service, gated_publish, subject_store, audit_log, editor):
        subject_store.put_document("memos", "memo-1", {"amount": 9000})

        service.reevaluate_document("memos", "memo-1")
        service.reevaluate_document("memos", "memo-1")

        actions = [e.action for e in audit_log.query("memo-1", "memos")]
        assert actions == ["completed", "triggered"]


class TestEscalateOverdue:

    def test_overdue_step_escalates_once(self, seeded_service, clock, audit_log, editor):
        seeded_service.trigger(COLLECTION, "doc-1", editor)
        clock.advance(hours=25)

        assert seeded_service.escalate_overdue() == 1
        assert seeded_service.escalate_overdue() == 0

        actions = [e.action for e in audit_log.query("doc-1", COLLECTION)]
        assert actions.count("escalated") == 1

    def test_within_sla_nothing_escalates(self, seeded_service, clock, editor):
        seeded_service.trigger(COLLECTION, "doc-1", editor)
        clock.advance(hours=23)

        assert seeded_service.escalate_overdue() == 0

    def test_re_entered_step_can_escalate_again(self, service, workflow_store, subject_store, clock, editor):
        workflow_store.save(WorkflowDefinition.model_validate({
            "workflow_id": "WF-loop",
            "name": "Loop",
            "applies_to": [COLLECTION],
            "steps": [{
                "step_id": "review",
                "name": "Review",
                "step_type": "review",
                "assigned_to": {"assignee_type": "role", "role": "editor"},
                "sla_hours": 1,
                "next_steps": [{"outcome": "again", "next_step_id": "review"}],
            }],
        }))
        subject_store.put_document(COLLECTION, "doc-9", {})
        service.trigger(COLLECTION, "doc-9", editor)

        clock.advance(hours=2)
        assert service.escalate_overdue() == 1

        clock.advance(hours=1)
        service.action(COLLECTION, "doc-9", "review", "commented", editor, outcome="again")
        clock.advance(hours=2)
        assert service.escalate_overdue() == 1
