"""Tests for TransitionResolver"""

import pytest

from docflow.domain.errors import WorkflowValidationError
from docflow.domain.models import WorkflowDefinition
from docflow.engine import TransitionResolver


def _step(step_id, next_steps=None):
    return {
        "step_id": step_id,
        "name": step_id,
        "step_type": "review",
        "assigned_to": {"assignee_type": "role", "role": "editor"},
        "next_steps": next_steps or [],
    }


@pytest.fixture
def definition():
    return WorkflowDefinition.model_validate({
        "name": "Resolver",
        "steps": [
            _step("a", [
                {"outcome": "approved", "next_step_id": "c"},
                {"outcome": "approved", "next_step_id": "b"},
                {"outcome": "rework", "next_step_id": "a"},
            ]),
            _step("b"),
            _step("c", [{"outcome": "escalate", "next_step_id": "ghost"}]),
        ],
    })


@pytest.fixture
def resolver():
    return TransitionResolver()


class TestTransitionResolver:

    def test_first_declared_branch_wins(self, resolver, definition):
        assert resolver.resolve_next_step(definition, definition.get_step("a"), "approved") == "c"

    def test_branch_may_loop_back(self, resolver, definition):
        assert resolver.resolve_next_step(definition, definition.get_step("a"), "rework") == "a"

    @pytest.mark.parametrize("outcome", [None, "unknown"])
    def test_sequential_fallback(self, resolver, definition, outcome):
        assert resolver.resolve_next_step(definition, definition.get_step("a"), outcome) == "b"

    def test_last_step_resolves_to_none(self, resolver, definition):
        assert resolver.resolve_next_step(definition, definition.get_step("c"), "approved") is None

    def test_branch_to_missing_step_raises(self, resolver, definition):
        with pytest.raises(WorkflowValidationError):
            resolver.resolve_next_step(definition, definition.get_step("c"), "escalate")
