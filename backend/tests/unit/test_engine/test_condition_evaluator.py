"""Tests for ConditionEvaluator"""

import pytest

from docflow.domain.models import Condition, Subject
from docflow.engine import ConditionEvaluator


def _subject(**data):
    return Subject(document_id="doc-1", collection_id="documents", data=data)


def _cond(field, operator, value=None):
    return Condition(field=field, operator=operator, value=value)


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


class TestConditionEvaluator:

    @pytest.mark.parametrize("conditions", [None, []])
    def test_no_conditions_pass(self, evaluator, conditions):
        assert evaluator.evaluate(_subject(), conditions) is True

    def test_conditions_are_anded(self, evaluator):
        subject = _subject(amount=1500, region="EU")

        assert evaluator.evaluate(subject, [
            _cond("amount", "greaterThan", 1000),
            _cond("region", "equals", "EU"),
        ]) is True
        assert evaluator.evaluate(subject, [
            _cond("amount", "greaterThan", 1000),
            _cond("region", "equals", "US"),
        ]) is False

    @pytest.mark.parametrize("operator,value,expected", [
        ("equals", "draft", True),
        ("equals", "final", False),
        ("notEquals", "final", True),
        ("notEquals", "draft", False),
        ("contains", "raf", True),
        ("contains", "xyz", False),
    ])
    def test_string_operators(self, evaluator, operator, value, expected):
        subject = _subject(stage="draft")

        assert evaluator.evaluate(subject, [_cond("stage", operator, value)]) is expected

    @pytest.mark.parametrize("operator,value,expected", [
        ("greaterThan", 100, True),
        ("greaterThan", 1500, False),
        ("lessThan", 2000, True),
        ("lessThan", 1500, False),
        ("greaterThan", "100", False),
        ("greaterThan", 1499.5, True),
    ])
    def test_numeric_comparisons(self, evaluator, operator, value, expected):
        subject = _subject(amount=1500)

        assert evaluator.evaluate(subject, [_cond("amount", operator, value)]) is expected

    @pytest.mark.parametrize("data,operator,value,expected", [
        ({"amount": 5}, "equals", "5", False),
        ({"amount": 5}, "notEquals", "5", True),
        ({"amount": 5}, "equals", 5.0, True),
        ({"flag": True}, "equals", 1, False),
        ({"flag": True}, "equals", True, True),
        ({"count": 0}, "equals", False, False),
    ])
    def test_equality_is_strict_about_types(self, evaluator, data, operator, value, expected):
        field = next(iter(data))

        assert evaluator.evaluate(_subject(**data), [_cond(field, operator, value)]) is expected

    @pytest.mark.parametrize("data,operator,value,expected", [
        ({"code": "10"}, "greaterThan", "9", False),
        ({"code": "b"}, "greaterThan", "a", True),
        ({"amount": 10}, "greaterThan", "9", False),
        ({"flag": True}, "greaterThan", 0, False),
    ])
    def test_ordering_needs_matching_kinds(self, evaluator, data, operator, value, expected):
        field = next(iter(data))

        assert evaluator.evaluate(_subject(**data), [_cond(field, operator, value)]) is expected

    def test_dot_path_reads_nested_fields(self, evaluator):
        subject = _subject(meta={"owner": {"team": "legal"}})

        assert evaluator.evaluate(subject, [_cond("meta.owner.team", "equals", "legal")]) is True

    def test_contains_on_list_uses_text_form(self, evaluator):
        subject = _subject(tags=["urgent", "finance"])

        assert evaluator.evaluate(subject, [_cond("tags", "contains", "finance")]) is True

    def test_unknown_operator_fails_closed(self, evaluator):
        assert evaluator.evaluate(_subject(amount=1), [_cond("amount", "between", [0, 2])]) is False

    @pytest.mark.parametrize("operator", ["greaterThan", "lessThan", "contains"])
    def test_missing_field_fails_closed(self, evaluator, operator):
        assert evaluator.evaluate(_subject(), [_cond("amount", operator, 10)]) is False

    def test_missing_field_contains_nothing_not_even_empty_text(self, evaluator):
        assert evaluator.evaluate(_subject(), [_cond("note", "contains", "")]) is False

    def test_uncomparable_values_fail_closed(self, evaluator):
        subject = _subject(amount={"value": 10})

        assert evaluator.evaluate(subject, [_cond("amount", "greaterThan", 5)]) is False
