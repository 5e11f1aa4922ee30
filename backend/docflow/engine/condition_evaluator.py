"""Condition Evaluator - Safe evaluation of step-entry conditions"""
from typing import Any, Dict, Optional, Sequence

from ..domain.models import Condition, Subject
from ..domain.enums import ConditionOperator
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ConditionEvaluator:
    """
    Evaluate step-entry conditions against a document's fields

    Conditions are ANDed. Uses a fixed operator table - no eval() or exec().
    Anything unrecognized or uncomparable evaluates to False.
    """

    def evaluate(
        self,
        subject: Subject,
        conditions: Optional[Sequence[Condition]]
    ) -> bool:
        """
        Evaluate a list of conditions

        Args:
            subject: Document whose data is checked
            conditions: Conditions to check (None or empty passes)

        Returns:
            True if every condition is met
        """
        if not conditions:
            return True  # No conditions = always true

        return all(self._evaluate_single(condition, subject.data) for condition in conditions)

    def _evaluate_single(
        self,
        condition: Condition,
        context: Dict[str, Any]
    ) -> bool:
        """Evaluate a single condition"""
        try:
            operator = ConditionOperator(condition.operator)
        except ValueError:
            logger.warning(
                f"Unknown condition operator '{condition.operator}' on field '{condition.field}'"
            )
            return False

        try:
            field_value = self._get_field_value(condition.field, context)
            return self._compare(field_value, operator, condition.value)
        except Exception as e:
            logger.warning(f"Condition evaluation failed: {e}")
            return False  # Fail closed

    def _get_field_value(self, field_path: str, context: Dict[str, Any]) -> Any:
        """
        Get field value from context using dot notation

        Example: "meta.amount" -> context["meta"]["amount"]
        """
        if field_path in context:
            return context[field_path]

        value: Any = context
        for part in field_path.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return None

        return value

    def _compare(
        self,
        field_value: Any,
        operator: ConditionOperator,
        compare_value: Any
    ) -> bool:
        """Compare values using operator"""

        if operator == ConditionOperator.EQUALS:
            return self._equals(field_value, compare_value)

        elif operator == ConditionOperator.NOT_EQUALS:
            return not self._equals(field_value, compare_value)

        elif operator == ConditionOperator.GREATER_THAN:
            return self._compare_ordered(field_value, compare_value, lambda a, b: a > b)

        elif operator == ConditionOperator.LESS_THAN:
            return self._compare_ordered(field_value, compare_value, lambda a, b: a < b)

        elif operator == ConditionOperator.CONTAINS:
            if field_value is None:
                return False  # A missing field never contains anything
            return str(compare_value) in str(field_value)

        return False

    def _equals(self, field_value: Any, compare_value: Any) -> bool:
        """
        Strict equality

        Numbers compare by value (1 equals 1.0), everything else only matches
        a value of the same type. Booleans are not numbers: True never equals 1.
        """
        if _is_number(field_value) and _is_number(compare_value):
            return field_value == compare_value
        if type(field_value) is not type(compare_value):
            return False
        return field_value == compare_value

    def _compare_ordered(
        self,
        field_value: Any,
        compare_value: Any,
        comparator
    ) -> bool:
        """Order numbers against numbers and strings against strings only"""
        if _is_number(field_value) and _is_number(compare_value):
            return comparator(field_value, compare_value)
        if isinstance(field_value, str) and isinstance(compare_value, str):
            return comparator(field_value, compare_value)
        return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
