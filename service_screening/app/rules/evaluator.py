"""
Single-rule comparison.
"""

import operator as op
from typing import Any

from shared.logging import get_logger
from .models import (
    ScreeningRule, ComparisonOperator, ORDERING_OPERATORS,
    NumericComparison, BooleanEquality, StringEquality,
)

logger = get_logger("screening.evaluator")

_ORDERING = {
    ComparisonOperator.GT: op.gt,
    ComparisonOperator.GTE: op.ge,
    ComparisonOperator.LT: op.lt,
    ComparisonOperator.LTE: op.le,
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _matches_kind(comparison, value: Any) -> bool:
    if isinstance(comparison, NumericComparison):
        return _is_number(value)
    if isinstance(comparison, BooleanEquality):
        return isinstance(value, bool)
    if isinstance(comparison, StringEquality):
        return isinstance(value, str)
    return False


def evaluate(rule: ScreeningRule, resolved_value: Any) -> bool:
    """
    Return True when the rule's comparison matches the resolved value.

    Never raises. An undefined value, or one whose kind differs from the
    rule's comparison, does not match for any operator, including ``neq``.
    """
    comparison = rule.rule_value

    if comparison.operator in ORDERING_OPERATORS:
        if not (_is_number(resolved_value) and _is_number(comparison.value)):
            logger.warning(
                "Cannot evaluate numeric rule",
                rule_key=rule.rule_key,
                field_path=rule.field_path,
                value_type=type(resolved_value).__name__,
            )
            return False
        return _ORDERING[comparison.operator](resolved_value, comparison.value)

    if resolved_value is None or not _matches_kind(comparison, resolved_value):
        return False

    if comparison.operator == ComparisonOperator.EQ:
        return resolved_value == comparison.value
    if comparison.operator == ComparisonOperator.NEQ:
        return resolved_value != comparison.value

    logger.warning("Unknown comparison operator", rule_key=rule.rule_key, operator=str(comparison.operator))
    return False
