"""
Rule value parsing.

Incoming rule values are coerced once, when a rule is written, into one of
the typed comparison variants in ``models``. Stored rules therefore always
carry typed values and evaluation never has to guess.
"""

import math
from typing import Any, Dict, Union

from shared.errors import ValidationError
from .models import (
    ComparisonOperator, ORDERING_OPERATORS, RuleValue,
    NumericComparison, BooleanEquality, StringEquality,
)


def coerce_rule_value(raw: Any) -> Union[bool, int, float, str]:
    """
    Coerce an authored value.

    Strings: exact "true"/"false" become booleans, then anything parseable as a
    finite number becomes a number, everything else stays a string. JSON
    booleans and numbers are kept as they are.
    """
    if isinstance(raw, bool):
        return raw

    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            raise ValidationError("Rule value must be a finite number", {"value": str(raw)})
        return raw

    if not isinstance(raw, str):
        raise ValidationError("Rule value must be a boolean, number or string", {"value": repr(raw)})

    if raw == "true":
        return True
    if raw == "false":
        return False

    try:
        return int(raw)
    except ValueError:
        pass

    try:
        number = float(raw)
    except ValueError:
        return raw

    return number if math.isfinite(number) else raw


def build_comparison(operator: Union[ComparisonOperator, str], raw_value: Any) -> RuleValue:
    """Build the typed comparison for an operator and an authored value."""
    try:
        operator = ComparisonOperator(operator)
    except ValueError:
        raise ValidationError(f"Unsupported operator '{operator}'", {"operator": str(operator)})

    value = coerce_rule_value(raw_value)

    if isinstance(value, bool):
        comparison: RuleValue = BooleanEquality(operator=operator, value=value)
    elif isinstance(value, (int, float)):
        return NumericComparison(operator=operator, value=value)
    else:
        comparison = StringEquality(operator=operator, value=value)

    if operator in ORDERING_OPERATORS:
        raise ValidationError(
            f"Operator '{operator.value}' requires a numeric value",
            {"operator": operator.value, "value": value}
        )

    return comparison


def comparison_from_dict(data: Dict[str, Any]) -> RuleValue:
    """Rebuild a comparison from its stored ``{operator, value}`` shape."""
    if not isinstance(data, dict) or "operator" not in data or "value" not in data:
        raise ValidationError("Rule value must contain 'operator' and 'value'", {"rule_value": data})
    return build_comparison(data["operator"], data["value"])
