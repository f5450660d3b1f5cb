"""
Test data factories for Screening Service tests.
"""

from datetime import datetime, timezone

from service_screening.app.rules.comparison import build_comparison
from service_screening.app.rules.models import ScreeningRule, RuleType, Severity

EVALUATED_AT = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_rule(rule_key, field_path, operator, value, rule_type=RuleType.SOFT_FLAG,
              severity=Severity.MEDIUM, is_active=True, display_order=0, description=None):
    """Build a stored rule without going through the rule store."""
    return ScreeningRule(
        id=f"id-{rule_key}",
        rule_key=rule_key,
        rule_type=rule_type,
        rule_name=rule_key.replace("_", " ").title(),
        field_path=field_path,
        rule_value=build_comparison(operator, value),
        severity=severity,
        is_active=is_active,
        display_order=display_order,
        description=description,
    )


def submission_record(submission_id, **overrides):
    """Raw intake row as stored in the submissions table."""
    record = {
        "id": submission_id,
        "birth_date": "1990-01-01",
        "height_feet": 5,
        "height_inches": 8,
        "weight": 160,
        "has_tattoos_piercings": False,
        "has_chronic_illness": False,
        "evaluated_at": None,
    }
    record.update(overrides)
    return record
