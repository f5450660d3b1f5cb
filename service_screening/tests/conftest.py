"""
Shared fixtures for Screening Service tests.
"""

import pytest
from datetime import date

from service_screening.app.persistence import InMemoryPersistence
from service_screening.app.rules.models import Submission, RuleType, Severity

from factories import make_rule


@pytest.fixture
def bmi_rule():
    """Hard disqualifier on BMI over 40."""
    return make_rule(
        "bmi_over_40", "calculated_bmi", "gt", 40,
        rule_type=RuleType.HARD_DISQUALIFY, severity=Severity.CRITICAL,
        description="BMI above 40"
    )


@pytest.fixture
def tattoo_rule():
    """Soft flag on recent tattoos or piercings."""
    return make_rule(
        "tattoos", "has_tattoos_piercings", "eq", True,
        severity=Severity.LOW, description="Recent tattoo or piercing"
    )


@pytest.fixture
def healthy_submission():
    """Submission that triggers none of the sample rules."""
    return Submission(
        id="sub-healthy",
        birth_date=date(1995, 3, 10),
        height_feet=5,
        height_inches=10,
        weight=165,
        assigned_sex="female",
        has_blood_disorder=False,
        has_chronic_illness=False,
        had_surgery=False,
        takes_medications=False,
        has_tattoos_piercings=False,
        has_been_incarcerated=False,
        has_traveled_internationally=False,
        has_received_transfusion=False,
        has_been_pregnant=False,
    )


@pytest.fixture
def persistence():
    """Empty in-memory persistence."""
    return InMemoryPersistence()
