"""
Unit tests for the PostgreSQL persistence layer, against a mocked pool.
"""

import asyncpg
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from shared.errors import DuplicateRuleKeyError, NotFoundError, PersistenceError
from service_screening.app.persistence import PostgreSQLPersistence
from service_screening.app.rules.engine import ScreeningEngine
from service_screening.app.rules.models import (
    ComparisonOperator, NumericComparison, RuleType, Severity, Submission,
)

from factories import make_rule, EVALUATED_AT


def rule_row(**overrides):
    row = {
        "id": "id-bmi",
        "rule_key": "bmi_over_40",
        "rule_type": "hard_disqualify",
        "rule_name": "BMI over 40",
        "field_path": "calculated_bmi",
        "rule_value": {"operator": "gt", "value": 40},
        "severity": "critical",
        "is_active": True,
        "display_order": 1,
        "description": None,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return row


class TestPostgreSQLPersistence:
    """Test cases for PostgreSQLPersistence."""

    @pytest.fixture
    def conn(self):
        return AsyncMock()

    @pytest.fixture
    def db(self, conn):
        persistence = PostgreSQLPersistence("postgres://test/screening")
        persistence.pool = MagicMock()
        persistence.pool.acquire.return_value.__aenter__.return_value = conn
        return persistence

    def test_row_to_rule(self, db):
        rule = db._row_to_rule(rule_row())

        assert rule.rule_type == RuleType.HARD_DISQUALIFY
        assert rule.severity == Severity.CRITICAL
        assert rule.rule_value == NumericComparison(ComparisonOperator.GT, 40)

    @pytest.mark.asyncio
    async def test_insert_rule_params(self, db, conn):
        rule = make_rule("tattoos", "has_tattoos_piercings", "eq", True)

        await db.insert_rule(rule)

        args = conn.execute.call_args.args
        assert args[1:4] == ("id-tattoos", "tattoos", "soft_flag")
        assert args[6] == {"operator": "eq", "value": True}

    @pytest.mark.asyncio
    async def test_unique_violation_maps_to_duplicate_key(self, db, conn):
        conn.execute.side_effect = asyncpg.UniqueViolationError("duplicate key value")

        with pytest.raises(DuplicateRuleKeyError):
            await db.insert_rule(make_rule("tattoos", "has_tattoos_piercings", "eq", True))

    @pytest.mark.asyncio
    async def test_driver_errors_wrapped(self, db, conn):
        conn.fetchval.side_effect = ConnectionError("connection reset")

        with pytest.raises(PersistenceError) as exc_info:
            await db.count_rules()

        assert exc_info.value.status_code == 503
        assert "connection reset" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_update_missing_rule(self, db, conn):
        conn.execute.return_value = "UPDATE 0"

        with pytest.raises(NotFoundError):
            await db.update_rule(make_rule("tattoos", "has_tattoos_piercings", "eq", True))

    @pytest.mark.asyncio
    async def test_delete_rule(self, db, conn):
        conn.execute.return_value = "DELETE 1"
        assert await db.delete_rule("id-bmi") is True

        conn.execute.return_value = "DELETE 0"
        assert await db.delete_rule("id-bmi") is False

    @pytest.mark.asyncio
    async def test_list_rules_skips_malformed_rows(self, db, conn):
        conn.fetch.return_value = [
            rule_row(),
            rule_row(id="id-bad", rule_key="bad", rule_value={"value": 40}),
            rule_row(id="id-worse", rule_key="worse", severity="extreme"),
        ]

        rules = await db.list_rules(active_only=True)

        assert [r.rule_key for r in rules] == ["bmi_over_40"]
        assert conn.fetch.call_args.args[1] is True

    @pytest.mark.asyncio
    async def test_get_submission(self, db, conn):
        conn.fetchrow.return_value = {"id": 7, "birth_date": None, "weight": None, "evaluated_at": None}

        submission = await db.get_submission("7")

        assert submission.id == "7"
        assert submission.weight is None

    @pytest.mark.asyncio
    async def test_get_missing_submission(self, db, conn):
        conn.fetchrow.return_value = None

        assert await db.get_submission("7") is None

    @pytest.mark.asyncio
    async def test_save_evaluation_missing_submission(self, db, conn):
        result = ScreeningEngine().evaluate_submission(Submission(id="7"), [], EVALUATED_AT)
        conn.execute.return_value = "UPDATE 0"

        with pytest.raises(NotFoundError):
            await db.save_evaluation("7", result)

    @pytest.mark.asyncio
    async def test_health_check_failure(self, db, conn):
        conn.fetchval.side_effect = ConnectionError("down")

        assert await db.health_check() is False
