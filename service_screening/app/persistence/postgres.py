"""
PostgreSQL persistence layer for the Screening Service.

Owns the ``screening_rules`` table. Submissions live in the intake table
(``webform_submissions``) managed elsewhere; this layer only reads intake
columns and writes the evaluation columns.
"""

import json
from typing import Any, Dict, List, Optional

import asyncpg

from shared.errors import DuplicateRuleKeyError, NotFoundError, PersistenceError, ScreeningException
from shared.logging import get_logger
from ..rules.comparison import comparison_from_dict
from ..rules.models import ScreeningRule, Submission, EvaluationResult, RuleType, Severity

SUBMISSION_COLUMNS = (
    "id", "birth_date", "height_feet", "height_inches", "weight", "assigned_sex",
    "has_blood_disorder", "has_chronic_illness", "had_surgery", "takes_medications",
    "has_tattoos_piercings", "has_been_incarcerated", "has_traveled_internationally",
    "has_received_transfusion", "has_been_pregnant", "evaluated_at",
)


async def _init_connection(conn: asyncpg.Connection):
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog"
        )


class PostgreSQLPersistence:
    """PostgreSQL persistence layer for rules and submission evaluations."""

    def __init__(self, dsn: str, submissions_table: str = "webform_submissions"):
        self.dsn = dsn
        self.submissions_table = submissions_table
        self.logger = get_logger("screening.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30,
                init=_init_connection
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise PersistenceError("Failed to start PostgreSQL persistence", {"error": str(e)})

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS screening_rules (
                    id VARCHAR(64) PRIMARY KEY,
                    rule_key VARCHAR(100) NOT NULL UNIQUE,
                    rule_type VARCHAR(32) NOT NULL,
                    rule_name VARCHAR(255) NOT NULL,
                    field_path VARCHAR(100) NOT NULL,
                    rule_value JSONB NOT NULL,
                    severity VARCHAR(16) NOT NULL DEFAULT 'medium',
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    display_order INTEGER NOT NULL DEFAULT 0,
                    description TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_screening_rules_active
                ON screening_rules(is_active, rule_type, display_order);
            """)

            # Evaluation columns on the intake table; no-op until intake has created it
            await conn.execute(f"""
                ALTER TABLE IF EXISTS {self.submissions_table}
                    ADD COLUMN IF NOT EXISTS ai_score INTEGER,
                    ADD COLUMN IF NOT EXISTS ai_recommendation VARCHAR(32),
                    ADD COLUMN IF NOT EXISTS ai_evaluation JSONB,
                    ADD COLUMN IF NOT EXISTS evaluation_flags JSONB,
                    ADD COLUMN IF NOT EXISTS evaluated_at TIMESTAMP WITH TIME ZONE;
            """)

    async def _run(self, action: str, coro_factory, **context):
        """Run a pool operation, mapping driver errors to PersistenceError."""
        try:
            async with self.pool.acquire() as conn:
                return await coro_factory(conn)
        except ScreeningException:
            raise
        except Exception as e:
            self.logger.error(f"Error {action}", error=str(e), **context)
            raise PersistenceError(f"Error {action}", {"error": str(e), **context}) from e

    # Rules

    async def insert_rule(self, rule: ScreeningRule) -> None:
        """Insert a new rule; a rule_key collision raises DuplicateRuleKeyError."""
        async def _insert(conn):
            try:
                await conn.execute("""
                    INSERT INTO screening_rules (
                        id, rule_key, rule_type, rule_name, field_path, rule_value,
                        severity, is_active, display_order, description, created_at, updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                """, *self._rule_params(rule))
            except asyncpg.UniqueViolationError:
                raise DuplicateRuleKeyError(rule.rule_key)

        await self._run("inserting rule", _insert, rule_key=rule.rule_key)
        self.logger.info("Rule saved", rule_id=rule.id, rule_key=rule.rule_key)

    async def update_rule(self, rule: ScreeningRule) -> None:
        """Update a rule in place; rule_key is never rewritten."""
        async def _update(conn):
            result = await conn.execute("""
                UPDATE screening_rules SET
                    rule_type = $2,
                    rule_name = $3,
                    field_path = $4,
                    rule_value = $5,
                    severity = $6,
                    is_active = $7,
                    display_order = $8,
                    description = $9,
                    updated_at = $10
                WHERE id = $1
            """, rule.id, rule.rule_type.value, rule.rule_name, rule.field_path,
                rule.rule_value_dict(), rule.severity.value, rule.is_active,
                rule.display_order, rule.description, rule.updated_at)
            if result != "UPDATE 1":
                raise NotFoundError("Rule", rule.id)

        await self._run("updating rule", _update, rule_id=rule.id)
        self.logger.info("Rule updated", rule_id=rule.id, rule_key=rule.rule_key)

    async def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule from the database."""
        async def _delete(conn):
            return await conn.execute("DELETE FROM screening_rules WHERE id = $1", rule_id)

        result = await self._run("deleting rule", _delete, rule_id=rule_id)
        if result == "DELETE 1":
            self.logger.info("Rule deleted", rule_id=rule_id)
            return True

        self.logger.warning("Rule not found for deletion", rule_id=rule_id)
        return False

    async def get_rule(self, rule_id: str) -> Optional[ScreeningRule]:
        async def _fetch(conn):
            return await conn.fetchrow("SELECT * FROM screening_rules WHERE id = $1", rule_id)

        row = await self._run("loading rule", _fetch, rule_id=rule_id)
        return self._row_to_rule(row) if row else None

    async def get_rule_by_key(self, rule_key: str) -> Optional[ScreeningRule]:
        async def _fetch(conn):
            return await conn.fetchrow("SELECT * FROM screening_rules WHERE rule_key = $1", rule_key)

        row = await self._run("loading rule", _fetch, rule_key=rule_key)
        return self._row_to_rule(row) if row else None

    async def list_rules(self, active_only: bool = False) -> List[ScreeningRule]:
        """Rules ordered by (rule_type, display_order); malformed rows are skipped."""
        async def _fetch(conn):
            return await conn.fetch("""
                SELECT * FROM screening_rules
                WHERE ($1::boolean IS FALSE OR is_active = TRUE)
                ORDER BY rule_type ASC, display_order ASC, created_at ASC
            """, active_only)

        rows = await self._run("listing rules", _fetch, active_only=active_only)
        rules = []
        for row in rows:
            try:
                rules.append(self._row_to_rule(row))
            except (ScreeningException, ValueError, KeyError) as e:
                self.logger.warning("Skipping malformed rule row", rule_key=row["rule_key"], error=str(e))
        return rules

    async def count_rules(self) -> int:
        async def _count(conn):
            return await conn.fetchval("SELECT COUNT(*) FROM screening_rules")

        return (await self._run("counting rules", _count)) or 0

    def _rule_params(self, rule: ScreeningRule) -> tuple:
        return (
            rule.id, rule.rule_key, rule.rule_type.value, rule.rule_name, rule.field_path,
            rule.rule_value_dict(), rule.severity.value, rule.is_active, rule.display_order,
            rule.description, rule.created_at, rule.updated_at,
        )

    def _row_to_rule(self, row) -> ScreeningRule:
        """Convert database row to ScreeningRule object."""
        return ScreeningRule(
            id=row['id'],
            rule_key=row['rule_key'],
            rule_type=RuleType(row['rule_type']),
            rule_name=row['rule_name'],
            field_path=row['field_path'],
            rule_value=comparison_from_dict(row['rule_value']),
            severity=Severity(row['severity']),
            is_active=row['is_active'],
            display_order=row['display_order'],
            description=row['description'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )

    # Submissions

    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        async def _fetch(conn):
            return await conn.fetchrow(
                f"SELECT {', '.join(SUBMISSION_COLUMNS)} FROM {self.submissions_table} WHERE id::text = $1",
                submission_id
            )

        row = await self._run("loading submission", _fetch, submission_id=submission_id)
        return Submission.from_record(dict(row)) if row else None

    async def list_unevaluated(self, limit: int) -> List[str]:
        """Oldest submissions without an evaluation result."""
        async def _fetch(conn):
            return await conn.fetch(f"""
                SELECT id FROM {self.submissions_table}
                WHERE evaluated_at IS NULL
                ORDER BY created_at ASC
                LIMIT $1
            """, limit)

        rows = await self._run("listing unevaluated submissions", _fetch, limit=limit)
        return [str(row['id']) for row in rows]

    async def save_evaluation(self, submission_id: str, result: EvaluationResult) -> None:
        """Overwrite the submission's evaluation columns."""
        payload: Dict[str, Any] = result.to_dict()

        async def _save(conn):
            status = await conn.execute(f"""
                UPDATE {self.submissions_table} SET
                    ai_score = $2,
                    ai_recommendation = $3,
                    ai_evaluation = $4,
                    evaluation_flags = $5,
                    evaluated_at = $6
                WHERE id::text = $1
            """, submission_id, result.score, result.recommendation.value, payload,
                payload["flags"], result.evaluated_at)
            if status != "UPDATE 1":
                raise NotFoundError("Submission", submission_id)

        await self._run("saving evaluation", _save, submission_id=submission_id)

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False
