"""
In-memory persistence for local runs and tests.

Mirrors the coroutine interface of ``PostgreSQLPersistence``.
"""

import copy
from typing import Any, Dict, List, Optional

from shared.errors import DuplicateRuleKeyError, NotFoundError
from shared.logging import get_logger
from ..rules.models import ScreeningRule, Submission, EvaluationResult


class InMemoryPersistence:
    """Dictionary-backed rule and submission storage."""

    def __init__(self):
        self.logger = get_logger("screening.persistence.memory")
        self.rules: Dict[str, ScreeningRule] = {}
        self.submissions: Dict[str, Dict[str, Any]] = {}

    async def start(self):
        self.logger.info("In-memory persistence started")

    async def stop(self):
        self.logger.info("In-memory persistence stopped")

    async def health_check(self) -> bool:
        return True

    # Rules

    async def insert_rule(self, rule: ScreeningRule) -> None:
        if any(r.rule_key == rule.rule_key for r in self.rules.values()):
            raise DuplicateRuleKeyError(rule.rule_key)
        self.rules[rule.id] = copy.deepcopy(rule)

    async def update_rule(self, rule: ScreeningRule) -> None:
        self.rules[rule.id] = copy.deepcopy(rule)

    async def delete_rule(self, rule_id: str) -> bool:
        return self.rules.pop(rule_id, None) is not None

    async def get_rule(self, rule_id: str) -> Optional[ScreeningRule]:
        rule = self.rules.get(rule_id)
        return copy.deepcopy(rule) if rule else None

    async def get_rule_by_key(self, rule_key: str) -> Optional[ScreeningRule]:
        for rule in self.rules.values():
            if rule.rule_key == rule_key:
                return copy.deepcopy(rule)
        return None

    async def list_rules(self, active_only: bool = False) -> List[ScreeningRule]:
        rules = [r for r in self.rules.values() if r.is_active or not active_only]
        rules.sort(key=lambda r: (r.rule_type.value, r.display_order))
        return [copy.deepcopy(r) for r in rules]

    async def count_rules(self) -> int:
        return len(self.rules)

    # Submissions

    def add_submission(self, record: Dict[str, Any]) -> None:
        """Seed a raw submission record."""
        self.submissions[str(record["id"])] = dict(record)

    async def get_submission(self, submission_id: str) -> Optional[Submission]:
        record = self.submissions.get(submission_id)
        return Submission.from_record(record) if record else None

    async def list_unevaluated(self, limit: int) -> List[str]:
        pending = [
            submission_id for submission_id, record in self.submissions.items()
            if record.get("evaluated_at") is None
        ]
        return pending[:limit]

    async def save_evaluation(self, submission_id: str, result: EvaluationResult) -> None:
        record = self.submissions.get(submission_id)
        if record is None:
            raise NotFoundError("Submission", submission_id)
        record.update({
            "ai_score": result.score,
            "ai_recommendation": result.recommendation.value,
            "ai_evaluation": result.to_dict(),
            "evaluation_flags": [flag.to_dict() for flag in result.flags],
            "evaluated_at": result.evaluated_at,
        })
