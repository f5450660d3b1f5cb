"""
Single-submission evaluation: load, evaluate, persist.
"""

import time
from typing import List, Optional

from shared.errors import NotFoundError
from shared.logging import get_logger, set_submission_context
from shared.metrics import MetricsCollector
from ..rules.engine import ScreeningEngine
from ..rules.models import ScreeningRule, EvaluationResult


class EvaluationService:
    """Runs the screening engine for stored submissions and writes results back."""

    def __init__(self, persistence, engine: ScreeningEngine, metrics: Optional[MetricsCollector] = None):
        self.persistence = persistence
        self.engine = engine
        self.metrics = metrics
        self.logger = get_logger("screening.evaluation")

    async def active_rules(self) -> List[ScreeningRule]:
        """Snapshot of the active rule set. Failures propagate to the caller."""
        return await self.persistence.list_rules(active_only=True)

    async def evaluate(self, submission_id: str,
                       rules: Optional[List[ScreeningRule]] = None) -> EvaluationResult:
        """
        Evaluate one submission and overwrite its stored evaluation.

        ``rules`` lets batch runs share one snapshot; when omitted the current
        active rule set is loaded.
        """
        set_submission_context(submission_id)
        start_time = time.time()

        submission = await self.persistence.get_submission(submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)

        if rules is None:
            rules = await self.active_rules()

        result = self.engine.evaluate_submission(submission, rules)
        await self.persistence.save_evaluation(submission_id, result)

        if self.metrics:
            self.metrics.increment_counter("evaluations_total", recommendation=result.recommendation.value)
            self.metrics.observe_histogram("evaluation_duration_seconds", time.time() - start_time)

        self.logger.info(
            "Evaluation complete",
            submission_id=submission_id,
            recommendation=result.recommendation.value,
            score=result.score,
            flags=len(result.flags),
            rules=len(rules),
        )
        return result
