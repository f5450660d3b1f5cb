"""
Screening evaluation engine.

Combines per-rule matches for one submission into a score, a recommendation
and the list of flags. The engine performs no I/O: callers pass the submission
and a snapshot of the active rules and persist the returned result themselves.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from shared.errors import UnknownFieldPathError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from . import fields
from .evaluator import evaluate
from .models import (
    ScreeningRule, Submission, RuleType, Severity, Recommendation,
    EvaluationFlag, EvaluationResult,
)

MAX_SCORE = 100

DEFAULT_SEVERITY_PENALTIES: Dict[Severity, int] = {
    Severity.CRITICAL: 100,
    Severity.HIGH: 30,
    Severity.MEDIUM: 15,
    Severity.LOW: 5,
}


class ScreeningEngine:
    """Rule-based submission evaluator."""

    def __init__(self, severity_penalties: Optional[Dict[str, int]] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("screening.engine")
        self.metrics = metrics
        self.severity_penalties = dict(DEFAULT_SEVERITY_PENALTIES)
        if severity_penalties:
            for severity, penalty in severity_penalties.items():
                self.severity_penalties[Severity(severity)] = penalty

    def evaluate_submission(self, submission: Submission, active_rules: Iterable[ScreeningRule],
                            evaluated_at: Optional[datetime] = None) -> EvaluationResult:
        """Evaluate a submission against a rule snapshot."""
        evaluated_at = evaluated_at or datetime.now(timezone.utc)
        as_of = evaluated_at.date()
        flags: List[EvaluationFlag] = []

        for rule in active_rules:
            if not rule.is_active:
                continue

            try:
                value = fields.resolve(rule.field_path, submission, as_of)
            except UnknownFieldPathError:
                self.logger.warning(
                    "Rule references unsupported field; skipped",
                    rule_key=rule.rule_key,
                    field_path=rule.field_path,
                    submission_id=submission.id,
                )
                self._count_skip("unknown_field")
                continue

            if value is None:
                self.logger.warning(
                    "Field value unavailable; rule skipped",
                    rule_key=rule.rule_key,
                    field_path=rule.field_path,
                    submission_id=submission.id,
                )
                self._count_skip("missing_value")
                continue

            if evaluate(rule, value):
                flags.append(EvaluationFlag(
                    rule_key=rule.rule_key,
                    rule_name=rule.rule_name,
                    rule_type=rule.rule_type,
                    severity=rule.severity,
                    message=rule.description or rule.rule_name,
                    actual_value=value,
                ))

        score = self.calculate_score(flags)
        recommendation = self.recommend(flags)

        self.logger.debug(
            "Submission evaluated",
            submission_id=submission.id,
            score=score,
            recommendation=recommendation.value,
            flags=len(flags),
        )

        return EvaluationResult(
            score=score,
            recommendation=recommendation,
            flags=flags,
            summary=self.summarize(recommendation, flags),
            evaluated_at=evaluated_at,
        )

    def calculate_score(self, flags: Iterable[EvaluationFlag]) -> int:
        """Start at 100 and subtract the severity penalty of each flag, clamped to [0, 100]."""
        score = MAX_SCORE
        for flag in flags:
            score = max(0, min(MAX_SCORE, score - self.severity_penalties[flag.severity]))
        return score

    @staticmethod
    def recommend(flags: List[EvaluationFlag]) -> Recommendation:
        if any(flag.rule_type == RuleType.HARD_DISQUALIFY for flag in flags):
            return Recommendation.UNSUITABLE
        if flags:
            return Recommendation.REVIEW_REQUIRED
        return Recommendation.SUITABLE

    @staticmethod
    def summarize(recommendation: Recommendation, flags: List[EvaluationFlag]) -> str:
        if recommendation == Recommendation.UNSUITABLE:
            names = [f.rule_name for f in flags if f.rule_type == RuleType.HARD_DISQUALIFY]
            return f"Automatically disqualified due to: {', '.join(names)}."
        if recommendation == Recommendation.REVIEW_REQUIRED:
            names = [f.rule_name for f in flags]
            return f"{len(flags)} flag(s) require manual review: {', '.join(names)}."
        return "No flags triggered. Submission appears suitable for donor approval."

    def _count_skip(self, reason: str):
        if self.metrics:
            self.metrics.increment_counter("rules_skipped_total", reason=reason)
