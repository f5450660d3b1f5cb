"""
Batch evaluation of pending submissions.

Pending submissions are split into fixed-size chunks. Each chunk runs
concurrently under a semaphore sized to the chunk, with a fixed pause between
chunks to bound the rate of writes. An optional ``asyncio.Event`` cancels the
run: no new chunk or submission starts once it is set.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..rules.models import ScreeningRule
from .service import EvaluationService

DEFAULT_CHUNK_SIZE = 3


@dataclass
class BatchSummary:
    """Outcome of a batch run."""
    requested: int = 0
    processed: int = 0
    failed: int = 0
    cancelled: bool = False

    def to_dict(self):
        return {
            "requested": self.requested,
            "processed": self.processed,
            "failed": self.failed,
            "cancelled": self.cancelled,
        }


def chunked(items: List[str], size: int) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchOrchestrator:
    """Drives EvaluationService across unevaluated submissions."""

    def __init__(self, persistence, evaluation_service: EvaluationService,
                 chunk_size: int = DEFAULT_CHUNK_SIZE, pause_seconds: float = 1.0,
                 metrics: Optional[MetricsCollector] = None):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.persistence = persistence
        self.evaluation_service = evaluation_service
        self.chunk_size = chunk_size
        self.pause_seconds = pause_seconds
        self.metrics = metrics
        self.logger = get_logger("screening.batch")
        self._semaphore = asyncio.Semaphore(chunk_size)

    async def run_batch(self, limit: int, cancel_event: Optional[asyncio.Event] = None) -> BatchSummary:
        """
        Evaluate up to ``limit`` unevaluated submissions.

        Listing submissions or loading the rule snapshot may raise; those
        failures abort the whole run. Individual evaluation failures are
        logged and counted in ``failed``.
        """
        if limit < 0:
            raise ValueError("limit must not be negative")

        submission_ids = await self.persistence.list_unevaluated(limit)
        summary = BatchSummary(requested=len(submission_ids))

        if not submission_ids:
            self.logger.info("No unevaluated submissions; batch skipped", limit=limit)
            self._record_run("empty")
            return summary

        rules = await self.evaluation_service.active_rules()
        chunks = chunked(submission_ids, self.chunk_size)

        self.logger.info(
            "Batch evaluation started",
            requested=summary.requested,
            chunks=len(chunks),
            chunk_size=self.chunk_size,
            rules=len(rules),
        )

        for index, chunk in enumerate(chunks):
            if self._is_cancelled(cancel_event):
                summary.cancelled = True
                break

            outcomes = await asyncio.gather(
                *(self._evaluate_one(submission_id, rules, cancel_event) for submission_id in chunk)
            )
            for outcome in outcomes:
                if outcome is True:
                    summary.processed += 1
                elif outcome is False:
                    summary.failed += 1
                else:
                    summary.cancelled = True

            if index < len(chunks) - 1 and self.pause_seconds > 0:
                await asyncio.sleep(self.pause_seconds)

        self.logger.info("Batch evaluation finished", **summary.to_dict())
        self._record_run("cancelled" if summary.cancelled else "completed")
        return summary

    async def _evaluate_one(self, submission_id: str, rules: List[ScreeningRule],
                            cancel_event: Optional[asyncio.Event]) -> Optional[bool]:
        """True on success, False on failure, None when skipped by cancellation."""
        async with self._semaphore:
            if self._is_cancelled(cancel_event):
                return None
            try:
                await self.evaluation_service.evaluate(submission_id, rules=rules)
            except Exception as e:
                self.logger.error("Batch evaluation failed for submission",
                                  submission_id=submission_id, error=str(e))
                self._record_submission("failed")
                return False

        self._record_submission("processed")
        return True

    @staticmethod
    def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    def _record_run(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("batch_runs_total", status=status)

    def _record_submission(self, outcome: str):
        if self.metrics:
            self.metrics.increment_counter("batch_submissions_total", outcome=outcome)
