"""
Evaluation workflow: single-submission evaluation and batch orchestration.
"""

from .batch import BatchOrchestrator, BatchSummary
from .service import EvaluationService

__all__ = ["BatchOrchestrator", "BatchSummary", "EvaluationService"]
