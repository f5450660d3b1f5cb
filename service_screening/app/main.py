"""
Screening service for donor intake submissions.
"""

import asyncio
from typing import Optional, Set

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig

from .evaluation import BatchOrchestrator, EvaluationService
from .persistence import InMemoryPersistence, PostgreSQLPersistence
from .rules.engine import ScreeningEngine
from .rules.fields import FIELD_SET_VERSION, describe_fields
from .rules.models import (
    RuleCreateRequest, RuleUpdateRequest, RuleResponse, RuleListResponse,
    EvaluationResponse, BatchEvaluationResponse,
)
from .rules.store import RuleStore


class ScreeningService(BaseService):
    """Screening service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, persistence=None):
        super().__init__("screening", 8020, config=config)

        if persistence is None:
            if self.config.storage_backend == "memory":
                persistence = InMemoryPersistence()
            else:
                persistence = PostgreSQLPersistence(self.config.postgres_dsn)

        self.persistence = persistence
        self.engine = ScreeningEngine(self.config.severity_penalties(), metrics=self.metrics)
        self.rule_store = RuleStore(self.persistence)
        self.evaluation_service = EvaluationService(self.persistence, self.engine, metrics=self.metrics)
        self.batch_orchestrator = BatchOrchestrator(
            self.persistence,
            self.evaluation_service,
            chunk_size=self.config.batch_chunk_size,
            pause_seconds=self.config.batch_pause_seconds,
            metrics=self.metrics,
        )
        self._batch_cancels: Set[asyncio.Event] = set()

        self._setup_screening_routes()

    def _setup_screening_routes(self):
        """Set up screening-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "screening",
                "message": "Donor Screening - Eligibility Rule Engine",
                "version": "1.0.0",
                "capabilities": ["rule_engine", "batch_evaluation", "persistence"]
            }

        @self.app.get("/screening/fields")
        async def list_fields():
            """Supported rule field paths."""
            return {"version": FIELD_SET_VERSION, "fields": describe_fields()}

        @self.app.get("/screening/rules", response_model=RuleListResponse)
        async def list_rules(active_only: bool = Query(False, description="Only active rules")):
            """List rules ordered by type and display order."""
            rules = await self.rule_store.list(active_only=active_only)
            return RuleListResponse(
                rules=[RuleResponse.from_rule(rule) for rule in rules],
                total=len(rules)
            )

        @self.app.post("/screening/rules", response_model=RuleResponse, status_code=201)
        async def create_rule(request: RuleCreateRequest):
            """Create a new rule."""
            rule = await self.rule_store.create(request)
            return RuleResponse.from_rule(rule)

        @self.app.get("/screening/rules/{rule_id}", response_model=RuleResponse)
        async def get_rule(rule_id: str):
            rule = await self.rule_store.get(rule_id)
            return RuleResponse.from_rule(rule)

        @self.app.put("/screening/rules/{rule_id}", response_model=RuleResponse)
        async def update_rule(rule_id: str, request: RuleUpdateRequest):
            """Update an existing rule."""
            rule = await self.rule_store.update(rule_id, request)
            return RuleResponse.from_rule(rule)

        @self.app.post("/screening/rules/{rule_id}/toggle", response_model=RuleResponse)
        async def toggle_rule(rule_id: str):
            """Flip a rule's active flag."""
            rule = await self.rule_store.toggle_active(rule_id)
            return RuleResponse.from_rule(rule)

        @self.app.delete("/screening/rules/{rule_id}")
        async def delete_rule(rule_id: str):
            """Delete a rule."""
            await self.rule_store.delete(rule_id)
            return {"success": True, "message": "Rule deleted successfully"}

        @self.app.post("/screening/submissions/{submission_id}/evaluate", response_model=EvaluationResponse)
        async def evaluate_submission(submission_id: str):
            """Evaluate one submission against the active rules."""
            result = await self.evaluation_service.evaluate(submission_id)
            return EvaluationResponse.from_result(submission_id, result)

        @self.app.post("/screening/evaluations/batch", response_model=BatchEvaluationResponse)
        async def evaluate_batch(limit: Optional[int] = Query(None, ge=1, le=1000)):
            """Evaluate pending submissions in bounded chunks."""
            cancel_event = asyncio.Event()
            self._batch_cancels.add(cancel_event)
            try:
                summary = await self.batch_orchestrator.run_batch(
                    limit or self.config.batch_default_limit,
                    cancel_event=cancel_event,
                )
            finally:
                self._batch_cancels.discard(cancel_event)
            return BatchEvaluationResponse(**summary.to_dict())

        @self.app.post("/screening/evaluations/batch/cancel")
        async def cancel_batch():
            """Stop every running batch from starting further work."""
            if not self._batch_cancels:
                return {"cancelled": False, "message": "No batch is running"}
            for cancel_event in self._batch_cancels:
                cancel_event.set()
            self.logger.info("Batch cancellation requested", batches=len(self._batch_cancels))
            return {
                "cancelled": True,
                "batches": len(self._batch_cancels),
                "message": "Batch cancellation requested"
            }

    async def _check_dependencies(self):
        """Check screening service dependencies."""
        dependencies = {}

        try:
            dependencies["storage"] = "ok" if await self.persistence.health_check() else "error"
        except Exception:
            dependencies["storage"] = "error"

        return dependencies

    async def start(self):
        """Start screening service components."""
        await self.persistence.start()
        self.logger.info("Screening service started", storage=type(self.persistence).__name__)

    async def stop(self):
        """Stop screening service components."""
        await self.persistence.stop()
        self.logger.info("Screening service stopped")


def create_app():
    """Create screening service application."""
    service = ScreeningService()
    return service.app


if __name__ == "__main__":
    service = ScreeningService()
    service.run()
