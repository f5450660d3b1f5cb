#!/usr/bin/env python3
"""
Evaluate pending donor submissions against the active screening rules.

This helper mirrors the Screening Service batch endpoint but can be executed
from a scheduler, CI job or developer workstation. It connects straight to
PostgreSQL, evaluates up to ``--limit`` unevaluated submissions in bounded
chunks and prints the JSON summary.
"""

import argparse
import asyncio
import json
import signal
from pathlib import Path
import sys
import os

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.config import get_config  # noqa: E402
from shared.logging import configure_logging  # noqa: E402
from service_screening.app.evaluation import BatchOrchestrator, EvaluationService  # noqa: E402
from service_screening.app.persistence import PostgreSQLPersistence  # noqa: E402
from service_screening.app.rules.engine import ScreeningEngine  # noqa: E402


async def run(*, dsn: str, limit: int, chunk_size: int, pause_seconds: float) -> dict:
    """Execute one batch run and return the summary."""
    config = get_config("screening", 8020)
    persistence = PostgreSQLPersistence(dsn)
    await persistence.start()

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, cancel_event.set)
    except NotImplementedError:  # pragma: no cover - Windows event loops
        pass

    try:
        engine = ScreeningEngine(config.severity_penalties())
        orchestrator = BatchOrchestrator(
            persistence,
            EvaluationService(persistence, engine),
            chunk_size=chunk_size,
            pause_seconds=pause_seconds,
        )
        summary = await orchestrator.run_batch(limit, cancel_event=cancel_event)
        return summary.to_dict()
    finally:
        await persistence.stop()


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate unevaluated donor submissions.")
    parser.add_argument("--dsn", default=os.getenv("SCREENING_POSTGRES_DSN", "postgres://localhost:5432/screening"), help="PostgreSQL DSN")
    parser.add_argument("--limit", type=int, default=int(os.getenv("SCREENING_BATCH_DEFAULT_LIMIT", 50)), help="Maximum submissions to evaluate")
    parser.add_argument("--chunk-size", type=int, default=int(os.getenv("SCREENING_BATCH_CHUNK_SIZE", 3)), help="Concurrent evaluations per chunk")
    parser.add_argument("--pause-seconds", type=float, default=float(os.getenv("SCREENING_BATCH_PAUSE_SECONDS", 1.0)), help="Pause between chunks")
    parser.add_argument("--log-level", default=os.getenv("SCREENING_LOG_LEVEL", "info"), help="Log level")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    args = parser.parse_args()
    if args.limit < 0:
        parser.error("--limit must not be negative")
    if args.chunk_size < 1:
        parser.error("--chunk-size must be at least 1")
    return args


def main() -> int:
    args = _parse_args()
    configure_logging("screening", args.log_level)
    try:
        summary = asyncio.run(
            run(
                dsn=args.dsn,
                limit=args.limit,
                chunk_size=args.chunk_size,
                pause_seconds=args.pause_seconds,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[batch-evaluate] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
