"""Driving loop that settles trigger notifications one at a time."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, ContextManager, Iterable, Iterator, TextIO

from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings, load_workflow_config

from .workflow import SettlementOutcome, SettlementWorkflow


@dataclass(slots=True)
class SettlementRunSummary:
    received: int = 0
    settled: int = 0
    failed: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)
    outcomes: list[dict[str, Any]] = field(default_factory=list)

    def record(self, outcome: SettlementOutcome) -> None:
        self.received += 1
        self.outcomes.append(outcome.to_dict())
        if outcome.succeeded:
            self.settled += 1
            return
        self.failed += 1
        self.failures.append(
            {
                "run_id": outcome.run_id,
                "market_id": str(outcome.request.market_id) if outcome.request else None,
                "failed_state": outcome.failed_state.value if outcome.failed_state else None,
                "reason": outcome.error,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "received": self.received,
            "settled": self.settled,
            "failed": self.failed,
            "failures": self.failures,
            "outcomes": self.outcomes,
        }


def iter_notifications(stream: TextIO) -> Iterator[Any]:
    """Yield notifications from a JSON array/object or from JSON lines.

    Lines that are not valid JSON are yielded as raw strings so the workflow
    rejects them as malformed events.
    """

    first = stream.readline()
    while first and not first.strip():
        first = stream.readline()
    if not first:
        return

    if first.lstrip().startswith("["):
        payload = json.loads(first + stream.read())
        if not isinstance(payload, list):
            raise ValueError("Notification file must hold a JSON array or JSON lines")
        yield from payload
        return

    for line in _chain_first(first, stream):
        text = line.strip()
        if not text:
            continue
        try:
            yield json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Notification line is not valid JSON: {}", text[:200])
            yield text


def _chain_first(first: str, stream: TextIO) -> Iterable[str]:
    yield first
    yield from stream


def run_settlements(
    notifications: Iterable[Any],
    workflow: SettlementWorkflow,
    *,
    persist: bool = True,
    session_factory: Callable[[], ContextManager[Session]] | None = None,
    init_db_fn: Callable[[], None] | None = None,
    summary_path: Path | None = None,
) -> SettlementRunSummary:
    """Settle each notification sequentially; no pipelining across requests."""

    recorder = None
    if persist:
        from app.db import init_db

        from .service import record_outcome, session_scope

        (init_db_fn or init_db)()
        session_factory = session_factory or session_scope
        recorder = record_outcome

    summary = SettlementRunSummary()
    for notification in notifications:
        outcome = workflow.run(notification)
        summary.record(outcome)
        if recorder is not None and session_factory is not None:
            with session_factory() as session:
                recorder(session, outcome)

    logger.info(
        "Settlement loop finished: received={}, settled={}, failed={}",
        summary.received,
        summary.settled,
        summary.failed,
    )
    if summary.failed:
        logger.warning("Settlement loop completed with {} failures", summary.failed)
    if summary_path:
        _write_summary(summary, summary_path)
    return summary


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Settle flight-delay markets from SettlementRequested notifications",
    )
    parser.add_argument(
        "--events",
        type=str,
        default="-",
        help="Notification file (JSON array or JSON lines); '-' reads stdin",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional YAML workflow config; environment settings are used otherwise",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not persist settlement runs to the database",
    )
    parser.add_argument(
        "--summary-path",
        type=Path,
        default=None,
        help="Optional path where a JSON summary report will be written",
    )
    return parser.parse_args()


def _write_summary(summary: SettlementRunSummary, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), default=str, indent=2) + "\n", encoding="utf-8")
    logger.info("Settlement summary written to {}", path)


def main() -> SettlementRunSummary:
    args = _parse_args()
    settings: Settings = load_workflow_config(args.config) if args.config else get_settings()
    workflow = SettlementWorkflow(settings)

    if args.events == "-":
        return run_settlements(
            iter_notifications(sys.stdin),
            workflow,
            persist=not args.dry_run,
            summary_path=args.summary_path,
        )
    with Path(args.events).open(encoding="utf-8") as stream:
        return run_settlements(
            iter_notifications(stream),
            workflow,
            persist=not args.dry_run,
            summary_path=args.summary_path,
        )


if __name__ == "__main__":
    summary = main()
    sys.exit(1 if summary.failed else 0)
