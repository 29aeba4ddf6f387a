from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from loguru import logger
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.models import SettlementRecord
from app.repositories import SettlementRepository, SettlementRunInput

from .workflow import SettlementOutcome


@contextmanager
def session_scope() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def outcome_to_run_input(outcome: SettlementOutcome) -> SettlementRunInput:
    request = outcome.request
    evidence = outcome.evidence
    resolution = evidence.pack.resolution if evidence else None
    submission = outcome.submission
    return SettlementRunInput(
        run_id=outcome.run_id,
        state=outcome.state.value,
        started_at=outcome.started_at,
        finished_at=outcome.finished_at,
        market_id=str(request.market_id) if request else None,
        flight_id=request.flight_id if request else None,
        depart_ts=str(request.depart_ts) if request else None,
        threshold_min=str(request.threshold_min) if request else None,
        failed_state=outcome.failed_state.value if outcome.failed_state else None,
        error_type=outcome.error_type,
        error_message=outcome.error,
        delayed=resolution.delayed if resolution else None,
        delay_minutes=resolution.consensus_delay_minutes if resolution else None,
        sources_used=list(resolution.sources_used) if resolution else None,
        evidence_hash=evidence.evidence_hash if evidence else None,
        evidence_json=evidence.canonical_json if evidence else None,
        payload_hex=outcome.payload_hex,
        tx_hash=submission.tx_hash if submission else None,
        tx_status=submission.tx_status if submission else None,
        receiver_execution_status=submission.receiver_execution_status if submission else None,
        transaction_fee_wei=submission.transaction_fee_wei if submission else None,
        submission_error=submission.error_message if submission else None,
    )


def record_outcome(session: Session, outcome: SettlementOutcome) -> SettlementRecord:
    record = SettlementRepository(session).record_run(outcome_to_run_input(outcome))
    logger.info("Recorded settlement run {} (state={})", record.run_id, record.state)
    return record


__all__ = ["outcome_to_run_input", "record_outcome", "session_scope"]
