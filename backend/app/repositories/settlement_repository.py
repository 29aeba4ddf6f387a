"""Settlement run persistence helpers."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import SettlementRecord

from .pipeline_models import SettlementRunInput


class SettlementRepository:
    """Append-only audit log of settlement runs."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def record_run(self, payload: SettlementRunInput) -> SettlementRecord:
        record = SettlementRecord(
            run_id=payload.run_id,
            market_id=payload.market_id,
            flight_id=payload.flight_id,
            depart_ts=payload.depart_ts,
            threshold_min=payload.threshold_min,
            state=payload.state,
            failed_state=payload.failed_state,
            error_type=payload.error_type,
            error_message=payload.error_message,
            delayed=payload.delayed,
            delay_minutes=payload.delay_minutes,
            sources_used=payload.sources_used,
            evidence_hash=payload.evidence_hash,
            evidence_json=payload.evidence_json,
            payload_hex=payload.payload_hex,
            tx_hash=payload.tx_hash,
            tx_status=payload.tx_status,
            receiver_execution_status=payload.receiver_execution_status,
            transaction_fee_wei=payload.transaction_fee_wei,
            submission_error=payload.submission_error,
            started_at=payload.started_at,
            finished_at=payload.finished_at,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def get_run(self, run_id: str) -> SettlementRecord | None:
        return self._session.get(SettlementRecord, run_id)

    def latest_for_market(self, market_id: str) -> SettlementRecord | None:
        query = (
            select(SettlementRecord)
            .where(SettlementRecord.market_id == market_id)
            .order_by(SettlementRecord.started_at.desc())
            .limit(1)
        )
        return self._session.execute(query).scalars().first()

    def list_recent(self, *, limit: int = 50, offset: int = 0) -> list[SettlementRecord]:
        query = (
            select(SettlementRecord)
            .order_by(SettlementRecord.started_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self._session.execute(query).scalars().all())
