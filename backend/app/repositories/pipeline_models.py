"""DTOs for settlement persistence operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class SettlementRunInput:
    run_id: str
    state: str
    started_at: datetime
    finished_at: datetime | None
    market_id: str | None = None
    flight_id: str | None = None
    depart_ts: str | None = None
    threshold_min: str | None = None
    failed_state: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    delayed: bool | None = None
    delay_minutes: int | None = None
    sources_used: list[str] | None = None
    evidence_hash: str | None = None
    evidence_json: str | None = None
    payload_hex: str | None = None
    tx_hash: str | None = None
    tx_status: str | None = None
    receiver_execution_status: str | None = None
    transaction_fee_wei: str | None = None
    submission_error: str | None = None
