from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SettlementRecord(Base):
    """One row per settlement invocation, failed runs included."""

    __tablename__ = "settlement_runs"

    run_id: Mapped[str] = mapped_column(String, primary_key=True)
    market_id: Mapped[str | None] = mapped_column(String(78), nullable=True, index=True)
    flight_id: Mapped[str | None] = mapped_column(String, nullable=True)
    depart_ts: Mapped[str | None] = mapped_column(String(78), nullable=True)
    threshold_min: Mapped[str | None] = mapped_column(String(78), nullable=True)

    state: Mapped[str] = mapped_column(String(32), nullable=False)
    failed_state: Mapped[str | None] = mapped_column(String(32), nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    delayed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    delay_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sources_used: Mapped[list | None] = mapped_column(JSON, nullable=True)
    evidence_hash: Mapped[str | None] = mapped_column(String(66), nullable=True, index=True)
    evidence_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload_hex: Mapped[str | None] = mapped_column(Text, nullable=True)

    tx_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    tx_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    receiver_execution_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    transaction_fee_wei: Mapped[str | None] = mapped_column(String(78), nullable=True)
    submission_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
