from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest

from app.core.config import Settings
from app.db import build_engine, build_session_factory, init_db
from settlement.events import SETTLEMENT_EVENT_TOPIC

FIXED_TS = 1_767_225_600


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path/'flight_market.db'}",
        data_mode="mock",
        mock_profile="test",
        evidence_dump_dir=None,
    )


@pytest.fixture
def fixed_clock() -> Callable[[], int]:
    return lambda: FIXED_TS


@pytest.fixture
def decoded_notification() -> dict[str, Any]:
    return {
        "eventName": "SettlementRequested",
        "args": {
            "marketId": "7",
            "flightId": "AA100",
            "departTs": "1767225600",
            "thresholdMin": "30",
        },
    }


@pytest.fixture
def raw_log_factory(test_settings) -> Callable[..., dict[str, Any]]:
    def _build(
        market_id: int = 7,
        flight_id: str = "AA100",
        depart_ts: int = 1_767_225_600,
        threshold_min: int = 30,
        *,
        topic: str = SETTLEMENT_EVENT_TOPIC,
        address: str | None = None,
    ) -> dict[str, Any]:
        encoded = flight_id.encode("utf-8")
        padded = encoded + b"\x00" * (-len(encoded) % 32)
        data = b"".join(
            (
                (96).to_bytes(32, "big"),
                depart_ts.to_bytes(32, "big"),
                threshold_min.to_bytes(32, "big"),
                len(encoded).to_bytes(32, "big"),
                padded,
            )
        )
        return {
            "address": address or test_settings.flight_market_address,
            "topics": [topic, "0x" + market_id.to_bytes(32, "big").hex()],
            "data": "0x" + data.hex(),
        }

    return _build


@pytest.fixture
def db_session():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
