"""Deterministic mock flight-data providers.

Responses depend only on ``(mock_profile, flight_id, depart_ts)`` so a
settlement replayed with the same profile reproduces the same evidence.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from app.domain import ProviderObservation
from settlement.canonical import digest_text

MOCK_NOTE = "MOCK_ONLY"
MAX_MOCK_DELAY_MINUTES = 180

MockProvider = Callable[[str, int, str], ProviderObservation]


def base_delay_minutes(flight_id: str, depart_ts: int, mock_profile: str) -> int:
    """Seeded delay in ``[0, 180]`` minutes."""

    seed = digest_text(f"{mock_profile}|{flight_id}|{depart_ts}")
    return int(seed, 16) % (MAX_MOCK_DELAY_MINUTES + 1)


def _response(provider: str, payload: dict[str, Any]) -> ProviderObservation:
    return ProviderObservation(provider=provider, status_code=200, raw_body=json.dumps(payload, separators=(",", ":")))


def mock_air_one(flight_id: str, depart_ts: int, mock_profile: str) -> ProviderObservation:
    """Flat timestamp layout, biased three minutes early."""

    delay = max(0, base_delay_minutes(flight_id, depart_ts, mock_profile) - 3)
    return _response(
        "MockAirOne",
        {
            "provider": "MockAirOne",
            "flightId": flight_id,
            "scheduledDepartureTs": depart_ts,
            "actualDepartureTs": depart_ts + delay * 60,
            "status": "on_time" if delay == 0 else "departed_late",
            "note": MOCK_NOTE,
        },
    )


def mock_sky_two(flight_id: str, depart_ts: int, mock_profile: str) -> ProviderObservation:
    """Nested ``times`` layout, biased four minutes late."""

    delay = min(MAX_MOCK_DELAY_MINUTES, base_delay_minutes(flight_id, depart_ts, mock_profile) + 4)
    return _response(
        "MockSkyTwo",
        {
            "provider": "MockSkyTwo",
            "flightId": flight_id,
            "times": {
                "scheduledDepartureTs": depart_ts,
                "actualDepartureTs": depart_ts + delay * 60,
            },
            "status": "on_time" if delay == 0 else "delayed",
            "note": MOCK_NOTE,
        },
    )


MOCK_PROVIDERS: dict[str, MockProvider] = {
    "MockAirOne": mock_air_one,
    "MockSkyTwo": mock_sky_two,
}


__all__ = [
    "MOCK_PROVIDERS",
    "MockProvider",
    "base_delay_minutes",
    "mock_air_one",
    "mock_sky_two",
]
