from __future__ import annotations

import json

import pytest

from app.domain import MalformedResponse, ProviderObservation, UnsupportedProvider
from ingestion.normalize import MAX_TIMESTAMP, delay_minutes, normalize, supported_providers


def _observation(provider: str, payload, status_code: int = 200) -> ProviderObservation:
    body = payload if isinstance(payload, str) else json.dumps(payload)
    return ProviderObservation(provider=provider, status_code=status_code, raw_body=body)


def test_supported_providers_lists_registered_rules():
    assert {"MockAirOne", "MockSkyTwo"} <= set(supported_providers())


def test_flat_layout_is_normalized():
    observation = _observation(
        "MockAirOne",
        {"scheduledDepartureTs": 1_000_000, "actualDepartureTs": 1_000_000 + 42 * 60},
    )

    status = normalize("MockAirOne", "AA100", observation)

    assert status.provider == "MockAirOne"
    assert status.flight_id == "AA100"
    assert status.scheduled_departure_ts == 1_000_000
    assert status.actual_departure_ts == 1_002_520
    assert status.delay_minutes == 42


def test_nested_layout_is_normalized():
    observation = _observation(
        "MockSkyTwo",
        {"times": {"scheduledDepartureTs": 500, "actualDepartureTs": 500 + 15 * 60}},
    )

    assert normalize("MockSkyTwo", "AA100", observation).delay_minutes == 15


def test_delay_is_floored_to_whole_minutes():
    assert delay_minutes(0, 119) == 1
    assert delay_minutes(0, 59) == 0


def test_early_departure_counts_as_zero_delay():
    observation = _observation(
        "MockAirOne", {"scheduledDepartureTs": 1_000, "actualDepartureTs": 400}
    )

    assert normalize("MockAirOne", "AA100", observation).delay_minutes == 0


def test_iso_and_numeric_string_timestamps_are_accepted():
    observation = _observation(
        "MockAirOne",
        {
            "scheduledDepartureTs": "2026-01-01T00:00:00Z",
            "actualDepartureTs": "1767227400",
        },
    )

    status = normalize("MockAirOne", "AA100", observation)

    assert status.scheduled_departure_ts == 1_767_225_600
    assert status.delay_minutes == 30


def test_naive_iso_timestamps_are_treated_as_utc():
    observation = _observation(
        "MockAirOne",
        {"scheduledDepartureTs": "2026-01-01T00:00:00", "actualDepartureTs": "2026-01-01T01:00:00"},
    )

    status = normalize("MockAirOne", "AA100", observation)

    assert status.scheduled_departure_ts == 1_767_225_600
    assert status.delay_minutes == 60


def test_unknown_provider_is_rejected():
    with pytest.raises(UnsupportedProvider, match="provider=NoSuchAir"):
        normalize("NoSuchAir", "AA100", _observation("NoSuchAir", {}))


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        "[1, 2]",
        {"scheduledDepartureTs": 1_000},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": True},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": 1_000.5},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": "yesterday-ish"},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": "Infinity"},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": "-Infinity"},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": "NaN"},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": "sNaN"},
        {"scheduledDepartureTs": 1_000, "actualDepartureTs": "1e1000000000"},
        {"scheduledDepartureTs": 0, "actualDepartureTs": 10**90},
        {"scheduledDepartureTs": 0, "actualDepartureTs": 1e300},
        {"scheduledDepartureTs": -60, "actualDepartureTs": 0},
        {"scheduledDepartureTs": "1969-12-31T23:00:00Z", "actualDepartureTs": 0},
        '{"scheduledDepartureTs": 0, "actualDepartureTs": 1' + "0" * 5000 + "}",
    ],
)
def test_malformed_flat_bodies_raise(body):
    with pytest.raises(MalformedResponse):
        normalize("MockAirOne", "AA100", _observation("MockAirOne", body))


def test_nested_layout_requires_times_block():
    observation = _observation("MockSkyTwo", {"scheduledDepartureTs": 1, "actualDepartureTs": 2})

    with pytest.raises(MalformedResponse, match="times"):
        normalize("MockSkyTwo", "AA100", observation)


def test_largest_supported_timestamp_is_accepted():
    observation = _observation(
        "MockAirOne", {"scheduledDepartureTs": 0, "actualDepartureTs": MAX_TIMESTAMP}
    )

    assert normalize("MockAirOne", "AA100", observation).delay_minutes == MAX_TIMESTAMP // 60
