from __future__ import annotations

import json

from ingestion.mock_providers import (
    MAX_MOCK_DELAY_MINUTES,
    MOCK_PROVIDERS,
    base_delay_minutes,
    mock_air_one,
    mock_sky_two,
)
from ingestion.normalize import normalize

DEPART_TS = 1_767_225_600


def test_mock_responses_are_deterministic():
    for provider in MOCK_PROVIDERS.values():
        first = provider("AA100", DEPART_TS, "default")
        second = provider("AA100", DEPART_TS, "default")
        assert first == second


def test_profile_changes_the_seed():
    seeds = {base_delay_minutes("AA100", DEPART_TS, profile) for profile in ("a", "b", "c", "d", "e")}
    assert len(seeds) > 1
    assert all(0 <= seed <= MAX_MOCK_DELAY_MINUTES for seed in seeds)


def test_mock_biases_around_the_base_delay():
    for flight_id in ("AA100", "UA7", "LH400", "BA2490"):
        base = base_delay_minutes(flight_id, DEPART_TS, "default")

        air_one = normalize("MockAirOne", flight_id, mock_air_one(flight_id, DEPART_TS, "default"))
        sky_two = normalize("MockSkyTwo", flight_id, mock_sky_two(flight_id, DEPART_TS, "default"))

        assert air_one.delay_minutes == max(0, base - 3)
        assert sky_two.delay_minutes == min(MAX_MOCK_DELAY_MINUTES, base + 4)


def test_mock_bodies_use_their_provider_layout():
    air_one = json.loads(mock_air_one("AA100", DEPART_TS, "default").raw_body)
    sky_two = json.loads(mock_sky_two("AA100", DEPART_TS, "default").raw_body)

    assert air_one["scheduledDepartureTs"] == DEPART_TS
    assert "times" not in air_one
    assert sky_two["times"]["scheduledDepartureTs"] == DEPART_TS
    assert air_one["note"] == sky_two["note"] == "MOCK_ONLY"
