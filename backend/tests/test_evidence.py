from __future__ import annotations

import json

import pytest

from app.domain import (
    EVIDENCE_SCHEMA,
    NoUsableSources,
    NormalizedFlightStatus,
    ProviderObservation,
    SettlementRequest,
    WorkflowMeta,
)
from settlement.canonical import canonicalize, digest, digest_text
from settlement.evidence import (
    assemble,
    failed_fetch_source,
    make_evidence_source,
    source_from_observation,
)

REQUEST = SettlementRequest(market_id=7, flight_id="AA100", depart_ts=1_767_225_600, threshold_min=30)
META = WorkflowMeta(
    name="flight-delay-workflow",
    version="0.3.0",
    data_mode="mock",
    mock_profile="default",
    generated_at_ts=1_767_230_000,
)


def _usable(provider: str, delay: int):
    status = NormalizedFlightStatus(
        provider=provider,
        flight_id=REQUEST.flight_id,
        scheduled_departure_ts=REQUEST.depart_ts,
        actual_departure_ts=REQUEST.depart_ts + delay * 60,
        delay_minutes=delay,
    )
    body = json.dumps({"scheduledDepartureTs": REQUEST.depart_ts, "actualDepartureTs": status.actual_departure_ts})
    return make_evidence_source(provider, 200, body, status)


def test_two_sources_produce_floor_mean_consensus():
    bundle = assemble(REQUEST, META, [_usable("MockAirOne", 10), _usable("MockSkyTwo", 15)])
    resolution = bundle.pack.resolution

    assert resolution.consensus_delay_minutes == 12
    assert resolution.delayed is False
    assert resolution.sources_used == ("MockAirOne", "MockSkyTwo")
    assert dict(resolution.delays) == {"MockAirOne": 10, "MockSkyTwo": 15}


def test_threshold_boundary_is_inclusive():
    at_threshold = assemble(REQUEST, META, [_usable("MockAirOne", 30)])
    below = assemble(REQUEST, META, [_usable("MockAirOne", 29)])

    assert at_threshold.pack.resolution.delayed is True
    assert below.pack.resolution.delayed is False


def test_failed_sources_stay_in_the_pack_but_not_in_consensus():
    failed = make_evidence_source("MockSkyTwo", 503, "upstream down", error="HTTP status 503")
    bundle = assemble(REQUEST, META, [_usable("MockAirOne", 42), failed])
    document = bundle.pack.to_dict()

    assert document["resolution"]["sourcesUsed"] == ["MockAirOne"]
    assert document["resolution"]["consensusDelayMinutes"] == 42
    assert document["resolution"]["delayed"] is True
    assert [source["provider"] for source in document["sources"]] == ["MockAirOne", "MockSkyTwo"]
    assert document["sources"][1] == {
        "provider": "MockSkyTwo",
        "statusCode": 503,
        "ok": False,
        "raw": {"digest": digest_text("upstream down"), "body": "upstream down"},
        "normalized": None,
        "error": "HTTP status 503",
    }


def test_all_sources_failing_raises():
    sources = [failed_fetch_source("MockAirOne", "timeout"), failed_fetch_source("MockSkyTwo", "timeout")]

    with pytest.raises(NoUsableSources):
        assemble(REQUEST, META, sources)


def test_failed_fetch_source_has_zero_status_and_empty_body():
    source = failed_fetch_source("MockAirOne", "connection refused")

    assert source.ok is False
    assert source.status_code == 0
    assert source.raw.body == ""
    assert source.raw.digest == digest(b"")


def test_source_ok_requires_success_status_and_normalized_record():
    status = _usable("MockAirOne", 5).normalized

    assert make_evidence_source("MockAirOne", 200, "{}", status).ok is True
    assert make_evidence_source("MockAirOne", 500, "{}", status).ok is False
    assert make_evidence_source("MockAirOne", 200, "{}", None).ok is False
    assert make_evidence_source("MockAirOne", 200, "{}", status, error="boom").ok is False


def test_non_success_observation_is_not_normalized():
    body = json.dumps({"scheduledDepartureTs": 1, "actualDepartureTs": 6000})
    source = source_from_observation(REQUEST, ProviderObservation("MockAirOne", 404, body))

    assert source.ok is False
    assert source.normalized is None
    assert source.error == "HTTP status 404"
    assert source.raw.body == body


def test_malformed_observation_records_error():
    source = source_from_observation(REQUEST, ProviderObservation("MockAirOne", 200, "<html>"))

    assert source.ok is False
    assert source.status_code == 200
    assert "not valid JSON" in source.error


def test_unsupported_provider_observation_records_error():
    source = source_from_observation(REQUEST, ProviderObservation("NoSuchAir", 200, "{}"))

    assert source.ok is False
    assert "No normalizer" in source.error


def test_pack_shape_and_hash():
    bundle = assemble(REQUEST, META, [_usable("MockAirOne", 10)])
    document = json.loads(bundle.canonical_json)

    assert document["schema"] == EVIDENCE_SCHEMA
    assert document["market"] == {
        "marketId": "7",
        "flightId": "AA100",
        "departTs": "1767225600",
        "thresholdMin": "30",
    }
    assert document["workflow"]["mockProfile"] == "default"
    assert document["resolution"]["metric"] == "departure_delay_minutes"
    assert document["resolution"]["method"] == "median_of_sources"
    assert bundle.canonical_bytes == canonicalize(document)
    assert bundle.evidence_hash == digest(bundle.canonical_bytes)


def test_hash_is_reproducible_for_identical_inputs():
    first = assemble(REQUEST, META, [_usable("MockAirOne", 10), _usable("MockSkyTwo", 15)])
    second = assemble(REQUEST, META, [_usable("MockAirOne", 10), _usable("MockSkyTwo", 15)])

    assert first.canonical_bytes == second.canonical_bytes
    assert first.evidence_hash == second.evidence_hash


def test_hash_changes_with_generation_time():
    later = WorkflowMeta(
        name=META.name,
        version=META.version,
        data_mode=META.data_mode,
        mock_profile=META.mock_profile,
        generated_at_ts=META.generated_at_ts + 1,
    )

    first = assemble(REQUEST, META, [_usable("MockAirOne", 10)])
    second = assemble(REQUEST, later, [_usable("MockAirOne", 10)])

    assert first.evidence_hash != second.evidence_hash


def test_live_mode_renders_null_mock_profile():
    live = WorkflowMeta(name="w", version="1", data_mode="live", generated_at_ts=1)
    bundle = assemble(REQUEST, live, [_usable("MockAirOne", 10)])

    assert '"mockProfile":null' in bundle.canonical_json
