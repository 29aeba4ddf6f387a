"""Independent re-verification of a published evidence pack."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from app.domain import EVIDENCE_SCHEMA, NoUsableSources, ProviderObservation, SettlementError
from ingestion.normalize import delay_minutes, normalize, supported_providers

from .canonical import canonicalize, digest, digest_text
from .consensus import median_consensus
from .evidence import is_success_status


@dataclass(slots=True)
class VerificationReport:
    evidence_hash: str
    mismatches: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "evidence_hash": self.evidence_hash, "mismatches": self.mismatches}


def _check_source(index: int, source: Mapping[str, Any], flight_id: str, report: VerificationReport) -> None:
    label = f"sources[{index}] ({source.get('provider')})"
    raw = source.get("raw")
    if not isinstance(raw, Mapping):
        report.mismatches.append(f"{label}: raw evidence is not an object")
        return
    body = raw.get("body")
    if not isinstance(body, str):
        report.mismatches.append(f"{label}: raw body missing")
        return
    if digest_text(body) != raw.get("digest"):
        report.mismatches.append(f"{label}: raw digest does not match body")

    normalized = source.get("normalized")
    status_code = source.get("statusCode")
    expected_ok = (
        not source.get("error")
        and isinstance(status_code, int)
        and is_success_status(status_code)
        and normalized is not None
    )
    if bool(source.get("ok")) != expected_ok:
        report.mismatches.append(f"{label}: ok flag inconsistent with status/error/normalized")

    if not isinstance(normalized, Mapping):
        return
    try:
        expected_delay = delay_minutes(
            int(normalized["scheduledDepartureTs"]), int(normalized["actualDepartureTs"])
        )
    except (KeyError, TypeError, ValueError, OverflowError):
        report.mismatches.append(f"{label}: normalized timestamps missing")
        return
    if normalized.get("delayMinutes") != expected_delay:
        report.mismatches.append(f"{label}: delayMinutes does not match timestamps")

    provider = source.get("provider")
    if provider in supported_providers():
        observation = ProviderObservation(provider=provider, status_code=status_code, raw_body=body)
        try:
            recomputed = normalize(provider, flight_id, observation)
        except SettlementError as exc:
            report.mismatches.append(f"{label}: raw body no longer normalizes: {exc}")
            return
        if recomputed.to_dict() != dict(normalized):
            report.mismatches.append(f"{label}: normalized record differs from raw body")


def _section(document: Mapping[str, Any], key: str, report: VerificationReport) -> Mapping[str, Any]:
    value = document.get(key)
    if isinstance(value, Mapping):
        return value
    report.mismatches.append(f"{key} is not an object")
    return {}


def verify_evidence_pack(document: Any, expected_hash: str | None = None) -> VerificationReport:
    """Recompute digests, consensus and decision, then the canonical hash."""

    report = VerificationReport(evidence_hash=digest(canonicalize(document)))
    if expected_hash is not None and expected_hash.lower() != report.evidence_hash:
        report.mismatches.append(
            f"evidence hash {report.evidence_hash} does not match expected {expected_hash}"
        )

    if not isinstance(document, Mapping):
        report.mismatches.append("evidence pack is not a JSON object")
        return report

    if document.get("schema") != EVIDENCE_SCHEMA:
        report.mismatches.append(f"unexpected schema tag {document.get('schema')!r}")

    market = _section(document, "market", report)
    resolution = _section(document, "resolution", report)
    sources = document.get("sources")
    if not isinstance(sources, (list, tuple)):
        report.mismatches.append("sources is not a list")
        sources = []
    flight_id = str(market.get("flightId", ""))

    for index, source in enumerate(sources):
        if isinstance(source, Mapping):
            _check_source(index, source, flight_id, report)
        else:
            report.mismatches.append(f"sources[{index}]: not an object")

    usable = [
        source
        for source in sources
        if isinstance(source, Mapping)
        and isinstance(source.get("provider"), str)
        and source.get("ok")
        and isinstance(source.get("normalized"), Mapping)
    ]
    used = [source.get("provider") for source in usable]
    delays = {source.get("provider"): source["normalized"].get("delayMinutes") for source in usable}
    sources_used = resolution.get("sourcesUsed")
    if not isinstance(sources_used, (list, tuple)) or list(sources_used) != used:
        report.mismatches.append("sourcesUsed does not list the ok sources in order")
    recorded_delays = resolution.get("delays")
    if not isinstance(recorded_delays, Mapping) or dict(recorded_delays) != delays:
        report.mismatches.append("delays map does not match ok sources")

    if not all(isinstance(value, int) and not isinstance(value, bool) for value in delays.values()):
        report.mismatches.append("delay values are not whole minutes")
        return report
    try:
        consensus = median_consensus(delays.values())
    except NoUsableSources:
        report.mismatches.append("no usable sources to recompute consensus from")
        return report
    if resolution.get("consensusDelayMinutes") != consensus:
        report.mismatches.append(
            f"consensusDelayMinutes {resolution.get('consensusDelayMinutes')} != recomputed {consensus}"
        )

    try:
        threshold = int(market.get("thresholdMin"))
    except (TypeError, ValueError, OverflowError):
        report.mismatches.append("market.thresholdMin is not an integer")
        return report
    if resolution.get("thresholdMin") != threshold:
        report.mismatches.append("resolution.thresholdMin differs from market.thresholdMin")
    if resolution.get("delayed") != (consensus >= threshold):
        report.mismatches.append("delayed flag does not follow consensus >= thresholdMin")
    return report


__all__ = ["VerificationReport", "verify_evidence_pack"]
