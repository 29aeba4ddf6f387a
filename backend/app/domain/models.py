"""Typed domain representations used across ingestion, settlement, and APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

EVIDENCE_SCHEMA = "flight.market.evidence.v1"
RESOLUTION_METRIC = "departure_delay_minutes"
RESOLUTION_METHOD = "median_of_sources"


@dataclass(slots=True, frozen=True)
class SettlementRequest:
    """Decoded SettlementRequested event; never mutated after decoding."""

    market_id: int
    flight_id: str
    depart_ts: int
    threshold_min: int

    def market_params(self) -> "MarketParams":
        # uint256 values travel as decimal strings so canonical JSON stays exact
        return MarketParams(
            market_id=str(self.market_id),
            flight_id=self.flight_id,
            depart_ts=str(self.depart_ts),
            threshold_min=str(self.threshold_min),
        )


@dataclass(slots=True, frozen=True)
class ProviderObservation:
    """One provider's raw answer for a request."""

    provider: str
    status_code: int
    raw_body: str


@dataclass(slots=True, frozen=True)
class NormalizedFlightStatus:
    """Common delay measurement derived from a provider-specific body."""

    provider: str
    flight_id: str
    scheduled_departure_ts: int
    actual_departure_ts: int
    delay_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "flightId": self.flight_id,
            "scheduledDepartureTs": self.scheduled_departure_ts,
            "actualDepartureTs": self.actual_departure_ts,
            "delayMinutes": self.delay_minutes,
        }


@dataclass(slots=True, frozen=True)
class RawEvidence:
    digest: str
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {"digest": self.digest, "body": self.body}


@dataclass(slots=True, frozen=True)
class EvidenceSource:
    """Durable record of a single provider's contribution, usable or not."""

    provider: str
    status_code: int
    ok: bool
    raw: RawEvidence
    normalized: NormalizedFlightStatus | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "statusCode": self.status_code,
            "ok": self.ok,
            "raw": self.raw.to_dict(),
            "normalized": self.normalized.to_dict() if self.normalized else None,
            "error": self.error,
        }


@dataclass(slots=True, frozen=True)
class WorkflowMeta:
    name: str
    version: str
    data_mode: str
    generated_at_ts: int
    mock_profile: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "dataMode": self.data_mode,
            "mockProfile": self.mock_profile,
            "generatedAtTs": self.generated_at_ts,
        }


@dataclass(slots=True, frozen=True)
class MarketParams:
    market_id: str
    flight_id: str
    depart_ts: str
    threshold_min: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "marketId": self.market_id,
            "flightId": self.flight_id,
            "departTs": self.depart_ts,
            "thresholdMin": self.threshold_min,
        }


@dataclass(slots=True, frozen=True)
class Resolution:
    sources_used: tuple[str, ...]
    delays: Mapping[str, int]
    consensus_delay_minutes: int
    threshold_min: int
    delayed: bool
    metric: str = RESOLUTION_METRIC
    method: str = RESOLUTION_METHOD

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "method": self.method,
            "sourcesUsed": list(self.sources_used),
            "delays": dict(self.delays),
            "consensusDelayMinutes": self.consensus_delay_minutes,
            "thresholdMin": self.threshold_min,
            "delayed": self.delayed,
        }


@dataclass(slots=True, frozen=True)
class EvidencePack:
    """Canonical, hashable record of all inputs and the resulting decision."""

    workflow: WorkflowMeta
    market: MarketParams
    resolution: Resolution
    sources: tuple[EvidenceSource, ...]
    schema: str = EVIDENCE_SCHEMA

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema": self.schema,
            "workflow": self.workflow.to_dict(),
            "market": self.market.to_dict(),
            "resolution": self.resolution.to_dict(),
            "sources": [source.to_dict() for source in self.sources],
        }


@dataclass(slots=True, frozen=True)
class EvidenceBundle:
    pack: EvidencePack
    canonical_bytes: bytes
    evidence_hash: str

    @property
    def canonical_json(self) -> str:
        return self.canonical_bytes.decode("utf-8")


@dataclass(slots=True, frozen=True)
class SettlementPayload:
    """Decision as handed to the signer; derived 1:1 from an evidence pack."""

    market_id: int
    delayed: bool
    delay_minutes: int
    evidence_hash: str


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    """Submission service answer, surfaced without reinterpretation."""

    tx_hash: str | None = None
    tx_status: str | None = None
    receiver_execution_status: str | None = None
    transaction_fee_wei: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "txHash": self.tx_hash,
            "txStatus": self.tx_status,
            "receiverExecutionStatus": self.receiver_execution_status,
            "transactionFeeWei": self.transaction_fee_wei,
            "errorMessage": self.error_message,
        }


@dataclass(slots=True)
class SignedReport:
    """Opaque artifact produced by the signer and forwarded untouched."""

    request: dict[str, Any]
    artifact: dict[str, Any] = field(default_factory=dict)
