"""Evidence pack assembly and hashing."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from app.domain import (
    EvidenceBundle,
    EvidencePack,
    EvidenceSource,
    NormalizedFlightStatus,
    ProviderObservation,
    RawEvidence,
    Resolution,
    SettlementError,
    SettlementRequest,
    WorkflowMeta,
)
from ingestion.normalize import normalize

from .canonical import canonicalize, digest, digest_text
from .consensus import median_consensus


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


def make_evidence_source(
    provider: str,
    status_code: int,
    raw_body: str,
    normalized: NormalizedFlightStatus | None = None,
    error: str | None = None,
) -> EvidenceSource:
    ok = not error and is_success_status(status_code) and normalized is not None
    return EvidenceSource(
        provider=provider,
        status_code=status_code,
        ok=ok,
        raw=RawEvidence(digest=digest_text(raw_body), body=raw_body),
        normalized=normalized,
        error=error,
    )


def source_from_observation(request: SettlementRequest, observation: ProviderObservation) -> EvidenceSource:
    """Normalize one observation; failures are recorded on the source, not raised."""

    provider = observation.provider
    if not is_success_status(observation.status_code):
        error = f"HTTP status {observation.status_code}"
        source = make_evidence_source(provider, observation.status_code, observation.raw_body, error=error)
        logger.warning(
            "Source {} excluded: {} (raw digest {})", provider, error, source.raw.digest
        )
        return source

    try:
        normalized = normalize(provider, request.flight_id, observation)
    except SettlementError as exc:
        source = make_evidence_source(provider, observation.status_code, observation.raw_body, error=str(exc))
        logger.warning(
            "Source {} failed normalization: {} (raw digest {})", provider, exc, source.raw.digest
        )
        return source

    source = make_evidence_source(provider, observation.status_code, observation.raw_body, normalized)
    logger.info(
        "Source {} scheduled={} actual={} delay={}min (raw digest {})",
        provider,
        normalized.scheduled_departure_ts,
        normalized.actual_departure_ts,
        normalized.delay_minutes,
        source.raw.digest,
    )
    return source


def failed_fetch_source(provider: str, error: str) -> EvidenceSource:
    """Source for a provider that never answered; status code is zero."""

    return make_evidence_source(provider, 0, "", error=error)


def assemble(
    request: SettlementRequest,
    workflow: WorkflowMeta,
    sources: Sequence[EvidenceSource],
) -> EvidenceBundle:
    """Build the evidence pack, its canonical bytes, and its hash."""

    delays: dict[str, int] = {}
    used: list[str] = []
    for source in sources:
        if not source.ok or source.normalized is None:
            continue
        delays[source.provider] = source.normalized.delay_minutes
        used.append(source.provider)

    consensus = median_consensus(delays.values())
    threshold = request.threshold_min

    pack = EvidencePack(
        workflow=workflow,
        market=request.market_params(),
        resolution=Resolution(
            sources_used=tuple(used),
            delays=delays,
            consensus_delay_minutes=consensus,
            threshold_min=threshold,
            delayed=consensus >= threshold,
        ),
        sources=tuple(sources),
    )
    canonical_bytes = canonicalize(pack.to_dict())
    return EvidenceBundle(pack=pack, canonical_bytes=canonical_bytes, evidence_hash=digest(canonical_bytes))


__all__ = [
    "assemble",
    "failed_fetch_source",
    "is_success_status",
    "make_evidence_source",
    "source_from_observation",
]
