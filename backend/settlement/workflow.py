"""Event-driven settlement orchestrator.

One trigger notification is processed start to finish per :meth:`run` call::

    AWAITING_EVENT -> DECODING -> FETCHING -> NORMALIZING -> ASSEMBLING_EVIDENCE
        -> ENCODING_PAYLOAD -> SUBMITTING -> DONE

Any step may end in ``FAILED``. Provider failures never fail the run on their
own; they are folded into the evidence as non-ok sources. The hard logic lives
in :func:`settle`, a pure function of the request and the fetch results.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from loguru import logger

from app.core.config import Settings
from app.domain import (
    EvidenceBundle,
    EvidenceSource,
    ProviderFetchError,
    ProviderObservation,
    SettlementCancelled,
    SettlementError,
    SettlementPayload,
    SettlementRequest,
    SignedReport,
    SubmissionResult,
    WorkflowMeta,
)
from ingestion.sources import FlightSource, build_sources

from .events import decode_settlement_event
from .evidence import assemble, failed_fetch_source, source_from_observation
from .payload import encode_settlement_payload, payload_from_evidence, to_base64, to_hex
from .reporting import ReportGateway, ReportRequest, build_report_gateway

FetchResult = ProviderObservation | ProviderFetchError

_CANCEL_POLL_SECONDS = 0.05


class SettlementState(str, Enum):
    AWAITING_EVENT = "awaiting_event"
    DECODING = "decoding"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    ASSEMBLING_EVIDENCE = "assembling_evidence"
    ENCODING_PAYLOAD = "encoding_payload"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class SettlementDecision:
    evidence: EvidenceBundle
    payload: SettlementPayload
    encoded_payload: bytes


@dataclass(slots=True)
class SettlementOutcome:
    run_id: str
    state: SettlementState = SettlementState.AWAITING_EVENT
    transitions: list[SettlementState] = field(
        default_factory=lambda: [SettlementState.AWAITING_EVENT]
    )
    request: SettlementRequest | None = None
    sources: tuple[EvidenceSource, ...] = ()
    evidence: EvidenceBundle | None = None
    payload: SettlementPayload | None = None
    encoded_payload: bytes | None = None
    report: SignedReport | None = None
    submission: SubmissionResult | None = None
    failed_state: SettlementState | None = None
    error: str | None = None
    error_type: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    def advance(self, state: SettlementState) -> None:
        self.state = state
        self.transitions.append(state)

    def fail(self, exc: Exception) -> None:
        self.failed_state = self.state
        self.error = str(exc)
        self.error_type = type(exc).__name__
        self.advance(SettlementState.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.state == SettlementState.DONE

    @property
    def payload_hex(self) -> str | None:
        return to_hex(self.encoded_payload) if self.encoded_payload is not None else None

    def to_dict(self) -> dict[str, Any]:
        resolution = self.evidence.pack.resolution if self.evidence else None
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "failed_state": self.failed_state.value if self.failed_state else None,
            "error": self.error,
            "error_type": self.error_type,
            "market_id": str(self.request.market_id) if self.request else None,
            "flight_id": self.request.flight_id if self.request else None,
            "sources_used": list(resolution.sources_used) if resolution else [],
            "delay_minutes": resolution.consensus_delay_minutes if resolution else None,
            "delayed": resolution.delayed if resolution else None,
            "evidence_hash": self.evidence.evidence_hash if self.evidence else None,
            "payload_hex": self.payload_hex,
            "submission": self.submission.to_dict() if self.submission else None,
        }


def _fetch_one(source: FlightSource, request: SettlementRequest) -> FetchResult:
    try:
        observation = source.fetch(request)
    except ProviderFetchError as exc:
        logger.warning("Provider {} fetch failed: {}", source.name, exc)
        return exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Provider {} raised while fetching", source.name)
        return ProviderFetchError(source.name, str(exc))
    logger.info("Provider {} answered with status {}", source.name, observation.status_code)
    return observation


def fetch_all(
    sources: Sequence[FlightSource],
    request: SettlementRequest,
    *,
    cancel_event: threading.Event | None = None,
) -> list[FetchResult]:
    """Query every source concurrently and join on all of them."""

    if not sources:
        return []
    executor = ThreadPoolExecutor(max_workers=len(sources), thread_name_prefix="provider-fetch")
    try:
        futures = [executor.submit(_fetch_one, source, request) for source in sources]
        pending = set(futures)
        while pending:
            if cancel_event is not None and cancel_event.is_set():
                raise SettlementCancelled(
                    f"Settlement for market {request.market_id} cancelled while fetching"
                )
            _, pending = wait(pending, timeout=_CANCEL_POLL_SECONDS)
        return [future.result() for future in futures]
    finally:
        # in-flight provider queries are read-only; abandoning them is safe
        executor.shutdown(wait=False, cancel_futures=True)


def build_evidence_sources(
    request: SettlementRequest, results: Sequence[FetchResult]
) -> list[EvidenceSource]:
    sources: list[EvidenceSource] = []
    for result in results:
        if isinstance(result, ProviderFetchError):
            sources.append(failed_fetch_source(result.provider, str(result)))
        else:
            sources.append(source_from_observation(request, result))
    return sources


def settle(
    request: SettlementRequest,
    results: Sequence[FetchResult],
    workflow: WorkflowMeta,
) -> SettlementDecision:
    """Pure settlement: fetch results in, evidence and encoded payload out."""

    bundle = assemble(request, workflow, build_evidence_sources(request, results))
    payload = payload_from_evidence(request, bundle)
    return SettlementDecision(
        evidence=bundle,
        payload=payload,
        encoded_payload=encode_settlement_payload(payload),
    )


def _dump_evidence(base_dir: Path, request: SettlementRequest, bundle: EvidenceBundle) -> None:
    target = base_dir / f"market-{request.market_id}-{bundle.evidence_hash[2:14]}.json"
    try:
        base_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(bundle.canonical_bytes)
    except Exception:  # noqa: BLE001
        logger.exception("Failed to write evidence dump {}", target)
        return
    logger.info("Evidence pack written to {}", target)


class SettlementWorkflow:
    """Drive one trigger notification through the settlement state machine."""

    def __init__(
        self,
        settings: Settings,
        *,
        sources: Sequence[FlightSource] | None = None,
        gateway: ReportGateway | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.settings = settings
        self.network = settings.resolve_network()
        self.sources = list(sources) if sources is not None else build_sources(settings)
        self.gateway = gateway or build_report_gateway(settings)
        self._clock = clock or (lambda: int(time.time()))
        self._dump_dir = Path(settings.evidence_dump_dir) if settings.evidence_dump_dir else None
        logger.info(
            "Settlement workflow ready: network={} mode={} providers={} submission={}",
            self.network.name,
            settings.data_mode,
            ", ".join(source.name for source in self.sources),
            settings.submission_mode,
        )

    def workflow_meta(self) -> WorkflowMeta:
        return WorkflowMeta(
            name=self.settings.workflow_name,
            version=self.settings.workflow_version,
            data_mode=self.settings.data_mode,
            mock_profile=self.settings.mock_profile if self.settings.data_mode == "mock" else None,
            generated_at_ts=self._clock(),
        )

    def run(self, notification: Any, *, cancel_event: threading.Event | None = None) -> SettlementOutcome:
        outcome = SettlementOutcome(run_id=str(uuid4()))
        try:
            self._run(outcome, notification, cancel_event)
        except SettlementError as exc:
            outcome.fail(exc)
            logger.error(
                "Settlement run {} failed during {}: {}: {}",
                outcome.run_id,
                outcome.failed_state.value,
                outcome.error_type,
                outcome.error,
            )
        finally:
            outcome.finished_at = datetime.now(timezone.utc)
        return outcome

    def _run(
        self,
        outcome: SettlementOutcome,
        notification: Any,
        cancel_event: threading.Event | None,
    ) -> None:
        outcome.advance(SettlementState.DECODING)
        request = decode_settlement_event(
            notification, expected_address=self.settings.flight_market_address
        )
        outcome.request = request

        outcome.advance(SettlementState.FETCHING)
        results = fetch_all(self.sources, request, cancel_event=cancel_event)

        outcome.advance(SettlementState.NORMALIZING)
        outcome.sources = tuple(build_evidence_sources(request, results))

        outcome.advance(SettlementState.ASSEMBLING_EVIDENCE)
        bundle = assemble(request, self.workflow_meta(), outcome.sources)
        outcome.evidence = bundle
        resolution = bundle.pack.resolution
        logger.info("EvidenceHash: {}", bundle.evidence_hash)
        logger.debug("EvidencePack (canonical JSON): {}", bundle.canonical_json)
        logger.info(
            "Consensus delayMinutes={} => delayed={} (threshold={}, sources={})",
            resolution.consensus_delay_minutes,
            resolution.delayed,
            resolution.threshold_min,
            ", ".join(resolution.sources_used),
        )
        if self._dump_dir is not None:
            _dump_evidence(self._dump_dir, request, bundle)

        outcome.advance(SettlementState.ENCODING_PAYLOAD)
        outcome.payload = payload_from_evidence(request, bundle)
        outcome.encoded_payload = encode_settlement_payload(outcome.payload)
        logger.info("Built report payload (hex): {}", outcome.payload_hex)

        if cancel_event is not None and cancel_event.is_set():
            raise SettlementCancelled(f"Settlement for market {request.market_id} cancelled before submission")

        outcome.advance(SettlementState.SUBMITTING)
        report = self.gateway.generate_report(ReportRequest(encoded_payload=to_base64(outcome.encoded_payload)))
        outcome.report = report
        submission = self.gateway.submit(
            report,
            receiver=self.settings.receiver_address,
            gas_limit=self.settings.gas_limit,
        )
        outcome.submission = submission
        logger.info(
            "Submission txHash={} txStatus={} receiverExecutionStatus={} feeWei={} error={}",
            submission.tx_hash,
            submission.tx_status,
            submission.receiver_execution_status,
            submission.transaction_fee_wei,
            submission.error_message,
        )

        outcome.advance(SettlementState.DONE)


__all__ = [
    "FetchResult",
    "SettlementDecision",
    "SettlementOutcome",
    "SettlementState",
    "SettlementWorkflow",
    "build_evidence_sources",
    "fetch_all",
    "settle",
]
