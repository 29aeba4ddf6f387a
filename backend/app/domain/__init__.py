"""Domain models representing settlement requests, observations, and evidence."""

from .errors import (
    MalformedEvent,
    MalformedResponse,
    NoUsableSources,
    PayloadEncodingError,
    ProviderFetchError,
    ReportSubmissionError,
    SettlementCancelled,
    SettlementError,
    UnsupportedProvider,
)
from .models import (
    EVIDENCE_SCHEMA,
    EvidenceBundle,
    EvidencePack,
    EvidenceSource,
    MarketParams,
    NormalizedFlightStatus,
    ProviderObservation,
    RawEvidence,
    Resolution,
    SettlementPayload,
    SettlementRequest,
    SignedReport,
    SubmissionResult,
    WorkflowMeta,
)

__all__ = [
    "EVIDENCE_SCHEMA",
    "EvidenceBundle",
    "EvidencePack",
    "EvidenceSource",
    "MalformedEvent",
    "MalformedResponse",
    "MarketParams",
    "NoUsableSources",
    "PayloadEncodingError",
    "NormalizedFlightStatus",
    "ProviderFetchError",
    "ProviderObservation",
    "RawEvidence",
    "ReportSubmissionError",
    "Resolution",
    "SettlementCancelled",
    "SettlementError",
    "SettlementPayload",
    "SettlementRequest",
    "SignedReport",
    "SubmissionResult",
    "UnsupportedProvider",
    "WorkflowMeta",
]
