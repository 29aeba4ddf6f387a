"""Error taxonomy shared by the settlement pipeline."""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for every settlement pipeline failure."""


class MalformedEvent(SettlementError):
    """Raised when a trigger notification is not a SettlementRequested event."""


class ProviderFetchError(SettlementError):
    """Raised when a provider could not be queried at all."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class UnsupportedProvider(SettlementError, LookupError):
    """Raised when no normalization rule is registered for a provider."""


class MalformedResponse(SettlementError):
    """Raised when a provider body cannot be decoded into departure timestamps."""


class NoUsableSources(SettlementError):
    """Raised when not a single source produced a usable observation."""


class PayloadEncodingError(SettlementError, ValueError):
    """Raised when a decision cannot be packed into the settlement payload layout."""


class ReportSubmissionError(SettlementError):
    """Raised when the signing or submission service rejects a report."""


class SettlementCancelled(SettlementError):
    """Raised when processing of a trigger is withdrawn mid-flight."""


__all__ = [
    "MalformedEvent",
    "MalformedResponse",
    "NoUsableSources",
    "PayloadEncodingError",
    "ProviderFetchError",
    "ReportSubmissionError",
    "SettlementCancelled",
    "SettlementError",
    "UnsupportedProvider",
]
