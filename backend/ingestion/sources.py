"""Flight data sources queried once per settlement request."""

from __future__ import annotations

from typing import Protocol

from app.core.config import Settings
from app.domain import ProviderObservation, SettlementRequest

from .client import FlightStatusClient
from .mock_providers import MOCK_PROVIDERS, MockProvider


class FlightSource(Protocol):
    """Read-only query keyed by ``(flight_id, depart_ts)``."""

    name: str

    def fetch(self, request: SettlementRequest) -> ProviderObservation:
        raise NotImplementedError


class MockFlightSource:
    def __init__(self, name: str, provider: MockProvider, mock_profile: str) -> None:
        self.name = name
        self._provider = provider
        self._mock_profile = mock_profile

    def fetch(self, request: SettlementRequest) -> ProviderObservation:
        return self._provider(request.flight_id, request.depart_ts, self._mock_profile)


class LiveFlightSource:
    """Opens a fresh client per request; responses are never cached."""

    def __init__(self, name: str, client_factory) -> None:
        self.name = name
        self._client_factory = client_factory

    def fetch(self, request: SettlementRequest) -> ProviderObservation:
        with self._client_factory() as client:
            return client.fetch_status(flight_id=request.flight_id, depart_ts=request.depart_ts)


def build_sources(settings: Settings) -> list[FlightSource]:
    """Return one source per configured provider, in configured order."""

    sources: list[FlightSource] = []
    for provider in settings.providers:
        if settings.data_mode == "mock":
            sources.append(MockFlightSource(provider.name, MOCK_PROVIDERS[provider.name], settings.mock_profile))
        else:
            sources.append(
                LiveFlightSource(
                    provider.name,
                    lambda provider=provider: FlightStatusClient(
                        provider, timeout=settings.provider_timeout_seconds
                    ),
                )
            )
    return sources


__all__ = ["FlightSource", "LiveFlightSource", "MockFlightSource", "build_sources"]
