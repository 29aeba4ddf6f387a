from __future__ import annotations

import httpx
from loguru import logger

from app.core.config import ProviderSettings, settings
from app.domain import ProviderFetchError, ProviderObservation


class FlightStatusClient:
    """Thin wrapper around a provider's flight status endpoint."""

    def __init__(
        self,
        provider: ProviderSettings,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if provider.base_url is None:
            raise ValueError(f"Provider {provider.name} has no base_url configured")
        self.provider = provider
        self.timeout = timeout or settings.provider_timeout_seconds
        headers = {"Accept": "application/json"}
        if provider.api_key:
            headers[provider.api_key_header] = provider.api_key
        self.client = httpx.Client(
            base_url=str(provider.base_url),
            timeout=self.timeout,
            headers=headers,
            transport=transport,
        )

    def fetch_status(self, *, flight_id: str, depart_ts: int) -> ProviderObservation:
        """Query one flight; any HTTP status is returned as an observation."""

        params = {"flight_id": flight_id, "depart_ts": str(depart_ts)}
        logger.info("{} GET {} params={}", self.provider.name, self.provider.path, params)
        try:
            response = self.client.get(self.provider.path, params=params)
        except httpx.HTTPError as exc:
            raise ProviderFetchError(self.provider.name, f"request failed: {exc}") from exc
        return ProviderObservation(
            provider=self.provider.name,
            status_code=response.status_code,
            raw_body=response.text,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "FlightStatusClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
