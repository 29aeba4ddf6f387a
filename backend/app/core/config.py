import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import AnyUrl, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .networks import Network, get_network

_HEX_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")

# FlightMarket deployment on Sepolia
_DEFAULT_FLIGHT_MARKET_ADDRESS = "0x704b455caC0054114Fb8C4DDC63bd598525A8eF7"


class ProviderSettings(BaseModel):
    """Connection details for one flight-data provider."""

    name: str = Field(min_length=1)
    base_url: AnyUrl | None = Field(
        default=None,
        description="Provider API root; required when DATA_MODE=live",
    )
    path: str = Field(default="/flights/status", description="Status endpoint path")
    api_key: str | None = Field(default=None, description="Credential sent with every query")
    api_key_header: str = Field(default="x-api-key")


def _default_providers() -> list[ProviderSettings]:
    return [ProviderSettings(name="MockAirOne"), ProviderSettings(name="MockSkyTwo")]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///../data/flight_market.db",
        description="SQLAlchemy compatible database URL",
    )
    chain_selector_name: str = Field(
        default="ethereum-testnet-sepolia",
        description="Chain selector name of the network emitting SettlementRequested",
    )
    chain_is_testnet: bool = Field(default=True)
    flight_market_address: str = Field(
        default=_DEFAULT_FLIGHT_MARKET_ADDRESS,
        description="FlightMarket contract emitting settlement requests",
    )
    receiver_address: str = Field(
        default=_DEFAULT_FLIGHT_MARKET_ADDRESS,
        description="Contract receiving signed settlement reports",
    )
    gas_limit: str = Field(default="500000", description="Gas limit for report submission")
    data_mode: Literal["mock", "live"] = Field(
        default="mock",
        description="Query deterministic mock providers or live provider APIs",
    )
    mock_profile: str = Field(default="default", min_length=1)
    providers: list[ProviderSettings] = Field(
        default_factory=_default_providers,
        description="Ordered provider list; order is the evidence source order",
    )
    provider_timeout_seconds: float = Field(default=10.0, gt=0)
    workflow_name: str = Field(default="flight-delay-workflow")
    workflow_version: str = Field(default="0.3.0")
    submission_mode: Literal["dry_run", "http"] = Field(
        default="dry_run",
        description="Generate reports without broadcasting, or hand them to the report service",
    )
    report_service_url: AnyUrl | None = Field(
        default=None,
        description="Base URL of the signing/submission service",
    )
    report_timeout_seconds: float = Field(default=30.0, gt=0)
    evidence_dump_dir: str | None = Field(
        default=None,
        description="Directory where canonical evidence packs are written (blank to disable)",
    )

    @field_validator("flight_market_address", "receiver_address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        if not _HEX_ADDRESS.match(value):
            raise ValueError(f"address must be 0x + 40 hex chars. Got: {value}")
        return value

    @field_validator("gas_limit", mode="before")
    @classmethod
    def _validate_gas_limit(cls, value: Any) -> str:
        candidate = str(value).strip()
        if not candidate.isdigit():
            raise ValueError("gas_limit must be a numeric string")
        if int(candidate) <= 0:
            raise ValueError("gas_limit must be greater than 0")
        return candidate

    @field_validator("evidence_dump_dir", mode="before")
    @classmethod
    def _blank_dump_dir(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _validate_providers(self) -> "Settings":
        from ingestion.mock_providers import MOCK_PROVIDERS
        from ingestion.normalize import supported_providers

        if not self.providers:
            raise ValueError("At least one provider must be configured")

        names = [provider.name for provider in self.providers]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate provider names: {', '.join(duplicates)}")

        supported = set(supported_providers())
        unknown = [name for name in names if name not in supported]
        if unknown:
            raise ValueError(
                f"No normalizer implemented for providers: {', '.join(unknown)}. "
                f"Supported: {', '.join(sorted(supported))}"
            )

        if self.data_mode == "mock":
            missing = [name for name in names if name not in MOCK_PROVIDERS]
            if missing:
                raise ValueError(f"No mock available for providers: {', '.join(missing)}")
        else:
            missing = [provider.name for provider in self.providers if provider.base_url is None]
            if missing:
                raise ValueError(
                    f"DATA_MODE=live requires base_url for providers: {', '.join(missing)}"
                )

        if self.submission_mode == "http" and self.report_service_url is None:
            raise ValueError("SUBMISSION_MODE=http requires REPORT_SERVICE_URL")
        return self

    @property
    def provider_names(self) -> tuple[str, ...]:
        return tuple(provider.name for provider in self.providers)

    def resolve_network(self) -> Network:
        return get_network(self.chain_selector_name, is_testnet=self.chain_is_testnet)


def load_workflow_config(path: str | Path) -> Settings:
    """Build settings from a YAML workflow file, falling back to env for omitted keys."""

    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise FileNotFoundError(f"Workflow config file not found: {file_path}")
    raw = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise TypeError(f"Workflow config {file_path} must contain a mapping")
    return Settings(**raw)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
