import json
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


class Provider(BaseModel):
    name: str
    data_mode: str
    live_endpoint: str | None = None


class ProviderList(BaseModel):
    items: list[Provider]


class SettlementRun(BaseModel):
    run_id: str
    market_id: str | None = None
    flight_id: str | None = None
    depart_ts: str | None = None
    threshold_min: str | None = None
    state: str
    failed_state: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    delayed: bool | None = None
    delay_minutes: int | None = None
    sources_used: list[str] | None = None
    evidence_hash: str | None = None
    payload_hex: str | None = None
    tx_hash: str | None = None
    tx_status: str | None = None
    receiver_execution_status: str | None = None
    transaction_fee_wei: str | None = None
    submission_error: str | None = None
    started_at: datetime
    finished_at: datetime | None = None

    model_config = {"from_attributes": True}


class SettlementRunDetail(SettlementRun):
    evidence: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("evidence_json", "evidence"),
    )

    @field_validator("evidence", mode="before")
    @classmethod
    def _parse_evidence(cls, value: Any) -> dict[str, Any] | None:
        if value is None or isinstance(value, dict):
            return value
        return json.loads(value)


class SettlementRunList(BaseModel):
    items: list[SettlementRun]
