"""Decoding of SettlementRequested trigger notifications.

Two notification shapes are accepted: an already decoded event
(``{"eventName": ..., "args": {...}}``) and a raw EVM log
(``{"topics": [...], "data": "0x..."}``). Anything else is rejected before a
single provider is contacted.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.domain import MalformedEvent, SettlementRequest

from .canonical import digest_text

SETTLEMENT_EVENT_NAME = "SettlementRequested"
SETTLEMENT_EVENT_SIGNATURE = "SettlementRequested(uint256,string,uint256,uint256)"
SETTLEMENT_EVENT_TOPIC = digest_text(SETTLEMENT_EVENT_SIGNATURE)

_WORD = 32
_UINT256_MAX = 2**256 - 1


class SettlementRequestedArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    market_id: int = Field(alias="marketId")
    flight_id: str = Field(alias="flightId", min_length=1)
    depart_ts: int = Field(alias="departTs")
    threshold_min: int = Field(alias="thresholdMin")

    @field_validator("market_id", "depart_ts", "threshold_min", mode="before")
    @classmethod
    def _parse_uint256(cls, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError("expected an unsigned integer, got a boolean")
        if isinstance(value, str):
            text = value.strip()
            parsed = int(text, 16) if text.lower().startswith("0x") else int(text, 10)
        elif isinstance(value, int):
            parsed = value
        else:
            raise ValueError(f"expected an unsigned integer, got {type(value).__name__}")
        if not 0 <= parsed <= _UINT256_MAX:
            raise ValueError("value is outside the uint256 range")
        return parsed


def _hex_bytes(value: Any, *, label: str) -> bytes:
    if not isinstance(value, str):
        raise MalformedEvent(f"{label} must be a hex string")
    text = value[2:] if value.lower().startswith("0x") else value
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise MalformedEvent(f"{label} is not valid hex") from exc


def _word(data: bytes, offset: int, *, label: str) -> int:
    if offset < 0 or offset + _WORD > len(data):
        raise MalformedEvent(f"log data truncated while reading {label}")
    return int.from_bytes(data[offset : offset + _WORD], "big")


def _decode_raw_log(log: Mapping[str, Any], *, expected_address: str | None) -> SettlementRequest:
    topics = log.get("topics")
    if not isinstance(topics, Sequence) or isinstance(topics, str) or len(topics) != 2:
        raise MalformedEvent("SettlementRequested logs carry exactly two topics")

    topic0 = "0x" + _hex_bytes(topics[0], label="topics[0]").hex()
    if topic0 != SETTLEMENT_EVENT_TOPIC:
        raise MalformedEvent(f"Unexpected event topic {topic0}; expected {SETTLEMENT_EVENT_TOPIC}")

    address = log.get("address")
    if expected_address and address is not None and str(address).lower() != expected_address.lower():
        raise MalformedEvent(f"Log emitted by {address}, expected {expected_address}")

    market_topic = _hex_bytes(topics[1], label="topics[1]")
    if len(market_topic) != _WORD:
        raise MalformedEvent("topics[1] must be a 32-byte word")

    data = _hex_bytes(log.get("data"), label="data")
    string_offset = _word(data, 0, label="flightId offset")
    depart_ts = _word(data, _WORD, label="departTs")
    threshold_min = _word(data, 2 * _WORD, label="thresholdMin")
    length = _word(data, string_offset, label="flightId length")
    start = string_offset + _WORD
    if start + length > len(data):
        raise MalformedEvent("log data truncated while reading flightId")
    try:
        flight_id = data[start : start + length].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedEvent("flightId is not valid UTF-8") from exc
    if not flight_id:
        raise MalformedEvent("flightId is empty")

    return SettlementRequest(
        market_id=int.from_bytes(market_topic, "big"),
        flight_id=flight_id,
        depart_ts=depart_ts,
        threshold_min=threshold_min,
    )


def _decode_named_event(notification: Mapping[str, Any]) -> SettlementRequest:
    name = notification.get("eventName", notification.get("event"))
    if name != SETTLEMENT_EVENT_NAME:
        raise MalformedEvent(f"Unexpected event: {name}")
    signature = notification.get("signature")
    if signature is not None and signature != SETTLEMENT_EVENT_SIGNATURE:
        raise MalformedEvent(f"Unexpected event signature: {signature}")
    args = notification.get("args")
    if not isinstance(args, Mapping):
        raise MalformedEvent("SettlementRequested notification is missing its args")
    try:
        parsed = SettlementRequestedArgs.model_validate(dict(args))
    except ValidationError as exc:
        raise MalformedEvent(f"Invalid SettlementRequested args: {exc}") from exc
    return SettlementRequest(
        market_id=parsed.market_id,
        flight_id=parsed.flight_id,
        depart_ts=parsed.depart_ts,
        threshold_min=parsed.threshold_min,
    )


def decode_settlement_event(
    notification: Any,
    *,
    expected_address: str | None = None,
) -> SettlementRequest:
    """Turn a trigger notification into a :class:`SettlementRequest`."""

    if not isinstance(notification, Mapping):
        raise MalformedEvent(f"Notification must be a JSON object, got {type(notification).__name__}")

    if "topics" in notification:
        request = _decode_raw_log(notification, expected_address=expected_address)
    elif "eventName" in notification or "event" in notification:
        request = _decode_named_event(notification)
    else:
        raise MalformedEvent("Notification is neither a decoded event nor a raw log")

    logger.info(
        "SettlementRequested detected: marketId={} flightId={} departTs={} thresholdMin={}",
        request.market_id,
        request.flight_id,
        request.depart_ts,
        request.threshold_min,
    )
    return request


__all__ = [
    "SETTLEMENT_EVENT_NAME",
    "SETTLEMENT_EVENT_SIGNATURE",
    "SETTLEMENT_EVENT_TOPIC",
    "SettlementRequestedArgs",
    "decode_settlement_event",
]
