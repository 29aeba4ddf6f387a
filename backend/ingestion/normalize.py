"""Provider normalization rules.

Each supported provider owns a decoding rule that extracts the scheduled and
actual departure timestamps from its JSON body. The registry is closed over
the rules registered at import time; configuration validation consults
:func:`supported_providers` so an unknown provider fails at startup.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from datetime import timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as date_parser

from app.domain import (
    MalformedResponse,
    NormalizedFlightStatus,
    ProviderObservation,
    UnsupportedProvider,
)

DepartureRule = Callable[[Mapping[str, Any]], tuple[int, int]]

# Signed 64-bit ceiling; keeps derived delays within uint256 and the audit store.
MAX_TIMESTAMP = 2**63 - 1

_RULES: dict[str, DepartureRule] = {}


def register_rule(provider: str, rule: DepartureRule) -> None:
    """Register or replace the decoding rule for ``provider``."""

    _RULES[provider] = rule


def supported_providers() -> tuple[str, ...]:
    return tuple(sorted(_RULES))


def get_rule(provider: str) -> DepartureRule:
    try:
        return _RULES[provider]
    except KeyError as exc:
        raise UnsupportedProvider(f"No normalizer implemented for provider={provider}") from exc


def _coerce_timestamp(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or value is None:
        raise MalformedResponse(f"{field} is missing or not a timestamp")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise MalformedResponse(f"{field} must be whole seconds, got {value!r}")
        return int(value)
    if isinstance(value, str):
        candidate = value.strip()
        try:
            number = Decimal(candidate)
        except InvalidOperation:
            number = None
        if number is not None:
            if not number.is_finite():
                raise MalformedResponse(f"{field} is not a finite timestamp: {value!r}")
            if abs(number) > MAX_TIMESTAMP:
                raise MalformedResponse(f"{field} is outside the supported range: {value!r}")
            try:
                integral = number == number.to_integral_value()
            except ArithmeticError as exc:
                raise MalformedResponse(f"{field} is not a timestamp: {value!r}") from exc
            if not integral:
                raise MalformedResponse(f"{field} must be whole seconds, got {value!r}")
            return int(number)
        try:
            parsed = date_parser.isoparse(candidate)
        except (ValueError, OverflowError) as exc:
            raise MalformedResponse(f"{field} is not a timestamp: {value!r}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.astimezone(timezone.utc).timestamp())
    raise MalformedResponse(f"{field} has unsupported type {type(value).__name__}")


def _parse_timestamp(value: Any, *, field: str) -> int:
    """Return unix seconds for numeric or ISO-8601 timestamp values."""

    seconds = _coerce_timestamp(value, field=field)
    if not 0 <= seconds <= MAX_TIMESTAMP:
        raise MalformedResponse(f"{field} is outside the supported range: {value!r}")
    return seconds


def _flat_departure_times(raw: Mapping[str, Any]) -> tuple[int, int]:
    return (
        _parse_timestamp(raw.get("scheduledDepartureTs"), field="scheduledDepartureTs"),
        _parse_timestamp(raw.get("actualDepartureTs"), field="actualDepartureTs"),
    )


def _nested_departure_times(raw: Mapping[str, Any]) -> tuple[int, int]:
    times = raw.get("times")
    if not isinstance(times, Mapping):
        raise MalformedResponse("times block is missing")
    return (
        _parse_timestamp(times.get("scheduledDepartureTs"), field="times.scheduledDepartureTs"),
        _parse_timestamp(times.get("actualDepartureTs"), field="times.actualDepartureTs"),
    )


def delay_minutes(scheduled_ts: int, actual_ts: int) -> int:
    """Whole minutes of departure delay; early departures count as zero."""

    return max(0, actual_ts - scheduled_ts) // 60


def normalize(provider: str, flight_id: str, observation: ProviderObservation) -> NormalizedFlightStatus:
    """Map a provider body into a :class:`NormalizedFlightStatus`."""

    rule = get_rule(provider)
    try:
        raw = json.loads(observation.raw_body)
    except (TypeError, ValueError, RecursionError) as exc:
        # ValueError also covers integer literals past the interpreter digit limit
        raise MalformedResponse(f"{provider} body is not valid JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise MalformedResponse(f"{provider} body must be a JSON object")

    scheduled_ts, actual_ts = rule(raw)
    return NormalizedFlightStatus(
        provider=provider,
        flight_id=flight_id,
        scheduled_departure_ts=scheduled_ts,
        actual_departure_ts=actual_ts,
        delay_minutes=delay_minutes(scheduled_ts, actual_ts),
    )


register_rule("MockAirOne", _flat_departure_times)
register_rule("MockSkyTwo", _nested_departure_times)


__all__ = [
    "DepartureRule",
    "MAX_TIMESTAMP",
    "delay_minutes",
    "get_rule",
    "normalize",
    "register_rule",
    "supported_providers",
]
