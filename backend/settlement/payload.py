"""Fixed-layout settlement payload matching the receiver's ABI decode.

Layout: ``uint256 marketId | bool delayed | uint256 delayMinutes | bytes32 evidenceHash``,
each parameter one 32-byte big-endian word.
"""

from __future__ import annotations

import base64

from app.domain import EvidenceBundle, PayloadEncodingError, SettlementPayload, SettlementRequest

WORD_SIZE = 32
PAYLOAD_SIZE = 4 * WORD_SIZE
_UINT256_MAX = 2**256 - 1


def _uint256(value: int, *, field: str) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadEncodingError(f"{field} must be an integer")
    if not 0 <= value <= _UINT256_MAX:
        raise PayloadEncodingError(f"{field} is outside the uint256 range")
    return value.to_bytes(WORD_SIZE, "big")


def _bytes32(value: str, *, field: str) -> bytes:
    text = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise PayloadEncodingError(f"{field} must be hex encoded") from exc
    if len(raw) != WORD_SIZE:
        raise PayloadEncodingError(f"{field} must be exactly {WORD_SIZE} bytes, got {len(raw)}")
    return raw


def payload_from_evidence(request: SettlementRequest, bundle: EvidenceBundle) -> SettlementPayload:
    resolution = bundle.pack.resolution
    return SettlementPayload(
        market_id=request.market_id,
        delayed=resolution.delayed,
        delay_minutes=resolution.consensus_delay_minutes,
        evidence_hash=bundle.evidence_hash,
    )


def encode_settlement_payload(payload: SettlementPayload) -> bytes:
    return b"".join(
        (
            _uint256(payload.market_id, field="marketId"),
            _uint256(1 if payload.delayed else 0, field="delayed"),
            _uint256(payload.delay_minutes, field="delayMinutes"),
            _bytes32(payload.evidence_hash, field="evidenceHash"),
        )
    )


def decode_settlement_payload(data: bytes) -> SettlementPayload:
    if len(data) != PAYLOAD_SIZE:
        raise PayloadEncodingError(f"Settlement payload must be {PAYLOAD_SIZE} bytes, got {len(data)}")
    words = [data[offset : offset + WORD_SIZE] for offset in range(0, PAYLOAD_SIZE, WORD_SIZE)]
    flag = int.from_bytes(words[1], "big")
    if flag not in (0, 1):
        raise PayloadEncodingError("delayed flag must be 0 or 1")
    return SettlementPayload(
        market_id=int.from_bytes(words[0], "big"),
        delayed=bool(flag),
        delay_minutes=int.from_bytes(words[2], "big"),
        evidence_hash="0x" + words[3].hex(),
    )


def to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


__all__ = [
    "PAYLOAD_SIZE",
    "decode_settlement_payload",
    "encode_settlement_payload",
    "payload_from_evidence",
    "to_base64",
    "to_hex",
]
