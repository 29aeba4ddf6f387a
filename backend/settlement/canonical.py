"""Canonical JSON rendering and Keccak-256 digests for evidence hashing.

The canonical form is the preimage of every hash the pipeline publishes, so it
must be a pure function of content: mapping keys are sorted by their UTF-8
bytes, sequences keep their order, separators carry no whitespace and
non-ASCII text is emitted verbatim. Values outside JSON's closed set of
scalars, sequences and mappings render as ``null``.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from typing import Any

from Crypto.Hash import keccak

__all__ = ["canonical_json", "canonicalize", "digest", "digest_text"]


def _sort_key(key: str) -> bytes:
    return key.encode("utf-8", errors="surrogatepass")


def _canonical_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        # integral floats render without a fractional part
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, Mapping):
        items = {str(key): item for key, item in value.items()}
        return {key: _canonical_value(items[key]) for key in sorted(items, key=_sort_key)}
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return [_canonical_value(item) for item in value]
    return None


def canonical_json(value: Any) -> str:
    """Return the canonical JSON text for ``value``."""

    return json.dumps(
        _canonical_value(value),
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    )


def canonicalize(value: Any) -> bytes:
    """Return the canonical UTF-8 byte string for ``value``."""

    return canonical_json(value).encode("utf-8")


def digest(data: bytes) -> str:
    """Keccak-256 of ``data`` as ``0x``-prefixed lowercase hex."""

    hasher = keccak.new(digest_bits=256)
    hasher.update(data)
    return "0x" + hasher.hexdigest()


def digest_text(text: str) -> str:
    return digest(text.encode("utf-8"))
