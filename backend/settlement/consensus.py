"""Deterministic reduction of per-source delays into one consensus value."""

from __future__ import annotations

from collections.abc import Iterable

from app.domain import NoUsableSources


def median_consensus(delays: Iterable[int]) -> int:
    """Floor of the mean of the two central values of the sorted delays.

    A single value is returned as-is. With more than two values the two
    central elements are still averaged, so odd counts use indices
    ``(n-1)//2`` and the one after it rather than the true median.
    """

    ordered = sorted(delays)
    if not ordered:
        raise NoUsableSources("No usable delay observations to build consensus from")
    if len(ordered) == 1:
        return ordered[0]

    low = (len(ordered) - 1) // 2
    return (ordered[low] + ordered[low + 1]) // 2


__all__ = ["median_consensus"]
