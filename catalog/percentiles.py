"""
Percentile markers for the numeric attributes that drive listing range filters.

For every filterable attribute the engine reads the non-null values in
ascending order and picks, for each rank 0, 5, ..., 100, the sample at

    index = round_half_up((n - 1) * rank / 100)

This is a nearest-rank estimator: every marker is an observed value, never
an interpolation. The index is computed with integer arithmetic so exact
halves always round up (e.g. n=2, rank=50 picks the larger sample).
Attributes with no values are left out of the snapshot entirely. Nothing is
cached; each call reflects the store as it is now.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from catalog.infrastructure.store import RecordStore
from catalog.utils.logging import get_logger

log = get_logger(__name__)

# Listing filters only offer these; average_metrics is derived and not stored.
FILTERABLE_ATTRIBUTES: Tuple[str, ...] = ("priority", "score", "complexity", "speed", "quality")
PERCENTILE_RANKS: Tuple[int, ...] = tuple(range(0, 101, 5))

PercentileMarkers = Dict[int, float]
PercentileSnapshot = Dict[str, PercentileMarkers]

_CENTS = Decimal("0.01")


def nearest_rank_index(count: int, rank: int) -> int:
    """Index into an ascending sample of `count` values for percentile `rank`."""
    if count <= 0:
        raise ValueError("count must be positive")
    if not 0 <= rank <= 100:
        raise ValueError(f"rank must be within 0..100, got {rank}")
    return (2 * (count - 1) * rank + 100) // 200


def round_marker(value: float) -> float:
    """Round to 2 decimals, halves away from zero."""
    return float(Decimal(repr(float(value))).quantize(_CENTS, rounding=ROUND_HALF_UP))


def percentile_markers(
    values: Iterable[float], ranks: Sequence[int] = PERCENTILE_RANKS
) -> Optional[PercentileMarkers]:
    """
    Markers for one attribute, or None when there are no values.
    """
    ordered: List[float] = sorted(float(value) for value in values)
    if not ordered:
        return None
    count = len(ordered)
    return {rank: round_marker(ordered[nearest_rank_index(count, rank)]) for rank in ranks}


def percentile_rank(value: Optional[float], markers: Optional[Mapping[int, float]]) -> int:
    """
    Highest rank whose marker lies strictly below `value`; 0 when none does.

    A value above the 90th-percentile marker but not above the 95th reports 90.
    """
    if value is None or not markers:
        return 0
    for rank in sorted(markers, reverse=True):
        if value > markers[rank]:
            return rank
    return 0


class PercentileEngine:
    """
    Compute a fresh percentile snapshot from the store on every call.
    """

    def __init__(
        self,
        store: RecordStore,
        attributes: Sequence[str] = FILTERABLE_ATTRIBUTES,
        ranks: Sequence[int] = PERCENTILE_RANKS,
    ) -> None:
        self._store = store
        self._attributes = tuple(attributes)
        self._ranks = tuple(ranks)

    def compute(self) -> PercentileSnapshot:
        snapshot: PercentileSnapshot = {}
        for attribute in self._attributes:
            markers = percentile_markers(self._store.column_values(attribute), self._ranks)
            if markers is None:
                log.debug("No values for attribute; omitted", extra={"attribute": attribute})
                continue
            snapshot[attribute] = markers
        return snapshot


__all__ = [
    "FILTERABLE_ATTRIBUTES",
    "PERCENTILE_RANKS",
    "PercentileEngine",
    "PercentileMarkers",
    "PercentileSnapshot",
    "nearest_rank_index",
    "percentile_markers",
    "percentile_rank",
    "round_marker",
]
