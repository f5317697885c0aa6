"""
Segment statistics: legs folded by (from_station, to_station).

Only non-null durations are sampled, so a segment whose every leg has a
missing duration is reported with count=0 and min/max/avg of None.  The fold
is commutative; output order depends only on the mean (descending, None
treated as 0) and, for equal means, on first appearance in the input.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from analysis.models import LegRecord, SegmentStat

logger = logging.getLogger(__name__)


@dataclass
class _Accumulator:
    count: int = 0
    total: float = 0.0
    min: float | None = None
    max: float | None = None

    def push(self, value: float | None) -> None:
        if value is None:
            return
        self.count += 1
        self.total += value
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)


def segment_label(from_station: str, to_station: str) -> str:
    return f"{from_station}→{to_station}"


def aggregate_segments(legs: Iterable[LegRecord]) -> list[SegmentStat]:
    """Return one SegmentStat per (from_station, to_station), slowest mean first."""
    table: dict[tuple[str, str], _Accumulator] = {}
    for leg in legs:
        key = (leg.from_station, leg.to_station)
        acc = table.get(key)
        if acc is None:
            acc = table[key] = _Accumulator()
        acc.push(leg.leg_minutes)

    stats = [
        SegmentStat(
            from_station=from_station,
            to_station=to_station,
            count=acc.count,
            min=acc.min,
            max=acc.max,
            avg=round(acc.total / acc.count, 2) if acc.count else None,
        )
        for (from_station, to_station), acc in table.items()
    ]
    stats.sort(key=lambda s: s.avg if s.avg is not None else 0, reverse=True)
    logger.info("Aggregated %d segments.", len(stats))
    return stats
