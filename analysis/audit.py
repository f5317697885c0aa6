"""
Data quality audit over one dataset's legs.

Three independent checks:
  1. Dataset counters — total legs, null / negative / over-threshold
     durations (one pass; total counts every leg regardless of validity).
  2. Per-segment outliers — for each segment with at least
     OUTLIER_MIN_SAMPLES non-null samples and non-zero variance, every
     sample with |value − mean| / std ≥ OUTLIER_Z_THRESHOLD (population
     mean and standard deviation).  Smaller segments are never flagged.
  3. Per-train continuity — the number of adjacent legs (ordered by seq)
     where leg[i].to_station ≠ leg[i+1].from_station.
"""

import logging
import math
from typing import Iterable, Sequence

from config import OUTLIER_MIN_SAMPLES, OUTLIER_Z_THRESHOLD, OVER_THRESHOLD_MINUTES
from analysis.models import (
    AuditReport,
    AuditSummary,
    ContinuityRow,
    LegRecord,
    Outlier,
    SegmentAverage,
)
from analysis.normalize import group_legs_by_train
from analysis.segments import segment_label

logger = logging.getLogger(__name__)


def count_anomalies(
    legs: Iterable[LegRecord],
    over_threshold: float = OVER_THRESHOLD_MINUTES,
) -> tuple[int, int, int, int]:
    """Return (total, null, negative, over_threshold) leg counts."""
    total = nulls = negative = over = 0
    for leg in legs:
        total += 1
        value = leg.leg_minutes
        if value is None:
            nulls += 1
            continue
        if value < 0:
            negative += 1
        if value > over_threshold:
            over += 1
    return total, nulls, negative, over


def segment_samples(legs: Iterable[LegRecord]) -> dict[str, list[float]]:
    """Non-null durations per segment label, in input order."""
    samples: dict[str, list[float]] = {}
    for leg in legs:
        if leg.leg_minutes is None:
            continue
        samples.setdefault(segment_label(leg.from_station, leg.to_station), []).append(leg.leg_minutes)
    return samples


def find_outliers(
    samples: dict[str, list[float]],
    min_samples: int = OUTLIER_MIN_SAMPLES,
    z_threshold: float = OUTLIER_Z_THRESHOLD,
) -> list[Outlier]:
    outliers: list[Outlier] = []
    for label, values in samples.items():
        if len(values) < min_samples:
            continue
        mean = sum(values) / len(values)
        std = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
        if std == 0:
            continue
        for v in values:
            if abs(v - mean) / std >= z_threshold:
                outliers.append(Outlier(segment=label, value=round(v, 2)))
    return outliers


def count_breaks(seq: Sequence[LegRecord]) -> int:
    """Adjacent legs that do not chain (a train with 0 or 1 legs has no breaks)."""
    return sum(1 for a, b in zip(seq, seq[1:]) if a.to_station != b.from_station)


def train_continuity(legs: Iterable[LegRecord]) -> list[ContinuityRow]:
    return [
        ContinuityRow(train_id=train_id, breaks=count_breaks(seq))
        for train_id, seq in group_legs_by_train(legs).items()
    ]


def segment_averages(samples: dict[str, list[float]]) -> list[SegmentAverage]:
    """Mean duration per segment label, slowest first."""
    rows = [
        SegmentAverage(segment=label, avg=round(sum(values) / len(values), 2), count=len(values))
        for label, values in samples.items()
    ]
    rows.sort(key=lambda r: r.avg, reverse=True)
    return rows


def audit_legs(
    legs: Sequence[LegRecord],
    over_threshold: float = OVER_THRESHOLD_MINUTES,
    min_samples: int = OUTLIER_MIN_SAMPLES,
    z_threshold: float = OUTLIER_Z_THRESHOLD,
) -> AuditReport:
    """Run every audit check over one dataset's legs."""
    total, nulls, negative, over = count_anomalies(legs, over_threshold)
    samples = segment_samples(legs)
    outliers = find_outliers(samples, min_samples, z_threshold)
    continuity = train_continuity(legs)

    summary = AuditSummary(
        total_legs=total,
        null_legs=nulls,
        negative_legs=negative,
        over60min_legs=over,
        outlier_count=len(outliers),
    )
    logger.info(
        "Audit: %d legs, %d null, %d negative, %d over %.0f min, %d outliers, %d trains with breaks.",
        total, nulls, negative, over, over_threshold, len(outliers),
        sum(1 for row in continuity if row.breaks),
    )
    return AuditReport(
        summary=summary,
        outliers=outliers,
        continuity=continuity,
        top_segments=segment_averages(samples),
    )
