"""
Compare two datasets' leg durations along the paths leaving a start station.

For every train that has a leg departing the start station, the legs from
that point up to its destination (trains.csv "dest", else the train's last
stop) form one path, grouped by destination.  For each destination seen in
either dataset the hop labels ("A→B") are aligned in one canonical order:
dataset A's first-seen order, then labels only dataset B has.  Each
dataset's mean duration per label is reported, None where a dataset has no
sample for that hop.
"""

import logging
from typing import Mapping, Sequence

from analysis.models import CompareSeries, LegRecord, VehicleMeta
from analysis.normalize import group_legs_by_train
from analysis.segments import segment_label

logger = logging.getLogger(__name__)


def extract_paths(
    start_station: str,
    legs: Sequence[LegRecord],
    meta: Mapping[str, VehicleMeta],
) -> dict[str, list[LegRecord]]:
    """
    Return {destination: legs} for every train departing start_station.

    The start station is matched exactly against from_station.  The path runs
    until the first leg arriving at the destination, or to the train's last
    leg when the destination never appears.
    """
    paths: dict[str, list[LegRecord]] = {}
    for train_id, seq in group_legs_by_train(legs).items():
        start_idx = next((i for i, l in enumerate(seq) if l.from_station == start_station), -1)
        if start_idx < 0:
            continue
        vehicle = meta.get(train_id)
        dest = (vehicle.dest if vehicle else "") or seq[-1].to_station
        if not dest:
            continue
        taken: list[LegRecord] = []
        for leg in seq[start_idx:]:
            taken.append(leg)
            if leg.to_station == dest:
                break
        paths.setdefault(dest, []).extend(taken)
    return paths


def _labels(path: Sequence[LegRecord] | None) -> list[str]:
    if not path:
        return []
    return [segment_label(l.from_station, l.to_station) for l in path]


def _means_by_label(path: Sequence[LegRecord] | None, labels: Sequence[str]) -> list[float | None]:
    sums: dict[str, tuple[float, int]] = {}
    for leg in path or ():
        if leg.leg_minutes is None:
            continue
        label = segment_label(leg.from_station, leg.to_station)
        total, count = sums.get(label, (0.0, 0))
        sums[label] = (total + leg.leg_minutes, count + 1)
    means: list[float | None] = []
    for label in labels:
        total, count = sums.get(label, (0.0, 0))
        means.append(round(total / count, 2) if count else None)
    return means


def compare_datasets(
    start_station: str,
    legs_a: Sequence[LegRecord],
    legs_b: Sequence[LegRecord],
    meta_a: Mapping[str, VehicleMeta],
    meta_b: Mapping[str, VehicleMeta],
) -> list[CompareSeries]:
    """Return one CompareSeries per destination reached from start_station in A or B."""
    paths_a = extract_paths(start_station, legs_a, meta_a)
    paths_b = extract_paths(start_station, legs_b, meta_b)

    series: list[CompareSeries] = []
    for dest in dict.fromkeys([*paths_a, *paths_b]):
        labels = list(dict.fromkeys(_labels(paths_a.get(dest)) + _labels(paths_b.get(dest))))
        series.append(CompareSeries(
            dest=dest,
            labels=labels,
            avg_a=_means_by_label(paths_a.get(dest), labels),
            avg_b=_means_by_label(paths_b.get(dest), labels),
        ))
    logger.info("Compared %d destinations from %s.", len(series), start_station)
    return series
