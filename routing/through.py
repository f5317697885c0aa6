"""
Through-service detection: trains that run via → hub → destination
without a change of train.

A train qualifies when, in its stop order (sorted by stop_index):
    index(via) < index(hub) < index(destination)
where each index is the first occurrence of the station.  A train missing
any of the three stations does not qualify.  Station names are compared on
their folded keys (see analysis.normalize.fold_station), so "palmerah" and
"Palmerah" match.

Results are ordered by departure time at the via station; the times are
zero-padded HH:MM:SS strings, so string order is time order.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from analysis.models import StopRecord, VehicleMeta
from analysis.normalize import fold_station, group_stops_by_train

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThroughResult:
    train_id: str
    ka_name: str
    route_name: str
    depart_via_time: str
    via_index: int
    hub_time: str
    hub_index: int


def station_position(seq: Sequence[StopRecord], station_key: str) -> int:
    """Position of the first stop whose folded name equals station_key, or -1."""
    return next((i for i, s in enumerate(seq) if s.station_key == station_key), -1)


def display_names(
    train_id: str,
    meta: Mapping[str, VehicleMeta],
    seq: Sequence[StopRecord],
) -> tuple[str, str]:
    """(ka_name, route_name) from trains.csv, else from the train's own stop rows."""
    vehicle = meta.get(train_id)
    if vehicle is not None:
        return vehicle.ka_name, vehicle.route_name
    if seq:
        return seq[0].ka_name, seq[0].route_name
    return "", ""


def find_through(
    stops: Iterable[StopRecord],
    meta: Mapping[str, VehicleMeta],
    via: str,
    dest: str,
    hub: str,
) -> list[ThroughResult]:
    """Return every train passing via → hub → dest, earliest via departure first."""
    via_key, hub_key, dest_key = fold_station(via), fold_station(hub), fold_station(dest)

    results: list[ThroughResult] = []
    for train_id, seq in group_stops_by_train(stops).items():
        via_idx = station_position(seq, via_key)
        if via_idx < 0:
            continue
        hub_idx = station_position(seq, hub_key)
        if hub_idx <= via_idx:
            continue
        dest_idx = station_position(seq, dest_key)
        if dest_idx <= hub_idx:
            continue

        ka_name, route_name = display_names(train_id, meta, seq)
        results.append(ThroughResult(
            train_id=train_id,
            ka_name=ka_name,
            route_name=route_name,
            depart_via_time=seq[via_idx].time_est,
            via_index=seq[via_idx].stop_index,
            hub_time=seq[hub_idx].time_est,
            hub_index=seq[hub_idx].stop_index,
        ))

    results.sort(key=lambda r: r.depart_via_time)
    logger.info("Found %d through trains %s → %s → %s.", len(results), via, hub, dest)
    return results
