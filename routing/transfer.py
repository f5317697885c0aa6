"""
Transfer matching at the hub, used when no through train exists.

Two phases, both over fully loaded stop sets:

  1. Build
     inbound  — from the pre-hub dataset, each train's span via → hub
                (via before hub), keyed by arrival minute at the hub.
     outbound — from the post-hub dataset, each train's span hub → dest
                (hub before dest), keyed by departure minute at the hub,
                then sorted ascending by that minute.

  2. Query — for every inbound leg, binary-search the first outbound
     departure ≥ its hub arrival.  Candidates are that departure, the one
     after it, and the earliest departure of the day (the next-day
     wraparound when nothing departs later the same day).  Wait is

         (departure − arrival) mod 1440

     so it is never negative, even across midnight.  Candidates over the
     optional max wait are discarded; the smallest wait wins, the first
     candidate found on ties.  Inbound legs without a feasible candidate
     produce no pair.

Pairs come back ordered by wait, then by via departure time.
"""

import bisect
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from analysis.models import StopRecord, VehicleMeta
from analysis.normalize import fold_station, group_stops_by_train, minutes_between
from routing.through import display_names, station_position

logger = logging.getLogger(__name__)

ORDER_KEYS = ("depart", "wait")


@dataclass(frozen=True)
class InboundLeg:
    train_id: str
    depart_via_time: str
    arrive_hub_time: str
    arrive_hub_min: float
    ka_name: str = ""
    route_name: str = ""


@dataclass(frozen=True)
class OutboundLeg:
    train_id: str
    depart_hub_time: str
    arrive_dest_time: str | None
    depart_hub_min: float
    ka_name: str = ""
    route_name: str = ""


@dataclass(frozen=True)
class TransferPair:
    from_train_id: str
    to_train_id: str
    depart_via_time: str
    arrive_hub_time: str
    depart_hub_time: str
    arrive_dest_time: str | None
    wait_min: float
    from_ka_name: str = ""
    from_route_name: str = ""
    to_ka_name: str = ""
    to_route_name: str = ""


# ---------------------------------------------------------------------------
# Build phase
# ---------------------------------------------------------------------------

def build_inbound_legs(
    stops: Iterable[StopRecord],
    meta: Mapping[str, VehicleMeta],
    via: str,
    hub: str,
) -> list[InboundLeg]:
    via_key, hub_key = fold_station(via), fold_station(hub)
    legs: list[InboundLeg] = []
    for train_id, seq in group_stops_by_train(stops).items():
        via_idx = station_position(seq, via_key)
        hub_idx = station_position(seq, hub_key)
        if via_idx < 0 or hub_idx <= via_idx:
            continue
        a, b = seq[via_idx], seq[hub_idx]
        if not a.time_est or not b.time_est or a.time_min is None or b.time_min is None:
            logger.debug("Inbound train %s has no usable times at %s/%s.", train_id, via, hub)
            continue
        ka_name, route_name = display_names(train_id, meta, seq)
        legs.append(InboundLeg(
            train_id=train_id,
            depart_via_time=a.time_est,
            arrive_hub_time=b.time_est,
            arrive_hub_min=b.time_min,
            ka_name=ka_name,
            route_name=route_name,
        ))
    return legs


def build_outbound_legs(
    stops: Iterable[StopRecord],
    meta: Mapping[str, VehicleMeta],
    hub: str,
    dest: str,
) -> list[OutboundLeg]:
    """Outbound legs sorted ascending by hub departure minute."""
    hub_key, dest_key = fold_station(hub), fold_station(dest)
    legs: list[OutboundLeg] = []
    for train_id, seq in group_stops_by_train(stops).items():
        hub_idx = station_position(seq, hub_key)
        dest_idx = station_position(seq, dest_key)
        if hub_idx < 0 or dest_idx <= hub_idx:
            continue
        a, b = seq[hub_idx], seq[dest_idx]
        if not a.time_est or a.time_min is None:
            logger.debug("Outbound train %s has no usable time at %s.", train_id, hub)
            continue
        ka_name, route_name = display_names(train_id, meta, seq)
        legs.append(OutboundLeg(
            train_id=train_id,
            depart_hub_time=a.time_est,
            arrive_dest_time=b.time_est or None,
            depart_hub_min=a.time_min,
            ka_name=ka_name,
            route_name=route_name,
        ))
    legs.sort(key=lambda l: l.depart_hub_min)
    return legs


# ---------------------------------------------------------------------------
# Query phase
# ---------------------------------------------------------------------------

def nearest_departure(
    arrive_min: float,
    outbound: Sequence[OutboundLeg],
    departures: Sequence[float],
    max_wait: float | None = None,
) -> tuple[OutboundLeg, float] | None:
    """
    Pick the outbound leg with the smallest wrapped wait after arrive_min.

    departures must be the depart_hub_min values of outbound, in the same
    (ascending) order.
    """
    lo = bisect.bisect_left(departures, arrive_min)
    candidates: list[OutboundLeg] = []
    for idx in (lo, lo + 1, 0):
        if idx < len(outbound) and outbound[idx] not in candidates:
            candidates.append(outbound[idx])

    best: tuple[OutboundLeg, float] | None = None
    for leg in candidates:
        wait = minutes_between(arrive_min, leg.depart_hub_min)
        if max_wait is not None and wait > max_wait:
            continue
        if best is None or wait < best[1]:
            best = (leg, wait)
    return best


def match_transfers(
    inbound: Iterable[InboundLeg],
    outbound: Sequence[OutboundLeg],
    max_wait: float | None = None,
) -> list[TransferPair]:
    """Pair each inbound leg with its nearest feasible outbound departure."""
    departures = [leg.depart_hub_min for leg in outbound]
    pairs: list[TransferPair] = []
    for a in inbound:
        match = nearest_departure(a.arrive_hub_min, outbound, departures, max_wait)
        if match is None:
            continue
        b, wait = match
        pairs.append(TransferPair(
            from_train_id=a.train_id,
            to_train_id=b.train_id,
            depart_via_time=a.depart_via_time,
            arrive_hub_time=a.arrive_hub_time,
            depart_hub_time=b.depart_hub_time,
            arrive_dest_time=b.arrive_dest_time,
            wait_min=wait,
            from_ka_name=a.ka_name,
            from_route_name=a.route_name,
            to_ka_name=b.ka_name,
            to_route_name=b.route_name,
        ))
    pairs.sort(key=lambda p: (p.wait_min, p.depart_via_time))
    return pairs


def find_transfers(
    pre_stops: Sequence[StopRecord],
    post_stops: Sequence[StopRecord],
    meta: Mapping[str, VehicleMeta],
    via: str,
    dest: str,
    hub: str,
    max_wait: float | None = None,
) -> list[TransferPair]:
    """Build inbound legs from pre_stops and outbound legs from post_stops, then match."""
    inbound = build_inbound_legs(pre_stops, meta, via, hub)
    outbound = build_outbound_legs(post_stops, meta, hub, dest)
    pairs = match_transfers(inbound, outbound, max_wait)
    logger.info(
        "Matched %d of %d inbound legs (%d outbound) at %s%s.",
        len(pairs), len(inbound), len(outbound), hub,
        f" within {max_wait} min" if max_wait is not None else "",
    )
    return pairs


# ---------------------------------------------------------------------------
# Presentation ordering
# ---------------------------------------------------------------------------

def order_transfers(
    pairs: Sequence[TransferPair],
    order: str = "wait",
    descending: bool = False,
) -> list[TransferPair]:
    """
    Order by "wait" (ties: via departure ascending) or by "depart"
    (ties: wait ascending).  descending flips only the primary key.
    """
    if order == "depart":
        ordered = sorted(pairs, key=lambda p: p.wait_min)
        return sorted(ordered, key=lambda p: p.depart_via_time, reverse=descending)
    ordered = sorted(pairs, key=lambda p: p.depart_via_time)
    return sorted(ordered, key=lambda p: p.wait_min, reverse=descending)
