"""
Row normalisation: raw CSV rows → typed StopRecord / LegRecord / VehicleMeta.

Rows arrive as dicts of strings (see ingestion.tables.read_rows).  Parsing
never raises on bad values:
  - a non-numeric stop_index / from_index degrades to 0 (or the row position),
  - an unparsable time or duration degrades to None.

When a dataset has no legs.csv, legs are derived from consecutive stops of
the same train:

    leg_minutes = to_min − from_min, + 1440 when negative (crossed midnight)

so every derived duration lies in [0, 1440).

Station names are folded once here (casefold, diacritics stripped,
whitespace collapsed) into StopRecord.station_key; the routing track
compares keys instead of lower-casing at every comparison site.
"""

import logging
import math
import unicodedata
from collections import defaultdict
from typing import Iterable, Mapping

from analysis.errors import DataNotFound
from analysis.models import LegRecord, StopRecord, VehicleMeta

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

Row = Mapping[str, str]


# ---------------------------------------------------------------------------
# Scalar parsing
# ---------------------------------------------------------------------------

def hms_to_minutes(hms: str | None) -> float | None:
    """
    Convert HH:MM or HH:MM:SS to minutes of day (seconds as a fraction).
    Hours ≥ 24 wrap into the next day.  Returns None on parse failure.
    """
    if not hms:
        return None
    parts = hms.strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        h = int(parts[0])
        m = int(parts[1])
        s = int(parts[2]) if len(parts) == 3 else 0
    except ValueError:
        return None
    return _as_number((h * 60 + m + s / 60) % MINUTES_PER_DAY)


def minutes_between(from_min: float, to_min: float) -> float:
    """Forward distance on the 24h clock from from_min to to_min."""
    return _as_number((to_min - from_min) % MINUTES_PER_DAY)


def fold_station(name: str | None) -> str:
    """Canonical matching key for a station name ("Tanah  Abáng" → "tanah abang")."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFKD", name)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


def to_number(value: str | None) -> float | None:
    """Parse a numeric CSV cell; empty, non-numeric and non-finite → None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return _as_number(number)


def to_int(value: str | None, default: int = 0) -> int:
    number = to_number(value)
    if number is None:
        return default
    return int(number)


def _as_number(value: float) -> float:
    # Keep integral values as int so they serialise as "5" rather than "5.0".
    return int(value) if float(value).is_integer() else value


# ---------------------------------------------------------------------------
# Row → record
# ---------------------------------------------------------------------------

def parse_stop_rows(rows: Iterable[Row]) -> list[StopRecord]:
    """
    Map stops.csv rows to StopRecord.

    time_min prefers the precomputed time_est_min column and falls back to
    parsing time_est when that column is empty or malformed.
    """
    stops: list[StopRecord] = []
    for row in rows:
        time_est = (row.get("time_est") or "").strip()
        time_min = to_number(row.get("time_est_min"))
        if time_min is None:
            time_min = hms_to_minutes(time_est)
        else:
            time_min = _as_number(time_min % MINUTES_PER_DAY)
        station_name = (row.get("station_name") or "").strip()
        stops.append(StopRecord(
            train_id=(row.get("train_id") or "").strip(),
            stop_index=to_int(row.get("stop_index")),
            station_name=station_name,
            station_key=fold_station(station_name),
            time_est=time_est,
            time_min=time_min,
            ka_name=row.get("ka_name") or "",
            route_name=row.get("route_name") or "",
            color=row.get("color") or "",
            transit_station=str(row.get("transit_station") or "").strip().lower() in ("true", "1"),
            transit_colors=row.get("transit_colors") or "",
        ))
    return stops


def parse_leg_rows(rows: Iterable[Row]) -> list[LegRecord]:
    """Map legs.csv rows to LegRecord.  A malformed from_index falls back to the row position."""
    legs: list[LegRecord] = []
    for position, row in enumerate(rows):
        legs.append(LegRecord(
            train_id=(row.get("train_id") or "").strip(),
            seq=to_int(row.get("from_index"), default=position),
            from_station=(row.get("from_station") or "").strip(),
            to_station=(row.get("to_station") or "").strip(),
            leg_minutes=to_number(row.get("leg_minutes")),
            ka_name=row.get("ka_name") or "",
            route_name=row.get("route_name") or "",
            color=row.get("color") or "",
        ))
    return legs


def parse_vehicle_meta(rows: Iterable[Row] | None) -> dict[str, VehicleMeta]:
    """
    Map trains.csv rows to {train_id: VehicleMeta}.

    Rows without a train_id are skipped; a later row for the same train
    replaces an earlier one.  None (no trains.csv) yields an empty mapping.
    """
    meta: dict[str, VehicleMeta] = {}
    if rows is None:
        return meta
    for row in rows:
        train_id = (row.get("train_id") or "").strip()
        if not train_id:
            continue
        meta[train_id] = VehicleMeta(
            train_id=train_id,
            dest=(row.get("dest") or "").strip(),
            ka_name=row.get("ka_name") or "",
            route_name=row.get("route_name") or "",
            color=row.get("color") or "",
        )
    return meta


# ---------------------------------------------------------------------------
# Grouping and leg derivation
# ---------------------------------------------------------------------------

def group_stops_by_train(stops: Iterable[StopRecord]) -> dict[str, list[StopRecord]]:
    """Group stops by train_id (first-seen order), each list sorted by stop_index."""
    grouped: dict[str, list[StopRecord]] = defaultdict(list)
    for stop in stops:
        grouped[stop.train_id].append(stop)
    for seq in grouped.values():
        seq.sort(key=lambda s: s.stop_index)
    return dict(grouped)


def group_legs_by_train(legs: Iterable[LegRecord]) -> dict[str, list[LegRecord]]:
    """Group legs by train_id (first-seen order), each list sorted by seq."""
    grouped: dict[str, list[LegRecord]] = defaultdict(list)
    for leg in legs:
        grouped[leg.train_id].append(leg)
    for seq in grouped.values():
        seq.sort(key=lambda l: l.seq)
    return dict(grouped)


def derive_legs(stops: Iterable[StopRecord]) -> list[LegRecord]:
    """
    Build one LegRecord per adjacent stop pair of each train.

    Duration is None when either stop has no minute value.  Display
    metadata is taken from the origin stop.
    """
    legs: list[LegRecord] = []
    for train_id, seq in group_stops_by_train(stops).items():
        for a, b in zip(seq, seq[1:]):
            duration = None
            if a.time_min is not None and b.time_min is not None:
                duration = minutes_between(a.time_min, b.time_min)
            legs.append(LegRecord(
                train_id=train_id,
                seq=a.stop_index,
                from_station=a.station_name,
                to_station=b.station_name,
                leg_minutes=duration,
                ka_name=a.ka_name,
                route_name=a.route_name,
                color=a.color,
            ))
    logger.debug("Derived %d legs from stop rows.", len(legs))
    return legs


def normalize_legs(
    leg_rows: Iterable[Row] | None,
    stop_rows: Iterable[Row] | None,
) -> list[LegRecord]:
    """
    Return the LegRecords of one dataset.

    A leg dataset, when present, is used directly; otherwise legs are
    derived from the stop dataset.

    Raises:
        DataNotFound: If neither dataset is present.
    """
    if leg_rows is not None:
        return parse_leg_rows(leg_rows)
    if stop_rows is not None:
        return derive_legs(parse_stop_rows(stop_rows))
    raise DataNotFound("Neither legs.csv nor stops.csv is available.")
