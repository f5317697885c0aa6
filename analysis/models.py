"""
Typed records shared by the statistics and routing tracks.

All records are immutable values built once per run from the loaded CSV
rows.  Durations and minute-of-day values are floats (the scraper keeps
seconds as fractional minutes) or None when the source field is missing or
unparsable; None is always excluded from statistics, never treated as 0.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StopRecord:
    """One scheduled call of a train at a station (a row of stops.csv)."""

    train_id: str
    stop_index: int
    station_name: str
    station_key: str          # folded station_name, used for matching only
    time_est: str             # HH:MM:SS as published
    time_min: float | None    # minutes of day, 0 ≤ time_min < 1440
    ka_name: str = ""
    route_name: str = ""
    color: str = ""
    transit_station: bool = False
    transit_colors: str = ""  # "|"-joined line colours


@dataclass(frozen=True)
class LegRecord:
    """One hop of a train between two consecutive stops."""

    train_id: str
    seq: int                  # stop index of the origin stop
    from_station: str
    to_station: str
    leg_minutes: float | None
    ka_name: str = ""
    route_name: str = ""
    color: str = ""


@dataclass(frozen=True)
class VehicleMeta:
    """Per-train summary from trains.csv."""

    train_id: str
    dest: str = ""
    ka_name: str = ""
    route_name: str = ""
    color: str = ""


@dataclass(frozen=True)
class SegmentStat:
    from_station: str
    to_station: str
    count: int                # non-null samples only
    min: float | None
    max: float | None
    avg: float | None         # rounded to 2 decimals


@dataclass(frozen=True)
class AuditSummary:
    total_legs: int
    null_legs: int
    negative_legs: int
    over60min_legs: int
    outlier_count: int


@dataclass(frozen=True)
class Outlier:
    segment: str              # "<from>→<to>"
    value: float


@dataclass(frozen=True)
class ContinuityRow:
    train_id: str
    breaks: int


@dataclass(frozen=True)
class SegmentAverage:
    segment: str
    avg: float
    count: int


@dataclass(frozen=True)
class AuditReport:
    summary: AuditSummary
    outliers: list[Outlier]
    continuity: list[ContinuityRow]
    top_segments: list[SegmentAverage]


@dataclass(frozen=True)
class CompareSeries:
    """Per-destination alignment of two datasets' mean leg durations."""

    dest: str
    labels: list[str]
    avg_a: list[float | None]
    avg_b: list[float | None]
