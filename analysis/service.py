"""
Shared analysis entry points used by both the CLI (cli.py) and the HTTP API
(api/main.py).

Each function loads what it needs from one or two dataset directories,
runs the core analysis, and returns plain records; writing result files is
a separate step (write_* below) so the API can return the same data without
touching disk.

Modes:
  analyze  — legs sorted by train + segment statistics for one dataset
  audit    — data quality counters, outliers, continuity for one dataset
  compare  — per-destination duration alignment of two datasets
  through  — through trains via → hub → dest, or, when there are none,
             best transfer pairs at the hub
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal

from config import HUB_STATION, OUT_DIR
from analysis.audit import audit_legs
from analysis.compare import compare_datasets
from analysis.errors import ConfigError, DataNotFound
from analysis.models import AuditReport, CompareSeries, LegRecord, SegmentStat, StopRecord, VehicleMeta
from analysis.normalize import normalize_legs, parse_stop_rows, parse_vehicle_meta
from analysis.segments import aggregate_segments
from ingestion.tables import (
    LEGS_FILE,
    STOPS_FILE,
    TRAINS_FILE,
    read_optional_rows,
    write_json,
    write_rows,
)
from routing.through import ThroughResult, find_through
from routing.transfer import ORDER_KEYS, TransferPair, find_transfers, order_transfers

logger = logging.getLogger(__name__)

LEGS_BY_TRAIN_COLUMNS = [
    "train_id", "seq", "from_station", "to_station", "leg_minutes", "ka_name", "route_name", "color",
]
SEGMENT_STAT_COLUMNS = ["from_station", "to_station", "count", "min", "max", "avg"]
THROUGH_COLUMNS = [
    "train_id", "ka_name", "route_name", "depart_via_time", "via_index", "hub_time", "hub_index",
]
TRANSFER_COLUMNS = [
    "from_train_id", "to_train_id", "depart_via_time", "arrive_hub_time", "depart_hub_time",
    "arrive_dest_time", "wait_min", "from_ka_name", "from_route_name", "to_ka_name", "to_route_name",
]


@dataclass(frozen=True)
class DatasetAnalysis:
    legs: list[LegRecord]
    segments: list[SegmentStat]


@dataclass(frozen=True)
class ConnectionPlan:
    """Through trains, or transfer pairs when there are none."""

    via: str
    hub: str
    dest: str
    kind: Literal["through", "transfer", "none"]
    through: list[ThroughResult] = field(default_factory=list)
    transfers: list[TransferPair] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_legs(dataset_dir: Path) -> list[LegRecord]:
    """
    Legs of one dataset: legs.csv when present, else derived from stops.csv.

    Raises:
        DataNotFound: If the directory has neither file.
    """
    leg_rows = read_optional_rows(dataset_dir / LEGS_FILE)
    stop_rows = None if leg_rows is not None else read_optional_rows(dataset_dir / STOPS_FILE)
    try:
        legs = normalize_legs(leg_rows, stop_rows)
    except DataNotFound as exc:
        raise DataNotFound(f"legs.csv or stops.csv not found in {dataset_dir}") from exc
    logger.info(
        "Loaded %d legs from %s (%s).",
        len(legs), dataset_dir, "legs.csv" if leg_rows is not None else "derived from stops.csv",
    )
    return legs


def load_stops(dataset_dir: Path) -> list[StopRecord]:
    """
    Raises:
        DataNotFound: If the directory has no stops.csv.
    """
    rows = read_optional_rows(dataset_dir / STOPS_FILE)
    if rows is None:
        raise DataNotFound(f"stops.csv not found in {dataset_dir}")
    stops = parse_stop_rows(rows)
    logger.info("Loaded %d stops from %s.", len(stops), dataset_dir)
    return stops


def load_vehicle_meta(dataset_dir: Path) -> dict[str, VehicleMeta]:
    rows = read_optional_rows(dataset_dir / TRAINS_FILE)
    if rows is None:
        logger.warning("No trains.csv in %s; train names and destinations will be empty.", dataset_dir)
    return parse_vehicle_meta(rows)


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

def analyze_dataset(dataset_dir: Path) -> DatasetAnalysis:
    legs = load_legs(dataset_dir)
    ordered = sorted(legs, key=lambda l: (l.train_id, l.seq))
    return DatasetAnalysis(legs=ordered, segments=aggregate_segments(legs))


def audit_dataset(dataset_dir: Path) -> AuditReport:
    return audit_legs(load_legs(dataset_dir))


def compare_dirs(dir_a: Path, dir_b: Path, start_station: str | None) -> list[CompareSeries]:
    """
    Raises:
        ConfigError: If no start station is given.
        DataNotFound: If either directory has no legs or stops.
    """
    if not start_station:
        raise ConfigError("compare requires a start station (--start).")
    return compare_datasets(
        start_station,
        load_legs(dir_a),
        load_legs(dir_b),
        load_vehicle_meta(dir_a),
        load_vehicle_meta(dir_b),
    )


def resolve_pair(
    a: Path | None = None,
    b: Path | None = None,
    pre: Path | None = None,
    post: Path | None = None,
) -> tuple[Path, Path]:
    """
    Pick the (pre-hub, post-hub) dataset pair: pre/post when both are given,
    otherwise a/b.

    Raises:
        ConfigError: If neither pair is complete.
    """
    if pre and post:
        return pre, post
    if a and b:
        return a, b
    raise ConfigError("through requires both --a and --b, or both --pre and --post.")


def _dedupe_stops(stops: list[StopRecord]) -> list[StopRecord]:
    seen: set[tuple[str, int]] = set()
    unique: list[StopRecord] = []
    for stop in stops:
        key = (stop.train_id, stop.stop_index)
        if key in seen:
            continue
        seen.add(key)
        unique.append(stop)
    return unique


def plan_connections(
    pre_dir: Path,
    post_dir: Path,
    via: str,
    dest: str,
    hub: str = HUB_STATION,
    max_wait: float | None = None,
    order: str = "depart",
    descending: bool = False,
    limit: int = 0,
) -> ConnectionPlan:
    """
    Through trains via → hub → dest over both datasets; when none exist,
    transfer pairs with inbound legs from pre_dir and outbound legs from
    post_dir.  limit=0 returns every result.

    Raises:
        ConfigError: If via/dest are empty or order is unknown.
        DataNotFound: If either directory has no stops.csv.
    """
    if not via or not dest:
        raise ConfigError("through requires --via and --to.")
    if order not in ORDER_KEYS:
        raise ConfigError(f"Unknown order '{order}'; expected one of {', '.join(ORDER_KEYS)}.")

    pre_stops = load_stops(pre_dir)
    post_stops = load_stops(post_dir)
    meta = {**load_vehicle_meta(pre_dir), **load_vehicle_meta(post_dir)}

    through = find_through(_dedupe_stops(pre_stops + post_stops), meta, via, dest, hub)
    if through:
        if order == "depart" and descending:
            through = sorted(through, key=lambda r: r.depart_via_time, reverse=True)
        return ConnectionPlan(
            via=via, hub=hub, dest=dest, kind="through",
            through=through[:limit] if limit > 0 else through,
        )

    pairs = order_transfers(
        find_transfers(pre_stops, post_stops, meta, via, dest, hub, max_wait),
        order=order,
        descending=descending,
    )
    return ConnectionPlan(
        via=via, hub=hub, dest=dest, kind="transfer" if pairs else "none",
        transfers=pairs[:limit] if limit > 0 else pairs,
    )


# ---------------------------------------------------------------------------
# Output files
# ---------------------------------------------------------------------------

def new_run_dir(base: Path = OUT_DIR) -> Path:
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    run_dir = base / f"analyze-{stamp}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def write_analysis(run_dir: Path, result: DatasetAnalysis) -> list[Path]:
    return [
        write_rows(run_dir / "legs_by_train.csv", (asdict(l) for l in result.legs), LEGS_BY_TRAIN_COLUMNS),
        write_rows(run_dir / "segment_stats.csv", (asdict(s) for s in result.segments), SEGMENT_STAT_COLUMNS),
    ]


def write_audit(run_dir: Path, dataset_dir: Path, report: AuditReport) -> list[Path]:
    return [
        write_json(run_dir / "audit_summary.json", {"dir": str(dataset_dir), **asdict(report.summary)}),
        write_rows(run_dir / "outliers.csv", (asdict(o) for o in report.outliers), ["segment", "value"]),
        write_rows(
            run_dir / "train_continuity.csv", (asdict(c) for c in report.continuity), ["train_id", "breaks"],
        ),
        write_rows(
            run_dir / "top_segments.csv", (asdict(s) for s in report.top_segments), ["segment", "avg", "count"],
        ),
    ]


def _file_token(name: str) -> str:
    return "_".join(name.split())


def write_compare(run_dir: Path, start_station: str, series: list[CompareSeries]) -> list[Path]:
    paths: list[Path] = []
    for s in series:
        rows = [
            {"segment": label, "avg_a": a, "avg_b": b}
            for label, a, b in zip(s.labels, s.avg_a, s.avg_b)
        ]
        name = f"compare_{_file_token(start_station)}__{_file_token(s.dest)}.csv"
        paths.append(write_rows(run_dir / name, rows, ["segment", "avg_a", "avg_b"]))
    return paths


def write_plan(run_dir: Path, plan: ConnectionPlan) -> list[Path]:
    if plan.kind == "through":
        return [write_rows(run_dir / "through.csv", (asdict(r) for r in plan.through), THROUGH_COLUMNS)]
    return [write_rows(run_dir / "transfers.csv", (asdict(p) for p in plan.transfers), TRANSFER_COLUMNS)]
