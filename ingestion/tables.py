"""
Tabular file access for scraped datasets and analysis output.

A dataset directory (one scrape run) may contain:
  trains.csv  → per-train summary from the schedule endpoint
  stops.csv   → one row per train stop, with ETA
  legs.csv    → one row per consecutive stop pair, with duration

Files are read as all-string rows (missing cells → ""); typing is the
job of analysis.normalize.  Writers take the column order explicitly so
output files keep a stable header.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

TRAINS_FILE = "trains.csv"
STOPS_FILE = "stops.csv"
LEGS_FILE = "legs.csv"

TRAIN_COLUMNS = [
    "query_station", "time_from", "time_to", "train_id", "ka_name",
    "route_name", "dest", "color", "time_est", "dest_time",
]
STOP_COLUMNS = [
    "train_id", "stop_index", "station_name", "time_est", "time_est_min",
    "transit_station", "transit_colors", "ka_name", "route_name", "color",
    "query_station", "header_station",
]
LEG_COLUMNS = [
    "train_id", "from_index", "from_station", "to_index", "to_station",
    "leg_minutes", "ka_name", "route_name", "color",
]


def read_rows(path: Path) -> list[dict[str, str]]:
    """Read a CSV file into a list of string dicts.  An empty file yields []."""
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return []
    logger.debug("Read %d rows from %s.", len(df), path)
    return df.to_dict(orient="records")


def read_optional_rows(path: Path) -> list[dict[str, str]] | None:
    """read_rows, or None when the file does not exist."""
    if not path.exists():
        return None
    return read_rows(path)


def write_rows(
    path: Path,
    rows: Iterable[Mapping[str, Any]],
    columns: Sequence[str],
) -> Path:
    """
    Write rows to CSV with the given header order.  None is written as an
    empty cell; columns missing from a row are left empty.
    """
    df = pd.DataFrame(list(rows), columns=list(columns), dtype=object)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info("Wrote %d rows to %s.", len(df), path)
    return path


def write_json(path: Path, payload: Mapping[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Wrote %s.", path)
    return path
