"""
Scrape one station's schedule window into a dataset directory.

Steps:
  1. Validate the station id against the station list (must exist and be
     enabled).
  2. Fetch the station's schedule for [time_from, time_to] → trains.csv.
  3. Fetch every listed train's stop list, at most FETCH_CONCURRENCY
     requests in flight → stops.csv and legs.csv.

A train whose stop list cannot be fetched is logged and left out; it never
aborts the rest of the batch.  Output lands in
    <out_dir>/<STATION>-<time_from>-<time_to>/
with characters that are invalid in Windows paths replaced by "-".
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from config import FETCH_CONCURRENCY
from analysis.normalize import hms_to_minutes, minutes_between
from ingestion.krl_api import KrlApiClient, ScheduleItem, TrainStop
from ingestion.tables import (
    LEG_COLUMNS,
    LEGS_FILE,
    STOP_COLUMNS,
    STOPS_FILE,
    TRAIN_COLUMNS,
    TRAINS_FILE,
    write_rows,
)

logger = logging.getLogger(__name__)

_UNSAFE_PATH_CHARS = re.compile(r'[:<>"/\\|?*]')


@dataclass
class ScrapeResult:
    out_dir: Path
    trains: int = 0
    stops: int = 0
    legs: int = 0
    failed_train_ids: list[str] = field(default_factory=list)


def sanitize_path_segment(value: str) -> str:
    return _UNSAFE_PATH_CHARS.sub("-", value).strip()


def dataset_dir_name(station_id: str, time_from: str, time_to: str) -> str:
    return "-".join(sanitize_path_segment(v) for v in (station_id, time_from, time_to))


def train_rows(
    station_id: str,
    train: ScheduleItem,
    stops: list[TrainStop],
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Build the stops.csv and legs.csv rows for one train's stop list."""
    header_station = stops[0].station_name if stops else ""
    stop_rows: list[dict[str, Any]] = []
    leg_rows: list[dict[str, Any]] = []
    for i, stop in enumerate(stops):
        stop_min = hms_to_minutes(stop.time_est)
        stop_rows.append({
            "train_id": train.train_id,
            "stop_index": i,
            "station_name": stop.station_name,
            "time_est": stop.time_est,
            "time_est_min": stop_min,
            "transit_station": "true" if stop.transit_station else "false",
            "transit_colors": stop.transit_colors,
            "ka_name": train.ka_name,
            "route_name": train.route_name,
            "color": train.color,
            "query_station": station_id,
            "header_station": header_station,
        })
        if i == 0:
            continue
        prev = stops[i - 1]
        prev_min = hms_to_minutes(prev.time_est)
        leg_rows.append({
            "train_id": train.train_id,
            "from_index": i - 1,
            "from_station": prev.station_name,
            "to_index": i,
            "to_station": stop.station_name,
            "leg_minutes": (
                minutes_between(prev_min, stop_min)
                if prev_min is not None and stop_min is not None else None
            ),
            "ka_name": train.ka_name,
            "route_name": train.route_name,
            "color": train.color,
        })
    return stop_rows, leg_rows


async def _validate_station(api: KrlApiClient, station_id: str) -> None:
    stations = await api.fetch_stations()
    match = next((s for s in stations if s.sta_id.upper() == station_id.upper()), None)
    if match is None:
        enabled = [f"{s.sta_id} ({s.sta_name})" for s in stations if s.fg_enable == 1]
        suggestions = ", ".join(enabled[:20])
        logger.error("Station id '%s' not found in krl-station.", station_id)
        if suggestions:
            logger.error("Valid station ids include: %s", suggestions)
        raise ValueError(f"Station '{station_id}' not found.")
    if match.fg_enable != 1:
        raise ValueError(f"Station '{station_id}' ({match.sta_name}) is disabled (fg_enable=0).")


async def scrape_station(
    api: KrlApiClient,
    station_id: str,
    time_from: str,
    time_to: str,
    out_dir: Path,
    concurrency: int = FETCH_CONCURRENCY,
) -> ScrapeResult:
    """
    Scrape one station's schedule window and write trains/stops/legs CSVs.

    Raises:
        ValueError: If the station is unknown or disabled.
        httpx.HTTPError: If the station list or schedule cannot be fetched.
    """
    await _validate_station(api, station_id)

    run_dir = out_dir / dataset_dir_name(station_id, time_from, time_to)
    logger.info("Scraping station=%s from=%s to=%s ...", station_id, time_from, time_to)
    schedule = await api.fetch_schedule(station_id, time_from, time_to)

    trains = [
        {
            "query_station": station_id,
            "time_from": time_from,
            "time_to": time_to,
            **item.model_dump(include=set(TRAIN_COLUMNS)),
        }
        for item in schedule
    ]

    semaphore = asyncio.Semaphore(max(1, concurrency))
    done = 0

    async def fetch_one(item: ScheduleItem) -> list[TrainStop]:
        nonlocal done
        async with semaphore:
            try:
                return await api.fetch_train(item.train_id)
            finally:
                done += 1
                logger.debug("Fetched %d/%d trains.", done, len(schedule))

    outcomes = await asyncio.gather(
        *(fetch_one(item) for item in schedule), return_exceptions=True
    )

    result = ScrapeResult(out_dir=run_dir, trains=len(trains))
    stops_all: list[dict[str, Any]] = []
    legs_all: list[dict[str, Any]] = []
    for item, outcome in zip(schedule, outcomes):
        if isinstance(outcome, Exception):
            logger.warning(
                "Failed to fetch train %s (%s - %s - %s): %s",
                item.train_id, item.ka_name, item.route_name, item.color, outcome,
            )
            result.failed_train_ids.append(item.train_id)
            continue
        stop_rows, leg_rows = train_rows(station_id, item, outcome)
        stops_all.extend(stop_rows)
        legs_all.extend(leg_rows)

    write_rows(run_dir / TRAINS_FILE, trains, TRAIN_COLUMNS)
    write_rows(run_dir / STOPS_FILE, stops_all, STOP_COLUMNS)
    write_rows(run_dir / LEGS_FILE, legs_all, LEG_COLUMNS)

    result.stops = len(stops_all)
    result.legs = len(legs_all)
    logger.info(
        "Scrape complete: %d trains, %d stops, %d legs (%d failed) in %s.",
        result.trains, result.stops, result.legs, len(result.failed_train_ids), run_dir.resolve(),
    )
    return result
