"""
FastAPI application entry point.

Read-only analysis over dataset directories under DATA_DIR (the same
operations as the CLI, via analysis.service), plus a guarded trigger for
scraping a new dataset.

Endpoints (v1):
  GET  /health
  GET  /analyze?dir=<dataset>
  GET  /audit?dir=<dataset>
  GET  /compare?a=<dataset>&b=<dataset>&start=<station>
  GET  /through?pre=<dataset>&post=<dataset>&via=<station>&to=<station>
               [&hub=][&order=depart|wait][&desc=][&maxwait=][&limit=]
  POST /ingest/scrape?station=<id>&time_from=HH:MM&time_to=HH:MM

Dataset names are paths relative to DATA_DIR; anything resolving outside
DATA_DIR is rejected.
"""

import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader

from api.schemas import (
    AnalyzeResponse,
    AuditResponse,
    CompareResponse,
    ConnectionsResponse,
    HealthResponse,
    ScrapeResponse,
)
from config import (
    CORS_ORIGINS,
    DATA_DIR,
    DEFAULT_TIME_FROM,
    DEFAULT_TIME_TO,
    HUB_STATION,
    INGEST_API_KEY,
)
from analysis import service
from analysis.errors import ConfigError, DataNotFound
from ingestion.krl_api import KrlApiClient
from ingestion.scrape import scrape_station
from ingestion.tables import LEGS_FILE, STOPS_FILE

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_ingest_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _require_ingest_key(key: str | None = Security(_ingest_key_header)) -> None:
    """
    Optional API-key guard for the ingest endpoint.

    If INGEST_API_KEY is not set the endpoint is open (local dev / testing).
    If it is set, the request must include the matching X-API-Key header.
    """
    if not INGEST_API_KEY:
        return  # no key configured → open
    if key != INGEST_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid or missing X-API-Key header.")


def _dataset_path(name: str) -> Path:
    """Resolve a dataset name under DATA_DIR, rejecting paths that escape it."""
    root = DATA_DIR.resolve()
    path = (root / name).resolve()
    if path != root and root not in path.parents:
        raise HTTPException(status_code=422, detail=f"Dataset '{name}' is outside the data directory.")
    return path


def _list_datasets() -> list[str]:
    if not DATA_DIR.is_dir():
        return []
    return sorted(
        p.name for p in DATA_DIR.iterdir()
        if p.is_dir() and ((p / LEGS_FILE).exists() or (p / STOPS_FILE).exists())
    )


def _analysis_errors(exc: Exception) -> HTTPException:
    if isinstance(exc, ConfigError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=404, detail=str(exc))


app = FastAPI(
    title="KRL Schedule Analyzer",
    description="Data quality, dataset comparison and through/transfer planning for KRL schedules.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check listing the datasets available for analysis."""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "data_dir": str(DATA_DIR),
        "datasets": _list_datasets(),
        "hub_station": HUB_STATION,
    }


@app.get("/analyze", response_model=AnalyzeResponse)
async def analyze(dir: str = Query(..., description="Dataset directory under DATA_DIR")) -> AnalyzeResponse:
    """Legs sorted by train and per-segment duration statistics."""
    try:
        result = service.analyze_dataset(_dataset_path(dir))
    except (ConfigError, DataNotFound) as exc:
        raise _analysis_errors(exc)
    return {
        "dir": dir,
        "legs": [asdict(l) for l in result.legs],
        "segments": [asdict(s) for s in result.segments],
    }


@app.get("/audit", response_model=AuditResponse)
async def audit(dir: str = Query(..., description="Dataset directory under DATA_DIR")) -> AuditResponse:
    """Data quality counters, z-score outliers and per-train continuity."""
    try:
        report = service.audit_dataset(_dataset_path(dir))
    except (ConfigError, DataNotFound) as exc:
        raise _analysis_errors(exc)
    return {"dir": dir, **asdict(report)}


@app.get("/compare", response_model=CompareResponse)
async def compare(
    a: str = Query(..., description="Dataset A"),
    b: str = Query(..., description="Dataset B"),
    start: str = Query("", description="Start station (exact name)"),
) -> CompareResponse:
    """Per-destination mean leg durations of two datasets, aligned by hop."""
    try:
        series = service.compare_dirs(_dataset_path(a), _dataset_path(b), start)
    except (ConfigError, DataNotFound) as exc:
        raise _analysis_errors(exc)
    return {"start": start, "series": [asdict(s) for s in series]}


@app.get("/through", response_model=ConnectionsResponse)
async def through(
    via: str = Query(..., description="Boarding station"),
    to: str = Query(..., description="Destination station"),
    pre: str | None = Query(None, description="Dataset for via → hub"),
    post: str | None = Query(None, description="Dataset for hub → destination"),
    a: str | None = Query(None),
    b: str | None = Query(None),
    hub: str = Query(HUB_STATION),
    order: str = Query("depart", description="depart | wait"),
    desc: bool = Query(False),
    maxwait: float | None = Query(None, ge=0, description="Max wait at the hub (minutes)"),
    limit: int = Query(0, ge=0, description="0 = no limit"),
) -> ConnectionsResponse:
    """Through trains via → hub → destination, or best transfers at the hub."""
    try:
        pre_dir, post_dir = service.resolve_pair(
            a=_dataset_path(a) if a else None,
            b=_dataset_path(b) if b else None,
            pre=_dataset_path(pre) if pre else None,
            post=_dataset_path(post) if post else None,
        )
        plan = service.plan_connections(
            pre_dir, post_dir, via, to,
            hub=hub, max_wait=maxwait, order=order.lower(), descending=desc, limit=limit,
        )
    except (ConfigError, DataNotFound) as exc:
        raise _analysis_errors(exc)
    return asdict(plan)


@app.post("/ingest/scrape", response_model=ScrapeResponse)
async def trigger_scrape(
    station: str = Query(..., min_length=2, description="Station id, e.g. THB"),
    time_from: str = Query(DEFAULT_TIME_FROM),
    time_to: str = Query(DEFAULT_TIME_TO),
    _: None = Depends(_require_ingest_key),
) -> ScrapeResponse:
    """Scrape one station's schedule window into a new dataset under DATA_DIR."""
    try:
        async with KrlApiClient() as api:
            result = await scrape_station(api, station, time_from, time_to, DATA_DIR)
    except ValueError as exc:
        logger.error("Scrape of %s rejected: %s", station, exc)
        raise HTTPException(status_code=409, detail=str(exc))
    except httpx.HTTPError as exc:
        logger.error("Scrape of %s failed: %s", station, exc)
        raise HTTPException(status_code=502, detail=f"Schedule API error: {exc}")
    return {
        "status": "ok",
        "dataset": result.out_dir.name,
        "trains": result.trains,
        "stops": result.stops,
        "legs": result.legs,
        "failed_train_ids": result.failed_train_ids,
    }
