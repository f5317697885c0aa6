from __future__ import annotations
from typing import Literal
from pydantic import BaseModel


# ---------------------------------------------------------------------------
# GET /analyze
# ---------------------------------------------------------------------------

class LegOut(BaseModel):
    train_id: str
    seq: int
    from_station: str
    to_station: str
    leg_minutes: float | None
    ka_name: str
    route_name: str
    color: str


class SegmentStatOut(BaseModel):
    from_station: str
    to_station: str
    count: int
    min: float | None
    max: float | None
    avg: float | None


class AnalyzeResponse(BaseModel):
    dir: str
    legs: list[LegOut]
    segments: list[SegmentStatOut]


# ---------------------------------------------------------------------------
# GET /audit
# ---------------------------------------------------------------------------

class AuditSummaryOut(BaseModel):
    total_legs: int
    null_legs: int
    negative_legs: int
    over60min_legs: int
    outlier_count: int


class OutlierOut(BaseModel):
    segment: str
    value: float


class ContinuityOut(BaseModel):
    train_id: str
    breaks: int


class SegmentAverageOut(BaseModel):
    segment: str
    avg: float
    count: int


class AuditResponse(BaseModel):
    dir: str
    summary: AuditSummaryOut
    outliers: list[OutlierOut]
    continuity: list[ContinuityOut]
    top_segments: list[SegmentAverageOut]


# ---------------------------------------------------------------------------
# GET /compare
# ---------------------------------------------------------------------------

class CompareSeriesOut(BaseModel):
    dest: str
    labels: list[str]
    avg_a: list[float | None]
    avg_b: list[float | None]


class CompareResponse(BaseModel):
    start: str
    series: list[CompareSeriesOut]


# ---------------------------------------------------------------------------
# GET /through
# ---------------------------------------------------------------------------

class ThroughResultOut(BaseModel):
    train_id: str
    ka_name: str
    route_name: str
    depart_via_time: str
    via_index: int
    hub_time: str
    hub_index: int


class TransferPairOut(BaseModel):
    from_train_id: str
    to_train_id: str
    depart_via_time: str
    arrive_hub_time: str
    depart_hub_time: str
    arrive_dest_time: str | None
    wait_min: float
    from_ka_name: str
    from_route_name: str
    to_ka_name: str
    to_route_name: str


class ConnectionsResponse(BaseModel):
    via: str
    hub: str
    dest: str
    kind: Literal["through", "transfer", "none"]
    through: list[ThroughResultOut]
    transfers: list[TransferPairOut]


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    data_dir: str
    datasets: list[str]
    hub_station: str


# ---------------------------------------------------------------------------
# POST /ingest/scrape
# ---------------------------------------------------------------------------

class ScrapeResponse(BaseModel):
    status: Literal["ok"]
    dataset: str
    trains: int
    stops: int
    legs: int
    failed_train_ids: list[str]
