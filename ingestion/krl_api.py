"""
Client for the KRL commuter-rail schedule API.

Endpoints used (all wrapped in a {"data": [...]} envelope):
  GET /krl-webs/v1/krl-station                                 → StationMeta
  GET /krl-webs/v1/schedule?stationid=&timefrom=&timeto=       → ScheduleItem
  GET /krl-webs/v1/schedule-train?trainid=                     → TrainStop

Every request carries the bearer token, times out after
HTTP_TIMEOUT_SECONDS, and is retried HTTP_RETRIES times with a linear
backoff (0.75 s × attempt) before the last error is re-raised.
Responses are validated with pydantic; a malformed payload raises
pydantic.ValidationError rather than producing half-filled rows.
"""

import asyncio
import logging
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel

from config import HTTP_RETRIES, HTTP_TIMEOUT_SECONDS, KRL_API_BASE, KRL_TOKEN

logger = logging.getLogger(__name__)

RETRY_BACKOFF_SECONDS = 0.75

T = TypeVar("T")


class StationMeta(BaseModel):
    sta_id: str
    sta_name: str
    group_wil: int
    fg_enable: int


class ScheduleItem(BaseModel):
    train_id: str
    ka_name: str
    route_name: str
    dest: str
    color: str
    time_est: str
    dest_time: str


class TrainStop(BaseModel):
    station_name: str
    time_est: str
    transit_station: bool | int | None = None
    transit: list[str] | str | None = None

    @property
    def transit_colors(self) -> str:
        if isinstance(self.transit, list):
            return "|".join(self.transit)
        return self.transit or ""


class Envelope(BaseModel, Generic[T]):
    data: list[T] | None = None


class KrlApiClient:
    """
    Thin async wrapper around httpx.AsyncClient.

    Use as an async context manager so the connection pool is closed:

        async with KrlApiClient() as api:
            stations = await api.fetch_stations()
    """

    def __init__(
        self,
        token: str = KRL_TOKEN,
        base_url: str = KRL_API_BASE,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        retries: int = HTTP_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise ValueError("KRL_TOKEN is not configured. Set it in your .env file.")
        self.retries = retries
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "User-Agent": "Mozilla/5.0",
            },
        )

    async def __aenter__(self) -> "KrlApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        """GET path and decode JSON, retrying transport and HTTP status errors."""
        for attempt in range(self.retries + 1):
            try:
                response = await self._client.get(path, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPError as exc:
                if attempt == self.retries:
                    raise
                delay = RETRY_BACKOFF_SECONDS * (attempt + 1)
                logger.warning(
                    "GET %s failed (%s); retry %d/%d in %.2fs.",
                    path, exc, attempt + 1, self.retries, delay,
                )
                await asyncio.sleep(delay)
        raise RuntimeError(f"GET {path} failed after retries.")

    async def fetch_stations(self) -> list[StationMeta]:
        payload = await self.get_json("/krl-webs/v1/krl-station")
        return Envelope[StationMeta].model_validate(payload).data or []

    async def fetch_schedule(self, station_id: str, time_from: str, time_to: str) -> list[ScheduleItem]:
        payload = await self.get_json(
            "/krl-webs/v1/schedule",
            params={"stationid": station_id, "timefrom": time_from, "timeto": time_to},
        )
        return Envelope[ScheduleItem].model_validate(payload).data or []

    async def fetch_train(self, train_id: str) -> list[TrainStop]:
        payload = await self.get_json("/krl-webs/v1/schedule-train", params={"trainid": train_id})
        return Envelope[TrainStop].model_validate(payload).data or []
