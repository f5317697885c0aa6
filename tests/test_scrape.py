"""
Tests for the schedule API client and the station scraper.

The KRL API is replaced by an httpx.MockTransport, so nothing leaves the
process; coroutines are driven with asyncio.run.
"""

import asyncio
from unittest.mock import patch

import httpx
import pytest

from ingestion.krl_api import KrlApiClient, ScheduleItem, TrainStop
from ingestion.scrape import dataset_dir_name, sanitize_path_segment, scrape_station, train_rows
from ingestion.tables import read_rows


STATIONS = {
    "data": [
        {"sta_id": "THB", "sta_name": "TANAH ABANG", "group_wil": 0, "fg_enable": 1},
        {"sta_id": "OLD", "sta_name": "CLOSED", "group_wil": 0, "fg_enable": 0},
    ]
}

SCHEDULE = {
    "data": [
        {
            "train_id": "1001", "ka_name": "COMMUTER LINE BOGOR", "route_name": "TANAHABANG-BOGOR",
            "dest": "BOGOR", "color": "#E30A16", "time_est": "07:45:00", "dest_time": "08:45:00",
        },
        {
            "train_id": "1002", "ka_name": "COMMUTER LINE BOGOR", "route_name": "TANAHABANG-BOGOR",
            "dest": "BOGOR", "color": "#E30A16", "time_est": "08:30:00", "dest_time": "09:30:00",
        },
    ]
}

TRAIN_1001 = {
    "data": [
        {"station_name": "TANAH ABANG", "time_est": "07:45:00", "transit_station": True, "transit": ["#E30A16"]},
        {"station_name": "SUDIRMAN", "time_est": "07:50:00", "transit_station": False},
        {"station_name": "BOGOR", "time_est": "08:45:00"},
    ]
}


def _handler(fail_train: str | None = None):
    def handle(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer test-token"
        path = request.url.path
        if path.endswith("/krl-station"):
            return httpx.Response(200, json=STATIONS)
        if path.endswith("/schedule"):
            return httpx.Response(200, json=SCHEDULE)
        if path.endswith("/schedule-train"):
            train_id = request.url.params["trainid"]
            if train_id == fail_train:
                return httpx.Response(500)
            return httpx.Response(200, json=TRAIN_1001 if train_id == "1001" else {"data": []})
        return httpx.Response(404)
    return handle


def _client(handler) -> KrlApiClient:
    return KrlApiClient(
        token="test-token",
        base_url="https://krl.test",
        retries=0,
        transport=httpx.MockTransport(handler),
    )


# ---------------------------------------------------------------------------
# KrlApiClient
# ---------------------------------------------------------------------------

class TestKrlApiClient:
    def test_requires_token(self):
        with pytest.raises(ValueError):
            KrlApiClient(token="")

    def test_fetch_stations(self):
        async def run():
            async with _client(_handler()) as api:
                return await api.fetch_stations()

        stations = asyncio.run(run())
        assert [s.sta_id for s in stations] == ["THB", "OLD"]

    def test_fetch_train_joins_transit_colours(self):
        async def run():
            async with _client(_handler()) as api:
                return await api.fetch_train("1001")

        stops = asyncio.run(run())
        assert stops[0].transit_colors == "#E30A16"
        assert stops[1].transit_colors == ""

    def test_null_data_is_empty(self):
        async def run():
            async with _client(lambda r: httpx.Response(200, json={"data": None})) as api:
                return await api.fetch_schedule("THB", "00:00", "23:00")

        assert asyncio.run(run()) == []

    def test_retries_then_succeeds(self):
        calls = {"n": 0}

        def flaky(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=STATIONS)

        async def run():
            api = KrlApiClient(
                token="test-token", base_url="https://krl.test", retries=2,
                transport=httpx.MockTransport(flaky),
            )
            async with api:
                return await api.fetch_stations()

        with patch("ingestion.krl_api.RETRY_BACKOFF_SECONDS", 0):
            stations = asyncio.run(run())
        assert len(stations) == 2
        assert calls["n"] == 2

    def test_gives_up_after_retries(self):
        async def run():
            async with _client(lambda r: httpx.Response(500)) as api:
                return await api.fetch_stations()

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(run())


# ---------------------------------------------------------------------------
# Row building
# ---------------------------------------------------------------------------

class TestTrainRows:
    def test_stop_and_leg_rows(self):
        train = ScheduleItem.model_validate(SCHEDULE["data"][0])
        stops = [TrainStop.model_validate(s) for s in TRAIN_1001["data"]]
        stop_rows, leg_rows = train_rows("THB", train, stops)
        assert [r["stop_index"] for r in stop_rows] == [0, 1, 2]
        assert stop_rows[0]["transit_station"] == "true"
        assert stop_rows[0]["header_station"] == "TANAH ABANG"
        assert stop_rows[1]["time_est_min"] == 470
        assert [(r["from_station"], r["to_station"], r["leg_minutes"]) for r in leg_rows] == [
            ("TANAH ABANG", "SUDIRMAN", 5),
            ("SUDIRMAN", "BOGOR", 55),
        ]

    def test_unparsable_time_gives_empty_duration(self):
        train = ScheduleItem.model_validate(SCHEDULE["data"][0])
        stops = [
            TrainStop(station_name="A", time_est="07:00:00"),
            TrainStop(station_name="B", time_est="--"),
        ]
        _, [leg] = train_rows("THB", train, stops)
        assert leg["leg_minutes"] is None


class TestPathNames:
    def test_sanitize(self):
        assert sanitize_path_segment("00:00") == "00-00"

    def test_dataset_dir_name(self):
        assert dataset_dir_name("THB", "00:00", "23:00") == "THB-00-00-23-00"


# ---------------------------------------------------------------------------
# scrape_station
# ---------------------------------------------------------------------------

class TestScrapeStation:
    def test_writes_three_files(self, tmp_path):
        async def run():
            async with _client(_handler()) as api:
                return await scrape_station(api, "THB", "00:00", "23:00", tmp_path)

        result = asyncio.run(run())
        assert result.out_dir == tmp_path / "THB-00-00-23-00"
        assert (result.trains, result.stops, result.legs) == (2, 3, 2)
        assert result.failed_train_ids == []
        trains = read_rows(result.out_dir / "trains.csv")
        assert [t["train_id"] for t in trains] == ["1001", "1002"]
        assert trains[0]["query_station"] == "THB"
        legs = read_rows(result.out_dir / "legs.csv")
        assert legs[0]["leg_minutes"] == "5"

    def test_failed_train_is_skipped(self, tmp_path):
        async def run():
            async with _client(_handler(fail_train="1001")) as api:
                return await scrape_station(api, "THB", "00:00", "23:00", tmp_path)

        result = asyncio.run(run())
        assert result.failed_train_ids == ["1001"]
        assert result.stops == 0
        assert (result.out_dir / "stops.csv").exists()

    def test_unknown_station(self, tmp_path):
        async def run():
            async with _client(_handler()) as api:
                return await scrape_station(api, "NOPE", "00:00", "23:00", tmp_path)

        with pytest.raises(ValueError, match="not found"):
            asyncio.run(run())

    def test_disabled_station(self, tmp_path):
        async def run():
            async with _client(_handler()) as api:
                return await scrape_station(api, "OLD", "00:00", "23:00", tmp_path)

        with pytest.raises(ValueError, match="disabled"):
            asyncio.run(run())
