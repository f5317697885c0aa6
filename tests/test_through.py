"""
Unit tests for routing.through.find_through.
"""

from analysis.models import StopRecord, VehicleMeta
from analysis.normalize import fold_station, hms_to_minutes
from routing.through import find_through, station_position

HUB = "Tanah Abang"


def _stops(train_id: str, calls: list[tuple[str, str]], ka_name: str = "") -> list[StopRecord]:
    return [
        StopRecord(
            train_id=train_id,
            stop_index=i,
            station_name=name,
            station_key=fold_station(name),
            time_est=time_est,
            time_min=hms_to_minutes(time_est),
            ka_name=ka_name,
        )
        for i, (name, time_est) in enumerate(calls)
    ]


class TestStationPosition:
    def test_first_occurrence(self):
        seq = _stops("1", [("A", "07:00"), ("B", "07:05"), ("A", "07:10")])
        assert station_position(seq, "a") == 0

    def test_missing_is_minus_one(self):
        assert station_position(_stops("1", [("A", "07:00")]), "z") == -1


class TestFindThrough:
    def test_palmerah_to_sudirman_via_hub(self):
        stops = _stops("101", [("Palmerah", "07:00"), (HUB, "07:20"), ("Sudirman", "07:40")])
        [result] = find_through(stops, {}, "Palmerah", "Sudirman", HUB)
        assert result.train_id == "101"
        assert result.depart_via_time == "07:00"
        assert result.via_index == 0
        assert result.hub_index == 1
        assert result.hub_time == "07:20"

    def test_station_match_ignores_case(self):
        stops = _stops("101", [("Palmerah", "07:00"), (HUB, "07:20"), ("Sudirman", "07:40")])
        assert len(find_through(stops, {}, "palmerah", "SUDIRMAN", "tanah abang")) == 1

    def test_hub_before_via_excluded(self):
        stops = _stops("1", [(HUB, "07:00"), ("Palmerah", "07:10"), ("Sudirman", "07:20")])
        assert find_through(stops, {}, "Palmerah", "Sudirman", HUB) == []

    def test_dest_before_hub_excluded(self):
        stops = _stops("1", [("Palmerah", "07:00"), ("Sudirman", "07:10"), (HUB, "07:20")])
        assert find_through(stops, {}, "Palmerah", "Sudirman", HUB) == []

    def test_missing_hub_excluded(self):
        stops = _stops("1", [("Palmerah", "07:00"), ("Sudirman", "07:10")])
        assert find_through(stops, {}, "Palmerah", "Sudirman", HUB) == []

    def test_hub_is_a_parameter(self):
        stops = _stops("1", [("A", "07:00"), ("Manggarai", "07:10"), ("C", "07:20")])
        assert len(find_through(stops, {}, "A", "C", "Manggarai")) == 1
        assert find_through(stops, {}, "A", "C", HUB) == []

    def test_sorted_by_via_departure(self):
        stops = (
            _stops("late", [("A", "09:00:00"), (HUB, "09:10:00"), ("C", "09:20:00")])
            + _stops("early", [("A", "06:00:00"), (HUB, "06:10:00"), ("C", "06:20:00")])
        )
        assert [r.train_id for r in find_through(stops, {}, "A", "C", HUB)] == ["early", "late"]

    def test_names_from_meta_then_stop_rows(self):
        stops = (
            _stops("1", [("A", "07:00"), (HUB, "07:10"), ("C", "07:20")], ka_name="FROM-STOPS")
            + _stops("2", [("A", "08:00"), (HUB, "08:10"), ("C", "08:20")], ka_name="FROM-STOPS")
        )
        meta = {"2": VehicleMeta(train_id="2", ka_name="FROM-META", route_name="R")}
        results = {r.train_id: r for r in find_through(stops, meta, "A", "C", HUB)}
        assert results["1"].ka_name == "FROM-STOPS"
        assert results["2"].ka_name == "FROM-META"
        assert results["2"].route_name == "R"

    def test_never_returns_out_of_order_indices(self):
        stops = (
            _stops("ok", [("A", "07:00"), (HUB, "07:10"), ("C", "07:20")])
            + _stops("rev", [("C", "07:00"), (HUB, "07:10"), ("A", "07:20")])
            + _stops("nohub", [("A", "07:00"), ("C", "07:20")])
        )
        for r in find_through(stops, {}, "A", "C", HUB):
            assert r.via_index < r.hub_index
        assert [r.train_id for r in find_through(stops, {}, "A", "C", HUB)] == ["ok"]
