"""
Unit tests for analysis.normalize: scalar parsing, row parsing and leg
derivation from stop rows.
"""

import pytest

from analysis.errors import DataNotFound
from analysis.normalize import (
    derive_legs,
    fold_station,
    group_stops_by_train,
    hms_to_minutes,
    minutes_between,
    normalize_legs,
    parse_leg_rows,
    parse_stop_rows,
    parse_vehicle_meta,
    to_number,
)


def _stop_row(train_id: str, idx: int, station: str, time_est: str, **extra) -> dict:
    row = {
        "train_id": train_id,
        "stop_index": str(idx),
        "station_name": station,
        "time_est": time_est,
        "time_est_min": "",
        "ka_name": "KA",
        "route_name": "ROUTE",
        "color": "#000",
    }
    row.update(extra)
    return row


# ---------------------------------------------------------------------------
# hms_to_minutes / minutes_between
# ---------------------------------------------------------------------------

class TestHmsToMinutes:
    def test_hh_mm_ss(self):
        assert hms_to_minutes("07:15:00") == 435

    def test_hh_mm(self):
        assert hms_to_minutes("07:15") == 435

    def test_seconds_are_fractional_minutes(self):
        assert hms_to_minutes("00:00:30") == pytest.approx(0.5)

    def test_hours_past_midnight_wrap(self):
        assert hms_to_minutes("24:10:00") == 10

    def test_empty_is_none(self):
        assert hms_to_minutes("") is None
        assert hms_to_minutes(None) is None

    def test_garbage_is_none(self):
        assert hms_to_minutes("seven") is None
        assert hms_to_minutes("07") is None
        assert hms_to_minutes("aa:bb") is None


class TestMinutesBetween:
    def test_same_day(self):
        assert minutes_between(420, 435) == 15

    def test_crosses_midnight(self):
        assert minutes_between(1430, 10) == 20

    def test_equal_is_zero(self):
        assert minutes_between(600, 600) == 0


# ---------------------------------------------------------------------------
# fold_station / to_number
# ---------------------------------------------------------------------------

class TestFoldStation:
    def test_case_and_whitespace(self):
        assert fold_station("  Tanah   ABANG ") == "tanah abang"

    def test_diacritics_stripped(self):
        assert fold_station("Tanah Abáng") == "tanah abang"

    def test_empty(self):
        assert fold_station("") == ""
        assert fold_station(None) == ""


class TestToNumber:
    def test_integral_stays_int(self):
        value = to_number("5.0")
        assert value == 5
        assert isinstance(value, int)

    def test_fraction(self):
        assert to_number("2.5") == 2.5

    def test_empty_and_garbage(self):
        assert to_number("") is None
        assert to_number("abc") is None
        assert to_number(None) is None

    def test_non_finite_is_none(self):
        assert to_number("nan") is None
        assert to_number("inf") is None


# ---------------------------------------------------------------------------
# Row parsing
# ---------------------------------------------------------------------------

class TestParseStopRows:
    def test_prefers_precomputed_minutes(self):
        [stop] = parse_stop_rows([_stop_row("1", 0, "A", "07:00:00", time_est_min="421")])
        assert stop.time_min == 421

    def test_falls_back_to_time_est(self):
        [stop] = parse_stop_rows([_stop_row("1", 0, "A", "07:00:00")])
        assert stop.time_min == 420

    def test_bad_time_is_none(self):
        [stop] = parse_stop_rows([_stop_row("1", 0, "A", "??")])
        assert stop.time_min is None

    def test_station_key_is_folded(self):
        [stop] = parse_stop_rows([_stop_row("1", 0, "Tanah Abang", "07:00")])
        assert stop.station_key == "tanah abang"
        assert stop.station_name == "Tanah Abang"

    def test_transit_flag(self):
        [a, b] = parse_stop_rows([
            _stop_row("1", 0, "A", "07:00", transit_station="true"),
            _stop_row("1", 1, "B", "07:05", transit_station="false"),
        ])
        assert a.transit_station is True
        assert b.transit_station is False


class TestParseLegRows:
    def test_seq_from_index(self):
        [leg] = parse_leg_rows([{
            "train_id": "1", "from_index": "3", "from_station": "A",
            "to_station": "B", "leg_minutes": "4",
        }])
        assert leg.seq == 3
        assert leg.leg_minutes == 4

    def test_bad_index_falls_back_to_position(self):
        legs = parse_leg_rows([
            {"train_id": "1", "from_index": "x", "from_station": "A", "to_station": "B", "leg_minutes": ""},
            {"train_id": "1", "from_index": "", "from_station": "B", "to_station": "C", "leg_minutes": "2"},
        ])
        assert [l.seq for l in legs] == [0, 1]
        assert legs[0].leg_minutes is None


class TestParseVehicleMeta:
    def test_none_is_empty(self):
        assert parse_vehicle_meta(None) == {}

    def test_skips_rows_without_id_and_later_rows_win(self):
        meta = parse_vehicle_meta([
            {"train_id": "", "dest": "X"},
            {"train_id": "1", "dest": "Bogor"},
            {"train_id": "1", "dest": "Depok"},
        ])
        assert list(meta) == ["1"]
        assert meta["1"].dest == "Depok"


# ---------------------------------------------------------------------------
# Grouping and derivation
# ---------------------------------------------------------------------------

class TestDeriveLegs:
    def test_adjacent_pairs_in_stop_order(self):
        stops = parse_stop_rows([
            _stop_row("1", 1, "B", "07:05"),
            _stop_row("1", 0, "A", "07:00"),
            _stop_row("1", 2, "C", "07:12"),
        ])
        legs = derive_legs(stops)
        assert [(l.from_station, l.to_station, l.leg_minutes) for l in legs] == [
            ("A", "B", 5),
            ("B", "C", 7),
        ]
        assert [l.seq for l in legs] == [0, 1]

    def test_midnight_crossing_is_positive(self):
        stops = parse_stop_rows([
            _stop_row("1", 0, "A", "23:55"),
            _stop_row("1", 1, "B", "00:05"),
        ])
        [leg] = derive_legs(stops)
        assert leg.leg_minutes == 10

    def test_missing_time_gives_null_duration(self):
        stops = parse_stop_rows([
            _stop_row("1", 0, "A", "07:00"),
            _stop_row("1", 1, "B", ""),
        ])
        [leg] = derive_legs(stops)
        assert leg.leg_minutes is None

    def test_single_stop_train_has_no_legs(self):
        assert derive_legs(parse_stop_rows([_stop_row("1", 0, "A", "07:00")])) == []

    def test_trains_do_not_mix(self):
        stops = parse_stop_rows([
            _stop_row("1", 0, "A", "07:00"),
            _stop_row("2", 0, "X", "08:00"),
            _stop_row("1", 1, "B", "07:05"),
            _stop_row("2", 1, "Y", "08:03"),
        ])
        grouped = group_stops_by_train(stops)
        assert list(grouped) == ["1", "2"]
        legs = derive_legs(stops)
        assert {(l.train_id, l.from_station, l.to_station) for l in legs} == {
            ("1", "A", "B"),
            ("2", "X", "Y"),
        }


class TestNormalizeLegs:
    def test_leg_rows_take_precedence(self):
        legs = normalize_legs(
            [{"train_id": "1", "from_index": "0", "from_station": "A", "to_station": "B", "leg_minutes": "9"}],
            [_stop_row("1", 0, "A", "07:00"), _stop_row("1", 1, "B", "07:05")],
        )
        assert [l.leg_minutes for l in legs] == [9]

    def test_derives_from_stops(self):
        legs = normalize_legs(None, [_stop_row("1", 0, "A", "07:00"), _stop_row("1", 1, "B", "07:05")])
        assert [l.leg_minutes for l in legs] == [5]

    def test_neither_raises(self):
        with pytest.raises(DataNotFound):
            normalize_legs(None, None)
