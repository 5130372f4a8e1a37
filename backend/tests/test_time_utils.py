"""Unit tests for time-of-day arithmetic."""

import pytest

from planner.core.exceptions import InvalidTimeFormat
from planner.timeline.time_utils import (
    TimeDelta,
    TimeOfDay,
    compute_time_delta,
    get_time_status,
    minutes_to_time,
    shift_time,
    time_to_minutes,
)


class TestTimeToMinutes:
    @pytest.mark.parametrize(
        "value,expected",
        [("00:00", 0), ("09:30", 570), ("23:59", 1439), ("12:05:45", 725)],
    )
    def test_parses_hours_and_minutes(self, value, expected):
        assert time_to_minutes(value) == expected

    @pytest.mark.parametrize("value", ["", "9", "ab:cd", "10:xx", "10:-5", "24:00", "10:60", None])
    def test_rejects_malformed_input(self, value):
        with pytest.raises(InvalidTimeFormat):
            time_to_minutes(value)

    def test_invalid_format_is_a_value_error(self):
        with pytest.raises(ValueError):
            time_to_minutes("noon")


def test_minutes_to_time_zero_pads():
    assert minutes_to_time(5) == "00:05"
    assert minutes_to_time(1439) == "23:59"


def test_every_valid_time_survives_conversion():
    for mins in range(0, 1440, 7):
        text = minutes_to_time(mins)
        assert minutes_to_time(time_to_minutes(text)) == text


class TestShiftTime:
    def test_shifts_within_the_day(self):
        assert shift_time("09:00", 30) == "09:30"
        assert shift_time("09:00", -540) == "00:00"
        assert shift_time("23:29", 30) == "23:59"

    def test_never_wraps_past_midnight(self):
        assert shift_time("23:45", 30) is None
        assert shift_time("00:10", -11) is None

    def test_drops_seconds(self):
        assert shift_time("10:00:30", 15) == "10:15"


class TestTimeOfDay:
    def test_parse_and_format(self):
        t = TimeOfDay.parse("08:05")
        assert t.minutes == 485
        assert str(t) == "08:05"

    def test_shift_out_of_range_is_none(self):
        assert TimeOfDay.parse("23:50").shift(10) is None
        assert TimeOfDay.parse("23:50").shift(9) == TimeOfDay(1439)

    def test_ordering(self):
        assert TimeOfDay.parse("08:00") < TimeOfDay.parse("09:00")

    def test_rejects_out_of_range_minutes(self):
        with pytest.raises(ValueError):
            TimeOfDay(1440)


class TestComputeTimeDelta:
    def test_end_change_wins_over_start_change(self):
        original = {"start_time": "10:00", "end_time": "12:00"}
        updated = {"start_time": "10:15", "end_time": "12:30"}
        assert compute_time_delta(original, updated) == TimeDelta(30, "end")

    def test_offset_change_ignores_end_time(self):
        original = {"start_time": "10:00", "end_time": "12:00", "end_day_offset": 0}
        updated = {"start_time": "10:30", "end_time": "06:00", "end_day_offset": 1}
        assert compute_time_delta(original, updated) == TimeDelta(30, "start")

    def test_missing_offset_counts_as_zero(self):
        original = {"start_time": "10:00", "end_time": "12:00", "end_day_offset": None}
        updated = {"start_time": "10:00", "end_time": "11:00", "end_day_offset": 0}
        assert compute_time_delta(original, updated) == TimeDelta(-60, "end")

    def test_start_only_change(self):
        assert compute_time_delta({"start_time": "09:00"}, {"start_time": "09:30"}) == TimeDelta(30, "start")

    def test_no_actionable_change(self):
        assert compute_time_delta({"start_time": "09:00"}, {"start_time": "09:00"}) is None
        assert compute_time_delta({"start_time": None}, {"start_time": "09:00"}) is None
        assert compute_time_delta({"end_time": "10:00", "end_day_offset": 1}, {"end_time": "11:00"}) is None

    def test_accepts_objects(self):
        class Row:
            def __init__(self, start, end):
                self.start_time, self.end_time, self.end_day_offset = start, end, None

        assert compute_time_delta(Row("09:00", None), Row("08:00", None)) == TimeDelta(-60, "start")


class TestGetTimeStatus:
    def test_without_start_is_future(self):
        assert get_time_status("12:00", None, None) == "future"
        assert get_time_status("12:00", None, "10:00") == "future"

    def test_start_in_the_future(self):
        assert get_time_status("08:59", "09:00", "10:00") == "future"

    def test_running(self):
        assert get_time_status("09:00", "09:00", "10:00") == "current"
        assert get_time_status("09:59", "09:00", "10:00") == "current"

    def test_past(self):
        assert get_time_status("10:00", "09:00", "10:00") == "past"
        assert get_time_status("09:00", "09:00", None) == "past"

    def test_seconds_are_ignored(self):
        assert get_time_status("09:00", "09:00:59", "10:00:00") == "current"
