"""
Time-of-day arithmetic for day-local "HH:MM[:SS]" strings.

Shifting never wraps past midnight: a result outside 00:00-23:59 is reported
as ``None`` so callers can treat it as a skip instead of an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

from planner.core.exceptions import InvalidTimeFormat

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE = MINUTES_PER_DAY - 1

DeltaSource = Literal["start", "end"]
TimeStatus = Literal["past", "current", "future"]


def time_to_minutes(time: str) -> int:
    """Parse "HH:MM" or "HH:MM:SS" into minutes since 00:00. Seconds are ignored."""
    if not isinstance(time, str):
        raise InvalidTimeFormat(time)
    parts = time.split(":")
    if len(parts) < 2 or not all(p.isascii() and p.isdigit() for p in parts):
        raise InvalidTimeFormat(time)
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise InvalidTimeFormat(time)
    return hours * 60 + minutes


def minutes_to_time(mins: int) -> str:
    """Minutes since 00:00 -> "HH:MM". Input must already be within 0..1439."""
    return f"{mins // 60:02d}:{mins % 60:02d}"


def shift_time(time: str, delta_minutes: int) -> str | None:
    """Move ``time`` by ``delta_minutes``; None when the result leaves the day."""
    mins = time_to_minutes(time) + delta_minutes
    if mins < 0 or mins > LAST_MINUTE:
        return None
    return minutes_to_time(mins)


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """Validated minute-resolution time of day."""

    minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.minutes <= LAST_MINUTE:
            raise ValueError(f"minutes out of range: {self.minutes}")

    @classmethod
    def parse(cls, value: str) -> TimeOfDay:
        return cls(time_to_minutes(value))

    def shift(self, delta_minutes: int) -> TimeOfDay | None:
        mins = self.minutes + delta_minutes
        if mins < 0 or mins > LAST_MINUTE:
            return None
        return TimeOfDay(mins)

    def __str__(self) -> str:
        return minutes_to_time(self.minutes)


@dataclass(frozen=True)
class TimeDelta:
    delta: int
    source: DeltaSource


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def compute_time_delta(original: Any, updated: Any) -> TimeDelta | None:
    """
    Compare the time fields of two records (mappings or objects with
    ``start_time``/``end_time``/``end_day_offset``).

    An end-time change wins over a simultaneous start-time change, but only
    while ``end_day_offset`` is unchanged; otherwise the end times live on
    different days and are not comparable.
    """
    old_end = _field(original, "end_time")
    new_end = _field(updated, "end_time")
    old_offset = _field(original, "end_day_offset") or 0
    new_offset = _field(updated, "end_day_offset") or 0

    if old_end and new_end and old_offset == new_offset:
        delta = time_to_minutes(new_end) - time_to_minutes(old_end)
        if delta:
            return TimeDelta(delta, "end")

    old_start = _field(original, "start_time")
    new_start = _field(updated, "start_time")
    if old_start and new_start:
        delta = time_to_minutes(new_start) - time_to_minutes(old_start)
        if delta:
            return TimeDelta(delta, "start")
    return None


def get_time_status(now: str, start_time: str | None, end_time: str | None) -> TimeStatus:
    """
    Where a schedule sits relative to ``now`` on its own day.

    Items without a start time are always "future".
    """
    if not start_time:
        return "future"
    now_min = time_to_minutes(now)
    if time_to_minutes(start_time) > now_min:
        return "future"
    if not end_time or time_to_minutes(end_time) <= now_min:
        return "past"
    return "current"
