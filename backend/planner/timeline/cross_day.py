"""
Projection of multi-day schedules onto the days after their anchor day.

A schedule anchored on day N with ``end_day_offset`` k > 0 is visible on days
N+1 .. N+k: "intermediate" before the last one, "final" on day N+k.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

from planner.core.exceptions import InvalidTripDays
from planner.models.trip import Schedule, TripDay

CrossDayPosition = Literal["intermediate", "final"]

START_LABELS = {"hotel": "Check-in"}
CROSS_DAY_LABELS = {"hotel": {"intermediate": "Staying", "final": "Check-out"}}
GENERIC_START = "Start"
GENERIC_LABELS = {"intermediate": "In progress", "final": "Ended"}


@dataclass(frozen=True)
class CrossDayEntry:
    schedule: Schedule
    source_day_id: str
    source_pattern_id: str
    source_day_number: int
    position: CrossDayPosition


def assert_contiguous_days(days: Sequence[TripDay]) -> None:
    """Day numbers must read 1, 2, 3, ... in list order."""
    for index, day in enumerate(days, start=1):
        if day.day_number != index:
            raise InvalidTripDays(
                f"Day numbers must be contiguous from 1; position {index} has day {day.day_number}"
            )


def get_cross_day_entries(days: Sequence[TripDay], target_day_number: int) -> list[CrossDayEntry]:
    """
    Schedules anchored before ``target_day_number`` that are still running on it.

    Order is day order, then pattern order, then schedule order. Every pattern
    is reported on its own, so the same stay entered on two patterns of one
    day yields two entries.
    """
    assert_contiguous_days(days)
    entries: list[CrossDayEntry] = []
    for day in days:
        if day.day_number >= target_day_number:
            continue
        for pattern in day.patterns:
            for schedule in pattern.schedules:
                offset = schedule.end_day_offset
                if not offset or offset <= 0:
                    continue
                end_day = day.day_number + offset
                if end_day < target_day_number:
                    continue
                entries.append(
                    CrossDayEntry(
                        schedule=schedule,
                        source_day_id=day.id,
                        source_pattern_id=pattern.id,
                        source_day_number=day.day_number,
                        position="final" if end_day == target_day_number else "intermediate",
                    )
                )
    return entries


def get_start_day_label(category: str) -> str | None:
    """Label on the anchor day of a multi-day schedule; transport has none."""
    if category == "transport":
        return None
    return START_LABELS.get(category, GENERIC_START)


def get_cross_day_label(category: str, position: CrossDayPosition) -> str | None:
    if category == "transport":
        return None
    labels = CROSS_DAY_LABELS.get(category, GENERIC_LABELS)
    return labels[position]


@dataclass(frozen=True)
class TimelineItem:
    kind: Literal["schedule", "cross_day"]
    schedule: Schedule
    entry: CrossDayEntry | None = None

    @property
    def sortable_id(self) -> str:
        if self.kind == "cross_day":
            return f"cross-{self.schedule.id}"
        return self.schedule.id


def _hhmm(value: str | None) -> str | None:
    return value[:5] if value else None


def build_merged_timeline(
    schedules: Iterable[Schedule], entries: Iterable[CrossDayEntry] | None
) -> list[TimelineItem]:
    """
    Interleave a pattern's schedules with the cross-day entries of that day.

    An entry goes right before the first schedule starting at or after the
    entry's end time. Entries without an end time, or ending after every
    schedule, go last.
    """
    remaining = list(entries or [])
    merged: list[TimelineItem] = []
    for schedule in schedules:
        start = _hhmm(schedule.start_time)
        if start:
            due, pending = [], []
            for entry in remaining:
                end = _hhmm(entry.schedule.end_time)
                (due if end and end <= start else pending).append(entry)
            remaining = pending
            due.sort(key=lambda e: _hhmm(e.schedule.end_time))
            merged.extend(TimelineItem("cross_day", e.schedule, e) for e in due)
        merged.append(TimelineItem("schedule", schedule))
    merged.extend(TimelineItem("cross_day", e.schedule, e) for e in remaining)
    return merged


def timeline_schedule_order(items: Iterable[TimelineItem]) -> list[Schedule]:
    """Only the regular schedules of a merged timeline, in display order."""
    return [item.schedule for item in items if item.kind == "schedule"]
