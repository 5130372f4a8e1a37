"""
Cascade planning for a time edit.

After one schedule's time changes by ``delta`` minutes, the schedules that
follow it in the same pattern are offered the same shift. Each follower is
classified up front as shiftable or skipped; an out-of-range shift is a skip
with a reason, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Literal

from planner.core.config import SHIFT_PREVIEW_LIMIT
from planner.models.trip import Schedule
from planner.timeline.time_utils import DeltaSource, TimeDelta, shift_time

SkipReason = Literal["no_start_time", "out_of_range", "multi_day_stay"]


@dataclass(frozen=True)
class ShiftedTimes:
    start_time: str
    end_time: str | None


@dataclass(frozen=True)
class SkippedSchedule:
    schedule: Schedule
    reason: SkipReason


@dataclass(frozen=True)
class PreviewRow:
    schedule_id: str
    name: str
    before: str | None
    after: str | None
    before_end: str | None
    after_end: str | None


@dataclass(frozen=True)
class ShiftPreview:
    rows: list[PreviewRow]
    remaining: int

    @property
    def more_label(self) -> str | None:
        return f"+{self.remaining} more" if self.remaining > 0 else None


def shift_schedule(schedule: Schedule, delta: int) -> ShiftedTimes | SkipReason:
    """
    New times for ``schedule`` moved by ``delta`` minutes, or the reason it
    cannot move. Only the time of day changes; ``end_day_offset`` never does,
    so the end time of a schedule spanning days stays where it is.
    """
    if schedule.category == "hotel" and schedule.spans_days:
        return "multi_day_stay"
    if not schedule.start_time:
        return "no_start_time"
    new_start = shift_time(schedule.start_time, delta)
    if new_start is None:
        return "out_of_range"
    new_end = schedule.end_time
    if schedule.end_time and not schedule.spans_days:
        new_end = shift_time(schedule.end_time, delta)
        if new_end is None:
            return "out_of_range"
    return ShiftedTimes(new_start, new_end)


def partition_shift_targets(
    schedules: Iterable[Schedule], delta: int
) -> tuple[list[Schedule], list[SkippedSchedule]]:
    shiftable: list[Schedule] = []
    skipped: list[SkippedSchedule] = []
    for schedule in schedules:
        outcome = shift_schedule(schedule, delta)
        if isinstance(outcome, ShiftedTimes):
            shiftable.append(schedule)
        else:
            skipped.append(SkippedSchedule(schedule, outcome))
    return shiftable, skipped


def following_schedules(pattern_schedules: Iterable[Schedule], edited: Schedule) -> list[Schedule]:
    """Schedules of the edited item's pattern that sort after it."""
    followers = [
        s
        for s in pattern_schedules
        if s.id != edited.id
        and s.day_pattern_id == edited.day_pattern_id
        and s.sort_order > edited.sort_order
    ]
    return sorted(followers, key=lambda s: s.sort_order)


@dataclass
class CascadePlan:
    edited: Schedule
    delta: int
    source: DeltaSource
    shiftable: list[Schedule] = field(default_factory=list)
    skipped: list[SkippedSchedule] = field(default_factory=list)

    @property
    def shiftable_ids(self) -> list[str]:
        return [s.id for s in self.shiftable]

    @property
    def skipped_names(self) -> list[str]:
        return [s.schedule.name for s in self.skipped]

    @property
    def should_offer(self) -> bool:
        return bool(self.shiftable)

    def preview(self, limit: int = SHIFT_PREVIEW_LIMIT) -> ShiftPreview:
        rows = []
        for schedule in self.shiftable[:limit]:
            after_end = None
            if schedule.end_time and not schedule.spans_days:
                after_end = shift_time(schedule.end_time, self.delta)
            rows.append(
                PreviewRow(
                    schedule_id=schedule.id,
                    name=schedule.name,
                    before=schedule.start_time,
                    after=shift_time(schedule.start_time, self.delta) if schedule.start_time else None,
                    before_end=schedule.end_time,
                    after_end=after_end,
                )
            )
        return ShiftPreview(rows=rows, remaining=max(len(self.shiftable) - len(rows), 0))


def plan_cascade(
    pattern_schedules: Iterable[Schedule], edited: Schedule, time_delta: TimeDelta
) -> CascadePlan:
    followers = following_schedules(pattern_schedules, edited)
    shiftable, skipped = partition_shift_targets(followers, time_delta.delta)
    return CascadePlan(
        edited=edited,
        delta=time_delta.delta,
        source=time_delta.source,
        shiftable=shiftable,
        skipped=skipped,
    )
