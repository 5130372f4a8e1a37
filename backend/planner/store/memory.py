"""
In-process store, used when no MONGODB_URI is configured and in tests.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from planner.models.trip import DayPattern, Schedule, Trip, TripDay
from planner.store.base import ScheduleStore
from planner.store.guard import same_instant


class MemoryScheduleStore(ScheduleStore):
    def __init__(self) -> None:
        super().__init__()
        self._trips: dict[str, Trip] = {}
        self._days: dict[str, TripDay] = {}
        self._patterns: dict[str, DayPattern] = {}
        self._schedules: dict[str, Schedule] = {}

    # Records are stored flat and handed out as copies, like documents would be

    async def _fetch_trip(self, trip_id: str) -> Trip | None:
        trip = self._trips.get(trip_id)
        return trip.model_copy(deep=True) if trip else None

    async def _fetch_days(self, trip_id: str) -> list[TripDay]:
        days = [d for d in self._days.values() if d.trip_id == trip_id]
        return [d.model_copy() for d in sorted(days, key=lambda d: d.day_number)]

    async def _fetch_day(self, day_id: str) -> TripDay | None:
        day = self._days.get(day_id)
        return day.model_copy() if day else None

    async def _fetch_patterns(self, day_ids: list[str]) -> list[DayPattern]:
        wanted = set(day_ids)
        patterns = [p for p in self._patterns.values() if p.trip_day_id in wanted]
        return [p.model_copy() for p in sorted(patterns, key=lambda p: p.sort_order)]

    async def _fetch_pattern(self, pattern_id: str) -> DayPattern | None:
        pattern = self._patterns.get(pattern_id)
        return pattern.model_copy() if pattern else None

    async def _fetch_schedules(self, trip_id: str) -> list[Schedule]:
        return [s.model_copy(deep=True) for s in self._schedules.values() if s.trip_id == trip_id]

    async def _fetch_schedule(self, schedule_id: str) -> Schedule | None:
        schedule = self._schedules.get(schedule_id)
        return schedule.model_copy(deep=True) if schedule else None

    async def _insert_trip(self, trip: Trip, days: list[TripDay], patterns: list[DayPattern]) -> None:
        self._trips[trip.id] = trip.model_copy(update={"days": [], "candidates": [], "role": None})
        for day in days:
            self._days[day.id] = day.model_copy(update={"patterns": []})
        for pattern in patterns:
            self._patterns[pattern.id] = pattern.model_copy(update={"schedules": []})

    async def _update_trip(self, trip_id: str, fields: dict[str, Any]) -> Trip | None:
        trip = self._trips.get(trip_id)
        if trip is None:
            return None
        self._trips[trip_id] = trip.model_copy(update=fields)
        return self._trips[trip_id].model_copy(deep=True)

    async def _insert_pattern(self, pattern: DayPattern) -> None:
        self._patterns[pattern.id] = pattern.model_copy(update={"schedules": []})

    async def _delete_pattern(self, pattern_id: str) -> None:
        self._patterns.pop(pattern_id, None)
        for sid in [s.id for s in self._schedules.values() if s.day_pattern_id == pattern_id]:
            del self._schedules[sid]

    async def _insert_schedules(self, schedules: list[Schedule]) -> None:
        for schedule in schedules:
            self._schedules[schedule.id] = schedule.model_copy(deep=True)

    async def _update_schedule(
        self, schedule_id: str, fields: dict[str, Any], expected_updated_at: datetime | None = None
    ) -> Schedule | None:
        current = self._schedules.get(schedule_id)
        if current is None:
            return None
        if expected_updated_at is not None and not same_instant(current.updated_at, expected_updated_at):
            return None
        self._schedules[schedule_id] = current.model_copy(update=fields)
        return self._schedules[schedule_id].model_copy(deep=True)

    async def _update_schedules(self, updates: dict[str, dict[str, Any]]) -> None:
        for sid, fields in updates.items():
            if sid in self._schedules:
                self._schedules[sid] = self._schedules[sid].model_copy(update=fields)

    async def _delete_schedules(self, schedule_ids: list[str]) -> None:
        for sid in schedule_ids:
            self._schedules.pop(sid, None)
