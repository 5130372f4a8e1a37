"""
Client-side trip cache: a confirmed server snapshot plus an ordered overlay
of pending optimistic mutations.

``view`` is the confirmed snapshot with every pending mutation applied in
order. A pending mutation is either folded into the snapshot (``commit``)
once the server accepts it, or dropped (``rollback``) when it fails.

The tree helpers below are pure: they return a new ``Trip`` and leave the
input untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
import itertools
import logging
from typing import Callable, Iterable

from planner.models.trip import DayPattern, Schedule, Trip

logger = logging.getLogger(__name__)

Mutation = Callable[[Trip], Trip]


@dataclass(frozen=True)
class PendingMutation:
    token: int
    mutate: Mutation
    label: str = ""


class TripCache:
    def __init__(self, trip: Trip | None = None):
        self._confirmed = trip
        self._pending: list[PendingMutation] = []
        self._tokens = itertools.count(1)

    @property
    def confirmed(self) -> Trip | None:
        return self._confirmed

    @property
    def pending(self) -> list[PendingMutation]:
        return list(self._pending)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def view(self) -> Trip | None:
        trip = self._confirmed
        if trip is None:
            return None
        for pending in self._pending:
            trip = pending.mutate(trip)
        return trip

    def apply(self, mutate: Mutation, label: str = "") -> int:
        """Stage an optimistic mutation; returns the token for commit/rollback."""
        pending = PendingMutation(next(self._tokens), mutate, label)
        self._pending.append(pending)
        return pending.token

    def commit(self, token: int) -> None:
        pending = self._take(token)
        if pending is not None and self._confirmed is not None:
            self._confirmed = pending.mutate(self._confirmed)

    def rollback(self, token: int) -> None:
        pending = self._take(token)
        if pending is not None:
            logger.debug("[cache] rolled back %s", pending.label or pending.token)

    def update(self, mutate: Mutation) -> None:
        """Apply a server-confirmed change straight to the snapshot."""
        if self._confirmed is not None:
            self._confirmed = mutate(self._confirmed)

    def replace(self, trip: Trip) -> None:
        """Install a fresh server snapshot; in-flight mutations stay staged on top."""
        self._confirmed = trip

    def _take(self, token: int) -> PendingMutation | None:
        for index, pending in enumerate(self._pending):
            if pending.token == token:
                return self._pending.pop(index)
        return None


# ---- tree helpers ----


def _map_patterns(trip: Trip, fn: Callable[[DayPattern], DayPattern]) -> Trip:
    days = [
        day.model_copy(update={"patterns": [fn(p) for p in day.patterns]})
        for day in trip.days
    ]
    return trip.model_copy(update={"days": days})


def _with_schedules(pattern: DayPattern, schedules: Iterable[Schedule]) -> DayPattern:
    return pattern.model_copy(update={"schedules": list(schedules)})


def find_schedule(trip: Trip, schedule_id: str) -> Schedule | None:
    for day in trip.days:
        for pattern in day.patterns:
            for schedule in pattern.schedules:
                if schedule.id == schedule_id:
                    return schedule
    return next((c for c in trip.candidates if c.id == schedule_id), None)


def update_schedule_in_pattern(trip: Trip, pattern_id: str, schedule: Schedule) -> Trip:
    def fn(pattern: DayPattern) -> DayPattern:
        if pattern.id != pattern_id:
            return pattern
        return _with_schedules(pattern, (schedule if s.id == schedule.id else s for s in pattern.schedules))

    return _map_patterns(trip, fn)


def remove_schedule_from_pattern(trip: Trip, pattern_id: str, schedule_id: str) -> Trip:
    return remove_schedules_from_pattern(trip, pattern_id, [schedule_id])


def remove_schedules_from_pattern(trip: Trip, pattern_id: str, schedule_ids: Iterable[str]) -> Trip:
    ids = set(schedule_ids)

    def fn(pattern: DayPattern) -> DayPattern:
        if pattern.id != pattern_id:
            return pattern
        return _with_schedules(pattern, (s for s in pattern.schedules if s.id not in ids))

    return _map_patterns(trip, fn)


def remove_candidate(trip: Trip, candidate_id: str) -> Trip:
    return remove_candidates(trip, [candidate_id])


def remove_candidates(trip: Trip, candidate_ids: Iterable[str]) -> Trip:
    ids = set(candidate_ids)
    return trip.model_copy(update={"candidates": [c for c in trip.candidates if c.id not in ids]})


def move_schedule_to_candidate(trip: Trip, pattern_id: str, schedule_id: str) -> Trip:
    found = trip.find_pattern(pattern_id)
    schedule = next((s for s in found[1].schedules if s.id == schedule_id), None) if found else None
    if schedule is None:
        return trip
    trip = remove_schedule_from_pattern(trip, pattern_id, schedule_id)
    candidate = schedule.model_copy(update={"day_pattern_id": None, "sort_order": len(trip.candidates)})
    return trip.model_copy(update={"candidates": [*trip.candidates, candidate]})


def move_candidate_to_schedule(trip: Trip, candidate_id: str, pattern_id: str) -> Trip:
    candidate = next((c for c in trip.candidates if c.id == candidate_id), None)
    if candidate is None or trip.find_pattern(pattern_id) is None:
        return trip
    trip = remove_candidate(trip, candidate_id)

    def fn(pattern: DayPattern) -> DayPattern:
        if pattern.id != pattern_id:
            return pattern
        placed = candidate.model_copy(update={"day_pattern_id": pattern_id, "sort_order": len(pattern.schedules)})
        return _with_schedules(pattern, [*pattern.schedules, placed])

    return _map_patterns(trip, fn)
