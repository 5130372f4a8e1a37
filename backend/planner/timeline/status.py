"""
Automatic trip status lifecycle: planned -> active -> completed.

``next_trip_status`` is the pure decision; ``AutoStatusTransition`` drives it
against the API as a soft background write with a bounded number of attempts
per status value and no user-facing error.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import Awaitable, Callable, Protocol

from planner.client.messages import MSG
from planner.client.notifier import Notifier
from planner.core.config import STATUS_TRANSITION_MAX_ATTEMPTS
from planner.core.exceptions import MutationError
from planner.models.trip import TRIP_STATUS_ORDER, Schedule, Trip, TripStatus
from planner.timeline.time_utils import get_time_status

logger = logging.getLogger(__name__)


def schedules_on(trip: Trip, on: date) -> list[Schedule]:
    return [s for d in trip.days if d.date == on for p in d.patterns for s in p.schedules]


def next_trip_status(trip: Trip, today: date, now: str) -> TripStatus | None:
    """
    Status the trip should move to given the local date and "HH:MM" time, or None.
    """
    if trip.status == "planned":
        if today > trip.start_date:
            return "active"
        if today == trip.start_date:
            todays = schedules_on(trip, today)
            if any(get_time_status(now, s.start_time, s.end_time) != "future" for s in todays):
                return "active"
    elif trip.status == "active":
        if today > trip.end_date:
            return "completed"
        if today == trip.end_date:
            todays = schedules_on(trip, today)
            if todays and all(get_time_status(now, s.start_time, s.end_time) == "past" for s in todays):
                return "completed"
    return None


def is_forward_transition(current: TripStatus, target: TripStatus) -> bool:
    return TRIP_STATUS_ORDER.index(target) > TRIP_STATUS_ORDER.index(current)


class StatusWriter(Protocol):
    async def update_trip_status(self, trip_id: str, status: TripStatus) -> object: ...


class AutoStatusTransition:
    """Fires at most one in-flight transition; re-arms only while attempts remain."""

    def __init__(
        self,
        api: StatusWriter,
        notifier: Notifier | None = None,
        on_mutate: Callable[[], Awaitable[None]] | None = None,
        max_attempts: int = STATUS_TRANSITION_MAX_ATTEMPTS,
    ):
        self._api = api
        self._notifier = notifier
        self._on_mutate = on_mutate
        self._max_attempts = max_attempts
        self._seen_status: TripStatus | None = None
        self._triggered = False
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    async def check(self, trip: Trip, today: date, now: str) -> TripStatus | None:
        if trip.status != self._seen_status:
            self._seen_status = trip.status
            self._triggered = False
            self._attempts = 0

        # Viewers cannot write; trying would only burn the retry budget
        if self._triggered or trip.role == "viewer":
            return None

        target = next_trip_status(trip, today, now)
        if target is None:
            return None

        self._triggered = True
        try:
            await self._api.update_trip_status(trip.id, target)
        except MutationError as e:
            self._attempts += 1
            if self._attempts < self._max_attempts:
                self._triggered = False
            logger.debug(
                "[auto_status] %s -> %s failed (attempt %d/%d): %s",
                trip.status, target, self._attempts, self._max_attempts, e,
            )
            return None

        logger.info("[auto_status] trip %s moved %s -> %s", trip.id, trip.status, target)
        if self._notifier:
            self._notifier.success(MSG.TRIP_AUTO_ACTIVE if target == "active" else MSG.TRIP_AUTO_COMPLETED)
        if self._on_mutate:
            await self._on_mutate()
        return target
