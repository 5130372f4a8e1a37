"""
Record store contract for the trip tree.

``ScheduleStore`` implements every operation the API and the timeline engine
need on top of a small set of storage primitives; concrete stores only supply
the primitives. Batch operations validate the whole id set before writing
anything, so a batch either applies completely or not at all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
import logging
from typing import Any, AsyncIterator, Iterable

from planner.core.config import MAX_PATTERNS_PER_DAY, MAX_SCHEDULES_PER_TRIP, MAX_TRIP_DAYS
from planner.core.exceptions import GoneError, InvalidOperation, LimitExceeded
from planner.models.common import utc_now
from planner.models.schedule import NON_NULLABLE_FIELDS, BatchOp, BatchResult
from planner.models.trip import (
    DEFAULT_PATTERN_LABEL,
    DayPattern,
    MemberRole,
    Schedule,
    Trip,
    TripCreate,
    TripDay,
    TripStatus,
)
from planner.store.guard import check_expected_updated_at
from planner.timeline.cascade import ShiftedTimes, shift_schedule
from planner.timeline.status import is_forward_transition
from planner.timeline.time_utils import time_to_minutes

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "name",
        "category",
        "color",
        "address",
        "memo",
        "urls",
        "start_time",
        "end_time",
        "end_day_offset",
        "departure_place",
        "arrival_place",
        "transport_method",
    }
)

# Fields copied by duplicate; placement, ids and timestamps are re-issued
COPY_FIELDS = EDITABLE_FIELDS


def generate_date_range(start: date, end: date) -> list[date]:
    days = (end - start).days + 1
    return [start + timedelta(days=i) for i in range(max(days, 0))]


def _check_fields(fields: dict[str, Any]) -> None:
    """Reject values the timeline engine cannot read back: nulled required fields and bad times."""
    nulls = [name for name in NON_NULLABLE_FIELDS if name in fields and fields[name] is None]
    if nulls:
        raise InvalidOperation(f"Fields cannot be null: {', '.join(nulls)}")
    for name in ("start_time", "end_time"):
        if fields.get(name) is not None:
            time_to_minutes(fields[name])


class ScheduleStore(ABC):
    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    @asynccontextmanager
    async def _atomic(self) -> AsyncIterator[None]:
        # Serializes multi-record writes issued through this store instance
        async with self._write_lock:
            yield

    # ---- primitives ----

    @abstractmethod
    async def _fetch_trip(self, trip_id: str) -> Trip | None: ...

    @abstractmethod
    async def _fetch_days(self, trip_id: str) -> list[TripDay]: ...

    @abstractmethod
    async def _fetch_day(self, day_id: str) -> TripDay | None: ...

    @abstractmethod
    async def _fetch_patterns(self, day_ids: list[str]) -> list[DayPattern]: ...

    @abstractmethod
    async def _fetch_pattern(self, pattern_id: str) -> DayPattern | None: ...

    @abstractmethod
    async def _fetch_schedules(self, trip_id: str) -> list[Schedule]: ...

    @abstractmethod
    async def _fetch_schedule(self, schedule_id: str) -> Schedule | None: ...

    @abstractmethod
    async def _insert_trip(self, trip: Trip, days: list[TripDay], patterns: list[DayPattern]) -> None: ...

    @abstractmethod
    async def _update_trip(self, trip_id: str, fields: dict[str, Any]) -> Trip | None: ...

    @abstractmethod
    async def _insert_pattern(self, pattern: DayPattern) -> None: ...

    @abstractmethod
    async def _delete_pattern(self, pattern_id: str) -> None:
        """Delete the pattern and every schedule placed on it."""

    @abstractmethod
    async def _insert_schedules(self, schedules: list[Schedule]) -> None: ...

    @abstractmethod
    async def _update_schedule(
        self, schedule_id: str, fields: dict[str, Any], expected_updated_at: datetime | None = None
    ) -> Schedule | None:
        """Atomic single-record update; None when missing or ``updated_at`` moved."""

    @abstractmethod
    async def _update_schedules(self, updates: dict[str, dict[str, Any]]) -> None: ...

    @abstractmethod
    async def _delete_schedules(self, schedule_ids: list[str]) -> None: ...

    # ---- trip ----

    async def create_trip(self, payload: TripCreate, owner_id: str) -> Trip:
        dates = generate_date_range(payload.start_date, payload.end_date)
        if len(dates) > MAX_TRIP_DAYS:
            raise LimitExceeded(f"A trip can span at most {MAX_TRIP_DAYS} days")
        trip = Trip(
            title=payload.title,
            destination=payload.destination,
            start_date=payload.start_date,
            end_date=payload.end_date,
            members={owner_id: "owner"},
        )
        days = [TripDay(trip_id=trip.id, day_number=i, date=d) for i, d in enumerate(dates, start=1)]
        patterns = [
            DayPattern(trip_day_id=day.id, label=DEFAULT_PATTERN_LABEL, is_default=True, sort_order=0)
            for day in days
        ]
        await self._insert_trip(trip, days, patterns)
        logger.info("[create_trip] %s with %d day(s)", trip.id, len(days))
        return await self.read_trip(trip.id, owner_id)

    async def read_trip(self, trip_id: str, user_id: str | None = None) -> Trip:
        """Full day/pattern/schedule snapshot; ``role`` is the requesting user's."""
        trip = await self._fetch_trip(trip_id)
        if trip is None:
            raise GoneError("Trip not found")
        days = await self._fetch_days(trip_id)
        patterns = await self._fetch_patterns([d.id for d in days])
        schedules = sorted(await self._fetch_schedules(trip_id), key=lambda s: s.sort_order)

        by_pattern: dict[str, list[Schedule]] = {p.id: [] for p in patterns}
        candidates: list[Schedule] = []
        for schedule in schedules:
            if schedule.day_pattern_id is None:
                candidates.append(schedule)
            elif schedule.day_pattern_id in by_pattern:
                by_pattern[schedule.day_pattern_id].append(schedule)

        patterns_by_day: dict[str, list[DayPattern]] = {d.id: [] for d in days}
        for pattern in sorted(patterns, key=lambda p: p.sort_order):
            patterns_by_day.setdefault(pattern.trip_day_id, []).append(
                pattern.model_copy(update={"schedules": by_pattern[pattern.id]})
            )
        tree_days = [
            day.model_copy(update={"patterns": patterns_by_day[day.id]})
            for day in sorted(days, key=lambda d: d.day_number)
        ]
        role = trip.members.get(user_id) if user_id else None
        return trip.model_copy(update={"days": tree_days, "candidates": candidates, "role": role})

    async def get_role(self, trip_id: str, user_id: str) -> MemberRole | None:
        trip = await self._fetch_trip(trip_id)
        if trip is None:
            return None
        return trip.members.get(user_id)

    async def add_member(self, trip_id: str, user_id: str, role: MemberRole) -> Trip:
        trip = await self._fetch_trip(trip_id)
        if trip is None:
            raise GoneError("Trip not found")
        members = {**trip.members, user_id: role}
        updated = await self._update_trip(trip_id, {"members": members, "updated_at": utc_now()})
        return updated or trip

    async def update_trip_status(self, trip_id: str, status: TripStatus) -> Trip:
        """Monotonic: planned -> active -> completed. Repeating the current status is a no-op."""
        async with self._atomic():
            trip = await self._fetch_trip(trip_id)
            if trip is None:
                raise GoneError("Trip not found")
            if trip.status == status:
                return trip
            if not is_forward_transition(trip.status, status):
                raise InvalidOperation(f"Cannot move trip from {trip.status} back to {status}")
            updated = await self._update_trip(trip_id, {"status": status, "updated_at": utc_now()})
        logger.info("[trip_status] %s: %s -> %s", trip_id, trip.status, status)
        return updated or trip

    # ---- patterns ----

    async def verify_pattern(self, trip_id: str, day_id: str, pattern_id: str) -> tuple[TripDay, DayPattern]:
        """The pattern, provided it sits on ``day_id`` of ``trip_id``."""
        pattern = await self._fetch_pattern(pattern_id)
        if pattern is None or pattern.trip_day_id != day_id:
            raise GoneError("Pattern not found")
        day = await self._fetch_day(day_id)
        if day is None or day.trip_id != trip_id:
            raise GoneError("Pattern not found")
        return day, pattern

    async def _pattern_in_trip(self, trip_id: str, pattern_id: str) -> DayPattern:
        pattern = await self._fetch_pattern(pattern_id)
        if pattern is None:
            raise GoneError("Pattern not found")
        day = await self._fetch_day(pattern.trip_day_id)
        if day is None or day.trip_id != trip_id:
            raise GoneError("Pattern not found")
        return pattern

    async def add_pattern(self, trip_id: str, day_id: str, label: str) -> DayPattern:
        async with self._atomic():
            day = await self._fetch_day(day_id)
            if day is None or day.trip_id != trip_id:
                raise GoneError("Day not found")
            existing = await self._fetch_patterns([day_id])
            if len(existing) >= MAX_PATTERNS_PER_DAY:
                raise LimitExceeded(f"A day can have at most {MAX_PATTERNS_PER_DAY} patterns")
            pattern = DayPattern(
                trip_day_id=day_id,
                label=label,
                is_default=False,
                sort_order=max((p.sort_order for p in existing), default=-1) + 1,
            )
            await self._insert_pattern(pattern)
        return pattern

    async def delete_pattern(self, trip_id: str, pattern_id: str) -> None:
        async with self._atomic():
            pattern = await self._pattern_in_trip(trip_id, pattern_id)
            if pattern.is_default:
                raise InvalidOperation("Cannot delete default pattern")
            await self._delete_pattern(pattern_id)
        logger.info("[delete_pattern] %s removed from trip %s", pattern_id, trip_id)

    # ---- single schedules ----

    async def get_schedule(self, schedule_id: str) -> Schedule | None:
        return await self._fetch_schedule(schedule_id)

    async def create_schedule(self, trip_id: str, pattern_id: str | None, data: dict[str, Any]) -> Schedule:
        """Add to a pattern's timeline, or to the candidate pool when ``pattern_id`` is None."""
        async with self._atomic():
            if pattern_id is not None:
                await self._pattern_in_trip(trip_id, pattern_id)
            existing = await self._fetch_schedules(trip_id)
            if len(existing) >= MAX_SCHEDULES_PER_TRIP:
                raise LimitExceeded(f"A trip can hold at most {MAX_SCHEDULES_PER_TRIP} schedules")
            fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
            _check_fields(fields)
            schedule = Schedule(
                trip_id=trip_id,
                day_pattern_id=pattern_id,
                sort_order=self._next_sort_order(existing, pattern_id),
                **fields,
            )
            await self._insert_schedules([schedule])
        return schedule

    async def write_schedule(
        self, schedule_id: str, patch: dict[str, Any], expected_updated_at: datetime | None = None
    ) -> Schedule:
        """
        Apply ``patch``; with ``expected_updated_at`` the write only lands if
        nobody else wrote in between (ConflictError), and never on a deleted
        schedule (GoneError).
        """
        unknown = set(patch) - EDITABLE_FIELDS
        if unknown:
            raise InvalidOperation(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        _check_fields(patch)
        async with self._atomic():
            current = check_expected_updated_at(
                schedule_id, await self._fetch_schedule(schedule_id), expected_updated_at
            )
            fields = dict(patch)
            end_time = fields.get("end_time", current.end_time)
            if not end_time:
                fields["end_day_offset"] = None
            fields["updated_at"] = utc_now()
            updated = await self._update_schedule(schedule_id, fields, expected_updated_at)
            if updated is None:
                # Lost a race between the check and the write
                check_expected_updated_at(
                    schedule_id, await self._fetch_schedule(schedule_id), expected_updated_at
                )
                raise GoneError(ids=[schedule_id])
        return updated

    async def delete_schedule(self, schedule_id: str, expected_updated_at: datetime | None = None) -> Schedule:
        async with self._atomic():
            current = check_expected_updated_at(
                schedule_id, await self._fetch_schedule(schedule_id), expected_updated_at
            )
            await self._delete_schedules([schedule_id])
            await self._densify(current.trip_id, current.day_pattern_id)
        return current

    async def reorder(self, pattern_id: str, ordered_ids: list[str]) -> None:
        """
        Re-issue sort orders 0..n-1 in the given order. Schedules of the pattern
        missing from ``ordered_ids`` keep their relative order after the listed ones.
        """
        async with self._atomic():
            pattern = await self._fetch_pattern(pattern_id)
            if pattern is None:
                raise GoneError("Pattern not found")
            day = await self._fetch_day(pattern.trip_day_id)
            if day is None:
                raise GoneError("Pattern not found")
            scope = self._scope(await self._fetch_schedules(day.trip_id), pattern_id)
            in_scope = {s.id for s in scope}
            if any(sid not in in_scope for sid in ordered_ids):
                raise InvalidOperation("Some schedules do not belong to this pattern")
            listed = list(dict.fromkeys(ordered_ids))
            rest = [s.id for s in scope if s.id not in set(listed)]
            await self._apply_order(scope, listed + rest)

    # ---- batches ----

    async def batch_write(
        self, op: BatchOp, trip_id: str, schedule_ids: Iterable[str], params: dict[str, Any] | None = None
    ) -> BatchResult:
        """
        One atomic call per logical batch action.

        params: ``pattern_id`` scopes shift/delete/duplicate to a pattern
        (None means the candidate pool), ``day_pattern_id`` is the assign
        target and ``delta_minutes`` the shift amount.
        """
        ids = list(dict.fromkeys(schedule_ids))
        if not ids:
            raise InvalidOperation("No schedules selected")
        params = params or {}
        async with self._atomic():
            existing = await self._fetch_schedules(trip_id)
            if op == "shift":
                result = await self._batch_shift(existing, ids, params["pattern_id"], int(params["delta_minutes"]))
            elif op == "assign":
                result = await self._batch_assign(trip_id, existing, ids, params["day_pattern_id"])
            elif op == "unassign":
                result = await self._batch_unassign(existing, ids)
            elif op == "delete":
                result = await self._batch_delete(trip_id, existing, ids, params.get("pattern_id"))
            elif op == "duplicate":
                result = await self._batch_duplicate(trip_id, existing, ids, params.get("pattern_id"))
            else:
                raise InvalidOperation(f"Unknown batch operation: {op}")
        logger.info(
            "[batch_%s] trip=%s updated=%d skipped=%d",
            op, trip_id, result.updated_count, result.skipped_count,
        )
        return result

    async def _batch_shift(
        self, existing: list[Schedule], ids: list[str], pattern_id: str, delta: int
    ) -> BatchResult:
        targets = self._require(existing, ids, lambda s: s.day_pattern_id == pattern_id)
        now = utc_now()
        updates: dict[str, dict[str, Any]] = {}
        for schedule in targets:
            outcome = shift_schedule(schedule, delta)
            if isinstance(outcome, ShiftedTimes):
                updates[schedule.id] = {
                    "start_time": outcome.start_time,
                    "end_time": outcome.end_time,
                    "updated_at": now,
                }
        if updates:
            await self._update_schedules(updates)
        return BatchResult(
            updated_count=len(updates),
            skipped_count=len(targets) - len(updates),
            schedule_ids=list(updates),
        )

    async def _batch_assign(
        self, trip_id: str, existing: list[Schedule], ids: list[str], day_pattern_id: str
    ) -> BatchResult:
        await self._pattern_in_trip(trip_id, day_pattern_id)
        self._require(existing, ids, lambda s: s.day_pattern_id is None)
        start = self._next_sort_order(existing, day_pattern_id)
        now = utc_now()
        await self._update_schedules(
            {
                sid: {"day_pattern_id": day_pattern_id, "sort_order": start + i, "updated_at": now}
                for i, sid in enumerate(ids)
            }
        )
        await self._densify(trip_id, None)
        return BatchResult(updated_count=len(ids), schedule_ids=ids)

    async def _batch_unassign(self, existing: list[Schedule], ids: list[str]) -> BatchResult:
        targets = self._require(existing, ids, lambda s: s.day_pattern_id is not None)
        start = self._next_sort_order(existing, None)
        now = utc_now()
        await self._update_schedules(
            {sid: {"day_pattern_id": None, "sort_order": start + i, "updated_at": now} for i, sid in enumerate(ids)}
        )
        trip_id = targets[0].trip_id
        for pattern_id in dict.fromkeys(s.day_pattern_id for s in targets):
            await self._densify(trip_id, pattern_id)
        return BatchResult(updated_count=len(ids), schedule_ids=ids)

    async def _batch_delete(
        self, trip_id: str, existing: list[Schedule], ids: list[str], pattern_id: str | None
    ) -> BatchResult:
        self._require(existing, ids, lambda s: s.day_pattern_id == pattern_id)
        await self._delete_schedules(ids)
        await self._densify(trip_id, pattern_id)
        return BatchResult(updated_count=len(ids), schedule_ids=ids)

    async def _batch_duplicate(
        self, trip_id: str, existing: list[Schedule], ids: list[str], pattern_id: str | None
    ) -> BatchResult:
        if len(existing) + len(ids) > MAX_SCHEDULES_PER_TRIP:
            raise LimitExceeded(f"A trip can hold at most {MAX_SCHEDULES_PER_TRIP} schedules")
        targets = self._require(existing, ids, lambda s: s.day_pattern_id == pattern_id)
        start = self._next_sort_order(existing, pattern_id)
        copies = [
            Schedule(
                trip_id=trip_id,
                day_pattern_id=pattern_id,
                sort_order=start + i,
                **schedule.model_dump(include=set(COPY_FIELDS)),
            )
            for i, schedule in enumerate(targets)
        ]
        await self._insert_schedules(copies)
        return BatchResult(updated_count=len(copies), schedule_ids=[c.id for c in copies])

    # ---- helpers ----

    @staticmethod
    def _scope(schedules: Iterable[Schedule], pattern_id: str | None) -> list[Schedule]:
        return sorted((s for s in schedules if s.day_pattern_id == pattern_id), key=lambda s: s.sort_order)

    @classmethod
    def _next_sort_order(cls, schedules: Iterable[Schedule], pattern_id: str | None) -> int:
        return max((s.sort_order for s in cls._scope(schedules, pattern_id)), default=-1) + 1

    @staticmethod
    def _require(existing: list[Schedule], ids: list[str], in_scope) -> list[Schedule]:
        """Schedules for ``ids`` in request order; GoneError if any is missing or out of scope."""
        by_id = {s.id: s for s in existing}
        missing = [sid for sid in ids if sid not in by_id or not in_scope(by_id[sid])]
        if missing:
            raise GoneError(ids=missing)
        return [by_id[sid] for sid in ids]

    async def _densify(self, trip_id: str, pattern_id: str | None) -> None:
        scope = self._scope(await self._fetch_schedules(trip_id), pattern_id)
        await self._apply_order(scope, [s.id for s in scope])

    async def _apply_order(self, scope: list[Schedule], ordered_ids: list[str]) -> None:
        # sort_order is presentation only: updated_at is left alone
        current = {s.id: s.sort_order for s in scope}
        updates = {sid: {"sort_order": i} for i, sid in enumerate(ordered_ids) if current.get(sid) != i}
        if updates:
            await self._update_schedules(updates)
