"""
MongoDB-backed store.

Each level of the trip tree is its own collection (trips, trip_days,
day_patterns, schedules) keyed by the record id in ``_id``. The
optimistic lock is a single ``find_one_and_update`` with ``updated_at``
in the filter.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel
from pymongo import ReturnDocument, UpdateOne

from planner.db.database import (
    get_day_patterns_collection,
    get_schedules_collection,
    get_trip_days_collection,
    get_trips_collection,
)
from planner.models.common import truncate_to_millis
from planner.models.trip import DayPattern, Schedule, Trip, TripDay
from planner.store.base import ScheduleStore


def _to_doc(model: BaseModel, exclude: set[str] | None = None) -> dict[str, Any]:
    data = model.model_dump(exclude=exclude)
    # BSON has no plain date type
    for key, value in data.items():
        if isinstance(value, date) and not isinstance(value, datetime):
            data[key] = value.isoformat()
    data["_id"] = data.pop("id")
    return data


def _from_doc(doc: dict[str, Any] | None) -> dict[str, Any] | None:
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return doc


class MongoScheduleStore(ScheduleStore):
    def __init__(self) -> None:
        super().__init__()
        self.trips = get_trips_collection()
        self.days = get_trip_days_collection()
        self.patterns = get_day_patterns_collection()
        self.schedules = get_schedules_collection()

    async def _fetch_trip(self, trip_id: str) -> Trip | None:
        doc = _from_doc(await self.trips.find_one({"_id": trip_id}))
        return Trip(**doc) if doc else None

    async def _fetch_days(self, trip_id: str) -> list[TripDay]:
        cursor = self.days.find({"trip_id": trip_id}).sort("day_number", 1)
        return [TripDay(**_from_doc(d)) async for d in cursor]

    async def _fetch_day(self, day_id: str) -> TripDay | None:
        doc = _from_doc(await self.days.find_one({"_id": day_id}))
        return TripDay(**doc) if doc else None

    async def _fetch_patterns(self, day_ids: list[str]) -> list[DayPattern]:
        cursor = self.patterns.find({"trip_day_id": {"$in": day_ids}}).sort("sort_order", 1)
        return [DayPattern(**_from_doc(p)) async for p in cursor]

    async def _fetch_pattern(self, pattern_id: str) -> DayPattern | None:
        doc = _from_doc(await self.patterns.find_one({"_id": pattern_id}))
        return DayPattern(**doc) if doc else None

    async def _fetch_schedules(self, trip_id: str) -> list[Schedule]:
        cursor = self.schedules.find({"trip_id": trip_id})
        return [Schedule(**_from_doc(s)) async for s in cursor]

    async def _fetch_schedule(self, schedule_id: str) -> Schedule | None:
        doc = _from_doc(await self.schedules.find_one({"_id": schedule_id}))
        return Schedule(**doc) if doc else None

    async def _insert_trip(self, trip: Trip, days: list[TripDay], patterns: list[DayPattern]) -> None:
        await self.trips.insert_one(_to_doc(trip, exclude={"days", "candidates", "role"}))
        if days:
            await self.days.insert_many([_to_doc(d, exclude={"patterns"}) for d in days])
        if patterns:
            await self.patterns.insert_many([_to_doc(p, exclude={"schedules"}) for p in patterns])

    async def _update_trip(self, trip_id: str, fields: dict[str, Any]) -> Trip | None:
        doc = await self.trips.find_one_and_update(
            {"_id": trip_id}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )
        doc = _from_doc(doc)
        return Trip(**doc) if doc else None

    async def _insert_pattern(self, pattern: DayPattern) -> None:
        await self.patterns.insert_one(_to_doc(pattern, exclude={"schedules"}))

    async def _delete_pattern(self, pattern_id: str) -> None:
        await self.schedules.delete_many({"day_pattern_id": pattern_id})
        await self.patterns.delete_one({"_id": pattern_id})

    async def _insert_schedules(self, schedules: list[Schedule]) -> None:
        if schedules:
            await self.schedules.insert_many([_to_doc(s) for s in schedules])

    async def _update_schedule(
        self, schedule_id: str, fields: dict[str, Any], expected_updated_at: datetime | None = None
    ) -> Schedule | None:
        query: dict[str, Any] = {"_id": schedule_id}
        if expected_updated_at is not None:
            query["updated_at"] = truncate_to_millis(expected_updated_at)
        doc = await self.schedules.find_one_and_update(
            query, {"$set": fields}, return_document=ReturnDocument.AFTER
        )
        doc = _from_doc(doc)
        return Schedule(**doc) if doc else None

    async def _update_schedules(self, updates: dict[str, dict[str, Any]]) -> None:
        if not updates:
            return
        await self.schedules.bulk_write(
            [UpdateOne({"_id": sid}, {"$set": fields}) for sid, fields in updates.items()],
            ordered=True,
        )

    async def _delete_schedules(self, schedule_ids: list[str]) -> None:
        if schedule_ids:
            await self.schedules.delete_many({"_id": {"$in": schedule_ids}})
