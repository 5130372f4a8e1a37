"""
Trip Router
Trip lifecycle, day patterns and the per-day timeline views
"""


from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from planner.core.exceptions import GoneError, PermissionDenied, PlannerError
from planner.models.common import APIResponse
from planner.models.trip import MemberRole, PatternCreate, Trip, TripCreate, TripDay, TripStatusUpdate
from planner.router.deps import (
    get_client_id,
    get_current_user_id,
    get_publisher,
    get_store,
    http_error,
    require_member,
)
from planner.store.base import ScheduleStore
from planner.timeline.cross_day import (
    CrossDayEntry,
    TimelineItem,
    build_merged_timeline,
    get_cross_day_entries,
    get_cross_day_label,
    get_start_day_label,
)

router = APIRouter(prefix="/trips", tags=["Trips"])


class MemberAdd(BaseModel):
    user_id: str
    role: MemberRole = "editor"


def _day_by_number(trip: Trip, day_number: int) -> TripDay:
    day = next((d for d in trip.days if d.day_number == day_number), None)
    if day is None:
        raise GoneError("Day not found")
    return day


def _entry_json(entry: CrossDayEntry) -> dict:
    return {
        "schedule": entry.schedule.model_dump(mode="json"),
        "source_day_id": entry.source_day_id,
        "source_pattern_id": entry.source_pattern_id,
        "source_day_number": entry.source_day_number,
        "position": entry.position,
        "label": get_cross_day_label(entry.schedule.category, entry.position),
    }


def _item_json(item: TimelineItem) -> dict:
    if item.kind == "cross_day":
        return {"kind": item.kind, "id": item.sortable_id, **_entry_json(item.entry)}
    schedule = item.schedule
    return {
        "kind": item.kind,
        "id": item.sortable_id,
        "schedule": schedule.model_dump(mode="json"),
        "label": get_start_day_label(schedule.category) if schedule.spans_days else None,
    }


@router.post("", response_model=APIResponse)
async def create_trip(
    body: TripCreate,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
):
    try:
        trip = await store.create_trip(body, user_id)
    except PlannerError as e:
        raise http_error(e)
    return APIResponse(code=0, msg="Trip created", data=trip.model_dump(mode="json"))


@router.get("/{trip_id}", response_model=APIResponse)
async def get_trip(
    trip_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
):
    try:
        await require_member(store, trip_id, user_id)
        trip = await store.read_trip(trip_id, user_id)
    except PlannerError as e:
        raise http_error(e)
    return APIResponse(code=0, msg="ok", data=trip.model_dump(mode="json"))


@router.post("/{trip_id}/members", response_model=APIResponse)
async def add_member(
    trip_id: str,
    body: MemberAdd,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
):
    try:
        role = await require_member(store, trip_id, user_id)
        if role != "owner":
            raise PermissionDenied("Only the owner can manage members", is_member=True)
        trip = await store.add_member(trip_id, body.user_id, body.role)
    except PlannerError as e:
        raise http_error(e)
    return APIResponse(code=0, msg="Member added", data={"members": trip.members})


@router.patch("/{trip_id}/status", response_model=APIResponse)
async def update_trip_status(
    trip_id: str,
    body: TripStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        trip = await store.update_trip_status(trip_id, body.status)
    except PlannerError as e:
        raise http_error(e)
    publisher.publish(trip_id, "trip:status-updated", {"status": trip.status}, exclude=client_id)
    return APIResponse(code=0, msg="ok", data={"id": trip.id, "status": trip.status})


@router.get("/{trip_id}/days/{day_number}/cross-day", response_model=APIResponse)
async def get_cross_day(
    trip_id: str,
    day_number: int,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
):
    try:
        await require_member(store, trip_id, user_id)
        trip = await store.read_trip(trip_id, user_id)
        _day_by_number(trip, day_number)
        entries = get_cross_day_entries(trip.days, day_number)
    except PlannerError as e:
        raise http_error(e)
    return APIResponse(code=0, msg="ok", data={"entries": [_entry_json(e) for e in entries]})


@router.get("/{trip_id}/days/{day_number}/timeline", response_model=APIResponse)
async def get_timeline(
    trip_id: str,
    day_number: int,
    pattern_id: str | None = Query(default=None, description="Defaults to the day's default pattern"),
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
):
    try:
        await require_member(store, trip_id, user_id)
        trip = await store.read_trip(trip_id, user_id)
        day = _day_by_number(trip, day_number)
        if pattern_id:
            pattern = day.pattern(pattern_id)
        else:
            pattern = next((p for p in day.patterns if p.is_default), day.patterns[0] if day.patterns else None)
        if pattern is None:
            raise GoneError("Pattern not found")
        items = build_merged_timeline(pattern.schedules, get_cross_day_entries(trip.days, day_number))
    except PlannerError as e:
        raise http_error(e)
    return APIResponse(
        code=0,
        msg="ok",
        data={"day_id": day.id, "pattern_id": pattern.id, "items": [_item_json(i) for i in items]},
    )


@router.post("/{trip_id}/days/{day_id}/patterns", response_model=APIResponse)
async def create_pattern(
    trip_id: str,
    day_id: str,
    body: PatternCreate,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        pattern = await store.add_pattern(trip_id, day_id, body.label)
    except PlannerError as e:
        raise http_error(e)
    data = pattern.model_dump(mode="json")
    publisher.publish(trip_id, "pattern:created", data, exclude=client_id)
    return APIResponse(code=0, msg="Pattern created", data=data)


@router.delete("/{trip_id}/days/{day_id}/patterns/{pattern_id}", response_model=APIResponse)
async def delete_pattern(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        await store.delete_pattern(trip_id, pattern_id)
    except PlannerError as e:
        raise http_error(e)
    publisher.publish(trip_id, "pattern:deleted", {"day_id": day_id, "pattern_id": pattern_id}, exclude=client_id)
    return APIResponse(code=0, msg="Pattern deleted", data={"id": pattern_id})
