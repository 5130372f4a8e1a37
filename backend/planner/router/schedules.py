"""
Schedule Router
Timeline items of one day pattern: single edits guarded by
``expected_updated_at`` and one-call batch actions.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from planner.core.exceptions import GoneError, PlannerError
from planner.models.common import APIResponse
from planner.models.schedule import (
    BatchShiftRequest,
    ReorderRequest,
    ScheduleCreate,
    ScheduleIdsRequest,
    ScheduleUpdate,
)
from planner.router.deps import (
    get_client_id,
    get_current_user_id,
    get_publisher,
    get_store,
    http_error,
    require_member,
)
from planner.store.base import ScheduleStore

router = APIRouter(prefix="/trips/{trip_id}", tags=["Schedules"])

PATTERN_PATH = "/days/{day_id}/patterns/{pattern_id}/schedules"


async def _schedule_in_pattern(store: ScheduleStore, trip_id: str, pattern_id: str, schedule_id: str):
    schedule = await store.get_schedule(schedule_id)
    if schedule is None or schedule.trip_id != trip_id or schedule.day_pattern_id != pattern_id:
        raise GoneError(ids=[schedule_id])
    return schedule


@router.post(PATTERN_PATH, response_model=APIResponse)
async def create_schedule(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    body: ScheduleCreate,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        schedule = await store.create_schedule(trip_id, pattern_id, body.model_dump())
    except PlannerError as e:
        raise http_error(e)
    data = schedule.model_dump(mode="json")
    publisher.publish(trip_id, "schedule:created", data, exclude=client_id)
    return APIResponse(code=0, msg="Schedule created", data=data)


@router.patch(PATTERN_PATH + "/reorder", response_model=APIResponse)
async def reorder_schedules(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    body: ReorderRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        await store.reorder(pattern_id, body.schedule_ids)
    except PlannerError as e:
        raise http_error(e)
    payload = {"pattern_id": pattern_id, "schedule_ids": body.schedule_ids}
    publisher.publish(trip_id, "schedule:reordered", payload, exclude=client_id)
    return APIResponse(code=0, msg="ok", data=payload)


@router.patch(PATTERN_PATH + "/{schedule_id}", response_model=APIResponse)
async def update_schedule(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    schedule_id: str,
    body: ScheduleUpdate,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        await _schedule_in_pattern(store, trip_id, pattern_id, schedule_id)
        schedule = await store.write_schedule(schedule_id, body.patch(), body.expected_updated_at)
    except PlannerError as e:
        raise http_error(e)
    data = schedule.model_dump(mode="json")
    publisher.publish(trip_id, "schedule:updated", data, exclude=client_id)
    return APIResponse(code=0, msg="Schedule updated", data=data)


@router.delete(PATTERN_PATH + "/{schedule_id}", response_model=APIResponse)
async def delete_schedule(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    schedule_id: str,
    expected_updated_at: datetime | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        await _schedule_in_pattern(store, trip_id, pattern_id, schedule_id)
        await store.delete_schedule(schedule_id, expected_updated_at)
    except PlannerError as e:
        raise http_error(e)
    publisher.publish(trip_id, "schedule:deleted", {"id": schedule_id, "pattern_id": pattern_id}, exclude=client_id)
    return APIResponse(code=0, msg="Schedule deleted", data={"id": schedule_id})


@router.post(PATTERN_PATH + "/batch-shift", response_model=APIResponse)
async def batch_shift(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    body: BatchShiftRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        result = await store.batch_write(
            "shift",
            trip_id,
            body.schedule_ids,
            {"pattern_id": pattern_id, "delta_minutes": body.delta_minutes},
        )
    except PlannerError as e:
        raise http_error(e)
    data = result.model_dump()
    publisher.publish(trip_id, "schedule:batch-shifted", {"pattern_id": pattern_id, **data}, exclude=client_id)
    return APIResponse(code=0, msg="ok", data=data)


@router.post(PATTERN_PATH + "/batch-delete", response_model=APIResponse)
async def batch_delete(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    body: ScheduleIdsRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        result = await store.batch_write("delete", trip_id, body.schedule_ids, {"pattern_id": pattern_id})
    except PlannerError as e:
        raise http_error(e)
    data = result.model_dump()
    publisher.publish(trip_id, "schedule:batch-deleted", {"pattern_id": pattern_id, **data}, exclude=client_id)
    return APIResponse(code=0, msg="ok", data=data)


@router.post(PATTERN_PATH + "/batch-duplicate", response_model=APIResponse)
async def batch_duplicate(
    trip_id: str,
    day_id: str,
    pattern_id: str,
    body: ScheduleIdsRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        await store.verify_pattern(trip_id, day_id, pattern_id)
        result = await store.batch_write("duplicate", trip_id, body.schedule_ids, {"pattern_id": pattern_id})
    except PlannerError as e:
        raise http_error(e)
    data = result.model_dump()
    publisher.publish(trip_id, "schedule:batch-duplicated", {"pattern_id": pattern_id, **data}, exclude=client_id)
    return APIResponse(code=0, msg="ok", data=data)


@router.post("/schedules/batch-unassign", response_model=APIResponse)
async def batch_unassign(
    trip_id: str,
    body: ScheduleIdsRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        result = await store.batch_write("unassign", trip_id, body.schedule_ids)
    except PlannerError as e:
        raise http_error(e)
    data = result.model_dump()
    publisher.publish(trip_id, "schedule:batch-unassigned", data, exclude=client_id)
    return APIResponse(code=0, msg="ok", data=data)
