"""
Candidate Router
The trip's unplaced items and their batch moves onto a pattern
"""

from fastapi import APIRouter, Depends

from planner.core.exceptions import PlannerError
from planner.models.common import APIResponse
from planner.models.schedule import BatchAssignRequest, CandidateCreate, ScheduleIdsRequest
from planner.router.deps import (
    get_client_id,
    get_current_user_id,
    get_publisher,
    get_store,
    http_error,
    require_member,
)
from planner.store.base import ScheduleStore

router = APIRouter(prefix="/trips/{trip_id}/candidates", tags=["Candidates"])


@router.post("", response_model=APIResponse)
async def create_candidate(
    trip_id: str,
    body: CandidateCreate,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        candidate = await store.create_schedule(trip_id, None, body.model_dump())
    except PlannerError as e:
        raise http_error(e)
    data = candidate.model_dump(mode="json")
    publisher.publish(trip_id, "candidate:created", data, exclude=client_id)
    return APIResponse(code=0, msg="Candidate created", data=data)


@router.post("/batch-assign", response_model=APIResponse)
async def batch_assign(
    trip_id: str,
    body: BatchAssignRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        result = await store.batch_write(
            "assign", trip_id, body.schedule_ids, {"day_pattern_id": body.day_pattern_id}
        )
    except PlannerError as e:
        raise http_error(e)
    data = result.model_dump()
    publisher.publish(
        trip_id, "candidate:batch-assigned", {"day_pattern_id": body.day_pattern_id, **data}, exclude=client_id
    )
    return APIResponse(code=0, msg="ok", data=data)


@router.post("/batch-delete", response_model=APIResponse)
async def batch_delete_candidates(
    trip_id: str,
    body: ScheduleIdsRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        result = await store.batch_write("delete", trip_id, body.schedule_ids, {"pattern_id": None})
    except PlannerError as e:
        raise http_error(e)
    data = result.model_dump()
    publisher.publish(trip_id, "candidate:batch-deleted", data, exclude=client_id)
    return APIResponse(code=0, msg="ok", data=data)


@router.post("/batch-duplicate", response_model=APIResponse)
async def batch_duplicate_candidates(
    trip_id: str,
    body: ScheduleIdsRequest,
    user_id: str = Depends(get_current_user_id),
    store: ScheduleStore = Depends(get_store),
    publisher=Depends(get_publisher),
    client_id: str | None = Depends(get_client_id),
):
    try:
        await require_member(store, trip_id, user_id, edit=True)
        result = await store.batch_write("duplicate", trip_id, body.schedule_ids, {"pattern_id": None})
    except PlannerError as e:
        raise http_error(e)
    data = result.model_dump()
    publisher.publish(trip_id, "candidate:batch-duplicated", data, exclude=client_id)
    return APIResponse(code=0, msg="ok", data=data)
