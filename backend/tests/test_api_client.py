"""Tests for the HTTP adapter's request shapes and error mapping."""

from datetime import datetime, timezone
import json

import httpx
import pytest

from planner.client.api import TripApi
from planner.core.exceptions import ConflictError, GoneError, NetworkFailure

SCHEDULE = {
    "id": "s1",
    "trip_id": "trip-1",
    "day_pattern_id": "p1",
    "name": "Temple",
    "start_time": "10:30",
    "updated_at": "2025-11-20T09:00:00.123000Z",
}


def envelope(data):
    return {"code": 0, "msg": "ok", "data": data}


def api_with(handler, **kwargs):
    return TripApi(base_url="http://test", transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_update_sends_lock_token_and_headers():
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        seen["client"] = request.headers.get("X-Client-Id")
        return httpx.Response(200, json=envelope(SCHEDULE))

    expected = datetime(2025, 11, 20, 9, 0, 0, 123000, tzinfo=timezone.utc)
    async with api_with(handler, token="tok", client_id="tab-1") as api:
        schedule = await api.update_schedule("trip-1", "d1", "p1", "s1", {"start_time": "10:30"}, expected)

    assert seen["method"] == "PATCH"
    assert seen["path"] == "/trips/trip-1/days/d1/patterns/p1/schedules/s1"
    assert seen["body"] == {"start_time": "10:30", "expected_updated_at": expected.isoformat()}
    assert seen["auth"] == "Bearer tok"
    assert seen["client"] == "tab-1"
    assert schedule.start_time == "10:30"
    assert schedule.updated_at == expected


@pytest.mark.asyncio
async def test_conflict_carries_current_schedule():
    def handler(request):
        detail = {"error": "conflict", "message": "Resource was modified by another user", "current": SCHEDULE}
        return httpx.Response(409, json={"detail": detail})

    async with api_with(handler) as api:
        with pytest.raises(ConflictError) as exc:
            await api.update_schedule("trip-1", "d1", "p1", "s1", {"name": "x"})

    assert exc.value.current.id == "s1"


@pytest.mark.asyncio
async def test_not_found_is_gone():
    def handler(request):
        return httpx.Response(404, json={"detail": {"error": "not_found", "message": "Schedule not found", "ids": ["s9"]}})

    async with api_with(handler) as api:
        with pytest.raises(GoneError) as exc:
            await api.batch_delete_candidates("trip-1", ["s9"])

    assert exc.value.ids == ["s9"]


@pytest.mark.asyncio
async def test_limit_is_not_a_conflict():
    def handler(request):
        return httpx.Response(409, json={"detail": {"error": "limit_exceeded", "message": "Too many"}})

    async with api_with(handler) as api:
        with pytest.raises(NetworkFailure) as exc:
            await api.batch_duplicate_candidates("trip-1", ["s1"])

    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_server_error_and_transport_error_are_network_failures():
    async with api_with(lambda request: httpx.Response(500, text="boom")) as api:
        with pytest.raises(NetworkFailure) as exc:
            await api.get_trip("trip-1")
    assert exc.value.status_code == 500

    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with api_with(unreachable) as api:
        with pytest.raises(NetworkFailure):
            await api.batch_unassign("trip-1", ["s1"])


@pytest.mark.asyncio
async def test_batch_shift_returns_counts():
    def handler(request):
        assert request.url.path == "/trips/trip-1/days/d1/patterns/p1/schedules/batch-shift"
        assert json.loads(request.content) == {"schedule_ids": ["s2", "s3"], "delta_minutes": 30}
        return httpx.Response(200, json=envelope({"updated_count": 1, "skipped_count": 1, "schedule_ids": ["s2"]}))

    async with api_with(handler) as api:
        result = await api.batch_shift("trip-1", "d1", "p1", ["s2", "s3"], 30)

    assert (result.updated_count, result.skipped_count) == (1, 1)
