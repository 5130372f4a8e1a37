"""
Async HTTP adapter for the trip timeline API.

Responses are unwrapped from the ``APIResponse`` envelope; failures come
back as ``ConflictError`` (409), ``GoneError`` (404) or ``NetworkFailure``
(transport errors and any other non-2xx).
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from typing import Any

import httpx

from planner.core.config import API_BASE_URL, API_TIMEOUT_SECONDS
from planner.core.exceptions import ConflictError, GoneError, MutationError, NetworkFailure
from planner.models.schedule import BatchResult
from planner.models.trip import DayPattern, Schedule, Trip, TripStatus

logger = logging.getLogger(__name__)


def _error_from_response(response: httpx.Response) -> MutationError:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = response.text
    if isinstance(detail, dict):
        kind = detail.get("error")
        message = detail.get("message") or response.reason_phrase
    else:
        kind, message = None, str(detail or response.reason_phrase)

    if response.status_code == 409 and kind != "limit_exceeded":
        current = detail.get("current") if isinstance(detail, dict) else None
        return ConflictError(message, current=Schedule(**current) if current else None)
    if response.status_code == 404:
        ids = detail.get("ids") if isinstance(detail, dict) else None
        return GoneError(message, ids=ids)
    return NetworkFailure(message, status_code=response.status_code)


class TripApi:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        token: str | None = None,
        client_id: str | None = None,
        timeout: float = API_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if client_id:
            headers["X-Client-Id"] = client_id
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def __aenter__(self) -> TripApi:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: Any = None, params: dict | None = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.warning("[api] %s %s failed: %s", method, path, e)
            raise NetworkFailure(f"{method} {path} failed: {e}") from e
        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.debug("[api] %s %s -> %d %s", method, path, response.status_code, type(error).__name__)
            raise error
        return response.json().get("data")

    # ---- trips ----

    async def create_trip(self, title: str, destination: str, start_date: date, end_date: date) -> Trip:
        data = await self._request(
            "POST",
            "/trips",
            json={
                "title": title,
                "destination": destination,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        return Trip(**data)

    async def get_trip(self, trip_id: str) -> Trip:
        return Trip(**await self._request("GET", f"/trips/{trip_id}"))

    async def update_trip_status(self, trip_id: str, status: TripStatus) -> dict:
        return await self._request("PATCH", f"/trips/{trip_id}/status", json={"status": status})

    async def get_cross_day(self, trip_id: str, day_number: int) -> list[dict]:
        data = await self._request("GET", f"/trips/{trip_id}/days/{day_number}/cross-day")
        return data["entries"]

    async def get_timeline(self, trip_id: str, day_number: int, pattern_id: str | None = None) -> dict:
        params = {"pattern_id": pattern_id} if pattern_id else None
        return await self._request("GET", f"/trips/{trip_id}/days/{day_number}/timeline", params=params)

    async def create_pattern(self, trip_id: str, day_id: str, label: str) -> DayPattern:
        data = await self._request("POST", f"/trips/{trip_id}/days/{day_id}/patterns", json={"label": label})
        return DayPattern(**data)

    async def delete_pattern(self, trip_id: str, day_id: str, pattern_id: str) -> None:
        await self._request("DELETE", f"/trips/{trip_id}/days/{day_id}/patterns/{pattern_id}")

    # ---- schedules ----

    @staticmethod
    def _schedules_path(trip_id: str, day_id: str, pattern_id: str) -> str:
        return f"/trips/{trip_id}/days/{day_id}/patterns/{pattern_id}/schedules"

    async def create_schedule(self, trip_id: str, day_id: str, pattern_id: str, fields: dict) -> Schedule:
        data = await self._request("POST", self._schedules_path(trip_id, day_id, pattern_id), json=fields)
        return Schedule(**data)

    async def update_schedule(
        self,
        trip_id: str,
        day_id: str,
        pattern_id: str,
        schedule_id: str,
        patch: dict,
        expected_updated_at: datetime | None = None,
    ) -> Schedule:
        body = dict(patch)
        if expected_updated_at is not None:
            body["expected_updated_at"] = expected_updated_at.isoformat()
        path = f"{self._schedules_path(trip_id, day_id, pattern_id)}/{schedule_id}"
        return Schedule(**await self._request("PATCH", path, json=body))

    async def delete_schedule(
        self,
        trip_id: str,
        day_id: str,
        pattern_id: str,
        schedule_id: str,
        expected_updated_at: datetime | None = None,
    ) -> None:
        params = {"expected_updated_at": expected_updated_at.isoformat()} if expected_updated_at else None
        path = f"{self._schedules_path(trip_id, day_id, pattern_id)}/{schedule_id}"
        await self._request("DELETE", path, params=params)

    async def reorder_schedules(self, trip_id: str, day_id: str, pattern_id: str, schedule_ids: list[str]) -> None:
        path = f"{self._schedules_path(trip_id, day_id, pattern_id)}/reorder"
        await self._request("PATCH", path, json={"schedule_ids": schedule_ids})

    async def batch_shift(
        self, trip_id: str, day_id: str, pattern_id: str, schedule_ids: list[str], delta_minutes: int
    ) -> BatchResult:
        path = f"{self._schedules_path(trip_id, day_id, pattern_id)}/batch-shift"
        data = await self._request("POST", path, json={"schedule_ids": schedule_ids, "delta_minutes": delta_minutes})
        return BatchResult(**data)

    async def batch_delete_schedules(
        self, trip_id: str, day_id: str, pattern_id: str, schedule_ids: list[str]
    ) -> BatchResult:
        path = f"{self._schedules_path(trip_id, day_id, pattern_id)}/batch-delete"
        return BatchResult(**await self._request("POST", path, json={"schedule_ids": schedule_ids}))

    async def batch_duplicate_schedules(
        self, trip_id: str, day_id: str, pattern_id: str, schedule_ids: list[str]
    ) -> BatchResult:
        path = f"{self._schedules_path(trip_id, day_id, pattern_id)}/batch-duplicate"
        return BatchResult(**await self._request("POST", path, json={"schedule_ids": schedule_ids}))

    async def batch_unassign(self, trip_id: str, schedule_ids: list[str]) -> BatchResult:
        data = await self._request(
            "POST", f"/trips/{trip_id}/schedules/batch-unassign", json={"schedule_ids": schedule_ids}
        )
        return BatchResult(**data)

    # ---- candidates ----

    async def create_candidate(self, trip_id: str, fields: dict) -> Schedule:
        return Schedule(**await self._request("POST", f"/trips/{trip_id}/candidates", json=fields))

    async def batch_assign(self, trip_id: str, schedule_ids: list[str], day_pattern_id: str) -> BatchResult:
        data = await self._request(
            "POST",
            f"/trips/{trip_id}/candidates/batch-assign",
            json={"schedule_ids": schedule_ids, "day_pattern_id": day_pattern_id},
        )
        return BatchResult(**data)

    async def batch_delete_candidates(self, trip_id: str, schedule_ids: list[str]) -> BatchResult:
        data = await self._request(
            "POST", f"/trips/{trip_id}/candidates/batch-delete", json={"schedule_ids": schedule_ids}
        )
        return BatchResult(**data)

    async def batch_duplicate_candidates(self, trip_id: str, schedule_ids: list[str]) -> BatchResult:
        data = await self._request(
            "POST", f"/trips/{trip_id}/candidates/batch-duplicate", json={"schedule_ids": schedule_ids}
        )
        return BatchResult(**data)
