"""API tests against the in-process store."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from planner.main import create_app
from planner.models.trip import Trip
from planner.router.deps import create_access_token
from planner.router.realtime import RoomManager
from planner.store.memory import MemoryScheduleStore

OWNER = "user-owner"


def auth(user_id=OWNER):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def client():
    with TestClient(create_app(store=MemoryScheduleStore())) as test_client:
        yield test_client


@pytest.fixture
def trip(client):
    response = client.post(
        "/trips",
        json={"title": "Kyoto in autumn", "destination": "Kyoto", "start_date": "2025-11-20", "end_date": "2025-11-22"},
        headers=auth(),
    )
    assert response.status_code == 200
    return response.json()["data"]


def schedules_url(trip, day_index=0):
    day = trip["days"][day_index]
    return f"/trips/{trip['id']}/days/{day['id']}/patterns/{day['patterns'][0]['id']}/schedules"


def create(client, trip, day_index=0, **fields):
    response = client.post(schedules_url(trip, day_index), json=fields, headers=auth())
    assert response.status_code == 200, response.text
    return response.json()["data"]


def test_health(client):
    body = client.get("/health").json()
    assert body["data"]["status"] == "healthy"
    assert body["data"]["store"] == "MemoryScheduleStore"
    assert body["data"]["environment"]


def test_module_exposes_an_app_for_uvicorn():
    from planner.main import app

    assert any(getattr(route, "path", None) == "/health" for route in app.routes)


class TestAccess:
    def test_missing_token_is_rejected(self, client, trip):
        assert client.get(f"/trips/{trip['id']}").status_code in (401, 403)

    def test_bad_token_is_unauthorized(self, client, trip):
        response = client.get(f"/trips/{trip['id']}", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_non_member_sees_not_found(self, client, trip):
        assert client.get(f"/trips/{trip['id']}", headers=auth("stranger")).status_code == 404

    def test_viewer_can_read_but_not_write(self, client, trip):
        added = client.post(f"/trips/{trip['id']}/members", json={"user_id": "v1", "role": "viewer"}, headers=auth())
        assert added.status_code == 200

        read = client.get(f"/trips/{trip['id']}", headers=auth("v1"))
        assert read.status_code == 200
        assert read.json()["data"]["role"] == "viewer"

        write = client.post(schedules_url(trip), json={"name": "Temple"}, headers=auth("v1"))
        assert write.status_code == 403


class TestTrips:
    def test_created_trip_has_one_default_pattern_per_day(self, client, trip):
        assert [d["day_number"] for d in trip["days"]] == [1, 2, 3]
        assert all(d["patterns"][0]["is_default"] for d in trip["days"])
        assert trip["role"] == "owner"

    def test_reversed_dates_fail_validation(self, client):
        response = client.post(
            "/trips",
            json={"title": "x", "destination": "y", "start_date": "2025-11-22", "end_date": "2025-11-20"},
            headers=auth(),
        )
        assert response.status_code == 422

    def test_status_moves_forward_only(self, client, trip):
        url = f"/trips/{trip['id']}/status"
        assert client.patch(url, json={"status": "active"}, headers=auth()).json()["data"]["status"] == "active"
        assert client.patch(url, json={"status": "planned"}, headers=auth()).status_code == 400

    def test_default_pattern_cannot_be_deleted(self, client, trip):
        day = trip["days"][0]
        url = f"/trips/{trip['id']}/days/{day['id']}/patterns/{day['patterns'][0]['id']}"
        assert client.delete(url, headers=auth()).status_code == 400

    def test_extra_pattern_lifecycle(self, client, trip):
        day = trip["days"][0]
        created = client.post(f"/trips/{trip['id']}/days/{day['id']}/patterns", json={"label": "Rain plan"}, headers=auth())
        pattern = created.json()["data"]
        assert pattern["is_default"] is False

        deleted = client.delete(f"/trips/{trip['id']}/days/{day['id']}/patterns/{pattern['id']}", headers=auth())
        assert deleted.status_code == 200


class TestSchedules:
    def test_offset_requires_end_time(self, client, trip):
        response = client.post(schedules_url(trip), json={"name": "Ryokan", "end_day_offset": 1}, headers=auth())
        assert response.status_code == 422

    def test_required_fields_cannot_be_nulled(self, client, trip):
        temple = create(client, trip, name="Temple", start_time="10:00")
        url = f"{schedules_url(trip)}/{temple['id']}"

        assert client.patch(url, json={"name": None}, headers=auth()).status_code == 422
        assert client.patch(url, json={"category": None, "urls": None}, headers=auth()).status_code == 422
        assert client.patch(url, json={"memo": None}, headers=auth()).status_code == 200

        data = client.get(f"/trips/{trip['id']}", headers=auth()).json()["data"]
        stored = Trip(**data).days[0].patterns[0].schedules[0]
        assert (stored.name, stored.category) == ("Temple", "sightseeing")

    @pytest.mark.parametrize("value", ["24:00", "99:99", "10:60", "9:00"])
    def test_out_of_range_times_are_rejected(self, client, trip, value):
        created = client.post(schedules_url(trip), json={"name": "Bad", "start_time": value}, headers=auth())
        assert created.status_code == 422

        temple = create(client, trip, name="Temple", start_time="10:00")
        url = f"{schedules_url(trip)}/{temple['id']}"
        assert client.patch(url, json={"end_time": value}, headers=auth()).status_code == 422

        shifted = client.post(
            f"{schedules_url(trip)}/batch-shift", json={"schedule_ids": [temple["id"]], "delta_minutes": 30}, headers=auth()
        )
        assert shifted.json()["data"]["updated_count"] == 1

    def test_guarded_update(self, client, trip):
        temple = create(client, trip, name="Temple", start_time="10:00")
        url = f"{schedules_url(trip)}/{temple['id']}"

        ok = client.patch(url, json={"start_time": "10:30", "expected_updated_at": temple["updated_at"]}, headers=auth())
        assert ok.status_code == 200

        stale = client.patch(url, json={"start_time": "11:00", "expected_updated_at": "2020-01-01T00:00:00Z"}, headers=auth())
        assert stale.status_code == 409
        detail = stale.json()["detail"]
        assert detail["error"] == "conflict"
        assert detail["current"]["start_time"] == "10:30"

    def test_update_of_deleted_schedule_is_not_found(self, client, trip):
        temple = create(client, trip, name="Temple")
        url = f"{schedules_url(trip)}/{temple['id']}"
        assert client.delete(url, headers=auth()).status_code == 200

        response = client.patch(url, json={"name": "Shrine", "expected_updated_at": temple["updated_at"]}, headers=auth())
        assert response.status_code == 404

    def test_reorder(self, client, trip):
        a = create(client, trip, name="A")
        b = create(client, trip, name="B")

        response = client.patch(f"{schedules_url(trip)}/reorder", json={"schedule_ids": [b["id"], a["id"]]}, headers=auth())
        assert response.status_code == 200

        day = client.get(f"/trips/{trip['id']}", headers=auth()).json()["data"]["days"][0]
        assert [s["name"] for s in day["patterns"][0]["schedules"]] == ["B", "A"]

    def test_batch_shift(self, client, trip):
        temple = create(client, trip, name="Temple", start_time="10:00", end_time="11:00")
        late = create(client, trip, name="Night view", start_time="23:45")

        response = client.post(
            f"{schedules_url(trip)}/batch-shift",
            json={"schedule_ids": [temple["id"], late["id"]], "delta_minutes": 30},
            headers=auth(),
        )

        data = response.json()["data"]
        assert (data["updated_count"], data["skipped_count"]) == (1, 1)

    def test_zero_shift_is_invalid(self, client, trip):
        temple = create(client, trip, name="Temple", start_time="10:00")
        response = client.post(
            f"{schedules_url(trip)}/batch-shift", json={"schedule_ids": [temple["id"]], "delta_minutes": 0}, headers=auth()
        )
        assert response.status_code == 422

    def test_batch_delete_with_foreign_id_changes_nothing(self, client, trip):
        temple = create(client, trip, name="Temple")
        other_day = create(client, trip, day_index=1, name="Castle")

        response = client.post(
            f"{schedules_url(trip)}/batch-delete", json={"schedule_ids": [temple["id"], other_day["id"]]}, headers=auth()
        )

        assert response.status_code == 404
        assert response.json()["detail"]["ids"] == [other_day["id"]]
        day = client.get(f"/trips/{trip['id']}", headers=auth()).json()["data"]["days"][0]
        assert len(day["patterns"][0]["schedules"]) == 1


class TestCandidates:
    def test_assign_and_unassign(self, client, trip):
        cafe = client.post(f"/trips/{trip['id']}/candidates", json={"name": "Cafe"}, headers=auth()).json()["data"]
        pattern_id = trip["days"][0]["patterns"][0]["id"]

        assigned = client.post(
            f"/trips/{trip['id']}/candidates/batch-assign",
            json={"schedule_ids": [cafe["id"]], "day_pattern_id": pattern_id},
            headers=auth(),
        )
        assert assigned.json()["data"]["updated_count"] == 1

        unassigned = client.post(
            f"/trips/{trip['id']}/schedules/batch-unassign", json={"schedule_ids": [cafe["id"]]}, headers=auth()
        )
        assert unassigned.json()["data"]["updated_count"] == 1
        full = client.get(f"/trips/{trip['id']}", headers=auth()).json()["data"]
        assert [c["name"] for c in full["candidates"]] == ["Cafe"]

    def test_duplicate_candidates(self, client, trip):
        cafe = client.post(f"/trips/{trip['id']}/candidates", json={"name": "Cafe"}, headers=auth()).json()["data"]

        response = client.post(f"/trips/{trip['id']}/candidates/batch-duplicate", json={"schedule_ids": [cafe["id"]]}, headers=auth())

        new_ids = response.json()["data"]["schedule_ids"]
        assert len(new_ids) == 1 and new_ids[0] != cafe["id"]


class TestDayViews:
    def test_cross_day_and_timeline(self, client, trip):
        create(client, trip, name="Ryokan", category="hotel", start_time="15:00", end_time="10:00", end_day_offset=1)
        create(client, trip, day_index=1, name="Breakfast", start_time="08:00", end_time="09:00")
        create(client, trip, day_index=1, name="Temple", start_time="10:30")

        entries = client.get(f"/trips/{trip['id']}/days/2/cross-day", headers=auth()).json()["data"]["entries"]
        assert [(e["schedule"]["name"], e["position"], e["label"]) for e in entries] == [("Ryokan", "final", "Check-out")]
        assert client.get(f"/trips/{trip['id']}/days/3/cross-day", headers=auth()).json()["data"]["entries"] == []

        items = client.get(f"/trips/{trip['id']}/days/2/timeline", headers=auth()).json()["data"]["items"]
        assert [(i["kind"], i["schedule"]["name"]) for i in items] == [
            ("schedule", "Breakfast"),
            ("cross_day", "Ryokan"),
            ("schedule", "Temple"),
        ]

        day1 = client.get(f"/trips/{trip['id']}/days/1/timeline", headers=auth()).json()["data"]["items"]
        assert day1[0]["label"] == "Check-in"

    def test_unknown_day(self, client, trip):
        assert client.get(f"/trips/{trip['id']}/days/9/cross-day", headers=auth()).status_code == 404


class TestRealtime:
    def test_websocket_presence_and_ping(self, client, trip):
        token = create_access_token(OWNER)
        with client.websocket_connect(f"/ws/trips/{trip['id']}?token={token}&client_id=tab-1") as ws:
            hello = ws.receive_json()
            assert hello["type"] == "connected"
            assert hello["presence"][0]["user_id"] == OWNER

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            ws.send_json({"type": "presence", "day_id": trip["days"][0]["id"], "pattern_id": None})
            presence = ws.receive_json()
            assert presence["presence"][0]["day_id"] == trip["days"][0]["id"]

    def test_websocket_rejects_non_members(self, client, trip):
        token = create_access_token("stranger")
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/ws/trips/{trip['id']}?token={token}") as ws:
                ws.receive_json()

    @pytest.mark.asyncio
    async def test_publish_skips_sender_and_survives_broken_sockets(self):
        rooms = RoomManager()
        sender, listener, broken = AsyncMock(), AsyncMock(), AsyncMock()
        broken.send_json.side_effect = RuntimeError("closed")
        await rooms.connect("t1", "tab-1", "u1", sender)
        await rooms.connect("t1", "tab-2", "u2", listener)
        await rooms.connect("t1", "tab-3", "u3", broken)

        rooms.publish("t1", "schedule:updated", {"id": "s1"}, exclude="tab-1")
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        sender.send_json.assert_not_awaited()
        message = listener.send_json.await_args.args[0]
        assert message["type"] == "schedule:updated"
        assert message["payload"] == {"id": "s1"}

    @pytest.mark.asyncio
    async def test_presence_is_deduplicated_by_user(self):
        rooms = RoomManager()
        await rooms.connect("t1", "tab-1", "u1", AsyncMock())
        await rooms.connect("t1", "tab-2", "u1", AsyncMock())

        assert [p["client_id"] for p in rooms.members("t1")] == ["tab-2"]

        # the older tab leaving does not remove the newer one's presence
        rooms.disconnect("t1", "tab-1", "u1")
        assert [p["client_id"] for p in rooms.members("t1")] == ["tab-2"]
        rooms.disconnect("t1", "tab-2", "u1")
        assert rooms.members("t1") == []
