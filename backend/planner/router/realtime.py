"""
Realtime trip rooms over websockets: presence and mutation events.

Clients connect to ``/ws/trips/{trip_id}?token=...&client_id=...``. HTTP
mutations publish an event to every connection of the trip except the one
whose ``X-Client-Id`` issued the request.
"""

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, Protocol

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect

from planner.models.trip import new_id
from planner.router.deps import decode_user_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


class EventPublisher(Protocol):
    def publish(self, trip_id: str, event: str, payload: dict, exclude: str | None = None) -> None: ...


class RoomManager:
    """
    Connections per trip room. Presence is keyed by user, so a user with two
    tabs shows up once with whatever the latest connection reported.
    """

    def __init__(self):
        # trip_id -> client_id -> websocket
        self.active_connections: dict[str, dict[str, WebSocket]] = {}
        # trip_id -> user_id -> {"client_id", "user_id", "day_id", "pattern_id"}
        self.presence: dict[str, dict[str, dict[str, Any]]] = {}
        self._tasks: set[asyncio.Task] = set()

    async def connect(self, trip_id: str, client_id: str, user_id: str, websocket: WebSocket) -> None:
        self.active_connections.setdefault(trip_id, {})[client_id] = websocket
        self.presence.setdefault(trip_id, {})[user_id] = {
            "client_id": client_id,
            "user_id": user_id,
            "day_id": None,
            "pattern_id": None,
        }
        logger.info("[realtime] %s joined trip %s (%d connection(s))", user_id, trip_id, len(self.active_connections[trip_id]))

    def disconnect(self, trip_id: str, client_id: str, user_id: str) -> None:
        room = self.active_connections.get(trip_id, {})
        room.pop(client_id, None)
        if not room:
            self.active_connections.pop(trip_id, None)

        users = self.presence.get(trip_id, {})
        # Only the connection that owns the presence entry may clear it
        if users.get(user_id, {}).get("client_id") == client_id:
            users.pop(user_id, None)
        if not users:
            self.presence.pop(trip_id, None)
        logger.info("[realtime] %s left trip %s", user_id, trip_id)

    def update_presence(self, trip_id: str, client_id: str, user_id: str, day_id: str | None, pattern_id: str | None) -> None:
        self.presence.setdefault(trip_id, {})[user_id] = {
            "client_id": client_id,
            "user_id": user_id,
            "day_id": day_id,
            "pattern_id": pattern_id,
        }

    def members(self, trip_id: str) -> list[dict[str, Any]]:
        return list(self.presence.get(trip_id, {}).values())

    async def broadcast(self, trip_id: str, message: dict, exclude: str | None = None) -> int:
        """Send to every connection of the room except ``exclude``; returns deliveries."""
        delivered = 0
        for client_id, connection in list(self.active_connections.get(trip_id, {}).items()):
            if client_id == exclude:
                continue
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning("[broadcast] Failed to send to %s in trip %s: %s", client_id, trip_id, e)
        return delivered

    def publish(self, trip_id: str, event: str, payload: dict, exclude: str | None = None) -> None:
        """Fire-and-forget broadcast of a mutation event; never raises into the caller."""
        message = {
            "type": event,
            "trip_id": trip_id,
            "payload": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if not self.active_connections.get(trip_id):
            return
        try:
            task = asyncio.get_running_loop().create_task(self.broadcast(trip_id, message, exclude))
        except RuntimeError as e:
            logger.warning("[publish] No running loop for %s: %s", event, e)
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


@router.websocket("/ws/trips/{trip_id}")
async def trip_websocket(
    websocket: WebSocket,
    trip_id: str,
    token: str = Query(...),
    client_id: str | None = Query(default=None),
):
    try:
        user_id = decode_user_id(token)
    except HTTPException:
        await websocket.close(code=4401)
        return

    store = websocket.app.state.store
    if await store.get_role(trip_id, user_id) is None:
        await websocket.close(code=4404)
        return

    rooms: RoomManager = websocket.app.state.rooms
    client_id = client_id or new_id()
    await websocket.accept()
    await rooms.connect(trip_id, client_id, user_id, websocket)
    await websocket.send_json({"type": "connected", "client_id": client_id, "presence": rooms.members(trip_id)})
    await rooms.broadcast(trip_id, {"type": "presence", "presence": rooms.members(trip_id)}, exclude=client_id)

    try:
        while True:
            data = await websocket.receive_json()
            kind = data.get("type")
            if kind == "ping":
                await websocket.send_json({"type": "pong"})
            elif kind == "presence":
                rooms.update_presence(trip_id, client_id, user_id, data.get("day_id"), data.get("pattern_id"))
                await rooms.broadcast(trip_id, {"type": "presence", "presence": rooms.members(trip_id)})
            else:
                logger.debug("[trip_ws] Ignoring message type %s from %s", kind, client_id)
    except WebSocketDisconnect:
        pass
    finally:
        rooms.disconnect(trip_id, client_id, user_id)
        await rooms.broadcast(trip_id, {"type": "presence", "presence": rooms.members(trip_id)})
