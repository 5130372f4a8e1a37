"""
Shared router dependencies: bearer auth, store access, trip membership
checks and the error -> HTTPException mapping.
"""

from datetime import datetime, timedelta, timezone
import logging

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from planner.core.config import JWT_ALGORITHM, JWT_EXPIRATION_HOURS, JWT_SECRET
from planner.core.exceptions import (
    ConflictError,
    GoneError,
    InvalidOperation,
    InvalidTimeFormat,
    InvalidTripDays,
    LimitExceeded,
    PermissionDenied,
    PlannerError,
)
from planner.models.trip import MemberRole, can_edit
from planner.store.base import ScheduleStore

logger = logging.getLogger(__name__)

security = HTTPBearer()


def create_access_token(user_id: str, **claims) -> str:
    payload = {
        "sub": user_id,
        **claims,
        "exp": datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRATION_HOURS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_user_id(token: str) -> str:
    """User id (``sub``) of a bearer token; raises HTTPException 401 when invalid."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid authentication token: {str(e)}")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid authentication token: missing subject")
    return user_id


async def get_current_user_id(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    return decode_user_id(credentials.credentials)


def get_store(request: Request) -> ScheduleStore:
    return request.app.state.store


def get_publisher(request: Request):
    return request.app.state.rooms


def get_client_id(request: Request) -> str | None:
    """Realtime connection id of the caller, so its own events are not echoed back."""
    return request.headers.get("X-Client-Id")


async def require_member(store: ScheduleStore, trip_id: str, user_id: str, *, edit: bool = False) -> MemberRole:
    role = await store.get_role(trip_id, user_id)
    if role is None:
        # Non-members cannot learn that the trip exists
        raise PermissionDenied("Trip not found", is_member=False)
    if edit and not can_edit(role):
        raise PermissionDenied("Viewers cannot edit this trip", is_member=True)
    return role


def http_error(e: PlannerError) -> HTTPException:
    if isinstance(e, PermissionDenied):
        return HTTPException(
            status_code=403 if e.is_member else 404,
            detail={"error": "forbidden" if e.is_member else "not_found", "message": str(e)},
        )
    if isinstance(e, ConflictError):
        current = e.current.model_dump(mode="json") if e.current is not None else None
        return HTTPException(status_code=409, detail={"error": "conflict", "message": str(e), "current": current})
    if isinstance(e, GoneError):
        return HTTPException(status_code=404, detail={"error": "not_found", "message": str(e), "ids": e.ids})
    if isinstance(e, LimitExceeded):
        return HTTPException(status_code=409, detail={"error": "limit_exceeded", "message": str(e)})
    if isinstance(e, (InvalidOperation, InvalidTripDays)):
        return HTTPException(status_code=400, detail={"error": "invalid_operation", "message": str(e)})
    if isinstance(e, InvalidTimeFormat):
        return HTTPException(status_code=422, detail={"error": "invalid_time", "message": str(e)})
    logger.error("[http_error] unmapped %s: %s", type(e).__name__, e)
    return HTTPException(status_code=500, detail={"error": "internal", "message": str(e)})
