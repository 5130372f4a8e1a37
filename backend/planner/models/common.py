"""
Common API models
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class APIResponse(BaseModel):
    """
    Unified API response envelope
    """

    code: int = Field(default=0, description="0 means success; non-zero means error")
    msg: str = Field(default="ok", description="Human-readable message")
    data: Any | None = Field(default=None, description="Payload data")

    class Config:
        json_schema_extra = {"example": {"code": 0, "msg": "ok", "data": {"items": []}}}


def utc_now() -> datetime:
    """Current UTC time at millisecond precision (what survives a MongoDB round trip)."""
    return truncate_to_millis(datetime.now(timezone.utc))


def truncate_to_millis(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)
