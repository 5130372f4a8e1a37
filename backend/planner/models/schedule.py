"""
Request bodies for schedule and candidate endpoints.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from planner.core.config import MAX_END_DAY_OFFSET
from planner.models.trip import ScheduleCategory, ScheduleColor, TransportMethod

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$"

# Schedule fields that always carry a value; a patch may omit them but not null them
NON_NULLABLE_FIELDS = ("name", "category", "color", "urls")

BatchOp = Literal["shift", "assign", "unassign", "delete", "duplicate"]


class ScheduleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: ScheduleCategory = "sightseeing"
    color: ScheduleColor = "blue"
    address: str | None = Field(default=None, max_length=500)
    memo: str | None = Field(default=None, max_length=2000)
    urls: list[str] = Field(default_factory=list, max_length=5)
    start_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    end_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    end_day_offset: int | None = Field(default=None, ge=1, le=MAX_END_DAY_OFFSET)
    departure_place: str | None = Field(default=None, max_length=200)
    arrival_place: str | None = Field(default=None, max_length=200)
    transport_method: TransportMethod | None = None

    @field_validator("end_day_offset")
    @classmethod
    def _offset_needs_end_time(cls, value, info):
        # end_day_offset only means something when end_time is set
        if value and not info.data.get("end_time"):
            raise ValueError("end_day_offset requires end_time")
        return value


class ScheduleUpdate(BaseModel):
    """Partial update; ``expected_updated_at`` turns on the optimistic lock."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: ScheduleCategory | None = None
    color: ScheduleColor | None = None
    address: str | None = Field(default=None, max_length=500)
    memo: str | None = Field(default=None, max_length=2000)
    urls: list[str] | None = Field(default=None, max_length=5)
    start_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    end_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    end_day_offset: int | None = Field(default=None, ge=1, le=MAX_END_DAY_OFFSET)
    departure_place: str | None = Field(default=None, max_length=200)
    arrival_place: str | None = Field(default=None, max_length=200)
    transport_method: TransportMethod | None = None
    expected_updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _no_null_required_fields(cls, data):
        if isinstance(data, dict):
            nulls = [name for name in NON_NULLABLE_FIELDS if name in data and data[name] is None]
            if nulls:
                raise ValueError(f"{', '.join(nulls)} cannot be null")
        return data

    def patch(self) -> dict:
        """Fields explicitly sent by the client, minus the lock token."""
        return self.model_dump(exclude_unset=True, exclude={"expected_updated_at"})


class CandidateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: ScheduleCategory = "sightseeing"
    memo: str | None = Field(default=None, max_length=2000)


class ScheduleIdsRequest(BaseModel):
    schedule_ids: list[str] = Field(min_length=1)


class BatchShiftRequest(BaseModel):
    schedule_ids: list[str] = Field(min_length=1)
    delta_minutes: int = Field(ge=-1439, le=1439)

    @field_validator("delta_minutes")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("delta_minutes must not be 0")
        return value


class BatchAssignRequest(BaseModel):
    schedule_ids: list[str] = Field(min_length=1)
    day_pattern_id: str


class ReorderRequest(BaseModel):
    schedule_ids: list[str]


class BatchResult(BaseModel):
    updated_count: int = 0
    skipped_count: int = 0
    schedule_ids: list[str] = Field(default_factory=list, description="Affected ids; new ids for duplicate")
