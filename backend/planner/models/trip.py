"""
Trip tree models: Trip > TripDay > DayPattern > Schedule.

Candidates are schedules that are not placed on any pattern yet
(``day_pattern_id is None``); they live on ``Trip.candidates``.
"""

from datetime import date, datetime
from typing import Literal
import uuid

from pydantic import BaseModel, Field, model_validator

from planner.models.common import utc_now

ScheduleCategory = Literal["sightseeing", "restaurant", "hotel", "transport", "activity", "other"]
ScheduleColor = Literal["blue", "red", "green", "yellow", "purple", "pink", "orange", "gray"]
TransportMethod = Literal["train", "shinkansen", "bus", "taxi", "walk", "car", "airplane"]
TripStatus = Literal["planned", "active", "completed"]
MemberRole = Literal["owner", "editor", "viewer"]

DEFAULT_PATTERN_LABEL = "Default"
TRIP_STATUS_ORDER: tuple[TripStatus, ...] = ("planned", "active", "completed")


def new_id() -> str:
    return str(uuid.uuid4())


def can_edit(role: str | None) -> bool:
    return role in ("owner", "editor")


class Schedule(BaseModel):
    """
    A time-boxed itinerary item ("spot"). With ``day_pattern_id`` unset it is a candidate.
    """

    id: str = Field(default_factory=new_id)
    trip_id: str = Field(..., description="Owning trip id")
    day_pattern_id: str | None = Field(default=None, description="Pattern the item is placed on; None for candidates")

    name: str = Field(..., min_length=1, max_length=200)
    category: ScheduleCategory = "sightseeing"
    color: ScheduleColor = "blue"
    address: str | None = None
    memo: str | None = None
    urls: list[str] = Field(default_factory=list)

    start_time: str | None = Field(default=None, description="HH:MM 24-hour, day-local")
    end_time: str | None = Field(default=None, description="HH:MM 24-hour, day-local")
    end_day_offset: int | None = Field(default=None, ge=0, description="End day = anchor day + offset")

    departure_place: str | None = None
    arrival_place: str | None = None
    transport_method: TransportMethod | None = None

    sort_order: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_candidate(self) -> bool:
        return self.day_pattern_id is None

    @property
    def spans_days(self) -> bool:
        return bool(self.end_day_offset and self.end_day_offset > 0)


class DayPattern(BaseModel):
    """One alternative plan for a day (e.g. rain plan vs sun plan)."""

    id: str = Field(default_factory=new_id)
    trip_day_id: str
    label: str = Field(default=DEFAULT_PATTERN_LABEL, min_length=1, max_length=50)
    is_default: bool = False
    sort_order: int = 0
    schedules: list[Schedule] = Field(default_factory=list)


class TripDay(BaseModel):
    id: str = Field(default_factory=new_id)
    trip_id: str
    day_number: int = Field(..., ge=1, description="1-based, contiguous, immutable")
    date: date
    memo: str | None = None
    patterns: list[DayPattern] = Field(default_factory=list)

    def pattern(self, pattern_id: str) -> DayPattern | None:
        return next((p for p in self.patterns if p.id == pattern_id), None)


class Trip(BaseModel):
    """
    Full trip snapshot as returned by ``read_trip``.
    """

    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1, max_length=100)
    destination: str = Field(..., min_length=1, max_length=100)
    start_date: date
    end_date: date
    status: TripStatus = "planned"
    role: MemberRole | None = Field(default=None, description="Role of the requesting user")
    members: dict[str, MemberRole] = Field(default_factory=dict, description="user id -> role")
    days: list[TripDay] = Field(default_factory=list)
    candidates: list[Schedule] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_date_range(self) -> "Trip":
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self

    def day(self, day_id: str) -> TripDay | None:
        return next((d for d in self.days if d.id == day_id), None)

    def find_pattern(self, pattern_id: str) -> tuple[TripDay, DayPattern] | None:
        for day in self.days:
            for pattern in day.patterns:
                if pattern.id == pattern_id:
                    return day, pattern
        return None

    @property
    def schedule_count(self) -> int:
        placed = sum(len(p.schedules) for d in self.days for p in d.patterns)
        return placed + len(self.candidates)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "3f1c1a52-8a55-4d0f-9d0c-4b7a2f6d9a11",
                "title": "Kyoto in autumn",
                "destination": "Kyoto",
                "start_date": "2025-11-20",
                "end_date": "2025-11-22",
                "status": "planned",
                "role": "owner",
                "days": [
                    {
                        "day_number": 1,
                        "date": "2025-11-20",
                        "patterns": [
                            {
                                "label": "Default",
                                "is_default": True,
                                "schedules": [
                                    {
                                        "name": "Ryokan",
                                        "category": "hotel",
                                        "start_time": "15:00",
                                        "end_time": "10:00",
                                        "end_day_offset": 1,
                                    }
                                ],
                            }
                        ],
                    }
                ],
                "candidates": [],
            }
        }


class TripCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    destination: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_date_range(self) -> "TripCreate":
        if self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


class TripStatusUpdate(BaseModel):
    status: TripStatus


class PatternCreate(BaseModel):
    label: str = Field(min_length=1, max_length=50)
