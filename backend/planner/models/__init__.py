"""
Models package for the trip tree and request schemas
"""

from planner.models.common import APIResponse
from planner.models.schedule import BatchResult, ScheduleCreate, ScheduleUpdate
from planner.models.trip import DayPattern, Schedule, Trip, TripDay

__all__ = [
    "APIResponse",
    "BatchResult",
    "DayPattern",
    "Schedule",
    "ScheduleCreate",
    "ScheduleUpdate",
    "Trip",
    "TripDay",
]
