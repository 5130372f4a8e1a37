"""
Schedule timeline engine: time arithmetic, cross-day projection, cascade
planning and the trip status lifecycle. Everything except
``status.AutoStatusTransition`` is pure and side-effect free.
"""

from planner.timeline.cascade import CascadePlan, plan_cascade, shift_schedule
from planner.timeline.cross_day import CrossDayEntry, get_cross_day_entries
from planner.timeline.time_utils import (
    TimeDelta,
    TimeOfDay,
    compute_time_delta,
    minutes_to_time,
    shift_time,
    time_to_minutes,
)

__all__ = [
    "CascadePlan",
    "CrossDayEntry",
    "TimeDelta",
    "TimeOfDay",
    "compute_time_delta",
    "get_cross_day_entries",
    "minutes_to_time",
    "plan_cascade",
    "shift_schedule",
    "shift_time",
    "time_to_minutes",
]
