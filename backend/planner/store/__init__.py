from planner.store.base import ScheduleStore, generate_date_range
from planner.store.guard import check_expected_updated_at, same_instant
from planner.store.memory import MemoryScheduleStore

__all__ = [
    "MemoryScheduleStore",
    "ScheduleStore",
    "check_expected_updated_at",
    "generate_date_range",
    "same_instant",
]
