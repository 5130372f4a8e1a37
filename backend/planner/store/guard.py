"""
Optimistic-concurrency check for schedule writes.
"""

from datetime import datetime

from planner.core.exceptions import ConflictError, GoneError
from planner.models.common import truncate_to_millis
from planner.models.trip import Schedule


def same_instant(a: datetime, b: datetime) -> bool:
    """Timestamps compared at millisecond precision, naive values read as UTC."""
    return truncate_to_millis(a) == truncate_to_millis(b)


def check_expected_updated_at(
    schedule_id: str, current: Schedule | None, expected_updated_at: datetime | None
) -> Schedule:
    """
    Gone when the schedule was deleted, Conflict when ``expected_updated_at``
    no longer matches. Without ``expected_updated_at`` the write is
    last-writer-wins.
    """
    if current is None:
        raise GoneError(ids=[schedule_id])
    if expected_updated_at is not None and not same_instant(current.updated_at, expected_updated_at):
        raise ConflictError(current=current)
    return current
