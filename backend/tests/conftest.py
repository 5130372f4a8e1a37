"""
Shared fixtures and tree builders for the timeline tests
"""

from datetime import date, timedelta
import sys
from pathlib import Path

import pytest

# Add parent directory to path to import planner modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from planner.client.notifier import RecordingNotifier
from planner.models.trip import DayPattern, Schedule, Trip, TripDay

TRIP_ID = "trip-1"


def make_schedule(name: str, pattern_id: str | None = "p1", sort_order: int = 0, **fields) -> Schedule:
    return Schedule(
        id=fields.pop("id", f"s-{name}"),
        trip_id=TRIP_ID,
        day_pattern_id=pattern_id,
        name=name,
        sort_order=sort_order,
        **fields,
    )


def make_day(day_number: int, *patterns: DayPattern, start: date = date(2025, 11, 20)) -> TripDay:
    day_id = f"d{day_number}"
    return TripDay(
        id=day_id,
        trip_id=TRIP_ID,
        day_number=day_number,
        date=start + timedelta(days=day_number - 1),
        patterns=[p.model_copy(update={"trip_day_id": day_id}) for p in patterns],
    )


def make_pattern(pattern_id: str, *schedules: Schedule, is_default: bool = True, sort_order: int = 0) -> DayPattern:
    return DayPattern(
        id=pattern_id,
        trip_day_id="",
        label="Default" if is_default else pattern_id,
        is_default=is_default,
        sort_order=sort_order,
        schedules=[s.model_copy(update={"day_pattern_id": pattern_id}) for s in schedules],
    )


def make_trip(*days: TripDay, status: str = "planned", role: str = "owner", candidates=()) -> Trip:
    start = days[0].date if days else date(2025, 11, 20)
    end = days[-1].date if days else start
    return Trip(
        id=TRIP_ID,
        title="Kyoto in autumn",
        destination="Kyoto",
        start_date=start,
        end_date=end,
        status=status,
        role=role,
        days=list(days),
        candidates=list(candidates),
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()
