"""Tests for the automatic trip status lifecycle."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from conftest import make_day, make_pattern, make_schedule, make_trip
from planner.client.messages import MSG
from planner.core.exceptions import NetworkFailure
from planner.timeline.status import AutoStatusTransition, next_trip_status

DAY1 = date(2025, 11, 20)
DAY2 = date(2025, 11, 21)


def two_day_trip(status="planned", role="owner", day1=(), day2=()):
    return make_trip(
        make_day(1, make_pattern("p1", *day1)),
        make_day(2, make_pattern("p2", *day2)),
        status=status,
        role=role,
    )


class TestNextTripStatus:
    def test_planned_becomes_active_after_start_date(self):
        assert next_trip_status(two_day_trip(), DAY2, "00:00") == "active"

    def test_planned_on_start_date_waits_for_first_schedule(self):
        trip = two_day_trip(day1=[make_schedule("Breakfast", start_time="09:00", end_time="10:00")])

        assert next_trip_status(trip, DAY1, "08:59") is None
        assert next_trip_status(trip, DAY1, "09:00") == "active"

    def test_planned_on_start_date_without_timed_schedules_stays(self):
        trip = two_day_trip(day1=[make_schedule("Souvenirs")])
        assert next_trip_status(trip, DAY1, "23:00") is None

    def test_planned_before_start_date(self):
        assert next_trip_status(two_day_trip(), date(2025, 11, 1), "12:00") is None

    def test_active_becomes_completed_after_end_date(self):
        assert next_trip_status(two_day_trip("active"), date(2025, 11, 22), "00:00") == "completed"

    def test_active_on_end_date_waits_until_everything_is_past(self):
        trip = two_day_trip(
            "active",
            day2=[
                make_schedule("Temple", start_time="09:00", end_time="10:00"),
                make_schedule("Train home", sort_order=1, start_time="17:00", end_time="19:00"),
            ],
        )

        assert next_trip_status(trip, DAY2, "18:00") is None
        assert next_trip_status(trip, DAY2, "19:00") == "completed"

    def test_active_on_end_date_without_schedules_stays(self):
        assert next_trip_status(two_day_trip("active"), DAY2, "23:59") is None

    def test_completed_is_terminal(self):
        assert next_trip_status(two_day_trip("completed"), date(2030, 1, 1), "12:00") is None


class TestAutoStatusTransition:
    @pytest.mark.asyncio
    async def test_fires_once_and_notifies(self, notifier):
        api = AsyncMock()
        on_mutate = AsyncMock()
        driver = AutoStatusTransition(api, notifier=notifier, on_mutate=on_mutate)
        trip = two_day_trip()

        assert await driver.check(trip, DAY2, "10:00") == "active"
        assert await driver.check(trip, DAY2, "10:01") is None

        api.update_trip_status.assert_awaited_once_with(trip.id, "active")
        on_mutate.assert_awaited_once()
        assert notifier.messages == [MSG.TRIP_AUTO_ACTIVE]

    @pytest.mark.asyncio
    async def test_viewer_never_triggers(self):
        api = AsyncMock()
        driver = AutoStatusTransition(api)

        assert await driver.check(two_day_trip(role="viewer"), DAY2, "10:00") is None
        api.update_trip_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gives_up_silently_after_three_attempts(self, notifier):
        api = AsyncMock()
        api.update_trip_status.side_effect = NetworkFailure("offline")
        driver = AutoStatusTransition(api, notifier=notifier)
        trip = two_day_trip()

        for _ in range(5):
            assert await driver.check(trip, DAY2, "10:00") is None

        assert api.update_trip_status.await_count == 3
        assert driver.attempts == 3
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_budget_resets_when_status_changes(self):
        api = AsyncMock()
        api.update_trip_status.side_effect = NetworkFailure("offline")
        driver = AutoStatusTransition(api, max_attempts=1)

        await driver.check(two_day_trip(), DAY2, "10:00")
        await driver.check(two_day_trip(), DAY2, "10:00")
        assert api.update_trip_status.await_count == 1

        api.update_trip_status.side_effect = None
        assert await driver.check(two_day_trip("active"), date(2025, 11, 23), "10:00") == "completed"
        assert driver.attempts == 0
