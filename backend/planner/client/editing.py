"""
Single-schedule edit flow: guarded write, then an optional cascade shift of
the schedules that follow the edited one in its pattern.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Literal

from planner.client.cache import (
    TripCache,
    find_schedule,
    remove_schedule_from_pattern,
    update_schedule_in_pattern,
)
from planner.client.messages import MSG
from planner.client.notifier import LoggingNotifier, Notifier
from planner.core.exceptions import ConflictError, GoneError, MutationError
from planner.timeline.cascade import CascadePlan, plan_cascade
from planner.timeline.time_utils import compute_time_delta
from planner.models.trip import Schedule

logger = logging.getLogger(__name__)


@dataclass
class EditOutcome:
    status: Literal["updated", "conflict", "gone", "failed"]
    schedule: Schedule | None = None
    plan: CascadePlan | None = None


@dataclass
class ShiftOutcome:
    updated_count: int
    skipped_count: int
    skipped_names: list[str] = field(default_factory=list)


class ScheduleEditFlow:
    def __init__(self, api, cache: TripCache, trip_id: str, notifier: Notifier | None = None):
        self.api = api
        self.cache = cache
        self.trip_id = trip_id
        self.notifier = notifier or LoggingNotifier()

    async def submit(self, day_id: str, pattern_id: str, schedule_id: str, patch: dict[str, Any]) -> EditOutcome:
        """
        Write ``patch`` guarded by the ``updated_at`` last seen in the cache.

        On success the returned outcome carries a cascade plan when the time
        moved and at least one following schedule can move with it.
        """
        trip = self.cache.view()
        original = find_schedule(trip, schedule_id) if trip else None
        if original is None:
            self.notifier.error(MSG.CONFLICT_DELETED)
            return EditOutcome("gone")

        try:
            updated = await self.api.update_schedule(
                self.trip_id, day_id, pattern_id, schedule_id, patch, expected_updated_at=original.updated_at
            )
        except ConflictError:
            logger.info("[edit] conflict on %s, refreshing", schedule_id)
            self.notifier.error(MSG.CONFLICT)
            await self.refresh()
            return EditOutcome("conflict")
        except GoneError:
            logger.info("[edit] %s was deleted elsewhere", schedule_id)
            self.cache.update(lambda t: remove_schedule_from_pattern(t, pattern_id, schedule_id))
            self.notifier.error(MSG.CONFLICT_DELETED)
            return EditOutcome("gone")
        except MutationError as e:
            logger.warning("[edit] update of %s failed: %s", schedule_id, e)
            self.notifier.error(MSG.SCHEDULE_UPDATE_FAILED)
            return EditOutcome("failed")

        self.cache.update(lambda t: update_schedule_in_pattern(t, pattern_id, updated))
        self.notifier.success(MSG.SCHEDULE_UPDATED)

        time_delta = compute_time_delta(original, updated)
        if time_delta is None:
            return EditOutcome("updated", updated)
        found = self.cache.view().find_pattern(pattern_id)
        plan = plan_cascade(found[1].schedules if found else [], updated, time_delta)
        return EditOutcome("updated", updated, plan if plan.should_offer else None)

    async def confirm_shift(self, day_id: str, plan: CascadePlan) -> ShiftOutcome | None:
        """Shift exactly the plan's shiftable schedules in one call."""
        pattern_id = plan.edited.day_pattern_id
        try:
            result = await self.api.batch_shift(self.trip_id, day_id, pattern_id, plan.shiftable_ids, plan.delta)
        except MutationError as e:
            logger.warning("[confirm_shift] batch shift failed: %s", e)
            self.notifier.error(MSG.BATCH_SHIFT_FAILED)
            await self.refresh()
            return None

        # Items the server skipped on top of the ones excluded up front
        shifted = set(result.schedule_ids)
        late_skips = [s.name for s in plan.shiftable if s.id not in shifted] if result.skipped_count else []
        skipped_names = plan.skipped_names + late_skips

        if skipped_names:
            self.notifier.success(MSG.BATCH_SHIFT_PARTIAL(result.updated_count, len(skipped_names)))
        else:
            self.notifier.success(MSG.BATCH_SHIFT_SUCCESS(result.updated_count))
        await self.refresh()
        return ShiftOutcome(
            updated_count=result.updated_count,
            skipped_count=result.skipped_count,
            skipped_names=skipped_names,
        )

    async def refresh(self) -> None:
        try:
            self.cache.replace(await self.api.get_trip(self.trip_id))
        except MutationError as e:
            logger.warning("[edit] refresh failed: %s", e)
