"""
Multi-select state and batch actions over the selected items.

A selection is scoped to one target: the current pattern's timeline or the
trip's candidate pool. Delete is applied to the cache and announced before
the server answers and is rolled back if the call fails; assign, unassign
and duplicate are announced only after the server confirms them.
"""

from __future__ import annotations

import logging
from typing import Iterable, Literal

from planner.client.cache import (
    TripCache,
    move_candidate_to_schedule,
    move_schedule_to_candidate,
    remove_candidates,
    remove_schedules_from_pattern,
)
from planner.client.messages import MSG
from planner.client.notifier import LoggingNotifier, Notifier
from planner.core.exceptions import InvalidOperation, MutationError
from planner.models.trip import Trip

logger = logging.getLogger(__name__)

SelectionTarget = Literal["timeline", "candidates"]


class SelectionCoordinator:
    def __init__(self, api, cache: TripCache, trip_id: str, notifier: Notifier | None = None):
        self.api = api
        self.cache = cache
        self.trip_id = trip_id
        self.notifier = notifier or LoggingNotifier()
        self.target: SelectionTarget | None = None
        self.selected: set[str] = set()
        self.day_id: str | None = None
        self.pattern_id: str | None = None

    # ---- selection state ----

    @property
    def active(self) -> bool:
        return self.target is not None

    def enter(self, target: SelectionTarget) -> None:
        if target != self.target:
            self.selected = set()
        self.target = target

    def exit(self) -> None:
        self.target = None
        self.selected = set()

    def toggle(self, schedule_id: str) -> None:
        if schedule_id in self.selected:
            self.selected.discard(schedule_id)
        elif schedule_id in self.valid_ids():
            self.selected.add(schedule_id)

    def select_all(self) -> None:
        self.selected = set(self.valid_ids())

    def clear(self) -> None:
        self.selected = set()

    def set_context(self, day_id: str | None, pattern_id: str | None) -> None:
        """Switch the current day/pattern and drop selected ids that no longer apply."""
        self.day_id = day_id
        self.pattern_id = pattern_id
        self.prune()

    def prune(self, valid_ids: Iterable[str] | None = None) -> set[str]:
        """Keep only ids still valid for the target; returns the dropped ids."""
        valid = set(self.valid_ids() if valid_ids is None else valid_ids)
        dropped = self.selected - valid
        if dropped:
            self.selected = self.selected & valid
            logger.debug("[selection] pruned %d id(s)", len(dropped))
        return dropped

    def valid_ids(self) -> list[str]:
        trip = self.cache.view()
        if trip is None or self.target is None:
            return []
        if self.target == "candidates":
            return [c.id for c in trip.candidates]
        found = trip.find_pattern(self.pattern_id) if self.pattern_id else None
        return [s.id for s in found[1].schedules] if found else []

    def _ids(self) -> list[str]:
        # Display order keeps batch requests deterministic
        ids = [sid for sid in self.valid_ids() if sid in self.selected]
        if not ids:
            raise InvalidOperation("No schedules selected")
        return ids

    # ---- batch actions ----

    async def batch_delete(self) -> bool:
        ids = self._ids()
        target, day_id, pattern_id = self.target, self.day_id, self.pattern_id
        if target == "candidates":
            token = self.cache.apply(lambda t: remove_candidates(t, ids), "batch-delete")
        else:
            token = self.cache.apply(lambda t: remove_schedules_from_pattern(t, pattern_id, ids), "batch-delete")
        self.notifier.success(MSG.BATCH_DELETED(len(ids)))
        self.exit()

        try:
            if target == "candidates":
                await self.api.batch_delete_candidates(self.trip_id, ids)
            else:
                await self.api.batch_delete_schedules(self.trip_id, day_id, pattern_id, ids)
        except MutationError as e:
            logger.warning("[batch_delete] rolled back %d item(s): %s", len(ids), e)
            self.cache.rollback(token)
            self.notifier.error(MSG.BATCH_DELETE_FAILED)
            return False
        self.cache.commit(token)
        return True

    async def batch_assign(self, day_pattern_id: str) -> bool:
        if self.target != "candidates":
            raise InvalidOperation("Assign works on candidates")
        ids = self._ids()
        try:
            await self.api.batch_assign(self.trip_id, ids, day_pattern_id)
        except MutationError as e:
            logger.warning("[batch_assign] failed: %s", e)
            self.notifier.error(MSG.BATCH_ASSIGN_FAILED)
            return False

        def mutate(trip: Trip) -> Trip:
            for sid in ids:
                trip = move_candidate_to_schedule(trip, sid, day_pattern_id)
            return trip

        self.cache.update(mutate)
        self.notifier.success(MSG.BATCH_ASSIGNED(len(ids)))
        self.exit()
        return True

    async def batch_unassign(self) -> bool:
        if self.target != "timeline":
            raise InvalidOperation("Unassign works on timeline schedules")
        ids = self._ids()
        pattern_id = self.pattern_id
        try:
            await self.api.batch_unassign(self.trip_id, ids)
        except MutationError as e:
            logger.warning("[batch_unassign] failed: %s", e)
            self.notifier.error(MSG.BATCH_UNASSIGN_FAILED)
            return False

        def mutate(trip: Trip) -> Trip:
            for sid in ids:
                trip = move_schedule_to_candidate(trip, pattern_id, sid)
            return trip

        self.cache.update(mutate)
        self.notifier.success(MSG.BATCH_UNASSIGNED(len(ids)))
        self.exit()
        return True

    async def batch_duplicate(self) -> bool:
        ids = self._ids()
        try:
            if self.target == "candidates":
                result = await self.api.batch_duplicate_candidates(self.trip_id, ids)
            else:
                result = await self.api.batch_duplicate_schedules(self.trip_id, self.day_id, self.pattern_id, ids)
        except MutationError as e:
            logger.warning("[batch_duplicate] failed: %s", e)
            self.notifier.error(MSG.BATCH_DUPLICATE_FAILED)
            return False

        self.notifier.success(MSG.BATCH_DUPLICATED(result.updated_count))
        self.exit()
        await self.refresh()
        return True

    async def refresh(self) -> None:
        """Reload the confirmed snapshot; copies only exist server side until then."""
        try:
            self.cache.replace(await self.api.get_trip(self.trip_id))
        except MutationError as e:
            logger.warning("[selection] refresh failed: %s", e)
