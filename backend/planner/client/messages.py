"""
User-facing notification strings.
"""


class MSG:
    SCHEDULE_UPDATED = "Schedule updated"
    SCHEDULE_UPDATE_FAILED = "Failed to update schedule"
    CONFLICT = "Someone else updated this schedule. Refresh to see the latest version."
    CONFLICT_DELETED = "This schedule no longer exists. Someone else deleted it."

    BATCH_SHIFT_FAILED = "Failed to shift the following schedules"
    BATCH_ASSIGN_FAILED = "Failed to add the selected candidates to the timeline"
    BATCH_UNASSIGN_FAILED = "Failed to move the selected schedules to candidates"
    BATCH_DELETE_FAILED = "Failed to delete the selected items"
    BATCH_DUPLICATE_FAILED = "Failed to duplicate the selected items"

    TRIP_AUTO_ACTIVE = "The trip has started"
    TRIP_AUTO_COMPLETED = "The trip is complete"

    @staticmethod
    def BATCH_SHIFT_SUCCESS(count: int) -> str:
        return f"Shifted {count} schedule(s)"

    @staticmethod
    def BATCH_SHIFT_PARTIAL(updated: int, skipped: int) -> str:
        return f"Shifted {updated} schedule(s); {skipped} skipped"

    @staticmethod
    def BATCH_ASSIGNED(count: int) -> str:
        return f"Added {count} candidate(s) to the timeline"

    @staticmethod
    def BATCH_UNASSIGNED(count: int) -> str:
        return f"Moved {count} schedule(s) to candidates"

    @staticmethod
    def BATCH_DELETED(count: int) -> str:
        return f"Deleted {count} item(s)"

    @staticmethod
    def BATCH_DUPLICATED(count: int) -> str:
        return f"Duplicated {count} item(s)"
