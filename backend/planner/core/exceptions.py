"""
Error taxonomy shared by the timeline engine, the stores and the client.
"""


class PlannerError(Exception):
    """Base class for every error raised by this package."""


class InvalidTimeFormat(PlannerError, ValueError):
    """A time-of-day string could not be parsed as HH:MM[:SS]."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid time format: {value}")


class InvalidTripDays(PlannerError, ValueError):
    """Day numbers are not a contiguous 1-based sequence."""


class InvalidOperation(PlannerError):
    """The request is well formed but not allowed in the current state."""


class LimitExceeded(PlannerError):
    """A per-trip or per-day capacity limit would be exceeded."""


class PermissionDenied(PlannerError):
    """The current user may not perform this operation on the trip."""

    def __init__(self, message: str = "Trip not found", *, is_member: bool = False):
        self.is_member = is_member
        super().__init__(message)


class MutationError(PlannerError):
    """Base class for failures at the mutation boundary."""


class ConflictError(MutationError):
    """Someone else updated the target since the client last observed it."""

    def __init__(self, message: str = "Resource was modified by another user", *, current=None):
        self.current = current
        super().__init__(message)


class GoneError(MutationError):
    """The target no longer exists."""

    def __init__(self, message: str = "Schedule not found", *, ids: list[str] | None = None):
        self.ids = ids or []
        super().__init__(message)


class NetworkFailure(MutationError):
    """The round trip failed for a reason other than Conflict or Gone."""

    def __init__(self, message: str = "Network request failed", *, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
