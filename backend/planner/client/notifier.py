"""
Notification sinks used by the client coordinators.
"""

import logging
from typing import Literal, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Writes notifications to the log; the default when no UI is attached."""

    def success(self, message: str) -> None:
        logger.info("[notify] %s", message)

    def error(self, message: str) -> None:
        logger.warning("[notify] %s", message)


class RecordingNotifier:
    """Keeps every notification in order, e.g. for a CLI summary or tests."""

    def __init__(self) -> None:
        self.events: list[tuple[Literal["success", "error"], str]] = []

    def success(self, message: str) -> None:
        self.events.append(("success", message))

    def error(self, message: str) -> None:
        self.events.append(("error", message))

    @property
    def messages(self) -> list[str]:
        return [m for _, m in self.events]
