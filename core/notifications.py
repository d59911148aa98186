"""User-facing notification capability injected into orchestration components."""

import logging
from typing import List, Protocol, Tuple

from domain.enums import NotificationLevel


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything that can show a single message to the user."""

    def notify(self, title: str, message: str, level: NotificationLevel = NotificationLevel.ERROR) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes notifications to the application log."""

    def notify(self, title: str, message: str, level: NotificationLevel = NotificationLevel.ERROR) -> None:
        log_level = logging.ERROR if level == NotificationLevel.ERROR else logging.INFO
        logger.log(log_level, f"{title}: {message}", extra={"notification_level": level.value})


class RecordingNotifier:
    """Notifier that keeps every notification in memory."""

    def __init__(self):
        self.notifications: List[Tuple[str, str, NotificationLevel]] = []

    def notify(self, title: str, message: str, level: NotificationLevel = NotificationLevel.ERROR) -> None:
        self.notifications.append((title, message, level))

    @property
    def count(self) -> int:
        return len(self.notifications)
