"""User-facing notifications (the toasts of the review and upload screens)"""
import logging
from datetime import datetime, timezone
from typing import List

logger = logging.getLogger(__name__)

INFO = "info"
SUCCESS = "success"
ERROR = "error"

_LOG_LEVELS = {
    INFO: logging.INFO,
    SUCCESS: logging.INFO,
    ERROR: logging.ERROR,
}


class Notification:
    """A single message shown to the reviewer"""
    def __init__(self, level: str, title: str, description: str = ""):
        self.level = level
        self.title = title
        self.description = description
        self.created_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "level": self.level,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at.isoformat()
        }

    def __repr__(self):
        return f"Notification({self.level!r}, {self.title!r}, {self.description!r})"


class Notifier:
    """
    Collects notifications for the active view.

    Front ends read `history` (or subclass and override `notify`) to render
    them; every notification is also written to the log.
    """

    def __init__(self):
        self.history: List[Notification] = []

    def notify(self, title: str, description: str = "", level: str = INFO) -> Notification:
        notification = Notification(level, title, description)
        self.history.append(notification)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), f"[{level}] {title}: {description}")
        return notification

    def info(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, INFO)

    def success(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, SUCCESS)

    def error(self, title: str, description: str = "") -> Notification:
        return self.notify(title, description, ERROR)

    @property
    def last(self):
        return self.history[-1] if self.history else None
