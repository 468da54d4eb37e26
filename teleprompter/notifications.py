"""
Transient agent-facing notifications (the "toasts" shown after an action).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    level: str  # success, error, warning
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


class Notifier:
    """Collects notifications until the UI drains them"""

    def __init__(self):
        self._pending: List[Notification] = []

    def _push(self, level: str, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._pending.append(notification)
        return notification

    def success(self, message: str) -> Notification:
        logger.info(f"[Notify] {message}")
        return self._push("success", message)

    def warning(self, message: str) -> Notification:
        logger.warning(f"[Notify] {message}")
        return self._push("warning", message)

    def error(self, message: str) -> Notification:
        logger.error(f"[Notify] {message}")
        return self._push("error", message)

    @property
    def pending(self) -> List[Notification]:
        return list(self._pending)

    def drain(self) -> List[Notification]:
        drained, self._pending = self._pending, []
        return drained
