"""
User-visible confirmation and error signals.

Stores report the outcome of every mutation here. The HTTP layer returns
the collected notifications with the response so the client can show
them as toasts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class Level(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Notification:
    level: Level
    message: str


@dataclass
class Notifier:
    """Collects notifications for one request."""

    items: list[Notification] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.items.append(Notification(Level.SUCCESS, message))

    def error(self, message: str) -> None:
        logger.info("Reporting error to user: %s", message)
        self.items.append(Notification(Level.ERROR, message))

    def as_list(self) -> list[dict]:
        return [{"level": n.level.value, "message": n.message} for n in self.items]
