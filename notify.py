"""
Notification hook used by the catalog on success and failure paths.

A notifier is any callable taking (message, severity). The default one writes
to the log; the HTTP layer or a UI can pass its own.
"""

import logging
from typing import Callable

from schemas import Severity

logger = logging.getLogger("catalog.notifications")

Notifier = Callable[[str, Severity], None]

_LEVELS = {
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_notifier(message: str, severity: Severity = "success") -> None:
    logger.log(_LEVELS.get(severity, logging.INFO), f"[{severity}] {message}")


class NotificationCollector:
    """Keeps every notification; handy for tests and for batching into a response."""

    def __init__(self):
        self.messages = []

    def __call__(self, message: str, severity: Severity = "success") -> None:
        self.messages.append((message, severity))

    def last(self):
        return self.messages[-1] if self.messages else None

    def clear(self) -> None:
        self.messages.clear()
