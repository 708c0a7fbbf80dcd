"""Notification sink adapters."""

import logging
from dataclasses import dataclass
from typing import Protocol


class Notifier(Protocol):
    """Fire-and-forget user notifications."""

    def success(self, message: str) -> None:
        """Report a completed operation."""

    def error(self, message: str) -> None:
        """Report a failed operation."""

    def info(self, message: str) -> None:
        """Report neutral progress."""


@dataclass
class LoggingNotifier(Notifier):
    """Notifier that writes messages to the application log."""

    logger: logging.Logger = logging.getLogger("menu_scheduler.notifications")

    def success(self, message: str) -> None:
        self.logger.info("success: %s", message)

    def error(self, message: str) -> None:
        self.logger.error("error: %s", message)

    def info(self, message: str) -> None:
        self.logger.info("info: %s", message)
