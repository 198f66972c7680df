# src/vpsforge/observers/logger.py
from __future__ import annotations

import logging

from .events import BaseEvent

# run-wide fields, already written once in the log file header
_CONTEXT_FIELDS = ("ts", "run_id", "plan", "target")


class LoggerObserver:
    """Mirrors every event into the run's log file at DEBUG."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        fields = ", ".join(
            f"{k}={v}" for k, v in event.dict().items() if k not in _CONTEXT_FIELDS
        )
        self.logger.debug(f"[EVENT] {event.__class__.__name__}: {fields}")
