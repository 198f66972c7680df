# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/steps/poller.py

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from vpsforge.errors import ReadinessTimeoutError
from vpsforge.observers.dispatcher import EventBus
from vpsforge.observers.events import (
    PollAttempt,
    PollStarted,
    PollSucceeded,
    PollTimedOut,
)

from .models import PollSpec

log = logging.getLogger("vpsforge")


class PollOutcome(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"


def wait_until_ready(
    predicate: Callable[[], bool],
    interval: float,
    max_attempts: int,
    *,
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Optional[Callable[[int], None]] = None,
) -> PollOutcome:
    """
    Call `predicate` up to `max_attempts` times, sleeping `interval` seconds
    between calls (never after the last one).

    Exceptions raised by the predicate are not swallowed: a probe that
    cannot talk to the system is an error, not "not ready yet".
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        if on_attempt:
            on_attempt(attempt)
        if predicate():
            return PollOutcome.READY
        if attempt < max_attempts:
            sleep(interval)
    return PollOutcome.TIMED_OUT


class ReadinessPoller:
    """
    wait_until_ready with observer events, for use inside step actions.
    """

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[Dict[str, Any]] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or {"ts": "", "run_id": "", "plan": "", "target": ""}
        self.sleep = sleep

    def wait(self, spec: PollSpec, what: str) -> PollOutcome:
        self.bus.emit(PollStarted(what=what, interval=spec.interval, max_attempts=spec.max_attempts, **self.run_ctx))
        attempts = 0

        def _on_attempt(n: int) -> None:
            nonlocal attempts
            attempts = n
            log.debug(f"[poll] {what}: attempt {n}/{spec.max_attempts}")
            self.bus.emit(PollAttempt(what=what, attempt=n, max_attempts=spec.max_attempts, **self.run_ctx))

        outcome = wait_until_ready(
            spec.predicate,
            spec.interval,
            spec.max_attempts,
            sleep=self.sleep,
            on_attempt=_on_attempt,
        )

        if outcome == PollOutcome.READY:
            self.bus.emit(PollSucceeded(what=what, attempts=attempts, **self.run_ctx))
        else:
            self.bus.emit(PollTimedOut(what=what, attempts=attempts, **self.run_ctx))
        return outcome

    def require(self, spec: PollSpec, what: str) -> None:
        """Like wait(), but a timeout raises ReadinessTimeoutError."""
        if self.wait(spec, what) == PollOutcome.TIMED_OUT:
            raise ReadinessTimeoutError(what, spec.max_attempts, spec.interval)
