# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single provisioning run
    plan: str         # vps / k3s
    target: str       # "localhost" or user@host

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(plan: str, target: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "plan": plan,
        "target": target,
    }


# ---------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunStarted(BaseEvent):
    steps: List[str]

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    state: str        # "completed" | "aborted"
    succeeded: int
    skipped: int
    warned: int
    failed: int


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    name: str
    index: int
    total: int

@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    name: str

@dataclass(frozen=True)
class StepSucceeded(BaseEvent):
    name: str
    duration_ms: int

@dataclass(frozen=True)
class StepWarned(BaseEvent):
    name: str
    message: str

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    name: str
    kind: str
    error: str


# ---------------------------------------------------------------------
# Readiness polls
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PollStarted(BaseEvent):
    what: str
    interval: float
    max_attempts: int

@dataclass(frozen=True)
class PollAttempt(BaseEvent):
    what: str
    attempt: int
    max_attempts: int

@dataclass(frozen=True)
class PollSucceeded(BaseEvent):
    what: str
    attempts: int

@dataclass(frozen=True)
class PollTimedOut(BaseEvent):
    what: str
    attempts: int
