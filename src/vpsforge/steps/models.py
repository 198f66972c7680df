# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/steps/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

# Steps receive the run's ProvisionContext; typed loosely to keep this
# module free of provisioning imports.
Action = Callable[[Any], None]
Probe = Callable[[Any], bool]


class Outcome(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    WARNED = "warned"
    FAILED = "failed"


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Step:
    """
    One provisioning step.

    An idempotent step is skipped when its precondition reports that the
    effect is already present, so it must carry a precondition. A step that
    is not idempotent runs on every invocation and must be convergent.
    """
    name: str
    action: Action
    precondition: Optional[Probe] = None
    idempotent: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        if self.idempotent and self.precondition is None:
            raise ValueError(f"Idempotent step '{self.name}' needs a precondition")


@dataclass(frozen=True)
class RunResult:
    step_name: str
    outcome: Outcome
    error_detail: Optional[str] = None
    error_kind: Optional[str] = None
    duration_ms: int = 0


@dataclass(frozen=True)
class PollSpec:
    predicate: Callable[[], bool]
    interval: float
    max_attempts: int


@dataclass
class RunReport:
    results: List[RunResult] = field(default_factory=list)
    state: RunState = RunState.NOT_STARTED

    def add(self, result: RunResult) -> None:
        self.results.append(result)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    def outcomes(self) -> dict[str, Outcome]:
        return {r.step_name: r.outcome for r in self.results}

    @property
    def failed(self) -> Optional[RunResult]:
        return next((r for r in self.results if r.outcome == Outcome.FAILED), None)

    @property
    def warnings(self) -> List[RunResult]:
        return [r for r in self.results if r.outcome == Outcome.WARNED]

    @property
    def exit_code(self) -> int:
        return 0 if self.state == RunState.COMPLETED else 1

    def summary(self) -> str:
        return (
            f"SUCCEEDED={self.count(Outcome.SUCCEEDED)} "
            f"SKIPPED={self.count(Outcome.SKIPPED)} "
            f"WARNED={self.count(Outcome.WARNED)} "
            f"FAILED={self.count(Outcome.FAILED)}"
        )
