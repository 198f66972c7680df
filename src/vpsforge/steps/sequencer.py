# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/steps/sequencer.py

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Sequence

from vpsforge.errors import ProvisionWarning
from vpsforge.observers.dispatcher import EventBus
from vpsforge.observers.events import (
    RunStarted,
    RunSummary,
    StepFailed,
    StepSkipped,
    StepStarted,
    StepSucceeded,
    StepWarned,
)

from .checks import PreconditionChecker
from .models import Outcome, RunReport, RunResult, RunState, Step

log = logging.getLogger("vpsforge")


def _validate_names(steps: Sequence[Step]) -> None:
    seen: set[str] = set()
    for s in steps:
        if s.name in seen:
            raise ValueError(f"Duplicate step name '{s.name}'")
        seen.add(s.name)


class StepSequencer:
    """
    Runs steps strictly in order and stops at the first failure.

    Per step: an idempotent step whose precondition is satisfied is skipped;
    every other step executes. A ProvisionWarning from an action is recorded
    and the run continues; any other exception aborts the run, leaving no
    results for the steps after it.
    """

    def __init__(self, bus: Optional[EventBus] = None, run_ctx: Optional[Dict[str, Any]] = None):
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or {"ts": "", "run_id": "", "plan": "", "target": ""}
        self.state = RunState.NOT_STARTED

    def run(self, steps: Sequence[Step], ctx: Any) -> RunReport:
        _validate_names(steps)
        if self.state != RunState.NOT_STARTED:
            raise RuntimeError("StepSequencer instances run once")

        report = RunReport()
        checker = PreconditionChecker(ctx)
        self._transition(report, RunState.RUNNING)
        self.bus.emit(RunStarted(steps=[s.name for s in steps], **self.run_ctx))

        total = len(steps)
        for index, step in enumerate(steps, start=1):
            self.bus.emit(StepStarted(name=step.name, index=index, total=total, **self.run_ctx))
            result = self._run_step(step, checker, ctx)
            report.add(result)
            if result.outcome == Outcome.FAILED:
                self._transition(report, RunState.ABORTED)
                break
        else:
            self._transition(report, RunState.COMPLETED)

        self.bus.emit(
            RunSummary(
                state=report.state.value,
                succeeded=report.count(Outcome.SUCCEEDED),
                skipped=report.count(Outcome.SKIPPED),
                warned=report.count(Outcome.WARNED),
                failed=report.count(Outcome.FAILED),
                **self.run_ctx,
            )
        )
        log.info(f"run {report.state.value}: {report.summary()}")
        return report

    # ------------------------- internal helpers -------------------------

    def _transition(self, report: RunReport, state: RunState) -> None:
        log.debug(f"[sequencer] {self.state.value} -> {state.value}")
        self.state = state
        report.state = state

    def _run_step(self, step: Step, checker: PreconditionChecker, ctx: Any) -> RunResult:
        t0 = time.time()
        try:
            if step.idempotent and checker.is_satisfied(step):
                log.info(f"[{step.name}] already satisfied, skipping")
                self.bus.emit(StepSkipped(name=step.name, **self.run_ctx))
                return RunResult(step_name=step.name, outcome=Outcome.SKIPPED)

            log.info(f"[{step.name}] running")
            step.action(ctx)

        except ProvisionWarning as w:
            log.warning(f"[{step.name}] {w}")
            self.bus.emit(StepWarned(name=step.name, message=str(w), **self.run_ctx))
            return RunResult(
                step_name=step.name,
                outcome=Outcome.WARNED,
                error_detail=str(w),
                duration_ms=int((time.time() - t0) * 1000),
            )

        except Exception as e:
            kind = e.__class__.__name__
            log.error(f"[{step.name}] failed [{kind}]: {e}")
            log.debug(f"[{step.name}] traceback", exc_info=True)
            self.bus.emit(StepFailed(name=step.name, kind=kind, error=str(e), **self.run_ctx))
            return RunResult(
                step_name=step.name,
                outcome=Outcome.FAILED,
                error_detail=str(e),
                error_kind=kind,
                duration_ms=int((time.time() - t0) * 1000),
            )

        duration_ms = int((time.time() - t0) * 1000)
        self.bus.emit(StepSucceeded(name=step.name, duration_ms=duration_ms, **self.run_ctx))
        return RunResult(step_name=step.name, outcome=Outcome.SUCCEEDED, duration_ms=duration_ms)
