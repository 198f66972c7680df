# src/vpsforge/observers/console.py
from __future__ import annotations

import typer

from .events import (
    BaseEvent,
    PollAttempt,
    PollTimedOut,
    RunSummary,
    StepFailed,
    StepSkipped,
    StepStarted,
    StepSucceeded,
    StepWarned,
)


class ConsoleObserver:
    """
    One line per step transition, coloured the way an operator scans it.
    """

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, StepStarted):
            typer.secho(f"--- [{event.index}/{event.total}] {event.name} ---", bold=True)
        elif isinstance(event, StepSkipped):
            typer.secho(f"    {event.name}: already in place, skipped", fg=typer.colors.BLUE)
        elif isinstance(event, StepSucceeded):
            typer.secho(f"    {event.name}: done ({event.duration_ms} ms)", fg=typer.colors.GREEN)
        elif isinstance(event, StepWarned):
            typer.secho(f"    WARNING: {event.message}", fg=typer.colors.YELLOW)
        elif isinstance(event, StepFailed):
            typer.secho(f"    {event.name} FAILED [{event.kind}]: {event.error}", fg=typer.colors.RED, err=True)
        elif isinstance(event, PollAttempt):
            if event.attempt > 1:
                typer.echo(f"    waiting for {event.what}... ({event.attempt}/{event.max_attempts})")
        elif isinstance(event, PollTimedOut):
            typer.secho(f"    gave up waiting for {event.what} after {event.attempts} attempts", fg=typer.colors.RED, err=True)
        elif isinstance(event, RunSummary):
            color = typer.colors.GREEN if event.state == "completed" else typer.colors.RED
            typer.secho(
                f"=== {event.plan} run {event.state}: succeeded={event.succeeded} "
                f"skipped={event.skipped} warned={event.warned} failed={event.failed} ===",
                fg=color,
                bold=True,
            )
