# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/execution/runner.py

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from vpsforge.errors import CommandFailedError

log = logging.getLogger("vpsforge")

TIMEOUT_EXIT_CODE = 124


@dataclass(frozen=True)
class CommandResult:
    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def check(self, label: str | None = None) -> "CommandResult":
        """Raise CommandFailedError unless the command exited 0."""
        if self.ok:
            return self
        detail = (self.stderr or self.stdout).strip()
        what = label or self.command
        raise CommandFailedError(
            f"{what} failed (rc={self.exit_code}): {detail}", result=self
        )


class CommandRunner(Protocol):
    """
    Runs one shell command on the target host.
    Implementations never retry and never raise on a non-zero exit.
    """

    def execute(
        self,
        command: str,
        *,
        sudo: bool = False,
        stdin: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult: ...


def sudo_wrap(command: str) -> str:
    return f"sudo -H bash -c {shlex.quote(command)}"


def log_result(label: str, result: CommandResult, duration: float) -> None:
    if result.stdout:
        log.debug(f"[{label}][stdout]\n{result.stdout.rstrip()}")
    if result.stderr:
        log.debug(f"[{label}][stderr]\n{result.stderr.rstrip()}")
    log.debug(f"[{label}][exit {result.exit_code}] ({duration:.2f}s)")


@dataclass
class LocalRunner:
    """
    Executes commands on this machine through `bash -c`.
    """

    label: str = "local"

    @property
    def is_root(self) -> bool:
        return os.geteuid() == 0

    def execute(
        self,
        command: str,
        *,
        sudo: bool = False,
        stdin: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        final = sudo_wrap(command) if sudo and not self.is_root else command
        log.debug(f"[{self.label}] $ {final}")

        start = time.time()
        try:
            cp = subprocess.run(
                ["bash", "-c", final],
                input=stdin,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            result = CommandResult(
                command=command,
                exit_code=TIMEOUT_EXIT_CODE,
                stderr=f"command timed out after {timeout}s",
            )
        else:
            result = CommandResult(
                command=command,
                exit_code=cp.returncode,
                stdout=cp.stdout or "",
                stderr=cp.stderr or "",
            )

        log_result(self.label, result, time.time() - start)
        return result
