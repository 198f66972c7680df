# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/execution/files.py

from __future__ import annotations

import shlex
from typing import Optional

from .runner import CommandRunner


def q(value: str) -> str:
    return shlex.quote(value)


def read_text(runner: CommandRunner, path: str, *, sudo: bool = True) -> str:
    """Return the content of a file on the target; raises if it cannot be read."""
    return runner.execute(f"cat {q(path)}", sudo=sudo).check(f"read {path}").stdout


def write_text(
    runner: CommandRunner,
    path: str,
    content: str,
    *,
    mode: int = 0o644,
    owner: Optional[str] = None,
    sudo: bool = True,
) -> None:
    """
    Replace a file on the target with `content`, passed through stdin so it
    never appears on a command line.
    """
    cmd = f"install -m {mode:o} /dev/stdin {q(path)}"
    if owner:
        cmd += f" && chown {q(owner)} {q(path)}"
    runner.execute(cmd, sudo=sudo, stdin=content).check(f"write {path}")


def ensure_dir(
    runner: CommandRunner,
    path: str,
    *,
    mode: int = 0o755,
    owner: Optional[str] = None,
    sudo: bool = True,
) -> None:
    cmd = f"install -d -m {mode:o} {q(path)}"
    if owner:
        cmd += f" && chown {q(owner)} {q(path)}"
    runner.execute(cmd, sudo=sudo).check(f"mkdir {path}")
