# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/steps/checks.py

from __future__ import annotations

import logging
import shlex
from typing import Any, Callable, Iterable, Mapping

from vpsforge.errors import ProbeError
from vpsforge.execution.runner import CommandResult

from .models import Probe, Step

log = logging.getLogger("vpsforge")


class PreconditionChecker:
    """
    Answers whether a step's effect is already present on the target.
    Never mutates state; probe failures propagate as ProbeError.
    """

    def __init__(self, ctx: Any):
        self.ctx = ctx

    def is_satisfied(self, step: Step) -> bool:
        if step.precondition is None:
            return False
        satisfied = bool(step.precondition(self.ctx))
        log.debug(f"[precondition] {step.name}: {'satisfied' if satisfied else 'not satisfied'}")
        return satisfied


def classify(result: CommandResult, mapping: Mapping[int, bool], what: str) -> bool:
    """
    Map a probe's exit code to present/absent. Any exit code not in
    `mapping` means the probe itself failed.
    """
    if result.exit_code in mapping:
        return mapping[result.exit_code]
    detail = (result.stderr or result.stdout).strip()
    raise ProbeError(f"Cannot check {what} (rc={result.exit_code}): {detail}")


PRESENT_OR_ABSENT = {0: True, 1: False}


# ------------------------------------------------------------------------------
# Host probes
# ------------------------------------------------------------------------------

def user_exists(name: str) -> Probe:
    def _probe(ctx) -> bool:
        r = ctx.runner.execute(f"id -u {shlex.quote(name)}")
        return classify(r, PRESENT_OR_ABSENT, f"user {name}")
    return _probe


def file_exists(path: str, *, sudo: bool = True) -> Probe:
    def _probe(ctx) -> bool:
        r = ctx.runner.execute(f"test -f {shlex.quote(path)}", sudo=sudo)
        return classify(r, PRESENT_OR_ABSENT, f"file {path}")
    return _probe


def dir_exists(path: str, *, sudo: bool = True) -> Probe:
    def _probe(ctx) -> bool:
        r = ctx.runner.execute(f"test -d {shlex.quote(path)}", sudo=sudo)
        return classify(r, PRESENT_OR_ABSENT, f"directory {path}")
    return _probe


def file_nonempty(path: str, *, sudo: bool = True) -> Probe:
    def _probe(ctx) -> bool:
        r = ctx.runner.execute(f"test -s {shlex.quote(path)}", sudo=sudo)
        return classify(r, PRESENT_OR_ABSENT, f"file {path}")
    return _probe


def file_contains_line(path: str, line: str, *, sudo: bool = True) -> Probe:
    """Exact whole-line match; a missing file counts as absent."""
    def _probe(ctx) -> bool:
        p = shlex.quote(path)
        r = ctx.runner.execute(
            f"test -f {p} || exit 1; grep -qxF -- {shlex.quote(line)} {p}",
            sudo=sudo,
        )
        return classify(r, PRESENT_OR_ABSENT, f"line in {path}")
    return _probe


def files_identical(source: str, target: str, *, sudo: bool = True) -> Probe:
    def _probe(ctx) -> bool:
        t = shlex.quote(target)
        r = ctx.runner.execute(
            f"test -f {t} || exit 1; cmp -s {shlex.quote(source)} {t}",
            sudo=sudo,
        )
        return classify(r, PRESENT_OR_ABSENT, f"{target} against {source}")
    return _probe


def file_text_matches(path: str, predicate: Callable[[str], bool], *, sudo: bool = True) -> Probe:
    """Apply `predicate` to a file's content; a missing file counts as absent."""
    def _probe(ctx) -> bool:
        p = shlex.quote(path)
        r = ctx.runner.execute(f"test -f {p} || exit 1; cat {p}", sudo=sudo)
        if not classify(r, PRESENT_OR_ABSENT, f"file {path}"):
            return False
        return predicate(r.stdout)
    return _probe


def command_available(name: str) -> Probe:
    def _probe(ctx) -> bool:
        r = ctx.runner.execute(f"command -v {shlex.quote(name)}")
        return classify(r, PRESENT_OR_ABSENT, f"command {name}")
    return _probe


def command_output_equals(command: str, expected: str, *, sudo: bool = False) -> Probe:
    def _probe(ctx) -> bool:
        r = ctx.runner.execute(command, sudo=sudo)
        if not r.ok:
            classify(r, {}, f"output of '{command}'")
        return r.stdout.strip() == expected
    return _probe


def packages_installed(names: Iterable[str]) -> Probe:
    names = list(names)

    def _probe(ctx) -> bool:
        quoted = " ".join(shlex.quote(n) for n in names)
        r = ctx.runner.execute(f"dpkg-query -W -f='${{Package}} ${{Status}}\\n' {quoted}")
        # dpkg-query exits 1 when some package is unknown to dpkg
        if not classify(r, PRESENT_OR_ABSENT, "installed packages"):
            return False
        installed = {
            line.split()[0]
            for line in r.stdout.splitlines()
            if line.strip().endswith("install ok installed")
        }
        return all(n in installed for n in names)
    return _probe


def all_of(*probes: Probe) -> Probe:
    def _probe(ctx) -> bool:
        return all(p(ctx) for p in probes)
    return _probe


# ------------------------------------------------------------------------------
# Cluster probes
# ------------------------------------------------------------------------------

def k8s_resource_exists(kind: str, name: str, namespace: str | None = None) -> Probe:
    def _probe(ctx) -> bool:
        return ctx.kubectl.resource_exists(kind=kind, name=name, namespace=namespace)
    return _probe


def pg_role_exists(role: str) -> Probe:
    def _probe(ctx) -> bool:
        return ctx.postgres.role_exists(role)
    return _probe


def pg_database_exists(database: str) -> Probe:
    def _probe(ctx) -> bool:
        return ctx.postgres.database_exists(database)
    return _probe
