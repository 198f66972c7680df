# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/errors.py

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vpsforge.execution.runner import CommandResult


class ProvisionError(RuntimeError):
    """Base class for everything that aborts a provisioning run."""


class MissingPreconditionError(ProvisionError):
    """Required external state is absent (no SSH key, no TTY, unsupported arch)."""


class CommandFailedError(ProvisionError):
    """An external tool exited non-zero."""

    def __init__(self, message: str, result: "CommandResult | None" = None):
        super().__init__(message)
        self.result = result


class ReadinessTimeoutError(ProvisionError):
    """A bounded readiness poll ran out of attempts."""

    def __init__(self, what: str, attempts: int, interval: float):
        super().__init__(
            f"Timed out waiting for {what} "
            f"({attempts} attempts, {interval:g}s apart)"
        )
        self.what = what
        self.attempts = attempts
        self.interval = interval


class ProbeError(ProvisionError):
    """A precondition probe could not determine the state of the target."""


class ProvisionWarning(Exception):
    """
    Raised by a step action when the observed state differs from what was
    expected but the run may continue (e.g. DNS not yet pointing at the host).
    """
