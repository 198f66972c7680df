# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/cli/app.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

import typer
from pydantic import ValidationError

from vpsforge.cli.prompts import Prompter, gather_k3s, gather_vps
from vpsforge.config.defaults import DEFAULT_KUBECONFIG_OUT, POSTGRES_NAMESPACE
from vpsforge.config.loader import load_answers
from vpsforge.errors import ProvisionError
from vpsforge.execution.runner import CommandRunner, LocalRunner
from vpsforge.logging.log import default_log_dir, init_logging
from vpsforge.net.dns import detect_external_ip, remote_external_ip
from vpsforge.observers.console import ConsoleObserver
from vpsforge.observers.dispatcher import EventBus
from vpsforge.observers.events import new_ctx
from vpsforge.observers.jsonfile import JsonFileObserver
from vpsforge.observers.logger import LoggerObserver
from vpsforge.provisioning.context import k3s_context, vps_context
from vpsforge.provisioning.k3s import build_k3s_steps, db_host
from vpsforge.provisioning.vps import build_vps_steps
from vpsforge.steps.models import RunReport
from vpsforge.steps.poller import ReadinessPoller
from vpsforge.steps.sequencer import StepSequencer
from vpsforge.utils.ssh_runner import SSHRunner, SSHTarget, connect_ssh


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="vpsforge: harden a fresh VPS and bootstrap k3s on it")


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _fail(message: str) -> None:
    typer.secho(f"ERROR: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _prefill(answers: Optional[Path]) -> dict:
    if answers is None:
        return {}
    try:
        return load_answers(answers)
    except (OSError, ValueError) as e:
        _fail(f"Cannot read answers file {answers}: {e}")


@contextmanager
def _target(
    host: Optional[str],
    ssh_user: str,
    ssh_port: int,
    ssh_key: Optional[Path],
) -> Iterator[Tuple[CommandRunner, str]]:
    """Yields the runner for the machine being provisioned and its label."""
    if not host:
        yield LocalRunner(), "localhost"
        return

    target = SSHTarget(address=host, username=ssh_user, port=ssh_port, pkey_path=ssh_key)
    client = connect_ssh(target)
    label = f"{ssh_user}@{host}"
    runner = SSHRunner(client, username=ssh_user, label=label)
    try:
        yield runner, label
    finally:
        runner.close()


def _event_bus(logger: logging.Logger, run_id: str, log_dir: Optional[Path]) -> EventBus:
    observers = [
        ConsoleObserver(),
        LoggerObserver(logger),
        JsonFileObserver((log_dir or default_log_dir()) / f"{run_id}.jsonl"),
    ]
    return EventBus(observers=observers)


def _report_failure(report: RunReport) -> None:
    failed = report.failed
    if failed is None:
        return
    typer.secho(
        f"Step '{failed.step_name}' failed [{failed.error_kind}]: {failed.error_detail}",
        fg=typer.colors.RED,
        err=True,
    )


def _report_warnings(report: RunReport) -> None:
    for w in report.warnings:
        typer.secho(f"  WARNING ({w.step_name}): {w.error_detail}", fg=typer.colors.YELLOW)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def vps(
    answers: Optional[Path] = typer.Option(None, "--answers", help="YAML file pre-filling the prompts"),
    host: Optional[str] = typer.Option(None, "--host", help="Provision this host over SSH instead of locally"),
    ssh_user: str = typer.Option("root", "--ssh-user"),
    ssh_port: int = typer.Option(22, "--ssh-port"),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Harden a fresh Ubuntu VPS: sudo user, SSH keys only, zsh, firewall."""
    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=verbose)

    typer.secho("=== Secure VPS Setup ===", bold=True)
    try:
        a = gather_vps(Prompter(_prefill(answers)))
    except ValidationError as e:
        _fail(f"Invalid answers:\n{e}")
    except ProvisionError as e:
        _fail(str(e))

    try:
        with _target(host, ssh_user, ssh_port, ssh_key) as (runner, label):
            bus = _event_bus(logger, run_id, log_dir)
            run_ctx = new_ctx("vps", label, run_id)
            ctx = vps_context(runner, ReadinessPoller(bus, run_ctx), a)
            report = StepSequencer(bus, run_ctx).run(build_vps_steps(a), ctx)
    except ProvisionError as e:
        _fail(str(e))

    typer.echo("")
    _report_warnings(report)
    if report.failed:
        _report_failure(report)
    else:
        typer.secho("Setup complete.", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"  Hostname : {a.domain}")
        typer.echo(f"  User     : {a.new_user} (passwordless sudo)")
        typer.echo(f"  Login    : ssh {a.new_user}@{a.domain}")
        typer.echo("  Root password login and SSH password authentication are disabled.")
    typer.echo(f"  Log file : {log_path}")
    raise typer.Exit(code=report.exit_code)


@app.command()
def k3s(
    answers: Optional[Path] = typer.Option(None, "--answers", help="YAML file pre-filling the prompts"),
    host: Optional[str] = typer.Option(None, "--host", help="Provision this host over SSH instead of locally"),
    ssh_user: str = typer.Option("root", "--ssh-user"),
    ssh_port: int = typer.Option(22, "--ssh-port"),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key"),
    kubeconfig_out: Path = typer.Option(
        Path(DEFAULT_KUBECONFIG_OUT),
        "--kubeconfig-out",
        help="Where to write the kubeconfig for external access",
    ),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Install k3s with ingress-nginx, cert-manager and PostgreSQL/TimescaleDB."""
    logger, run_id, log_path = init_logging(base_dir=log_dir, verbose=verbose)

    typer.secho("=== k3s + PostgreSQL Setup ===", bold=True)
    prefill = _prefill(answers)

    try:
        with _target(host, ssh_user, ssh_port, ssh_key) as (runner, label):
            server_ip = remote_external_ip(runner) if host else detect_external_ip()
            typer.echo(f"Server external IP: {server_ip}")

            try:
                a, generated = gather_k3s(Prompter(prefill))
            except ValidationError as e:
                _fail(f"Invalid answers:\n{e}")
            if generated:
                typer.echo("Generated a database password.")

            bus = _event_bus(logger, run_id, log_dir)
            run_ctx = new_ctx("k3s", label, run_id)
            ctx = k3s_context(
                runner,
                ReadinessPoller(bus, run_ctx),
                a,
                server_ip=server_ip,
                kubeconfig_out=kubeconfig_out.expanduser().resolve(),
                namespace=POSTGRES_NAMESPACE,
            )
            report = StepSequencer(bus, run_ctx).run(build_k3s_steps(a), ctx)
    except ProvisionError as e:
        _fail(str(e))

    typer.echo("")
    _report_warnings(report)
    if report.failed:
        _report_failure(report)
    else:
        typer.secho("Setup complete.", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"  URL        : https://{a.domain}")
        typer.echo(f"  DB host    : {db_host()}")
        typer.echo(f"  DB name    : {a.db_name}")
        typer.echo(f"  DB user    : {a.db_user}")
        typer.echo(f"  DB password: {a.db_password}")
        typer.echo(f"  Kubeconfig : {ctx.kubeconfig_out}")
        typer.echo(f"  Use it with: export KUBECONFIG={ctx.kubeconfig_out}")
    typer.echo(f"  Log file   : {log_path}")
    raise typer.Exit(code=report.exit_code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
