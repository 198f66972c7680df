# src/vpsforge/utils/ssh_runner.py

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import paramiko

from vpsforge.errors import MissingPreconditionError
from vpsforge.execution.runner import (
    TIMEOUT_EXIT_CODE,
    CommandResult,
    log_result,
    sudo_wrap,
)

log = logging.getLogger("vpsforge")


@dataclass
class SSHTarget:
    """
    A server provisioned over SSH instead of locally.
    """
    address: str
    username: str = "root"
    port: int = 22
    pkey_path: Optional[Path] = None


def load_pkey(path: Path) -> paramiko.PKey:
    key_path = str(path)
    try:
        try:
            return paramiko.Ed25519Key.from_private_key_file(key_path)
        except paramiko.ssh_exception.SSHException:
            try:
                return paramiko.RSAKey.from_private_key_file(key_path)
            except paramiko.ssh_exception.SSHException:
                return paramiko.ECDSAKey.from_private_key_file(key_path)
    except (paramiko.ssh_exception.SSHException, OSError) as e:
        raise MissingPreconditionError(f"Cannot load SSH key {path}: {e}") from e


def connect_ssh(target: SSHTarget, *, timeout: float = 30) -> paramiko.SSHClient:
    pkey = load_pkey(target.pkey_path) if target.pkey_path else None

    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        client.connect(
            hostname=target.address,
            port=target.port,
            username=target.username,
            pkey=pkey,
            look_for_keys=pkey is None,
            allow_agent=pkey is None,
            timeout=timeout,
        )
    except (paramiko.ssh_exception.SSHException, OSError) as e:
        client.close()
        raise MissingPreconditionError(
            f"Cannot connect to {target.username}@{target.address}:{target.port}: {e}"
        ) from e
    return client


class SSHRunner:
    """
    Executes commands on a remote host through an open paramiko client.
    """

    def __init__(self, client: paramiko.SSHClient, *, username: str = "root", label: str | None = None):
        self.client = client
        self.username = username
        self.label = label or "ssh"

    def execute(
        self,
        command: str,
        *,
        sudo: bool = False,
        stdin: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        final = sudo_wrap(command) if sudo and self.username != "root" else command
        log.debug(f"[{self.label}] $ {final}")

        start = time.time()
        chan_in, chan_out, chan_err = self.client.exec_command(final, timeout=timeout)
        try:
            if stdin is not None:
                chan_in.write(stdin)
                chan_in.flush()
                chan_in.channel.shutdown_write()
            out = chan_out.read().decode("utf-8", errors="replace")
            err = chan_err.read().decode("utf-8", errors="replace")
            rc = chan_out.channel.recv_exit_status()
        except socket.timeout:
            result = CommandResult(
                command=command,
                exit_code=TIMEOUT_EXIT_CODE,
                stderr=f"command timed out after {timeout}s",
            )
        else:
            result = CommandResult(command=command, exit_code=rc, stdout=out, stderr=err)

        log_result(self.label, result, time.time() - start)
        return result

    def close(self) -> None:
        self.client.close()
