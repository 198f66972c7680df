# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/net/dns.py

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Callable, List, Optional

import requests

from vpsforge.config.defaults import EXTERNAL_IP_URL
from vpsforge.errors import MissingPreconditionError
from vpsforge.utils.retry import RetryError, retry

log = logging.getLogger("vpsforge")


def _log_retry(attempt: int, exc: Exception) -> None:
    log.warning(f"[net] external IP lookup failed (attempt {attempt}): {exc}")


@retry(retries=3, delay=2, retry_on=(requests.RequestException, ValueError), on_retry=_log_retry)
def _fetch_ipv4(url: str, session: requests.Session) -> str:
    resp = session.get(url, timeout=10, headers={"User-Agent": "curl/8"})
    resp.raise_for_status()
    text = resp.text.strip()
    ip = ipaddress.ip_address(text)
    if ip.version != 4:
        raise ValueError(f"{url} returned a non-IPv4 address: {text}")
    return str(ip)


def detect_external_ip(url: str = EXTERNAL_IP_URL, session: Optional[requests.Session] = None) -> str:
    """
    The server's public IPv4 as seen from the internet.

    This must run on the server being provisioned; over SSH the caller asks
    the remote host instead (see remote_external_ip).
    """
    try:
        return _fetch_ipv4(url, session or requests.Session())
    except RetryError as e:
        raise MissingPreconditionError(f"Could not detect the external IP via {url}: {e.__cause__}") from e


def remote_external_ip(runner, url: str = EXTERNAL_IP_URL) -> str:
    r = runner.execute(f"curl -4 -fsS --max-time 10 {url}")
    try:
        ip = ipaddress.ip_address(r.stdout.strip()) if r.ok else None
    except ValueError:
        ip = None
    if ip is None or ip.version != 4:
        raise MissingPreconditionError(
            f"Could not detect the external IP via {url} on the target: {(r.stderr or r.stdout).strip()}"
        )
    return str(ip)


def resolve_ipv4(domain: str, resolver: Callable[..., list] = socket.getaddrinfo) -> List[str]:
    """All IPv4 addresses the local resolver returns for `domain` (may be empty)."""
    try:
        infos = resolver(domain, None, socket.AF_INET, socket.SOCK_STREAM)
    except socket.gaierror as e:
        log.debug(f"[net] resolving {domain} failed: {e}")
        return []
    seen: List[str] = []
    for info in infos:
        addr = info[4][0]
        if addr not in seen:
            seen.append(addr)
    return seen
