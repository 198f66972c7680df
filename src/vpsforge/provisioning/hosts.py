# src/vpsforge/provisioning/hosts.py

from __future__ import annotations

import re

_LOOPBACK_HOSTNAME = re.compile(r"^127\.0\.1\.1(\s|$)")


def hosts_line(domain: str, short: str) -> str:
    return f"127.0.1.1 {domain} {short}"


def ensure_hosts_entry(text: str, domain: str, short: str) -> str:
    """
    Point 127.0.1.1 at the new hostname so it resolves before DNS exists.
    Existing 127.0.1.1 lines are rewritten; otherwise one is appended.
    """
    entry = hosts_line(domain, short)
    lines = text.splitlines()
    replaced = False
    for i, line in enumerate(lines):
        if _LOOPBACK_HOSTNAME.match(line):
            lines[i] = entry
            replaced = True
    if not replaced:
        lines.append(entry)
    return "\n".join(lines) + "\n"


def has_hosts_entry(text: str, domain: str, short: str) -> bool:
    """True when every 127.0.1.1 line, and at least one, names the new hostname."""
    loopback = [line.strip() for line in text.splitlines() if _LOOPBACK_HOSTNAME.match(line)]
    return bool(loopback) and all(line == hosts_line(domain, short) for line in loopback)
