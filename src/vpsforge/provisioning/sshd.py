# src/vpsforge/provisioning/sshd.py

from __future__ import annotations

import re
from typing import Dict, List

HARDENED_DIRECTIVES: Dict[str, str] = {
    "PasswordAuthentication": "no",
    "PermitRootLogin": "prohibit-password",
    "PubkeyAuthentication": "yes",
}

_DIRECTIVE = re.compile(r"^\s*(#)?([A-Za-z]+)\s+(\S.*)$")
_MATCH_BLOCK = re.compile(r"^\s*Match\s", re.IGNORECASE)


def harden_sshd_config(text: str, directives: Dict[str, str] = HARDENED_DIRECTIVES) -> str:
    """
    Return sshd_config with each directive set exactly once in the global
    section: the first occurrence (commented or not) is rewritten in place,
    later active duplicates are commented out, and missing directives are
    added before the first Match block. Match blocks are left alone.
    """
    wanted = {k.lower(): (k, v) for k, v in directives.items()}
    done: set[str] = set()
    out: list[str] = []
    lines = text.splitlines()

    idx = 0
    while idx < len(lines):
        line = lines[idx]
        if _MATCH_BLOCK.match(line):
            break
        m = _DIRECTIVE.match(line)
        key = m.group(2).lower() if m else None
        if key in wanted:
            name, value = wanted[key]
            if key not in done:
                out.append(f"{name} {value}")
                done.add(key)
            elif not m.group(1):
                out.append(f"#{line.lstrip()}")
            else:
                out.append(line)
        else:
            out.append(line)
        idx += 1

    for key, (name, value) in wanted.items():
        if key not in done:
            out.append(f"{name} {value}")

    out.extend(lines[idx:])
    return "\n".join(out) + "\n"


def is_hardened(text: str, directives: Dict[str, str] = HARDENED_DIRECTIVES) -> bool:
    return harden_sshd_config(text, directives) == (text if text.endswith("\n") else text + "\n")


_INCLUDE = re.compile(r"^\s*Include\s+(\S.*)$", re.IGNORECASE)


def includes_before(text: str, directive: str = "PasswordAuthentication") -> List[str]:
    """Include targets sshd reads before the first active `directive` line."""
    found: List[str] = []
    for line in text.splitlines():
        if _MATCH_BLOCK.match(line):
            break
        inc = _INCLUDE.match(line)
        if inc:
            found.append(inc.group(1).strip())
            continue
        m = _DIRECTIVE.match(line)
        if m and not m.group(1) and m.group(2).lower() == directive.lower():
            break
    return found


def password_auth_enabled(effective: str) -> bool:
    """Read PasswordAuthentication from `sshd -T` output; absent counts as enabled."""
    for line in effective.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0].lower() == "passwordauthentication":
            return parts[1].lower() != "no"
    return True
