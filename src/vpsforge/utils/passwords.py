# src/vpsforge/utils/passwords.py

from __future__ import annotations

import secrets
import string

ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = 12, prefix: str = "lv_") -> str:
    """
    Random password from the OS CSPRNG. Alphanumeric only so it survives
    shell, YAML and SQL quoting unchanged.
    """
    if length < 8:
        raise ValueError("refusing to generate a password shorter than 8 characters")
    return prefix + "".join(secrets.choice(ALPHABET) for _ in range(length))
