# src/vpsforge/provisioning/zsh.py

from __future__ import annotations

import re

ALIAS_BEGIN = "# >>> vpsforge aliases >>>"
ALIAS_END = "# <<< vpsforge aliases <<<"

ALIASES = (
    "alias ll='ls -lah'",
    "alias update='sudo apt update && sudo apt upgrade -y'",
    "alias myip='curl ifconfig.me'",
)

_THEME_LINE = re.compile(r'^ZSH_THEME=".*"$', re.MULTILINE)


def theme_line(theme: str) -> str:
    return f'ZSH_THEME="{theme}"'


def set_theme(text: str, theme: str) -> str:
    if _THEME_LINE.search(text):
        return _THEME_LINE.sub(lambda _: theme_line(theme), text)
    return theme_line(theme) + "\n" + text


def has_theme(text: str, theme: str) -> bool:
    found = _THEME_LINE.findall(text)
    return bool(found) and all(line == theme_line(theme) for line in found)


def alias_block() -> str:
    return "\n".join((ALIAS_BEGIN, *ALIASES, ALIAS_END)) + "\n"


def ensure_aliases(text: str) -> str:
    """Append the alias block once; re-runs leave the file unchanged."""
    if ALIAS_BEGIN in text:
        return text
    if text and not text.endswith("\n"):
        text += "\n"
    return text + alias_block()
