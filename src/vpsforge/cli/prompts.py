# src/vpsforge/cli/prompts.py

from __future__ import annotations

import getpass
import sys
from typing import Dict, Optional

import typer

from vpsforge.config.models import K3sAnswers, VpsAnswers
from vpsforge.errors import MissingPreconditionError
from vpsforge.utils.passwords import generate_password


def stdin_is_tty() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def controlling_tty_available() -> bool:
    try:
        with open("/dev/tty"):
            return True
    except OSError:
        return False


class Prompter:
    """
    Asks for answers that were not pre-filled from an answers file.

    Reads from stdin when it is a terminal, otherwise from /dev/tty (the
    script may be piped into bash). With neither available, asking is a
    MissingPreconditionError rather than a silent empty answer.
    """

    def __init__(self, prefill: Optional[Dict[str, str]] = None):
        self.prefill = dict(prefill or {})

    def ask(self, key: str, text: str, *, default: Optional[str] = None, hide_input: bool = False) -> str:
        if key in self.prefill:
            return self.prefill[key]

        if stdin_is_tty():
            return typer.prompt(
                text,
                default=default,
                hide_input=hide_input,
                show_default=bool(default),
            )
        if controlling_tty_available():
            return self._ask_tty(text, default=default, hide_input=hide_input)

        raise MissingPreconditionError(
            f"No terminal available to ask for '{key}'. "
            "Run interactively or provide it with --answers."
        )

    @staticmethod
    def _ask_tty(text: str, *, default: Optional[str], hide_input: bool) -> str:
        label = f"{text} [{default}]: " if default else f"{text}: "
        if hide_input:
            # getpass reads from /dev/tty on its own
            value = getpass.getpass(label)
        else:
            with open("/dev/tty", "r+") as tty:
                tty.write(label)
                tty.flush()
                value = tty.readline().rstrip("\n")
        if value == "" and default is not None:
            return default
        return value


def gather_vps(prompter: Prompter) -> VpsAnswers:
    domain = prompter.ask("domain", "Domain name (e.g. server.example.com)")
    new_user = prompter.ask("new_user", "New sudo user name")
    zsh_theme = prompter.ask(
        "zsh_theme",
        "Oh My Zsh theme (blank for cypher, 'none' for no theme)",
        default="",
    )
    return VpsAnswers(domain=domain, new_user=new_user, zsh_theme=zsh_theme)


def gather_k3s(prompter: Prompter) -> tuple[K3sAnswers, bool]:
    """Returns the answers and whether the database password was generated."""
    domain = prompter.ask("domain", "Domain name for the cluster (e.g. k3s.example.com)")
    email = prompter.ask("email", "Email for Let's Encrypt")
    db_name = prompter.ask("db_name", "PostgreSQL database name")
    db_user = prompter.ask("db_user", "PostgreSQL user name")
    db_password = prompter.ask(
        "db_password",
        "PostgreSQL password (blank to generate one)",
        default="",
        hide_input=True,
    )

    generated = not db_password
    if generated:
        db_password = generate_password()

    answers = K3sAnswers(
        domain=domain,
        email=email,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
    )
    return answers, generated
