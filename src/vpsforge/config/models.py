# src/vpsforge/config/models.py

import re
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .defaults import DEFAULT_ZSH_THEME

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
_USERNAME = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
_SQL_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]{0,62}$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_THEME = re.compile(r"^[A-Za-z0-9_./-]*$")


def _check_domain(v: str) -> str:
    v = v.strip().rstrip(".").lower()
    if not v or len(v) > 253:
        raise ValueError("domain must be 1-253 characters")
    if not all(_HOSTNAME_LABEL.match(label) for label in v.split(".")):
        raise ValueError(f"'{v}' is not a valid hostname")
    return v


class VpsAnswers(BaseModel):
    """Answers gathered for the secure VPS plan."""

    domain: str
    new_user: str
    zsh_theme: str = DEFAULT_ZSH_THEME   # "" means no theme

    @field_validator("domain")
    @classmethod
    def _domain(cls, v: str) -> str:
        return _check_domain(v)

    @field_validator("new_user")
    @classmethod
    def _user(cls, v: str) -> str:
        v = v.strip()
        if not _USERNAME.match(v):
            raise ValueError(f"'{v}' is not a valid Linux username")
        if v == "root":
            raise ValueError("the new sudo user cannot be root")
        return v

    @field_validator("zsh_theme", mode="before")
    @classmethod
    def _theme(cls, v: Optional[str]) -> str:
        v = (v or "").strip()
        if v == "":
            return DEFAULT_ZSH_THEME
        if v == "none":
            return ""
        if not _THEME.match(v):
            raise ValueError(f"'{v}' is not a valid theme name")
        return v

    @property
    def short_hostname(self) -> str:
        return self.domain.split(".", 1)[0]


class K3sAnswers(BaseModel):
    """Answers gathered for the k3s + PostgreSQL plan."""

    domain: str
    email: str
    db_name: str
    db_user: str
    db_password: str = Field(min_length=1)

    @field_validator("domain")
    @classmethod
    def _domain(cls, v: str) -> str:
        return _check_domain(v)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL.match(v):
            raise ValueError(f"'{v}' is not a valid email address")
        return v

    @field_validator("db_name", "db_user")
    @classmethod
    def _ident(cls, v: str) -> str:
        v = v.strip()
        if not _SQL_IDENT.match(v):
            raise ValueError(
                f"'{v}' must start with a letter or underscore and contain only "
                "letters, digits, underscores and hyphens (max 63)"
            )
        return v

    @field_validator("db_password")
    @classmethod
    def _password(cls, v: str) -> str:
        if "\x00" in v or "\n" in v:
            raise ValueError("password cannot contain NUL or newline characters")
        return v


class RepoSpec(BaseModel):
    name: str
    url: str


class ReleaseSpec(BaseModel):
    name: str                        # helm release name
    namespace: str                   # target ns
    chart: str                       # repo/chart
    values: Dict = Field(default_factory=dict)
    create_namespace: bool = True
