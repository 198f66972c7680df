# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/provisioning/postgres.py

from __future__ import annotations

import logging
from typing import Optional

from vpsforge.errors import CommandFailedError, ProbeError
from vpsforge.execution.runner import CommandResult
from vpsforge.kube.kubectl import KubectlRunner

from .template_renderer import TemplateRenderer, sql_literal

log = logging.getLogger("vpsforge")


class PostgresAdmin:
    """
    Runs psql as the superuser inside the postgres Deployment via kubectl exec.
    SQL is always fed on stdin.
    """

    def __init__(
        self,
        kubectl: KubectlRunner,
        *,
        namespace: str,
        deployment: str = "postgres",
        superuser: str = "postgres",
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.kubectl = kubectl
        self.namespace = namespace
        self.target = f"deployment/{deployment}"
        self.superuser = superuser
        self.renderer = renderer or TemplateRenderer()

    def psql(self, sql: str, *, database: Optional[str] = None) -> CommandResult:
        cmd = ["psql", "-U", self.superuser, "-v", "ON_ERROR_STOP=1", "-tA", "-f", "-"]
        if database:
            cmd += ["-d", database]
        return self.kubectl.exec(target=self.target, namespace=self.namespace, command=cmd, stdin=sql)

    def accepting_connections(self) -> bool:
        r = self.kubectl.exec(
            target=self.target,
            namespace=self.namespace,
            command=["psql", "-U", self.superuser, "-tA", "-c", "SELECT 1"],
        )
        return r.ok and r.stdout.strip() == "1"

    def _exists(self, sql: str, what: str) -> bool:
        r = self.psql(sql)
        if not r.ok:
            raise ProbeError(f"Cannot check {what} (rc={r.exit_code}): {(r.stderr or r.stdout).strip()}")
        return r.stdout.strip() == "1"

    def role_exists(self, role: str) -> bool:
        return self._exists(
            f"SELECT 1 FROM pg_catalog.pg_roles WHERE rolname = {sql_literal(role)};",
            f"role {role}",
        )

    def database_exists(self, database: str) -> bool:
        return self._exists(
            f"SELECT 1 FROM pg_catalog.pg_database WHERE datname = {sql_literal(database)};",
            f"database {database}",
        )

    def run_template(self, template_name: str, context: dict, *, database: Optional[str] = None) -> None:
        sql = self.renderer.render(template_name, context)
        r = self.psql(sql, database=database)
        if not r.ok:
            # the rendered SQL may carry a password; report only psql's answer
            raise CommandFailedError(
                f"psql {template_name} failed (rc={r.exit_code}): {r.stderr.strip()}",
                result=None,
            )
        log.debug(f"[postgres] applied {template_name}")
