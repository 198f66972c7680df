# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/provisioning/k3s.py

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, List

from vpsforge.config import defaults as d
from vpsforge.config.defaults import PollBudget
from vpsforge.config.models import K3sAnswers, ReleaseSpec, RepoSpec
from vpsforge.errors import MissingPreconditionError, ProvisionWarning
from vpsforge.execution.files import q, read_text
from vpsforge.net.dns import resolve_ipv4
from vpsforge.steps import checks
from vpsforge.steps.models import PollSpec, Step

from . import manifests
from .context import ProvisionContext
from .kubeconfig import externalize_kubeconfig

log = logging.getLogger("vpsforge")


def _poll(budget: PollBudget, predicate: Callable[[], bool]) -> PollSpec:
    return PollSpec(predicate=predicate, interval=budget.interval, max_attempts=budget.max_attempts)


def db_host(namespace: str = d.POSTGRES_NAMESPACE) -> str:
    return f"{d.POSTGRES_SERVICE}.{namespace}.svc.cluster.local"


# ------------------------------------------------------------------------------
# DNS and tooling
# ------------------------------------------------------------------------------

def make_verify_dns(resolver=resolve_ipv4) -> Callable[[ProvisionContext], None]:
    def verify_dns(ctx: ProvisionContext) -> None:
        domain = ctx.k3s.domain
        resolved = resolver(domain)
        if not resolved:
            raise ProvisionWarning(
                f"Domain {domain} does not resolve yet; certificates will not be issued "
                f"until it points at {ctx.server_ip}"
            )
        # compare against the last address returned
        if resolved[-1] != ctx.server_ip:
            raise ProvisionWarning(
                f"Domain {domain} points to {', '.join(resolved)}, but this server's IP is "
                f"{ctx.server_ip}. Please update your DNS records!"
            )
        log.info(f"[dns] {domain} resolves to {ctx.server_ip}")
    return verify_dns


def install_kubectl(ctx: ProvisionContext) -> None:
    machine = ctx.runner.execute("uname -m").check("uname").stdout.strip()
    arch = d.KUBECTL_ARCH.get(machine)
    if arch is None:
        raise MissingPreconditionError(f"Unsupported architecture for kubectl: {machine}")

    version = ctx.runner.execute(f"curl -fsSL {d.KUBECTL_RELEASE_URL}/stable.txt").check("kubectl version lookup")
    version = version.stdout.strip()
    url = f"{d.KUBECTL_RELEASE_URL}/{version}/bin/linux/{arch}/kubectl"
    ctx.runner.execute(
        f"tmp=$(mktemp) && curl -fsSL -o \"$tmp\" {q(url)} "
        f"&& install -o root -g root -m 0755 \"$tmp\" /usr/local/bin/kubectl; rc=$?; rm -f \"$tmp\"; exit $rc",
        sudo=True,
    ).check("install kubectl")


def install_k3s(ctx: ProvisionContext) -> None:
    ctx.runner.execute(
        f"curl -sfL {d.K3S_INSTALLER} | INSTALL_K3S_EXEC={q(d.K3S_INSTALL_EXEC)} sh -s -",
        sudo=True,
    ).check("k3s installer")


def wait_k3s_config(ctx: ProvisionContext) -> None:
    exists = checks.file_exists(d.K3S_KUBECONFIG)
    ctx.poller.require(_poll(d.K3S_CONFIG_POLL, lambda: exists(ctx)), f"{d.K3S_KUBECONFIG}")


def user_kubeconfig(ctx: ProvisionContext) -> None:
    # unprivileged: $HOME and ownership belong to the connecting user
    config = read_text(ctx.runner, d.K3S_KUBECONFIG)
    ctx.runner.execute(
        'mkdir -p "$HOME/.kube" && install -m 600 /dev/stdin "$HOME/.kube/config"',
        stdin=config,
    ).check("copy kubeconfig")


def install_helm(ctx: ProvisionContext) -> None:
    ctx.runner.execute(f"curl -fsSL {d.HELM_INSTALLER} | bash", sudo=True).check("helm installer")


# ------------------------------------------------------------------------------
# Cluster add-ons
# ------------------------------------------------------------------------------

def add_helm_repos(ctx: ProvisionContext) -> None:
    for name, url in d.HELM_REPOS.items():
        ctx.helm.add_repo(RepoSpec(name=name, url=url))
    ctx.helm.update_repos()


def install_ingress_nginx(ctx: ProvisionContext) -> None:
    ctx.helm.upgrade_install(
        ReleaseSpec(name="ingress-nginx", namespace=d.INGRESS_NAMESPACE, chart="ingress-nginx/ingress-nginx")
    )


def install_cert_manager(ctx: ProvisionContext) -> None:
    ctx.helm.upgrade_install(
        ReleaseSpec(
            name="cert-manager",
            namespace=d.CERT_MANAGER_NAMESPACE,
            chart="jetstack/cert-manager",
            values={"crds": {"enabled": True}},
        )
    )


def wait_cluster_addons(ctx: ProvisionContext) -> None:
    for ns in (d.INGRESS_NAMESPACE, d.CERT_MANAGER_NAMESPACE):
        ctx.poller.require(
            _poll(d.ADDONS_POLL, lambda ns=ns: ctx.kubectl.deployments_available(ns)),
            f"deployments in {ns}",
        )


def apply_cluster_issuer(ctx: ProvisionContext) -> None:
    ctx.kubectl.apply_objects([manifests.cluster_issuer(ctx.k3s.email)])


# ------------------------------------------------------------------------------
# PostgreSQL + TimescaleDB
# ------------------------------------------------------------------------------

def apply_postgres_namespace(ctx: ProvisionContext) -> None:
    ctx.kubectl.apply_objects([manifests.namespace(d.POSTGRES_NAMESPACE)])


def ensure_postgres_secret(ctx: ProvisionContext) -> None:
    password = ctx.k3s.db_password
    exists = ctx.kubectl.resource_exists(kind="secret", name=d.POSTGRES_SECRET, namespace=d.POSTGRES_NAMESPACE)
    if exists:
        ctx.kubectl.patch(
            kind="secret",
            name=d.POSTGRES_SECRET,
            namespace=d.POSTGRES_NAMESPACE,
            patch={"data": {d.POSTGRES_SECRET_KEY: manifests.b64(password)}},
        )
    else:
        ctx.kubectl.create_object(
            manifests.opaque_secret(d.POSTGRES_SECRET, d.POSTGRES_NAMESPACE, {d.POSTGRES_SECRET_KEY: password})
        )


def apply_postgres_workload(ctx: ProvisionContext) -> None:
    ctx.kubectl.apply_objects(manifests.postgres_workload(d.POSTGRES_NAMESPACE))


def wait_postgres_pod(ctx: ProvisionContext) -> None:
    ctx.poller.require(
        _poll(d.POSTGRES_POD_POLL, lambda: ctx.kubectl.pods_ready(d.POSTGRES_NAMESPACE, "app=postgres")),
        "postgres pod",
    )


def wait_postgres_accepting(ctx: ProvisionContext) -> None:
    ctx.poller.require(
        _poll(d.POSTGRES_READY_POLL, ctx.postgres.accepting_connections),
        "PostgreSQL to accept connections",
    )


def _sql_ctx(ctx: ProvisionContext) -> dict:
    a = ctx.k3s
    return {"db_name": a.db_name, "db_user": a.db_user, "db_password": a.db_password}


def create_role(ctx: ProvisionContext) -> None:
    ctx.postgres.run_template("postgres/create_role.sql.j2", _sql_ctx(ctx))


def set_role_password(ctx: ProvisionContext) -> None:
    ctx.postgres.run_template("postgres/set_password.sql.j2", _sql_ctx(ctx))


def create_database(ctx: ProvisionContext) -> None:
    ctx.postgres.run_template("postgres/create_database.sql.j2", _sql_ctx(ctx))


def grant_privileges(ctx: ProvisionContext) -> None:
    ctx.postgres.run_template("postgres/privileges.sql.j2", _sql_ctx(ctx), database=ctx.k3s.db_name)


# ------------------------------------------------------------------------------
# Demo application and ingress
# ------------------------------------------------------------------------------

def apply_hello_app(ctx: ProvisionContext) -> None:
    ctx.kubectl.apply_objects(manifests.hello_app(ctx.k3s.domain, d.POSTGRES_NAMESPACE))


def wait_hello_app(ctx: ProvisionContext) -> None:
    ctx.poller.require(
        _poll(d.HELLO_POD_POLL, lambda: ctx.kubectl.pods_ready(d.POSTGRES_NAMESPACE, f"app={d.HELLO_APP}")),
        f"{d.HELLO_APP} pod",
    )


def remove_default_ingress(ctx: ProvisionContext) -> None:
    ctx.kubectl.delete(kind="ingress", name=d.MAIN_INGRESS, namespace="default", ignore_not_found=True)


def apply_main_ingress(ctx: ProvisionContext) -> None:
    ctx.kubectl.apply_objects([manifests.main_ingress(ctx.k3s.domain, d.POSTGRES_NAMESPACE)])


# ------------------------------------------------------------------------------
# Access
# ------------------------------------------------------------------------------

def write_external_kubeconfig(ctx: ProvisionContext) -> None:
    text = read_text(ctx.runner, d.K3S_KUBECONFIG)
    external = externalize_kubeconfig(text, server_ip=ctx.server_ip, name=ctx.k3s.domain)

    out: Path = ctx.kubeconfig_out
    out.parent.mkdir(parents=True, exist_ok=True)
    # created 0600, never widened
    fd = os.open(out, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(external)
    os.chmod(out, 0o600)
    log.info(f"[kubeconfig] external access config written to {out}")


def open_api_port(ctx: ProvisionContext) -> None:
    r = ctx.runner.execute(f"ufw allow {d.KUBE_API_PORT_RULE}", sudo=True)
    if not r.ok:
        raise ProvisionWarning(
            f"Could not open {d.KUBE_API_PORT_RULE} in ufw (rc={r.exit_code}); "
            "open it manually to use the external kubeconfig"
        )


# ------------------------------------------------------------------------------
# Plan
# ------------------------------------------------------------------------------

def build_k3s_steps(answers: K3sAnswers, *, resolver=resolve_ipv4) -> List[Step]:
    return [
        Step(name="verify-dns", action=make_verify_dns(resolver)),
        Step(
            name="install-kubectl",
            action=install_kubectl,
            precondition=checks.command_available("kubectl"),
            idempotent=True,
        ),
        Step(
            name="install-k3s",
            action=install_k3s,
            precondition=checks.command_available("k3s"),
            idempotent=True,
        ),
        Step(name="wait-k3s-config", action=wait_k3s_config),
        Step(name="user-kubeconfig", action=user_kubeconfig),
        Step(
            name="install-helm",
            action=install_helm,
            precondition=checks.command_available("helm"),
            idempotent=True,
        ),
        Step(name="helm-repos", action=add_helm_repos),
        Step(name="ingress-nginx", action=install_ingress_nginx),
        Step(name="cert-manager", action=install_cert_manager),
        Step(name="wait-cluster-addons", action=wait_cluster_addons),
        Step(name="cluster-issuer", action=apply_cluster_issuer),
        Step(
            name="postgres-namespace",
            action=apply_postgres_namespace,
            precondition=checks.k8s_resource_exists("namespace", d.POSTGRES_NAMESPACE),
            idempotent=True,
        ),
        Step(name="postgres-secret", action=ensure_postgres_secret),
        Step(name="postgres-workload", action=apply_postgres_workload),
        Step(name="wait-postgres-pod", action=wait_postgres_pod),
        Step(name="wait-postgres-accepting", action=wait_postgres_accepting),
        Step(
            name="postgres-role",
            action=create_role,
            precondition=checks.pg_role_exists(answers.db_user),
            idempotent=True,
        ),
        Step(name="postgres-role-password", action=set_role_password),
        Step(
            name="postgres-database",
            action=create_database,
            precondition=checks.pg_database_exists(answers.db_name),
            idempotent=True,
        ),
        Step(name="postgres-privileges", action=grant_privileges),
        Step(name="hello-app", action=apply_hello_app),
        Step(name="wait-hello-app", action=wait_hello_app),
        Step(name="remove-default-ingress", action=remove_default_ingress),
        Step(name="main-ingress", action=apply_main_ingress),
        Step(name="external-kubeconfig", action=write_external_kubeconfig),
        Step(name="firewall-api", action=open_api_port),
    ]
