# src/vpsforge/provisioning/context.py

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from vpsforge.config.models import K3sAnswers, VpsAnswers
from vpsforge.execution.runner import CommandRunner
from vpsforge.helm.cli_runner import HelmCliRunner
from vpsforge.kube.kubectl import KubectlRunner
from vpsforge.steps.poller import ReadinessPoller

from .postgres import PostgresAdmin
from .template_renderer import TemplateRenderer


@dataclass
class ProvisionContext:
    """
    Everything a step may touch, passed explicitly to every action and
    precondition. Built once per run; steps never add to it.
    """
    runner: CommandRunner
    poller: ReadinessPoller
    renderer: TemplateRenderer
    vps: Optional[VpsAnswers] = None
    k3s: Optional[K3sAnswers] = None
    server_ip: Optional[str] = None
    kubeconfig_out: Optional[Path] = None
    kubectl: Optional[KubectlRunner] = None
    helm: Optional[HelmCliRunner] = None
    postgres: Optional[PostgresAdmin] = None


def vps_context(runner: CommandRunner, poller: ReadinessPoller, answers: VpsAnswers) -> ProvisionContext:
    return ProvisionContext(runner=runner, poller=poller, renderer=TemplateRenderer(), vps=answers)


def k3s_context(
    runner: CommandRunner,
    poller: ReadinessPoller,
    answers: K3sAnswers,
    *,
    server_ip: str,
    kubeconfig_out: Path,
    namespace: str,
) -> ProvisionContext:
    renderer = TemplateRenderer()
    kubectl = KubectlRunner(runner=runner)
    return ProvisionContext(
        runner=runner,
        poller=poller,
        renderer=renderer,
        k3s=answers,
        server_ip=server_ip,
        kubeconfig_out=kubeconfig_out,
        kubectl=kubectl,
        helm=HelmCliRunner(runner),
        postgres=PostgresAdmin(kubectl, namespace=namespace, renderer=renderer),
    )
