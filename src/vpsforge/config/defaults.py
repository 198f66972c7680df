# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/config/defaults.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PollBudget:
    interval: float
    max_attempts: int


# ------------------------------------------------------------------------------
# Secure VPS plan
# ------------------------------------------------------------------------------

BASE_PACKAGES = ("zsh", "curl", "git", "ufw", "fail2ban", "htop", "wget", "chrony")
DEFAULT_ZSH_THEME = "cypher"
ROOT_AUTHORIZED_KEYS = "/root/.ssh/authorized_keys"
SSHD_CONFIG = "/etc/ssh/sshd_config"
HOSTS_FILE = "/etc/hosts"
OH_MY_ZSH_INSTALLER = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
SSH_PORT_RULE = "22/tcp"


# ------------------------------------------------------------------------------
# k3s plan
# ------------------------------------------------------------------------------

EXTERNAL_IP_URL = "https://ifconfig.me/ip"
K3S_INSTALLER = "https://get.k3s.io"
K3S_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"
K3S_INSTALL_EXEC = "--disable traefik"
KUBECTL_RELEASE_URL = "https://dl.k8s.io/release"
HELM_INSTALLER = "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"
KUBE_API_PORT_RULE = "6443/tcp"

KUBECTL_ARCH = {
    "x86_64": "amd64",
    "aarch64": "arm64",
}

HELM_REPOS = {
    "ingress-nginx": "https://kubernetes.github.io/ingress-nginx",
    "jetstack": "https://charts.jetstack.io",
}

INGRESS_NAMESPACE = "ingress-nginx"
CERT_MANAGER_NAMESPACE = "cert-manager"
CLUSTER_ISSUER = "letsencrypt-prod"
ACME_SERVER = "https://acme-v02.api.letsencrypt.org/directory"

POSTGRES_NAMESPACE = "postgres"
POSTGRES_SECRET = "postgres-secret"
POSTGRES_SECRET_KEY = "postgres-password"
POSTGRES_IMAGE = "timescale/timescaledb:latest-pg15"
POSTGRES_STORAGE = "5Gi"
POSTGRES_SERVICE = "postgres-service"

HELLO_APP = "hello-k8s"
HELLO_IMAGE = "paulbouwer/hello-kubernetes:1.10"
MAIN_INGRESS = "main-ingress"
TLS_SECRET = "secret-tls"

DEFAULT_KUBECONFIG_OUT = "k3s-external.yaml"


# ------------------------------------------------------------------------------
# Readiness polls
# ------------------------------------------------------------------------------

K3S_CONFIG_POLL = PollBudget(interval=2, max_attempts=30)
ADDONS_POLL = PollBudget(interval=5, max_attempts=60)
POSTGRES_POD_POLL = PollBudget(interval=2, max_attempts=60)
POSTGRES_READY_POLL = PollBudget(interval=2, max_attempts=30)
HELLO_POD_POLL = PollBudget(interval=2, max_attempts=30)
