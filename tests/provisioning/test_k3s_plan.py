import base64
import json
import os
import stat
import textwrap
from pathlib import Path

import pytest
import yaml

from fakes import Capture, FakeRunner, NoSleep

from vpsforge.config.models import K3sAnswers
from vpsforge.errors import MissingPreconditionError, ProvisionWarning, ReadinessTimeoutError
from vpsforge.observers.dispatcher import EventBus
from vpsforge.provisioning import k3s
from vpsforge.provisioning.context import k3s_context
from vpsforge.steps.models import Outcome, RunState
from vpsforge.steps.poller import ReadinessPoller
from vpsforge.steps.sequencer import StepSequencer

ANSWERS = K3sAnswers(
    domain="k3s.example.com",
    email="ops@example.com",
    db_name="appdb",
    db_user="app",
    db_password="lv_Secret123456",
)
SERVER_IP = "203.0.113.7"


def _ctx(runner, tmp_path=Path("."), bus=None):
    return k3s_context(
        runner,
        ReadinessPoller(bus, sleep=NoSleep()),
        ANSWERS,
        server_ip=SERVER_IP,
        kubeconfig_out=tmp_path / "k3s-external.yaml",
        namespace="postgres",
    )


def _resolver(*ips):
    return lambda domain: list(ips)


def test_plan_order():
    names = [s.name for s in k3s.build_k3s_steps(ANSWERS)]
    assert names == [
        "verify-dns",
        "install-kubectl",
        "install-k3s",
        "wait-k3s-config",
        "user-kubeconfig",
        "install-helm",
        "helm-repos",
        "ingress-nginx",
        "cert-manager",
        "wait-cluster-addons",
        "cluster-issuer",
        "postgres-namespace",
        "postgres-secret",
        "postgres-workload",
        "wait-postgres-pod",
        "wait-postgres-accepting",
        "postgres-role",
        "postgres-role-password",
        "postgres-database",
        "postgres-privileges",
        "hello-app",
        "wait-hello-app",
        "remove-default-ingress",
        "main-ingress",
        "external-kubeconfig",
        "firewall-api",
    ]


def test_dns_mismatch_is_warned_and_run_continues():
    steps = k3s.build_k3s_steps(ANSWERS, resolver=_resolver("198.51.100.1"))[:2]
    r = FakeRunner()  # command -v kubectl succeeds: install-kubectl skipped
    report = StepSequencer().run(steps, _ctx(r))

    assert report.state == RunState.COMPLETED
    assert report.outcomes() == {"verify-dns": Outcome.WARNED, "install-kubectl": Outcome.SKIPPED}
    assert "198.51.100.1" in report.warnings[0].error_detail
    assert SERVER_IP in report.warnings[0].error_detail


def test_dns_match_succeeds():
    verify = k3s.make_verify_dns(_resolver(SERVER_IP))
    verify(_ctx(FakeRunner()))


def test_unresolvable_domain_is_a_warning():
    with pytest.raises(ProvisionWarning, match="does not resolve"):
        k3s.make_verify_dns(_resolver())(_ctx(FakeRunner()))


def test_install_kubectl_maps_architecture():
    r = FakeRunner().on("uname -m", 0, "aarch64\n").on("stable.txt", 0, "v1.31.0\n")
    k3s.install_kubectl(_ctx(r))
    install = r.calls_with("install -o root")[0]
    assert "https://dl.k8s.io/release/v1.31.0/bin/linux/arm64/kubectl" in install.command
    assert install.sudo is True


def test_install_kubectl_rejects_unknown_architecture():
    r = FakeRunner().on("uname -m", 0, "riscv64\n")
    with pytest.raises(MissingPreconditionError, match="riscv64"):
        k3s.install_kubectl(_ctx(r))
    assert not r.ran("install -o root")


def test_install_k3s_disables_traefik():
    r = FakeRunner()
    k3s.install_k3s(_ctx(r))
    assert "INSTALL_K3S_EXEC='--disable traefik'" in r.commands[0]


def test_user_kubeconfig_copies_without_sudo():
    r = FakeRunner().on("cat /etc/rancher/k3s/k3s.yaml", 0, "apiVersion: v1\n")
    k3s.user_kubeconfig(_ctx(r))
    copy = r.calls_with("$HOME/.kube/config")[0]
    assert copy.sudo is False
    assert copy.stdin == "apiVersion: v1\n"


def test_wait_k3s_config_times_out():
    cap = Capture()
    r = FakeRunner().on("test -f /etc/rancher/k3s/k3s.yaml", 1)
    with pytest.raises(ReadinessTimeoutError):
        k3s.wait_k3s_config(_ctx(r, bus=EventBus([cap])))
    assert len(r.calls_with("test -f /etc/rancher/k3s/k3s.yaml")) == 30
    assert cap.kinds()[-1] == "PollTimedOut"


def test_wait_cluster_addons_checks_both_namespaces():
    ready = json.dumps({"items": [{"spec": {"replicas": 1}, "status": {"availableReplicas": 1}}]})
    r = FakeRunner().on("get deployments", 0, ready)
    k3s.wait_cluster_addons(_ctx(r))
    assert r.ran("get deployments -n ingress-nginx")
    assert r.ran("get deployments -n cert-manager")


def test_postgres_secret_created_when_absent():
    r = FakeRunner().on("get secret", 1, "", 'Error from server (NotFound): secrets "postgres-secret" not found')
    k3s.ensure_postgres_secret(_ctx(r))

    create = r.calls_with("create -f -")[0]
    obj = json.loads(create.stdin)
    assert base64.b64decode(obj["data"]["postgres-password"]).decode() == ANSWERS.db_password
    assert ANSWERS.db_password not in create.command


def test_postgres_secret_patched_when_present():
    r = FakeRunner().on("get secret", 0, "secret/postgres-secret\n")
    k3s.ensure_postgres_secret(_ctx(r))

    assert not r.ran("create -f -")
    patch = r.calls_with("patch secret postgres-secret")[0]
    encoded = json.loads(patch.stdin)["data"]["postgres-password"]
    assert base64.b64decode(encoded).decode() == ANSWERS.db_password


def _psql(role_exists, db_exists):
    def answer(command, stdin):
        if stdin and "pg_roles" in stdin:
            return 0, "1\n" if role_exists else "", ""
        if stdin and "pg_database" in stdin:
            return 0, "1\n" if db_exists else "", ""
        return 0, "", ""
    return answer


def _db_steps():
    return [s for s in k3s.build_k3s_steps(ANSWERS) if s.name.startswith("postgres-") and s.name not in (
        "postgres-namespace", "postgres-secret", "postgres-workload")]


def test_existing_role_skipped_but_password_always_set():
    steps = _db_steps()
    r = FakeRunner().on_call("psql", _psql(role_exists=True, db_exists=False))
    report = StepSequencer().run(steps, _ctx(r))

    assert report.outcomes() == {
        "postgres-role": Outcome.SKIPPED,
        "postgres-role-password": Outcome.SUCCEEDED,
        "postgres-database": Outcome.SUCCEEDED,
        "postgres-privileges": Outcome.SUCCEEDED,
    }
    sql = [c.stdin for c in r.calls if c.stdin]
    assert not any("CREATE ROLE" in s for s in sql)
    assert any('ALTER ROLE "app"' in s for s in sql)
    assert any('CREATE DATABASE "appdb" OWNER "app"' in s for s in sql)
    privileges = r.calls_with("-d appdb")[0]
    assert "CREATE EXTENSION IF NOT EXISTS timescaledb CASCADE;" in privileges.stdin


class Catalog:
    """Answers psql catalog probes from what earlier SQL created."""

    def __init__(self):
        self.roles = set()
        self.databases = set()

    def __call__(self, command, stdin):
        sql = stdin or ""
        if "pg_roles" in sql:
            return 0, "1\n" if self.roles else "", ""
        if "pg_database" in sql:
            return 0, "1\n" if self.databases else "", ""
        if "CREATE ROLE" in sql:
            self.roles.add(ANSWERS.db_user)
        if "CREATE DATABASE" in sql:
            self.databases.add(ANSWERS.db_name)
        return 0, "", ""


def test_rerun_skips_role_created_by_first_run():
    catalog = Catalog()
    first = FakeRunner().on_call("psql", catalog)
    report = StepSequencer().run(_db_steps(), _ctx(first))
    assert report.outcomes()["postgres-role"] == Outcome.SUCCEEDED
    assert any("CREATE ROLE" in (c.stdin or "") for c in first.calls)

    second = FakeRunner().on_call("psql", catalog)
    report = StepSequencer().run(_db_steps(), _ctx(second))
    assert report.outcomes() == {
        "postgres-role": Outcome.SKIPPED,
        "postgres-role-password": Outcome.SUCCEEDED,
        "postgres-database": Outcome.SKIPPED,
        "postgres-privileges": Outcome.SUCCEEDED,
    }
    assert not any("CREATE ROLE" in (c.stdin or "") for c in second.calls)


def test_remove_default_ingress_tolerates_absence():
    r = FakeRunner()
    k3s.remove_default_ingress(_ctx(r))
    assert r.commands[0] == "kubectl delete ingress main-ingress -n default --ignore-not-found"


K3S_YAML = textwrap.dedent("""\
    apiVersion: v1
    clusters:
    - cluster:
        server: https://127.0.0.1:6443
      name: default
    contexts:
    - context:
        cluster: default
        user: default
      name: default
    current-context: default
    kind: Config
    users:
    - name: default
      user:
        token: abc
""")


def test_external_kubeconfig_written_locally_with_0600(tmp_path: Path):
    r = FakeRunner().on("cat /etc/rancher/k3s/k3s.yaml", 0, K3S_YAML)
    ctx = _ctx(r, tmp_path)
    k3s.write_external_kubeconfig(ctx)

    out = tmp_path / "k3s-external.yaml"
    cfg = yaml.safe_load(out.read_text())
    assert cfg["clusters"][0]["cluster"]["server"] == f"https://{SERVER_IP}:6443"
    assert cfg["current-context"] == "k3s.example.com"
    if os.name == "posix":
        assert stat.S_IMODE(out.stat().st_mode) == 0o600


def test_firewall_api_failure_is_a_warning():
    r = FakeRunner().on("ufw allow 6443/tcp", 1, "", "ERROR: Couldn't determine iptables version")
    with pytest.raises(ProvisionWarning, match="6443/tcp"):
        k3s.open_api_port(_ctx(r))


def test_db_host():
    assert k3s.db_host() == "postgres-service.postgres.svc.cluster.local"
