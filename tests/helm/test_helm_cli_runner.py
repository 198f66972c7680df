import shlex

import pytest
import yaml

from fakes import FakeRunner

from vpsforge.config.models import ReleaseSpec, RepoSpec
from vpsforge.helm.cli_runner import HelmCliRunner
from vpsforge.helm.errors import HelmError


def _argv(runner, i=0):
    return shlex.split(runner.commands[i])


def test_add_repo_calls_helm_repo_add():
    r = FakeRunner()
    h = HelmCliRunner(r)
    h.add_repo(RepoSpec(name="jetstack", url="https://charts.jetstack.io"))

    argv = _argv(r)
    assert argv[:5] == ["helm", "repo", "add", "jetstack", "https://charts.jetstack.io"]
    assert "--force-update" in argv


def test_upgrade_install_builds_expected_argv():
    r = FakeRunner()
    rel = ReleaseSpec(
        name="ingress-nginx",
        namespace="ingress-nginx",
        chart="ingress-nginx/ingress-nginx",
    )
    HelmCliRunner(r).upgrade_install(rel)

    argv = _argv(r)
    assert argv[:5] == ["helm", "upgrade", "--install", "ingress-nginx", "ingress-nginx/ingress-nginx"]
    assert argv[argv.index("-n") + 1] == "ingress-nginx"
    assert "--create-namespace" in argv
    assert "-f" not in argv
    assert r.calls[0].stdin is None


def test_inline_values_travel_on_stdin():
    r = FakeRunner()
    rel = ReleaseSpec(
        name="cert-manager",
        namespace="cert-manager",
        chart="jetstack/cert-manager",
        values={"crds": {"enabled": True}},
    )
    HelmCliRunner(r).upgrade_install(rel)

    argv = _argv(r)
    assert argv[argv.index("-f") + 1] == "-"
    assert yaml.safe_load(r.calls[0].stdin) == {"crds": {"enabled": True}}


def test_failure_raises_helm_error_with_result():
    r = FakeRunner().on("helm", 1, "", "Error: INSTALLATION FAILED")
    with pytest.raises(HelmError) as exc:
        HelmCliRunner(r).update_repos()
    assert exc.value.result.exit_code == 1
    assert "INSTALLATION FAILED" in str(exc.value)
