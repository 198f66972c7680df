from __future__ import annotations

import shlex
from typing import List, Optional

import yaml

from .errors import HelmError
from ..config.models import RepoSpec, ReleaseSpec
from ..execution.runner import CommandResult, CommandRunner


class HelmCliRunner:
    """
    A pragmatic wrapper around the `helm` CLI.
    - Mirrors human CLI usage: 'repo add/update', 'upgrade --install'.
    - Runs through a CommandRunner so it works locally and over SSH.
    - Testable with a fake runner that records commands.
    """

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    # ------------------------- internal helpers -------------------------

    def _run(self, argv: List[str], stdin: Optional[str] = None) -> CommandResult:
        cp = self.runner.execute(shlex.join(argv), stdin=stdin)
        if not cp.ok:
            raise HelmError(
                f"helm failed (rc={cp.exit_code}) for {argv!r}\n{cp.stderr}",
                result=cp,
            )
        return cp

    # ------------------------- helm operations -------------------------

    def add_repo(self, repo: RepoSpec) -> None:
        # --force-update keeps re-runs from failing on an existing repo entry
        argv = ["helm", "repo", "add", repo.name, repo.url, "--force-update"]
        self._run(argv)

    def update_repos(self) -> None:
        self._run(["helm", "repo", "update"])

    def upgrade_install(self, rel: ReleaseSpec) -> None:
        argv = ["helm", "upgrade", "--install", rel.name, rel.chart, "-n", rel.namespace]
        stdin = None
        # inline values → stdin, so nothing is written to the target's disk
        if rel.values:
            argv += ["-f", "-"]
            stdin = yaml.safe_dump(rel.values, sort_keys=False)
        if rel.create_namespace:
            argv += ["--create-namespace"]

        self._run(argv, stdin=stdin)
