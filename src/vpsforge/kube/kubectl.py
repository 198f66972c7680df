# src/vpsforge/kube/kubectl.py

from __future__ import annotations

import json
import logging
import shlex
from typing import Iterable, Optional

import yaml

from vpsforge.errors import CommandFailedError, ProbeError
from vpsforge.execution.runner import CommandResult, CommandRunner

log = logging.getLogger("vpsforge")


class KubectlError(CommandFailedError):
    pass


class KubectlRunner:
    """
    kubectl executed through a CommandRunner (locally or over SSH).
    Manifests and secret payloads travel on stdin, never on the command line.
    """

    def __init__(self, *, runner: CommandRunner):
        self.runner = runner

    def _run(self, args: str, *, stdin: Optional[str] = None, timeout: Optional[float] = None) -> CommandResult:
        return self.runner.execute(f"kubectl {args}", stdin=stdin, timeout=timeout)

    def _check(self, result: CommandResult, what: str) -> CommandResult:
        if not result.ok:
            raise KubectlError(
                f"kubectl {what} failed (rc={result.exit_code}): {(result.stderr or result.stdout).strip()}",
                result=result,
            )
        return result

    @staticmethod
    def _ns(namespace: Optional[str]) -> str:
        return f" -n {shlex.quote(namespace)}" if namespace else ""

    # ------------------------- mutations -------------------------

    def apply_objects(self, objects: Iterable[dict]) -> None:
        objects = list(objects)
        if not objects:
            return

        manifest = yaml.safe_dump_all(objects, sort_keys=False)
        self._check(self._run("apply -f -", stdin=manifest), "apply")

        for obj in objects:
            kind = obj.get("kind", "<unknown>")
            name = obj.get("metadata", {}).get("name", "<unknown>")
            ns = obj.get("metadata", {}).get("namespace", "-")
            log.info(f"[kubectl] applied {kind}/{name} (ns={ns})")

    def create_object(self, obj: dict) -> None:
        self._check(self._run("create -f -", stdin=json.dumps(obj)), f"create {obj.get('kind')}")

    def patch(self, *, kind: str, name: str, namespace: Optional[str], patch: dict, patch_type: str = "merge") -> None:
        """Merge-patch an object; the patch body is read from stdin."""
        args = (
            f"patch {kind.lower()} {shlex.quote(name)}{self._ns(namespace)} "
            f"--type {patch_type} -p \"$(cat)\""
        )
        self._check(self._run(args, stdin=json.dumps(patch)), f"patch {kind}/{name}")

    def delete(self, *, kind: str, name: str, namespace: Optional[str] = None, ignore_not_found: bool = True) -> None:
        args = f"delete {kind.lower()} {shlex.quote(name)}{self._ns(namespace)}"
        if ignore_not_found:
            args += " --ignore-not-found"
        self._check(self._run(args), f"delete {kind}/{name}")

    def exec(
        self,
        *,
        target: str,
        namespace: str,
        command: list[str],
        stdin: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """kubectl exec into a pod or `deployment/<name>`; returns the raw result."""
        interactive = " -i" if stdin is not None else ""
        args = (
            f"exec{interactive} {shlex.quote(target)}{self._ns(namespace)} -- "
            + " ".join(shlex.quote(c) for c in command)
        )
        return self._run(args, stdin=stdin, timeout=timeout)

    # ------------------------- queries -------------------------

    def resource_exists(self, *, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        r = self._run(f"get {kind.lower()} {shlex.quote(name)}{self._ns(namespace)} -o name")
        if r.ok:
            return True
        if "NotFound" in r.stderr or "not found" in r.stderr:
            return False
        raise ProbeError(f"Cannot check {kind}/{name} (rc={r.exit_code}): {r.stderr.strip()}")

    def get_items(self, kind: str, *, namespace: Optional[str] = None, selector: Optional[str] = None) -> list[dict]:
        args = f"get {kind.lower()}{self._ns(namespace)} -o json"
        if selector:
            args += f" -l {shlex.quote(selector)}"
        r = self._check(self._run(args), f"get {kind}")
        return json.loads(r.stdout or "{}").get("items", [])

    def deployments_available(self, namespace: str) -> bool:
        """
        True when the namespace has Deployments and every one of them reports
        all desired replicas available. API errors count as not ready.
        """
        try:
            items = self.get_items("deployments", namespace=namespace)
        except KubectlError as e:
            log.debug(f"[kubectl] deployments in {namespace} not queryable yet: {e}")
            return False
        if not items:
            return False
        for d in items:
            desired = d.get("spec", {}).get("replicas", 1)
            available = d.get("status", {}).get("availableReplicas", 0) or 0
            if available < desired:
                return False
        return True

    def pods_ready(self, namespace: str, selector: str) -> bool:
        """True when at least one pod matches and all matching pods are Ready."""
        try:
            items = self.get_items("pods", namespace=namespace, selector=selector)
        except KubectlError as e:
            log.debug(f"[kubectl] pods {selector} in {namespace} not queryable yet: {e}")
            return False
        if not items:
            return False
        for pod in items:
            conditions = pod.get("status", {}).get("conditions", []) or []
            if not any(c.get("type") == "Ready" and c.get("status") == "True" for c in conditions):
                return False
        return True
