# src/vpsforge/provisioning/kubeconfig.py

from __future__ import annotations

import yaml

LOOPBACK = "127.0.0.1"
K3S_DEFAULT_NAME = "default"


def externalize_kubeconfig(text: str, *, server_ip: str, name: str) -> str:
    """
    Turn the k3s admin kubeconfig into one usable from outside the server:
    the API server points at `server_ip` and the cluster, user and context
    called "default" are renamed to `name`.
    """
    cfg = yaml.safe_load(text) or {}

    def _rename(value: str) -> str:
        return name if value == K3S_DEFAULT_NAME else value

    for entry in cfg.get("clusters", []) or []:
        entry["name"] = _rename(entry.get("name", ""))
        cluster = entry.get("cluster", {}) or {}
        if "server" in cluster:
            cluster["server"] = cluster["server"].replace(LOOPBACK, server_ip)

    for entry in cfg.get("users", []) or []:
        entry["name"] = _rename(entry.get("name", ""))

    for entry in cfg.get("contexts", []) or []:
        entry["name"] = _rename(entry.get("name", ""))
        ctx = entry.get("context", {}) or {}
        for key in ("cluster", "user"):
            if key in ctx:
                ctx[key] = _rename(ctx[key])

    if "current-context" in cfg:
        cfg["current-context"] = _rename(cfg["current-context"])

    return yaml.safe_dump(cfg, sort_keys=False)
