# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/provisioning/manifests.py

from __future__ import annotations

import base64
from typing import List

from vpsforge.config import defaults as d


def cluster_issuer(email: str, *, name: str = d.CLUSTER_ISSUER, ingress_class: str = "nginx") -> dict:
    return {
        "apiVersion": "cert-manager.io/v1",
        "kind": "ClusterIssuer",
        "metadata": {"name": name},
        "spec": {
            "acme": {
                "server": d.ACME_SERVER,
                "email": email,
                "privateKeySecretRef": {"name": name},
                "solvers": [{"http01": {"ingress": {"class": ingress_class}}}],
            }
        },
    }


def namespace(name: str) -> dict:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}


def opaque_secret(name: str, ns: str, data: dict[str, str]) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": ns},
        "type": "Opaque",
        "data": {k: b64(v) for k, v in data.items()},
    }


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def _deployment(name: str, ns: str, container: dict, volumes: List[dict] | None = None) -> dict:
    pod_spec: dict = {"containers": [container]}
    if volumes:
        pod_spec["volumes"] = volumes
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": ns},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": pod_spec,
            },
        },
    }


def _service(name: str, ns: str, app: str, port: int, target_port: int) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": ns},
        "spec": {
            "selector": {"app": app},
            "ports": [{"protocol": "TCP", "port": port, "targetPort": target_port}],
        },
    }


def postgres_workload(ns: str = d.POSTGRES_NAMESPACE) -> List[dict]:
    pvc = {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {"name": "postgres-pvc", "namespace": ns},
        "spec": {
            "accessModes": ["ReadWriteOnce"],
            "resources": {"requests": {"storage": d.POSTGRES_STORAGE}},
        },
    }
    container = {
        "name": "postgres",
        "image": d.POSTGRES_IMAGE,
        "env": [
            {
                "name": "POSTGRES_PASSWORD",
                "valueFrom": {
                    "secretKeyRef": {"name": d.POSTGRES_SECRET, "key": d.POSTGRES_SECRET_KEY}
                },
            }
        ],
        "ports": [{"containerPort": 5432}],
        "volumeMounts": [{"name": "postgres-storage", "mountPath": "/var/lib/postgresql/data"}],
    }
    volumes = [{"name": "postgres-storage", "persistentVolumeClaim": {"claimName": "postgres-pvc"}}]
    return [
        pvc,
        _deployment("postgres", ns, container, volumes),
        _service(d.POSTGRES_SERVICE, ns, "postgres", 5432, 5432),
    ]


def hello_app(domain: str, ns: str = d.POSTGRES_NAMESPACE) -> List[dict]:
    container = {
        "name": d.HELLO_APP,
        "image": d.HELLO_IMAGE,
        "ports": [{"containerPort": 8080}],
        "env": [{"name": "MESSAGE", "value": f"Hello from k3s on {domain}"}],
    }
    return [
        _deployment(d.HELLO_APP, ns, container),
        _service(f"{d.HELLO_APP}-service", ns, d.HELLO_APP, 80, 8080),
    ]


def main_ingress(domain: str, ns: str = d.POSTGRES_NAMESPACE) -> dict:
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {
            "name": d.MAIN_INGRESS,
            "namespace": ns,
            "annotations": {"cert-manager.io/cluster-issuer": d.CLUSTER_ISSUER},
        },
        "spec": {
            "ingressClassName": "nginx",
            "tls": [{"hosts": [domain], "secretName": d.TLS_SECRET}],
            "rules": [
                {
                    "host": domain,
                    "http": {
                        "paths": [
                            {
                                "path": "/",
                                "pathType": "Prefix",
                                "backend": {
                                    "service": {
                                        "name": f"{d.HELLO_APP}-service",
                                        "port": {"number": 80},
                                    }
                                },
                            }
                        ]
                    },
                }
            ],
        },
    }
