import base64

from vpsforge.config import defaults as d
from vpsforge.provisioning import manifests


def test_cluster_issuer_uses_http01_via_nginx():
    ci = manifests.cluster_issuer("ops@example.com")
    assert ci["kind"] == "ClusterIssuer"
    assert ci["metadata"]["name"] == "letsencrypt-prod"
    acme = ci["spec"]["acme"]
    assert acme["email"] == "ops@example.com"
    assert acme["server"] == d.ACME_SERVER
    assert acme["solvers"] == [{"http01": {"ingress": {"class": "nginx"}}}]


def test_opaque_secret_base64_encodes_values():
    s = manifests.opaque_secret("postgres-secret", "postgres", {"postgres-password": "lv_s3cr3t'"})
    assert s["type"] == "Opaque"
    encoded = s["data"]["postgres-password"]
    assert base64.b64decode(encoded).decode() == "lv_s3cr3t'"


def test_postgres_workload_wires_secret_and_volume():
    pvc, deploy, svc = manifests.postgres_workload("postgres")
    assert pvc["spec"]["resources"]["requests"]["storage"] == "5Gi"

    container = deploy["spec"]["template"]["spec"]["containers"][0]
    assert container["image"] == "timescale/timescaledb:latest-pg15"
    ref = container["env"][0]["valueFrom"]["secretKeyRef"]
    assert ref == {"name": "postgres-secret", "key": "postgres-password"}
    assert deploy["spec"]["template"]["spec"]["volumes"][0]["persistentVolumeClaim"]["claimName"] == "postgres-pvc"

    assert svc["metadata"]["name"] == "postgres-service"
    assert svc["spec"]["selector"] == {"app": "postgres"}


def test_hello_app_labels_match_service_selector():
    deploy, svc = manifests.hello_app("k3s.example.com")
    labels = deploy["spec"]["template"]["metadata"]["labels"]
    assert svc["spec"]["selector"] == labels
    assert svc["spec"]["ports"][0]["targetPort"] == 8080


def test_main_ingress_has_tls_for_domain():
    ing = manifests.main_ingress("k3s.example.com")
    assert ing["metadata"]["annotations"]["cert-manager.io/cluster-issuer"] == "letsencrypt-prod"
    assert ing["spec"]["tls"] == [{"hosts": ["k3s.example.com"], "secretName": "secret-tls"}]
    backend = ing["spec"]["rules"][0]["http"]["paths"][0]["backend"]["service"]
    assert backend == {"name": "hello-k8s-service", "port": {"number": 80}}
