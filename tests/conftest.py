# ABOUTME: Pytest fixtures and configuration for sidra-ingress-sync tests
# ABOUTME: Provides shared settings, ingress records and Kubernetes model fixtures

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from sidra_ingress.config import ProxySettings, SyncSettings
from sidra_ingress.utils.client import ConfigApplierClient
from sidra_ingress.utils.kube import IngressPath, IngressRecord, IngressRule
from sidra_ingress.utils.logging import AuditLogger


@pytest.fixture(autouse=True)
def clean_sidra_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep SIDRA_* variables from the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("SIDRA_"):
            monkeypatch.delenv(name)


@pytest.fixture
def proxy_settings() -> ProxySettings:
    """Create proxy settings with the production defaults."""
    return ProxySettings()


@pytest.fixture
def sync_settings(tmp_path: Path) -> SyncSettings:
    """Create sync settings pointing at a mock applier with a temp snapshot."""
    return SyncSettings(
        applier_url="http://applier.test:3033",
        snapshot_path=tmp_path / "snapshot.json",
    )


@pytest.fixture
def shop_record() -> IngressRecord:
    """Create the `store/shop` ingress used across tests."""
    return IngressRecord(
        name="shop",
        namespace="store",
        rules=(
            IngressRule(
                host="shop.example.com",
                paths=(IngressPath(path="/api", service_name="shop-svc", service_port="80"),),
            ),
        ),
        annotations={"sidra.id/plugins": "auth,ratelimit"},
    )


def _make_record(name: str, namespace: str = "default", host: str = "") -> IngressRecord:
    """Create a single-path ingress record."""
    return IngressRecord(
        name=name,
        namespace=namespace,
        rules=(
            IngressRule(
                host=host or f"{name}.example.com",
                paths=(IngressPath(path="/", service_name=f"{name}-svc", service_port="80"),),
            ),
        ),
    )


def _make_v1_ingress(
    name: str,
    namespace: str | None = "store",
    rules: list[client.V1IngressRule] | None = None,
    annotations: dict[str, str] | None = None,
) -> client.V1Ingress:
    """Create a kubernetes.client V1Ingress model."""
    return client.V1Ingress(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, annotations=annotations),
        spec=client.V1IngressSpec(rules=rules),
    )


def _make_v1_path(path: str | None, service: str, port: int | str) -> client.V1HTTPIngressPath:
    """Create a kubernetes.client V1HTTPIngressPath with a service backend."""
    if isinstance(port, int):
        backend_port = client.V1ServiceBackendPort(number=port)
    else:
        backend_port = client.V1ServiceBackendPort(name=port)
    return client.V1HTTPIngressPath(
        path=path,
        path_type="Prefix",
        backend=client.V1IngressBackend(
            service=client.V1IngressServiceBackend(name=service, port=backend_port),
        ),
    )


@pytest.fixture
def shop_v1_ingress() -> client.V1Ingress:
    """Create the `store/shop` ingress as the Kubernetes client returns it."""
    return _make_v1_ingress(
        "shop",
        rules=[
            client.V1IngressRule(
                host="shop.example.com",
                http=client.V1HTTPIngressRuleValue(
                    paths=[_make_v1_path("/api", "shop-svc", 80)],
                ),
            )
        ],
        annotations={"sidra.id/plugins": "auth,ratelimit"},
    )


@pytest.fixture
def mock_applier() -> MagicMock:
    """Create a mock config applier client that accepts everything."""
    applier = MagicMock(spec=ConfigApplierClient)
    applier.send.return_value = 200
    return applier


@pytest.fixture
def mock_audit() -> MagicMock:
    """Create a mock audit logger."""
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def make_record():
    """Factory for single-path ingress records."""
    return _make_record


@pytest.fixture
def make_v1_ingress():
    """Factory for kubernetes.client V1Ingress models."""
    return _make_v1_ingress


@pytest.fixture
def make_v1_path():
    """Factory for kubernetes.client V1HTTPIngressPath models."""
    return _make_v1_path
