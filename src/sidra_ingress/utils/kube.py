# ABOUTME: Kubernetes access for sidra-ingress-sync
# ABOUTME: Loads cluster credentials and enumerates Ingress objects into plain records

"""
Kubernetes credential loading and Ingress enumeration.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module is the only place that talks to the Kubernetes API. It:

1. LOADS credentials (kubeconfig file or in-cluster service account)
2. LISTS Ingress objects, cluster-wide or one namespace at a time
3. CONVERTS kubernetes.client.V1Ingress objects into small frozen records
   the renderer can consume without knowing about the client library

=============================================================================
ENUMERATION STRATEGIES
=============================================================================

cluster:
    GET /apis/networking.k8s.io/v1/ingresses
    One call. Any failure is fatal.

namespaced:
    GET /api/v1/namespaces                       (skipped if namespaces given)
    GET /apis/networking.k8s.io/v1/namespaces/{ns}/ingresses   (per namespace)
    A failing namespace (API error or dropped connection) is logged,
    remembered in failed_namespaces, and skipped. Failing to list namespaces
    at all is fatal. The namespaces walked are recorded in the result.

Records keep the order the API returned them in. Nothing is re-sorted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

logger = structlog.get_logger(__name__)

# =============================================================================
# ERRORS
# =============================================================================


class KubeConfigError(Exception):
    """Cluster credentials or client configuration could not be loaded."""


class KubeApiError(Exception):
    """
    A top-level listing call against the Kubernetes API failed.

    Carries the HTTP status and reason from the ApiException so the fatal
    log line says what the API server answered.
    """

    def __init__(self, code: int | None, message: str, details: str | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        base = f"Kubernetes API error ({self.code}): {self.message}"
        if self.details:
            base += f" - {self.details}"
        return base


# =============================================================================
# INGRESS RECORDS
# =============================================================================


class IngressKey(NamedTuple):
    """Identity of an Ingress across runs."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class IngressPath:
    """
    One HTTP path of an Ingress rule.

    FIELDS:
    -------
    - path: URL path ("/" when the Ingress leaves it out)
    - service_name: Backend service name ("" for non-service backends)
    - service_port: Backend port number as text, else the named port, else ""
    """

    path: str
    service_name: str
    service_port: str

    @classmethod
    def from_k8s(cls, obj: Any) -> IngressPath:
        """Create from a kubernetes.client.V1HTTPIngressPath."""
        service = obj.backend.service if obj.backend else None
        port = service.port if service else None
        if port is not None and port.number is not None:
            service_port = str(port.number)
        elif port is not None and port.name:
            service_port = port.name
        else:
            service_port = ""
        return cls(
            path=obj.path or "/",
            service_name=service.name if service else "",
            service_port=service_port,
        )


@dataclass(frozen=True)
class IngressRule:
    """
    One host rule of an Ingress.

    `paths` is None when the rule carries no `http` section at all, which is
    distinct from an empty path list.
    """

    host: str
    paths: tuple[IngressPath, ...] | None

    @classmethod
    def from_k8s(cls, obj: Any) -> IngressRule:
        """Create from a kubernetes.client.V1IngressRule."""
        paths = None
        if obj.http is not None:
            paths = tuple(IngressPath.from_k8s(p) for p in obj.http.paths or [])
        return cls(host=obj.host or "", paths=paths)


@dataclass(frozen=True)
class IngressRecord:
    """
    Read-only view of one Ingress, borrowed for a single enumeration pass.

    The Kubernetes client returns deeply nested, mostly-optional models:

        V1Ingress
        ├── metadata: V1ObjectMeta (name, namespace, annotations)
        └── spec: V1IngressSpec
            └── rules: [V1IngressRule]
                ├── host
                └── http: V1HTTPIngressRuleValue
                    └── paths: [V1HTTPIngressPath]
                        ├── path
                        └── backend.service (name, port.number | port.name)

    IngressRecord flattens this into what the renderer needs. Missing
    pieces become empty values so a half-filled Ingress never breaks
    rendering.
    """

    name: str
    namespace: str
    rules: tuple[IngressRule, ...] = ()
    annotations: Mapping[str, str] = field(default_factory=dict)

    @property
    def key(self) -> IngressKey:
        return IngressKey(self.namespace, self.name)

    @classmethod
    def from_k8s(cls, obj: Any, namespace: str = "") -> IngressRecord:
        """
        Create IngressRecord from a kubernetes.client.V1Ingress.

        Args:
            obj: The V1Ingress returned by the API
            namespace: Fallback namespace when metadata does not carry one
                       (namespaced listings)
        """
        metadata = obj.metadata
        spec = obj.spec
        rules = spec.rules if spec and spec.rules else []
        return cls(
            name=metadata.name if metadata and metadata.name else "",
            namespace=(metadata.namespace if metadata else None) or namespace,
            rules=tuple(IngressRule.from_k8s(r) for r in rules),
            annotations=dict(metadata.annotations or {}) if metadata else {},
        )


@dataclass
class EnumerationResult:
    """
    Ingresses found in one pass, plus which namespaces the pass covered.

    `walked_namespaces` is None for a cluster-wide listing, otherwise the
    namespaces the per-namespace walk attempted (failed ones included).
    """

    ingresses: list[IngressRecord] = field(default_factory=list)
    failed_namespaces: list[str] = field(default_factory=list)
    walked_namespaces: list[str] | None = None

    def covers(self, namespace: str) -> bool:
        """True if `namespace` was listed successfully in this pass."""
        if namespace in self.failed_namespaces:
            return False
        return self.walked_namespaces is None or namespace in self.walked_namespaces


# =============================================================================
# CLIENT CONSTRUCTION
# =============================================================================


def load_kube_clients(
    kubeconfig: Path | None = None,
    context: str | None = None,
    in_cluster: bool = False,
) -> tuple[client.NetworkingV1Api, client.CoreV1Api]:
    """
    Load cluster credentials and build the API clients.

    Args:
        kubeconfig: Kubeconfig file. None lets the client pick its default
                    (~/.kube/config or $KUBECONFIG).
        context: Kubeconfig context to use. None uses current-context.
        in_cluster: Use the pod's service account instead of a kubeconfig.

    Returns:
        (NetworkingV1Api, CoreV1Api) sharing one ApiClient.

    Raises:
        KubeConfigError: If credentials cannot be loaded.
    """
    try:
        if in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config(
                config_file=str(kubeconfig) if kubeconfig else None,
                context=context,
            )
    except config.ConfigException as e:
        raise KubeConfigError(f"Error loading kubeconfig: {e}") from e

    api_client = client.ApiClient()
    logger.debug(
        "Kubernetes clients created",
        in_cluster=in_cluster,
        host=api_client.configuration.host,
    )
    return client.NetworkingV1Api(api_client), client.CoreV1Api(api_client)


# =============================================================================
# ENUMERATOR
# =============================================================================


class IngressEnumerator:
    """
    Lists Ingress objects with one of the two enumeration strategies.

    USAGE:
    ------
        networking, core = load_kube_clients()
        enumerator = IngressEnumerator(networking, core, strategy="namespaced")
        result = enumerator.list_ingresses()
        for record in result.ingresses:
            ...
    """

    def __init__(
        self,
        networking: client.NetworkingV1Api,
        core: client.CoreV1Api,
        strategy: str = "cluster",
        namespaces: Sequence[str] = (),
    ) -> None:
        if strategy not in ("cluster", "namespaced"):
            raise ValueError(f"Unknown enumeration strategy '{strategy}'")
        self._networking = networking
        self._core = core
        self._strategy = strategy
        self._namespaces = list(namespaces)

    def list_ingresses(self) -> EnumerationResult:
        """
        Return every Ingress visible with the configured strategy.

        Raises:
            KubeApiError: If the cluster-wide listing or the namespace listing
                          fails. Per-namespace failures are not raised.
        """
        if self._strategy == "cluster":
            return self._list_cluster_wide()
        return self._list_per_namespace()

    def _list_cluster_wide(self) -> EnumerationResult:
        try:
            response = self._networking.list_ingress_for_all_namespaces()
        except ApiException as e:
            raise KubeApiError(e.status, "Error listing ingresses", e.reason) from e

        ingresses = [IngressRecord.from_k8s(item) for item in response.items or []]
        logger.info("Listed ingresses", strategy="cluster", count=len(ingresses))
        return EnumerationResult(ingresses=ingresses)

    def _list_namespaces(self) -> list[str]:
        if self._namespaces:
            return self._namespaces
        try:
            response = self._core.list_namespace()
        except ApiException as e:
            raise KubeApiError(e.status, "Error listing namespaces", e.reason) from e
        return [ns.metadata.name for ns in response.items or []]

    def _list_per_namespace(self) -> EnumerationResult:
        namespaces = self._list_namespaces()
        result = EnumerationResult(walked_namespaces=list(namespaces))
        for namespace in namespaces:
            try:
                response = self._networking.list_namespaced_ingress(namespace)
            except (ApiException, HTTPError) as e:
                logger.error(
                    "Error listing ingresses in namespace",
                    namespace=namespace,
                    error=str(e),
                )
                result.failed_namespaces.append(namespace)
                continue

            items = response.items or []
            logger.debug("Listed namespace", namespace=namespace, count=len(items))
            result.ingresses.extend(
                IngressRecord.from_k8s(item, namespace=namespace) for item in items
            )

        logger.info(
            "Listed ingresses",
            strategy="namespaced",
            count=len(result.ingresses),
            failed_namespaces=len(result.failed_namespaces),
        )
        return result
