from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError as TransportError

from ..models import ResourceKind, ResourceSnapshot

_LOG = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0


class ConnectivityError(RuntimeError):
    """Raised when the resource source cannot be reached or listed."""


class ClusterSource(Protocol):
    """Anything able to list cluster objects of a given kind."""

    def list(self, kind: str) -> List[ResourceSnapshot]:  # pragma: no cover - protocol
        ...


class KubernetesClusterSource:
    """List cluster objects through the Kubernetes API."""

    def __init__(
        self,
        *,
        kubeconfig: str | None = None,
        context: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        api_client: Optional[client.ApiClient] = None,
    ) -> None:
        self.kubeconfig = kubeconfig
        self.context = context
        self.request_timeout = request_timeout
        self._api_client = api_client

    def list(self, kind: str) -> List[ResourceSnapshot]:
        """Return every object of ``kind`` across all namespaces."""

        api_client = self._connect()
        list_call = self._list_call(api_client, kind)

        try:
            response = list_call(_request_timeout=self.request_timeout)
        except ApiException as exc:
            raise ConnectivityError(f"Failed to list {kind} objects: {exc.status} {exc.reason}") from exc
        except (TransportError, OSError) as exc:
            raise ConnectivityError(f"Failed to list {kind} objects: {exc}") from exc

        snapshots: List[ResourceSnapshot] = []
        for item in response.items or []:
            manifest = api_client.sanitize_for_serialization(item)
            snapshots.append(ResourceSnapshot.from_manifest(manifest, kind=kind))
        return snapshots

    # ------------------------------------------------------------------
    def _connect(self) -> client.ApiClient:
        if self._api_client is not None:
            return self._api_client

        try:
            config.load_kube_config(config_file=self.kubeconfig, context=self.context)
        except (ConfigException, OSError) as kube_exc:
            _LOG.debug("kubeconfig unavailable (%s); trying in-cluster configuration", kube_exc)
            try:
                config.load_incluster_config()
            except ConfigException as exc:
                raise ConnectivityError(f"Failed to load Kubernetes configuration: {kube_exc}") from exc

        self._api_client = client.ApiClient()
        return self._api_client

    def _list_call(self, api_client: client.ApiClient, kind: str) -> Callable[..., Any]:
        core = client.CoreV1Api(api_client)
        rbac = client.RbacAuthorizationV1Api(api_client)
        calls: Dict[str, Callable[..., Any]] = {
            ResourceKind.POD.value: core.list_pod_for_all_namespaces,
            ResourceKind.SERVICE.value: core.list_service_for_all_namespaces,
            ResourceKind.ROLE.value: rbac.list_role_for_all_namespaces,
            ResourceKind.NAMESPACE.value: core.list_namespace,
        }
        if kind not in calls:
            raise ConnectivityError(f"Unsupported resource kind: {kind}")
        return calls[kind]


class ManifestFileSource:
    """Serve snapshots from exported YAML/JSON manifests instead of a live cluster."""

    def __init__(self, paths: Sequence[str | Path]) -> None:
        self.paths = [Path(path).resolve() for path in paths]
        self._snapshots: List[ResourceSnapshot] | None = None

    def list(self, kind: str) -> List[ResourceSnapshot]:
        if self._snapshots is None:
            self._snapshots = self._load()
        return [snapshot for snapshot in self._snapshots if snapshot.kind == kind]

    # Artifact ingestion helpers -------------------------------------------------
    def _load(self) -> List[ResourceSnapshot]:
        snapshots: List[ResourceSnapshot] = []
        for path in self.paths:
            for document in self._read_documents(path):
                for manifest in _expand_lists(document):
                    snapshot = ResourceSnapshot.from_manifest(manifest)
                    if not snapshot.kind or not snapshot.name:
                        _LOG.warning("Skipping object without kind or name in %s", path)
                        continue
                    snapshots.append(snapshot)
        return snapshots

    def _read_documents(self, path: Path) -> List[Any]:
        if not path.exists():
            raise ConnectivityError(f"Manifest file not found: {path}")

        content = path.read_text(encoding="utf-8")
        if path.suffix == ".json":
            try:
                return [json.loads(content)]
            except json.JSONDecodeError as exc:
                raise ConnectivityError(f"Invalid JSON in manifest file: {path}") from exc

        try:
            return [document for document in yaml.safe_load_all(content) if document is not None]
        except yaml.YAMLError as exc:
            raise ConnectivityError(f"Invalid YAML in manifest file: {path}") from exc


def _expand_lists(document: Any) -> Iterable[Mapping[str, Any]]:
    if not isinstance(document, Mapping):
        return []
    if str(document.get("kind", "")).endswith("List") and isinstance(document.get("items"), list):
        return [item for item in document["items"] if isinstance(item, Mapping)]
    return [document]


__all__ = [
    "ClusterSource",
    "ConnectivityError",
    "KubernetesClusterSource",
    "ManifestFileSource",
]
