"""Resource models used by the audit service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping


class ResourceKind(str, Enum):
    """Kubernetes object kinds visited by a scan, in scan order."""

    POD = "Pod"
    SERVICE = "Service"
    ROLE = "Role"
    NAMESPACE = "Namespace"


@dataclass(frozen=True, slots=True)
class ResourceSnapshot:
    """Read-only view of one cluster object captured at scan time."""

    kind: str
    name: str
    namespace: str = ""
    manifest: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any], *, kind: str | None = None) -> "ResourceSnapshot":
        """Build a snapshot from a Kubernetes object in its JSON/YAML shape."""

        metadata = _mapping(manifest.get("metadata"))
        return cls(
            kind=kind or str(manifest.get("kind") or ""),
            name=str(metadata.get("name") or ""),
            namespace=str(metadata.get("namespace") or ""),
            manifest=manifest,
        )

    # Malformed fields read as empty so checks treat them as not applicable.
    @property
    def spec(self) -> Dict[str, Any]:
        return dict(_mapping(self.manifest.get("spec")))

    @property
    def labels(self) -> Dict[str, str]:
        metadata = _mapping(self.manifest.get("metadata"))
        return dict(_mapping(metadata.get("labels")))

    @property
    def rules(self) -> List[Dict[str, Any]]:
        rules = self.manifest.get("rules")
        return list(rules) if isinstance(rules, (list, tuple)) else []


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
