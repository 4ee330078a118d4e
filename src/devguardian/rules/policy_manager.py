"""Utilities for loading and merging policy manifest files."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Sequence, Tuple

import yaml

from ..models import DEFAULT_POLICY_QUERY, FindingSeverity, PolicyModule

_LOG = logging.getLogger(__name__)


class PolicyManifestError(RuntimeError):
    """Raised when policy manifests cannot be loaded or parsed."""


@dataclass(slots=True)
class PolicyEntry:
    """Manifest entry describing one Rego module to evaluate."""

    name: str
    enabled: bool = True
    path: Path | None = None
    query: str = DEFAULT_POLICY_QUERY
    kinds: List[str] = field(default_factory=lambda: ["Pod"])
    severity: FindingSeverity = FindingSeverity.HIGH


@dataclass(slots=True)
class PolicyLoadError:
    """A policy that is enabled but whose source could not be read."""

    name: str
    path: Path | None
    message: str


_DEFAULT_MANIFEST = Path(__file__).resolve().parent / "manifests" / "default.yaml"


class PolicyManager:
    """Load policy manifests and expose enabled policy modules."""

    def __init__(self, default_manifests: Sequence[Path | str] | None = None) -> None:
        manifest_paths: List[Path]
        if default_manifests is None:
            manifest_paths = []
            if _DEFAULT_MANIFEST.exists():
                manifest_paths.append(_DEFAULT_MANIFEST)
        else:
            manifest_paths = [Path(path) for path in default_manifests]

        self._default_manifests = manifest_paths

    # ------------------------------------------------------------------
    def load(self, manifests: Sequence[Path | str] | None = None) -> List[PolicyEntry]:
        """Return all policy entries defined by the provided manifests."""

        manifest_paths = [Path(path) for path in self._default_manifests]
        if manifests:
            manifest_paths.extend(Path(path) for path in manifests)

        entries: MutableMapping[str, PolicyEntry] = {}
        for manifest_path in manifest_paths:
            data = self._load_manifest(manifest_path)
            for policy_config in data.get("policies", []) or []:
                if not isinstance(policy_config, Mapping):
                    continue
                name = policy_config.get("name")
                if not name:
                    continue

                entry = entries.get(name, PolicyEntry(name=name))
                if "enabled" in policy_config:
                    entry.enabled = bool(policy_config["enabled"])
                if policy_config.get("path"):
                    path = Path(str(policy_config["path"]))
                    if not path.is_absolute():
                        path = (manifest_path.resolve().parent / path).resolve()
                    entry.path = path
                if policy_config.get("query"):
                    entry.query = str(policy_config["query"])

                kinds = policy_config.get("kinds")
                if isinstance(kinds, (list, tuple)):
                    entry.kinds = [str(kind) for kind in kinds]

                severity = policy_config.get("severity")
                if isinstance(severity, str):
                    parsed = FindingSeverity.parse(severity)
                    if parsed is not FindingSeverity.UNKNOWN:
                        entry.severity = parsed

                entries[name] = entry

        return list(entries.values())

    # ------------------------------------------------------------------
    def enabled_entries(self, manifests: Sequence[Path | str] | None = None) -> List[PolicyEntry]:
        """Return only the entries that are enabled after merging manifests."""

        return [entry for entry in self.load(manifests) if entry.enabled]

    def enabled_modules(
        self, manifests: Sequence[Path | str] | None = None
    ) -> Tuple[List[PolicyModule], List[PolicyLoadError]]:
        """Read the Rego source of every enabled policy.

        Policies whose file is missing or unreadable are returned as
        :class:`PolicyLoadError` entries so a scan can carry on without them.
        """

        modules: List[PolicyModule] = []
        errors: List[PolicyLoadError] = []
        for entry in self.enabled_entries(manifests):
            if entry.path is None:
                errors.append(PolicyLoadError(entry.name, None, "Policy entry has no path"))
                continue
            try:
                module = PolicyModule.from_path(
                    entry.path,
                    name=entry.name,
                    query=entry.query,
                    kinds=tuple(entry.kinds),
                    default_severity=entry.severity,
                )
            except OSError as exc:
                _LOG.warning("Skipping policy %s: cannot read %s (%s)", entry.name, entry.path, exc)
                errors.append(PolicyLoadError(entry.name, entry.path, str(exc)))
                continue
            modules.append(module)

        return modules, errors

    # ------------------------------------------------------------------
    def _load_manifest(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise PolicyManifestError(f"Policy manifest not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem errors surfaced to caller
            raise PolicyManifestError(f"Failed to read policy manifest {path}") from exc

        if path.suffix == ".json":
            try:
                data = json.loads(content or "{}")
            except json.JSONDecodeError as exc:
                raise PolicyManifestError(f"Invalid JSON in policy manifest {path}") from exc
        else:
            try:
                data = yaml.safe_load(content) or {}
            except yaml.YAMLError as exc:
                raise PolicyManifestError(f"Invalid YAML in policy manifest {path}") from exc

        if not isinstance(data, Mapping):
            raise PolicyManifestError(f"Policy manifest must be a mapping: {path}")

        return dict(data)


__all__ = ["PolicyEntry", "PolicyLoadError", "PolicyManager", "PolicyManifestError"]
