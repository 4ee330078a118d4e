import json
from pathlib import Path

import pytest

from devguardian.models import DEFAULT_POLICY_QUERY, FindingSeverity
from devguardian.rules import PolicyManager, PolicyManifestError


def write_file(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_merges_default_and_override_manifests(tmp_path: Path):
    write_file(tmp_path, "pods.rego", "package devguardian.k8s\n")
    write_file(tmp_path, "services.rego", "package devguardian.k8s\n")

    default_manifest = write_file(
        tmp_path,
        "defaults.yaml",
        json.dumps(
            {
                "policies": [
                    {
                        "name": "pods",
                        "enabled": True,
                        "path": "pods.rego",
                        "severity": "medium",
                    }
                ]
            }
        ),
    )
    override_manifest = write_file(
        tmp_path,
        "override.json",
        json.dumps(
            {
                "policies": [
                    {"name": "pods", "enabled": False},
                    {
                        "name": "services",
                        "path": "services.rego",
                        "query": "data.custom.deny",
                        "kinds": ["Service"],
                        "severity": "Critical",
                    },
                ]
            }
        ),
    )

    manager = PolicyManager(default_manifests=[default_manifest])
    entries = {entry.name: entry for entry in manager.load([override_manifest])}

    assert set(entries) == {"pods", "services"}
    assert entries["pods"].enabled is False
    assert entries["pods"].path == (tmp_path / "pods.rego").resolve()
    assert entries["pods"].severity == FindingSeverity.MEDIUM
    assert entries["pods"].query == DEFAULT_POLICY_QUERY

    services = entries["services"]
    assert services.kinds == ["Service"]
    assert services.query == "data.custom.deny"
    assert services.severity == FindingSeverity.CRITICAL

    enabled = manager.enabled_entries([override_manifest])
    assert [entry.name for entry in enabled] == ["services"]


def test_enabled_modules_reads_sources_and_reports_missing_files(tmp_path: Path):
    write_file(tmp_path, "present.rego", "package devguardian.k8s\n\ndeny contains \"x\" if false\n")
    manifest = write_file(
        tmp_path,
        "policies.yaml",
        "policies:\n"
        "  - name: present\n"
        "    path: present.rego\n"
        "  - name: missing\n"
        "    path: missing.rego\n"
        "  - name: pathless\n",
    )

    modules, errors = PolicyManager(default_manifests=[]).enabled_modules([manifest])

    assert [module.name for module in modules] == ["present"]
    assert modules[0].source.startswith("package devguardian.k8s")
    assert modules[0].kinds == ("Pod",)
    assert modules[0].default_severity == FindingSeverity.HIGH
    assert {error.name for error in errors} == {"missing", "pathless"}


def test_default_manifest_loaded():
    modules, errors = PolicyManager().enabled_modules()

    assert errors == []
    privileged = next(module for module in modules if module.name == "privileged_pod")
    assert privileged.query == "data.devguardian.k8s.deny"
    assert privileged.kinds == ("Pod",)
    assert "package devguardian.k8s" in privileged.source


def test_missing_manifest_raises(tmp_path: Path):
    with pytest.raises(PolicyManifestError):
        PolicyManager().load([tmp_path / "missing.yaml"])


def test_non_mapping_manifest_raises(tmp_path: Path):
    manifest = write_file(tmp_path, "list.yaml", "- a\n- b\n")

    with pytest.raises(PolicyManifestError):
        PolicyManager(default_manifests=[]).load([manifest])
