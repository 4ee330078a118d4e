"""Integration tests for the ``devguardian audit`` command."""

from __future__ import annotations

import io
import json
from contextlib import redirect_stdout
from pathlib import Path

import pytest

from devguardian.adapters import ConnectivityError
from devguardian.cli import app
from devguardian.models import Finding, FindingSeverity
from devguardian.service import ScanResult

POD_MANIFEST = """apiVersion: v1
kind: Pod
metadata:
  name: web
  namespace: default
spec:
  containers:
    - name: app
      image: nginx
      securityContext:
        privileged: true
---
apiVersion: v1
kind: Namespace
metadata:
  name: default
  labels:
    pod-security.kubernetes.io/enforce: restricted
"""


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DEVGUARDIAN_OUTPUT",
        "DEVGUARDIAN_AI_PROVIDER",
        "DEVGUARDIAN_MODEL",
        "DEVGUARDIAN_OLLAMA_URL",
        "DEVGUARDIAN_LOG_LEVEL",
        "DEVGUARDIAN_OPA_BIN",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


class StubService:
    """Service replacement returning a fixed scan result."""

    def __init__(self, findings: list[Finding] | None = None, error: Exception | None = None) -> None:
        self.findings = findings or []
        self.error = error
        self.closed = False

    def scan(self, **_: object) -> ScanResult:
        if self.error is not None:
            raise self.error
        return ScanResult(findings=list(self.findings), metadata={"resource_counts": {"Pod": 1}})

    def close(self) -> None:
        self.closed = True


def stub_service(monkeypatch: pytest.MonkeyPatch, service: StubService) -> StubService:
    def factory(config: object, **_: object) -> StubService:
        return service

    monkeypatch.setattr(app, "create_service", factory)
    return service


def invoke_cli(args: list[str], encoding: str = "utf-8") -> tuple[int, bytes]:
    """Execute the CLI and capture the raw bytes written to stdout."""

    stdout = io.TextIOWrapper(io.BytesIO(), encoding=encoding)
    with redirect_stdout(stdout):
        exit_code = app.main(args)
    stdout.flush()
    return exit_code, stdout.buffer.getvalue()


def invoke_cli_text(args: list[str]) -> tuple[int, str]:
    exit_code, output = invoke_cli(args)
    return exit_code, output.decode("utf-8")


def privileged_finding() -> Finding:
    return Finding(
        resource_kind="Pod",
        namespace="default",
        name="web",
        reason="Container 'app' is privileged",
        severity=FindingSeverity.CRITICAL,
    )


def test_audit_prints_json_report(monkeypatch: pytest.MonkeyPatch) -> None:
    service = stub_service(monkeypatch, StubService([privileged_finding()]))

    exit_code, output = invoke_cli_text(["audit", "-o", "json"])

    assert exit_code == 0
    payload = json.loads(output)
    assert payload["summary"]["total"] == 1
    assert payload["summary"]["highest_severity"] == "Critical"
    assert payload["metadata"]["resource_counts"] == {"Pod": 1}
    assert payload["metadata"]["errors"] == []
    assert "Privileged containers" in payload["explanations"][0]["explanation"]
    assert service.closed is True


def test_audit_without_findings(monkeypatch: pytest.MonkeyPatch) -> None:
    stub_service(monkeypatch, StubService())

    exit_code, output = invoke_cli_text(["audit", "--fail-on", "low"])

    assert exit_code == 0
    assert "No security issues found!" in output


def test_audit_writes_report_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    stub_service(monkeypatch, StubService([privileged_finding()]))
    report_path = tmp_path / "report.html"

    exit_code, output = invoke_cli_text(["audit", "-o", "html", "-f", str(report_path)])

    assert exit_code == 0
    assert output == ""
    assert report_path.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")


def test_fail_on_threshold(monkeypatch: pytest.MonkeyPatch) -> None:
    stub_service(monkeypatch, StubService([privileged_finding()]))

    exit_code, _ = invoke_cli_text(["audit", "--fail-on", "high"])
    assert exit_code == 1

    medium = Finding(
        resource_kind="Service",
        namespace="default",
        name="web",
        reason="Service uses NodePort which exposes ports on all nodes",
        severity=FindingSeverity.MEDIUM,
    )
    stub_service(monkeypatch, StubService([medium]))

    exit_code, _ = invoke_cli_text(["audit", "--fail-on", "high"])
    assert exit_code == 0


def test_connectivity_failure_exits_with_error(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    service = stub_service(monkeypatch, StubService(error=ConnectivityError("connection refused")))

    exit_code, output = invoke_cli_text(["audit"])

    assert exit_code == 2
    assert output == ""
    assert "connection refused" in capsys.readouterr().err
    assert service.closed is True


def test_bad_provider_falls_back_to_rule_based(monkeypatch: pytest.MonkeyPatch) -> None:
    stub_service(monkeypatch, StubService([privileged_finding()]))

    exit_code, output = invoke_cli_text(["audit", "-o", "json", "-a", "openai"])

    assert exit_code == 0
    payload = json.loads(output)
    assert "Privileged containers" in payload["explanations"][0]["explanation"]


def test_missing_config_file(tmp_path: Path) -> None:
    exit_code, _ = invoke_cli_text(["audit", "--config", str(tmp_path / "absent.yaml")])

    assert exit_code == 2


def test_audit_exported_manifests(tmp_path: Path) -> None:
    manifest_path = tmp_path / "cluster.yaml"
    manifest_path.write_text(POD_MANIFEST, encoding="utf-8")

    exit_code, output = invoke_cli_text(
        ["audit", "-o", "json", "--manifest", str(manifest_path), "--no-default-policies"]
    )

    assert exit_code == 0
    payload = json.loads(output)
    assert [finding["reason"] for finding in payload["findings"]] == ["Container 'app' is privileged"]
    assert payload["metadata"]["resource_counts"] == {"Pod": 1, "Service": 0, "Role": 0, "Namespace": 1}


def test_no_command_prints_help() -> None:
    exit_code, output = invoke_cli_text([])

    assert exit_code == 0
    assert "audit" in output


def test_cli_report_is_utf8_on_non_utf8_terminal(monkeypatch: pytest.MonkeyPatch) -> None:
    stub_service(monkeypatch, StubService([privileged_finding()]))

    exit_code, output = invoke_cli(["audit"], encoding="ascii")

    assert exit_code == 0
    text = output.decode("utf-8")
    assert "FINDING #1: 🔴 CRITICAL" in text
    assert "🔍 KUBERNETES SECURITY AUDIT RESULTS" in text
