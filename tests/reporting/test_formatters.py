import json

import pytest

from devguardian.models import Finding, FindingExplanation, FindingSeverity
from devguardian.reporting import (
    AuditReport,
    CLIFormatter,
    HTMLFormatter,
    JSONFormatter,
    OutputFormat,
    RenderError,
    create_formatter,
)


def make_report() -> AuditReport:
    finding = Finding(
        resource_kind="Pod",
        namespace="default",
        name="web",
        reason="Container '<app>' is privileged",
        severity=FindingSeverity.CRITICAL,
    )
    explanation = FindingExplanation(
        finding=finding,
        explanation="Privileged containers & host access.",
        remediation="Drop the privileged flag.\nUse a restricted profile.",
        references=("https://kubernetes.io/docs/concepts/security/", "CIS 5.2.1"),
    )
    return AuditReport.build([finding], [explanation], {"policies": ["privileged_pod"]})


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("cli", CLIFormatter),
        ("JSON", JSONFormatter),
        ("html", HTMLFormatter),
        (OutputFormat.HTML, HTMLFormatter),
        ("yaml", CLIFormatter),
        ("", CLIFormatter),
    ],
)
def test_create_formatter(name, expected):
    assert isinstance(create_formatter(name), expected)


def test_cli_output_lists_summary_and_findings():
    text = CLIFormatter().format(make_report()).decode("utf-8")

    assert "KUBERNETES SECURITY AUDIT RESULTS" in text
    assert "Found 1 security issues" in text
    assert "🔴 Critical: 1" in text
    assert "  - Pod: 1" in text
    assert "FINDING #1: 🔴 CRITICAL" in text
    assert "Resource: Pod/default/web" in text
    assert "  - CIS 5.2.1" in text


def test_cli_output_without_findings():
    text = CLIFormatter().format(AuditReport.build([], [])).decode("utf-8")

    assert "Found 0 security issues" in text
    assert "No security issues found!" in text
    assert "FINDING #" not in text


def test_json_output_structure():
    data = json.loads(JSONFormatter().format(make_report()))

    assert data["summary"]["total"] == 1
    assert data["summary"]["by_severity"] == {"Critical": 1}
    assert data["summary"]["by_resource"] == {"Pod": 1}
    assert data["metadata"]["policies"] == ["privileged_pod"]
    assert data["findings"][0]["severity"] == "Critical"
    explanation = data["explanations"][0]
    assert explanation["finding"]["name"] == "web"
    assert explanation["references"] == ["https://kubernetes.io/docs/concepts/security/", "CIS 5.2.1"]


def test_html_output_escapes_content():
    document = HTMLFormatter().format(make_report()).decode("utf-8")

    assert document.startswith("<!DOCTYPE html>")
    assert "Container &#x27;&lt;app&gt;&#x27; is privileged" in document
    assert "Privileged containers &amp; host access." in document
    assert "Drop the privileged flag.<br>Use a restricted profile." in document
    assert 'class="severity critical"' in document
    assert '<a href="https://kubernetes.io/docs/concepts/security/">' in document
    assert "<li>CIS 5.2.1</li>" in document


def test_render_failures_become_render_errors():
    class BrokenFormatter(JSONFormatter):
        def render(self, report):
            raise TypeError("not serializable")

    with pytest.raises(RenderError):
        BrokenFormatter().format(make_report())
