"""Report renderers for terminal, JSON and HTML output."""

from __future__ import annotations

import html
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from string import Template
from typing import Dict, List, Type

from ..models import FindingExplanation
from .report import AuditReport

_LOG = logging.getLogger(__name__)

SEPARATOR = "====================================="
RULE = "-------------------------------------"


class RenderError(RuntimeError):
    """Raised when a report cannot be rendered."""


class OutputFormat(str, Enum):
    CLI = "cli"
    JSON = "json"
    HTML = "html"


class Formatter(ABC):
    """Abstract base class describing the report formatter contract."""

    @abstractmethod
    def render(self, report: AuditReport) -> str:
        """Render ``report`` as text."""

    def format(self, report: AuditReport) -> bytes:
        try:
            return self.render(report).encode("utf-8")
        except RenderError:
            raise
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            raise RenderError(f"Failed to render {type(self).__name__} report: {exc}") from exc


class CLIFormatter(Formatter):
    """Human readable report with emoji severity markers."""

    def render(self, report: AuditReport) -> str:
        lines: List[str] = [
            "",
            "🔍 KUBERNETES SECURITY AUDIT RESULTS",
            SEPARATOR,
            "",
            f"📊 SUMMARY: Found {report.summary.total} security issues",
            RULE,
            "By Severity:",
        ]
        for severity, count in report.severity_counts():
            lines.append(f"  {severity.icon} {severity.value}: {count}")

        lines.extend(["", "By Resource Type:"])
        for resource, count in sorted(report.summary.by_resource.items()):
            lines.append(f"  - {resource}: {count}")

        if not report.explanations:
            lines.extend(["", "🎉 No security issues found!", ""])
            return "\n".join(lines)

        lines.extend(["", "🛡️ DETAILED FINDINGS", SEPARATOR, ""])
        for index, explanation in enumerate(report.explanations, start=1):
            finding = explanation.finding
            lines.append(f"FINDING #{index}: {finding.severity.icon} {finding.severity.value.upper()}")
            lines.append(f"Resource: {finding.resource_id}")
            lines.append(f"Issue: {finding.reason}")
            lines.append(RULE)
            lines.extend(["📝 EXPLANATION:", explanation.explanation, ""])
            lines.extend(["🔧 REMEDIATION:", explanation.remediation, ""])
            lines.append("📚 REFERENCES:")
            lines.extend(f"  - {reference}" for reference in explanation.references)
            lines.extend(["", SEPARATOR, ""])

        return "\n".join(lines)


class JSONFormatter(Formatter):
    """Indented JSON mirroring the report data model."""

    def render(self, report: AuditReport) -> str:
        return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


_HTML_TEMPLATE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Kubernetes Security Audit Report</title>
    <style>
        body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6;
               color: #333; max-width: 1200px; margin: 0 auto; padding: 20px; }
        header { background-color: #1a73e8; color: white; padding: 20px; border-radius: 5px;
                 margin-bottom: 20px; }
        .summary { display: flex; gap: 15px; margin-bottom: 30px; }
        .summary-box { background-color: #f5f5f5; border-radius: 5px; padding: 15px; flex: 1; }
        .finding { border: 1px solid #ddd; border-radius: 5px; padding: 20px; margin-bottom: 20px;
                   box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
        .finding-header { display: flex; justify-content: space-between;
                          border-bottom: 1px solid #eee; padding-bottom: 10px; margin-bottom: 15px; }
        .severity { font-weight: bold; padding: 5px 10px; border-radius: 3px; color: white; }
        .critical { background-color: #d32f2f; }
        .high { background-color: #f57c00; }
        .medium { background-color: #fbc02d; color: #333; }
        .low { background-color: #388e3c; }
        .unknown { background-color: #0288d1; }
        .section-title { font-weight: bold; margin-bottom: 5px; }
        .references { list-style-type: none; padding-left: 0; }
        footer { margin-top: 30px; text-align: center; color: #666; font-size: 0.9em; }
    </style>
</head>
<body>
    <header>
        <h1>Kubernetes Security Audit Report</h1>
        <p>Generated on: $timestamp</p>
    </header>
    <section class="summary">
        <div class="summary-box">
            <h2>Summary</h2>
            <p>Total Findings: <strong>$total</strong></p>
            <h3>By Severity</h3>
            <ul>
$by_severity
            </ul>
        </div>
        <div class="summary-box">
            <h2>Resource Types</h2>
            <ul>
$by_resource
            </ul>
        </div>
    </section>
    <section>
        <h2>Detailed Findings</h2>
$findings
    </section>
    <footer>Generated by devguardian</footer>
</body>
</html>
"""
)


class HTMLFormatter(Formatter):
    """Standalone HTML document with severity-coloured badges."""

    def render(self, report: AuditReport) -> str:
        by_severity = "\n".join(
            f"                <li>{severity.icon} {_e(severity.value)}: {count}</li>"
            for severity, count in report.severity_counts()
        )
        by_resource = "\n".join(
            f"                <li>{_e(resource)}: {count}</li>"
            for resource, count in sorted(report.summary.by_resource.items())
        )
        findings = "\n".join(self._render_finding(explanation) for explanation in report.explanations)
        if not findings:
            findings = "        <p>No security issues found.</p>"

        return _HTML_TEMPLATE.substitute(
            timestamp=_e(report.generated_at.strftime("%Y-%m-%d %H:%M:%S %Z")),
            total=report.summary.total,
            by_severity=by_severity,
            by_resource=by_resource,
            findings=findings,
        )

    def _render_finding(self, explanation: FindingExplanation) -> str:
        finding = explanation.finding
        css_class = finding.severity.value.lower()
        references = "\n".join(
            f'                <li><a href="{_e(reference)}">{_e(reference)}</a></li>'
            if reference.startswith(("http://", "https://"))
            else f"                <li>{_e(reference)}</li>"
            for reference in explanation.references
        )
        remediation = "<br>".join(_e(line) for line in explanation.remediation.splitlines())
        return f"""        <div class="finding">
            <div class="finding-header">
                <h3>{_e(finding.resource_id)}</h3>
                <span class="severity {css_class}">{finding.severity.icon} {_e(finding.severity.value)}</span>
            </div>
            <p><strong>Issue:</strong> {_e(finding.reason)}</p>
            <div class="section"><div class="section-title">Explanation</div><p>{_e(explanation.explanation)}</p></div>
            <div class="section"><div class="section-title">Remediation</div><p>{remediation}</p></div>
            <div class="section"><div class="section-title">References</div>
            <ul class="references">
{references}
            </ul></div>
        </div>"""


def _e(value: object) -> str:
    return html.escape(str(value), quote=True)


_FORMATTERS: Dict[OutputFormat, Type[Formatter]] = {
    OutputFormat.CLI: CLIFormatter,
    OutputFormat.JSON: JSONFormatter,
    OutputFormat.HTML: HTMLFormatter,
}


def create_formatter(output_format: str | OutputFormat) -> Formatter:
    """Return the formatter for ``output_format``; unknown names fall back to ``cli``."""

    try:
        selected = OutputFormat(str(getattr(output_format, "value", output_format)).strip().lower())
    except ValueError:
        _LOG.warning("Unknown output format %r; falling back to cli", output_format)
        selected = OutputFormat.CLI
    return _FORMATTERS[selected]()


__all__ = [
    "CLIFormatter",
    "Formatter",
    "HTMLFormatter",
    "JSONFormatter",
    "OutputFormat",
    "RenderError",
    "create_formatter",
]
