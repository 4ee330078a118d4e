"""Aggregation of findings into report summaries."""

from __future__ import annotations

from typing import Iterable

from ..models import AuditSummary, Finding


def summarize(findings: Iterable[Finding]) -> AuditSummary:
    """Count findings by severity and by resource kind."""

    summary = AuditSummary()
    for finding in findings:
        summary.total += 1
        summary.by_severity[finding.severity] = summary.by_severity.get(finding.severity, 0) + 1
        summary.by_resource[finding.resource_kind] = summary.by_resource.get(finding.resource_kind, 0) + 1
    return summary


__all__ = ["summarize"]
