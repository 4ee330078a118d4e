"""Report model combining findings, explanations and the summary."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Sequence

from ..models import AuditSummary, Finding, FindingExplanation, FindingSeverity
from .summary import summarize


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class AuditReport:
    """Collection of findings plus explanations and contextual metadata."""

    findings: Sequence[Finding]
    explanations: Sequence[FindingExplanation]
    summary: AuditSummary
    metadata: Mapping[str, Any] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def build(
        cls,
        findings: Sequence[Finding],
        explanations: Sequence[FindingExplanation],
        metadata: Mapping[str, Any] | None = None,
    ) -> "AuditReport":
        return cls(
            findings=list(findings),
            explanations=list(explanations),
            summary=summarize(findings),
            metadata=dict(metadata or {}),
        )

    @property
    def highest_severity(self) -> FindingSeverity | None:
        if not self.findings:
            return None
        return max(self.findings, key=lambda finding: finding.severity.rank).severity

    def severity_counts(self) -> List[tuple[FindingSeverity, int]]:
        """Severity counts ordered from most to least severe."""

        return sorted(self.summary.by_severity.items(), key=lambda item: item[0].rank, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": dict(self.metadata),
            "generated_at": self.generated_at.isoformat(),
            "summary": {
                "total": self.summary.total,
                "highest_severity": self.highest_severity.value if self.highest_severity else None,
                "by_severity": {severity.value: count for severity, count in self.severity_counts()},
                "by_resource": dict(sorted(self.summary.by_resource.items())),
            },
            "findings": [serialize_finding(finding) for finding in self.findings],
            "explanations": [serialize_explanation(explanation) for explanation in self.explanations],
        }


def serialize_finding(finding: Finding) -> Dict[str, Any]:
    return {
        "resource_kind": finding.resource_kind,
        "namespace": finding.namespace,
        "name": finding.name,
        "reason": finding.reason,
        "severity": finding.severity.value,
    }


def serialize_explanation(explanation: FindingExplanation) -> Dict[str, Any]:
    return {
        "finding": serialize_finding(explanation.finding),
        "explanation": explanation.explanation,
        "remediation": explanation.remediation,
        "references": list(explanation.references),
    }


__all__ = ["AuditReport", "serialize_explanation", "serialize_finding"]
