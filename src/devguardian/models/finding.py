"""Finding models shared across the scanner, explainers and reporting layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Tuple


class FindingSeverity(str, Enum):
    """Severity levels supported by the audit tooling."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def icon(self) -> str:
        return _SEVERITY_ICONS[self]

    @classmethod
    def parse(cls, value: object) -> "FindingSeverity":
        """Map a free-form severity label onto the supported levels."""

        if isinstance(value, FindingSeverity):
            return value

        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in _SEVERITY_ALIASES:
                return _SEVERITY_ALIASES[normalized]

        return cls.UNKNOWN


_SEVERITY_RANK = {
    FindingSeverity.UNKNOWN: 0,
    FindingSeverity.LOW: 1,
    FindingSeverity.MEDIUM: 2,
    FindingSeverity.HIGH: 3,
    FindingSeverity.CRITICAL: 4,
}

_SEVERITY_ICONS = {
    FindingSeverity.CRITICAL: "🔴",
    FindingSeverity.HIGH: "🟠",
    FindingSeverity.MEDIUM: "🟡",
    FindingSeverity.LOW: "🟢",
    FindingSeverity.UNKNOWN: "⚪",
}

_SEVERITY_ALIASES = {
    "informational": FindingSeverity.LOW,
    "info": FindingSeverity.LOW,
    "low": FindingSeverity.LOW,
    "minor": FindingSeverity.LOW,
    "warning": FindingSeverity.MEDIUM,
    "moderate": FindingSeverity.MEDIUM,
    "medium": FindingSeverity.MEDIUM,
    "major": FindingSeverity.HIGH,
    "high": FindingSeverity.HIGH,
    "error": FindingSeverity.HIGH,
    "critical": FindingSeverity.CRITICAL,
    "severe": FindingSeverity.CRITICAL,
    "fatal": FindingSeverity.CRITICAL,
    "unknown": FindingSeverity.UNKNOWN,
}


@dataclass(frozen=True, slots=True)
class Finding:
    """A single security issue detected on one cluster resource."""

    resource_kind: str
    namespace: str
    name: str
    reason: str
    severity: FindingSeverity

    def __post_init__(self) -> None:
        if not self.resource_kind:
            raise ValueError("Finding requires a resource kind")
        if not self.name:
            raise ValueError("Finding requires a resource name")

    @property
    def resource_id(self) -> str:
        return f"{self.resource_kind}/{self.namespace}/{self.name}"


DEFAULT_EXPLANATION = "This is a security issue that could potentially compromise your Kubernetes cluster."
DEFAULT_REMEDIATION = "No specific remediation steps provided."
DEFAULT_REFERENCES: Tuple[str, ...] = ("https://kubernetes.io/docs/concepts/security/",)


@dataclass(frozen=True, slots=True)
class FindingExplanation:
    """Human readable explanation and remediation attached to a finding."""

    finding: Finding
    explanation: str = DEFAULT_EXPLANATION
    remediation: str = DEFAULT_REMEDIATION
    references: Tuple[str, ...] = DEFAULT_REFERENCES

    def __post_init__(self) -> None:
        # frozen dataclass: placeholders have to go through object.__setattr__
        if not (self.explanation or "").strip():
            object.__setattr__(self, "explanation", DEFAULT_EXPLANATION)
        if not (self.remediation or "").strip():
            object.__setattr__(self, "remediation", DEFAULT_REMEDIATION)
        object.__setattr__(self, "references", tuple(self.references or DEFAULT_REFERENCES))


@dataclass(slots=True)
class AuditSummary:
    """Aggregate counts derived from a list of findings."""

    total: int = 0
    by_severity: Dict[FindingSeverity, int] = field(default_factory=dict)
    by_resource: Dict[str, int] = field(default_factory=dict)
