"""Data models for cluster resource snapshots, policies and audit findings."""

from .finding import (
    DEFAULT_EXPLANATION,
    DEFAULT_REFERENCES,
    DEFAULT_REMEDIATION,
    AuditSummary,
    Finding,
    FindingExplanation,
    FindingSeverity,
)
from .policy import DEFAULT_POLICY_QUERY, PolicyModule, PolicyViolation
from .resource import ResourceKind, ResourceSnapshot

__all__ = [
    "AuditSummary",
    "DEFAULT_EXPLANATION",
    "DEFAULT_POLICY_QUERY",
    "DEFAULT_REFERENCES",
    "DEFAULT_REMEDIATION",
    "Finding",
    "FindingExplanation",
    "FindingSeverity",
    "PolicyModule",
    "PolicyViolation",
    "ResourceKind",
    "ResourceSnapshot",
]
