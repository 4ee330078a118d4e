"""Orchestration layer used by the CLI to execute a cluster audit."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .adapters import ClusterSource, ConnectivityError, OpaPolicyEvaluator, PolicyError, PolicyEvaluator
from .models import Finding, PolicyModule, ResourceKind, ResourceSnapshot
from .rules import BuiltinRuleChecker, PolicyLoadError

_LOG = logging.getLogger(__name__)

SCAN_ORDER: Tuple[str, ...] = tuple(kind.value for kind in ResourceKind)


class ScanCancelled(RuntimeError):
    """Raised when a scan is interrupted between resource collections."""


@dataclass(slots=True)
class ScanError:
    """A recoverable failure recorded while scanning one resource or policy."""

    message: str
    kind: str = ""
    namespace: str = ""
    name: str = ""
    policy: str | None = None


@dataclass(slots=True)
class ScanResult:
    """Result returned by :class:`AuditService` runs."""

    findings: List[Finding]
    errors: List[ScanError] = field(default_factory=list)
    metadata: Mapping[str, Any] = field(default_factory=dict)


class AuditService:
    """Visit cluster collections and gather findings from checks and policies."""

    def __init__(
        self,
        source: ClusterSource,
        *,
        checker: BuiltinRuleChecker | None = None,
        policy_evaluator: PolicyEvaluator | None = None,
        policies: Sequence[PolicyModule] = (),
        policy_errors: Sequence[PolicyLoadError] = (),
        collections: Sequence[str] = SCAN_ORDER,
    ) -> None:
        self._source = source
        self._checker = checker or BuiltinRuleChecker()
        self._policies = list(policies)
        self._policy_errors = list(policy_errors)
        self._collections = list(collections)
        if policy_evaluator is None and self._policies:
            policy_evaluator = OpaPolicyEvaluator()
        self._policy_evaluator = policy_evaluator

    # ------------------------------------------------------------------
    def scan(self, *, cancel_event: threading.Event | None = None) -> ScanResult:
        """Run one audit pass over every collection.

        :class:`ConnectivityError` from the source aborts the scan. Policy
        failures for single resources are recorded in ``ScanResult.errors``.
        """

        findings: List[Finding] = []
        errors: List[ScanError] = [
            ScanError(message=error.message, policy=error.name) for error in self._policy_errors
        ]
        resource_counts: Dict[str, int] = {}

        for kind in self._collections:
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled(f"Scan cancelled before listing {kind} objects")

            _LOG.info("Scanning %s objects...", kind)
            resources = self._source.list(kind)
            resource_counts[kind] = len(resources)

            for resource in resources:
                resource_findings, resource_errors = self._audit_resource(resource)
                findings.extend(resource_findings)
                errors.extend(resource_errors)

        metadata: Dict[str, Any] = {
            "resource_counts": resource_counts,
            "policies": [module.name for module in self._policies],
            "error_count": len(errors),
        }
        _LOG.info("Scan completed with %d findings (%d errors)", len(findings), len(errors))
        return ScanResult(findings=findings, errors=errors, metadata=metadata)

    # ------------------------------------------------------------------
    def _audit_resource(self, resource: ResourceSnapshot) -> Tuple[List[Finding], List[ScanError]]:
        findings: List[Finding] = []
        errors: List[ScanError] = []

        try:
            findings.extend(self._checker.check(resource))
        except (TypeError, ValueError, AttributeError, KeyError) as exc:
            _LOG.warning(
                "Built-in checks failed for %s %s/%s: %s",
                resource.kind,
                resource.namespace,
                resource.name,
                exc,
            )
            errors.append(
                ScanError(
                    message=f"Built-in checks failed: {exc}",
                    kind=resource.kind,
                    namespace=resource.namespace,
                    name=resource.name,
                )
            )

        if self._policy_evaluator is None:
            return findings, errors

        for module in self._policies:
            if not module.applies_to(resource.kind):
                continue
            try:
                findings.extend(self._policy_evaluator.findings_for(resource, module))
            except PolicyError as exc:
                _LOG.warning(
                    "Policy %s failed for %s %s/%s: %s",
                    module.name,
                    resource.kind,
                    resource.namespace,
                    resource.name,
                    exc,
                )
                errors.append(
                    ScanError(
                        message=str(exc),
                        kind=resource.kind,
                        namespace=resource.namespace,
                        name=resource.name,
                        policy=module.name,
                    )
                )

        return findings, errors

    def close(self) -> None:
        if self._policy_evaluator is not None:
            self._policy_evaluator.close()


__all__ = ["AuditService", "ConnectivityError", "SCAN_ORDER", "ScanCancelled", "ScanError", "ScanResult"]
