"""Rule-based explainer that works without any network access."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from ..models import DEFAULT_EXPLANATION, DEFAULT_REFERENCES, Finding, FindingExplanation

_GENERIC_REMEDIATION = "Review the resource configuration and apply security best practices."


@dataclass(frozen=True, slots=True)
class _ExplanationRule:
    needle: str
    explanation: str
    remediation: str
    reference: str


# First match wins.
_RULES: Tuple[_ExplanationRule, ...] = (
    _ExplanationRule(
        "privileged",
        "Privileged containers have access to all devices on the host, which can lead to "
        "security vulnerabilities if compromised.",
        "Remove the privileged flag from the container's securityContext or use a more "
        "restrictive security context.",
        "https://kubernetes.io/docs/tasks/configure-pod-container/security-context/",
    ),
    _ExplanationRule(
        "root",
        "Running containers as root (uid 0) gives them elevated permissions, which is a security risk.",
        "Set runAsUser in the container's securityContext to a non-zero value and enable runAsNonRoot.",
        "https://kubernetes.io/docs/concepts/security/pod-security-standards/",
    ),
    _ExplanationRule(
        "hostpath",
        "hostPath volumes allow pods to access files on the host, which can lead to privilege escalation.",
        "Avoid using hostPath volumes. Consider using more secure volume types like emptyDir, "
        "configMap, or PersistentVolumeClaims.",
        "https://kubernetes.io/docs/concepts/storage/volumes/",
    ),
    _ExplanationRule(
        "nodeport",
        "NodePort services open the same port on every node, widening the network attack surface "
        "of the cluster.",
        "Use a ClusterIP service behind an Ingress or restrict node access with NetworkPolicies "
        "and firewall rules.",
        "https://kubernetes.io/docs/concepts/services-networking/service/",
    ),
    _ExplanationRule(
        "loadbalancer",
        "LoadBalancer services can expose workloads directly to the internet.",
        "Restrict spec.loadBalancerSourceRanges or use an internal load balancer annotation.",
        "https://kubernetes.io/docs/concepts/services-networking/service/",
    ),
    _ExplanationRule(
        "wildcard",
        "Wildcard RBAC rules grant every verb on every resource in the namespace, breaking the "
        "principle of least privilege.",
        "Replace '*' with the explicit resources and verbs the subject needs.",
        "https://kubernetes.io/docs/concepts/security/rbac-good-practices/",
    ),
    # Built-in namespace reasons mention the 'privileged' level and match the
    # first rule; this one serves policy reasons that only name PodSecurity.
    _ExplanationRule(
        "podsecurity",
        "Without an enforced Pod Security Standard, workloads in the namespace can request "
        "privileged settings unchecked.",
        "Label the namespace with pod-security.kubernetes.io/enforce=baseline or restricted.",
        "https://kubernetes.io/docs/concepts/security/pod-security-admission/",
    ),
)


class SimpleExplainer:
    """Deterministic explainer keyed on substrings of the finding reason."""

    name = "rule-based"

    def is_available(self) -> bool:
        return True

    def explain(self, finding: Finding) -> FindingExplanation:
        reason = finding.reason.lower()
        for rule in _RULES:
            if rule.needle in reason:
                return FindingExplanation(
                    finding=finding,
                    explanation=rule.explanation,
                    remediation=rule.remediation,
                    references=DEFAULT_REFERENCES + (rule.reference,),
                )

        return FindingExplanation(
            finding=finding,
            explanation=DEFAULT_EXPLANATION,
            remediation=_GENERIC_REMEDIATION,
            references=DEFAULT_REFERENCES,
        )

    def explain_all(self, findings: Iterable[Finding]) -> List[FindingExplanation]:
        return [self.explain(finding) for finding in findings]


__all__ = ["SimpleExplainer"]
