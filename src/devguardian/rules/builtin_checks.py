"""Deterministic security checks applied to every scanned resource."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping

from ..models import Finding, FindingSeverity, ResourceKind, ResourceSnapshot

POD_SECURITY_ENFORCE_LABEL = "pod-security.kubernetes.io/enforce"
WILDCARD = "*"


class BuiltinRuleChecker:
    """Fixed predicate checks over pods, services, roles and namespaces."""

    def __init__(self) -> None:
        self._dispatch: Dict[str, Callable[[ResourceSnapshot], List[Finding]]] = {
            ResourceKind.POD.value: self.check_pod,
            ResourceKind.SERVICE.value: self.check_service,
            ResourceKind.ROLE.value: self.check_role,
            ResourceKind.NAMESPACE.value: self.check_namespace,
        }

    # ------------------------------------------------------------------
    def check(self, resource: ResourceSnapshot) -> List[Finding]:
        """Run the checks registered for the resource kind."""

        handler = self._dispatch.get(resource.kind)
        if handler is None:
            return []
        return handler(resource)

    def check_pods(self, pods: Iterable[ResourceSnapshot]) -> List[Finding]:
        findings: List[Finding] = []
        for pod in pods:
            findings.extend(self.check_pod(pod))
        return findings

    # ------------------------------------------------------------------
    def check_pod(self, pod: ResourceSnapshot) -> List[Finding]:
        spec = pod.spec
        volumes = [volume for volume in _items(spec.get("volumes")) if isinstance(volume, Mapping)]

        findings: List[Finding] = []
        for container in _items(spec.get("containers")):
            if not isinstance(container, Mapping):
                continue
            container_name = container.get("name", "")

            security_context = container.get("securityContext")
            if isinstance(security_context, Mapping):
                run_as_user = security_context.get("runAsUser")
                if run_as_user is not None and not isinstance(run_as_user, bool) and run_as_user == 0:
                    findings.append(
                        self._finding(
                            pod,
                            f"Container '{container_name}' runs as root user (uid 0)",
                            FindingSeverity.HIGH,
                        )
                    )
                if security_context.get("privileged") is True:
                    findings.append(
                        self._finding(
                            pod,
                            f"Container '{container_name}' is privileged",
                            FindingSeverity.CRITICAL,
                        )
                    )

            # One finding per (container, hostPath volume) pair.
            for volume in volumes:
                if volume.get("hostPath") is None:
                    continue
                findings.append(
                    self._finding(
                        pod,
                        f"Container '{container_name}' uses hostPath volume '{volume.get('name', '')}'",
                        FindingSeverity.MEDIUM,
                    )
                )

        return findings

    def check_service(self, service: ResourceSnapshot) -> List[Finding]:
        service_type = service.spec.get("type")
        if service_type == "NodePort":
            return [
                self._finding(
                    service,
                    "Service uses NodePort which exposes ports on all nodes",
                    FindingSeverity.MEDIUM,
                )
            ]
        if service_type == "LoadBalancer":
            return [
                self._finding(
                    service,
                    "Service uses LoadBalancer which may expose the service to the internet",
                    FindingSeverity.MEDIUM,
                )
            ]
        return []

    def check_role(self, role: ResourceSnapshot) -> List[Finding]:
        for rule in role.rules:
            if not isinstance(rule, Mapping):
                continue
            if _contains_wildcard(rule.get("resources")) and _contains_wildcard(rule.get("verbs")):
                return [
                    self._finding(
                        role,
                        "Role has wildcard resources and verbs which grants excessive permissions",
                        FindingSeverity.HIGH,
                    )
                ]
        return []

    def check_namespace(self, namespace: ResourceSnapshot) -> List[Finding]:
        enforce = namespace.labels.get(POD_SECURITY_ENFORCE_LABEL) or ""
        if enforce and enforce != "privileged":
            return []

        return [
            Finding(
                resource_kind=namespace.kind,
                namespace=namespace.name,
                name=namespace.name,
                reason="Namespace does not enforce PodSecurity standards or uses 'privileged' level",
                severity=FindingSeverity.HIGH,
            )
        ]

    # ------------------------------------------------------------------
    def _finding(self, resource: ResourceSnapshot, reason: str, severity: FindingSeverity) -> Finding:
        return Finding(
            resource_kind=resource.kind,
            namespace=resource.namespace,
            name=resource.name,
            reason=reason,
            severity=severity,
        )


def _contains_wildcard(values: Any) -> bool:
    if not isinstance(values, (list, tuple)):
        return False
    return WILDCARD in values


def _items(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


__all__ = ["BuiltinRuleChecker", "POD_SECURITY_ENFORCE_LABEL"]
