"""Declarative policy evaluation backed by the Open Policy Agent CLI."""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from ..models import Finding, FindingSeverity, PolicyModule, PolicyViolation, ResourceSnapshot

_LOG = logging.getLogger(__name__)

DEFAULT_POLICY_TIMEOUT = 10.0


class PolicyError(RuntimeError):
    """Raised when a policy module cannot be compiled or evaluated."""


@dataclass(slots=True)
class CompiledModule:
    """A policy module that passed ``opa check`` and is ready for evaluation."""

    module: PolicyModule
    path: Path


class PolicyEvaluator(ABC):
    """Abstract base class describing the policy evaluator contract."""

    @abstractmethod
    def violations(self, document: Mapping[str, Any], module: PolicyModule) -> List[PolicyViolation]:
        """Evaluate ``module`` against ``document`` and return its violations."""

    def evaluate(self, document: Mapping[str, Any], module: PolicyModule) -> List[str]:
        """Return the violation reasons produced for ``document``."""

        return [violation.reason for violation in self.violations(document, module)]

    def findings_for(self, resource: ResourceSnapshot, module: PolicyModule) -> List[Finding]:
        """Translate the violations for ``resource`` into findings."""

        return [
            Finding(
                resource_kind=resource.kind,
                namespace=resource.namespace,
                name=resource.name,
                reason=violation.reason,
                severity=violation.severity or module.default_severity,
            )
            for violation in self.violations(resource.manifest, module)
        ]

    def close(self) -> None:
        """Release resources held by the evaluator."""

    def __enter__(self) -> "PolicyEvaluator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class OpaPolicyEvaluator(PolicyEvaluator):
    """Evaluator that shells out to the ``opa`` executable."""

    def __init__(
        self,
        *,
        opa_executable: str = "opa",
        timeout: float = DEFAULT_POLICY_TIMEOUT,
    ) -> None:
        self.opa_executable = opa_executable
        self.timeout = timeout
        self._workdir: Path | None = None
        self._compiled: Dict[str, CompiledModule] = {}
        self._compile_errors: Dict[str, str] = {}

    # ------------------------------------------------------------------
    def compile(self, module: PolicyModule) -> CompiledModule:
        """Check ``module`` once and cache the outcome, failures included."""

        if module.name in self._compiled:
            return self._compiled[module.name]
        if module.name in self._compile_errors:
            raise PolicyError(self._compile_errors[module.name])

        path = self._ensure_workdir() / f"{_safe_filename(module.name)}.rego"
        path.write_text(module.source, encoding="utf-8")

        try:
            self._run([self.opa_executable, "check", str(path)])
        except PolicyError as exc:
            message = f"Failed to compile policy '{module.name}': {exc}"
            self._compile_errors[module.name] = message
            path.unlink(missing_ok=True)
            raise PolicyError(message) from exc

        compiled = CompiledModule(module=module, path=path)
        self._compiled[module.name] = compiled
        return compiled

    # ------------------------------------------------------------------
    def violations(self, document: Mapping[str, Any], module: PolicyModule) -> List[PolicyViolation]:
        payload = self._serialize(document)
        compiled = self.compile(module)

        command = [
            self.opa_executable,
            "eval",
            "--format",
            "json",
            "--stdin-input",
            "--data",
            str(compiled.path),
            module.query,
        ]
        stdout = self._run(command, stdin=payload)
        return self._parse_results(stdout, module)

    # ------------------------------------------------------------------
    def close(self) -> None:
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None
        self._compiled.clear()
        self._compile_errors.clear()

    # ------------------------------------------------------------------
    def _serialize(self, document: Mapping[str, Any]) -> str:
        try:
            return json.dumps(document, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise PolicyError(f"Failed to serialize resource document: {exc}") from exc

    def _parse_results(self, stdout: str, module: PolicyModule) -> List[PolicyViolation]:
        try:
            data = json.loads(stdout or "{}")
        except json.JSONDecodeError as exc:
            raise PolicyError(f"Failed to parse OPA output for policy '{module.name}'") from exc

        if not isinstance(data, Mapping):
            raise PolicyError(f"Unexpected OPA output for policy '{module.name}'")
        if data.get("errors"):
            raise PolicyError(f"OPA evaluation error for policy '{module.name}': {data['errors']}")

        violations: List[PolicyViolation] = []
        # An undefined query yields no "result" key at all.
        for result in data.get("result", []) or []:
            for expression in result.get("expressions", []) or []:
                value = expression.get("value")
                if isinstance(value, (str, Mapping)):
                    value = [value]
                if not isinstance(value, list):
                    continue
                violations.extend(self._to_violations(value, module))

        return violations

    def _to_violations(self, entries: Iterable[Any], module: PolicyModule) -> Iterable[PolicyViolation]:
        for entry in entries:
            if isinstance(entry, str):
                if entry.strip():
                    yield PolicyViolation(reason=entry.strip())
                continue

            if isinstance(entry, Mapping):
                reason = str(entry.get("reason") or entry.get("msg") or "").strip()
                if not reason:
                    _LOG.debug("Ignoring violation without reason from policy %s: %r", module.name, entry)
                    continue
                severity = entry.get("severity")
                yield PolicyViolation(
                    reason=reason,
                    severity=FindingSeverity.parse(severity) if severity is not None else None,
                )
                continue

            _LOG.debug("Ignoring unsupported violation entry from policy %s: %r", module.name, entry)

    # ------------------------------------------------------------------
    def _ensure_workdir(self) -> Path:
        if self._workdir is None:
            self._workdir = Path(tempfile.mkdtemp(prefix="devguardian-policies-"))
        return self._workdir

    def _run(self, command: Sequence[str], *, stdin: str | None = None) -> str:
        try:
            result = subprocess.run(  # noqa: S603 - deliberate invocation of external command
                list(command),
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise PolicyError(f"OPA executable not found: {command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise PolicyError(f"OPA timed out after {self.timeout:g}s") from exc

        if result.returncode != 0:
            raise PolicyError((result.stderr or result.stdout or "OPA execution failed").strip())

        return result.stdout or ""


def _safe_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", name) or "policy"


__all__ = [
    "CompiledModule",
    "DEFAULT_POLICY_TIMEOUT",
    "OpaPolicyEvaluator",
    "PolicyError",
    "PolicyEvaluator",
]
