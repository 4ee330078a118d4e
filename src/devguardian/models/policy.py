"""Declarative policy models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from .finding import FindingSeverity

DEFAULT_POLICY_QUERY = "data.devguardian.k8s.deny"


@dataclass(frozen=True, slots=True)
class PolicyModule:
    """A Rego module together with the single query evaluated against it."""

    name: str
    source: str
    query: str = DEFAULT_POLICY_QUERY
    kinds: Tuple[str, ...] = ("Pod",)
    default_severity: FindingSeverity = FindingSeverity.HIGH
    path: Optional[Path] = field(default=None, compare=False)

    @classmethod
    def from_path(cls, path: Path, **kwargs: object) -> "PolicyModule":
        """Read the module source from ``path``; ``OSError`` propagates."""

        source = Path(path).read_text(encoding="utf-8")
        name = str(kwargs.pop("name", None) or Path(path).stem)
        return cls(name=name, source=source, path=Path(path), **kwargs)  # type: ignore[arg-type]

    def applies_to(self, kind: str) -> bool:
        return not self.kinds or kind in self.kinds


@dataclass(frozen=True, slots=True)
class PolicyViolation:
    """One entry of the policy engine output."""

    reason: str
    severity: Optional[FindingSeverity] = None
