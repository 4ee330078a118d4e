"""Prompt construction and parsing of loosely structured provider responses."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..models import DEFAULT_REFERENCES, DEFAULT_REMEDIATION, Finding

_LABEL_PATTERN = re.compile(
    r"^[\s*#>_-]*(EXPLANATION|REMEDIATION|REFERENCES)[\s*_]*:[\s*_]*(.*)$",
    re.IGNORECASE,
)

PROMPT_TEMPLATE = """
Explain the following Kubernetes security issue and provide remediation steps:

Resource Type: {kind}
Namespace: {namespace}
Name: {name}
Issue: {reason}
Severity: {severity}

Format your response in the following structure:
EXPLANATION: [Detailed explanation of why this is a security issue]
REMEDIATION: [Step-by-step remediation instructions]
REFERENCES: [Comma-separated list of references to security best practices or documentation]
"""


@dataclass(frozen=True, slots=True)
class ParsedResponse:
    explanation: str
    remediation: str
    references: Tuple[str, ...]


def build_prompt(finding: Finding) -> str:
    """Render the user prompt sent to a language model for ``finding``."""

    return PROMPT_TEMPLATE.format(
        kind=finding.resource_kind,
        namespace=finding.namespace,
        name=finding.name,
        reason=finding.reason,
        severity=finding.severity.value,
    )


def parse_response(response: str) -> ParsedResponse:
    """Split a response into explanation, remediation and references.

    Sections may come in any order and blank lines are ignored. Lines after a
    label continue that section; text before the first label belongs to no
    section. When no label is recognised the whole response is the
    explanation.
    """

    sections: Dict[str, List[str]] = {"explanation": [], "remediation": [], "references": []}
    seen: set[str] = set()
    current: str | None = None

    for raw_line in response.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        match = _LABEL_PATTERN.match(line)
        if match:
            current = match.group(1).lower()
            seen.add(current)
            remainder = match.group(2).strip()
            if remainder:
                sections[current].append(remainder)
        elif current is not None:
            sections[current].append(line)

    if not seen:
        return ParsedResponse(response, DEFAULT_REMEDIATION, DEFAULT_REFERENCES)

    explanation = " ".join(" ".join(sections["explanation"]).split()) or response.strip()
    remediation = "\n".join(sections["remediation"]) or DEFAULT_REMEDIATION
    references = tuple(_split_references(sections["references"])) or DEFAULT_REFERENCES

    return ParsedResponse(explanation, remediation, references)


def _split_references(lines: List[str]) -> List[str]:
    references: List[str] = []
    for line in lines:
        for item in line.split(","):
            reference = item.strip().lstrip("-*").strip()
            if reference:
                references.append(reference)
    return references


__all__ = ["ParsedResponse", "PROMPT_TEMPLATE", "build_prompt", "parse_response"]
