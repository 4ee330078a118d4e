"""Provider selection and the explain-or-fall-back pipeline."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from ..models import Finding, FindingExplanation
from ..service import ScanCancelled
from .base import ConfigError, ExplainerConfig, ExplanationProvider, ProviderError
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .prompt import parse_response
from .simple import SimpleExplainer

_LOG = logging.getLogger(__name__)

PROVIDER_OPENAI = "openai"
PROVIDER_OLLAMA = "ollama"
NO_PROVIDER_NAMES = frozenset({"", "none", "simple"})


class ResolverState(str, Enum):
    UNCONFIGURED = "unconfigured"
    PROVIDER_SELECTED = "provider-selected"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


def create_provider(config: ExplainerConfig) -> Optional[ExplanationProvider]:
    """Construct the provider named by ``config.provider``.

    Returns ``None`` when no provider is requested. Raises :class:`ConfigError`
    for unknown identifiers or missing credentials. No network I/O happens here.
    """

    identifier = (config.provider or "").strip().lower()
    if identifier in NO_PROVIDER_NAMES:
        return None
    if identifier == PROVIDER_OPENAI:
        return OpenAIProvider(config)
    if identifier == PROVIDER_OLLAMA:
        return OllamaProvider(config)
    raise ConfigError(f"Unknown explanation provider: {config.provider!r}")


class ExplanationResolver:
    """Produce exactly one explanation per finding.

    The attempt chain is the selected provider followed by the rule-based
    explainer. A provider that fails once is marked unavailable and skipped
    for the rest of the run.
    """

    def __init__(
        self,
        *,
        fallback: SimpleExplainer | None = None,
        check_availability: bool = False,
    ) -> None:
        self.fallback = fallback or SimpleExplainer()
        self.check_availability = check_availability
        self.state = ResolverState.UNCONFIGURED
        self.provider: Optional[ExplanationProvider] = None
        self.last_error: Optional[Exception] = None

    @classmethod
    def from_config(cls, config: ExplainerConfig) -> "ExplanationResolver":
        """Build a resolver, degrading to the fallback on configuration errors."""

        resolver = cls(check_availability=config.check_availability)
        try:
            resolver.select(config)
        except ConfigError as exc:
            _LOG.warning("Could not initialize explanation provider: %s; using rule-based explanations", exc)
            resolver.last_error = exc
            resolver.state = ResolverState.UNAVAILABLE
        return resolver

    # ------------------------------------------------------------------
    def select(self, config: ExplainerConfig) -> None:
        """Select the provider named in ``config``; raises :class:`ConfigError`."""

        self.close()
        self.provider = create_provider(config)
        if self.provider is None:
            self.state = ResolverState.UNAVAILABLE
        else:
            self.state = ResolverState.PROVIDER_SELECTED

    def use_provider(self, provider: ExplanationProvider) -> None:
        self.close()
        self.provider = provider
        self.state = ResolverState.PROVIDER_SELECTED

    def attempt_chain(self) -> Sequence[object]:
        """Return the explainers that will be tried, in order."""

        if self.provider is not None and self.state in (
            ResolverState.PROVIDER_SELECTED,
            ResolverState.AVAILABLE,
        ):
            return (self.provider, self.fallback)
        return (self.fallback,)

    # ------------------------------------------------------------------
    def explain(self, finding: Finding) -> FindingExplanation:
        if self.state is ResolverState.PROVIDER_SELECTED and self.check_availability:
            self._resolve_availability()

        for explainer in self.attempt_chain():
            if explainer is self.fallback:
                return self.fallback.explain(finding)

            provider: ExplanationProvider = explainer  # type: ignore[assignment]
            try:
                parsed = parse_response(provider.explain(finding))
            except ProviderError as exc:
                self._mark_unavailable(exc)
                continue
            except Exception as exc:  # noqa: BLE001
                _LOG.debug("Unexpected failure from %s", getattr(provider, "name", "provider"), exc_info=True)
                self._mark_unavailable(exc)
                continue

            self.state = ResolverState.AVAILABLE
            return FindingExplanation(
                finding=finding,
                explanation=parsed.explanation,
                remediation=parsed.remediation,
                references=parsed.references,
            )

        return self.fallback.explain(finding)

    def explain_all(
        self,
        findings: Iterable[Finding],
        *,
        cancel_event: threading.Event | None = None,
    ) -> List[FindingExplanation]:
        """Explain every finding, preserving order and count."""

        explanations: List[FindingExplanation] = []
        for finding in findings:
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled("Explanation cancelled")
            explanations.append(self.explain(finding))
        return explanations

    def close(self) -> None:
        if self.provider is not None:
            self.provider.close()

    # ------------------------------------------------------------------
    def _resolve_availability(self) -> None:
        assert self.provider is not None
        if self.provider.is_available():
            self.state = ResolverState.AVAILABLE
        else:
            self._mark_unavailable(ProviderError(f"{self.provider.name} is not available"))

    def _mark_unavailable(self, exc: Exception) -> None:
        name = getattr(self.provider, "name", "provider")
        _LOG.warning("Error getting explanations from %s: %s; continuing with rule-based explanations", name, exc)
        self.last_error = exc
        self.state = ResolverState.UNAVAILABLE


__all__ = [
    "ExplanationResolver",
    "NO_PROVIDER_NAMES",
    "PROVIDER_OLLAMA",
    "PROVIDER_OPENAI",
    "ResolverState",
    "create_provider",
]
