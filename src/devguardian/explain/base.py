"""Explanation provider interfaces and shared HTTP plumbing."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests

from ..models import Finding

_LOG = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llama2"
DEFAULT_OPENAI_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo"
DEFAULT_OPENAI_TIMEOUT = 30.0
DEFAULT_OLLAMA_TIMEOUT = 60.0

SYSTEM_PROMPT = (
    "You are a Kubernetes security expert. Provide clear explanations and practical "
    "remediation steps for Kubernetes security issues."
)


class ConfigError(RuntimeError):
    """Raised when an explanation provider cannot be configured."""


class ProviderError(RuntimeError):
    """Raised when an explanation provider fails to produce a response."""


@dataclass(slots=True)
class ExplainerConfig:
    """Settings used to select and construct an explanation provider.

    ``provider`` is one of ``"openai"``, ``"ollama"`` or empty for the
    rule-based explainer only. Empty ``model_name``/``base_url`` values fall
    back to the provider defaults above.
    """

    provider: str = ""
    api_key: str = ""
    model_name: str = ""
    base_url: str = DEFAULT_OLLAMA_URL
    openai_url: str = DEFAULT_OPENAI_URL
    openai_timeout: float = DEFAULT_OPENAI_TIMEOUT
    ollama_timeout: float = DEFAULT_OLLAMA_TIMEOUT
    check_availability: bool = False


class ExplanationProvider(ABC):
    """Abstract base class describing the explanation provider contract."""

    name: str = "provider"

    @abstractmethod
    def explain(self, finding: Finding) -> str:
        """Return the raw response text for ``finding``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when the backing service answers."""

    def close(self) -> None:
        """Release connections held by the provider."""


class HTTPExplanationProvider(ExplanationProvider):
    """Base for providers talking JSON over HTTP with a bounded timeout."""

    def __init__(self, *, timeout: float, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    def _post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            response = self._session.post(url, json=dict(payload), headers=headers, timeout=self.timeout)
        except requests.Timeout as exc:
            raise ProviderError(f"{self.name} request timed out after {self.timeout:g}s") from exc
        except requests.RequestException as exc:
            raise ProviderError(f"{self.name} request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                f"{self.name} returned a non-JSON response (status {response.status_code})"
            ) from exc

        if not isinstance(data, dict):
            raise ProviderError(f"{self.name} returned an unexpected response shape")

        if response.status_code != 200:
            raise ProviderError(
                f"{self.name} API returned status code {response.status_code}: {_error_message(data)}"
            )
        return data

    def _probe(self, method: str, url: str, **kwargs: Any) -> bool:
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            _LOG.debug("%s availability probe failed: %s", self.name, exc)
            return False
        return response.status_code == 200


def _error_message(data: Mapping[str, Any]) -> str:
    error = data.get("error")
    if isinstance(error, Mapping):
        return str(error.get("message") or error)
    return str(error or "unknown error")


__all__ = [
    "ConfigError",
    "DEFAULT_OLLAMA_MODEL",
    "DEFAULT_OLLAMA_TIMEOUT",
    "DEFAULT_OLLAMA_URL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_OPENAI_TIMEOUT",
    "DEFAULT_OPENAI_URL",
    "ExplainerConfig",
    "ExplanationProvider",
    "HTTPExplanationProvider",
    "ProviderError",
    "SYSTEM_PROMPT",
]
