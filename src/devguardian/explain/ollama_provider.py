"""Explanation provider backed by a local Ollama server."""

from __future__ import annotations

from typing import Optional

import requests

from ..models import Finding
from .base import (
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_URL,
    ExplainerConfig,
    HTTPExplanationProvider,
    ProviderError,
    SYSTEM_PROMPT,
)
from .prompt import build_prompt


class OllamaProvider(HTTPExplanationProvider):
    """Ask a locally served model to explain findings."""

    name = "Ollama"

    def __init__(self, config: ExplainerConfig, *, session: Optional[requests.Session] = None) -> None:
        super().__init__(timeout=config.ollama_timeout, session=session)
        self.base_url = (config.base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self.model_name = config.model_name or DEFAULT_OLLAMA_MODEL

    def explain(self, finding: Finding) -> str:
        payload = {
            "model": self.model_name,
            "prompt": f"{SYSTEM_PROMPT}\n\n{build_prompt(finding)}",
            "stream": False,
        }
        data = self._post_json(f"{self.base_url}/api/generate", payload)

        if data.get("error"):
            raise ProviderError(f"Ollama API error: {data['error']}")
        if "response" not in data:
            raise ProviderError("no response from Ollama API")
        return str(data["response"] or "")

    def is_available(self) -> bool:
        return self._probe("GET", f"{self.base_url}/api/tags")


__all__ = ["OllamaProvider"]
