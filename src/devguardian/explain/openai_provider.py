"""Explanation provider backed by the OpenAI chat completions API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from ..models import Finding
from .base import (
    DEFAULT_OPENAI_MODEL,
    DEFAULT_OPENAI_URL,
    ConfigError,
    ExplainerConfig,
    HTTPExplanationProvider,
    ProviderError,
    SYSTEM_PROMPT,
)
from .prompt import build_prompt


class OpenAIProvider(HTTPExplanationProvider):
    """Ask a hosted OpenAI model to explain findings."""

    name = "OpenAI"

    def __init__(self, config: ExplainerConfig, *, session: Optional[requests.Session] = None) -> None:
        if not config.api_key:
            raise ConfigError("OpenAI API key is required")
        super().__init__(timeout=config.openai_timeout, session=session)
        self.api_key = config.api_key
        self.model_name = config.model_name or DEFAULT_OPENAI_MODEL
        self.url = config.openai_url or DEFAULT_OPENAI_URL

    def explain(self, finding: Finding) -> str:
        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(finding)},
            ],
        }
        data = self._post_json(self.url, payload, headers=self._headers())

        try:
            return str(data["choices"][0]["message"]["content"] or "")
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError("no response from OpenAI API") from exc

    def is_available(self) -> bool:
        payload = {"model": self.model_name, "messages": [{"role": "user", "content": "Hello"}]}
        return self._probe("POST", self.url, json=payload, headers=self._headers())

    def _headers(self) -> Dict[str, Any]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}


__all__ = ["OpenAIProvider"]
