"""Explanation providers and the resolver that picks between them."""

from .base import (
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_URL,
    DEFAULT_OPENAI_MODEL,
    ConfigError,
    ExplainerConfig,
    ExplanationProvider,
    ProviderError,
)
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .prompt import ParsedResponse, build_prompt, parse_response
from .resolver import ExplanationResolver, ResolverState, create_provider
from .simple import SimpleExplainer

__all__ = [
    "ConfigError",
    "DEFAULT_OLLAMA_MODEL",
    "DEFAULT_OLLAMA_URL",
    "DEFAULT_OPENAI_MODEL",
    "ExplainerConfig",
    "ExplanationProvider",
    "ExplanationResolver",
    "OllamaProvider",
    "OpenAIProvider",
    "ParsedResponse",
    "ProviderError",
    "ResolverState",
    "SimpleExplainer",
    "build_prompt",
    "create_provider",
    "parse_response",
]
