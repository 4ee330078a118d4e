"""Runtime configuration with documented defaults.

Values are resolved in this order, later sources winning:

1. the defaults declared on :class:`AuditConfig` / :class:`ExplainerConfig`;
2. an optional YAML file (``--config``), e.g.::

       output: html
       log_level: DEBUG
       opa_bin: /usr/local/bin/opa
       policy_timeout: 5
       policy_manifests: [./policies.yaml]
       kubeconfig: ~/.kube/config
       explainer:
         provider: ollama
         model: mistral
         ollama_url: http://ollama:11434

3. environment variables:

   - DEVGUARDIAN_OUTPUT
   - DEVGUARDIAN_AI_PROVIDER
   - DEVGUARDIAN_MODEL
   - DEVGUARDIAN_OLLAMA_URL
   - DEVGUARDIAN_LOG_LEVEL
   - DEVGUARDIAN_OPA_BIN
   - OPENAI_API_KEY

Command-line flags are applied on top by the CLI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml

from .adapters.policy_engine import DEFAULT_POLICY_TIMEOUT
from .explain.base import ConfigError, ExplainerConfig


@dataclass(slots=True)
class AuditConfig:
    output_format: str = "cli"
    explainer: ExplainerConfig = field(default_factory=ExplainerConfig)
    policy_manifests: List[str] = field(default_factory=list)
    opa_executable: str = "opa"
    policy_timeout: float = DEFAULT_POLICY_TIMEOUT
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    log_level: str = "INFO"


_ENV_OVERRIDES = {
    "DEVGUARDIAN_OUTPUT": "output",
    "DEVGUARDIAN_LOG_LEVEL": "log_level",
    "DEVGUARDIAN_OPA_BIN": "opa_bin",
}

_EXPLAINER_ENV_OVERRIDES = {
    "DEVGUARDIAN_AI_PROVIDER": "provider",
    "DEVGUARDIAN_MODEL": "model",
    "DEVGUARDIAN_OLLAMA_URL": "ollama_url",
    "OPENAI_API_KEY": "api_key",
}


def load_config(path: str | Path | None = None, env: Mapping[str, str] | None = None) -> AuditConfig:
    """Return the effective configuration; raises :class:`ConfigError` on a bad file."""

    env = os.environ if env is None else env
    config = AuditConfig()

    if path is not None:
        _apply(config, _read_file(Path(path)))

    overrides: dict[str, Any] = {key: env[name] for name, key in _ENV_OVERRIDES.items() if env.get(name)}
    explainer = {key: env[name] for name, key in _EXPLAINER_ENV_OVERRIDES.items() if env.get(name)}
    if explainer:
        overrides["explainer"] = explainer
    _apply(config, overrides)

    return config


def _read_file(path: Path) -> Mapping[str, Any]:
    path = path.expanduser()
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in configuration file {path}") from exc

    if not isinstance(data, Mapping):
        raise ConfigError(f"Configuration file must be a mapping: {path}")
    return data


def _apply(config: AuditConfig, data: Mapping[str, Any]) -> None:
    if data.get("output"):
        config.output_format = str(data["output"])
    if data.get("log_level"):
        config.log_level = str(data["log_level"]).upper()
    if data.get("opa_bin"):
        config.opa_executable = str(data["opa_bin"])
    if data.get("kubeconfig"):
        config.kubeconfig = str(Path(str(data["kubeconfig"])).expanduser())
    if data.get("context"):
        config.context = str(data["context"])
    if data.get("policy_timeout") is not None:
        config.policy_timeout = _positive_float(data["policy_timeout"], "policy_timeout")

    manifests = data.get("policy_manifests")
    if isinstance(manifests, (list, tuple)):
        config.policy_manifests = [str(item) for item in manifests]

    explainer = data.get("explainer")
    if isinstance(explainer, Mapping):
        settings = config.explainer
        if "provider" in explainer:
            settings.provider = str(explainer["provider"] or "")
        if explainer.get("api_key"):
            settings.api_key = str(explainer["api_key"])
        if explainer.get("model"):
            settings.model_name = str(explainer["model"])
        if explainer.get("ollama_url"):
            settings.base_url = str(explainer["ollama_url"])
        if explainer.get("openai_url"):
            settings.openai_url = str(explainer["openai_url"])
        if explainer.get("openai_timeout") is not None:
            settings.openai_timeout = _positive_float(explainer["openai_timeout"], "openai_timeout")
        if explainer.get("ollama_timeout") is not None:
            settings.ollama_timeout = _positive_float(explainer["ollama_timeout"], "ollama_timeout")
        if "check_availability" in explainer:
            settings.check_availability = bool(explainer["check_availability"])


def _positive_float(value: Any, key: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    return number


__all__ = ["AuditConfig", "load_config"]
