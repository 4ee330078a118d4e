from __future__ import annotations

import threading

import pytest

from devguardian.explain import (
    ConfigError,
    ExplainerConfig,
    ExplanationProvider,
    ExplanationResolver,
    OllamaProvider,
    OpenAIProvider,
    ProviderError,
    ResolverState,
    SimpleExplainer,
    create_provider,
)
from devguardian.models import Finding, FindingSeverity
from devguardian.service import ScanCancelled


def make_finding(reason: str = "Container 'app' is privileged", name: str = "web") -> Finding:
    return Finding(resource_kind="Pod", namespace="default", name=name, reason=reason, severity=FindingSeverity.CRITICAL)


class DummyProvider(ExplanationProvider):
    name = "dummy"

    def __init__(self, responses=None, *, fail_after: int | None = None, available: bool = True) -> None:
        self.responses = list(responses or [])
        self.fail_after = fail_after
        self.available = available
        self.calls = 0
        self.closed = False

    def explain(self, finding: Finding) -> str:
        self.calls += 1
        if self.fail_after is not None and self.calls > self.fail_after:
            raise ProviderError("service went away")
        if self.responses:
            return self.responses.pop(0)
        return f"EXPLANATION: about {finding.name}\nREMEDIATION: fix {finding.name}\nREFERENCES: https://docs.example"

    def is_available(self) -> bool:
        return self.available

    def close(self) -> None:
        self.closed = True


def test_create_provider_selection():
    assert create_provider(ExplainerConfig()) is None
    assert create_provider(ExplainerConfig(provider="none")) is None
    assert isinstance(create_provider(ExplainerConfig(provider="ollama")), OllamaProvider)
    assert isinstance(create_provider(ExplainerConfig(provider="OpenAI", api_key="sk-test")), OpenAIProvider)


def test_create_provider_rejects_bad_configuration():
    with pytest.raises(ConfigError, match="API key"):
        create_provider(ExplainerConfig(provider="openai"))
    with pytest.raises(ConfigError, match="Unknown"):
        create_provider(ExplainerConfig(provider="bard"))


def test_from_config_degrades_to_fallback_on_config_error():
    resolver = ExplanationResolver.from_config(ExplainerConfig(provider="openai"))

    assert resolver.state is ResolverState.UNAVAILABLE
    assert isinstance(resolver.last_error, ConfigError)
    assert resolver.attempt_chain() == (resolver.fallback,)

    explanation = resolver.explain(make_finding())
    assert "Privileged containers" in explanation.explanation


def test_no_provider_uses_rule_based_explanations():
    resolver = ExplanationResolver.from_config(ExplainerConfig())

    assert resolver.provider is None
    assert isinstance(resolver.attempt_chain()[0], SimpleExplainer)


def test_provider_response_is_parsed():
    provider = DummyProvider()
    resolver = ExplanationResolver()
    resolver.use_provider(provider)

    explanation = resolver.explain(make_finding())

    assert explanation.explanation == "about web"
    assert explanation.remediation == "fix web"
    assert explanation.references == ("https://docs.example",)
    assert resolver.state is ResolverState.AVAILABLE


def test_failing_provider_falls_back_and_stays_disabled():
    provider = DummyProvider(fail_after=1)
    resolver = ExplanationResolver()
    resolver.use_provider(provider)
    findings = [make_finding(name=f"pod-{index}") for index in range(4)]

    explanations = resolver.explain_all(findings)

    assert [explanation.finding for explanation in explanations] == findings
    assert explanations[0].explanation == "about pod-0"
    assert all("Privileged containers" in explanation.explanation for explanation in explanations[1:])
    # The provider is not retried once it has failed.
    assert provider.calls == 2
    assert resolver.state is ResolverState.UNAVAILABLE
    assert isinstance(resolver.last_error, ProviderError)


def test_availability_check_skips_unreachable_provider():
    provider = DummyProvider(available=False)
    resolver = ExplanationResolver(check_availability=True)
    resolver.use_provider(provider)

    explanation = resolver.explain(make_finding())

    assert provider.calls == 0
    assert "Privileged containers" in explanation.explanation
    assert resolver.state is ResolverState.UNAVAILABLE


def test_blank_provider_response_gets_placeholders():
    provider = DummyProvider(responses=["   "])
    resolver = ExplanationResolver()
    resolver.use_provider(provider)

    explanation = resolver.explain(make_finding())

    assert explanation.explanation.strip()
    assert explanation.remediation.strip()
    assert explanation.references


def test_explain_all_honours_cancellation():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ScanCancelled):
        ExplanationResolver().explain_all([make_finding()], cancel_event=cancel)


def test_close_releases_provider():
    provider = DummyProvider()
    resolver = ExplanationResolver()
    resolver.use_provider(provider)

    resolver.close()

    assert provider.closed is True


@pytest.mark.parametrize("error", [KeyError("choices"), RuntimeError("boom"), AttributeError("split")])
def test_unexpected_provider_errors_fall_back(error):
    class BrokenProvider(DummyProvider):
        def explain(self, finding: Finding) -> str:
            self.calls += 1
            raise error

    provider = BrokenProvider()
    resolver = ExplanationResolver()
    resolver.use_provider(provider)
    findings = [make_finding(name="pod-0"), make_finding(name="pod-1")]

    explanations = resolver.explain_all(findings)

    assert [explanation.finding for explanation in explanations] == findings
    assert all("Privileged containers" in explanation.explanation for explanation in explanations)
    assert provider.calls == 1
    assert resolver.state is ResolverState.UNAVAILABLE
    assert resolver.last_error is error


def test_non_string_provider_response_falls_back():
    class OddProvider(DummyProvider):
        def explain(self, finding: Finding):
            return None

    resolver = ExplanationResolver()
    resolver.use_provider(OddProvider())

    explanation = resolver.explain(make_finding())

    assert "Privileged containers" in explanation.explanation
    assert resolver.state is ResolverState.UNAVAILABLE
