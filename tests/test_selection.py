"""Tests for task → provider/model selection."""

import pytest

from wizard_llm.config import LLMConfig
from wizard_llm.llm.errors import ConfigurationError
from wizard_llm.llm.selection import (
    ProviderResolution,
    ProviderSelectionPolicy,
    SelectionCache,
    infer_provider,
    parse_provider_spec,
)


def _policy(**config):
    return ProviderSelectionPolicy(LLMConfig(**config), SelectionCache())


@pytest.mark.parametrize("model, provider", [
    ("gpt-4o-mini", "openai"),
    ("gpt-image-1", "dall-e"),
    ("dall-e-3", "dall-e"),
    ("o3-mini", "openai"),
    ("gemini-3-pro-preview", "gemini"),
    ("claude-sonnet-4-5-20250929", "anthropic"),
    ("imagen-3.0-fast-generate-001", "imagen"),
    ("sd3-large", "stable_diffusion"),
    ("mistral-large", None),
])
def test_infer_provider(model, provider):
    assert infer_provider(model) == provider


@pytest.mark.parametrize("spec, expected", [
    ("gemini", ("gemini", None)),
    ("OpenAI", ("openai", None)),
    ("openai:gpt-4o", ("openai", "gpt-4o")),
    ("anthropic:", ("anthropic", None)),
    ("claude-opus-4-1-20250929", ("anthropic", "claude-opus-4-1-20250929")),
    ("acme:model-x", ("acme", "model-x")),
    ("", (None, None)),
    (None, (None, None)),
])
def test_parse_provider_spec(spec, expected):
    assert parse_provider_spec(spec) == expected


def test_explicit_provider_and_model():
    policy = _policy(task_specs={"suggest": "openai:gpt-4o"})
    assert policy.select("suggest") == ProviderResolution("openai", "gpt-4o")


def test_provider_only_uses_default_model():
    policy = _policy(task_specs={"chat": "anthropic"})
    assert policy.select("chat").model == "claude-sonnet-4-5-20250929"


def test_unconfigured_task_uses_default_spec():
    policy = _policy(default_spec="openai", task_specs={})
    assert policy.select("refine") == ProviderResolution("openai", "gpt-4o-mini")


def test_image_generation_defaults_to_gemini_image_model():
    policy = _policy()
    assert policy.select("image_generation") == ProviderResolution(
        "gemini", "gemini-3-pro-image-preview",
    )


@pytest.mark.parametrize("spec", ["acme:model-x", "mistral-large"])
def test_unresolvable_spec_raises(spec):
    policy = _policy(task_specs={"chat": spec})
    with pytest.raises(ConfigurationError):
        policy.select("chat")


def test_missing_default_model_raises():
    policy = _policy(task_specs={"chat": "openai"}, default_models={})
    with pytest.raises(ConfigurationError):
        policy.select("chat")


def test_selection_is_memoized():
    policy = _policy(task_specs={"suggest": "openai:gpt-4o"})
    first = policy.select("suggest")
    assert "suggest" in policy.cache
    assert policy.select("suggest") is first
    assert len(policy.cache) == 1


def test_policies_do_not_share_caches():
    a = _policy(task_specs={"suggest": "openai:gpt-4o"})
    b = _policy(task_specs={"suggest": "gemini"})
    assert a.select("suggest").provider == "openai"
    assert b.select("suggest").provider == "gemini"
    assert a.cache is not b.cache


def test_resolution_runs_once(monkeypatch):
    policy = _policy(task_specs={"chat": "anthropic"})
    calls = []
    original = policy.resolve

    def counting(task):
        calls.append(task)
        return original(task)

    monkeypatch.setattr(policy, "resolve", counting)
    assert policy.select("chat") is policy.select("chat")
    assert calls == ["chat"]
