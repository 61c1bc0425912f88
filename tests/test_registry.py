"""Tests for the task registry and startup validation."""

import pytest

from wizard_llm.config import LLMConfig
from wizard_llm.llm.errors import ConfigurationError, UnknownTaskError
from wizard_llm.llm.registry import AttemptState, TaskDescriptor, TaskRegistry, validate_startup
from wizard_llm.llm.selection import ProviderSelectionPolicy, SelectionCache
from wizard_llm.llm.tasks import TASK_CATALOG, build_registry

from conftest import FakeAdapter


def _descriptor(**overrides):
    values = dict(system="sys", builder=lambda c, s: "p", parser=lambda r, c: {})
    values.update(overrides)
    return TaskDescriptor(**values)


def _policy(**config):
    return ProviderSelectionPolicy(LLMConfig(**config), SelectionCache())


def test_catalog_has_every_task():
    assert build_registry().names() == sorted([
        "channels", "chat", "golden_db_update", "image_generation",
        "image_prompt_generation", "refine", "suggest", "video_caption",
    ])


def test_registry_is_read_only():
    registry = TaskRegistry({"t": _descriptor()})
    with pytest.raises(TypeError):
        registry.tasks["u"] = _descriptor()


def test_lookup_unknown_raises():
    with pytest.raises(UnknownTaskError):
        TaskRegistry({}).lookup("missing")


def test_descriptor_rejects_negative_retries():
    with pytest.raises(ConfigurationError):
        _descriptor(retries=-1)


def test_descriptor_rejects_unknown_mode():
    with pytest.raises(ConfigurationError):
        _descriptor(mode="xml")


def test_callable_system_prompt_sees_state():
    descriptor = _descriptor(system=lambda c, s: f"strict={s.strict_mode}")
    assert descriptor.system_prompt({}, AttemptState(strict_mode=True)) == "strict=True"


def test_json_tasks_declare_schemas():
    for name, descriptor in TASK_CATALOG.items():
        if descriptor.mode == "json":
            assert descriptor.output_schema is not None, name


def test_validate_startup_passes():
    adapters = {"gemini": FakeAdapter("gemini")}
    validate_startup(build_registry(), _policy(), adapters)


def test_validate_startup_missing_adapter():
    policy = _policy(task_specs={"chat": "openai"})
    with pytest.raises(ConfigurationError, match="chat"):
        validate_startup(build_registry(), policy, {"gemini": FakeAdapter("gemini")})


def test_validate_startup_bad_spec():
    policy = _policy(task_specs={"suggest": "acme:model"})
    with pytest.raises(ConfigurationError, match="suggest"):
        validate_startup(build_registry(), policy, {"gemini": FakeAdapter("gemini")})


def test_validate_startup_required_task_without_descriptor():
    with pytest.raises(ConfigurationError, match="no task descriptor"):
        validate_startup(
            build_registry(), _policy(), {"gemini": FakeAdapter("gemini")},
            required_tasks=["summarize"],
        )
