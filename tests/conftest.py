"""Shared fixtures: fake adapters and an orchestrator factory."""

import asyncio

import pytest

from wizard_llm.config import LLMConfig
from wizard_llm.llm.orchestrator import TaskOrchestrator
from wizard_llm.llm.providers.base import InvocationResponse
from wizard_llm.llm.registry import TaskRegistry
from wizard_llm.llm.selection import ProviderSelectionPolicy, SelectionCache


class FakeAdapter:
    """Replays scripted outcomes: InvocationResponse, str (text), or Exception."""

    def __init__(self, provider="gemini", outcomes=None, delay_s=0.0):
        self.provider = provider
        self.outcomes = list(outcomes or [])
        self.delay_s = delay_s
        self.requests = []

    async def invoke(self, request):
        self.requests.append(request)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, str):
            return InvocationResponse(text=outcome)
        return outcome


@pytest.fixture
def config():
    return LLMConfig(
        default_spec="gemini",
        task_specs={},
        audit_log_enabled=False,
        retry_delays_s=(0.0,),
    )


@pytest.fixture
def make_orchestrator(config):
    def _make(descriptors, adapter, **kwargs):
        registry = TaskRegistry(descriptors)
        policy = ProviderSelectionPolicy(config, SelectionCache())
        return TaskOrchestrator(
            registry, policy, {adapter.provider: adapter},
            retry_delays_s=kwargs.pop("retry_delays_s", (0.0,)),
            **kwargs,
        )
    return _make
