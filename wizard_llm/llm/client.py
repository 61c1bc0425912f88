"""Wiring: config → adapters, selection policy, registry → orchestrator.

  build_adapters(config)      one adapter per provider id
  build_orchestrator(config)  validated, ready-to-run TaskOrchestrator
  get_orchestrator()          process-wide instance built from the environment

build_orchestrator() validates every registered task at startup, so a task
with no resolvable provider or no adapter fails the process immediately
rather than on its first request.
"""

from functools import lru_cache
from typing import Iterable, Optional

from wizard_llm.config import LLMConfig, load_config
from wizard_llm.llm.audit import RawTrafficLogger
from wizard_llm.llm.orchestrator import TaskOrchestrator
from wizard_llm.llm.providers import (
    AnthropicAdapter,
    DalleImageAdapter,
    GeminiAdapter,
    ImagenImageAdapter,
    OpenAIAdapter,
    ProviderAdapter,
    StableDiffusionAdapter,
)
from wizard_llm.llm.registry import TaskRegistry, validate_startup
from wizard_llm.llm.selection import ProviderSelectionPolicy, SelectionCache
from wizard_llm.llm.tasks import build_registry
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.client"
logger = get_logger()


def build_adapters(
    config: LLMConfig,
    audit: Optional[RawTrafficLogger] = None,
) -> dict[str, ProviderAdapter]:
    """Create every adapter. Missing keys are reported at call time, not here."""
    timeout = config.http_timeout_s
    adapters: dict[str, ProviderAdapter] = {
        "openai": OpenAIAdapter(
            config.openai_api_key, config.openai_base_url, audit=audit, timeout_s=timeout,
        ),
        "gemini": GeminiAdapter(
            config.gemini_api_key, config.gemini_api_url, audit=audit, timeout_s=timeout,
        ),
        "anthropic": AnthropicAdapter(
            config.anthropic_api_key, config.anthropic_api_url, audit=audit, timeout_s=timeout,
            structured_output_models=config.anthropic_structured_output_models,
        ),
        "dall-e": DalleImageAdapter(
            config.dalle_api_key, config.dalle_api_url, audit=audit, timeout_s=timeout,
        ),
        "imagen": ImagenImageAdapter(
            config.imagen_api_key, config.imagen_api_url, audit=audit, timeout_s=timeout,
        ),
        "stable_diffusion": StableDiffusionAdapter(
            config.stability_api_key, config.stability_api_url, audit=audit, timeout_s=timeout,
        ),
    }
    missing = sorted(
        name for name, adapter in adapters.items() if not getattr(adapter, "api_key", None)
    )
    if missing:
        log.info(logger, MODULE, "keys_missing", "Some providers have no API key configured",
                 providers=missing)
    return adapters


def build_orchestrator(
    config: LLMConfig,
    adapters: Optional[dict[str, ProviderAdapter]] = None,
    registry: Optional[TaskRegistry] = None,
    required_tasks: Iterable[str] = (),
) -> TaskOrchestrator:
    """Assemble and validate an orchestrator.

    Raises:
        ConfigurationError: if any task cannot be served.
    """
    audit = RawTrafficLogger(config.audit_log_path, enabled=config.audit_log_enabled)
    adapters = adapters if adapters is not None else build_adapters(config, audit)
    registry = registry if registry is not None else build_registry()
    policy = ProviderSelectionPolicy(config, SelectionCache())

    validate_startup(registry, policy, adapters, required_tasks)

    log.info(logger, MODULE, "orchestrator_ready", "LLM orchestrator ready",
             tasks=registry.names(), providers=sorted(adapters))
    return TaskOrchestrator(
        registry,
        policy,
        adapters,
        retry_delays_s=config.retry_delays_s,
        default_timeout_s=config.task_timeout_s,
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> TaskOrchestrator:
    """Process-wide orchestrator configured from the environment."""
    return build_orchestrator(load_config())
