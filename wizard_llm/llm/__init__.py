"""LLM task orchestration package.

This package provides a single interface for every LLM task:

  from wizard_llm.llm import get_orchestrator

  result = await get_orchestrator().run("suggest", {"state": {...}})
  if result.ok:
      candidates = result.data["candidates"]

Architecture:
  parser.py            → JSON extraction and repair from raw LLM output
  schema_converter.py  → canonical schema → provider JSON-schema dialects
  audit.py             → raw provider traffic log (JSONL)
  providers/           → one adapter per provider, uniform invoke()
  selection.py         → task → (provider, model), memoized
  registry.py          → TaskDescriptor / TaskRegistry / startup validation
  tasks.py             → the task catalog
  orchestrator.py      → build-invoke-parse-retry loop
  client.py            → wiring from LLMConfig

The orchestrator implements defense-in-depth:
  1. PROMPT: Tell the model what format to produce (strict on retry)
  2. ENFORCE: Native JSON/schema mode where the provider supports it
  3. PARSE: Extract JSON, tolerating fences, prose and truncation
  4. NORMALIZE: Task parser validates entries and drops bad ones
  5. RETRY: On failure, retry within the task's budget
"""

from wizard_llm.llm.client import build_adapters, build_orchestrator, get_orchestrator
from wizard_llm.llm.errors import (
    ConfigurationError,
    EmptyResponseError,
    InvalidRequestError,
    LLMError,
    MissingApiKeyError,
    ProviderError,
    ProviderHTTPError,
    UnknownTaskError,
)
from wizard_llm.llm.orchestrator import TaskOrchestrator
from wizard_llm.llm.parser import extract_json, parse_json_content, repair_json_string, safe_preview
from wizard_llm.llm.registry import AttemptState, TaskDescriptor, TaskRegistry, validate_startup
from wizard_llm.llm.selection import (
    ProviderResolution,
    ProviderSelectionPolicy,
    SelectionCache,
    parse_provider_spec,
)

__all__ = [
    # Wiring
    "build_adapters",
    "build_orchestrator",
    "get_orchestrator",
    "TaskOrchestrator",
    # Errors
    "ConfigurationError",
    "EmptyResponseError",
    "InvalidRequestError",
    "LLMError",
    "MissingApiKeyError",
    "ProviderError",
    "ProviderHTTPError",
    "UnknownTaskError",
    # Parser
    "extract_json",
    "parse_json_content",
    "repair_json_string",
    "safe_preview",
    # Registry
    "AttemptState",
    "TaskDescriptor",
    "TaskRegistry",
    "validate_startup",
    # Selection
    "ProviderResolution",
    "ProviderSelectionPolicy",
    "SelectionCache",
    "parse_provider_spec",
]
