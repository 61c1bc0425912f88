"""Task registry: the immutable catalog of LLM tasks.

A TaskDescriptor says everything the orchestrator needs to run a task:
how to build the prompt, how to parse the answer, how hard to try, and what
the provider must support. The registry is built once from a table and is
read-only afterwards; there is no registration API.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from wizard_llm.llm.errors import ConfigurationError, UnknownTaskError
from wizard_llm.llm.providers.base import InvocationResponse, Mode, TaskCapabilities
from wizard_llm.schemas.results import TaskError
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.registry"
logger = get_logger()


@dataclass(frozen=True)
class AttemptState:
    """Per-attempt view handed to prompt builders.

    attempt is 0-based. strict_mode asks the builder to tighten its
    instructions. last_raw_preview holds up to 400 chars of the previous
    attempt's raw output.
    """

    attempt: int = 0
    strict_mode: bool = False
    last_raw_preview: Optional[str] = None


Context = Mapping[str, Any]
PromptBuilder = Callable[[Context, AttemptState], str]
SystemPrompt = Union[str, Callable[[Context, AttemptState], str]]
TaskParser = Callable[[InvocationResponse, Context], Union[dict, TaskError]]
MaxTokens = Union[int, Mapping[str, int], None]


@dataclass(frozen=True)
class TaskDescriptor:
    system: SystemPrompt
    builder: PromptBuilder
    parser: TaskParser
    mode: Mode = "text"
    temperature: float = 0.2
    max_tokens: MaxTokens = None
    retries: int = 0
    strict_on_retry: bool = False
    output_schema: Optional[Any] = None
    output_schema_name: Optional[str] = None
    capabilities: TaskCapabilities = field(default_factory=TaskCapabilities)
    preview_label: Optional[str] = None

    def __post_init__(self):
        if self.retries < 0:
            raise ConfigurationError(f"retries must be >= 0, got {self.retries}")
        if self.mode not in ("text", "json"):
            raise ConfigurationError(f"mode must be 'text' or 'json', got {self.mode!r}")

    def system_prompt(self, context: Context, state: AttemptState) -> Optional[str]:
        if callable(self.system):
            return self.system(context, state)
        return self.system

    def max_tokens_for(self, provider: str) -> Optional[int]:
        """Resolve max_tokens for a provider: exact key, then 'default'."""
        if self.max_tokens is None or isinstance(self.max_tokens, int):
            return self.max_tokens
        if provider in self.max_tokens:
            return self.max_tokens[provider]
        return self.max_tokens.get("default")


class TaskRegistry:
    """Read-only mapping of task name → TaskDescriptor."""

    def __init__(self, descriptors: Mapping[str, TaskDescriptor]):
        self._tasks = MappingProxyType(dict(descriptors))

    @property
    def tasks(self) -> Mapping[str, TaskDescriptor]:
        return self._tasks

    def names(self) -> list[str]:
        return sorted(self._tasks)

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def lookup(self, name: str) -> TaskDescriptor:
        descriptor = self._tasks.get(name)
        if descriptor is None:
            raise UnknownTaskError(name)
        return descriptor


def validate_startup(
    registry: TaskRegistry,
    policy,
    adapters: Mapping[str, Any],
    required_tasks: Iterable[str] = (),
) -> None:
    """Fail fast on configuration holes.

    Every registered task (and every name in `required_tasks`) must have a
    descriptor, a provider resolution, and an adapter for that provider.

    Raises:
        ConfigurationError: listing every problem found.
    """
    problems = []
    for name in sorted(set(registry.names()) | set(required_tasks)):
        if name not in registry:
            problems.append(f"{name}: no task descriptor")
            continue
        try:
            resolution = policy.select(name)
        except ConfigurationError as e:
            problems.append(f"{name}: {e}")
            continue
        if resolution.provider not in adapters:
            problems.append(f"{name}: no adapter for provider {resolution.provider!r}")

    if problems:
        log.error(logger, MODULE, "startup_failed", "LLM task configuration invalid",
                  problems=problems)
        raise ConfigurationError("Invalid LLM task configuration: " + "; ".join(problems))

    log.info(logger, MODULE, "startup_done", "LLM task configuration validated",
             tasks=len(registry))
