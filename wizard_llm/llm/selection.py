"""Provider selection: task name → (provider, model).

Spec strings come from LLMConfig (env LLM_TASK_<TASK> / LLM_DEFAULT_PROVIDER):

  "gemini"                     provider id, default model
  "openai:gpt-4o"              provider and model, split on the first ':'
  "claude-sonnet-4-5-20250929" bare model id, provider inferred from prefix

Resolutions are memoized in a SelectionCache handed to the policy, so one
policy resolves each task at most once and independent policies (tests)
never share state.
"""

from dataclasses import dataclass
from typing import Optional

from wizard_llm.config import LLMConfig
from wizard_llm.llm.errors import ConfigurationError
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.selection"
logger = get_logger()

KNOWN_PROVIDERS = frozenset({
    "openai", "gemini", "anthropic", "dall-e", "imagen", "stable_diffusion",
})

# Checked in order; first matching prefix wins
MODEL_PREFIXES: tuple[tuple[str, str], ...] = (
    ("gpt-image", "dall-e"),
    ("dall-e", "dall-e"),
    ("gpt-", "openai"),
    ("chatgpt-", "openai"),
    ("o1", "openai"),
    ("o3", "openai"),
    ("o4", "openai"),
    ("gemini-", "gemini"),
    ("veo-", "gemini"),
    ("claude-", "anthropic"),
    ("imagen", "imagen"),
    ("imagegeneration", "imagen"),
    ("sd3", "stable_diffusion"),
    ("stable-diffusion", "stable_diffusion"),
)


@dataclass(frozen=True)
class ProviderResolution:
    provider: str
    model: str


class SelectionCache:
    """Memo of task → ProviderResolution.

    Concurrent callers may both miss and both write; the values are equal,
    so the last write wins harmlessly.
    """

    def __init__(self):
        self._entries: dict[str, ProviderResolution] = {}

    def get(self, task: str) -> Optional[ProviderResolution]:
        return self._entries.get(task)

    def put(self, task: str, resolution: ProviderResolution) -> None:
        self._entries[task] = resolution

    def __contains__(self, task: str) -> bool:
        return task in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def infer_provider(model: str) -> Optional[str]:
    """Guess the provider that serves a model id, or None."""
    lowered = model.strip().lower()
    for prefix, provider in MODEL_PREFIXES:
        if lowered.startswith(prefix):
            return provider
    return None


def parse_provider_spec(spec: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Split a spec string into (provider, model). Either side may be None."""
    if spec is None or not spec.strip():
        return None, None
    spec = spec.strip()

    if ":" in spec:
        head, tail = spec.split(":", 1)
        head, tail = head.strip().lower(), tail.strip()
        if head in KNOWN_PROVIDERS:
            return head, tail or None
        # Unknown head: returned as-is, rejected by the policy
        return head or None, tail or None

    if spec.lower() in KNOWN_PROVIDERS:
        return spec.lower(), None
    return infer_provider(spec), spec


class ProviderSelectionPolicy:
    """Resolve and memoize the provider/model for each task."""

    def __init__(self, config: LLMConfig, cache: Optional[SelectionCache] = None):
        self.config = config
        self.cache = cache if cache is not None else SelectionCache()

    def select(self, task: str) -> ProviderResolution:
        cached = self.cache.get(task)
        if cached is not None:
            return cached
        resolution = self.resolve(task)
        self.cache.put(task, resolution)
        log.info(logger, MODULE, "provider_configured", "LLM provider configured",
                 task=task, provider=resolution.provider, model=resolution.model)
        return resolution

    def resolve(self, task: str) -> ProviderResolution:
        """Resolve without touching the cache. Raises ConfigurationError."""
        spec = self.config.spec_for(task)
        provider, model = parse_provider_spec(spec)
        if not provider:
            raise ConfigurationError(
                f"Cannot resolve provider for task {task!r} from spec {spec!r}"
            )
        if provider not in KNOWN_PROVIDERS:
            raise ConfigurationError(f"Unknown provider {provider!r} for task {task!r}")

        model = model or self.config.default_models.get(provider)
        if not model:
            raise ConfigurationError(f"No model configured for provider {provider!r} (task {task!r})")
        return ProviderResolution(provider=provider, model=model)
