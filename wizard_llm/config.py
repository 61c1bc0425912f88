"""Runtime configuration for the LLM task gateway.

Everything is read from environment variables once, at startup, into an
immutable LLMConfig. A new process picks up new configuration; nothing
re-reads the environment per call.

Provider selection per task:

  LLM_TASK_<TASK>=provider            → provider's default model
  LLM_TASK_<TASK>=provider:model      → explicit model
  LLM_TASK_<TASK>=model               → provider inferred from model prefix

  e.g. LLM_TASK_SUGGEST=openai:gpt-4o-mini
       LLM_TASK_IMAGE_GENERATION=dall-e

Tasks without an entry fall back to TASK_PROVIDER_DEFAULTS, then to
LLM_DEFAULT_PROVIDER. Default models per provider can be overridden with
LLM_DEFAULT_MODEL_<PROVIDER> (dashes become underscores: LLM_DEFAULT_MODEL_DALL_E).
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

GEMINI_DEFAULT_MODEL = "gemini-3-pro-preview"
GEMINI_IMAGE_MODEL = "gemini-3-pro-image-preview"

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "gemini": GEMINI_DEFAULT_MODEL,
    "anthropic": "claude-sonnet-4-5-20250929",
    "dall-e": "gpt-image-1",
    "imagen": "imagen-3.0-fast-generate-001",
    "stable_diffusion": "sd3",
}

# Per-task defaults when no LLM_TASK_<TASK> variable is set.
TASK_PROVIDER_DEFAULTS: dict[str, str] = {
    "image_generation": f"gemini:{GEMINI_IMAGE_MODEL}",
    # Crafts prompts only, so a text model
    "image_prompt_generation": f"gemini:{GEMINI_DEFAULT_MODEL}",
}

DEFAULT_STRUCTURED_OUTPUT_MODELS = (
    "claude-sonnet-4-5-20250929",
    "claude-opus-4-1-20250929",
    "claude-opus-4-5-20251101",
)

TASK_ENV_PREFIX = "LLM_TASK_"
DEFAULT_MODEL_ENV_PREFIX = "LLM_DEFAULT_MODEL_"


class LLMConfig(BaseModel):
    """Immutable configuration snapshot."""

    model_config = ConfigDict(frozen=True)

    # Provider selection
    default_spec: str = "gemini"
    task_specs: dict[str, str] = Field(default_factory=lambda: dict(TASK_PROVIDER_DEFAULTS))
    default_models: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_MODELS))

    # Credentials
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    dalle_api_key: Optional[str] = None
    imagen_api_key: Optional[str] = None
    stability_api_key: Optional[str] = None

    # Endpoints
    openai_base_url: str = "https://api.openai.com/v1"
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    anthropic_api_url: str = "https://api.anthropic.com/v1/messages"
    dalle_api_url: str = "https://api.openai.com/v1/images/generations"
    imagen_api_url: str = "https://generativelanguage.googleapis.com/v1beta/models/imagegeneration:generate"
    stability_api_url: str = "https://api.stability.ai/v2beta/stable-image/generate/core"

    anthropic_structured_output_models: tuple[str, ...] = DEFAULT_STRUCTURED_OUTPUT_MODELS

    # Audit log
    audit_log_enabled: bool = True
    audit_log_path: str = "logs/llm_traffic_audit.jsonl"

    # Timing
    http_timeout_s: float = 120.0
    task_timeout_s: Optional[float] = None
    retry_delays_s: tuple[float, ...] = (1.0, 3.0)

    def spec_for(self, task: str) -> str:
        """Return the raw provider spec string configured for a task."""
        return self.task_specs.get(task) or self.default_spec


def _csv(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


def load_config(env: Optional[Mapping[str, str]] = None) -> LLMConfig:
    """Build an LLMConfig from environment variables.

    Args:
        env: Mapping to read from. Defaults to os.environ; tests pass a dict.
    """
    env = os.environ if env is None else env

    task_specs = dict(TASK_PROVIDER_DEFAULTS)
    default_models = dict(DEFAULT_MODELS)
    for key, value in env.items():
        if not value or not value.strip():
            continue
        if key.startswith(TASK_ENV_PREFIX):
            task_specs[key[len(TASK_ENV_PREFIX):].lower()] = value.strip()
        elif key.startswith(DEFAULT_MODEL_ENV_PREFIX):
            suffix = key[len(DEFAULT_MODEL_ENV_PREFIX):].lower()
            provider = "dall-e" if suffix == "dall_e" else suffix
            default_models[provider] = value.strip()

    openai_key = env.get("OPENAI_API_KEY") or None
    gemini_key = env.get("GEMINI_API_KEY") or None

    values = {
        "default_spec": env.get("LLM_DEFAULT_PROVIDER") or "gemini",
        "task_specs": task_specs,
        "default_models": default_models,
        "openai_api_key": openai_key,
        "gemini_api_key": gemini_key,
        "anthropic_api_key": env.get("ANTHROPIC_API_KEY") or None,
        "dalle_api_key": env.get("DALL_E_API_KEY") or openai_key,
        "imagen_api_key": env.get("IMAGEN_API_KEY") or gemini_key,
        "stability_api_key": (
            env.get("STABILITY_API_KEY") or env.get("STABLE_DIFFUSION_API_KEY") or None
        ),
        "audit_log_enabled": _flag(env.get("LLM_AUDIT_LOG_ENABLED"), True),
        "http_timeout_s": float(env.get("LLM_HTTP_TIMEOUT_S") or 120.0),
        "task_timeout_s": _optional_float(env.get("LLM_RUN_TIMEOUT_S")),
    }

    url_vars = {
        "openai_base_url": "OPENAI_BASE_URL",
        "gemini_api_url": "GEMINI_API_URL",
        "anthropic_api_url": "ANTHROPIC_API_URL",
        "dalle_api_url": "DALL_E_API_URL",
        "imagen_api_url": "IMAGEN_API_URL",
        "stability_api_url": "STABILITY_API_URL",
        "audit_log_path": "LLM_AUDIT_LOG_PATH",
    }
    for field_name, var in url_vars.items():
        if env.get(var):
            values[field_name] = env[var]

    if env.get("LLM_RETRY_DELAYS_S"):
        values["retry_delays_s"] = tuple(float(v) for v in _csv(env["LLM_RETRY_DELAYS_S"]))
    if env.get("ANTHROPIC_STRUCTURED_OUTPUT_MODELS") is not None:
        values["anthropic_structured_output_models"] = tuple(
            _csv(env["ANTHROPIC_STRUCTURED_OUTPUT_MODELS"])
        )

    return LLMConfig(**values)
