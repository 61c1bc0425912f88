"""Exceptions raised inside the LLM layer.

Adapters and startup wiring raise these. None of them escape
TaskOrchestrator.run(): the orchestrator converts every exception into a
TaskError so callers only ever see typed results.
"""

from typing import Optional


class LLMError(Exception):
    """Base class for all LLM layer errors."""


class ConfigurationError(LLMError):
    """Raised when task or provider configuration cannot be resolved.

    Surfaces at startup (or at first use of a task), never swallowed.
    """


class UnknownTaskError(LLMError):
    """Raised when a task name has no registered descriptor."""

    def __init__(self, task: str):
        super().__init__(f"Unknown LLM task: {task}")
        self.task = task


class ProviderError(LLMError):
    """Raised by an adapter when a single provider call fails."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.reason = reason


class MissingApiKeyError(ProviderError):
    """The adapter has no API key configured."""


class InvalidRequestError(ProviderError):
    """The invocation request is unusable (e.g. empty user prompt)."""


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-2xx status or the transport failed."""


class EmptyResponseError(ProviderError):
    """The provider answered but no text or binary payload could be extracted.

    ``reason`` carries the provider's finish/stop/block reason when given.
    """
