"""Task orchestration: build prompt, invoke provider, parse, retry.

This is the single entry point for running an LLM task:

  result = await orchestrator.run("suggest", {"state": {...}})

Each attempt walks the same states:

  PREPARING  build system/user prompts from (context, AttemptState)
  INVOKING   one adapter call
  PARSING    task parser → dict (SUCCESS) or TaskError (RETRYING)

A task gets 1 + retries attempts. Adapter exceptions and parse failures
share that budget. After an adapter exception the loop sleeps
retry_delays_s[n] before the next attempt; parse failures retry at once.
With strict_on_retry, attempts after the first are built in strict mode.

run() never raises. Every failure comes back as a TaskResult carrying a
TaskError, a missed deadline ("timeout") and an external cancel()
("cancelled") included.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from wizard_llm.llm.errors import ConfigurationError, UnknownTaskError
from wizard_llm.llm.parser import safe_preview
from wizard_llm.llm.providers.base import InvocationRequest, InvocationResponse, ProviderAdapter
from wizard_llm.llm.registry import AttemptState, TaskDescriptor, TaskRegistry
from wizard_llm.llm.request_context import get_request_route
from wizard_llm.llm.selection import ProviderSelectionPolicy
from wizard_llm.schemas.results import (
    REASON_EXCEPTION,
    REASON_INVALID_RESPONSE,
    REASON_TIMEOUT,
    REASON_CANCELLED,
    REASON_UNKNOWN_TASK,
    TaskError,
    TaskResult,
)
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.orchestrator"
logger = get_logger()

DEFAULT_RETRY_DELAYS_S = (1.0, 3.0)


def resolve_max_tokens(descriptor: TaskDescriptor, provider: str) -> Optional[int]:
    return descriptor.max_tokens_for(provider)


def retry_delay(delays: Sequence[float], attempt: int) -> float:
    """Delay after the attempt-th failure (0-based). Last value repeats."""
    if not delays:
        return 0.0
    return delays[min(attempt, len(delays) - 1)]


@dataclass
class _RunProgress:
    """What a run has done so far; read when a deadline or cancel cuts it short."""

    provider: Optional[str] = None
    model: Optional[str] = None
    attempts: int = 0
    last_preview: Optional[str] = None


class TaskOrchestrator:
    def __init__(
        self,
        registry: TaskRegistry,
        policy: ProviderSelectionPolicy,
        adapters: Mapping[str, ProviderAdapter],
        retry_delays_s: Sequence[float] = DEFAULT_RETRY_DELAYS_S,
        default_timeout_s: Optional[float] = None,
    ):
        self.registry = registry
        self.policy = policy
        self.adapters = dict(adapters)
        self.retry_delays_s = tuple(retry_delays_s)
        self.default_timeout_s = default_timeout_s

    async def run(
        self,
        task: str,
        context: Optional[Mapping[str, Any]] = None,
        *,
        timeout_s: Optional[float] = None,
    ) -> TaskResult:
        """Run a task to completion and return a typed result.

        Args:
            task: Registered task name.
            context: Task input handed to the prompt builder and parser.
            timeout_s: Deadline for the whole run (all attempts). Defaults
                to the orchestrator's default_timeout_s; None means no limit.
        """
        context = dict(context or {})
        progress = _RunProgress()
        deadline = timeout_s if timeout_s is not None else self.default_timeout_s
        t0 = time.monotonic()

        try:
            if deadline is None:
                result = await self._run(task, context, progress)
            else:
                result = await asyncio.wait_for(self._run(task, context, progress), deadline)
        except asyncio.TimeoutError:
            log.warning(logger, MODULE, "task_timeout", f"LLM task {task} hit its deadline",
                        task=task, provider=progress.provider, model=progress.model,
                        attempts=progress.attempts, timeout_s=deadline)
            return TaskResult(
                task=task,
                provider=progress.provider,
                model=progress.model,
                attempts=progress.attempts,
                error=TaskError(
                    reason=REASON_TIMEOUT,
                    message=f"Task {task} did not finish within {deadline}s",
                    raw_preview=progress.last_preview,
                ),
            )
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and hasattr(current, "uncancel"):
                current.uncancel()
            log.warning(logger, MODULE, "task_cancelled", f"LLM task {task} was cancelled",
                        task=task, provider=progress.provider, model=progress.model,
                        attempts=progress.attempts)
            return TaskResult(
                task=task,
                provider=progress.provider,
                model=progress.model,
                attempts=progress.attempts,
                error=TaskError(
                    reason=REASON_CANCELLED,
                    message=f"Task {task} was cancelled",
                    raw_preview=progress.last_preview,
                ),
            )

        latency_ms = int((time.monotonic() - t0) * 1000)
        if result.ok:
            log.info(logger, MODULE, "task_done", f"LLM task {task} succeeded",
                     task=task, provider=result.provider, model=result.model,
                     attempts=result.attempts, latency_ms=latency_ms)
        else:
            log.warning(logger, MODULE, "task_failed", f"LLM task {task} failed",
                        task=task, provider=result.provider, model=result.model,
                        attempts=result.attempts, reason=result.error.reason,
                        latency_ms=latency_ms)
        return result

    async def _run(self, task: str, context: dict, progress: _RunProgress) -> TaskResult:
        # PREPARING (once per run)
        try:
            descriptor = self.registry.lookup(task)
        except UnknownTaskError as e:
            return self._failure(task, progress, REASON_UNKNOWN_TASK, str(e))

        try:
            selection = self.policy.select(task)
        except ConfigurationError as e:
            return self._failure(task, progress, REASON_EXCEPTION, str(e))
        progress.provider, progress.model = selection.provider, selection.model

        adapter = self.adapters.get(selection.provider)
        if adapter is None:
            return self._failure(
                task, progress, REASON_EXCEPTION,
                f"No adapter registered for provider {selection.provider}",
            )

        max_tokens = resolve_max_tokens(descriptor, selection.provider)
        route = context.get("route_path") or get_request_route()
        parser_context = {**context, "provider": selection.provider, "model": selection.model}

        state = AttemptState()
        last_error: Optional[TaskError] = None
        total = descriptor.retries + 1

        for attempt in range(total):
            progress.attempts = attempt + 1
            state = AttemptState(
                attempt=attempt,
                strict_mode=descriptor.strict_on_retry and attempt > 0,
                last_raw_preview=state.last_raw_preview,
            )

            # PREPARING: builder failures are programming errors, not retried
            try:
                system = descriptor.system_prompt(context, state)
                user = descriptor.builder(context, state)
            except Exception as e:
                log.error(logger, MODULE, "prompt_failed", f"Prompt builder failed for {task}",
                          task=task, error=str(e), error_type=type(e).__name__)
                return self._failure(task, progress, REASON_EXCEPTION,
                                     f"Prompt builder failed: {e}")
            if not isinstance(user, str) or not user.strip():
                return self._failure(task, progress, REASON_EXCEPTION,
                                     f"Task {task} builder returned an empty prompt")

            request = InvocationRequest(
                model=selection.model,
                system=system,
                user=user,
                mode=descriptor.mode,
                temperature=descriptor.temperature,
                max_tokens=max_tokens,
                task=task,
                output_schema=descriptor.output_schema,
                output_schema_name=descriptor.output_schema_name or task,
                route=route,
                capabilities=descriptor.capabilities,
            )

            # INVOKING
            log.info(logger, MODULE, "invoke_start", f"LLM invocation starting for {task}",
                     task=task, provider=selection.provider, model=selection.model,
                     attempt=attempt, strict_mode=state.strict_mode)
            try:
                response = await adapter.invoke(request)
            except Exception as e:
                last_error = TaskError(
                    reason=REASON_EXCEPTION,
                    message=str(e) or type(e).__name__,
                    raw_preview=progress.last_preview,
                )
                log.error(logger, MODULE, "invoke_failed", f"LLM adapter invocation failed for {task}",
                          task=task, provider=selection.provider, model=selection.model,
                          attempt=attempt, error=str(e), error_type=type(e).__name__)
                if attempt + 1 < total:
                    delay = retry_delay(self.retry_delays_s, attempt)
                    log.info(logger, MODULE, "retry_scheduled", f"Retrying {task} after {delay}s",
                             task=task, attempt=attempt + 1, delay_s=delay)
                    await asyncio.sleep(delay)
                continue

            # PARSING
            outcome = self._parse(task, descriptor, response, parser_context, selection.provider)
            preview = safe_preview(response.text)
            if preview is not None:
                progress.last_preview = preview
                state = AttemptState(attempt, state.strict_mode, preview)

            if isinstance(outcome, TaskError):
                last_error = outcome if outcome.raw_preview else outcome.model_copy(
                    update={"raw_preview": progress.last_preview},
                )
                log.warning(logger, MODULE, "parse_failed", f"LLM parser failure for {task}",
                            task=task, provider=selection.provider, model=selection.model,
                            attempt=attempt, reason=last_error.reason)
                continue

            return TaskResult(
                task=task,
                provider=selection.provider,
                model=selection.model,
                attempts=attempt + 1,
                data=outcome,
                metadata=(
                    response.metadata.model_dump(exclude_none=True) if response.metadata else None
                ),
            )

        last_error = last_error or TaskError(
            reason=REASON_EXCEPTION,
            message=f"Task {task} exhausted retries with no parser result",
        )
        return TaskResult(
            task=task,
            provider=selection.provider,
            model=selection.model,
            attempts=progress.attempts,
            error=last_error,
        )

    def _parse(
        self,
        task: str,
        descriptor: TaskDescriptor,
        response: InvocationResponse,
        context: dict,
        provider: str,
    ):
        """Run the task parser. Returns its dict or a TaskError; never raises."""
        if response.text is None and response.data is None:
            return TaskError(
                reason=REASON_INVALID_RESPONSE,
                message="Provider response carried neither text nor data",
            )

        if descriptor.preview_label:
            log.debug(logger, MODULE, "raw_preview", f"{descriptor.preview_label} raw response",
                      task=task, provider=provider, preview=safe_preview(response.text))

        try:
            parsed = descriptor.parser(response, context)
        except Exception as e:
            log.error(logger, MODULE, "parser_exception", f"Parser raised for {task}",
                      task=task, error=str(e), error_type=type(e).__name__)
            return TaskError(
                reason=REASON_EXCEPTION,
                message=f"Parser raised: {e}",
                raw_preview=safe_preview(response.text),
            )

        if isinstance(parsed, TaskError):
            return parsed
        if parsed is None:
            return TaskError(
                reason=REASON_INVALID_RESPONSE,
                message="Parser did not produce a result",
                raw_preview=safe_preview(response.text),
            )
        return parsed

    def _failure(self, task: str, progress: _RunProgress, reason: str, message: str) -> TaskResult:
        return TaskResult(
            task=task,
            provider=progress.provider,
            model=progress.model,
            attempts=progress.attempts,
            error=TaskError(reason=reason, message=message, raw_preview=progress.last_preview),
        )
