"""Anthropic Messages API adapter.

Differences from the other chat providers:
  - system prompt is a top-level `system` field, not a message
  - x-api-key + anthropic-version headers instead of a bearer token

JSON enforcement uses one of two mechanisms, never both:
  - Structured Outputs (beta header + output_format) for models listed in
    `structured_output_models`, when the task declares an output schema
  - Prefill: the assistant turn is seeded with "{" and the brace is put back
    in front of the returned text
"""

from typing import Iterable, Optional

import httpx

from wizard_llm.llm.audit import REQUEST, RESPONSE, RawTrafficLogger
from wizard_llm.llm.errors import EmptyResponseError
from wizard_llm.llm.providers.base import (
    HttpAdapter,
    InvocationRequest,
    InvocationResponse,
    UsageMetadata,
)
from wizard_llm.llm.schema_converter import format_for_anthropic
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.providers.anthropic"
logger = get_logger()

ANTHROPIC_VERSION = "2023-06-01"
STRUCTURED_OUTPUTS_BETA = "structured-outputs-2025-11-13"
PREFILL = "{"


class AnthropicAdapter(HttpAdapter):
    provider = "anthropic"

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.anthropic.com/v1/messages",
        audit: Optional[RawTrafficLogger] = None,
        timeout_s: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        structured_output_models: Iterable[str] = (),
    ):
        super().__init__(api_key, api_url, audit=audit, timeout_s=timeout_s, transport=transport)
        self.structured_output_models = frozenset(structured_output_models)

    def supports_structured_outputs(self, model: str) -> bool:
        return model in self.structured_output_models

    async def invoke(self, request: InvocationRequest) -> InvocationResponse:
        self.ensure_key()
        user = self.ensure_user(request)

        structured = (
            request.mode == "json"
            and request.output_schema is not None
            and self.supports_structured_outputs(request.model)
        )
        prefill = request.mode == "json" and not structured

        messages = [{"role": "user", "content": user}]
        if prefill:
            messages.append({"role": "assistant", "content": PREFILL})
            log.debug(logger, MODULE, "prefill_mode",
                      "Using prefill (structured outputs unavailable)",
                      task=request.task, model=request.model,
                      schema_name=request.output_schema_name)

        body = {
            "model": request.model,
            "max_tokens": self.max_tokens(request),
            "messages": messages,
        }
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if structured:
            body["output_format"] = format_for_anthropic(
                request.output_schema, request.output_schema_name or "response",
            )
            headers["anthropic-beta"] = STRUCTURED_OUTPUTS_BETA
            log.debug(logger, MODULE, "structured_mode",
                      "Using structured outputs",
                      task=request.task, model=request.model,
                      schema_name=request.output_schema_name)
        if request.system and request.system.strip():
            body["system"] = request.system
        if 0 <= request.temperature <= 1:
            body["temperature"] = request.temperature

        await self.record(request, REQUEST, body, provider_endpoint=self.api_url)
        resp = await self.post(self.api_url, request, json=body, headers=headers)
        payload = resp.json()
        await self.record(request, RESPONSE, payload, provider_endpoint=self.api_url)

        blocks = payload.get("content") or []
        text = "".join(
            block.get("text") or "" for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
        stop_reason = payload.get("stop_reason")
        if not text.strip():
            log.warning(logger, MODULE, "content_missing",
                        "Anthropic response missing content",
                        task=request.task, model=request.model, stop_reason=stop_reason)
            raise EmptyResponseError(
                f"Anthropic response missing content. Stop reason: {stop_reason}",
                provider=self.provider, reason=stop_reason,
            )

        if prefill and not text.lstrip().startswith(PREFILL):
            text = PREFILL + text
        text = text.strip()

        data = self.parse_native_json(text, request) if request.mode == "json" else None
        return InvocationResponse(text=text, data=data, metadata=self.usage(payload))

    @staticmethod
    def usage(payload: dict) -> Optional[UsageMetadata]:
        usage = payload.get("usage")
        if not usage:
            return None
        input_tokens = usage.get("input_tokens")
        output_tokens = usage.get("output_tokens")
        total = (input_tokens or 0) + (output_tokens or 0)
        return UsageMetadata(
            prompt_tokens=input_tokens,
            response_tokens=output_tokens,
            total_tokens=total or None,
            finish_reason=payload.get("stop_reason"),
            cache_creation_tokens=usage.get("cache_creation_input_tokens"),
            cache_read_tokens=usage.get("cache_read_input_tokens"),
        )
