"""OpenAI chat completions adapter, via langchain_openai.ChatOpenAI.

JSON mode without a schema binds response_format={"type": "json_object"}.
With a schema it binds a strict json_schema response format: every object
closed and every property required.
"""

from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from wizard_llm.llm.audit import REQUEST, RESPONSE, RawTrafficLogger
from wizard_llm.llm.errors import EmptyResponseError, ProviderHTTPError
from wizard_llm.llm.providers.base import (
    BaseAdapter,
    InvocationRequest,
    InvocationResponse,
    UsageMetadata,
)
from wizard_llm.llm.schema_converter import format_for_openai
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.providers.openai"
logger = get_logger()


def message_text(content: Any) -> str:
    """AIMessage.content is a string or a list of content blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks = []
        for block in content:
            if isinstance(block, str):
                chunks.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                chunks.append(block.get("text") or "")
        return "".join(chunks)
    return ""


class OpenAIAdapter(BaseAdapter):
    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        audit: Optional[RawTrafficLogger] = None,
        timeout_s: float = 120.0,
    ):
        super().__init__(api_key, audit)
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _client(self, request: InvocationRequest) -> ChatOpenAI:
        client = ChatOpenAI(
            base_url=self.base_url,
            api_key=self.api_key,
            model=request.model,
            temperature=request.temperature,
            max_tokens=self.max_tokens(request),
            timeout=self.timeout_s,
            max_retries=0,
        )
        log.debug(logger, MODULE, "llm_init", "OpenAI client created",
                  model=request.model, temperature=request.temperature)
        return client

    def response_format(self, request: InvocationRequest) -> Optional[dict]:
        if request.mode != "json":
            return None
        if request.output_schema is not None:
            return format_for_openai(request.output_schema, request.output_schema_name or "response")
        return {"type": "json_object"}

    async def invoke(self, request: InvocationRequest) -> InvocationResponse:
        self.ensure_key()
        user = self.ensure_user(request)

        messages = []
        if request.system:
            messages.append(SystemMessage(content=request.system))
        messages.append(HumanMessage(content=user))

        response_format = self.response_format(request)
        audit_payload = {
            "model": request.model,
            "messages": [
                {"role": "system" if isinstance(m, SystemMessage) else "user", "content": m.content}
                for m in messages
            ],
            "temperature": request.temperature,
            "max_tokens": self.max_tokens(request),
        }
        if response_format:
            audit_payload["response_format"] = response_format

        llm = self._client(request)
        runnable = llm.bind(response_format=response_format) if response_format else llm

        await self.record(request, REQUEST, audit_payload, provider_endpoint=self.endpoint)
        try:
            message = await runnable.ainvoke(messages)
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            log.error(logger, MODULE, "invoke_failed", "OpenAI request failed",
                      task=request.task, model=request.model,
                      error=str(e), error_type=type(e).__name__, status_code=status_code)
            raise ProviderHTTPError(
                f"OpenAI request failed: {e}", provider=self.provider, status_code=status_code,
            ) from e

        response_metadata = getattr(message, "response_metadata", None) or {}
        await self.record(request, RESPONSE, {
            "content": message.content,
            "response_metadata": response_metadata,
        }, provider_endpoint=self.endpoint)

        finish_reason = response_metadata.get("finish_reason")
        text = message_text(message.content).strip()
        if not text:
            log.warning(logger, MODULE, "content_missing",
                        "OpenAI response missing content",
                        task=request.task, model=request.model, finish_reason=finish_reason)
            raise EmptyResponseError(
                f"OpenAI response missing content. Finish reason: {finish_reason}",
                provider=self.provider, reason=finish_reason,
            )

        data = self.parse_native_json(text, request) if request.mode == "json" else None
        return InvocationResponse(text=text, data=data, metadata=self.usage(message))

    @staticmethod
    def usage(message: Any) -> Optional[UsageMetadata]:
        response_metadata = getattr(message, "response_metadata", None) or {}
        token_usage = response_metadata.get("token_usage")
        finish_reason = response_metadata.get("finish_reason")
        if token_usage:
            return UsageMetadata(
                prompt_tokens=token_usage.get("prompt_tokens"),
                response_tokens=token_usage.get("completion_tokens"),
                total_tokens=token_usage.get("total_tokens"),
                finish_reason=finish_reason,
            )
        usage = getattr(message, "usage_metadata", None)
        if usage:
            return UsageMetadata(
                prompt_tokens=usage.get("input_tokens"),
                response_tokens=usage.get("output_tokens"),
                total_tokens=usage.get("total_tokens"),
                finish_reason=finish_reason,
            )
        return None
