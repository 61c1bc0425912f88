"""Uniform provider adapter contract.

Every backend (text or image) implements one coroutine:

    async def invoke(request: InvocationRequest) -> InvocationResponse

Adapters are single-shot: they never retry and never fabricate content.
They raise ProviderError subclasses when the key is missing, the HTTP call
fails, or nothing can be extracted from the response. Retrying is the
orchestrator's job.
"""

import json
from typing import Any, Literal, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, ConfigDict

from wizard_llm.llm.audit import RawTrafficLogger
from wizard_llm.llm.errors import InvalidRequestError, MissingApiKeyError, ProviderHTTPError
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.providers"
logger = get_logger()

Mode = Literal["text", "json"]


class TaskCapabilities(BaseModel):
    """What a task wants from the provider beyond plain generation.

    Resolved once per task (on its descriptor) instead of being re-derived
    from task-name lists inside each adapter.
    """

    model_config = ConfigDict(frozen=True)

    search_grounding: bool = False
    maps_grounding: bool = False
    image_output: bool = False

    @property
    def grounding(self) -> bool:
        return self.search_grounding or self.maps_grounding


class UsageMetadata(BaseModel):
    """Token and grounding usage normalized across providers."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: Optional[int] = None
    response_tokens: Optional[int] = None
    thoughts_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    finish_reason: Optional[str] = None
    search_queries: Optional[int] = None
    cache_creation_tokens: Optional[int] = None
    cache_read_tokens: Optional[int] = None


class InvocationRequest(BaseModel):
    """Normalized adapter input."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    model: str
    user: str
    system: Optional[str] = None
    mode: Mode = "text"
    temperature: float = 0.2
    max_tokens: Optional[int] = None
    task: Optional[str] = None
    output_schema: Optional[Any] = None
    output_schema_name: Optional[str] = None
    route: Optional[str] = None
    capabilities: TaskCapabilities = TaskCapabilities()


class InvocationResponse(BaseModel):
    """Normalized adapter output. Created fresh per call."""

    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    data: Optional[Any] = None
    metadata: Optional[UsageMetadata] = None


@runtime_checkable
class ProviderAdapter(Protocol):
    """The single method every backend exposes."""

    provider: str

    async def invoke(self, request: InvocationRequest) -> InvocationResponse:
        ...


class BaseAdapter:
    """Shared plumbing: key checks, audit logging, payload parsing."""

    provider: str = "base"
    default_max_tokens: int = 800

    def __init__(self, api_key: Optional[str], audit: Optional[RawTrafficLogger] = None):
        self.api_key = api_key
        self.audit = audit

    def ensure_key(self) -> None:
        if not self.api_key:
            raise MissingApiKeyError(f"{self.provider} API key missing", provider=self.provider)

    def ensure_user(self, request: InvocationRequest) -> str:
        user = (request.user or "").strip()
        if not user:
            raise InvalidRequestError(
                f"{self.provider} adapter requires a user prompt", provider=self.provider,
            )
        return user

    def max_tokens(self, request: InvocationRequest) -> int:
        return request.max_tokens or self.default_max_tokens

    async def record(
        self,
        request: InvocationRequest,
        direction: str,
        payload: Any,
        provider_endpoint: Optional[str] = None,
    ) -> None:
        if self.audit is None:
            return
        await self.audit.record(
            request.task or "text", direction, payload,
            endpoint=request.route, provider_endpoint=provider_endpoint,
        )

    def parse_native_json(self, text: str, request: InvocationRequest) -> Optional[Any]:
        """Parse text produced under native JSON enforcement.

        Returns None (and logs) when the text is not valid JSON; the task
        parser then falls back to extraction/repair.
        """
        candidate = text.strip()
        if candidate.startswith("```"):
            candidate = candidate.strip("`")
            if candidate.lower().startswith("json"):
                candidate = candidate[4:]
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as e:
            log.warning(logger, MODULE, "native_json_failed",
                        f"Failed to parse JSON from {self.provider} response",
                        provider=self.provider, task=request.task,
                        error=str(e), preview=text[:200])
            return None


def parse_image_payload(user: str, provider: str) -> dict:
    """Decode the JSON image request every image task sends as `user`.

    Expected keys: prompt (required), negative_prompt, style, size,
    aspect_ratio, seed.
    """
    if not user or not user.strip():
        raise InvalidRequestError("Image generation payload missing", provider=provider)
    try:
        payload = json.loads(user)
    except json.JSONDecodeError as e:
        raise InvalidRequestError(
            f"Invalid image generation payload: {e}", provider=provider,
        ) from e
    if not isinstance(payload, dict):
        raise InvalidRequestError("Image generation payload must be an object", provider=provider)
    prompt = payload.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidRequestError("Image generation payload missing prompt", provider=provider)
    if payload.get("negativePrompt") and not payload.get("negative_prompt"):
        payload["negative_prompt"] = payload["negativePrompt"]
    return payload


class HttpAdapter(BaseAdapter):
    """Adapter that talks to its provider over httpx.

    A transport can be injected (httpx.MockTransport in tests); by default
    each call opens its own AsyncClient, so adapters hold no connection state
    and are safe for concurrent use.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str,
        audit: Optional[RawTrafficLogger] = None,
        timeout_s: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, audit)
        self.api_url = api_url
        self.timeout_s = timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s), transport=self._transport)

    async def post(self, url: str, request: InvocationRequest, **kwargs) -> httpx.Response:
        """POST and raise ProviderHTTPError on transport failure or non-2xx."""
        try:
            async with self._client() as client:
                resp = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            log.error(logger, MODULE, "transport_failed",
                      f"{self.provider} request failed",
                      error=str(e), error_type=type(e).__name__,
                      provider=self.provider, task=request.task)
            raise ProviderHTTPError(
                f"{self.provider} request failed: {e}", provider=self.provider,
            ) from e

        if resp.status_code >= 400:
            message = provider_error_message(resp)
            if resp.status_code == 429:
                log.warning(logger, MODULE, "rate_limited",
                            f"{self.provider} rate limit hit",
                            provider=self.provider, task=request.task)
            raise ProviderHTTPError(
                f"{self.provider} request failed: {resp.status_code} {message}",
                provider=self.provider,
                status_code=resp.status_code,
            )
        return resp


def provider_error_message(resp: httpx.Response) -> str:
    """Pull the provider's stated error out of an error response."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return resp.text[:500]
