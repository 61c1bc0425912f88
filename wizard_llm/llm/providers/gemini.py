"""Gemini adapter (Generative Language REST API).

  POST {api_url}/models/{model}:generateContent
  header x-goog-api-key

Text tasks read the concatenated text parts of the first candidate. Tasks
whose capabilities ask for image output request responseModalities=["IMAGE"]
and return the first inlineData part as data={"imageBase64", "mimeType"}.

Native JSON enforcement (responseMimeType / responseSchema) cannot be
combined with grounding tools. When a task wants search or maps grounding
the adapter keeps the tools, drops the native enforcement, and returns
data=None so the task parser extracts JSON from the text.
"""

from typing import Any, Optional

from wizard_llm.llm.audit import REQUEST, RESPONSE
from wizard_llm.llm.errors import EmptyResponseError
from wizard_llm.llm.providers.base import (
    HttpAdapter,
    InvocationRequest,
    InvocationResponse,
    UsageMetadata,
    parse_image_payload,
)
from wizard_llm.llm.schema_converter import format_for_gemini
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.providers.gemini"
logger = get_logger()


def image_prompt_text(user: str) -> str:
    """Flatten the JSON image payload into Gemini prompt text."""
    payload = parse_image_payload(user, "gemini")
    parts = [payload["prompt"].strip()]
    if payload.get("style"):
        parts.append(f"Style: {payload['style']}")
    if payload.get("negative_prompt"):
        parts.append(f"Avoid: {payload['negative_prompt']}")
    if payload.get("aspect_ratio"):
        parts.append(f"Aspect ratio: {payload['aspect_ratio']}")
    return "\n".join(parts)


def candidate_text(candidate: dict) -> str:
    """Concatenate the text parts of a candidate, skipping thought parts."""
    parts = (candidate.get("content") or {}).get("parts") or []
    chunks = [
        part["text"] for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str) and not part.get("thought")
    ]
    return "".join(chunks).strip()


def candidate_image(candidate: dict) -> Optional[dict]:
    parts = (candidate.get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inlineData") if isinstance(part, dict) else None
        if isinstance(inline, dict) and inline.get("data"):
            return inline
    return None


def usage_from(body: dict, candidate: dict) -> Optional[UsageMetadata]:
    """Normalize usageMetadata. Thought tokens count as response tokens."""
    usage = body.get("usageMetadata")
    grounding = candidate.get("groundingMetadata") or body.get("groundingMetadata") or {}
    queries = grounding.get("webSearchQueries")
    search_queries = len(queries) if isinstance(queries, list) else None

    if not usage:
        if search_queries is None:
            return None
        return UsageMetadata(search_queries=search_queries)

    candidates_tokens = usage.get("candidatesTokenCount")
    thoughts = usage.get("thoughtsTokenCount")
    response_tokens = None
    if candidates_tokens is not None or thoughts is not None:
        response_tokens = (candidates_tokens or 0) + (thoughts or 0)
    return UsageMetadata(
        prompt_tokens=usage.get("promptTokenCount"),
        response_tokens=response_tokens,
        thoughts_tokens=thoughts or None,
        total_tokens=usage.get("totalTokenCount"),
        finish_reason=candidate.get("finishReason"),
        search_queries=search_queries,
        cache_read_tokens=usage.get("cachedContentTokenCount"),
    )


class GeminiAdapter(HttpAdapter):
    provider = "gemini"

    def endpoint(self, model: str) -> str:
        return f"{self.api_url.rstrip('/')}/models/{model}:generateContent"

    def build_body(self, request: InvocationRequest, user: str) -> dict:
        caps = request.capabilities
        text = image_prompt_text(user) if caps.image_output else user

        generation_config: dict[str, Any] = {
            "temperature": request.temperature,
            "maxOutputTokens": self.max_tokens(request),
        }
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": generation_config,
        }
        if request.system and request.system.strip():
            body["systemInstruction"] = {"parts": [{"text": request.system.strip()}]}

        if caps.image_output:
            generation_config["responseModalities"] = ["IMAGE"]
            return body

        tools = []
        if caps.search_grounding:
            tools.append({"googleSearch": {}})
        if caps.maps_grounding:
            tools.append({"googleMaps": {}})
        if tools:
            body["tools"] = tools

        if request.mode == "json":
            if tools:
                log.info(logger, MODULE, "native_json_fallback",
                         "Grounding tools attached; relying on prompt-only JSON",
                         task=request.task, model=request.model)
            else:
                generation_config["responseMimeType"] = "application/json"
                schema = format_for_gemini(request.output_schema)
                if schema is not None:
                    generation_config["responseSchema"] = schema
        return body

    async def invoke(self, request: InvocationRequest) -> InvocationResponse:
        self.ensure_key()
        user = self.ensure_user(request)
        body = self.build_body(request, user)
        url = self.endpoint(request.model)

        await self.record(request, REQUEST, body, provider_endpoint=url)
        resp = await self.post(
            url, request, json=body,
            headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
        )
        payload = resp.json()
        await self.record(request, RESPONSE, payload, provider_endpoint=url)

        candidates = payload.get("candidates") or []
        candidate = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
        metadata = usage_from(payload, candidate)

        if request.capabilities.image_output:
            inline = candidate_image(candidate)
            if inline is None:
                reason = self.empty_reason(payload, candidate)
                log.warning(logger, MODULE, "image_missing",
                            "Gemini response missing inlineData",
                            model=request.model, finish_reason=reason,
                            safety=candidate.get("safetyRatings"))
                raise EmptyResponseError(
                    f"Gemini image response missing image data. Reason: {reason}",
                    provider=self.provider, reason=reason,
                )
            return InvocationResponse(
                data={"imageBase64": inline["data"], "mimeType": inline.get("mimeType")},
                metadata=metadata,
            )

        text = candidate_text(candidate)
        if not text:
            reason = self.empty_reason(payload, candidate)
            log.warning(logger, MODULE, "content_missing",
                        "Gemini response missing textual content",
                        model=request.model, finish_reason=reason,
                        safety=candidate.get("safetyRatings"))
            raise EmptyResponseError(
                f"Gemini response missing content. Reason: {reason}",
                provider=self.provider, reason=reason,
            )

        data = None
        if request.mode == "json" and not request.capabilities.grounding:
            data = self.parse_native_json(text, request)

        log.debug(logger, MODULE, "invoke_done", "Gemini call complete",
                  task=request.task, model=request.model, text_length=len(text),
                  prompt_tokens=metadata.prompt_tokens if metadata else None)
        return InvocationResponse(text=text, data=data, metadata=metadata)

    @staticmethod
    def empty_reason(payload: dict, candidate: dict) -> Optional[str]:
        feedback = payload.get("promptFeedback") or {}
        return candidate.get("finishReason") or feedback.get("blockReason")
