"""Imagen adapter. The API key travels as a `key` query parameter."""

from typing import Iterable, Mapping, Optional

import httpx

from wizard_llm.llm.audit import REQUEST, RESPONSE, RawTrafficLogger
from wizard_llm.llm.errors import EmptyResponseError
from wizard_llm.llm.providers.base import (
    HttpAdapter,
    InvocationRequest,
    InvocationResponse,
    UsageMetadata,
    parse_image_payload,
)
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.providers.imagen"
logger = get_logger()

DEFAULT_IMAGEN_MODEL = "imagen-3.0-fast-generate-001"


class ImagenImageAdapter(HttpAdapter):
    provider = "imagen"

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str,
        audit: Optional[RawTrafficLogger] = None,
        timeout_s: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        model_aliases: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(api_key, api_url, audit=audit, timeout_s=timeout_s, transport=transport)
        self.model_aliases = {
            key.strip().lower(): value
            for key, value in (model_aliases or {}).items()
            if key and value
        }

    def resolve_model(self, model: Optional[str]) -> str:
        if model and model.strip().lower() in self.model_aliases:
            return self.model_aliases[model.strip().lower()]
        return model or DEFAULT_IMAGEN_MODEL

    async def invoke(self, request: InvocationRequest) -> InvocationResponse:
        self.ensure_key()
        payload = parse_image_payload(request.user, self.provider)

        body = {
            "model": self.resolve_model(request.model),
            "prompt": {"text": payload["prompt"]},
            "aspect_ratio": payload.get("aspect_ratio") or "1:1",
        }
        if payload.get("negative_prompt"):
            body["negative_prompt"] = payload["negative_prompt"]

        await self.record(request, REQUEST, body, provider_endpoint=self.api_url)
        resp = await self.post(self.api_url, request, json=body, params={"key": self.api_key})
        data = resp.json()
        await self.record(request, RESPONSE, data, provider_endpoint=self.api_url)

        candidates = data.get("candidates") or []
        first = candidates[0] if candidates and isinstance(candidates[0], dict) else {}
        image = first.get("image") or {}
        if not image.get("base64"):
            reason = first.get("finishReason")
            log.warning(logger, MODULE, "image_missing", "Imagen response missing candidates",
                        model=body["model"], finish_reason=reason)
            raise EmptyResponseError(
                f"Imagen response missing image. Reason: {reason}",
                provider=self.provider, reason=reason,
            )

        reason = first.get("finishReason")
        return InvocationResponse(
            data={"imageBase64": image["base64"], "imageUrl": None},
            metadata=UsageMetadata(finish_reason=reason) if reason else None,
        )
