"""Stability AI adapter. Requests are multipart form data.

The API answers either with JSON (images/artifacts arrays) or with the raw
image bytes, depending on content negotiation. Both are handled.
"""

import base64
from typing import Optional

from wizard_llm.llm.audit import REQUEST, RESPONSE
from wizard_llm.llm.errors import EmptyResponseError, ProviderHTTPError
from wizard_llm.llm.providers.base import (
    HttpAdapter,
    InvocationRequest,
    InvocationResponse,
    UsageMetadata,
    parse_image_payload,
)
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.providers.stable_diffusion"
logger = get_logger()


def normalize_model(model: Optional[str]) -> str:
    if not model:
        return "sd3"
    lowered = model.lower()
    if "sd3" in lowered:
        return "sd3"
    if "turbo" in lowered:
        return "sd3-turbo"
    if "xl" in lowered:
        return "sd3"
    return model


class StableDiffusionAdapter(HttpAdapter):
    provider = "stable_diffusion"

    async def invoke(self, request: InvocationRequest) -> InvocationResponse:
        self.ensure_key()
        payload = parse_image_payload(request.user, self.provider)

        aspect_ratio = payload.get("aspect_ratio") or "1:1"
        form = {
            "prompt": payload["prompt"],
            "aspect_ratio": aspect_ratio,
            "output_format": payload.get("output_format") or "png",
            "model": normalize_model(request.model),
        }
        if payload.get("negative_prompt"):
            form["negative_prompt"] = payload["negative_prompt"]
        if payload.get("seed") is not None:
            form["seed"] = str(payload["seed"])

        await self.record(request, REQUEST, form, provider_endpoint=self.api_url)
        resp = await self.post(
            self.api_url, request,
            files={key: (None, value) for key, value in form.items()},
            headers={
                "Accept": "image/*,application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )

        content_type = resp.headers.get("content-type", "")
        if "application/json" in content_type:
            data = resp.json()
            await self.record(request, RESPONSE, data, provider_endpoint=self.api_url)
            return self.from_json(data, aspect_ratio)

        if content_type.startswith("image/"):
            encoded = base64.b64encode(resp.content).decode("ascii")
            await self.record(request, RESPONSE, {"contentType": content_type, "base64": encoded},
                              provider_endpoint=self.api_url)
            log.info(logger, MODULE, "image_done", "Stable Diffusion image generated (binary)",
                     model=form["model"], aspect_ratio=aspect_ratio)
            return InvocationResponse(data={"imageBase64": encoded, "imageUrl": None})

        log.error(logger, MODULE, "content_type_failed",
                  "Stable Diffusion returned unsupported content type",
                  content_type=content_type, snippet=resp.text[:200])
        raise ProviderHTTPError(
            f"Stable Diffusion returned unsupported content-type: {content_type}",
            provider=self.provider, status_code=resp.status_code,
        )

    def from_json(self, data: dict, aspect_ratio: str) -> InvocationResponse:
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderHTTPError(f"Stable Diffusion error: {message}", provider=self.provider)

        images = data.get("images") or data.get("artifacts") or []
        image = images[0] if images and isinstance(images[0], dict) else None
        if image is None:
            raise EmptyResponseError("Stable Diffusion response missing images", provider=self.provider)

        image_base64 = image.get("base64") or image.get("base64_data")
        image_url = image.get("url")
        if not image_base64 and not image_url:
            raise EmptyResponseError("Stable Diffusion image has no payload", provider=self.provider)

        reason = image.get("finishReason") or image.get("finish_reason")
        return InvocationResponse(
            data={
                "imageBase64": image_base64,
                "imageUrl": image_url,
                "seed": image.get("seed"),
                "aspectRatio": aspect_ratio,
            },
            metadata=UsageMetadata(finish_reason=reason) if reason else None,
        )
