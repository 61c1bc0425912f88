"""OpenAI image generation adapter (DALL-E / gpt-image).

`user` carries the JSON image payload; see parse_image_payload().
"""

from wizard_llm.llm.audit import REQUEST, RESPONSE
from wizard_llm.llm.errors import EmptyResponseError
from wizard_llm.llm.providers.base import (
    HttpAdapter,
    InvocationRequest,
    InvocationResponse,
    UsageMetadata,
    parse_image_payload,
)
from wizard_llm.utils.logging import log, get_logger

MODULE = "llm.providers.dalle"
logger = get_logger()

DEFAULT_SIZE = "1024x1024"


class DalleImageAdapter(HttpAdapter):
    provider = "dall-e"

    async def invoke(self, request: InvocationRequest) -> InvocationResponse:
        self.ensure_key()
        payload = parse_image_payload(request.user, self.provider)

        body = {
            "model": request.model or "gpt-image-1",
            "prompt": payload["prompt"],
            "size": payload.get("size") or DEFAULT_SIZE,
            "response_format": "b64_json",
        }
        if payload.get("negative_prompt"):
            body["negative_prompt"] = payload["negative_prompt"]
        if payload.get("style"):
            body["style"] = payload["style"]

        await self.record(request, REQUEST, body, provider_endpoint=self.api_url)
        resp = await self.post(
            self.api_url, request, json=body,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        data = resp.json()
        await self.record(request, RESPONSE, data, provider_endpoint=self.api_url)

        entries = data.get("data") if isinstance(data.get("data"), list) else []
        first = entries[0] if entries and isinstance(entries[0], dict) else {}
        image_base64 = first.get("b64_json")
        image_url = first.get("url")
        if not image_base64 and not image_url:
            raise EmptyResponseError("DALL-E response missing image payload", provider=self.provider)

        usage = data.get("usage")
        metadata = None
        if usage:
            metadata = UsageMetadata(
                prompt_tokens=usage.get("input_tokens", usage.get("prompt_tokens")),
                response_tokens=usage.get("output_tokens", usage.get("completion_tokens")),
                total_tokens=usage.get("total_tokens"),
            )

        log.info(logger, MODULE, "image_done", "DALL-E image generation completed",
                 model=body["model"], size=body["size"])
        return InvocationResponse(
            data={"imageBase64": image_base64, "imageUrl": image_url},
            metadata=metadata,
        )
