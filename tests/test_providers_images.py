"""Tests for the image adapters against mocked transports."""

import json

import httpx
import pytest

from wizard_llm.llm.errors import EmptyResponseError, InvalidRequestError, ProviderHTTPError
from wizard_llm.llm.providers.base import InvocationRequest, TaskCapabilities
from wizard_llm.llm.providers.dalle import DalleImageAdapter
from wizard_llm.llm.providers.imagen import ImagenImageAdapter
from wizard_llm.llm.providers.stable_diffusion import StableDiffusionAdapter, normalize_model

PAYLOAD = json.dumps({
    "prompt": "A sunny warehouse",
    "negativePrompt": "text, logos",
    "style": "vivid",
    "aspect_ratio": "16:9",
    "seed": 7,
})


def _transport(response, seen):
    def handler(http_request):
        seen.append(http_request)
        return response
    return httpx.MockTransport(handler)


def _request(model, user=PAYLOAD):
    return InvocationRequest(
        model=model, user=user, task="image_generation",
        capabilities=TaskCapabilities(image_output=True),
    )


# =============================================================================
# DALL-E
# =============================================================================

@pytest.mark.asyncio
async def test_dalle_request_and_response():
    seen = []
    reply = httpx.Response(200, json={"data": [{"b64_json": "aW1n"}]})
    adapter = DalleImageAdapter("sk", "https://dalle.test/gen", transport=_transport(reply, seen))

    response = await adapter.invoke(_request("gpt-image-1"))

    body = json.loads(seen[0].content)
    assert seen[0].headers["authorization"] == "Bearer sk"
    assert body == {
        "model": "gpt-image-1",
        "prompt": "A sunny warehouse",
        "size": "1024x1024",
        "response_format": "b64_json",
        "negative_prompt": "text, logos",
        "style": "vivid",
    }
    assert response.data == {"imageBase64": "aW1n", "imageUrl": None}


@pytest.mark.asyncio
async def test_dalle_missing_image():
    reply = httpx.Response(200, json={"data": []})
    adapter = DalleImageAdapter("sk", "https://dalle.test/gen", transport=_transport(reply, []))
    with pytest.raises(EmptyResponseError):
        await adapter.invoke(_request("gpt-image-1"))


@pytest.mark.asyncio
@pytest.mark.parametrize("user", ["", "not json", "[]", '{"style": "vivid"}'])
async def test_bad_image_payload_rejected(user):
    reply = httpx.Response(200, json={})
    adapter = DalleImageAdapter("sk", "https://dalle.test/gen", transport=_transport(reply, []))
    with pytest.raises(InvalidRequestError):
        await adapter.invoke(_request("gpt-image-1", user=user))


# =============================================================================
# IMAGEN
# =============================================================================

@pytest.mark.asyncio
async def test_imagen_key_in_query_and_alias():
    seen = []
    reply = httpx.Response(200, json={
        "candidates": [{"image": {"base64": "aW1n"}, "finishReason": "SUCCESS"}],
    })
    adapter = ImagenImageAdapter(
        "g-key", "https://imagen.test/generate",
        transport=_transport(reply, seen),
        model_aliases={"Imagen-Fast": "imagen-3.0-fast-generate-001"},
    )

    response = await adapter.invoke(_request("imagen-fast"))

    assert seen[0].url.params["key"] == "g-key"
    body = json.loads(seen[0].content)
    assert body["model"] == "imagen-3.0-fast-generate-001"
    assert body["prompt"] == {"text": "A sunny warehouse"}
    assert body["aspect_ratio"] == "16:9"
    assert body["negative_prompt"] == "text, logos"
    assert response.data["imageBase64"] == "aW1n"
    assert response.metadata.finish_reason == "SUCCESS"


@pytest.mark.asyncio
async def test_imagen_missing_image():
    reply = httpx.Response(200, json={"candidates": [{"finishReason": "BLOCKED"}]})
    adapter = ImagenImageAdapter("g-key", "https://imagen.test/generate",
                                 transport=_transport(reply, []))
    with pytest.raises(EmptyResponseError) as exc:
        await adapter.invoke(_request("imagen-3.0-fast-generate-001"))
    assert exc.value.reason == "BLOCKED"


# =============================================================================
# STABLE DIFFUSION
# =============================================================================

@pytest.mark.asyncio
async def test_stable_diffusion_binary_response():
    seen = []
    reply = httpx.Response(200, content=b"PNGDATA", headers={"content-type": "image/png"})
    adapter = StableDiffusionAdapter("st", "https://sd.test/core", transport=_transport(reply, seen))

    response = await adapter.invoke(_request("sd3-large"))

    http_request = seen[0]
    assert http_request.headers["authorization"] == "Bearer st"
    assert http_request.headers["content-type"].startswith("multipart/form-data")
    form = http_request.content.decode()
    assert 'name="prompt"' in form
    assert 'name="seed"' in form
    assert response.data == {"imageBase64": "UE5HREFUQQ==", "imageUrl": None}


@pytest.mark.asyncio
async def test_stable_diffusion_json_response():
    reply = httpx.Response(200, json={"images": [{"base64": "aW1n", "seed": 7}]})
    adapter = StableDiffusionAdapter("st", "https://sd.test/core", transport=_transport(reply, []))

    response = await adapter.invoke(_request("sd3"))

    assert response.data["imageBase64"] == "aW1n"
    assert response.data["aspectRatio"] == "16:9"


@pytest.mark.asyncio
async def test_stable_diffusion_json_error():
    reply = httpx.Response(200, json={"error": {"message": "nsfw"}})
    adapter = StableDiffusionAdapter("st", "https://sd.test/core", transport=_transport(reply, []))
    with pytest.raises(ProviderHTTPError, match="nsfw"):
        await adapter.invoke(_request("sd3"))


@pytest.mark.asyncio
async def test_stable_diffusion_unknown_content_type():
    reply = httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"})
    adapter = StableDiffusionAdapter("st", "https://sd.test/core", transport=_transport(reply, []))
    with pytest.raises(ProviderHTTPError):
        await adapter.invoke(_request("sd3"))


@pytest.mark.parametrize("model, expected", [
    (None, "sd3"),
    ("sd3-large", "sd3"),
    ("stable-diffusion-turbo", "sd3-turbo"),
    ("sdxl", "sd3"),
    ("core", "core"),
])
def test_normalize_model(model, expected):
    assert normalize_model(model) == expected
