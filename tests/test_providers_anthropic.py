"""Tests for the Anthropic adapter against a mocked transport."""

import json

import httpx
import pytest

from wizard_llm.llm.errors import EmptyResponseError, InvalidRequestError
from wizard_llm.llm.providers.anthropic import STRUCTURED_OUTPUTS_BETA, AnthropicAdapter
from wizard_llm.llm.providers.base import InvocationRequest
from wizard_llm.schemas.llm_outputs import SuggestOutput

API_URL = "https://anthropic.test/v1/messages"
STRUCTURED_MODEL = "claude-sonnet-4-5-20250929"


def _adapter(text, seen, stop_reason="end_turn"):
    def handler(http_request):
        seen.append(http_request)
        return httpx.Response(200, json={
            "content": [{"type": "text", "text": text}] if text is not None else [],
            "stop_reason": stop_reason,
            "usage": {"input_tokens": 30, "output_tokens": 10, "cache_read_input_tokens": 4},
        })
    return AnthropicAdapter(
        "a-key", API_URL,
        transport=httpx.MockTransport(handler),
        structured_output_models=[STRUCTURED_MODEL],
    )


def _request(**overrides):
    values = dict(model=STRUCTURED_MODEL, user="prompt", system="sys", task="suggest")
    values.update(overrides)
    return InvocationRequest(**values)


@pytest.mark.asyncio
async def test_structured_outputs_for_supported_model():
    seen = []
    adapter = _adapter('{"autofill_candidates": []}', seen)

    response = await adapter.invoke(_request(
        mode="json", output_schema=SuggestOutput, output_schema_name="suggest_output",
    ))

    http_request = seen[0]
    body = json.loads(http_request.content)
    assert http_request.headers["anthropic-beta"] == STRUCTURED_OUTPUTS_BETA
    assert http_request.headers["x-api-key"] == "a-key"
    assert http_request.headers["anthropic-version"] == "2023-06-01"
    assert body["output_format"]["type"] == "json_schema"
    assert body["output_format"]["schema"]["additionalProperties"] is False
    # Never combined with prefill
    assert body["messages"] == [{"role": "user", "content": "prompt"}]
    assert body["system"] == "sys"
    assert response.data == {"autofill_candidates": []}


@pytest.mark.asyncio
async def test_prefill_for_other_models():
    seen = []
    adapter = _adapter('"a": 1}', seen)

    response = await adapter.invoke(_request(
        model="claude-3-5-haiku-20241022", mode="json", output_schema=SuggestOutput,
    ))

    http_request = seen[0]
    body = json.loads(http_request.content)
    assert "anthropic-beta" not in http_request.headers
    assert "output_format" not in body
    assert body["messages"][-1] == {"role": "assistant", "content": "{"}
    assert response.text == '{"a": 1}'
    assert response.data == {"a": 1}


@pytest.mark.asyncio
async def test_prefill_not_doubled():
    seen = []
    adapter = _adapter('{"a": 1}', seen)

    response = await adapter.invoke(_request(model="claude-3-5-haiku-20241022", mode="json"))

    assert response.text == '{"a": 1}'


@pytest.mark.asyncio
async def test_text_mode_has_no_json_machinery():
    seen = []
    adapter = _adapter("Plain reply", seen)

    response = await adapter.invoke(_request(temperature=1.5))

    body = json.loads(seen[0].content)
    assert len(body["messages"]) == 1
    assert "temperature" not in body
    assert response.text == "Plain reply"
    assert response.data is None
    assert response.metadata.total_tokens == 40
    assert response.metadata.cache_read_tokens == 4


@pytest.mark.asyncio
async def test_empty_content_raises_with_stop_reason():
    adapter = _adapter(None, [], stop_reason="max_tokens")
    with pytest.raises(EmptyResponseError) as exc:
        await adapter.invoke(_request())
    assert exc.value.reason == "max_tokens"


@pytest.mark.asyncio
async def test_blank_user_prompt_rejected():
    adapter = _adapter("x", [])
    with pytest.raises(InvalidRequestError):
        await adapter.invoke(_request(user="   "))
