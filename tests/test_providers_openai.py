"""Tests for the OpenAI adapter with the LangChain client stubbed out."""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from wizard_llm.llm.errors import EmptyResponseError, MissingApiKeyError, ProviderHTTPError
from wizard_llm.llm.providers.base import InvocationRequest
from wizard_llm.llm.providers.openai import OpenAIAdapter, message_text
from wizard_llm.schemas.llm_outputs import SuggestOutput


class FakeChat:
    def __init__(self, reply):
        self.reply = reply
        self.bound = None
        self.messages = None

    def bind(self, **kwargs):
        self.bound = kwargs
        return self

    async def ainvoke(self, messages):
        self.messages = messages
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def _adapter(monkeypatch, reply, api_key="sk-test"):
    fake = FakeChat(reply)
    adapter = OpenAIAdapter(api_key)
    monkeypatch.setattr(adapter, "_client", lambda request: fake)
    return adapter, fake


def _request(**overrides):
    values = dict(model="gpt-4o-mini", user="prompt", system="sys", task="refine")
    values.update(overrides)
    return InvocationRequest(**values)


def _reply(content, **metadata):
    return AIMessage(content=content, response_metadata=metadata)


@pytest.mark.asyncio
async def test_text_mode(monkeypatch):
    adapter, fake = _adapter(monkeypatch, _reply("Hi there", finish_reason="stop", token_usage={
        "prompt_tokens": 9, "completion_tokens": 3, "total_tokens": 12,
    }))

    response = await adapter.invoke(_request())

    assert fake.bound is None
    assert isinstance(fake.messages[0], SystemMessage)
    assert isinstance(fake.messages[1], HumanMessage)
    assert response.text == "Hi there"
    assert response.data is None
    assert response.metadata.total_tokens == 12
    assert response.metadata.finish_reason == "stop"


@pytest.mark.asyncio
async def test_json_mode_without_schema(monkeypatch):
    adapter, fake = _adapter(monkeypatch, _reply('{"a": 1}'))

    response = await adapter.invoke(_request(mode="json"))

    assert fake.bound == {"response_format": {"type": "json_object"}}
    assert response.data == {"a": 1}


@pytest.mark.asyncio
async def test_json_mode_with_schema(monkeypatch):
    adapter, fake = _adapter(monkeypatch, _reply('{"autofill_candidates": []}'))

    await adapter.invoke(_request(
        mode="json", output_schema=SuggestOutput, output_schema_name="suggest_output",
    ))

    response_format = fake.bound["response_format"]
    assert response_format["type"] == "json_schema"
    assert response_format["json_schema"]["name"] == "suggest_output"
    assert response_format["json_schema"]["strict"] is True


@pytest.mark.asyncio
async def test_invalid_native_json_leaves_data_empty(monkeypatch):
    adapter, _ = _adapter(monkeypatch, _reply('{"a": 1'))

    response = await adapter.invoke(_request(mode="json"))

    assert response.text == '{"a": 1'
    assert response.data is None


@pytest.mark.asyncio
async def test_client_errors_are_wrapped(monkeypatch):
    error = RuntimeError("rate limited")
    error.status_code = 429
    adapter, _ = _adapter(monkeypatch, error)

    with pytest.raises(ProviderHTTPError) as exc:
        await adapter.invoke(_request())
    assert exc.value.status_code == 429


@pytest.mark.asyncio
async def test_empty_content(monkeypatch):
    adapter, _ = _adapter(monkeypatch, _reply("", finish_reason="length"))

    with pytest.raises(EmptyResponseError) as exc:
        await adapter.invoke(_request())
    assert exc.value.reason == "length"


@pytest.mark.asyncio
async def test_missing_key(monkeypatch):
    adapter, _ = _adapter(monkeypatch, _reply("x"), api_key=None)
    with pytest.raises(MissingApiKeyError):
        await adapter.invoke(_request())


def test_message_text_joins_blocks():
    content = [{"type": "text", "text": "a"}, {"type": "image_url"}, "b"]
    assert message_text(content) == "ab"
    assert message_text(None) == ""
