"""Tests for canonical schema → provider dialect conversion."""

from typing import Any, Optional

import pytest
from pydantic import BaseModel, Field

from wizard_llm.llm.schema_converter import (
    RECORD_NOTE,
    canonical_json_schema,
    decode_json_field,
    format_for_anthropic,
    format_for_gemini,
    format_for_openai,
    to_provider_schema,
)
from wizard_llm.schemas.llm_outputs import RefineOutput, SuggestOutput


class Pay(BaseModel):
    """Pay band."""
    min: float = 0
    max: Optional[float] = None


class Posting(BaseModel):
    title: str = Field(..., title="Job title", examples=["Nurse"])
    pay: Pay
    extras: dict[str, Any] = Field(default_factory=dict, description="Free-form extras")
    tags: list[str] = Field(default_factory=list)


def _objects(node):
    """Yield every object node in a schema tree."""
    if isinstance(node, dict):
        if node.get("type") == "object":
            yield node
        for value in node.values():
            yield from _objects(value)
    elif isinstance(node, list):
        for item in node:
            yield from _objects(item)


def _keys(node):
    if isinstance(node, dict):
        for key, value in node.items():
            yield key
            yield from _keys(value)
    elif isinstance(node, list):
        for item in node:
            yield from _keys(item)


@pytest.mark.parametrize("family", ["openai", "anthropic"])
def test_closed_families_close_every_object(family):
    schema = to_provider_schema(Posting, family)
    objects = list(_objects(schema))
    assert objects
    for node in objects:
        assert node["additionalProperties"] is False


def test_openai_requires_every_property():
    schema = to_provider_schema(Posting, "openai")
    assert sorted(schema["required"]) == ["extras", "pay", "tags", "title"]
    assert sorted(schema["properties"]["pay"]["required"]) == ["max", "min"]


def test_anthropic_keeps_declared_required():
    schema = to_provider_schema(Posting, "anthropic")
    assert sorted(schema["required"]) == ["pay", "title"]


@pytest.mark.parametrize("family", ["openai", "anthropic"])
def test_open_records_become_strings(family):
    schema = to_provider_schema(Posting, family)
    extras = schema["properties"]["extras"]
    assert extras["type"] == "string"
    assert RECORD_NOTE in extras["description"]
    assert extras["description"].startswith("Free-form extras")


def test_refine_record_is_string_for_closed_families():
    schema = to_provider_schema(RefineOutput, "openai")
    assert schema["properties"]["refined_job"]["type"] == "string"


def test_gemini_strips_additional_properties_and_meta():
    schema = format_for_gemini(Posting)
    keys = set(_keys(schema))
    assert "additionalProperties" not in keys
    assert "$defs" not in keys
    assert "$ref" not in keys
    assert "examples" not in keys
    # Open records stay objects for gemini
    assert schema["properties"]["extras"]["type"] == "object"


def test_property_named_title_survives_stripping():
    raw = {
        "type": "object",
        "title": "Doc",
        "properties": {"title": {"type": "string", "title": "Title"}},
    }
    schema = to_provider_schema(raw, "anthropic")
    assert "title" not in schema
    assert schema["properties"]["title"] == {"type": "string"}


def test_refs_are_inlined():
    schema = canonical_json_schema(SuggestOutput)
    items = schema["properties"]["autofill_candidates"]["items"]
    assert "$ref" not in items
    assert "fieldId" in items["properties"]


def test_recursive_refs_raise():
    raw = {
        "$defs": {"Node": {"type": "object", "properties": {"child": {"$ref": "#/$defs/Node"}}}},
        "$ref": "#/$defs/Node",
    }
    with pytest.raises(ValueError):
        canonical_json_schema(raw)


def test_unknown_family_raises():
    with pytest.raises(ValueError):
        to_provider_schema(Posting, "mistral")


def test_none_schema_passes_through():
    assert format_for_openai(None) is None
    assert format_for_anthropic(None) is None
    assert format_for_gemini(None) is None


def test_openai_wrapper_shape():
    wrapped = format_for_openai(SuggestOutput, "suggest_output")
    assert wrapped["type"] == "json_schema"
    assert wrapped["json_schema"]["name"] == "suggest_output"
    assert wrapped["json_schema"]["strict"] is True


def test_anthropic_wrapper_shape():
    wrapped = format_for_anthropic(SuggestOutput)
    assert wrapped["type"] == "json_schema"
    assert wrapped["schema"]["type"] == "object"


def test_input_schema_not_mutated():
    raw = {"type": "object", "properties": {"a": {"type": "string"}}}
    to_provider_schema(raw, "openai")
    assert raw == {"type": "object", "properties": {"a": {"type": "string"}}}


@pytest.mark.parametrize("value, expected", [
    ({"a": 1}, {"a": 1}),
    ('{"a": 1}', {"a": 1}),
    ("[1, 2]", None),
    ("not json", None),
    ("", None),
    (None, None),
])
def test_decode_json_field(value, expected):
    assert decode_json_field(value) == expected


class Shift(BaseModel):
    start: str


class Roster(BaseModel):
    shift: Optional[Shift] = None
    backups: list[Shift] = Field(default_factory=list)


@pytest.mark.parametrize("family", ["openai", "anthropic"])
def test_union_branches_and_array_items_are_closed(family):
    schema = to_provider_schema(Roster, family)
    branches = schema["properties"]["shift"]["anyOf"]
    objects = [b for b in branches if b.get("type") == "object"]
    assert objects and all(b["additionalProperties"] is False for b in objects)
    assert schema["properties"]["backups"]["items"]["additionalProperties"] is False
