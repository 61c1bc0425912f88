"""Tests for JSON extraction and repair."""

import logging

import pytest

from wizard_llm.llm.parser import (
    extract_json,
    parse_json_content,
    repair_json_string,
    safe_preview,
)
from wizard_llm.llm.providers.base import InvocationResponse


OBJECT = {"title": "Nurse", "tags": ["icu", "nights"], "pay": {"min": 30, "max": 42}}


@pytest.mark.parametrize("raw", [
    '{"title": "Nurse", "tags": ["icu", "nights"], "pay": {"min": 30, "max": 42}}',
    '```json\n{"title": "Nurse", "tags": ["icu", "nights"], "pay": {"min": 30, "max": 42}}\n```',
    '```\n{"title": "Nurse", "tags": ["icu", "nights"], "pay": {"min": 30, "max": 42}}\n```',
    'Sure! Here it is:\n{"title": "Nurse", "tags": ["icu", "nights"], "pay": {"min": 30, "max": 42}}',
    '{"title": "Nurse", "tags": ["icu", "nights"], "pay": {"min": 30, "max": 42}}\nHope this helps.',
    '<think>reasoning...</think>{"title": "Nurse", "tags": ["icu", "nights"], "pay": {"min": 30, "max": 42}}',
])
def test_wrapped_json_is_recovered(raw):
    assert extract_json(raw) == OBJECT


def test_truncated_object_is_closed():
    raw = '{"title": "Nurse", "tags": ["icu", "nights"'
    assert extract_json(raw) == {"title": "Nurse", "tags": ["icu", "nights"]}


def test_unterminated_string_is_closed():
    assert extract_json('{"summary": "Clearer duties') == {"summary": "Clearer duties"}


def test_trailing_commas_are_dropped():
    assert extract_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}


def test_arrays_are_returned():
    assert extract_json("[1, 2, 3]") == [1, 2, 3]


@pytest.mark.parametrize("raw", [None, "", "   ", "I cannot help with that.", 42])
def test_unrecoverable_input_returns_none(raw):
    assert extract_json(raw) is None


def test_recovery_logs_warning(caplog):
    caplog.set_level(logging.DEBUG, logger="wizard-llm")
    extract_json('```json\n{"a": 1}\n```')
    actions = [getattr(r, "_action", None) for r in caplog.records]
    assert "fence_recovered" in actions


def test_repair_closes_in_nesting_order():
    assert repair_json_string('{"a": [{"b": 1') == '{"a": [{"b": 1}]}'


def test_repair_ignores_brackets_inside_strings():
    assert repair_json_string('{"a": "x{[y"') == '{"a": "x{[y"}'


def test_repair_empty_returns_none():
    assert repair_json_string("  ") is None


def test_parse_json_content_prefers_data():
    response = InvocationResponse(text="not json", data={"from": "native"})
    assert parse_json_content(response) == {"from": "native"}


def test_parse_json_content_falls_back_to_text():
    response = InvocationResponse(text='prefix {"a": 1} suffix')
    assert parse_json_content(response) == {"a": 1}


def test_safe_preview_bounds_length():
    assert safe_preview("x" * 1000) == "x" * 400
    assert safe_preview("short") == "short"
    assert safe_preview(None) is None


def test_well_formed_json_needs_no_recovery(caplog):
    caplog.set_level(logging.DEBUG, logger="wizard-llm")
    assert extract_json('{"a": [1, 2]}') == {"a": [1, 2]}
    actions = [getattr(r, "_action", None) for r in caplog.records]
    assert not [a for a in actions if a and a.endswith("_recovered")]


def test_think_tags_inside_string_values_are_kept(caplog):
    caplog.set_level(logging.DEBUG, logger="wizard-llm")
    raw = '{"note": "<think>x</think>", "a": 1}'
    assert extract_json(raw) == {"note": "<think>x</think>", "a": 1}
    actions = [getattr(r, "_action", None) for r in caplog.records]
    assert "stripped_think" not in actions
    assert not [a for a in actions if a and a.endswith("_recovered")]


def test_repair_leaves_commas_inside_strings_alone():
    assert repair_json_string('{"a": "x,]", "b": [1,') == '{"a": "x,]", "b": [1]}'
    assert extract_json('{"a": "x,]", "b": [1, 2,') == {"a": "x,]", "b": [1, 2]}


def test_repair_drops_trailing_commas_outside_strings():
    assert repair_json_string('{"a": [1, 2,], "b": 3,}') == '{"a": [1, 2], "b": 3}'
