from __future__ import annotations

import json

import pytest

from life_encyclopedia.services.json_repair import (
    extract_json_text,
    parse_json_object,
    repair_truncated_json,
    strip_fences,
)


def test_strip_fences_removes_markdown_wrapper():
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences('{"a": 1}') == '{"a": 1}'


def test_extract_json_text_slices_out_prose():
    raw = 'Here is the timeline you asked for: {"name": "Ada"} Hope this helps!'
    assert extract_json_text(raw) == '{"name": "Ada"}'


@pytest.mark.parametrize(
    "text",
    [
        '{"a": 1}',
        '{"events": [{"title": "x", "note": "a \\"quoted\\" word"}]}',
        '{"braces": "{ [ inside strings"}',
    ],
)
def test_repair_leaves_balanced_json_unchanged(text):
    assert repair_truncated_json(text) == text


def test_repair_closes_open_string_then_object():
    repaired = repair_truncated_json('{"name": "Ada", "summary": "Mathematic')
    assert json.loads(repaired) == {"name": "Ada", "summary": "Mathematic"}


def test_repair_closes_arrays_before_objects():
    assert repair_truncated_json('{"tags": ["a", "b"') == '{"tags": ["a", "b"]}'


def test_parse_json_object_recovers_fenced_truncated_output():
    raw = '```json\n{"name": "Ada", "events": ["1815", "1843"'
    assert parse_json_object(raw) == {"name": "Ada", "events": ["1815", "1843"]}


def test_parse_json_object_rejects_non_objects():
    with pytest.raises(json.JSONDecodeError):
        parse_json_object("[1, 2, 3]")
    with pytest.raises(json.JSONDecodeError):
        parse_json_object("no json here")
