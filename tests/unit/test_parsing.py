"""Unit tests for structured response parsing."""

import pytest

from ideation_system.llm.parsing import Fallback, Parsed, extract_json, parse_or_fallback


@pytest.mark.parametrize("text", [
    '{"a": 1}',
    'Here you go:\n```json\n{"a": 1}\n```\nThanks',
    'Sure! {"a": 1} hope that helps',
])
def test_extract_json_variants(text):
    assert extract_json(text) == {"a": 1}


def test_extract_json_array():
    assert extract_json("ideas: [1, 2]") == [1, 2]


@pytest.mark.parametrize("text", ["", "   ", "no json at all", "{broken"])
def test_extract_json_raises(text):
    with pytest.raises(ValueError):
        extract_json(text)


def test_parse_success():
    result = parse_or_fallback('{"n": 3}', lambda p: p["n"] * 2, lambda: 0)
    assert isinstance(result, Parsed)
    assert result.value == 6
    assert not result.is_fallback


def test_parse_failure_uses_fallback():
    result = parse_or_fallback("garbage", lambda p: p, lambda: "default")
    assert isinstance(result, Fallback)
    assert result.value == "default"
    assert result.is_fallback
    assert "ValueError" in result.reason
    assert result.raw == "garbage"


def test_validation_error_in_parser_uses_fallback():
    def parse(payload):
        raise KeyError("ideas")

    result = parse_or_fallback('{"x": 1}', parse, lambda: [])
    assert result.is_fallback
    assert "KeyError" in result.reason


def test_none_response():
    assert parse_or_fallback(None, lambda p: p, lambda: 1).value == 1
