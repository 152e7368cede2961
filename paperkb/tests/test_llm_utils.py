"""Tests for shared LLM response parsing utilities."""

import pytest
from paperkb.common.llm_utils import parse_llm_json, parse_llm_json_list, parse_llm_lines, string_list


class TestParseLlmJson:
    def test_valid_json(self):
        assert parse_llm_json('{"key": "value"}') == {"key": "value"}

    def test_json_with_markdown_fences(self):
        raw = '```json\n{"type": "factual", "entities": ["bert"]}\n```'
        assert parse_llm_json(raw) == {"type": "factual", "entities": ["bert"]}

    def test_json_embedded_in_text(self):
        raw = 'Here is the plan: {"steps": []} hope it helps.'
        assert parse_llm_json(raw) == {"steps": []}

    def test_no_json_returns_empty_dict(self):
        assert parse_llm_json("This is not JSON at all") == {}

    def test_empty_string_returns_empty_dict(self):
        assert parse_llm_json("") == {}

    def test_invalid_json_with_braces_returns_empty(self):
        assert parse_llm_json('{"broken: json') == {}

    def test_bare_list_is_not_an_object(self):
        assert parse_llm_json('["a", "b"]') == {}


class TestParseLlmJsonList:
    def test_array_in_text(self):
        raw = 'Recommendations:\n["Study A", "Study B"]'
        assert parse_llm_json_list(raw) == ["Study A", "Study B"]

    def test_no_array(self):
        assert parse_llm_json_list("none") == []
        assert parse_llm_json_list("") == []


class TestParseLlmLines:
    def test_strips_enumeration_and_filters_short_lines(self):
        raw = (
            "Here you go:\n"
            "1. How does attention scale with sequence length?\n"
            "2) What are efficient transformer variants?\n"
            "- ok\n"
            "* Which benchmarks compare these models?\n"
            "4. A fourth question that is long enough?"
        )
        questions = parse_llm_lines(raw, limit=3)
        assert questions == [
            "Here you go:",
            "How does attention scale with sequence length?",
            "What are efficient transformer variants?",
        ]

    def test_limit(self):
        raw = "\n".join(f"{i}. Question number {i} about graphs?" for i in range(1, 6))
        assert len(parse_llm_lines(raw, limit=3)) == 3

    def test_empty(self):
        assert parse_llm_lines("") == []


class TestStringList:
    def test_filters_non_strings_and_blanks(self):
        assert string_list(["a", "", None, {"x": 1}, 3]) == ["a", "3"]

    def test_non_list(self):
        assert string_list("not a list") == []

    def test_limit(self):
        assert string_list(["a", "b", "c"], limit=2) == ["a", "b"]
