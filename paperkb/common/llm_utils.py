"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
import re
from typing import List

_ENUMERATION = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict

    Anything that is not a JSON object (a bare list, a string) counts as a
    parse failure.
    """
    if not raw:
        return {}

    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            parsed = json.loads(raw[start:end])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    return {}


def parse_llm_json_list(raw: str) -> list:
    """Parse a JSON array from an LLM response; empty list on failure."""
    if not raw:
        return []

    start = raw.find("[")
    end = raw.rfind("]") + 1
    if start >= 0 and end > start:
        try:
            parsed = json.loads(raw[start:end])
            if isinstance(parsed, list):
                return parsed
        except json.JSONDecodeError:
            pass

    return []


def parse_llm_lines(raw: str, limit: int = 3, min_length: int = 10) -> List[str]:
    """Split a free-text list into items.

    Leading enumeration markers ("1.", "2)", "-") are stripped. Lines of
    ``min_length`` characters or fewer are dropped.
    """
    if not raw:
        return []

    items = []
    for line in raw.split("\n"):
        stripped = line.strip()
        if len(stripped) <= min_length:
            continue
        items.append(_ENUMERATION.sub("", stripped).strip())
    return items[:limit]


def string_list(value, limit: int = None) -> List[str]:
    """Coerce a parsed JSON field into a list of non-empty strings."""
    if not isinstance(value, list):
        return []
    items = [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    return items[:limit] if limit is not None else items
