"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
from typing import Any, Optional


def strip_code_fences(raw: str) -> str:
    """Drop markdown code fence lines (``` or ```json) from a response."""
    text = raw.strip()
    if "```" not in text:
        return text
    lines = text.split("\n")
    lines = [l for l in lines if not l.strip().startswith("```")]
    return "\n".join(lines).strip()


def _parse_between(raw: str, open_char: str, close_char: str) -> Optional[Any]:
    start = raw.find(open_char)
    end = raw.rfind(close_char) + 1
    if start >= 0 and end > start:
        try:
            return json.loads(raw[start:end])
        except json.JSONDecodeError:
            pass
    return None


def parse_llm_json_array(raw: str) -> Optional[list]:
    """Parse a JSON array from an LLM response.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '[' and last ']', then json.loads
    3. Return None, so callers can tell "unparseable" from "empty"
    """
    if not raw:
        return None

    try:
        parsed = json.loads(strip_code_fences(raw))
        if isinstance(parsed, list):
            return parsed
    except json.JSONDecodeError:
        pass

    parsed = _parse_between(raw, "[", "]")
    return parsed if isinstance(parsed, list) else None
