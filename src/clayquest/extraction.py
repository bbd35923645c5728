"""
Pulls one JSON object out of free-form model output.

Vision models wrap JSON in markdown fences, prepend a sentence, or append an
explanation. The strategies below go from strict to tolerant and stop at the
first one that yields a JSON object.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from clayquest.errors import ExtractionError
from clayquest.models import CharacterProfile

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_GREEDY_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _loads_object(candidate: str) -> dict[str, Any] | None:
    try:
        value = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def _balanced_object_span(text: str) -> str | None:
    """
    Return the substring from the first `{` to its matching `}`.

    Braces inside string literals don't count, so `{"msg": "a {b} c"}` is
    matched as a whole. Escaped quotes (`\\"`) don't end a string.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def extract_json_object(raw_text: str | None) -> dict[str, Any]:
    """
    Extract a single JSON object from `raw_text`.

    Raises ExtractionError (carrying the raw text) when nothing parses; never
    raises anything else.
    """
    if not raw_text or not raw_text.strip():
        raise ExtractionError("model returned no text", raw_text)

    s = _strip_code_fences(raw_text)

    parsed = _loads_object(s)
    if parsed is not None:
        return parsed

    span = _balanced_object_span(s)
    if span is not None:
        parsed = _loads_object(span)
        if parsed is not None:
            return parsed

    m = _GREEDY_OBJECT_RE.search(s)
    if m:
        parsed = _loads_object(m.group(0))
        if parsed is not None:
            return parsed

    if "{" not in s:
        raise ExtractionError("no JSON object found in model output", raw_text)
    raise ExtractionError("could not parse JSON object from model output", raw_text)


def parse_character_profile(raw_text: str | None) -> CharacterProfile:
    data = extract_json_object(raw_text)
    try:
        return CharacterProfile.model_validate(data)
    except ValidationError as exc:
        missing = sorted({".".join(str(p) for p in e["loc"]) for e in exc.errors()})
        raise ExtractionError(f"character profile is incomplete: {', '.join(missing)}", raw_text) from exc
