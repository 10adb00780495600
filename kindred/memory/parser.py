"""Tolerant parsing of summary JSON produced by a language model.

Strategies are tried in order and the first success wins:

1. strict JSON (the whole response is a JSON object)
2. fenced JSON (markdown code fences stripped, or the outermost {...} block)
3. field extraction (regex over ``"field": [...]`` / ``"field": "..."``)

When all three fail the caller builds a schema-valid fallback summary.
"""

import json
import re
from typing import Any, Callable

from loguru import logger

from kindred.errors import SummaryParseError

ARRAY_FIELDS = ("keyThemes", "importantFacts", "userPreferences")
TEXT_FIELDS = ("summaryText", "emotionalTone")

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)


def _load_object(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SummaryParseError(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SummaryParseError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_strict(text: str) -> dict[str, Any]:
    """Parse the response as a bare JSON object."""
    return _load_object(text.strip())


def parse_fenced(text: str) -> dict[str, Any]:
    """Strip markdown code fences, then parse; fall back to the outer braces."""
    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        return _load_object(cleaned)
    except SummaryParseError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise
        return _load_object(cleaned[start:end + 1])


def _extract_array(text: str, name: str) -> list[str] | None:
    match = re.search(rf'"{name}"\s*:\s*\[([^\]]*)\]', text, re.IGNORECASE)
    if not match:
        return None
    body = match.group(1)
    try:
        items = json.loads(f"[{body}]")
    except json.JSONDecodeError:
        items = [part.strip().strip("\"'") for part in body.split(",")]
    return [str(item) for item in items if str(item).strip()]


def _extract_text(text: str, name: str) -> str | None:
    match = re.search(rf'"{name}"\s*:\s*"([^"]+)"', text, re.IGNORECASE)
    return match.group(1) if match else None


def parse_fields(text: str) -> dict[str, Any]:
    """Pull individual fields out of malformed JSON-like text."""
    data: dict[str, Any] = {}
    for name in ARRAY_FIELDS:
        value = _extract_array(text, name)
        if value is not None:
            data[name] = value
    for name in TEXT_FIELDS:
        value = _extract_text(text, name)
        if value is not None:
            data[name] = value

    if not data:
        raise SummaryParseError("no summary fields found")
    return data


STRATEGIES: list[tuple[str, Callable[[str], dict[str, Any]]]] = [
    ("strict", parse_strict),
    ("fenced", parse_fenced),
    ("fields", parse_fields),
]


def parse_summary_response(text: str | None) -> dict[str, Any]:
    """
    Parse model output into a dict of raw summary fields.

    Args:
        text: Raw completion text.

    Returns:
        Dict keyed by the camelCase field names the prompt asks for.

    Raises:
        SummaryParseError: If no strategy could extract anything.
    """
    if not text or not text.strip():
        raise SummaryParseError("empty response")

    errors = []
    for name, strategy in STRATEGIES:
        try:
            data = strategy(text)
        except SummaryParseError as e:
            errors.append(f"{name}: {e}")
            continue
        if name != "strict":
            logger.warning(f"Summary response parsed with '{name}' fallback")
        return data

    raise SummaryParseError("; ".join(errors))
