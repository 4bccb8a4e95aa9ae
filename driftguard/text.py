"""Text helpers shared by detectors and the LLM boundary."""

from __future__ import annotations

import json
import re
from typing import Any, Optional

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\n")
_FENCE_CLOSE = re.compile(r"```$")
_FIRST_OBJECT = re.compile(r"\{[\s\S]*?\}")

TRUNCATION_MARKER = "\n[truncated]"


def truncate_text(text: str, max_chars: int | None) -> str:
    """Clip ``text`` to ``max_chars`` and mark the cut."""
    if not max_chars or len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def safe_parse_json(text: str | None) -> Optional[Any]:
    """Parse a model completion as JSON, tolerating code fences and chatter."""
    if not text:
        return None
    cleaned = _strip_fence(text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        match = _FIRST_OBJECT.search(cleaned)
        if not match:
            return None
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            return None


def is_truthy(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return False


def line_of(text: str, index: int) -> int:
    """Return 1-based line number for a character index."""
    return text.count("\n", 0, index) + 1


def _strip_fence(text: str) -> str:
    if text.startswith("```"):
        return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text, count=1)).strip()
    return text


__all__ = ["TRUNCATION_MARKER", "is_truthy", "line_of", "safe_parse_json", "truncate_text"]
