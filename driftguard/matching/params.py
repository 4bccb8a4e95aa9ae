"""Parameter-list normalization and best-match selection for function facts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

_SIGNATURE_PARAMS = re.compile(r"\((.*)\)")
_LEADING_DOTS = re.compile(r"^[.\s]+")
_NON_NAME_CHARS = re.compile(r"[^A-Za-z0-9_$-]")
_TYPE_PUNCTUATION = re.compile(r"[.<>\[\]]")
_TRAILING_PUNCTUATION = re.compile(r"[,)]")

_OPENERS = frozenset("([{<")
_CLOSERS = frozenset(")]}>")

GO_PRIMITIVES = frozenset(
    {
        "string",
        "int",
        "int64",
        "int32",
        "int16",
        "int8",
        "uint",
        "uint64",
        "uint32",
        "uint16",
        "uint8",
        "float64",
        "float32",
        "bool",
        "error",
        "byte",
        "rune",
        "any",
    }
)


@dataclass(frozen=True)
class ParamVariant:
    """One documented spelling of a function: its normalized params and where it came from."""

    params: tuple[str, ...]
    signature: str
    file: str


def split_params(text: str) -> List[str]:
    """Split on commas that are not nested inside brackets, braces, parens or generics."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    for char in text:
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth = max(0, depth - 1)
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    if current:
        parts.append("".join(current))
    return parts


def normalize_param_name(text: str | None) -> str:
    """Reduce one parameter declaration to its bare name.

    Defaults, rest markers, optional markers and annotations are dropped. For a
    two-token ``type name`` / ``name type`` pair the identifier-shaped token wins.
    """
    if not text:
        return ""
    cleaned = text.strip()
    if not cleaned:
        return ""
    if cleaned.startswith("..."):
        cleaned = cleaned[3:]
    cleaned = cleaned.replace("?", "")
    cleaned = cleaned.split("=")[0].strip()
    if not cleaned:
        return ""
    if ":" in cleaned:
        cleaned = cleaned.split(":")[0].strip()

    tokens = cleaned.split()
    if not tokens:
        return ""
    if len(tokens) == 1:
        return strip_token(tokens[0])

    first, last = tokens[0], tokens[-1]
    if is_go_type_token(last):
        return strip_token(first)
    if is_type_token(first) and not is_type_token(last):
        return strip_token(last)
    if is_type_token(last) and not is_type_token(first):
        return strip_token(first)
    return strip_token(last)


def normalize_param_list(text: str | None) -> List[str]:
    if not text:
        return []
    names = (normalize_param_name(param) for param in split_params(text))
    return [name for name in names if name]


def strip_token(token: str) -> str:
    return _NON_NAME_CHARS.sub("", _LEADING_DOTS.sub("", token))


def is_go_type_token(token: str | None) -> bool:
    if not token:
        return False
    normalized = _TRAILING_PUNCTUATION.sub("", token)
    if normalized in GO_PRIMITIVES:
        return True
    if normalized.startswith(("[]", "map[", "*")):
        return True
    return any(char in normalized for char in ".[]")


def is_type_token(token: str | None) -> bool:
    if not token:
        return False
    normalized = _TRAILING_PUNCTUATION.sub("", token)
    if normalized.startswith(("[]", "*", "map[")):
        return True
    if _TYPE_PUNCTUATION.search(normalized):
        return True
    return normalized[:1].isupper() and normalized[:1].isascii()


def signature_params(signature: str) -> str:
    """Return the raw text between the outermost parentheses of a signature."""
    match = _SIGNATURE_PARAMS.search(signature)
    return match.group(1) if match else ""


def param_key(params: Sequence[str]) -> str:
    return ",".join(params)


def difference(left: Sequence[str], right: Sequence[str]) -> List[str]:
    """Items of ``left`` absent from ``right``, in ``left`` order."""
    right_set = set(right)
    return [item for item in left if item not in right_set]


def intersection_size(left: Sequence[str], right: Sequence[str]) -> int:
    right_set = set(right)
    return sum(1 for item in left if item in right_set)


def match_score(code_params: Sequence[str], doc_params: Sequence[str]) -> int:
    overlap = intersection_size(code_params, doc_params)
    total_diff = len(difference(code_params, doc_params)) + len(difference(doc_params, code_params))
    return overlap * 2 - total_diff


def choose_best_match(code_params: Sequence[str], variants: Sequence[ParamVariant]) -> Optional[ParamVariant]:
    """Pick the documented variant closest to ``code_params``.

    Score is ``2 * overlap - (missing + extra)``; only a strictly higher
    score replaces the current best, so the first-seen variant wins ties.
    """
    if not variants:
        return None
    best = variants[0]
    best_score = -1
    for variant in variants:
        score = match_score(code_params, variant.params)
        if score > best_score:
            best_score = score
            best = variant
    return best


__all__ = [
    "GO_PRIMITIVES",
    "ParamVariant",
    "choose_best_match",
    "difference",
    "intersection_size",
    "is_go_type_token",
    "is_type_token",
    "match_score",
    "normalize_param_list",
    "normalize_param_name",
    "param_key",
    "signature_params",
    "split_params",
    "strip_token",
]
