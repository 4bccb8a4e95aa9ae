"""Payload field rename detection over unified diffs.

Each hunk contributes the field-like keys found on its removed and added
lines. A hunk whose removed keys and added keys are each a single, different
key is a rename candidate; it is reported only when documentation still
mentions the old key and does not yet mention the new one.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional, Sequence

from .models import Finding, RenameCandidate
from .safety import compile_user_pattern

PAYLOAD_SOURCE = "docs-drift"
MAX_DOC_HINT_FILES = 3

_EXCLUDED_KEYS = frozenset(
    {"case", "default", "return", "break", "continue", "if", "else", "for", "while", "switch"}
)
_COMMENT_PREFIXES = ("//", "#", "/*", "*")
_SWITCH_LABEL = re.compile(r"^(?:case|default)\b")
_DIGITS = re.compile(r"^\d+$")

_QUOTED_KEY = re.compile(r"[\"'`]([A-Za-z0-9_.-]+)[\"'`]\s*:")
_BARE_KEY = re.compile(r"\b([A-Za-z_][A-Za-z0-9_-]*)\s*:")
_JSON_TAG = re.compile(r"\bjson\s*:\s*[\"']([^,\"']+)")
_ANNOTATION = re.compile(r"(?:@|\[)\s*(?:JsonProperty(?:Name)?|SerializedName)\s*\(([^)]*)\)")
_STRING_LITERAL = re.compile(r"[\"']([^\"']+)[\"']")


def extract_payload_keys_from_line(line: str) -> List[str]:
    """Return the distinct field-like keys declared on one source or doc line."""
    trimmed = line.strip()
    if not trimmed or trimmed.startswith(_COMMENT_PREFIXES) or _SWITCH_LABEL.match(trimmed):
        return []

    keys: List[str] = []

    def push(key: Optional[str]) -> None:
        cleaned = (key or "").strip()
        if not cleaned or cleaned == "-" or _DIGITS.match(cleaned):
            return
        if cleaned not in keys:
            keys.append(cleaned)

    for match in _QUOTED_KEY.finditer(line):
        push(match.group(1))
    for match in _BARE_KEY.finditer(strip_string_literals(line)):
        if match.group(1) not in _EXCLUDED_KEYS:
            push(match.group(1))
    for match in _JSON_TAG.finditer(line):
        push(match.group(1))
    for match in _ANNOTATION.finditer(line):
        literal = _STRING_LITERAL.search(match.group(1) or "")
        if literal:
            push(literal.group(1))
    return keys


def strip_string_literals(line: str) -> str:
    """Blank out quoted string contents (quotes and escapes included) with spaces."""
    result: List[str] = []
    quote: Optional[str] = None
    escaped = False
    for char in line:
        if escaped:
            escaped = False
            result.append(" ")
            continue
        if char == "\\":
            escaped = True
            result.append(" ")
            continue
        if quote is not None:
            if char == quote:
                quote = None
            result.append(" ")
            continue
        if char in "'\"`":
            quote = char
            result.append(" ")
            continue
        result.append(char)
    return "".join(result)


def compile_allowlist(entries: Iterable[object] | None) -> List[re.Pattern[str]]:
    """Compile allowlist entries: ``/regex/flags``, ``*``/``?`` wildcards or exact keys.

    Regex entries come from configuration and go through the safety probe.
    """
    matchers: List[re.Pattern[str]] = []
    for entry in entries or ():
        if isinstance(entry, re.Pattern):
            matchers.append(entry)
            continue
        raw = str(entry).strip() if entry else ""
        if not raw:
            continue
        if raw.startswith("/") and raw.rfind("/") > 0:
            matchers.append(compile_user_pattern(raw).regex)
        elif "*" in raw or "?" in raw:
            matchers.append(wildcard_to_regex(raw))
        else:
            matchers.append(re.compile(f"^{re.escape(raw)}$"))
    return matchers


def wildcard_to_regex(value: str) -> re.Pattern[str]:
    escaped = re.escape(value).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$")


def matches_allowlist(key: str, allowlist: Sequence[re.Pattern[str]]) -> bool:
    """An empty allowlist admits every key."""
    if not allowlist:
        return True
    return any(matcher.search(key) for matcher in allowlist)


def find_rename_candidates(diff_text: str, allowlist: Sequence[re.Pattern[str]]) -> List[RenameCandidate]:
    """Return at most one rename per hunk of ``diff_text``."""
    candidates: List[RenameCandidate] = []
    removed: List[str] = []
    added: List[str] = []

    def finish_hunk() -> None:
        if len(removed) == 1 and len(added) == 1:
            old_key, new_key = removed[0], added[0]
            if old_key != new_key and (
                matches_allowlist(old_key, allowlist) or matches_allowlist(new_key, allowlist)
            ):
                candidates.append(RenameCandidate(old_key=old_key, new_key=new_key))
        removed.clear()
        added.clear()

    for line in diff_text.split("\n"):
        if line.startswith("@@"):
            finish_hunk()
            continue
        if line.startswith(("+++", "---")):
            continue
        if line.startswith("+"):
            _extend_unique(added, extract_payload_keys_from_line(line[1:]))
        elif line.startswith("-"):
            _extend_unique(removed, extract_payload_keys_from_line(line[1:]))
    finish_hunk()
    return candidates


def detect_renames(
    diff_text: str,
    allowlist: Sequence[re.Pattern[str]],
    doc_key_index: Mapping[str, Sequence[str]],
    *,
    file: Optional[str] = None,
    severity: str = "warning",
) -> List[Finding]:
    """Report renames that leave documentation pointing at the old key."""
    findings: List[Finding] = []
    if not diff_text:
        return findings
    for candidate in find_rename_candidates(diff_text, allowlist):
        if candidate.old_key not in doc_key_index or candidate.new_key in doc_key_index:
            continue
        doc_files = list(doc_key_index.get(candidate.old_key) or ())[:MAX_DOC_HINT_FILES]
        hint = f" Docs mention {candidate.old_key} in {', '.join(doc_files)}." if doc_files else ""
        findings.append(
            Finding(
                source=PAYLOAD_SOURCE,
                type="payload-key-rename",
                severity=severity,
                file=file,
                explanation=f"Payload key renamed from {candidate.old_key} to {candidate.new_key}.{hint}",
                suggestion="Update docs to use the new payload field name or preserve a compatibility alias.",
                metadata={"old_key": candidate.old_key, "new_key": candidate.new_key},
            )
        )
    return findings


# ------------------------------------------------------------------
# Internals


def _extend_unique(target: List[str], keys: Iterable[str]) -> None:
    for key in keys:
        if key not in target:
            target.append(key)


__all__ = [
    "compile_allowlist",
    "detect_renames",
    "extract_payload_keys_from_line",
    "find_rename_candidates",
    "matches_allowlist",
    "strip_string_literals",
    "wildcard_to_regex",
]
