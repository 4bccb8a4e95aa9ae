"""Documentation and policy fact extraction.

Prose is scanned far more loosely than code: any ``name(params)`` token is a
candidate function mention, any ``VERB /path`` token an endpoint, and
GraphQL/WebSocket mentions come from labels (``GraphQL Query: users``,
``WS event: message``), fenced schema/operation blocks and handler snippets.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from .extractors.graphql import (
    iter_fenced_blocks,
    iter_sdl_operations,
    iter_selection_operations,
    normalize_op_type,
)
from .extractors.websocket import DOC_LABEL, HANDLER_PATTERNS, normalize_event_name
from .models import DocFact, FactKind
from .payload import extract_payload_keys_from_line
from .text import line_of

_DOC_FUNCTION = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\s*\(([^)]*)\)")
_NOT_FUNCTIONS = frozenset({"if", "for", "while", "switch", "catch", "return", "function", "class", "def"})
_DOC_ENDPOINT = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE)\s+([^\s`\"'()]+)", re.IGNORECASE)
_GRAPHQL_LABEL = re.compile(
    r"\bGraphQL\s*(Query|Mutation|Subscription)?\s*[:-]\s*([A-Za-z_][A-Za-z0-9_]*)", re.IGNORECASE
)


@dataclass(frozen=True)
class DocEntry:
    """A documentation or policy file read for one rule."""

    file: str
    text: str


def extract_doc_facts(text: str, file: str) -> List[DocFact]:
    """Return every function, endpoint, GraphQL and WebSocket mention in ``text``."""

    facts: List[DocFact] = []
    facts.extend(extract_doc_functions(text, file))
    facts.extend(extract_doc_endpoints(text, file))
    facts.extend(extract_doc_graphql(text, file))
    facts.extend(extract_doc_websocket(text, file))
    return facts


def extract_doc_functions(text: str, file: str) -> List[DocFact]:
    facts = []
    for match in _DOC_FUNCTION.finditer(text):
        name = match.group(1)
        if name in _NOT_FUNCTIONS:
            continue
        params = match.group(2) or ""
        facts.append(
            DocFact(
                kind=FactKind.FUNCTION,
                name=name,
                signature=f"{name}({params})",
                file=file,
                line=line_of(text, match.start()),
            )
        )
    return facts


def extract_doc_endpoints(text: str, file: str) -> List[DocFact]:
    facts = []
    for match in _DOC_ENDPOINT.finditer(text):
        path = match.group(2)
        if not path.startswith("/"):
            continue
        name = f"{match.group(1).upper()} {path}"
        facts.append(DocFact(FactKind.ENDPOINT, name, name, file, line_of(text, match.start())))
    return facts


def extract_doc_graphql(text: str, file: str) -> List[DocFact]:
    """GraphQL mentions; an untyped label yields a name-only signature."""

    facts: List[DocFact] = []
    seen: set[tuple[str, str]] = set()

    def add(op_type: str, name: str, index: int) -> None:
        key = (op_type, name)
        if key in seen:
            return
        seen.add(key)
        signature = f"{op_type} {name}" if op_type else name
        facts.append(DocFact(FactKind.GRAPHQL_OPERATION, name, signature, file, line_of(text, index)))

    for match in _GRAPHQL_LABEL.finditer(text):
        add(normalize_op_type(match.group(1)), match.group(2), match.start())

    for block in iter_fenced_blocks(text):
        index = text.find(block)
        for operation in iter_sdl_operations(block):
            add(normalize_op_type(operation.op_type), operation.name, index + operation.index)
        for op_type, field_name in iter_selection_operations(block):
            add(normalize_op_type(op_type), field_name, index)
    return facts


def extract_doc_websocket(text: str, file: str) -> List[DocFact]:
    facts: List[DocFact] = []
    seen: set[str] = set()
    for pattern in (DOC_LABEL, *HANDLER_PATTERNS):
        for match in pattern.finditer(text):
            name = normalize_event_name(match.group(1))
            if not name or name in seen:
                continue
            seen.add(name)
            facts.append(DocFact(FactKind.WEBSOCKET_EVENT, name, name, file, line_of(text, match.start())))
    return facts


def collect_doc_facts(entries: Iterable[DocEntry]) -> List[DocFact]:
    facts: List[DocFact] = []
    for entry in entries:
        facts.extend(extract_doc_facts(entry.text, entry.file))
    return facts


def build_payload_key_index(entries: Sequence[DocEntry]) -> Dict[str, List[str]]:
    """Map each payload-shaped key mentioned in docs to the files mentioning it."""

    index: Dict[str, List[str]] = {}
    for entry in entries:
        for line in entry.text.split("\n"):
            for key in extract_payload_keys_from_line(line):
                files = index.setdefault(key, [])
                if entry.file not in files:
                    files.append(entry.file)
    return index


def join_docs(entries: Sequence[DocEntry]) -> str:
    return "\n\n".join(entry.text for entry in entries)


__all__ = [
    "DocEntry",
    "build_payload_key_index",
    "collect_doc_facts",
    "extract_doc_endpoints",
    "extract_doc_facts",
    "extract_doc_functions",
    "extract_doc_graphql",
    "extract_doc_websocket",
    "join_docs",
]
