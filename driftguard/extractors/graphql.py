"""GraphQL operation discovery shared by code and documentation extraction.

Operations are found in four places: resolver assignments
(``resolvers.Query.user = ...``), resolver maps (``Query: { user: ... }``),
decorated resolver methods (``@Query() user()``) and schema definition
blocks (``type Query { ... }``). Documentation additionally contributes the
top-level selections of fenced ``query``/``mutation`` documents.
"""

from __future__ import annotations

import re
from typing import Iterator, List, NamedTuple, Optional, Tuple

from ..models import FactKind
from .base import ExtractionContext

OPERATION_TYPES: Tuple[str, ...] = ("Query", "Mutation", "Subscription")
INTERNAL_FIELDS = frozenset({"__resolveType", "__isTypeOf", "__typename"})
GRAPHQL_EXTENSIONS = frozenset({".graphql", ".gql", ".graphqls"})
FENCE_LANGUAGES = frozenset({"graphql", "gql", "graphqls"})

_CONTENT_HINT = re.compile(
    r"\b(?:graphql|gql|typeDefs|resolvers|ApolloServer|makeExecutableSchema|GraphQLSchema)\b"
    r"|@(?:Resolver|Query|Mutation|Subscription)\b"
)
_ASSIGNMENT = re.compile(r"\bresolvers\.(Query|Mutation|Subscription)\.([A-Za-z_][A-Za-z0-9_]*)\s*=")
_RESOLVER_MAP = re.compile(r"\b(Query|Mutation|Subscription)\s*:\s*\{")
_DECORATOR = re.compile(
    r"@(Query|Mutation|Subscription)\s*\([^)]*\)\s*(?:\r?\n\s*)?"
    r"(?:(?:public|private|protected|static)\s+)*(?:async\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*\("
)
_SDL_TYPE = re.compile(r"\b(?:type|extend\s+type)\s+(Query|Mutation|Subscription)\s*\{")
_FIELD_NAME = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?:\([^)]*\))?\s*:", re.MULTILINE)
_FENCED_BLOCK = re.compile(r"```([a-zA-Z0-9_-]*)\r?\n([\s\S]*?)```")
_OPERATION_KEYWORD = re.compile(r"\b(query|mutation|subscription)\b", re.IGNORECASE)
_TYPE_PREFIX = re.compile(r"\btype\s*$|\bextend\s+type\s*$", re.IGNORECASE)
_NAME_START = re.compile(r"[A-Za-z_]")
_NAME_CHAR = re.compile(r"[A-Za-z0-9_]")


class Operation(NamedTuple):
    op_type: str
    name: str
    index: int


class BracedBlock(NamedTuple):
    body: str
    start: int
    end: int


def normalize_op_type(value: object) -> str:
    """Map any casing of query/mutation/subscription to its schema type name."""
    if not value:
        return ""
    lowered = str(value).strip().lower()
    for op_type in OPERATION_TYPES:
        if op_type.lower() == lowered:
            return op_type
    return ""


def looks_like_graphql(text: str, ext: str) -> bool:
    return ext in GRAPHQL_EXTENSIONS or bool(_CONTENT_HINT.search(text))


def extract_braced_block(text: str, start: int) -> Optional[BracedBlock]:
    """Return the body between the first ``{`` at or after ``start`` and its partner."""
    if start < 0 or start >= len(text):
        return None
    open_index = text.find("{", start)
    if open_index < 0:
        return None
    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return BracedBlock(text[open_index + 1 : index], open_index + 1, index)
    return None


def iter_field_names(body: str) -> Iterator[Tuple[str, int]]:
    for match in _FIELD_NAME.finditer(body):
        name = match.group(1)
        if name and name not in INTERNAL_FIELDS:
            yield name, match.start()


def iter_sdl_operations(text: str) -> Iterator[Operation]:
    """Yield fields declared in ``type Query``/``extend type Mutation`` blocks."""
    for match in _SDL_TYPE.finditer(text):
        yield from _block_operations(text, match.group(1), match.start())


def iter_fenced_blocks(text: str, languages: frozenset[str] = FENCE_LANGUAGES) -> Iterator[str]:
    for match in _FENCED_BLOCK.finditer(text):
        if (match.group(1) or "").lower() in languages:
            yield match.group(2)


def iter_selection_operations(text: str) -> Iterator[Tuple[str, str]]:
    """Yield ``(op_type, field)`` for top-level selections of operation documents."""
    for match in _OPERATION_KEYWORD.finditer(text):
        prefix = text[max(0, match.start() - 20) : match.start()]
        if _TYPE_PREFIX.search(prefix):
            continue
        block = extract_braced_block(text, match.start())
        if block is None:
            continue
        for field_name in selection_fields(block.body):
            yield match.group(1), field_name


def selection_fields(body: str) -> List[str]:
    """Top-level field names of a selection set; aliases resolve to the real field."""
    fields: List[str] = []
    depth = 0
    index = 0
    length = len(body)
    while index < length:
        char = body[index]
        if char == "#":
            while index < length and body[index] != "\n":
                index += 1
            continue
        if char == "(":
            closing = body.find(")", index)
            index = length if closing < 0 else closing + 1
            continue
        if char == "{":
            depth += 1
            index += 1
            continue
        if char == "}":
            depth = max(0, depth - 1)
            index += 1
            continue
        if depth == 0:
            if body.startswith("...", index):
                index += 3
                continue
            if _NAME_START.match(char):
                name, index = _read_name(body, index)
                cursor = _skip_space(body, index)
                if cursor < length and body[cursor] == ":":
                    cursor = _skip_space(body, cursor + 1)
                    if cursor < length and _NAME_START.match(body[cursor]):
                        name, index = _read_name(body, cursor)
                if name not in fields and name not in INTERNAL_FIELDS:
                    fields.append(name)
                continue
        index += 1
    return fields


def extract_graphql(context: ExtractionContext) -> None:
    if not looks_like_graphql(context.text, context.ext):
        return
    for operation in iter_code_operations(context):
        op_type = normalize_op_type(operation.op_type)
        if not op_type or not operation.name or operation.name in INTERNAL_FIELDS:
            continue
        context.emit(
            FactKind.GRAPHQL_OPERATION,
            operation.name,
            operation.index,
            signature=f"{op_type} {operation.name}",
        )


def iter_code_operations(context: ExtractionContext) -> Iterator[Operation]:
    text = context.text
    for match in context.scan(_ASSIGNMENT):
        yield Operation(match.group(1), match.group(2), match.start())
    for match in context.scan(_RESOLVER_MAP):
        yield from _block_operations(text, match.group(1), match.start())
    for match in context.scan(_DECORATOR):
        yield Operation(match.group(1), match.group(2), match.start())
    yield from iter_sdl_operations(text)


# ------------------------------------------------------------------
# Internals


def _block_operations(text: str, op_type: str, start: int) -> Iterator[Operation]:
    block = extract_braced_block(text, start)
    if block is None:
        return
    for name, offset in iter_field_names(block.body):
        yield Operation(op_type, name, block.start + offset)


def _read_name(text: str, index: int) -> Tuple[str, int]:
    start = index
    index += 1
    while index < len(text) and _NAME_CHAR.match(text[index]):
        index += 1
    return text[start:index], index


def _skip_space(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


__all__ = [
    "BracedBlock",
    "FENCE_LANGUAGES",
    "INTERNAL_FIELDS",
    "OPERATION_TYPES",
    "Operation",
    "extract_braced_block",
    "extract_graphql",
    "iter_code_operations",
    "iter_fenced_blocks",
    "iter_field_names",
    "iter_sdl_operations",
    "iter_selection_operations",
    "looks_like_graphql",
    "normalize_op_type",
    "selection_fields",
]
