"""Python extraction rules (Flask/FastAPI, Django, Click/argparse, Celery)."""

from __future__ import annotations

import re
from typing import List

from ..models import FactKind
from .base import Category, ExtractionContext, Language, scan_patterns
from .javascript import emit_cli_commands, emit_events, emit_models

_FUNCTION_PATTERNS = (
    re.compile(r"\b(?:async\s+)?def\s+([A-Za-z0-9_]+)\s*\(([^)]*)\)"),
    re.compile(r"\b([A-Za-z0-9_]+)\s*=\s*lambda\s+([^:]+):"),
)

_VERB_DECORATOR = re.compile(
    r"@\w+\.(get|post|put|delete|patch)\s*\(\s*['\"`]([^'\"`]+)['\"`]", re.IGNORECASE
)
_ROUTE_DECORATOR = re.compile(r"@\w+\.route\s*\(\s*['\"`]([^'\"`]+)['\"`]([^)]*)\)")
_ROUTE_METHODS = re.compile(r"methods\s*=\s*[\[(]([^\])]+)[\])]", re.IGNORECASE)
_QUOTES_AND_SPACE = re.compile(r"['\"\s]")

_ENV_PATTERNS = (
    re.compile(r"\bos\.environ(?:\.get)?\s*[\[(]\s*['\"]([A-Z0-9_]+)['\"]\s*[\])]"),
    re.compile(r"\benviron(?:\.get)?\s*[\[(]\s*['\"]([A-Z0-9_]+)['\"]\s*[\])]"),
    re.compile(r"\bgetenv\s*\(\s*['\"]([A-Z0-9_]+)['\"]"),
    re.compile(r"\b(?:settings|config)\.([A-Z][A-Z0-9_]*)\b"),
    re.compile(r"\benv\s*=\s*['\"]([A-Z0-9_]+)['\"]"),
)

_CONFIG_PATTERNS = (
    re.compile(r"\b(?:config|settings)\.get\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"\b(?:config|settings)\s*\[\s*['\"]([^'\"]+)['\"]\s*\]"),
)

_CLI_PATTERNS = (
    re.compile(r"@(?:click|cli|app)\.command\s*\(\s*(?:['\"]([^'\"]+)['\"])?\s*\)"),
    re.compile(r"@click\.(?:option|argument)\s*\(\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"typer\.(?:Option|Argument)\s*\([^)]*help\s*=\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"\.add_argument\s*\(\s*['\"](-{1,2}[A-Za-z0-9_-]+)['\"]"),
    re.compile(r"\.add_parser\s*\(\s*['\"]([A-Za-z0-9_-]+)['\"]"),
)

_EVENT_PATTERNS = (
    re.compile(r"@receiver\s*\(\s*([A-Za-z_][A-Za-z0-9_]*)"),
    re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\.connect\s*\("),
    re.compile(r"@\w+\.on_event\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
)

_MODEL_PATTERNS = (
    (re.compile(r"\bclass\s+([A-Z][A-Za-z0-9_]*)\s*\(\s*(?:models\.Model|AbstractUser|AbstractBaseUser)"), 1),
    (re.compile(r"\bclass\s+([A-Z][A-Za-z0-9_]*)\s*\(\s*(?:Base|db\.Model|DeclarativeBase)"), 1),
    (re.compile(r"\bclass\s+([A-Z][A-Za-z0-9_]*)\s*\(\s*(?:BaseModel|BaseSettings)"), 1),
    (re.compile(r"^\s*([a-z_][a-z0-9_]*)\s*=\s*models\.[A-Z][A-Za-z]+Field", re.MULTILINE), 1),
)


def extract_functions(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _FUNCTION_PATTERNS):
        name = match.group(1)
        # Dunder methods are noise in docs, constructors are not.
        if name.startswith("__") and name.endswith("__") and name != "__init__":
            continue
        context.emit(FactKind.FUNCTION, name, match.start(), params=match.group(2))


def extract_endpoints(context: ExtractionContext) -> None:
    for match in context.scan(_VERB_DECORATOR):
        context.emit(FactKind.ENDPOINT, f"{match.group(1).upper()} {match.group(2)}", match.start())
    for match in context.scan(_ROUTE_DECORATOR):
        path = match.group(1)
        methods = parse_route_methods(match.group(2))
        for method in methods or ["GET"]:
            context.emit(FactKind.ENDPOINT, f"{method} {path}", match.start())


def parse_route_methods(text: str | None) -> List[str]:
    """Return the upper-cased verbs from a ``methods=[...]`` decorator argument."""
    if not text:
        return []
    found = _ROUTE_METHODS.search(text)
    if not found:
        return []
    methods = [_QUOTES_AND_SPACE.sub("", value).upper() for value in found.group(1).split(",")]
    return [method for method in methods if method]


def extract_env(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _ENV_PATTERNS):
        context.emit(FactKind.ENV_VAR, match.group(1), match.start())


def extract_config_keys(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _CONFIG_PATTERNS):
        context.emit(FactKind.CONFIG_KEY, match.group(1), match.start())


def extract_cli_commands(context: ExtractionContext) -> None:
    emit_cli_commands(context, _CLI_PATTERNS)


def extract_events(context: ExtractionContext) -> None:
    emit_events(context, _EVENT_PATTERNS)


def extract_models(context: ExtractionContext) -> None:
    emit_models(context, _MODEL_PATTERNS)


LANGUAGE = Language(
    tag="python",
    extensions=(".py",),
    rules={
        Category.FUNCTIONS: (extract_functions,),
        Category.ENDPOINTS: (extract_endpoints,),
        Category.ENV: (extract_env,),
        Category.CONFIG_KEYS: (extract_config_keys,),
        Category.CLI_COMMANDS: (extract_cli_commands,),
        Category.EVENTS: (extract_events,),
        Category.MODELS: (extract_models,),
    },
    fallback="javascript",
)

__all__ = ["LANGUAGE", "parse_route_methods"]
