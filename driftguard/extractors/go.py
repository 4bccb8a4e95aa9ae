"""Go extraction rules (net/http, gorilla/mux, gin/echo, viper, cobra, gorm)."""

from __future__ import annotations

import re
from typing import List

from ..models import FactKind
from .base import Category, ExtractionContext, Language, scan_patterns
from .javascript import emit_cli_commands, emit_models

_FUNCTION_PATTERNS = (
    # func (s *Service) Name(params)
    re.compile(r"\bfunc\s+(?:\([^)]+\)\s*)?([A-Za-z0-9_]+)\s*\(([^)]*)\)"),
    # func Map[T, U any](params)
    re.compile(r"\bfunc\s+(?:\([^)]+\)\s*)?([A-Za-z0-9_]+)\s*\[[^\]]+\]\s*\(([^)]*)\)"),
)

_METHODS_PATH = re.compile(r"\.Methods\(([^)]*)\)\s*\.Path\(\s*['\"`]([^'\"`]+)['\"`]\s*\)")
_HANDLE = re.compile(r"\.Handle(?:Func)?\s*\(\s*['\"`]([^'\"`]+)['\"`]")
_VERB_CALL = re.compile(r"\.\s*(get|post|put|patch|delete)\s*\(\s*['\"`]([^'\"`]+)['\"`]", re.IGNORECASE)
_QUOTED_METHOD = re.compile(r"['\"]([A-Za-z]+)['\"]")
_HANDLE_LOOKAHEAD = 200
HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})

_ENV_PATTERN = re.compile(r"os\.(?:Getenv|LookupEnv)\(\s*['\"]([A-Z0-9_]+)['\"]\s*\)")
_CONFIG_PATTERN = re.compile(
    r"\b(?:viper|config|cfg)\.(?:GetString|GetInt|GetBool|GetFloat64|Get)\(\s*['\"`]([^'\"`]+)['\"`]\s*\)"
)

_CLI_PATTERNS = (
    re.compile(r"&cobra\.Command\s*\{\s*Use:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"\.(?:Flags|PersistentFlags)\(\)\.(?:String|Bool|Int|Float)P?\s*\(\s*['\"]([^'\"]+)['\"]"),
)

_MODEL_PATTERNS = (
    (re.compile(r"\btype\s+([A-Z][A-Za-z0-9_]*)\s+struct\s*\{[^}]*gorm\.Model"), 1),
    (re.compile(r"^\s*([A-Z][A-Za-z0-9_]*)\s+[A-Za-z\[\]]+\s+`[^`]*(?:json|db|gorm):", re.MULTILINE), 1),
)


def extract_functions(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _FUNCTION_PATTERNS):
        context.emit(FactKind.FUNCTION, match.group(1), match.start(), params=match.group(2))


def extract_endpoints(context: ExtractionContext) -> None:
    for match in context.scan(_METHODS_PATH):
        for method in parse_methods(match.group(1)):
            context.emit(FactKind.ENDPOINT, f"{method} {match.group(2)}", match.start())

    for match in context.scan(_HANDLE):
        tail = context.text[match.start() : match.start() + _HANDLE_LOOKAHEAD]
        # Only quoted HTTP verbs near the registration count; the path and other strings are ignored.
        methods = parse_methods(tail)
        for method in methods or ["GET"]:
            context.emit(FactKind.ENDPOINT, f"{method} {match.group(1)}", match.start())

    for match in context.scan(_VERB_CALL):
        context.emit(FactKind.ENDPOINT, f"{match.group(1).upper()} {match.group(2)}", match.start())


def parse_methods(text: str | None) -> List[str]:
    """Collect quoted HTTP verbs, upper-cased and in first-seen order."""
    if not text:
        return []
    methods: List[str] = []
    for found in _QUOTED_METHOD.finditer(text):
        method = found.group(1).upper()
        if method in HTTP_METHODS and method not in methods:
            methods.append(method)
    return methods


def extract_env(context: ExtractionContext) -> None:
    for match in context.scan(_ENV_PATTERN):
        context.emit(FactKind.ENV_VAR, match.group(1), match.start())


def extract_config_keys(context: ExtractionContext) -> None:
    for match in context.scan(_CONFIG_PATTERN):
        context.emit(FactKind.CONFIG_KEY, match.group(1), match.start())


def extract_cli_commands(context: ExtractionContext) -> None:
    emit_cli_commands(context, _CLI_PATTERNS)


def extract_models(context: ExtractionContext) -> None:
    emit_models(context, _MODEL_PATTERNS)


LANGUAGE = Language(
    tag="go",
    extensions=(".go",),
    rules={
        Category.FUNCTIONS: (extract_functions,),
        Category.ENDPOINTS: (extract_endpoints,),
        Category.ENV: (extract_env,),
        Category.CONFIG_KEYS: (extract_config_keys,),
        Category.CLI_COMMANDS: (extract_cli_commands,),
        Category.MODELS: (extract_models,),
    },
    fallback="javascript",
)

__all__ = ["HTTP_METHODS", "LANGUAGE", "parse_methods"]
