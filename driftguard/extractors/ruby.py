"""Ruby extraction rules (Sinatra/Rails routes, ActiveRecord, callbacks)."""

from __future__ import annotations

import re

from ..models import FactKind
from .base import Category, ExtractionContext, Language, scan_patterns
from .javascript import emit_events, emit_models

_PAREN_DEF = re.compile(r"\bdef\s+(?:self\.)?([A-Za-z0-9_?!]+)\s*\(([^)]*)\)")
_BARE_DEF = re.compile(r"\bdef\s+(?:self\.)?([A-Za-z0-9_?!]+)\s+([A-Za-z0-9_?!,\s]+)$", re.MULTILINE)

_ROUTE = re.compile(r"\b(get|post|put|patch|delete)\s+['\"]([^'\"]+)['\"]", re.IGNORECASE)

_ENV_PATTERN = re.compile(
    r"ENV(?:\.fetch)?\(\s*['\"]([A-Z0-9_]+)['\"]\s*(?:,|\))|ENV\s*\[\s*['\"]([A-Z0-9_]+)['\"]\s*\]"
)

_CONFIG_PATTERNS = (
    re.compile(r"\b(?:config|settings)\s*\[\s*['\"]([^'\"]+)['\"]\s*\]"),
    re.compile(r"\b(?:config|settings)\.fetch\(\s*['\"]([^'\"]+)['\"]\s*\)"),
)

_CALLBACK = re.compile(
    r"\b(?:before_|after_)(?:save|create|update|destroy|validation|commit|rollback)\s+:([A-Za-z_][A-Za-z0-9_]*)"
)
_NOTIFICATION = re.compile(r"Notifications\.subscribe\s*\(\s*['\"]([^'\"]+)['\"]")

_MODEL_PATTERNS = (
    (re.compile(r"\bclass\s+([A-Z][A-Za-z0-9_]*)\s*<\s*(?:ApplicationRecord|ActiveRecord::Base)"), 1),
    (re.compile(r"\b(?:has_many|has_one|belongs_to|has_and_belongs_to_many)\s+:([A-Za-z_][A-Za-z0-9_]*)"), 1),
)


def extract_functions(context: ExtractionContext) -> None:
    for match in scan_patterns(context, (_PAREN_DEF, _BARE_DEF)):
        context.emit(FactKind.FUNCTION, match.group(1), match.start(), params=match.group(2))


def extract_endpoints(context: ExtractionContext) -> None:
    for match in context.scan(_ROUTE):
        context.emit(FactKind.ENDPOINT, f"{match.group(1).upper()} {match.group(2)}", match.start())


def extract_env(context: ExtractionContext) -> None:
    for match in context.scan(_ENV_PATTERN):
        name = match.group(1) or match.group(2)
        if name:
            context.emit(FactKind.ENV_VAR, name, match.start())


def extract_config_keys(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _CONFIG_PATTERNS):
        context.emit(FactKind.CONFIG_KEY, match.group(1), match.start())


def extract_events(context: ExtractionContext) -> None:
    emit_events(context, (_CALLBACK, _NOTIFICATION))


def extract_models(context: ExtractionContext) -> None:
    emit_models(context, _MODEL_PATTERNS)


LANGUAGE = Language(
    tag="ruby",
    extensions=(".rb",),
    rules={
        Category.FUNCTIONS: (extract_functions,),
        Category.ENDPOINTS: (extract_endpoints,),
        Category.ENV: (extract_env,),
        Category.CONFIG_KEYS: (extract_config_keys,),
        Category.EVENTS: (extract_events,),
        Category.MODELS: (extract_models,),
    },
    fallback="javascript",
)

__all__ = ["LANGUAGE"]
