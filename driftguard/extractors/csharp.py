"""C# extraction rules (ASP.NET attributes, IConfiguration)."""

from __future__ import annotations

import re

from ..models import FactKind
from .base import Category, ExtractionContext, Language, scan_patterns

_METHOD = re.compile(
    r"\b(?:public|protected|private|internal|static|async|virtual|override|sealed|partial|extern|\s)+\s*"
    r"([A-Za-z0-9_.$<>\[\]]+)\s+([A-Za-z0-9_]+)\s*\(([^)]*)\)\s*(?:\{|=>|;)"
)
_HTTP_ATTRIBUTE = re.compile(
    r"\[(HttpGet|HttpPost|HttpPut|HttpDelete|HttpPatch)\s*(?:\(\s*['\"]([^'\"]+)['\"]\s*\))?\s*\]",
    re.IGNORECASE,
)
_ENV_PATTERN = re.compile(r"Environment\.GetEnvironmentVariable\(\s*['\"]([A-Z0-9_]+)['\"]\s*\)")
_CONFIG_PATTERNS = (
    re.compile(r"\b(?:Configuration|config|settings)\s*\[\s*[\"']([^\"']+)[\"']\s*\]"),
    re.compile(r"\.GetSection\(\s*[\"']([^\"']+)[\"']\s*\)"),
)


def extract_functions(context: ExtractionContext) -> None:
    for match in context.scan(_METHOD):
        context.emit(FactKind.FUNCTION, match.group(2), match.start(), params=match.group(3))


def extract_endpoints(context: ExtractionContext) -> None:
    for match in context.scan(_HTTP_ATTRIBUTE):
        route = match.group(2)
        # Attribute routes without a template inherit the controller route, which is not tracked.
        if not route:
            continue
        method = re.sub("http", "", match.group(1), count=1, flags=re.IGNORECASE).upper()
        context.emit(FactKind.ENDPOINT, f"{method} {route}", match.start())


def extract_env(context: ExtractionContext) -> None:
    for match in context.scan(_ENV_PATTERN):
        context.emit(FactKind.ENV_VAR, match.group(1), match.start())


def extract_config_keys(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _CONFIG_PATTERNS):
        context.emit(FactKind.CONFIG_KEY, match.group(1), match.start())


LANGUAGE = Language(
    tag="csharp",
    extensions=(".cs",),
    rules={
        Category.FUNCTIONS: (extract_functions,),
        Category.ENDPOINTS: (extract_endpoints,),
        Category.ENV: (extract_env,),
        Category.CONFIG_KEYS: (extract_config_keys,),
    },
    fallback="javascript",
)

__all__ = ["LANGUAGE"]
