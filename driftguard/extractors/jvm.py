"""Java and Kotlin extraction rules (Spring MVC mappings, System properties)."""

from __future__ import annotations

import re
from typing import List

from ..models import FactKind
from .base import Category, ExtractionContext, Language, scan_patterns

_JAVA_METHOD = re.compile(
    r"\b(?:public|protected|private|static|final|synchronized|abstract|native|strictfp|\s)+\s*"
    r"([A-Za-z0-9_.$<>\[\]]+)\s+([A-Za-z0-9_]+)\s*\(([^)]*)\)\s*(?:\{|;)"
)
_KOTLIN_FUN = re.compile(r"\bfun\s+(?:<[^>]+>\s+)?(?:[A-Za-z0-9_]+\.)?([A-Za-z0-9_]+)\s*\(([^)]*)\)")

_VERB_MAPPING = re.compile(r"@(Get|Post|Put|Delete|Patch)Mapping\s*\(([^)]*)\)")
_REQUEST_MAPPING = re.compile(r"@RequestMapping\s*\(([^)]*)\)")
_NAMED_PATH = re.compile(r"\b(?:path|value)\s*=\s*['\"]([^'\"]+)['\"]")
_DIRECT_PATH = re.compile(r"^\s*['\"]([^'\"]+)['\"]")
_REQUEST_METHOD = re.compile(r"RequestMethod\.(GET|POST|PUT|DELETE|PATCH)")

_ENV_PATTERN = re.compile(r"System\.getenv\(\s*['\"]([A-Z0-9_]+)['\"]\s*\)")
_CONFIG_PATTERNS = (
    re.compile(r"\b(?:System|config)\.getProperty\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"@Value\(\s*['\"]\$\{([^}]+)\}['\"]\s*\)"),
)


def extract_java_functions(context: ExtractionContext) -> None:
    for match in context.scan(_JAVA_METHOD):
        context.emit(FactKind.FUNCTION, match.group(2), match.start(), params=match.group(3))


def extract_kotlin_functions(context: ExtractionContext) -> None:
    for match in context.scan(_KOTLIN_FUN):
        context.emit(FactKind.FUNCTION, match.group(1), match.start(), params=match.group(2))


def extract_spring_endpoints(context: ExtractionContext) -> None:
    for match in context.scan(_VERB_MAPPING):
        path = parse_spring_path(match.group(2))
        if path:
            context.emit(FactKind.ENDPOINT, f"{match.group(1).upper()} {path}", match.start())

    for match in context.scan(_REQUEST_MAPPING):
        path = parse_spring_path(match.group(1))
        if not path:
            continue
        for method in parse_spring_methods(match.group(1)) or ["GET"]:
            context.emit(FactKind.ENDPOINT, f"{method} {path}", match.start())


def parse_spring_path(text: str | None) -> str:
    if not text:
        return ""
    named = _NAMED_PATH.search(text)
    if named:
        return named.group(1)
    direct = _DIRECT_PATH.search(text)
    return direct.group(1) if direct else ""


def parse_spring_methods(text: str | None) -> List[str]:
    methods: List[str] = []
    for found in _REQUEST_METHOD.finditer(text or ""):
        if found.group(1) not in methods:
            methods.append(found.group(1))
    return methods


def extract_env(context: ExtractionContext) -> None:
    for match in context.scan(_ENV_PATTERN):
        context.emit(FactKind.ENV_VAR, match.group(1), match.start())


def extract_config_keys(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _CONFIG_PATTERNS):
        context.emit(FactKind.CONFIG_KEY, match.group(1), match.start())


_SHARED_RULES = {
    Category.ENDPOINTS: (extract_spring_endpoints,),
    Category.ENV: (extract_env,),
    Category.CONFIG_KEYS: (extract_config_keys,),
}

JAVA = Language(
    tag="java",
    extensions=(".java",),
    rules={Category.FUNCTIONS: (extract_java_functions,), **_SHARED_RULES},
    fallback="javascript",
)

KOTLIN = Language(
    tag="kotlin",
    extensions=(".kt", ".kts"),
    rules={Category.FUNCTIONS: (extract_kotlin_functions,), **_SHARED_RULES},
    fallback="javascript",
)

__all__ = ["JAVA", "KOTLIN", "parse_spring_methods", "parse_spring_path"]
