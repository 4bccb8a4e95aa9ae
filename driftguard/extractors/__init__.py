"""Fact extractor registry and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Iterable, Iterator, List, Optional, Sequence

from ..models import Fact
from . import csharp, go, javascript, jvm, python, ruby
from .base import (
    CATEGORY_ORDER,
    EXTRACT_NAMES,
    Category,
    ExtractionContext,
    Language,
    LanguageRegistry,
    check_content,
    run_rules,
)
from .common import extract_classes, extract_cli_flags, extract_tests
from .graphql import extract_graphql
from .websocket import extract_websocket

_ENTRY_POINT_GROUP = "driftguard.languages"

BUILTIN_LANGUAGES: Sequence[Language] = (
    javascript.LANGUAGE,
    python.LANGUAGE,
    go.LANGUAGE,
    ruby.LANGUAGE,
    jvm.JAVA,
    jvm.KOTLIN,
    csharp.LANGUAGE,
)


def build_registry(extra: Iterable[Language] = ()) -> LanguageRegistry:
    """Return a registry with the built-in languages, plugins, then ``extra``."""

    registry = LanguageRegistry(default=javascript.LANGUAGE.tag)
    for language in BUILTIN_LANGUAGES:
        registry.register(language)
    for language in _discover_plugins():
        registry.register(language)
    for language in extra:
        registry.register(language)

    registry.register_common(Category.CLASSES, extract_classes)
    registry.register_common(Category.GRAPHQL, extract_graphql)
    registry.register_common(Category.WEBSOCKET, extract_websocket)
    registry.register_common(Category.CLI_FLAGS, extract_cli_flags)
    registry.register_common(Category.TESTS, extract_tests)
    return registry


_DEFAULT_REGISTRY: Optional[LanguageRegistry] = None


def default_registry() -> LanguageRegistry:
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = build_registry()
    return _DEFAULT_REGISTRY


def extract_facts(
    text: str,
    path: str,
    requested: Iterable[str] = EXTRACT_NAMES,
    *,
    registry: Optional[LanguageRegistry] = None,
) -> Iterator[Fact]:
    """Lazily extract facts from one file's text.

    ``requested`` holds extract-list names such as ``function-signatures``.
    Unusable content (binary, oversized) yields nothing.
    """

    return run_rules(registry or default_registry(), text, path, requested)


def _discover_plugins() -> List[Language]:
    languages: List[Language] = []
    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - broken plugin package
            raise RuntimeError(f"Failed to load language entry point '{entry.name}': {exc}") from exc
        if callable(loaded) and not isinstance(loaded, Language):
            loaded = loaded()
        if not isinstance(loaded, Language):
            raise TypeError(f"Language entry point '{entry.name}' must provide a Language")
        languages.append(loaded)
    return languages


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "BUILTIN_LANGUAGES",
    "CATEGORY_ORDER",
    "Category",
    "EXTRACT_NAMES",
    "ExtractionContext",
    "Language",
    "LanguageRegistry",
    "build_registry",
    "check_content",
    "default_registry",
    "extract_facts",
]
