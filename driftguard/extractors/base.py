"""Extraction framework: content guardrails, rule context and language registry."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import Fact, FactKind
from ..safety import ScanBudget
from ..text import line_of

MAX_CONTENT_LENGTH = 5_000_000

logger = get_logger("extractors")


class ExtractionContext:
    """Per-rule view of one file: its text, extension and the shared scan budget."""

    def __init__(self, text: str, file: str, budget: ScanBudget) -> None:
        self.text = text
        self.file = file
        self.budget = budget
        self.ext = PurePosixPath(file.replace("\\", "/")).suffix.lower()
        self.facts: List[Fact] = []

    def scan(self, pattern: re.Pattern[str], text: str | None = None) -> Iterator[re.Match[str]]:
        return self.budget.finditer(pattern, self.text if text is None else text)

    def emit(
        self,
        kind: FactKind,
        name: str,
        index: int,
        *,
        params: str | None = None,
        signature: str | None = None,
    ) -> None:
        if signature is None:
            signature = build_signature(name, params)
        self.facts.append(
            Fact(
                kind=kind,
                name=name,
                signature=signature,
                file=self.file,
                line=line_of(self.text, index),
            )
        )


Rule = Callable[[ExtractionContext], None]


class Category:
    """Names of extraction rule groups, in execution order."""

    FUNCTIONS = "functions"
    CLASSES = "classes"
    ENDPOINTS = "endpoints"
    GRAPHQL = "graphql"
    WEBSOCKET = "websocket"
    ENV = "env"
    CONFIG_KEYS = "config-keys"
    CLI_FLAGS = "cli-flags"
    CLI_COMMANDS = "cli-commands"
    EVENTS = "events"
    COMPONENTS = "components"
    MODELS = "models"
    TESTS = "tests"


CATEGORY_ORDER: Tuple[str, ...] = (
    Category.FUNCTIONS,
    Category.CLASSES,
    Category.ENDPOINTS,
    Category.GRAPHQL,
    Category.WEBSOCKET,
    Category.ENV,
    Category.CONFIG_KEYS,
    Category.CLI_FLAGS,
    Category.CLI_COMMANDS,
    Category.EVENTS,
    Category.COMPONENTS,
    Category.MODELS,
    Category.TESTS,
)

# Which `extract` list entries switch each category on.
CATEGORY_GATES: Dict[str, frozenset[str]] = {
    Category.FUNCTIONS: frozenset({"function-signatures"}),
    Category.CLASSES: frozenset({"class-names"}),
    Category.ENDPOINTS: frozenset({"api-endpoints"}),
    Category.GRAPHQL: frozenset({"api-endpoints"}),
    Category.WEBSOCKET: frozenset({"api-endpoints"}),
    Category.ENV: frozenset({"env-variables"}),
    Category.CONFIG_KEYS: frozenset({"config-keys"}),
    Category.CLI_FLAGS: frozenset({"cli-flags"}),
    Category.CLI_COMMANDS: frozenset({"cli-flags"}),
    Category.EVENTS: frozenset({"function-signatures", "api-endpoints"}),
    Category.COMPONENTS: frozenset({"function-signatures", "class-names"}),
    Category.MODELS: frozenset({"class-names", "config-keys"}),
    Category.TESTS: frozenset({"function-signatures"}),
}

EXTRACT_NAMES: Tuple[str, ...] = (
    "function-signatures",
    "class-names",
    "api-endpoints",
    "env-variables",
    "config-keys",
    "cli-flags",
    "payload-keys",
)


@dataclass(frozen=True)
class Language:
    """Extraction rules registered for one language tag.

    Categories a language does not define are taken from ``fallback``.
    """

    tag: str
    extensions: Tuple[str, ...]
    rules: Mapping[str, Sequence[Rule]] = field(default_factory=dict)
    fallback: Optional[str] = None


class LanguageRegistry:
    """Maps language tags and file extensions to extraction rules."""

    def __init__(self, default: str) -> None:
        self._default = default
        self._languages: Dict[str, Language] = {}
        self._by_extension: Dict[str, str] = {}
        self._common: Dict[str, List[Rule]] = {}

    def register(self, language: Language) -> None:
        self._languages[language.tag] = language
        for ext in language.extensions:
            self._by_extension[ext.lower()] = language.tag

    def register_common(self, category: str, *rules: Rule) -> None:
        """Register rules that run for every language."""
        self._common.setdefault(category, []).extend(rules)

    def language_for(self, file: str) -> Language:
        ext = PurePosixPath(file.replace("\\", "/")).suffix.lower()
        tag = self._by_extension.get(ext, self._default)
        return self._languages[tag]

    def rules_for(self, language: Language, category: str) -> List[Rule]:
        rules = list(self._resolve(language, category))
        rules.extend(self._common.get(category, ()))
        return rules

    def tags(self) -> List[str]:
        return sorted(self._languages)

    def _resolve(self, language: Language, category: str) -> Sequence[Rule]:
        current: Optional[Language] = language
        visited: set[str] = set()
        while current is not None and current.tag not in visited:
            visited.add(current.tag)
            if category in current.rules:
                return current.rules[category]
            current = self._languages.get(current.fallback) if current.fallback else None
        return ()


def check_content(text: object) -> Optional[str]:
    """Return why ``text`` cannot be scanned, or None when it is usable."""
    if not text or not isinstance(text, str):
        return "content is not a valid string"
    if len(text) > MAX_CONTENT_LENGTH:
        return f"file too large ({len(text)} chars, max {MAX_CONTENT_LENGTH})"
    if "\0" in text:
        return "file appears to be binary"
    return None


def build_signature(name: str, params: str | None) -> str:
    if not params:
        return name
    parts = [part.strip() for part in params.split(",")]
    return f"{name}({', '.join(part for part in parts if part)})"


def run_rules(
    registry: LanguageRegistry,
    text: str,
    file: str,
    requested: Iterable[str],
) -> Iterator[Fact]:
    """Yield facts for ``file``; one failing rule never stops the others.

    Facts are deduplicated by ``(kind, signature)``, so overloads with distinct
    parameter lists are all kept.
    """
    reason = check_content(text)
    if reason:
        logger.warning("Skipping extraction for %s: %s", file, reason)
        return
    wanted = set(requested)
    language = registry.language_for(file)
    budget = ScanBudget(file)
    seen: set[tuple[FactKind, str]] = set()
    for category in CATEGORY_ORDER:
        if not CATEGORY_GATES[category] & wanted:
            continue
        for rule in registry.rules_for(language, category):
            context = ExtractionContext(text, file, budget)
            try:
                rule(context)
            except Exception as exc:  # noqa: BLE001 - extraction is best-effort per rule
                logger.warning("%s extraction failed for %s: %s", rule.__name__, file, exc)
                continue
            for fact in context.facts:
                key = (fact.kind, fact.signature)
                if key in seen:
                    continue
                seen.add(key)
                yield fact


def scan_patterns(
    context: ExtractionContext,
    patterns: Sequence[re.Pattern[str]],
) -> Iterator[re.Match[str]]:
    for pattern in patterns:
        yield from context.scan(pattern)


__all__ = [
    "CATEGORY_GATES",
    "CATEGORY_ORDER",
    "Category",
    "EXTRACT_NAMES",
    "ExtractionContext",
    "Language",
    "LanguageRegistry",
    "MAX_CONTENT_LENGTH",
    "Rule",
    "build_signature",
    "check_content",
    "run_rules",
    "scan_patterns",
]
