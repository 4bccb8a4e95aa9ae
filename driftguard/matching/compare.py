"""Per-kind comparison of code facts against documentation.

Functions, endpoints, GraphQL operations and WebSocket events are matched
against structured doc facts. The remaining kinds are checked for presence
in the concatenated documentation text. :data:`COMPARATORS` maps every
:class:`~driftguard.models.FactKind` to exactly one comparator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from ..extractors.graphql import normalize_op_type
from ..extractors.websocket import normalize_event_name
from ..models import DocFact, Fact, FactKind, Finding, normalize_severity
from .params import (
    ParamVariant,
    choose_best_match,
    difference,
    normalize_param_list,
    param_key,
    signature_params,
)
from .paths import normalize_path, parse_endpoint_name

SOURCE = "docs-drift"

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_COMMAND_END = re.compile(r"[\s<\[]")


@dataclass(frozen=True)
class DocCorpus:
    """Documentation for one rule: its extracted facts and the joined text."""

    facts: Sequence[DocFact] = ()
    text: str = ""
    _lower: str = field(default="", init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_lower", self.text.lower())

    @property
    def lower(self) -> str:
        return self._lower

    def of_kind(self, kind: FactKind) -> List[DocFact]:
        return [fact for fact in self.facts if fact.kind is kind]


Comparator = Callable[[Sequence[Fact], DocCorpus, object, bool], List[Finding]]


def compare_functions(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    findings: List[Finding] = []
    code_functions = _of_kind(facts, FactKind.FUNCTION)
    if not code_functions:
        return findings
    level = normalize_severity(severity, "warning")

    doc_functions = corpus.of_kind(FactKind.FUNCTION)
    variants_by_name: Dict[str, List[ParamVariant]] = {}
    for doc in doc_functions:
        variant = ParamVariant(
            params=tuple(normalize_param_list(signature_params(doc.signature))),
            signature=doc.signature,
            file=doc.file,
        )
        variants_by_name.setdefault(doc.name, []).append(variant)

    code_names: set[str] = set()
    seen: set[str] = set()
    for fact in code_functions:
        code_names.add(fact.name)
        code_params = normalize_param_list(signature_params(fact.signature))
        code_key = param_key(code_params)
        seen_key = f"{fact.name}:{code_key}"
        if seen_key in seen:
            continue
        seen.add(seen_key)

        variants = variants_by_name.get(fact.name)
        if not variants:
            findings.append(
                _finding(
                    "function-missing-doc",
                    level,
                    fact.file,
                    f"Function {fact.signature} is not documented.",
                    "Add or update docs to include this function.",
                )
            )
            continue
        if any(param_key(variant.params) == code_key for variant in variants):
            continue

        best = choose_best_match(code_params, variants) or variants[0]
        missing = difference(code_params, best.params)
        extra = difference(best.params, code_params)
        if missing and not extra:
            findings.append(
                _finding(
                    "function-missing-params",
                    level,
                    fact.file,
                    f"Docs for {fact.name} are missing params: {', '.join(missing)}.",
                    "Update docs to include the missing parameters.",
                )
            )
        elif extra and not missing:
            findings.append(
                _finding(
                    "function-extra-params",
                    level,
                    fact.file,
                    f"Docs for {fact.name} include removed params: {', '.join(extra)}.",
                    "Update docs to remove parameters that no longer exist.",
                )
            )
        else:
            findings.append(
                _finding(
                    "function-signature-mismatch",
                    level,
                    fact.file,
                    f"Docs mention {best.signature} but code uses {fact.signature}.",
                    "Update docs or code to align parameters.",
                )
            )

    if full_scan:
        reported: set[str] = set()
        for doc in doc_functions:
            if doc.name in code_names or doc.name in reported:
                continue
            reported.add(doc.name)
            findings.append(
                _finding(
                    "docs-mentions-missing-function",
                    level,
                    doc.file,
                    f"Docs mention {doc.signature} but no matching code was found.",
                    "Remove or update the docs, or restore the missing function.",
                )
            )
    return findings


def compare_endpoints(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    findings: List[Finding] = []
    code_endpoints = _of_kind(facts, FactKind.ENDPOINT)
    if not code_endpoints:
        return findings
    level = normalize_severity(severity, "warning")

    doc_endpoints = []
    for doc in corpus.of_kind(FactKind.ENDPOINT):
        parsed = parse_endpoint_name(doc.name)
        if parsed is not None:
            doc_endpoints.append((doc, parsed))
    methods_by_path: Dict[str, List[str]] = {}
    for _, route in doc_endpoints:
        methods = methods_by_path.setdefault(normalize_path(route.path), [])
        if route.method not in methods:
            methods.append(route.method)

    code_keys: set[str] = set()
    for fact in code_endpoints:
        route = parse_endpoint_name(fact.name)
        if route is None:
            continue
        normalized = normalize_path(route.path)
        key = f"{route.method} {normalized}"
        if key in code_keys:
            continue
        code_keys.add(key)

        documented = methods_by_path.get(normalized)
        if documented is None:
            findings.append(
                _finding(
                    "endpoint-missing-doc",
                    level,
                    fact.file,
                    f"Endpoint {route.method} {route.path} is not documented.",
                    "Update docs to include this endpoint.",
                )
            )
        elif route.method not in documented:
            findings.append(
                _finding(
                    "endpoint-method-mismatch",
                    level,
                    fact.file,
                    f"Docs list {', '.join(documented)} for {route.path}, but code uses {route.method}.",
                    "Align the documented method with code.",
                )
            )

    if full_scan:
        for doc, route in doc_endpoints:
            if f"{route.method} {normalize_path(route.path)}" in code_keys:
                continue
            findings.append(
                _finding(
                    "docs-mentions-missing-endpoint",
                    level,
                    doc.file,
                    f"Docs mention {route.method} {route.path} but no matching code was found.",
                    "Remove or update the docs, or restore the endpoint.",
                )
            )
    return findings


def compare_graphql(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    findings: List[Finding] = []
    code_ops = _of_kind(facts, FactKind.GRAPHQL_OPERATION)
    if not code_ops:
        return findings
    level = normalize_severity(severity, "warning")

    typed: Dict[tuple[str, str], List[str]] = {}
    untyped: set[str] = set()
    for doc in corpus.of_kind(FactKind.GRAPHQL_OPERATION):
        if not doc.name:
            continue
        parts = doc.signature.split()
        op_type = normalize_op_type(parts[0]) if len(parts) == 2 else ""
        if op_type:
            files = typed.setdefault((op_type, doc.name), [])
            if doc.file not in files:
                files.append(doc.file)
        else:
            untyped.add(doc.name)

    code_keys: set[tuple[str, str]] = set()
    for fact in code_ops:
        op_type = normalize_op_type(fact.signature.split(" ")[0])
        if not op_type or not fact.name:
            continue
        key = (op_type, fact.name)
        code_keys.add(key)
        if key in typed or fact.name in untyped:
            continue
        findings.append(
            _finding(
                "graphql-missing-doc",
                level,
                fact.file,
                f"GraphQL {op_type} {fact.name} is not documented.",
                "Add the operation to API docs or update the schema documentation.",
            )
        )

    if full_scan:
        for (op_type, name), files in typed.items():
            if (op_type, name) in code_keys:
                continue
            findings.append(
                _finding(
                    "docs-mentions-missing-graphql",
                    level,
                    files[0],
                    f"Docs mention GraphQL {op_type} {name} but no matching resolver was found.",
                    "Remove or update the docs, or add the missing resolver.",
                )
            )
    return findings


def compare_websocket(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    findings: List[Finding] = []
    code_events = _of_kind(facts, FactKind.WEBSOCKET_EVENT)
    if not code_events:
        return findings
    level = normalize_severity(severity, "warning")

    documented: Dict[str, List[str]] = {}
    for doc in corpus.of_kind(FactKind.WEBSOCKET_EVENT):
        key = normalize_event_name(doc.name).lower()
        if not key:
            continue
        files = documented.setdefault(key, [])
        if doc.file not in files:
            files.append(doc.file)

    code_keys: set[str] = set()
    for fact in code_events:
        key = normalize_event_name(fact.name).lower()
        if not key:
            continue
        code_keys.add(key)
        if key in documented:
            continue
        findings.append(
            _finding(
                "ws-event-missing-doc",
                level,
                fact.file,
                f"WebSocket event {fact.name} is not documented.",
                "Add the event to WebSocket docs or update client integration guides.",
            )
        )

    if full_scan:
        for key, files in documented.items():
            if key in code_keys:
                continue
            findings.append(
                _finding(
                    "docs-mentions-missing-ws-event",
                    level,
                    files[0],
                    f"Docs mention WebSocket event {key} but no matching handler was found.",
                    "Remove or update the docs, or add the missing handler.",
                )
            )
    return findings


def compare_env_vars(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "warning")
    return [
        _finding(
            "env-missing-doc",
            level,
            fact.file,
            f"Environment variable {fact.name} is not documented.",
            "Add it to setup or configuration docs.",
        )
        for fact in _unique_by(_of_kind(facts, FactKind.ENV_VAR), lambda fact: fact.name)
        if not includes_word(corpus.text, fact.name)
    ]


def compare_classes(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "warning")
    return [
        _finding(
            "class-missing-doc",
            level,
            fact.file,
            f"Class {fact.name} is not documented.",
            "Add or update docs to include this class.",
        )
        for fact in _unique_by(_of_kind(facts, FactKind.CLASS), lambda fact: fact.name)
        if not includes_word(corpus.text, fact.name)
    ]


def compare_config_keys(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "warning")
    return [
        _finding(
            "config-key-missing-doc",
            level,
            fact.file,
            f"Config key {fact.name} is not documented.",
            "Add it to configuration or setup docs.",
        )
        for fact in _unique_by(_of_kind(facts, FactKind.CONFIG_KEY), lambda fact: fact.name)
        if not includes_config_key(corpus.text, fact.name)
    ]


def compare_cli_flags(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "warning")
    return [
        _finding(
            "cli-flag-missing-doc",
            level,
            fact.file,
            f"CLI flag {fact.name} is not documented.",
            "Add it to CLI usage docs.",
        )
        for fact in _unique_by(_of_kind(facts, FactKind.CLI_FLAG), lambda fact: fact.name.lower())
        if fact.name.lower() not in corpus.lower
    ]


def compare_components(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "warning")
    findings: List[Finding] = []
    for fact in _unique_by(_of_kind(facts, FactKind.COMPONENT), lambda fact: fact.name.lower()):
        if fact.name.lower() in corpus.lower or kebab_case(fact.name) in corpus.lower:
            continue
        findings.append(
            _finding(
                "component-missing-doc",
                level,
                fact.file,
                f"Component {fact.name} is not documented.",
                "Add component documentation or storybook entry.",
            )
        )
    return findings


def compare_models(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "warning")
    findings: List[Finding] = []
    for fact in _unique_by(_of_kind(facts, FactKind.MODEL), lambda fact: fact.name.lower()):
        if fact.name.lower() in corpus.lower or snake_case(fact.name) in corpus.lower:
            continue
        findings.append(
            _finding(
                "model-missing-doc",
                level,
                fact.file,
                f"Database model {fact.name} is not documented.",
                "Add model to database schema documentation.",
            )
        )
    return findings


def compare_events(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "info")
    return [
        _finding(
            "event-missing-doc",
            level,
            fact.file,
            f'Event handler for "{fact.name}" is not documented.',
            "Document event in API or integration docs.",
        )
        for fact in _unique_by(_of_kind(facts, FactKind.EVENT), lambda fact: fact.name.lower())
        if fact.name.lower() not in corpus.lower
    ]


def compare_cli_commands(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    level = normalize_severity(severity, "warning")
    findings: List[Finding] = []
    seen: set[str] = set()
    for fact in _of_kind(facts, FactKind.CLI_COMMAND):
        command = command_name(fact.name)
        normalized = command.lower()
        if normalized in seen:
            continue
        seen.add(normalized)
        if normalized in corpus.lower:
            continue
        findings.append(
            _finding(
                "cli-command-missing-doc",
                level,
                fact.file,
                f'CLI command "{command}" is not documented.',
                "Add command to CLI usage documentation.",
            )
        )
    return findings


def compare_tests(facts: Sequence[Fact], corpus: DocCorpus, severity: object, full_scan: bool) -> List[Finding]:
    """Test cases are informational and never require documentation."""
    return []


COMPARATORS: Dict[FactKind, Comparator] = {
    FactKind.FUNCTION: compare_functions,
    FactKind.ENDPOINT: compare_endpoints,
    FactKind.GRAPHQL_OPERATION: compare_graphql,
    FactKind.WEBSOCKET_EVENT: compare_websocket,
    FactKind.ENV_VAR: compare_env_vars,
    FactKind.CLASS: compare_classes,
    FactKind.CONFIG_KEY: compare_config_keys,
    FactKind.CLI_FLAG: compare_cli_flags,
    FactKind.COMPONENT: compare_components,
    FactKind.MODEL: compare_models,
    FactKind.EVENT: compare_events,
    FactKind.CLI_COMMAND: compare_cli_commands,
    FactKind.TEST: compare_tests,
}

_UNHANDLED = set(FactKind) - set(COMPARATORS)
if _UNHANDLED:  # pragma: no cover - guards new kinds
    raise RuntimeError(f"No comparator registered for: {sorted(kind.value for kind in _UNHANDLED)}")


def compare_facts(
    facts: Sequence[Fact],
    corpus: DocCorpus,
    severity: object = "warning",
    full_scan: bool = False,
) -> List[Finding]:
    """Run every comparator in registration order and concatenate the findings."""
    findings: List[Finding] = []
    for comparator in COMPARATORS.values():
        findings.extend(comparator(facts, corpus, severity, full_scan))
    return findings


def includes_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def includes_config_key(text: str, key: str) -> bool:
    return re.search(rf"(^|[^A-Za-z0-9_]){re.escape(key)}($|[^A-Za-z0-9_])", text) is not None


def kebab_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"\1-\2", name).lower()


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"\1_\2", name).lower()


def command_name(name: str) -> str:
    """First word of a command declaration such as ``deploy <app>``."""
    return _COMMAND_END.split(name, maxsplit=1)[0]


# ------------------------------------------------------------------
# Internals


def _of_kind(facts: Sequence[Fact], kind: FactKind) -> List[Fact]:
    return [fact for fact in facts if fact.kind is kind]


def _unique_by(facts: Sequence[Fact], key: Callable[[Fact], str]) -> List[Fact]:
    seen: set[str] = set()
    unique: List[Fact] = []
    for fact in facts:
        value = key(fact)
        if value in seen:
            continue
        seen.add(value)
        unique.append(fact)
    return unique


def _finding(kind: str, severity: str, file: str | None, explanation: str, suggestion: str) -> Finding:
    return Finding(
        source=SOURCE,
        type=kind,
        severity=severity,
        file=file,
        explanation=explanation,
        suggestion=suggestion,
    )


__all__ = [
    "COMPARATORS",
    "Comparator",
    "DocCorpus",
    "SOURCE",
    "command_name",
    "compare_classes",
    "compare_cli_commands",
    "compare_cli_flags",
    "compare_components",
    "compare_config_keys",
    "compare_endpoints",
    "compare_env_vars",
    "compare_events",
    "compare_facts",
    "compare_functions",
    "compare_graphql",
    "compare_models",
    "compare_tests",
    "compare_websocket",
    "includes_config_key",
    "includes_word",
    "kebab_case",
    "snake_case",
]
