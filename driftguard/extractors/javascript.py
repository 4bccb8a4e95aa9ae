"""JavaScript and TypeScript extraction rules (also the fallback for unknown files)."""

from __future__ import annotations

import re

from ..models import FactKind
from .base import Category, ExtractionContext, Language, scan_patterns

_FUNCTION_PATTERNS = (
    # export default async function name(params)
    re.compile(r"\b(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s+([A-Za-z0-9_$]+)\s*\(([^)]*)\)"),
    # const name = async (params) =>
    re.compile(r"\b(?:export\s+)?(?:const|let|var)\s+([A-Za-z0-9_$]+)\s*=\s*(?:async\s*)?\(([^)]*)\)\s*=>"),
    # const name = param =>
    re.compile(r"\b(?:export\s+)?(?:const|let|var)\s+([A-Za-z0-9_$]+)\s*=\s*(?:async\s+)?([A-Za-z0-9_$]+)\s*=>"),
    # class methods: static async name(params) {
    re.compile(
        r"^\s*(?:async\s+)?(?:static\s+)?(?:private\s+|public\s+|protected\s+)?(?:async\s+)?"
        r"([A-Za-z0-9_$]+)\s*\(([^)]*)\)\s*\{",
        re.MULTILINE,
    ),
    # object shorthand methods
    re.compile(r"^\s*([A-Za-z0-9_$]+)\s*\(([^)]*)\)\s*\{", re.MULTILINE),
    # function name(params): ReturnType {
    re.compile(
        r"\b(?:async\s+)?function\s+([A-Za-z0-9_$]+)\s*\(([^)]*)\)\s*:\s*[A-Za-z0-9_$<>\[\]|&\s]+\s*\{"
    ),
    # const name: Type = (params) =>
    re.compile(r"\b(?:const|let|var)\s+([A-Za-z0-9_$]+)\s*:\s*[^=]+=\s*(?:async\s*)?\(([^)]*)\)\s*=>"),
)

_NOT_FUNCTIONS = frozenset(
    {
        "if", "for", "while", "switch", "catch", "with", "function", "return",
        "new", "throw", "typeof", "void", "delete", "in", "of",
    }
)

_VERB_ENDPOINT = re.compile(
    r"\b(?:app|router|server|fastify|hono|elysia)\s*\.\s*(get|post|put|delete|patch|options|head|all)"
    r"\s*\(\s*['\"`]([^'\"`]+)['\"`]",
    re.IGNORECASE,
)
_ROUTE_CHAIN = re.compile(
    r"\.route\s*\(\s*['\"`]([^'\"`]+)['\"`]\s*\)\s*\.\s*(get|post|put|delete|patch)",
    re.IGNORECASE,
)
_NEST_DECORATOR = re.compile(
    r"@(Get|Post|Put|Delete|Patch|Options|Head)\s*\(\s*['\"`]?([^'\"`)\s]*)['\"`]?\s*\)",
    re.IGNORECASE,
)
_HAPI_ROUTE = re.compile(
    r"method\s*:\s*['\"`](GET|POST|PUT|DELETE|PATCH)['\"`]\s*,\s*path\s*:\s*['\"`]([^'\"`]+)['\"`]",
    re.IGNORECASE,
)
_KOA_ROUTE = re.compile(
    r"\b(?:koaRouter|KoaRouter)\s*\.\s*(get|post|put|delete|patch)\s*\(\s*['\"`]([^'\"`]+)['\"`]",
    re.IGNORECASE,
)

_ENV_PATTERNS = (
    re.compile(r"\bprocess\.env\.([A-Z][A-Z0-9_]*)"),
    re.compile(r"\bprocess\.env\s*\[\s*['\"]([A-Z][A-Z0-9_]*)['\"]\s*\]"),
    re.compile(r"\bconst\s*\{\s*([A-Z][A-Z0-9_,\s:]*)\s*\}\s*=\s*process\.env"),
    re.compile(r"\bDeno\.env\.get\s*\(\s*['\"]([A-Z][A-Z0-9_]*)['\"]\s*\)"),
    re.compile(r"\bBun\.env\.([A-Z][A-Z0-9_]*)"),
    re.compile(r"\bimport\.meta\.env\.([A-Z][A-Z0-9_]*)"),
)
_ENV_NAME = re.compile(r"^[A-Z][A-Z0-9_]*$")

_CONFIG_PATTERNS = (
    re.compile(r"\b(?:config|settings|cfg|options)\.get\(\s*['\"`]([^'\"`]+)['\"`]\s*\)"),
    re.compile(r"\b(?:config|settings|cfg|options)\s*\[\s*['\"`]([^'\"`]+)['\"`]\s*\]"),
)

_CLI_PATTERNS = (
    re.compile(r"\.command\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"\.option\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"\.argument\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"yargs\s*\.command\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
)

_EVENT_PATTERNS = (
    re.compile(r"\.addEventListener\s*\(\s*['\"`]([^'\"`]+)['\"`]", re.IGNORECASE),
    re.compile(
        r"\b(?:emitter|process|server|client|stream|worker)\s*\.\s*(?:on|once|addListener)"
        r"\s*\(\s*['\"`]([^'\"`]+)['\"`]",
        re.IGNORECASE,
    ),
    re.compile(r"@([A-Za-z:-]+)=[\"']"),
    re.compile(r"v-on:([A-Za-z:-]+)=[\"']"),
    re.compile(r"\b(on[A-Z][A-Za-z]+)\s*=\s*\{"),
)
_NOT_EVENTS = frozenset({"function", "return", "const", "let", "var"})

_COMPONENT_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx", ".vue", ".svelte"})
_COMPONENT_PATTERNS = (
    re.compile(
        r"\b(?:export\s+(?:default\s+)?)?(?:function|const)\s+([A-Z][A-Za-z0-9_]*)\s*"
        r"(?::\s*(?:React\.)?FC[^=]*)?[=\s]*(?:\([^)]*\)|[A-Za-z_][A-Za-z0-9_]*)\s*(?:=>|\{)"
    ),
    re.compile(r"\b(?:export\s+)?(?:const|let)\s+([A-Z][A-Za-z0-9_]*)\s*=\s*(?:React\.)?(?:memo|forwardRef|lazy)\s*\("),
    re.compile(r"(?:defineComponent|createComponent)\s*\(\s*\{\s*name\s*:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"^\s*export\s+let\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE),
    re.compile(r"@Component\s*\(\s*\{[^}]*selector\s*:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"@Component\s*\(\s*\{[^}]*tag\s*:\s*['\"]([^'\"]+)['\"]"),
    re.compile(r"customElements\.define\s*\(\s*['\"]([^'\"]+)['\"]"),
)

# (pattern, capture group holding the model name)
_MODEL_PATTERNS = (
    (re.compile(r"\bmodel\s+([A-Z][A-Za-z0-9_]*)\s*\{"), 1),
    (re.compile(r"@Entity\s*\([^)]*\)\s*(?:export\s+)?class\s+([A-Z][A-Za-z0-9_]*)"), 1),
    (re.compile(r"\b([A-Z]?[a-z]+)Schema\s*=\s*new\s+(?:mongoose\.)?Schema\s*\("), 1),
    (re.compile(r"\b([A-Z][A-Za-z0-9_]*)\.init\s*\(\s*\{"), 1),
    (re.compile(r"sequelize\.define\s*\(\s*['\"]([^'\"]+)['\"]"), 1),
    (
        re.compile(
            r"\b(?:export\s+)?(?:const|let)\s+([a-z][A-Za-z0-9_]*)\s*=\s*(?:pgTable|mysqlTable|sqliteTable)"
            r"\s*\(\s*['\"]([^'\"]+)['\"]"
        ),
        1,
    ),
    (
        re.compile(
            r"\btable\.(?:string|integer|boolean|text|json|timestamp|date|float|decimal|bigInteger|uuid)"
            r"\s*\(\s*['\"]([^'\"]+)['\"]"
        ),
        1,
    ),
)


def extract_functions(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _FUNCTION_PATTERNS):
        name = match.group(1)
        if name in _NOT_FUNCTIONS:
            continue
        context.emit(FactKind.FUNCTION, name, match.start(), params=match.group(2) or "")


def extract_endpoints(context: ExtractionContext) -> None:
    for pattern in (_VERB_ENDPOINT, _ROUTE_CHAIN, _NEST_DECORATOR, _HAPI_ROUTE, _KOA_ROUTE):
        for match in context.scan(pattern):
            if pattern is _ROUTE_CHAIN:
                path, method = match.group(1), match.group(2)
            else:
                method, path = match.group(1), match.group(2) or "/"
            context.emit(FactKind.ENDPOINT, f"{method.upper()} {path}", match.start())


def extract_env(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _ENV_PATTERNS):
        captured = match.group(1)
        if "," in captured:
            for part in captured.split(","):
                name = part.split(":")[0].strip()
                if name and _ENV_NAME.match(name):
                    context.emit(FactKind.ENV_VAR, name, match.start())
            continue
        name = captured.split(":")[0].strip()
        if name:
            context.emit(FactKind.ENV_VAR, name, match.start())


def extract_config_keys(context: ExtractionContext) -> None:
    for match in scan_patterns(context, _CONFIG_PATTERNS):
        context.emit(FactKind.CONFIG_KEY, match.group(1), match.start())


def extract_cli_commands(context: ExtractionContext) -> None:
    emit_cli_commands(context, _CLI_PATTERNS)


def emit_cli_commands(context: ExtractionContext, patterns) -> None:  # noqa: ANN001 - pattern tuple
    for match in scan_patterns(context, patterns):
        name = match.group(1)
        if not name or name.startswith(("<", "[")):
            continue
        context.emit(FactKind.CLI_COMMAND, name, match.start())


def extract_events(context: ExtractionContext) -> None:
    emit_events(context, _EVENT_PATTERNS)


def emit_events(context: ExtractionContext, patterns, group: int = 1) -> None:  # noqa: ANN001
    for match in scan_patterns(context, patterns):
        name = match.group(group)
        if not name or name in _NOT_EVENTS:
            continue
        context.emit(FactKind.EVENT, name, match.start())


def extract_components(context: ExtractionContext) -> None:
    if context.ext not in _COMPONENT_EXTENSIONS:
        return
    for match in scan_patterns(context, _COMPONENT_PATTERNS):
        name = match.group(1)
        if name:
            context.emit(FactKind.COMPONENT, name, match.start())


def extract_models(context: ExtractionContext) -> None:
    emit_models(context, _MODEL_PATTERNS)


def emit_models(context: ExtractionContext, patterns) -> None:  # noqa: ANN001
    for pattern, group in patterns:
        for match in context.scan(pattern):
            name = match.group(group)
            if name:
                context.emit(FactKind.MODEL, name, match.start())


LANGUAGE = Language(
    tag="javascript",
    extensions=(".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".vue", ".svelte"),
    rules={
        Category.FUNCTIONS: (extract_functions,),
        Category.ENDPOINTS: (extract_endpoints,),
        Category.ENV: (extract_env,),
        Category.CONFIG_KEYS: (extract_config_keys,),
        Category.CLI_COMMANDS: (extract_cli_commands,),
        Category.EVENTS: (extract_events,),
        Category.COMPONENTS: (extract_components,),
        Category.MODELS: (extract_models,),
    },
)

__all__ = ["LANGUAGE", "emit_cli_commands", "emit_events", "emit_models"]
