"""Configuration loading for driftguard (.drift.config.yml)."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import yaml

from .extractors.base import EXTRACT_NAMES
from .logic import CompiledComparison, compile_comparison
from .models import Comparison
from .payload import compile_allowlist
from .safety import PatternSafetyError

DEFAULT_CONFIG_NAME = ".drift.config.yml"
DEFAULT_MAX_DOC_CHARS = 20_000
DEFAULT_MAX_ENTITIES = 200
DEFAULT_FULL_SCAN_MAX_FILES = 200
DEFAULT_MAX_DIFF_CHARS = 12_000
DEFAULT_MAX_POLICY_CHARS = 20_000
DEFAULT_LLM_TEMPERATURE = 0.1
DEFAULT_LLM_MAX_TOKENS = 500
DEFAULT_CACHE_DIR = ".drift-cache"

_GITHUB_ENV_REF = re.compile(r"^\$\{\{\s*env\.([A-Z0-9_]+)\s*\}\}$")
_SHELL_ENV_REF = re.compile(r"^\$\{([A-Z0-9_]+)\}$")

FullScan = Union[bool, str]


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be read, parsed or validated."""


@dataclass
class DocsRule:
    """One docs-drift comparison unit: code globs, doc globs and what to extract."""

    name: str = ""
    code_files: List[str] = field(default_factory=list)
    doc_files: List[str] = field(default_factory=list)
    full_scan: FullScan = "auto"
    full_scan_max_files: int = DEFAULT_FULL_SCAN_MAX_FILES
    extract: List[str] = field(default_factory=lambda: list(EXTRACT_NAMES))
    max_doc_chars: int = DEFAULT_MAX_DOC_CHARS
    max_entities: int = DEFAULT_MAX_ENTITIES
    payload_keys_allowlist: List[str] = field(default_factory=list)
    allowlist: List[re.Pattern[str]] = field(default_factory=list, repr=False)


@dataclass
class DocsDriftConfig:
    """The ``docs-drift`` block; its own fields are the defaults for every rule."""

    enabled: bool = True
    defaults: DocsRule = field(default_factory=DocsRule)
    rules: List[DocsRule] = field(default_factory=list)

    def effective_rules(self) -> List[DocsRule]:
        return list(self.rules) if self.rules else [self.defaults]


@dataclass
class LogicRule:
    """Sensitive code globs paired with the policy documents that govern them."""

    name: str = "Policy Rule"
    code_files: List[str] = field(default_factory=list)
    policy_files: List[str] = field(default_factory=list)
    comparisons: List[CompiledComparison] = field(default_factory=list)


@dataclass
class LogicDriftConfig:
    enabled: bool = True
    max_diff_chars: int = DEFAULT_MAX_DIFF_CHARS
    max_policy_chars: int = DEFAULT_MAX_POLICY_CHARS
    rules: List[LogicRule] = field(default_factory=list)


@dataclass
class SeverityConfig:
    docs_drift: str = "warning"
    logic_drift: str = "error"


@dataclass
class OutputConfig:
    """Report format and fail policy."""

    format: str = "github-comment"
    severity: SeverityConfig = field(default_factory=SeverityConfig)
    fail_on_error: bool = True
    allow_nondeterministic_fail: bool = False


@dataclass
class LLMConfig:
    """Optional LLM settings; disabled unless ``llm.enabled`` is true."""

    enabled: bool = False
    provider: str = "openai-compatible"
    model: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = DEFAULT_LLM_TEMPERATURE
    max_tokens: int = DEFAULT_LLM_MAX_TOKENS
    mock_response: Optional[str] = None
    trusted_hosts: List[str] = field(default_factory=list)


@dataclass
class CacheConfig:
    enabled: bool = True
    dir: str = DEFAULT_CACHE_DIR


@dataclass
class DriftConfig:
    """Represents the settings defined in .drift.config.yml."""

    root: Path
    version: int = 1
    docs_drift: DocsDriftConfig = field(default_factory=DocsDriftConfig)
    logic_drift: LogicDriftConfig = field(default_factory=LogicDriftConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)


def load_config(
    config_path: Path | str,
    *,
    root: Path | str | None = None,
    llm_api_key: Optional[str] = None,
    fail_on_error: object = None,
) -> DriftConfig:
    """Load, normalize and validate configuration from disk.

    Every comparison pattern and allowlist regex is compiled and probed here,
    so a broken or unsafe pattern fails before any file is scanned.
    """
    repo_root = Path(root).expanduser().resolve() if root else Path.cwd()
    config_file = _resolve_config_path(Path(config_path), repo_root)
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_file}")

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    config = build_config(data, root=repo_root)

    if llm_api_key:
        config.llm.api_key = llm_api_key
    if config.llm.api_key:
        config.llm.api_key = resolve_env(config.llm.api_key)
    if fail_on_error is not None and fail_on_error != "":
        parsed = _as_bool(fail_on_error)
        if parsed is not None:
            config.output.fail_on_error = parsed

    if config.llm.enabled and not config.llm.model:
        raise ConfigError("llm.model is required when llm.enabled is true")
    return config


def build_config(data: Mapping[str, Any], *, root: Path) -> DriftConfig:
    """Normalize an already-parsed mapping into :class:`DriftConfig`."""
    docs_data = _as_dict(data.get("docs-drift") or data.get("docsDrift"))
    logic_data = _as_dict(data.get("logic-drift") or data.get("logicDrift"))
    output_data = _as_dict(data.get("output"))
    llm_data = _as_dict(data.get("llm"))
    cache_data = _as_dict(data.get("cache"))

    defaults = _docs_rule(docs_data, DocsRule())
    docs_rules = [
        _docs_rule(_as_dict(rule), defaults)
        for rule in (docs_data.get("rules") or [])
        if isinstance(rule, dict)
    ]
    docs_drift = DocsDriftConfig(
        enabled=_as_bool(docs_data.get("enabled")) is not False,
        defaults=defaults,
        rules=docs_rules,
    )

    logic_drift = LogicDriftConfig(
        enabled=_as_bool(logic_data.get("enabled")) is not False,
        max_diff_chars=_as_int(_first(logic_data, "max_diff_chars", "maxDiffChars")) or DEFAULT_MAX_DIFF_CHARS,
        max_policy_chars=_as_int(_first(logic_data, "max_policy_chars", "maxPolicyChars"))
        or DEFAULT_MAX_POLICY_CHARS,
        rules=[_logic_rule(_as_dict(rule)) for rule in (logic_data.get("rules") or []) if isinstance(rule, dict)],
    )

    severity_data = _as_dict(output_data.get("severity"))
    output = OutputConfig(
        format=_as_str(output_data.get("format")) or "github-comment",
        severity=SeverityConfig(
            docs_drift=_as_str(_first(severity_data, "docs-drift", "docsDrift")) or "warning",
            logic_drift=_as_str(_first(severity_data, "logic-drift", "logicDrift")) or "error",
        ),
        fail_on_error=_bool_or(_first(output_data, "fail_on_error", "failOnError"), True),
        allow_nondeterministic_fail=_bool_or(
            _first(output_data, "allow_nondeterministic_fail", "allowNonDeterministicFail"), False
        ),
    )

    llm = LLMConfig(
        enabled=_bool_or(llm_data.get("enabled"), False),
        provider=(_as_str(_first(llm_data, "provider", "type")) or "openai-compatible").lower(),
        model=_as_str(llm_data.get("model")),
        api_key=_as_str(_first(llm_data, "api_key", "apiKey")),
        base_url=_as_str(_first(llm_data, "base_url", "baseUrl")),
        temperature=_number_or(llm_data.get("temperature"), DEFAULT_LLM_TEMPERATURE),
        max_tokens=int(_number_or(_first(llm_data, "max_tokens", "maxTokens"), DEFAULT_LLM_MAX_TOKENS)),
        mock_response=_as_str(_first(llm_data, "mock_response", "mockResponse")),
        trusted_hosts=_as_str_list(_first(llm_data, "trusted_hosts", "trustedHosts")),
    )

    env_cache = os.environ.get("DRIFTGUARD_CACHE", "").strip().lower()
    cache = CacheConfig(
        enabled=_bool_or(cache_data.get("enabled"), True) and env_cache != "false",
        dir=_as_str(cache_data.get("dir")) or DEFAULT_CACHE_DIR,
    )

    return DriftConfig(
        root=root,
        version=_as_int(data.get("version")) or 1,
        docs_drift=docs_drift,
        logic_drift=logic_drift,
        output=output,
        llm=llm,
        cache=cache,
    )


def resolve_env(value: Any) -> Any:
    """Expand ``${{ env.NAME }}`` and ``${NAME}`` references; unset names become ``""``."""
    if not isinstance(value, str):
        return value
    match = _GITHUB_ENV_REF.match(value) or _SHELL_ENV_REF.match(value)
    if match:
        return os.environ.get(match.group(1), "")
    return value


def parse_full_scan(value: Any, fallback: FullScan) -> FullScan:
    if value is None or value == "":
        return fallback
    if isinstance(value, str) and value.strip().lower() == "auto":
        return "auto"
    parsed = _as_bool(value)
    return fallback if parsed is None else parsed


# ------------------------------------------------------------------
# Internals


def _resolve_config_path(config_path: Path, root: Path) -> Path:
    config_path = config_path.expanduser()
    if not config_path.is_absolute():
        config_path = root / config_path
    if config_path.is_dir():
        config_path = config_path / DEFAULT_CONFIG_NAME
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc


def _docs_rule(data: Mapping[str, Any], defaults: DocsRule) -> DocsRule:
    allowlist = _first(data, "payload_keys_allowlist", "payloadKeysAllowlist")
    allowlist_values = _as_str_list(allowlist) if allowlist is not None else list(defaults.payload_keys_allowlist)
    extract = data.get("extract")
    try:
        compiled_allowlist = compile_allowlist(allowlist_values)
    except PatternSafetyError as exc:
        raise ConfigError(f"Invalid payload_keys_allowlist entry: {exc}") from exc
    return DocsRule(
        name=_as_str(_first(data, "name", "label")) or defaults.name,
        code_files=_list_or(_first(data, "code-files", "codeFiles"), defaults.code_files),
        doc_files=_list_or(_first(data, "doc-files", "docFiles"), defaults.doc_files),
        full_scan=parse_full_scan(_first(data, "full_scan", "fullScan"), defaults.full_scan),
        full_scan_max_files=int(
            _number_or(_first(data, "full_scan_max_files", "fullScanMaxFiles"), defaults.full_scan_max_files)
        ),
        extract=_as_str_list(extract) if extract else list(defaults.extract),
        max_doc_chars=int(_number_or(_first(data, "max_doc_chars", "maxDocChars"), defaults.max_doc_chars)),
        max_entities=int(_number_or(_first(data, "max_entities", "maxEntities"), defaults.max_entities)),
        payload_keys_allowlist=allowlist_values,
        allowlist=compiled_allowlist,
    )


def _logic_rule(data: Mapping[str, Any]) -> LogicRule:
    name = _as_str(data.get("name")) or "Policy Rule"
    raw_comparisons = _first(data, "comparisons", "deterministic-rules", "deterministicRules") or []
    if isinstance(raw_comparisons, dict):
        raw_comparisons = [raw_comparisons]
    comparisons: List[CompiledComparison] = []
    for raw in raw_comparisons:
        comparison = _comparison(_as_dict(raw))
        if comparison is None:
            continue
        try:
            comparisons.append(compile_comparison(comparison))
        except PatternSafetyError as exc:
            raise ConfigError(f"Rule '{name}': {exc}") from exc
    return LogicRule(
        name=name,
        code_files=_as_str_list(_first(data, "code-files", "codeFiles")),
        policy_files=_as_str_list(_first(data, "policy-files", "policyFiles")),
        comparisons=comparisons,
    )


def _comparison(data: Mapping[str, Any]) -> Optional[Comparison]:
    code_pattern = _as_str(_first(data, "code_pattern", "codePattern"))
    policy_pattern = _as_str(_first(data, "policy_pattern", "policyPattern"))
    if not code_pattern or not policy_pattern:
        return None
    return Comparison(
        code_pattern=code_pattern,
        policy_pattern=policy_pattern,
        compare=(_as_str(data.get("compare")) or "equals").lower(),
        value_type=(_as_str(_first(data, "value_type", "valueType")) or "auto").lower(),
        severity=_as_str(data.get("severity")),
        name=_as_str(_first(data, "name", "label")),
        code_flags=_as_str(_first(data, "code_flags", "codeFlags")),
        policy_flags=_as_str(_first(data, "policy_flags", "policyFlags")),
    )


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _number_or(value: Any, fallback: float) -> float:
    if value is None or value == "" or isinstance(value, bool):
        return fallback
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    return None


def _bool_or(value: Any, fallback: bool) -> bool:
    parsed = _as_bool(value)
    return fallback if parsed is None else parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item)]
    return []


def _list_or(value: Any, fallback: Sequence[str]) -> List[str]:
    return _as_str_list(value) if value is not None else list(fallback)


__all__ = [
    "CacheConfig",
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "DocsDriftConfig",
    "DocsRule",
    "DriftConfig",
    "LLMConfig",
    "LogicDriftConfig",
    "LogicRule",
    "OutputConfig",
    "SeverityConfig",
    "build_config",
    "load_config",
    "parse_full_scan",
    "resolve_env",
]
