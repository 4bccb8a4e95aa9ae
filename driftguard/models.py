"""Core data models shared across driftguard components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

SEVERITIES: Tuple[str, ...] = ("info", "warning", "error", "critical")
FAILING_SEVERITIES = frozenset({"error", "critical"})


class FactKind(str, Enum):
    """Structural element categories produced by extraction."""

    FUNCTION = "function"
    CLASS = "class"
    ENDPOINT = "endpoint"
    ENV_VAR = "env-var"
    CONFIG_KEY = "config-key"
    CLI_FLAG = "cli-flag"
    CLI_COMMAND = "cli-command"
    COMPONENT = "component"
    MODEL = "model"
    EVENT = "event"
    TEST = "test"
    GRAPHQL_OPERATION = "graphql-operation"
    WEBSOCKET_EVENT = "websocket-event"


@dataclass(frozen=True)
class Fact:
    """A structural element extracted from source code text."""

    kind: FactKind
    name: str
    signature: str
    file: str
    line: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "name": self.name,
            "signature": self.signature,
            "file": self.file,
            "line": self.line,
        }


@dataclass(frozen=True)
class DocFact:
    """Documentation-side counterpart of a Fact; the signature may be name-only."""

    kind: FactKind
    name: str
    signature: str
    file: str
    line: int


@dataclass(frozen=True)
class Comparison:
    """User-authored equivalence rule between a code value and a policy value."""

    code_pattern: str
    policy_pattern: str
    compare: str = "equals"
    value_type: str = "auto"
    severity: Optional[str] = None
    name: Optional[str] = None
    code_flags: Optional[str] = None
    policy_flags: Optional[str] = None


@dataclass(frozen=True)
class RenameCandidate:
    """A single-field substitution inferred from one diff hunk."""

    old_key: str
    new_key: str


@dataclass(frozen=True)
class Finding:
    """A detected mismatch between code and docs or policy."""

    source: str
    type: str
    severity: str
    explanation: str
    suggestion: str = ""
    file: Optional[str] = None
    deterministic: bool = True
    rule: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise with the stable field names consumed by host processes."""
        payload: Dict[str, Any] = {
            "source": self.source,
            "type": self.type,
            "severity": self.severity,
            "deterministic": self.deterministic,
            "file": self.file,
            "explanation": self.explanation,
            "suggestion": self.suggestion,
        }
        if self.rule:
            payload["rule"] = self.rule
        if self.metadata:
            payload.update(self.metadata)
        return payload


def normalize_severity(value: object, fallback: object = None) -> str:
    """Return a known severity, the fallback when unknown, else ``warning``."""
    normalized = _normalize(value)
    if normalized:
        return normalized
    return _normalize(fallback) or "warning"


def _normalize(value: object) -> str:
    if not value:
        return ""
    lowered = str(value).lower()
    return lowered if lowered in SEVERITIES else ""


__all__ = [
    "Comparison",
    "DocFact",
    "FAILING_SEVERITIES",
    "Fact",
    "FactKind",
    "Finding",
    "RenameCandidate",
    "SEVERITIES",
    "normalize_severity",
]
