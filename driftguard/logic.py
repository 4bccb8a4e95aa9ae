"""Deterministic value comparison between code diffs and policy documents.

A comparison pairs a code-side pattern with a policy-side pattern. Values are
group 1 of each match (or the whole match). Every code value must satisfy the
operator against at least one policy value; numbers compare numerically when
both sides parse, otherwise values compare as case-insensitive text.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

from .models import Comparison, Finding, normalize_severity
from .safety import UserPattern, compile_user_pattern

SOURCE = "logic-drift"
DEFAULT_RULE_NAME = "Policy Rule"

_SEPARATORS = re.compile(r"[, _]")


@dataclass(frozen=True)
class CompiledComparison:
    """A :class:`Comparison` whose patterns have passed the safety probe."""

    comparison: Comparison
    code: UserPattern
    policy: UserPattern

    @property
    def compare(self) -> str:
        return (self.comparison.compare or "equals").lower()

    @property
    def value_type(self) -> str:
        return (self.comparison.value_type or "auto").lower()

    def label(self, rule_name: str) -> str:
        return self.comparison.name or rule_name


def compile_comparison(comparison: Comparison) -> CompiledComparison:
    """Compile and probe both patterns; raises ``PatternSafetyError``."""
    return CompiledComparison(
        comparison=comparison,
        code=compile_user_pattern(comparison.code_pattern, comparison.code_flags),
        policy=compile_user_pattern(comparison.policy_pattern, comparison.policy_flags),
    )


def parse_number(value: object) -> float:
    """Parse ``value`` ignoring ``,``/``_``/space separators; NaN when not a finite number."""
    if value is None:
        return math.nan
    cleaned = _SEPARATORS.sub("", str(value))
    if not cleaned:
        return math.nan
    try:
        parsed = float(cleaned)
    except ValueError:
        return math.nan
    return parsed if math.isfinite(parsed) else math.nan


def compare_values(code_value: str, policy_value: str, compare: str = "equals", value_type: str = "auto") -> bool:
    """Return True when ``code_value`` satisfies ``compare`` against ``policy_value``."""
    op = (compare or "equals").lower()
    kind = (value_type or "auto").lower()
    code_number = math.nan if kind == "string" else parse_number(code_value)
    policy_number = math.nan if kind == "string" else parse_number(policy_value)

    if math.isfinite(code_number) and math.isfinite(policy_number):
        if op in {"not_equals", "ne"}:
            return code_number != policy_number
        if op == "gt":
            return code_number > policy_number
        if op in {"gte", "ge"}:
            return code_number >= policy_number
        if op == "lt":
            return code_number < policy_number
        if op in {"lte", "le"}:
            return code_number <= policy_number
        return code_number == policy_number

    left = str(code_value).strip().lower()
    right = str(policy_value).strip().lower()
    if op in {"not_equals", "ne"}:
        return left != right
    if op == "contains":
        return right in left or left in right
    return left == right


def run_comparisons(
    comparisons: Iterable[Union[Comparison, CompiledComparison]],
    diff_text: str,
    policy_text: str,
    *,
    rule_name: str = DEFAULT_RULE_NAME,
    file: Optional[str] = None,
    default_severity: object = "error",
) -> List[Finding]:
    """Evaluate each comparison and report missing or mismatching policy values."""
    findings: List[Finding] = []
    seen: set[str] = set()
    for item in comparisons:
        compiled = item if isinstance(item, CompiledComparison) else _compile_if_complete(item)
        if compiled is None:
            continue
        code_values = compiled.code.values(diff_text or "")
        if not code_values:
            continue
        policy_values = compiled.policy.values(policy_text or "")
        severity = normalize_severity(compiled.comparison.severity, default_severity)
        label = compiled.label(rule_name)

        if not policy_values:
            key = f"{label}:missing:{','.join(code_values)}"
            if key in seen:
                continue
            seen.add(key)
            findings.append(
                Finding(
                    source=SOURCE,
                    type="policy-value-missing",
                    severity=severity,
                    rule=rule_name,
                    file=file,
                    explanation=(
                        f"Policy value missing for {label}. Code changed to {', '.join(code_values)} "
                        "but no matching policy value was found."
                    ),
                    suggestion="Update policy docs to include the value or adjust the code.",
                )
            )
            continue

        for code_value in code_values:
            if _satisfied(code_value, policy_values, compiled):
                continue
            key = f"{label}:mismatch:{code_value}:{','.join(policy_values)}"
            if key in seen:
                continue
            seen.add(key)
            findings.append(
                Finding(
                    source=SOURCE,
                    type="policy-value-mismatch",
                    severity=severity,
                    rule=rule_name,
                    file=file,
                    explanation=(
                        f"Policy mismatch for {label}. Code uses {code_value}, "
                        f"policy says {', '.join(policy_values)}."
                    ),
                    suggestion="Align code and policy to the same value.",
                )
            )
    return findings


# ------------------------------------------------------------------
# Internals


def _satisfied(code_value: str, policy_values: Sequence[str], compiled: CompiledComparison) -> bool:
    return any(
        compare_values(code_value, policy_value, compiled.compare, compiled.value_type)
        for policy_value in policy_values
    )


def _compile_if_complete(comparison: Comparison) -> Optional[CompiledComparison]:
    if not comparison.code_pattern or not comparison.policy_pattern:
        return None
    return compile_comparison(comparison)


__all__ = [
    "CompiledComparison",
    "DEFAULT_RULE_NAME",
    "compare_values",
    "compile_comparison",
    "parse_number",
    "run_comparisons",
]
