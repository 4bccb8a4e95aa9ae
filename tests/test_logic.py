"""Deterministic code/policy value comparison."""

from __future__ import annotations

import math

import pytest

from driftguard.logic import compare_values, compile_comparison, parse_number, run_comparisons
from driftguard.models import Comparison
from driftguard.safety import PatternSafetyError

DIFF = """@@ -1 +1 @@
-const REFUND_WINDOW_DAYS = 14;
+const REFUND_WINDOW_DAYS = 7;
"""
POLICY = "Refunds are accepted within 30 days of purchase."


def _comparison(compare: str, **overrides) -> Comparison:
    values = {
        "code_pattern": r"REFUND_WINDOW_DAYS\s*=\s*(\d+)",
        "policy_pattern": r"within (\d+) days",
        "compare": compare,
        "name": "refund window",
    }
    values.update(overrides)
    return Comparison(**values)


def test_code_value_satisfying_the_operator_is_not_reported() -> None:
    assert run_comparisons([_comparison("lte")], DIFF, POLICY) == []


def test_equals_mismatch_is_reported_once_per_value() -> None:
    findings = run_comparisons(
        [_comparison("equals")], DIFF, POLICY, rule_name="Refunds", file="docs/policy.md"
    )

    assert [finding.type for finding in findings] == ["policy-value-mismatch", "policy-value-mismatch"]
    assert findings[0].explanation == "Policy mismatch for refund window. Code uses 14, policy says 30."
    assert findings[1].explanation == "Policy mismatch for refund window. Code uses 7, policy says 30."
    assert findings[0].rule == "Refunds"
    assert findings[0].severity == "error"
    assert findings[0].file == "docs/policy.md"


def test_missing_policy_value() -> None:
    findings = run_comparisons([_comparison("equals", severity="critical")], DIFF, "No refunds at all.")

    assert [finding.type for finding in findings] == ["policy-value-missing"]
    assert findings[0].severity == "critical"
    assert "Code changed to 14, 7" in findings[0].explanation


def test_no_code_values_means_nothing_to_compare() -> None:
    assert run_comparisons([_comparison("equals")], "+unrelated = 1", POLICY) == []


def test_incomplete_comparisons_are_skipped() -> None:
    assert run_comparisons([_comparison("equals", policy_pattern="")], DIFF, POLICY) == []


def test_first_match_only_without_global_flag() -> None:
    comparison = compile_comparison(_comparison("lte", code_flags="i"))
    assert comparison.code.values(DIFF) == ["14"]


@pytest.mark.parametrize(
    ("code", "policy", "op", "value_type", "expected"),
    [
        ("7", "30", "lte", "auto", True),
        ("7", "30", "equals", "auto", False),
        ("1,000", "1000", "equals", "auto", True),
        ("1_000", "999", "gt", "number", True),
        ("30", "30", "ne", "auto", False),
        ("30", "30.0", "equals", "string", False),
        ("Gold", " gold ", "equals", "auto", True),
        ("premium-plan", "premium", "contains", "auto", True),
        ("basic", "gold", "not_equals", "auto", True),
        ("abc", "30", "lt", "auto", False),
    ],
)
def test_compare_values(code: str, policy: str, op: str, value_type: str, expected: bool) -> None:
    assert compare_values(code, policy, op, value_type) is expected


def test_parse_number() -> None:
    assert parse_number("1 000") == 1000
    assert parse_number("-2.5") == -2.5
    assert math.isnan(parse_number(""))
    assert math.isnan(parse_number(None))
    assert math.isnan(parse_number("inf"))
    assert math.isnan(parse_number("ten"))


def test_unsafe_comparison_pattern_is_rejected() -> None:
    with pytest.raises(PatternSafetyError):
        compile_comparison(_comparison("equals", code_pattern="(a+)+$"))
