"""Pattern safety probing and per-file scan budgets."""

from __future__ import annotations

import itertools
import re

import pytest

from driftguard import safety
from driftguard.safety import (
    PatternSafetyError,
    ScanBudget,
    compile_user_pattern,
    parse_flags,
    validate_pattern_safety,
)


def test_simple_pattern_passes_the_probe() -> None:
    compiled = validate_pattern_safety("a+")
    assert compiled.pattern == "a+"


def test_nested_quantifier_is_rejected() -> None:
    with pytest.raises(PatternSafetyError, match="ReDoS"):
        validate_pattern_safety("(a+)+$")


def test_invalid_pattern_is_rejected() -> None:
    with pytest.raises(PatternSafetyError, match="Invalid regex"):
        validate_pattern_safety("(unclosed")


def test_slash_delimited_pattern_carries_flags() -> None:
    pattern = compile_user_pattern("/limit: (\\d+)/i")
    assert pattern.regex.flags & re.IGNORECASE
    assert pattern.find_all is False
    assert pattern.values("LIMIT: 5\nlimit: 6") == ["5"]


def test_plain_pattern_defaults_to_all_matches() -> None:
    pattern = compile_user_pattern(r"(\d+) days")
    assert pattern.find_all is True
    assert pattern.values("7 days or 30 days") == ["7", "30"]
    assert compile_user_pattern(r"\d+ days").values("7 days") == ["7 days"]


def test_flags() -> None:
    assert parse_flags("gim") == re.IGNORECASE | re.MULTILINE
    with pytest.raises(PatternSafetyError):
        parse_flags("q")
    with pytest.raises(PatternSafetyError):
        compile_user_pattern("")


def test_scan_budget_caps_matches_per_pattern() -> None:
    budget = ScanBudget("big.js", max_matches=3)
    matches = list(budget.finditer(re.compile("a"), "a" * 10))
    assert len(matches) == 3
    assert budget.exhausted is False


def test_scan_budget_stops_every_pattern_once_time_runs_out() -> None:
    ticks = itertools.count()
    budget = ScanBudget("slow.js", time_limit=2, clock=lambda: float(next(ticks)))

    first = list(budget.finditer(re.compile("a"), "a" * 10))
    assert 0 < len(first) < 10
    assert budget.exhausted is True
    assert list(budget.finditer(re.compile("b"), "bbb")) == []


class _SilentReader:
    def poll(self, timeout: float) -> bool:
        return False

    def close(self) -> None:
        pass


class _IdleProcess:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs

    def start(self) -> None:
        pass

    def is_alive(self) -> bool:
        return False

    def join(self, timeout: float | None = None) -> None:
        pass


class _StalledContext:
    def Pipe(self, duplex: bool = True):  # noqa: N802 - mirrors multiprocessing
        return _SilentReader(), _SilentReader()

    def Process(self, **kwargs) -> _IdleProcess:  # noqa: N802 - mirrors multiprocessing
        return _IdleProcess(**kwargs)


def test_safety_workers_use_the_spawn_context() -> None:
    assert safety._MP_CONTEXT.get_start_method() == "spawn"


def test_worker_that_never_starts_is_a_pattern_error(monkeypatch) -> None:
    monkeypatch.setattr(safety, "_MP_CONTEXT", _StalledContext())
    monkeypatch.setattr(safety, "_STARTUP_TIMEOUT", 0.0)

    with pytest.raises(PatternSafetyError, match="did not start"):
        validate_pattern_safety("a+")
