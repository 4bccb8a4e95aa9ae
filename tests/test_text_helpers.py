"""Shared text, severity and logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from driftguard.logging import configure_logging, get_logger
from driftguard.models import Fact, FactKind, normalize_severity
from driftguard.text import is_truthy, line_of, safe_parse_json, truncate_text


def test_truncate_text_marks_the_cut() -> None:
    assert truncate_text("abcdef", 3) == "abc\n[truncated]"
    assert truncate_text("abc", 3) == "abc"
    assert truncate_text("abc", None) == "abc"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('{"drifts": []}', {"drifts": []}),
        ('```json\n{"drifts": []}\n```', {"drifts": []}),
        ('Sure! {"contradicts_policy": false} Hope that helps.', {"contradicts_policy": False}),
        ("no json here", None),
        ("", None),
    ],
)
def test_safe_parse_json(raw: str, expected: object) -> None:
    assert safe_parse_json(raw) == expected


def test_is_truthy_and_line_of() -> None:
    assert is_truthy("Yes") and is_truthy(1) and is_truthy(True)
    assert not is_truthy("no") and not is_truthy(None)
    assert line_of("a\nb\nc", 4) == 3


def test_normalize_severity() -> None:
    assert normalize_severity("ERROR") == "error"
    assert normalize_severity("loud", "info") == "info"
    assert normalize_severity(None, "nonsense") == "warning"


def test_fact_to_dict() -> None:
    fact = Fact(kind=FactKind.ENV_VAR, name="PORT", signature="PORT", file="app.js", line=3)
    assert fact.to_dict() == {"type": "env-var", "name": "PORT", "signature": "PORT", "file": "app.js", "line": 3}


def test_configure_logging_writes_to_file(tmp_path: Path) -> None:
    log_file = tmp_path / "drift.log"
    logger = configure_logging(verbose=True, log_file=log_file)
    configure_logging(verbose=True, log_file=log_file)

    get_logger("tests").debug("hello from tests")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2
    assert "hello from tests" in log_file.read_text(encoding="utf-8")
