"""Rules that apply to every language: class names, CLI flags and test cases."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from ..models import FactKind
from .base import ExtractionContext, scan_patterns

_CLASS = re.compile(r"\bclass\s+([A-Za-z0-9_]+)")
_CLI_FLAG = re.compile(r"--[a-z0-9][a-z0-9-]*", re.IGNORECASE)

_TEST_DIR_MARKERS = ("__tests__", "/tests/", "/test/", "/spec/")
_TEST_PATTERNS = (
    # describe('UserService', ...) / context(...) / suite(...)
    re.compile(r"\b(?:describe|context|suite)\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"\b(?:it|test|specify)\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"\b(?:test|it)\.each\s*\([^)]*\)\s*\(\s*['\"`]([^'\"`]+)['\"`]"),
    # pytest and unittest
    re.compile(r"\b(?:async\s+)?def\s+(test_[A-Za-z0-9_]+)\s*\("),
    re.compile(r"\bclass\s+(Test[A-Z][A-Za-z0-9_]*)\s*\("),
    # go test
    re.compile(r"\bfunc\s+(Test[A-Z][A-Za-z0-9_]*)\s*\([^)]*\*testing\."),
    re.compile(r"\bRSpec\.describe\s+([A-Z][A-Za-z0-9_:]*)"),
    # JUnit, then xUnit/NUnit
    re.compile(r"@Test[^{]*\bvoid\s+([A-Za-z_][A-Za-z0-9_]*)\s*\("),
    re.compile(r"\[(?:Fact|Test|Theory)\][^{]*\b(?:void|Task)\s+([A-Za-z_][A-Za-z0-9_]*)\s*\("),
)


def extract_classes(context: ExtractionContext) -> None:
    for match in context.scan(_CLASS):
        context.emit(FactKind.CLASS, match.group(1), match.start())


def extract_cli_flags(context: ExtractionContext) -> None:
    for match in context.scan(_CLI_FLAG):
        context.emit(FactKind.CLI_FLAG, match.group(0), match.start())


def is_test_file(file: str) -> bool:
    normalized = file.replace("\\", "/")
    basename = PurePosixPath(normalized).name.lower()
    if "test" in basename or "spec" in basename:
        return True
    return any(marker in normalized for marker in _TEST_DIR_MARKERS)


def extract_tests(context: ExtractionContext) -> None:
    if not is_test_file(context.file):
        return
    for match in scan_patterns(context, _TEST_PATTERNS):
        name = match.group(1)
        if name:
            context.emit(FactKind.TEST, name, match.start(), signature=name)


__all__ = ["extract_classes", "extract_cli_flags", "extract_tests", "is_test_file"]
