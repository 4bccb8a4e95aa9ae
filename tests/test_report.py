"""Rendering of findings in each output format."""

from __future__ import annotations

import json

import pytest

from driftguard.models import Finding
from driftguard.report import ReportError, normalize_format, render_report
from driftguard.synthesizer import SkippedFile

ERROR = Finding(
    source="docs-drift",
    type="function-signature-mismatch",
    severity="error",
    explanation="Docs mention createUser(username) but code uses createUser(email).",
    suggestion="Update docs or code to align parameters.",
    file="src/users.js",
    rule="api",
)
LLM_WARNING = Finding(
    source="docs-drift-llm",
    type="docs-drift",
    severity="warning",
    explanation="Docs are stale.",
    deterministic=False,
)
CRITICAL = Finding(source="logic-drift", type="policy-value-mismatch", severity="critical", explanation="Bad.")


def test_normalize_format() -> None:
    assert normalize_format(None) == "text"
    assert normalize_format("GitHub-Comment") == "markdown"
    assert normalize_format(" json ") == "json"
    with pytest.raises(ReportError, match="Unknown output format 'xml'"):
        normalize_format("xml")


def test_text_format() -> None:
    output = render_report([ERROR, LLM_WARNING], "text")
    assert output.splitlines() == [
        "ERROR | docs-drift | function-signature-mismatch | rule=api | file=src/users.js | "
        "Docs mention createUser(username) but code uses createUser(email).",
        "WARNING | docs-drift-llm | docs-drift | Docs are stale.",
    ]
    assert render_report([], "text") == "Drift Guard: no drift detected."


def test_markdown_groups_by_severity_most_severe_first() -> None:
    output = render_report([LLM_WARNING, ERROR, CRITICAL], "github-comment")

    assert output.startswith("## Drift Guard Report\n\nFound 3 possible drift(s).\n")
    assert output.index("### Critical") < output.index("### Errors") < output.index("### Warnings")
    assert (
        "- **function-signature-mismatch** (`docs-drift`, rule: api) in `src/users.js`: "
        "Docs mention createUser(username) but code uses createUser(email).\n"
        "  - Suggestion: Update docs or code to align parameters.\n"
    ) in output
    assert "- **docs-drift** (`docs-drift-llm`) _(LLM, non-deterministic)_: Docs are stale." in output
    assert "### Info" not in output
    assert output.endswith("\n") and not output.endswith("\n\n")


def test_markdown_without_findings_lists_skipped_files() -> None:
    output = render_report([], "markdown", [SkippedFile("assets/logo.js", "file appears to be binary")])

    assert "No drift detected." in output
    assert "<summary>Skipped files (1)</summary>" in output
    assert "- `assets/logo.js`: file appears to be binary" in output


def test_json_format_uses_stable_field_names() -> None:
    payload = json.loads(render_report([ERROR], "json", [SkippedFile("a.js", "file not found")]))

    assert payload["results"] == [
        {
            "source": "docs-drift",
            "type": "function-signature-mismatch",
            "severity": "error",
            "deterministic": True,
            "file": "src/users.js",
            "explanation": "Docs mention createUser(username) but code uses createUser(email).",
            "suggestion": "Update docs or code to align parameters.",
            "rule": "api",
        }
    ]
    assert payload["skipped"] == [{"file": "a.js", "reason": "file not found"}]
    assert json.loads(render_report([], "json")) == {"results": []}
