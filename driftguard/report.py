"""Rendering of findings as text lines, markdown comments or JSON."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Sequence

from jinja2 import Environment, FileSystemLoader

from .models import SEVERITIES, Finding
from .synthesizer import SkippedFile

FORMATS = ("text", "markdown", "json")
NO_DRIFT_MESSAGE = "Drift Guard: no drift detected."
TEMPLATES_DIR = Path(__file__).with_name("templates")

_SEVERITY_TITLES: Dict[str, str] = {
    "critical": "Critical",
    "error": "Errors",
    "warning": "Warnings",
    "info": "Info",
}


class ReportError(ValueError):
    """Raised for an unknown output format."""


def normalize_format(value: str | None) -> str:
    """Map a configured format onto one of :data:`FORMATS`; ``github-comment`` renders as markdown."""
    if not value:
        return "text"
    normalized = value.strip().lower()
    if normalized == "github-comment":
        return "markdown"
    if normalized not in FORMATS:
        raise ReportError(f"Unknown output format '{value}'. Expected one of: {', '.join(FORMATS)}")
    return normalized


def format_text(findings: Sequence[Finding]) -> str:
    if not findings:
        return NO_DRIFT_MESSAGE
    lines: List[str] = []
    for finding in findings:
        parts = [finding.severity.upper() if finding.severity else "INFO"]
        parts.extend(value for value in (finding.source, finding.type) if value)
        if finding.rule:
            parts.append(f"rule={finding.rule}")
        if finding.file:
            parts.append(f"file={finding.file}")
        if finding.explanation:
            parts.append(finding.explanation)
        lines.append(" | ".join(parts))
    return "\n".join(lines)


def format_markdown(findings: Sequence[Finding], skipped: Sequence[SkippedFile] = ()) -> str:
    """Group findings by severity, most severe first."""
    groups = []
    for severity in reversed(SEVERITIES):
        members = [finding for finding in findings if finding.severity == severity]
        if members:
            groups.append({"title": _SEVERITY_TITLES[severity], "findings": members})
    template = _environment().get_template("report.md.j2")
    return template.render(groups=groups, total=len(findings), skipped=list(skipped)).rstrip() + "\n"


def format_json(findings: Sequence[Finding], skipped: Sequence[SkippedFile] = ()) -> str:
    payload: Dict[str, object] = {"results": [finding.to_dict() for finding in findings]}
    if skipped:
        payload["skipped"] = [{"file": item.file, "reason": item.reason} for item in skipped]
    return json.dumps(payload, indent=2)


def render_report(
    findings: Sequence[Finding],
    output_format: str | None,
    skipped: Sequence[SkippedFile] = (),
) -> str:
    fmt = normalize_format(output_format)
    if fmt == "json":
        return format_json(findings, skipped)
    if fmt == "markdown":
        return format_markdown(findings, skipped)
    return format_text(findings)


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


__all__ = [
    "FORMATS",
    "NO_DRIFT_MESSAGE",
    "ReportError",
    "format_json",
    "format_markdown",
    "format_text",
    "normalize_format",
    "render_report",
]
