"""Prompt rendering for the LLM drift checks."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Sequence

from jinja2 import Environment, FileSystemLoader

TEMPLATES_DIR = Path(__file__).with_name("templates")
DOCS_TEMPLATE = "docs_drift.j2"
LOGIC_TEMPLATE = "logic_drift.j2"


def build_docs_drift_prompt(entities: Sequence[Mapping[str, Any]], docs: str) -> str:
    """Render the documentation drift prompt for the changed code entities."""
    template = _environment().get_template(DOCS_TEMPLATE)
    return template.render(entities=list(entities), docs=docs)


def build_logic_drift_prompt(rule_name: str, code_diff: str, policy_text: str) -> str:
    template = _environment().get_template(LOGIC_TEMPLATE)
    return template.render(rule_name=rule_name, code_diff=code_diff, policy_text=policy_text)


@lru_cache(maxsize=1)
def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["tojson_pretty"] = _tojson_pretty
    return env


def _tojson_pretty(value: Any) -> str:
    return json.dumps(value, indent=2)


__all__ = ["build_docs_drift_prompt", "build_logic_drift_prompt"]
