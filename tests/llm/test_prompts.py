"""Tests for LLM prompt rendering."""

from __future__ import annotations

import json

from driftguard.llm import build_docs_drift_prompt, build_logic_drift_prompt


def test_docs_prompt_embeds_entities_as_json_and_docs_verbatim() -> None:
    entities = [{"type": "function", "name": "createUser", "signature": "createUser(email)"}]
    prompt = build_docs_drift_prompt(entities, "## API\ncreateUser(username)")

    assert prompt.startswith("You are a strict documentation drift detector.")
    assert json.dumps(entities, indent=2) in prompt
    assert "DOCUMENTATION:\n## API\ncreateUser(username)" in prompt
    assert '{"drifts": []}' in prompt


def test_logic_prompt_sections() -> None:
    prompt = build_logic_drift_prompt("Refunds", "FILE: src/refund.js\n+DAYS = 7", "Refunds within 30 days & more <b>")

    assert "RULE: Refunds" in prompt
    assert "CODE CHANGES:\nFILE: src/refund.js\n+DAYS = 7" in prompt
    assert "BUSINESS POLICY:\nRefunds within 30 days & more <b>" in prompt
    assert '"contradicts_policy": false' in prompt
