"""End-to-end drift synthesis over temporary repositories."""

from __future__ import annotations

import json
import time

import pytest

from driftguard.extractors import base as extractor_base

from driftguard.config import OutputConfig, load_config
from driftguard.git import GitDiffProvider
from driftguard.llm import LLMClient
from driftguard.models import Fact, FactKind, Finding
from driftguard.stores import FactCache
from driftguard.synthesizer import (
    DriftSynthesizer,
    limit_facts_by_kind,
    limit_facts_for_llm,
    run_check,
    should_fail,
)

DOCS_CONFIG = """
docs-drift:
  code-files: ["src/**/*.js"]
  doc-files: ["README.md"]
  extract: [function-signatures]
"""

USERS_JS = "export function createUser(email, password) {}\n"
README = "Call `createUser(username, password)` to register.\n"

RENAME_DIFF = """@@ -1,3 +1,3 @@
 const body = {
-  "user_id": id,
+  "uid": id,
 }
"""


def _synthesizer(repo_builder, config_text: str, **kwargs) -> DriftSynthesizer:
    repo_builder.config(config_text)
    config = load_config(".drift.config.yml", root=repo_builder.path())
    return DriftSynthesizer(config, **kwargs)


def _types(findings):
    return [finding.type for finding in findings]


def test_renamed_parameter_yields_one_signature_mismatch(repo_builder) -> None:
    repo_builder.write({"src/users.js": USERS_JS, "README.md": README})
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG)

    report = synthesizer.run("base", "head", repo_builder.changed("src/users.js"))

    assert _types(report.findings) == ["function-signature-mismatch"]
    finding = report.findings[0]
    assert finding.file == "src/users.js"
    assert finding.deterministic is True
    assert report.skipped == []
    assert (report.base_sha, report.head_sha) == ("base", "head")


def test_full_scan_reports_docs_for_removed_code(repo_builder) -> None:
    repo_builder.write(
        {
            "src/users.js": "export function createUser(username, password) {}\n",
            "README.md": README + "Call `legacyLogin(token)` to sign in.\n",
        }
    )
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG + "  full_scan: true\n")

    report = synthesizer.run("base", "head", repo_builder.changed("README.md"))

    assert _types(report.findings) == ["docs-mentions-missing-function"]
    assert report.findings[0].file == "README.md"


def test_unchanged_code_without_full_scan_is_skipped(repo_builder) -> None:
    repo_builder.write({"src/users.js": USERS_JS, "README.md": README})
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG + "  full_scan: false\n")

    assert synthesizer.run("base", "head", repo_builder.changed("README.md")).findings == []


def test_auto_full_scan_respects_the_file_ceiling(repo_builder) -> None:
    repo_builder.write({"src/a.js": "a", "src/b.js": "b", "README.md": README})
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG + "  full_scan_max_files: 1\n")
    rule = synthesizer.config.docs_drift.effective_rules()[0]

    decision = synthesizer.resolve_full_scan(rule, ["src/a.js", "src/a.js"])
    assert decision.full_scan is False
    assert decision.files == ["src/a.js"]

    rule.full_scan_max_files = 5
    decision = synthesizer.resolve_full_scan(rule, ["src/a.js"])
    assert decision.full_scan is True
    assert decision.files == ["src/a.js", "src/b.js"]


def test_unreadable_files_are_reported_as_skipped(repo_builder) -> None:
    repo_builder.write({"src/blob.js": "\0\0binary", "README.md": README})
    (repo_builder.path() / "src" / "latin1.js").write_bytes(b"caf\xe9 = 1\n")
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG + "  full_scan: false\n")

    report = synthesizer.run("base", "head", repo_builder.changed("src/blob.js", "src/latin1.js", "src/gone.js"))

    assert report.findings == []
    assert [(item.file, item.reason) for item in report.skipped] == [
        ("src/blob.js", "file appears to be binary"),
        ("src/latin1.js", "file is not valid UTF-8"),
        ("src/gone.js", "file not found"),
    ]


def test_parallel_skips_are_reported_in_input_order(repo_builder, monkeypatch) -> None:
    repo_builder.write({"src/a.js": "\0a", "src/b.js": "\0b", "README.md": README})
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG + "  full_scan: false\n", max_workers=4)
    load = DriftSynthesizer._load

    def slow_load(self, file):
        if file == "src/a.js":
            time.sleep(0.3)
        return load(self, file)

    monkeypatch.setattr(DriftSynthesizer, "_load", slow_load)

    report = synthesizer.run("base", "head", repo_builder.changed("src/a.js", "src/b.js"))

    assert [item.file for item in report.skipped] == ["src/a.js", "src/b.js"]


def test_oversized_files_are_reported_as_skipped(repo_builder, monkeypatch) -> None:
    monkeypatch.setattr(extractor_base, "MAX_CONTENT_LENGTH", 40)
    repo_builder.write({"src/big.js": USERS_JS * 3, "README.md": README})
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG + "  full_scan: false\n")

    report = synthesizer.run("base", "head", repo_builder.changed("src/big.js"))

    assert report.findings == []
    assert [item.file for item in report.skipped] == ["src/big.js"]
    assert report.skipped[0].reason.startswith("file too large")


def test_payload_rename_uses_the_file_diff(repo_builder) -> None:
    repo_builder.write(
        {
            "src/users.js": 'const body = { "uid": id }\n',
            "docs/api.md": '```json\n{ "user_id": 42 }\n```\n',
        }
    )
    calls = []

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        return RENAME_DIFF

    config_text = """
docs-drift:
  rules:
    - name: payloads
      code-files: ["src/**/*.js"]
      doc-files: ["docs/**/*.md"]
      extract: [payload-keys]
      full_scan: false
"""
    provider = GitDiffProvider(repo_builder.path(), runner=runner)
    synthesizer = _synthesizer(repo_builder, config_text, diff_provider=provider)

    report = synthesizer.run("base", "head", repo_builder.changed("src/users.js"))

    assert _types(report.findings) == ["payload-key-rename"]
    finding = report.findings[0]
    assert finding.rule == "payloads"
    assert finding.metadata == {"old_key": "user_id", "new_key": "uid"}
    assert calls == [["git", "diff", "base...head", "--", "src/users.js"]]


LOGIC_CONFIG = r"""
logic-drift:
  rules:
    - name: Refunds
      code-files: ["src/refunds/**"]
      policy-files: ["policies/*.md"]
      comparisons:
        - name: refund window
          code_pattern: 'DAYS = (\d+)'
          policy_pattern: 'within (\d+) days'
"""


def test_logic_rule_reports_stale_policy_and_value_mismatch(repo_builder) -> None:
    repo_builder.write(
        {
            "src/refunds/window.js": "const DAYS = 7;\n",
            "policies/refunds.md": "Refunds are accepted within 30 days.\n",
        }
    )

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        return "-const DAYS = 30;\n+const DAYS = 7;\n" if args[-1] == "src/refunds/window.js" else ""

    provider = GitDiffProvider(repo_builder.path(), runner=runner)
    synthesizer = _synthesizer(repo_builder, LOGIC_CONFIG, diff_provider=provider)

    report = synthesizer.run("base", "head", repo_builder.changed("src/refunds/window.js"))

    assert _types(report.findings) == ["policy-not-updated", "policy-value-mismatch"]
    stale, mismatch = report.findings
    assert stale.severity == "error"
    assert stale.file == "src/refunds/window.js"
    assert mismatch.rule == "Refunds"
    assert mismatch.explanation == "Policy mismatch for refund window. Code uses 7, policy says 30."
    assert should_fail(report.findings, synthesizer.config.output) is True


def test_logic_rule_without_policy_files(repo_builder) -> None:
    repo_builder.write({"src/refunds/window.js": "const DAYS = 7;\n"})
    synthesizer = _synthesizer(repo_builder, LOGIC_CONFIG)

    report = synthesizer.run("base", "head", repo_builder.changed("src/refunds/window.js"))

    assert _types(report.findings) == ["policy-missing"]
    assert report.findings[0].severity == "warning"
    assert report.findings[0].explanation == "No policy files found for rule: Refunds"


def test_llm_docs_findings_are_non_deterministic(repo_builder) -> None:
    repo_builder.write({"src/users.js": "export function createUser(email) {}\n", "README.md": "createUser(email)\n"})
    response = json.dumps(
        {
            "drifts": [
                {"type": "docs-drift", "severity": "error", "explanation": "Docs are stale.", "file": "README.md"},
                {"type": "noise"},
            ]
        }
    )
    config_text = DOCS_CONFIG + "llm:\n  enabled: true\n  provider: mock\n  model: test-model\n"
    synthesizer = _synthesizer(repo_builder, config_text, llm=LLMClient("mock", mock_response=response))

    report = synthesizer.run("base", "head", repo_builder.changed("src/users.js"))

    assert _types(report.findings) == ["docs-drift"]
    finding = report.findings[0]
    assert finding.source == "docs-drift-llm"
    assert finding.deterministic is False
    assert finding.severity == "error"
    assert should_fail(report.findings, synthesizer.config.output) is False


def test_unparseable_llm_output_becomes_a_warning(repo_builder) -> None:
    repo_builder.write({"src/users.js": "export function createUser(email) {}\n", "README.md": "createUser(email)\n"})
    config_text = DOCS_CONFIG + "llm:\n  enabled: true\n  provider: mock\n  model: test-model\n"
    synthesizer = _synthesizer(repo_builder, config_text, llm=LLMClient("mock", mock_response="I cannot help"))

    report = synthesizer.run("base", "head", repo_builder.changed("src/users.js"))

    assert _types(report.findings) == ["llm-parse-error"]
    assert report.findings[0].severity == "warning"


def test_llm_policy_contradiction(repo_builder) -> None:
    repo_builder.write(
        {
            "src/refunds/window.js": "const DAYS = 7;\n",
            "policies/refunds.md": "Refunds are accepted within 30 days.\n",
        }
    )
    config_text = """
logic-drift:
  rules:
    - name: Refunds
      code-files: ["src/refunds/**"]
      policy-files: ["policies/*.md"]
llm:
  enabled: true
  provider: mock
  model: test-model
"""
    response = json.dumps(
        {
            "contradicts_policy": True,
            "severity": "critical",
            "explanation": "Refund window shrank.",
            "affected_policy_section": "Refunds",
            "suggestion": "Align code or policy",
        }
    )
    synthesizer = _synthesizer(repo_builder, config_text, llm=LLMClient("mock", mock_response=response))

    report = synthesizer.run(
        "base", "head", repo_builder.changed("src/refunds/window.js", "policies/refunds.md")
    )

    assert _types(report.findings) == ["policy-contradiction"]
    finding = report.findings[0]
    assert finding.severity == "critical"
    assert finding.rule == "Refunds"
    assert finding.file == "src/refunds/window.js"
    assert finding.to_dict()["policy_section"] == "Refunds"


def test_llm_is_ignored_when_disabled_in_config(repo_builder) -> None:
    repo_builder.write({"src/users.js": USERS_JS, "README.md": README})
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG, llm=LLMClient("mock", mock_response="{}"))
    assert synthesizer.llm is None


def test_extraction_results_are_cached(repo_builder, tmp_path) -> None:
    repo_builder.write({"src/users.js": USERS_JS, "README.md": README})
    cache_dir = tmp_path / "cache"
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG, cache=FactCache(cache_dir))

    first = synthesizer.run("base", "head", repo_builder.changed("src/users.js"))
    second = synthesizer.run("base", "head", repo_builder.changed("src/users.js"))

    assert _types(first.findings) == _types(second.findings) == ["function-signature-mismatch"]
    assert len(list(cache_dir.glob("*.json"))) == 1


def test_run_without_changes_or_provider_requires_a_provider(repo_builder) -> None:
    synthesizer = _synthesizer(repo_builder, DOCS_CONFIG)
    with pytest.raises(RuntimeError, match="diff provider"):
        synthesizer.run("base", "head")


def _fact(kind: FactKind, name: str) -> Fact:
    return Fact(kind=kind, name=name, signature=name, file="f.js", line=1)


def test_limit_facts_by_kind_keeps_first_seen() -> None:
    facts = [_fact(FactKind.FUNCTION, f"f{index}") for index in range(3)] + [_fact(FactKind.ENV_VAR, "A")]
    assert [fact.name for fact in limit_facts_by_kind(facts, 2)] == ["f0", "f1", "A"]


def test_limit_facts_for_llm_round_robins_kinds() -> None:
    facts = [_fact(FactKind.FUNCTION, f"f{index}") for index in range(3)] + [
        _fact(FactKind.ENV_VAR, "A"),
        _fact(FactKind.ENV_VAR, "B"),
    ]
    assert [fact.name for fact in limit_facts_for_llm(facts, 3)] == ["f0", "A", "f1"]
    assert len(limit_facts_for_llm(facts, 10)) == 5


def test_should_fail_policy() -> None:
    error = Finding(source="docs-drift", type="x", severity="error", explanation="")
    llm_error = Finding(source="docs-drift-llm", type="x", severity="critical", explanation="", deterministic=False)
    warning = Finding(source="docs-drift", type="x", severity="warning", explanation="")

    assert should_fail([warning, error], OutputConfig()) is True
    assert should_fail([warning, llm_error], OutputConfig()) is False
    assert should_fail([llm_error], OutputConfig(allow_nondeterministic_fail=True)) is True
    assert should_fail([error], OutputConfig(fail_on_error=False)) is False


def test_run_check_resolves_the_range_and_fail_decision(repo_builder) -> None:
    repo_builder.write({"src/users.js": USERS_JS, "README.md": README})
    repo_builder.config(DOCS_CONFIG + "output:\n  severity:\n    docs-drift: error\n")

    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        if args[:2] == ["git", "rev-parse"]:
            return {"HEAD": "h1\n", "HEAD~1": "b1\n"}[args[2]]
        if args[:3] == ["git", "diff", "--name-status"]:
            assert args[3] == "b1...h1"
            return "M\tsrc/users.js\n"
        return ""

    outcome = run_check(repo_builder.path(), git_runner=runner)

    assert outcome.failed is True
    assert (outcome.report.base_sha, outcome.report.head_sha) == ("b1", "h1")
    assert _types(outcome.report.findings) == ["function-signature-mismatch"]
    assert (repo_builder.path() / ".drift-cache").is_dir()

    relaxed = run_check(repo_builder.path(), base="b1", head="h1", fail_on_error="false", git_runner=runner)
    assert relaxed.failed is False
