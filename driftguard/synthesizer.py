"""Drift synthesis: runs docs and logic rules over a commit range and collects findings."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .config import DEFAULT_CONFIG_NAME, DocsRule, DriftConfig, LogicRule, OutputConfig, load_config
from .docs import DocEntry, build_payload_key_index, collect_doc_facts, join_docs
from .extractors import LanguageRegistry, check_content, default_registry, extract_facts
from .git import ChangedFile, GitDiffProvider
from .git.diff import Runner
from .llm import LLMClient, build_docs_drift_prompt, build_logic_drift_prompt
from .llm.client import Transport
from .logging import get_logger
from .logic import run_comparisons
from .matching import DocCorpus, GlobCache, compare_facts, find_files
from .models import FAILING_SEVERITIES, Fact, Finding, normalize_severity
from .payload import detect_renames
from .stores import FactCache
from .text import is_truthy, safe_parse_json, truncate_text

DOCS_LLM_SOURCE = "docs-drift-llm"
LOGIC_SOURCE = "logic-drift"
LOGIC_LLM_SOURCE = "logic-drift-llm"
DEFAULT_WORKERS = 4

_PARSE_ERROR_EXPLANATION = "LLM response could not be parsed as JSON."
_PARSE_ERROR_SUGGESTION = "Check the prompt/output or reduce input size."

T = TypeVar("T")

logger = get_logger("synthesizer")


@dataclass(frozen=True)
class SkippedFile:
    """A file that contributed no facts, and why."""

    file: str
    reason: str


@dataclass
class RunReport:
    """Findings of one run plus the files that were skipped along the way."""

    findings: List[Finding] = field(default_factory=list)
    skipped: List[SkippedFile] = field(default_factory=list)
    base_sha: str = ""
    head_sha: str = ""


@dataclass(frozen=True)
class ScanDecision:
    full_scan: bool
    files: List[str]


class DriftSynthesizer:
    """Coordinates extraction, matching and value comparison for every configured rule."""

    def __init__(
        self,
        config: DriftConfig,
        *,
        diff_provider: GitDiffProvider | None = None,
        llm: LLMClient | None = None,
        cache: FactCache | None = None,
        registry: LanguageRegistry | None = None,
        max_workers: int = DEFAULT_WORKERS,
    ) -> None:
        self.config = config
        self.root = Path(config.root)
        self.diff_provider = diff_provider
        self.llm = llm if config.llm.enabled else None
        self.cache = cache
        self.registry = registry or default_registry()
        self.max_workers = max(1, max_workers)
        self.globs = GlobCache()
        self._skipped: List[SkippedFile] = []

    def run(self, base: str, head: str, changed_files: Sequence[ChangedFile] | None = None) -> RunReport:
        """Detect docs drift then logic drift for ``base...head``."""
        if changed_files is None:
            if self.diff_provider is None:
                raise RuntimeError("A diff provider is required to discover changed files")
            changed_files = self.diff_provider.changed_files(base, head)
        changed_paths = [item.path for item in changed_files]
        self._skipped = []
        if self.cache is not None:
            self.cache.prune()

        findings: List[Finding] = []
        if self.config.docs_drift.enabled:
            for rule in self.config.docs_drift.effective_rules():
                findings.extend(self.run_docs_rule(rule, changed_paths, base, head))
        if self.config.logic_drift.enabled:
            for rule in self.config.logic_drift.rules:
                findings.extend(self.run_logic_rule(rule, changed_paths, base, head))

        if findings:
            logger.info("%d possible drift(s) detected", len(findings))
        else:
            logger.info("No drift detected")
        return RunReport(findings=findings, skipped=list(self._skipped), base_sha=base, head_sha=head)

    def run_docs_rule(self, rule: DocsRule, changed_paths: Sequence[str], base: str, head: str) -> List[Finding]:
        if not rule.code_files or not rule.doc_files:
            return []
        logger.debug("Running docs rule %s", rule.name or "<default>")

        changed_code = self.globs.filter(changed_paths, rule.code_files)
        changed_docs = self.globs.filter(changed_paths, rule.doc_files)
        decision = self.resolve_full_scan(rule, changed_code)
        if not decision.full_scan and not changed_code:
            return []
        if decision.full_scan and not changed_code and not changed_docs:
            return []

        facts = self.extract_files(decision.files, rule.extract)
        needs_payload_check = "payload-keys" in rule.extract and bool(base and head)
        if not facts and not needs_payload_check:
            return []

        deterministic_facts = limit_facts_by_kind(facts, rule.max_entities)
        llm_facts = limit_facts_for_llm(deterministic_facts, rule.max_entities) if self.llm else []

        doc_files = find_files(self.root, rule.doc_files, self.globs)
        entries = [
            DocEntry(file=file, text=truncate_text(text, rule.max_doc_chars))
            for file, text in self._read_many(doc_files)
        ]
        if not entries:
            return []

        severity = self.config.output.severity.docs_drift
        findings: List[Finding] = []
        if deterministic_facts:
            corpus = DocCorpus(facts=collect_doc_facts(entries), text=join_docs(entries))
            findings.extend(compare_facts(deterministic_facts, corpus, severity, decision.full_scan))

        if llm_facts and self.llm is not None:
            findings.extend(self._llm_docs_findings(self.llm, llm_facts, entries))

        if needs_payload_check:
            doc_keys = build_payload_key_index(entries)
            rename_severity = normalize_severity(severity, "warning")
            for file in changed_code:
                findings.extend(
                    detect_renames(
                        self._file_diff(base, head, file),
                        rule.allowlist,
                        doc_keys,
                        file=file,
                        severity=rename_severity,
                    )
                )

        if rule.name:
            findings = [item if item.rule else replace(item, rule=rule.name) for item in findings]
        return findings

    def run_logic_rule(self, rule: LogicRule, changed_paths: Sequence[str], base: str, head: str) -> List[Finding]:
        matched = self.globs.filter(changed_paths, rule.code_files)
        if not matched:
            return []
        logger.debug("Running logic rule %s", rule.name)

        policy_files = find_files(self.root, rule.policy_files, self.globs)
        if not policy_files:
            return [
                Finding(
                    source=LOGIC_SOURCE,
                    type="policy-missing",
                    severity="warning",
                    rule=rule.name,
                    explanation=f"No policy files found for rule: {rule.name}",
                    suggestion="Check policy file patterns in the config.",
                )
            ]

        default_severity = self.config.output.severity.logic_drift
        findings: List[Finding] = []
        if not self.globs.filter(changed_paths, rule.policy_files):
            findings.append(
                Finding(
                    source=LOGIC_SOURCE,
                    type="policy-not-updated",
                    severity=normalize_severity(default_severity, "error"),
                    rule=rule.name,
                    file=matched[0],
                    explanation="Sensitive code changed but policy docs were not updated in this PR.",
                    suggestion="Update the policy docs or confirm the change does not affect policy.",
                )
            )

        if not rule.comparisons and self.llm is None:
            return findings

        limits = self.config.logic_drift
        diff_text = "\n\n".join(
            f"FILE: {file}\n{truncate_text(self._file_diff(base, head, file), limits.max_diff_chars)}"
            for file in matched
        )
        policy_text = "\n\n".join(
            f"FILE: {file}\n{truncate_text(text, limits.max_policy_chars)}"
            for file, text in self._read_many(policy_files)
        )

        if rule.comparisons:
            findings.extend(
                run_comparisons(
                    rule.comparisons,
                    diff_text,
                    policy_text,
                    rule_name=rule.name,
                    file=matched[0],
                    default_severity=default_severity,
                )
            )

        if self.llm is not None:
            finding = self._llm_policy_finding(self.llm, rule.name, diff_text, policy_text, matched[0])
            if finding is not None:
                findings.append(finding)
        return findings

    def resolve_full_scan(self, rule: DocsRule, changed_code: Sequence[str]) -> ScanDecision:
        """Decide between scanning every matching code file and only the changed ones."""
        unique_changed = list(dict.fromkeys(changed_code))
        if rule.full_scan is True:
            return ScanDecision(True, find_files(self.root, rule.code_files, self.globs))
        if rule.full_scan is False:
            return ScanDecision(False, unique_changed)
        all_code = find_files(self.root, rule.code_files, self.globs)
        if 0 < len(all_code) <= rule.full_scan_max_files:
            return ScanDecision(True, all_code)
        return ScanDecision(False, unique_changed)

    def extract_files(self, files: Sequence[str], extract: Sequence[str]) -> List[Fact]:
        """Extract facts from ``files`` in parallel, keeping the input order."""
        requested = tuple(extract)
        results = self._map(lambda file: self._extract_one(file, requested), files)
        facts: List[Fact] = []
        for file, (file_facts, reason) in zip(files, results):
            if reason:
                self._skip(file, reason)
            facts.extend(file_facts)
        return facts

    # ------------------------------------------------------------------
    # Internals

    def _extract_one(self, file: str, requested: Tuple[str, ...]) -> Tuple[List[Fact], Optional[str]]:
        full_path = self.root / file
        namespace = "facts:" + ",".join(sorted(requested))
        if self.cache is not None:
            cached = self.cache.get(full_path, namespace)
            if cached is not None:
                return cached, None
        text, reason = self._load(file)
        if text is None:
            return [], reason
        reason = check_content(text)
        if reason:
            return [], reason
        facts = list(extract_facts(text, file, requested, registry=self.registry))
        if self.cache is not None:
            self.cache.store(full_path, namespace, facts)
        return facts, None

    def _read_many(self, files: Sequence[str]) -> List[Tuple[str, str]]:
        loaded = self._map(self._load, files)
        texts: List[Tuple[str, str]] = []
        for file, (text, reason) in zip(files, loaded):
            if text is None:
                self._skip(file, reason or "unreadable")
            else:
                texts.append((file, text))
        return texts

    def _load(self, file: str) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(text, None)`` or ``(None, reason)``; skips are recorded by the caller."""
        try:
            return (self.root / file).read_text(encoding="utf-8"), None
        except FileNotFoundError:
            return None, "file not found"
        except UnicodeDecodeError:
            return None, "file is not valid UTF-8"
        except OSError as exc:
            return None, f"unreadable: {exc}"

    def _skip(self, file: str, reason: str) -> None:
        logger.warning("Skipping %s: %s", file, reason)
        self._skipped.append(SkippedFile(file=file, reason=reason))

    def _map(self, func: Callable[[str], T], items: Sequence[str]) -> List[T]:
        if self.max_workers <= 1 or len(items) <= 1:
            return [func(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="driftguard") as executor:
            return list(executor.map(func, items))

    def _file_diff(self, base: str, head: str, file: str) -> str:
        if self.diff_provider is None or not base or not head:
            return ""
        return self.diff_provider.file_diff(base, head, file)

    def _llm_docs_findings(
        self, llm: LLMClient, facts: Sequence[Fact], entries: Sequence[DocEntry]
    ) -> List[Finding]:
        docs = "\n\n".join(f"FILE: {entry.file}\n{entry.text}" for entry in entries)
        prompt = build_docs_drift_prompt([fact.to_dict() for fact in facts], docs)
        data = safe_parse_json(llm.complete(prompt))
        if not isinstance(data, dict) or not isinstance(data.get("drifts"), list):
            logger.warning("Docs drift LLM response could not be parsed as JSON")
            return [_parse_error(DOCS_LLM_SOURCE)]

        fallback = self.config.output.severity.docs_drift
        findings: List[Finding] = []
        for drift in data["drifts"]:
            if not isinstance(drift, Mapping):
                continue
            explanation = _text(drift.get("explanation")) or _text(drift.get("summary"))
            suggestion = _text(drift.get("suggestion"))
            file = _text(drift.get("file")) or _text(drift.get("code_file")) or None
            if not (explanation or suggestion or file):
                continue
            findings.append(
                Finding(
                    source=DOCS_LLM_SOURCE,
                    type=_text(drift.get("type")) or "docs-drift",
                    severity=normalize_severity(drift.get("severity"), fallback),
                    deterministic=False,
                    file=file,
                    explanation=explanation,
                    suggestion=suggestion,
                )
            )
        return findings

    def _llm_policy_finding(
        self, llm: LLMClient, rule_name: str, diff_text: str, policy_text: str, file: str
    ) -> Optional[Finding]:
        prompt = build_logic_drift_prompt(rule_name, diff_text, policy_text)
        data = safe_parse_json(llm.complete(prompt))
        if not isinstance(data, dict):
            logger.warning("Logic drift LLM response for rule %s could not be parsed as JSON", rule_name)
            return replace(_parse_error(LOGIC_LLM_SOURCE), rule=rule_name)
        if not is_truthy(data.get("contradicts_policy")):
            return None
        return Finding(
            source=LOGIC_LLM_SOURCE,
            type="policy-contradiction",
            severity=normalize_severity(data.get("severity"), self.config.output.severity.logic_drift),
            deterministic=False,
            rule=rule_name,
            file=file,
            explanation=_text(data.get("explanation")),
            suggestion=_text(data.get("suggestion")),
            metadata={"policy_section": _text(data.get("affected_policy_section"))},
        )


def limit_facts_by_kind(facts: Iterable[Fact], max_per_kind: int) -> List[Fact]:
    """Keep at most ``max_per_kind`` facts of every kind, in first-seen order."""
    counts: Dict[str, int] = {}
    limited: List[Fact] = []
    for fact in facts:
        count = counts.get(fact.kind.value, 0)
        if count >= max_per_kind:
            continue
        counts[fact.kind.value] = count + 1
        limited.append(fact)
    return limited


def limit_facts_for_llm(facts: Sequence[Fact], max_total: int) -> List[Fact]:
    """Cap the prompt entities at ``max_total``, taking kinds round-robin."""
    if len(facts) <= max_total:
        return list(facts)
    by_kind: Dict[str, List[Fact]] = {}
    for fact in facts:
        by_kind.setdefault(fact.kind.value, []).append(fact)

    result: List[Fact] = []
    index = 0
    while len(result) < max_total:
        added = False
        for bucket in by_kind.values():
            if index < len(bucket):
                result.append(bucket[index])
                added = True
                if len(result) >= max_total:
                    break
        if not added:
            break
        index += 1
    return result


@dataclass
class CheckOutcome:
    """A completed check: effective config, run report and the fail decision."""

    config: DriftConfig
    report: RunReport
    failed: bool


def run_check(
    path: Path | str = ".",
    *,
    config_path: Path | str = DEFAULT_CONFIG_NAME,
    base: str | None = None,
    head: str | None = None,
    llm_api_key: str | None = None,
    fail_on_error: object = None,
    git_runner: Runner | None = None,
    llm_transport: Transport | None = None,
) -> CheckOutcome:
    """Load configuration for the repository at ``path`` and run every enabled rule."""
    root = Path(path).expanduser().resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Repository path not found: {root}")
    config = load_config(config_path, root=root, llm_api_key=llm_api_key, fail_on_error=fail_on_error)

    provider = GitDiffProvider(root, runner=git_runner)
    if not base or not head:
        context = provider.context()
        base = base or context.base_sha
        head = head or context.head_sha

    llm = LLMClient.from_config(config.llm, transport=llm_transport) if config.llm.enabled else None
    cache = FactCache(root / config.cache.dir, enabled=config.cache.enabled)
    synthesizer = DriftSynthesizer(config, diff_provider=provider, llm=llm, cache=cache)
    report = synthesizer.run(base, head)
    return CheckOutcome(config=config, report=report, failed=should_fail(report.findings, config.output))


def should_fail(findings: Iterable[Finding], output: OutputConfig) -> bool:
    """True when an error or critical finding should fail the check."""
    if not output.fail_on_error:
        return False
    for finding in findings:
        if not finding.deterministic and not output.allow_nondeterministic_fail:
            continue
        if finding.severity in FAILING_SEVERITIES:
            return True
    return False


def _parse_error(source: str) -> Finding:
    return Finding(
        source=source,
        type="llm-parse-error",
        severity="warning",
        deterministic=False,
        explanation=_PARSE_ERROR_EXPLANATION,
        suggestion=_PARSE_ERROR_SUGGESTION,
    )


def _text(value: object) -> str:
    return value if isinstance(value, str) else ""


__all__ = [
    "CheckOutcome",
    "DriftSynthesizer",
    "RunReport",
    "ScanDecision",
    "SkippedFile",
    "limit_facts_by_kind",
    "limit_facts_for_llm",
    "run_check",
    "should_fail",
]
