"""CLI parser and entrypoint behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from driftguard import cli
from driftguard.cli import _build_parser, main
from driftguard.config import ConfigError, DriftConfig
from driftguard.models import Finding
from driftguard.synthesizer import CheckOutcome, RunReport

WARNING = Finding(source="docs-drift", type="env-missing-doc", severity="warning", explanation="Env X.")


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "check"])
    assert args.verbose is True
    assert args.command == "check"
    assert args.path == "."
    assert args.config == ".drift.config.yml"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["check", "repo", "--verbose", "--base", "b1", "--head", "h1", "--format", "json"])
    assert args.verbose is True
    assert (args.path, args.base, args.head, args.format) == ("repo", "b1", "h1", "json")


def test_cli_serve_defaults() -> None:
    args = _build_parser().parse_args(["serve"])
    assert (args.host, args.port) == ("127.0.0.1", 8000)


def _install(monkeypatch: pytest.MonkeyPatch, outcome: CheckOutcome, calls: list) -> None:
    def fake_run_check(path, **kwargs):  # type: ignore[no-untyped-def]
        calls.append({"path": path, **kwargs})
        return outcome

    monkeypatch.setattr(cli, "run_check", fake_run_check)


def _outcome(tmp_path: Path, findings, *, failed: bool) -> CheckOutcome:
    config = DriftConfig(root=tmp_path)
    config.output.format = "text"
    return CheckOutcome(config=config, report=RunReport(findings=list(findings)), failed=failed)


def test_check_prints_the_report(monkeypatch, capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    calls: list = []
    _install(monkeypatch, _outcome(tmp_path, [WARNING], failed=False), calls)

    main(["check", str(tmp_path), "--fail-on-error", "false", "--llm-api-key", "k"])

    assert capsys.readouterr().out.strip() == "WARNING | docs-drift | env-missing-doc | Env X."
    assert calls == [
        {
            "path": str(tmp_path),
            "config_path": ".drift.config.yml",
            "base": None,
            "head": None,
            "llm_api_key": "k",
            "fail_on_error": "false",
        }
    ]


def test_check_exits_with_drift_code_when_failing(monkeypatch, capsys, tmp_path) -> None:  # type: ignore[no-untyped-def]
    _install(monkeypatch, _outcome(tmp_path, [WARNING], failed=True), [])

    with pytest.raises(SystemExit) as excinfo:
        main(["check", "--format", "json"])

    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert '"results"' in captured.out
    assert "failing the check" in captured.err


def test_check_reports_configuration_errors(monkeypatch, capsys) -> None:  # type: ignore[no-untyped-def]
    def broken(path, **kwargs):  # type: ignore[no-untyped-def]
        raise ConfigError("Config file not found: /repo/.drift.config.yml")

    monkeypatch.setattr(cli, "run_check", broken)

    with pytest.raises(SystemExit) as excinfo:
        main(["check"])

    assert excinfo.value.code == 2
    assert "driftguard check failed: Config file not found" in capsys.readouterr().err


def test_unknown_format_fails_before_running(monkeypatch, capsys) -> None:  # type: ignore[no-untyped-def]
    calls: list = []
    monkeypatch.setattr(cli, "run_check", lambda path, **kwargs: calls.append(path))

    with pytest.raises(SystemExit) as excinfo:
        main(["check", "--format", "xml"])

    assert excinfo.value.code == 2
    assert calls == []
    assert "Unknown output format 'xml'" in capsys.readouterr().err
