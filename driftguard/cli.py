"""CLI entrypoints for driftguard commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import DEFAULT_CONFIG_NAME, ConfigError
from .git import GitError
from .llm import LLMError
from .logging import configure_logging
from .report import ReportError, normalize_format, render_report
from .synthesizer import run_check

EXIT_DRIFT = 1
EXIT_USAGE = 2


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="driftguard",
        description="Detect drift between code changes, documentation and business policies.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check",
        help="Compare a commit range against the configured docs and policy rules.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    check_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    check_parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_NAME,
        help=f"Path to the config file, relative to the repository (default: {DEFAULT_CONFIG_NAME}).",
    )
    check_parser.add_argument("--base", default=None, help="Base git ref/sha for the diff (default: HEAD~1).")
    check_parser.add_argument("--head", default=None, help="Head git ref/sha for the diff (default: HEAD).")
    check_parser.add_argument(
        "--format",
        default=None,
        help="Output format: text, markdown, json or github-comment (default: output.format).",
    )
    check_parser.add_argument(
        "--fail-on-error",
        default=None,
        metavar="BOOL",
        help="Override output.fail_on_error from the config.",
    )
    check_parser.add_argument("--llm-api-key", default=None, help="API key for the LLM provider.")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service exposing drift checks.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1).")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000).")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for driftguard commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "check":
        try:
            if args.format:
                normalize_format(args.format)
            outcome = run_check(
                args.path,
                config_path=args.config,
                base=args.base,
                head=args.head,
                llm_api_key=args.llm_api_key,
                fail_on_error=args.fail_on_error,
            )
            output = render_report(
                outcome.report.findings,
                args.format or outcome.config.output.format,
                outcome.report.skipped,
            )
        except FileNotFoundError as exc:
            parser.exit(EXIT_USAGE, f"driftguard check failed: {exc}\n")
        except (ConfigError, GitError, LLMError, ReportError) as exc:
            parser.exit(EXIT_USAGE, f"driftguard check failed: {exc}\n")
        print(output)
        if outcome.failed:
            parser.exit(EXIT_DRIFT, "driftguard: failing the check due to error-level drift.\n")
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(EXIT_USAGE, "Unknown command\n")


if __name__ == "__main__":
    main(sys.argv[1:])
