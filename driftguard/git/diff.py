"""Git collaborator: changed files, per-file diffs and CI context discovery."""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional

from ..logging import get_logger

logger = get_logger("git")

Runner = Callable[..., str]


class GitError(RuntimeError):
    """Raised when a git invocation fails."""


@dataclass(frozen=True)
class ChangedFile:
    """One entry of ``git diff --name-status``."""

    status: str
    path: str


@dataclass(frozen=True)
class GitContext:
    """Repository coordinates and the commit range under review."""

    owner: str
    repo: str
    pr_number: Optional[int]
    base_sha: str
    head_sha: str


class GitDiffProvider:
    """Reads changes between two commits of a local repository."""

    def __init__(self, repo_path: Path | str, runner: Runner | None = None) -> None:
        self.repo_path = Path(repo_path)
        self._runner = runner or self._default_runner

    def changed_files(self, base: str, head: str) -> List[ChangedFile]:
        output = self._git(["diff", "--name-status", f"{base}...{head}"])
        changed: List[ChangedFile] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            parts = line.split("\t")
            path = parts[-1].strip()
            if path:
                changed.append(ChangedFile(status=parts[0].strip(), path=path))
        return changed

    def file_diff(self, base: str, head: str, file: str) -> str:
        return self._git(["diff", f"{base}...{head}", "--", file])

    def rev_parse(self, ref: str) -> str:
        return self._git(["rev-parse", ref]).strip()

    def context(self, env: Mapping[str, str] | None = None) -> GitContext:
        """Resolve the commit range from CI event data, falling back to ``HEAD~1..HEAD``."""
        environ = os.environ if env is None else env
        owner, _, repo = environ.get("GITHUB_REPOSITORY", "").partition("/")

        pr_number: Optional[int] = None
        base_sha: Optional[str] = None
        head_sha: Optional[str] = None
        event = _load_event(environ.get("GITHUB_EVENT_PATH"))
        pull_request = event.get("pull_request") if isinstance(event, dict) else None
        if isinstance(pull_request, dict):
            number = pull_request.get("number")
            pr_number = number if isinstance(number, int) else None
            base_sha = _sha(pull_request.get("base"))
            head_sha = _sha(pull_request.get("head"))

        if not head_sha:
            head_sha = environ.get("GITHUB_SHA") or self.rev_parse("HEAD")
        if not base_sha:
            base_sha = environ.get("GITHUB_BASE_SHA")
        if not base_sha:
            try:
                base_sha = self.rev_parse("HEAD~1")
            except GitError:
                logger.debug("No parent commit for HEAD; diffing %s against itself", head_sha)
                base_sha = head_sha

        return GitContext(owner=owner, repo=repo, pr_number=pr_number, base_sha=base_sha, head_sha=head_sha)

    # ------------------------------------------------------------------
    # Internals

    def _git(self, args: Iterable[str]) -> str:
        command = ["git", *args]
        try:
            output = self._runner(command, cwd=self.repo_path, capture_output=True)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise GitError(f"{' '.join(command)} failed: {detail}") from exc
        except FileNotFoundError as exc:
            raise GitError("git executable not found") from exc
        return output.rstrip()

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


def _load_event(path: Optional[str]) -> dict:
    if not path:
        return {}
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable event payload %s: %s", path, exc)
        return {}
    return payload if isinstance(payload, dict) else {}


def _sha(ref: object) -> Optional[str]:
    if isinstance(ref, dict):
        sha = ref.get("sha")
        return sha if isinstance(sha, str) and sha else None
    return None


__all__ = ["ChangedFile", "GitContext", "GitDiffProvider", "GitError", "Runner"]
