"""Git integration."""

from __future__ import annotations

from .diff import ChangedFile, GitContext, GitDiffProvider, GitError

__all__ = ["ChangedFile", "GitContext", "GitDiffProvider", "GitError"]
