"""Glob matching and repository file discovery."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence

IGNORED_DIRS = frozenset({".git", "node_modules", "dist"})


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Translate a glob (``*``, ``**``, ``**/``, ``?``) into an anchored regex."""
    parts: List[str] = ["^"]
    index = 0
    length = len(glob)
    while index < length:
        char = glob[index]
        if char == "*":
            if glob.startswith("**/", index):
                parts.append("(?:.*/)?")
                index += 3
            elif glob.startswith("**", index):
                parts.append(".*")
                index += 2
            else:
                parts.append("[^/]*")
                index += 1
            continue
        if char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
        index += 1
    parts.append("$")
    return re.compile("".join(parts))


class GlobCache:
    """Compiled glob patterns for one run; never shared between runs."""

    def __init__(self) -> None:
        self._compiled: Dict[str, re.Pattern[str]] = {}

    def __len__(self) -> int:
        return len(self._compiled)

    def match(self, path: str, glob: str) -> bool:
        regex = self._compiled.get(glob)
        if regex is None:
            regex = self._compiled[glob] = glob_to_regex(glob)
        return regex.search(_to_posix(path)) is not None

    def match_any(self, path: str, globs: Sequence[str] | None) -> bool:
        if not globs:
            return False
        return any(self.match(path, glob) for glob in globs)

    def filter(self, paths: Iterable[str], globs: Sequence[str] | None) -> List[str]:
        return [path for path in paths if self.match_any(path, globs)]


def iter_repo_files(root: Path) -> Iterator[str]:
    """Yield repository-relative POSIX paths in a stable, sorted walk order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in IGNORED_DIRS)
        current = Path(dirpath)
        for filename in sorted(filenames):
            yield (current / filename).relative_to(root).as_posix()


def find_files(root: Path | str, globs: Sequence[str] | None, cache: GlobCache) -> List[str]:
    if not globs:
        return []
    return cache.filter(iter_repo_files(Path(root)), globs)


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")


__all__ = ["GlobCache", "IGNORED_DIRS", "find_files", "glob_to_regex", "iter_repo_files"]
