"""Glob translation and repository file discovery."""

from __future__ import annotations

import pytest

from driftguard.matching import GlobCache, find_files
from driftguard.matching.globs import glob_to_regex


@pytest.mark.parametrize(
    ("glob", "path", "expected"),
    [
        ("src/**/*.js", "src/app.js", True),
        ("src/**/*.js", "src/api/v1/users.js", True),
        ("src/*.js", "src/api/users.js", False),
        ("**/*.md", "README.md", True),
        ("docs/**", "docs/guide/setup.md", True),
        ("docs/?.md", "docs/a.md", True),
        ("docs/?.md", "docs/ab.md", False),
        ("*.py", "pkg/module.py", False),
    ],
)
def test_glob_to_regex(glob: str, path: str, expected: bool) -> None:
    assert bool(glob_to_regex(glob).search(path)) is expected


def test_cache_compiles_each_glob_once_and_accepts_windows_paths() -> None:
    cache = GlobCache()
    assert cache.match_any("src\\api\\users.ts", ["src/**/*.ts"])
    assert cache.filter(["a.py", "b.js", "c.py"], ["*.py", "*.py"]) == ["a.py", "c.py"]
    assert len(cache) == 2
    assert cache.match_any("a.py", []) is False


def test_find_files_walks_sorted_and_skips_ignored_dirs(repo_builder) -> None:
    repo_builder.write(
        {
            "src/b.js": "b",
            "src/a.js": "a",
            "src/nested/c.js": "c",
            "node_modules/lib/index.js": "x",
            ".git/hooks/pre-commit.js": "x",
            "dist/bundle.js": "x",
            "docs/readme.md": "docs",
        }
    )
    cache = GlobCache()

    assert find_files(repo_builder.path(), ["**/*.js"], cache) == ["src/a.js", "src/b.js", "src/nested/c.js"]
    assert find_files(repo_builder.path(), [], cache) == []
