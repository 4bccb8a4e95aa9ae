"""Persistent cache for extracted facts."""

from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import Fact, FactKind

_CACHE_VERSION = 1
DEFAULT_MAX_AGE_SECONDS = 7 * 24 * 60 * 60

logger = get_logger("cache")


class FactCache:
    """Stores facts per file and namespace, invalidated when the file's mtime or size changes.

    Entries live in memory for the run and as one JSON document per key under
    ``directory``. Passing ``directory=None`` keeps the cache in memory only.
    """

    def __init__(
        self,
        directory: Path | None,
        *,
        enabled: bool = True,
        max_age: float = DEFAULT_MAX_AGE_SECONDS,
    ) -> None:
        self._directory = directory
        self.enabled = enabled
        self._max_age = max_age
        self._memory: Dict[str, Tuple[str, List[Fact]]] = {}

    def get(self, path: Path, namespace: str = "default") -> Optional[List[Fact]]:
        if not self.enabled:
            return None
        fingerprint = file_fingerprint(path)
        if fingerprint is None:
            return None
        key = cache_key(path, namespace)

        cached = self._memory.get(key)
        if cached is not None and cached[0] == fingerprint:
            return list(cached[1])

        entry_path = self._entry_path(key)
        if entry_path is None:
            return None
        try:
            data = json.loads(entry_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError):
            return None
        if (
            not isinstance(data, dict)
            or data.get("version") != _CACHE_VERSION
            or data.get("fingerprint") != fingerprint
            or self._expired(data.get("timestamp"))
        ):
            _unlink(entry_path)
            return None
        facts = _facts_from_payload(data.get("facts"))
        if facts is None:
            return None
        self._memory[key] = (fingerprint, facts)
        return list(facts)

    def store(self, path: Path, namespace: str, facts: Sequence[Fact]) -> None:
        if not self.enabled:
            return
        fingerprint = file_fingerprint(path)
        if fingerprint is None:
            return
        key = cache_key(path, namespace)
        self._memory[key] = (fingerprint, list(facts))

        entry_path = self._entry_path(key)
        if entry_path is None:
            return
        payload = {
            "version": _CACHE_VERSION,
            "fingerprint": fingerprint,
            "timestamp": time.time(),
            "facts": [fact.to_dict() for fact in facts],
        }
        try:
            entry_path.parent.mkdir(parents=True, exist_ok=True)
            entry_path.write_text(json.dumps(payload, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            logger.debug("Unable to write cache entry %s: %s", entry_path, exc)

    def clear(self) -> None:
        self._memory.clear()
        for entry in self._iter_entries():
            _unlink(entry)

    def prune(self, max_age: float | None = None) -> int:
        """Delete disk entries older than ``max_age`` seconds; returns how many were removed."""
        limit = self._max_age if max_age is None else max_age
        now = time.time()
        removed = 0
        for entry in self._iter_entries():
            try:
                age = now - entry.stat().st_mtime
            except OSError:
                continue
            if age > limit:
                _unlink(entry)
                removed += 1
        return removed

    # ------------------------------------------------------------------
    # Internal helpers

    def _entry_path(self, key: str) -> Optional[Path]:
        if self._directory is None:
            return None
        return self._directory / f"{key}.json"

    def _iter_entries(self) -> List[Path]:
        if self._directory is None or not self._directory.is_dir():
            return []
        return sorted(self._directory.glob("*.json"))

    def _expired(self, timestamp: object) -> bool:
        if not isinstance(timestamp, (int, float)):
            return True
        return time.time() - timestamp > self._max_age


def cache_key(path: Path, namespace: str) -> str:
    return hashlib.sha256(f"{namespace}:{Path(path).as_posix()}".encode("utf-8")).hexdigest()


def file_fingerprint(path: Path) -> Optional[str]:
    try:
        stat_result = Path(path).stat()
    except OSError:
        return None
    return f"{stat_result.st_mtime_ns}-{stat_result.st_size}"


def _facts_from_payload(payload: object) -> Optional[List[Fact]]:
    if not isinstance(payload, list):
        return None
    facts: List[Fact] = []
    for item in payload:
        if not isinstance(item, dict):
            return None
        try:
            facts.append(
                Fact(
                    kind=FactKind(item["type"]),
                    name=str(item["name"]),
                    signature=str(item["signature"]),
                    file=str(item["file"]),
                    line=int(item["line"]),
                )
            )
        except (KeyError, TypeError, ValueError):
            return None
    return facts


def _unlink(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        pass


__all__ = ["DEFAULT_MAX_AGE_SECONDS", "FactCache", "cache_key", "file_fingerprint"]
