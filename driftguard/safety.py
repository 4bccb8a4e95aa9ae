"""Safety bounds for pattern execution.

User-supplied patterns (logic-drift comparisons, allowlist regexes) are probed
against inputs known to trigger catastrophic backtracking before they ever
touch repository content. CPython's ``re`` engine cannot be interrupted from
the calling thread, so probes run in a short-lived child process that is
terminated when it overruns the budget.

Built-in extraction patterns are trusted, but every scan over a single file
shares a :class:`ScanBudget` that caps matches per pattern and the total
wall-clock time spent on that file.
"""

from __future__ import annotations

import multiprocessing as mp
import re
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Sequence

from .logging import get_logger

DEFAULT_PROBE_BUDGET = 0.1
MAX_SCAN_SECONDS = 1.0
MAX_MATCHES_PER_PATTERN = 1000

PROBES: tuple[str, ...] = (
    "a" * 50,
    "aaaaaaaaaaaaaaaaaX",
    "a" * 30 + "b",
)

_STARTUP_TIMEOUT = 10.0
_IPC_GRACE = 0.25
# Probe workers are always spawned; callers include service worker threads.
_MP_CONTEXT = mp.get_context("spawn")

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}
# JavaScript-style flags with no Python counterpart; "g" is tracked separately.
_IGNORED_FLAGS = {"g", "u", "y", "d", "v"}

logger = get_logger("safety")


class PatternSafetyError(ValueError):
    """Raised when a user-supplied pattern is invalid or too slow to run safely."""


@dataclass(frozen=True)
class UserPattern:
    """A validated user pattern and whether every match (or only the first) is wanted."""

    regex: re.Pattern[str]
    find_all: bool = True

    def values(self, text: str) -> list[str]:
        """Return group 1 (or the whole match) for each match, stripped."""
        values: list[str] = []
        for match in self.regex.finditer(text):
            group = match.group(1) if self.regex.groups and match.group(1) is not None else match.group(0)
            values.append(str(group).strip())
            if not self.find_all:
                break
        return values


def parse_flags(flags: str | None) -> int:
    """Translate a flag string such as ``"gi"`` into ``re`` flags."""
    value = 0
    for char in flags or "":
        if char in _FLAG_MAP:
            value |= _FLAG_MAP[char]
        elif char not in _IGNORED_FLAGS:
            raise PatternSafetyError(f"Unsupported pattern flag '{char}'")
    return value


def compile_user_pattern(
    pattern: str,
    flags: str | None = None,
    *,
    budget: float = DEFAULT_PROBE_BUDGET,
) -> UserPattern:
    """Compile a configured pattern (plain or ``/body/flags``) and probe it for ReDoS."""
    if not isinstance(pattern, str) or not pattern:
        raise PatternSafetyError("Pattern must be a non-empty string")
    body = pattern
    effective_flags = flags or "g"
    last_slash = pattern.rfind("/")
    if pattern.startswith("/") and last_slash > 0:
        body = pattern[1:last_slash]
        effective_flags = pattern[last_slash + 1 :] or flags or "g"
    try:
        regex = re.compile(body, parse_flags(effective_flags))
    except re.error as exc:
        raise PatternSafetyError(f'Invalid regex pattern "{pattern}": {exc}') from exc
    validate_pattern_safety(regex, budget=budget)
    return UserPattern(regex=regex, find_all="g" in effective_flags)


def validate_pattern_safety(
    pattern: re.Pattern[str] | str,
    *,
    budget: float = DEFAULT_PROBE_BUDGET,
    probes: Sequence[str] = PROBES,
) -> re.Pattern[str]:
    """Run ``pattern`` against the probe battery and reject it if any probe is too slow.

    Returns the compiled pattern unchanged. ``re.Pattern`` objects carry no
    match-position state between calls, so the first real use starts clean.
    """
    if isinstance(pattern, str):
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise PatternSafetyError(f'Invalid regex pattern "{pattern}": {exc}') from exc
    else:
        compiled = pattern

    reader, writer = _MP_CONTEXT.Pipe(duplex=False)
    process = _MP_CONTEXT.Process(
        target=_run_probes,
        args=(compiled.pattern, compiled.flags, tuple(probes), writer),
        daemon=True,
    )
    process.start()
    writer.close()
    try:
        if not reader.poll(_STARTUP_TIMEOUT):
            raise PatternSafetyError(
                f"Pattern {_preview(compiled)!r} could not be checked: probe worker did not start"
            )
        reader.recv()
        for probe in probes:
            if not reader.poll(budget + _IPC_GRACE):
                raise PatternSafetyError(_too_complex(compiled, budget, len(probe)))
            elapsed = reader.recv()
            if elapsed > budget:
                raise PatternSafetyError(_too_complex(compiled, budget, len(probe)))
    except EOFError as exc:
        raise PatternSafetyError(
            f"Pattern {_preview(compiled)!r} crashed the probe worker"
        ) from exc
    finally:
        reader.close()
        if process.is_alive():
            process.terminate()
        process.join(timeout=1.0)
    return compiled


class ScanBudget:
    """Wall-clock and match-count limits shared by every pattern run over one file."""

    def __init__(
        self,
        label: str,
        *,
        time_limit: float = MAX_SCAN_SECONDS,
        max_matches: int = MAX_MATCHES_PER_PATTERN,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.label = label
        self.time_limit = time_limit
        self.max_matches = max_matches
        self._clock = clock
        self._started = clock()
        self.exhausted = False

    def finditer(self, pattern: re.Pattern[str], text: str) -> Iterator[re.Match[str]]:
        if self.exhausted:
            return
        count = 0
        for match in pattern.finditer(text):
            yield match
            count += 1
            if count >= self.max_matches:
                logger.warning(
                    "Match cap of %s reached for %s in %s",
                    self.max_matches,
                    _preview(pattern),
                    self.label,
                )
                return
            if self._clock() - self._started > self.time_limit:
                self.exhausted = True
                logger.warning(
                    "Scan budget of %.1fs exhausted in %s (pattern %s)",
                    self.time_limit,
                    self.label,
                    _preview(pattern),
                )
                return


# ------------------------------------------------------------------
# Internals


def _run_probes(source: str, flags: int, probes: tuple[str, ...], conn) -> None:  # noqa: ANN001 - Connection
    regex = re.compile(source, flags)
    conn.send("ready")
    for probe in probes:
        started = time.perf_counter()
        regex.search(probe)
        conn.send(time.perf_counter() - started)
    conn.close()


def _too_complex(pattern: re.Pattern[str], budget: float, probe_length: int) -> str:
    return (
        f"Regex pattern {_preview(pattern)!r} is too complex "
        f"(probe of {probe_length} chars exceeded {budget * 1000:.0f}ms). "
        "Potential ReDoS vulnerability detected."
    )


def _preview(pattern: re.Pattern[str]) -> str:
    return pattern.pattern[:50]


__all__ = [
    "DEFAULT_PROBE_BUDGET",
    "MAX_MATCHES_PER_PATTERN",
    "MAX_SCAN_SECONDS",
    "PROBES",
    "PatternSafetyError",
    "ScanBudget",
    "UserPattern",
    "compile_user_pattern",
    "parse_flags",
    "validate_pattern_safety",
]
