"""HTTP route normalization."""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

PLACEHOLDER = ":param"

_TRAILING_SLASHES = re.compile(r"/+$")
_BRACE_PARAM = re.compile(r"\{[^}]+\}")
_COLON_PARAM = re.compile(r":[^/]+")


class Route(NamedTuple):
    method: str
    path: str


def normalize_path(path: str | None) -> str:
    """Collapse ``{id}`` and ``:id`` placeholders and drop trailing slashes."""
    if not path:
        return ""
    normalized = _TRAILING_SLASHES.sub("", path.strip())
    normalized = _BRACE_PARAM.sub(PLACEHOLDER, normalized)
    normalized = _COLON_PARAM.sub(PLACEHOLDER, normalized)
    return normalized or "/"


def parse_endpoint_name(name: str | None) -> Optional[Route]:
    """Split ``"GET /users/:id"`` into its method and path."""
    if not name:
        return None
    parts = name.split()
    if len(parts) < 2:
        return None
    return Route(parts[0].upper(), " ".join(parts[1:]))


def route_key(method: str, path: str) -> str:
    return f"{method} {normalize_path(path)}"


__all__ = ["PLACEHOLDER", "Route", "normalize_path", "parse_endpoint_name", "route_key"]
