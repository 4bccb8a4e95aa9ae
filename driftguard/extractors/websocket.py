"""WebSocket event registrations (socket.io, ws, ActionCable, Phoenix, SignalR)."""

from __future__ import annotations

import re
from typing import Dict, Tuple

from ..models import FactKind
from .base import ExtractionContext, scan_patterns

_QUOTED = r"\s*\(\s*['\"`]([^'\"`]+)['\"`]"

HANDLER_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(?:socket|io|ws|connection)\s*\.\s*(?:on|once|emit)" + _QUOTED, re.IGNORECASE),
    re.compile(r"\b(?:ws|websocket|socket)\s*\.\s*addEventListener" + _QUOTED, re.IGNORECASE),
    re.compile(r"\b(?:ws|websocket|socket)\s*\.\s*(onopen|onclose|onmessage|onerror)\s*=", re.IGNORECASE),
    re.compile(r"\b(?:wss|WebSocketServer)\s*\.\s*on" + _QUOTED, re.IGNORECASE),
    re.compile(r"\bsubscriptions\.create" + _QUOTED, re.IGNORECASE),
    re.compile(r"\bchannel" + _QUOTED, re.IGNORECASE),
    re.compile(r"\b(?:connection|hubConnection)\s*\.\s*(?:on|invoke)" + _QUOTED, re.IGNORECASE),
)

DOC_LABEL = re.compile(r"\b(?:WS|WebSocket|Socket)\s*(?:event)?\s*[:-]\s*([A-Za-z0-9_:-]+)", re.IGNORECASE)

_PROPERTY_ALIASES: Dict[str, str] = {
    "onopen": "open",
    "onclose": "close",
    "onmessage": "message",
    "onerror": "error",
}


def normalize_event_name(value: object) -> str:
    """Trim the name and map ``onmessage``-style properties to their event."""
    if not value:
        return ""
    name = str(value).strip()
    return _PROPERTY_ALIASES.get(name.lower(), name)


def extract_websocket(context: ExtractionContext) -> None:
    seen: set[str] = set()
    for match in scan_patterns(context, HANDLER_PATTERNS):
        name = normalize_event_name(match.group(1))
        if not name or name in seen:
            continue
        seen.add(name)
        context.emit(FactKind.WEBSOCKET_EVENT, name, match.start(), signature=name)


__all__ = [
    "DOC_LABEL",
    "HANDLER_PATTERNS",
    "extract_websocket",
    "normalize_event_name",
]
