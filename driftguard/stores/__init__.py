"""Persistent stores."""

from __future__ import annotations

from .fact_cache import FactCache

__all__ = ["FactCache"]
