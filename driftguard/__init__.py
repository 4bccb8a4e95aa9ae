"""Drift detection between code, documentation and business policy."""

__version__ = "0.1.0"
