# polyloft_analyzer/errors.py
"""
Exception types for the Polyloft analyzer.

The analysis pipeline itself never raises on malformed source text: every
rule and inference step degrades to "no diagnostic" or ``Any``.  The
exceptions below cover the configuration layer instead, where a broken
built-in catalog or an invalid setting is a programming error that must
surface when the :class:`~polyloft_analyzer.engine.Analyzer` is built.

Hierarchy
─────────
::

    AnalyzerError (base)
    ├── CatalogError   - malformed built-in catalog data
    └── ConfigError    - invalid analyzer configuration values
"""

from __future__ import annotations

from typing import Optional


class AnalyzerError(Exception):
    """Base class for all analyzer exceptions."""

    def __init__(self, message: str, *, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(self.format())

    def format(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


class CatalogError(AnalyzerError):
    """Raised when the built-in catalog cannot be loaded or has a bad shape."""

    def __init__(self, message: str, *, entry: Optional[str] = None,
                 hint: Optional[str] = None):
        self.entry = entry
        if entry:
            message = f"{entry}: {message}"
        super().__init__(message, hint=hint)


class ConfigError(AnalyzerError):
    """Raised when analyzer settings have the wrong type or range."""

    def __init__(self, key: str, message: str, *, hint: Optional[str] = None):
        self.key = key
        super().__init__(f"invalid setting '{key}': {message}", hint=hint)


__all__ = ["AnalyzerError", "CatalogError", "ConfigError"]
