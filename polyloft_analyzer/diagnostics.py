# polyloft_analyzer/diagnostics.py
"""
Diagnostic records produced by the rule set.

A :class:`Diagnostic` is immutable; a document's full diagnostic list is
rebuilt on every analysis and never merged with a previous run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Severity(Enum):
    """Severity tiers reported to the editor."""
    ERROR = "error"
    WARNING = "warning"
    HINT = "hint"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.HINT: 2}


@dataclass(frozen=True, slots=True)
class Range:
    """A span on a single line: zero-based line, start and end columns."""
    line: int
    start: int
    end: int

    @classmethod
    def of_line(cls, line: int, text: str) -> Range:
        """Span the non-blank part of *text*."""
        stripped = text.rstrip()
        start = len(stripped) - len(stripped.lstrip())
        return cls(line, start, max(len(stripped), start))

    def __str__(self) -> str:
        return f"{self.line + 1}:{self.start + 1}"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """
    A single finding.

    Attributes:
        range: Where the finding applies.
        message: Human-readable description.
        severity: Error, Warning or Hint.
        code: Stable rule code such as ``PF-E005``.
        rule: Registry name of the rule that produced it.
    """
    range: Range
    message: str
    severity: Severity
    code: str = ""
    rule: str = ""
    source: str = "polyloft"

    @property
    def line(self) -> int:
        return self.range.line

    def sort_key(self):
        return (self.range.line, self.range.start, self.range.end,
                self.code, self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "line": self.range.line,
            "startColumn": self.range.start,
            "endColumn": self.range.end,
            "message": self.message,
            "severity": self.severity.value,
            "code": self.code,
            "rule": self.rule,
            "source": self.source,
        }

    def to_gcc_format(self, file: Optional[str] = None) -> str:
        """Format as ``file:line:col: severity: [code] message``."""
        loc = f"{file}:{self.range}" if file else str(self.range)
        code = f"[{self.code}] " if self.code else ""
        return f"{loc}: {self.severity.value}: {code}{self.message}"


__all__ = ["Severity", "Range", "Diagnostic"]
