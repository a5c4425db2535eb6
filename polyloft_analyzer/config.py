# polyloft_analyzer/config.py
"""Analyzer settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Mapping

from polyloft_analyzer.errors import ConfigError


@dataclass(frozen=True)
class AnalyzerConfig:
    """Tuning knobs for the diagnostic pass."""
    enabled: bool = True
    disabled_rules: FrozenSet[str] = field(default_factory=frozenset)
    indent_width: int = 4
    check_indentation: bool = True
    max_diagnostics: int = 0  # 0 means unlimited

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.indent_width <= 0:
            warnings.append("indent_width must be positive")
        if self.max_diagnostics < 0:
            warnings.append("max_diagnostics must be non-negative")
        return warnings

    def rule_enabled(self, name: str, code: str = "") -> bool:
        if name == "indentation" and not self.check_indentation:
            return False
        return name not in self.disabled_rules and code not in self.disabled_rules

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> AnalyzerConfig:
        """
        Build from editor-style settings.

        Accepted keys: ``linting.enabled``, ``linting.disabledRules``,
        ``linting.indentWidth``, ``linting.checkIndentation`` and
        ``linting.maxDiagnostics``.  Unknown keys are ignored.
        """
        kwargs: dict = {}
        if "linting.enabled" in settings:
            kwargs["enabled"] = _bool(settings, "linting.enabled")
        if "linting.checkIndentation" in settings:
            kwargs["check_indentation"] = _bool(settings, "linting.checkIndentation")
        if "linting.indentWidth" in settings:
            kwargs["indent_width"] = _int(settings, "linting.indentWidth")
        if "linting.maxDiagnostics" in settings:
            kwargs["max_diagnostics"] = _int(settings, "linting.maxDiagnostics")
        if "linting.disabledRules" in settings:
            rules = settings["linting.disabledRules"]
            if isinstance(rules, str) or not all(isinstance(r, str) for r in rules):
                raise ConfigError("linting.disabledRules", "expected a list of rule names")
            kwargs["disabled_rules"] = frozenset(rules)
        config = cls(**kwargs)
        problems = config.validate()
        if problems:
            raise ConfigError("linting", "; ".join(problems))
        return config


def _bool(settings: Mapping[str, Any], key: str) -> bool:
    value = settings[key]
    if not isinstance(value, bool):
        raise ConfigError(key, f"expected a boolean, got {type(value).__name__}")
    return value


def _int(settings: Mapping[str, Any], key: str) -> int:
    value = settings[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(key, f"expected an integer, got {type(value).__name__}")
    return value


__all__ = ["AnalyzerConfig"]
