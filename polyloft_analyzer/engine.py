# polyloft_analyzer/engine.py
"""
Analyzer façade.

:class:`Analyzer` holds the immutable collaborators (catalog, configuration,
module resolver) chosen at construction and exposes the four entry points a
host needs::

    analyzer = Analyzer()
    diagnostics = analyzer.analyze(text, uri="main.pf")
    result = analyzer.hover(text, Position(3, 8))
    location = analyzer.definition(text, Position(3, 8))
    items = analyzer.complete(text, Position(5, 12))

Every call builds a fresh :class:`DocumentAnalysis`; nothing is shared
between documents or between two calls on the same document.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from polyloft_analyzer import query
from polyloft_analyzer.analysis import DocumentAnalysis
from polyloft_analyzer.catalog import Catalog, load_catalog
from polyloft_analyzer.config import AnalyzerConfig
from polyloft_analyzer.diagnostics import Diagnostic
from polyloft_analyzer.document import Position
from polyloft_analyzer.errors import ConfigError
from polyloft_analyzer.resolver import ModuleResolver, NullResolver
from polyloft_analyzer.rules import RULES, RuleContext, run_rules

logger = logging.getLogger(__name__)


class Analyzer:
    """Static analysis for Polyloft documents."""

    def __init__(self, catalog: Optional[Catalog] = None,
                 config: Optional[AnalyzerConfig] = None,
                 resolver: Optional[ModuleResolver] = None):
        self.catalog = catalog if catalog is not None else load_catalog()
        self.config = config if config is not None else AnalyzerConfig()
        self.resolver = resolver if resolver is not None else NullResolver()

        problems = self.config.validate()
        if problems:
            raise ConfigError("config", "; ".join(problems))
        unknown = sorted(
            name for name in self.config.disabled_rules
            if name not in RULES and name not in {r.code for r in RULES.values()}
        )
        if unknown:
            logger.warning("ignoring unknown disabled rules: %s", ", ".join(unknown))

    def prepare(self, text: str, uri: Optional[str] = None) -> DocumentAnalysis:
        return DocumentAnalysis.from_text(text, self.catalog, uri)

    def analyze(self, text: str, uri: Optional[str] = None) -> List[Diagnostic]:
        """Diagnostics for *text*, sorted by position then code."""
        if not self.config.enabled:
            return []
        started = time.perf_counter()
        analysis = self.prepare(text, uri)
        diagnostics = run_rules(RuleContext(analysis, self.config))
        logger.debug("analyzed %s: %d lines, %d diagnostics in %.1f ms",
                     uri or "<text>", len(analysis.document), len(diagnostics),
                     (time.perf_counter() - started) * 1000)
        return diagnostics

    def hover(self, text: str, position: Position, word: Optional[str] = None,
              uri: Optional[str] = None) -> Optional[query.QueryResult]:
        return query.hover(self.prepare(text, uri), position, word, self.resolver)

    def definition(self, text: str, position: Position, word: Optional[str] = None,
                   uri: Optional[str] = None) -> Optional[query.Location]:
        return query.definition(self.prepare(text, uri), position, word, self.resolver)

    def complete(self, text: str, position: Position,
                 uri: Optional[str] = None) -> List[query.CompletionItem]:
        return query.complete(self.prepare(text, uri), position)


__all__ = ["Analyzer"]
