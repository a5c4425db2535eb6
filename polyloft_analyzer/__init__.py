"""polyloft_analyzer — static analysis for the Polyloft scripting language.

Works on raw, possibly half-edited ``.pf`` source text without a full
parser and answers three kinds of question: which diagnostics apply to a
document, what the symbol under a position is, and what is visible at a
position.

Submodules
----------
lexer, document
    Per-line tokenizer (strings, comments, numbers, operators) and the
    immutable line store built on top of it.

scopes
    Scope tree of function, loop, class-like, interface and conditional
    frames, computed once per analysis from the ``end``-terminated blocks.

declarations
    Forward pass collecting class-likes, functions, variables, parameters
    and imports into a ``DeclarationTable``.

types, grammar, inference
    ``Nominal | Union | Any`` type model, a parsimonious grammar for type
    annotations and parameter lists, and expression type inference.

catalog
    Built-in keywords, globals, packages and container types, loaded from
    ``data/builtins.yaml``.

rules
    Registry of independent diagnostic rules with ``PF-`` codes.

query
    Hover, go-to-definition and completion.

engine
    ``Analyzer`` façade wiring catalog, configuration and module resolver.

Usage
-----
Command-line::

    python -m polyloft_analyzer check src/main.pf
    python -m polyloft_analyzer hover src/main.pf 12 9

Programmatic::

    from polyloft_analyzer import Analyzer, Position

    analyzer = Analyzer()
    for diag in analyzer.analyze(text, uri="main.pf"):
        print(diag.to_gcc_format("main.pf"))
"""

from __future__ import annotations

from polyloft_analyzer.catalog import Catalog, load_catalog
from polyloft_analyzer.config import AnalyzerConfig
from polyloft_analyzer.diagnostics import Diagnostic, Range, Severity
from polyloft_analyzer.document import Document, Position
from polyloft_analyzer.engine import Analyzer
from polyloft_analyzer.errors import AnalyzerError, CatalogError, ConfigError
from polyloft_analyzer.query import CompletionItem, Location, QueryResult

__version__: str = "0.1.0"
__all__: list[str] = [
    "Analyzer",
    "AnalyzerConfig",
    "AnalyzerError",
    "Catalog",
    "CatalogError",
    "CompletionItem",
    "ConfigError",
    "Diagnostic",
    "Document",
    "Location",
    "Position",
    "QueryResult",
    "Range",
    "Severity",
    "load_catalog",
]
