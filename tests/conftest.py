# tests/conftest.py
"""
Shared fixtures and Polyloft source snippets for the analyzer tests.
"""

import textwrap

import pytest

from polyloft_analyzer.analysis import DocumentAnalysis
from polyloft_analyzer.catalog import load_catalog
from polyloft_analyzer.engine import Analyzer


def src(text: str) -> str:
    """Dedent a triple-quoted snippet and drop the leading newline."""
    return textwrap.dedent(text).lstrip("\n")


CLASS_PF = src("""
    // A point on the plane.
    class Point:
        var x: Int = 0
        var y: Int = 0

        Point(x: Int, y: Int):
            this.x = x
            this.y = y
        end

        def getX() -> Int:
            return this.x
        end
    end
""")

ENUM_PF = src("""
    enum Color
        RED
        GREEN
        BLUE
    end

    var c = Color.RED
""")

RETURNS_PF = src("""
    def nothing():
        println("x")
    end

    def one():
        return 1
    end

    def mixed(flag: Bool):
        if flag:
            return 1
        end
        return "a"
    end
""")


def doubling_chain(depth: int) -> str:
    """Helpers where ``f{i}`` calls ``f{i-1}`` twice; ``f0`` returns an Int."""
    parts = ["def f0():\n    return 1\nend\n"]
    for i in range(1, depth + 1):
        parts.append(f"def f{i}():\n    return f{i - 1}() + f{i - 1}()\nend\n")
    return "".join(parts)


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()


@pytest.fixture
def analyzer(catalog):
    return Analyzer(catalog=catalog)


@pytest.fixture
def analyze(catalog):
    """Build a DocumentAnalysis from a snippet."""
    def _analyze(text, uri=None):
        return DocumentAnalysis.from_text(src(text), catalog, uri)
    return _analyze


@pytest.fixture
def diagnose(analyzer):
    """Run the full rule set over a snippet."""
    def _diagnose(text):
        return analyzer.analyze(src(text))
    return _diagnose


def codes(diagnostics):
    return [d.code for d in diagnostics]


def with_code(diagnostics, code):
    return [d for d in diagnostics if d.code == code]
