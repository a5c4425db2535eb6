# tests/test_inference.py
"""
Tests for expression, variable and return-type inference.
"""

import pytest

from polyloft_analyzer.types import (
    ANY,
    BOOL,
    FLOAT,
    INT,
    MAP,
    RANGE,
    STRING,
    VOID,
    Nominal,
    Union,
    array_of,
)
from tests.conftest import CLASS_PF, RETURNS_PF, doubling_chain


@pytest.fixture
def blank(analyze):
    return analyze("")


class TestLiterals:

    @pytest.mark.parametrize("expr,expected", [
        ('"hello"', STRING),
        ("42", INT),
        ("3.5", FLOAT),
        ("true", BOOL),
        ("nil", ANY),
        ("[1, 2, 3]", array_of(INT)),
        ('[1, "a"]', array_of(ANY)),
        ("[]", array_of(ANY)),
        ('{"a": 1}', MAP),
        ("1...10", RANGE),
        ("(7)", INT),
    ])
    def test_literal(self, blank, expr, expected):
        assert blank.inferencer.infer(expr) == expected


class TestOperators:

    @pytest.mark.parametrize("expr,expected", [
        ("1 + 2", INT),
        ("1 + 2.5", FLOAT),
        ('"a" + 1', STRING),
        ("1 < 2", BOOL),
        ("a && b", BOOL),
        ("!done", BOOL),
        ("x instanceof Point", BOOL),
        ("-5", INT),
    ])
    def test_operator(self, blank, expr, expected):
        assert blank.inferencer.infer(expr) == expected

    def test_lambda_is_any(self, blank):
        assert blank.inferencer.infer("(x) => x + 1") == ANY


class TestCalls:

    def test_builtin_global(self, blank):
        assert blank.inferencer.infer("len(items)") == INT
        assert blank.inferencer.infer('str(5)') == STRING

    def test_package_function_and_constant(self, blank):
        assert blank.inferencer.infer("Math.sqrt(2.0)") == FLOAT
        assert blank.inferencer.infer("Math.PI") == FLOAT
        assert blank.inferencer.infer("Sys.args()") == array_of(STRING)

    def test_constructor_call(self, blank):
        assert blank.inferencer.infer("Point(1, 2)") == Nominal("Point")

    def test_generic_constructor(self, blank):
        assert blank.inferencer.infer("Array<Int>()") == array_of(INT)

    def test_method_on_inferred_receiver(self, analyze):
        analysis = analyze("""
            var names = ["a", "b"]
            var first = names.get(0)
            var upper = "abc".toUpperCase()
            var size = names.length()
        """)
        inf = analysis.inferencer
        assert inf.variable_type("first", 3) == STRING
        assert inf.variable_type("upper", 3) == STRING
        assert inf.variable_type("size", 3) == INT

    def test_indexing(self, analyze):
        analysis = analyze("""
            var xs = [1, 2]
            var head = xs[0]
        """)
        assert analysis.inferencer.variable_type("head", 1) == INT

    def test_for_variable(self, analyze):
        analysis = analyze("""
            for i in 0...3:
                println(i)
            end
        """)
        assert analysis.inferencer.variable_type("i", 1) == INT

    def test_user_method_return(self, analyze):
        analysis = analyze(CLASS_PF + "var p = Point(1, 2)\nvar px = p.getX()\n")
        inf = analysis.inferencer
        last = len(analysis.document) - 1
        assert inf.variable_type("p", last) == Nominal("Point")
        assert inf.variable_type("px", last) == INT

    def test_this_inside_method(self, analyze):
        analysis = analyze(CLASS_PF)
        assert analysis.inferencer.infer("this.x", 11) == INT
        assert analysis.inferencer.infer("this", 11) == Nominal("Point")

    def test_to_string_everywhere(self, analyze):
        analysis = analyze(CLASS_PF)
        assert analysis.inferencer.infer("Point(1, 2).toString()") == STRING

    def test_unknown_is_any(self, blank):
        assert blank.inferencer.infer("mystery") == ANY
        assert blank.inferencer.infer("mystery(1)") == ANY


class TestReturnInference:

    def _fn(self, analysis, name):
        return analysis.table.lookup(name)

    def test_no_return_is_void(self, analyze):
        analysis = analyze(RETURNS_PF)
        assert analysis.inferencer.infer_return_type(self._fn(analysis, "nothing")) == VOID

    def test_single_return(self, analyze):
        analysis = analyze(RETURNS_PF)
        assert analysis.inferencer.infer_return_type(self._fn(analysis, "one")) == INT

    def test_union_of_returns(self, analyze):
        analysis = analyze(RETURNS_PF)
        result = analysis.inferencer.infer_return_type(self._fn(analysis, "mixed"))
        assert isinstance(result, Union)
        assert set(result.members) == {INT, STRING}

    def test_nested_function_returns_do_not_leak(self, analyze):
        analysis = analyze("""
            def outer():
                def inner():
                    return "inner"
                end
                return 1
            end
        """)
        fn = analysis.table.lookup("outer")
        assert analysis.inferencer.infer_return_type(fn) == INT

    def test_recursion_terminates(self, analyze):
        analysis = analyze("""
            def loopy(n: Int):
                return loopy(n - 1)
            end
        """)
        fn = analysis.table.lookup("loopy")
        assert analysis.inferencer.infer_return_type(fn) == ANY

    def test_annotation_wins(self, analyze):
        analysis = analyze("""
            def name() -> String:
                return 1
            end
        """)
        fn = analysis.table.lookup("name")
        assert analysis.inferencer.function_return_type(fn) == STRING

    def test_method_return_through_receiver(self, analyze):
        analysis = analyze(CLASS_PF)
        inf = analysis.inferencer
        assert inf.infer_method_return_type(Nominal("Point"), "getX") == INT
        assert inf.infer_method_return_type(array_of(STRING), "pop") == STRING
        assert inf.infer_method_return_type(ANY, "whatever") == ANY


class TestReturnInferenceCache:

    def test_deep_call_chain(self, analyze):
        analysis = analyze(doubling_chain(25) + "var x = f25()\n")
        assert analysis.inferencer.variable_type("x", 78) == INT

    def test_result_is_reused(self, analyze):
        analysis = analyze(doubling_chain(3))
        inf = analysis.inferencer
        decl = analysis.table.lookup("f3")
        first = inf.infer_return_type(decl)
        assert inf.infer_return_type(decl) is first
        assert ("f3", decl.line, decl.column) in inf._return_cache
