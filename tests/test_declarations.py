# tests/test_declarations.py
"""
Tests for the declaration collector and scope-aware lookups.
"""

from polyloft_analyzer.declarations import DeclKind, Mutability
from polyloft_analyzer.types import INT, Nominal
from tests.conftest import CLASS_PF, ENUM_PF


class TestCollect:

    def test_variable_kinds(self, analyze):
        analysis = analyze("""
            var a = 1
            let b = 2
            const C = 3
            final d: Int = 4
        """)
        table = analysis.table
        assert [d.mutability for d in table.declarations] == [
            Mutability.VAR, Mutability.LET, Mutability.CONST, Mutability.FINAL,
        ]
        assert table.constants == {"C": 2}
        assert table.finals == {"d": 3}
        assert table.lookup("d").declared_type == INT

    def test_first_declaration_wins(self, analyze):
        analysis = analyze("""
            var x = 1
            var x = "two"
        """)
        assert analysis.table.lookup("x").line == 0
        assert len(analysis.table.declarations) == 2

    def test_multiple_declarators_reported_and_skipped(self, analyze):
        analysis = analyze("final const LIMIT = 3")
        assert analysis.table.lookup("LIMIT") is None
        [diag] = analysis.table.diagnostics
        assert diag.message == "Cannot use multiple declarators (final const). Use only one."

    def test_class_members(self, analyze):
        analysis = analyze(CLASS_PF)
        table = analysis.table
        point = table.class_like("Point")
        assert point.keyword == "class"
        assert {m.name for m in table.members("Point")} == {"x", "y", "Point", "getX"}
        assert table.member("Point", "getX").return_text == "Int"

    def test_parent_and_interfaces(self, analyze):
        analysis = analyze("""
            class Dog < Animal implements Pet, Named:
            end
        """)
        dog = analysis.table.class_like("Dog")
        assert dog.parent == "Animal"
        assert dog.implements == ("Pet", "Named")

    def test_params_live_in_body(self, analyze):
        analysis = analyze("""
            def add(a: Int, b):
                return a
            end
        """)
        table = analysis.table
        fn = table.lookup("add")
        assert [p.name for p in fn.params] == ["a", "b"]
        a = table.visible("a", 1, analysis.tree)
        assert a.keyword == "param"
        assert a.frame_id == fn.body_frame_id
        assert table.visible("a", 3, analysis.tree) is None

    def test_for_and_catch_variables(self, analyze):
        analysis = analyze("""
            for item in [1, 2]:
                println(item)
            end
            try:
                risky()
            catch err:
                println(err)
            end
        """)
        table = analysis.table
        assert table.visible("item", 1, analysis.tree).keyword == "for"
        assert table.visible("err", 6, analysis.tree).keyword == "catch"
        assert table.visible("item", 4, analysis.tree) is None

    def test_enum_values(self, analyze):
        analysis = analyze(ENUM_PF)
        assert [v.name for v in analysis.table.enum_values("Color")] == ["RED", "GREEN", "BLUE"]

    def test_record_components(self, analyze):
        analysis = analyze("""
            record Pair(left: Int, right: String)
            end
        """)
        components = [d for d in analysis.table.members("Pair") if d.keyword == "component"]
        assert [c.name for c in components] == ["left", "right"]

    def test_interface_signatures(self, analyze):
        analysis = analyze("""
            interface Shape
                area() -> Float
                name() -> String
            end
        """)
        sigs = analysis.table.members("Shape")
        assert [s.name for s in sigs] == ["area", "name"]
        assert all(s.kind is DeclKind.FUNCTION for s in sigs)

    def test_imports(self, analyze):
        analysis = analyze("import math.vector { Vec, dot }")
        [statement] = analysis.table.imports
        assert statement.module == "math.vector"
        assert [(s.name, s.column) for s in statement.symbols] == [("Vec", 21), ("dot", 26)]

    def test_declarations_in_comments_ignored(self, analyze):
        analysis = analyze("""
            // var ghost = 1
            /* def phantom():
            end */
        """)
        assert analysis.table.declarations == []


class TestVisibility:

    def test_shadowing(self, analyze):
        analysis = analyze("""
            var x = 1
            def f():
                var x = "s"
                return x
            end
            println(x)
        """)
        table, tree = analysis.table, analysis.tree
        assert table.visible("x", 3, tree).line == 2
        assert table.visible("x", 5, tree).line == 0

    def test_variable_not_visible_before_declaration(self, analyze):
        analysis = analyze("""
            println(y)
            var y = 1
        """)
        assert analysis.table.visible("y", 0, analysis.tree) is None

    def test_functions_visible_anywhere_in_frame(self, analyze):
        analysis = analyze("""
            later()
            def later():
            end
        """)
        decl = analysis.table.visible("later", 0, analysis.tree)
        assert decl.kind is DeclKind.FUNCTION

    def test_enum_value_type(self, analyze):
        analysis = analyze(ENUM_PF)
        assert analysis.inferencer.variable_type("c", 6) == Nominal("Color")
