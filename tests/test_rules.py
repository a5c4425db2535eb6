# tests/test_rules.py
"""
Tests for the diagnostic rule set, one rule family per class.
"""

import pytest

from polyloft_analyzer.analysis import DocumentAnalysis
from polyloft_analyzer.config import AnalyzerConfig
from polyloft_analyzer.diagnostics import Range, Severity
from polyloft_analyzer.rules import RULES, Rule, RuleContext, run_rule, run_rules
from tests.conftest import CLASS_PF, ENUM_PF, codes, src, with_code


class TestRegistry:

    def test_codes_are_unique(self):
        all_codes = [rule.code for rule in RULES.values()]
        assert len(all_codes) == len(set(all_codes))

    def test_code_prefix_matches_severity(self):
        prefix = {Severity.ERROR: "PF-E", Severity.WARNING: "PF-W", Severity.HINT: "PF-H"}
        for rule in RULES.values():
            assert rule.code.startswith(prefix[rule.severity]), rule.name

    def test_single_rule_runs_alone(self, catalog):
        analysis = DocumentAnalysis.from_text("var r = 1..5", catalog)
        ctx = RuleContext(analysis, AnalyzerConfig())
        [diag] = run_rule(RULES["two-dot-range"], ctx)
        assert diag.rule == "two-dot-range"
        assert diag.range == Range(0, 9, 11)

    def test_failing_rule_is_isolated(self, catalog, caplog):
        def broken(ctx):
            raise RuntimeError("boom")
            yield  # pragma: no cover

        rules = dict(RULES)
        rules["broken"] = Rule("broken", "PF-E999", Severity.ERROR, broken)
        analysis = DocumentAnalysis.from_text("var r = 1..5", catalog)
        found = run_rules(RuleContext(analysis, AnalyzerConfig()), rules)
        assert "PF-E011" in codes(found)
        assert "broken" in caplog.text


class TestStructural:

    def test_unclosed_string(self, diagnose):
        [diag] = with_code(diagnose('var s = "abc'), "PF-E001")
        assert diag.message == "Unclosed string literal"
        assert diag.severity is Severity.ERROR
        assert diag.range == Range(0, 8, 12)

    def test_multiline_map_braces_are_balanced(self, diagnose):
        found = diagnose("""
            var m = {
                "a": 1,
                "b": 2
            }
        """)
        assert with_code(found, "PF-W101") == []

    def test_unmatched_brace(self, diagnose):
        found = with_code(diagnose("var m = {\n"), "PF-W101")
        assert [d.message for d in found] == ["Unmatched brackets"]

    def test_brace_in_string_or_comment_ignored(self, diagnose):
        found = diagnose("""
            var s = "{"
            // }
        """)
        assert with_code(found, "PF-W101") == []

    def test_missing_end_on_chain_head(self, diagnose):
        found = with_code(diagnose("""
            if ready:
                go()
            else:
                wait()
        """), "PF-W102")
        assert [d.line for d in found] == [0]
        assert found[0].message == 'Block statement may be missing corresponding "end" keyword'

    def test_stray_end(self, diagnose):
        found = with_code(diagnose("println(1)\nend\n"), "PF-W103")
        assert [d.line for d in found] == [1]

    def test_def_without_parameters(self, diagnose):
        found = with_code(diagnose("def broken:\nend\n"), "PF-E002")
        assert [d.message for d in found] == [
            "Function definition must be followed by parameter list in parentheses"]

    def test_def_with_parameters(self, diagnose):
        assert with_code(diagnose("def ok():\nend\n"), "PF-E002") == []


class TestNamingAndAnnotations:

    def test_lowercase_class(self, diagnose):
        [diag] = with_code(diagnose("class point:\nend\n"), "PF-W104")
        assert diag.message == "Class names should start with an uppercase letter"
        assert diag.range == Range(0, 6, 11)

    def test_lowercase_enum(self, diagnose):
        [diag] = with_code(diagnose("enum color\n    RED\nend\n"), "PF-W104")
        assert diag.message.startswith("Enum names")

    def test_annotation_before_method(self, diagnose):
        found = diagnose("""
            class A:
                @Override
                def toString() -> String:
                    return "A"
                end
            end
        """)
        assert with_code(found, "PF-W105") == []

    def test_annotation_before_statement(self, diagnose):
        found = with_code(diagnose("""
            @Deprecated
            println("x")
        """), "PF-W105")
        assert [d.line for d in found] == [0]

    def test_annotation_at_end_of_file(self, diagnose):
        assert codes(with_code(diagnose("@Override\n"), "PF-W105")) == ["PF-W105"]


class TestDeclarationMisuse:

    def test_const_reassignment(self, diagnose):
        found = diagnose("""
            const MAX = 10
            MAX = 20
        """)
        errors = [d for d in found if d.severity is Severity.ERROR]
        assert len(errors) == 1
        assert errors[0].line == 1
        assert errors[0].message == "Cannot reassign const variable 'MAX' (declared on line 1)"

    def test_final_compound_assignment(self, diagnose):
        [diag] = with_code(diagnose("""
            final total = 0
            total += 5
        """), "PF-E005")
        assert diag.message == "Cannot reassign final variable 'total' (declared on line 1)"

    def test_increment_of_const(self, diagnose):
        assert len(with_code(diagnose("const N = 1\nN++\n"), "PF-E005")) == 1

    def test_shadowed_const_is_assignable(self, diagnose):
        found = diagnose("""
            const x = 1
            def f():
                var x = 2
                x = 3
            end
        """)
        assert with_code(found, "PF-E005") == []

    def test_comparison_is_not_assignment(self, diagnose):
        found = diagnose("""
            const x = 1
            if x == 1:
                println(x)
            end
        """)
        assert with_code(found, "PF-E005") == []

    def test_multiple_declarators(self, diagnose):
        [diag] = with_code(diagnose("final const x = 1"), "PF-E003")
        assert diag.severity is Severity.ERROR

    def test_duplicate_in_same_scope(self, diagnose):
        [diag] = with_code(diagnose("var x = 1\nvar x = 2\n"), "PF-E004")
        assert diag.line == 1
        assert diag.message == "Variable 'x' is already declared in this scope (line 1)"

    def test_same_name_in_nested_scope(self, diagnose):
        found = diagnose("""
            var x = 1
            def f():
                var x = 2
            end
        """)
        assert with_code(found, "PF-E004") == []

    def test_duplicate_parameter(self, diagnose):
        found = with_code(diagnose("def f(a: Int, a: Int):\nend\n"), "PF-E004")
        assert len(found) == 1


class TestContextLegality:

    def test_this_at_top_level(self, diagnose):
        [diag] = with_code(diagnose("println(this)"), "PF-E006")
        assert diag.message == '"this" can only be used inside class, enum, or record methods'

    def test_this_in_method(self, diagnose):
        assert with_code(diagnose(CLASS_PF), "PF-E006") == []

    def test_this_in_enum_method(self, diagnose):
        found = diagnose("""
            enum Level
                LOW
                HIGH

                def label() -> String:
                    return this.name
                end
            end
        """)
        assert with_code(found, "PF-E006") == []

    def test_this_in_plain_function(self, diagnose):
        found = diagnose("""
            def f():
                return this
            end
        """)
        assert len(with_code(found, "PF-E006")) == 1

    def test_return_outside_function(self, diagnose):
        [diag] = with_code(diagnose("return 1"), "PF-E007")
        assert diag.message == '"return" statement outside of function'

    def test_return_inside_lambda(self, diagnose):
        found = diagnose("""
            var t = thread spawn do
                return 42
            end
        """)
        assert with_code(found, "PF-E007") == []

    def test_break_directly_in_function(self, diagnose):
        found = diagnose("""
            def f():
                break
            end
        """)
        [diag] = with_code(found, "PF-E008")
        assert diag.message == "'break' statement can only be used inside loops"

    def test_break_deep_inside_loop(self, diagnose):
        found = diagnose("""
            def f(items: Array<Int>):
                for x in items:
                    if x > 2:
                        break
                    end
                end
            end
        """)
        assert with_code(found, "PF-E008") == []

    def test_break_in_function_nested_in_loop(self, diagnose):
        found = diagnose("""
            for i in 0...3:
                def inner():
                    break
                end
            end
        """)
        assert len(with_code(found, "PF-E008")) == 1

    def test_continue_outside_loop(self, diagnose):
        [diag] = with_code(diagnose("continue"), "PF-E008")
        assert diag.message == "'continue' statement can only be used inside loops"

    def test_keywords_in_comments_ignored(self, diagnose):
        found = diagnose("""
            // return this
            /* break */
        """)
        assert found == []


class TestStyle:

    def test_untyped_parameter(self, diagnose):
        [diag] = with_code(diagnose("""
            def greet(name, times: Int):
                println(name)
            end
        """), "PF-W106")
        assert diag.message == "Function parameters should have type annotations"
        assert diag.range == Range(0, 10, 14)

    def test_variadic_exempt(self, diagnose):
        assert with_code(diagnose("def log(...parts):\nend\n"), "PF-W106") == []

    def test_constructor_parameters(self, diagnose):
        found = diagnose("""
            class Box:
                Box(value):
                end
            end
        """)
        assert len(with_code(found, "PF-W106")) == 1

    def test_unused_import(self, diagnose):
        found = with_code(diagnose("""
            import math.utils { Helper, Other }
            Helper.run()
        """), "PF-H201")
        assert [d.message for d in found] == ["Imported symbol 'Other' is not used"]
        assert found[0].severity is Severity.HINT

    def test_import_used_in_interpolation(self, diagnose):
        found = diagnose("""
            import app.names { Title }
            println("Name: #{Title}")
        """)
        assert with_code(found, "PF-H201") == []

    def test_indentation(self, diagnose):
        found = with_code(diagnose("""
            def f():
              println(1)
            end
        """), "PF-H203")
        assert [d.line for d in found] == [1]
        assert found[0].message == "Inconsistent indentation (should be multiples of 4 spaces)"

    def test_indentation_inside_brackets_ignored(self, diagnose):
        found = diagnose("""
            var xs = [
              1,
              2
            ]
        """)
        assert with_code(found, "PF-H203") == []


class TestReachability:

    def test_statement_after_return(self, diagnose):
        [diag] = with_code(diagnose("""
            def f() -> Int:
                return 1
                println("never")
            end
        """), "PF-W107")
        assert diag.line == 2
        assert diag.message == "Unreachable code after return statement"

    def test_branch_after_return_is_reachable(self, diagnose):
        found = diagnose("""
            def f(x: Int) -> Int:
                if x > 0:
                    return 1
                else:
                    return 2
                end
            end
        """)
        assert with_code(found, "PF-W107") == []

    def test_after_break(self, diagnose):
        found = with_code(diagnose("""
            loop:
                break
                println(1)
            end
        """), "PF-W107")
        assert [d.message for d in found] == ["Unreachable code after break statement"]

    def test_next_case_is_reachable(self, diagnose):
        found = diagnose("""
            def f(v: Int):
                switch v:
                    case 1:
                        return
                    case 2:
                        println(2)
                end
            end
        """)
        assert with_code(found, "PF-W107") == []


class TestTypeRules:

    def test_annotated_initializer_mismatch(self, diagnose):
        [diag] = with_code(diagnose('var count: Int = "hello"'), "PF-W108")
        assert "String" in diag.message and "Int" in diag.message

    def test_int_widens_to_float(self, diagnose):
        assert with_code(diagnose("var f: Float = 1"), "PF-W108") == []

    def test_reassignment_mismatch(self, diagnose):
        found = with_code(diagnose("""
            var n = 5
            n = "text"
        """), "PF-W108")
        assert [d.line for d in found] == [1]

    def test_reassignment_compatible(self, diagnose):
        assert with_code(diagnose("var n = 5\nn = 6\n"), "PF-W108") == []

    def test_unknown_target_type(self, diagnose):
        assert with_code(diagnose("var n = nil\nn = 6\n"), "PF-W108") == []

    def test_incompatible_comparison(self, diagnose):
        found = with_code(diagnose("""
            var a = 1
            var s = "x"
            if a == s:
                println(a)
            end
        """), "PF-W109")
        assert [d.line for d in found] == [2]

    def test_numeric_comparison(self, diagnose):
        found = diagnose("""
            var a = 1
            var b = 2.5
            var bigger = a < b
        """)
        assert with_code(found, "PF-W109") == []

    def test_division_by_zero(self, diagnose):
        [diag] = with_code(diagnose("var y = 10 / 0"), "PF-E009")
        assert diag.message == "Division by zero"

    def test_division_by_float_zero(self, diagnose):
        assert len(with_code(diagnose("var y = 10 / 0.0"), "PF-E009")) == 1

    def test_division_by_nonzero(self, diagnose):
        assert with_code(diagnose("var y = 10 / 2"), "PF-E009") == []

    def test_unknown_package_member(self, diagnose):
        [diag] = with_code(diagnose("var r = Math.sqroot(2)"), "PF-W110")
        assert diag.message == "Unknown member 'sqroot' in package Math"

    def test_unknown_method_on_inferred_receiver(self, diagnose):
        found = with_code(diagnose("""
            var names = ["a", "b"]
            names.pusher("c")
            names.push("c")
        """), "PF-W110")
        assert [d.message for d in found] == ["Unknown method 'pusher' for type Array<String>"]

    def test_user_class_shadowing_package(self, diagnose):
        found = diagnose("""
            class Math:
                def twice(x: Int) -> Int:
                    return x * 2
                end
            end
            var t = Math.twice(2)
        """)
        assert with_code(found, "PF-W110") == []

    def test_unknown_receiver_type_is_silent(self, diagnose):
        assert with_code(diagnose("thing.whatever()"), "PF-W110") == []


class TestLexicalTraps:

    @pytest.mark.parametrize("line,message", [
        ("if a and b:", "Use '&&' instead of 'and'"),
        ("if a or b:", "Use '||' instead of 'or'"),
        ("if not done:", "Use '!' instead of 'not'"),
    ])
    def test_word_operators(self, diagnose, line, message):
        found = with_code(diagnose(line + "\nend\n"), "PF-E010")
        assert [d.message for d in found] == [message]

    def test_word_as_member_is_fine(self, diagnose):
        assert with_code(diagnose("var x = flags.and(1)"), "PF-E010") == []

    def test_two_dot_range(self, diagnose):
        [diag] = with_code(diagnose("for i in 1..5:\nend\n"), "PF-E011")
        assert diag.message == "Use '...' for ranges instead of '..'"

    def test_three_dot_range(self, diagnose):
        assert with_code(diagnose("for i in 1...5:\nend\n"), "PF-E011") == []

    def test_dollar_interpolation(self, diagnose):
        [diag] = with_code(diagnose('println("Hello ${name}")'), "PF-E012")
        assert diag.range == Range(0, 15, 17)

    def test_missed_interpolation(self, diagnose):
        [diag] = with_code(diagnose('println("Item #1")'), "PF-H202")
        assert diag.severity is Severity.HINT

    def test_proper_interpolation(self, diagnose):
        found = diagnose('println("Hello #{name}")')
        assert with_code(found, "PF-H202") == []
        assert with_code(found, "PF-E012") == []

    def test_traps_in_comments_ignored(self, diagnose):
        assert diagnose("// a and b, 1..5, ${x}") == []


class TestCleanDocuments:

    @pytest.mark.parametrize("text", [CLASS_PF, ENUM_PF])
    def test_no_findings(self, diagnose, text):
        assert diagnose(text) == []

    def test_full_program(self, diagnose):
        found = diagnose("""
            import util.strings { pad }

            // Counts words.
            def count(words: Array<String>) -> Int:
                var total = 0
                for w in words:
                    if w.length() > 0:
                        total += 1
                    end
                end
                return total
            end

            var n = count(["a", "b"])
            println(pad("#{n}"))
        """)
        assert found == []
