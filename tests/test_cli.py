# tests/test_cli.py
"""
Tests for the ``python -m polyloft_analyzer`` command-line front end.
"""

import io
import json

import pytest

from polyloft_analyzer.__main__ import build_parser, main


@pytest.fixture
def write(tmp_path):
    def _write(name, text):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write


class TestCheck:

    def test_clean_file(self, write, capsys):
        path = write("ok.pf", "var x = 1\nprintln(x)\n")
        assert main(["check", path]) == 0
        assert capsys.readouterr().out == ""

    def test_error_sets_exit_code(self, write, capsys):
        path = write("bad.pf", "var r = 1..5\n")
        assert main(["check", path]) == 1
        out = capsys.readouterr().out
        assert f"{path}:1:10: error: [PF-E011] Use '...' for ranges instead of '..'" in out

    def test_hints_do_not_fail(self, write, capsys):
        path = write("hint.pf", 'println("Item #1")\n')
        assert main(["check", path]) == 0
        assert ": hint: [PF-H202]" in capsys.readouterr().out

    def test_json_output(self, write, capsys):
        path = write("bad.pf", "var y = 10 / 0\n")
        assert main(["check", "--format", "json", path]) == 1
        report = json.loads(capsys.readouterr().out)
        assert report[0]["file"] == path
        assert [d["code"] for d in report[0]["diagnostics"]] == ["PF-E009"]

    def test_disable(self, write, capsys):
        path = write("bad.pf", "var r = 1..5\n")
        assert main(["check", "--disable", "PF-E011", path]) == 0

    def test_missing_file(self, tmp_path, capsys):
        assert main(["check", str(tmp_path / "nope.pf")]) == 1
        assert "cannot read" in capsys.readouterr().err

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("var r = 1..5\n"))
        assert main(["check", "-"]) == 1
        assert "<stdin>:1:10" in capsys.readouterr().out


class TestQueries:

    def test_hover(self, write, capsys):
        path = write("main.pf", "var x = 1\nprintln(x)\n")
        assert main(["hover", path, "2", "9"]) == 0
        assert capsys.readouterr().out == "var x: Int\n"

    def test_hover_json(self, write, capsys):
        path = write("main.pf", "var x = 1\nprintln(x)\n")
        assert main(["hover", "--format", "json", path, "2", "9"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["signature"] == "var x: Int"
        assert payload["location"] == {"uri": path, "line": 1, "column": 5}

    def test_hover_nothing(self, write, capsys):
        path = write("main.pf", "var x = 1\n")
        assert main(["hover", path, "2", "1"]) == 1
        assert "no information" in capsys.readouterr().err

    def test_positions_are_one_based(self, write, capsys):
        path = write("main.pf", "var x = 1\n")
        assert main(["hover", path, "0", "1"]) == 2
        assert "1-based" in capsys.readouterr().err

    def test_definition_across_files(self, tmp_path, write, capsys):
        write("shapes.pf", "// Shapes.\nclass Circle:\nend\n")
        path = write("main.pf", "import shapes { Circle }\nvar c = Circle()\n")
        assert main(["definition", path, "2", "10"]) == 0
        out = capsys.readouterr().out.strip()
        assert out.endswith("shapes.pf:2:7")

    def test_complete(self, write, capsys):
        path = write("main.pf", "Math.\n")
        assert main(["complete", path, "1", "6"]) == 0
        out = capsys.readouterr().out
        assert "sqrt" in out and "PI" in out

    def test_complete_json(self, write, capsys):
        path = write("main.pf", "Math.sq\n")
        assert main(["complete", "--format", "json", path, "1", "8"]) == 0
        items = json.loads(capsys.readouterr().out)
        assert [i["label"] for i in items] == ["sqrt"]
        assert items[0]["kind"] == "function"


class TestMisc:

    def test_rules_listing(self, capsys):
        assert main(["rules"]) == 0
        out = capsys.readouterr().out
        assert "PF-E001" in out and "unterminated-string" in out
        assert out.index("PF-E001") < out.index("PF-E012") < out.index("PF-W101")

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage:" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "polyloft-analyzer" in capsys.readouterr().out
