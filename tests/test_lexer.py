# tests/test_lexer.py
"""
Tests for the line-oriented Polyloft lexer and the line store.
"""

from polyloft_analyzer.document import Document, Position
from polyloft_analyzer.lexer import (
    TokenKind,
    blank_comments,
    blank_strings,
    code_tokens,
    tokenize,
    tokenize_line,
)


def kinds(text):
    tokens, _ = tokenize_line(text)
    return [(t.kind, t.text) for t in tokens]


class TestTokenizeLine:

    def test_declaration(self):
        assert kinds("var x: Int = 5") == [
            (TokenKind.KEYWORD, "var"),
            (TokenKind.IDENTIFIER, "x"),
            (TokenKind.OPERATOR, ":"),
            (TokenKind.IDENTIFIER, "Int"),
            (TokenKind.OPERATOR, "="),
            (TokenKind.INT, "5"),
        ]

    def test_three_dot_range_is_not_a_float(self):
        assert [t for _, t in kinds("1...5")] == ["1", "...", "5"]

    def test_two_dot_range(self):
        assert [t for _, t in kinds("1..5")] == ["1", "..", "5"]

    def test_float(self):
        assert kinds("3.14") == [(TokenKind.FLOAT, "3.14")]

    def test_word_operators_are_identifiers(self):
        tokens, _ = tokenize_line("a and b")
        assert tokens[1].kind is TokenKind.IDENTIFIER

    def test_annotation(self):
        assert kinds("@Override")[0] == (TokenKind.ANNOTATION, "@Override")

    def test_line_comment(self):
        tokens, open_comment = tokenize_line("x = 1 // note")
        assert tokens[-1].kind is TokenKind.COMMENT
        assert tokens[-1].text == "// note"
        assert not open_comment

    def test_string_with_escaped_quote(self):
        tokens, _ = tokenize_line(r'"a\"b" + c')
        assert tokens[0].kind is TokenKind.STRING
        assert tokens[0].text == r'"a\"b"'
        assert tokens[0].terminated

    def test_unterminated_string(self):
        tokens, _ = tokenize_line('var s = "abc')
        assert tokens[-1].kind is TokenKind.STRING
        assert not tokens[-1].terminated

    def test_columns(self):
        tokens, _ = tokenize_line("    return x")
        assert tokens[0].column == 4
        assert tokens[1].column == 11
        assert tokens[1].end == 12


class TestBlockComments:

    def test_comment_spans_lines(self):
        lines = list(tokenize(["a = 1 /* start", "still comment", "end */ b = 2"]))
        assert [t.text for t in code_tokens(lines[0])] == ["a", "=", "1"]
        assert code_tokens(lines[1]) == []
        assert [t.text for t in code_tokens(lines[2])] == ["b", "=", "2"]

    def test_open_state_returned(self):
        _, open_comment = tokenize_line("/* open")
        assert open_comment
        tokens, open_comment = tokenize_line("closed */", in_comment=True)
        assert not open_comment
        assert tokens[0].kind is TokenKind.COMMENT


class TestMasking:

    def test_blank_comments_keeps_columns(self):
        text = "x = 1 // c"
        tokens, _ = tokenize_line(text)
        masked = blank_comments(text, tokens)
        assert len(masked) == len(text)
        assert masked.rstrip() == "x = 1"

    def test_blank_strings_keeps_quotes(self):
        text = 'x = "a=b"'
        tokens, _ = tokenize_line(text)
        assert blank_strings(text, tokens) == 'x = "   "'


class TestDocument:

    def test_lines_are_indexed(self):
        doc = Document.from_text("a\nb\r\nc")
        assert len(doc) == 3
        assert [line.index for line in doc] == [0, 1, 2]
        assert doc[1].text == "b"

    def test_comment_line_is_blank(self):
        doc = Document.from_text("// only a comment\nx = 1")
        assert doc[0].is_blank
        assert not doc[1].is_blank

    def test_word_at(self):
        doc = Document.from_text("var total = 1")
        assert doc.word_at(Position(0, 6)) == ("total", 4, 9)

    def test_word_at_out_of_range(self):
        doc = Document.from_text("x")
        assert doc.word_at(Position(5, 0)) is None

    def test_tokens_skip_comments(self):
        doc = Document.from_text("a // b\n/* c */ d")
        assert [t.text for t in doc.tokens()] == ["a", "d"]
