# polyloft_analyzer/lexer.py
"""
Polyloft lexer.

Turns source lines into a flat stream of :class:`Token` values.  The lexer
is line oriented because every consumer addresses text by line index and
column, but it carries block-comment state across lines so ``/* ... */``
spanning several lines is recognised as a single comment.

The lexer never raises.  Unknown characters become ``UNKNOWN`` tokens and a
string literal without its closing quote is returned with
``terminated=False`` so the rule set can report it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Iterator, List, Tuple


KEYWORDS = frozenset({
    "var", "let", "const", "final", "def", "class", "interface", "import",
    "implements", "abstract", "sealed", "return", "if", "elif", "else",
    "for", "in", "loop", "break", "continue", "end", "do", "true", "false",
    "nil", "null", "thread", "spawn", "join", "public", "pub", "private",
    "priv", "protected", "prot", "static", "this", "super", "instanceof",
    "enum", "record", "try", "catch", "finally", "throw", "defer", "switch",
    "case", "default", "where", "from", "as", "export", "extends", "out",
})

MODIFIERS = frozenset({
    "public", "pub", "private", "priv", "protected", "prot", "static",
    "abstract", "sealed", "export",
})


class TokenKind(Enum):
    """Lexical categories."""
    IDENTIFIER = auto()      # foo, Bar, and
    KEYWORD = auto()         # def, end, this
    INT = auto()             # 42
    FLOAT = auto()           # 3.14
    STRING = auto()          # "text" or 'text'
    OPERATOR = auto()        # + == ... => .
    PUNCT = auto()           # ( ) [ ] { } , ;
    ANNOTATION = auto()      # @Override
    COMMENT = auto()         # // ... and /* ... */
    UNKNOWN = auto()         # anything else


@dataclass(frozen=True, slots=True)
class Token:
    """A single token; ``line`` and ``column`` are zero-based."""
    kind: TokenKind
    text: str
    line: int
    column: int
    terminated: bool = True

    @property
    def end(self) -> int:
        return self.column + len(self.text)

    def is_keyword(self, *words: str) -> bool:
        return self.kind is TokenKind.KEYWORD and (not words or self.text in words)

    def is_op(self, *ops: str) -> bool:
        return (self.kind in (TokenKind.OPERATOR, TokenKind.PUNCT)
                and (not ops or self.text in ops))

    def __repr__(self) -> str:
        return f"Token({self.kind.name}, {self.text!r}, L{self.line}:{self.column})"


_OPERATORS = (
    "...", "..", "=>", "->", "==", "!=", "<=", ">=", "&&", "||", "+=", "-=",
    "*=", "/=", "%=", "++", "--", "+", "-", "*", "/", "%", "=", "<", ">",
    "!", "&", "|", "^", "~", "?", ":", ".",
)

_TOKEN_RE = re.compile(
    r"(?P<FLOAT>\d+\.\d+)"
    r"|(?P<INT>\d+)"
    r"|(?P<ANNOTATION>@[A-Za-z_]\w*)"
    r"|(?P<NAME>[A-Za-z_]\w*)"
    r"|(?P<OP>" + "|".join(re.escape(op) for op in _OPERATORS) + r")"
    r"|(?P<PUNCT>[()\[\]{},;])"
)


def tokenize_line(text: str, line: int = 0,
                  in_comment: bool = False) -> Tuple[List[Token], bool]:
    """
    Tokenize one physical line.

    Returns the tokens and whether a block comment is still open at the
    end of the line.
    """
    tokens: List[Token] = []
    pos = 0
    n = len(text)

    if in_comment:
        close = text.find("*/")
        if close < 0:
            if text.strip():
                tokens.append(Token(TokenKind.COMMENT, text, line, 0))
            return tokens, True
        tokens.append(Token(TokenKind.COMMENT, text[:close + 2], line, 0))
        pos = close + 2

    while pos < n:
        ch = text[pos]
        if ch in " \t\r\f\v":
            pos += 1
            continue
        if text.startswith("//", pos):
            tokens.append(Token(TokenKind.COMMENT, text[pos:], line, pos))
            break
        if text.startswith("/*", pos):
            close = text.find("*/", pos + 2)
            if close < 0:
                tokens.append(Token(TokenKind.COMMENT, text[pos:], line, pos))
                return tokens, True
            tokens.append(Token(TokenKind.COMMENT, text[pos:close + 2], line, pos))
            pos = close + 2
            continue
        if ch in "\"'":
            end = _scan_string(text, pos)
            if end < 0:
                tokens.append(Token(TokenKind.STRING, text[pos:], line, pos,
                                    terminated=False))
                break
            tokens.append(Token(TokenKind.STRING, text[pos:end], line, pos))
            pos = end
            continue

        m = _TOKEN_RE.match(text, pos)
        if m is None:
            tokens.append(Token(TokenKind.UNKNOWN, ch, line, pos))
            pos += 1
            continue
        group = m.lastgroup
        value = m.group()
        if group == "NAME":
            kind = TokenKind.KEYWORD if value in KEYWORDS else TokenKind.IDENTIFIER
        elif group == "OP":
            kind = TokenKind.OPERATOR
        else:
            kind = TokenKind[group]
        tokens.append(Token(kind, value, line, pos))
        pos = m.end()

    return tokens, False


def _scan_string(text: str, start: int) -> int:
    """Return the index just past the closing quote, or -1."""
    quote = text[start]
    i = start + 1
    while i < len(text):
        c = text[i]
        if c == "\\":
            i += 2
            continue
        if c == quote:
            return i + 1
        i += 1
    return -1


def tokenize(lines: Iterable[str]) -> Iterator[List[Token]]:
    """Yield the token list of every line, tracking block comments."""
    in_comment = False
    for index, text in enumerate(lines):
        tokens, in_comment = tokenize_line(text, index, in_comment)
        yield tokens


def code_tokens(tokens: Iterable[Token]) -> List[Token]:
    """Drop comment tokens."""
    return [t for t in tokens if t.kind is not TokenKind.COMMENT]


def blank_comments(text: str, tokens: Iterable[Token]) -> str:
    """Return *text* with comment spans replaced by spaces (columns kept)."""
    chars = list(text)
    for tok in tokens:
        if tok.kind is TokenKind.COMMENT:
            for i in range(tok.column, min(tok.end, len(chars))):
                chars[i] = " "
    return "".join(chars)


def blank_strings(text: str, tokens: Iterable[Token]) -> str:
    """Return *text* with string contents replaced by spaces, quotes kept."""
    chars = list(text)
    for tok in tokens:
        if tok.kind is TokenKind.STRING:
            last = tok.end - 1 if tok.terminated else tok.end
            for i in range(tok.column + 1, min(last, len(chars))):
                chars[i] = " "
    return "".join(chars)


__all__ = [
    "KEYWORDS", "MODIFIERS", "TokenKind", "Token", "tokenize_line",
    "tokenize", "code_tokens", "blank_comments", "blank_strings",
]
