# polyloft_analyzer/document.py
"""
Line store.

A :class:`Document` is an immutable, ordered sequence of :class:`Line`
values built once from the full text of a source file.  Every line is
tokenized at construction so later passes never re-lex text.  A new
Document is built for every analysis; there is no incremental edit model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from polyloft_analyzer.lexer import (
    Token,
    TokenKind,
    blank_comments,
    blank_strings,
    tokenize,
)

_WORD_RE = re.compile(r"[A-Za-z_]\w*")


@dataclass(frozen=True, slots=True)
class Position:
    """Zero-based (line, character) pair."""
    line: int
    character: int


@dataclass(frozen=True, slots=True)
class Line:
    """
    One physical line.

    Attributes:
        index: Zero-based line number.
        text: Raw text without the line break.
        tokens: All tokens on the line, comments included.
        code: ``text`` with comments blanked out; columns are preserved.
        masked: ``code`` with string contents blanked out as well.
    """
    index: int
    text: str
    tokens: Tuple[Token, ...]
    code: str
    masked: str

    @property
    def code_tokens(self) -> Tuple[Token, ...]:
        return tuple(t for t in self.tokens if t.kind is not TokenKind.COMMENT)

    @property
    def is_blank(self) -> bool:
        return not self.code.strip()

    @property
    def indent(self) -> int:
        return len(self.text) - len(self.text.lstrip(" \t"))

    @property
    def stripped(self) -> str:
        return self.code.strip()


@dataclass(frozen=True)
class Document:
    """Immutable sequence of lines plus an optional URI."""
    lines: Tuple[Line, ...]
    uri: Optional[str] = None

    @classmethod
    def from_text(cls, text: str, uri: Optional[str] = None) -> Document:
        raw = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        lines: List[Line] = []
        for index, (line_text, toks) in enumerate(zip(raw, tokenize(raw))):
            code = blank_comments(line_text, toks)
            lines.append(Line(
                index=index,
                text=line_text,
                tokens=tuple(toks),
                code=code,
                masked=blank_strings(code, toks),
            ))
        return cls(tuple(lines), uri)

    def __len__(self) -> int:
        return len(self.lines)

    def __getitem__(self, index: int) -> Line:
        return self.lines[index]

    def __iter__(self) -> Iterator[Line]:
        return iter(self.lines)

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)

    def line_at(self, index: int) -> Optional[Line]:
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return None

    def tokens(self) -> Iterator[Token]:
        """Every code token in document order."""
        for line in self.lines:
            yield from line.code_tokens

    def word_at(self, position: Position) -> Optional[Tuple[str, int, int]]:
        """Return ``(word, start, end)`` for the identifier under *position*."""
        line = self.line_at(position.line)
        if line is None:
            return None
        for m in _WORD_RE.finditer(line.text):
            if m.start() <= position.character <= m.end():
                return m.group(), m.start(), m.end()
        return None


__all__ = ["Position", "Line", "Document"]
