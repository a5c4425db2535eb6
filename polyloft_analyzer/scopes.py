# polyloft_analyzer/scopes.py
"""
Block-scope resolver.

The document's token stream is folded once into an explicit tree of
:class:`Frame` values.  Each frame records the construct that opened it
(function, loop, class-like body, interface body or conditional), the
line range it spans and a link to its parent.  Every containment question
("is line L inside a loop?") is answered by walking parent links from the
innermost frame at L, so nested functions, lambdas and loops can never
confuse a depth counter.

Block grammar recognised here
─────────────────────────────
::

    def name(params) -> T:        Function       (only with trailing ':')
    Name(params):                 Function       (constructor)
    ... do                        Function       (thread spawn / lambda body)
    for x in xs:  loop:           Loop
    class / enum / record         ClassLike
    interface                     Interface
    if / try / switch             Conditional
    elif / else                   continue an ``if`` chain
    catch / finally               continue a ``try`` chain
    case / default                implicit clauses closed with their switch
    end                           close the innermost explicit frame

A header whose own line also carries ``end`` is a one-line construct: it
gets an inline frame covering just that line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

from polyloft_analyzer.document import Document
from polyloft_analyzer.lexer import MODIFIERS, Token, TokenKind

logger = logging.getLogger(__name__)


class FrameKind(Enum):
    MODULE = "module"
    FUNCTION = "function"
    LOOP = "loop"
    CLASS_LIKE = "classlike"
    INTERFACE = "interface"
    CONDITIONAL = "conditional"


_CLOSERS_AFTER_END = frozenset({")", "]", "}", ",", ";"})
_IF_CHAIN = frozenset({"if", "elif", "else"})
_TRY_CHAIN = frozenset({"try", "catch", "finally"})
_CLAUSES = frozenset({"case", "default"})
_CONTINUATIONS = frozenset({"elif", "else", "catch", "finally"})
_BOUNDARIES = frozenset({FrameKind.FUNCTION, FrameKind.CLASS_LIKE,
                         FrameKind.INTERFACE, FrameKind.MODULE})


@dataclass(eq=False, slots=True)
class Frame:
    """
    One lexical block.

    ``start_line`` is the header line and ``end_line`` the terminator line
    (``None`` while the block is unclosed).  ``head`` points at the first
    frame of an ``if``/``elif``/``else`` or ``try``/``catch`` chain.
    """
    id: int
    kind: FrameKind
    keyword: str
    start_line: int
    parent: Optional[Frame] = None
    name: Optional[str] = None
    end_line: Optional[int] = None
    implicit: bool = False
    inline: bool = False
    is_constructor: bool = False
    head: Optional[Frame] = None
    children: List[Frame] = field(default_factory=list)

    @property
    def chain_head(self) -> Frame:
        return self.head or self

    def ancestors(self) -> Iterator[Frame]:
        """Yield this frame, then each enclosing frame outwards."""
        frame: Optional[Frame] = self
        while frame is not None:
            yield frame
            frame = frame.parent

    def encloses(self, line: int) -> bool:
        end = self.end_line if self.end_line is not None else float("inf")
        return self.start_line <= line <= end

    def __repr__(self) -> str:
        label = f" {self.name}" if self.name else ""
        return (f"Frame#{self.id}({self.kind.name} {self.keyword}{label} "
                f"L{self.start_line}-{self.end_line})")


@dataclass(frozen=True, slots=True)
class Opener:
    kind: FrameKind
    keyword: str
    name: Optional[str] = None
    is_constructor: bool = False


def skip_prefix(tokens: Sequence[Token]) -> int:
    """Index of the first token after annotations and modifiers."""
    i = 0
    while i < len(tokens) and (
        tokens[i].kind is TokenKind.ANNOTATION
        or (tokens[i].kind is TokenKind.KEYWORD and tokens[i].text in MODIFIERS)
    ):
        i += 1
    return i


def classify_opener(tokens: Sequence[Token]) -> Optional[Opener]:
    """Return the block this line opens, or ``None``."""
    i = skip_prefix(tokens)
    if i >= len(tokens):
        return None
    first = tokens[i]
    last = tokens[-1]
    word = first.text
    nxt = tokens[i + 1] if i + 1 < len(tokens) else None
    name = nxt.text if nxt is not None and nxt.kind is TokenKind.IDENTIFIER else None

    if first.kind is TokenKind.KEYWORD:
        if word == "def":
            if last.is_op(":"):
                return Opener(FrameKind.FUNCTION, "def", name)
            return None
        if word in ("class", "enum", "record"):
            return Opener(FrameKind.CLASS_LIKE, word, name)
        if word == "interface":
            return Opener(FrameKind.INTERFACE, word, name)
        if word in ("for", "loop"):
            return Opener(FrameKind.LOOP, word)
        if word in ("if", "try", "switch"):
            return Opener(FrameKind.CONDITIONAL, word)
    if (first.kind is TokenKind.IDENTIFIER and first.text[:1].isupper()
            and nxt is not None and nxt.is_op("(") and last.is_op(":")):
        return Opener(FrameKind.FUNCTION, "constructor", first.text,
                      is_constructor=True)
    if last.is_keyword("do"):
        return Opener(FrameKind.FUNCTION, "do")
    return None


def is_terminator(tokens: Sequence[Token]) -> bool:
    """A bare ``end``, optionally followed by closing punctuation."""
    if not tokens or not tokens[0].is_keyword("end"):
        return False
    return len(tokens) == 1 or tokens[1].text in _CLOSERS_AFTER_END


class ScopeTree:
    """
    Persisted scope structure of one document.

    Built by :meth:`build`; immutable by convention afterwards.
    """

    def __init__(self, line_count: int):
        self.root = Frame(0, FrameKind.MODULE, "module", 0,
                          end_line=max(line_count - 1, 0))
        self.frames: List[Frame] = [self.root]
        self.stray_ends: List[int] = []
        self.unclosed: List[Frame] = []
        self._line_frames: List[Frame] = [self.root] * line_count
        self._opened: Dict[int, Frame] = {}

    # ── construction ───────────────────────────────────────────────────

    @classmethod
    def build(cls, document: Document) -> ScopeTree:
        tree = cls(len(document))
        stack: List[Frame] = [tree.root]

        for line in document:
            tokens = line.code_tokens
            idx = line.index
            if not tokens:
                tree._line_frames[idx] = stack[-1]
                continue

            if is_terminator(tokens):
                tree._close(stack, idx)
                continue

            start = skip_prefix(tokens)
            first = tokens[start] if start < len(tokens) else tokens[0]
            if first.kind is TokenKind.KEYWORD and first.text in _CONTINUATIONS:
                if tree._continue_chain(stack, first.text, idx):
                    if any(t.is_keyword("end") for t in tokens[start + 1:]):
                        tree._close(stack, idx)
                    continue
            elif first.kind is TokenKind.KEYWORD and first.text in _CLAUSES:
                if tree._open_clause(stack, first.text, idx):
                    continue

            tree._line_frames[idx] = stack[-1]
            opener = classify_opener(tokens)
            if opener is None:
                continue
            one_line = any(t.is_keyword("end") for t in tokens[1:])
            frame = tree._new_frame(opener, idx, stack[-1])
            if one_line:
                frame.inline = True
                frame.end_line = idx
                tree._line_frames[idx] = frame
            else:
                stack.append(frame)

        for frame in stack[1:]:
            if frame.implicit:
                continue
            head = frame.chain_head
            if head not in tree.unclosed:
                tree.unclosed.append(head)
            for open_frame in (frame, head):
                open_frame.end_line = len(document) - 1
        logger.debug("scope tree: %d frames, %d unclosed, %d stray ends",
                     len(tree.frames), len(tree.unclosed), len(tree.stray_ends))
        return tree

    def _new_frame(self, opener: Opener, line: int, parent: Frame,
                   head: Optional[Frame] = None, implicit: bool = False) -> Frame:
        frame = Frame(
            id=len(self.frames),
            kind=opener.kind,
            keyword=opener.keyword,
            start_line=line,
            parent=parent,
            name=opener.name,
            is_constructor=opener.is_constructor,
            head=head,
            implicit=implicit,
        )
        parent.children.append(frame)
        self.frames.append(frame)
        if head is None and not implicit:
            self._opened[line] = frame
        return frame

    def _close(self, stack: List[Frame], line: int) -> None:
        while len(stack) > 1 and stack[-1].implicit:
            stack.pop().end_line = line
        if len(stack) == 1:
            self.stray_ends.append(line)
            self._line_frames[line] = stack[-1]
            return
        frame = stack.pop()
        frame.end_line = line
        self._line_frames[line] = frame

    def _continue_chain(self, stack: List[Frame], word: str, line: int) -> bool:
        top = stack[-1]
        chain = _IF_CHAIN if word in _IF_CHAIN else _TRY_CHAIN
        if len(stack) == 1 or top.keyword not in chain:
            return False
        stack.pop()
        top.end_line = line - 1
        self._line_frames[line] = stack[-1]
        frame = self._new_frame(Opener(FrameKind.CONDITIONAL, word), line,
                                stack[-1], head=top.chain_head)
        stack.append(frame)
        return True

    def _open_clause(self, stack: List[Frame], word: str, line: int) -> bool:
        if stack[-1].implicit:
            stack.pop().end_line = line - 1
        if stack[-1].keyword != "switch":
            return False
        self._line_frames[line] = stack[-1]
        stack.append(self._new_frame(Opener(FrameKind.CONDITIONAL, word),
                                     line, stack[-1], implicit=True))
        return True

    # ── queries ─────────────────────────────────────────────────────────

    def frame_at(self, line: int) -> Optional[Frame]:
        """Innermost frame whose body holds *line*; headers map to the parent."""
        if 0 <= line < len(self._line_frames):
            return self._line_frames[line]
        return None

    def opened_at(self, line: int) -> Optional[Frame]:
        """The frame whose header sits on *line*, if any."""
        return self._opened.get(line)

    def frame_by_id(self, frame_id: Optional[int]) -> Optional[Frame]:
        if frame_id is None or not 0 <= frame_id < len(self.frames):
            return None
        return self.frames[frame_id]

    def enclosing(self, line: int, kind: FrameKind) -> Optional[Frame]:
        frame = self.frame_at(line)
        if frame is None:
            return None
        for f in frame.ancestors():
            if f.kind is kind:
                return f
        return None

    def function_at(self, line: int) -> Optional[Frame]:
        return self.enclosing(line, FrameKind.FUNCTION)

    def class_at(self, line: int) -> Optional[Frame]:
        """The class-like (or interface) frame enclosing *line*."""
        frame = self.frame_at(line)
        if frame is None:
            return None
        for f in frame.ancestors():
            if f.kind in (FrameKind.CLASS_LIKE, FrameKind.INTERFACE):
                return f
        return None

    def contains(self, line: int, kind: FrameKind) -> bool:
        """Is *line* lexically inside a construct of *kind*?"""
        frame = self.frame_at(line)
        if frame is None:
            return False
        if kind is FrameKind.FUNCTION:
            return any(f.kind is FrameKind.FUNCTION for f in frame.ancestors())
        if kind is FrameKind.LOOP:
            for f in frame.ancestors():
                if f.kind is FrameKind.LOOP:
                    return True
                if f.kind in _BOUNDARIES:
                    return False
            return False
        if kind is FrameKind.CLASS_LIKE:
            for f in frame.ancestors():
                owner = f.parent
                if (f.kind is FrameKind.FUNCTION and owner is not None
                        and owner.kind is FrameKind.CLASS_LIKE):
                    if not f.is_constructor or f.name == owner.name:
                        return True
            return False
        return any(f.kind is kind for f in frame.ancestors())


def contains(document: Document, line: int, kind: FrameKind,
             tree: Optional[ScopeTree] = None) -> bool:
    """Convenience form taking the document; builds the tree when not given."""
    if tree is None:
        tree = ScopeTree.build(document)
    return tree.contains(line, kind)


__all__ = ["FrameKind", "Frame", "Opener", "ScopeTree", "classify_opener", "skip_prefix",
           "is_terminator", "contains"]
