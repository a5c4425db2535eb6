# polyloft_analyzer/declarations.py
"""
Declaration collector.

One forward pass over a :class:`~polyloft_analyzer.document.Document`
records every class-like, function and variable declaration with the scope
frame it lives in.  The resulting :class:`DeclarationTable` offers:

* ``symbols``      name -> first declaration (first textual match wins)
* ``constants``    const-declared variable name -> declaration line
* ``finals``       final-declared variable name -> declaration line
* ``declarations`` every declaration in source order, duplicates included
* ``imports``      ``import path { A, B }`` statements

Stacked mutability declarators (``final const x``) are reported straight
away as errors and the line is left out of the table.  Shadowing is not
resolved here; :meth:`DeclarationTable.visible` walks the scope tree at
query time.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from polyloft_analyzer.diagnostics import Diagnostic, Range, Severity
from polyloft_analyzer.document import Document, Line
from polyloft_analyzer.grammar import Parameter, parse_params, parse_type, split_top_level
from polyloft_analyzer.scopes import Frame, FrameKind, ScopeTree
from polyloft_analyzer.types import TLType

_MODS = r"(?:(?:public|pub|private|priv|protected|prot|static|abstract|sealed|export)\s+)*"
_ANNOTATIONS = r"(?:@\w+\s+)*"

_FUNCTION_RE = re.compile(rf"^\s*{_ANNOTATIONS}{_MODS}def\s+([A-Za-z_]\w*)")
_CLASS_RE = re.compile(
    rf"^\s*{_ANNOTATIONS}{_MODS}(class|enum|record|interface)\s+([A-Za-z_]\w*)")
_CONSTRUCTOR_RE = re.compile(rf"^\s*{_ANNOTATIONS}{_MODS}([A-Z]\w*)\s*\(")
_VARIABLE_RE = re.compile(
    rf"^\s*{_ANNOTATIONS}{_MODS}((?:(?:var|let|const|final)\s+)+)([A-Za-z_]\w*)"
    r"\s*(?::\s*([^=]+?))?\s*(?:=(?!=)\s*(.*?))?\s*$")
_FOR_RE = re.compile(r"^\s*for\s+([A-Za-z_]\w*)(?:\s*,\s*([A-Za-z_]\w*))?\s+in\s+(.+?)"
                     r"(?:\s+where\s+.*?)?\s*:?\s*$")
_CATCH_RE = re.compile(r"^\s*catch\s*\(?\s*([A-Za-z_]\w*)(?:\s*:\s*([A-Za-z_][\w<>\[\], ]*?))?\s*\)?\s*:?\s*$")
_IMPORT_RE = re.compile(r"^\s*import\s+([\w./]+)\s*\{([^}]*)\}")
_SIGNATURE_RE = re.compile(r"^\s*([a-z_]\w*)\s*\(")
_ENUM_VALUE_RE = re.compile(r"^\s*([A-Z][A-Z0-9_]*)\s*(?:\(.*\))?\s*,?\s*$")
_RETURN_RE = re.compile(r"^\s*->\s*(.+?)\s*:?\s*$")


class DeclKind(Enum):
    CLASS = "class"
    FUNCTION = "function"
    VARIABLE = "variable"


class Mutability(Enum):
    VAR = "var"
    LET = "let"
    CONST = "const"
    FINAL = "final"


@dataclass(frozen=True, slots=True)
class Declaration:
    """
    One declared name.

    ``keyword`` records the construct: ``class``, ``enum``, ``record``,
    ``interface``, ``def``, ``constructor``, ``signature``, ``var``,
    ``let``, ``const``, ``final``, ``param``, ``for``, ``catch``,
    ``enum_value`` or ``component`` (record component).
    """
    name: str
    kind: DeclKind
    keyword: str
    line: int
    column: int
    frame_id: int
    mutability: Optional[Mutability] = None
    declared_type: Optional[TLType] = None
    type_text: Optional[str] = None
    initializer: Optional[str] = None
    params: Tuple[Parameter, ...] = ()
    return_text: Optional[str] = None
    parent: Optional[str] = None
    implements: Tuple[str, ...] = ()
    type_params: Tuple[str, ...] = ()
    body_frame_id: Optional[int] = None
    owner: Optional[str] = None

    @property
    def is_constant(self) -> bool:
        return self.mutability in (Mutability.CONST, Mutability.FINAL)

    @property
    def end_column(self) -> int:
        return self.column + len(self.name)


@dataclass(frozen=True, slots=True)
class ImportedSymbol:
    name: str
    module: str
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class ImportStatement:
    module: str
    line: int
    symbols: Tuple[ImportedSymbol, ...]


@dataclass
class DeclarationTable:
    symbols: Dict[str, Declaration] = field(default_factory=dict)
    constants: Dict[str, int] = field(default_factory=dict)
    finals: Dict[str, int] = field(default_factory=dict)
    declarations: List[Declaration] = field(default_factory=list)
    imports: List[ImportStatement] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    by_frame: Dict[int, List[Declaration]] = field(default_factory=lambda: defaultdict(list))

    def add(self, decl: Declaration) -> None:
        self.declarations.append(decl)
        self.by_frame[decl.frame_id].append(decl)
        self.symbols.setdefault(decl.name, decl)
        if decl.mutability is Mutability.CONST:
            self.constants.setdefault(decl.name, decl.line)
        elif decl.mutability is Mutability.FINAL:
            self.finals.setdefault(decl.name, decl.line)

    def lookup(self, name: str) -> Optional[Declaration]:
        return self.symbols.get(name)

    def visible(self, name: str, line: int, tree: ScopeTree) -> Optional[Declaration]:
        """
        Declaration of *name* visible from *line*.

        Frames are searched innermost first.  Variables must be declared at
        or before *line*; functions and class-likes are visible anywhere in
        their frame.
        """
        frame = tree.frame_at(line)
        if frame is None:
            return None
        for f in frame.ancestors():
            found: Optional[Declaration] = None
            for decl in self.by_frame.get(f.id, ()):
                if decl.name != name:
                    continue
                if decl.kind is DeclKind.VARIABLE and decl.line > line:
                    continue
                if found is None or decl.kind is DeclKind.VARIABLE:
                    found = decl
            if found is not None:
                return found
        return None

    def visible_names(self, line: int, tree: ScopeTree) -> Iterator[Declaration]:
        """Every declaration visible from *line*, innermost shadowing first."""
        frame = tree.frame_at(line)
        if frame is None:
            return
        seen = set()
        for f in frame.ancestors():
            for decl in self.by_frame.get(f.id, ()):
                if decl.name in seen or (decl.kind is DeclKind.VARIABLE and decl.line > line):
                    continue
                seen.add(decl.name)
                yield decl

    def class_like(self, name: str) -> Optional[Declaration]:
        for decl in self.declarations:
            if decl.kind is DeclKind.CLASS and decl.name == name:
                return decl
        return None

    def members(self, owner: str) -> List[Declaration]:
        return [d for d in self.declarations if d.owner == owner]

    def member(self, owner: str, name: str) -> Optional[Declaration]:
        for decl in self.declarations:
            if decl.owner == owner and decl.name == name:
                return decl
        return None

    def enum_values(self, enum_name: str) -> List[Declaration]:
        return [d for d in self.members(enum_name) if d.keyword == "enum_value"]

    def imported(self, name: str) -> Optional[ImportedSymbol]:
        for statement in self.imports:
            for symbol in statement.symbols:
                if symbol.name == name:
                    return symbol
        return None


def _matching_paren(text: str, open_index: int) -> int:
    """Index of the ``)`` closing the ``(`` at *open_index*, or -1."""
    depth = 0
    quote: Optional[str] = None
    for i in range(open_index, len(text)):
        c = text[i]
        if quote:
            if c == quote:
                quote = None
            continue
        if c in "\"'":
            quote = c
        elif c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _params_after(line: Line, start: int) -> Tuple[Tuple[Parameter, ...], str]:
    """Parameters of the ``(...)`` at or after *start*, plus the text after ``)``."""
    open_index = line.masked.find("(", start)
    if open_index < 0:
        return (), line.code[start:]
    close = _matching_paren(line.masked, open_index)
    if close < 0:
        return parse_params(line.code[open_index + 1:], open_index + 1), ""
    params = parse_params(line.code[open_index + 1:close], open_index + 1)
    return params, line.code[close + 1:]


def _return_text(tail: str) -> Optional[str]:
    m = _RETURN_RE.match(tail)
    if m is None:
        return None
    text = m.group(1).strip()
    if text.endswith(" end") or text == "end":
        return None
    return text or None


class DeclarationCollector:
    """Single forward pass producing a :class:`DeclarationTable`."""

    def __init__(self, document: Document, tree: ScopeTree):
        self.document = document
        self.tree = tree
        self.table = DeclarationTable()

    def collect(self) -> DeclarationTable:
        for line in self.document:
            if line.is_blank:
                continue
            self._collect_line(line)
        return self.table

    # ── helpers ─────────────────────────────────────────────────────────

    def _frame_id(self, line: int) -> int:
        frame = self.tree.frame_at(line)
        return frame.id if frame is not None else 0

    def _body_id(self, line: int) -> Optional[int]:
        frame = self.tree.opened_at(line)
        if frame is not None:
            return frame.id
        inline = self.tree.frame_at(line)
        if inline is not None and inline.inline and inline.start_line == line:
            return inline.id
        return None

    def _owner(self, line: int) -> Optional[str]:
        frame: Optional[Frame] = self.tree.frame_at(line)
        if frame is not None and frame.inline:
            frame = frame.parent
        if frame is not None and frame.kind in (FrameKind.CLASS_LIKE, FrameKind.INTERFACE):
            return frame.name
        return None

    # ── per-line dispatch ───────────────────────────────────────────────

    def _collect_line(self, line: Line) -> None:
        text = line.masked
        if _IMPORT_RE.match(text):
            self._collect_import(line)
            return
        m = _CLASS_RE.match(text)
        if m:
            self._collect_class(line, m)
            return
        m = _FUNCTION_RE.match(text)
        if m:
            self._collect_function(line, m)
            return
        m = _VARIABLE_RE.match(text)
        if m:
            self._collect_variable(line, m)
            return
        m = _FOR_RE.match(text)
        if m:
            self._collect_for(line, m)
            return
        m = _CATCH_RE.match(text)
        if m:
            self._collect_catch(line, m)
            return
        m = _CONSTRUCTOR_RE.match(text)
        if m and line.masked.rstrip().endswith(":"):
            self._collect_constructor(line, m)
            return
        self._collect_member_line(line)

    def _collect_import(self, line: Line) -> None:
        m = _IMPORT_RE.match(line.masked)
        assert m is not None
        symbols = []
        for offset, piece in split_top_level(line.code[m.start(2):m.end(2)]):
            name = piece.strip().split(" as ")[-1].strip()
            if not name.isidentifier():
                continue
            column = m.start(2) + offset + (len(piece) - len(piece.lstrip()))
            symbols.append(ImportedSymbol(name, m.group(1), line.index, column))
        self.table.imports.append(ImportStatement(m.group(1), line.index, tuple(symbols)))

    def _collect_class(self, line: Line, m: re.Match) -> None:
        keyword, name = m.group(1), m.group(2)
        tail = line.code[m.end():]
        type_params: Tuple[str, ...] = ()
        generics = re.match(r"<([^<>]*)>", tail)
        rest = tail
        if generics:
            type_params = tuple(p.strip() for p in generics.group(1).split(",") if p.strip())
            rest = tail[generics.end():]
        params: Tuple[Parameter, ...] = ()
        if keyword == "record":
            params, _ = _params_after(line, m.end())
        parent = re.match(r"\s*<\s*([A-Za-z_]\w*)", rest)
        implements = re.search(r"\bimplements\s+([^:]+)", rest)
        decl = Declaration(
            name=name,
            kind=DeclKind.CLASS,
            keyword=keyword,
            line=line.index,
            column=m.start(2),
            frame_id=self._frame_id(line.index),
            params=params,
            parent=parent.group(1) if parent else None,
            implements=tuple(i.strip() for i in implements.group(1).split(",") if i.strip())
            if implements else (),
            type_params=type_params,
            body_frame_id=self._body_id(line.index),
            owner=self._owner(line.index),
        )
        self.table.add(decl)
        if keyword == "record" and decl.body_frame_id is not None:
            for p in params:
                self.table.add(Declaration(
                    name=p.name, kind=DeclKind.VARIABLE, keyword="component",
                    line=line.index, column=p.column, frame_id=decl.body_frame_id,
                    declared_type=p.type if p.annotated else None,
                    type_text=p.type_text, owner=name,
                ))

    def _collect_function(self, line: Line, m: re.Match) -> None:
        params, tail = _params_after(line, m.end())
        body = self._body_id(line.index)
        decl = Declaration(
            name=m.group(1),
            kind=DeclKind.FUNCTION,
            keyword="def",
            line=line.index,
            column=m.start(1),
            frame_id=self._frame_id(line.index),
            params=params,
            return_text=_return_text(tail),
            body_frame_id=body,
            owner=self._owner(line.index),
        )
        self.table.add(decl)
        self._collect_params(line, params, body)

    def _collect_constructor(self, line: Line, m: re.Match) -> None:
        params, _ = _params_after(line, m.end(1))
        body = self._body_id(line.index)
        self.table.add(Declaration(
            name=m.group(1),
            kind=DeclKind.FUNCTION,
            keyword="constructor",
            line=line.index,
            column=m.start(1),
            frame_id=self._frame_id(line.index),
            params=params,
            body_frame_id=body,
            owner=self._owner(line.index),
        ))
        self._collect_params(line, params, body)

    def _collect_params(self, line: Line, params: Tuple[Parameter, ...],
                        body: Optional[int]) -> None:
        if body is None:
            return
        for p in params:
            self.table.add(Declaration(
                name=p.name,
                kind=DeclKind.VARIABLE,
                keyword="param",
                line=line.index,
                column=p.column,
                frame_id=body,
                declared_type=p.type if p.annotated else None,
                type_text=p.type_text,
            ))

    def _collect_variable(self, line: Line, m: re.Match) -> None:
        declarators = m.group(1).split()
        name = m.group(2)
        if len(declarators) > 1:
            self.table.diagnostics.append(Diagnostic(
                range=Range(line.index, m.start(1), m.end(1) - 1),
                message=f"Cannot use multiple declarators ({' '.join(declarators)}). "
                        f"Use only one.",
                severity=Severity.ERROR,
                code="PF-E003",
                rule="multiple-declarators",
            ))
            return
        type_text = line.code[m.start(3):m.end(3)].strip() if m.group(3) else None
        initializer = line.code[m.start(4):m.end(4)].strip() if m.group(4) is not None else None
        self.table.add(Declaration(
            name=name,
            kind=DeclKind.VARIABLE,
            keyword=declarators[0],
            line=line.index,
            column=m.start(2),
            frame_id=self._frame_id(line.index),
            mutability=Mutability(declarators[0]),
            declared_type=parse_type(type_text) if type_text else None,
            type_text=type_text,
            initializer=initializer or None,
            owner=self._owner(line.index),
        ))

    def _collect_for(self, line: Line, m: re.Match) -> None:
        body = self._body_id(line.index)
        if body is None:
            return
        iterable = line.code[m.start(3):m.end(3)].strip()
        for group in (1, 2):
            if m.group(group) is None:
                continue
            self.table.add(Declaration(
                name=m.group(group),
                kind=DeclKind.VARIABLE,
                keyword="for",
                line=line.index,
                column=m.start(group),
                frame_id=body,
                initializer=iterable if group == 1 else None,
            ))

    def _collect_catch(self, line: Line, m: re.Match) -> None:
        frame = self.tree.frame_at(line.index)
        catch_frame = None
        if frame is not None:
            catch_frame = next((f for f in frame.children if f.start_line == line.index), None)
        if catch_frame is None:
            return
        type_text = m.group(2)
        self.table.add(Declaration(
            name=m.group(1),
            kind=DeclKind.VARIABLE,
            keyword="catch",
            line=line.index,
            column=m.start(1),
            frame_id=catch_frame.id,
            declared_type=parse_type(type_text) if type_text else None,
            type_text=type_text,
        ))

    def _collect_member_line(self, line: Line) -> None:
        """Enum values and interface method signatures."""
        frame = self.tree.frame_at(line.index)
        if frame is None or frame.name is None:
            return
        if frame.kind is FrameKind.CLASS_LIKE and frame.keyword == "enum":
            m = _ENUM_VALUE_RE.match(line.masked)
            if m:
                self.table.add(Declaration(
                    name=m.group(1),
                    kind=DeclKind.VARIABLE,
                    keyword="enum_value",
                    line=line.index,
                    column=m.start(1),
                    frame_id=frame.id,
                    owner=frame.name,
                ))
        elif frame.kind is FrameKind.INTERFACE:
            m = _SIGNATURE_RE.match(line.masked)
            if m:
                params, tail = _params_after(line, m.end(1))
                self.table.add(Declaration(
                    name=m.group(1),
                    kind=DeclKind.FUNCTION,
                    keyword="signature",
                    line=line.index,
                    column=m.start(1),
                    frame_id=frame.id,
                    params=params,
                    return_text=_return_text(tail),
                    owner=frame.name,
                ))


def collect_declarations(document: Document, tree: ScopeTree) -> DeclarationTable:
    return DeclarationCollector(document, tree).collect()


__all__ = ["DeclKind", "Mutability", "Declaration", "ImportedSymbol",
           "ImportStatement", "DeclarationTable", "DeclarationCollector",
           "collect_declarations"]
