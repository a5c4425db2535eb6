# polyloft_analyzer/grammar.py
"""
PEG grammar for Polyloft type annotations and parameter declarations.

Type annotations appear after ``:`` in variable and parameter
declarations and after ``->`` in function headers::

    Int
    Array<Int>            Array[Int]
    Map<String, List<Int>>
    Int | String
    User?

A parameter is ``[...]name[?][: Type][= default]``.

Parsing uses parsimonious; a :class:`TypeBuilder` visitor turns the parse
tree into :mod:`polyloft_analyzer.types` values.  Text that does not parse
is treated as ``Any`` rather than reported, since annotations are read
from source that is often mid-edit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from polyloft_analyzer.types import ANY, Nominal, TLType, unify

logger = logging.getLogger(__name__)


TYPE_GRAMMAR = Grammar(r'''
    type_expr      = union_type
    union_type     = single_type (_ "|" _ single_type)*
    single_type    = base_type nullable?
    nullable       = "?"
    base_type      = identifier (_ type_args)?
    type_args      = angle_args / square_args
    angle_args     = "<" _ type_list _ ">"
    square_args    = "[" _ type_list _ "]"
    type_list      = type_expr (_ "," _ type_expr)*

    param          = variadic? identifier optional? _ annotation? _ default?
    variadic       = "..."
    optional       = "?"
    annotation     = ":" _ type_expr
    default        = "=" _ ~r".*"s

    identifier     = ~r"[A-Za-z_][A-Za-z0-9_]*"
    _              = ~r"[ \t]*"
''')


@dataclass(frozen=True, slots=True)
class Parameter:
    """One declared parameter of a function, constructor or record."""
    name: str
    type_text: Optional[str] = None
    type: TLType = ANY
    variadic: bool = False
    optional: bool = False
    default: Optional[str] = None
    column: int = -1

    @property
    def annotated(self) -> bool:
        return self.type_text is not None

    def __str__(self) -> str:
        prefix = "..." if self.variadic else ""
        suffix = "?" if self.optional else ""
        rendered = f"{prefix}{self.name}{suffix}"
        if self.type_text:
            rendered += f": {self.type_text}"
        return rendered


class TypeBuilder(NodeVisitor):
    """Build TLType values and Parameters from a parse tree."""

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_identifier(self, node, visited_children):
        return node.text

    def visit_type_expr(self, node, visited_children):
        return visited_children[0]

    def visit_union_type(self, node, visited_children):
        first, rest = visited_children
        members = [first]
        if isinstance(rest, list):
            members.extend(item[3] for item in rest)
        return unify(members)

    def visit_single_type(self, node, visited_children):
        return visited_children[0]

    def visit_base_type(self, node, visited_children):
        name, maybe_args = visited_children
        args: Tuple[TLType, ...] = ()
        if isinstance(maybe_args, list):
            args = tuple(maybe_args[0][1])
        if name == "Any":
            return ANY
        return Nominal(name, args)

    def visit_type_args(self, node, visited_children):
        return visited_children[0]

    def visit_angle_args(self, node, visited_children):
        return visited_children[2]

    def visit_square_args(self, node, visited_children):
        return visited_children[2]

    def visit_type_list(self, node, visited_children):
        first, rest = visited_children
        types: List[TLType] = [first]
        if isinstance(rest, list):
            types.extend(item[3] for item in rest)
        return types

    def visit_annotation(self, node, visited_children):
        return node.children[2].text.strip(), visited_children[2]

    def visit_default(self, node, visited_children):
        return node.children[2].text.strip()

    def visit_param(self, node, visited_children):
        variadic, name, optional, _, annotation, _, default = visited_children
        type_text, declared = None, ANY
        if isinstance(annotation, list):
            type_text, declared = annotation[0]
        return Parameter(
            name=name,
            type_text=type_text,
            type=declared,
            variadic=bool(node.children[0].text),
            optional=bool(node.children[2].text),
            default=default[0] if isinstance(default, list) else None,
        )


@lru_cache(maxsize=1024)
def parse_type(text: str) -> TLType:
    """Parse a type annotation; anything unparseable is ``Any``."""
    text = text.strip()
    if not text:
        return ANY
    try:
        tree = TYPE_GRAMMAR["type_expr"].parse(text)
        return TypeBuilder().visit(tree)
    except (ParseError, VisitationError) as exc:
        logger.debug("unparseable type %r: %s", text, exc)
        return ANY


def split_top_level(text: str, sep: str = ",") -> List[Tuple[int, str]]:
    """
    Split *text* on *sep* outside brackets and string literals.

    Returns ``(offset, piece)`` pairs so callers can map pieces back to
    columns.  Angle brackets only nest when they follow an identifier
    character, which keeps ``a < b`` in default values intact.
    """
    pieces: List[Tuple[int, str]] = []
    depth = 0
    angle = 0
    quote: Optional[str] = None
    start = 0
    i = 0
    while i < len(text):
        c = text[i]
        if quote:
            if c == "\\":
                i += 2
                continue
            if c == quote:
                quote = None
        elif c in "\"'":
            quote = c
        elif c in "([{":
            depth += 1
        elif c in ")]}":
            depth = max(depth - 1, 0)
        elif c == "<" and i > 0 and (text[i - 1].isalnum() or text[i - 1] == "_"):
            angle += 1
        elif c == ">" and angle:
            angle -= 1
        elif c == sep and depth == 0 and angle == 0:
            pieces.append((start, text[start:i]))
            start = i + 1
        i += 1
    pieces.append((start, text[start:]))
    return pieces


def parse_param(text: str) -> Optional[Parameter]:
    """Parse one parameter; ``None`` when no name can be recovered."""
    stripped = text.strip()
    if not stripped:
        return None
    try:
        tree = TYPE_GRAMMAR["param"].parse(stripped)
        return TypeBuilder().visit(tree)
    except (ParseError, VisitationError) as exc:
        logger.debug("unparseable parameter %r: %s", stripped, exc)
    name = stripped.lstrip(".").split(":")[0].split("=")[0].strip().rstrip("?")
    if not name.isidentifier():
        return None
    return Parameter(name=name, variadic=stripped.startswith("..."))


def parse_params(text: str, base_column: int = 0) -> Tuple[Parameter, ...]:
    """
    Parse a comma-separated parameter list (the text between parentheses).

    *base_column* is the column of the first character of *text*, used to
    give each parameter the column of its name.
    """
    params: List[Parameter] = []
    for offset, piece in split_top_level(text):
        param = parse_param(piece)
        if param is None:
            continue
        lead = len(piece) - len(piece.lstrip())
        column = base_column + offset + lead + (3 if param.variadic else 0)
        params.append(Parameter(
            name=param.name,
            type_text=param.type_text,
            type=param.type,
            variadic=param.variadic,
            optional=param.optional,
            default=param.default,
            column=column,
        ))
    return tuple(params)


def format_params(params: Tuple[Parameter, ...]) -> str:
    return ", ".join(str(p) for p in params)


__all__ = ["TYPE_GRAMMAR", "Parameter", "TypeBuilder", "parse_type",
           "parse_param", "parse_params", "split_top_level", "format_params"]
