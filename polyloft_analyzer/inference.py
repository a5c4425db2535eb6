# polyloft_analyzer/inference.py
"""
Type inference engine.

Maps expression text to a :class:`~polyloft_analyzer.types.TLType`.  The
expression is re-tokenized with the Polyloft lexer and classified by the
first matching rule:

=====================================  ==================================
Form                                   Result
=====================================  ==================================
``"text"``                             ``String``
``42`` / ``3.14``                      ``Int`` / ``Float``
``true`` / ``false``                   ``Bool``
``nil`` / ``null``                     ``Any``
``[a, b, c]``                          ``Array<T>`` when every element has
                                       the same single type, else
                                       ``Array<Any>``
``{k: v}``                             ``Map``
``Name(...)`` / ``Name<T>(...)``       ``Name`` (constructor call)
``name(...)``                          declared or inferred return type
``recv.method(...)`` / ``recv.field``  resolved against the receiver type
``xs[i]``                              element type
comparison / logical                   ``Bool``
``a...b``                              ``Range``
arithmetic                             ``Float``, ``Int`` or ``String``
anything else                          ``Any``
=====================================  ==================================

Function return types come from the union of every ``return`` whose
nearest enclosing function frame is the function itself, so returns in
nested lambdas or inner functions never leak out.

No method here raises on odd input; failure is ``Any``.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from polyloft_analyzer.catalog import Catalog
from polyloft_analyzer.declarations import Declaration, DeclarationTable, DeclKind
from polyloft_analyzer.document import Document
from polyloft_analyzer.grammar import parse_type
from polyloft_analyzer.lexer import Token, TokenKind, code_tokens, tokenize_line
from polyloft_analyzer.scopes import FrameKind, ScopeTree
from polyloft_analyzer.types import (
    ANY,
    BOOL,
    FLOAT,
    INT,
    MAP,
    RANGE,
    STRING,
    VOID,
    AnyType,
    Nominal,
    TLType,
    Union,
    array_of,
    element_type,
    is_floating,
    iteration_type,
    unify,
)

logger = logging.getLogger(__name__)

_OPEN = {"(": ")", "[": "]", "{": "}"}
_CLOSE = frozenset(_OPEN.values())
_LOGICAL = frozenset({"&&", "||"})
_COMPARISON = frozenset({"==", "!=", "<", ">", "<=", ">="})
_ARITHMETIC = frozenset({"+", "-", "*", "/", "%"})
_RANGE_OPS = frozenset({"...", ".."})
_ENUM_STATICS = {
    "values": "array",
    "valueOf": "enum",
    "size": "Int",
    "names": "names",
}


def split_top(tokens: Sequence[Token], ops: frozenset) -> List[Tuple[int, Token]]:
    """Positions of operator tokens in *ops* outside any bracket pair."""
    found: List[Tuple[int, Token]] = []
    depth = 0
    for i, tok in enumerate(tokens):
        if tok.kind is TokenKind.PUNCT and tok.text in _OPEN:
            depth += 1
        elif tok.kind is TokenKind.PUNCT and tok.text in _CLOSE:
            depth = max(depth - 1, 0)
        elif depth == 0 and (tok.kind is TokenKind.OPERATOR or tok.is_keyword("instanceof")) \
                and tok.text in ops:
            found.append((i, tok))
    return found


def matching(tokens: Sequence[Token], start: int) -> int:
    """Index of the bracket closing ``tokens[start]``, or -1."""
    opener = tokens[start].text
    closer = _OPEN.get(opener)
    if closer is None:
        return -1
    depth = 0
    for i in range(start, len(tokens)):
        tok = tokens[i]
        if tok.kind is not TokenKind.PUNCT:
            continue
        if tok.text == opener:
            depth += 1
        elif tok.text == closer:
            depth -= 1
            if depth == 0:
                return i
    return -1


def split_commas(tokens: Sequence[Token]) -> List[List[Token]]:
    parts: List[List[Token]] = [[]]
    depth = 0
    for tok in tokens:
        if tok.kind is TokenKind.PUNCT and tok.text in _OPEN:
            depth += 1
        elif tok.kind is TokenKind.PUNCT and tok.text in _CLOSE:
            depth = max(depth - 1, 0)
        if depth == 0 and tok.is_op(","):
            parts.append([])
        else:
            parts[-1].append(tok)
    return [p for p in parts if p]


def _generic_close(tokens: Sequence[Token], start: int) -> int:
    """Index of the ``>`` closing a generic argument list at *start*."""
    depth = 0
    for i in range(start, len(tokens)):
        tok = tokens[i]
        if tok.is_op("<"):
            depth += 1
        elif tok.is_op(">"):
            depth -= 1
            if depth == 0:
                return i
        elif not (tok.kind is TokenKind.IDENTIFIER or tok.is_op(",", "[", "]", "|", "?")):
            return -1
    return -1


class TypeInferencer:
    """
    Infers types for one analysed document.

    Results for declarations are memoised for the lifetime of the
    inferencer, which lives exactly as long as one analysis.
    """

    def __init__(self, document: Document, tree: ScopeTree,
                 table: DeclarationTable, catalog: Catalog):
        self.document = document
        self.tree = tree
        self.table = table
        self.catalog = catalog
        self._decl_cache: Dict[Tuple[str, int, int], TLType] = {}
        self._return_cache: Dict[Tuple[str, int, int], TLType] = {}
        self._in_progress: Set[Tuple[str, int, int]] = set()

    # ── public contract ─────────────────────────────────────────────────

    def infer(self, expr: str, line: int = 0) -> TLType:
        """Type of expression text *expr* as seen from *line*."""
        tokens, _ = tokenize_line(expr, line)
        return self.infer_tokens(code_tokens(tokens), line)

    def infer_return_type(self, decl: Declaration) -> TLType:
        """Union of the function's own ``return`` expressions; Void if none."""
        frame = self.tree.frame_by_id(decl.body_frame_id)
        if frame is None or frame.kind is not FrameKind.FUNCTION:
            return ANY
        key = (decl.name, decl.line, decl.column)
        if key in self._return_cache:
            return self._return_cache[key]
        if key in self._in_progress:
            return ANY
        self._in_progress.add(key)
        try:
            types: List[TLType] = []
            last = frame.end_line if frame.end_line is not None else len(self.document) - 1
            for index in range(frame.start_line, last + 1):
                line = self.document[index]
                tokens = list(line.code_tokens)
                for pos, tok in enumerate(tokens):
                    if not tok.is_keyword("return"):
                        continue
                    if self.tree.function_at(index) is not frame:
                        continue
                    expr = _trim_statement(tokens[pos + 1:])
                    types.append(self.infer_tokens(expr, index) if expr else VOID)
            result = unify(types)
        finally:
            self._in_progress.discard(key)
        self._return_cache[key] = result
        return result

    def infer_method_return_type(self, receiver: TLType, method: str) -> TLType:
        """Type of ``receiver.method(...)`` or ``receiver.method``."""
        if isinstance(receiver, AnyType):
            return ANY
        if isinstance(receiver, Union):
            return unify(self.infer_method_return_type(m, method) for m in receiver.members)
        assert isinstance(receiver, Nominal)
        found = self.catalog.method_return_type(receiver, method)
        if found is not None:
            return found
        member = self.class_member_type(receiver.name, method)
        if member is not None:
            return member
        if method == "toString":
            return STRING
        return ANY

    # ── declarations ────────────────────────────────────────────────────

    def declaration_type(self, decl: Declaration) -> TLType:
        """Declared type when annotated, otherwise inferred."""
        if decl.declared_type is not None:
            return decl.declared_type
        if decl.kind is DeclKind.CLASS:
            return Nominal(decl.name)
        if decl.kind is DeclKind.FUNCTION:
            return self.function_return_type(decl)
        key = (decl.name, decl.line, decl.column)
        if key in self._decl_cache:
            return self._decl_cache[key]
        if key in self._in_progress:
            return ANY
        self._in_progress.add(key)
        try:
            result = self._variable_type(decl)
        finally:
            self._in_progress.discard(key)
        self._decl_cache[key] = result
        return result

    def _variable_type(self, decl: Declaration) -> TLType:
        if decl.keyword == "enum_value" and decl.owner:
            return Nominal(decl.owner)
        if decl.keyword == "for":
            if decl.initializer is None:
                return ANY
            return iteration_type(self.infer(decl.initializer, decl.line))
        if decl.initializer:
            return self.infer(decl.initializer, decl.line)
        return ANY

    def function_return_type(self, decl: Declaration) -> TLType:
        if decl.keyword == "constructor":
            return Nominal(decl.name)
        if decl.return_text:
            return parse_type(decl.return_text)
        if decl.keyword == "signature":
            return ANY
        return self.infer_return_type(decl)

    def variable_type(self, name: str, line: int) -> TLType:
        decl = self.table.visible(name, line, self.tree)
        if decl is None:
            return ANY
        return self.declaration_type(decl)

    def class_member_type(self, class_name: str, member: str,
                          _seen: Optional[Set[str]] = None) -> Optional[TLType]:
        """Type of a field or method of a user class-like, following parents."""
        owner = self.table.class_like(class_name)
        if owner is None:
            return None
        found = self.table.member(class_name, member)
        if found is not None and found.keyword != "enum_value":
            return self.declaration_type(found)
        if owner.keyword == "enum":
            if member == "name":
                return STRING
            if member == "ordinal":
                return INT
        seen = _seen or set()
        seen.add(class_name)
        if owner.parent and owner.parent not in seen:
            return self.class_member_type(owner.parent, member, seen)
        return None

    def enclosing_class_type(self, line: int) -> TLType:
        frame = self.tree.frame_at(line)
        if frame is None:
            return ANY
        for f in frame.ancestors():
            if f.kind is FrameKind.CLASS_LIKE and f.name:
                return Nominal(f.name)
        return ANY

    # ── expressions ─────────────────────────────────────────────────────

    def infer_tokens(self, tokens: Sequence[Token], line: int) -> TLType:
        tokens = list(tokens)
        while tokens and tokens[0].is_op("(") and matching(tokens, 0) == len(tokens) - 1:
            tokens = tokens[1:-1]
        if not tokens:
            return ANY
        if any(t.is_op("=>") for t in tokens):
            return ANY

        # a single postfix chain has no top-level operator, so trying it
        # first only matters for generic constructors like Array<Int>()
        result = self._infer_postfix(tokens, line)
        if result is not None:
            return result
        if split_top(tokens, _LOGICAL | _COMPARISON | frozenset({"instanceof"})):
            return BOOL
        if tokens[0].is_op("!"):
            return BOOL
        if split_top(tokens, _RANGE_OPS):
            return RANGE
        arithmetic = split_top(tokens, _ARITHMETIC)
        if arithmetic:
            return self._infer_arithmetic(tokens, arithmetic, line)
        return ANY

    def _infer_arithmetic(self, tokens: List[Token], ops: List[Tuple[int, Token]],
                          line: int) -> TLType:
        operands: List[List[Token]] = []
        prev = 0
        for index, _ in ops:
            operands.append(tokens[prev:index])
            prev = index + 1
        operands.append(tokens[prev:])
        operands = [o for o in operands if o]
        if not operands:
            return ANY

        if any(len(o) == 1 and o[0].kind is TokenKind.FLOAT for o in operands):
            return FLOAT
        if all(t.kind is TokenKind.INT or t.kind is TokenKind.OPERATOR or t.is_op("(", ")")
               for t in tokens):
            return INT

        types = [self.infer_tokens(o, line) for o in operands]
        if any(is_floating(t) for t in types):
            return FLOAT
        has_plus = any(tok.text == "+" for _, tok in ops)
        if has_plus and any(t == STRING for t in types):
            return STRING
        if all(t == INT for t in types):
            return INT
        return ANY

    def _infer_postfix(self, tokens: List[Token], line: int) -> Optional[TLType]:
        """Primary expression followed by ``.member``, ``(args)`` or ``[i]``."""
        result = self._primary(tokens, line)
        if result is None:
            return None
        current, pos = result
        while pos < len(tokens):
            tok = tokens[pos]
            if tok.is_op(".") and pos + 1 < len(tokens) and tokens[pos + 1].kind in (
                    TokenKind.IDENTIFIER, TokenKind.KEYWORD):
                name = tokens[pos + 1].text
                pos += 2
                if pos < len(tokens) and tokens[pos].is_op("("):
                    close = matching(tokens, pos)
                    if close < 0:
                        return None
                    pos = close + 1
                current = self.infer_method_return_type(current, name)
            elif tok.is_op("["):
                close = matching(tokens, pos)
                if close < 0:
                    return None
                current = element_type(current)
                pos = close + 1
            elif tok.is_op("("):
                close = matching(tokens, pos)
                if close < 0:
                    return None
                current = ANY
                pos = close + 1
            else:
                return None
        return current

    def _primary(self, tokens: List[Token], line: int) -> Optional[Tuple[TLType, int]]:
        first = tokens[0]
        kind = first.kind
        if kind is TokenKind.STRING:
            return STRING, 1
        if kind is TokenKind.INT:
            return INT, 1
        if kind is TokenKind.FLOAT:
            return FLOAT, 1
        if first.is_keyword("true", "false"):
            return BOOL, 1
        if first.is_keyword("nil", "null"):
            return ANY, 1
        if first.is_op("-") and len(tokens) > 1:
            inner = self._infer_postfix(tokens[1:], line)
            return (inner, len(tokens)) if inner is not None else None
        if first.is_op("["):
            close = matching(tokens, 0)
            if close < 0:
                return None
            return self._infer_array(tokens[1:close], line), close + 1
        if first.is_op("{"):
            close = matching(tokens, 0)
            if close < 0:
                return None
            return MAP, close + 1
        if first.is_op("("):
            close = matching(tokens, 0)
            if close < 0:
                return None
            return self.infer_tokens(tokens[1:close], line), close + 1
        if first.is_keyword("this"):
            return self.enclosing_class_type(line), 1
        if kind is TokenKind.IDENTIFIER:
            return self._identifier(tokens, line)
        return None

    def _infer_array(self, inner: List[Token], line: int) -> TLType:
        elements = split_commas(inner)
        if not elements:
            return array_of(ANY)
        types = {self.infer_tokens(e, line) for e in elements}
        if len(types) == 1:
            only = next(iter(types))
            if isinstance(only, Nominal):
                return array_of(only)
        return array_of(ANY)

    def _identifier(self, tokens: List[Token], line: int) -> Optional[Tuple[TLType, int]]:
        name = tokens[0].text
        nxt = tokens[1] if len(tokens) > 1 else None

        if name[:1].isupper() and nxt is not None and nxt.is_op("<"):
            close = _generic_close(tokens, 1)
            if close > 0 and close + 1 < len(tokens) and tokens[close + 1].is_op("("):
                end = matching(tokens, close + 1)
                if end > 0:
                    text = "".join(t.text if t.text != "," else ", " for t in tokens[:close + 1])
                    return parse_type(text), end + 1

        if nxt is not None and nxt.is_op("("):
            end = matching(tokens, 1)
            if end < 0:
                return None
            if name[:1].isupper():
                return Nominal(name), end + 1
            return self._call_type(name, line), end + 1

        if nxt is not None and nxt.is_op(".") and len(tokens) > 2:
            static = self._static_access(name, tokens, line)
            if static is not None:
                return static

        decl = self.table.visible(name, line, self.tree)
        if decl is not None:
            return self.declaration_type(decl), 1
        klass = self.table.class_like(name)
        if klass is not None:
            return Nominal(name), 1
        return ANY, 1

    def _call_type(self, name: str, line: int) -> TLType:
        decl = self.table.visible(name, line, self.tree)
        if decl is None:
            candidate = self.table.lookup(name)
            decl = candidate if candidate is not None and candidate.kind is DeclKind.FUNCTION else None
        if decl is not None and decl.kind is DeclKind.FUNCTION:
            return self.function_return_type(decl)
        builtin = self.catalog.globals.get(name)
        if builtin is not None:
            return builtin.return_type
        return ANY

    def _static_access(self, name: str, tokens: List[Token],
                       line: int) -> Optional[Tuple[TLType, int]]:
        """``Pkg.member`` and ``Enum.VALUE`` / ``Enum.values()`` forms."""
        if self.table.visible(name, line, self.tree) is not None and \
                self.table.class_like(name) is None:
            return None
        member = tokens[2].text
        pos = 3
        if pos < len(tokens) and tokens[pos].is_op("("):
            close = matching(tokens, pos)
            if close < 0:
                return None
            pos = close + 1

        package = self.catalog.packages.get(name)
        if package is not None:
            fn = package.functions.get(member)
            if fn is not None:
                return fn.return_type, pos
            const = package.constants.get(member)
            if const is not None:
                return parse_type(const.type), pos
            return ANY, pos

        klass = self.table.class_like(name)
        if klass is None:
            return None
        if klass.keyword == "enum":
            if any(v.name == member for v in self.table.enum_values(name)):
                return Nominal(name), pos
            static = _ENUM_STATICS.get(member)
            if static == "array":
                return array_of(Nominal(name)), pos
            if static == "enum":
                return Nominal(name), pos
            if static == "names":
                return array_of(STRING), pos
            if static == "Int":
                return INT, pos
        found = self.class_member_type(name, member)
        return (found if found is not None else ANY), pos


def _balanced(tokens: Sequence[Token]) -> bool:
    depth = 0
    for tok in tokens:
        if tok.is_op("(", "[", "{"):
            depth += 1
        elif tok.is_op(")", "]", "}"):
            depth -= 1
    return depth == 0


def _trim_statement(tokens: Sequence[Token]) -> List[Token]:
    """Drop a trailing one-line `end`, `;` or an unbalanced `)`."""
    expr = list(tokens)
    while expr:
        last = expr[-1]
        if last.is_keyword("end") or last.is_op(";"):
            expr.pop()
        elif last.is_op(")") and not _balanced(expr):
            expr.pop()
        else:
            break
    return expr


__all__ = ["TypeInferencer", "split_top", "split_commas", "matching"]
