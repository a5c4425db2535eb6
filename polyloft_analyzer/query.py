# polyloft_analyzer/query.py
"""
Hover, go-to-definition and completion.

Every query works on a :class:`~polyloft_analyzer.analysis.DocumentAnalysis`
and a zero-based :class:`~polyloft_analyzer.document.Position`.  The word
under the position is classified as a *member word* when the nearest code
token before it is ``.``; the tokens before that dot form the receiver
expression, whose type is inferred like any other expression.

Hover resolution order
──────────────────────
1. keyword documentation
2. built-in catalog: ``Pkg.member`` or, without a dot, a global function
3. member words: the receiver type's catalog methods, then the user
   class-like body (fields, methods, record components, enum values)
4. other words: user functions and class-likes in this document, then in
   imported modules through the resolver
5. variables visible at the position

User declarations carry the comment block written directly above them as
documentation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from polyloft_analyzer.analysis import DocumentAnalysis
from polyloft_analyzer.declarations import Declaration, DeclKind
from polyloft_analyzer.document import Document, Position
from polyloft_analyzer.grammar import format_params
from polyloft_analyzer.lexer import Token, TokenKind
from polyloft_analyzer.resolver import ModuleResolver, NullResolver, safe_fetch
from polyloft_analyzer.types import Nominal, TLType, Union

logger = logging.getLogger(__name__)

_ENUM_STATICS = (
    ("values", "values() -> Array<{0}>"),
    ("valueOf", "valueOf(name: String) -> {0}"),
    ("size", "size() -> Int"),
    ("names", "names() -> Array<String>"),
)
_ENUM_FIELDS = (("name", "name: String"), ("ordinal", "ordinal: Int"))
_TO_STRING = "toString() -> String"


@dataclass(frozen=True, slots=True)
class Location:
    uri: Optional[str]
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class QueryResult:
    signature: str
    documentation: Optional[str] = None
    location: Optional[Location] = None


class CompletionKind(Enum):
    KEYWORD = "keyword"
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    ENUM_MEMBER = "enum_member"
    FUNCTION = "function"
    METHOD = "method"
    FIELD = "field"
    VARIABLE = "variable"
    CONSTANT = "constant"
    MODULE = "module"


@dataclass(frozen=True, slots=True)
class CompletionItem:
    label: str
    kind: CompletionKind
    detail: str = ""
    documentation: Optional[str] = None


# ── receiver extraction ─────────────────────────────────────────────────

def _receiver_tokens(tokens: Sequence[Token], dot: int) -> List[Token]:
    """Postfix chain ending just before ``tokens[dot]``."""
    i = dot - 1
    while i >= 0:
        tok = tokens[i]
        if tok.is_op(")", "]"):
            depth = 0
            while i >= 0:
                if tokens[i].is_op(")", "]"):
                    depth += 1
                elif tokens[i].is_op("(", "["):
                    depth -= 1
                    if depth == 0:
                        break
                i -= 1
            if i < 0:
                return []
            i -= 1
            continue
        if tok.kind in (TokenKind.IDENTIFIER, TokenKind.STRING) or tok.is_keyword("this"):
            if i > 0 and tokens[i - 1].is_op("."):
                i -= 2
                continue
            i -= 1
            break
        break
    return list(tokens[i + 1:dot])


def _member_context(document: Document, line: int,
                    column: int) -> Optional[List[Token]]:
    """Receiver tokens when the word starting at *column* follows a dot."""
    row = document.line_at(line)
    if row is None:
        return None
    before = [t for t in row.code_tokens if t.column < column]
    if not before or not before[-1].is_op("."):
        return None
    receiver = _receiver_tokens(before, len(before) - 1)
    return receiver or None


# ── documentation ───────────────────────────────────────────────────────

def _clean_block_line(text: str) -> str:
    text = text.strip()
    for marker in ("/**", "/*"):
        if text.startswith(marker):
            text = text[len(marker):]
            break
    if text.endswith("*/"):
        text = text[:-2]
    text = text.strip()
    if text.startswith("*"):
        text = text[1:]
    return text.strip()


def preceding_comment(document: Document, line: int) -> Optional[str]:
    """
    Comment block directly above *line*.

    Blank lines and annotation lines between the comments and the
    declaration are skipped.  Collection stops at the first line that is
    neither a comment nor blank.
    """
    collected: List[str] = []
    index = line - 1
    while index >= 0:
        text = document[index].text.strip()
        if not text or (text.startswith("@") and not collected):
            index -= 1
            continue
        if text.startswith("//"):
            collected.append(text[2:].strip())
            index -= 1
            continue
        if text.endswith("*/"):
            block: List[str] = []
            while index >= 0:
                part = document[index].text
                block.append(_clean_block_line(part))
                index -= 1
                if "/*" in part:
                    break
            collected.extend(block)
            continue
        break
    parts = [p for p in reversed(collected) if p]
    return "\n".join(parts) if parts else None


# ── signatures ──────────────────────────────────────────────────────────

def declaration_signature(analysis: DocumentAnalysis, decl: Declaration) -> str:
    """Hover text for a user declaration."""
    inferencer = analysis.inferencer
    if decl.kind is DeclKind.CLASS:
        generic = f"<{', '.join(decl.type_params)}>" if decl.type_params else ""
        head = f"{decl.keyword} {decl.name}{generic}"
        if decl.keyword == "record":
            return f"{head}({format_params(decl.params)})"
        if decl.keyword == "enum":
            values = ", ".join(v.name for v in analysis.table.enum_values(decl.name))
            return f"{head} {{ {values} }}" if values else head
        if decl.parent:
            head += f" < {decl.parent}"
        if decl.implements:
            head += f" implements {', '.join(decl.implements)}"
        return head
    if decl.kind is DeclKind.FUNCTION:
        params = format_params(decl.params)
        if decl.keyword == "constructor":
            return f"{decl.name}({params})"
        ret = decl.return_text or str(inferencer.function_return_type(decl))
        if decl.keyword == "signature":
            return f"{decl.name}({params}) -> {ret}"
        return f"def {decl.name}({params}) -> {ret}"
    if decl.keyword == "enum_value":
        return f"{decl.owner}.{decl.name}"
    type_text = str(inferencer.declaration_type(decl))
    if decl.mutability is not None:
        return f"{decl.mutability.value} {decl.name}: {type_text}"
    return f"{decl.name}: {type_text}"


def _declaration_result(analysis: DocumentAnalysis, decl: Declaration) -> QueryResult:
    return QueryResult(
        signature=declaration_signature(analysis, decl),
        documentation=preceding_comment(analysis.document, decl.line),
        location=Location(analysis.document.uri, decl.line, decl.column),
    )


# ── lookups shared by the three queries ─────────────────────────────────

def _class_member(analysis: DocumentAnalysis, class_name: str,
                  name: str) -> Optional[Declaration]:
    table = analysis.table
    seen = set()
    current: Optional[str] = class_name
    while current and current not in seen:
        seen.add(current)
        found = table.member(current, name)
        if found is not None:
            return found
        owner = table.class_like(current)
        current = owner.parent if owner is not None else None
    return None


def _nominals(t: TLType) -> Iterable[Nominal]:
    if isinstance(t, Nominal):
        yield t
    elif isinstance(t, Union):
        yield from t.members


def _top_level(analysis: DocumentAnalysis, word: str,
               line: int) -> Optional[Declaration]:
    """Function or class-like named *word*, preferring the visible one."""
    table = analysis.table
    decl = table.visible(word, line, analysis.tree)
    if decl is not None and decl.kind is not DeclKind.VARIABLE:
        return decl
    klass = table.class_like(word)
    if klass is not None:
        return klass
    candidate = table.lookup(word)
    if candidate is not None and candidate.kind is DeclKind.FUNCTION and candidate.owner is None:
        return candidate
    return None


def _imported(analysis: DocumentAnalysis, word: str,
              resolver: ModuleResolver) -> Tuple[Optional[DocumentAnalysis],
                                                 Optional[Declaration], Optional[str]]:
    """``(module analysis, declaration, module uri)`` for an imported name."""
    symbol = analysis.table.imported(word)
    if symbol is None:
        return None, None, None
    source = safe_fetch(resolver, symbol.module)
    if source is None:
        return None, None, None
    module = DocumentAnalysis.from_text(source.text, analysis.catalog, source.uri)
    decl = module.table.class_like(word) or module.table.lookup(word)
    return module, decl, source.uri


def _receiver_is_package(analysis: DocumentAnalysis, receiver: List[Token],
                         line: int) -> Optional[str]:
    if len(receiver) != 1 or receiver[0].kind is not TokenKind.IDENTIFIER:
        return None
    name = receiver[0].text
    if name not in analysis.catalog.packages:
        return None
    if analysis.table.visible(name, line, analysis.tree) is not None:
        return None
    return name


# ═══════════════════════════════════════════════════════════════════════
#  Hover
# ═══════════════════════════════════════════════════════════════════════

def hover(analysis: DocumentAnalysis, position: Position, word: Optional[str] = None,
          resolver: Optional[ModuleResolver] = None) -> Optional[QueryResult]:
    """Signature and documentation for the word at *position*."""
    found = analysis.document.word_at(position)
    if found is None:
        return None
    at_word, start, _ = found
    word = word or at_word
    line = position.line
    catalog = analysis.catalog
    receiver = _member_context(analysis.document, line, start)

    if receiver is None:
        doc = catalog.keyword_doc(word)
        if doc is not None:
            return QueryResult(signature=word, documentation=doc)

    if receiver is not None:
        package = _receiver_is_package(analysis, receiver, line)
        if package is not None:
            member = catalog.package_member(package, word)
            if member is None:
                return None
            return QueryResult(signature=member.signature(), documentation=member.description or None)
        return _hover_member(analysis, receiver, word, line)

    builtin = catalog.globals.get(word)
    if builtin is not None and analysis.table.visible(word, line, analysis.tree) is None:
        return QueryResult(signature=builtin.signature(), documentation=builtin.description or None)

    decl = _top_level(analysis, word, line)
    if decl is not None:
        return _declaration_result(analysis, decl)

    module, imported, uri = _imported(analysis, word, resolver or NullResolver())
    if module is not None and imported is not None:
        result = _declaration_result(module, imported)
        return QueryResult(result.signature, result.documentation,
                           Location(uri, imported.line, imported.column))

    variable = analysis.table.visible(word, line, analysis.tree)
    if variable is not None:
        return _declaration_result(analysis, variable)

    if word in catalog.types or word in catalog.type_names:
        entry = catalog.types.get(word)
        return QueryResult(signature=word, documentation=entry.description if entry else None)
    return None


def _hover_member(analysis: DocumentAnalysis, receiver: List[Token], word: str,
                  line: int) -> Optional[QueryResult]:
    catalog, table = analysis.catalog, analysis.table
    receiver_type = analysis.inferencer.infer_tokens(receiver, line)
    for nominal in _nominals(receiver_type):
        signature = catalog.method_signature(nominal, word)
        if signature is not None:
            fn = catalog.method(nominal, word)
            return QueryResult(signature=signature, documentation=(fn.description or None) if fn else None)
        decl = _class_member(analysis, nominal.name, word)
        if decl is not None:
            return _declaration_result(analysis, decl)
        owner = table.class_like(nominal.name)
        if owner is not None and owner.keyword == "enum":
            for name, template in _ENUM_STATICS + _ENUM_FIELDS:
                if name == word:
                    return QueryResult(signature=f"{nominal.name}.{template.format(nominal.name)}")
    if word == "toString":
        return QueryResult(signature=_TO_STRING)
    return None


# ═══════════════════════════════════════════════════════════════════════
#  Definition
# ═══════════════════════════════════════════════════════════════════════

def definition(analysis: DocumentAnalysis, position: Position, word: Optional[str] = None,
               resolver: Optional[ModuleResolver] = None) -> Optional[Location]:
    """Where the word at *position* is declared."""
    found = analysis.document.word_at(position)
    if found is None:
        return None
    at_word, start, _ = found
    word = word or at_word
    line = position.line
    uri = analysis.document.uri

    receiver = _member_context(analysis.document, line, start)
    if receiver is not None:
        receiver_type = analysis.inferencer.infer_tokens(receiver, line)
        for nominal in _nominals(receiver_type):
            decl = _class_member(analysis, nominal.name, word)
            if decl is not None:
                return Location(uri, decl.line, decl.column)
        return None

    decl = analysis.table.visible(word, line, analysis.tree) or _top_level(analysis, word, line)
    if decl is not None:
        return Location(uri, decl.line, decl.column)

    symbol = analysis.table.imported(word)
    if symbol is None:
        return None
    module, imported, module_uri = _imported(analysis, word, resolver or NullResolver())
    if module is None:
        return None
    if imported is None:
        return Location(module_uri, 0, 0)
    return Location(module_uri, imported.line, imported.column)


# ═══════════════════════════════════════════════════════════════════════
#  Completion
# ═══════════════════════════════════════════════════════════════════════

def _declaration_item(analysis: DocumentAnalysis, decl: Declaration) -> CompletionItem:
    documentation = preceding_comment(analysis.document, decl.line)
    if decl.kind is DeclKind.CLASS:
        kind = {"interface": CompletionKind.INTERFACE,
                "enum": CompletionKind.ENUM}.get(decl.keyword, CompletionKind.CLASS)
        return CompletionItem(decl.name, kind, "User-defined class", documentation)
    if decl.kind is DeclKind.FUNCTION:
        kind = CompletionKind.METHOD if decl.owner else CompletionKind.FUNCTION
        return CompletionItem(decl.name, kind, declaration_signature(analysis, decl), documentation)
    if decl.keyword == "enum_value":
        return CompletionItem(decl.name, CompletionKind.ENUM_MEMBER, f"{decl.owner}.{decl.name}")
    if decl.owner:
        return CompletionItem(decl.name, CompletionKind.FIELD, "Field", documentation)
    kind = CompletionKind.CONSTANT if decl.is_constant else CompletionKind.VARIABLE
    return CompletionItem(decl.name, kind, "Variable", documentation)


def _member_items(analysis: DocumentAnalysis, receiver: List[Token],
                  line: int) -> List[CompletionItem]:
    catalog, table = analysis.catalog, analysis.table
    package = _receiver_is_package(analysis, receiver, line)
    if package is not None:
        pkg = catalog.packages[package]
        items = [CompletionItem(fn.name, CompletionKind.FUNCTION, fn.signature(), fn.description or None)
                 for fn in pkg.functions.values()]
        items += [CompletionItem(c.name, CompletionKind.CONSTANT, c.signature(), c.description or None)
                  for c in pkg.constants.values()]
        return items

    items: List[CompletionItem] = []
    receiver_type = analysis.inferencer.infer_tokens(receiver, line)
    for nominal in _nominals(receiver_type):
        entry = catalog.types.get(nominal.name)
        if entry is not None:
            for name in entry.methods:
                items.append(CompletionItem(name, CompletionKind.METHOD,
                                            catalog.method_signature(nominal, name) or name,
                                            entry.methods[name].description or None))
        owner = table.class_like(nominal.name)
        if owner is None:
            continue
        if owner.keyword == "enum":
            items += [CompletionItem(v.name, CompletionKind.ENUM_MEMBER, f"{owner.name}.{v.name}")
                      for v in table.enum_values(owner.name)]
            items += [CompletionItem(name, CompletionKind.METHOD, template.format(owner.name))
                      for name, template in _ENUM_STATICS]
            items += [CompletionItem(name, CompletionKind.FIELD, template)
                      for name, template in _ENUM_FIELDS]
        seen = set()
        current: Optional[Declaration] = owner
        while current is not None and current.name not in seen:
            seen.add(current.name)
            for member in table.members(current.name):
                if member.keyword in ("enum_value", "constructor"):
                    continue
                kind = CompletionKind.METHOD if member.kind is DeclKind.FUNCTION else CompletionKind.FIELD
                detail = "Method" if kind is CompletionKind.METHOD else "Field"
                items.append(CompletionItem(member.name, kind, detail,
                                            preceding_comment(analysis.document, member.line)))
            current = table.class_like(current.parent) if current.parent else None
    items.append(CompletionItem("toString", CompletionKind.METHOD, _TO_STRING))
    return items


def _scope_items(analysis: DocumentAnalysis, line: int) -> List[CompletionItem]:
    catalog, table = analysis.catalog, analysis.table
    items = [CompletionItem(word, CompletionKind.KEYWORD, "keyword", doc)
             for word, doc in catalog.keywords.items()]
    items += [CompletionItem(name, CompletionKind.CLASS, "Built-in type",
                             catalog.types[name].description if name in catalog.types else None)
              for name in catalog.type_names]
    items += [CompletionItem(fn.name, CompletionKind.FUNCTION, fn.signature(), fn.description or None)
              for fn in catalog.globals.values()]
    items += [CompletionItem(pkg.name, CompletionKind.MODULE, "Built-in package", pkg.description or None)
              for pkg in catalog.packages.values()]
    items += [_declaration_item(analysis, decl)
              for decl in table.visible_names(line, analysis.tree)
              if decl.owner is None or decl.kind is not DeclKind.FUNCTION]
    for statement in table.imports:
        items += [CompletionItem(symbol.name, CompletionKind.CLASS, f"Imported from {statement.module}")
                  for symbol in statement.symbols]
    return items


def complete(analysis: DocumentAnalysis, position: Position) -> List[CompletionItem]:
    """Candidates for the cursor at *position*, filtered by the typed prefix."""
    row = analysis.document.line_at(position.line)
    if row is None:
        return []
    before = [t for t in row.code_tokens if t.end <= position.character]
    prefix = ""
    if before and before[-1].kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD) \
            and before[-1].end == position.character:
        prefix = before[-1].text
        before = before[:-1]

    if before and before[-1].is_op("."):
        receiver = _receiver_tokens(before, len(before) - 1)
        items = _member_items(analysis, receiver, position.line) if receiver else []
    else:
        items = _scope_items(analysis, position.line)

    result: List[CompletionItem] = []
    seen = set()
    for item in items:
        if item.label in seen or not item.label.startswith(prefix):
            continue
        seen.add(item.label)
        result.append(item)
    logger.debug("completion at %d:%d: %d items", position.line, position.character, len(result))
    return result


__all__ = [
    "Location", "QueryResult", "CompletionKind", "CompletionItem",
    "hover", "definition", "complete", "preceding_comment", "declaration_signature",
]
