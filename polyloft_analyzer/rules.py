# polyloft_analyzer/rules.py
"""
Diagnostic rule set.

Every rule is an independent function ``rule(ctx) -> Iterable[(Range, str)]``
registered in :data:`RULES` under a stable name, code and severity.  Rules
read the shared :class:`~polyloft_analyzer.analysis.DocumentAnalysis` but
never each other's output, so they can run in any order and be tested one
at a time.

Codes
─────
::

    PF-E0xx   errors: constructs that are invalid whatever the edit state
    PF-W1xx   warnings: likely mistakes
    PF-H2xx   hints: style and possible slips

:func:`run_rules` executes the registry.  A rule that raises is logged and
skipped so one faulty rule never hides the others' findings.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from polyloft_analyzer.analysis import DocumentAnalysis
from polyloft_analyzer.config import AnalyzerConfig
from polyloft_analyzer.declarations import DeclKind, Mutability
from polyloft_analyzer.diagnostics import Diagnostic, Range, Severity
from polyloft_analyzer.lexer import Token, TokenKind
from polyloft_analyzer.scopes import FrameKind, skip_prefix
from polyloft_analyzer.types import Nominal, comparable, is_assignable

logger = logging.getLogger(__name__)

Finding = Tuple[Range, str]
RuleFn = Callable[["RuleContext"], Iterable[Finding]]

ASSIGN_OPS = frozenset({"=", "+=", "-=", "*=", "/=", "%=", "++", "--"})
_COMPARISON = frozenset({"==", "!=", "<", ">", "<=", ">="})
_BRANCHES = ("elif", "else", "catch", "finally", "case", "default")
_JUMPS = ("return", "break", "continue", "throw")
_DECLARATION_WORDS = frozenset({"def", "class", "enum", "record", "interface",
                                "var", "let", "const", "final"})
_WORD_OPERATORS = {"and": "&&", "or": "||", "not": "!"}


@dataclass(frozen=True)
class Rule:
    name: str
    code: str
    severity: Severity
    fn: RuleFn
    description: str = ""


@dataclass(frozen=True)
class RuleContext:
    analysis: DocumentAnalysis
    config: AnalyzerConfig

    @property
    def document(self):
        return self.analysis.document

    @property
    def tree(self):
        return self.analysis.tree

    @property
    def table(self):
        return self.analysis.table

    @property
    def inferencer(self):
        return self.analysis.inferencer

    @property
    def catalog(self):
        return self.analysis.catalog


RULES: Dict[str, Rule] = {}


def _register(table: Dict[str, Rule], name: str, code: str, severity: Severity):
    """Decorator: register a rule function under *name* in *table*."""
    def deco(fn: RuleFn) -> RuleFn:
        table[name] = Rule(name, code, severity, fn, (fn.__doc__ or "").strip())
        return fn
    return deco


def _token_range(tok: Token, last: Optional[Token] = None) -> Range:
    return Range(tok.line, tok.column, (last or tok).end)


def _assignment_target(tokens: Sequence[Token]) -> Optional[Tuple[Token, Token]]:
    """``(name, operator)`` when the statement reassigns a plain name."""
    if len(tokens) < 2 or tokens[0].kind is not TokenKind.IDENTIFIER:
        return None
    op = tokens[1]
    if op.kind is TokenKind.OPERATOR and op.text in ASSIGN_OPS:
        return tokens[0], op
    return None


def _bracket_delta(tokens: Iterable[Token]) -> int:
    delta = 0
    for tok in tokens:
        if tok.is_op("(", "[", "{"):
            delta += 1
        elif tok.is_op(")", "]", "}"):
            delta -= 1
    return delta


# ═══════════════════════════════════════════════════════════════════════
#  Structural
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "unterminated-string", "PF-E001", Severity.ERROR)
def check_unterminated_string(ctx: RuleContext) -> Iterator[Finding]:
    """String literal with no closing quote on its line."""
    for line in ctx.document:
        for tok in line.tokens:
            if tok.kind is TokenKind.STRING and not tok.terminated:
                yield Range(line.index, tok.column, len(line.text)), "Unclosed string literal"
                break


@_register(RULES, "unmatched-brace", "PF-W101", Severity.WARNING)
def check_unmatched_braces(ctx: RuleContext) -> Iterator[Finding]:
    """Curly braces matched across the whole token stream."""
    open_braces: List[Token] = []
    for tok in ctx.document.tokens():
        if tok.is_op("{"):
            open_braces.append(tok)
        elif tok.is_op("}"):
            if open_braces:
                open_braces.pop()
            else:
                yield _token_range(tok), "Unmatched brackets"
    for tok in open_braces:
        yield _token_range(tok), "Unmatched brackets"


@_register(RULES, "missing-end", "PF-W102", Severity.WARNING)
def check_missing_end(ctx: RuleContext) -> Iterator[Finding]:
    """Block still open at the end of the document."""
    for frame in ctx.tree.unclosed:
        line = ctx.document[frame.start_line]
        yield (Range.of_line(line.index, line.code),
               'Block statement may be missing corresponding "end" keyword')


@_register(RULES, "stray-end", "PF-W103", Severity.WARNING)
def check_stray_end(ctx: RuleContext) -> Iterator[Finding]:
    """``end`` with no open block to close."""
    for index in ctx.tree.stray_ends:
        line = ctx.document[index]
        yield Range.of_line(index, line.code), '"end" does not close any open block'


@_register(RULES, "invalid-function-header", "PF-E002", Severity.ERROR)
def check_function_header(ctx: RuleContext) -> Iterator[Finding]:
    """``def`` must be followed by a name and a parameter list."""
    for line in ctx.document:
        tokens = line.code_tokens
        i = skip_prefix(tokens)
        if i >= len(tokens) or not tokens[i].is_keyword("def"):
            continue
        name = tokens[i + 1] if i + 1 < len(tokens) else None
        paren = tokens[i + 2] if i + 2 < len(tokens) else None
        if name is None or name.kind is not TokenKind.IDENTIFIER or paren is None \
                or not paren.is_op("("):
            yield (_token_range(tokens[i], name),
                   "Function definition must be followed by parameter list in parentheses")


# ═══════════════════════════════════════════════════════════════════════
#  Naming and annotations
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "class-naming", "PF-W104", Severity.WARNING)
def check_class_naming(ctx: RuleContext) -> Iterator[Finding]:
    """Class, enum, record and interface names start upper case."""
    for decl in ctx.table.declarations:
        if decl.kind is not DeclKind.CLASS or decl.name[:1].isupper():
            continue
        label = decl.keyword.capitalize()
        yield (Range(decl.line, decl.column, decl.end_column),
               f"{label} names should start with an uppercase letter")


def _declaration_start(tokens: Sequence[Token]) -> bool:
    if tokens and tokens[0].kind is TokenKind.ANNOTATION and len(tokens) == 1:
        return True
    i = skip_prefix(tokens)
    if i >= len(tokens):
        return i > 0
    first = tokens[i]
    if first.kind is TokenKind.KEYWORD:
        return first.text in _DECLARATION_WORDS
    # constructors and interface method signatures
    if first.kind is not TokenKind.IDENTIFIER or i + 1 >= len(tokens) \
            or not tokens[i + 1].is_op("("):
        return False
    return (first.text[:1].isupper() or tokens[-1].is_op(":")
            or any(t.is_op("->") for t in tokens))


@_register(RULES, "dangling-annotation", "PF-W105", Severity.WARNING)
def check_annotation_target(ctx: RuleContext) -> Iterator[Finding]:
    """``@Annotation`` must precede a declaration."""
    doc = ctx.document
    for line in doc:
        tokens = line.code_tokens
        if not tokens or tokens[0].kind is not TokenKind.ANNOTATION:
            continue
        rest = [t for t in tokens if t.kind is not TokenKind.ANNOTATION]
        if rest:
            valid = _declaration_start(tokens)
        else:
            following = next((l for l in doc.lines[line.index + 1:] if not l.is_blank), None)
            valid = following is not None and _declaration_start(following.code_tokens)
        if not valid:
            yield (_token_range(tokens[0]),
                   "Annotations must be followed by a class, method, field, "
                   "or other valid declaration")


# ═══════════════════════════════════════════════════════════════════════
#  Declaration misuse
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "multiple-declarators", "PF-E003", Severity.ERROR)
def check_multiple_declarators(ctx: RuleContext) -> Iterator[Finding]:
    """``final const x`` style stacking, found by the collector."""
    for diag in ctx.table.diagnostics:
        yield diag.range, diag.message


@_register(RULES, "duplicate-declaration", "PF-E004", Severity.ERROR)
def check_duplicate_declaration(ctx: RuleContext) -> Iterator[Finding]:
    """Same variable name declared twice in one scope frame."""
    first_seen = {}
    for decl in ctx.table.declarations:
        if decl.kind is not DeclKind.VARIABLE or decl.keyword in ("for", "catch", "enum_value"):
            continue
        key = (decl.frame_id, decl.name)
        original = first_seen.get(key)
        if original is None:
            first_seen[key] = decl
            continue
        yield (Range(decl.line, decl.column, decl.end_column),
               f"Variable '{decl.name}' is already declared in this scope "
               f"(line {original.line + 1})")


@_register(RULES, "const-reassignment", "PF-E005", Severity.ERROR)
def check_const_reassignment(ctx: RuleContext) -> Iterator[Finding]:
    """Assignment to a name whose visible declaration is const or final."""
    table = ctx.table
    for line in ctx.document:
        target = _assignment_target(line.code_tokens)
        if target is None:
            continue
        name_tok, _ = target
        name = name_tok.text
        if name not in table.constants and name not in table.finals:
            continue
        decl = table.visible(name, line.index, ctx.tree)
        if decl is None or not decl.is_constant or decl.line >= line.index:
            continue
        word = "const" if decl.mutability is Mutability.CONST else "final"
        yield (_token_range(name_tok),
               f"Cannot reassign {word} variable '{name}' (declared on line {decl.line + 1})")


# ═══════════════════════════════════════════════════════════════════════
#  Context legality
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "this-outside-class", "PF-E006", Severity.ERROR)
def check_this_context(ctx: RuleContext) -> Iterator[Finding]:
    """``this`` is only legal inside a method of a class, enum or record."""
    for line in ctx.document:
        tok = next((t for t in line.code_tokens if t.is_keyword("this")), None)
        if tok is not None and not ctx.tree.contains(line.index, FrameKind.CLASS_LIKE):
            yield _token_range(tok), '"this" can only be used inside class, enum, or record methods'


@_register(RULES, "return-outside-function", "PF-E007", Severity.ERROR)
def check_return_context(ctx: RuleContext) -> Iterator[Finding]:
    """``return`` needs an enclosing function."""
    for line in ctx.document:
        tok = next((t for t in line.code_tokens if t.is_keyword("return")), None)
        if tok is not None and not ctx.tree.contains(line.index, FrameKind.FUNCTION):
            yield _token_range(tok), '"return" statement outside of function'


@_register(RULES, "break-outside-loop", "PF-E008", Severity.ERROR)
def check_loop_context(ctx: RuleContext) -> Iterator[Finding]:
    """``break`` and ``continue`` need an enclosing loop in the same function."""
    for line in ctx.document:
        tok = next((t for t in line.code_tokens if t.is_keyword("break", "continue")), None)
        if tok is not None and not ctx.tree.contains(line.index, FrameKind.LOOP):
            yield _token_range(tok), f"'{tok.text}' statement can only be used inside loops"


# ═══════════════════════════════════════════════════════════════════════
#  Style and typing hints
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "untyped-parameter", "PF-W106", Severity.WARNING)
def check_parameter_annotations(ctx: RuleContext) -> Iterator[Finding]:
    """Function and constructor parameters should carry a type."""
    for decl in ctx.table.declarations:
        if decl.kind is not DeclKind.FUNCTION:
            continue
        for param in decl.params:
            if param.annotated or param.variadic:
                continue
            column = max(param.column, 0)
            yield (Range(decl.line, column, column + len(param.name)),
                   "Function parameters should have type annotations")


@_register(RULES, "unused-import", "PF-H201", Severity.HINT)
def check_unused_imports(ctx: RuleContext) -> Iterator[Finding]:
    """Imported symbol never mentioned after its import."""
    lines = ctx.document.lines
    for statement in ctx.table.imports:
        for symbol in statement.symbols:
            pattern = re.compile(rf"#\{{[^}}]*\b{re.escape(symbol.name)}\b")
            used = any(
                (tok.kind is TokenKind.IDENTIFIER and tok.text == symbol.name)
                or (tok.kind is TokenKind.STRING and pattern.search(tok.text))
                for line in lines[statement.line + 1:]
                for tok in line.code_tokens
            )
            if not used:
                yield (Range(symbol.line, symbol.column, symbol.column + len(symbol.name)),
                       f"Imported symbol '{symbol.name}' is not used")


@_register(RULES, "indentation", "PF-H203", Severity.HINT)
def check_indentation(ctx: RuleContext) -> Iterator[Finding]:
    """Space indentation should be a multiple of the configured width."""
    width = ctx.config.indent_width
    depth = 0
    for line in ctx.document:
        tokens = line.code_tokens
        if tokens and depth <= 0:
            lead = line.text[:line.indent]
            if "\t" not in lead and line.indent % width:
                yield (Range(line.index, 0, line.indent),
                       f"Inconsistent indentation (should be multiples of {width} spaces)")
        depth += _bracket_delta(tokens)


# ═══════════════════════════════════════════════════════════════════════
#  Reachability
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "unreachable-code", "PF-W107", Severity.WARNING)
def check_unreachable(ctx: RuleContext) -> Iterator[Finding]:
    """First statement after an unconditional jump in the same block."""
    doc, tree = ctx.document, ctx.tree
    for line in doc:
        tokens = line.code_tokens
        if not tokens or not tokens[0].is_keyword(*_JUMPS):
            continue
        if _bracket_delta(tokens) > 0 or any(t.is_keyword("end") for t in tokens[1:]):
            continue
        frame = tree.frame_at(line.index)
        for following in doc.lines[line.index + 1:]:
            nxt = following.code_tokens
            if not nxt:
                continue
            if nxt[0].is_keyword("end", *_BRANCHES):
                break
            if tree.frame_at(following.index) is frame:
                yield (Range.of_line(following.index, following.code),
                       f"Unreachable code after {tokens[0].text} statement")
            break


# ═══════════════════════════════════════════════════════════════════════
#  Type rules
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "assignment-type-mismatch", "PF-W108", Severity.WARNING)
def check_assignment_types(ctx: RuleContext) -> Iterator[Finding]:
    """Assigned value incompatible with the variable's known type."""
    table, tree, inferencer = ctx.table, ctx.tree, ctx.inferencer
    for decl in table.declarations:
        if decl.mutability is None or decl.declared_type is None or not decl.initializer:
            continue
        source = inferencer.infer(decl.initializer, decl.line)
        if not is_assignable(source, decl.declared_type):
            yield (Range(decl.line, decl.column, decl.end_column),
                   f"Type mismatch: cannot assign {source} to '{decl.name}' "
                   f"of type {decl.declared_type}")

    for line in ctx.document:
        tokens = line.code_tokens
        target = _assignment_target(tokens)
        if target is None or target[1].text != "=" or len(tokens) < 3:
            continue
        name_tok = target[0]
        decl = table.visible(name_tok.text, line.index, tree)
        if decl is None or decl.kind is not DeclKind.VARIABLE or decl.is_constant:
            continue
        expected = inferencer.declaration_type(decl)
        if expected.is_any:
            continue
        source = inferencer.infer_tokens(tokens[2:], line.index)
        if not is_assignable(source, expected):
            yield (_token_range(name_tok),
                   f"Type mismatch: cannot assign {source} to '{name_tok.text}' "
                   f"of type {expected}")


@_register(RULES, "incompatible-comparison", "PF-W109", Severity.WARNING)
def check_comparisons(ctx: RuleContext) -> Iterator[Finding]:
    """Two variables of unrelated types compared with each other."""
    table, tree, inferencer = ctx.table, ctx.tree, ctx.inferencer
    for line in ctx.document:
        tokens = line.code_tokens
        for i in range(1, len(tokens) - 1):
            op = tokens[i]
            if op.kind is not TokenKind.OPERATOR or op.text not in _COMPARISON:
                continue
            left, right = tokens[i - 1], tokens[i + 1]
            if left.kind is not TokenKind.IDENTIFIER or right.kind is not TokenKind.IDENTIFIER:
                continue
            if i >= 2 and tokens[i - 2].is_op("."):
                continue
            if i + 2 < len(tokens) and tokens[i + 2].is_op(".", "(", "["):
                continue
            left_decl = table.visible(left.text, line.index, tree)
            right_decl = table.visible(right.text, line.index, tree)
            if left_decl is None or right_decl is None:
                continue
            if left_decl.kind is not DeclKind.VARIABLE or right_decl.kind is not DeclKind.VARIABLE:
                continue
            lt = inferencer.declaration_type(left_decl)
            rt = inferencer.declaration_type(right_decl)
            if not comparable(lt, rt):
                yield (Range(line.index, left.column, right.end),
                       f"Comparing incompatible types {lt} and {rt}")


@_register(RULES, "division-by-zero", "PF-E009", Severity.ERROR)
def check_division_by_zero(ctx: RuleContext) -> Iterator[Finding]:
    """Division or modulo by the literal zero."""
    for line in ctx.document:
        tokens = line.code_tokens
        for i, tok in enumerate(tokens[:-1]):
            if not tok.is_op("/", "%", "/=", "%="):
                continue
            operand = tokens[i + 1]
            if operand.kind not in (TokenKind.INT, TokenKind.FLOAT):
                continue
            if float(operand.text) != 0:
                continue
            if i + 2 < len(tokens) and tokens[i + 2].is_op("."):
                continue
            yield _token_range(tok, operand), "Division by zero"


@_register(RULES, "unknown-member", "PF-W110", Severity.WARNING)
def check_unknown_members(ctx: RuleContext) -> Iterator[Finding]:
    """Package members and built-in type methods checked against the catalog."""
    table, tree, catalog, inferencer = ctx.table, ctx.tree, ctx.catalog, ctx.inferencer
    for line in ctx.document:
        tokens = line.code_tokens
        for i in range(1, len(tokens) - 1):
            if not tokens[i].is_op("."):
                continue
            receiver, member = tokens[i - 1], tokens[i + 1]
            if receiver.kind is not TokenKind.IDENTIFIER:
                continue
            if member.kind not in (TokenKind.IDENTIFIER, TokenKind.KEYWORD):
                continue
            if i >= 2 and tokens[i - 2].is_op("."):
                continue
            decl = table.visible(receiver.text, line.index, tree)
            if decl is None and receiver.text in catalog.packages:
                if table.class_like(receiver.text) is None and \
                        catalog.package_member(receiver.text, member.text) is None:
                    yield (_token_range(member),
                           f"Unknown member '{member.text}' in package {receiver.text}")
                continue
            is_call = i + 2 < len(tokens) and tokens[i + 2].is_op("(")
            if decl is None or decl.kind is not DeclKind.VARIABLE or not is_call:
                continue
            receiver_type = inferencer.declaration_type(decl)
            if not isinstance(receiver_type, Nominal) or receiver_type.name not in catalog.types:
                continue
            if catalog.method(receiver_type, member.text) is None and member.text != "toString":
                yield (_token_range(member),
                       f"Unknown method '{member.text}' for type {receiver_type}")


# ═══════════════════════════════════════════════════════════════════════
#  Lexical traps
# ═══════════════════════════════════════════════════════════════════════

@_register(RULES, "word-operator", "PF-E010", Severity.ERROR)
def check_word_operators(ctx: RuleContext) -> Iterator[Finding]:
    """``and`` / ``or`` / ``not`` instead of ``&&`` / ``||`` / ``!``."""
    for line in ctx.document:
        tokens = line.code_tokens
        for i, tok in enumerate(tokens):
            replacement = _WORD_OPERATORS.get(tok.text)
            if replacement is None or tok.kind is not TokenKind.IDENTIFIER:
                continue
            prev = tokens[i - 1] if i > 0 else None
            nxt = tokens[i + 1] if i + 1 < len(tokens) else None
            if nxt is None or nxt.is_op("=", ".", ",", ")", ":"):
                continue
            if prev is not None and (prev.is_op(".") or prev.is_keyword(*_DECLARATION_WORDS)):
                continue
            if prev is None and tok.text != "not":
                continue
            yield _token_range(tok), f"Use '{replacement}' instead of '{tok.text}'"


@_register(RULES, "two-dot-range", "PF-E011", Severity.ERROR)
def check_range_operator(ctx: RuleContext) -> Iterator[Finding]:
    """Ranges are written ``a...b``."""
    for tok in ctx.document.tokens():
        if tok.kind is TokenKind.OPERATOR and tok.text == "..":
            yield _token_range(tok), "Use '...' for ranges instead of '..'"


@_register(RULES, "dollar-interpolation", "PF-E012", Severity.ERROR)
def check_dollar_interpolation(ctx: RuleContext) -> Iterator[Finding]:
    """String interpolation is written ``#{expr}``."""
    for tok in ctx.document.tokens():
        if tok.kind is not TokenKind.STRING:
            continue
        for m in re.finditer(r"\$\{", tok.text):
            start = tok.column + m.start()
            yield (Range(tok.line, start, start + 2),
                   "Use '#{' for string interpolation instead of '${'")


@_register(RULES, "missed-interpolation", "PF-H202", Severity.HINT)
def check_bare_hash(ctx: RuleContext) -> Iterator[Finding]:
    """A ``#`` in a string that is not followed by ``{``."""
    for tok in ctx.document.tokens():
        if tok.kind is not TokenKind.STRING:
            continue
        m = re.search(r"#(?!\{)", tok.text)
        if m:
            start = tok.column + m.start()
            yield (Range(tok.line, start, start + 1),
                   "Possible missed interpolation: use '#{expression}'")


# ═══════════════════════════════════════════════════════════════════════
#  Runner
# ═══════════════════════════════════════════════════════════════════════

def run_rule(rule: Rule, ctx: RuleContext) -> List[Diagnostic]:
    return [
        Diagnostic(range=rng, message=message, severity=rule.severity,
                   code=rule.code, rule=rule.name)
        for rng, message in rule.fn(ctx)
    ]


def run_rules(ctx: RuleContext, rules: Optional[Dict[str, Rule]] = None) -> List[Diagnostic]:
    """Run every enabled rule; the result is sorted and free of duplicates."""
    found = set()
    for rule in (rules if rules is not None else RULES).values():
        if not ctx.config.rule_enabled(rule.name, rule.code):
            continue
        try:
            found.update(run_rule(rule, ctx))
        except Exception:
            logger.warning("rule %s failed; continuing without it", rule.name,
                           exc_info=True)
    diagnostics = sorted(found, key=Diagnostic.sort_key)
    if ctx.config.max_diagnostics:
        diagnostics = diagnostics[:ctx.config.max_diagnostics]
    return diagnostics


__all__ = ["Rule", "RuleContext", "RULES", "run_rule", "run_rules", "ASSIGN_OPS"]
