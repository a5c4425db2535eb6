# polyloft_analyzer/types.py
"""
Semantic types for Polyloft inference.

The type language is a small sum type::

    TLType ::= Nominal(name, args)          String, Array<Int>, Map<K, V>
             | Union(Nominal, Nominal[, Nominal])
             | Any

``Any`` is the universal fallback and absorbs everything in compatibility
checks.  A union never holds more than three members; :func:`unify`
collapses anything wider to ``Any``.  ``Void`` is the nominal type of a
function with no ``return``.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import zip_longest
from typing import Iterable, List, Mapping, Tuple

MAX_UNION_MEMBERS = 3


class TLType:
    """Base of the type sum."""
    __slots__ = ()

    @property
    def is_any(self) -> bool:
        return isinstance(self, AnyType)


@dataclass(frozen=True, slots=True)
class AnyType(TLType):
    def __str__(self) -> str:
        return "Any"


@dataclass(frozen=True, slots=True)
class Nominal(TLType):
    """A named type with optional ordered generic arguments."""
    name: str
    args: Tuple[TLType, ...] = ()

    @property
    def is_generic(self) -> bool:
        return bool(self.args)

    def arg(self, index: int) -> TLType:
        """Generic argument at *index*; missing arguments read as Any."""
        if 0 <= index < len(self.args):
            return self.args[index]
        return ANY

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}<{', '.join(str(a) for a in self.args)}>"


@dataclass(frozen=True, slots=True)
class Union(TLType):
    """Two or three distinct nominal members, in first-seen order."""
    members: Tuple[Nominal, ...]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Union):
            return NotImplemented
        return set(self.members) == set(other.members)

    def __hash__(self) -> int:
        return hash(frozenset(self.members))

    def __str__(self) -> str:
        return " | ".join(str(m) for m in self.members)


ANY = AnyType()
VOID = Nominal("Void")
INT = Nominal("Int")
FLOAT = Nominal("Float")
DOUBLE = Nominal("Double")
STRING = Nominal("String")
BOOL = Nominal("Bool")
RANGE = Nominal("Range")
MAP = Nominal("Map")

_WIDENINGS = {"Int": frozenset({"Float", "Double"})}
_NUMERIC = frozenset({"Int", "Float", "Double"})

# Containers whose first generic argument is the element type.
SEQUENCE_TYPES = frozenset({"Array", "List", "Set", "Deque"})


def array_of(element: TLType) -> Nominal:
    return Nominal("Array", (element,))


def unify(types: Iterable[TLType]) -> TLType:
    """
    Deterministically join *types*.

    No types gives Void, one distinct type gives that type, two or three
    give a Union, more than three (or any Any) give Any.
    """
    members: List[Nominal] = []
    for t in types:
        if isinstance(t, AnyType):
            return ANY
        flat = t.members if isinstance(t, Union) else (t,)
        for m in flat:
            if m not in members:
                members.append(m)
    if not members:
        return VOID
    if len(members) == 1:
        return members[0]
    if len(members) > MAX_UNION_MEMBERS:
        return ANY
    return Union(tuple(members))


def is_assignable(source: TLType, target: TLType) -> bool:
    """Can a value of *source* be stored where *target* is expected?"""
    if isinstance(source, AnyType) or isinstance(target, AnyType):
        return True
    if isinstance(source, Union):
        return all(is_assignable(m, target) for m in source.members)
    if isinstance(target, Union):
        return any(is_assignable(source, m) for m in target.members)
    assert isinstance(source, Nominal) and isinstance(target, Nominal)
    if source.name != target.name:
        return target.name in _WIDENINGS.get(source.name, ())
    if not source.args or not target.args:
        return True
    return all(
        is_assignable(s, t)
        for s, t in zip_longest(source.args, target.args, fillvalue=ANY)
    )


def comparable(left: TLType, right: TLType) -> bool:
    """Two operands may be compared when either side accepts the other."""
    if is_numeric(left) and is_numeric(right):
        return True
    return is_assignable(left, right) or is_assignable(right, left)


def is_numeric(t: TLType) -> bool:
    return isinstance(t, Nominal) and t.name in _NUMERIC


def is_floating(t: TLType) -> bool:
    return isinstance(t, Nominal) and t.name in ("Float", "Double")


def element_type(t: TLType) -> TLType:
    """What ``t[i]`` or ``for x in t`` yields."""
    if not isinstance(t, Nominal):
        return ANY
    if t.name in SEQUENCE_TYPES:
        return t.arg(0)
    if t.name == "Map":
        return t.arg(1)
    if t.name == "String":
        return STRING
    if t.name == "Range":
        return INT
    return ANY


def iteration_type(t: TLType) -> TLType:
    """Loop variable type; iterating a map walks its keys."""
    if isinstance(t, Nominal) and t.name == "Map":
        return t.arg(0)
    return element_type(t)


def substitute(t: TLType, mapping: Mapping[str, TLType]) -> TLType:
    """Replace generic parameter names (``T``, ``K``) using *mapping*."""
    if isinstance(t, Nominal):
        if not t.args and t.name in mapping:
            return mapping[t.name]
        if t.args:
            return Nominal(t.name, tuple(substitute(a, mapping) for a in t.args))
        return t
    if isinstance(t, Union):
        return unify(substitute(m, mapping) for m in t.members)
    return t


__all__ = [
    "TLType", "AnyType", "Nominal", "Union", "ANY", "VOID", "INT", "FLOAT",
    "DOUBLE", "STRING", "BOOL", "RANGE", "MAP", "SEQUENCE_TYPES",
    "MAX_UNION_MEMBERS", "array_of", "unify", "is_assignable", "comparable",
    "is_numeric", "is_floating", "element_type", "iteration_type",
    "substitute",
]
