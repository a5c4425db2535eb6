# polyloft_analyzer/catalog.py
"""
Built-in catalog: keyword documentation and the standard library surface.

The catalog is immutable configuration.  It is loaded from
``data/builtins.yaml`` (or any mapping of the same shape) once, when an
:class:`~polyloft_analyzer.engine.Analyzer` is constructed, and passed
explicitly to every component that needs it.  Nothing in the package keeps
a process-wide catalog.

Shape errors are reported as :class:`~polyloft_analyzer.errors.CatalogError`
at load time; lookups on a loaded catalog never raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from polyloft_analyzer.errors import CatalogError
from polyloft_analyzer.grammar import Parameter, format_params, parse_params, parse_type
from polyloft_analyzer.types import ANY, Nominal, TLType, substitute

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogFunction:
    """A built-in function, package function or built-in type method."""
    name: str
    params: Tuple[Parameter, ...]
    returns: str
    description: str = ""
    owner: Optional[str] = None

    @property
    def return_type(self) -> TLType:
        return parse_type(self.returns)

    def signature(self, qualified: bool = True) -> str:
        prefix = f"{self.owner}." if qualified and self.owner else ""
        return f"{prefix}{self.name}({format_params(self.params)}) -> {self.returns}"


@dataclass(frozen=True, slots=True)
class CatalogConstant:
    name: str
    type: str
    value: str
    description: str = ""
    owner: Optional[str] = None

    def signature(self) -> str:
        prefix = f"{self.owner}." if self.owner else ""
        return f"{prefix}{self.name}: {self.type} = {self.value}"


@dataclass(frozen=True, slots=True)
class CatalogPackage:
    name: str
    description: str
    functions: Mapping[str, CatalogFunction]
    constants: Mapping[str, CatalogConstant]

    def member(self, name: str) -> Union[CatalogFunction, CatalogConstant, None]:
        return self.functions.get(name) or self.constants.get(name)


@dataclass(frozen=True, slots=True)
class CatalogType:
    """A built-in type such as ``Array<T>`` with its methods."""
    name: str
    type_params: Tuple[str, ...]
    description: str
    methods: Mapping[str, CatalogFunction]

    def bindings(self, receiver: Nominal) -> Dict[str, TLType]:
        """Map generic parameter names to the receiver's arguments."""
        return {p: receiver.arg(i) for i, p in enumerate(self.type_params)}


@dataclass(frozen=True)
class Catalog:
    """Immutable bundle of everything the analyzer knows without a document."""
    keywords: Mapping[str, str]
    type_names: Tuple[str, ...]
    globals: Mapping[str, CatalogFunction]
    packages: Mapping[str, CatalogPackage]
    types: Mapping[str, CatalogType]

    # ── construction ───────────────────────────────────────────────────

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Catalog:
        if not isinstance(data, Mapping):
            raise CatalogError("catalog root must be a mapping")
        keywords = data.get("keywords") or {}
        if not isinstance(keywords, Mapping):
            raise CatalogError("must be a mapping", entry="keywords")
        type_names = data.get("types") or []
        if not isinstance(type_names, list):
            raise CatalogError("must be a list", entry="types")

        globals_ = {
            fn.name: fn
            for fn in (_function(raw, None, "globals")
                       for raw in _list(data, "globals", "globals"))
        }
        packages = {
            name: _package(name, raw)
            for name, raw in _mapping(data, "packages", "packages").items()
        }
        types = {
            name: _type(name, raw)
            for name, raw in _mapping(data, "classes", "classes").items()
        }
        catalog = cls(
            keywords=MappingProxyType({str(k): str(v) for k, v in keywords.items()}),
            type_names=tuple(str(t) for t in type_names),
            globals=MappingProxyType(globals_),
            packages=MappingProxyType(packages),
            types=MappingProxyType(types),
        )
        logger.debug("catalog: %d keywords, %d globals, %d packages, %d types",
                     len(catalog.keywords), len(catalog.globals),
                     len(catalog.packages), len(catalog.types))
        return catalog

    @classmethod
    def empty(cls) -> Catalog:
        return cls.from_mapping({})

    # ── lookups ─────────────────────────────────────────────────────────

    def keyword_doc(self, word: str) -> Optional[str]:
        return self.keywords.get(word)

    def package_member(self, package: str, name: str):
        pkg = self.packages.get(package)
        return pkg.member(name) if pkg is not None else None

    def method(self, receiver: TLType, name: str) -> Optional[CatalogFunction]:
        if not isinstance(receiver, Nominal):
            return None
        entry = self.types.get(receiver.name)
        return entry.methods.get(name) if entry is not None else None

    def method_return_type(self, receiver: Nominal, name: str) -> Optional[TLType]:
        """Return type of ``receiver.name(...)`` with generics substituted."""
        entry = self.types.get(receiver.name)
        if entry is None:
            return None
        fn = entry.methods.get(name)
        if fn is None:
            return None
        return substitute(fn.return_type, entry.bindings(receiver))

    def method_signature(self, receiver: Nominal, name: str) -> Optional[str]:
        """``Array<Int>.get(index: Int) -> Int`` style rendering."""
        entry = self.types.get(receiver.name)
        fn = entry.methods.get(name) if entry is not None else None
        if fn is None:
            return None
        bindings = entry.bindings(receiver)
        params = ", ".join(_bind_param(p, bindings) for p in fn.params)
        ret = substitute(fn.return_type, bindings)
        return f"{receiver}.{fn.name}({params}) -> {ret}"


def _bind_param(param: Parameter, bindings: Mapping[str, TLType]) -> str:
    if param.type_text is None:
        return str(param)
    bound = substitute(param.type, bindings)
    prefix = "..." if param.variadic else ""
    suffix = "?" if param.optional else ""
    return f"{prefix}{param.name}{suffix}: {bound}"


def _list(data: Mapping[str, Any], key: str, entry: str) -> list:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise CatalogError("must be a list", entry=entry)
    return value


def _mapping(data: Mapping[str, Any], key: str, entry: str) -> Mapping[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise CatalogError("must be a mapping", entry=entry)
    return value


def _function(raw: Any, owner: Optional[str], entry: str) -> CatalogFunction:
    if not isinstance(raw, Mapping) or "name" not in raw:
        raise CatalogError("function entries need a 'name'", entry=entry)
    name = str(raw["name"])
    params = raw.get("params") or []
    if not isinstance(params, list):
        raise CatalogError("'params' must be a list", entry=f"{entry}.{name}")
    return CatalogFunction(
        name=name,
        params=parse_params(", ".join(str(p) for p in params)),
        returns=str(raw.get("returns", "Void")),
        description=str(raw.get("description", "")),
        owner=owner,
    )


def _constant(raw: Any, owner: str) -> CatalogConstant:
    if not isinstance(raw, Mapping) or "name" not in raw:
        raise CatalogError("constant entries need a 'name'", entry=f"packages.{owner}")
    return CatalogConstant(
        name=str(raw["name"]),
        type=str(raw.get("type", "Any")),
        value=str(raw.get("value", "")),
        description=str(raw.get("description", "")),
        owner=owner,
    )


def _package(name: str, raw: Any) -> CatalogPackage:
    if not isinstance(raw, Mapping):
        raise CatalogError("must be a mapping", entry=f"packages.{name}")
    entry = f"packages.{name}"
    functions = {f.name: f for f in (_function(r, name, entry)
                                     for r in _list(raw, "functions", entry))}
    constants = {c.name: c for c in (_constant(r, name)
                                     for r in _list(raw, "constants", entry))}
    return CatalogPackage(
        name=name,
        description=str(raw.get("description", "")),
        functions=MappingProxyType(functions),
        constants=MappingProxyType(constants),
    )


def _type(name: str, raw: Any) -> CatalogType:
    if not isinstance(raw, Mapping):
        raise CatalogError("must be a mapping", entry=f"classes.{name}")
    entry = f"classes.{name}"
    methods = {m.name: m for m in (_function(r, name, entry)
                                   for r in _list(raw, "methods", entry))}
    return CatalogType(
        name=name,
        type_params=tuple(str(p) for p in _list(raw, "params", entry)),
        description=str(raw.get("description", "")),
        methods=MappingProxyType(methods),
    )


def load_catalog(path: Optional[Union[str, Path]] = None) -> Catalog:
    """
    Load a catalog from YAML.

    With no *path* the packaged ``data/builtins.yaml`` is used.
    """
    try:
        if path is None:
            text = (resources.files("polyloft_analyzer") / "data" / "builtins.yaml"
                    ).read_text(encoding="utf-8")
        else:
            text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"cannot read catalog: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CatalogError(f"invalid YAML: {exc}") from exc
    return Catalog.from_mapping(data or {})


__all__ = ["CatalogFunction", "CatalogConstant", "CatalogPackage",
           "CatalogType", "Catalog", "load_catalog"]
