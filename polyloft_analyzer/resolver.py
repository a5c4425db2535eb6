# polyloft_analyzer/resolver.py
"""
Module resolution boundary.

Turning a dotted import path into another document's text belongs to the
host (an editor, the CLI).  The analyzer only calls :meth:`fetch` when a
symbol it needs is declared in an imported module, and treats ``None`` or
any exception as "symbol unknown".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Protocol, Sequence, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModuleSource:
    uri: str
    text: str


class ModuleResolver(Protocol):
    def fetch(self, module_path: str) -> Optional[ModuleSource]:
        ...


class NullResolver:
    """Resolves nothing."""

    def fetch(self, module_path: str) -> Optional[ModuleSource]:
        return None


class MappingResolver:
    """Serves module text from an in-memory mapping of path to text."""

    def __init__(self, modules: Mapping[str, str]):
        self._modules = dict(modules)

    def fetch(self, module_path: str) -> Optional[ModuleSource]:
        text = self._modules.get(module_path)
        if text is None:
            return None
        return ModuleSource(uri=module_path, text=text)


class DirectoryResolver:
    """
    Looks for ``.pf`` files under a project root.

    For ``import a.b.c`` the candidates are, in order::

        libs/a/b/c/index.pf   libs/a/b/c.pf
        src/a.b.c.pf          src/a/b/c/index.pf
        a.b.c.pf              a/b/c/index.pf    a/b/c.pf
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def candidates(self, module_path: str) -> List[Path]:
        parts: Sequence[str] = module_path.replace("/", ".").split(".")
        root = self.root
        return [
            root.joinpath("libs", *parts, "index.pf"),
            root.joinpath("libs", *parts[:-1], f"{parts[-1]}.pf"),
            root / "src" / f"{module_path}.pf",
            root.joinpath("src", *parts, "index.pf"),
            root / f"{module_path}.pf",
            root.joinpath(*parts, "index.pf"),
            root.joinpath(*parts[:-1], f"{parts[-1]}.pf"),
        ]

    def fetch(self, module_path: str) -> Optional[ModuleSource]:
        for path in self.candidates(module_path):
            if path.is_file():
                logger.debug("resolved %s -> %s", module_path, path)
                return ModuleSource(uri=str(path),
                                    text=path.read_text(encoding="utf-8"))
        return None


def safe_fetch(resolver: ModuleResolver, module_path: str) -> Optional[ModuleSource]:
    """Call *resolver* and absorb every failure into ``None``."""
    try:
        return resolver.fetch(module_path)
    except Exception as exc:  # resolution failure means "unknown"
        logger.debug("module %s could not be resolved: %s", module_path, exc)
        return None


__all__ = ["ModuleSource", "ModuleResolver", "NullResolver",
           "MappingResolver", "DirectoryResolver", "safe_fetch"]
