# polyloft_analyzer/analysis.py
"""
Per-document analysis snapshot.

Bundles the four structures every rule and query works from: the line
store, the scope tree, the declaration table and a type inferencer bound
to them.  A snapshot is built for one version of one document and thrown
away afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from polyloft_analyzer.catalog import Catalog
from polyloft_analyzer.declarations import DeclarationTable, collect_declarations
from polyloft_analyzer.document import Document
from polyloft_analyzer.inference import TypeInferencer
from polyloft_analyzer.scopes import ScopeTree


@dataclass(frozen=True)
class DocumentAnalysis:
    document: Document
    tree: ScopeTree
    table: DeclarationTable
    inferencer: TypeInferencer
    catalog: Catalog

    @classmethod
    def build(cls, document: Document, catalog: Catalog) -> DocumentAnalysis:
        tree = ScopeTree.build(document)
        table = collect_declarations(document, tree)
        return cls(
            document=document,
            tree=tree,
            table=table,
            inferencer=TypeInferencer(document, tree, table, catalog),
            catalog=catalog,
        )

    @classmethod
    def from_text(cls, text: str, catalog: Catalog,
                  uri: Optional[str] = None) -> DocumentAnalysis:
        return cls.build(Document.from_text(text, uri), catalog)


__all__ = ["DocumentAnalysis"]
