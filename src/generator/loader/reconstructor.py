"""Rebuild plain values from the minimal expression tree."""

from __future__ import annotations

from typing import Any

from src.generator.graph import Placeholder
from src.generator.loader.syntax import (
    ArrayNode,
    IdentifierNode,
    LiteralNode,
    Node,
    ObjectNode,
    OpaqueNode,
)
from src.generator.visitors.base import NodeVisitor


class OpaqueValue(str):
    """A placeholder string that remembers the source text it replaced.

    Compares equal to its placeholder (``"<function>"`` ...), so consumers
    that only know placeholders keep working; consumers that can use the
    text (delta extraction) read ``source``.
    """

    source: str

    def __new__(cls, kind: Placeholder, source: str = "") -> OpaqueValue:
        value = super().__new__(cls, kind.value)
        value.source = source
        return value


class Reconstructor(NodeVisitor[Any]):
    """Turn nodes back into dicts, lists and scalars.

    Identifiers resolve through module-level ``symbols`` when those are
    themselves reconstructible; unknown or cyclic identifiers become
    ``<expression>``.
    """

    def __init__(self, symbols: dict[str, Node] | None = None):
        self.symbols = symbols or {}
        self._resolving: set[str] = set()

    def visit_default(self, node: Node) -> Any:
        return OpaqueValue(Placeholder.EXPRESSION)

    def visit_LiteralNode(self, node: LiteralNode) -> Any:
        return node.value

    def visit_OpaqueNode(self, node: OpaqueNode) -> Any:
        return OpaqueValue(node.kind, node.source)

    def visit_IdentifierNode(self, node: IdentifierNode) -> Any:
        if node.name in ("True", "False", "None"):
            return {"True": True, "False": False, "None": None}[node.name]
        target = self.symbols.get(node.name)
        if target is None or node.name in self._resolving:
            return OpaqueValue(Placeholder.EXPRESSION, node.name)
        self._resolving.add(node.name)
        try:
            return self.visit(target)
        finally:
            self._resolving.discard(node.name)

    def combine_array(self, original: ArrayNode, items: list[Any]) -> Any:
        return items

    def combine_object(self, original: ObjectNode, entries: list[tuple[str, Any]]) -> Any:
        return dict(entries)


def reconstruct(node: Node, symbols: dict[str, Node] | None = None) -> Any:
    """Reconstruct a plain value from a node."""
    return Reconstructor(symbols).visit(node)
