"""Base visitor classes for syntax-node and validation-block traversal."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from src.generator.loader.syntax import ArrayNode, Node, ObjectNode
    from src.generator.screens import Block

T = TypeVar("T")


class NodeVisitor(ABC, Generic[T]):
    """Abstract visitor for the minimal expression tree.

    Subclasses implement visit methods for leaf node types. The base class
    handles traversal for containers (ArrayNode, ObjectNode).

    Type parameter T is the return type of visit methods.

    Usage:
        class Printer(NodeVisitor[str]):
            def visit_default(self, node):
                return "?"

            def visit_LiteralNode(self, node):
                return repr(node.value)
    """

    def visit(self, node: Node) -> T:
        """Dispatch to the appropriate visit method.

        Looks for visit_{ClassName} method, falls back to visit_default.
        """
        method_name = f"visit_{type(node).__name__}"
        visitor = getattr(self, method_name, self.visit_default)
        return visitor(node)

    @abstractmethod
    def visit_default(self, node: Node) -> T:
        """Default handler for node types without specific visit methods."""
        ...

    # Containers - traverse children and combine results

    def visit_ArrayNode(self, node: ArrayNode) -> T:
        return self.combine_array(node, [self.visit(item) for item in node.items])

    def visit_ObjectNode(self, node: ObjectNode) -> T:
        return self.combine_object(node, [(key, self.visit(value)) for key, value in node.entries])

    @abstractmethod
    def combine_array(self, original: ArrayNode, items: list[T]) -> T:
        """Combine results from ArrayNode items."""
        ...

    @abstractmethod
    def combine_object(self, original: ObjectNode, entries: list[tuple[str, T]]) -> T:
        """Combine results from ObjectNode entries."""
        ...


class BlockVisitor(ABC, Generic[T]):
    """Abstract visitor for validation blocks.

    Dispatches on the block's ``type`` (``ui-assertion`` ->
    ``visit_ui_assertion``), falling back to visit_default for unknown
    types.
    """

    def visit(self, block: Block, position: int) -> T:
        method_name = f"visit_{block.type.replace('-', '_')}"
        visitor = getattr(self, method_name, self.visit_default)
        return visitor(block, position)

    @abstractmethod
    def visit_default(self, block: Block, position: int) -> T: ...
