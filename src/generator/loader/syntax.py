"""Minimal expression tree for unit source text.

Python source is parsed with :mod:`ast` and converted into five node
variants. Anything that is not a literal, a container or a plain name is an
:class:`OpaqueNode` tagged with the placeholder it reconstructs to, so
unsupported syntax is a first-class variant rather than an error.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field

from src.generator.graph import Placeholder

logger = logging.getLogger(__name__)

GRAPH_ATTRIBUTES = ("xstate_config", "xstateConfig")
SCREEN_ATTRIBUTES = ("mirrors_on", "mirrorsOn")
TRIGGER_ATTRIBUTES = ("triggered_by", "triggeredBy")
UNIT_ATTRIBUTES = GRAPH_ATTRIBUTES + SCREEN_ATTRIBUTES + TRIGGER_ATTRIBUTES


# =============================================================================
# Nodes
# =============================================================================


class Node:
    """Base class of the expression tree."""


@dataclass(frozen=True)
class LiteralNode(Node):
    value: str | int | float | bool | None


@dataclass(frozen=True)
class ArrayNode(Node):
    items: tuple[Node, ...] = ()


@dataclass(frozen=True)
class ObjectNode(Node):
    entries: tuple[tuple[str, Node], ...] = ()


@dataclass(frozen=True)
class IdentifierNode(Node):
    name: str


@dataclass(frozen=True)
class OpaqueNode(Node):
    kind: Placeholder
    source: str = ""


@dataclass
class UnitSource:
    """Unit-level assignments found in a module's source text."""

    class_name: str | None = None
    attributes: dict[str, Node] = field(default_factory=dict)
    symbols: dict[str, Node] = field(default_factory=dict)


# =============================================================================
# Conversion from the Python syntax tree
# =============================================================================


def _source_of(node: ast.AST, text: str) -> str:
    return ast.get_source_segment(text, node) or ""


def convert(node: ast.AST, text: str = "") -> Node:
    """Convert a Python expression node into the minimal tree."""
    if isinstance(node, ast.Constant):
        if isinstance(node.value, (str, int, float, bool)) or node.value is None:
            return LiteralNode(node.value)
        return OpaqueNode(Placeholder.EXPRESSION, _source_of(node, text))

    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
        operand = convert(node.operand, text)
        if isinstance(operand, LiteralNode) and isinstance(operand.value, (int, float)):
            return LiteralNode(-operand.value)
        return OpaqueNode(Placeholder.EXPRESSION, _source_of(node, text))

    if isinstance(node, (ast.List, ast.Tuple)):
        return ArrayNode(tuple(convert(item, text) for item in node.elts))

    if isinstance(node, ast.Dict):
        entries = []
        for key, value in zip(node.keys, node.values):
            # **spread entries and computed keys cannot be reconstructed
            if isinstance(key, ast.Constant) and isinstance(key.value, str):
                entries.append((key.value, convert(value, text)))
            else:
                logger.debug(f"Dropping non-literal key: {_source_of(key or value, text)}")
        return ObjectNode(tuple(entries))

    if isinstance(node, ast.Name):
        return IdentifierNode(node.id)

    if isinstance(node, ast.Lambda):
        return OpaqueNode(Placeholder.FUNCTION, _source_of(node, text))

    if isinstance(node, ast.JoinedStr):
        return OpaqueNode(Placeholder.TEMPLATE, _source_of(node, text))

    if isinstance(node, ast.Call):
        return _convert_call(node, text)

    return OpaqueNode(Placeholder.EXPRESSION, _source_of(node, text))


def _convert_call(node: ast.Call, text: str) -> Node:
    func = node.func
    name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)

    # assign({...}) keeps its assignment mapping
    if name == "assign" and len(node.args) == 1 and not node.keywords:
        return ObjectNode(
            (
                ("type", LiteralNode("xstate.assign")),
                ("assignment", convert(node.args[0], text)),
            )
        )
    return OpaqueNode(Placeholder.CALL, _source_of(node, text))


def _assigned_names(stmt: ast.stmt) -> tuple[list[str], ast.expr | None]:
    if isinstance(stmt, ast.Assign):
        names = [t.id for t in stmt.targets if isinstance(t, ast.Name)]
        return names, stmt.value
    if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
        return [stmt.target.id], stmt.value
    return [], None


def _function_node(stmt: ast.stmt, text: str) -> tuple[str, Node] | None:
    if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
        return stmt.name, OpaqueNode(Placeholder.FUNCTION, _source_of(stmt, text))
    return None


def parse_unit_source(text: str) -> UnitSource:
    """Collect unit attributes and module-level symbols from source text.

    The first class that assigns any unit attribute wins; a class named
    ``*Implications`` is preferred. Module-level ``xstate_config`` is used
    when no class carries one.

    Raises:
        SyntaxError: If the text is not valid Python.
    """
    tree = ast.parse(text)
    unit = UnitSource()

    for stmt in tree.body:
        names, value = _assigned_names(stmt)
        if value is not None:
            for name in names:
                unit.symbols[name] = convert(value, text)
        function = _function_node(stmt, text)
        if function is not None:
            unit.symbols[function[0]] = function[1]

    candidates: list[tuple[str, dict[str, Node]]] = []
    for stmt in tree.body:
        if not isinstance(stmt, ast.ClassDef):
            continue
        attributes: dict[str, Node] = {}
        for item in stmt.body:
            names, value = _assigned_names(item)
            for name in names:
                if name in UNIT_ATTRIBUTES and value is not None:
                    attributes[name] = convert(value, text)
        if any(name in attributes for name in GRAPH_ATTRIBUTES):
            candidates.append((stmt.name, attributes))

    preferred = [c for c in candidates if c[0].endswith("Implications")]
    chosen = (preferred or candidates or [None])[0]
    if chosen is not None:
        unit.class_name, unit.attributes = chosen
    else:
        unit.attributes = {
            name: node for name, node in unit.symbols.items() if name in UNIT_ATTRIBUTES
        }
    return unit

