"""Visitor bases for syntax nodes and validation blocks."""

from .base import BlockVisitor, NodeVisitor

__all__ = ["BlockVisitor", "NodeVisitor"]
