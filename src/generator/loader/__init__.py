"""Loading state-definition units.

Phases:
1. syntax         - parse unit source into the minimal expression tree
2. reconstructor  - rebuild plain values from that tree
3. source_loader  - dynamic load with syntax-tree fallback, JSON units, arena
"""

from src.generator.loader.reconstructor import OpaqueValue, reconstruct
from src.generator.loader.source_loader import SourceLoader, find_project_root
from src.generator.loader.syntax import parse_unit_source

__all__ = [
    "OpaqueValue",
    "SourceLoader",
    "find_project_root",
    "parse_unit_source",
    "reconstruct",
]
