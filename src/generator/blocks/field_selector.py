"""Index-suffix grammar on assertion field names.

``field`` (single), ``field[0]``/``field[first]`` (first match),
``field[last]``, ``field[all]`` (every match), ``field[any]`` (first match,
asserted present), ``field[N]`` (Nth match) and ``field[{{var}}]`` (Nth
match, N from a variable).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from src.generator.resolvers.variable_resolver import TEMPLATE_PATTERN

_SUFFIX = re.compile(r"^(?P<field>.+?)\[(?P<selector>[^\[\]]+)\]$")


class SelectorKind(str, Enum):
    SINGLE = "single"
    FIRST = "first"
    LAST = "last"
    ALL = "all"
    ANY = "any"
    NTH = "nth"


@dataclass(frozen=True)
class FieldSelector:
    field: str
    kind: SelectorKind = SelectorKind.SINGLE
    index: int | None = None
    index_variable: str | None = None

    @property
    def is_loop(self) -> bool:
        return self.kind == SelectorKind.ALL


def parse_field(text: str) -> FieldSelector:
    """Parse ``name[selector]`` into a :class:`FieldSelector`."""
    text = text.strip()
    match = _SUFFIX.match(text)
    if not match:
        return FieldSelector(field=text)

    field = match.group("field").strip()
    selector = match.group("selector").strip()
    lowered = selector.lower()

    if lowered in ("0", "first"):
        return FieldSelector(field, SelectorKind.FIRST, index=0)
    if lowered == "last":
        return FieldSelector(field, SelectorKind.LAST)
    if lowered == "all":
        return FieldSelector(field, SelectorKind.ALL)
    if lowered == "any":
        return FieldSelector(field, SelectorKind.ANY)
    if selector.isdigit():
        return FieldSelector(field, SelectorKind.NTH, index=int(selector))

    variable = TEMPLATE_PATTERN.fullmatch(selector)
    if variable:
        return FieldSelector(field, SelectorKind.NTH, index_variable=variable.group(1).strip())

    # not a selector we know: treat the whole text as a plain field name
    return FieldSelector(field=text)
