"""Resolve ``{{name}}`` references into JavaScript expressions.

A reference resolves against an ordered scope chain: values stored by the
incoming transition's steps, values stored by earlier blocks of the same
screen, then context fields. Lookup is first-match-wins. Names that match
nothing resolve to a context-data access. Resolution never raises; values
it cannot classify are emitted as quoted string literals.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from src.generator.graph import is_placeholder

if TYPE_CHECKING:
    from src.generator.graph import ActionStep
    from src.generator.screens import Block

CONTEXT_ROOT = "ctx.data"
STORED_ROOT = "storedVars"
QUALIFIED_ROOTS = (f"{CONTEXT_ROOT}.", f"{STORED_ROOT}.")

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_HEAD = re.compile(r"^([^.\[]+)(.*)$")
_LITERAL_SHAPE = re.compile(r"^(-?\d+(\.\d+)?|true|false)$")


class ScopeKind(str, Enum):
    STORED_RESULT = "stored-result"
    CONTEXT_FIELD = "context-field"


@dataclass(frozen=True)
class ScopeEntry:
    name: str
    kind: ScopeKind
    produced_by: str


@dataclass(frozen=True)
class ScopeChain:
    """Immutable ordered scope; earlier entries shadow later ones."""

    entries: tuple[ScopeEntry, ...] = ()

    def lookup(self, name: str) -> ScopeEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None


def step_scope(steps: Iterable[ActionStep], producer: str = "transition") -> list[ScopeEntry]:
    """Scope entries for transition steps that declare ``storeAs``."""
    return [
        ScopeEntry(step.store_as, ScopeKind.STORED_RESULT, f"{producer}:{step.method}")
        for step in steps
        if step.store_as
    ]


def block_scope(blocks: Iterable[Block]) -> list[ScopeEntry]:
    """Scope entries for blocks that declare ``storeAs``."""
    entries = []
    for block in blocks:
        for name in block.stored_names:
            entries.append(
                ScopeEntry(name, ScopeKind.STORED_RESULT, f"block:{block.label or block.type}")
            )
    return entries


def context_scope(fields: Iterable[str]) -> list[ScopeEntry]:
    return [ScopeEntry(name, ScopeKind.CONTEXT_FIELD, "context") for name in fields]


def build_scope_chain(
    transition_steps: Iterable[ActionStep] = (),
    prior_blocks: Iterable[Block] = (),
    context_fields: Iterable[str] = (),
) -> ScopeChain:
    """``[transition steps] ++ [prior blocks] ++ [context fields]``."""
    return ScopeChain(
        tuple(step_scope(transition_steps))
        + tuple(block_scope(prior_blocks))
        + tuple(context_scope(context_fields))
    )


# =============================================================================
# Literals
# =============================================================================


def quote(text: str) -> str:
    """Single-quoted JavaScript string literal."""
    escaped = (
        text.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n").replace("\r", "\\r")
    )
    return f"'{escaped}'"


def js_key(name: str) -> str:
    return name if _IDENTIFIER.match(name) else quote(name)


def member(root: str, name: str) -> str:
    return f"{root}.{name}" if _IDENTIFIER.match(name) else f"{root}[{quote(name)}]"


def to_js_literal(value: Any) -> str:
    """Render a plain Python value as a JavaScript literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    if isinstance(value, str):
        return "undefined" if is_placeholder(value) else quote(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_js_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        body = ", ".join(f"{js_key(str(k))}: {to_js_literal(v)}" for k, v in value.items())
        return "{ " + body + " }"
    if callable(value):
        return "undefined"
    return quote(str(value))


# =============================================================================
# References
# =============================================================================


def is_qualified(text: str) -> bool:
    return text == CONTEXT_ROOT or text == STORED_ROOT or text.startswith(QUALIFIED_ROOTS)


def resolve_reference(name: str, chain: ScopeChain) -> str:
    """Resolve the inside of a ``{{...}}`` reference."""
    name = name.strip()
    if is_qualified(name):
        return name
    match = _HEAD.match(name)
    head, rest = (match.group(1), match.group(2)) if match else (name, "")
    entry = chain.lookup(head)
    if entry is not None and entry.kind == ScopeKind.STORED_RESULT:
        return member(STORED_ROOT, head) + rest
    return member(CONTEXT_ROOT, head) + rest


def _template_literal(text: str, chain: ScopeChain) -> str:
    parts = []
    position = 0
    for match in TEMPLATE_PATTERN.finditer(text):
        parts.append(_escape_template(text[position : match.start()]))
        parts.append("${" + resolve_reference(match.group(1), chain) + "}")
        position = match.end()
    parts.append(_escape_template(text[position:]))
    return "`" + "".join(parts) + "`"


def _escape_template(text: str) -> str:
    return text.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


def resolve_value(value: Any, chain: ScopeChain) -> str:
    """Resolve a value (template, literal or container) to an expression."""
    if isinstance(value, str) and not is_placeholder(value):
        full = TEMPLATE_PATTERN.fullmatch(value.strip())
        if full:
            return resolve_reference(full.group(1), chain)
        if TEMPLATE_PATTERN.search(value):
            return _template_literal(value, chain)
        if is_qualified(value) or _LITERAL_SHAPE.match(value.strip()):
            return value.strip()
        return quote(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(resolve_value(v, chain) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        body = ", ".join(f"{js_key(str(k))}: {resolve_value(v, chain)}" for k, v in value.items())
        return "{ " + body + " }"
    return to_js_literal(value)
