"""Flatten a resolved state into the metadata record.

The record carries everything the render context needs that is derived
from the graph alone: status, previous status, incoming transitions, entry
delta fields, entity logic, naming and platform setup.
"""

from __future__ import annotations

import inspect
import logging
import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from src.generator.errors import ValidationError
from src.generator.graph import (
    ActionDetails,
    ImportRef,
    SetupEntry,
    StateRecord,
    Transition,
    is_placeholder,
)
from src.generator.naming import action_name, spec_file_name
from src.generator.resolvers.transition_resolver import find_previous_state
from src.generator.resolvers.variable_resolver import js_key, quote, to_js_literal

if TYPE_CHECKING:
    from src.generator.context import CompilationContext
    from src.generator.resolvers.transition_resolver import (
        ExplicitTransition,
        TransitionResolver,
    )

logger = logging.getLogger(__name__)

_EVENT_FIELD = re.compile(
    r"""event(?:\.(?:get\(\s*["'](\w+)["']|(\w+))|\[\s*["'](\w+)["']\s*\])"""
)
_CONTEXT_COLLECTION = re.compile(r"""context(?:\.(\w+)|\[\s*["'](\w+)["']\s*\])""")
_ARRAY_OPERATION = re.compile(r"\b(?:map|filter|forEach)\b|\bfor\b.+\bin\b")
_CLASS_ENTITIES = ("Booking", "User", "Event")


class DeltaField(BaseModel):
    """One field of the entry assignment, rendered as a JS expression."""

    name: str
    value: str

    @property
    def key(self) -> str:
        return js_key(self.name)


class StateMetadata(BaseModel):
    """Flat metadata record for one (state, platform) pair."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    class_name: str
    state: str | None = None
    status: str | None = None
    previous_status: str | None = None
    platform: str
    entity_name: str = "entity"
    required_fields: list[str] = Field(default_factory=list)
    setup: list[SetupEntry] = Field(default_factory=list)
    platform_setup: SetupEntry | None = None
    trigger_button: str | None = None
    after_button: str | None = None
    previous_button: str | None = None
    navigation: Any = None
    action_details: ActionDetails | None = None
    transitions: list[Transition] = Field(default_factory=list)
    primary_transition: Transition | None = None
    transition_mode: str = "none"
    delta_fields: list[DeltaField] = Field(default_factory=list)
    has_entity_logic: bool = False
    action_name: str = ""
    test_file_name: str = ""
    triggered_by: list[Any] = Field(default_factory=list)
    unique_refs: list[ImportRef] = Field(default_factory=list)

    @property
    def is_inducer(self) -> bool:
        return self.primary_transition is None

    def to_record(self) -> dict[str, Any]:
        """Introspection view (JSON-serializable)."""
        return {
            "className": self.class_name,
            "state": self.state,
            "status": self.status,
            "previousStatus": self.previous_status,
            "platform": self.platform,
            "actionName": self.action_name,
            "testFileName": self.test_file_name,
            "mode": "inducer" if self.is_inducer else "transition",
            "transitions": [
                {
                    "event": t.event,
                    "from": t.from_state,
                    "to": t.to_state,
                    "platforms": list(t.platforms),
                    "hasActionDetails": t.action_details is not None,
                }
                for t in self.transitions
            ],
            "deltaFields": [f.model_dump() for f in self.delta_fields],
            "hasEntityLogic": self.has_entity_logic,
            "entityName": self.entity_name,
            "navigation": self.navigation if _is_plain(self.navigation) else None,
            "uniqueRefs": [r.model_dump(by_alias=True) for r in self.unique_refs],
        }


def _is_plain(value: Any) -> bool:
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_plain(v) for v in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and _is_plain(v) for k, v in value.items())
    return False


# =============================================================================
# Entry assignment
# =============================================================================


def assignment_of(entry: Any) -> dict[str, Any] | None:
    """The field mapping of an entry action, if it has one."""
    if isinstance(entry, (list, tuple)):
        for item in entry:
            found = assignment_of(item)
            if found is not None:
                return found
        return None
    if not isinstance(entry, dict):
        return None
    assignment = entry.get("assignment")
    if isinstance(assignment, dict):
        return assignment
    if entry.get("type") == "xstate.assign":
        return None
    return entry


def value_text(value: Any) -> str:
    """Textual form of an assignment value (source text for functions)."""
    source = getattr(value, "source", None)
    if isinstance(source, str):
        return source
    if callable(value):
        try:
            return inspect.getsource(value)
        except Exception as e:
            # lambdas nested in literals can defeat the block finder
            logger.debug(f"No source for {value!r}: {e}")
            return getattr(value, "__name__", "")
    return repr(value)


def entry_text(entry: Any) -> str:
    assignment = assignment_of(entry)
    if assignment is None:
        return value_text(entry) if entry is not None else ""
    return "\n".join(f"{key}: {value_text(value)}" for key, value in assignment.items())


def has_entity_logic(entry: Any) -> bool:
    """Array-oriented delta: indexing plus map/filter/forEach (or a comprehension)."""
    text = entry_text(entry)
    return "[" in text and bool(_ARRAY_OPERATION.search(text))


def infer_entity_name(meta_entity: str | None, entry: Any, class_name: str) -> str:
    if meta_entity:
        return meta_entity
    for match in _CONTEXT_COLLECTION.finditer(entry_text(entry)):
        plural = match.group(1) or match.group(2)
        if plural and plural != "get":
            return plural[:-1] if plural.endswith("s") else plural
    for token in _CLASS_ENTITIES:
        if token in class_name:
            return token.lower()
    return "entity"


def _normalize_name(name: str, entity: str) -> str:
    if "." not in name:
        return name
    prefix, _, rest = name.partition(".")
    if prefix.lower() in (entity.lower(), f"{entity.lower()}s"):
        return rest
    return name


def _is_time_like(name: str) -> bool:
    return name.endswith("At") or name.endswith("Time")


def delta_value(name: str, value: Any, target_status: str) -> str:
    if isinstance(value, str) and not is_placeholder(value):
        return quote(value)
    if value is None or isinstance(value, (bool, int, float)):
        return to_js_literal(value)
    if callable(value) or is_placeholder(value):
        match = _EVENT_FIELD.search(value_text(value))
        if match:
            field = next(g for g in match.groups() if g)
            return f"options.{field} || now" if _is_time_like(name) else f"options.{field}"
        if _is_time_like(name):
            return "now"
        if name == "status":
            return quote(target_status)
        return "undefined"
    if isinstance(value, (list, tuple, dict)):
        return to_js_literal(value)
    return "undefined"


def extract_delta_fields(
    entry: Any, target_status: str, entity: str = "entity"
) -> list[DeltaField]:
    """Delta fields of the entry assignment; ``status`` always present and first."""
    assignment = assignment_of(entry) or {}
    fields: list[DeltaField] = []
    seen: set[str] = set()
    for raw_name, value in assignment.items():
        name = _normalize_name(str(raw_name), entity)
        if name in seen:
            continue
        seen.add(name)
        fields.append(DeltaField(name=name, value=delta_value(name, value, target_status)))

    status = [f for f in fields if f.name == "status"]
    others = [f for f in fields if f.name != "status"]
    if not status:
        status = [DeltaField(name="status", value=quote(target_status))]
    return status + others


# =============================================================================
# Extraction
# =============================================================================


def _select_record(graph_state: str | None, ctx: CompilationContext) -> StateRecord:
    graph = ctx.unit.graph
    if graph_state is None:
        return graph
    if graph.is_multi_state:
        if graph_state not in graph.states:
            raise ValidationError(
                f'State "{graph_state}" not found in {ctx.unit.class_name} '
                f"(available: {', '.join(graph.states)})"
            )
        return graph.states[graph_state]
    if graph_state != graph.meta.status:
        raise ValidationError(
            f'State "{graph_state}" not found in single-state unit {ctx.unit.class_name}'
        )
    return graph


def extract_metadata(
    ctx: CompilationContext,
    resolver: TransitionResolver,
    state: str | None = None,
    explicit: ExplicitTransition | None = None,
) -> StateMetadata:
    """Build the metadata record for ``state`` (root when None).

    Raises:
        ValidationError: If ``state`` is not declared in the graph.
    """
    graph = ctx.unit.graph
    record = _select_record(state, ctx)
    is_sub_state = state is not None and graph.is_multi_state
    meta = record.meta
    status = meta.status or (state if is_sub_state else None)

    declared_previous = meta.declared_previous_status
    resolved = resolver.resolve_incoming(
        status or state or "", graph, ctx, explicit=explicit, declared_previous=declared_previous
    )
    primary = resolved.primary

    previous_status = declared_previous
    if previous_status is None and primary is not None:
        previous_status = primary.from_state
    if previous_status is None and is_sub_state:
        previous_status = find_previous_state(graph, state, ctx.platform)

    entity = infer_entity_name(meta.entity, record.entry, ctx.unit.class_name)
    first_setup = meta.setup[0] if meta.setup else None
    override = meta.action_name or (first_setup.action_name if first_setup else None)
    name = action_name(status or "", primary.from_state if primary else None, override)

    explicit_file = meta.test_file or (first_setup.test_file if first_setup else None)
    file_name = PurePosixPath(explicit_file.replace("\\", "/")).name if explicit_file else None
    file_name = file_name or spec_file_name(
        name, ctx.platform_spec.suffix, primary.event if primary else None
    )

    metadata = StateMetadata(
        class_name=ctx.unit.class_name,
        state=state,
        status=status,
        previous_status=previous_status,
        platform=ctx.platform,
        entity_name=entity,
        required_fields=meta.required_fields,
        setup=meta.setup,
        platform_setup=next((s for s in meta.setup if s.platform == ctx.platform), None),
        trigger_button=meta.trigger_button,
        after_button=meta.after_button,
        previous_button=meta.previous_button,
        navigation=meta.navigation,
        action_details=meta.action_details,
        transitions=resolved.transitions,
        primary_transition=primary,
        transition_mode=resolved.mode,
        delta_fields=extract_delta_fields(record.entry, status or "", entity),
        has_entity_logic=has_entity_logic(record.entry),
        action_name=name,
        test_file_name=file_name,
        triggered_by=ctx.unit.triggered_by,
    )
    logger.debug(
        f"Extracted {metadata.class_name}:{state or status} "
        f"(previous={previous_status}, action={name})"
    )
    return metadata
