"""State-graph data model.

Typed view over the declarative state graph carried by a state-definition
unit. A graph is either single-state (meta/entry/on at the root) or
multi-state (root has ``initial`` + ``states``).

Units are authored with the camelCase vocabulary of the block editor
(``requiredFields``, ``actionDetails``, ``storeAs``); every model accepts
the snake_case field names as well.

Values reconstructed from source text may be opaque placeholders
(``<function>``, ``<call>``, ``<template>``, ``<expression>``). The models
tolerate them: list-typed fields coerce a placeholder to an empty list and
string-typed fields coerce it to ``None``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.generator.errors import ResolutionDegraded

# =============================================================================
# Placeholders
# =============================================================================


class Placeholder(str, Enum):
    """Markers left behind by the syntax-tree fallback loader."""

    FUNCTION = "<function>"
    CALL = "<call>"
    TEMPLATE = "<template>"
    EXPRESSION = "<expression>"


PLACEHOLDERS = frozenset(p.value for p in Placeholder)


def is_placeholder(value: Any) -> bool:
    """True when value is one of the opaque placeholder markers."""
    return isinstance(value, str) and value in PLACEHOLDERS


def list_or_empty(value: Any) -> list:
    if value is None or is_placeholder(value):
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def mappings_only(value: Any) -> list:
    return [item for item in list_or_empty(value) if isinstance(item, (dict, BaseModel))]


def str_or_none(value: Any) -> Any:
    if is_placeholder(value):
        return None
    return value


class _Model(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="allow",
        arbitrary_types_allowed=True,
    )


# =============================================================================
# Actions
# =============================================================================


class ImportRef(BaseModel):
    """External reference a generated test must make available."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    class_name: str = Field(alias="className")
    path: str | None = None
    var_name: str | None = Field(default=None, alias="varName")

    @property
    def instance_name(self) -> str:
        if self.var_name:
            return self.var_name
        return self.class_name[:1].lower() + self.class_name[1:]


class ActionStep(_Model):
    """One ordered action inside a transition."""

    instance: str = "this"
    method: str
    args: list[Any] = Field(default_factory=list)
    store_as: str | None = Field(default=None, alias="storeAs")
    conditions: Any = None
    is_async: bool = Field(default=True, alias="await")

    coerce_args = field_validator("args", mode="before")(list_or_empty)
    coerce_store_as = field_validator("store_as", mode="before")(str_or_none)


class ActionDetails(_Model):
    """Action metadata attached to a transition or a state."""

    description: str | None = None
    imports: list[ImportRef] = Field(default_factory=list)
    steps: list[ActionStep] = Field(default_factory=list)

    coerce_lists = field_validator("imports", "steps", mode="before")(mappings_only)
    coerce_description = field_validator("description", mode="before")(str_or_none)

    @property
    def stored_names(self) -> list[str]:
        """storeAs names in declaration order (duplicates preserved)."""
        return [step.store_as for step in self.steps if step.store_as]


# =============================================================================
# Transitions
# =============================================================================


class TransitionRecord(_Model):
    """A transition as declared inside a state's ``on`` mapping."""

    target: str
    platforms: list[str] = Field(default_factory=list)
    action_details: ActionDetails | None = Field(default=None, alias="actionDetails")

    coerce_platforms = field_validator("platforms", mode="before")(list_or_empty)

    @model_validator(mode="before")
    @classmethod
    def _from_shorthand(cls, value: Any) -> Any:
        # "ACCEPT": "accepted"  |  "ACCEPT": [{"target": ...}, ...]
        if isinstance(value, list):
            value = value[0] if value else {}
        if isinstance(value, str):
            return {"target": value}
        return value


class Transition(BaseModel):
    """A resolved edge ``from --event--> to``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event: str
    from_state: str = Field(alias="from")
    to_state: str = Field(alias="to")
    platforms: tuple[str, ...] = ()
    action_details: ActionDetails | None = Field(default=None, alias="actionDetails")
    source_path: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Deduplication key."""
        return (self.from_state, self.event)

    def applies_to(self, platform: str) -> bool:
        """Transitions without a platform list apply everywhere."""
        return not self.platforms or platform in self.platforms

    @classmethod
    def from_record(
        cls,
        event: str,
        from_state: str,
        record: TransitionRecord,
        source_path: str | None = None,
    ) -> Transition:
        return cls(
            event=event,
            from_state=from_state,
            to_state=record.target,
            platforms=tuple(record.platforms),
            action_details=record.action_details,
            source_path=source_path,
        )


# =============================================================================
# States
# =============================================================================


class SetupEntry(_Model):
    """Per-platform setup entry (``meta.setup[]``)."""

    platform: str | None = None
    test_file: str | None = Field(default=None, alias="testFile")
    action_name: str | None = Field(default=None, alias="actionName")

    coerce_strings = field_validator("platform", "test_file", "action_name", mode="before")(
        str_or_none
    )


class StateMeta(_Model):
    """``meta`` block of a state record."""

    status: str | None = None
    platform: str | None = None
    entity: str | None = None
    required_fields: list[str] = Field(default_factory=list, alias="requiredFields")
    setup: list[SetupEntry] = Field(default_factory=list)
    requires: dict[str, Any] = Field(default_factory=dict)
    previous_status: str | None = Field(default=None, alias="previousStatus")
    action_name: str | None = Field(default=None, alias="actionName")
    test_file: str | None = Field(default=None, alias="testFile")
    trigger_button: str | None = Field(default=None, alias="triggerButton")
    after_button: str | None = Field(default=None, alias="afterButton")
    previous_button: str | None = Field(default=None, alias="previousButton")
    action_details: ActionDetails | None = Field(default=None, alias="actionDetails")
    navigation: Any = None
    mirrors_on: dict[str, Any] | None = Field(default=None, alias="mirrorsOn")

    coerce_fields = field_validator("required_fields", mode="before")(list_or_empty)
    coerce_setup = field_validator("setup", mode="before")(mappings_only)
    coerce_strings = field_validator(
        "status",
        "platform",
        "entity",
        "previous_status",
        "action_name",
        "test_file",
        "trigger_button",
        "after_button",
        "previous_button",
        mode="before",
    )(str_or_none)

    @field_validator("requires", mode="before")
    @classmethod
    def _coerce_requires(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("action_details", "mirrors_on", mode="before")
    @classmethod
    def _drop_opaque(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @property
    def declared_previous_status(self) -> str | None:
        """Previous status declared on the state, if any."""
        if self.previous_status:
            return self.previous_status
        value = self.requires.get("previousStatus")
        return value if isinstance(value, str) and not is_placeholder(value) else None


class StateRecord(_Model):
    """A single state: meta, entry assignment and outgoing transitions."""

    meta: StateMeta = Field(default_factory=StateMeta)
    entry: Any = None
    on: dict[str, TransitionRecord] = Field(default_factory=dict)

    @field_validator("meta", mode="before")
    @classmethod
    def _coerce_meta(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, StateMeta)) else {}

    @field_validator("on", mode="before")
    @classmethod
    def _coerce_on(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return {}
        # opaque targets cannot be followed
        return {
            event: record
            for event, record in value.items()
            if not is_placeholder(record)
            and record not in (None, "", [])
            and not (isinstance(record, dict) and is_placeholder(record.get("target")))
        }

    def outgoing(self, from_state: str, source_path: str | None = None) -> list[Transition]:
        """Outgoing transitions in declaration order."""
        return [
            Transition.from_record(event, from_state, record, source_path)
            for event, record in self.on.items()
        ]


class StateGraph(StateRecord):
    """Root of a state graph (single- or multi-state)."""

    id: str | None = None
    initial: str | None = None
    states: dict[str, StateRecord] = Field(default_factory=dict)
    context: Any = None

    @field_validator("states", mode="before")
    @classmethod
    def _coerce_states(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return {}
        return {name: record for name, record in value.items() if isinstance(record, dict)}

    @property
    def is_multi_state(self) -> bool:
        return bool(self.initial and self.states)

    def record_for(self, state: str | None) -> StateRecord:
        """Return the record for a sub-state, or the root for ``None``.

        Raises:
            KeyError: If the sub-state is not declared.
        """
        if state is None:
            return self
        return self.states[state]

    def status_of(self, state: str | None) -> str | None:
        """Status of a sub-state (its meta.status, else its name)."""
        if state is None:
            return self.meta.status
        record = self.states.get(state)
        if record is None:
            return None
        return record.meta.status or state

    def all_transitions(self, source_path: str | None = None) -> list[Transition]:
        """Every transition declared anywhere in the graph.

        Sub-state transitions come first in declaration order, then the
        root's own transitions (from the root status).
        """
        found: list[Transition] = []
        for name, record in self.states.items():
            found.extend(record.outgoing(name, source_path))
        if self.on and self.meta.status:
            found.extend(self.outgoing(self.meta.status, source_path))
        return found


# =============================================================================
# Units
# =============================================================================


class ImplicationUnit(BaseModel):
    """A loaded state-definition unit."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    class_name: str
    path: str
    graph: StateGraph
    mirrors_on: dict[str, Any] | None = None
    triggered_by: list[Any] = Field(default_factory=list)
    strategy: str = "dynamic"  # dynamic | syntax | json
    project_root: str | None = None
    degradations: list[ResolutionDegraded] = Field(default_factory=list)

    @field_validator("mirrors_on", mode="before")
    @classmethod
    def _drop_opaque(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    coerce_triggered_by = field_validator("triggered_by", mode="before")(list_or_empty)
