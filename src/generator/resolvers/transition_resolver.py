"""Resolve the transitions that land on a target state.

Explicit mode re-reads the named transition from the source unit on disk.
Discovery mode consults the discovery index snapshot and loads each source
unit for the transition's action details. Without index matches, a single
previous-state heuristic scans the unit's own graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from src.generator.discovery import DiscoveryIndex, IndexedTransition, find_incoming
from src.generator.errors import GeneratorError
from src.generator.graph import StateGraph, StateRecord, Transition
from src.generator.naming import state_matches

if TYPE_CHECKING:
    from src.generator.context import CompilationContext
    from src.generator.loader.source_loader import SourceLoader
    from src.generator.registry import UnitLocator

logger = logging.getLogger(__name__)

PREVIOUS_STATE_PRIORITY = ("draft", "filling", "empty", "pending", "created")


@dataclass(frozen=True)
class ExplicitTransition:
    """Caller-named incoming transition ``from_state --event--> target``."""

    event: str
    from_state: str


@dataclass
class ResolvedTransitions:
    """Incoming transitions of one target, with the primary one chosen."""

    transitions: list[Transition] = field(default_factory=list)
    primary: Transition | None = None
    mode: str = "none"  # explicit | discovery | graph | none

    @property
    def is_inducer(self) -> bool:
        return self.primary is None


# =============================================================================
# Pure helpers
# =============================================================================


def dedupe(transitions: list[Transition]) -> list[Transition]:
    """Drop repeated (from, event) pairs, keeping the first."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for transition in transitions:
        if transition.key in seen:
            continue
        seen.add(transition.key)
        unique.append(transition)
    return unique


def graph_incoming(
    graph: StateGraph,
    target: str,
    source_path: str | None = None,
    platform: str | None = None,
) -> list[Transition]:
    """Transitions inside one graph that land on ``target`` (self-loops excluded).

    With a platform, transitions restricted to other platforms are dropped.
    """
    return [
        t
        for t in graph.all_transitions(source_path)
        if state_matches(t.to_state, target)
        and not state_matches(t.from_state, target)
        and (platform is None or t.applies_to(platform))
    ]


def pick_previous(candidates: list[Transition]) -> Transition | None:
    """Previous-state heuristic: priority names first, else the first found."""
    for preferred in PREVIOUS_STATE_PRIORITY:
        for transition in candidates:
            if state_matches(transition.from_state, preferred):
                return transition
    return candidates[0] if candidates else None


def find_previous_state(
    graph: StateGraph, target: str, platform: str | None = None
) -> str | None:
    """Name of the most likely previous state of ``target`` in ``graph``."""
    chosen = pick_previous(graph_incoming(graph, target, platform=platform))
    return chosen.from_state if chosen else None


def record_in(graph: StateGraph, state: str) -> StateRecord | None:
    """The record of ``state`` inside ``graph`` (sub-state, or root by status)."""
    if state in graph.states:
        return graph.states[state]
    for name, record in graph.states.items():
        if state_matches(name, state) or state_matches(record.meta.status, state):
            return record
    if state_matches(graph.meta.status, state):
        return graph
    return None


# =============================================================================
# Resolver
# =============================================================================


class TransitionResolver:
    """Finds incoming transitions for a target state."""

    def __init__(
        self,
        loader: SourceLoader,
        locator: UnitLocator,
        index: DiscoveryIndex | None = None,
    ):
        self.loader = loader
        self.locator = locator
        self.index = index

    def resolve_incoming(
        self,
        target: str,
        graph: StateGraph,
        ctx: CompilationContext,
        explicit: ExplicitTransition | None = None,
        declared_previous: str | None = None,
    ) -> ResolvedTransitions:
        """Resolve all transitions landing on ``target``.

        An unresolved target yields an empty result (inducer state).
        """
        if explicit is not None:
            transition = self.resolve_explicit(explicit, target, ctx)
            return ResolvedTransitions([transition], transition, "explicit")

        transitions: list[Transition] = []
        mode = "none"
        if self.index is not None:
            transitions = [
                self._hydrate(entry, ctx)
                for entry in find_incoming(target, self.index, ctx.platform)
            ]
            if transitions:
                mode = "discovery"

        if not transitions:
            previous = pick_previous(graph_incoming(graph, target, ctx.unit.path, ctx.platform))
            if previous is not None:
                transitions = [previous]
                mode = "graph"

        transitions = dedupe(transitions)
        primary = self._choose_primary(target, transitions, declared_previous, ctx)
        logger.info(
            f"Resolved {len(transitions)} incoming transition(s) for {target} ({mode})"
        )
        return ResolvedTransitions(transitions, primary, mode)

    def resolve_explicit(
        self, explicit: ExplicitTransition, target: str, ctx: CompilationContext
    ) -> Transition:
        """Re-read ``from_state.on[event]`` from the source unit on disk.

        Falls back to a bare transition (no action details) when the source
        unit or the event cannot be found.
        """
        attempted: list[str] = []
        for path in self._source_candidates(explicit.from_state, ctx):
            attempted.append(str(path))
            self.loader.invalidate(path)
            try:
                unit = self.loader.load(path)
            except GeneratorError as e:
                logger.debug(f"Cannot reload {path}: {e}")
                continue
            record = record_in(unit.graph, explicit.from_state)
            if record is None or explicit.event not in record.on:
                continue
            found = Transition.from_record(
                explicit.event, explicit.from_state, record.on[explicit.event], str(path)
            )
            if not state_matches(found.to_state, target):
                ctx.degrade(
                    "transition",
                    f"{explicit.from_state} --{explicit.event}-->",
                    f"declared target {found.to_state} kept",
                    (target,),
                )
            if not found.applies_to(ctx.platform):
                ctx.degrade(
                    "transition",
                    f"{explicit.from_state} --{explicit.event}--> {found.to_state}",
                    f"used on {ctx.platform} although declared for other platforms",
                    found.platforms,
                )
            return found

        ctx.degrade(
            "transition",
            f"{explicit.from_state} --{explicit.event}--> {target}",
            "bare transition without action details",
            tuple(attempted),
        )
        return Transition(event=explicit.event, from_state=explicit.from_state, to_state=target)

    # =========================================================================
    # Internals
    # =========================================================================

    def _source_candidates(self, from_state: str, ctx: CompilationContext) -> list[Path]:
        candidates = []
        own = Path(ctx.unit.path)
        if record_in(ctx.unit.graph, from_state) is not None:
            candidates.append(own)
        located = self.locator.locate(from_state)
        if located is not None and located.resolve() != own.resolve():
            candidates.append(located)
        return candidates

    def _hydrate(self, entry: IndexedTransition, ctx: CompilationContext) -> Transition:
        """Attach the source unit's action details to an index entry."""
        paths: list[Path] = []
        if entry.source_file:
            source = Path(entry.source_file)
            paths.append(source if source.is_absolute() else ctx.project_root / source)
        located = self.locator.locate(entry.from_state)
        if located is not None:
            paths.append(located)

        for path in paths:
            try:
                unit = self.loader.load(path)
            except GeneratorError as e:
                logger.debug(f"Cannot load source unit {path}: {e}")
                continue
            record = record_in(unit.graph, entry.from_state)
            if record is not None and entry.event in record.on:
                declared = record.on[entry.event]
                return Transition(
                    event=entry.event,
                    from_state=entry.from_state,
                    to_state=entry.to_state,
                    platforms=tuple(declared.platforms) or entry.platforms,
                    action_details=declared.action_details,
                    source_path=str(path),
                )

        ctx.degrade(
            "transition",
            f"{entry.from_state} --{entry.event}--> {entry.to_state}",
            "index entry without action details",
            tuple(str(p) for p in paths),
        )
        return entry.to_transition()

    def _choose_primary(
        self,
        target: str,
        transitions: list[Transition],
        declared_previous: str | None,
        ctx: CompilationContext,
    ) -> Transition | None:
        if not transitions:
            return None
        if declared_previous:
            for transition in transitions:
                if state_matches(transition.from_state, declared_previous):
                    return transition
        if len(transitions) > 1:
            ctx.degrade(
                "transition",
                f"primary transition into {target}",
                f"{transitions[0].from_state} --{transitions[0].event}-->",
                tuple(f"{t.from_state} --{t.event}-->" for t in transitions[1:]),
            )
        return transitions[0]
