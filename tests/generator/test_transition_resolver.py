"""Tests for incoming-transition resolution."""

from src.generator.config import ProjectConfig
from src.generator.discovery import DiscoveryIndex, find_incoming, load_discovery_index
from src.generator.graph import StateGraph, Transition
from src.generator.loader.source_loader import SourceLoader
from src.generator.registry import UnitLocator
from src.generator.resolvers.transition_resolver import (
    ExplicitTransition,
    TransitionResolver,
    dedupe,
    find_previous_state,
    pick_previous,
)
from tests.conftest import DISCOVERY_PATH, make_context, write_discovery, write_unit


def _resolver(project, unit_name, platform="web"):
    loader = SourceLoader()
    unit = loader.load(project / "tests" / "implications" / unit_name)
    ctx = make_context(project_root=project, platform=platform, unit=unit)
    locator = UnitLocator(project, ProjectConfig(), loader)
    index = load_discovery_index(project / DISCOVERY_PATH)
    return TransitionResolver(loader, locator, index), ctx


def _edge(from_state, event, to_state="accepted"):
    return Transition(event=event, from_state=from_state, to_state=to_state)


# =============================================================================
# Pure helpers
# =============================================================================


def test_dedupe_keeps_first_of_each_from_event_pair():
    first = _edge("pending", "ACCEPT")
    other = _edge("review", "ACCEPT")

    assert dedupe([first, _edge("pending", "ACCEPT"), other]) == [first, other]


def test_pick_previous_prefers_priority_names():
    candidates = [_edge("review", "APPROVE"), _edge("pending", "ACCEPT"), _edge("draft", "GO")]

    assert pick_previous(candidates).from_state == "draft"
    assert pick_previous([_edge("review", "APPROVE")]).from_state == "review"
    assert pick_previous([]) is None


def test_find_previous_state_ignores_self_loops():
    graph = StateGraph.model_validate(
        {
            "initial": "pending",
            "states": {
                "accepted": {"on": {"REFRESH": "accepted"}},
                "review": {"on": {"APPROVE": "accepted"}},
            },
        }
    )

    assert find_previous_state(graph, "accepted") == "review"


def test_find_previous_state_keeps_edges_from_same_suffix_states():
    graph = StateGraph.model_validate(
        {
            "initial": "guest",
            "states": {
                "guest": {"on": {"LOG_IN": "logged_in"}},
                "logged_in": {"on": {"CHECK_IN": "checked_in"}},
                "checked_in": {},
            },
        }
    )

    assert find_previous_state(graph, "checked_in") == "logged_in"


def test_find_incoming_ignores_targets_sharing_a_suffix():
    index = DiscoveryIndex.from_dict(
        {"transitions": [{"from": "guest", "event": "LOG_IN", "to": "logged_in"}]}
    )

    assert find_incoming("checked_in", index) == []
    assert [e.event for e in find_incoming("logged_in", index)] == ["LOG_IN"]


def test_find_incoming_filters_platform_and_dedupes():
    index = DiscoveryIndex.from_dict(
        {
            "transitions": [
                {"from": "pending", "event": "ACCEPT", "to": "accepted", "platforms": ["web"]},
                {"from": "pending", "event": "ACCEPT", "to": "booking_accepted"},
                {"from": "review", "event": "APPROVE", "to": "accepted", "platforms": ["cms"]},
                {"from": "pending", "to": "accepted"},
                "junk",
            ]
        }
    )

    assert len(index) == 3
    assert [e.from_state for e in find_incoming("accepted", index, "web")] == ["pending"]
    assert [e.from_state for e in find_incoming("accepted", index)] == ["pending", "review"]


# =============================================================================
# Resolver
# =============================================================================


class TestDiscoveryMode:
    def test_duplicate_index_entries_yield_one_hydrated_transition(self, booking_project):
        resolver, ctx = _resolver(booking_project, "AcceptedImplications.py")

        resolved = resolver.resolve_incoming("accepted", ctx.unit.graph, ctx)

        assert resolved.mode == "discovery"
        assert len(resolved.transitions) == 1
        assert resolved.primary.event == "ACCEPT"
        assert resolved.primary.action_details.stored_names == ["bookingId"]
        assert resolved.primary.source_path.endswith("PendingImplications.py")
        assert ctx.degradations == []

    def test_ambiguous_incoming_degrades_to_first(self, booking_project):
        write_discovery(
            booking_project,
            [
                {"from": "pending", "event": "ACCEPT", "to": "accepted"},
                {"from": "review", "event": "APPROVE", "to": "accepted"},
            ],
        )
        resolver, ctx = _resolver(booking_project, "AcceptedImplications.py")

        resolved = resolver.resolve_incoming("accepted", ctx.unit.graph, ctx)

        assert [t.from_state for t in resolved.transitions] == ["pending", "review"]
        assert resolved.primary.from_state == "pending"
        subjects = [d.subject for d in ctx.degradations]
        assert "primary transition into accepted" in subjects
        # review has no unit on disk
        assert "review --APPROVE--> accepted" in subjects

    def test_declared_previous_picks_primary_without_degrading(self, booking_project):
        write_discovery(
            booking_project,
            [
                {"from": "review", "event": "APPROVE", "to": "accepted"},
                {"from": "pending", "event": "ACCEPT", "to": "accepted"},
            ],
        )
        resolver, ctx = _resolver(booking_project, "AcceptedImplications.py")

        resolved = resolver.resolve_incoming(
            "accepted", ctx.unit.graph, ctx, declared_previous="pending"
        )

        assert resolved.primary.from_state == "pending"
        assert all(d.subject != "primary transition into accepted" for d in ctx.degradations)


class TestGraphMode:
    def test_falls_back_to_own_graph(self, project):
        write_unit(
            project,
            "BookingImplications.py",
            """
            class BookingImplications:
                xstate_config = {
                    "initial": "pending",
                    "states": {
                        "review": {"on": {"APPROVE": "accepted"}},
                        "pending": {"on": {"ACCEPT": "accepted"}},
                        "accepted": {},
                    },
                }
            """,
        )
        resolver, ctx = _resolver(project, "BookingImplications.py")

        resolved = resolver.resolve_incoming("accepted", ctx.unit.graph, ctx)

        assert resolved.mode == "graph"
        assert resolved.primary.from_state == "pending"
        assert resolved.primary.source_path == ctx.unit.path

    def test_transitions_for_other_platforms_are_skipped(self, project):
        write_unit(
            project,
            "BookingImplications.py",
            """
            class BookingImplications:
                xstate_config = {
                    "initial": "review",
                    "states": {
                        "review": {
                            "on": {"APPROVE": {"target": "accepted", "platforms": ["cms"]}},
                        },
                        "accepted": {},
                    },
                }
            """,
        )
        web_resolver, web_ctx = _resolver(project, "BookingImplications.py")
        cms_resolver, cms_ctx = _resolver(project, "BookingImplications.py", platform="cms")

        on_web = web_resolver.resolve_incoming("accepted", web_ctx.unit.graph, web_ctx)
        on_cms = cms_resolver.resolve_incoming("accepted", cms_ctx.unit.graph, cms_ctx)

        assert on_web.is_inducer
        assert on_cms.mode == "graph"
        assert on_cms.primary.from_state == "review"

    def test_unreached_state_is_inducer(self, project):
        write_unit(
            project, "DraftImplications.py", 'xstate_config = {"meta": {"status": "draft"}}\n'
        )
        resolver, ctx = _resolver(project, "DraftImplications.py")

        resolved = resolver.resolve_incoming("draft", ctx.unit.graph, ctx)

        assert resolved.is_inducer
        assert resolved.mode == "none"
        assert resolved.transitions == []


class TestExplicitMode:
    def test_reads_transition_from_source_unit(self, booking_project):
        resolver, ctx = _resolver(booking_project, "AcceptedImplications.py")

        resolved = resolver.resolve_incoming(
            "accepted",
            ctx.unit.graph,
            ctx,
            explicit=ExplicitTransition(event="ACCEPT", from_state="pending"),
        )

        assert resolved.mode == "explicit"
        assert resolved.transitions == [resolved.primary]
        assert resolved.primary.action_details.steps[0].method == "accept"

    def test_rereads_source_from_disk(self, booking_project):
        resolver, ctx = _resolver(booking_project, "AcceptedImplications.py")
        explicit = ExplicitTransition(event="ACCEPT", from_state="pending")
        resolver.resolve_incoming("accepted", ctx.unit.graph, ctx, explicit=explicit)

        pending = booking_project / "tests" / "implications" / "PendingImplications.py"
        pending.write_text(
            pending.read_text().replace('"method": "accept"', '"method": "confirm"')
        )
        resolved = resolver.resolve_incoming("accepted", ctx.unit.graph, ctx, explicit=explicit)

        assert resolved.primary.action_details.steps[0].method == "confirm"

    def test_transition_for_another_platform_degrades(self, project):
        write_unit(
            project,
            "BookingImplications.py",
            """
            class BookingImplications:
                xstate_config = {
                    "initial": "pending",
                    "states": {
                        "pending": {
                            "on": {"ACCEPT": {"target": "accepted", "platforms": ["cms"]}},
                        },
                        "accepted": {},
                    },
                }
            """,
        )
        resolver, ctx = _resolver(project, "BookingImplications.py")

        resolved = resolver.resolve_incoming(
            "accepted",
            ctx.unit.graph,
            ctx,
            explicit=ExplicitTransition(event="ACCEPT", from_state="pending"),
        )

        assert resolved.primary.platforms == ("cms",)
        assert [d.fallback for d in ctx.degradations] == [
            "used on web although declared for other platforms"
        ]
        assert ctx.degradations[0].alternatives == ("cms",)

    def test_unknown_event_degrades_to_bare_transition(self, booking_project):
        resolver, ctx = _resolver(booking_project, "AcceptedImplications.py")

        resolved = resolver.resolve_incoming(
            "accepted",
            ctx.unit.graph,
            ctx,
            explicit=ExplicitTransition(event="TELEPORT", from_state="pending"),
        )

        assert resolved.primary.event == "TELEPORT"
        assert resolved.primary.to_state == "accepted"
        assert resolved.primary.action_details is None
        assert ctx.degradations[0].fallback == "bare transition without action details"
