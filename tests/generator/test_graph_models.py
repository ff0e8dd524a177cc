"""Tests for the state-graph models."""

import pytest

from src.generator.graph import (
    ActionDetails,
    ImportRef,
    StateGraph,
    Transition,
    TransitionRecord,
    is_placeholder,
)


def test_transition_shorthands():
    """String and list forms both normalize to a record with a target."""
    assert TransitionRecord.model_validate("accepted").target == "accepted"
    record = TransitionRecord.model_validate([{"target": "a"}, {"target": "b"}])
    assert record.target == "a"


def test_camel_and_snake_field_names_are_accepted():
    camel = StateGraph.model_validate({"meta": {"requiredFields": ["a"], "previousStatus": "p"}})
    snake = StateGraph.model_validate({"meta": {"required_fields": ["a"], "previous_status": "p"}})

    assert camel.meta.required_fields == snake.meta.required_fields == ["a"]
    assert camel.meta.declared_previous_status == "p"


def test_placeholders_are_tolerated():
    graph = StateGraph.model_validate(
        {
            "meta": {
                "status": "<expression>",
                "requiredFields": "<call>",
                "setup": ["<function>", {"platform": "web"}],
                "actionDetails": "<call>",
            },
            "on": {"GO": "<call>", "STAY": {"target": "<expression>"}, "DONE": "done"},
        }
    )

    assert graph.meta.status is None
    assert graph.meta.required_fields == []
    assert [entry.platform for entry in graph.meta.setup] == ["web"]
    assert graph.meta.action_details is None
    assert list(graph.on) == ["DONE"]


def test_declared_previous_from_requires():
    graph = StateGraph.model_validate({"meta": {"requires": {"previousStatus": "pending"}}})

    assert graph.meta.declared_previous_status == "pending"


def test_action_details_stored_names_keep_duplicates():
    details = ActionDetails.model_validate(
        {
            "steps": [
                {"method": "a", "storeAs": "x"},
                {"method": "b"},
                {"method": "c", "storeAs": "x"},
            ]
        }
    )

    assert details.stored_names == ["x", "x"]
    assert details.steps[1].instance == "this"


def test_import_ref_instance_name():
    assert ImportRef(class_name="BookingActions").instance_name == "bookingActions"
    assert ImportRef(className="BookingActions", varName="actions").instance_name == "actions"


class TestMultiState:
    GRAPH = {
        "id": "booking",
        "initial": "pending",
        "meta": {"status": "booking"},
        "states": {
            "pending": {"on": {"ACCEPT": "accepted", "REJECT": "rejected"}},
            "accepted": {"meta": {"status": "booking_accepted"}, "on": {"CANCEL": "cancelled"}},
            "broken": "<call>",
        },
    }

    def test_is_multi_state(self):
        graph = StateGraph.model_validate(self.GRAPH)

        assert graph.is_multi_state
        assert list(graph.states) == ["pending", "accepted"]

    def test_status_of(self):
        graph = StateGraph.model_validate(self.GRAPH)

        assert graph.status_of(None) == "booking"
        assert graph.status_of("pending") == "pending"
        assert graph.status_of("accepted") == "booking_accepted"
        assert graph.status_of("missing") is None

    def test_record_for_unknown_state_raises(self):
        graph = StateGraph.model_validate(self.GRAPH)

        with pytest.raises(KeyError):
            graph.record_for("missing")

    def test_all_transitions_in_declaration_order(self):
        graph = StateGraph.model_validate(self.GRAPH)

        edges = [(t.from_state, t.event, t.to_state) for t in graph.all_transitions()]

        assert edges == [
            ("pending", "ACCEPT", "accepted"),
            ("pending", "REJECT", "rejected"),
            ("accepted", "CANCEL", "cancelled"),
        ]


def test_transition_platform_filter():
    everywhere = Transition(event="GO", from_state="a", to_state="b")
    web_only = Transition(event="GO", from_state="a", to_state="b", platforms=("web",))

    assert everywhere.applies_to("cms")
    assert web_only.applies_to("web")
    assert not web_only.applies_to("cms")
    assert everywhere.key == ("a", "GO")


def test_is_placeholder():
    assert is_placeholder("<function>")
    assert not is_placeholder("function")
    assert not is_placeholder(None)
