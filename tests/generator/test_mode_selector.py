"""Tests for structured/raw mode selection."""

from src.generator.blocks.mode_selector import (
    REASON_CUSTOM_CODE,
    REASON_EXTERNAL_CALL,
    REASON_FUNCTION_ASSERTIONS,
    REASON_GLOBAL_OVERRIDE,
    EmissionMode,
    is_external_call,
    select_mode,
)
from src.generator.screens import Block

VISIBLE = Block(type="ui-assertion", data={"visible": ["title"]})
TRUTHY = Block(type="ui-assertion", data={"truthy": ["isOpen"]})
CUSTOM = Block(type="custom-code", code="await page.reload();")
EMPTY_CUSTOM = Block(type="custom-code", code="   ")
OWN_CALL = Block(type="function-call", data={"instance": "this", "method": "refresh"})
EXTERNAL_CALL = Block(type="function-call", data={"instance": "navBar", "method": "open"})


def test_plain_assertions_are_structured():
    decision = select_mode([VISIBLE, OWN_CALL, EMPTY_CUSTOM], "bookingDetails", is_native=False)

    assert decision.mode == EmissionMode.STRUCTURED
    assert decision.reason is None
    assert not decision.is_raw


def test_global_override():
    decision = select_mode([VISIBLE], "bookingDetails", is_native=False, force_raw=True)

    assert decision.is_raw
    assert decision.reason == REASON_GLOBAL_OVERRIDE


def test_reasons_in_priority_order():
    blocks = [EXTERNAL_CALL, TRUTHY, CUSTOM]

    assert select_mode(blocks, "bookingDetails", False).reason == REASON_CUSTOM_CODE
    assert select_mode(blocks[:2], "bookingDetails", False).reason == REASON_FUNCTION_ASSERTIONS
    assert select_mode(blocks[:1], "bookingDetails", False).reason == REASON_EXTERNAL_CALL


def test_native_platforms_downgrade_to_structured():
    decision = select_mode([CUSTOM], "bookingDetails", is_native=True)

    assert decision.mode == EmissionMode.STRUCTURED
    assert decision.downgraded_from == REASON_CUSTOM_CODE


def test_external_call_detection():
    own = Block(type="function-call", data={"instance": "bookingDetails", "method": "x"})

    assert is_external_call(EXTERNAL_CALL, "bookingDetails")
    assert not is_external_call(own, "bookingDetails")
    assert not is_external_call(OWN_CALL, "bookingDetails")
    assert not is_external_call(VISIBLE, "bookingDetails")
