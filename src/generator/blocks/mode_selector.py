"""Per-screen choice between structured and raw emission."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from src.generator.screens import Block, BlockType

logger = logging.getLogger(__name__)

REASON_GLOBAL_OVERRIDE = "global override"
REASON_CUSTOM_CODE = "custom code"
REASON_FUNCTION_ASSERTIONS = "function assertions"
REASON_EXTERNAL_CALL = "external function call"

SELF_INSTANCES = ("", "this", "screen", "screenObject")


class EmissionMode(str, Enum):
    STRUCTURED = "structured"
    RAW = "raw"


@dataclass(frozen=True)
class ModeDecision:
    mode: EmissionMode
    reason: str | None = None
    downgraded_from: str | None = None

    @property
    def is_raw(self) -> bool:
        return self.mode == EmissionMode.RAW


def is_external_call(block: Block, own_instance: str) -> bool:
    """A function-call block whose target is not the screen's own object."""
    if block.type != BlockType.FUNCTION_CALL:
        return False
    instance = block.call_data().instance or ""
    return instance not in SELF_INSTANCES and instance != own_instance


def raw_mode_reason(blocks: list[Block], own_instance: str, force_raw: bool = False) -> str | None:
    """First reason (in priority order) that forces raw mode, or None.

    ``blocks`` must already exclude disabled blocks.
    """
    if force_raw:
        return REASON_GLOBAL_OVERRIDE
    if any(b.type == BlockType.CUSTOM_CODE and b.source_code().strip() for b in blocks):
        return REASON_CUSTOM_CODE
    if any(
        b.type == BlockType.UI_ASSERTION and b.ui_data().has_function_assertions for b in blocks
    ):
        return REASON_FUNCTION_ASSERTIONS
    if any(is_external_call(b, own_instance) for b in blocks):
        return REASON_EXTERNAL_CALL
    return None


def select_mode(
    blocks: list[Block], own_instance: str, is_native: bool, force_raw: bool = False
) -> ModeDecision:
    """Choose the emission mode for one screen.

    Native platforms always get structured mode: raw expressions use
    browser-only locator APIs.
    """
    reason = raw_mode_reason(blocks, own_instance, force_raw)
    if reason is None:
        return ModeDecision(EmissionMode.STRUCTURED)
    if is_native:
        logger.debug(f"Raw mode ({reason}) downgraded to structured on native platform")
        return ModeDecision(EmissionMode.STRUCTURED, downgraded_from=reason)
    return ModeDecision(EmissionMode.RAW, reason)
