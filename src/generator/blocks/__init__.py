"""Validation block processing: field selectors, mode selection, lowering."""

from src.generator.blocks.field_selector import FieldSelector, SelectorKind, parse_field
from src.generator.blocks.mode_selector import EmissionMode, ModeDecision, select_mode
from src.generator.blocks.processor import EmissionPlan, lower_steps, process

__all__ = [
    "EmissionMode",
    "EmissionPlan",
    "FieldSelector",
    "ModeDecision",
    "SelectorKind",
    "lower_steps",
    "parse_field",
    "process",
    "select_mode",
]
