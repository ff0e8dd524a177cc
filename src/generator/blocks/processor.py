"""Validation block processor.

Turns one validation screen into an :class:`EmissionPlan`:

1. drop disabled blocks, sort the rest by ``order``
2. pick the screen's emission mode (structured or raw)
3. build the scope chain seen by each block position
4. lower every block with the lowerer of the chosen mode
5. collect the external references the generated test must import

Transition steps are lowered here as well, since they share the scope
rules of the blocks that follow them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.generator.blocks.lowering import (
    INDENT,
    LoweredBlock,
    RawLowerer,
    StructuredLowerer,
    stored_target,
)
from src.generator.blocks.mode_selector import SELF_INSTANCES, EmissionMode, select_mode
from src.generator.graph import ImportRef
from src.generator.naming import pascal_case
from src.generator.resolvers.variable_resolver import (
    build_scope_chain,
    resolve_value,
    to_js_literal,
)

if TYPE_CHECKING:
    from src.generator.context import CompilationContext
    from src.generator.graph import ActionStep
    from src.generator.screens import ValidationScreen

logger = logging.getLogger(__name__)


@dataclass
class EmissionPlan:
    """Everything the emitter needs to render one validation screen."""

    screen_key: str
    mode: EmissionMode
    instance_name: str
    mode_reason: str | None = None
    downgraded_from: str | None = None
    blocks: list[LoweredBlock] = field(default_factory=list)
    external_refs: list[ImportRef] = field(default_factory=list)
    own_ref: ImportRef | None = None
    summary: str = ""
    description: str | None = None
    navigation: Any = None

    @property
    def is_raw(self) -> bool:
        return self.mode == EmissionMode.RAW

    @property
    def lines(self) -> list[str]:
        """Block lines in order, each block introduced by its label."""
        lines: list[str] = []
        for block in self.blocks:
            if not block.lines:
                continue
            lines.append(f"// {block.label}")
            lines.extend(block.lines)
        return lines

    @property
    def refs(self) -> list[ImportRef]:
        """Own reference first, then external ones."""
        return ([self.own_ref] if self.own_ref else []) + self.external_refs


def process(
    screen: ValidationScreen,
    ctx: CompilationContext,
    transition_steps: Iterable[ActionStep] = (),
    context_fields: Iterable[str] = (),
    force_raw: bool = False,
) -> EmissionPlan:
    """Lower one validation screen.

    Args:
        screen: The screen to process
        ctx: Compilation context (degradations and references accumulate here)
        transition_steps: Steps of the incoming transition, visible to every block
        context_fields: Context-data field names, the last scope of the chain
        force_raw: Global raw-mode override

    Returns:
        EmissionPlan for the screen
    """
    transition_steps = list(transition_steps)
    context_fields = list(context_fields)

    blocks = sorted((b for b in screen.effective_blocks() if b.enabled), key=lambda b: b.order)
    own_instance = screen.instance_name
    decision = select_mode(blocks, own_instance, ctx.is_native, force_raw)

    chains = [
        build_scope_chain(transition_steps, blocks[:position], context_fields)
        for position in range(len(blocks))
    ]
    lowerer = (RawLowerer if decision.is_raw else StructuredLowerer)(ctx, own_instance, chains)
    lowered = [lowerer.visit(block, position) for position, block in enumerate(blocks)]

    own_ref = None
    if screen.class_name:
        own_ref = ImportRef(class_name=screen.class_name, path=screen.screen, var_name=own_instance)
        ctx.add_ref(own_ref)

    external: list[ImportRef] = []
    seen = {own_ref.class_name} if own_ref else set()
    for block, result in zip(blocks, lowered):
        if result.external_instance is None:
            continue
        data = block.call_data()
        ref = ImportRef(
            class_name=data.class_name or pascal_case(result.external_instance),
            path=data.path,
            var_name=result.external_instance,
        )
        if ref.class_name in seen:
            continue
        seen.add(ref.class_name)
        external.append(ref)
        ctx.add_ref(ref)

    logger.debug(
        f"Screen {screen.screen_key}: {len(blocks)} block(s), {decision.mode.value} mode"
        + (f" ({decision.reason})" if decision.reason else "")
    )
    return EmissionPlan(
        screen_key=screen.screen_key,
        mode=decision.mode,
        instance_name=own_instance,
        mode_reason=decision.reason,
        downgraded_from=decision.downgraded_from,
        blocks=lowered,
        external_refs=external,
        own_ref=own_ref,
        summary=screen.summary(),
        description=screen.description,
        navigation=screen.navigation,
    )


# =============================================================================
# Transition steps
# =============================================================================


def lower_steps(
    steps: Iterable[ActionStep],
    ctx: CompilationContext,
    app_object: str,
    context_fields: Iterable[str] = (),
) -> list[str]:
    """Lower the incoming transition's steps into statements.

    Each step sees the values stored by the steps before it. Steps on the
    app itself (``this``) call the app object; any other instance is
    registered as a reference the test must import.
    """
    steps = list(steps)
    context_fields = list(context_fields)
    lines: list[str] = []
    for position, step in enumerate(steps):
        chain = build_scope_chain(steps[:position], (), context_fields)
        instance = step.instance or ""
        known = {ref.instance_name for ref in ctx.refs.values()}
        if instance in SELF_INSTANCES:
            instance = app_object
        elif instance != app_object and instance not in known:
            ctx.add_ref(ImportRef(class_name=pascal_case(instance), var_name=instance))

        args = ", ".join(resolve_value(arg, chain) for arg in step.args)
        call = f"{instance}.{step.method}({args})"
        if step.is_async:
            call = f"await {call}"
        statement = f"{stored_target(step.store_as)} = {call};" if step.store_as else f"{call};"

        if isinstance(step.conditions, dict) and step.conditions:
            conditions = to_js_literal(step.conditions)
            lines.append(
                f"if (ExpectImplication.conditionsMet({conditions}, "
                "{ data: ctx.data, stored: storedVars })) {"
            )
            lines.append(f"{INDENT}{statement}")
            lines.append("}")
        else:
            lines.append(statement)
    return lines
