"""Lower validation blocks into emission-ready code lines.

Two lowerers share the block visitor:

- :class:`StructuredLowerer` turns assertions into declarative check
  descriptors handed to the cross-platform ``ExpectImplication`` helper.
- :class:`RawLowerer` turns assertions into direct Playwright expressions.

Function calls and custom code lower to the same statements in both modes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.generator.blocks.field_selector import FieldSelector, SelectorKind, parse_field
from src.generator.blocks.mode_selector import SELF_INSTANCES
from src.generator.resolvers.variable_resolver import (
    STORED_ROOT,
    ScopeChain,
    js_key,
    member,
    quote,
    resolve_reference,
    resolve_value,
)
from src.generator.visitors.base import BlockVisitor

if TYPE_CHECKING:
    from src.generator.context import CompilationContext
    from src.generator.screens import Block, FunctionAssertion

logger = logging.getLogger(__name__)

INDENT = "  "

# operator -> (expect subject, matcher call)
DATA_OPERATORS: dict[str, tuple[str, str]] = {
    "equals": ("{left}", "toBe({right})"),
    "notEquals": ("{left}", "not.toBe({right})"),
    "contains": ("String({left})", "toContain(String({right}))"),
    "notContains": ("String({left})", "not.toContain(String({right}))"),
    "greaterThan": ("Number({left})", "toBeGreaterThan(Number({right}))"),
    "lessThan": ("Number({left})", "toBeLessThan(Number({right}))"),
    "greaterOrEqual": ("Number({left})", "toBeGreaterThanOrEqual(Number({right}))"),
    "lessOrEqual": ("Number({left})", "toBeLessThanOrEqual(Number({right}))"),
    "matches": ("String({left})", "toMatch(new RegExp({right}))"),
    "startsWith": ("String({left}).startsWith(String({right}))", "toBe(true)"),
    "endsWith": ("String({left}).endsWith(String({right}))", "toBe(true)"),
    "isDefined": ("{left}", "toBeDefined()"),
    "isUndefined": ("{left}", "toBeUndefined()"),
    "isTruthy": ("{left}", "toBeTruthy()"),
    "isFalsy": ("{left}", "toBeFalsy()"),
    "lengthEquals": ("{left}?.length", "toBe(Number({right}))"),
    "lengthGreaterThan": ("{left}?.length", "toBeGreaterThan(Number({right}))"),
}
_OPERAND = re.compile(r"\{(left|right)\}")

MATCHER_ALIASES = {
    "equals": "toBe",
    "contains": "toContain",
    "truthy": "toBeTruthy",
    "falsy": "toBeFalsy",
    "defined": "toBeDefined",
}
NO_ARGUMENT_MATCHERS = ("toBeTruthy", "toBeFalsy", "toBeDefined", "toBeUndefined", "toBeNull")


@dataclass
class LoweredBlock:
    """One block ready for emission."""

    block_type: str
    label: str
    order: float
    lines: list[str] = field(default_factory=list)
    checks: list[dict[str, str]] = field(default_factory=list)
    stored: list[str] = field(default_factory=list)
    external_instance: str | None = None


def js_object(entries: dict[str, str]) -> str:
    """``{ key: expr, ... }`` from already-rendered expressions."""
    return "{ " + ", ".join(f"{js_key(k)}: {v}" for k, v in entries.items()) + " }"


def stored_target(name: str) -> str:
    return member(STORED_ROOT, name)


def matcher_for(assertion: FunctionAssertion) -> str:
    expected = assertion.expect
    if expected and expected.startswith(("to", "not.")):
        return expected
    if expected in MATCHER_ALIASES:
        return MATCHER_ALIASES[expected]
    return "toBeTruthy" if assertion.value is None else "toBe"


class _Lowerer(BlockVisitor[LoweredBlock]):
    """Shared lowering for function calls and custom code."""

    def __init__(
        self,
        ctx: CompilationContext,
        instance: str,
        chains: list[ScopeChain],
    ):
        self.ctx = ctx
        self.instance = instance
        self.chains = chains

    def chain(self, position: int) -> ScopeChain:
        return self.chains[position] if position < len(self.chains) else ScopeChain()

    def _new(self, block: Block) -> LoweredBlock:
        return LoweredBlock(
            block_type=block.type,
            label=block.label or block.type,
            order=block.order,
            stored=list(block.stored_names),
        )

    def visit_default(self, block: Block, position: int) -> LoweredBlock:
        lowered = self._new(block)
        lowered.lines.append(f"// Skipped unsupported block type: {block.type or 'unknown'}")
        subject = f"{block.label or block.id or position}"
        self.ctx.degrade("block", subject, "skipped", (block.type,))
        return lowered

    def visit_function_call(self, block: Block, position: int) -> LoweredBlock:
        lowered = self._new(block)
        data = block.call_data()
        if not data.method:
            lowered.lines.append("// Function call without a method")
            return lowered

        instance = data.instance or ""
        if instance in SELF_INSTANCES:
            instance = self.instance
        elif instance != self.instance:
            lowered.external_instance = instance

        chain = self.chain(position)
        args = ", ".join(resolve_value(arg, chain) for arg in data.args)
        call = f"{instance}.{data.method}({args})"
        if data.is_async:
            call = f"await {call}"
        if data.store_as:
            lowered.lines.append(f"{stored_target(data.store_as)} = {call};")
        else:
            lowered.lines.append(f"{call};")
        return lowered

    def visit_custom_code(self, block: Block, position: int) -> LoweredBlock:
        lowered = self._new(block)
        code = block.source_code().rstrip()
        if not code.strip():
            lowered.lines.append("// Empty custom code block")
            return lowered
        body = code.splitlines()
        if block.wrap_in_test_step and block.test_step_name and not self.ctx.is_native:
            lowered.lines.append(f"await test.step({quote(block.test_step_name)}, async () => {{")
            lowered.lines.extend(f"{INDENT}{line}" if line else line for line in body)
            lowered.lines.append("});")
        else:
            lowered.lines.extend(body)
        return lowered

    def _data_label(self, assertion: Any) -> str:
        if assertion.message:
            return assertion.message
        right = "" if assertion.right is None else f" {assertion.right}"
        return f"{assertion.left} {assertion.operator}{right}"


# =============================================================================
# Structured mode
# =============================================================================


class StructuredLowerer(_Lowerer):
    """Assertions become check descriptors for ``ExpectImplication``."""

    def _selector_entries(self, selector: FieldSelector, chain: ScopeChain) -> dict[str, str]:
        entries = {"field": quote(selector.field), "select": quote(selector.kind.value)}
        if selector.index_variable:
            entries["index"] = resolve_reference(selector.index_variable, chain)
        elif selector.index is not None:
            entries["index"] = str(selector.index)
        return entries

    def _emit_checks(self, lowered: LoweredBlock, call: str = "validateChecks") -> None:
        if not lowered.checks:
            return
        lowered.lines.append(f"await ExpectImplication.{call}({self.instance}, [")
        lowered.lines.extend(f"{INDENT}{js_object(check)}," for check in lowered.checks)
        lowered.lines.append("], { data: ctx.data, stored: storedVars });")

    def visit_ui_assertion(self, block: Block, position: int) -> LoweredBlock:
        lowered = self._new(block)
        data = block.ui_data()
        chain = self.chain(position)

        for check, names in (("visible", data.visible), ("hidden", data.hidden)):
            for name in names:
                entries = self._selector_entries(parse_field(name), chain)
                lowered.checks.append({"check": quote(check), **entries})
        for check, values in (("text", data.checks.text), ("contains", data.checks.contains)):
            for name, expected in values.items():
                entries = {
                    "check": quote(check),
                    **self._selector_entries(parse_field(name), chain),
                }
                entries["value"] = resolve_value(expected, chain)
                lowered.checks.append(entries)
        for check, names in (("truthy", data.truthy), ("falsy", data.falsy)):
            for name in names:
                lowered.checks.append({"check": quote(check), "fn": quote(name)})
        for assertion in data.assertions:
            selector = parse_field(assertion.fn)
            entries = {"check": quote("assertion"), "fn": quote(selector.field)}
            if selector.kind != SelectorKind.SINGLE:
                entries.update(self._selector_entries(selector, chain))
                del entries["field"]
            if assertion.expect:
                entries["expect"] = quote(assertion.expect)
            if assertion.value is not None:
                entries["value"] = resolve_value(assertion.value, chain)
            if assertion.args:
                entries["args"] = resolve_value(assertion.args, chain)
            if assertion.store_as:
                entries["storeAs"] = quote(assertion.store_as)
            lowered.checks.append(entries)

        if data.timeout:
            lowered.lines.append(f"// timeout: {data.timeout}ms")
        self._emit_checks(lowered)
        return lowered

    def visit_data_assertion(self, block: Block, position: int) -> LoweredBlock:
        lowered = self._new(block)
        chain = self.chain(position)
        for assertion in block.data_assertions():
            if assertion.operator not in DATA_OPERATORS:
                self.ctx.degrade(
                    "block",
                    f"data-assertion operator {assertion.operator}",
                    "passed through verbatim",
                )
            entries = {
                "check": quote("data"),
                "left": resolve_value(assertion.left, chain),
                "operator": quote(assertion.operator),
            }
            if assertion.right is not None:
                entries["right"] = resolve_value(assertion.right, chain)
            entries["message"] = quote(self._data_label(assertion))
            lowered.checks.append(entries)
        self._emit_checks(lowered)
        return lowered


# =============================================================================
# Raw mode
# =============================================================================


class RawLowerer(_Lowerer):
    """Assertions become direct Playwright expressions."""

    def _locator(self, selector: FieldSelector, chain: ScopeChain) -> str:
        base = f"{self.instance}.{selector.field}"
        if selector.kind in (SelectorKind.FIRST, SelectorKind.ANY):
            return f"{base}.first()"
        if selector.kind == SelectorKind.LAST:
            return f"{base}.last()"
        if selector.kind == SelectorKind.NTH:
            if selector.index_variable:
                return f"{base}.nth({resolve_reference(selector.index_variable, chain)})"
            return f"{base}.nth({selector.index})"
        return base

    def _assert_locator(
        self, selector: FieldSelector, matcher: str, chain: ScopeChain
    ) -> list[str]:
        if selector.kind == SelectorKind.ALL:
            return [
                f"for (const el of await {self.instance}.{selector.field}.all()) {{",
                f"{INDENT}await expect(el).{matcher};",
                "}",
            ]
        lines = []
        if selector.kind == SelectorKind.ANY and matcher != "toBeHidden()":
            count = f"await {self.instance}.{selector.field}.count()"
            lines.append(f"expect({count}).toBeGreaterThan(0);")
        lines.append(f"await expect({self._locator(selector, chain)}).{matcher};")
        return lines

    def _assertion_lines(self, assertion: FunctionAssertion, chain: ScopeChain) -> list[str]:
        """Call a screen function and assert on its result.

        Indexed selectors pass the index as the first argument. ``[any]``
        asks for the first result. ``[last]`` and ``[all]`` call the function
        without an index and treat its result as a list.
        """
        selector = parse_field(assertion.fn)
        args = [resolve_value(a, chain) for a in assertion.args]
        if selector.kind == SelectorKind.NTH and selector.index_variable:
            args.insert(0, resolve_reference(selector.index_variable, chain))
        elif selector.kind in (SelectorKind.FIRST, SelectorKind.NTH):
            args.insert(0, str(selector.index))
        elif selector.kind == SelectorKind.ANY:
            args.insert(0, "0")
        call = f"await {self.instance}.{selector.field}({', '.join(args)})"

        lines = []
        subject = call if selector.kind != SelectorKind.LAST else f"({call})"
        if assertion.store_as:
            target = stored_target(assertion.store_as)
            lines.append(f"{target} = {call};")
            subject = target
        if selector.kind == SelectorKind.LAST:
            subject = f"{subject}.at(-1)"

        matcher = matcher_for(assertion)
        if matcher.split(".")[-1] in NO_ARGUMENT_MATCHERS:
            matcher_call = f"{matcher}()"
        else:
            matcher_call = f"{matcher}({resolve_value(assertion.value, chain)})"

        if selector.kind == SelectorKind.ALL:
            lines.append(f"for (const result of {subject}) {{")
            lines.append(f"{INDENT}expect(result).{matcher_call};")
            lines.append("}")
        else:
            lines.append(f"expect({subject}).{matcher_call};")
        return lines

    def visit_ui_assertion(self, block: Block, position: int) -> LoweredBlock:
        lowered = self._new(block)
        data = block.ui_data()
        chain = self.chain(position)

        for name in data.visible:
            lowered.lines.extend(self._assert_locator(parse_field(name), "toBeVisible()", chain))
        for name in data.hidden:
            lowered.lines.extend(self._assert_locator(parse_field(name), "toBeHidden()", chain))
        text_checks = (("toHaveText", data.checks.text), ("toContainText", data.checks.contains))
        for matcher, values in text_checks:
            for name, expected in values.items():
                value = resolve_value(expected, chain)
                lowered.lines.extend(
                    self._assert_locator(parse_field(name), f"{matcher}(String({value}))", chain)
                )
        for name in data.truthy:
            lowered.lines.append(f"expect(await {self.instance}.{name}()).toBeTruthy();")
        for name in data.falsy:
            lowered.lines.append(f"expect(await {self.instance}.{name}()).toBeFalsy();")
        for assertion in data.assertions:
            lowered.lines.extend(self._assertion_lines(assertion, chain))
        return lowered

    def visit_data_assertion(self, block: Block, position: int) -> LoweredBlock:
        lowered = self._new(block)
        chain = self.chain(position)
        for assertion in block.data_assertions():
            shape = DATA_OPERATORS.get(assertion.operator)
            if shape is None:
                self.ctx.degrade(
                    "block", f"data-assertion operator {assertion.operator}", "failing throw"
                )
                message = quote(f"Unknown data-assertion operator: {assertion.operator}")
                lowered.lines.append(f"throw new Error({message});")
                continue
            operands = {
                "left": resolve_value(assertion.left, chain),
                "right": resolve_value(assertion.right, chain),
            }
            subject, matcher = (_OPERAND.sub(lambda m: operands[m.group(1)], s) for s in shape)
            label = quote(self._data_label(assertion))
            lowered.lines.append(f"expect({subject}, {label}).{matcher};")
        return lowered
