"""Validation screens and their blocks.

A unit's ``mirrors_on`` carries validation screens keyed by platform
validation key and screen key::

    {"UI": {"Web": {"bookingDetails": {...screen...} | [{...screen...}]}}}

A screen is either block-based (``blocks[]``) or legacy
(``visible``/``hidden``/``checks``/...). Legacy screens are lowered to one
synthetic ``ui-assertion`` block so both forms flow through the same
processing.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from src.generator.errors import ValidationError
from src.generator.graph import list_or_empty, mappings_only, str_or_none
from src.generator.naming import pascal_case

logger = logging.getLogger(__name__)


class BlockType(str, Enum):
    UI_ASSERTION = "ui-assertion"
    FUNCTION_CALL = "function-call"
    DATA_ASSERTION = "data-assertion"
    CUSTOM_CODE = "custom-code"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


# =============================================================================
# Block payloads
# =============================================================================


class TextChecks(_Model):
    text: dict[str, Any] = Field(default_factory=dict)
    contains: dict[str, Any] = Field(default_factory=dict)

    @field_validator("text", "contains", mode="before")
    @classmethod
    def _mapping_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class FunctionAssertion(_Model):
    """Assertion on the result of a screen-object function."""

    fn: str = ""
    expect: str | None = None
    value: Any = None
    args: list[Any] = Field(default_factory=list)
    store_as: str | None = Field(default=None, alias="storeAs")

    coerce_args = field_validator("args", mode="before")(list_or_empty)
    coerce_store_as = field_validator("store_as", "expect", mode="before")(str_or_none)

    @field_validator("fn", mode="before")
    @classmethod
    def _coerce_fn(cls, value: Any) -> Any:
        return value if isinstance(value, str) else ""


class UIAssertionData(_Model):
    visible: list[str] = Field(default_factory=list)
    hidden: list[str] = Field(default_factory=list)
    checks: TextChecks = Field(default_factory=TextChecks)
    truthy: list[str] = Field(default_factory=list)
    falsy: list[str] = Field(default_factory=list)
    assertions: list[FunctionAssertion] = Field(default_factory=list)
    timeout: int | None = None

    coerce_names = field_validator("visible", "hidden", "truthy", "falsy", mode="before")(
        list_or_empty
    )
    coerce_assertions = field_validator("assertions", mode="before")(mappings_only)

    @field_validator("checks", mode="before")
    @classmethod
    def _coerce_checks(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, TextChecks)) else {}

    @field_validator("timeout", mode="before")
    @classmethod
    def _coerce_timeout(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return None

    @property
    def has_function_assertions(self) -> bool:
        return bool(self.assertions or self.truthy or self.falsy)


class FunctionCallData(_Model):
    instance: str | None = None
    method: str | None = None
    args: list[Any] = Field(default_factory=list)
    is_async: bool = Field(default=True, alias="await")
    store_as: str | None = Field(default=None, alias="storeAs")
    class_name: str | None = Field(default=None, alias="className")
    path: str | None = None

    coerce_args = field_validator("args", mode="before")(list_or_empty)
    coerce_strings = field_validator(
        "instance", "method", "store_as", "class_name", "path", mode="before"
    )(str_or_none)


class DataAssertion(_Model):
    left: Any = None
    operator: str = "equals"
    right: Any = None
    message: str | None = None


# =============================================================================
# Blocks and screens
# =============================================================================


class Block(_Model):
    """One validation block. ``data`` is read through the typed accessors."""

    id: str | None = None
    type: str = ""
    label: str | None = None
    order: float = 0
    enabled: bool = True
    data: dict[str, Any] = Field(default_factory=dict)
    code: str | None = None
    wrap_in_test_step: bool = Field(default=True, alias="wrapInTestStep")
    test_step_name: str | None = Field(default=None, alias="testStepName")
    assertions: list[DataAssertion] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("order", mode="before")
    @classmethod
    def _coerce_order(cls, value: Any) -> Any:
        return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0

    coerce_assertions = field_validator("assertions", mode="before")(mappings_only)

    @field_validator("enabled", "wrap_in_test_step", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Any:
        # only an explicit false turns a flag off
        return value is not False

    def ui_data(self) -> UIAssertionData:
        return self._payload(UIAssertionData)

    def call_data(self) -> FunctionCallData:
        return self._payload(FunctionCallData)

    def _payload(self, model: type[_Model], data: Any = None) -> Any:
        try:
            return model.model_validate(self.data if data is None else data)
        except PydanticValidationError as e:
            name = self.label or self.id or "unnamed"
            raise ValidationError(f"Invalid {self.type} block {name}: {e}") from e

    def data_assertions(self) -> list[DataAssertion]:
        if self.assertions:
            return self.assertions
        raw = mappings_only(self.data.get("assertions"))
        return [self._payload(DataAssertion, a) for a in raw]

    def source_code(self) -> str:
        code = self.code if self.code is not None else self.data.get("code")
        return code if isinstance(code, str) else ""

    @property
    def stored_names(self) -> list[str]:
        """Names this block binds with ``storeAs`` (declaration order)."""
        if self.type == BlockType.FUNCTION_CALL:
            name = self.call_data().store_as
            return [name] if name else []
        if self.type == BlockType.UI_ASSERTION:
            return [a.store_as for a in self.ui_data().assertions if a.store_as]
        name = self.data.get("storeAs")
        return [name] if isinstance(name, str) and name else []


class ValidationScreen(_Model):
    """A screen to validate after the transition."""

    screen_key: str = Field(default="", alias="screenKey")
    order: float = 0
    navigation: Any = None
    blocks: list[Block] = Field(default_factory=list)
    instance: str | None = None
    screen: str | None = None
    name: str | None = None
    description: str | None = None

    # legacy format
    visible: list[str] = Field(default_factory=list)
    hidden: list[str] = Field(default_factory=list)
    checks: TextChecks = Field(default_factory=TextChecks)
    truthy: list[str] = Field(default_factory=list)
    falsy: list[str] = Field(default_factory=list)
    assertions: list[FunctionAssertion] = Field(default_factory=list)
    functions: dict[str, Any] = Field(default_factory=dict)

    coerce_blocks = field_validator("blocks", mode="before")(mappings_only)
    coerce_assertions = field_validator("assertions", mode="before")(mappings_only)
    coerce_names = field_validator("visible", "hidden", "truthy", "falsy", mode="before")(
        list_or_empty
    )
    coerce_strings = field_validator(
        "instance", "screen", "name", "description", mode="before"
    )(str_or_none)

    @field_validator("checks", mode="before")
    @classmethod
    def _coerce_checks(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, TextChecks)) else {}

    @field_validator("functions", mode="before")
    @classmethod
    def _coerce_functions(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("order", mode="before")
    @classmethod
    def _coerce_order(cls, value: Any) -> Any:
        return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0

    @property
    def is_legacy(self) -> bool:
        if self.blocks:
            return False
        return bool(
            self.visible
            or self.hidden
            or self.checks.text
            or self.checks.contains
            or self.truthy
            or self.falsy
            or self.assertions
            or self.functions
        )

    @property
    def instance_name(self) -> str:
        """Variable name of the screen's own object."""
        if self.instance:
            return self.instance
        if self.screen:
            base = pascal_case(self.screen.replace("\\", "/").rsplit("/", 1)[-1].split(".")[0])
            return base[:1].lower() + base[1:]
        return self.screen_key

    @property
    def class_name(self) -> str | None:
        """Class name of the screen's own object, when it names one."""
        if self.screen:
            return pascal_case(self.screen.replace("\\", "/").rsplit("/", 1)[-1].split(".")[0])
        if self.instance:
            return pascal_case(self.instance)
        return None

    def effective_blocks(self) -> list[Block]:
        """Blocks in processing order, legacy content lowered to blocks."""
        if not self.is_legacy:
            return list(self.blocks)
        blocks = [
            Block(
                type=BlockType.UI_ASSERTION.value,
                label="Main Assertions",
                order=0,
                data={
                    "visible": self.visible,
                    "hidden": self.hidden,
                    "checks": self.checks.model_dump(),
                    "truthy": self.truthy,
                    "falsy": self.falsy,
                    "assertions": [a.model_dump(by_alias=True) for a in self.assertions],
                },
            )
        ]
        for position, (method, spec) in enumerate(self.functions.items(), start=1):
            spec = spec if isinstance(spec, dict) else {}
            params = spec.get("parameters")
            blocks.append(
                Block(
                    type=BlockType.FUNCTION_CALL.value,
                    label=spec.get("signature") or method,
                    order=position,
                    data={
                        "instance": self.instance_name,
                        "method": method,
                        "args": list(params.values()) if isinstance(params, dict) else [],
                        "storeAs": spec.get("storeAs"),
                    },
                )
            )
        return blocks

    def summary(self) -> str:
        """Human summary, e.g. ``Visible: a, b (2), Hidden: c (1)``."""
        visible: list[str] = []
        hidden: list[str] = []
        text_checks = 0
        calls = 0
        for block in self.effective_blocks():
            if block.enabled is False:
                continue
            if block.type == BlockType.UI_ASSERTION:
                ui = block.ui_data()
                visible.extend(ui.visible)
                hidden.extend(ui.hidden)
                text_checks += len(ui.checks.text) + len(ui.checks.contains)
            elif block.type == BlockType.FUNCTION_CALL:
                calls += 1
        parts = []
        if visible:
            parts.append(f"Visible: {', '.join(visible)} ({len(visible)})")
        if hidden:
            parts.append(f"Hidden: {', '.join(hidden)} ({len(hidden)})")
        if text_checks:
            parts.append(f"Text checks: {text_checks}")
        if calls:
            parts.append(f"Function calls: {calls}")
        return ", ".join(parts) if parts else "No checks"


def screens_for_platform(
    mirrors_on: dict[str, Any] | None, validation_key: str
) -> list[ValidationScreen]:
    """Validation screens of one platform, sorted by ascending ``order``.

    The validation key is matched exactly first, then case-insensitively.
    A screen given as a list uses its first element.
    """
    if not isinstance(mirrors_on, dict):
        return []
    ui = mirrors_on.get("UI")
    if not isinstance(ui, dict):
        return []

    platform_screens = ui.get(validation_key)
    if platform_screens is None:
        wanted = validation_key.lower()
        platform_screens = next(
            (value for key, value in ui.items() if str(key).lower() == wanted), None
        )
    if not isinstance(platform_screens, dict):
        return []

    screens: list[ValidationScreen] = []
    for screen_key, definition in platform_screens.items():
        if isinstance(definition, list):
            definition = definition[0] if definition else None
        if not isinstance(definition, dict):
            logger.debug(f"Skipping screen {screen_key}: not a mapping")
            continue
        try:
            screen = ValidationScreen.model_validate({"screenKey": screen_key, **definition})
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid validation screen {screen_key} for {validation_key}: {e}"
            ) from e
        if not screen.screen_key:
            screen.screen_key = screen_key
        screens.append(screen)

    # stable: equal orders keep declaration order
    return sorted(screens, key=lambda s: s.order)
