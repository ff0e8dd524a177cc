"""Tests for the validation block processor."""

from src.generator.blocks.mode_selector import EmissionMode
from src.generator.blocks.processor import lower_steps, process
from src.generator.graph import ActionStep, ImportRef
from src.generator.screens import ValidationScreen
from tests.conftest import make_context

STEPS = [ActionStep(instance="bookingActions", method="accept", store_as="bookingId")]


def _screen(blocks, **extra):
    return ValidationScreen.model_validate(
        {"screenKey": "bookingDetails", "instance": "bookingDetails", "blocks": blocks, **extra}
    )


class TestProcess:
    def test_blocks_see_only_values_stored_before_them(self):
        screen = _screen(
            [
                {
                    "type": "data-assertion",
                    "label": "late",
                    "order": 2,
                    "data": {"assertions": [{"left": "{{total}}", "operator": "isDefined"}]},
                },
                {
                    "type": "function-call",
                    "label": "read",
                    "order": 1,
                    "data": {"instance": "this", "method": "readTotal", "storeAs": "total"},
                },
                {
                    "type": "data-assertion",
                    "label": "early",
                    "order": 0,
                    "data": {
                        "assertions": [
                            {"left": "{{total}}", "operator": "isUndefined"},
                            {"left": "{{bookingId}}", "operator": "isDefined"},
                        ]
                    },
                },
            ]
        )
        ctx = make_context()

        plan = process(screen, ctx, STEPS, ["bookingRef"])

        assert [b.label for b in plan.blocks] == ["early", "read", "late"]
        early, _, late = plan.blocks
        assert early.checks[0]["left"] == "ctx.data.total"
        assert early.checks[1]["left"] == "storedVars.bookingId"
        assert late.checks[0]["left"] == "storedVars.total"

    def test_disabled_blocks_are_dropped(self):
        screen = _screen(
            [
                {"type": "ui-assertion", "enabled": False, "data": {"visible": ["a"]}},
                {"type": "custom-code", "enabled": False, "code": "await page.reload();"},
                {"type": "ui-assertion", "label": "kept", "data": {"visible": ["b"]}},
            ]
        )

        plan = process(screen, make_context())

        assert [b.label for b in plan.blocks] == ["kept"]
        # the disabled custom-code block does not force raw mode
        assert plan.mode == EmissionMode.STRUCTURED

    def test_raw_mode_and_lines(self):
        screen = _screen(
            [
                {"type": "ui-assertion", "label": "Header", "data": {"visible": ["title"]}},
                {"type": "ui-assertion", "label": "Nothing", "data": {}},
            ]
        )

        plan = process(screen, make_context(), force_raw=True)

        assert plan.is_raw
        assert plan.mode_reason == "global override"
        assert plan.lines == ["// Header", "await expect(bookingDetails.title).toBeVisible();"]

    def test_native_downgrade_is_reported(self):
        screen = _screen([{"type": "custom-code", "code": "await driver.pause(10);"}])

        plan = process(screen, make_context(platform="dancer"))

        assert not plan.is_raw
        assert plan.downgraded_from == "custom code"

    def test_own_and_external_refs(self):
        screen = _screen(
            [
                {"type": "function-call", "data": {"instance": "navBar", "method": "open"}},
                {"type": "function-call", "data": {"instance": "navBar", "method": "close"}},
                {
                    "type": "function-call",
                    "data": {
                        "instance": "picker",
                        "method": "pick",
                        "className": "DatePicker",
                        "path": "tests/screens/DatePicker.js",
                    },
                },
                {"type": "function-call", "data": {"instance": "bookingDetails", "method": "x"}},
            ],
            screen="tests/screenObjects/BookingDetails.js",
        )
        ctx = make_context()

        plan = process(screen, ctx)

        assert plan.is_raw
        assert plan.mode_reason == "external function call"
        assert plan.own_ref == ImportRef(
            class_name="BookingDetails",
            path="tests/screenObjects/BookingDetails.js",
            var_name="bookingDetails",
        )
        assert [(r.class_name, r.var_name) for r in plan.external_refs] == [
            ("NavBar", "navBar"),
            ("DatePicker", "picker"),
        ]
        assert [r.class_name for r in plan.refs] == ["BookingDetails", "NavBar", "DatePicker"]
        assert list(ctx.refs) == ["BookingDetails", "NavBar", "DatePicker"]

    def test_refs_are_deduplicated_across_screens(self):
        ctx = make_context()
        first = _screen([{"type": "function-call", "data": {"instance": "navBar", "method": "a"}}])
        second = ValidationScreen.model_validate(
            {
                "screenKey": "summary",
                "instance": "summary",
                "blocks": [
                    {"type": "function-call", "data": {"instance": "navBar", "method": "b"}}
                ],
            }
        )

        process(first, ctx)
        plan = process(second, ctx)

        assert [r.class_name for r in plan.external_refs] == ["NavBar"]
        assert list(ctx.refs) == ["BookingDetails", "NavBar", "Summary"]

    def test_legacy_screen(self):
        screen = ValidationScreen.model_validate(
            {"screenKey": "details", "instance": "details", "hidden": ["spinner"]}
        )

        plan = process(screen, make_context())

        assert plan.blocks[0].label == "Main Assertions"
        assert plan.summary == "Hidden: spinner (1)"


class TestLowerSteps:
    def test_steps_see_earlier_results(self):
        steps = [
            ActionStep(instance="bookingActions", method="create", store_as="bookingId"),
            ActionStep(instance="this", method="open", args=["{{bookingId}}", "{{bookingRef}}"]),
        ]
        ctx = make_context()

        lines = lower_steps(steps, ctx, "page", ["bookingRef"])

        assert lines == [
            "storedVars.bookingId = await bookingActions.create();",
            "await page.open(storedVars.bookingId, ctx.data.bookingRef);",
        ]
        assert ctx.refs["BookingActions"].instance_name == "bookingActions"

    def test_known_instances_are_not_re_registered(self):
        ctx = make_context()
        ctx.add_ref(ImportRef(class_name="Actions", var_name="bookingActions"))

        lower_steps(STEPS, ctx, "page")

        assert list(ctx.refs) == ["Actions"]

    def test_conditional_and_sync_steps(self):
        step = ActionStep.model_validate(
            {
                "instance": "this",
                "method": "dismissBanner",
                "await": False,
                "conditions": {"field": "hasBanner", "equals": True},
            }
        )

        lines = lower_steps([step], make_context(), "app")

        assert lines == [
            "if (ExpectImplication.conditionsMet({ field: 'hasBanner', equals: true }, "
            "{ data: ctx.data, stored: storedVars })) {",
            "  app.dismissBanner();",
            "}",
        ]
