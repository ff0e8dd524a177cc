"""Unit-test generator.

Compiles a state-definition unit into a runnable unit test for one
platform.

Generation Flow:
    unit file -> SourceLoader -> ImplicationUnit
              -> TransitionResolver + extract_metadata -> StateMetadata
              -> lower_steps + process (per screen) + PathResolver -> render context
              -> TemplateEmitter -> code + file name

For each (target state, platform) pair:
1. Load the unit (fresh from disk)
2. Resolve incoming transitions and extract the metadata record
3. Reject duplicate storeAs names in the transition steps
4. Lower the transition steps and every validation screen
5. Resolve import references relative to the generated file
6. Validate the render context and render the template
7. Optionally write the file
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.generator.blocks.processor import EmissionPlan, lower_steps, process
from src.generator.config import load_config
from src.generator.context import CompilationContext
from src.generator.discovery import load_discovery_index
from src.generator.emitter import UNIT_TEST_TEMPLATE, TemplateEmitter
from src.generator.errors import ResolutionDegraded, ValidationError
from src.generator.graph import ImplicationUnit, Transition
from src.generator.loader.source_loader import SourceLoader
from src.generator.registry import UnitLocator
from src.generator.resolvers.metadata_extractor import StateMetadata, extract_metadata
from src.generator.resolvers.path_resolver import PathResolver
from src.generator.resolvers.transition_resolver import ExplicitTransition, TransitionResolver
from src.generator.resolvers.variable_resolver import quote, to_js_literal
from src.generator.screens import screens_for_platform

logger = logging.getLogger(__name__)

REQUIRED_CONTEXT_FIELDS = ("impl_class_name", "action_name", "target_status", "test_file_name")
DEFAULT_TEST_DATA_PATH = "tests/data/shared.json"


@dataclass
class GenerationResult:
    """Outcome of compiling one (state, platform) pair."""

    code: str
    file_name: str
    metadata: StateMetadata
    mode: str  # transition | inducer
    state: str | None = None
    file_path: str | None = None
    screens: list[EmissionPlan] = field(default_factory=list)
    degradations: list[ResolutionDegraded] = field(default_factory=list)


# =============================================================================
# Pure helpers
# =============================================================================


def check_unique_store_as(transitions: list[Transition]) -> None:
    """Reject a transition whose steps bind the same storeAs name twice.

    Raises:
        ValidationError: On the first transition with a duplicate name.
    """
    for transition in transitions:
        if transition.action_details is None:
            continue
        names = transition.action_details.stored_names
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate storeAs {', '.join(duplicates)} in "
                f"{transition.from_state} --{transition.event}--> {transition.to_state}"
            )


def validate_context(context: dict[str, Any]) -> None:
    """Raises ValidationError when a required render field is empty."""
    for name in REQUIRED_CONTEXT_FIELDS:
        if not context.get(name):
            raise ValidationError(f"Missing required context field: {name}")


def navigation_lines(platform: str, is_native: bool, metadata: StateMetadata) -> list[str]:
    """Navigation statements, or commented hints when none are declared."""
    navigation = metadata.navigation
    if isinstance(navigation, dict) and not is_native:
        url = navigation.get("url") or navigation.get("path")
        if isinstance(url, str) and url:
            return [
                f"await page.goto({quote(url)});",
                "await page.waitForLoadState('networkidle');",
            ]

    if is_native:
        return ["// await app.navigateToScreen();"]
    status = metadata.status
    if platform == "cms":
        if status in ("empty", "filling"):
            target = "// await page.goto('/admin/pages/new');"
        elif status in ("draft", "published"):
            target = "// await page.goto(`/admin/pages/${ctx.data.pageId}/edit`);"
        elif status == "archived":
            target = "// await page.goto('/admin/pages/archived');"
        else:
            target = "// await page.goto('/admin/pages');"
        return [target, "// await page.waitForLoadState('networkidle');"]
    return ["// await page.goto('/');", "// await page.waitForLoadState('networkidle');"]


def action_hint_lines(is_native: bool, metadata: StateMetadata) -> list[str]:
    """Commented hints for performing the action by hand."""
    button = metadata.trigger_button
    if button and is_native:
        return [
            f"// await app.screen.btn{button}.click();",
            "// await app.screen.successMessage.waitForDisplayed();",
        ]
    if button:
        return [
            f"// await page.getByRole('button', {{ name: {quote(button)} }}).click();",
            "// await page.waitForSelector('.success-message');",
        ]
    return [f"// Perform the action that leads to '{metadata.status}'"]


def option_params(has_entity_logic: bool) -> list[dict[str, str]]:
    if not has_entity_logic:
        return []
    return [
        {"type": "{number}", "name": "index", "description": "Single entity index"},
        {"type": "{number[]}", "name": "indices", "description": "Multiple entity indices"},
    ]


def build_test_cases(metadata: StateMetadata) -> list[dict[str, str | None]]:
    if metadata.has_entity_logic:
        return [
            {"description": f"Process first {metadata.entity_name}", "params": "index: 0"},
            {
                "description": f"Process multiple {metadata.entity_name}s",
                "params": "indices: [0, 1, 2]",
            },
        ]
    return [{"description": f"Execute {metadata.status} transition", "params": None}]


# =============================================================================
# Generator
# =============================================================================


class UnitTestGenerator:
    """Compiles state-definition units into unit tests.

    Example:
        generator = UnitTestGenerator()
        result = generator.generate("tests/implications/AcceptedImplications.py")
        print(result.file_name)
    """

    def __init__(
        self,
        project_root: str | Path | None = None,
        templates_dir: str | Path | None = None,
    ) -> None:
        """Initialize generator.

        Args:
            project_root: Project root; found from each unit's location when None
            templates_dir: Template directory; the bundled templates when None
        """
        self.project_root = Path(project_root).resolve() if project_root else None
        marker = load_config(self.project_root).project_marker if self.project_root else "tests"
        self.loader = SourceLoader(project_marker=marker)
        self.emitter = TemplateEmitter(templates_dir)

    def generate(
        self,
        unit_path: str | Path,
        platform: str = "web",
        state: str | None = None,
        transition: ExplicitTransition | None = None,
        force_raw_mode: bool = False,
        preview: bool = True,
        output_dir: str | Path | None = None,
    ) -> GenerationResult | list[GenerationResult]:
        """Generate the unit test(s) for a unit.

        Args:
            unit_path: Path of the state-definition unit
            platform: Target platform name
            state: Sub-state of a multi-state graph (all sub-states with setup when None)
            transition: Explicit incoming transition, re-read from disk
            force_raw_mode: Emit every screen in raw mode (browser platforms)
            preview: When False, write the file to ``output_dir``
            output_dir: Output directory; the unit's directory when None

        Returns:
            One GenerationResult, or a list of them for a multi-state graph
            without ``state``

        Raises:
            LoadError: If the unit cannot be loaded
            ValidationError: On a missing sub-state, duplicate storeAs or empty required field
            TemplateError: If the template is missing
        """
        unit = self._load(unit_path)
        options = {
            "transition": transition,
            "force_raw_mode": force_raw_mode,
            "preview": preview,
            "output_dir": output_dir,
        }
        if state is None and unit.graph.is_multi_state:
            results = [
                self._generate_state(unit, platform, name, **options)
                for name in self._states_with_setup(unit)
            ]
            logger.info(f"Generated {len(results)} test(s) for {unit.class_name}")
            return results
        return self._generate_state(unit, platform, state, **options)

    def inspect(
        self,
        unit_path: str | Path,
        platform: str = "web",
        state: str | None = None,
        transition: ExplicitTransition | None = None,
    ) -> StateMetadata | list[StateMetadata]:
        """Metadata record(s) for a unit, without rendering."""
        unit = self._load(unit_path)
        if state is None and unit.graph.is_multi_state:
            return [
                self._compile(unit, platform, name, transition)[1]
                for name in self._states_with_setup(unit)
            ]
        return self._compile(unit, platform, state, transition)[1]

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, unit_path: str | Path) -> ImplicationUnit:
        # always re-read: the unit on disk is the source of truth
        self.loader.invalidate(unit_path)
        return self.loader.load(unit_path)

    def _states_with_setup(self, unit: ImplicationUnit) -> list[str]:
        names = []
        for name, record in unit.graph.states.items():
            if not record.meta.setup:
                logger.debug(f"Skipping {name}: no setup defined")
                continue
            names.append(name)
        return names

    def _generate_state(
        self,
        unit: ImplicationUnit,
        platform: str,
        state: str | None,
        transition: ExplicitTransition | None,
        force_raw_mode: bool,
        preview: bool,
        output_dir: str | Path | None,
    ) -> GenerationResult:
        ctx, metadata, plans, context = self._compile(
            unit, platform, state, transition, force_raw_mode, output_dir
        )
        validate_context(context)
        code = self.emitter.emit(UNIT_TEST_TEMPLATE, context)

        file_path = None
        if not preview:
            ctx.output_path.write_text(code)
            file_path = str(ctx.output_path)
            logger.info(f"Written: {file_path}")
        else:
            logger.info(f"Preview generated for {metadata.test_file_name} ({len(code)} chars)")

        return GenerationResult(
            code=code,
            file_name=metadata.test_file_name,
            metadata=metadata,
            mode="inducer" if metadata.is_inducer else "transition",
            state=state,
            file_path=file_path,
            screens=plans,
            degradations=list(ctx.degradations),
        )

    def _compile(
        self,
        unit: ImplicationUnit,
        platform: str,
        state: str | None,
        transition: ExplicitTransition | None = None,
        force_raw_mode: bool = False,
        output_dir: str | Path | None = None,
    ) -> tuple[CompilationContext, StateMetadata, list[EmissionPlan], dict[str, Any]]:
        project_root = self.project_root or Path(unit.project_root or Path(unit.path).parent)
        config = load_config(project_root)
        spec = config.platform(platform)
        directory = Path(output_dir) if output_dir else Path(unit.path).parent

        ctx = CompilationContext(
            unit=unit,
            platform=platform,
            platform_spec=spec,
            config=config,
            project_root=project_root,
            output_path=directory / f"{unit.class_name}.spec.js",
            degradations=list(unit.degradations),
        )
        locator = UnitLocator(project_root, config, self.loader)
        index = load_discovery_index(project_root / config.discovery_path)
        resolver = TransitionResolver(self.loader, locator, index)

        metadata = extract_metadata(ctx, resolver, state, transition)
        ctx.output_path = directory / metadata.test_file_name
        check_unique_store_as(metadata.transitions)

        plans, context = self._build_context(ctx, metadata, state, force_raw_mode)
        return ctx, metadata, plans, context

    def _build_context(
        self,
        ctx: CompilationContext,
        metadata: StateMetadata,
        state: str | None,
        force_raw_mode: bool,
    ) -> tuple[list[EmissionPlan], dict[str, Any]]:
        graph = ctx.unit.graph
        record = graph.states[state] if state is not None and graph.is_multi_state else graph
        app_object = "app" if ctx.is_native else "page"

        fields = list(metadata.required_fields)
        if isinstance(graph.context, dict):
            fields.extend(str(name) for name in graph.context if name not in fields)

        primary = metadata.primary_transition
        details = primary.action_details if primary else None
        steps = details.steps if details else []
        for ref in details.imports if details else []:
            ctx.add_ref(ref)
        action_lines = lower_steps(steps, ctx, app_object, fields)

        mirrors_on = record.meta.mirrors_on or ctx.unit.mirrors_on
        plans = [
            process(screen, ctx, steps, fields, force_raw_mode)
            for screen in screens_for_platform(mirrors_on, ctx.platform_spec.validation_key)
        ]
        metadata.unique_refs = list(ctx.refs.values())

        paths = PathResolver(ctx)
        imports = [
            {
                "class_name": ref.class_name,
                "var_name": ref.instance_name,
                "path": paths.resolve_reference(ctx.output_path, ref.path or ref.class_name),
            }
            for ref in metadata.unique_refs
        ]
        screens = [
            {
                "screen_key": plan.screen_key,
                "mode": plan.mode.value,
                "mode_reason": plan.mode_reason,
                "downgraded_from": plan.downgraded_from,
                "summary": plan.summary,
                "lines": plan.lines,
            }
            for plan in plans
        ]
        emitted = action_lines + [line for screen in screens for line in screen["lines"]]

        description = (details.description if details else None) or (
            metadata.action_details.description if metadata.action_details else None
        )
        status = metadata.status or ""
        meta_literal = to_js_literal(
            {
                "className": metadata.class_name,
                "status": status,
                "previousStatus": metadata.previous_status,
                "platform": ctx.platform,
                "requiredFields": metadata.required_fields,
            }
        )

        context = {
            "impl_class_name": metadata.class_name,
            "platform": ctx.platform,
            "platform_suffix": ctx.platform_spec.suffix,
            "is_native": ctx.is_native,
            "app_object": app_object,
            "state": state,
            "target_status": status,
            "previous_status": metadata.previous_status,
            "transition": primary,
            "action_name": metadata.action_name,
            "action_description": description or f"Transition to {status} state",
            "test_file_name": metadata.test_file_name,
            "test_description": f"{status} State Transition",
            "utils_path": paths.resolve_utils_dir(ctx.output_path),
            "imports": imports,
            "needs_expect_implication": any("ExpectImplication." in line for line in emitted),
            "meta_literal": meta_literal,
            "option_params": option_params(metadata.has_entity_logic),
            "has_entity_logic": metadata.has_entity_logic,
            "entity_name": metadata.entity_name,
            "entity_collection": f"{metadata.entity_name}s",
            "navigation_lines": navigation_lines(ctx.platform, ctx.is_native, metadata),
            "action_lines": action_lines,
            "action_hint_lines": [] if action_lines else action_hint_lines(ctx.is_native, metadata),
            "screens": screens,
            "delta_fields": [{"key": f.key, "value": f.value} for f in metadata.delta_fields],
            "test_cases": build_test_cases(metadata),
            "change_log_label": (
                f"{status} {metadata.entity_name if metadata.has_entity_logic else 'State'}"
            ),
            "default_test_data_path": DEFAULT_TEST_DATA_PATH,
        }
        return plans, context
