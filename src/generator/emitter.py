"""Render a resolved context through a Jinja2 template.

Templates live in ``src/generator/templates`` unless another directory is
passed in (or named by ``TESTGEN_TEMPLATES_DIR``). A template is compiled
once per (directory, template id) and reused for the process lifetime.

The helper library is registered both as filters and as globals so
templates can write ``{{ name | camel }}`` or ``{{ camel(name) }}``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
)

from src.generator.errors import TemplateError
from src.generator.naming import camel_case, capitalize, pascal_case, snake_case
from src.generator.resolvers.variable_resolver import to_js_literal

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"
UNIT_TEST_TEMPLATE = "unit-test.spec.js.j2"

_template_cache: dict[tuple[str, str], Template] = {}


# =============================================================================
# Helpers
# =============================================================================


def join(items: Any, separator: str = ", ") -> str:
    if not items:
        return ""
    return separator.join(str(item) for item in items)


def length(items: Any) -> int:
    return len(items) if items else 0


def is_empty(items: Any) -> bool:
    return not items


def is_not_empty(items: Any) -> bool:
    return bool(items)


def all_of(*values: Any) -> bool:
    return all(values)


def any_of(*values: Any) -> bool:
    return any(values)


def none_of(*values: Any) -> bool:
    return not any(values)


def eq(left: Any, right: Any) -> bool:
    return left == right


def contains(container: Any, item: Any) -> bool:
    if container is None:
        return False
    return item in container


def to_json(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, default=str)


def indent_lines(lines: Any, depth: int = 1, width: int = 2) -> str:
    """Join code lines, indenting every non-blank one by ``depth`` levels."""
    prefix = " " * (width * depth)
    return "\n".join(f"{prefix}{line}" if line.strip() else "" for line in lines or ())


def debug(value: Any) -> str:
    logger.debug(f"Template debug: {value!r}")
    return ""


HELPERS = {
    "camel": camel_case,
    "pascal": pascal_case,
    "snake": snake_case,
    "capitalize_first": capitalize,
    "join": join,
    "length": length,
    "is_empty": is_empty,
    "is_not_empty": is_not_empty,
    "all_of": all_of,
    "any_of": any_of,
    "none_of": none_of,
    "eq": eq,
    "contains": contains,
    "json": to_json,
    "js": to_js_literal,
    "lines": indent_lines,
    "debug": debug,
}


# =============================================================================
# Emitter
# =============================================================================


def build_environment(templates_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters.update(HELPERS)
    env.globals.update(HELPERS)
    return env


class TemplateEmitter:
    """Renders templates from one directory.

    Example:
        emitter = TemplateEmitter()
        code = emitter.emit("unit-test.spec.js.j2", context)
    """

    def __init__(self, templates_dir: str | Path | None = None):
        directory = templates_dir or os.getenv("TESTGEN_TEMPLATES_DIR") or DEFAULT_TEMPLATES_DIR
        self.templates_dir = Path(directory).resolve()
        self.env = build_environment(self.templates_dir)

    def template(self, template_id: str) -> Template:
        """Compiled template for ``template_id`` (cached).

        Raises:
            TemplateError: If the template cannot be located or compiled.
        """
        key = (str(self.templates_dir), template_id)
        cached = _template_cache.get(key)
        if cached is not None:
            return cached
        try:
            template = self.env.get_template(template_id)
        except TemplateNotFound as e:
            raise TemplateError(
                f"Template not found: {template_id} (searched {self.templates_dir})"
            ) from e
        except TemplateSyntaxError as e:
            raise TemplateError(f"Template {template_id} is invalid: {e}") from e
        logger.debug(f"Compiled template {template_id} from {self.templates_dir}")
        _template_cache[key] = template
        return template

    def emit(self, template_id: str, context: dict[str, Any]) -> str:
        """Render ``template_id`` with ``context``."""
        return self.template(template_id).render(**context)


def clear_template_cache() -> None:
    """Drop every compiled template."""
    _template_cache.clear()
