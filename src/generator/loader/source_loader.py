"""Obtain the state graph of a state-definition unit.

Python units are executed from their file location under a fresh module
name on every load; the module is not registered in ``sys.modules`` and
neither the working directory nor ``sys.path`` is touched. When execution
fails the source text is parsed instead and the unit attributes are
reconstructed from literal nodes, with computed values left as
placeholders. JSON units are read directly.

Loaded units are kept in an arena keyed by absolute path until
invalidated.
"""

from __future__ import annotations

import importlib.util
import inspect
import itertools
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.generator.errors import LoadError, ResolutionDegraded
from src.generator.graph import ImplicationUnit, StateGraph
from src.generator.loader.reconstructor import reconstruct
from src.generator.loader.syntax import (
    GRAPH_ATTRIBUTES,
    SCREEN_ATTRIBUTES,
    TRIGGER_ATTRIBUTES,
    parse_unit_source,
)
from src.generator.naming import pascal_case

logger = logging.getLogger(__name__)

MAX_ROOT_DEPTH = 10

_load_counter = itertools.count(1)


def find_project_root(unit_path: str | Path, marker: str = "tests") -> Path | None:
    """First ancestor of the unit that contains the marker directory.

    Searches at most ten levels; returns None when nothing matches.
    """
    current = Path(unit_path).resolve().parent
    for _ in range(MAX_ROOT_DEPTH):
        if (current / marker).is_dir():
            return current
        if current.parent == current:
            break
        current = current.parent
    return None


def _first_attribute(source: Any, names: tuple[str, ...]) -> Any:
    for name in names:
        if isinstance(source, dict):
            if name in source:
                return source[name]
        elif hasattr(source, name):
            return getattr(source, name)
    return None


class SourceLoader:
    """Loads units and keeps them in an arena keyed by absolute path."""

    def __init__(self, project_marker: str = "tests"):
        self.project_marker = project_marker
        self._arena: dict[str, ImplicationUnit] = {}

    def load(self, unit_path: str | Path) -> ImplicationUnit:
        """Load a unit, reusing the arena entry when present.

        Raises:
            LoadError: If no strategy produces a state graph.
        """
        path = Path(unit_path).resolve()
        key = str(path)
        cached = self._arena.get(key)
        if cached is not None:
            return cached

        if not path.is_file():
            raise LoadError(f"Unit not found: {path}", attempted=[key])

        degradations: list[ResolutionDegraded] = []
        project_root = find_project_root(path, self.project_marker)
        if project_root is None:
            project_root = path.parent
            record = ResolutionDegraded(
                "loader", f"project root of {path.name}", str(project_root)
            )
            logger.warning(f"Resolution degraded: {record}")
            degradations.append(record)

        if path.suffix == ".json":
            unit = self._load_json(path)
        else:
            unit = self._load_python(path, degradations)

        unit.project_root = str(project_root)
        unit.degradations = degradations + unit.degradations
        self._arena[key] = unit
        logger.info(f"Loaded {unit.class_name} from {path} ({unit.strategy})")
        return unit

    def invalidate(self, unit_path: str | Path | None = None) -> None:
        """Drop one arena entry, or every entry when no path is given."""
        if unit_path is None:
            self._arena.clear()
            return
        self._arena.pop(str(Path(unit_path).resolve()), None)

    # =========================================================================
    # Strategies
    # =========================================================================

    def _load_python(
        self, path: Path, degradations: list[ResolutionDegraded]
    ) -> ImplicationUnit:
        attempted = [f"dynamic:{path}"]
        try:
            return self._load_dynamic(path)
        except LoadError:
            raise
        except Exception as e:
            logger.warning(f"Dynamic load of {path.name} failed ({type(e).__name__}: {e})")

        attempted.append(f"syntax:{path}")
        try:
            unit = self._load_syntax(path)
        except (OSError, SyntaxError, ValueError) as e:
            raise LoadError(f"Cannot load {path}: {e}", attempted=attempted) from e
        if unit is None:
            raise LoadError(f"No state graph found in {path}", attempted=attempted)

        record = ResolutionDegraded("loader", str(path), "syntax-tree reconstruction")
        logger.warning(f"Resolution degraded: {record}")
        unit.degradations.append(record)
        return unit

    def _load_dynamic(self, path: Path) -> ImplicationUnit:
        module_name = f"_unit_{path.stem}_{next(_load_counter)}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"No loader for {path}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        holder: Any = None
        class_name = None
        classes = [
            obj
            for obj in vars(module).values()
            if inspect.isclass(obj)
            and obj.__module__ == module_name
            and _first_attribute(obj, GRAPH_ATTRIBUTES) is not None
        ]
        preferred = [c for c in classes if c.__name__.endswith("Implications")]
        if preferred or classes:
            holder = (preferred or classes)[0]
            class_name = holder.__name__
        elif _first_attribute(module, GRAPH_ATTRIBUTES) is not None:
            holder = module
            class_name = pascal_case(path.stem)
        else:
            raise LoadError(
                f"Invalid unit: missing xstate_config in {path}", attempted=[f"dynamic:{path}"]
            )

        return self._build(
            path,
            class_name,
            _first_attribute(holder, GRAPH_ATTRIBUTES),
            _first_attribute(holder, SCREEN_ATTRIBUTES),
            _first_attribute(holder, TRIGGER_ATTRIBUTES),
            strategy="dynamic",
        )

    def _load_syntax(self, path: Path) -> ImplicationUnit | None:
        source = parse_unit_source(path.read_text())
        graph_node = _first_attribute(source.attributes, GRAPH_ATTRIBUTES)
        if graph_node is None:
            return None
        values = {
            name: reconstruct(node, source.symbols) for name, node in source.attributes.items()
        }
        return self._build(
            path,
            source.class_name or pascal_case(path.stem),
            reconstruct(graph_node, source.symbols),
            _first_attribute(values, SCREEN_ATTRIBUTES),
            _first_attribute(values, TRIGGER_ATTRIBUTES),
            strategy="syntax",
        )

    def _load_json(self, path: Path) -> ImplicationUnit:
        attempted = [f"json:{path}"]
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise LoadError(f"Cannot read {path}: {e}", attempted=attempted) from e
        if not isinstance(data, dict):
            raise LoadError(f"Unit {path} is not a JSON object", attempted=attempted)

        graph = _first_attribute(data, GRAPH_ATTRIBUTES)
        if graph is None and any(key in data for key in ("meta", "on", "states")):
            graph = data
        if graph is None:
            raise LoadError(f"No state graph found in {path}", attempted=attempted)

        return self._build(
            path,
            data.get("className") or pascal_case(path.stem),
            graph,
            _first_attribute(data, SCREEN_ATTRIBUTES),
            _first_attribute(data, TRIGGER_ATTRIBUTES),
            strategy="json",
        )

    def _build(
        self,
        path: Path,
        class_name: str,
        graph: Any,
        mirrors_on: Any,
        triggered_by: Any,
        strategy: str,
    ) -> ImplicationUnit:
        if not isinstance(graph, dict):
            raise LoadError(
                f"State graph in {path} is not a mapping", attempted=[f"{strategy}:{path}"]
            )
        try:
            return ImplicationUnit(
                class_name=class_name,
                path=str(path),
                graph=StateGraph.model_validate(graph),
                mirrors_on=mirrors_on,
                triggered_by=triggered_by,
                strategy=strategy,
            )
        except PydanticValidationError as e:
            raise LoadError(
                f"Invalid state graph in {path}: {e}", attempted=[f"{strategy}:{path}"]
            ) from e
