"""Shared test fixtures and helpers."""

import json
import textwrap
from pathlib import Path

import pytest

from src.generator.config import ProjectConfig, clear_config_cache
from src.generator.context import CompilationContext
from src.generator.emitter import clear_template_cache
from src.generator.graph import ImplicationUnit, StateGraph

IMPLICATIONS_DIR = Path("tests") / "implications"
DISCOVERY_PATH = Path(".implications-framework") / "cache" / "discovery-result.json"


def write_unit(project: Path, name: str, source: str) -> Path:
    """Write a state-definition unit under the project's implications directory.

    Python sources are dedented; dicts are written as JSON units.

    Args:
        project: Project root
        name: File name (e.g. "AcceptedImplications.py")
        source: Python source text, or a dict for a JSON unit

    Returns:
        Path of the written unit
    """
    path = project / IMPLICATIONS_DIR / name
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(source, dict):
        path.write_text(json.dumps(source, indent=2))
    else:
        path.write_text(textwrap.dedent(source).lstrip())
    return path


def write_discovery(project: Path, transitions: list[dict]) -> Path:
    """Write a discovery index snapshot with the given transitions."""
    path = project / DISCOVERY_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"transitions": transitions}))
    return path


def write_config(project: Path, config: dict) -> Path:
    path = project / "ai-testing.config.json"
    path.write_text(json.dumps(config))
    clear_config_cache()
    return path


def make_unit(
    graph: dict,
    class_name: str = "TestImplications",
    path: str = "/project/tests/implications/TestImplications.py",
    mirrors_on: dict | None = None,
) -> ImplicationUnit:
    """Build an in-memory unit from a graph dict."""
    return ImplicationUnit(
        class_name=class_name,
        path=path,
        graph=StateGraph.model_validate(graph),
        mirrors_on=mirrors_on,
    )


def make_context(
    project_root: Path | None = None,
    platform: str = "web",
    graph: dict | None = None,
    unit: ImplicationUnit | None = None,
    config: ProjectConfig | None = None,
) -> CompilationContext:
    """Build a compilation context for a unit (a one-state unit by default).

    The generated file is placed in the project's implications directory.
    """
    project_root = project_root or Path("/project")
    config = config or ProjectConfig()
    if unit is None:
        unit = make_unit(
            graph or {"meta": {"status": "draft"}},
            path=str(project_root / IMPLICATIONS_DIR / "TestImplications.py"),
        )
    return CompilationContext(
        unit=unit,
        platform=platform,
        platform_spec=config.platform(platform),
        config=config,
        project_root=project_root,
        output_path=project_root / IMPLICATIONS_DIR / "Test-Web-UNIT.spec.js",
    )


@pytest.fixture(autouse=True)
def fresh_caches():
    """Process-lifetime caches start empty for every test."""
    clear_config_cache()
    clear_template_cache()
    yield
    clear_config_cache()
    clear_template_cache()


@pytest.fixture
def project(tmp_path) -> Path:
    """Throw-away project: marker directory, implications and utilities."""
    (tmp_path / IMPLICATIONS_DIR).mkdir(parents=True)
    utils = tmp_path / "tests" / "ai-testing" / "utils"
    utils.mkdir(parents=True)
    (utils / "TestContext.js").write_text("module.exports = class TestContext {};\n")
    return tmp_path


@pytest.fixture
def booking_project(project) -> Path:
    """Project with a pending -> accepted booking flow.

    - PendingImplications.py: ``pending --ACCEPT--> accepted`` with one step
      storing ``bookingId``
    - AcceptedImplications.py: validation screen referencing ``{{bookingId}}``
    - discovery index with the ACCEPT transition listed twice
    - a screen object for the booking details screen
    """
    write_unit(
        project,
        "PendingImplications.py",
        """
        class PendingImplications:
            xstate_config = {
                "meta": {"status": "pending", "requiredFields": ["bookingRef"]},
                "on": {
                    "ACCEPT": {
                        "target": "accepted",
                        "actionDetails": {
                            "description": "Accept the pending booking",
                            "imports": [
                                {
                                    "className": "BookingActions",
                                    "path": "tests/screenObjects/BookingActions.js",
                                    "varName": "bookingActions",
                                }
                            ],
                            "steps": [
                                {
                                    "instance": "bookingActions",
                                    "method": "accept",
                                    "args": ["{{bookingRef}}"],
                                    "storeAs": "bookingId",
                                }
                            ],
                        },
                    },
                },
            }
        """,
    )
    write_unit(
        project,
        "AcceptedImplications.py",
        """
        class AcceptedImplications:
            xstate_config = {
                "meta": {
                    "status": "accepted",
                    "requiredFields": ["bookingRef"],
                    "setup": [{"platform": "web"}],
                },
                "entry": {
                    "status": "accepted",
                    "acceptedAt": lambda ctx, event: event.get("accepted_at"),
                },
            }

            mirrors_on = {
                "UI": {
                    "Web": {
                        "bookingDetails": {
                            "instance": "bookingDetails",
                            "screen": "BookingDetails.js",
                            "blocks": [
                                {
                                    "type": "ui-assertion",
                                    "label": "Header",
                                    "order": 0,
                                    "data": {"visible": ["title"]},
                                },
                                {
                                    "type": "data-assertion",
                                    "label": "Booking stored",
                                    "order": 1,
                                    "data": {
                                        "assertions": [
                                            {"left": "{{bookingId}}", "operator": "isDefined"}
                                        ]
                                    },
                                },
                            ],
                        }
                    }
                }
            }
        """,
    )
    screens = project / "tests" / "screenObjects"
    screens.mkdir(parents=True, exist_ok=True)
    (screens / "BookingDetails.js").write_text("module.exports = class BookingDetails {};\n")
    (screens / "BookingActions.js").write_text("module.exports = class BookingActions {};\n")
    entry = {
        "from": "pending",
        "event": "ACCEPT",
        "to": "accepted",
        "platforms": ["web"],
        "file": "tests/implications/PendingImplications.py",
    }
    write_discovery(project, [entry, dict(entry)])
    return project
