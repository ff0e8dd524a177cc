"""Unit-test generator for state-definition units.

Compiles a declarative state graph (states, transitions and per-screen
validation blocks) into a runnable unit test for one platform.

The generation pipeline:
  1. SourceLoader     - load the unit (dynamic load, syntax-tree fallback, JSON)
  2. TransitionResolver + extract_metadata - incoming transitions, metadata record
  3. process / lower_steps - lower validation screens and transition steps
  4. PathResolver     - import references relative to the generated file
  5. TemplateEmitter  - render the Jinja2 template
"""

from src.generator.blocks.processor import EmissionPlan
from src.generator.config import ProjectConfig, load_config
from src.generator.errors import (
    GeneratorError,
    LoadError,
    ResolutionDegraded,
    TemplateError,
    ValidationError,
)
from src.generator.resolvers.metadata_extractor import StateMetadata
from src.generator.resolvers.transition_resolver import ExplicitTransition
from src.generator.unit_test_generator import GenerationResult, UnitTestGenerator

__all__ = [
    "UnitTestGenerator",
    "GenerationResult",
    "ExplicitTransition",
    "StateMetadata",
    "EmissionPlan",
    "ProjectConfig",
    "load_config",
    "GeneratorError",
    "LoadError",
    "ValidationError",
    "TemplateError",
    "ResolutionDegraded",
]
