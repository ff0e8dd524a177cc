"""Compilation context for unit-test generation.

Accumulates degradations and external references while one
(target state, platform) pair is compiled. Never shared across pairs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from src.generator.config import PlatformSpec, ProjectConfig
from src.generator.errors import ResolutionDegraded
from src.generator.graph import ImportRef, ImplicationUnit

logger = logging.getLogger(__name__)


@dataclass
class CompilationContext:
    """Accumulation context for one compilation.

    Used by the resolvers and the block processor to record degradations
    and to register references the generated test must import.
    """

    unit: ImplicationUnit
    platform: str
    platform_spec: PlatformSpec
    config: ProjectConfig
    project_root: Path
    output_path: Path
    degradations: list[ResolutionDegraded] = field(default_factory=list)
    refs: dict[str, ImportRef] = field(default_factory=dict)

    @property
    def is_native(self) -> bool:
        return self.platform_spec.is_native

    def degrade(
        self,
        component: str,
        subject: str,
        fallback: str,
        alternatives: list[str] | tuple[str, ...] = (),
    ) -> ResolutionDegraded:
        """Record a non-fatal fallback and log it at warning level."""
        record = ResolutionDegraded(component, subject, fallback, tuple(alternatives))
        self.degradations.append(record)
        logger.warning(f"Resolution degraded: {record}")
        return record

    def add_ref(self, ref: ImportRef) -> bool:
        """Add an external reference, deduplicate by class name.

        Returns True when the reference was new.
        """
        if ref.class_name in self.refs:
            return False
        self.refs[ref.class_name] = ref
        return True
