"""Locate the unit that defines a given status.

Lookup order: the state registry file, the naming convention
``{PascalStatus}Implications.(py|json)``, then a scan of the implications
directory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from src.generator.errors import GeneratorError
from src.generator.naming import pascal_case, state_matches

if TYPE_CHECKING:
    from src.generator.config import ProjectConfig
    from src.generator.loader.source_loader import SourceLoader

logger = logging.getLogger(__name__)

UNIT_SUFFIXES = (".py", ".json")


class StateRegistry:
    """Status name -> unit basename, matched case-insensitively."""

    def __init__(self, mappings: dict[str, str] | None = None):
        self.mappings = {
            str(status).lower(): basename
            for status, basename in (mappings or {}).items()
            if isinstance(basename, str)
        }

    @classmethod
    def from_file(cls, path: str | Path) -> StateRegistry:
        path = Path(path)
        if not path.is_file():
            return cls()
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state registry {path}: {e}")
            return cls()
        if isinstance(data, dict) and isinstance(data.get("mappings"), dict):
            data = data["mappings"]
        return cls(data if isinstance(data, dict) else {})

    def lookup(self, status: str) -> str | None:
        return self.mappings.get(status.lower())

    def __len__(self) -> int:
        return len(self.mappings)


class UnitLocator:
    """Find the unit file for a status under a project root."""

    def __init__(self, project_root: Path, config: ProjectConfig, loader: SourceLoader):
        self.project_root = project_root
        self.config = config
        self.loader = loader
        self.implications_dir = project_root / config.implications_dir
        self.registry = StateRegistry.from_file(project_root / config.registry_path)

    def locate(self, status: str) -> Path | None:
        """Return the unit defining ``status``, or None."""
        basename = self.registry.lookup(status)
        if basename:
            found = self._find_file(basename)
            if found is not None:
                logger.debug(f"Registry hit for {status}: {found}")
                return found

        found = self._find_file(f"{pascal_case(status)}Implications")
        if found is not None:
            logger.debug(f"Naming-convention hit for {status}: {found}")
            return found

        return self._scan(status)

    def _find_file(self, basename: str) -> Path | None:
        if not self.implications_dir.is_dir():
            return None
        stem = Path(basename).stem if Path(basename).suffix in UNIT_SUFFIXES else basename
        for suffix in UNIT_SUFFIXES:
            direct = self.implications_dir / f"{stem}{suffix}"
            if direct.is_file():
                return direct
        for suffix in UNIT_SUFFIXES:
            for candidate in sorted(self.implications_dir.rglob(f"{stem}{suffix}")):
                return candidate
        return None

    def _scan(self, status: str) -> Path | None:
        if not self.implications_dir.is_dir():
            return None
        candidates = sorted(
            p
            for suffix in UNIT_SUFFIXES
            for p in self.implications_dir.rglob(f"*{suffix}")
            if not p.name.startswith((".", "_"))
        )
        for candidate in candidates:
            try:
                graph = self.loader.load(candidate).graph
            except GeneratorError as e:
                logger.debug(f"Skipping {candidate} during scan: {e}")
                continue
            if state_matches(graph.meta.status, status):
                return candidate
            if any(state_matches(name, status) for name in graph.states):
                return candidate
        return None
