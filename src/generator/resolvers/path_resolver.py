"""Relative references from a generated test to its dependencies.

Strategies, in priority order:

1. project-rooted target (starts with a root marker such as ``tests/``)
2. platform-specific configured search globs
3. configured search globs for all platforms
4. walk up from the artifact looking for a conventional screen directory
5. ``../<name>`` guess (recorded as a degradation)

Every result uses forward slashes and starts with ``./`` or ``../``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from src.generator.naming import camel_case, pascal_case

if TYPE_CHECKING:
    from src.generator.context import CompilationContext

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = (".js", ".ts", ".mjs", ".cjs")
UTILS_DIR_CANDIDATES = ("ai-testing/utils", "tests/ai-testing/utils", "tests/utils", "utils")
MAX_WALK_DEPTH = 10


def as_reference(from_dir: Path, target: Path) -> str:
    """Relative import reference: forward slashes, ``./``/``../`` prefix, no extension."""
    relative = os.path.relpath(target, from_dir).replace(os.sep, "/")
    posix = PurePosixPath(relative)
    if posix.suffix in SOURCE_EXTENSIONS:
        relative = str(posix.with_suffix(""))
    if not relative.startswith(("./", "../")):
        relative = f"./{relative}"
    return relative


def _strip_extension(name: str) -> str:
    path = PurePosixPath(name)
    return str(path.with_suffix("")) if path.suffix in SOURCE_EXTENSIONS else name


def _name_variants(name: str) -> set[str]:
    stem = _strip_extension(PurePosixPath(name.replace("\\", "/")).name)
    return {stem.lower(), pascal_case(stem).lower(), camel_case(stem).lower()}


def _matches(candidate: Path, variants: set[str]) -> bool:
    if candidate.suffix not in SOURCE_EXTENSIONS:
        return False
    stem = candidate.stem
    # booking.screen.js -> booking.screen, booking
    return stem.lower() in variants or stem.split(".")[0].lower() in variants


class PathResolver:
    """Resolves dependency references for one compilation."""

    def __init__(self, ctx: CompilationContext):
        self.ctx = ctx
        self.project_root = ctx.project_root
        self.config = ctx.config

    def resolve_reference(
        self, from_artifact: Path, target: str, platform: str | None = None
    ) -> str:
        """Reference from ``from_artifact`` to ``target``; never raises."""
        from_dir = from_artifact.parent
        platform = platform or self.ctx.platform
        normalized = target.replace("\\", "/")

        # 1. project-rooted
        if any(normalized.startswith(marker) for marker in self.config.root_markers):
            logger.debug(f"{target}: project-rooted")
            return as_reference(from_dir, self.project_root / normalized)

        variants = _name_variants(normalized)

        # 2. platform-specific, 3. all platforms
        for label, patterns in (
            (f"screenPaths[{platform}]", self.config.screen_paths.get(platform, [])),
            ("searchPaths", self.config.search_paths),
        ):
            found = self._search_globs(patterns, variants)
            if found is not None:
                logger.debug(f"{target}: found via {label} at {found}")
                return as_reference(from_dir, found)

        # 4. conventional sibling directories
        found = self._walk_for_screen_dir(from_dir, variants)
        if found is not None:
            logger.debug(f"{target}: found by directory walk at {found}")
            return as_reference(from_dir, found)

        # 5. guess
        guess = f"../{_strip_extension(PurePosixPath(normalized).name)}"
        self.ctx.degrade("path", target, guess)
        return guess

    def resolve_utils_dir(self, from_artifact: Path) -> str:
        """Reference to the directory holding the test runtime helpers."""
        from_dir = from_artifact.parent
        if self.config.utils_path:
            configured = Path(self.config.utils_path)
            if not configured.is_absolute():
                configured = self.project_root / configured
            return as_reference(from_dir, configured)

        current = from_dir
        for _ in range(MAX_WALK_DEPTH):
            for candidate in UTILS_DIR_CANDIDATES:
                if (current / candidate / "TestContext.js").is_file():
                    return as_reference(from_dir, current / candidate)
            if current == self.project_root or current.parent == current:
                break
            current = current.parent

        fallback = as_reference(from_dir, self.project_root / "tests" / "ai-testing" / "utils")
        self.ctx.degrade("path", "TestContext utilities", fallback)
        return fallback

    # =========================================================================
    # Strategies
    # =========================================================================

    def _search_globs(self, patterns: list[str], variants: set[str]) -> Path | None:
        for pattern in patterns:
            if Path(pattern).is_absolute():
                logger.debug(f"Skipping absolute search pattern {pattern}")
                continue
            for candidate in sorted(self.project_root.glob(pattern)):
                if candidate.is_file() and _matches(candidate, variants):
                    return candidate
        return None

    def _walk_for_screen_dir(self, start: Path, variants: set[str]) -> Path | None:
        current = start
        for _ in range(MAX_WALK_DEPTH):
            for dir_name in self.config.screen_dir_names:
                directory = current / dir_name
                if not directory.is_dir():
                    continue
                for candidate in sorted(directory.rglob("*")):
                    if candidate.is_file() and _matches(candidate, variants):
                        return candidate
            if current == self.project_root or current.parent == current:
                break
            current = current.parent
        return None
