"""Per-project configuration.

Read from ``ai-testing.config.json`` at the project root. A missing or
unreadable file yields the defaults. Resolved configurations are cached
per project path for the process lifetime.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "ai-testing.config.json"


class PlatformSpec(BaseModel):
    """How a platform is named, validated and automated."""

    model_config = ConfigDict(populate_by_name=True)

    suffix: str
    validation_key: str = Field(alias="validationKey")
    automation: str = "browser"  # browser | native

    @property
    def is_native(self) -> bool:
        return self.automation == "native"


BUILTIN_PLATFORMS: dict[str, PlatformSpec] = {
    "web": PlatformSpec(suffix="Web", validation_key="Web", automation="browser"),
    "cms": PlatformSpec(suffix="CMS", validation_key="CMS", automation="browser"),
    "mobile-dancer": PlatformSpec(suffix="Dancer", validation_key="dancer", automation="native"),
    "mobile-manager": PlatformSpec(
        suffix="Manager", validation_key="clubApp", automation="native"
    ),
    "dancer": PlatformSpec(suffix="Dancer", validation_key="dancer", automation="native"),
    "clubApp": PlatformSpec(suffix="ClubApp", validation_key="clubApp", automation="native"),
}


def default_platform(name: str) -> PlatformSpec:
    """Built-in spec, or a browser platform named after itself."""
    if name in BUILTIN_PLATFORMS:
        return BUILTIN_PLATFORMS[name]
    return PlatformSpec(
        suffix=name[:1].upper() + name[1:], validation_key=name, automation="browser"
    )


class ProjectConfig(BaseModel):
    """Project-level settings consumed by the resolvers."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    project_marker: str = Field(default="tests", alias="projectMarker")
    root_markers: list[str] = Field(default_factory=lambda: ["tests/"], alias="rootMarkers")
    implications_dir: str = Field(default="tests/implications", alias="implicationsDir")
    registry_path: str = Field(
        default="tests/implications/.state-registry.json", alias="registryPath"
    )
    discovery_path: str = Field(
        default=".implications-framework/cache/discovery-result.json", alias="discoveryPath"
    )
    utils_path: str | None = Field(default=None, alias="utilsPath")
    screen_paths: dict[str, list[str]] = Field(default_factory=dict, alias="screenPaths")
    search_paths: list[str] = Field(default_factory=list, alias="searchPaths")
    screen_dir_names: list[str] = Field(
        default_factory=lambda: ["screenObjects", "screens", "pages", "pageObjects", "poms"],
        alias="screenDirNames",
    )
    platforms: dict[str, PlatformSpec] = Field(default_factory=dict)

    @field_validator("platforms", mode="before")
    @classmethod
    def _merge_platforms(cls, value: Any) -> Any:
        """Merge each configured entry field by field over its default spec."""
        if not isinstance(value, dict):
            return {}
        merged = {}
        for name, entry in value.items():
            if isinstance(entry, PlatformSpec):
                merged[name] = entry
                continue
            if not isinstance(entry, dict):
                logger.warning(f"Ignoring platform {name}: not a mapping")
                continue
            overrides = dict(entry)
            if "validation_key" in overrides:
                overrides["validationKey"] = overrides.pop("validation_key")
            merged[name] = default_platform(name).model_dump(by_alias=True) | overrides
        return merged

    def platform(self, name: str) -> PlatformSpec:
        """Spec for a platform; configured entries win over the built-in table.

        Unknown platforms are treated as browser platforms named after
        themselves.
        """
        if name in self.platforms:
            return self.platforms[name]
        return default_platform(name)


_config_cache: dict[str, ProjectConfig] = {}


def load_config(project_root: str | Path) -> ProjectConfig:
    """Load (and cache) the configuration for a project root."""
    key = str(Path(project_root).resolve())
    cached = _config_cache.get(key)
    if cached is not None:
        return cached

    config_path = Path(key) / CONFIG_FILE_NAME
    config = ProjectConfig()
    if config_path.is_file():
        try:
            config = ProjectConfig.model_validate(json.loads(config_path.read_text()))
            logger.info(f"Loaded project config from {config_path}")
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable config {config_path}: {e}")
    else:
        logger.debug(f"No {CONFIG_FILE_NAME} under {key}, using defaults")

    _config_cache[key] = config
    return config


def clear_config_cache() -> None:
    """Drop every cached configuration."""
    _config_cache.clear()
