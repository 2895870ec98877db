"""Pydantic models for the resolved dependency graph.

This module defines the models used to validate the dependency graph
document handed over by the resolver: the buildable targets, their
per-configuration build settings, and the generated project they live in.

Loose inputs (resource paths as a mapping, build settings as lists or
booleans) are normalized here, once, so the rest of the package only sees
flat lists of strings and flat string mappings.
"""

import re
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from prebuild_cache.store.delta import DELTA_FILENAME

# Names double as directory names directly under the artifact store root
TARGET_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.+\-]*$")
RESERVED_TARGET_NAMES = frozenset({DELTA_FILENAME})


def _flatten_setting(value: Any) -> str:
    """Flatten a single build setting value to its string form."""
    if isinstance(value, bool):
        return "YES" if value else "NO"
    if isinstance(value, (list, tuple)):
        return " ".join(_flatten_setting(v) for v in value)
    if value is None:
        return ""
    return str(value)


class BuildConfigurationSchema(BaseModel):
    """Build configuration of a target inside the generated project.

    Attributes:
        name: Configuration name (e.g., 'Debug', 'Release').
        build_settings: Flattened key/value build settings.
    """

    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, Field(min_length=1, max_length=255)]
    build_settings: dict[str, str] = Field(default_factory=dict)

    @field_validator("build_settings", mode="before")
    @classmethod
    def flatten_build_settings(cls, v: Any) -> Any:
        """Flatten list, boolean, and numeric values to strings."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        return {str(key): _flatten_setting(value) for key, value in v.items()}


class TargetSchema(BaseModel):
    """A buildable or binary-only unit of the dependency graph.

    Attributes:
        name: Unique target name.
        should_build: False for binary-only targets that are copied verbatim.
        framework_name: Product name (defaults to the target name).
        static_framework: Whether the product is statically linked.
        source_dir: Source root of the target.
        resource_paths: Resource paths, normalized to an ordered list.
        resource_bundles: Resource bundle names (without extension).
        vendored_frameworks: Vendored frameworks, relative to source_dir.
        vendored_libraries: Vendored libraries, relative to source_dir.
        build_configurations: Per-configuration build settings.
    """

    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, Field(min_length=1, max_length=255)]
    should_build: bool = True
    framework_name: str | None = None
    static_framework: bool = False
    source_dir: Annotated[str, Field(min_length=1)]
    resource_paths: list[str] = Field(default_factory=list)
    resource_bundles: list[str] = Field(default_factory=list)
    vendored_frameworks: list[str] = Field(default_factory=list)
    vendored_libraries: list[str] = Field(default_factory=list)
    build_configurations: list[BuildConfigurationSchema] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate target name matches safe pattern."""
        if not TARGET_NAME_PATTERN.match(v):
            raise ValueError(
                f"name must match pattern {TARGET_NAME_PATTERN.pattern}, got '{v}'"
            )
        if v in RESERVED_TARGET_NAMES:
            raise ValueError(f"name '{v}' is reserved by the artifact store")
        return v

    @field_validator("resource_paths", mode="before")
    @classmethod
    def normalize_resource_paths(cls, v: Any) -> Any:
        """Accept a configuration -> paths mapping and flatten it in order."""
        if v is None:
            return []
        if isinstance(v, dict):
            flattened: list[Any] = []
            for paths in v.values():
                if isinstance(paths, (list, tuple)):
                    flattened.extend(paths)
                elif paths is not None:
                    flattened.append(paths)
            return flattened
        return v

    @field_validator("vendored_frameworks", "vendored_libraries")
    @classmethod
    def validate_relative_paths(cls, v: list[str]) -> list[str]:
        """Vendored paths must stay inside the source directory."""
        for item in v:
            if not item or item.startswith("/"):
                raise ValueError(f"vendored path must be relative, got '{item}'")
            if ".." in item.replace("\\", "/").split("/"):
                raise ValueError(f"vendored path must not contain '..', got '{item}'")
        return v

    @property
    def effective_framework_name(self) -> str:
        """Product name of the target."""
        return self.framework_name or self.name

    @property
    def vendored_paths(self) -> list[str]:
        """Vendored frameworks followed by vendored libraries."""
        return [*self.vendored_frameworks, *self.vendored_libraries]

    def find_configuration(self, name: str) -> BuildConfigurationSchema | None:
        """Return the build configuration with the given name, if any."""
        for config in self.build_configurations:
            if config.name == name:
                return config
        return None


class GraphSchema(BaseModel):
    """The resolved dependency graph document.

    Attributes:
        project_path: Path of the generated project (e.g., Pods.xcodeproj).
        project_root: Root of the consuming project.
        targets: Every target of the current resolution.
    """

    model_config = ConfigDict(extra="forbid")

    project_path: Annotated[str, Field(min_length=1)]
    project_root: str | None = None
    targets: list[TargetSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_names(self) -> "GraphSchema":
        """Target names must be unique."""
        seen: set[str] = set()
        for target in self.targets:
            if target.name in seen:
                raise ValueError(f"duplicate target name '{target.name}'")
            seen.add(target.name)
        return self

    @property
    def target_names(self) -> list[str]:
        """Names of every target, in graph order."""
        return [t.name for t in self.targets]

    def get_target(self, name: str) -> TargetSchema | None:
        """Return the target with the given name, if any."""
        for target in self.targets:
            if target.name == name:
                return target
        return None


__all__ = [
    "RESERVED_TARGET_NAMES",
    "TARGET_NAME_PATTERN",
    "BuildConfigurationSchema",
    "GraphSchema",
    "TargetSchema",
]
