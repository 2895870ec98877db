"""Generated project access: build schemes and build settings.

This module handles:
- Writing a shared build scheme that references a given set of targets
- Looking up per-target build settings by configuration name
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path

from prebuild_cache.errors import ConfigurationError
from prebuild_cache.graph.schema import GraphSchema, TargetSchema
from prebuild_cache.store.fs import atomic_write_text

logger = logging.getLogger(__name__)

SCHEME_VERSION = "1.3"


class Project:
    """The generated project the toolchain builds from.

    Args:
        path: Path of the project bundle (e.g., Pods/Pods.xcodeproj).
        targets: Native targets of the project.
    """

    def __init__(self, path: Path, targets: Sequence[TargetSchema]) -> None:
        self.path = path
        self._targets = {t.name: t for t in targets}

    @classmethod
    def from_graph(cls, graph: GraphSchema) -> Project:
        """Create a Project from a loaded graph."""
        return cls(Path(graph.project_path), graph.targets)

    @property
    def target_names(self) -> list[str]:
        """Names of the project's native targets."""
        return list(self._targets)

    def scheme_path(self, scheme_name: str) -> Path:
        """Return where a shared scheme with the given name is persisted."""
        return self.path / "xcshareddata" / "xcschemes" / f"{scheme_name}.xcscheme"

    def create_scheme(self, scheme_name: str, target_names: Sequence[str]) -> Path:
        """Create or overwrite a shared scheme building exactly target_names.

        Args:
            scheme_name: Name of the scheme.
            target_names: Targets the scheme builds.

        Returns:
            Path of the written scheme file.

        Raises:
            ConfigurationError: If no targets are given or a target is
                unknown to the project.
        """
        if not target_names:
            raise ConfigurationError(f"Scheme '{scheme_name}' has no targets")
        unknown = [name for name in target_names if name not in self._targets]
        if unknown:
            raise ConfigurationError(
                f"Scheme '{scheme_name}' references unknown targets: "
                f"{', '.join(sorted(unknown))}"
            )

        logger.info(
            "Create a scheme '%s' to prebuild %d given targets",
            scheme_name,
            len(target_names),
        )
        content = self._render_scheme([self._targets[n] for n in target_names])
        return atomic_write_text(self.scheme_path(scheme_name), content)

    def _render_scheme(self, targets: list[TargetSchema]) -> str:
        """Render the scheme XML for the given targets."""
        container = f"container:{self.path.name}"
        scheme = ET.Element("Scheme", {"version": SCHEME_VERSION})
        build_action = ET.SubElement(
            scheme,
            "BuildAction",
            {"parallelizeBuildables": "YES", "buildImplicitDependencies": "YES"},
        )
        entries = ET.SubElement(build_action, "BuildActionEntries")
        for target in targets:
            entry = ET.SubElement(
                entries,
                "BuildActionEntry",
                {
                    "buildForTesting": "YES",
                    "buildForRunning": "YES",
                    "buildForProfiling": "YES",
                    "buildForArchiving": "YES",
                    "buildForAnalyzing": "YES",
                },
            )
            ET.SubElement(
                entry,
                "BuildableReference",
                {
                    "BuildableIdentifier": "primary",
                    "BuildableName": target.effective_framework_name,
                    "BlueprintName": target.name,
                    "ReferencedContainer": container,
                },
            )
        ET.SubElement(
            scheme,
            "TestAction",
            {"buildConfiguration": "Debug", "codeCoverageEnabled": "YES"},
        )
        ET.indent(scheme)
        body = ET.tostring(scheme, encoding="unicode")
        return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}\n'

    def build_settings(self, target_name: str, configuration: str) -> dict[str, str]:
        """Return the flattened build settings of a target's configuration.

        Args:
            target_name: Target name.
            configuration: Build configuration name.

        Returns:
            Copy of the build settings mapping.

        Raises:
            ConfigurationError: If the target or configuration does not exist.
        """
        target = self._targets.get(target_name)
        if target is None:
            raise ConfigurationError(f"Target not found in project: {target_name}")
        config = target.find_configuration(configuration)
        if config is None:
            raise ConfigurationError(
                f"Build configuration '{configuration}' not found "
                f"for target {target_name}"
            )
        return dict(config.build_settings)


__all__ = ["SCHEME_VERSION", "Project"]
