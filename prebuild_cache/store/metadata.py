"""Per-artifact metadata records.

This module handles:
- The CachedArtifactRecord stored in every artifact directory
- Atomic save and absent-aware load of records
- Collecting a record for a freshly built target

A record is the only evidence that an artifact is usable: its source_hash
is compared against the lockfile to decide freshness.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from prebuild_cache.errors import MetadataError
from prebuild_cache.store.fs import atomic_write_text

if TYPE_CHECKING:
    from prebuild_cache.graph.project import Project
    from prebuild_cache.graph.schema import TargetSchema

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.json"


class CachedArtifactRecord(BaseModel):
    """Metadata describing one prebuilt artifact.

    Attributes:
        framework_name: Product name.
        static_framework: Whether the product is statically linked.
        resources: Resource paths of the target.
        resource_bundles: Resource bundle file names ('<name>.bundle').
        build_settings: Build settings of the configuration used.
        source_hash: Lockfile hash at build time (None if untracked).
        project_root: Root of the consuming project at build time.
        built_at: When the record was collected.
    """

    model_config = ConfigDict(extra="ignore")

    framework_name: str
    static_framework: bool = False
    resources: list[str] = Field(default_factory=list)
    resource_bundles: list[str] = Field(default_factory=list)
    build_settings: dict[str, str] = Field(default_factory=dict)
    source_hash: str | None = None
    project_root: str | None = None
    built_at: datetime | None = None


def metadata_path(target_dir: Path) -> Path:
    """Return the metadata file path inside an artifact directory."""
    return target_dir / METADATA_FILENAME


def save_metadata(target_dir: Path, record: CachedArtifactRecord) -> Path:
    """Persist a record into an artifact directory.

    Args:
        target_dir: Artifact directory of the target.
        record: Record to save.

    Returns:
        Path of the metadata file.

    Raises:
        FilesystemError: If the record cannot be written.
    """
    path = metadata_path(target_dir)
    atomic_write_text(path, record.model_dump_json(indent=2) + "\n")
    logger.debug("Saved metadata for %s to %s", record.framework_name, path)
    return path


def load_metadata(target_dir: Path) -> CachedArtifactRecord | None:
    """Load the record of an artifact directory.

    Args:
        target_dir: Artifact directory of the target.

    Returns:
        The record, or None if the target was never built.

    Raises:
        MetadataError: If a record exists but cannot be read or parsed.
    """
    path = metadata_path(target_dir)
    if not path.is_file():
        return None
    try:
        content = path.read_text(encoding="utf-8")
        return CachedArtifactRecord.model_validate_json(content)
    except (OSError, UnicodeDecodeError, ValidationError) as e:
        raise MetadataError(f"Invalid metadata record {path}: {e}", path=path) from e


def collect_metadata(
    target: TargetSchema,
    project: Project,
    configuration: str,
    source_hash: str | None,
    project_root: str | None,
) -> CachedArtifactRecord:
    """Collect the metadata record of a freshly built target.

    Args:
        target: Target that was built.
        project: Generated project holding the build configurations.
        configuration: Build configuration name used for the build.
        source_hash: Current lockfile hash of the target.
        project_root: Root of the consuming project.

    Returns:
        New CachedArtifactRecord.

    Raises:
        ConfigurationError: If the configuration does not exist.
    """
    return CachedArtifactRecord(
        framework_name=target.effective_framework_name,
        static_framework=target.static_framework,
        resources=list(target.resource_paths),
        resource_bundles=[f"{name}.bundle" for name in target.resource_bundles],
        build_settings=project.build_settings(target.name, configuration),
        source_hash=source_hash,
        project_root=project_root,
        built_at=datetime.now(timezone.utc),
    )


__all__ = [
    "METADATA_FILENAME",
    "CachedArtifactRecord",
    "collect_metadata",
    "load_metadata",
    "metadata_path",
    "save_metadata",
]
