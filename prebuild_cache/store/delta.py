"""Delta of the most recent orchestration run.

The delta file lists the artifacts updated and deleted by the last run so
downstream steps can sync incrementally. Each run replaces it wholesale.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from prebuild_cache.errors import MetadataError
from prebuild_cache.store.fs import atomic_write_text, remove_tree

logger = logging.getLogger(__name__)

DELTA_FILENAME = "delta.json"


class DeltaRecord(BaseModel):
    """Artifacts touched by one run.

    Attributes:
        updated: Targets rebuilt or re-copied.
        deleted: Targets whose artifacts were pruned.
    """

    model_config = ConfigDict(extra="ignore")

    updated: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)

    @field_validator("updated", "deleted")
    @classmethod
    def normalize_names(cls, v: list[str]) -> list[str]:
        """Store names sorted and without duplicates."""
        return sorted(set(v))

    @property
    def is_empty(self) -> bool:
        return not self.updated and not self.deleted


class DeltaTracker:
    """Reads and writes the delta file of a store root."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def path(self) -> Path:
        return self.root / DELTA_FILENAME

    def write(self, record: DeltaRecord) -> Path:
        """Replace the delta file with record."""
        atomic_write_text(self.path, record.model_dump_json(indent=2) + "\n")
        logger.info(
            "Wrote delta file: %d updated, %d deleted",
            len(record.updated),
            len(record.deleted),
        )
        return self.path

    def read(self) -> DeltaRecord:
        """Read the delta file; an absent file reads as an empty delta.

        Raises:
            MetadataError: If the file exists but cannot be parsed.
        """
        if not self.path.is_file():
            return DeltaRecord()
        try:
            return DeltaRecord.model_validate_json(
                self.path.read_text(encoding="utf-8")
            )
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            raise MetadataError(
                f"Invalid delta file {self.path}: {e}", path=self.path
            ) from e

    def clear(self) -> bool:
        """Remove the delta file.

        Returns:
            True if a delta file existed.
        """
        removed = remove_tree(self.path)
        if removed:
            logger.info("Cleared delta file %s", self.path)
        return removed


__all__ = ["DELTA_FILENAME", "DeltaRecord", "DeltaTracker"]
