"""On-disk artifact store.

Layout of a store root:

    <root>/<target>/            compiled output, vendored binaries, metadata.json
    <root>/.index.json          names of targets recorded by past runs
    <root>/delta.json           delta of the most recent run

A single orchestration run at a time is assumed per store root.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from prebuild_cache.errors import FilesystemError
from prebuild_cache.store.delta import DELTA_FILENAME
from prebuild_cache.store.fs import atomic_write_text, remove_tree

logger = logging.getLogger(__name__)

INDEX_FILENAME = ".index.json"


class ArtifactStore:
    """Directory-per-target store of prebuilt artifacts."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILENAME

    def target_dir(self, name: str) -> Path:
        """Return the artifact directory of a target.

        Raises:
            FilesystemError: If name would not map to a plain directory
                directly under the root.
        """
        path = self.root / name
        if (
            not name
            or name.startswith(".")
            or name in (DELTA_FILENAME, INDEX_FILENAME)
            or path.parent != self.root
            or path.name != name
        ):
            raise FilesystemError(
                f"Invalid artifact name '{name}' for store {self.root}", path=path
            )
        return path

    def existing_target_names(self) -> set[str]:
        """Return the names of every artifact directory in the store."""
        if not self.root.is_dir():
            return set()
        return {
            path.name
            for path in self.root.iterdir()
            if path.is_dir()
            and not path.name.startswith(".")
            and path.name != DELTA_FILENAME
        }

    def indexed_names(self) -> set[str]:
        """Return the target names recorded in the name index."""
        if not self.index_path.exists():
            return set()
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise FilesystemError(
                f"Failed to read name index {self.index_path}: {e}",
                path=self.index_path,
            ) from e
        if not isinstance(data, dict) or not isinstance(data.get("targets", []), list):
            raise FilesystemError(
                f"Malformed name index {self.index_path}", path=self.index_path
            )
        return set(data.get("targets", []))

    def has_target(self, name: str) -> bool:
        """Check whether a prebuilt artifact exists for a target."""
        return name in self.indexed_names() and self.target_dir(name).is_dir()

    def _write_index(self, names: set[str]) -> None:
        content = json.dumps({"targets": sorted(names)}, indent=2)
        atomic_write_text(self.index_path, content + "\n")

    def record_target_name(self, name: str) -> None:
        """Add a target to the name index."""
        names = self.indexed_names()
        if name in names:
            return
        names.add(name)
        self._write_index(names)

    def remove_target(self, name: str) -> bool:
        """Remove a target's artifact directory and drop it from the index.

        Returns:
            True if the directory existed.
        """
        removed = remove_tree(self.target_dir(name))
        names = self.indexed_names()
        if name in names:
            names.discard(name)
            self._write_index(names)
        if removed:
            logger.info("Removed artifact: %s", name)
        return removed


__all__ = ["INDEX_FILENAME", "ArtifactStore"]
