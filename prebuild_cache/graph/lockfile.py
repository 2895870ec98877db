"""Source hashes recorded in the dependency lockfile.

This module handles:
- Looking up the resolved checksum of a target
- Hashing the source tree of locally tracked (development) targets
- Keeping the hashes stable for the duration of one run
"""

from __future__ import annotations

import hashlib
import logging
import stat
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class LockfileHashSource(Protocol):
    """Anything that can report the current source hash of a target."""

    def hash(self, target_name: str) -> str | None: ...


def compute_tree_hash(directory: Path) -> str:
    """Compute a deterministic hash of a directory tree.

    The hash is computed over:
    - Sorted file paths (relative to directory)
    - File contents
    - File modes (lower 9 bits: rwxrwxrwx)

    Args:
        directory: Directory to hash.

    Returns:
        SHA-256 hex digest of the tree.
    """
    hasher = hashlib.sha256()

    if not directory.exists():
        return hasher.hexdigest()

    for path in sorted(directory.rglob("*")):
        if not path.is_file():
            continue

        rel_path = path.relative_to(directory).as_posix()
        mode = stat.S_IMODE(path.stat().st_mode)

        # Hash: path\0mode\0content
        hasher.update(rel_path.encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(f"{mode:o}".encode())
        hasher.update(b"\0")
        hasher.update(path.read_bytes())
        hasher.update(b"\0")

    return hasher.hexdigest()


class Lockfile:
    """Snapshot of the source hashes recorded at last resolution.

    Targets listed under dev_paths are hashed by content; every other
    target uses its recorded checksum. A target with neither has no hash.
    """

    def __init__(
        self,
        checksums: Mapping[str, str] | None = None,
        dev_paths: Mapping[str, Path] | None = None,
    ) -> None:
        self._checksums = dict(checksums or {})
        self._dev_paths = dict(dev_paths or {})
        self._dev_hashes: dict[str, str] = {}

    @property
    def dev_target_names(self) -> set[str]:
        """Names of locally tracked targets."""
        return set(self._dev_paths)

    def hash(self, target_name: str) -> str | None:
        """Return the current source hash of a target.

        Args:
            target_name: Target name.

        Returns:
            Hash string, or None if the lockfile does not track the target.
        """
        if target_name in self._dev_paths:
            if target_name not in self._dev_hashes:
                path = self._dev_paths[target_name]
                self._dev_hashes[target_name] = compute_tree_hash(path)
                logger.debug(
                    "Hashed development target %s at %s: %s",
                    target_name,
                    path,
                    self._dev_hashes[target_name][:16],
                )
            return self._dev_hashes[target_name]
        return self._checksums.get(target_name)

    def snapshot(self, target_names: list[str]) -> dict[str, str]:
        """Return the hashes of the given targets that have one."""
        hashes: dict[str, str] = {}
        for name in target_names:
            value = self.hash(name)
            if value is not None:
                hashes[name] = value
        return hashes


__all__ = ["Lockfile", "LockfileHashSource", "compute_tree_hash"]
