"""Filesystem primitives for the artifact store.

This module handles:
- Atomic replacement of small text files (metadata, index, delta)
- Copying source trees and vendored binaries into artifact directories
- Removing directories

Low-level OSError and shutil.Error are re-raised as FilesystemError so
that copy failures abort the run instead of leaving a half-filled store.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path

from prebuild_cache.errors import FilesystemError

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str) -> Path:
    """Write content to path atomically.

    Writes to a temporary file in the same directory, then renames
    (os.replace) into place, so a reader sees either the old or the new
    file and never a partial one.

    Args:
        path: Destination path.
        content: Text content.

    Returns:
        The destination path.

    Raises:
        FilesystemError: If the write or rename fails.
    """
    tmp_path: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
        raise FilesystemError(f"Failed to write {path}: {e}", path=path) from e
    return path


def remove_tree(path: Path) -> bool:
    """Remove a directory tree if it exists.

    Args:
        path: Directory to remove.

    Returns:
        True if something was removed.

    Raises:
        FilesystemError: If removal fails.
    """
    if not path.exists() and not path.is_symlink():
        return False
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise FilesystemError(f"Failed to remove {path}: {e}", path=path) from e
    logger.debug("Removed %s", path)
    return True


def copy_tree_contents(source_dir: Path, dest_dir: Path) -> None:
    """Copy the contents of source_dir into dest_dir, replacing files.

    Files already present in dest_dir that do not exist in source_dir
    are kept.

    Raises:
        FilesystemError: If the source is missing or copying fails.
    """
    if not source_dir.is_dir():
        raise FilesystemError(
            f"Source directory not found: {source_dir}", path=source_dir
        )
    try:
        shutil.copytree(source_dir, dest_dir, symlinks=True, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise FilesystemError(
            f"Failed to copy {source_dir} -> {dest_dir}: {e}", path=source_dir
        ) from e


def copy_path(source: Path, dest: Path) -> None:
    """Copy a file or directory to dest, replacing whatever is there.

    Raises:
        FilesystemError: If the source is missing or copying fails.
    """
    if not source.exists():
        raise FilesystemError(f"Source path not found: {source}", path=source)
    remove_tree(dest)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, dest, symlinks=True)
        else:
            shutil.copy2(source, dest)
    except (OSError, shutil.Error) as e:
        raise FilesystemError(
            f"Failed to copy {source} -> {dest}: {e}", path=source
        ) from e


__all__ = [
    "atomic_write_text",
    "copy_path",
    "copy_tree_contents",
    "remove_tree",
]
