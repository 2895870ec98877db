"""Shared type definitions for prebuild_cache.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class CacheStatus(str, Enum):
    """Cache state of a single target."""

    FRESH = "fresh"
    STALE = "stale"


class RebuildMode(str, Enum):
    """How the rebuild set of a run was selected."""

    EXPLICIT = "explicit"
    ALL = "all"
    STALE = "stale"


class Sdk(str, Enum):
    """Toolchain SDK a build is produced for."""

    SIMULATOR = "iphonesimulator"
    DEVICE = "iphoneos"


@dataclass(frozen=True)
class ValidationResult:
    """Classification of targets into fresh and stale sets."""

    fresh: frozenset[str] = field(default_factory=frozenset)
    stale: frozenset[str] = field(default_factory=frozenset)

    @property
    def all(self) -> frozenset[str]:
        """Every classified target name."""
        return self.fresh | self.stale

    def status_of(self, name: str) -> CacheStatus | None:
        """Return the status of a target, or None if it was not classified."""
        if name in self.stale:
            return CacheStatus.STALE
        if name in self.fresh:
            return CacheStatus.FRESH
        return None


__all__ = [
    "CacheStatus",
    "RebuildMode",
    "Sdk",
    "ValidationResult",
]
