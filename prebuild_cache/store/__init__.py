"""Artifact store module.

This module handles:
- The directory-per-target artifact store and its name index
- Per-artifact metadata records
- The delta file of the most recent run
"""

from prebuild_cache.store.artifacts import ArtifactStore
from prebuild_cache.store.delta import DeltaRecord, DeltaTracker
from prebuild_cache.store.metadata import CachedArtifactRecord

__all__ = ["ArtifactStore", "CachedArtifactRecord", "DeltaRecord", "DeltaTracker"]
