"""Build orchestration module.

This module handles:
- Cache validation against lockfile hashes
- Running the toolchain for the rebuild set
- Syncing products, vendored binaries, and metadata into the artifact store
- Pruning orphaned artifacts and writing the delta file
"""

from prebuild_cache.builds.service import BuildOrchestrator, PrebuildOptions

__all__ = ["BuildOrchestrator", "PrebuildOptions"]
