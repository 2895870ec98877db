"""Cache validation for prebuilt artifacts.

Classifies every target of the graph as fresh or stale by comparing the
source hash stored in its metadata record with the current lockfile hash.
Nothing in this module writes to the store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from prebuild_cache.errors import MetadataError
from prebuild_cache.graph.lockfile import LockfileHashSource
from prebuild_cache.graph.schema import TargetSchema
from prebuild_cache.store.artifacts import ArtifactStore
from prebuild_cache.store.metadata import load_metadata
from prebuild_cache.types import CacheStatus, ValidationResult

logger = logging.getLogger(__name__)


def target_status(
    target: TargetSchema,
    lockfile: LockfileHashSource,
    store: ArtifactStore,
) -> CacheStatus:
    """Return the cache status of a single target.

    A target is stale when it has no readable record, or when the lockfile
    tracks it and the recorded source hash differs. A target the lockfile
    does not track stays fresh once it has been built.
    """
    try:
        record = load_metadata(store.target_dir(target.name))
    except MetadataError as e:
        logger.warning("Treating %s as stale: %s", target.name, e)
        return CacheStatus.STALE

    if record is None:
        return CacheStatus.STALE

    expected = lockfile.hash(target.name)
    if expected is None:
        return CacheStatus.FRESH
    if record.source_hash != expected:
        logger.debug(
            "Source hash changed for %s: %s -> %s",
            target.name,
            record.source_hash,
            expected,
        )
        return CacheStatus.STALE
    return CacheStatus.FRESH


def classify(
    targets: Iterable[TargetSchema],
    lockfile: LockfileHashSource,
    store: ArtifactStore,
    enabled: bool = True,
) -> ValidationResult:
    """Classify targets as fresh or stale.

    Args:
        targets: Targets to classify.
        lockfile: Current source hashes.
        store: Artifact store holding previous records.
        enabled: When False, every target is stale.

    Returns:
        ValidationResult with the fresh and stale name sets.
    """
    fresh: set[str] = set()
    stale: set[str] = set()

    for target in targets:
        if not enabled:
            stale.add(target.name)
            continue
        if target_status(target, lockfile, store) is CacheStatus.FRESH:
            fresh.add(target.name)
        else:
            stale.add(target.name)

    logger.info("Cache validation: %d fresh, %d stale", len(fresh), len(stale))
    return ValidationResult(fresh=frozenset(fresh), stale=frozenset(stale))


__all__ = ["classify", "target_status"]
