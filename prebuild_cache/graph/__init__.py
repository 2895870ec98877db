"""Dependency graph module.

This module handles:
- Target and build configuration schemas
- Graph and lockfile document loading
- Lockfile source hashes
- Generated project schemes and build settings
"""

from prebuild_cache.graph.lockfile import Lockfile, LockfileHashSource
from prebuild_cache.graph.project import Project
from prebuild_cache.graph.schema import (
    BuildConfigurationSchema,
    GraphSchema,
    TargetSchema,
)

__all__ = [
    "BuildConfigurationSchema",
    "GraphSchema",
    "Lockfile",
    "LockfileHashSource",
    "Project",
    "TargetSchema",
]
