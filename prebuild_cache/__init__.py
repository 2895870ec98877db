"""Prebuild Cache - cache validation and build orchestration for prebuilt frameworks.

This package decides which targets of a dependency graph have stale prebuilt
artifacts, drives a single toolchain invocation for exactly those targets, and
records per-artifact metadata so later builds can consume them.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
