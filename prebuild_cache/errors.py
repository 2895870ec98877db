"""Error definitions for prebuild_cache.

Every fatal condition raised by the core derives from PrebuildError and
carries a stable code for programmatic handling. A missing metadata record
is not an error; it is reported as None by the metadata loader.
"""

from __future__ import annotations

from pathlib import Path

# Stable error codes
CONFIGURATION_ERROR = "configuration_error"
BUILD_ERROR = "build_failed"
BUILD_TIMEOUT = "build_timeout"
EXECUTION_ERROR = "execution_error"
FILESYSTEM_ERROR = "filesystem_error"
METADATA_ERROR = "metadata_error"


class PrebuildError(Exception):
    """Base error for prebuild operations."""

    def __init__(self, message: str, code: str = "prebuild_error") -> None:
        super().__init__(message)
        self.code = code


class ConfigurationError(PrebuildError):
    """Raised for a missing build configuration or a malformed scheme."""

    def __init__(self, message: str, code: str = CONFIGURATION_ERROR) -> None:
        super().__init__(message, code)


class ToolchainError(PrebuildError):
    """Raised when the external build driver fails.

    Attributes:
        exit_code: Driver exit code (None if it never started).
        log_path: Log file holding the full driver output.
        output: Tail of the driver output.
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        log_path: Path | None = None,
        output: str | None = None,
        code: str = BUILD_ERROR,
    ) -> None:
        super().__init__(message, code)
        self.exit_code = exit_code
        self.log_path = log_path
        self.output = output


class FilesystemError(PrebuildError):
    """Raised when a copy, move, or delete in the artifact store fails."""

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        code: str = FILESYSTEM_ERROR,
    ) -> None:
        super().__init__(message, code)
        self.path = path


class MetadataError(PrebuildError):
    """Raised when a metadata record exists but cannot be parsed."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message, METADATA_ERROR)
        self.path = path


__all__ = [
    "BUILD_ERROR",
    "BUILD_TIMEOUT",
    "CONFIGURATION_ERROR",
    "EXECUTION_ERROR",
    "FILESYSTEM_ERROR",
    "METADATA_ERROR",
    "ConfigurationError",
    "FilesystemError",
    "MetadataError",
    "PrebuildError",
    "ToolchainError",
]
