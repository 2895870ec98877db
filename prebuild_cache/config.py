"""Configuration settings for prebuild_cache.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_artifacts_dir() -> Path:
    """Return the default artifact store root (relative to the project)."""
    return Path("_Prebuild") / "GeneratedFrameworks"


def _default_build_dir() -> Path:
    """Return the default toolchain working directory."""
    return Path("_Prebuild") / "build"


def _default_log_dir() -> Path:
    """Return the default directory for toolchain logs."""
    return Path.home() / ".cache" / "prebuild-cache" / "logs"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the PREBUILD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="PREBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    artifacts_dir: Path = Field(
        default_factory=_default_artifacts_dir,
        description="Root directory of the prebuilt artifact store",
    )
    build_dir: Path = Field(
        default_factory=_default_build_dir,
        description="Transient working directory for the toolchain",
    )
    log_dir: Path = Field(
        default_factory=_default_log_dir,
        description="Directory for toolchain logs",
    )

    # Rebuild selection
    configuration: str = Field(
        default="Debug",
        min_length=1,
        description="Build configuration name used for prebuilding",
    )
    prebuild_all: bool = Field(
        default=False,
        description="Rebuild every target instead of only stale ones",
    )
    cache_validation: bool = Field(
        default=True,
        description="Validate cached artifacts against lockfile hashes",
    )

    # Toolchain options
    bitcode_enabled: bool = Field(default=False, description="Embed bitcode")
    device_build_enabled: bool = Field(
        default=False,
        description="Also build for device and fuse with simulator output",
    )
    disable_dsym: bool = Field(default=False, description="Skip dSYM generation")
    build_args: list[str] = Field(
        default_factory=list,
        description="Extra arguments passed to the toolchain",
    )
    xcodebuild: str = Field(
        default="xcodebuild",
        description="Toolchain executable",
    )
    code_gen_hook: str | None = Field(
        default=None,
        description="Code generation hook as 'package.module:function'",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    build_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for a single toolchain invocation",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
