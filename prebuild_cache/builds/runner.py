"""Build runner for executing toolchain commands.

This module handles:
- Composing `xcodebuild` commands for the prebuild scheme
- Executing builds with subprocess, once per SDK
- Capturing stdout/stderr to log files
- Collecting per-target products into the output directory
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from prebuild_cache.errors import BUILD_TIMEOUT, EXECUTION_ERROR, ToolchainError
from prebuild_cache.store.artifacts import ArtifactStore
from prebuild_cache.store.fs import copy_tree_contents, remove_tree
from prebuild_cache.types import Sdk

logger = logging.getLogger(__name__)

# Number of trailing log lines attached to a ToolchainError
OUTPUT_TAIL_LINES = 40


@dataclass
class BuildRequest:
    """Inputs of a single toolchain invocation.

    Attributes:
        project_path: Generated project the scheme lives in.
        scheme: Scheme that builds exactly the requested targets.
        target_names: Targets whose products are collected.
        configuration: Build configuration name.
        output_path: Directory receiving one product directory per target.
        build_dir: Transient toolchain working directory.
        bitcode_enabled: Embed bitcode in device builds.
        device_build_enabled: Also build for device and fuse the results.
        disable_dsym: Skip dSYM generation.
        extra_args: Extra toolchain arguments.
        log_dir: Directory for the build log (None = build_dir's parent).
        timeout: Timeout per toolchain invocation in seconds.
        xcodebuild: Toolchain executable.
    """

    project_path: Path
    scheme: str
    target_names: list[str]
    configuration: str
    output_path: Path
    build_dir: Path
    bitcode_enabled: bool = False
    device_build_enabled: bool = False
    disable_dsym: bool = False
    extra_args: list[str] = field(default_factory=list)
    log_dir: Path | None = None
    timeout: int | None = None
    xcodebuild: str = "xcodebuild"

    @property
    def sdks(self) -> list[Sdk]:
        """SDKs built by this request, simulator first."""
        if self.device_build_enabled:
            return [Sdk.SIMULATOR, Sdk.DEVICE]
        return [Sdk.SIMULATOR]


@dataclass
class BuildResult:
    """Result of a successful toolchain invocation.

    Attributes:
        log_path: Path to the build log file.
        started_at: Build start time.
        finished_at: Build finish time.
        commands: The commands that were executed.
        collected: Targets for which products were found.
    """

    log_path: Path
    started_at: datetime
    finished_at: datetime
    commands: list[str] = field(default_factory=list)
    collected: list[str] = field(default_factory=list)


BuildDriver = Callable[[BuildRequest], BuildResult]


def compose_xcodebuild_command(request: BuildRequest, sdk: Sdk) -> list[str]:
    """Compose the `xcodebuild` command for one SDK.

    Args:
        request: BuildRequest instance.
        sdk: SDK to build for.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [
        request.xcodebuild,
        "-project",
        str(request.project_path),
        "-scheme",
        request.scheme,
        "-configuration",
        request.configuration,
        "-sdk",
        sdk.value,
        f"SYMROOT={request.build_dir}",
        "ONLY_ACTIVE_ARCH=NO",
    ]

    # Bitcode only applies to device slices
    if request.bitcode_enabled and sdk is Sdk.DEVICE:
        cmd.append("BITCODE_GENERATION_MODE=bitcode")

    if request.disable_dsym:
        cmd.append("DEBUG_INFORMATION_FORMAT=dwarf")

    cmd.extend(request.extra_args)
    return cmd


def products_dir(request: BuildRequest, sdk: Sdk, target_name: str) -> Path:
    """Return where the toolchain leaves a target's products for an SDK."""
    return request.build_dir / f"{request.configuration}-{sdk.value}" / target_name


def _read_tail(log_path: Path, lines: int = OUTPUT_TAIL_LINES) -> str:
    try:
        content = log_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    return "\n".join(content.splitlines()[-lines:])


def _run_logged(
    cmd: list[str],
    cwd: Path,
    log_path: Path,
    timeout: int | None,
) -> None:
    """Run a command, appending its output to log_path.

    Raises:
        ToolchainError: If the command fails, times out, or cannot start.
    """
    cmd_str = shlex.join(cmd)
    logger.info("Executing build: %s", cmd_str)

    try:
        with log_path.open("a") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {datetime.now(timezone.utc).isoformat()}\n")
            log_file.write("# " + "=" * 70 + "\n\n")
            log_file.flush()

            result = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                timeout=timeout,
                check=False,
            )
    except subprocess.TimeoutExpired as e:
        message = f"Build timed out after {timeout} seconds"
        logger.error("%s. See log: %s", message, log_path)
        with log_path.open("a") as log_file:
            log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        raise ToolchainError(
            message,
            exit_code=-1,
            log_path=log_path,
            output=_read_tail(log_path),
            code=BUILD_TIMEOUT,
        ) from e
    except OSError as e:
        message = f"Failed to execute build: {e}"
        logger.error(message)
        raise ToolchainError(
            message,
            log_path=log_path,
            code=EXECUTION_ERROR,
        ) from e

    if result.returncode != 0:
        message = f"Build failed with exit code {result.returncode}"
        logger.error("%s. See log: %s", message, log_path)
        raise ToolchainError(
            message,
            exit_code=result.returncode,
            log_path=log_path,
            output=_read_tail(log_path),
        )


def _universal_binaries(product_dir: Path) -> list[Path]:
    """List framework binaries and static libraries inside a product dir."""
    binaries: list[Path] = []
    for framework in sorted(product_dir.glob("*.framework")):
        binary = framework / framework.stem
        if binary.is_file():
            binaries.append(binary.relative_to(product_dir))
    for library in sorted(product_dir.glob("*.a")):
        binaries.append(library.relative_to(product_dir))
    return binaries


def merge_device_slices(
    request: BuildRequest,
    target_name: str,
    dest_dir: Path,
    log_path: Path,
) -> None:
    """Fuse simulator and device binaries of a target with lipo.

    dest_dir must already hold the device products; each binary present in
    both SDK outputs is replaced with the fused one.
    """
    simulator_dir = products_dir(request, Sdk.SIMULATOR, target_name)
    device_dir = products_dir(request, Sdk.DEVICE, target_name)
    if not simulator_dir.is_dir():
        return

    for relative in _universal_binaries(device_dir):
        simulator_binary = simulator_dir / relative
        if not simulator_binary.is_file():
            continue
        cmd = [
            "xcrun",
            "lipo",
            "-create",
            str(device_dir / relative),
            str(simulator_binary),
            "-output",
            str(dest_dir / relative),
        ]
        _run_logged(cmd, request.build_dir, log_path, request.timeout)


def collect_products(request: BuildRequest, log_path: Path) -> list[str]:
    """Replace each target's output directory with its built products.

    Targets without products (e.g., binary-only targets) get an empty
    output directory.

    Returns:
        Names of targets for which products were found.
    """
    primary_sdk = Sdk.DEVICE if request.device_build_enabled else Sdk.SIMULATOR
    store = ArtifactStore(request.output_path)
    collected: list[str] = []

    for name in request.target_names:
        dest_dir = store.target_dir(name)
        remove_tree(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)

        source_dir = products_dir(request, primary_sdk, name)
        if not source_dir.is_dir():
            logger.debug("No products for %s in %s", name, source_dir)
            continue

        copy_tree_contents(source_dir, dest_dir)
        if request.device_build_enabled:
            merge_device_slices(request, name, dest_dir, log_path)
        collected.append(name)

    logger.info(
        "Collected products of %d/%d targets into %s",
        len(collected),
        len(request.target_names),
        request.output_path,
    )
    return collected


def run_build(request: BuildRequest) -> BuildResult:
    """Execute the toolchain for every SDK and collect the products.

    Args:
        request: BuildRequest instance.

    Returns:
        BuildResult with execution details.

    Raises:
        ToolchainError: If any toolchain invocation fails.
        FilesystemError: If products cannot be collected.
    """
    log_dir = request.log_dir or request.build_dir.parent
    log_dir.mkdir(parents=True, exist_ok=True)
    started_at = datetime.now(timezone.utc)
    log_path = log_dir / f"prebuild-{started_at.strftime('%Y%m%dT%H%M%S')}.log"
    request.build_dir.mkdir(parents=True, exist_ok=True)
    cwd = request.project_path.parent

    logger.info(
        "Building %d targets with scheme %s (%s)",
        len(request.target_names),
        request.scheme,
        request.configuration,
    )

    commands: list[str] = []
    for sdk in request.sdks:
        cmd = compose_xcodebuild_command(request, sdk)
        commands.append(shlex.join(cmd))
        _run_logged(cmd, cwd, log_path, request.timeout)

    collected = collect_products(request, log_path)
    finished_at = datetime.now(timezone.utc)

    with log_path.open("a") as log_file:
        duration = (finished_at - started_at).total_seconds()
        log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
        log_file.write(f"# Duration: {duration:.1f}s\n")

    return BuildResult(
        log_path=log_path,
        started_at=started_at,
        finished_at=finished_at,
        commands=commands,
        collected=collected,
    )


__all__ = [
    "OUTPUT_TAIL_LINES",
    "BuildDriver",
    "BuildRequest",
    "BuildResult",
    "collect_products",
    "compose_xcodebuild_command",
    "merge_device_slices",
    "products_dir",
    "run_build",
]
