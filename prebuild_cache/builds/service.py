"""Build orchestration service.

This module provides the high-level prebuild API:
- BuildOrchestrator.run(): compute the rebuild set, build it, sync the store
- Rebuild set selection (explicit subset > build all > stale only)
- Metadata collection, vendored binary sync, and pruning of orphans
- Delta file bookkeeping

The orchestrator is invoked directly by the caller's pipeline at the point
where prebuilding should happen; all options are passed in explicitly.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from prebuild_cache.builds.runner import BuildDriver, BuildRequest, run_build
from prebuild_cache.builds.validation import classify
from prebuild_cache.config import Settings, get_settings
from prebuild_cache.errors import ConfigurationError
from prebuild_cache.graph.lockfile import LockfileHashSource
from prebuild_cache.graph.project import Project
from prebuild_cache.graph.schema import GraphSchema, TargetSchema
from prebuild_cache.store.artifacts import ArtifactStore
from prebuild_cache.store.delta import DeltaRecord, DeltaTracker
from prebuild_cache.store.fs import copy_path, copy_tree_contents, remove_tree
from prebuild_cache.store.metadata import collect_metadata, save_metadata
from prebuild_cache.types import RebuildMode, ValidationResult

logger = logging.getLogger(__name__)

PREBUILD_SCHEME_NAME = "_Prebuild"

CodeGenHook = Callable[[Any, list[TargetSchema]], None]


def resolve_hook(reference: str) -> CodeGenHook:
    """Resolve a 'package.module:function' reference to a callable.

    Raises:
        ConfigurationError: If the reference is malformed or not callable.
    """
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            f"Invalid hook reference '{reference}', expected 'module:function'"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(
            f"Cannot import hook module {module_name}: {e}"
        ) from e
    hook = getattr(module, attr, None)
    if not callable(hook):
        raise ConfigurationError(f"Hook {reference} is not callable")
    return hook


@dataclass
class PrebuildOptions:
    """Options of one orchestration run.

    Attributes:
        output_path: Artifact store root.
        build_dir: Transient toolchain working directory.
        targets: Explicit target subset (empty = no explicit subset).
        build_all: Rebuild every target when no explicit subset is given.
        configuration: Build configuration name.
        bitcode_enabled: Embed bitcode.
        device_build_enabled: Also build for device.
        disable_dsym: Skip dSYM generation.
        extra_args: Extra toolchain arguments.
        code_gen: Hook run over the rebuild set before building.
        cache_validation: When False, every target is considered stale.
        build_timeout: Timeout per toolchain invocation in seconds.
        log_dir: Directory for toolchain logs.
        xcodebuild: Toolchain executable.
    """

    output_path: Path
    build_dir: Path
    targets: list[str] = field(default_factory=list)
    build_all: bool = False
    configuration: str = "Debug"
    bitcode_enabled: bool = False
    device_build_enabled: bool = False
    disable_dsym: bool = False
    extra_args: list[str] = field(default_factory=list)
    code_gen: CodeGenHook | None = None
    cache_validation: bool = True
    build_timeout: int | None = None
    log_dir: Path | None = None
    xcodebuild: str = "xcodebuild"

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        **overrides: Any,
    ) -> PrebuildOptions:
        """Create options from settings, with explicit overrides on top.

        Args:
            settings: Application settings; loaded from environment if None.
            **overrides: Field values taking precedence over settings.

        Returns:
            PrebuildOptions instance.
        """
        if settings is None:
            settings = get_settings()

        code_gen = None
        if settings.code_gen_hook:
            code_gen = resolve_hook(settings.code_gen_hook)

        values: dict[str, Any] = {
            "output_path": settings.artifacts_dir,
            "build_dir": settings.build_dir,
            "build_all": settings.prebuild_all,
            "configuration": settings.configuration,
            "bitcode_enabled": settings.bitcode_enabled,
            "device_build_enabled": settings.device_build_enabled,
            "disable_dsym": settings.disable_dsym,
            "extra_args": list(settings.build_args),
            "code_gen": code_gen,
            "cache_validation": settings.cache_validation,
            "build_timeout": settings.build_timeout,
            "log_dir": settings.log_dir,
            "xcodebuild": settings.xcodebuild,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class RebuildPlan:
    """Targets selected for a run and how they were selected."""

    mode: RebuildMode
    targets: list[TargetSchema]
    validation: ValidationResult | None = None

    @property
    def names(self) -> list[str]:
        return [t.name for t in self.targets]


class BuildOrchestrator:
    """Drives one prebuild run over a dependency graph.

    Args:
        graph: Resolved dependency graph.
        lockfile: Current source hashes.
        project: Generated project; derived from graph if None.
        driver: Toolchain driver; defaults to run_build.
    """

    def __init__(
        self,
        graph: GraphSchema,
        lockfile: LockfileHashSource,
        project: Project | None = None,
        driver: BuildDriver | None = None,
    ) -> None:
        self.graph = graph
        self.lockfile = lockfile
        self.project = project or Project.from_graph(graph)
        self.driver = driver or run_build

    @property
    def project_root(self) -> str | None:
        return self.graph.project_root

    def validate(
        self,
        store: ArtifactStore,
        enabled: bool = True,
    ) -> ValidationResult:
        """Classify every graph target against the store."""
        return classify(self.graph.targets, self.lockfile, store, enabled=enabled)

    def plan(self, options: PrebuildOptions) -> RebuildPlan:
        """Compute the rebuild set for a run.

        Precedence: explicit subset > build all > stale targets only.
        Explicit names unknown to the graph are ignored.
        """
        if options.targets:
            wanted = set(options.targets)
            unknown = wanted - set(self.graph.target_names)
            if unknown:
                logger.warning(
                    "Ignoring unknown targets: %s", ", ".join(sorted(unknown))
                )
            targets = [t for t in self.graph.targets if t.name in wanted]
            return RebuildPlan(mode=RebuildMode.EXPLICIT, targets=targets)

        if options.build_all:
            return RebuildPlan(mode=RebuildMode.ALL, targets=list(self.graph.targets))

        validation = self.validate(
            ArtifactStore(options.output_path), enabled=options.cache_validation
        )
        targets = [t for t in self.graph.targets if t.name in validation.stale]
        return RebuildPlan(
            mode=RebuildMode.STALE, targets=targets, validation=validation
        )

    def run_code_gen(
        self,
        options: PrebuildOptions,
        targets: list[TargetSchema],
    ) -> None:
        """Run the code generation hook, if any, over the rebuild set."""
        if options.code_gen is None:
            return
        logger.info("Running code generation for %d targets", len(targets))
        options.code_gen(self, targets)

    def run(self, options: PrebuildOptions) -> DeltaRecord:
        """Prebuild the selected targets and sync the artifact store.

        Args:
            options: Options of this run.

        Returns:
            DeltaRecord of this run (empty if nothing needed rebuilding).

        Raises:
            ConfigurationError: If the scheme or a build configuration is invalid.
            ToolchainError: If the toolchain fails.
            FilesystemError: If syncing the store fails.
        """
        store = ArtifactStore(options.output_path)
        plan = self.plan(options)
        targets = plan.targets
        names = plan.names
        logger.info(
            "Prebuild targets (total %d, mode=%s): %s",
            len(names),
            plan.mode.value,
            ", ".join(names),
        )
        if not targets:
            return DeltaRecord()

        self.project.create_scheme(PREBUILD_SCHEME_NAME, names)
        self.run_code_gen(options, targets)

        remove_tree(options.build_dir)
        try:
            result = self.driver(
                BuildRequest(
                    project_path=self.project.path,
                    scheme=PREBUILD_SCHEME_NAME,
                    target_names=names,
                    configuration=options.configuration,
                    output_path=options.output_path,
                    build_dir=options.build_dir,
                    bitcode_enabled=options.bitcode_enabled,
                    device_build_enabled=options.device_build_enabled,
                    disable_dsym=options.disable_dsym,
                    extra_args=list(options.extra_args),
                    log_dir=options.log_dir,
                    timeout=options.build_timeout,
                    xcodebuild=options.xcodebuild,
                )
            )
        finally:
            remove_tree(options.build_dir)
        logger.info("Build finished, log: %s", result.log_path)

        for target in targets:
            self.collect_metadata(target, store, options.configuration)

        for target in targets:
            self.sync_target(target, store)

        for target in targets:
            store.record_target_name(target.name)

        deleted = self.prune(store)

        delta = DeltaRecord(updated=names, deleted=deleted)
        DeltaTracker(store.root).write(delta)
        return delta

    def collect_metadata(
        self,
        target: TargetSchema,
        store: ArtifactStore,
        configuration: str,
    ) -> None:
        """Write the metadata record of a freshly built target."""
        record = collect_metadata(
            target,
            self.project,
            configuration,
            source_hash=self.lockfile.hash(target.name),
            project_root=self.project_root,
        )
        save_metadata(store.target_dir(target.name), record)

    def sync_target(self, target: TargetSchema, store: ArtifactStore) -> None:
        """Copy source or vendored binaries of a target into its artifact dir.

        Binary-only targets get a verbatim copy of their source directory;
        built targets get each vendored framework and library.
        """
        source_root = Path(target.source_dir)
        target_dir = store.target_dir(target.name)

        if not target.should_build:
            logger.debug("Copying binary-only target %s", target.name)
            copy_tree_contents(source_root, target_dir)
            return

        for relative in target.vendored_paths:
            logger.debug("Copying vendored %s for %s", relative, target.name)
            copy_path(source_root / relative, target_dir / relative)

    def prune(self, store: ArtifactStore) -> list[str]:
        """Remove artifacts of targets no longer in the graph.

        Returns:
            Sorted names of removed artifacts.
        """
        needed = set(self.graph.target_names)
        orphans = sorted(store.existing_target_names() - needed)
        for name in orphans:
            logger.info("Remove: %s", name)
            store.remove_target(name)
        return orphans

    def clean_delta_file(self, options: PrebuildOptions) -> bool:
        """Remove the delta file of the options' store."""
        return DeltaTracker(options.output_path).clear()


__all__ = [
    "PREBUILD_SCHEME_NAME",
    "BuildOrchestrator",
    "CodeGenHook",
    "PrebuildOptions",
    "RebuildPlan",
    "resolve_hook",
]
