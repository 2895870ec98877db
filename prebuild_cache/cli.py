"""Thin CLI wrapper for prebuild_cache.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from prebuild_cache import __version__
from prebuild_cache.config import get_settings, print_settings_json

if TYPE_CHECKING:
    from prebuild_cache.graph.lockfile import Lockfile
    from prebuild_cache.graph.schema import GraphSchema

app = typer.Typer(
    name="prebuild",
    help="Prebuild Cache - rebuild only stale prebuilt frameworks",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"prebuild-cache version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route package logs through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override the configured log level"),
    ] = None,
) -> None:
    """Prebuild Cache - rebuild only stale prebuilt frameworks."""
    configure_logging((log_level or get_settings().log_level).upper())


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True)
        return

    hook_display = settings.code_gen_hook or "(none)"
    args_display = " ".join(settings.build_args) or "(none)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Artifacts directory: {settings.artifacts_dir}")
    console.print(f"  Build directory:     {settings.build_dir}")
    console.print(f"  Log directory:       {settings.log_dir}")
    console.print()
    console.print("[bold]Rebuild selection:[/bold]")
    console.print(f"  Configuration:       {settings.configuration}")
    console.print(f"  Prebuild all:        {settings.prebuild_all}")
    console.print(f"  Cache validation:    {settings.cache_validation}")
    console.print()
    console.print("[bold]Toolchain:[/bold]")
    console.print(f"  Executable:          {settings.xcodebuild}")
    console.print(f"  Bitcode:             {settings.bitcode_enabled}")
    console.print(f"  Device build:        {settings.device_build_enabled}")
    console.print(f"  Disable dSYM:        {settings.disable_dsym}")
    console.print(f"  Extra arguments:     {args_display}")
    console.print(f"  Code generation:     {hook_display}")
    console.print(f"  Build timeout:       {settings.build_timeout}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")


def _load_inputs(
    graph_path: Path,
    lockfile_path: Path | None,
) -> "tuple[GraphSchema, Lockfile]":
    """Load graph and lockfile, exiting with a message on invalid input."""
    import yaml
    from pydantic import ValidationError

    from prebuild_cache.graph.io import load_graph, load_lockfile
    from prebuild_cache.graph.lockfile import Lockfile

    for path in (graph_path, lockfile_path):
        if path is not None and not path.exists():
            console.print(f"[red]File not found: {path}[/red]")
            raise typer.Exit(code=1)

    try:
        graph = load_graph(graph_path)
        lockfile = load_lockfile(lockfile_path) if lockfile_path else Lockfile()
    except ValidationError as e:
        console.print("[red]Validation failed:[/red]")
        console.print(str(e))
        raise typer.Exit(code=1) from None
    except (ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid input: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None
    return graph, lockfile


@app.command()
def status(
    graph_path: Annotated[
        Path, typer.Option("--graph", "-g", help="Dependency graph file")
    ],
    lockfile_path: Annotated[
        Path | None, typer.Option("--lockfile", "-l", help="Lockfile")
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Artifact store root")
    ] = None,
    target_names: Annotated[
        list[str] | None,
        typer.Option("--target", "-t", help="Only show this target (can be repeated)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show which targets are fresh and which are stale."""
    from prebuild_cache.builds.validation import classify
    from prebuild_cache.store.artifacts import ArtifactStore
    from prebuild_cache.types import CacheStatus

    settings = get_settings()
    graph, lockfile = _load_inputs(graph_path, lockfile_path)

    selected = list(graph.targets)
    if target_names:
        selected = []
        for name in target_names:
            target = graph.get_target(name)
            if target is None:
                console.print(f"[red]Unknown target: {name}[/red]")
                raise typer.Exit(code=1)
            selected.append(target)

    store = ArtifactStore(output or settings.artifacts_dir)
    result = classify(selected, lockfile, store, enabled=settings.cache_validation)
    names = [t.name for t in selected]
    hashes = lockfile.snapshot(names)
    development = lockfile.dev_target_names

    if json_output:
        data = {
            "fresh": sorted(result.fresh),
            "stale": sorted(result.stale),
            "targets": [
                {
                    "name": name,
                    "status": result.status_of(name),
                    "hash": hashes.get(name),
                    "development": name in development,
                }
                for name in names
            ],
        }
        console.print(json.dumps(data, indent=2), soft_wrap=True)
        return

    console.print(
        f"[bold]{len(result.fresh)} fresh, {len(result.stale)} stale "
        f"of {len(result.all)} target(s):[/bold]"
    )
    for name in names:
        suffix = " (development)" if name in development else ""
        short_hash = hashes.get(name, "-")[:12]
        if result.status_of(name) is CacheStatus.STALE:
            label = "[yellow]stale[/yellow]"
        else:
            label = "[green]fresh[/green]"
        console.print(f"  {label}  {name}  {short_hash}{suffix}")


@app.command()
def run(
    graph_path: Annotated[
        Path, typer.Option("--graph", "-g", help="Dependency graph file")
    ],
    lockfile_path: Annotated[
        Path | None, typer.Option("--lockfile", "-l", help="Lockfile")
    ] = None,
    targets: Annotated[
        list[str] | None,
        typer.Option("--target", "-t", help="Target to rebuild (can be repeated)"),
    ] = None,
    build_all: Annotated[
        bool | None,
        typer.Option("--all/--stale-only", help="Rebuild every target"),
    ] = None,
    configuration: Annotated[
        str | None,
        typer.Option("--configuration", "-c", help="Build configuration"),
    ] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Artifact store root")
    ] = None,
    bitcode: Annotated[
        bool | None,
        typer.Option("--bitcode/--no-bitcode", help="Embed bitcode"),
    ] = None,
    device: Annotated[
        bool | None,
        typer.Option("--device/--no-device", help="Also build for device"),
    ] = None,
    disable_dsym: Annotated[
        bool | None,
        typer.Option("--disable-dsym/--dsym", help="Skip dSYM generation"),
    ] = None,
    extra_args: Annotated[
        list[str] | None,
        typer.Option("--arg", help="Extra toolchain argument (can be repeated)"),
    ] = None,
    no_validation: Annotated[
        bool,
        typer.Option("--no-validation", help="Treat every target as stale"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Prebuild stale targets and sync the artifact store."""
    from prebuild_cache.builds.service import BuildOrchestrator, PrebuildOptions
    from prebuild_cache.errors import PrebuildError, ToolchainError

    graph, lockfile = _load_inputs(graph_path, lockfile_path)

    overrides: dict[str, object] = {}
    if targets:
        overrides["targets"] = list(targets)
    if build_all is not None:
        overrides["build_all"] = build_all
    if configuration:
        overrides["configuration"] = configuration
    if output:
        overrides["output_path"] = output
    if bitcode is not None:
        overrides["bitcode_enabled"] = bitcode
    if device is not None:
        overrides["device_build_enabled"] = device
    if disable_dsym is not None:
        overrides["disable_dsym"] = disable_dsym
    if extra_args:
        overrides["extra_args"] = list(extra_args)
    if no_validation:
        overrides["cache_validation"] = False

    try:
        options = PrebuildOptions.from_settings(get_settings(), **overrides)
        delta = BuildOrchestrator(graph, lockfile).run(options)
    except ToolchainError as e:
        console.print(f"[red]Build failed: {e}[/red]")
        if e.output:
            console.print(e.output, markup=False, highlight=False)
        if e.log_path:
            console.print(f"See log: {e.log_path}")
        raise typer.Exit(code=1) from None
    except PrebuildError as e:
        console.print(f"[red]Error ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(delta.model_dump_json(indent=2), soft_wrap=True)
        return

    if delta.is_empty:
        console.print("[green]All prebuilt frameworks are up to date[/green]")
        return
    console.print(f"[bold]Updated {len(delta.updated)} target(s):[/bold]")
    for name in delta.updated:
        console.print(f"  [green]{name}[/green]")
    if delta.deleted:
        console.print(f"[bold]Deleted {len(delta.deleted)} artifact(s):[/bold]")
        for name in delta.deleted:
            console.print(f"  [red]{name}[/red]")


delta_app = typer.Typer(help="Inspect the delta of the last run")
app.add_typer(delta_app, name="delta")


@delta_app.command("show")
def delta_show(
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Artifact store root")
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show artifacts updated and deleted by the last run."""
    from prebuild_cache.errors import MetadataError
    from prebuild_cache.store.delta import DeltaTracker

    tracker = DeltaTracker(output or get_settings().artifacts_dir)
    try:
        delta = tracker.read()
    except MetadataError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(delta.model_dump_json(indent=2), soft_wrap=True)
        return
    if delta.is_empty:
        console.print("[yellow]No pending delta[/yellow]")
        return
    console.print(f"[bold]Updated:[/bold] {', '.join(delta.updated) or '-'}")
    console.print(f"[bold]Deleted:[/bold] {', '.join(delta.deleted) or '-'}")


@delta_app.command("clear")
def delta_clear(
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Artifact store root")
    ] = None,
) -> None:
    """Remove the delta file of the last run."""
    from prebuild_cache.store.delta import DeltaTracker

    if DeltaTracker(output or get_settings().artifacts_dir).clear():
        console.print("[green]Delta file cleared[/green]")
    else:
        console.print("[yellow]No delta file to clear[/yellow]")


metadata_app = typer.Typer(help="Inspect prebuilt artifact metadata")
app.add_typer(metadata_app, name="metadata")


@metadata_app.command("show")
def metadata_show(
    name: Annotated[str, typer.Argument(help="Target name")],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Artifact store root")
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the metadata record of a prebuilt target."""
    from prebuild_cache.errors import MetadataError
    from prebuild_cache.store.artifacts import ArtifactStore
    from prebuild_cache.store.metadata import load_metadata

    store = ArtifactStore(output or get_settings().artifacts_dir)
    try:
        record = load_metadata(store.target_dir(name))
    except MetadataError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    if record is None:
        console.print(f"[red]No prebuilt artifact for: {name}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        console.print(record.model_dump_json(indent=2), soft_wrap=True)
        return

    console.print(f"[bold]{name}[/bold]")
    console.print(f"  Framework:     {record.framework_name}")
    console.print(f"  Static:        {record.static_framework}")
    console.print(f"  Source hash:   {record.source_hash or '(untracked)'}")
    console.print(f"  Built at:      {record.built_at or '-'}")
    console.print(f"  Resources:     {len(record.resources)}")
    console.print(f"  Bundles:       {', '.join(record.resource_bundles) or '-'}")
    console.print(f"  Build settings: {len(record.build_settings)}")
