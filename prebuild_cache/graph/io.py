"""Loading of graph and lockfile documents.

This module provides helpers for reading the dependency graph and the
lockfile handed over by the resolver. Both are YAML or JSON documents;
relative paths inside them are resolved against the document's directory.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from prebuild_cache.graph.lockfile import Lockfile
from prebuild_cache.graph.schema import GraphSchema


class LockfileSchema(BaseModel):
    """Schema of the lockfile document.

    Attributes:
        checksums: Resolved checksum per target name.
        dev_paths: Source directory per locally tracked target.
    """

    model_config = ConfigDict(extra="ignore")

    checksums: dict[str, str] = Field(default_factory=dict)
    dev_paths: dict[str, str] = Field(default_factory=dict)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed JSON content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the document is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def load_document(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON document, chosen by file extension.

    Raises:
        ValueError: If the file extension is not supported.
    """
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml", ".lock"):
        return load_yaml(path)
    if suffix == ".json":
        return load_json(path)
    raise ValueError(
        f"Unsupported file extension: {suffix}. Use .yaml, .yml, .lock, or .json"
    )


def _resolve(base: Path, value: str) -> str:
    """Resolve a possibly relative path against base."""
    path = Path(value)
    if not path.is_absolute():
        path = base / path
    return str(path)


def parse_graph_data(data: dict[str, Any], base_path: Path) -> GraphSchema:
    """Validate graph data and resolve its relative paths.

    Args:
        data: Raw graph document.
        base_path: Directory relative paths are resolved against.

    Returns:
        Validated GraphSchema with absolute-or-base-relative paths.

    Raises:
        pydantic.ValidationError: If data does not match schema.
    """
    graph = GraphSchema.model_validate(data)
    targets = [
        t.model_copy(update={"source_dir": _resolve(base_path, t.source_dir)})
        for t in graph.targets
    ]
    return graph.model_copy(
        update={
            "project_path": _resolve(base_path, graph.project_path),
            "project_root": _resolve(base_path, graph.project_root or "."),
            "targets": targets,
        }
    )


def load_graph(path: Path) -> GraphSchema:
    """Load and validate a dependency graph document.

    Args:
        path: Path to the graph file.

    Returns:
        Validated GraphSchema instance.
    """
    return parse_graph_data(load_document(path), path.parent)


def parse_lockfile_data(data: dict[str, Any], base_path: Path) -> Lockfile:
    """Build a Lockfile from raw lockfile data.

    Args:
        data: Raw lockfile document.
        base_path: Directory relative dev paths are resolved against.

    Returns:
        Lockfile snapshot.
    """
    schema = LockfileSchema.model_validate(data)
    dev_paths = {
        name: Path(_resolve(base_path, value))
        for name, value in schema.dev_paths.items()
    }
    return Lockfile(checksums=schema.checksums, dev_paths=dev_paths)


def load_lockfile(path: Path) -> Lockfile:
    """Load a lockfile document.

    Args:
        path: Path to the lockfile.

    Returns:
        Lockfile snapshot.
    """
    return parse_lockfile_data(load_document(path), path.parent)


__all__ = [
    "LockfileSchema",
    "load_document",
    "load_graph",
    "load_json",
    "load_lockfile",
    "load_yaml",
    "parse_graph_data",
    "parse_lockfile_data",
]
