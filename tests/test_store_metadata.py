"""Tests for store/metadata.py module.

Tests record persistence, absent records, atomic replacement, and
metadata collection for built targets.
"""

import json
from unittest.mock import patch

import pytest

from prebuild_cache.errors import ConfigurationError, FilesystemError, MetadataError
from prebuild_cache.graph.project import Project
from prebuild_cache.graph.schema import TargetSchema
from prebuild_cache.store.metadata import (
    METADATA_FILENAME,
    CachedArtifactRecord,
    collect_metadata,
    load_metadata,
    metadata_path,
    save_metadata,
)


@pytest.fixture
def record() -> CachedArtifactRecord:
    """Create a sample record."""
    return CachedArtifactRecord(
        framework_name="Alamofire",
        static_framework=True,
        resources=["Alamofire/Resources/a.png"],
        resource_bundles=["Alamofire.bundle"],
        build_settings={"SWIFT_VERSION": "5.0"},
        source_hash="abc123",
        project_root="/work/app",
    )


@pytest.fixture
def target() -> TargetSchema:
    """Create a target with a Debug configuration."""
    return TargetSchema(
        name="Alamofire",
        static_framework=True,
        source_dir="Pods/Alamofire",
        resource_paths={"Debug": ["a.png"], "Release": ["b.png"]},
        resource_bundles=["AlamofireResources"],
        build_configurations=[
            {"name": "Debug", "build_settings": {"SWIFT_VERSION": "5.0"}},
        ],
    )


class TestSaveLoad:
    """Tests for save_metadata and load_metadata."""

    def test_load_absent(self, tmp_path):
        """Loading from a directory without record should return None."""
        assert load_metadata(tmp_path / "Never") is None

    def test_save_then_load(self, tmp_path, record):
        """A saved record should load back equal."""
        target_dir = tmp_path / "Alamofire"
        path = save_metadata(target_dir, record)

        assert path == target_dir / METADATA_FILENAME
        assert load_metadata(target_dir) == record

    def test_saved_file_is_json(self, tmp_path, record):
        """The metadata file should be readable JSON."""
        save_metadata(tmp_path, record)
        data = json.loads(metadata_path(tmp_path).read_text())
        assert data["framework_name"] == "Alamofire"
        assert data["source_hash"] == "abc123"

    def test_unknown_keys_ignored(self, tmp_path):
        """Records written by newer versions should still load."""
        metadata_path(tmp_path).write_text(
            json.dumps({"framework_name": "Kit", "future_field": 1})
        )
        loaded = load_metadata(tmp_path)
        assert loaded is not None
        assert loaded.framework_name == "Kit"

    def test_corrupt_record(self, tmp_path):
        """A corrupt record should raise MetadataError, not return None."""
        metadata_path(tmp_path).write_text("{truncated")
        with pytest.raises(MetadataError):
            load_metadata(tmp_path)

    def test_undecodable_record(self, tmp_path):
        """A record with invalid UTF-8 bytes should raise MetadataError."""
        metadata_path(tmp_path).write_bytes(b"\xff\xfe{garbage")
        with pytest.raises(MetadataError):
            load_metadata(tmp_path)

    def test_failed_save_keeps_prior_record(self, tmp_path, record):
        """A failed save should leave the previous record readable."""
        save_metadata(tmp_path, record)
        newer = record.model_copy(update={"source_hash": "def456"})

        with (
            patch("prebuild_cache.store.fs.os.replace", side_effect=OSError("disk")),
            pytest.raises(FilesystemError),
        ):
            save_metadata(tmp_path, newer)

        loaded = load_metadata(tmp_path)
        assert loaded == record
        assert sorted(p.name for p in tmp_path.iterdir()) == [METADATA_FILENAME]


class TestCollectMetadata:
    """Tests for collect_metadata function."""

    def test_collects_fields(self, tmp_path, target):
        """All record fields should be derived from the target."""
        project = Project(tmp_path / "Pods.xcodeproj", [target])

        record = collect_metadata(
            target,
            project,
            "Debug",
            source_hash="abc123",
            project_root="/work/app",
        )

        assert record.framework_name == "Alamofire"
        assert record.static_framework is True
        assert record.resources == ["a.png", "b.png"]
        assert record.resource_bundles == ["AlamofireResources.bundle"]
        assert record.build_settings == {"SWIFT_VERSION": "5.0"}
        assert record.source_hash == "abc123"
        assert record.project_root == "/work/app"
        assert record.built_at is not None

    def test_missing_configuration(self, tmp_path, target):
        """A missing configuration should be a configuration error."""
        project = Project(tmp_path / "Pods.xcodeproj", [target])
        with pytest.raises(ConfigurationError):
            collect_metadata(target, project, "Release", None, None)
