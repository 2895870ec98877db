"""Tests for graph/schema.py module."""

import pytest
from pydantic import ValidationError

from prebuild_cache.graph.schema import (
    BuildConfigurationSchema,
    GraphSchema,
    TargetSchema,
)


class TestBuildConfigurationSchema:
    """Tests for BuildConfigurationSchema."""

    def test_string_settings_unchanged(self):
        """Plain string settings should be kept as-is."""
        config = BuildConfigurationSchema(
            name="Debug", build_settings={"PRODUCT_NAME": "Alamofire"}
        )
        assert config.build_settings == {"PRODUCT_NAME": "Alamofire"}

    def test_flattens_lists(self):
        """List settings should be joined with spaces."""
        config = BuildConfigurationSchema(
            name="Debug",
            build_settings={"OTHER_LDFLAGS": ["-ObjC", "-lz"]},
        )
        assert config.build_settings["OTHER_LDFLAGS"] == "-ObjC -lz"

    def test_flattens_booleans_and_numbers(self):
        """Booleans should become YES/NO and numbers strings."""
        config = BuildConfigurationSchema(
            name="Debug",
            build_settings={
                "ENABLE_BITCODE": False,
                "DEFINES_MODULE": True,
                "SWIFT_VERSION": 5.0,
            },
        )
        assert config.build_settings == {
            "ENABLE_BITCODE": "NO",
            "DEFINES_MODULE": "YES",
            "SWIFT_VERSION": "5.0",
        }

    def test_none_settings_become_empty(self):
        """Null build settings should be treated as empty."""
        config = BuildConfigurationSchema(name="Debug", build_settings=None)
        assert config.build_settings == {}


class TestTargetSchema:
    """Tests for TargetSchema."""

    def test_minimal_target(self):
        """A minimal target should get defaults."""
        target = TargetSchema(name="Alamofire", source_dir="Pods/Alamofire")
        assert target.should_build is True
        assert target.static_framework is False
        assert target.effective_framework_name == "Alamofire"
        assert target.resource_paths == []
        assert target.vendored_paths == []

    def test_framework_name_override(self):
        """framework_name should override the product name."""
        target = TargetSchema(
            name="GoogleUtilities-Core",
            framework_name="GoogleUtilities",
            source_dir="src",
        )
        assert target.effective_framework_name == "GoogleUtilities"

    def test_resource_paths_mapping_flattened(self):
        """A configuration -> paths mapping should be flattened in order."""
        target = TargetSchema(
            name="Kit",
            source_dir="src",
            resource_paths={
                "Debug": ["a.png", "b.png"],
                "Release": ["c.png"],
            },
        )
        assert target.resource_paths == ["a.png", "b.png", "c.png"]

    def test_resource_paths_list_kept(self):
        """A flat resource path list should be kept in order."""
        target = TargetSchema(
            name="Kit", source_dir="src", resource_paths=["z.xib", "a.xib"]
        )
        assert target.resource_paths == ["z.xib", "a.xib"]

    def test_vendored_paths_order(self):
        """Vendored frameworks should precede vendored libraries."""
        target = TargetSchema(
            name="Kit",
            source_dir="src",
            vendored_frameworks=["Frameworks/Kit.framework"],
            vendored_libraries=["libs/libkit.a"],
        )
        assert target.vendored_paths == [
            "Frameworks/Kit.framework",
            "libs/libkit.a",
        ]

    @pytest.mark.parametrize("path", ["/abs/Kit.framework", "../Kit.framework", ""])
    def test_vendored_paths_must_be_relative(self, path):
        """Vendored paths escaping the source root should be rejected."""
        with pytest.raises(ValidationError):
            TargetSchema(name="Kit", source_dir="src", vendored_frameworks=[path])

    def test_invalid_name(self):
        """Names with path separators should be rejected."""
        with pytest.raises(ValidationError):
            TargetSchema(name="bad/name", source_dir="src")

    @pytest.mark.parametrize(
        "name", [".", "..", ".hidden", ".index.json", "-flag", "_Private", ""]
    )
    def test_name_must_start_alphanumeric(self, name):
        """Names that are not plain directory names should be rejected."""
        with pytest.raises(ValidationError):
            TargetSchema(name=name, source_dir="src")

    def test_reserved_name(self):
        """The delta file name cannot be used as a target name."""
        with pytest.raises(ValidationError, match="reserved"):
            TargetSchema(name="delta.json", source_dir="src")

    @pytest.mark.parametrize(
        "name", ["Alamofire", "GoogleUtilities-Core", "1PasswordExtension", "nanopb+x"]
    )
    def test_valid_names(self, name):
        """Ordinary target names should be accepted."""
        assert TargetSchema(name=name, source_dir="src").name == name

    def test_unknown_field_rejected(self):
        """Unknown fields should be rejected."""
        with pytest.raises(ValidationError):
            TargetSchema(name="Kit", source_dir="src", unknown=True)

    def test_find_configuration(self):
        """find_configuration should match by name."""
        target = TargetSchema(
            name="Kit",
            source_dir="src",
            build_configurations=[
                {"name": "Debug", "build_settings": {"A": "1"}},
                {"name": "Release", "build_settings": {"A": "2"}},
            ],
        )
        release = target.find_configuration("Release")
        assert release is not None
        assert release.build_settings == {"A": "2"}
        assert target.find_configuration("Profile") is None


class TestGraphSchema:
    """Tests for GraphSchema."""

    def test_target_names_in_order(self):
        """target_names should follow graph order."""
        graph = GraphSchema(
            project_path="Pods.xcodeproj",
            targets=[
                {"name": "B", "source_dir": "b"},
                {"name": "A", "source_dir": "a"},
            ],
        )
        assert graph.target_names == ["B", "A"]
        assert graph.get_target("A") is not None
        assert graph.get_target("C") is None

    def test_duplicate_names_rejected(self):
        """Duplicate target names should be rejected."""
        with pytest.raises(ValidationError, match="duplicate"):
            GraphSchema(
                project_path="Pods.xcodeproj",
                targets=[
                    {"name": "A", "source_dir": "a"},
                    {"name": "A", "source_dir": "a2"},
                ],
            )
