"""Tests for builds/runner.py module.

Tests build command composition, product collection, and execution.
Uses mocked subprocess for build execution tests.
"""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from prebuild_cache.builds.runner import (
    BuildRequest,
    collect_products,
    compose_xcodebuild_command,
    products_dir,
    run_build,
)
from prebuild_cache.errors import FilesystemError, ToolchainError
from prebuild_cache.types import Sdk


@pytest.fixture
def request_(tmp_path) -> BuildRequest:
    """Create a minimal build request."""
    return BuildRequest(
        project_path=tmp_path / "Pods" / "Pods.xcodeproj",
        scheme="_Prebuild",
        target_names=["Alamofire", "Crashlytics"],
        configuration="Debug",
        output_path=tmp_path / "GeneratedFrameworks",
        build_dir=tmp_path / "build",
        log_dir=tmp_path / "logs",
    )


def _make_framework(directory: Path, name: str, content: bytes) -> None:
    framework = directory / f"{name}.framework"
    framework.mkdir(parents=True)
    (framework / name).write_bytes(content)
    (framework / "Info.plist").write_text("<plist/>")


class TestComposeXcodebuildCommand:
    """Tests for compose_xcodebuild_command function."""

    def test_minimal_command(self, request_):
        """Should compose the base command."""
        cmd = compose_xcodebuild_command(request_, Sdk.SIMULATOR)

        assert cmd[0] == "xcodebuild"
        assert cmd[cmd.index("-project") + 1] == str(request_.project_path)
        assert cmd[cmd.index("-scheme") + 1] == "_Prebuild"
        assert cmd[cmd.index("-configuration") + 1] == "Debug"
        assert cmd[cmd.index("-sdk") + 1] == "iphonesimulator"
        assert f"SYMROOT={request_.build_dir}" in cmd
        assert "ONLY_ACTIVE_ARCH=NO" in cmd

    def test_bitcode_device_only(self, request_):
        """Bitcode should only be requested for device builds."""
        request_.bitcode_enabled = True

        simulator = compose_xcodebuild_command(request_, Sdk.SIMULATOR)
        device = compose_xcodebuild_command(request_, Sdk.DEVICE)

        assert "BITCODE_GENERATION_MODE=bitcode" not in simulator
        assert "BITCODE_GENERATION_MODE=bitcode" in device

    def test_disable_dsym(self, request_):
        """Disabling dSYM should switch the debug information format."""
        assert "DEBUG_INFORMATION_FORMAT=dwarf" not in compose_xcodebuild_command(
            request_, Sdk.SIMULATOR
        )
        request_.disable_dsym = True
        assert "DEBUG_INFORMATION_FORMAT=dwarf" in compose_xcodebuild_command(
            request_, Sdk.SIMULATOR
        )

    def test_extra_args_last(self, request_):
        """Extra arguments should be appended at the end."""
        request_.extra_args = ["SWIFT_VERSION=5.0", "-quiet"]
        cmd = compose_xcodebuild_command(request_, Sdk.SIMULATOR)
        assert cmd[-2:] == ["SWIFT_VERSION=5.0", "-quiet"]

    def test_custom_executable(self, request_):
        """A custom toolchain executable should be used."""
        request_.xcodebuild = "/opt/xcode/xcodebuild"
        assert compose_xcodebuild_command(request_, Sdk.DEVICE)[0] == (
            "/opt/xcode/xcodebuild"
        )


class TestSdks:
    """Tests for BuildRequest.sdks."""

    def test_simulator_only(self, request_):
        """Only the simulator should be built by default."""
        assert request_.sdks == [Sdk.SIMULATOR]

    def test_with_device(self, request_):
        """Device builds should add the device SDK."""
        request_.device_build_enabled = True
        assert request_.sdks == [Sdk.SIMULATOR, Sdk.DEVICE]


class TestCollectProducts:
    """Tests for collect_products function."""

    def test_copies_products(self, request_, tmp_path):
        """Built products should land in output/<target>."""
        _make_framework(
            products_dir(request_, Sdk.SIMULATOR, "Alamofire"), "Alamofire", b"sim"
        )

        collected = collect_products(request_, tmp_path / "build.log")

        assert collected == ["Alamofire"]
        binary = request_.output_path / "Alamofire" / "Alamofire.framework"
        assert (binary / "Alamofire").read_bytes() == b"sim"

    def test_target_without_products(self, request_, tmp_path):
        """Targets without products should get an empty directory."""
        collected = collect_products(request_, tmp_path / "build.log")

        assert collected == []
        crashlytics = request_.output_path / "Crashlytics"
        assert crashlytics.is_dir()
        assert list(crashlytics.iterdir()) == []

    def test_replaces_previous_output(self, request_, tmp_path):
        """Old files in the output directory should be removed."""
        old = request_.output_path / "Alamofire" / "Old.framework"
        old.mkdir(parents=True)
        _make_framework(
            products_dir(request_, Sdk.SIMULATOR, "Alamofire"), "Alamofire", b"new"
        )

        collect_products(request_, tmp_path / "build.log")

        assert not old.exists()

    def test_parent_name_refused(self, request_, tmp_path):
        """A '..' target must not remove anything outside the output path."""
        request_.output_path.mkdir(parents=True)
        sentinel = tmp_path / "sentinel.txt"
        sentinel.write_text("keep")
        request_.target_names = [".."]

        with pytest.raises(FilesystemError):
            collect_products(request_, tmp_path / "build.log")

        assert sentinel.read_text() == "keep"
        assert request_.output_path.is_dir()


class TestRunBuild:
    """Tests for run_build function with mocked subprocess."""

    @patch("prebuild_cache.builds.runner.subprocess.run")
    def test_success(self, mock_run, request_):
        """A successful build should return a result with a log file."""
        mock_run.return_value = MagicMock(returncode=0)
        _make_framework(
            products_dir(request_, Sdk.SIMULATOR, "Alamofire"), "Alamofire", b"sim"
        )

        result = run_build(request_)

        assert mock_run.call_count == 1
        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "xcodebuild"
        assert mock_run.call_args.kwargs["cwd"] == request_.project_path.parent
        assert result.log_path.parent == request_.log_dir
        assert result.log_path.exists()
        assert "# Command: xcodebuild" in result.log_path.read_text()
        assert result.collected == ["Alamofire"]
        assert len(result.commands) == 1
        assert result.finished_at >= result.started_at

    @patch("prebuild_cache.builds.runner.subprocess.run")
    def test_failure(self, mock_run, request_):
        """A non-zero exit should raise ToolchainError with the exit code."""
        mock_run.return_value = MagicMock(returncode=65)

        with pytest.raises(ToolchainError) as exc_info:
            run_build(request_)

        error = exc_info.value
        assert error.exit_code == 65
        assert error.code == "build_failed"
        assert error.log_path is not None
        assert error.log_path.exists()
        assert not request_.output_path.exists()

    @patch("prebuild_cache.builds.runner.subprocess.run")
    def test_timeout(self, mock_run, request_):
        """A timeout should raise ToolchainError with the timeout code."""
        request_.timeout = 60
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="xcodebuild", timeout=60)

        with pytest.raises(ToolchainError) as exc_info:
            run_build(request_)

        assert exc_info.value.code == "build_timeout"
        assert exc_info.value.exit_code == -1
        assert "TIMEOUT" in exc_info.value.log_path.read_text()

    @patch("prebuild_cache.builds.runner.subprocess.run")
    def test_missing_executable(self, mock_run, request_):
        """A toolchain that cannot start should raise an execution error."""
        mock_run.side_effect = FileNotFoundError("xcodebuild")

        with pytest.raises(ToolchainError) as exc_info:
            run_build(request_)

        assert exc_info.value.code == "execution_error"
        assert exc_info.value.exit_code is None

    @patch("prebuild_cache.builds.runner.subprocess.run")
    def test_device_build_fuses_slices(self, mock_run, request_):
        """Device builds should run per SDK and fuse binaries with lipo."""
        mock_run.return_value = MagicMock(returncode=0)
        request_.device_build_enabled = True
        request_.target_names = ["Alamofire"]
        _make_framework(
            products_dir(request_, Sdk.SIMULATOR, "Alamofire"), "Alamofire", b"sim"
        )
        _make_framework(
            products_dir(request_, Sdk.DEVICE, "Alamofire"), "Alamofire", b"dev"
        )

        result = run_build(request_)

        commands = [call[0][0] for call in mock_run.call_args_list]
        assert len(commands) == 3
        assert commands[0][commands[0].index("-sdk") + 1] == "iphonesimulator"
        assert commands[1][commands[1].index("-sdk") + 1] == "iphoneos"
        assert commands[2][:3] == ["xcrun", "lipo", "-create"]
        output = request_.output_path / "Alamofire" / "Alamofire.framework"
        assert commands[2][-1] == str(output / "Alamofire")
        assert result.collected == ["Alamofire"]
