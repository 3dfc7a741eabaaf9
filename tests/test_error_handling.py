"""Tests for the error taxonomy."""

import logging
from unittest.mock import patch

from mediaspool.error_handling import (
    ConfigurationError,
    DependencyError,
    ErrorCategory,
    FilesystemError,
    MediaSpoolError,
    PartialDerivativeError,
    ToolError,
    ValidationError,
    check_dependencies,
    handle_error,
)


class TestMediaSpoolError:
    """Test the base MediaSpoolError class."""

    def test_basic_error_creation(self):
        error = MediaSpoolError(
            "Test error message",
            ErrorCategory.CONFIGURATION,
            solution="Fix your config",
        )

        assert error.message == "Test error message"
        assert error.category == ErrorCategory.CONFIGURATION
        assert error.solution == "Fix your config"
        assert error.recoverable is True
        assert error.log_level == logging.ERROR

    def test_error_display(self, capsys):
        error = MediaSpoolError(
            "Configuration is invalid",
            ErrorCategory.CONFIGURATION,
            solution="Check your config file",
            details="Missing download_dir",
        )

        error.display_to_user()
        captured = capsys.readouterr()

        assert "Configuration Error" in captured.out
        assert "Configuration is invalid" in captured.out
        assert "Check your config file" in captured.out
        assert "Missing download_dir" in captured.out


class TestSpecificErrors:
    """Test the specialised error types."""

    def test_configuration_error_points_at_file(self, tmp_path):
        error = ConfigurationError("bad", config_path=tmp_path / "config.toml")

        assert str(tmp_path / "config.toml") in error.solution

    def test_dependency_error(self):
        error = DependencyError("ffmpeg", install_command="apt install ffmpeg")

        assert "ffmpeg" in error.message
        assert error.solution == "Install with: apt install ffmpeg"
        assert error.recoverable is False

    def test_validation_error_is_not_recoverable(self):
        error = ValidationError("Not a valid video")

        assert error.category == ErrorCategory.VALIDATION
        assert error.recoverable is False

    def test_tool_error_keeps_stderr(self):
        error = ToolError("ffmpeg failed", tool="ffmpeg", exit_code=1, stderr="boom")

        assert error.tool == "ffmpeg"
        assert error.exit_code == 1
        assert error.details == "boom"
        assert error.category == ErrorCategory.EXTERNAL_TOOL

    def test_partial_derivative_error_logs_as_warning(self):
        error = PartialDerivativeError("mosaic", "too small")

        assert error.derivative == "mosaic"
        assert error.message == "mosaic: too small"
        assert error.log_level == logging.WARNING

    def test_filesystem_error_category(self):
        assert FilesystemError("disk full").category == ErrorCategory.FILESYSTEM


class TestHandleError:
    """Test conversion of generic exceptions."""

    def test_wraps_generic_errors(self, capsys):
        handle_error(PermissionError("denied"))

        assert "Filesystem Error" in capsys.readouterr().out

    def test_network_category(self, capsys):
        handle_error(ConnectionError("unreachable"))

        assert "Network Error" in capsys.readouterr().out

    def test_passes_through_mediaspool_errors(self, capsys):
        handle_error(ValidationError("Not a valid video"))

        out = capsys.readouterr().out
        assert "Validation Error" in out
        assert "Not a valid video" in out


class TestCheckDependencies:
    """Test external tool discovery."""

    @patch("mediaspool.error_handling.shutil.which")
    def test_all_present(self, mock_which):
        mock_which.return_value = "/usr/bin/tool"

        assert check_dependencies() == []

    @patch("mediaspool.error_handling.shutil.which")
    def test_missing_ffprobe(self, mock_which):
        mock_which.side_effect = lambda name: None if name == "ffprobe" else "/usr/bin/ffmpeg"

        errors = check_dependencies()

        assert len(errors) == 1
        assert "ffprobe" in errors[0].message
