"""Error taxonomy and user-facing error display."""

import logging
import shutil
from enum import Enum
from pathlib import Path

from rich.console import Console

logger = logging.getLogger(__name__)
console = Console()


class ErrorCategory(Enum):
    """Categories of errors for better user experience."""

    CONFIGURATION = "configuration"
    DEPENDENCY = "dependency"
    VALIDATION = "validation"
    EXTERNAL_TOOL = "external_tool"
    DERIVATIVE = "derivative"
    FILESYSTEM = "filesystem"
    NETWORK = "network"
    SYSTEM = "system"


class MediaSpoolError(Exception):
    """Base exception for MediaSpool."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        *,
        solution: str | None = None,
        details: str | None = None,
        recoverable: bool = True,
        log_level: int = logging.ERROR,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.solution = solution
        self.details = details
        self.recoverable = recoverable
        self.log_level = log_level
        self.original_error = original_error

    def display_to_user(self) -> None:
        """Display error to user with helpful context."""
        category_styles = {
            ErrorCategory.CONFIGURATION: ("⚙️", "yellow"),
            ErrorCategory.DEPENDENCY: ("📦", "red"),
            ErrorCategory.VALIDATION: ("🚫", "yellow"),
            ErrorCategory.EXTERNAL_TOOL: ("🔧", "red"),
            ErrorCategory.DERIVATIVE: ("🖼️", "yellow"),
            ErrorCategory.FILESYSTEM: ("📁", "red"),
            ErrorCategory.NETWORK: ("🌐", "orange"),
            ErrorCategory.SYSTEM: ("💻", "red"),
        }

        emoji, color = category_styles.get(self.category, ("❌", "red"))

        console.print(
            f"\n{emoji} [{color}bold]{self.category.value.replace('_', ' ').title()} Error[/{color}bold]",
        )
        console.print(f"[{color}]{self.message}[/{color}]")

        if self.details:
            console.print(f"\n[dim]Details:[/dim] {self.details}")

        if self.solution:
            console.print(f"\n[green]💡 Solution:[/green] {self.solution}")

        if self.recoverable:
            console.print(
                "\n[dim]This error may be temporary. You can try again.[/dim]",
            )
        else:
            console.print(
                "\n[dim]This error requires intervention before continuing.[/dim]",
            )

        if self.original_error:
            logger.log(
                self.log_level,
                "%s: %s",
                self.category.value,
                self.message,
                exc_info=self.original_error,
            )
        else:
            logger.log(self.log_level, "%s: %s", self.category.value, self.message)


class ConfigurationError(MediaSpoolError):
    """Configuration-related errors."""

    def __init__(self, message: str, *, config_path: Path | None = None, **kwargs):
        solution = kwargs.pop("solution", None)
        if not solution and config_path:
            solution = f"Check your configuration file at {config_path}"
        super().__init__(
            message,
            ErrorCategory.CONFIGURATION,
            solution=solution,
            **kwargs,
        )


class DependencyError(MediaSpoolError):
    """Missing or broken dependency errors."""

    def __init__(
        self,
        dependency: str,
        *,
        install_command: str | None = None,
        **kwargs,
    ):
        message = f"Required dependency '{dependency}' is not available"
        solution = kwargs.pop("solution", None)
        if not solution and install_command:
            solution = f"Install with: {install_command}"
        super().__init__(
            message,
            ErrorCategory.DEPENDENCY,
            solution=solution,
            recoverable=False,
            **kwargs,
        )


class ValidationError(MediaSpoolError):
    """Input is not decodable media or a hard precondition is unmet."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message, ErrorCategory.VALIDATION, **kwargs)


class ToolError(MediaSpoolError):
    """An external tool (ffprobe, ffmpeg, Pillow, yt-dlp) reported failure."""

    def __init__(
        self,
        message: str,
        *,
        tool: str | None = None,
        exit_code: int | None = None,
        stderr: str | None = None,
        **kwargs,
    ):
        self.tool = tool
        self.exit_code = exit_code
        details = kwargs.pop("details", stderr)
        solution = kwargs.pop(
            "solution",
            f"Check {tool} is properly installed and configured" if tool else None,
        )
        super().__init__(
            message,
            ErrorCategory.EXTERNAL_TOOL,
            details=details,
            solution=solution,
            **kwargs,
        )


class PartialDerivativeError(MediaSpoolError):
    """Failure confined to one derivative (screenshots, mosaic, preview, HLS)."""

    def __init__(self, derivative: str, message: str, **kwargs):
        self.derivative = derivative
        kwargs.setdefault("log_level", logging.WARNING)
        super().__init__(
            f"{derivative}: {message}",
            ErrorCategory.DERIVATIVE,
            **kwargs,
        )


class FilesystemError(MediaSpoolError):
    """Creating, writing or deleting a file failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, ErrorCategory.FILESYSTEM, **kwargs)


def handle_error(
    error: Exception,
    *,
    category: ErrorCategory | None = None,
    **kwargs,
) -> None:
    """Convert generic exceptions to MediaSpoolError and display to user."""
    if isinstance(error, MediaSpoolError):
        error.display_to_user()
        return

    if category is None:
        if isinstance(error, FileNotFoundError | PermissionError):
            category = ErrorCategory.FILESYSTEM
        elif isinstance(error, ConnectionError | TimeoutError):
            category = ErrorCategory.NETWORK
        else:
            category = ErrorCategory.SYSTEM

    wrapped = MediaSpoolError(
        message=str(error) or "An unexpected error occurred",
        category=category,
        original_error=error,
        **kwargs,
    )
    wrapped.display_to_user()


def check_dependencies(
    ffmpeg_binary: str = "ffmpeg",
    ffprobe_binary: str = "ffprobe",
) -> list[DependencyError]:
    """Check for missing external tools and return list of errors."""
    errors = []

    for binary in (ffmpeg_binary, ffprobe_binary):
        if not shutil.which(binary):
            errors.append(
                DependencyError(
                    binary,
                    solution="Install FFmpeg from https://ffmpeg.org/ or your package manager",
                    details=f"{binary} is required for probing and transcoding",
                ),
            )

    return errors
