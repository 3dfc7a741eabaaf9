"""Configuration management for MediaSpool."""

import os
from enum import Enum
from pathlib import Path

import tomli
from pydantic import BaseModel, ConfigDict, Field, field_validator


class MediaSpoolConfig(BaseModel):
    """Main configuration for MediaSpool."""

    model_config = ConfigDict(validate_default=True)

    # Paths
    download_dir: Path = Field(default=Path("~/.local/share/mediaspool/download"))
    output_dir: Path = Field(default=Path("~/.local/share/mediaspool/public/videos"))
    log_dir: Path = Field(default=Path("~/.local/share/mediaspool/logs"))

    # External tools
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")

    # Timeout Settings (seconds)
    ffprobe_timeout: int = Field(default=60)
    ffmpeg_timeout: int | None = None  # None = wait for ffmpeg indefinitely
    notify_request_timeout: int = Field(default=60)

    # Processing Intervals (seconds)
    download_poll_interval: float = Field(default=20, gt=0)
    transcode_poll_interval: float = Field(default=30, gt=0)
    status_display_interval: int = Field(default=30)

    # Concurrency
    max_concurrent_downloads: int = Field(default=3, ge=1)
    screenshot_workers: int = Field(default=4, ge=1)

    # Preview and HLS layout
    preview_segment_duration: float = Field(default=2, gt=0)
    preview_segment_count: int = Field(default=5, ge=2)
    hls_segment_time: int = Field(default=4, ge=1)

    # Notifications (Telegram bot)
    telegram_bot_token: str | None = None
    telegram_api_url: str = Field(default="https://api.telegram.org")

    @field_validator("download_dir", "output_dir", "log_dir", mode="before")
    @classmethod
    def expand_paths(cls, v: Path | str) -> Path:
        """Expand user home directory in paths."""
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser().resolve()

    @field_validator("telegram_bot_token", mode="after")
    @classmethod
    def token_from_environment(cls, v: str | None) -> str | None:
        """Fall back to MEDIASPOOL_TELEGRAM_TOKEN when no token is configured."""
        return v or os.getenv("MEDIASPOOL_TELEGRAM_TOKEN")

    @property
    def database_path(self) -> Path:
        """SQLite database holding jobs, settings and subscriptions."""
        return self.log_dir / "mediaspool.db"

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.download_dir, self.output_dir, self.log_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)


class Resolution(str, Enum):
    """Output resolution presets for the primary rendition."""

    SD = "480p"
    HD = "720p"
    FULL_HD = "1080p"
    UHD = "4K"

    @property
    def width(self) -> int:
        return RESOLUTION_SIZES[self][0]

    @property
    def height(self) -> int:
        return RESOLUTION_SIZES[self][1]


RESOLUTION_SIZES = {
    Resolution.SD: (640, 480),
    Resolution.HD: (1280, 720),
    Resolution.FULL_HD: (1920, 1080),
    Resolution.UHD: (3840, 2160),
}


class WatermarkPosition(str, Enum):
    """Corner used for the watermark overlay."""

    TOP_LEFT = "topLeft"
    TOP_RIGHT = "topRight"
    BOTTOM_LEFT = "bottomLeft"
    BOTTOM_RIGHT = "bottomRight"


class Size(BaseModel):
    """Width/height pair where 0 means "derive from the aspect ratio"."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)


class TranscodeSettings(BaseModel):
    """Per-job transcoding settings.

    Frozen so a job sees one consistent snapshot from start to finish.
    """

    model_config = ConfigDict(frozen=True)

    resolution: Resolution = Resolution.HD
    bitrate: int = Field(default=2000, gt=0)  # kbps
    frame_rate: float = Field(default=30, gt=0)
    watermark_image: Path | None = None
    watermark_position: WatermarkPosition = WatermarkPosition.TOP_RIGHT
    screenshot_count: int = Field(default=12, ge=1)
    generate_preview_video: bool = False
    preview_video_size: Size = Size(width=640, height=360)
    poster_size: Size = Size(width=1280, height=0)
    generate_thumbnail_mosaic: bool = True
    generate_m3u8_segments: bool = False


def load_config(config_path: Path | None = None) -> MediaSpoolConfig:
    """Load configuration from file or defaults."""
    if config_path is None:
        possible_paths = [
            Path.home() / ".config" / "mediaspool" / "config.toml",
            Path.cwd() / "mediaspool.toml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = path
                break

    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomli.load(f)
        # [transcode] belongs to the settings store, not the service config
        config_data.pop("transcode", None)
        return MediaSpoolConfig(**config_data)
    return MediaSpoolConfig()


def load_transcode_settings(path: Path) -> TranscodeSettings:
    """Read a [transcode] table from a TOML file."""
    with open(path, "rb") as f:
        data = tomli.load(f)
    return TranscodeSettings(**data.get("transcode", data))


def create_sample_config(path: Path) -> None:
    """Create a sample configuration file."""
    sample_config = """# MediaSpool Configuration
# ========================

# Directory paths
download_dir = "~/.local/share/mediaspool/download"     # Auto-created: downloaded source files
output_dir = "~/.local/share/mediaspool/public/videos"  # Auto-created: one directory per transcoded video
log_dir = "~/.local/share/mediaspool/logs"              # Auto-created: log file, database and lock

# External tools
ffmpeg_binary = "ffmpeg"
ffprobe_binary = "ffprobe"

# Notifications (optional)
# telegram_bot_token = "123456:ABC..."                  # Or set MEDIASPOOL_TELEGRAM_TOKEN

# ============================================================================
# ADVANCED SETTINGS - Most users can leave these as defaults
# ============================================================================

# Processing Intervals (seconds)
download_poll_interval = 20                             # How often to pick up a pending download
transcode_poll_interval = 30                            # How often to pick up a waiting video
status_display_interval = 30

# Concurrency
max_concurrent_downloads = 3
screenshot_workers = 4

# Timeouts (seconds)
ffprobe_timeout = 60
notify_request_timeout = 60

# Preview clip and HLS layout
preview_segment_duration = 2
preview_segment_count = 5
hls_segment_time = 4

# ============================================================================
# TRANSCODE SETTINGS - load with `mediaspool settings load <file>`
# ============================================================================

[transcode]
resolution = "720p"                                     # 480p, 720p, 1080p, 4K
bitrate = 2000                                          # kbps
frame_rate = 30
# watermark_image = "/path/to/logo.png"
watermark_position = "topRight"                         # topLeft, topRight, bottomLeft, bottomRight
screenshot_count = 12
generate_preview_video = false
preview_video_size = { width = 640, height = 360 }
poster_size = { width = 1280, height = 0 }              # 0 = keep aspect ratio
generate_thumbnail_mosaic = true
generate_m3u8_segments = false
"""

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(sample_config)
