"""Shared test configuration and fixtures."""

import logging
import threading
from pathlib import Path

import pytest
from PIL import Image

from mediaspool.cli import cleanup_logging
from mediaspool.config import MediaSpoolConfig
from mediaspool.media.ffmpeg import MediaEngine, ToolResult
from mediaspool.media.probe import ProbeResult, StreamInfo
from mediaspool.storage import (
    Database,
    DownloadStore,
    SettingsStore,
    SubscriptionStore,
    VideoStore,
)


@pytest.fixture(scope="function", autouse=True)
def cleanup_logging_handlers():
    """Automatically cleanup logging handlers after each test to prevent ResourceWarnings."""
    yield
    cleanup_logging()


@pytest.fixture(scope="function", autouse=True)
def reset_logging():
    """Reset logging configuration after each test."""
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Configuration rooted in a temporary directory."""
    monkeypatch.delenv("MEDIASPOOL_TELEGRAM_TOKEN", raising=False)
    return MediaSpoolConfig(
        download_dir=tmp_path / "download",
        output_dir=tmp_path / "videos",
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def database(config):
    return Database(config.database_path)


@pytest.fixture
def downloads(database):
    return DownloadStore(database)


@pytest.fixture
def videos(database):
    return VideoStore(database)


@pytest.fixture
def settings_store(database):
    return SettingsStore(database)


@pytest.fixture
def subscriptions(database):
    return SubscriptionStore(database)


@pytest.fixture
def make_image(tmp_path):
    """Write a solid-colour image and return its path."""

    def _make(name: str, width: int, height: int, color=(200, 30, 30)) -> Path:
        path = tmp_path / name
        Image.new("RGB", (width, height), color).save(path)
        return path

    return _make


def make_probe(
    width: int = 1920,
    height: int = 1080,
    duration: float = 10.0,
    frame_rate: str = "10/1",
    nb_frames: int | None = 100,
) -> ProbeResult:
    """ProbeResult as ffprobe would report for a simple H.264 + AAC file."""
    raw_video = {
        "index": 0,
        "codec_type": "video",
        "codec_name": "h264",
        "width": width,
        "height": height,
        "duration": str(duration),
        "r_frame_rate": frame_rate,
    }
    if nb_frames is not None:
        raw_video["nb_frames"] = str(nb_frames)
    raw_audio = {"index": 1, "codec_type": "audio", "codec_name": "aac"}
    raw = {"streams": [raw_video, raw_audio], "format": {"duration": str(duration)}}
    return ProbeResult(
        streams=[StreamInfo.from_ffprobe(raw_video), StreamInfo.from_ffprobe(raw_audio)],
        duration=duration,
        raw=raw,
    )


@pytest.fixture
def probe_factory():
    return make_probe


class RecordingEngine(MediaEngine):
    """MediaEngine that records invocations and fakes ffmpeg's outputs.

    WebP outputs are real images so Pillow-based steps can consume them.
    ``fail_on`` receives the description and returns True to fail that run.
    """

    def __init__(self, config, fail_on=None):
        super().__init__(config)
        self.calls: list[tuple[list[str], str]] = []
        self.fail_on = fail_on
        self._lock = threading.Lock()

    def run(self, args, description):
        with self._lock:
            self.calls.append((list(args), description))
        if self.fail_on and self.fail_on(description):
            return ToolResult(False, description, error_message=f"{description} exploded", returncode=1)

        output = Path(args[-1])
        output.parent.mkdir(parents=True, exist_ok=True)
        if output.suffix == ".webp":
            Image.new("RGB", (64, 36), (10, 120, 200)).save(output, "WEBP")
        elif output.suffix == ".m3u8":
            output.write_text(
                '#EXTM3U\n#EXT-X-KEY:METHOD=AES-128,URI="ts.key"\n#EXTINF:4.0,\nmedia_0.ts\n',
            )
            (output.parent / "media_0.ts").write_bytes(b"ts")
        else:
            output.write_bytes(b"\x00" * 128)
        return ToolResult(True, description, returncode=0)

    def descriptions(self) -> list[str]:
        return [description for _, description in self.calls]


@pytest.fixture
def recording_engine(config):
    return RecordingEngine(config)


@pytest.fixture
def failing_engine(config):
    """Build a RecordingEngine failing runs whose description contains ``marker``."""

    def _make(marker: str) -> RecordingEngine:
        return RecordingEngine(config, fail_on=lambda description: marker in description)

    return _make
