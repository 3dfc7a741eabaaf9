"""ffprobe wrapper."""

import json
import logging
import math
import subprocess
from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path
from typing import Any

from mediaspool.config import MediaSpoolConfig
from mediaspool.error_handling import ToolError

logger = logging.getLogger(__name__)


def parse_frame_rate(value: str | None) -> Fraction | None:
    """Parse ffprobe's rational frame rate ("30000/1001", "25/1", "25")."""
    if not value:
        return None
    try:
        rate = Fraction(value)
    except (ValueError, ZeroDivisionError):
        return None
    return rate if rate > 0 else None


@dataclass
class StreamInfo:
    """One stream from ffprobe's ``streams`` list."""

    index: int
    codec_type: str | None
    codec_name: str | None = None
    width: int | None = None
    height: int | None = None
    duration: float | None = None
    frame_rate: Fraction | None = None
    frame_count: int | None = None

    @classmethod
    def from_ffprobe(cls, data: dict[str, Any]) -> "StreamInfo":
        return cls(
            index=int(data.get("index", 0)),
            codec_type=data.get("codec_type"),
            codec_name=data.get("codec_name"),
            width=_to_int(data.get("width")),
            height=_to_int(data.get("height")),
            duration=_to_float(data.get("duration")),
            frame_rate=parse_frame_rate(data.get("r_frame_rate")),
            frame_count=_to_int(data.get("nb_frames")),
        )


@dataclass
class ProbeResult:
    """Container and stream metadata for one file."""

    streams: list[StreamInfo]
    duration: float | None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def video_stream(self) -> StreamInfo | None:
        for stream in self.streams:
            if stream.codec_type == "video":
                return stream
        return None

    @property
    def audio_stream(self) -> StreamInfo | None:
        for stream in self.streams:
            if stream.codec_type == "audio":
                return stream
        return None

    def is_portrait(self) -> bool:
        """True when the video stream is taller than it is wide."""
        stream = self.video_stream
        if stream is None:
            raise ToolError("No video stream found", tool="ffprobe")
        if not stream.width or not stream.height:
            raise ToolError("Video dimensions not found", tool="ffprobe")
        return stream.height > stream.width

    def frame_info(self) -> tuple[int, Fraction]:
        """Total frame count and frame rate of the video stream.

        Uses the exact ``nb_frames`` when ffprobe reports one, otherwise
        estimates ``floor(duration * fps)``.
        """
        stream = self.video_stream
        if stream is None:
            raise ToolError("No video stream found", tool="ffprobe")
        if stream.frame_rate is None:
            raise ToolError("Could not determine video frame rate", tool="ffprobe")
        if stream.frame_count:
            return stream.frame_count, stream.frame_rate
        if stream.duration:
            return math.floor(stream.duration * stream.frame_rate), stream.frame_rate
        raise ToolError("Could not determine video frame count or duration", tool="ffprobe")


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


class ProbeClient:
    """Runs ffprobe and parses its JSON output."""

    def __init__(self, config: MediaSpoolConfig):
        self.config = config
        self.ffprobe_binary = config.ffprobe_binary

    def build_command(self, path: Path) -> list[str]:
        return [
            self.ffprobe_binary,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]

    def probe(self, path: Path) -> ProbeResult:
        """Probe ``path``; raises ToolError if ffprobe fails."""
        try:
            result = subprocess.run(
                self.build_command(path),
                check=False,
                capture_output=True,
                text=True,
                timeout=self.config.ffprobe_timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolError(
                f"ffprobe timed out after {self.config.ffprobe_timeout}s",
                tool="ffprobe",
                original_error=e,
            ) from e
        except OSError as e:
            raise ToolError(f"Could not run ffprobe: {e}", tool="ffprobe", original_error=e) from e

        if result.returncode != 0:
            raise ToolError(
                f"ffprobe failed for {path.name}",
                tool="ffprobe",
                exit_code=result.returncode,
                stderr=result.stderr.strip() or None,
            )

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ToolError("ffprobe returned invalid JSON", tool="ffprobe", original_error=e) from e

        streams = [StreamInfo.from_ffprobe(s) for s in data.get("streams", [])]
        duration = _to_float(data.get("format", {}).get("duration"))
        logger.debug("Probed %s: %s streams, %ss", path.name, len(streams), duration)
        return ProbeResult(streams=streams, duration=duration, raw=data)

    def is_valid_video(self, path: Path) -> bool:
        """True if ffprobe can read the file and finds a video stream."""
        try:
            return self.probe(path).video_stream is not None
        except ToolError as e:
            logger.info("Probe rejected %s: %s", path, e.message)
            return False
