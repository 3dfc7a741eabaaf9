"""ffmpeg command building and execution."""

import logging
import subprocess
from pathlib import Path

from mediaspool.config import MediaSpoolConfig, Resolution, TranscodeSettings, WatermarkPosition

logger = logging.getLogger(__name__)

WATERMARK_BASE_WIDTH = 100  # px at 1080p
WATERMARK_INSET = 10

WATERMARK_OVERLAYS = {
    WatermarkPosition.TOP_LEFT: f"{WATERMARK_INSET}:{WATERMARK_INSET}",
    WatermarkPosition.TOP_RIGHT: f"main_w-overlay_w-{WATERMARK_INSET}:{WATERMARK_INSET}",
    WatermarkPosition.BOTTOM_LEFT: f"{WATERMARK_INSET}:main_h-overlay_h-{WATERMARK_INSET}",
    WatermarkPosition.BOTTOM_RIGHT: (
        f"main_w-overlay_w-{WATERMARK_INSET}:main_h-overlay_h-{WATERMARK_INSET}"
    ),
}

STDERR_TAIL_LINES = 20


class ToolResult:
    """Outcome of one ffmpeg invocation."""

    def __init__(
        self,
        success: bool,
        description: str,
        error_message: str | None = None,
        returncode: int | None = None,
    ):
        self.success = success
        self.description = description
        self.error_message = error_message
        self.returncode = returncode

    def __str__(self) -> str:
        if self.success:
            return f"{self.description}: ok"
        return f"{self.description} failed: {self.error_message}"


def watermark_scale(resolution: Resolution) -> float:
    """Watermark scale relative to a 1080p baseline."""
    if resolution == Resolution.FULL_HD:
        return 1
    return resolution.width / Resolution.FULL_HD.width


def scale_expression(resolution: Resolution, *, portrait: bool) -> str:
    """Fit the long edge to the preset width, keeping the aspect ratio."""
    if portrait:
        return f"-2:{resolution.width}"
    return f"{resolution.width}:-2"


class MediaEngine:
    """Runs ffmpeg and reports a structured result instead of raising."""

    def __init__(self, config: MediaSpoolConfig):
        self.config = config
        self.ffmpeg_binary = config.ffmpeg_binary

    def run(self, args: list[str], description: str) -> ToolResult:
        """Run ffmpeg with ``args`` (without the binary itself)."""
        cmd = [self.ffmpeg_binary, "-hide_banner", "-y", *args]
        logger.debug("Running: %s", " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.config.ffmpeg_timeout,
            )
        except subprocess.TimeoutExpired:
            msg = f"ffmpeg timed out after {self.config.ffmpeg_timeout}s"
            logger.error("%s: %s", description, msg)
            return ToolResult(False, description, error_message=msg)
        except OSError as e:
            logger.exception("Could not run ffmpeg for %s", description)
            return ToolResult(False, description, error_message=f"Could not run ffmpeg: {e}")

        if result.returncode != 0:
            stderr_lines = (result.stderr or "").strip().splitlines()
            error_msg = "\n".join(stderr_lines[-STDERR_TAIL_LINES:]) or "Unknown error"
            logger.error("%s failed (exit %s): %s", description, result.returncode, error_msg)
            return ToolResult(
                False,
                description,
                error_message=error_msg,
                returncode=result.returncode,
            )

        return ToolResult(True, description, returncode=0)

    def build_transcode_args(
        self,
        input_file: Path,
        output_file: Path,
        settings: TranscodeSettings,
        *,
        portrait: bool,
    ) -> list[str]:
        """Primary rendition: H.264/AAC with optional watermark overlay."""
        size = scale_expression(settings.resolution, portrait=portrait)
        args = ["-i", str(input_file)]

        if settings.watermark_image:
            wm_width = round(WATERMARK_BASE_WIDTH * watermark_scale(settings.resolution))
            overlay = WATERMARK_OVERLAYS[settings.watermark_position]
            args += [
                "-i",
                str(settings.watermark_image),
                "-filter_complex",
                f"[0:v]scale={size}[scaled];"
                f"[1:v]scale={wm_width}:-1[wm];"
                f"[scaled][wm]overlay={overlay}[out]",
                "-map",
                "[out]",
                "-map",
                "0:a?",
            ]
        else:
            args += ["-vf", f"scale={size}"]

        args += [
            "-c:v",
            "libx264",
            "-b:v",
            f"{settings.bitrate}k",
            "-r",
            f"{settings.frame_rate:g}",
            "-c:a",
            "aac",
            "-ac",
            "2",
            "-b:a",
            "128k",
            str(output_file),
        ]
        return args

    def build_screenshot_args(
        self,
        input_file: Path,
        output_file: Path,
        seek_seconds: float,
    ) -> list[str]:
        """Extract a single WebP frame at ``seek_seconds``."""
        return [
            "-ss",
            f"{seek_seconds:.3f}",
            "-i",
            str(input_file),
            "-frames:v",
            "1",
            "-c:v",
            "libwebp",
            "-quality",
            "80",
            "-preset",
            "picture",
            "-compression_level",
            "6",
            str(output_file),
        ]

    def build_preview_segment_args(
        self,
        input_file: Path,
        output_file: Path,
        start: float,
        duration: float,
        width: int,
        height: int,
    ) -> list[str]:
        """Re-encode one preview clip, letterboxed to exactly ``width``x``height``."""
        scale_w = -2 if width == 0 else width
        scale_h = -2 if height == 0 else height
        return [
            "-ss",
            f"{start:.3f}",
            "-i",
            str(input_file),
            "-t",
            f"{duration:g}",
            "-c:v",
            "libx264",
            "-c:a",
            "aac",
            "-movflags",
            "faststart",
            "-vf",
            f"scale={scale_w}:{scale_h}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:-1:-1:color=black",
            str(output_file),
        ]

    def build_concat_args(self, list_file: Path, output_file: Path) -> list[str]:
        """Join clips listed in ``list_file`` without re-encoding."""
        return [
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(list_file),
            "-c",
            "copy",
            str(output_file),
        ]

    def build_hls_args(
        self,
        input_file: Path,
        hls_dir: Path,
        key_info_file: Path,
        segment_time: int,
    ) -> list[str]:
        """Remux into encrypted MPEG-TS segments and a VOD playlist."""
        return [
            "-i",
            str(input_file),
            "-map",
            "0:v:0",
            "-map",
            "0:a:0?",
            "-c",
            "copy",
            "-bsf:v",
            "h264_mp4toannexb",
            "-hls_time",
            str(segment_time),
            "-hls_segment_filename",
            str(hls_dir / "media_%d.ts"),
            "-start_number",
            "0",
            "-hls_list_size",
            "0",
            "-hls_key_info_file",
            str(key_info_file),
            "-f",
            "hls",
            str(hls_dir / "output.m3u8"),
        ]
