"""Preview clip composed from evenly spaced segments."""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from mediaspool.config import MediaSpoolConfig
from mediaspool.error_handling import ToolError, ValidationError
from mediaspool.media.ffmpeg import MediaEngine
from mediaspool.media.probe import ProbeClient

logger = logging.getLogger(__name__)


def plan_segment_starts(
    duration: float,
    segment_duration: float,
    segment_count: int,
) -> list[float]:
    """Start offsets spreading ``segment_count`` clips across the video."""
    required = segment_duration * segment_count
    if duration < required:
        raise ValidationError(
            f"Cannot generate video preview, video is shorter than {required:g} seconds",
        )
    interval = (duration - segment_duration) / (segment_count - 1)
    return [i * interval for i in range(segment_count)]


class PreviewComposer:
    """Cuts, letterboxes and joins preview segments into ``preview.mp4``."""

    def __init__(
        self,
        config: MediaSpoolConfig,
        probe_client: ProbeClient,
        media_engine: MediaEngine,
    ):
        self.config = config
        self.probe_client = probe_client
        self.media_engine = media_engine
        self.segment_duration = config.preview_segment_duration
        self.segment_count = config.preview_segment_count

    def generate(
        self,
        source: Path,
        output_dir: Path,
        width: int,
        height: int,
        duration: float | None = None,
    ) -> Path:
        if duration is None:
            duration = self.probe_client.probe(source).duration
        if not duration:
            raise ToolError("Could not determine video duration", tool="ffprobe")

        starts = plan_segment_starts(duration, self.segment_duration, self.segment_count)
        segments = [output_dir / f"preview_segment_{i}.mp4" for i in range(len(starts))]
        list_file = output_dir / "filelist.txt"
        preview = output_dir / "preview.mp4"

        try:
            with ThreadPoolExecutor(max_workers=len(segments)) as pool:
                futures = [
                    pool.submit(self._cut_segment, source, segment, start, width, height)
                    for segment, start in zip(segments, starts)
                ]
                for future in futures:
                    future.result()

            list_file.write_text(
                "\n".join(f"file '{segment.resolve()}'" for segment in segments),
            )
            result = self.media_engine.run(
                self.media_engine.build_concat_args(list_file, preview),
                "preview concat",
            )
            if not result.success:
                raise ToolError(
                    "Failed to join preview segments",
                    tool="ffmpeg",
                    exit_code=result.returncode,
                    stderr=result.error_message,
                )
        finally:
            for leftover in [*segments, list_file]:
                leftover.unlink(missing_ok=True)

        logger.info("Preview written: %s", preview)
        return preview

    def _cut_segment(
        self,
        source: Path,
        output: Path,
        start: float,
        width: int,
        height: int,
    ) -> Path:
        result = self.media_engine.run(
            self.media_engine.build_preview_segment_args(
                source, output, start, self.segment_duration, width, height,
            ),
            f"preview segment at {start:.2f}s",
        )
        if not result.success:
            raise ToolError(
                f"Failed to cut preview segment at {start:.2f}s",
                tool="ffmpeg",
                exit_code=result.returncode,
                stderr=result.error_message,
            )
        return output
