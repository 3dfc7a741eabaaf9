"""Evenly spaced screenshot sampling."""

import logging
from concurrent.futures import ThreadPoolExecutor
from fractions import Fraction
from pathlib import Path

from mediaspool.config import MediaSpoolConfig
from mediaspool.error_handling import ToolError
from mediaspool.media.ffmpeg import MediaEngine
from mediaspool.media.probe import ProbeClient, ProbeResult

logger = logging.getLogger(__name__)


def plan_frames(total_frames: int, requested: int) -> list[int]:
    """Frame numbers to capture for ``requested`` screenshots.

    The count is clamped to ``[1, total_frames]`` and frames are spaced
    ``max(1, total_frames // count)`` apart, never past the last frame.
    """
    if total_frames < 1:
        raise ToolError("Video has no frames", tool="ffprobe")
    count = max(1, min(requested, total_frames))
    interval = max(1, total_frames // count)
    return [min(i * interval, total_frames - 1) for i in range(count)]


class ScreenshotSampler:
    """Extracts WebP stills from a video in parallel."""

    def __init__(
        self,
        config: MediaSpoolConfig,
        probe_client: ProbeClient,
        media_engine: MediaEngine,
    ):
        self.config = config
        self.probe_client = probe_client
        self.media_engine = media_engine

    def generate(
        self,
        source: Path,
        output_dir: Path,
        count: int,
        probe: ProbeResult | None = None,
    ) -> list[Path]:
        """Write ``screenshot_<i>.webp`` files; all succeed or the batch fails."""
        probe = probe or self.probe_client.probe(source)
        total_frames, fps = probe.frame_info()
        frames = plan_frames(total_frames, count)
        logger.info(
            "Capturing %s screenshots from %s (%s frames @ %s fps)",
            len(frames), source.name, total_frames, float(fps),
        )

        output_dir.mkdir(parents=True, exist_ok=True)
        workers = min(self.config.screenshot_workers, len(frames))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._capture, source, output_dir / f"screenshot_{i}.webp", i, frame, fps)
                for i, frame in enumerate(frames)
            ]
            # result() re-raises the first failure in index order
            return [future.result() for future in futures]

    def _capture(
        self,
        source: Path,
        output: Path,
        index: int,
        frame: int,
        fps: Fraction,
    ) -> Path:
        result = self.media_engine.run(
            self.media_engine.build_screenshot_args(source, output, float(frame / fps)),
            f"screenshot {index}",
        )
        if not result.success:
            raise ToolError(
                f"Error generating screenshot {index}",
                tool="ffmpeg",
                exit_code=result.returncode,
                stderr=result.error_message,
            )
        return output
