"""Transcode pipeline for one video at a time."""

import logging
from collections.abc import Callable
from pathlib import Path

from ..config import MediaSpoolConfig, TranscodeSettings
from ..derivatives.hls import EncryptedSegmenter
from ..derivatives.mosaic import MosaicComposer
from ..derivatives.poster import PosterGenerator
from ..derivatives.preview import PreviewComposer
from ..derivatives.screenshots import ScreenshotSampler
from ..error_handling import FilesystemError, PartialDerivativeError, ToolError
from ..media.ffmpeg import MediaEngine
from ..media.images import ImageEngine
from ..media.probe import ProbeClient, ProbeResult
from ..services.notify import NotificationService
from ..storage.settings import SettingsStore
from ..storage.videos import VideoJob, VideoStatus, VideoStore

logger = logging.getLogger(__name__)

INVALID_VIDEO_MESSAGE = "Not a valid video"


class TranscodeOrchestrator:
    """Drives a waiting video through validation, derivatives and encoding."""

    def __init__(
        self,
        config: MediaSpoolConfig,
        videos: VideoStore,
        settings_store: SettingsStore,
        notifier: NotificationService | None = None,
        *,
        probe_client: ProbeClient | None = None,
        media_engine: MediaEngine | None = None,
        image_engine: ImageEngine | None = None,
    ):
        self.config = config
        self.videos = videos
        self.settings_store = settings_store
        self.notifier = notifier

        self.probe_client = probe_client or ProbeClient(config)
        self.media_engine = media_engine or MediaEngine(config)
        self.image_engine = image_engine or ImageEngine()

        self.screenshots = ScreenshotSampler(config, self.probe_client, self.media_engine)
        self.posters = PosterGenerator(self.image_engine)
        self.mosaics = MosaicComposer(self.image_engine)
        self.previews = PreviewComposer(config, self.probe_client, self.media_engine)
        self.segmenter = EncryptedSegmenter(config, self.media_engine)

    def pickup_transcode(self) -> VideoJob | None:
        """Claim the oldest eligible waiting video and run it to completion."""
        try:
            settings = self.settings_store.load()
            job = self.videos.claim_next_waiting()
        except Exception:
            logger.exception("Could not claim a waiting video")
            return None
        if not job:
            return None

        self.transcode(job, settings)
        return job

    def transcode(self, job: VideoJob, settings: TranscodeSettings) -> None:
        """Run the full pipeline; any unexpected failure marks the job as error."""
        logger.info("Starting transcode for: %s", job)
        try:
            self._run_pipeline(job, settings)
        except Exception as e:
            logger.exception("Error transcoding %s", job)
            if job.status == VideoStatus.TRANSCODING:
                self.videos.transition(job, VideoStatus.ERROR, error_message=str(e))

    def _run_pipeline(self, job: VideoJob, settings: TranscodeSettings) -> None:
        source = job.original_path
        probe = self._validate(source)
        if probe is None:
            self.videos.transition(job, VideoStatus.ERROR, error_message=INVALID_VIDEO_MESSAGE)
            logger.warning("Rejected %s: %s", job, INVALID_VIDEO_MESSAGE)
            return

        portrait = self._detect_orientation(probe)
        self._capture_metadata(job, probe)

        output_dir = self.config.output_dir / str(job.job_id)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Cannot create output directory {output_dir}: {e}", original_error=e,
            ) from e
        job.transcoded_path = output_dir
        self.videos.update_item(job)

        self._generate_stills(job, source, output_dir, settings, probe)

        if settings.generate_preview_video:
            self._isolated("preview", lambda: self._generate_preview(job, source, output_dir, settings))

        output_file = output_dir / "output.mp4"
        result = self.media_engine.run(
            self.media_engine.build_transcode_args(source, output_file, settings, portrait=portrait),
            f"transcode {job.job_id}",
        )
        if not result.success:
            self.videos.transition(job, VideoStatus.ERROR, error_message=result.error_message)
            logger.error("Transcode failed for %s, source kept at %s", job, source)
            return

        self._complete(job, source, output_file, settings)

    def _validate(self, source: Path | None) -> ProbeResult | None:
        """Probe the source; None when there is nothing decodable."""
        if source is None or not source.exists():
            return None
        try:
            probe = self.probe_client.probe(source)
        except ToolError as e:
            logger.info("Probe failed for %s: %s", source, e.message)
            return None
        return probe if probe.video_stream else None

    def _detect_orientation(self, probe: ProbeResult) -> bool:
        try:
            return probe.is_portrait()
        except ToolError as e:
            logger.warning("Cannot determine orientation, assuming landscape: %s", e.message)
            return False

    def _capture_metadata(self, job: VideoJob, probe: ProbeResult) -> None:
        try:
            stream = probe.video_stream
            job.width = stream.width
            job.height = stream.height
            job.duration = probe.duration
            job.metadata = probe.raw
            self.videos.update_item(job)
        except Exception as e:
            logger.warning("Could not save metadata for %s: %s", job, e)

    def _generate_stills(
        self,
        job: VideoJob,
        source: Path,
        output_dir: Path,
        settings: TranscodeSettings,
        probe: ProbeResult,
    ) -> None:
        def screenshots_and_poster() -> None:
            screenshots = self.screenshots.generate(
                source, output_dir, settings.screenshot_count, probe=probe,
            )
            poster = self.posters.generate(
                screenshots[0], settings.poster_size, output_dir / "poster.webp",
            )
            job.screenshots = screenshots
            job.poster = poster
            self.videos.update_item(job)
            logger.info("Screenshots and poster created for %s", job)

        if not self._isolated("screenshots", screenshots_and_poster):
            return

        if settings.generate_thumbnail_mosaic:
            def mosaic() -> None:
                thumbnail = self.mosaics.compose(job.screenshots, output_dir / "thumbnail.webp")
                if thumbnail:
                    job.thumbnail = thumbnail
                    self.videos.update_item(job)

            self._isolated("mosaic", mosaic)

    def _generate_preview(
        self,
        job: VideoJob,
        source: Path,
        output_dir: Path,
        settings: TranscodeSettings,
    ) -> None:
        size = settings.preview_video_size
        job.preview_video = self.previews.generate(
            source, output_dir, size.width, size.height, duration=job.duration,
        )
        self.videos.update_item(job)

    def _complete(
        self,
        job: VideoJob,
        source: Path,
        output_file: Path,
        settings: TranscodeSettings,
    ) -> None:
        job.after_path = output_file
        job.after_size = output_file.stat().st_size
        self.videos.update_item(job)
        self.videos.transition(job, VideoStatus.FINISHED)
        logger.info("Transcode finished: %s (%s bytes)", job, job.after_size)

        if settings.generate_m3u8_segments:
            def segment() -> None:
                job.m3u8_path = self.segmenter.segment(output_file, output_file.parent / "hls")
                self.videos.update_item(job)

            self._isolated("hls", segment)

        self._remove_source(job, source)

        if self.notifier:
            self.notifier.notify_video_finished(job)

    def _remove_source(self, job: VideoJob, source: Path) -> None:
        """Delete the downloaded file and its sidecar, then drop the reference."""
        for path in (source, source.with_name(source.name + ".json")):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Failed to delete %s: %s", path, e)
                return
        job.original_path = None
        self.videos.update_item(job)

    def _isolated(self, name: str, step: Callable[[], None]) -> bool:
        """Run a derivative step whose failure must not fail the job."""
        try:
            step()
            return True
        except Exception as e:
            error = PartialDerivativeError(name, str(e), original_error=e)
            logger.log(error.log_level, "%s", error.message, exc_info=e)
            return False
