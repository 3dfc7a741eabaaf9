"""Download spooling."""

import logging

from ..config import MediaSpoolConfig
from ..download.client import DownloadClient
from ..storage.downloads import DownloadJob, DownloadStatus, DownloadStore
from ..storage.videos import VideoJob, VideoStore

logger = logging.getLogger(__name__)

CONTAINER = "mp4"


class DownloadSpooler:
    """Moves pending downloads through the download client, one per pickup."""

    def __init__(
        self,
        config: MediaSpoolConfig,
        downloads: DownloadStore,
        videos: VideoStore,
        client: DownloadClient | None = None,
    ):
        self.config = config
        self.downloads = downloads
        self.videos = videos
        self.client = client or DownloadClient()

    def pickup_download(self) -> VideoJob | None:
        """Claim and fetch at most one pending download.

        Returns the new waiting video on success. Failures are recorded on the
        download and never raised.
        """
        try:
            job = self.downloads.claim_next_pending(self.config.max_concurrent_downloads)
        except Exception:
            logger.exception("Could not claim a pending download")
            return None
        if not job:
            return None

        return self._run(job)

    def _run(self, job: DownloadJob) -> VideoJob | None:
        output_path = job.output_path(self.config.download_dir)
        video = None
        try:
            result = self.client.download(job.url, output_path, CONTAINER)
            if not result.success:
                raise RuntimeError(result.error_message or "Download failed")

            if not output_path.exists():
                raise RuntimeError("File not found after download")
            size = output_path.stat().st_size
            if size == 0:
                raise RuntimeError("Downloaded file is empty")

            # the video must exist before the download can be completed
            video = self.videos.create_waiting(
                output_path,
                size,
                title=job.title,
                download_id=job.job_id,
            )
            self.downloads.finish(job, DownloadStatus.COMPLETED)
            logger.info("Download completed: %s", job.title)
            return video

        except Exception as e:
            logger.error("Download failed for %s: %s", job.title, e)
            try:
                self.downloads.finish(job, DownloadStatus.ERROR, error_message=str(e))
            except Exception:
                logger.exception("Could not record failure for download %s", job.job_id)
            if video is None:
                self._remove_partial(output_path)
            return video

    def _remove_partial(self, output_path) -> None:
        if not output_path.exists():
            return
        try:
            output_path.unlink()
            logger.info("Deleted incomplete file: %s", output_path)
        except OSError as unlink_error:
            logger.error("Failed to delete file %s: %s", output_path, unlink_error)
