"""yt-dlp download client."""

import logging
from pathlib import Path

from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError, ExtractorError

logger = logging.getLogger(__name__)


class DownloadResult:
    """Result of fetching one URL."""

    def __init__(
        self,
        success: bool,
        url: str,
        output_file: Path,
        error_message: str | None = None,
    ):
        self.success = success
        self.url = url
        self.output_file = output_file
        self.error_message = error_message

    def __str__(self) -> str:
        if self.success:
            return f"Downloaded {self.url} -> {self.output_file.name}"
        return f"Failed to download {self.url}: {self.error_message}"


class DownloadClient:
    """Fetches remote media into a fixed local path."""

    def build_options(self, destination: Path, container: str) -> dict:
        return {
            "outtmpl": str(destination),
            "format": f"b[ext={container}]/bv*+ba/b",
            "merge_output_format": container,
            "noplaylist": True,
            "quiet": True,
            "no_warnings": True,
            "noprogress": True,
        }

    def download(self, url: str, destination: Path, container: str = "mp4") -> DownloadResult:
        """Download ``url`` to ``destination``. Never raises for fetch errors."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading %s -> %s", url, destination)

        try:
            with YoutubeDL(self.build_options(destination, container)) as ydl:
                retcode = ydl.download([url])
        except (DownloadError, ExtractorError) as e:
            return DownloadResult(False, url, destination, error_message=str(e))
        except OSError as e:
            logger.exception("Filesystem error while downloading %s", url)
            return DownloadResult(False, url, destination, error_message=str(e))

        if retcode:
            return DownloadResult(
                False, url, destination, error_message=f"yt-dlp exited with {retcode}",
            )
        return DownloadResult(True, url, destination)
