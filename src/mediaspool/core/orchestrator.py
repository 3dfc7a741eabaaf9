"""Service wiring: stores, pipeline components and their triggers."""

import asyncio
import logging

from mediaspool.components.spooler import DownloadSpooler
from mediaspool.components.transcoder import TranscodeOrchestrator
from mediaspool.config import MediaSpoolConfig
from mediaspool.core.trigger import RecurringTrigger, SleepFunc
from mediaspool.download.client import DownloadClient
from mediaspool.media.ffmpeg import MediaEngine
from mediaspool.media.probe import ProbeClient
from mediaspool.services.notify import NotificationService
from mediaspool.storage import (
    Database,
    DownloadStore,
    SettingsStore,
    SubscriptionStore,
    VideoStore,
)

logger = logging.getLogger(__name__)


class MediaSpoolOrchestrator:
    """Owns the pipeline and the two periodic triggers that drive it."""

    def __init__(
        self,
        config: MediaSpoolConfig,
        *,
        sleep: SleepFunc = asyncio.sleep,
        download_client: DownloadClient | None = None,
        probe_client: ProbeClient | None = None,
        media_engine: MediaEngine | None = None,
    ):
        self.config = config

        self.database = Database(config.database_path)
        self.downloads = DownloadStore(self.database)
        self.videos = VideoStore(self.database)
        self.settings = SettingsStore(self.database)
        self.subscriptions = SubscriptionStore(self.database)
        self.notifier = NotificationService(config, self.subscriptions)

        self.spooler = DownloadSpooler(config, self.downloads, self.videos, download_client)
        self.transcoder = TranscodeOrchestrator(
            config,
            self.videos,
            self.settings,
            self.notifier,
            probe_client=probe_client,
            media_engine=media_engine,
        )

        self.download_trigger = RecurringTrigger(
            "download",
            config.download_poll_interval,
            self.spooler.pickup_download,
            sleep=sleep,
        )
        self.transcode_trigger = RecurringTrigger(
            "transcode",
            config.transcode_poll_interval,
            self.transcoder.pickup_transcode,
            sleep=sleep,
        )
        self.is_running = False

    @property
    def triggers(self) -> list[RecurringTrigger]:
        return [self.download_trigger, self.transcode_trigger]

    def start(self) -> None:
        """Start both triggers on the running event loop."""
        if self.is_running:
            logger.warning("Orchestrator is already running")
            return

        logger.info("Starting MediaSpool orchestrator")
        self.config.ensure_directories()
        self.is_running = True

        self.downloads.fail_interrupted()
        self.videos.fail_interrupted()

        for trigger in self.triggers:
            trigger.start()

        logger.info("Orchestrator started - watching for downloads and videos")

    def stop(self) -> None:
        if not self.is_running:
            return

        logger.info("Stopping orchestrator")
        self.is_running = False
        for trigger in self.triggers:
            trigger.stop()
        logger.info("Orchestrator stopped")

    async def run(self) -> None:
        """Start and block until ``stop`` is called."""
        self.start()
        tasks = [trigger.task for trigger in self.triggers if trigger.task]
        await asyncio.gather(*tasks, return_exceptions=True)
        for trigger in self.triggers:
            await trigger.wait_pending()

    def get_status(self) -> dict:
        download_stats = self.downloads.get_stats()
        video_stats = self.videos.get_stats()
        return {
            "running": self.is_running,
            "download_stats": download_stats,
            "video_stats": video_stats,
            "total_downloads": sum(download_stats.values()),
            "total_videos": sum(video_stats.values()),
        }
