"""Finished-video notifications."""

import logging

from mediaspool.config import MediaSpoolConfig
from mediaspool.notify.telegram import Attachment, TelegramNotifier
from mediaspool.storage.subscriptions import SubscriptionStore
from mediaspool.storage.videos import VideoJob

logger = logging.getLogger(__name__)


def build_attachments(video: VideoJob) -> list[Attachment]:
    """Primary rendition, then the preview, then the mosaic (or poster)."""
    attachments = []
    if video.after_path:
        attachments.append(
            Attachment(
                kind="video",
                path=video.after_path,
                caption="Your video has been transcoded.",
                duration=round(video.duration) if video.duration else None,
                width=video.width,
                height=video.height,
            ),
        )
    if video.preview_video:
        attachments.append(
            Attachment(
                kind="video",
                path=video.preview_video,
                caption="A preview of your video has been generated!",
            ),
        )
    if video.thumbnail:
        attachments.append(
            Attachment(
                kind="photo",
                path=video.thumbnail,
                caption="A thumbnail of your video has been generated!",
            ),
        )
    elif video.poster:
        attachments.append(
            Attachment(kind="photo", path=video.poster, caption="Poster"),
        )
    return attachments


class NotificationService:
    """Tells the latest subscriber of a video that it is ready."""

    def __init__(self, config: MediaSpoolConfig, subscriptions: SubscriptionStore):
        self.config = config
        self.subscriptions = subscriptions
        self.notifier = TelegramNotifier(config)

    def notify_video_finished(self, video: VideoJob) -> bool:
        """Fire-and-forget; failures are logged, never raised."""
        try:
            subscription = self.subscriptions.latest_for_video(video.job_id)
            if not subscription:
                return False
            if not self.notifier.enabled:
                logger.info("Video %s has a subscriber but no bot token is configured", video.job_id)
                return False

            return self.notifier.send_media_group(
                subscription.chat_id,
                build_attachments(video),
                reply_to_message_id=subscription.message_id,
            )
        except Exception as e:
            logger.warning(f"Failed to send completion notification: {e}")
            return False

    def test_notifications(self, chat_id: str) -> bool:
        """Send a plain message to check the bot token and chat id."""
        if not self.notifier.enabled:
            return False
        try:
            response = self.notifier.client.post(
                f"{self.config.telegram_api_url}/bot{self.notifier.token}/sendMessage",
                data={"chat_id": chat_id, "text": "🧪 MediaSpool notification test"},
            )
            response.raise_for_status()
            return True
        except Exception as e:
            logger.exception(f"Notification test failed: {e}")
            return False
