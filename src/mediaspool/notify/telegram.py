"""Telegram Bot API notification integration."""

import json
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

import httpx

from mediaspool.config import MediaSpoolConfig

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    """One item of a media group."""

    kind: str  # "video" or "photo"
    path: Path
    caption: str | None = None
    duration: int | None = None
    width: int | None = None
    height: int | None = None

    def to_media(self, attach_name: str) -> dict:
        media: dict = {"type": self.kind, "media": f"attach://{attach_name}"}
        if self.caption:
            media["caption"] = self.caption
        if self.kind == "video":
            media["supports_streaming"] = True
            for key in ("duration", "width", "height"):
                value = getattr(self, key)
                if value is not None:
                    media[key] = value
        return media


class TelegramNotifier:
    """Sends media groups through a Telegram bot."""

    def __init__(self, config: MediaSpoolConfig):
        self.config = config
        self.token = config.telegram_bot_token
        self.client = httpx.Client(
            timeout=config.notify_request_timeout,
            headers={"User-Agent": "MediaSpool/0.1.0"},
        )

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def send_media_group(
        self,
        chat_id: str,
        attachments: list[Attachment],
        reply_to_message_id: int | None = None,
    ) -> bool:
        """Upload ``attachments`` in order as a single album."""
        if not self.token:
            logger.debug("No Telegram bot token configured, skipping notification")
            return False
        if not attachments:
            return False

        url = f"{self.config.telegram_api_url}/bot{self.token}/sendMediaGroup"
        data = {
            "chat_id": chat_id,
            "media": json.dumps(
                [a.to_media(f"file{i}") for i, a in enumerate(attachments)],
            ),
        }
        if reply_to_message_id is not None:
            data["reply_to_message_id"] = str(reply_to_message_id)

        try:
            with ExitStack() as stack:
                files = {
                    f"file{i}": (a.path.name, stack.enter_context(open(a.path, "rb")))
                    for i, a in enumerate(attachments)
                }
                response = self.client.post(url, data=data, files=files)

            response.raise_for_status()
            logger.debug("Sent %s attachments to chat %s", len(attachments), chat_id)
            return True

        except OSError as e:
            logger.error("Cannot read attachment for chat %s: %s", chat_id, e)
            return False
        except httpx.RequestError as e:
            logger.exception(f"Failed to send notification: {e}")
            return False
        except httpx.HTTPStatusError as e:
            logger.exception(
                f"Notification service error {e.response.status_code}: {e.response.text}",
            )
            return False

    def close(self) -> None:
        self.client.close()
