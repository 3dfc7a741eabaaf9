"""Chats waiting to hear about a finished video."""

import logging
from dataclasses import dataclass

from .database import Database, datetime_to_str, utcnow

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    video_id: int
    chat_id: str
    message_id: int | None = None


class SubscriptionStore:
    """Persists notification subscriptions."""

    def __init__(self, database: Database):
        self.database = database

    def subscribe(
        self,
        video_id: int,
        chat_id: str,
        message_id: int | None = None,
    ) -> Subscription:
        subscription = Subscription(video_id, str(chat_id), message_id)
        with self.database.connect() as conn:
            conn.execute(
                """
                INSERT INTO subscriptions (video_id, chat_id, message_id, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (video_id, subscription.chat_id, message_id, datetime_to_str(utcnow())),
            )
        logger.info("Chat %s subscribed to video %s", chat_id, video_id)
        return subscription

    def latest_for_video(self, video_id: int) -> Subscription | None:
        """Most recent subscription wins."""
        with self.database.connect() as conn:
            row = conn.execute(
                """
                SELECT video_id, chat_id, message_id FROM subscriptions
                WHERE video_id = ? ORDER BY created_at DESC, id DESC LIMIT 1
                """,
                (video_id,),
            ).fetchone()
        if not row:
            return None
        return Subscription(row["video_id"], row["chat_id"], row["message_id"])
