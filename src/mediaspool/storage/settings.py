"""Singleton transcode settings."""

import logging

from mediaspool.config import TranscodeSettings

from .database import Database, datetime_to_str, utcnow

logger = logging.getLogger(__name__)


class SettingsStore:
    """Reads and writes the single settings row."""

    def __init__(self, database: Database):
        self.database = database

    def load(self) -> TranscodeSettings:
        """Return a frozen snapshot; defaults when nothing has been saved."""
        with self.database.connect() as conn:
            row = conn.execute("SELECT data_json FROM settings WHERE id = 1").fetchone()
        if not row:
            return TranscodeSettings()
        return TranscodeSettings.model_validate_json(row["data_json"])

    def save(self, settings: TranscodeSettings) -> None:
        with self.database.connect() as conn:
            conn.execute(
                """
                INSERT INTO settings (id, data_json, updated_at) VALUES (1, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data_json = excluded.data_json, updated_at = excluded.updated_at
                """,
                (settings.model_dump_json(), datetime_to_str(utcnow())),
            )
        logger.info("Saved transcode settings")
