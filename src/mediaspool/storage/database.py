"""SQLite database shared by the job, settings and subscription stores."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS downloads (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT NOT NULL,
        title TEXT NOT NULL,
        status TEXT NOT NULL,
        error_message TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_downloads_status ON downloads(status)",
    "CREATE INDEX IF NOT EXISTS idx_downloads_title ON downloads(title)",
    """
    CREATE TABLE IF NOT EXISTS videos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT,
        download_id INTEGER,
        status TEXT NOT NULL,
        not_transcoding INTEGER NOT NULL DEFAULT 0,
        original_path TEXT,
        original_size INTEGER,
        width INTEGER,
        height INTEGER,
        duration REAL,
        metadata_json TEXT,
        transcoded_path TEXT,
        after_path TEXT,
        after_size INTEGER,
        screenshots_json TEXT,
        poster TEXT,
        thumbnail TEXT,
        preview_video TEXT,
        m3u8_path TEXT,
        error_message TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_videos_status ON videos(status)",
    """
    CREATE TABLE IF NOT EXISTS settings (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        data_json TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        video_id INTEGER NOT NULL,
        chat_id TEXT NOT NULL,
        message_id INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_subscriptions_video ON subscriptions(video_id)",
]


INTERRUPTED_MESSAGE = "Interrupted by shutdown"


def utcnow() -> datetime:
    return datetime.now(UTC)


def datetime_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to string for SQLite storage."""
    if dt is None:
        return None
    return dt.isoformat()


class Database:
    """Owns the database file and hands out short-lived connections."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.debug("Database ready at %s", self.db_path)

    @contextmanager
    def connect(self, *, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Get a connection that commits on success and rolls back on error.

        With ``immediate`` the write lock is taken up front, so a
        read-then-write sequence inside the block is atomic across
        connections and processes.
        """
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
