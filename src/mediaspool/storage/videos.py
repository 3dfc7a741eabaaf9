"""Video job records and the transcode state machine."""

import json
import logging
import sqlite3
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .database import INTERRUPTED_MESSAGE, Database, datetime_to_str, utcnow

logger = logging.getLogger(__name__)


class VideoStatus(Enum):
    """Status of a video in the transcode pipeline."""

    WAITING = "waiting"
    TRANSCODING = "transcoding"
    FINISHED = "finished"
    ERROR = "error"


ALLOWED_TRANSITIONS = {
    VideoStatus.WAITING: {VideoStatus.TRANSCODING},
    VideoStatus.TRANSCODING: {VideoStatus.FINISHED, VideoStatus.ERROR},
    VideoStatus.FINISHED: set(),
    VideoStatus.ERROR: set(),
}


class InvalidTransitionError(Exception):
    """Raised when a status change is not part of the state machine."""


class VideoJob:
    """A downloaded file and the artifacts produced from it."""

    def __init__(
        self,
        job_id: int | None = None,
        title: str | None = None,
        download_id: int | None = None,
        status: VideoStatus = VideoStatus.WAITING,
        not_transcoding: bool = False,
        original_path: Path | None = None,
        original_size: int | None = None,
        width: int | None = None,
        height: int | None = None,
        duration: float | None = None,
        metadata: dict[str, Any] | None = None,
        transcoded_path: Path | None = None,
        after_path: Path | None = None,
        after_size: int | None = None,
        screenshots: list[Path] | None = None,
        poster: Path | None = None,
        thumbnail: Path | None = None,
        preview_video: Path | None = None,
        m3u8_path: Path | None = None,
        error_message: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.job_id = job_id
        self.title = title
        self.download_id = download_id
        self.status = status
        self.not_transcoding = not_transcoding
        self.original_path = original_path
        self.original_size = original_size
        self.width = width
        self.height = height
        self.duration = duration
        self.metadata = metadata
        self.transcoded_path = transcoded_path
        self.after_path = after_path
        self.after_size = after_size
        self.screenshots = screenshots or []
        self.poster = poster
        self.thumbnail = thumbnail
        self.preview_video = preview_video
        self.m3u8_path = m3u8_path
        self.error_message = error_message
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def __str__(self) -> str:
        name = self.title or (self.original_path.name if self.original_path else None)
        return f"{name or f'Video {self.job_id}'} ({self.status.value})"


def _path(value: str | None) -> Path | None:
    return Path(value) if value else None


def _str(value: Path | None) -> str | None:
    return str(value) if value else None


class VideoStore:
    """Persists video jobs and guards their status transitions."""

    def __init__(self, database: Database):
        self.database = database

    def create_waiting(
        self,
        original_path: Path,
        original_size: int,
        title: str | None = None,
        download_id: int | None = None,
    ) -> VideoJob:
        """Register a downloaded file as ``waiting``."""
        job = VideoJob(
            title=title,
            download_id=download_id,
            original_path=original_path,
            original_size=original_size,
        )
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO videos (title, download_id, status, original_path,
                    original_size, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.title,
                    job.download_id,
                    job.status.value,
                    str(original_path),
                    original_size,
                    datetime_to_str(job.created_at),
                    datetime_to_str(job.updated_at),
                ),
            )
            job.job_id = cursor.lastrowid

        logger.info("Added video: %s", job)
        return job

    def get(self, job_id: int) -> VideoJob | None:
        with self.database.connect() as conn:
            row = conn.execute("SELECT * FROM videos WHERE id = ?", (job_id,)).fetchone()
        return self._row_to_job(row) if row else None

    def claim_next_waiting(self) -> VideoJob | None:
        """Move the oldest unpaused ``waiting`` video to ``transcoding``."""
        with self.database.connect(immediate=True) as conn:
            row = conn.execute(
                """
                SELECT * FROM videos WHERE status = ? AND not_transcoding = 0
                ORDER BY created_at, id LIMIT 1
                """,
                (VideoStatus.WAITING.value,),
            ).fetchone()
            if not row:
                return None

            job = self._row_to_job(row)
            job.updated_at = utcnow()
            cursor = conn.execute(
                "UPDATE videos SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (
                    VideoStatus.TRANSCODING.value,
                    datetime_to_str(job.updated_at),
                    job.job_id,
                    VideoStatus.WAITING.value,
                ),
            )
            if cursor.rowcount == 0:
                return None
            job.status = VideoStatus.TRANSCODING

        logger.info("Claimed video: %s", job)
        return job

    def transition(
        self,
        job: VideoJob,
        new_status: VideoStatus,
        error_message: str | None = None,
    ) -> None:
        """Compare-and-set the status, rejecting moves outside the state machine."""
        if new_status not in ALLOWED_TRANSITIONS[job.status]:
            msg = f"Video {job.job_id}: {job.status.value} -> {new_status.value} not allowed"
            raise InvalidTransitionError(msg)

        updated_at = utcnow()
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE videos SET status = ?, error_message = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    new_status.value,
                    error_message,
                    datetime_to_str(updated_at),
                    job.job_id,
                    job.status.value,
                ),
            )
            if cursor.rowcount == 0:
                msg = f"Video {job.job_id} is no longer {job.status.value}"
                raise InvalidTransitionError(msg)

        job.status = new_status
        job.error_message = error_message
        job.updated_at = updated_at

    def update_item(self, job: VideoJob) -> None:
        """Write metadata and artifact fields.

        Status and the pause flag are left alone; they change only through
        ``transition`` and ``set_paused``.
        """
        job.updated_at = utcnow()
        with self.database.connect() as conn:
            conn.execute(
                """
                UPDATE videos
                SET title = ?, original_path = ?, original_size = ?, width = ?,
                    height = ?, duration = ?, metadata_json = ?, transcoded_path = ?,
                    after_path = ?, after_size = ?, screenshots_json = ?, poster = ?,
                    thumbnail = ?, preview_video = ?, m3u8_path = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    job.title,
                    _str(job.original_path),
                    job.original_size,
                    job.width,
                    job.height,
                    job.duration,
                    json.dumps(job.metadata) if job.metadata is not None else None,
                    _str(job.transcoded_path),
                    _str(job.after_path),
                    job.after_size,
                    json.dumps([str(p) for p in job.screenshots]) if job.screenshots else None,
                    _str(job.poster),
                    _str(job.thumbnail),
                    _str(job.preview_video),
                    _str(job.m3u8_path),
                    datetime_to_str(job.updated_at),
                    job.job_id,
                ),
            )

        logger.debug("Updated video: %s", job)

    def set_paused(self, job_id: int, paused: bool) -> bool:
        """Set the manual ``not_transcoding`` flag."""
        with self.database.connect() as conn:
            cursor = conn.execute(
                "UPDATE videos SET not_transcoding = ?, updated_at = ? WHERE id = ?",
                (int(paused), datetime_to_str(utcnow()), job_id),
            )
            return cursor.rowcount > 0

    def list_videos(self, status: VideoStatus | None = None) -> list[VideoJob]:
        with self.database.connect() as conn:
            if status:
                rows = conn.execute(
                    "SELECT * FROM videos WHERE status = ? ORDER BY created_at DESC",
                    (status.value,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM videos ORDER BY created_at DESC",
                ).fetchall()
        return [self._row_to_job(row) for row in rows]

    def fail_interrupted(self) -> int:
        """Mark videos left in ``transcoding`` by a crash as ``error``.

        Only called at startup. Jobs never move back to ``waiting``, so an
        interrupted transcode is not retried.
        """
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE videos SET status = ?, error_message = ?, updated_at = ?
                WHERE status = ?
                """,
                (
                    VideoStatus.ERROR.value,
                    INTERRUPTED_MESSAGE,
                    datetime_to_str(utcnow()),
                    VideoStatus.TRANSCODING.value,
                ),
            )
            count = cursor.rowcount
        if count > 0:
            logger.info("Marked %s interrupted transcodes as error", count)
        return count

    def get_stats(self) -> dict[str, int]:
        with self.database.connect() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) FROM videos GROUP BY status",
            ).fetchall()
        return {status: count for status, count in rows}

    def _row_to_job(self, row: sqlite3.Row) -> VideoJob:
        metadata = None
        if row["metadata_json"]:
            try:
                metadata = json.loads(row["metadata_json"])
            except json.JSONDecodeError as e:
                logger.warning("Failed to deserialize probe metadata: %s", e)

        screenshots = []
        if row["screenshots_json"]:
            screenshots = [Path(p) for p in json.loads(row["screenshots_json"])]

        return VideoJob(
            job_id=row["id"],
            title=row["title"],
            download_id=row["download_id"],
            status=VideoStatus(row["status"]),
            not_transcoding=bool(row["not_transcoding"]),
            original_path=_path(row["original_path"]),
            original_size=row["original_size"],
            width=row["width"],
            height=row["height"],
            duration=row["duration"],
            metadata=metadata,
            transcoded_path=_path(row["transcoded_path"]),
            after_path=_path(row["after_path"]),
            after_size=row["after_size"],
            screenshots=screenshots,
            poster=_path(row["poster"]),
            thumbnail=_path(row["thumbnail"]),
            preview_video=_path(row["preview_video"]),
            m3u8_path=_path(row["m3u8_path"]),
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
