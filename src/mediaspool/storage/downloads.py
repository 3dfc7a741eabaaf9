"""Download job records."""

import logging
import sqlite3
from datetime import datetime
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from mediaspool.error_handling import ValidationError

from .database import INTERRUPTED_MESSAGE, Database, datetime_to_str, utcnow

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {"id", "title", "url", "status", "created_at", "updated_at"}


class DownloadStatus(Enum):
    """Status of a download job."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    ERROR = "error"


class DownloadJob:
    """A remote URL waiting to be fetched."""

    def __init__(
        self,
        job_id: int | None = None,
        url: str = "",
        title: str = "",
        status: DownloadStatus = DownloadStatus.PENDING,
        error_message: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.job_id = job_id
        self.url = url
        self.title = title
        self.status = status
        self.error_message = error_message
        self.created_at = created_at or utcnow()
        self.updated_at = updated_at or utcnow()

    def output_path(self, download_dir: Path) -> Path:
        """Deterministic local file for this job."""
        return download_dir / f"{self.job_id}.mp4"

    def __str__(self) -> str:
        return f"{self.title} ({self.status.value})"


class DownloadStore:
    """Persists download jobs."""

    def __init__(self, database: Database):
        self.database = database

    def add_download(self, title: str, url: str) -> DownloadJob:
        """Queue a new download in ``pending``."""
        title = (title or "").strip()
        url = (url or "").strip()
        if not title or not url:
            raise ValidationError("Title and URL are required")
        if urlparse(url).scheme not in ("http", "https"):
            raise ValidationError(f"Not an http(s) URL: {url}")

        job = DownloadJob(url=url, title=title)
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO downloads (url, title, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    job.url,
                    job.title,
                    job.status.value,
                    datetime_to_str(job.created_at),
                    datetime_to_str(job.updated_at),
                ),
            )
            job.job_id = cursor.lastrowid

        logger.info("Added download: %s", job)
        return job

    def get(self, job_id: int) -> DownloadJob | None:
        with self.database.connect() as conn:
            row = conn.execute(
                "SELECT * FROM downloads WHERE id = ?", (job_id,),
            ).fetchone()
        return self._row_to_job(row) if row else None

    def count_by_status(self, status: DownloadStatus) -> int:
        with self.database.connect() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM downloads WHERE status = ?", (status.value,),
            ).fetchone()[0]

    def claim_next_pending(self, max_active: int) -> DownloadJob | None:
        """Move the oldest pending job to ``downloading`` if below the cap.

        Counting, selecting and claiming happen under one write lock, so two
        overlapping pickups can never both pass the cap check.
        """
        with self.database.connect(immediate=True) as conn:
            active = conn.execute(
                "SELECT COUNT(*) FROM downloads WHERE status = ?",
                (DownloadStatus.DOWNLOADING.value,),
            ).fetchone()[0]
            if active >= max_active:
                logger.debug("Download cap reached (%s/%s)", active, max_active)
                return None

            row = conn.execute(
                """
                SELECT * FROM downloads WHERE status = ?
                ORDER BY created_at, id LIMIT 1
                """,
                (DownloadStatus.PENDING.value,),
            ).fetchone()
            if not row:
                return None

            job = self._row_to_job(row)
            job.status = DownloadStatus.DOWNLOADING
            job.updated_at = utcnow()
            conn.execute(
                "UPDATE downloads SET status = ?, updated_at = ? WHERE id = ?",
                (job.status.value, datetime_to_str(job.updated_at), job.job_id),
            )

        logger.info("Claimed download: %s", job)
        return job

    def finish(
        self,
        job: DownloadJob,
        status: DownloadStatus,
        error_message: str | None = None,
    ) -> bool:
        """Move a ``downloading`` job to a terminal status."""
        if status not in (DownloadStatus.COMPLETED, DownloadStatus.ERROR):
            raise ValueError(f"Not a terminal download status: {status.value}")

        updated_at = utcnow()
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE downloads SET status = ?, error_message = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    status.value,
                    error_message,
                    datetime_to_str(updated_at),
                    job.job_id,
                    DownloadStatus.DOWNLOADING.value,
                ),
            )
            changed = cursor.rowcount > 0

        if changed:
            job.status = status
            job.error_message = error_message
            job.updated_at = updated_at
        else:
            logger.warning("Download %s was not downloading, left untouched", job.job_id)
        return changed

    def fail_interrupted(self) -> int:
        """Mark downloads left in ``downloading`` by a crash as ``error``.

        Only called at startup; otherwise they would hold a slot of the
        concurrency cap forever.
        """
        with self.database.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE downloads SET status = ?, error_message = ?, updated_at = ?
                WHERE status = ?
                """,
                (
                    DownloadStatus.ERROR.value,
                    INTERRUPTED_MESSAGE,
                    datetime_to_str(utcnow()),
                    DownloadStatus.DOWNLOADING.value,
                ),
            )
            count = cursor.rowcount
        if count > 0:
            logger.info("Marked %s interrupted downloads as error", count)
        return count

    def list_downloads(
        self,
        search: str | None = None,
        sort: str = "-created_at",
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[DownloadJob], int, int]:
        """Page through downloads.

        Returns the page, the total number of downloads and the number
        matching ``search`` (case-insensitive title match).
        """
        column = sort.lstrip("-")
        if column not in SORTABLE_COLUMNS:
            raise ValueError(f"Cannot sort by {column}")
        direction = "DESC" if sort.startswith("-") else "ASC"

        where = ""
        params: list = []
        if search:
            where = "WHERE title LIKE ? COLLATE NOCASE"
            params.append(f"%{search}%")

        with self.database.connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM downloads").fetchone()[0]
            filtered = conn.execute(
                f"SELECT COUNT(*) FROM downloads {where}", params,
            ).fetchone()[0]
            rows = conn.execute(
                f"""
                SELECT * FROM downloads {where}
                ORDER BY {column} {direction}, id {direction}
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            ).fetchall()

        return [self._row_to_job(row) for row in rows], total, filtered

    def delete_download(self, job_id: int, download_dir: Path) -> bool:
        """Remove a download and any partial file it left behind.

        The file of a ``completed`` download belongs to its video job and
        is left in place.
        """
        job = self.get(job_id)
        if not job:
            return False

        output_path = job.output_path(download_dir)
        if job.status != DownloadStatus.COMPLETED and output_path.exists():
            try:
                output_path.unlink()
                logger.info("Deleted incomplete file: %s", output_path)
            except OSError as e:
                logger.error("Failed to delete file %s: %s", output_path, e)

        with self.database.connect() as conn:
            conn.execute("DELETE FROM downloads WHERE id = ?", (job_id,))

        logger.info("Removed download %s", job_id)
        return True

    def get_stats(self) -> dict[str, int]:
        with self.database.connect() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) FROM downloads GROUP BY status",
            ).fetchall()
        return {status: count for status, count in rows}

    def _row_to_job(self, row: sqlite3.Row) -> DownloadJob:
        return DownloadJob(
            job_id=row["id"],
            url=row["url"],
            title=row["title"],
            status=DownloadStatus(row["status"]),
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
