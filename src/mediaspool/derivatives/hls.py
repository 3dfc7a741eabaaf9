"""AES-128 encrypted HLS segmenting."""

import logging
import secrets
from pathlib import Path

from mediaspool.config import MediaSpoolConfig
from mediaspool.error_handling import ToolError
from mediaspool.media.ffmpeg import MediaEngine

logger = logging.getLogger(__name__)

KEY_ALPHABET = "0123456789abcdefgABCDEFG"
KEY_LENGTH = 16  # AES-128 needs exactly 16 key bytes
KEY_FILENAME = "ts.key"
KEY_INFO_FILENAME = "key.info"
PLAYLIST_FILENAME = "output.m3u8"


def generate_key(length: int = KEY_LENGTH) -> str:
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))


class EncryptedSegmenter:
    """Remuxes the primary rendition into encrypted HLS segments."""

    def __init__(self, config: MediaSpoolConfig, media_engine: MediaEngine):
        self.config = config
        self.media_engine = media_engine

    def segment(self, rendition: Path, hls_dir: Path) -> Path:
        """Write ``output.m3u8``, ``media_<n>.ts`` and ``ts.key`` into ``hls_dir``.

        The key-info file only lives for the duration of the remux; the key
        itself stays next to the playlist for playback.
        """
        key_info = hls_dir / KEY_INFO_FILENAME
        key_file = hls_dir / KEY_FILENAME
        playlist = hls_dir / PLAYLIST_FILENAME

        try:
            hls_dir.mkdir(parents=True, exist_ok=True)
            key_info.write_text(f"{KEY_FILENAME}\n{key_file.resolve()}\n")
            key_file.write_text(generate_key())

            result = self.media_engine.run(
                self.media_engine.build_hls_args(
                    rendition, hls_dir, key_info, self.config.hls_segment_time,
                ),
                "hls segmenting",
            )
            if not result.success:
                raise ToolError(
                    "HLS segmenting failed",
                    tool="ffmpeg",
                    exit_code=result.returncode,
                    stderr=result.error_message,
                )
        except Exception:
            for path in (key_info, key_file):
                try:
                    path.unlink(missing_ok=True)
                except OSError as cleanup_error:
                    logger.error("Failed to delete %s: %s", path, cleanup_error)
            raise

        key_info.unlink()
        logger.info("HLS playlist written: %s", playlist)
        return playlist
