"""Poster image generation."""

import logging
from pathlib import Path

from mediaspool.config import Size
from mediaspool.media.images import ImageEngine

logger = logging.getLogger(__name__)


class PosterGenerator:
    """Resizes a screenshot into the poster image."""

    def __init__(self, image_engine: ImageEngine):
        self.image_engine = image_engine

    def generate(self, screenshot: Path, size: Size, output: Path) -> Path:
        """A 0 on either axis leaves that axis to the aspect ratio."""
        width = size.width or None
        height = size.height or None
        final_size = self.image_engine.resize(screenshot, output, width, height)
        logger.info("Poster written: %s (%sx%s)", output, *final_size)
        return output
