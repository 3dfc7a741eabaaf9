"""Thumbnail mosaic composition."""

import logging
import shutil
from pathlib import Path

from mediaspool.media.images import ImageEngine

logger = logging.getLogger(__name__)

MIN_SCREENSHOTS = 4
MAX_SCREENSHOTS = 12
GRID_ROWS = 2
GRID_COLS = 2
MAX_DIMENSION_SUM = 10000
TARGET_DIMENSION_SUM = 9000


class MosaicComposer:
    """Tiles the first screenshots into a 2x2 grid."""

    def __init__(self, image_engine: ImageEngine):
        self.image_engine = image_engine

    def compose(self, screenshots: list[Path], output: Path) -> Path | None:
        """Build ``output`` or return None when there are too few screenshots.

        Oversized mosaics keep an unscaled ``<name>_original`` copy and
        ``output`` is overwritten with a scaled-down version.
        """
        if len(screenshots) < MIN_SCREENSHOTS:
            logger.info("Only %s screenshots, skipping mosaic", len(screenshots))
            return None

        sources = screenshots[:MAX_SCREENSHOTS]
        width, height = self.image_engine.compose_grid(sources, GRID_ROWS, GRID_COLS, output)

        if width + height > MAX_DIMENSION_SUM:
            factor = TARGET_DIMENSION_SUM / (width + height)
            original = output.with_name(f"{output.stem}_original{output.suffix}")
            shutil.copyfile(output, original)
            width, height = self.image_engine.scale(original, output, factor)
            logger.info("Mosaic rescaled by %.3f, original kept at %s", factor, original)

        logger.info("Mosaic written: %s (%sx%s)", output, width, height)
        return output
