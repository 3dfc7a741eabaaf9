"""Still image operations backed by Pillow."""

import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from mediaspool.error_handling import ToolError

logger = logging.getLogger(__name__)

WEBP_QUALITY = 80


class ImageEngine:
    """Resize, composite and encode images as WebP."""

    def __init__(self, quality: int = WEBP_QUALITY):
        self.quality = quality

    def size(self, path: Path) -> tuple[int, int]:
        with self._open(path) as image:
            return image.size

    def resize(
        self,
        source: Path,
        output: Path,
        width: int | None,
        height: int | None,
    ) -> tuple[int, int]:
        """Resize ``source`` into ``output``.

        A ``None`` axis follows the aspect ratio. With both axes set the
        image is scaled to cover the box and centre-cropped.
        """
        with self._open(source) as image:
            image = image.convert("RGB")
            src_w, src_h = image.size
            if width and height:
                image = ImageOps.fit(image, (width, height), Image.Resampling.LANCZOS)
            elif width:
                image = image.resize(
                    (width, max(1, round(src_h * width / src_w))), Image.Resampling.LANCZOS,
                )
            elif height:
                image = image.resize(
                    (max(1, round(src_w * height / src_h)), height), Image.Resampling.LANCZOS,
                )
            self._save(image, output)
            return image.size

    def compose_grid(
        self,
        sources: list[Path],
        rows: int,
        cols: int,
        output: Path,
    ) -> tuple[int, int]:
        """Tile ``sources`` row-major onto a black canvas of rows x cols cells.

        Cells take the size of the first image; extra sources are ignored.
        """
        if not sources:
            raise ToolError("No images to compose", tool="Pillow")

        cell_w, cell_h = self.size(sources[0])
        canvas = Image.new("RGB", (cell_w * cols, cell_h * rows), (0, 0, 0))

        for i, source in enumerate(sources[: rows * cols]):
            row, col = divmod(i, cols)
            with self._open(source) as tile:
                canvas.paste(tile.convert("RGB"), (col * cell_w, row * cell_h))

        self._save(canvas, output)
        return canvas.size

    def scale(self, source: Path, output: Path, factor: float) -> tuple[int, int]:
        """Scale both axes by ``factor``."""
        with self._open(source) as image:
            new_size = (
                max(1, round(image.width * factor)),
                max(1, round(image.height * factor)),
            )
            resized = image.convert("RGB").resize(new_size, Image.Resampling.LANCZOS)
            self._save(resized, output)
            return resized.size

    def _open(self, path: Path) -> Image.Image:
        try:
            return Image.open(path)
        except (OSError, UnidentifiedImageError) as e:
            raise ToolError(f"Cannot read image {path}: {e}", tool="Pillow", original_error=e) from e

    def _save(self, image: Image.Image, output: Path) -> None:
        try:
            image.save(output, "WEBP", quality=self.quality)
        except OSError as e:
            raise ToolError(f"Cannot write image {output}: {e}", tool="Pillow", original_error=e) from e
        logger.debug("Wrote %s (%sx%s)", output, image.width, image.height)
