"""Poster and thumbnail mosaic tests using real images."""

import pytest
from PIL import Image

from mediaspool.config import Size
from mediaspool.derivatives.mosaic import MosaicComposer
from mediaspool.derivatives.poster import PosterGenerator
from mediaspool.media.images import ImageEngine


@pytest.fixture
def image_engine():
    return ImageEngine()


class TestPosterGenerator:
    """Test poster sizing."""

    def test_zero_height_follows_aspect(self, image_engine, make_image, tmp_path):
        screenshot = make_image("screenshot_0.png", 640, 360)

        poster = PosterGenerator(image_engine).generate(
            screenshot, Size(width=320, height=0), tmp_path / "poster.webp",
        )

        with Image.open(poster) as image:
            assert image.size == (320, 180)

    def test_both_axes(self, image_engine, make_image, tmp_path):
        screenshot = make_image("screenshot_0.png", 640, 360)

        poster = PosterGenerator(image_engine).generate(
            screenshot, Size(width=200, height=200), tmp_path / "poster.webp",
        )

        with Image.open(poster) as image:
            assert image.size == (200, 200)


class TestMosaicComposer:
    """Test the 2x2 thumbnail grid."""

    def test_four_screenshots_make_double_canvas(self, image_engine, make_image, tmp_path):
        shots = [make_image(f"screenshot_{i}.png", 64, 36) for i in range(4)]

        thumbnail = MosaicComposer(image_engine).compose(shots, tmp_path / "thumbnail.webp")

        with Image.open(thumbnail) as image:
            assert image.size == (128, 72)
        assert not (tmp_path / "thumbnail_original.webp").exists()

    def test_extra_screenshots_are_ignored(self, image_engine, make_image, tmp_path):
        shots = [make_image(f"screenshot_{i}.png", 64, 36) for i in range(12)]

        thumbnail = MosaicComposer(image_engine).compose(shots, tmp_path / "thumbnail.webp")

        with Image.open(thumbnail) as image:
            assert image.size == (128, 72)

    def test_three_screenshots_skip_mosaic(self, image_engine, make_image, tmp_path):
        shots = [make_image(f"screenshot_{i}.png", 64, 36) for i in range(3)]

        assert MosaicComposer(image_engine).compose(shots, tmp_path / "thumbnail.webp") is None
        assert not (tmp_path / "thumbnail.webp").exists()

    def test_oversized_mosaic_is_scaled(self, image_engine, make_image, tmp_path):
        shots = [make_image(f"screenshot_{i}.png", 2600, 2500) for i in range(4)]

        thumbnail = MosaicComposer(image_engine).compose(shots, tmp_path / "thumbnail.webp")

        with Image.open(tmp_path / "thumbnail_original.webp") as original:
            assert original.size == (5200, 5000)
        with Image.open(thumbnail) as image:
            width, height = image.size
        assert width + height == pytest.approx(9000, abs=2)
