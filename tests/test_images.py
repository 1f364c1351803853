# =============================================================================
# tests/test_images.py - Image Optimization Tests
# =============================================================================
# WEBP conversion, resizing and transparency handling with Pillow.
#
# Run with: pytest tests/test_images.py -v
# =============================================================================

import io

import pytest
from PIL import Image

from lib.images import ImageProcessingError, optimize_image, optimize_upload


def make_image(width: int, height: int, mode: str = "RGB", fmt: str = "PNG") -> bytes:
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, fmt)
    return buffer.getvalue()


def open_webp(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class TestOptimizeImage:
    """Tests for single renditions."""

    def test_output_is_webp(self):
        result = optimize_image(make_image(100, 80, fmt="JPEG"), max_width=1200, quality=80)

        assert result.content_type == "image/webp"
        assert open_webp(result.data).format == "WEBP"

    def test_large_image_scaled_down(self):
        result = optimize_image(make_image(2400, 1200), max_width=1200, quality=80)

        assert (result.width, result.height) == (1200, 600)

    def test_small_image_not_enlarged(self):
        result = optimize_image(make_image(300, 200), max_width=1200, quality=80)

        assert (result.width, result.height) == (300, 200)

    def test_alpha_preserved(self):
        result = optimize_image(make_image(50, 50, mode="RGBA"), max_width=400, quality=75)

        assert open_webp(result.data).mode == "RGBA"

    def test_opaque_image_flattened(self):
        result = optimize_image(make_image(50, 50, mode="L"), max_width=400, quality=75)

        assert open_webp(result.data).mode == "RGB"

    def test_garbage_rejected(self):
        with pytest.raises(ImageProcessingError):
            optimize_image(b"definitely not an image", max_width=400, quality=75)

    def test_decompression_bomb_rejected(self, monkeypatch):
        # Pillow refuses outright past twice MAX_IMAGE_PIXELS
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        with pytest.raises(ImageProcessingError):
            optimize_image(make_image(100, 100), max_width=400, quality=75)


class TestOptimizeUpload:

    def test_main_and_thumbnail(self):
        main, thumbnail = optimize_upload(make_image(1600, 800))

        assert main.width == 1200
        assert thumbnail.width == 400
        assert thumbnail.height == 200
        assert thumbnail.size < main.size
