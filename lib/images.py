# =============================================================================
# lib/images.py - Image Optimization
# =============================================================================
# Converts uploaded images into the two WEBP renditions the platform serves:
# - main: at most 1200px wide, quality 80
# - thumbnail: at most 400px wide, quality 75
#
# Images are only ever shrunk, never enlarged. Transparency is preserved.
#
# Usage:
#   from lib.images import optimize_upload
#   main, thumb = optimize_upload(raw_bytes)
# =============================================================================

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAIN_MAX_WIDTH = 1200
MAIN_QUALITY = 80
THUMBNAIL_MAX_WIDTH = 400
THUMBNAIL_QUALITY = 75

WEBP_CONTENT_TYPE = "image/webp"


class ImageProcessingError(Exception):
    """Raised when bytes can't be decoded or re-encoded as an image."""


@dataclass(frozen=True)
class OptimizedImage:
    """An encoded WEBP rendition ready for upload."""
    data: bytes
    width: int
    height: int
    content_type: str = WEBP_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.data)


def _normalize_mode(img: Image.Image) -> Image.Image:
    """Keep alpha when the source has it, otherwise flatten to RGB."""
    has_alpha = img.mode in ("RGBA", "LA") or (
        img.mode == "P" and "transparency" in img.info
    )
    target = "RGBA" if has_alpha else "RGB"
    return img if img.mode == target else img.convert(target)


def _fit_width(img: Image.Image, max_width: int) -> Image.Image:
    """Scale down to max_width keeping aspect ratio; smaller images pass through."""
    width, height = img.size
    if width <= max_width:
        return img
    new_height = max(1, round(height * max_width / width))
    return img.resize((max_width, new_height), Image.LANCZOS)


def optimize_image(content: bytes, max_width: int, quality: int) -> OptimizedImage:
    """
    Produce a WEBP rendition no wider than max_width.

    Args:
        content: Raw uploaded bytes (any format Pillow can read)
        max_width: Maximum output width in pixels
        quality: WEBP quality (1-100)

    Returns:
        OptimizedImage with the encoded bytes and final dimensions

    Raises:
        ImageProcessingError: If the bytes are not a readable image or
            decode to more pixels than Pillow's bomb limit
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            rendition = _fit_width(_normalize_mode(img), max_width)

            buffer = io.BytesIO()
            rendition.save(buffer, "WEBP", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageProcessingError(str(e)) from e

    width, height = rendition.size
    return OptimizedImage(data=buffer.getvalue(), width=width, height=height)


def optimize_upload(content: bytes) -> tuple[OptimizedImage, OptimizedImage]:
    """
    Build the main image and thumbnail for an upload.

    Returns:
        (main, thumbnail)

    Raises:
        ImageProcessingError: If the bytes are not a readable image
    """
    main = optimize_image(content, MAIN_MAX_WIDTH, MAIN_QUALITY)
    thumbnail = optimize_image(content, THUMBNAIL_MAX_WIDTH, THUMBNAIL_QUALITY)

    logger.debug(
        f"Optimized image {len(content)} bytes -> main {main.size} bytes "
        f"({main.width}x{main.height}), thumbnail {thumbnail.size} bytes"
    )
    return main, thumbnail
