"""
Image Utilities
===============

Helper functions for continuity frame processing.
"""

import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from ..core.exceptions import DecodeError, EncodeError

logger = logging.getLogger(__name__)


def load_image(data: bytes) -> Image.Image:
    """
    Open image bytes as an RGB raster.

    Raises:
        DecodeError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise DecodeError(f"Rendered frame is not a readable image: {e}", stage="render") from e


def fit_to_size(image: Image.Image, width: int, height: int) -> Image.Image:
    """
    Scale a raster to exactly ``width`` x ``height``.

    The frame is stretched rather than cropped, so the whole last frame of the
    segment survives as the next segment's reference.
    """
    if image.size == (width, height):
        return image
    return image.resize((width, height), Image.Resampling.LANCZOS)


def encode_jpeg(image: Image.Image, quality: int = 95) -> bytes:
    """
    Serialize a raster as JPEG.

    Raises:
        EncodeError: If the raster cannot be written
    """
    buffer = io.BytesIO()
    try:
        image.save(buffer, "JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise EncodeError(f"Failed to encode frame as JPEG: {e}") from e
    data = buffer.getvalue()
    if not data:
        raise EncodeError("Failed to encode frame as JPEG: empty output")
    return data


def get_image_dimensions(data: bytes) -> Tuple[int, int]:
    """Return (width, height) of encoded image bytes."""
    with Image.open(io.BytesIO(data)) as img:
        return img.size
