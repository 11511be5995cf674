"""
image.py — RGBA8 Image Container and PNG Persistence
======================================================

Height maps come in and normal maps go out as flat, row-major RGBA8
buffers (width * height * 4 bytes).  `data` is None when the pixel
buffer is absent; consumers degrade to zeros instead of failing.

PNG encoding and decoding go through Pillow.
"""

import logging
from pathlib import Path
from typing import NamedTuple, Optional

import numpy as np
from PIL import Image as PILImage

from .errors import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)

# linear and gamma-encoded 8-bit RGBA
SUPPORTED_FORMATS = ('rgba8unorm', 'rgba8unorm_srgb')


class Image(NamedTuple):
    """Flat RGBA8 raster."""
    width: int
    height: int
    data: Optional[np.ndarray]
    format: str = 'rgba8unorm'

    @property
    def has_data(self):
        return self.data is not None


def image_from_array(array, format='rgba8unorm'):
    """
    Wrap an (H, W, 4) uint8 array as an Image (copied, flattened).

    Raises:
        ConfigurationError: wrong shape or dtype
    """
    array = np.asarray(array)
    if array.ndim != 3 or array.shape[2] != 4:
        raise ConfigurationError(f"expected (H, W, 4) RGBA array, got shape {array.shape}")
    if array.dtype != np.uint8:
        raise ConfigurationError(f"expected uint8 pixels, got {array.dtype}")
    height, width = array.shape[:2]
    return Image(width, height, np.array(array, dtype=np.uint8).reshape(-1), format)


def image_to_array(image):
    """(H, W, 4) uint8 view of the pixel buffer, or None without data."""
    if image.data is None:
        return None
    return np.asarray(image.data, dtype=np.uint8).reshape(image.height, image.width, 4)


def save_image_as_png(image, path):
    """
    Write an RGBA8 image to disk as PNG.

    Args:
        image: Image in one of SUPPORTED_FORMATS
        path:  destination; parent directories are created

    Raises:
        PersistenceError: unsupported format, missing pixel data,
            buffer size mismatch, or write failure
    """
    if image.format not in SUPPORTED_FORMATS:
        raise PersistenceError(f"Unsupported texture format for saving: {image.format!r}")
    if image.data is None:
        raise PersistenceError("Image data is missing")

    data = np.asarray(image.data, dtype=np.uint8)
    expected = image.width * image.height * 4
    if data.size != expected:
        raise PersistenceError(
            f"Pixel buffer holds {data.size} bytes, expected {expected} "
            f"for {image.width}x{image.height} RGBA8")

    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.fromarray(data.reshape(image.height, image.width, 4)).save(path, format='PNG')
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"Failed to save image to {path}") from exc

    logger.info("Saved %dx%d image: %s", image.width, image.height, path)


def load_png(path, format='rgba8unorm'):
    """
    Load a PNG (any mode) as an RGBA8 Image.

    Raises:
        PersistenceError: file missing or not decodable
    """
    path = Path(path)
    try:
        with PILImage.open(path) as img:
            if img.mode != 'RGBA':
                img = img.convert('RGBA')
            array = np.array(img, dtype=np.uint8)
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"Failed to load image from {path}") from exc

    logger.debug("Loaded %s with shape %s", path, array.shape)
    return image_from_array(array, format)
