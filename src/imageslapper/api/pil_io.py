"""
PIL IO module.
"""
import logging

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def convert_image_to_rgba(image: Image.Image) -> np.ndarray:
    """
    Convert a PIL Image to a ``(height, width, 4)`` ``uint8`` array.

    Pillow's own conversion keeps palette transparency.
    """
    if image.mode != "RGBA":
        logger.debug("Converting %s image to RGBA" % image.mode)
        image = image.convert("RGBA")
    return np.array(image, dtype=np.uint8).reshape((image.height, image.width, 4))


def convert_array_to_rgba(array: np.ndarray) -> np.ndarray:
    """
    Normalize a gray, RGB or RGBA ``uint8`` array to RGBA. Missing alpha is
    treated as fully opaque.
    """
    if array.dtype != np.uint8:
        raise TypeError("Expected uint8 array, got %s" % array.dtype)
    if array.ndim == 2:
        array = np.repeat(array[:, :, np.newaxis], 3, axis=2)
    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise ValueError("Expected (H, W), (H, W, 3) or (H, W, 4), got %s" % (array.shape,))
    if array.shape[2] == 3:
        alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
        array = np.concatenate((array, alpha), axis=2)
    return np.ascontiguousarray(array)


def convert_rgba_to_pil(array: np.ndarray) -> Image.Image:
    """Convert a ``(height, width, 4)`` ``uint8`` array to an ``RGBA`` image."""
    return Image.fromarray(np.ascontiguousarray(array, dtype=np.uint8))
