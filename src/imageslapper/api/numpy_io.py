"""
NumPy IO module.

Renders pixel sources into ``(height, width, 4)`` ``uint8`` arrays and
computes content digests.
"""
import hashlib
import logging
from typing import Any

import numpy as np

from imageslapper.api.protocols import PixelSource

logger = logging.getLogger(__name__)


def get_array(source: PixelSource) -> np.ndarray:
    """
    Render the whole content of ``source``.

    Sources exposing ``numpy()`` are used directly; anything else is sampled
    once per pixel through ``pixel_at``.

    :return: ``uint8`` array of shape (height, width, 4).
    """
    width, height = int(source.width), int(source.height)
    to_numpy = getattr(source, "numpy", None)
    if callable(to_numpy):
        array = np.asarray(to_numpy(), dtype=np.uint8)
        if array.shape != (height, width, 4):
            raise ValueError(
                "%s.numpy() returned shape %s, expected %s"
                % (type(source).__name__, array.shape, (height, width, 4))
            )
        return array

    logger.debug("Sampling %dx%d pixels from %r" % (width, height, source))
    array = np.zeros((height, width, 4), dtype=np.uint8)
    for y in range(height):
        row = array[y]
        for x in range(width):
            row[x] = source.pixel_at(x, y)
    return array


def sample(
    content: np.ndarray, cx: np.ndarray, cy: np.ndarray
) -> np.ndarray:
    """
    Nearest-neighbor lookup of content pixels at fractional content-local
    coordinates. Coordinates outside the content resolve to transparent.

    :param content: Rendered content, shape (height, width, 4).
    :param cx: Content-local x coordinates.
    :param cy: Content-local y coordinates, same shape as ``cx``.
    :return: ``uint8`` array of shape ``cx.shape + (4,)``.
    """
    height, width = content.shape[:2]
    ix = np.floor(cx).astype(np.int64)
    iy = np.floor(cy).astype(np.int64)
    inside = (ix >= 0) & (ix < width) & (iy >= 0) & (iy < height)
    result = np.zeros(cx.shape + (4,), dtype=np.uint8)
    result[inside] = content[iy[inside], ix[inside]]
    return result


def get_digest(source: PixelSource) -> bytes:
    """
    Stable digest of a source's content.

    Uses the source's ``fingerprint`` when it has one, otherwise digests the
    rendered pixels.
    """
    fingerprint = getattr(source, "fingerprint", None)
    h = hashlib.blake2b(digest_size=16)
    h.update(type(source).__qualname__.encode("utf-8"))
    if fingerprint is not None:
        h.update(_encode(fingerprint))
    else:
        array = get_array(source)
        h.update(repr(array.shape).encode("ascii"))
        h.update(np.ascontiguousarray(array).tobytes())
    return h.digest()


def _encode(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return repr(value).encode("utf-8")
