"""
Canvas module.

The shared RGBA raster that compositors write into. The canvas owns its
buffer and a re-entrant lock; writers hold the lock for the duration of a
write so that concurrent writers serialize.
"""

import logging
import threading
from typing import Any, Optional

import numpy as np
from PIL import Image

from imageslapper import utils
from imageslapper.api import pil_io
from imageslapper.validators import to_rgba

logger = logging.getLogger(__name__)


class Canvas:
    """
    RGBA raster with explicit width and height.

    :param width: Width in pixels.
    :param height: Height in pixels.
    :param color: Initial RGBA (or RGB) color, transparent black by default.
    """

    def __init__(self, width: int, height: int, color: Any = (0, 0, 0, 0)):
        if width < 0 or height < 0:
            raise ValueError("Invalid canvas size %dx%d" % (width, height))
        self._width, self._height = int(width), int(height)
        self._data = np.empty((self._height, self._width, 4), dtype=np.uint8)
        self._data[:, :] = to_rgba(color)
        self._lock = threading.RLock()

    @classmethod
    def frombytes(cls, data: bytes, width: int, height: int) -> "Canvas":
        """
        Create a canvas from raw row-major RGBA bytes.

        :raise ValueError: if the buffer size does not match the dimensions.
        """
        expected = width * height * 4
        if len(data) != expected:
            raise ValueError(
                "Buffer has %d bytes, expected %d for a %dx%d RGBA canvas"
                % (len(data), expected, width, height)
            )
        canvas = cls(width, height)
        canvas._data[:] = np.frombuffer(data, dtype=np.uint8).reshape((height, width, 4))
        return canvas

    @classmethod
    def fromimage(cls, image: Image.Image) -> "Canvas":
        """Create a canvas from a PIL Image, converted to RGBA."""
        array = pil_io.convert_image_to_rgba(image)
        canvas = cls(image.width, image.height)
        canvas._data[:] = array
        return canvas

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def size(self) -> tuple[int, int]:
        """(Width, Height) tuple."""
        return self.width, self.height

    @property
    def bbox(self) -> tuple[int, int, int, int]:
        """(0, 0, width, height) tuple."""
        return 0, 0, self.width, self.height

    @property
    def lock(self) -> threading.RLock:
        """Write lock of this canvas."""
        return self._lock  # type: ignore[return-value]

    @property
    def data(self) -> np.ndarray:
        """The underlying ``(height, width, 4)`` ``uint8`` buffer.

        Writers must hold :py:attr:`lock`.
        """
        return self._data

    def _check_index(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(
                "Pixel (%d, %d) outside %dx%d canvas" % (x, y, self.width, self.height)
            )

    def get_pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        """RGBA value at (x, y)."""
        self._check_index(x, y)
        r, g, b, a = self._data[y, x].tolist()
        return r, g, b, a

    def set_pixel(self, x: int, y: int, color: Any) -> None:
        """Overwrite the pixel at (x, y)."""
        self._check_index(x, y)
        self._data[y, x] = to_rgba(color)

    def fill(self, color: Any, bbox: Optional[tuple[int, int, int, int]] = None) -> None:
        """
        Overwrite a rectangle with a solid color. The rectangle is clipped to
        the canvas.

        :param bbox: (left, top, right, bottom). Defaults to the whole canvas.
        """
        bbox = self.bbox if bbox is None else utils.intersect(self.bbox, bbox)
        if utils.is_empty(bbox):
            return
        with self._lock:
            self._data[bbox[1] : bbox[3], bbox[0] : bbox[2]] = to_rgba(color)

    def numpy(self, bbox: Optional[tuple[int, int, int, int]] = None) -> np.ndarray:
        """
        Copy of the pixels in ``bbox`` as a ``uint8`` array. Parts of the box
        outside the canvas read as transparent.
        """
        if bbox is None:
            return self._data.copy()
        left, top, right, bottom = bbox
        view = np.zeros((max(bottom - top, 0), max(right - left, 0), 4), dtype=np.uint8)
        inter = utils.intersect(self.bbox, bbox)
        if utils.is_empty(inter):
            return view
        view[inter[1] - top : inter[3] - top, inter[0] - left : inter[2] - left] = (
            self._data[inter[1] : inter[3], inter[0] : inter[2]]
        )
        return view

    def tobytes(self) -> bytes:
        """Raw row-major RGBA bytes, for external encoders."""
        return self._data.tobytes()

    def topil(self) -> Image.Image:
        """Get PIL Image of the canvas."""
        return pil_io.convert_rgba_to_pil(self._data)

    def copy(self) -> "Canvas":
        canvas = Canvas(self.width, self.height)
        canvas._data[:] = self._data
        return canvas

    def __repr__(self) -> str:
        return "%s(size=%dx%d)" % (self.__class__.__name__, self.width, self.height)
