"""
Mask module.
"""

import logging
import math
from typing import Any, Optional, Union

import numpy as np
from attrs import define, field
from PIL import Image

from imageslapper import utils
from imageslapper.validators import range_

logger = logging.getLogger(__name__)


def _to_bytes(value: Union[bytes, bytearray, memoryview, np.ndarray]) -> bytes:
    if isinstance(value, np.ndarray):
        if value.dtype != np.uint8:
            raise TypeError("Mask array must be uint8, got %s" % value.dtype)
        return value.tobytes()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError("Mask data must be bytes or ndarray, got %s" % type(value).__name__)


@define(frozen=True, repr=False)
class ClipMask:
    """Per-pixel visibility mask in canvas coordinates.

    A mask value of 0 hides the pixel, 255 leaves it untouched, and values
    in between scale its alpha. Anything outside the mask rectangle is
    hidden. The mask is immutable, so a single instance can be shared
    read-only by any number of layers.

    .. py:attribute:: x
    .. py:attribute:: y
    .. py:attribute:: width
    .. py:attribute:: height
    .. py:attribute:: data

        Row-major mask bytes, ``width * height`` long.
    """

    x: int = field(converter=int)
    y: int = field(converter=int)
    width: int = field(converter=int, validator=range_(0, math.inf))
    height: int = field(converter=int, validator=range_(0, math.inf))
    data: bytes = field(converter=_to_bytes)

    def __attrs_post_init__(self) -> None:
        if len(self.data) != self.width * self.height:
            raise ValueError(
                "Mask data has %d bytes, expected %d for a %dx%d mask"
                % (len(self.data), self.width * self.height, self.width, self.height)
            )

    @classmethod
    def from_image(
        cls, image: Image.Image, offset: tuple[int, int] = (0, 0)
    ) -> "ClipMask":
        """
        Create a mask from a PIL Image. The image is converted to mode ``L``.

        :param offset: (x, y) of the mask's top-left corner on the canvas.
        """
        if image.mode != "L":
            image = image.convert("L")
        return cls(offset[0], offset[1], image.width, image.height, image.tobytes())

    @property
    def bbox(self) -> tuple[int, int, int, int]:
        """(left, top, right, bottom) tuple."""
        return self.x, self.y, self.x + self.width, self.y + self.height

    @property
    def size(self) -> tuple[int, int]:
        """(Width, Height) tuple."""
        return self.width, self.height

    def contains(self, x: int, y: int) -> bool:
        """Return True if (x, y) falls within the mask rectangle."""
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    def value_at(self, x: int, y: int) -> Optional[int]:
        """Mask value at (x, y), or None outside the mask."""
        if not self.contains(x, y):
            return None
        return self.data[(y - self.y) * self.width + (x - self.x)]

    def numpy(self, bbox: Optional[tuple[int, int, int, int]] = None) -> np.ndarray:
        """
        Mask values over ``bbox`` as a ``uint8`` array of shape
        (height, width). Pixels outside the mask are 0.

        :param bbox: (left, top, right, bottom) in canvas coordinates.
            Defaults to the mask's own bbox.
        """
        if bbox is None:
            bbox = self.bbox
        left, top, right, bottom = bbox
        view = np.zeros((max(bottom - top, 0), max(right - left, 0)), dtype=np.uint8)
        inter = utils.intersect(bbox, self.bbox)
        if utils.is_empty(inter):
            return view
        values = np.frombuffer(self.data, dtype=np.uint8).reshape(
            (self.height, self.width)
        )
        view[inter[1] - top : inter[3] - top, inter[0] - left : inter[2] - left] = values[
            inter[1] - self.y : inter[3] - self.y, inter[0] - self.x : inter[2] - self.x
        ]
        return view

    def topil(self, **kwargs: Any) -> Image.Image:
        """Get PIL Image of the mask."""
        return Image.frombytes("L", self.size, self.data, **kwargs)

    def __repr__(self) -> str:
        return "%s(offset=(%d,%d) size=%dx%d)" % (
            self.__class__.__name__,
            self.x,
            self.y,
            self.width,
            self.height,
        )
