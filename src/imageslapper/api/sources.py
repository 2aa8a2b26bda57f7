"""
Pixel sources.

Built-in content for layers. Each class satisfies
:py:class:`~imageslapper.api.protocols.PixelSource` and additionally
provides the ``numpy()`` and ``fingerprint`` fast paths.

Rectangles::

    from imageslapper.api.sources import Border, Rectangle

    box = Rectangle(40, 20, fill_color=(255, 0, 0))
    framed = Rectangle(40, 20, fill_color=None, border=Border(thickness=2))

Externally rasterized content, such as text or barcodes, is wrapped with
:py:class:`ImageSource`::

    label = ImageSource(rendered_text_image)
"""

import hashlib
import logging
import math
from typing import Any, BinaryIO, Optional, Union

import attrs
import numpy as np
from attrs import define, field
from PIL import Image

from imageslapper.api import pil_io
from imageslapper.api.protocols import RGBA
from imageslapper.constants import TRANSPARENT, BorderStyle
from imageslapper.validators import in_, range_, to_optional_rgba, to_rgba

logger = logging.getLogger(__name__)

@define(frozen=True)
class Border:
    """
    Inset border band of a rectangle.

    .. py:attribute:: thickness

        Width of the band in pixels.

    .. py:attribute:: color

    .. py:attribute:: style

        :py:class:`~imageslapper.constants.BorderStyle`. Dashed borders
        alternate on/off segments of ``2 * thickness`` pixels along each edge.
    """

    thickness: int = field(default=10, converter=int, validator=range_(0, math.inf))
    color: RGBA = field(default=(100, 100, 100, 100), converter=to_rgba)
    style: BorderStyle = field(
        default=BorderStyle.SOLID, converter=BorderStyle, validator=in_(BorderStyle)
    )

    @property
    def dash_length(self) -> int:
        return max(2 * self.thickness, 1)


@define(frozen=True)
class Rectangle:
    """
    Filled and/or bordered rectangle.

    .. py:attribute:: width
    .. py:attribute:: height
    .. py:attribute:: fill_color

        RGBA fill, or None for a hollow rectangle.

    .. py:attribute:: border

        Optional :py:class:`Border`.
    """

    width: int = field(converter=int, validator=range_(0, math.inf))
    height: int = field(converter=int, validator=range_(0, math.inf))
    fill_color: Optional[RGBA] = field(default=(0, 0, 0, 255), converter=to_optional_rgba)
    border: Optional[Border] = None

    def filled(self, fill_color: Any) -> "Rectangle":
        """Return a copy with a new fill color."""
        return attrs.evolve(self, fill_color=fill_color)

    @property
    def fingerprint(self) -> tuple:
        return attrs.astuple(self)

    def _in_border(self, x: int, y: int) -> bool:
        border = self.border
        if border is None or border.thickness == 0:
            return False
        t = border.thickness
        horizontal = y < t or y >= self.height - t
        vertical = x < t or x >= self.width - t
        if not (horizontal or vertical):
            return False
        if border.style == BorderStyle.SOLID:
            return True
        position = x if horizontal else y
        return (position // border.dash_length) % 2 == 0

    def pixel_at(self, x: int, y: int) -> RGBA:
        if self._in_border(x, y):
            return self.border.color  # type: ignore[union-attr]
        if self.fill_color is not None:
            return self.fill_color
        return TRANSPARENT

    def numpy(self) -> np.ndarray:
        array = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        if self.fill_color is not None:
            array[:, :] = self.fill_color
        border = self.border
        if border is None or border.thickness == 0 or array.size == 0:
            return array

        t = border.thickness
        ys, xs = np.ogrid[0 : self.height, 0 : self.width]
        horizontal = (ys < t) | (ys >= self.height - t)
        vertical = (xs < t) | (xs >= self.width - t)
        band = horizontal | vertical
        if border.style == BorderStyle.DASHED:
            position = np.where(horizontal, xs, ys)
            band = band & ((position // border.dash_length) % 2 == 0)
        array[band] = border.color
        return array


class ImageSource:
    """
    Pixel source backed by an RGBA raster.

    This is the adapter for content rasterized elsewhere, such as glyph runs
    or barcode symbols. The pixels are copied on construction and treated as
    immutable afterwards.

    :param image: PIL Image, or ``uint8`` array of shape (H, W), (H, W, 3) or
        (H, W, 4).
    """

    def __init__(self, image: Union[Image.Image, np.ndarray]):
        if isinstance(image, Image.Image):
            array = pil_io.convert_image_to_rgba(image)
        elif isinstance(image, np.ndarray):
            array = pil_io.convert_array_to_rgba(image).copy()
        else:
            raise TypeError(
                "Expected PIL Image or ndarray, got %s" % type(image).__name__
            )
        array.setflags(write=False)
        self._array = array
        self._fingerprint: Optional[bytes] = None

    @classmethod
    def open(cls, fp: Union[str, BinaryIO], **kwargs: Any) -> "ImageSource":
        """
        Open an image file through Pillow.

        :param fp: filename or file-like object.
        """
        with Image.open(fp, **kwargs) as image:
            image.load()
            return cls(image)

    @property
    def width(self) -> int:
        return self._array.shape[1]

    @property
    def height(self) -> int:
        return self._array.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        """(Width, Height) tuple."""
        return self.width, self.height

    @property
    def fingerprint(self) -> bytes:
        if self._fingerprint is None:
            self._fingerprint = hashlib.blake2b(
                repr(self._array.shape).encode("ascii") + self._array.tobytes(),
                digest_size=16,
            ).digest()
        return self._fingerprint

    def pixel_at(self, x: int, y: int) -> RGBA:
        r, g, b, a = self._array[y, x].tolist()
        return r, g, b, a

    def numpy(self) -> np.ndarray:
        return self._array

    def topil(self) -> Image.Image:
        return pil_io.convert_rgba_to_pil(self._array)

    def __repr__(self) -> str:
        return "%s(size=%dx%d)" % (self.__class__.__name__, self.width, self.height)
