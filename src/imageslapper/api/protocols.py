"""
Protocol definitions for type hints to avoid circular imports.

This module defines the :py:class:`PixelSource` capability that every piece of
layer content implements. Built-in rectangles satisfy it, and so does anything
an external collaborator hands over, such as a glyph or barcode rasterizer,
without importing or subclassing anything from this package.
"""

from typing import Protocol, runtime_checkable

RGBA = tuple[int, int, int, int]


@runtime_checkable
class PixelSource(Protocol):
    """
    Protocol defining queryable pixel content.

    ``pixel_at`` must be total over ``[0, width) x [0, height)`` and must
    never fail. Callers never ask outside that range. ``width`` and
    ``height`` are the intrinsic, untransformed size of the content and stay
    stable during a diffing pass.

    Two optional members are used when present:

    - ``numpy()`` returning a ``(height, width, 4)`` ``uint8`` array of the
      whole content, used instead of sampling ``pixel_at`` pixel by pixel.
    - ``fingerprint``, a stable hashable identity of the content, used
      instead of digesting the rendered pixels.
    """

    @property
    def width(self) -> int:
        """Intrinsic width of the content."""
        ...

    @property
    def height(self) -> int:
        """Intrinsic height of the content."""
        ...

    def pixel_at(self, x: int, y: int) -> RGBA:
        """RGBA color of the content pixel at (x, y)."""
        ...
