"""
Transform module.
"""

import logging
import math
from typing import Any

from attrs import define, field

from imageslapper.validators import finite, positive

logger = logging.getLogger(__name__)

# Exact (cos, sin) for right angles so that axis-aligned rotations do not leak
# rounding noise into floor() at pixel boundaries.
_RIGHT_ANGLES = {
    0.0: (1.0, 0.0),
    90.0: (0.0, 1.0),
    180.0: (-1.0, 0.0),
    270.0: (0.0, -1.0),
}


@define(frozen=True)
class Transform:
    """
    Affine mapping between content-local space and canvas space.

    Content is scaled first, then rotated about the origin, then translated::

        canvas = translate + rotate(rotation) * (scale * content)

    .. py:attribute:: translate_x
    .. py:attribute:: translate_y
    .. py:attribute:: scale_x

        Strictly positive.

    .. py:attribute:: scale_y

        Strictly positive.

    .. py:attribute:: rotation

        Rotation in degrees. In a y-down raster a positive angle turns the
        content clockwise on screen.
    """

    translate_x: float = field(default=0.0, converter=float, validator=finite)
    translate_y: float = field(default=0.0, converter=float, validator=finite)
    scale_x: float = field(default=1.0, converter=float, validator=positive)
    scale_y: float = field(default=1.0, converter=float, validator=positive)
    rotation: float = field(default=0.0, converter=float, validator=finite)

    @classmethod
    def identity(cls) -> "Transform":
        """No-op transform."""
        return cls()

    def is_identity(self) -> bool:
        return self == Transform.identity()

    @property
    def translation(self) -> tuple[float, float]:
        """(translate_x, translate_y) tuple."""
        return self.translate_x, self.translate_y

    @property
    def scale(self) -> tuple[float, float]:
        """(scale_x, scale_y) tuple."""
        return self.scale_x, self.scale_y

    def _cos_sin(self) -> tuple[float, float]:
        angle = self.rotation % 360.0
        if angle in _RIGHT_ANGLES:
            return _RIGHT_ANGLES[angle]
        theta = math.radians(angle)
        return math.cos(theta), math.sin(theta)

    def to_content(self, x: Any, y: Any) -> tuple[Any, Any]:
        """
        Map canvas coordinates to content-local coordinates.

        Works on scalars as well as NumPy arrays. The result is fractional;
        the content pixel is the floor of each component.
        """
        dx = x - self.translate_x
        dy = y - self.translate_y
        if self.rotation:
            cos, sin = self._cos_sin()
            dx, dy = dx * cos + dy * sin, dy * cos - dx * sin
        return dx / self.scale_x, dy / self.scale_y

    def to_canvas(self, cx: Any, cy: Any) -> tuple[Any, Any]:
        """Map content-local coordinates to canvas coordinates."""
        px = cx * self.scale_x
        py = cy * self.scale_y
        if self.rotation:
            cos, sin = self._cos_sin()
            px, py = px * cos - py * sin, px * sin + py * cos
        return px + self.translate_x, py + self.translate_y

    def bounds(self, width: int, height: int) -> tuple[int, int, int, int]:
        """
        Integer bounding box (left, top, right, bottom) of a ``width`` x
        ``height`` content rectangle after this transform.

        Pixels are sampled at their integer coordinates. Once rotated, the
        open edge of the content rectangle can land on either side, so the
        box for a rotated transform may be one pixel larger than the covered
        area.
        """
        corners = [
            self.to_canvas(cx, cy)
            for cx, cy in ((0, 0), (width, 0), (0, height), (width, height))
        ]
        xs = [c[0] for c in corners]
        ys = [c[1] for c in corners]
        if self.rotation % 360.0 == 0.0:
            right, bottom = math.ceil(max(xs)), math.ceil(max(ys))
        else:
            right, bottom = math.floor(max(xs)) + 1, math.floor(max(ys)) + 1
        return (
            int(math.floor(min(xs))),
            int(math.floor(min(ys))),
            int(right),
            int(bottom),
        )

    def translated(self, dx: float, dy: float) -> "Transform":
        """Return a copy shifted by (dx, dy)."""
        return Transform(
            self.translate_x + dx,
            self.translate_y + dy,
            self.scale_x,
            self.scale_y,
            self.rotation,
        )
