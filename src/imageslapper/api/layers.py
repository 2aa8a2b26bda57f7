"""
Layer module.

This module implements the incremental side of compositing: a
:py:class:`Layer` binds a :py:class:`~imageslapper.api.protocols.PixelSource`
to placement and presentation state, and computes the pixels that changed
since a previous render, described by a caller-retained
:py:class:`LayerState`.

Key classes:

- :py:class:`Layer`: a renderable unit for one render pass
- :py:class:`LayerState`: snapshot of a layer's last rendered footprint

Diffing a layer::

    from imageslapper.api.layers import Layer
    from imageslapper.api.sources import Rectangle

    layer = Layer(Rectangle(10, 10, fill_color=(255, 0, 0)), position=(0, 0))
    delta = layer.collect_changes(None, viewport=canvas.bbox)
    state = layer.snapshot()

    # Next frame: only the difference is produced.
    moved = Layer(Rectangle(10, 10, fill_color=(255, 0, 0)), position=(5, 5))
    delta = moved.collect_changes(state, viewport=canvas.bbox)

Common layer properties:

- ``content``: the pixel source
- ``position``: (x, y) offset of the content origin on the canvas
- ``z_index``: stacking order, ties broken by creation order
- ``opacity``: in [0, 1]
- ``blend_mode``: :py:class:`~imageslapper.constants.BlendMode`
- ``transform``: :py:class:`~imageslapper.api.transform.Transform`
- ``visible``: visibility flag
- ``clip_mask``: optional :py:class:`~imageslapper.api.mask.ClipMask`
- ``fingerprint``: hash of everything that affects the layer's pixels

Fingerprint equality between a layer and a state is taken as proof that the
output is identical. Collisions are possible in theory and are not handled.
"""

import hashlib
import itertools
import logging
import math
from typing import Any, Optional

import attrs
import numpy as np
from attrs import define, field

from imageslapper import utils
from imageslapper.api import numpy_io
from imageslapper.api.mask import ClipMask
from imageslapper.api.protocols import RGBA, PixelSource
from imageslapper.api.transform import Transform
from imageslapper.composite.delta import DeltaBuffer, Region
from imageslapper.constants import TRANSPARENT, BlendMode
from imageslapper.validators import in_, range_, to_rgba

logger = logging.getLogger(__name__)

_SERIAL = itertools.count()

# Coordinates on the canvas are never negative.
_CANVAS_QUADRANT = (0, 0, 2**62, 2**62)


def _freeze_pixels(value: Any) -> Optional[np.ndarray]:
    if value is None:
        return None
    array = np.array(value, dtype=np.uint8)
    array.setflags(write=False)
    return array


def _scale_alpha(alpha: np.ndarray, opacity: float) -> np.ndarray:
    return np.clip(np.floor(alpha * opacity), 0, 255).astype(np.uint8)


def _clear_transparent(colors: np.ndarray) -> np.ndarray:
    # A fully transparent pixel carries no color.
    colors[colors[..., 3] == 0] = 0
    return colors


@define(frozen=True, repr=False)
class LayerState:
    """
    Snapshot of a layer's rendered footprint, used as the diff baseline.

    The caller keeps it between frames and feeds it back into
    :py:meth:`Layer.collect_changes`. ``pixels``, when present, holds the
    footprint pixel by pixel; otherwise every pixel of the footprint reads as
    the representative ``color``.

    .. py:attribute:: x
    .. py:attribute:: y
    .. py:attribute:: width
    .. py:attribute:: height
    .. py:attribute:: color
    .. py:attribute:: opacity
    .. py:attribute:: z_index
    .. py:attribute:: blend_mode
    .. py:attribute:: fingerprint
    .. py:attribute:: pixels

        Optional ``uint8`` array of shape (height, width, 4).
    """

    x: int = field(converter=int)
    y: int = field(converter=int)
    width: int = field(converter=int, validator=range_(0, math.inf))
    height: int = field(converter=int, validator=range_(0, math.inf))
    color: RGBA = field(default=TRANSPARENT, converter=to_rgba)
    opacity: float = field(default=1.0, converter=float, validator=range_(0.0, 1.0))
    z_index: int = field(default=0, converter=int)
    blend_mode: BlendMode = field(
        default=BlendMode.NORMAL, converter=BlendMode, validator=in_(BlendMode)
    )
    fingerprint: Optional[int] = None
    pixels: Optional[np.ndarray] = field(
        default=None, converter=_freeze_pixels, eq=False
    )

    def __attrs_post_init__(self) -> None:
        if self.pixels is not None and self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                "Pixels have shape %s, expected %s"
                % (self.pixels.shape, (self.height, self.width, 4))
            )

    @classmethod
    def from_canvas(cls, canvas: Any, bbox: utils.BBox, **kwargs: Any) -> "LayerState":
        """
        Snapshot the canvas pixels inside ``bbox``.

        :param canvas: :py:class:`~imageslapper.api.canvas.Canvas`.
        :param bbox: (left, top, right, bottom) footprint to capture.
        :param kwargs: Remaining :py:class:`LayerState` attributes.
        """
        left, top, right, bottom = bbox
        return cls(
            left,
            top,
            max(right - left, 0),
            max(bottom - top, 0),
            pixels=canvas.numpy(bbox),
            **kwargs,
        )

    @property
    def bbox(self) -> utils.BBox:
        """(left, top, right, bottom) tuple."""
        return self.x, self.y, self.x + self.width, self.y + self.height

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    def pixel_at(self, x: int, y: int) -> RGBA:
        """Color at canvas (x, y); transparent outside the footprint."""
        if not self.contains(x, y):
            return TRANSPARENT
        if self.pixels is None:
            return self.color
        r, g, b, a = self.pixels[y - self.y, x - self.x].tolist()
        return r, g, b, a

    def numpy(self, bbox: utils.BBox) -> np.ndarray:
        """
        Footprint colors over ``bbox`` as a ``uint8`` array of shape
        (height, width, 4), transparent outside the footprint.
        """
        left, top, right, bottom = bbox
        view = np.zeros((max(bottom - top, 0), max(right - left, 0), 4), dtype=np.uint8)
        inter = utils.intersect(bbox, self.bbox)
        if utils.is_empty(inter):
            return view
        target = view[inter[1] - top : inter[3] - top, inter[0] - left : inter[2] - left]
        if self.pixels is None:
            target[:] = self.color
        else:
            target[:] = self.pixels[
                inter[1] - self.y : inter[3] - self.y,
                inter[0] - self.x : inter[2] - self.x,
            ]
        return view

    def __repr__(self) -> str:
        return "%s(offset=(%d,%d) size=%dx%d z=%d %s)" % (
            self.__class__.__name__,
            self.x,
            self.y,
            self.width,
            self.height,
            self.z_index,
            self.blend_mode.name,
        )


class Layer:
    """
    A pixel source with placement and presentation state.

    :param content: Any :py:class:`~imageslapper.api.protocols.PixelSource`.
    :param position: (x, y) of the content origin on the canvas. Added to
        the translation of ``transform``.
    :param z_index: Stacking order.
    :param opacity: Opacity in [0, 1].
    :param blend_mode: :py:class:`~imageslapper.constants.BlendMode` or its
        value.
    :param transform: :py:class:`~imageslapper.api.transform.Transform`,
        identity when None.
    :param visible: Visibility flag.
    :param clip_mask: Optional :py:class:`~imageslapper.api.mask.ClipMask`.
    :param fingerprint: Explicit fingerprint. Computed from the content and
        presentation attributes when None.
    :param name: Optional label, ignored for rendering.
    :raise ValueError: on invalid opacity, blend mode or position.
    """

    def __init__(
        self,
        content: PixelSource,
        position: tuple[float, float] = (0, 0),
        z_index: int = 0,
        opacity: float = 1.0,
        blend_mode: Any = BlendMode.NORMAL,
        transform: Optional[Transform] = None,
        visible: bool = True,
        clip_mask: Optional[ClipMask] = None,
        fingerprint: Optional[int] = None,
        name: Optional[str] = None,
    ):
        self._serial = next(_SERIAL)
        self.name = name
        self.content = content
        self.position = position
        self.z_index = z_index
        self.opacity = opacity
        self.blend_mode = blend_mode
        self.transform = transform
        self.visible = visible
        self.clip_mask = clip_mask
        self._fingerprint = fingerprint

    def _invalidate(self) -> None:
        """Drop cached geometry and fingerprint after an attribute change."""
        self._fingerprint: Optional[int] = None
        self._bbox: Optional[utils.BBox] = None
        self._rendered: Optional[tuple[utils.BBox, np.ndarray]] = None

    @property
    def content(self) -> PixelSource:
        """Pixel source of this layer. Writable."""
        return self._content

    @content.setter
    def content(self, value: PixelSource) -> None:
        if not isinstance(value, PixelSource):
            raise TypeError(
                "Layer content must implement PixelSource, got %s"
                % type(value).__name__
            )
        self._content = value
        self._content_array: Optional[np.ndarray] = None
        self._invalidate()

    @property
    def position(self) -> tuple[float, float]:
        """(x, y) offset of the content origin. Writable."""
        return self._position

    @position.setter
    def position(self, value: tuple[float, float]) -> None:
        x, y = (float(v) for v in value)
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"Position must be finite, got {value!r}")
        self._position = (x, y)
        self._invalidate()

    @property
    def z_index(self) -> int:
        """Stacking order. Writable."""
        return self._z_index

    @z_index.setter
    def z_index(self, value: int) -> None:
        self._z_index = int(value)
        self._invalidate()

    @property
    def opacity(self) -> float:
        """Opacity in [0, 1] range. Writable."""
        return self._opacity

    @opacity.setter
    def opacity(self, value: float) -> None:
        if not (0.0 <= value <= 1.0):
            raise ValueError(f"Opacity must be in range [0, 1], got {value}")
        self._opacity = float(value)
        self._invalidate()

    @property
    def blend_mode(self) -> BlendMode:
        """Blend mode. Writable."""
        return self._blend_mode

    @blend_mode.setter
    def blend_mode(self, value: Any) -> None:
        self._blend_mode = BlendMode(value)
        self._invalidate()

    @property
    def transform(self) -> Transform:
        """Transform applied on top of the content. Writable."""
        return self._transform

    @transform.setter
    def transform(self, value: Optional[Transform]) -> None:
        if value is None:
            value = Transform.identity()
        if not isinstance(value, Transform):
            raise TypeError("Expected Transform, got %s" % type(value).__name__)
        self._transform = value
        self._invalidate()

    @property
    def visible(self) -> bool:
        """Layer visibility. Writable."""
        return self._visible

    @visible.setter
    def visible(self, value: bool) -> None:
        self._visible = bool(value)
        self._invalidate()

    @property
    def clip_mask(self) -> Optional[ClipMask]:
        """Optional clip mask. Writable."""
        return self._clip_mask

    @clip_mask.setter
    def clip_mask(self, value: Optional[ClipMask]) -> None:
        if value is not None and not isinstance(value, ClipMask):
            raise TypeError("Expected ClipMask, got %s" % type(value).__name__)
        self._clip_mask = value
        self._invalidate()

    @property
    def fingerprint(self) -> int:
        """
        Hash of the attributes that affect rendering. Writable.

        An explicit value stays in effect until any other attribute is set.
        """
        if self._fingerprint is None:
            self._fingerprint = self.compute_fingerprint()
        return self._fingerprint

    @fingerprint.setter
    def fingerprint(self, value: Optional[int]) -> None:
        self._fingerprint = value

    def compute_fingerprint(self) -> int:
        """Compute a 64-bit fingerprint from content and presentation state."""
        h = hashlib.blake2b(digest_size=8)
        h.update(numpy_io.get_digest(self._content))
        h.update(
            repr(
                (
                    self._position,
                    self._z_index,
                    self._opacity,
                    self._blend_mode.value,
                    attrs.astuple(self._transform),
                    self._visible,
                )
            ).encode("utf-8")
        )
        if self._clip_mask is not None:
            h.update(repr(self._clip_mask.bbox).encode("ascii"))
            h.update(self._clip_mask.data)
        return int.from_bytes(h.digest(), "big")

    @property
    def serial(self) -> int:
        """Creation order of this layer."""
        return self._serial

    @property
    def stacking_key(self) -> tuple[int, int]:
        """(z_index, serial) sort key for compositing order."""
        return self._z_index, self._serial

    @property
    def width(self) -> int:
        """Intrinsic width of the content, before transform."""
        return int(self._content.width)

    @property
    def height(self) -> int:
        """Intrinsic height of the content, before transform."""
        return int(self._content.height)

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) tuple."""
        return self.width, self.height

    @property
    def effective_transform(self) -> Transform:
        """Transform with the layer position folded into its translation."""
        return self._transform.translated(*self._position)

    @property
    def bbox(self) -> utils.BBox:
        """
        Bounding box of the transformed content as (left, top, right,
        bottom). (0, 0, 0, 0) for zero-area content.
        """
        if self._bbox is None:
            self._bbox = self._compute_bbox()
        return self._bbox

    def _compute_bbox(self) -> utils.BBox:
        if self.width == 0 or self.height == 0:
            return utils.EMPTY_BBOX
        transform = self.effective_transform
        bbox = transform.bounds(self.width, self.height)
        if transform.rotation % 360.0 == 0.0 and all(
            float(v).is_integer() for v in transform.translation
        ):
            return bbox

        # Tighten to the pixels that actually map into the content.
        covered = self._coverage(bbox)
        rows = np.flatnonzero(covered.any(axis=1))
        cols = np.flatnonzero(covered.any(axis=0))
        if rows.size == 0:
            return utils.EMPTY_BBOX
        return (
            bbox[0] + int(cols[0]),
            bbox[1] + int(rows[0]),
            bbox[0] + int(cols[-1]) + 1,
            bbox[1] + int(rows[-1]) + 1,
        )

    def _content_coordinates(self, bbox: utils.BBox) -> tuple[np.ndarray, np.ndarray]:
        ys, xs = np.mgrid[bbox[1] : bbox[3], bbox[0] : bbox[2]]
        return self.effective_transform.to_content(
            xs.astype(np.float64), ys.astype(np.float64)
        )

    def _coverage(self, bbox: utils.BBox) -> np.ndarray:
        cx, cy = self._content_coordinates(bbox)
        ix, iy = np.floor(cx), np.floor(cy)
        return (ix >= 0) & (ix < self.width) & (iy >= 0) & (iy < self.height)

    def unchanged_since(self, prev_state: LayerState) -> bool:
        """Return True if the layer matches the state's fingerprint."""
        return prev_state.fingerprint is not None and self.fingerprint == prev_state.fingerprint

    def compute_pixel_at(self, x: int, y: int) -> RGBA:
        """
        Source color of canvas pixel (x, y) for this layer, with opacity
        applied. Blend modes are not applied here; that needs the
        destination pixel and happens in the compositor.
        """
        cx, cy = self.effective_transform.to_content(x, y)
        ix, iy = int(math.floor(cx)), int(math.floor(cy))
        if not (0 <= ix < self.width and 0 <= iy < self.height):
            return TRANSPARENT
        r, g, b, a = self._content.pixel_at(ix, iy)
        alpha = min(max(int(math.floor(a * self._opacity)), 0), 255)
        if alpha == 0:
            return TRANSPARENT
        return r, g, b, alpha

    def render(self, bbox: utils.BBox) -> np.ndarray:
        """
        Source colors of every canvas pixel in ``bbox``, with opacity and
        clip mask applied.

        The last rendered area is kept, so asking again for any box inside it
        does not sample the content again.

        :return: Read-only ``uint8`` array of shape (height, width, 4).
        """
        cached = self._rendered
        if (
            cached is not None
            and not utils.is_empty(bbox)
            and utils.intersect(cached[0], bbox) == bbox
        ):
            left, top = cached[0][:2]
            return cached[1][bbox[1] - top : bbox[3] - top, bbox[0] - left : bbox[2] - left]

        if self._content_array is None:
            self._content_array = numpy_io.get_array(self._content)
        cx, cy = self._content_coordinates(bbox)
        colors = numpy_io.sample(self._content_array, cx, cy)
        colors[..., 3] = _scale_alpha(colors[..., 3], self._opacity)
        if self._clip_mask is not None:
            values = self._clip_mask.numpy(bbox).astype(np.uint16)
            colors[..., 3] = (colors[..., 3].astype(np.uint16) * values // 255).astype(
                np.uint8
            )
        colors = _clear_transparent(colors)
        colors.setflags(write=False)
        self._rendered = (bbox, colors)
        return colors

    def get_affected_bounds(
        self,
        prev_state: Optional[LayerState] = None,
        viewport: Optional[utils.BBox] = None,
    ) -> utils.BBox:
        """
        Bounds to revisit: the current bbox unioned with the previous
        footprint, so that vacated pixels get erased too. The result is
        limited to non-negative coordinates and to ``viewport`` if given.
        """
        bounds = self.bbox
        if prev_state is not None:
            bounds = utils.union(bounds, prev_state.bbox)
        bounds = utils.intersect(bounds, _CANVAS_QUADRANT)
        if viewport is not None:
            bounds = utils.intersect(bounds, viewport)
        return bounds

    def collect_changes(
        self,
        prev_state: Optional[LayerState] = None,
        viewport: Optional[utils.BBox] = None,
    ) -> DeltaBuffer:
        """
        Collect the pixels that changed since ``prev_state``.

        :param prev_state: Snapshot of the previous render, or None to emit
            every pixel in the layer bounds.
        :param viewport: Canvas bbox (left, top, right, bottom). Pixels
            outside it are dropped.
        :return: :py:class:`~imageslapper.composite.delta.DeltaBuffer` in
            row-major order with the affected bounds as its dirty region.
        """
        logger.debug(
            "Collecting changes for layer at position (%g, %g), visible: %s"
            % (self._position[0], self._position[1], self._visible)
        )
        delta = DeltaBuffer()
        if not self._visible or (
            prev_state is not None and self.unchanged_since(prev_state)
        ):
            logger.debug("Layer is either invisible or unchanged since the previous state.")
            return delta
        if self.width == 0 or self.height == 0:
            logger.debug("Layer content has zero area.")
            return delta

        bounds = self.get_affected_bounds(prev_state, viewport)
        logger.debug("Affected bounds: (%d, %d, %d, %d)" % bounds)
        if utils.is_empty(bounds):
            return delta

        colors = self.render(bounds)
        if prev_state is None:
            changed = np.ones(colors.shape[:2], dtype=bool)
        else:
            changed = np.any(colors != prev_state.numpy(bounds), axis=2)

        ys, xs = np.nonzero(changed)
        delta = DeltaBuffer.from_arrays(
            xs + bounds[0], ys + bounds[1], colors[ys, xs], Region.from_bbox(bounds)
        )
        delta.log_summary()
        return delta

    def footprint(self, viewport: Optional[utils.BBox] = None) -> utils.BBox:
        """Canvas area a snapshot of this layer covers, empty when hidden."""
        bbox = self.bbox if self._visible else utils.EMPTY_BBOX
        if viewport is not None:
            bbox = utils.intersect(bbox, viewport)
        return bbox

    def snapshot(self, viewport: Optional[utils.BBox] = None) -> LayerState:
        """
        Capture the current rendered footprint for the next
        :py:meth:`collect_changes` call.

        :param viewport: Canvas bbox to limit the captured footprint.
        """
        bbox = self.footprint(viewport)
        color = TRANSPARENT
        if self.width and self.height:
            r, g, b, a = self._content.pixel_at(0, 0)
            color = (r, g, b, int(_scale_alpha(np.array(a), self._opacity)))
        return LayerState(
            bbox[0],
            bbox[1],
            bbox[2] - bbox[0],
            bbox[3] - bbox[1],
            color=color,
            opacity=self._opacity,
            z_index=self._z_index,
            blend_mode=self._blend_mode,
            fingerprint=self.fingerprint,
            pixels=None if utils.is_empty(bbox) else self.render(bbox),
        )

    def __repr__(self) -> str:
        return "%s(%r offset=(%g,%g) size=%dx%d z=%d%s)" % (
            self.__class__.__name__,
            self.name,
            self._position[0],
            self._position[1],
            self.width,
            self.height,
            self._z_index,
            "" if self._visible else " hidden",
        )
