"""
Pixel deltas produced by diffing a layer against its previous state.
"""

import logging
import math
from typing import Iterator, Optional

import numpy as np
from attrs import define, field

from imageslapper import utils
from imageslapper.validators import range_, to_rgba

logger = logging.getLogger(__name__)


@define(frozen=True)
class PixelDelta:
    """
    A single pixel change.

    .. py:attribute:: x

        Absolute canvas x coordinate.

    .. py:attribute:: y

        Absolute canvas y coordinate.

    .. py:attribute:: color

        New RGBA value, opacity already applied.
    """

    x: int = field(converter=int)
    y: int = field(converter=int)
    color: tuple[int, int, int, int] = field(converter=to_rgba)


@define(frozen=True)
class Region:
    """
    Rectangular dirty region hint.
    """

    x: int = field(converter=int)
    y: int = field(converter=int)
    width: int = field(converter=int, validator=range_(0, math.inf))
    height: int = field(converter=int, validator=range_(0, math.inf))

    @classmethod
    def from_bbox(cls, bbox: utils.BBox) -> "Region":
        """Create a region from a (left, top, right, bottom) tuple."""
        if utils.is_empty(bbox):
            return cls(0, 0, 0, 0)
        return cls(bbox[0], bbox[1], bbox[2] - bbox[0], bbox[3] - bbox[1])

    @property
    def left(self) -> int:
        return self.x

    @property
    def top(self) -> int:
        return self.y

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def bbox(self) -> utils.BBox:
        """(left, top, right, bottom) tuple."""
        return self.left, self.top, self.right, self.bottom

    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def union(self, other: "Region") -> "Region":
        return Region.from_bbox(utils.union(self.bbox, other.bbox))

    def intersect(self, other: "Region") -> "Region":
        return Region.from_bbox(utils.intersect(self.bbox, other.bbox))


@define
class DeltaBuffer:
    """
    Collection of pixel changes to be applied.

    Changes are kept in the order they were collected, row-major within each
    dirty region. ``dirty_regions`` is None until a region is recorded.
    """

    changes: list[PixelDelta] = field(factory=list)
    dirty_regions: Optional[list[Region]] = None

    @classmethod
    def from_arrays(
        cls,
        xs: np.ndarray,
        ys: np.ndarray,
        colors: np.ndarray,
        region: Optional[Region] = None,
    ) -> "DeltaBuffer":
        """
        Build a buffer from parallel coordinate and (N, 4) color arrays.

        :param region: Dirty region to record when there is any change.
        """
        changes = [
            PixelDelta(x, y, tuple(color))
            for x, y, color in zip(xs.tolist(), ys.tolist(), colors.tolist())
        ]
        buffer = cls(changes)
        if changes and region is not None:
            buffer.add_region(region)
        return buffer

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[PixelDelta]:
        return iter(self.changes)

    def is_empty(self) -> bool:
        return not self.changes

    def add_region(self, region: Region) -> None:
        if self.dirty_regions is None:
            self.dirty_regions = []
        self.dirty_regions.append(region)

    def extend(self, other: "DeltaBuffer") -> None:
        """Append another buffer's changes and regions, keeping order."""
        self.changes.extend(other.changes)
        for region in other.dirty_regions or []:
            self.add_region(region)

    @property
    def bbox(self) -> utils.BBox:
        """Union of the dirty regions as (left, top, right, bottom)."""
        bbox = utils.EMPTY_BBOX
        for region in self.dirty_regions or []:
            bbox = utils.union(bbox, region.bbox)
        return bbox

    def numpy(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Return (xs, ys, colors) arrays. ``colors`` is ``uint8`` with shape
        (N, 4).
        """
        xs = np.fromiter((d.x for d in self.changes), dtype=np.int64, count=len(self))
        ys = np.fromiter((d.y for d in self.changes), dtype=np.int64, count=len(self))
        colors = np.array([d.color for d in self.changes], dtype=np.uint8).reshape(
            (-1, 4)
        )
        return xs, ys, colors

    def log_summary(self) -> None:
        logger.debug(
            "DeltaBuffer contains %d pixel changes and %d dirty regions."
            % (len(self.changes), len(self.dirty_regions or []))
        )
