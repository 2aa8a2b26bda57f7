import logging
from typing import Any, Optional

import numpy as np

from imageslapper.api.layers import Layer
from imageslapper.api.sources import Rectangle
from imageslapper.composite.delta import DeltaBuffer

logging.basicConfig(level=logging.DEBUG)

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
WHITE = (255, 255, 255, 255)
TRANSPARENT = (0, 0, 0, 0)


class PixelOnlySource(object):
    """Source exposing nothing but the bare protocol."""

    def __init__(self, array: np.ndarray):
        self.array = array
        self.width = array.shape[1]
        self.height = array.shape[0]
        self.calls = 0

    def pixel_at(self, x: int, y: int) -> tuple:
        self.calls += 1
        return tuple(self.array[y, x].tolist())


def solid_layer(
    size: tuple[int, int] = (10, 10),
    color: Any = RED,
    position: tuple[float, float] = (0, 0),
    **kwargs: Any,
) -> Layer:
    return Layer(Rectangle(size[0], size[1], fill_color=color), position=position, **kwargs)


def as_dict(delta: DeltaBuffer) -> dict:
    return {(d.x, d.y): d.color for d in delta}


def gradient(width: int, height: int, alpha: Optional[int] = 255) -> np.ndarray:
    """Array where every pixel is distinct."""
    array = np.zeros((height, width, 4), dtype=np.uint8)
    ys, xs = np.mgrid[0:height, 0:width]
    array[..., 0] = xs * 10
    array[..., 1] = ys * 10
    array[..., 2] = 7
    array[..., 3] = alpha
    return array
