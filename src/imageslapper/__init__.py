"""
imageslapper: layer-based incremental compositing of RGBA rasters.

Layers wrap pixel sources with placement and presentation state, compute
only the pixels that changed since the previous frame, and a compositor
blends those changes onto a shared canvas.

Basic usage::

    from imageslapper import Canvas, Compositor, Layer, Rectangle

    canvas = Canvas(64, 64)
    compositor = Compositor(canvas)

    box = Layer(Rectangle(10, 10, fill_color=(255, 0, 0)), position=(0, 0))
    states = compositor.render([box])

    # Next frame: only the vacated and newly covered pixels are written.
    box = Layer(Rectangle(10, 10, fill_color=(255, 0, 0)), position=(5, 5))
    states = compositor.render([box], states)

    canvas.topil().save('frame.png')

Architecture:

- :py:mod:`imageslapper.api`: pixel sources, layers, masks, transforms, canvas
- :py:mod:`imageslapper.composite`: deltas, blend modes and the compositor
"""

from imageslapper.api.canvas import Canvas
from imageslapper.api.layers import Layer, LayerState
from imageslapper.api.mask import ClipMask
from imageslapper.api.protocols import PixelSource
from imageslapper.api.sources import Border, ImageSource, Rectangle
from imageslapper.api.transform import Transform
from imageslapper.composite import Compositor, DeltaBuffer, PixelDelta, Region, composite
from imageslapper.constants import BlendMode, BorderStyle
from imageslapper.version import __version__

__all__ = [
    "BlendMode",
    "Border",
    "BorderStyle",
    "Canvas",
    "ClipMask",
    "Compositor",
    "DeltaBuffer",
    "ImageSource",
    "Layer",
    "LayerState",
    "PixelDelta",
    "PixelSource",
    "Rectangle",
    "Region",
    "Transform",
    "__version__",
    "composite",
]
