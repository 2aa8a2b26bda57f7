"""
Composite module for applying layer changes onto a canvas.

Key modules:

- :py:mod:`imageslapper.composite.delta`: pixel deltas and dirty regions
- :py:mod:`imageslapper.composite.blend`: blend mode implementations
- :py:mod:`imageslapper.composite.compositor`: applying deltas in z-order

Example usage::

    from imageslapper.composite import Compositor

    compositor = Compositor(canvas)
    delta = layer.collect_changes(prev_state, viewport=canvas.bbox)
    compositor.apply(delta, layer.blend_mode)

Deltas are blended over the current canvas pixel, so a layer whose pixels
did not change costs nothing to re-render.
"""

from imageslapper.composite.compositor import Compositor, apply, composite
from imageslapper.composite.delta import DeltaBuffer, PixelDelta, Region

__all__ = [
    "Compositor",
    "DeltaBuffer",
    "PixelDelta",
    "Region",
    "apply",
    "composite",
]
