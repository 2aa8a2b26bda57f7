"""
User-facing objects of the compositing engine.

Key modules:

- :py:mod:`imageslapper.api.protocols`: the ``PixelSource`` protocol
- :py:mod:`imageslapper.api.sources`: built-in pixel sources
- :py:mod:`imageslapper.api.layers`: ``Layer`` and ``LayerState``
- :py:mod:`imageslapper.api.transform`: content to canvas mapping
- :py:mod:`imageslapper.api.mask`: clip masks
- :py:mod:`imageslapper.api.canvas`: the shared RGBA raster
- :py:mod:`imageslapper.api.pil_io`: PIL/Pillow conversion utilities
- :py:mod:`imageslapper.api.numpy_io`: NumPy rendering utilities
"""
