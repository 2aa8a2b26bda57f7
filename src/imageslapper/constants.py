"""
Various constants for imageslapper
"""
from enum import Enum

#: Fully transparent black, returned for every out-of-bounds query.
TRANSPARENT = (0, 0, 0, 0)


class BlendMode(Enum):
    """
    Blend modes.

    The formula for each mode lives in :py:mod:`imageslapper.composite.blend`.
    """
    NORMAL = 'normal'
    MULTIPLY = 'multiply'
    SCREEN = 'screen'
    OVERLAY = 'overlay'
    DARKEN = 'darken'
    LIGHTEN = 'lighten'


class BorderStyle(Enum):
    """
    Border styles for rectangles.
    """
    SOLID = 'solid'
    DASHED = 'dashed'
