"""
Blend mode implementations.

Every blend function takes the backdrop color ``Cb`` and the source color
``Cs`` as float arrays in [0, 1] and returns the mixed color ``B(Cb, Cs)``.
Alpha is handled once, in :py:func:`blend`, with the separable compositing
formula::

    ao = as + ab * (1 - as)
    Co = (as * (1 - ab) * Cs + as * ab * B(Cb, Cs) + (1 - as) * ab * Cb) / ao

With ``B = Cs`` this reduces to plain source-over.
"""
import logging
from typing import Union

import numpy as np

from imageslapper.composite import utils
from imageslapper.constants import BlendMode

logger = logging.getLogger(__name__)


# Separable blend functions
def normal(Cb, Cs):
    return Cs


def multiply(Cb, Cs):
    return Cb * Cs


def screen(Cb, Cs):
    return Cb + Cs - (Cb * Cs)


def overlay(Cb, Cs):
    return hard_light(Cs, Cb)


def darken(Cb, Cs):
    return np.minimum(Cb, Cs)


def lighten(Cb, Cs):
    return np.maximum(Cb, Cs)


def hard_light(Cb, Cs):
    index = Cs > 0.5
    B = multiply(Cb, 2 * Cs)
    B[index] = screen(Cb, 2 * Cs - 1)[index]
    return B


"""Blend function table."""
BLEND_FUNC = {
    BlendMode.NORMAL: normal,
    BlendMode.MULTIPLY: multiply,
    BlendMode.SCREEN: screen,
    BlendMode.OVERLAY: overlay,
    BlendMode.DARKEN: darken,
    BlendMode.LIGHTEN: lighten,
}


def blend(
    color_b: np.ndarray,
    alpha_b: np.ndarray,
    color_s: np.ndarray,
    alpha_s: np.ndarray,
    blend_mode: Union[BlendMode, str] = BlendMode.NORMAL,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Composite a source over a backdrop.

    :param color_b: Backdrop color, shape (..., 3), in [0, 1].
    :param alpha_b: Backdrop alpha, shape (..., 1), in [0, 1].
    :param color_s: Source color, shape (..., 3), in [0, 1].
    :param alpha_s: Source alpha, shape (..., 1), in [0, 1].
    :param blend_mode: :py:class:`~imageslapper.constants.BlendMode` or its
        value.
    :return: (color, alpha) tuple with the same shapes as the backdrop.
    """
    blend_mode = BlendMode(blend_mode)
    blend_fn = BLEND_FUNC[blend_mode]
    alpha = alpha_s + alpha_b * (1.0 - alpha_s)
    color_t = (
        alpha_s * (1.0 - alpha_b) * color_s
        + alpha_s * alpha_b * blend_fn(color_b, color_s)
        + (1.0 - alpha_s) * alpha_b * color_b
    )
    color = utils.clip(utils.divide(color_t, np.broadcast_to(alpha, color_t.shape)))
    return color, utils.clip(alpha)


def blend_rgba(
    backdrop: np.ndarray,
    source: np.ndarray,
    blend_mode: Union[BlendMode, str] = BlendMode.NORMAL,
) -> np.ndarray:
    """
    Composite 8-bit RGBA ``source`` pixels over 8-bit RGBA ``backdrop``
    pixels. Both arrays have shape (..., 4); the result is ``uint8`` of the
    same shape.
    """
    if backdrop.shape != source.shape:
        raise ValueError(
            "Shape mismatch: backdrop %s vs source %s" % (backdrop.shape, source.shape)
        )
    b = utils.to_float(backdrop)
    s = utils.to_float(source)
    color, alpha = blend(b[..., :3], b[..., 3:4], s[..., :3], s[..., 3:4], blend_mode)
    return np.concatenate((utils.to_uint8(color), utils.to_uint8(alpha)), axis=-1)
