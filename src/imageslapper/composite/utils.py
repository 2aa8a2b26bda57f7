"""Utility functions for composite operations."""

import numpy as np
from numpy.typing import NDArray


def divide(a: NDArray[np.floating], b: NDArray[np.floating]) -> NDArray[np.floating]:
    """Safe division for color ops. Division by zero yields 0."""
    with np.errstate(divide="ignore", invalid="ignore"):
        c = np.true_divide(a, b)
        c[~np.isfinite(c)] = 0.0
    return c


def clip(x: NDArray[np.floating]) -> NDArray[np.floating]:
    """Clip between [0, 1]."""
    return np.clip(x, 0.0, 1.0)


def to_float(values: NDArray[np.uint8]) -> NDArray[np.float32]:
    """Normalize 8-bit channel values to [0, 1]."""
    return values.astype(np.float32) / 255.0


def to_uint8(values: NDArray[np.floating]) -> NDArray[np.uint8]:
    """Round [0, 1] channel values back to 8 bits."""
    return np.rint(clip(values) * 255.0).astype(np.uint8)
