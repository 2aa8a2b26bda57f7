import logging

import numpy as np
import pytest

from imageslapper.api import numpy_io
from imageslapper.api.sources import ImageSource, Rectangle

from ..utils import RED, PixelOnlySource, gradient

logger = logging.getLogger(__name__)


def test_get_array_from_pixel_at() -> None:
    array = gradient(4, 3)
    source = PixelOnlySource(array)
    np.testing.assert_array_equal(numpy_io.get_array(source), array)
    assert source.calls == 12


def test_get_array_from_numpy() -> None:
    rect = Rectangle(4, 3, fill_color=RED)
    result = numpy_io.get_array(rect)
    assert result.shape == (3, 4, 4)
    assert (result == RED).all()


def test_get_array_bad_shape() -> None:
    class Broken(object):
        width = 4
        height = 4

        def pixel_at(self, x: int, y: int) -> tuple:
            return (0, 0, 0, 0)

        def numpy(self) -> np.ndarray:
            return np.zeros((2, 2, 4), dtype=np.uint8)

    with pytest.raises(ValueError):
        numpy_io.get_array(Broken())


def test_sample() -> None:
    content = gradient(3, 2)
    cx = np.array([[0.0, 2.9, 3.0], [-0.1, 1.5, 0.0]])
    cy = np.array([[0.0, 1.9, 0.0], [0.0, 1.0, 2.0]])
    result = numpy_io.sample(content, cx, cy)
    assert result.shape == (2, 3, 4)
    assert result[0, 0].tolist() == content[0, 0].tolist()
    assert result[0, 1].tolist() == content[1, 2].tolist()
    assert result[1, 1].tolist() == content[1, 1].tolist()
    assert not result[0, 2].any()
    assert not result[1, 0].any()
    assert not result[1, 2].any()


def test_get_digest() -> None:
    a = PixelOnlySource(gradient(3, 3))
    b = PixelOnlySource(gradient(3, 3))
    c = PixelOnlySource(gradient(3, 3, alpha=1))
    assert numpy_io.get_digest(a) == numpy_io.get_digest(b)
    assert numpy_io.get_digest(a) != numpy_io.get_digest(c)


def test_get_digest_uses_fingerprint() -> None:
    rect = Rectangle(3, 3, fill_color=RED)
    assert numpy_io.get_digest(rect) == numpy_io.get_digest(Rectangle(3, 3, fill_color=RED))
    # Same pixels, different kinds of source.
    assert numpy_io.get_digest(rect) != numpy_io.get_digest(ImageSource(rect.numpy()))
