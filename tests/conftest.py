"""Pytest configuration for imageslapper tests."""

import pytest

from imageslapper.api.canvas import Canvas


@pytest.fixture
def canvas() -> Canvas:
    return Canvas(20, 20)


@pytest.fixture
def white_canvas() -> Canvas:
    return Canvas(20, 20, (255, 255, 255, 255))
