import logging
import threading

import numpy as np
import pytest

from imageslapper.api.canvas import Canvas
from imageslapper.composite import blend
from imageslapper.composite.compositor import Compositor, apply, composite
from imageslapper.composite.delta import DeltaBuffer, PixelDelta
from imageslapper.constants import BlendMode

from ..utils import BLUE, GREEN, RED, TRANSPARENT, WHITE, solid_layer

logger = logging.getLogger(__name__)


def test_apply_scenario_a(canvas: Canvas) -> None:
    delta = solid_layer().collect_changes(None, viewport=canvas.bbox)
    assert apply(canvas, delta) == 100
    expected = np.zeros((20, 20, 4), dtype=np.uint8)
    expected[:10, :10] = RED
    np.testing.assert_array_equal(canvas.data, expected)


def test_apply_empty(canvas: Canvas) -> None:
    assert apply(canvas, DeltaBuffer()) == 0


def test_apply_drops_outside(canvas: Canvas) -> None:
    delta = DeltaBuffer(
        [PixelDelta(-1, 0, RED), PixelDelta(20, 0, RED), PixelDelta(0, 20, RED), PixelDelta(1, 1, RED)]
    )
    assert apply(canvas, delta) == 1
    assert canvas.get_pixel(1, 1) == RED
    assert np.count_nonzero(canvas.data[..., 3]) == 1


def test_apply_buffer_mismatch(canvas: Canvas) -> None:
    canvas._data = np.zeros((5, 5, 4), dtype=np.uint8)
    with pytest.raises(ValueError):
        apply(canvas, DeltaBuffer([PixelDelta(0, 0, RED)]))


def test_apply_buffer_dtype(canvas: Canvas) -> None:
    canvas._data = np.zeros((20, 20, 4), dtype=np.float32)
    with pytest.raises(ValueError):
        apply(canvas, DeltaBuffer([PixelDelta(0, 0, RED)]))


def test_apply_backdrop_mismatch(canvas: Canvas) -> None:
    with pytest.raises(ValueError):
        apply(canvas, DeltaBuffer(), backdrop=np.zeros((2, 2, 4), dtype=np.uint8))


def test_apply_duplicates_in_order(white_canvas: Canvas) -> None:
    color = (255, 0, 0, 128)
    delta = DeltaBuffer([PixelDelta(3, 3, color), PixelDelta(3, 3, color)])
    assert apply(white_canvas, delta) == 2

    expected = np.array([WHITE], dtype=np.uint8)
    for _ in range(2):
        expected = blend.blend_rgba(expected, np.array([color], dtype=np.uint8))
    assert white_canvas.get_pixel(3, 3) == tuple(expected[0].tolist())


def test_apply_blend_mode(white_canvas: Canvas) -> None:
    delta = DeltaBuffer([PixelDelta(0, 0, (10, 200, 30, 255))])
    apply(white_canvas, delta, BlendMode.MULTIPLY)
    assert white_canvas.get_pixel(0, 0) == (10, 200, 30, 255)


def test_erasure_without_backdrop(canvas: Canvas) -> None:
    canvas.fill(RED)
    apply(canvas, DeltaBuffer([PixelDelta(0, 0, TRANSPARENT)]))
    assert canvas.get_pixel(0, 0) == RED


def test_erasure_with_backdrop(canvas: Canvas) -> None:
    backdrop = canvas.numpy()
    canvas.fill(RED)
    apply(canvas, DeltaBuffer([PixelDelta(0, 0, TRANSPARENT)]), backdrop=backdrop)
    assert canvas.get_pixel(0, 0) == TRANSPARENT
    assert canvas.get_pixel(1, 0) == RED


def test_compositor_movement() -> None:
    canvas = Canvas(20, 20, BLUE)
    compositor = Compositor(canvas)
    states = compositor.render([solid_layer(position=(0, 0))])
    assert canvas.get_pixel(0, 0) == RED

    states = compositor.render([solid_layer(position=(5, 5))], states)
    assert canvas.get_pixel(0, 0) == BLUE
    assert canvas.get_pixel(4, 9) == BLUE
    assert canvas.get_pixel(7, 7) == RED
    assert canvas.get_pixel(14, 14) == RED
    assert canvas.get_pixel(15, 15) == BLUE
    assert states[0].bbox == (5, 5, 15, 15)


def test_compositor_transparent_backdrop() -> None:
    canvas = Canvas(20, 20, BLUE)
    compositor = Compositor(canvas, backdrop=False)
    assert not compositor.backdrop.any()
    states = compositor.render([solid_layer(position=(0, 0))])
    compositor.render([solid_layer(position=(5, 5))], states)
    assert canvas.get_pixel(0, 0) == TRANSPARENT
    assert canvas.get_pixel(7, 7) == RED
    assert canvas.get_pixel(19, 19) == BLUE


def test_compositor_backdrop_mismatch(canvas: Canvas) -> None:
    with pytest.raises(ValueError):
        Compositor(canvas, backdrop=np.zeros((2, 2, 4), dtype=np.uint8))


def test_compositor_explicit_backdrop(canvas: Canvas) -> None:
    backdrop = np.zeros((20, 20, 4), dtype=np.uint8)
    backdrop[...] = GREEN
    compositor = Compositor(canvas, backdrop=backdrop)
    canvas.fill(RED)
    compositor.apply(DeltaBuffer([PixelDelta(2, 2, TRANSPARENT)]))
    assert canvas.get_pixel(2, 2) == GREEN


def test_compositor_unchanged(canvas: Canvas) -> None:
    compositor = Compositor(canvas)
    layers = [solid_layer(), solid_layer(color=GREEN, position=(5, 5), z_index=1)]
    states = compositor.render(layers)
    before = canvas.numpy()
    new_states = compositor.render(layers, states)
    np.testing.assert_array_equal(canvas.data, before)
    assert [s.fingerprint for s in new_states] == [s.fingerprint for s in states]
    assert all(new is old for new, old in zip(new_states, states))


def test_z_order(canvas: Canvas) -> None:
    top = solid_layer(color=RED, z_index=1)
    bottom = solid_layer(color=GREEN, position=(5, 5), z_index=0)
    states = composite(canvas, [top, bottom])
    assert canvas.get_pixel(7, 7) == RED
    assert canvas.get_pixel(12, 12) == GREEN
    assert states[0].fingerprint == top.fingerprint
    assert states[1].fingerprint == bottom.fingerprint


def test_z_order_ties(canvas: Canvas) -> None:
    first = solid_layer(color=RED)
    second = solid_layer(color=GREEN, position=(5, 5))
    composite(canvas, [second, first])
    assert canvas.get_pixel(7, 7) == GREEN


def test_render_multiply(white_canvas: Canvas) -> None:
    layer = solid_layer(color=(10, 200, 30), blend_mode=BlendMode.MULTIPLY)
    composite(white_canvas, [layer])
    assert white_canvas.get_pixel(0, 0) == (10, 200, 30, 255)
    assert white_canvas.get_pixel(10, 10) == WHITE


def test_render_states_mismatch(canvas: Canvas) -> None:
    with pytest.raises(ValueError):
        Compositor(canvas).render([solid_layer()], [])


def test_concurrent_apply(canvas: Canvas) -> None:
    compositor = Compositor(canvas)
    layers = [solid_layer(size=(5, 20), color=GREEN, position=(5 * i, 0)) for i in range(4)]
    deltas = [layer.collect_changes(None, viewport=canvas.bbox) for layer in layers]
    threads = [threading.Thread(target=compositor.apply, args=(delta,)) for delta in deltas]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert (canvas.data == GREEN).all()


YELLOW = (255, 255, 0, 255)


def _stack(lower_color=RED, lower_position=(0, 0), lower_z=0, **kwargs):
    lower = solid_layer(color=lower_color, position=lower_position, z_index=lower_z, **kwargs)
    upper = solid_layer(color=GREEN, position=(5, 5), z_index=1)
    return [lower, upper]


def test_composite_frames() -> None:
    canvas = Canvas(20, 20, BLUE)
    background = canvas.numpy()
    states = composite(canvas, [solid_layer(position=(0, 0))], backdrop=background)
    composite(canvas, [solid_layer(position=(5, 5))], states, backdrop=background)
    assert canvas.get_pixel(0, 0) == BLUE
    assert canvas.get_pixel(7, 7) == RED
    assert canvas.get_pixel(14, 14) == RED


def test_composite_requires_backdrop(canvas: Canvas) -> None:
    states = composite(canvas, [solid_layer()])
    with pytest.raises(ValueError):
        composite(canvas, [solid_layer(position=(5, 5))], states)


def test_lower_layer_recolored() -> None:
    canvas = Canvas(20, 20, BLUE)
    compositor = Compositor(canvas)
    states = compositor.render(_stack())
    assert canvas.get_pixel(7, 7) == GREEN

    compositor.render(_stack(lower_color=YELLOW), states)
    assert canvas.get_pixel(7, 7) == GREEN
    assert canvas.get_pixel(2, 2) == YELLOW
    assert canvas.get_pixel(12, 12) == GREEN


def test_lower_layer_moves_under_upper() -> None:
    canvas = Canvas(20, 20, BLUE)
    compositor = Compositor(canvas)
    states = compositor.render(_stack())

    compositor.render(_stack(lower_position=(10, 10)), states)
    assert canvas.get_pixel(2, 2) == BLUE
    assert canvas.get_pixel(7, 7) == GREEN
    assert canvas.get_pixel(12, 12) == GREEN
    assert canvas.get_pixel(16, 16) == RED


def test_restack() -> None:
    canvas = Canvas(20, 20, BLUE)
    compositor = Compositor(canvas)
    states = compositor.render(_stack())
    compositor.render(_stack(lower_z=2), states)
    assert canvas.get_pixel(7, 7) == RED


def test_hide_layer() -> None:
    canvas = Canvas(20, 20, BLUE)
    compositor = Compositor(canvas)
    states = compositor.render(_stack())
    states = compositor.render(_stack(visible=False), states)
    assert canvas.get_pixel(2, 2) == BLUE
    assert canvas.get_pixel(7, 7) == GREEN
    assert states[0].width == 0


def test_blend_mode_change() -> None:
    canvas = Canvas(20, 20, WHITE)
    compositor = Compositor(canvas)
    layer = solid_layer(color=(10, 200, 30))
    states = compositor.render([layer])
    layer.blend_mode = BlendMode.DARKEN
    compositor.render([layer], states)
    assert canvas.get_pixel(0, 0) == (10, 200, 30, 255)

    canvas = Canvas(20, 20, (0, 0, 0, 255))
    compositor = Compositor(canvas)
    layer = solid_layer(color=(10, 200, 30))
    states = compositor.render([layer])
    layer.blend_mode = BlendMode.DARKEN
    compositor.render([layer], states)
    assert canvas.get_pixel(0, 0) == (0, 0, 0, 255)


def test_opacity_decrease(canvas: Canvas) -> None:
    compositor = Compositor(canvas)
    states = compositor.render([solid_layer()])
    assert canvas.get_pixel(0, 0) == RED
    compositor.render([solid_layer(opacity=0.5)], states)
    assert canvas.get_pixel(0, 0) == (255, 0, 0, 127)


def test_translucent_recolor(white_canvas: Canvas) -> None:
    compositor = Compositor(white_canvas)
    states = compositor.render([solid_layer(color=(0, 0, 0, 255))])
    compositor.render([solid_layer(color=(0, 0, 0, 0))], states)
    assert white_canvas.get_pixel(0, 0) == WHITE


@pytest.mark.parametrize(
    "frames",
    [
        [
            dict(lower_position=(0, 0)),
            dict(lower_position=(3, 4)),
            dict(lower_position=(3, 4), lower_color=YELLOW),
            dict(lower_position=(12, 1), opacity=0.25),
            dict(lower_position=(12, 1), lower_z=5, blend_mode=BlendMode.SCREEN),
            dict(lower_position=(-4, 15), visible=False),
            dict(lower_position=(-4, 15)),
        ],
    ],
)
def test_matches_full_render(frames: list) -> None:
    canvas = Canvas(20, 20, (40, 40, 40, 200))
    background = canvas.numpy()
    compositor = Compositor(canvas)
    states = None
    for kwargs in frames:
        states = compositor.render(_stack(**kwargs), states)

        expected = Canvas.frombytes(background.tobytes(), 20, 20)
        Compositor(expected).render(_stack(**kwargs))
        np.testing.assert_array_equal(canvas.data, expected.data)
