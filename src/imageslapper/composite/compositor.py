"""
Compositor module.

Applies pixel deltas onto a :py:class:`~imageslapper.api.canvas.Canvas` and
drives frame-to-frame rendering of a stack of layers.

- :py:func:`apply` writes one delta buffer with a blend mode.
- :py:class:`Compositor` keeps the backdrop of one canvas and renders frames
  incrementally: only the area damaged since the previous frame is rebuilt.
- :py:func:`composite` is the functional form of a single frame.
"""
import logging
from typing import TYPE_CHECKING, Iterable, Optional, Sequence, Union

import numpy as np

from imageslapper import utils
from imageslapper.composite.blend import blend_rgba
from imageslapper.composite.delta import DeltaBuffer
from imageslapper.constants import BlendMode

if TYPE_CHECKING:
    from imageslapper.api.canvas import Canvas
    from imageslapper.api.layers import Layer, LayerState

logger = logging.getLogger(__name__)


def _check_buffer(canvas: "Canvas") -> np.ndarray:
    data = canvas.data
    expected = (canvas.height, canvas.width, 4)
    if not isinstance(data, np.ndarray) or data.shape != expected:
        raise ValueError(
            "Canvas buffer has shape %s, expected %s"
            % (getattr(data, "shape", None), expected)
        )
    if data.dtype != np.uint8:
        raise ValueError("Canvas buffer must be uint8, got %s" % data.dtype)
    return data


def _apply_batch(
    data: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    colors: np.ndarray,
    blend_mode: BlendMode,
    backdrop: Optional[np.ndarray],
) -> None:
    result = blend_rgba(data[ys, xs], colors, blend_mode)
    erase = colors[:, 3] == 0
    if np.any(erase):
        source = data if backdrop is None else backdrop
        result[erase] = source[ys[erase], xs[erase]]
    data[ys, xs] = result


def apply(
    canvas: "Canvas",
    delta_buffer: DeltaBuffer,
    blend_mode: Union[BlendMode, str] = BlendMode.NORMAL,
    backdrop: Optional[np.ndarray] = None,
) -> int:
    """
    Apply pixel deltas onto a canvas.

    Each delta is blended over the current canvas pixel in buffer order.
    Fully transparent deltas are erasures: they restore the ``backdrop``
    pixel when one is given and leave the canvas pixel alone otherwise.
    Deltas outside the canvas are dropped. The canvas lock is held for the
    whole call.

    :param canvas: :py:class:`~imageslapper.api.canvas.Canvas` to write to.
    :param delta_buffer: :py:class:`~imageslapper.composite.delta.DeltaBuffer`.
    :param blend_mode: Blend mode of the layer the deltas came from.
    :param backdrop: Optional ``uint8`` array with the canvas shape.
    :return: Number of pixels written.
    :raise ValueError: if the canvas or backdrop buffer is malformed.
    """
    blend_mode = BlendMode(blend_mode)
    data = _check_buffer(canvas)
    if backdrop is not None and backdrop.shape != data.shape:
        raise ValueError(
            "Backdrop has shape %s, expected %s" % (backdrop.shape, data.shape)
        )
    if delta_buffer.is_empty():
        return 0

    xs, ys, colors = delta_buffer.numpy()
    inside = (xs >= 0) & (xs < canvas.width) & (ys >= 0) & (ys < canvas.height)
    if not inside.all():
        logger.debug("Dropping %d deltas outside the canvas." % np.count_nonzero(~inside))
        xs, ys, colors = xs[inside], ys[inside], colors[inside]
    if xs.size == 0:
        return 0

    with canvas.lock:
        unique = np.unique(ys * canvas.width + xs).size == xs.size
        if unique:
            _apply_batch(data, xs, ys, colors, blend_mode, backdrop)
        else:
            logger.debug("Duplicate coordinates, applying deltas one at a time.")
            for i in range(xs.size):
                _apply_batch(
                    data, xs[i : i + 1], ys[i : i + 1], colors[i : i + 1], blend_mode, backdrop
                )
    logger.debug("Applied %d deltas with %s blending." % (xs.size, blend_mode.name))
    return int(xs.size)


class Compositor(object):
    """Incremental composite context bound to one canvas.

    Example::

        compositor = Compositor(canvas)
        states = compositor.render(layers)
        # next frame
        states = compositor.render(updated_layers, states)

    Every frame rebuilds the damaged area from the backdrop, blending every
    visible layer over it in stacking order, so the canvas always matches a
    from-scratch render of the current layers.

    :param canvas: :py:class:`~imageslapper.api.canvas.Canvas` to draw on.
    :param backdrop: True to snapshot the current canvas content as the
        backdrop, an explicit ``uint8`` array of the canvas shape, or False
        for a transparent backdrop.
    """

    def __init__(
        self, canvas: "Canvas", backdrop: Union[bool, np.ndarray] = True
    ):
        self._canvas = canvas
        if isinstance(backdrop, np.ndarray):
            self._backdrop = np.array(backdrop, dtype=np.uint8)
        elif backdrop:
            self._backdrop = canvas.numpy()
        else:
            self._backdrop = np.zeros((canvas.height, canvas.width, 4), dtype=np.uint8)
        if self._backdrop.shape != (canvas.height, canvas.width, 4):
            raise ValueError(
                "Backdrop has shape %s, expected %s"
                % (self._backdrop.shape, (canvas.height, canvas.width, 4))
            )
        self._backdrop.setflags(write=False)

    @property
    def canvas(self) -> "Canvas":
        return self._canvas

    @property
    def backdrop(self) -> np.ndarray:
        """Canvas content under every layer. Read-only."""
        return self._backdrop

    def apply(
        self,
        delta_buffer: DeltaBuffer,
        blend_mode: Union[BlendMode, str] = BlendMode.NORMAL,
    ) -> int:
        return apply(self._canvas, delta_buffer, blend_mode, self._backdrop)

    def render(
        self,
        layers: Iterable["Layer"],
        prev_states: Optional[Sequence[Optional["LayerState"]]] = None,
    ) -> list["LayerState"]:
        """
        Render one frame.

        Each layer is diffed against its previous state. The union of the
        changed areas is then reset to the backdrop and every visible layer
        touching it is blended back in ascending (z_index, creation order).

        :param layers: Layers of this frame.
        :param prev_states: States returned by the previous call, parallel
            to ``layers``. None entries mean no previous state.
        :return: States, parallel to ``layers``, for the next frame.
        """
        layers = list(layers)
        if prev_states is None:
            prev_states = [None] * len(layers)
        elif len(prev_states) != len(layers):
            raise ValueError(
                "Got %d previous states for %d layers" % (len(prev_states), len(layers))
            )

        viewport = self._canvas.bbox
        order = sorted(range(len(layers)), key=lambda i: layers[i].stacking_key)
        damage = utils.EMPTY_BBOX
        states: list[Optional["LayerState"]] = [None] * len(layers)
        for index in order:
            layer, prev_state = layers[index], prev_states[index]
            logger.debug("Compositing %s" % layer)
            unchanged = prev_state is not None and layer.unchanged_since(prev_state)
            delta = layer.collect_changes(prev_state, viewport)
            damage = utils.union(damage, delta.bbox)
            if prev_state is not None and not unchanged and delta.is_empty():
                # Same pixels, but hidden, restacked or blended differently.
                damage = utils.union(
                    damage, layer.get_affected_bounds(prev_state, viewport)
                )

            if unchanged and prev_state.bbox == layer.footprint(viewport):
                states[index] = prev_state
            else:
                states[index] = layer.snapshot(viewport)

        if not utils.is_empty(damage):
            self._repaint(damage, [layers[i] for i in order])
        return states  # type: ignore[return-value]

    def _repaint(self, bbox: utils.BBox, layers: list["Layer"]) -> None:
        """Rebuild ``bbox`` from the backdrop with ``layers`` in order."""
        data = _check_buffer(self._canvas)
        left, top, right, bottom = bbox
        region = self._backdrop[top:bottom, left:right].copy()
        for layer in layers:
            if not layer.visible:
                continue
            inter = utils.intersect(bbox, layer.bbox)
            if utils.is_empty(inter):
                continue
            target = region[inter[1] - top : inter[3] - top, inter[0] - left : inter[2] - left]
            target[:] = blend_rgba(target, layer.render(inter), layer.blend_mode)
        with self._canvas.lock:
            data[top:bottom, left:right] = region
        logger.debug("Repainted (%d, %d, %d, %d) with %d layers." % (bbox + (len(layers),)))


def composite(
    canvas: "Canvas",
    layers: Iterable["Layer"],
    prev_states: Optional[Sequence[Optional["LayerState"]]] = None,
    backdrop: Optional[np.ndarray] = None,
) -> list["LayerState"]:
    """
    Composite one frame of layers onto ``canvas``.

    Without ``prev_states`` this is a one-shot render over the current canvas
    content. Rendering a later frame needs the same ``backdrop`` as the first
    one, since the canvas by then holds the previous frame::

        background = canvas.numpy()
        states = composite(canvas, layers, backdrop=background)
        states = composite(canvas, next_layers, states, backdrop=background)

    :param backdrop: ``uint8`` array of the canvas shape under every layer.
        Defaults to the current canvas content.
    :return: States to pass back in for the next frame.
    :raise ValueError: if ``prev_states`` is given without a ``backdrop``.
    """
    if prev_states is not None and backdrop is None:
        raise ValueError("A backdrop is required to render from previous states")
    compositor = Compositor(canvas, True if backdrop is None else backdrop)
    return compositor.render(layers, prev_states)
