"""Particle buffers and the per-frame morph toward the target shape."""

import colorsys
import logging
from typing import Tuple, Union

import numpy as np

from handcloud.shapes import ShapeKind, Rng, generate, resolve_shape_kind

logger = logging.getLogger(__name__)

DFLT_PARTICLE_COUNT = 6000
DFLT_SMOOTHING = 0.1
DFLT_EXPLODE_MULTIPLIER = 2.0
INITIAL_SPREAD = 2000
INITIAL_COLOR = (0.0, 0.5, 1.0)

RGB = Tuple[float, float, float]


def hue_to_rgb(hue: float, saturation: float = 1.0, lightness: float = 0.5) -> RGB:
    """
    Convert an HSL color (all components in [0, 1]) to RGB.

    The hue wraps around, so 1.0 is the same red as 0.0.

    >>> hue_to_rgb(0.0)
    (1.0, 0.0, 0.0)
    >>> hue_to_rgb(1.0) == hue_to_rgb(0.0)
    True
    """
    r, g, b = colorsys.hls_to_rgb(hue % 1.0, lightness, saturation)
    return (float(r), float(g), float(b))


class ParticleState:
    """
    Current positions, target positions and colors of a fixed number of particles.

    All three buffers are ``(count, 3)`` float arrays allocated once; every update
    happens in place so a renderer can hold on to ``positions``.

    >>> state = ParticleState(100, rng=np.random.default_rng(0))
    >>> state.positions.shape, state.targets.shape, state.colors.shape
    ((100, 3), (100, 3), (100, 3))
    >>> state.shape
    <ShapeKind.SPHERE: 'sphere'>
    """

    def __init__(
        self,
        count: int = DFLT_PARTICLE_COUNT,
        *,
        rng: Rng = None,
        initial_shape: Union[str, ShapeKind] = ShapeKind.SPHERE,
    ):
        self.count = count
        self.rng = rng if rng is not None else np.random.default_rng()
        self.positions = (self.rng.random((count, 3)) * 2 - 1) * INITIAL_SPREAD
        self.targets = np.zeros((count, 3))
        self._step = np.empty((count, 3))
        self.colors = np.tile(np.asarray(INITIAL_COLOR, dtype=float), (count, 1))
        self.color: RGB = INITIAL_COLOR
        self.shape = resolve_shape_kind(initial_shape)
        self.set_shape(self.shape)

    def set_targets(self, points):
        """Replace the whole target buffer (in place) with ``points``."""
        points = np.asarray(points, dtype=float)
        if points.shape != self.targets.shape:
            raise ValueError(
                f"Expected targets of shape {self.targets.shape}, got {points.shape}"
            )
        self.targets[...] = points

    def set_shape(self, shape_kind: Union[str, ShapeKind], *, rng: Rng = None):
        """Regenerate the targets for ``shape_kind``. Positions morph there over the next frames."""
        self.shape = resolve_shape_kind(shape_kind)
        rng = rng if rng is not None else self.rng
        self.set_targets(generate(self.shape, self.count, rng=rng))
        logger.debug("Targets set to %s (%d particles)", self.shape.value, self.count)

    def effective_targets(
        self, exploded: bool, *, explode_multiplier: float = DFLT_EXPLODE_MULTIPLIER
    ) -> np.ndarray:
        """The targets the particles are currently pulled toward."""
        if exploded:
            return self.targets * explode_multiplier
        return self.targets

    def update_positions(
        self,
        exploded: bool = False,
        *,
        smoothing: float = DFLT_SMOOTHING,
        explode_multiplier: float = DFLT_EXPLODE_MULTIPLIER,
    ) -> np.ndarray:
        """
        Move every particle a ``smoothing`` fraction of the way to its target.

        The step is per call (per frame), not per second, so the apparent speed follows
        the frame rate. While ``exploded``, the targets are scaled by
        ``explode_multiplier``; this is recomputed on every call.

        >>> state = ParticleState(10, rng=np.random.default_rng(1))
        >>> state.positions[:] = 0.0
        >>> state.set_targets(np.full((10, 3), 100.0))
        >>> float(state.update_positions()[0, 0])
        10.0
        >>> float(state.update_positions(exploded=True)[0, 0])  # 10 + (200 - 10) * 0.1
        29.0
        """
        step = self._step
        if exploded:
            np.multiply(self.targets, explode_multiplier, out=step)
            np.subtract(step, self.positions, out=step)
        else:
            np.subtract(self.targets, self.positions, out=step)
        step *= smoothing
        self.positions += step
        return self.positions

    def set_hue(self, hue: float) -> RGB:
        """Give the whole cloud one color of hue ``hue``, full saturation, half lightness."""
        self.color = hue_to_rgb(hue)
        self.colors[...] = self.color
        return self.color
