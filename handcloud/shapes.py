"""Target point clouds for each shape the particle cloud can morph into.

Each shape function maps particle indices ``i = 0, ..., count - 1`` to 3-D target
coordinates. All functions are vectorized over the indices and return a
``(count, 3)`` float array.

``heart`` and the ring of ``saturn`` jitter some coordinates at random, so two calls
give a slightly different spread (the "shimmer" you see on every re-entry into those
shapes). Pass a seeded ``numpy.random.Generator`` as ``rng`` to make them repeatable.

>>> points = generate('sphere', 1000)
>>> points.shape
(1000, 3)
>>> bool(np.allclose(np.linalg.norm(points, axis=1), SPHERE_RADIUS))
True
"""

from enum import Enum
from typing import Callable, Dict, Optional, Union

import numpy as np

# -------------------------------------------------------------------------------
# Constants
# -------------------------------------------------------------------------------

SPHERE_RADIUS = 300
HEART_SCALE = 20
HEART_Z_JITTER = 10  # before scaling, so z ends up in [-100, 100]
FLOWER_PETAL_RADIUS = 200
FLOWER_PETALS = 7
FLOWER_Z_OFFSET = 300
HELIX_RADIUS = 200
HELIX_CLIMB = 0.5
SATURN_BODY_SHARE = 0.7
SATURN_BODY_RADIUS = 0.8 * SPHERE_RADIUS
SATURN_RING_RADIUS = 350
SATURN_RING_WIDTH = 100
SATURN_RING_THICKNESS = 10
SATURN_TILT = 0.4

Rng = Optional[np.random.Generator]


class ShapeKind(str, Enum):
    """The shapes the cloud cycles through, in cycle order."""

    SPHERE = 'sphere'
    HEART = 'heart'
    FLOWER = 'flower'
    HELIX = 'helix'
    SATURN = 'saturn'


SHAPE_CYCLE = tuple(ShapeKind)


class InvalidShapeKind(ValueError):
    """Raised when asked for a shape that is not one of the ``ShapeKind`` members."""


def resolve_shape_kind(shape_kind: Union[str, ShapeKind]) -> ShapeKind:
    """
    Return the ``ShapeKind`` for a kind or its name.

    >>> resolve_shape_kind('helix')
    <ShapeKind.HELIX: 'helix'>
    >>> resolve_shape_kind('cube')
    Traceback (most recent call last):
      ...
    handcloud.shapes.InvalidShapeKind: Unknown shape kind: 'cube'
    """
    if isinstance(shape_kind, ShapeKind):
        return shape_kind
    try:
        return ShapeKind(shape_kind)
    except ValueError:
        raise InvalidShapeKind(f"Unknown shape kind: {shape_kind!r}") from None


# -------------------------------------------------------------------------------
# Shape functions
# -------------------------------------------------------------------------------


def _fibonacci_sphere(idx, count, radius):
    phi = np.arccos(-1 + (2 * idx) / count)
    theta = np.sqrt(count * np.pi) * phi
    return np.column_stack(
        [
            radius * np.cos(theta) * np.sin(phi),
            radius * np.sin(theta) * np.sin(phi),
            radius * np.cos(phi),
        ]
    )


def sphere_points(count: int, *, rng: Rng = None) -> np.ndarray:
    """Equal-area (Fibonacci) spiral on a sphere of radius ``SPHERE_RADIUS``."""
    return _fibonacci_sphere(np.arange(count), count, SPHERE_RADIUS)


def heart_points(count: int, *, rng: Rng = None) -> np.ndarray:
    """
    The classic parametric heart curve, extruded by a random z jitter.

    Not deterministic unless ``rng`` is seeded.
    """
    rng = rng if rng is not None else np.random.default_rng()
    t = np.pi - 2 * np.pi * (np.arange(count) / count)
    x = 16 * np.sin(t) ** 3
    y = 13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)
    z = (rng.random(count) - 0.5) * HEART_Z_JITTER
    return HEART_SCALE * np.column_stack([x, y, z])


def flower_points(count: int, *, rng: Rng = None) -> np.ndarray:
    """Rose curve (``FLOWER_PETALS`` lobes) wrapped around a tilted loop."""
    frac = np.arange(count) / count
    u = frac * np.pi * 16
    v = frac * np.pi * 2
    r = FLOWER_PETAL_RADIUS * np.sin(FLOWER_PETALS * u)
    return np.column_stack(
        [
            r * np.cos(u) * np.cos(v),
            r * np.cos(u) * np.sin(v),
            r * np.sin(u) + FLOWER_Z_OFFSET * np.cos(v),
        ]
    )


def helix_points(count: int, *, rng: Rng = None) -> np.ndarray:
    """Double helix: even indices on one strand, odd indices on the opposite one."""
    idx = np.arange(count)
    angle = (idx * 0.1) * 0.5 + np.where(idx % 2 == 0, 0.0, np.pi)
    return np.column_stack(
        [
            np.cos(angle) * HELIX_RADIUS,
            (idx - count / 2) * HELIX_CLIMB,
            np.sin(angle) * HELIX_RADIUS,
        ]
    )


def saturn_points(count: int, *, rng: Rng = None) -> np.ndarray:
    """
    A planet and its ring.

    The first ``SATURN_BODY_SHARE`` of the particles make a (deterministic) sphere,
    the rest a ring of random width and thickness, tilted about the x axis.
    """
    rng = rng if rng is not None else np.random.default_rng()
    idx = np.arange(count)
    body_count = count * SATURN_BODY_SHARE
    is_body = idx < body_count
    out = np.empty((count, 3))

    out[is_body] = _fibonacci_sphere(idx[is_body], body_count, SATURN_BODY_RADIUS)

    ring_idx = idx[~is_body]
    n_ring = len(ring_idx)
    angle = ring_idx * 0.1
    radius = SATURN_RING_RADIUS + rng.random(n_ring) * SATURN_RING_WIDTH
    y = (rng.random(n_ring) - 0.5) * SATURN_RING_THICKNESS
    z = radius * np.sin(angle)
    cos_tilt, sin_tilt = np.cos(SATURN_TILT), np.sin(SATURN_TILT)
    out[~is_body, 0] = radius * np.cos(angle)
    out[~is_body, 1] = y * cos_tilt - z * sin_tilt
    out[~is_body, 2] = y * sin_tilt + z * cos_tilt
    return out


# -------------------------------------------------------------------------------
# Module exports
# -------------------------------------------------------------------------------

ShapeFunc = Callable[..., np.ndarray]

# Dictionary of available shape functions
shape_funcs: Dict[ShapeKind, ShapeFunc] = {
    ShapeKind.SPHERE: sphere_points,
    ShapeKind.HEART: heart_points,
    ShapeKind.FLOWER: flower_points,
    ShapeKind.HELIX: helix_points,
    ShapeKind.SATURN: saturn_points,
}


def generate(
    shape_kind: Union[str, ShapeKind], count: int, *, rng: Rng = None
) -> np.ndarray:
    """
    Compute the target point cloud of a shape.

    Args:
        shape_kind: A ``ShapeKind`` or its name ('sphere', 'heart', ...)
        count: Number of points (particles)
        rng: Random generator used by the shapes that jitter (heart, saturn)

    Returns:
        A ``(count, 3)`` float array of target coordinates

    Raises:
        InvalidShapeKind: If ``shape_kind`` is not a known shape
        ValueError: If ``count`` is not a positive integer

    >>> generate(ShapeKind.HELIX, 4)[:, 1]  # the helix climbs half a unit per particle
    array([-1. , -0.5,  0. ,  0.5])
    """
    shape_func = shape_funcs[resolve_shape_kind(shape_kind)]
    if isinstance(count, bool) or not isinstance(count, (int, np.integer)) or count <= 0:
        raise ValueError(f"count must be a positive integer, got {count!r}")
    return shape_func(int(count), rng=rng)


def next_shape(shape_kind: Union[str, ShapeKind]) -> ShapeKind:
    """
    The shape after ``shape_kind`` in the cycle.

    >>> next_shape('helix')
    <ShapeKind.SATURN: 'saturn'>
    >>> next_shape('saturn')
    <ShapeKind.SPHERE: 'sphere'>
    """
    i = SHAPE_CYCLE.index(resolve_shape_kind(shape_kind))
    return SHAPE_CYCLE[(i + 1) % len(SHAPE_CYCLE)]
