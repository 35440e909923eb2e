import numpy as np
import pytest

from handcloud.shapes import (
    ShapeKind,
    SHAPE_CYCLE,
    InvalidShapeKind,
    generate,
    next_shape,
    SPHERE_RADIUS,
    SATURN_BODY_RADIUS,
    SATURN_BODY_SHARE,
)

COUNT = 6000


def norms(points):
    return np.linalg.norm(points, axis=1)


@pytest.mark.parametrize('kind', [ShapeKind.SPHERE, ShapeKind.FLOWER, ShapeKind.HELIX])
def test_deterministic_shapes_repeat_exactly(kind):
    assert np.array_equal(generate(kind, COUNT), generate(kind, COUNT))


@pytest.mark.parametrize('kind', list(ShapeKind))
def test_every_shape_has_one_point_per_particle(kind):
    points = generate(kind, COUNT)
    assert points.shape == (COUNT, 3)
    assert np.all(np.isfinite(points))


def test_shape_names_are_accepted():
    assert np.array_equal(generate('flower', 100), generate(ShapeKind.FLOWER, 100))


def test_sphere_points_lie_on_the_sphere():
    assert np.allclose(norms(generate('sphere', COUNT)), SPHERE_RADIUS)


def test_flower_stays_within_its_petal_and_offset_radii():
    assert norms(generate('flower', COUNT)).max() <= 200 + 300 + 1e-9


def test_helix_strands_have_fixed_radius_and_climb_linearly():
    points = generate('helix', COUNT)
    assert np.allclose(np.hypot(points[:, 0], points[:, 2]), 200)
    assert np.allclose(np.diff(points[:, 1]), 0.5)
    assert points[0, 1] == -COUNT / 4


def test_helix_odd_particles_sit_on_the_opposite_strand():
    points = generate('helix', COUNT)
    # particles 2k and 2k+1 are at angles 0.1k and 0.1k + 0.05 + pi
    assert np.allclose(points[0, [0, 2]], [200, 0])
    assert points[1, 0] < 0


def test_heart_depth_jitter_is_bounded():
    z = generate('heart', COUNT)[:, 2]
    assert z.min() >= -100
    assert z.max() <= 100
    assert z.std() > 10  # not flat


def test_heart_is_random_but_reproducible_with_a_seed():
    a = generate('heart', COUNT, rng=np.random.default_rng(1))
    b = generate('heart', COUNT, rng=np.random.default_rng(1))
    c = generate('heart', COUNT, rng=np.random.default_rng(2))
    assert np.array_equal(a, b)
    assert not np.array_equal(a[:, 2], c[:, 2])
    # only the depth is random
    assert np.array_equal(a[:, :2], c[:, :2])


def test_saturn_body_is_a_deterministic_sphere():
    n_body = int(np.ceil(COUNT * SATURN_BODY_SHARE))
    a = generate('saturn', COUNT, rng=np.random.default_rng(1))
    b = generate('saturn', COUNT, rng=np.random.default_rng(2))
    assert np.array_equal(a[:n_body], b[:n_body])
    assert np.allclose(norms(a[:n_body]), SATURN_BODY_RADIUS)


def test_saturn_ring_radius_and_thickness():
    n_body = int(np.ceil(COUNT * SATURN_BODY_SHARE))
    ring = generate('saturn', COUNT, rng=np.random.default_rng(3))[n_body:]
    assert len(ring) == COUNT - n_body
    # the tilt is a rotation about x, so it preserves the distance to the origin
    assert norms(ring).min() >= 350
    assert norms(ring).max() <= np.hypot(450, 5)


def test_saturn_ring_is_tilted_about_x():
    n_body = int(np.ceil(COUNT * SATURN_BODY_SHARE))
    ring = generate('saturn', COUNT, rng=np.random.default_rng(3))[n_body:]
    # an untilted ring would have |y| <= 5
    assert np.abs(ring[:, 1]).max() > 100


def test_unknown_shapes_are_rejected():
    with pytest.raises(InvalidShapeKind):
        generate('cube', 10)
    with pytest.raises(ValueError):
        generate(3, 10)


@pytest.mark.parametrize('count', [0, -5, 2.5, True])
def test_count_must_be_a_positive_integer(count):
    with pytest.raises(ValueError):
        generate('sphere', count)


def test_shape_cycle_order_wraps_around():
    assert [k.value for k in SHAPE_CYCLE] == [
        'sphere',
        'heart',
        'flower',
        'helix',
        'saturn',
    ]
    kind = ShapeKind.SPHERE
    seen = []
    for _ in SHAPE_CYCLE:
        kind = next_shape(kind)
        seen.append(kind)
    assert seen[-1] is ShapeKind.SPHERE
    assert set(seen) == set(SHAPE_CYCLE)
