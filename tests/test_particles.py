import tracemalloc

import numpy as np
import pytest

from handcloud.particles import ParticleState, hue_to_rgb, INITIAL_SPREAD
from handcloud.shapes import ShapeKind, generate


def test_buffers_are_allocated_once_with_one_row_per_particle(rng):
    state = ParticleState(500, rng=rng)
    assert state.positions.shape == state.targets.shape == state.colors.shape == (500, 3)
    assert np.abs(state.positions).max() <= INITIAL_SPREAD
    assert np.array_equal(state.targets, generate('sphere', 500))


def test_morph_follows_the_exponential_approach_closed_form(rng):
    state = ParticleState(200, rng=rng)
    p0 = state.positions.copy()
    target = state.targets.copy()
    for k in range(1, 31):
        state.update_positions()
        expected = target - (target - p0) * (1 - 0.1) ** k
        assert np.allclose(state.positions, expected)


def test_morph_converges_monotonically(rng):
    state = ParticleState(200, rng=rng)
    distances = []
    for _ in range(50):
        state.update_positions()
        distances.append(np.abs(state.positions - state.targets).max())
    assert all(b < a for a, b in zip(distances, distances[1:]))
    assert distances[-1] < 2 * INITIAL_SPREAD * 0.9**50


def test_update_is_in_place(rng):
    state = ParticleState(100, rng=rng)
    buffer = state.positions
    returned = state.update_positions(exploded=True)
    assert returned is buffer
    assert state.positions is buffer


def test_explode_doubles_the_effective_target_without_touching_targets(rng):
    state = ParticleState(100, rng=rng)
    targets = state.targets.copy()
    for _ in range(400):
        state.update_positions(exploded=True)
    assert np.allclose(state.positions, 2 * targets)
    assert np.array_equal(state.effective_targets(True), 2 * targets)
    assert np.array_equal(state.targets, targets)
    # releasing the pinch brings the cloud back
    for _ in range(400):
        state.update_positions(exploded=False)
    assert np.allclose(state.positions, targets)


@pytest.mark.parametrize('exploded', [False, True])
def test_update_does_not_allocate_particle_sized_arrays(rng, exploded):
    state = ParticleState(20000, rng=rng)
    state.update_positions(exploded=exploded)
    buffer_size = state.positions.nbytes
    tracemalloc.start()
    try:
        for _ in range(5):
            state.update_positions(exploded=exploded)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()
    assert peak < buffer_size / 10


def test_set_shape_replaces_all_targets_but_not_positions(rng):
    state = ParticleState(100, rng=rng)
    positions = state.positions.copy()
    state.set_shape('helix')
    assert state.shape is ShapeKind.HELIX
    assert np.array_equal(state.targets, generate('helix', 100))
    assert np.array_equal(state.positions, positions)


def test_set_targets_rejects_the_wrong_shape(rng):
    state = ParticleState(100, rng=rng)
    with pytest.raises(ValueError):
        state.set_targets(np.zeros((99, 3)))


def test_whole_cloud_shares_one_hue():
    state = ParticleState(10, rng=np.random.default_rng(0))
    color = state.set_hue(0.0)
    assert color == (1.0, 0.0, 0.0)
    assert np.all(state.colors == color)
    assert state.set_hue(0.5) == pytest.approx((0.0, 1.0, 1.0))
    assert np.allclose(state.colors, (0.0, 1.0, 1.0))


def test_hue_conversion_is_fully_saturated_half_lightness():
    for hue in np.linspace(0, 1, 13):
        rgb = hue_to_rgb(hue)
        assert max(rgb) == pytest.approx(1.0)
        assert min(rgb) == pytest.approx(0.0)
