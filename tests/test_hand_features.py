import numpy as np
import pytest

from handcloud.hand_features import (
    GestureClassifier,
    ShapeLock,
    ShapeState,
    many_single_hand_features,
    HAND_FEATURES_KEYS,
)
from handcloud.shapes import ShapeKind, next_shape
from handcloud.util import hand_keypoints


def test_features_use_planar_distances(make_hand):
    hand = np.array(make_hand(pinch=0.2, pinky=0.5))
    hand[4, 2] = 10.0  # depth is ignored
    features = many_single_hand_features(hand)
    assert sorted(features) == HAND_FEATURES_KEYS
    assert features['pinch_distance'] == pytest.approx(0.2)
    assert features['pinky_distance'] == pytest.approx(0.5)
    assert features['index_tip'] == (0.5, 0.5, 0.0)


def test_features_can_be_excluded(make_hand):
    features = many_single_hand_features(make_hand(), exclude={'index_tip'})
    assert 'index_tip' not in features
    assert 'is_fist' in features


@pytest.mark.parametrize('pinch, exploded', [(0.04, True), (0.06, False)])
def test_pinch_threshold(make_hand, clock, pinch, exploded):
    classifier = GestureClassifier(clock)
    result = classifier.observe(make_hand(pinch=pinch))
    assert result.snapshot.is_pinching is exploded
    assert classifier.is_exploded is exploded


def test_explode_follows_the_latest_hand_without_debounce(make_hand, clock):
    classifier = GestureClassifier(clock)
    states = []
    for pinch in [0.01, 0.2, 0.01, 0.01, 0.3]:
        classifier.observe(make_hand(pinch=pinch))
        states.append(classifier.is_exploded)
    assert states == [True, False, True, True, False]


@pytest.mark.parametrize('pinky, fist', [(0.29, True), (0.31, False)])
def test_fist_threshold(make_hand, clock, pinky, fist):
    classifier = GestureClassifier(clock)
    result = classifier.observe(make_hand(pinky=pinky))
    assert result.snapshot.is_fist is fist
    assert result.advance is fist


def test_held_fist_does_not_advance_again_within_the_lock(make_hand, clock):
    classifier = GestureClassifier(clock)
    fist = make_hand(pinky=0.1)
    assert classifier.observe(fist).advance
    for _ in range(5):
        clock.advance(0.1)
        assert not classifier.observe(fist).advance  # up to 500ms later


def test_held_fist_retriggers_once_the_lock_expires(make_hand, clock):
    # Known quirk: the lock only rate-limits. A fist that is never released advances
    # the shape again as soon as the lock expires.
    classifier = GestureClassifier(clock)
    fist = make_hand(pinky=0.1)
    assert classifier.observe(fist).advance
    clock.advance(0.5)
    assert not classifier.observe(fist).advance
    clock.advance(0.5)
    assert classifier.observe(fist).advance


def test_open_hand_does_not_touch_the_lock(make_hand, clock):
    classifier = GestureClassifier(clock)
    classifier.observe(make_hand(pinky=0.1))
    clock.advance(0.3)
    classifier.observe(make_hand(pinky=0.5))
    assert classifier.lock.unlock_at == pytest.approx(1.0)


@pytest.mark.parametrize('no_hand', [None, [], [(0.5, 0.5, 0.0)] * 20, [None] * 21])
def test_missing_or_malformed_hand_freezes_state(make_hand, clock, no_hand):
    classifier = GestureClassifier(clock)
    first = classifier.observe(make_hand(pinch=0.01, pinky=0.1))
    unlock_at = classifier.lock.unlock_at
    for _ in range(100):
        clock.advance(0.05)
        result = classifier.observe(no_hand)
        assert not result.hand_present
        assert not result.advance
        assert result.snapshot is first.snapshot
    assert classifier.is_exploded
    assert classifier.lock.unlock_at == unlock_at


def test_no_hand_before_any_detection(clock):
    classifier = GestureClassifier(clock)
    result = classifier.observe(None)
    assert result.snapshot is None
    assert not classifier.is_exploded


def test_landmark_objects_are_accepted():
    class Landmark:
        def __init__(self, x, y, z=0.0):
            self.x, self.y, self.z = x, y, z

    class LandmarkList:
        landmark = [Landmark(0.1 * (i % 10), 0.5) for i in range(21)]

    points = hand_keypoints(LandmarkList())
    assert points.shape == (21, 3)
    assert points[8, 0] == pytest.approx(0.8)


def test_non_finite_keypoints_mean_no_hand(make_hand):
    hand = make_hand()
    hand[8] = [float('nan'), 0.5, 0.0]
    assert hand_keypoints(hand) is None


def test_shape_lock():
    lock = ShapeLock(1.0)
    assert not lock.is_held(0.0)
    lock.acquire(2.0)
    assert lock.is_held(2.0)
    assert lock.is_held(2.999)
    assert not lock.is_held(3.0)


def test_shape_state_cycles_through_all_shapes():
    state = ShapeState()
    assert state.kind is ShapeKind.SPHERE
    kinds = [state.advance() for _ in range(5)]
    assert kinds[-1] is ShapeKind.SPHERE
    assert len(set(kinds)) == 5


@pytest.mark.parametrize('start', range(5))
def test_shape_state_follows_the_shape_cycle_order(start):
    state = ShapeState(start)
    before = state.kind
    assert state.advance() is next_shape(before)
