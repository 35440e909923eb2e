import numpy as np
import pytest

from handcloud.util import ManualClock, HandLandmark


def _make_hand(pinch=0.2, pinky=0.5, index_tip=(0.5, 0.5)):
    """21 keypoints with the given thumb-to-index and pinky-to-wrist distances."""
    points = np.full((21, 3), 0.5)
    ix, iy = index_tip
    points[HandLandmark.WRIST] = (0.5, 0.9, 0.0)
    points[HandLandmark.INDEX_FINGER_TIP] = (ix, iy, 0.0)
    points[HandLandmark.THUMB_TIP] = (ix + pinch, iy, 0.0)
    points[HandLandmark.PINKY_TIP] = (0.5, 0.9 - pinky, 0.0)
    return points.tolist()


@pytest.fixture
def make_hand():
    return _make_hand


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def rng():
    return np.random.default_rng(42)
