"""Utils for handcloud."""

import logging
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

DFLT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def return_none(*args, **kwargs):
    """
    An empty function that returns None no matter the arguments.
    Often used as a "do nothing" general callback function.
    """
    return None


def configure_logging(level=logging.INFO, *, fmt=DFLT_LOG_FORMAT):
    """Configure the root logger for the scripts (the library itself never does)."""
    logging.basicConfig(level=level, format=fmt)


# --------------------------------------------------------------------------------------
# Constants


class HandLandmark:
    WRIST = 0
    THUMB_TIP = 4
    INDEX_FINGER_TIP = 8
    PINKY_TIP = 20


N_HAND_LANDMARKS = 21


# --------------------------------------------------------------------------------------
# Keypoints


def _landmark_coords(lm):
    if hasattr(lm, 'x') and hasattr(lm, 'y'):
        return (lm.x, lm.y, getattr(lm, 'z', 0.0))
    if len(lm) == 2:
        return (lm[0], lm[1], 0.0)
    return (lm[0], lm[1], lm[2])


def hand_keypoints(landmarks) -> Optional[np.ndarray]:
    """
    Coerce a hand's landmarks to a ``(21, 3)`` float array, or ``None`` if there is
    no usable hand.

    Accepts ``None``, a sequence of ``(x, y)`` / ``(x, y, z)`` tuples, a sequence of
    objects with ``x``, ``y`` (and optionally ``z``) attributes, or anything with a
    ``landmark`` attribute holding such a sequence (a MediaPipe landmark list).

    >>> hand_keypoints(None) is None
    True
    >>> hand_keypoints([(0.5, 0.5)] * 20) is None  # too short
    True
    >>> hand_keypoints([(0.5, 0.5)] * 21).shape
    (21, 3)
    """
    if landmarks is None:
        return None
    landmarks = getattr(landmarks, 'landmark', landmarks)
    try:
        if len(landmarks) < N_HAND_LANDMARKS:
            return None
        points = np.array(
            [_landmark_coords(lm) for lm in landmarks[:N_HAND_LANDMARKS]],
            dtype=float,
        )
    except (TypeError, ValueError, IndexError):
        logger.debug("Ignoring malformed hand landmarks")
        return None
    if not np.all(np.isfinite(points)):
        return None
    return points


# --------------------------------------------------------------------------------------
# Clocks


class ManualClock:
    """
    A clock you advance by hand. Drop-in replacement for ``time.monotonic``.

    >>> clock = ManualClock()
    >>> clock()
    0.0
    >>> clock.advance(1.5)
    >>> clock()
    1.5
    """

    def __init__(self, start: float = 0.0):
        self.now = float(start)

    def advance(self, seconds: float):
        self.now += seconds

    def __call__(self) -> float:
        return self.now

