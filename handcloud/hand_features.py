"""Hand gesture features and the gesture classifier driving the particle cloud.

Only four landmarks matter here: the wrist, the thumb tip, the index finger tip and
the pinky tip. From them we derive

* a pinch (thumb tip close to index tip), which explodes the cloud while held, and
* a fist (pinky tip close to the wrist), which advances to the next shape, at most
  once per ``lock_duration`` seconds.
"""

import math
import time
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Tuple

from handcloud.util import HandLandmark, Clock, hand_keypoints
from handcloud.shapes import SHAPE_CYCLE, next_shape

logger = logging.getLogger(__name__)

DFLT_PINCH_THRESHOLD = 0.05
DFLT_FIST_THRESHOLD = 0.3
DFLT_LOCK_DURATION = 1.0  # seconds

Point = Tuple[float, float, float]

# -------------------------------------------------------------------------------
# Hand feature extraction helpers
# -------------------------------------------------------------------------------


def calculate_planar_distance(point1, point2):
    """
    Euclidean distance between two points, ignoring depth.

    >>> calculate_planar_distance((0, 0, 5), (3, 4, -5))
    5.0
    """
    return math.hypot(point1[0] - point2[0], point1[1] - point2[1])


# -------------------------------------------------------------------------------
# Hand feature extraction
# -------------------------------------------------------------------------------

ALL_HAND_FEATURES = frozenset(
    {
        "wrist_position",
        "index_tip",
        "pinch_distance",
        "pinky_distance",
        "is_pinching",
        "is_fist",
    }
)

# Full list of available feature keys (sorted alphabetically)
HAND_FEATURES_KEYS = sorted(ALL_HAND_FEATURES)

DFLT_HAND_FEATURES_INCLUDE = ALL_HAND_FEATURES


def many_single_hand_features(
    keypoints,
    include=DFLT_HAND_FEATURES_INCLUDE,
    exclude=(),
    *,
    pinch_threshold=DFLT_PINCH_THRESHOLD,
    fist_threshold=DFLT_FIST_THRESHOLD,
):
    """
    Extracts hand features from the 21 keypoints of a hand.

    Args:
        keypoints: The hand's landmarks (anything ``hand_keypoints`` accepts)
        include: Set of features to include
        exclude: Set of features to exclude
        pinch_threshold: Thumb-to-index distance below which the hand is pinching
        fist_threshold: Pinky-to-wrist distance below which the hand is a fist

    Returns:
        dict: Dictionary of extracted features (empty if there is no usable hand)

    >>> hand = [(0.5, 0.5, 0.0)] * 21
    >>> features = many_single_hand_features(hand, include={'is_pinching', 'is_fist'})
    >>> sorted(features.items())
    [('is_fist', True), ('is_pinching', True)]
    """
    points = hand_keypoints(keypoints)
    if points is None:
        return {}

    def coords(idx) -> Point:
        x, y, z = points[idx]
        return (float(x), float(y), float(z))

    requested_features = set(include) - set(exclude)
    out = {}

    if "wrist_position" in requested_features:
        out["wrist_position"] = coords(HandLandmark.WRIST)

    if "index_tip" in requested_features:
        out["index_tip"] = coords(HandLandmark.INDEX_FINGER_TIP)

    if requested_features & {"pinch_distance", "is_pinching"}:
        pinch_distance = calculate_planar_distance(
            coords(HandLandmark.THUMB_TIP), coords(HandLandmark.INDEX_FINGER_TIP)
        )
        if "pinch_distance" in requested_features:
            out["pinch_distance"] = pinch_distance
        if "is_pinching" in requested_features:
            out["is_pinching"] = pinch_distance < pinch_threshold

    if requested_features & {"pinky_distance", "is_fist"}:
        pinky_distance = calculate_planar_distance(
            coords(HandLandmark.PINKY_TIP), coords(HandLandmark.WRIST)
        )
        if "pinky_distance" in requested_features:
            out["pinky_distance"] = pinky_distance
        if "is_fist" in requested_features:
            out["is_fist"] = pinky_distance < fist_threshold

    return out


# Dictionary of available hand feature extractors
hand_feature_funcs = {
    "many_single_hand_features": many_single_hand_features,
}


# -------------------------------------------------------------------------------
# Gesture state
# -------------------------------------------------------------------------------


@dataclass(frozen=True)
class GestureSnapshot:
    """The gesture signals derived from one observed hand."""

    pinch_distance: float
    pinky_distance: float
    is_pinching: bool
    is_fist: bool
    index_tip: Point
    timestamp: float

    @classmethod
    def from_features(cls, features: Dict[str, Any], timestamp: float):
        return cls(
            pinch_distance=features["pinch_distance"],
            pinky_distance=features["pinky_distance"],
            is_pinching=features["is_pinching"],
            is_fist=features["is_fist"],
            index_tip=features["index_tip"],
            timestamp=timestamp,
        )


class ShapeLock:
    """
    Cooldown that keeps a held fist from cycling shapes every frame.

    Instead of a timer callback, the lock remembers when it expires and is compared
    against the caller's clock.

    >>> lock = ShapeLock(1.0)
    >>> lock.is_held(0.0)
    False
    >>> lock.acquire(10.0)
    >>> lock.is_held(10.5), lock.is_held(11.0)
    (True, False)
    """

    def __init__(self, duration: float = DFLT_LOCK_DURATION):
        self.duration = duration
        self.unlock_at = -math.inf

    def acquire(self, now: float):
        self.unlock_at = now + self.duration

    def is_held(self, now: float) -> bool:
        return now < self.unlock_at


@dataclass(frozen=True)
class GestureResult:
    """What ``GestureClassifier.observe`` tells the engine about one detection."""

    snapshot: Optional[GestureSnapshot]
    hand_present: bool
    advance: bool = False


class GestureClassifier:
    """
    Turns hand keypoints into the explode flag and shape-advance triggers.

    When no (usable) hand is observed, nothing changes: the explode flag and the lock
    keep their values and the last snapshot is reported again.

    Note: a fist held continuously re-triggers as soon as the lock expires, i.e. once
    per ``lock_duration`` seconds.

    Args:
        clock: Monotonic clock, in seconds (``time.monotonic`` by default)
        pinch_threshold: Pinch distance (normalized image units) below which we explode
        fist_threshold: Pinky-to-wrist distance below which the hand is a fist
        lock_duration: Seconds during which a new fist does not advance the shape
    """

    def __init__(
        self,
        clock: Clock = time.monotonic,
        *,
        pinch_threshold: float = DFLT_PINCH_THRESHOLD,
        fist_threshold: float = DFLT_FIST_THRESHOLD,
        lock_duration: float = DFLT_LOCK_DURATION,
    ):
        self.clock = clock
        self.pinch_threshold = pinch_threshold
        self.fist_threshold = fist_threshold
        self.lock = ShapeLock(lock_duration)
        self.is_exploded = False
        self.last_snapshot: Optional[GestureSnapshot] = None

    def features(self, keypoints) -> Dict[str, Any]:
        return many_single_hand_features(
            keypoints,
            pinch_threshold=self.pinch_threshold,
            fist_threshold=self.fist_threshold,
        )

    def observe(self, keypoints) -> GestureResult:
        """Update the gesture state from the latest detection (``None`` if no hand)."""
        features = self.features(keypoints)
        if not features:
            return GestureResult(self.last_snapshot, hand_present=False)

        now = self.clock()
        snapshot = GestureSnapshot.from_features(features, timestamp=now)
        self.last_snapshot = snapshot
        self.is_exploded = snapshot.is_pinching

        advance = False
        if snapshot.is_fist and not self.lock.is_held(now):
            advance = True
            self.lock.acquire(now)
            logger.debug("Fist detected, shape locked until %.3f", self.lock.unlock_at)

        return GestureResult(snapshot, hand_present=True, advance=advance)


class ShapeState:
    """
    Where we are in the shape cycle.

    >>> state = ShapeState()
    >>> [state.advance().value for _ in range(len(SHAPE_CYCLE))]
    ['heart', 'flower', 'helix', 'saturn', 'sphere']
    """

    def __init__(self, index: int = 0):
        self.index = index % len(SHAPE_CYCLE)

    @property
    def kind(self):
        return SHAPE_CYCLE[self.index]

    def advance(self):
        self.index = SHAPE_CYCLE.index(next_shape(self.kind))
        return self.kind
