"""
A cloud of particles you conduct with one hand.

A fixed number of points (6000 by default) morph between parametric shapes: a
sphere, a heart, a flower, a double helix and a ringed planet. A webcam tracks one
hand, and

* the cloud follows the index finger tip, and takes its color from the finger's
  horizontal position,
* pinching (thumb tip on index tip) explodes the cloud to twice its size while held,
* making a fist (pinky tip close to the wrist) moves on to the next shape, at most
  once a second,
* once you opt in (press 'a'), the cloud pulses and spins with the microphone's volume.

The interesting part is independent of cameras, microphones and windows:

* ``shapes``: the target point cloud of each shape,
* ``particles``: the particle buffers and how they morph toward their targets,
* ``hand_features``: the gesture classifier (pinch, fist, shape lock),
* ``audio``: from frequency magnitudes to an intensity (plus a microphone sampler),
* ``engine``: the ``AnimationEngine`` tying the above together, one ``tick`` per frame.

``detection`` (MediaPipe), ``display`` (OpenCV) and ``script_utils`` plug real devices
into the engine. Run it with ``python bin/handcloud_cli.py`` (or ``handcloud``).
"""

from handcloud.shapes import ShapeKind, SHAPE_CYCLE, InvalidShapeKind, generate
from handcloud.particles import ParticleState
from handcloud.hand_features import (
    GestureClassifier,
    GestureSnapshot,
    ShapeLock,
    ShapeState,
)
from handcloud.audio import AudioReactor, AudioUnavailableError, MicrophoneSampler
from handcloud.engine import (
    AnimationEngine,
    EngineConfig,
    FrameState,
    HandObserved,
    AudioSampled,
)
