"""The per-frame animation engine.

The engine owns all the mutable state of the visualizer and has three ways in:

* ``on_hand_observed`` (or a ``HandObserved`` event), called whenever the hand
  detector produces a result, at the camera's own irregular pace,
* ``on_audio_sampled`` (or an ``AudioSampled`` event), to push frequency magnitudes,
* ``tick``, called once per rendered frame, which moves everything one step and
  returns the ``FrameState`` the renderer should draw.

Everything runs on one thread; the callers are expected to interleave the calls.

>>> from handcloud.util import ManualClock
>>> engine = AnimationEngine(EngineConfig(particle_count=100), clock=ManualClock())
>>> frame = engine.tick()
>>> frame.shape, frame.is_exploded, round(frame.rotation[1], 3)
(<ShapeKind.SPHERE: 'sphere'>, False, 0.002)
"""

import time
import logging
from dataclasses import dataclass, field
from functools import singledispatchmethod
from typing import Callable, List, Optional, Tuple

import numpy as np

from handcloud.util import Clock, return_none
from handcloud.shapes import ShapeKind, Rng
from handcloud.particles import (
    ParticleState,
    RGB,
    DFLT_PARTICLE_COUNT,
    DFLT_SMOOTHING,
    DFLT_EXPLODE_MULTIPLIER,
)
from handcloud.hand_features import (
    GestureClassifier,
    GestureSnapshot,
    ShapeState,
    DFLT_PINCH_THRESHOLD,
    DFLT_FIST_THRESHOLD,
    DFLT_LOCK_DURATION,
)
from handcloud.audio import AudioReactor, AudioUnavailableError, RangeMapper

logger = logging.getLogger(__name__)

DFLT_VIEWPORT = (1280, 720)

# -------------------------------------------------------------------------------
# Configuration and state
# -------------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """All the knobs of the animation, with the values the visualizer ships with."""

    particle_count: int = DFLT_PARTICLE_COUNT
    smoothing: float = DFLT_SMOOTHING
    explode_multiplier: float = DFLT_EXPLODE_MULTIPLIER
    pinch_threshold: float = DFLT_PINCH_THRESHOLD
    fist_threshold: float = DFLT_FIST_THRESHOLD
    lock_duration: float = DFLT_LOCK_DURATION
    audio_scale_gain: float = 0.8
    audio_rotation_base: float = 0.001
    audio_rotation_gain: float = 0.0001
    idle_rotation: float = 0.002
    viewport: Tuple[int, int] = DFLT_VIEWPORT


@dataclass
class CloudTransform:
    """Uniform transform applied to the whole cloud by the renderer."""

    position: List[float] = field(default_factory=lambda: [0.0, 0.0])
    scale: float = 1.0
    rotation: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])


@dataclass(frozen=True)
class FrameState:
    """Everything a renderer needs to draw one frame."""

    positions: np.ndarray
    color: RGB
    scale: float
    rotation: Tuple[float, float, float]
    position: Tuple[float, float]
    shape: ShapeKind
    is_exploded: bool
    audio_intensity: float


@dataclass(frozen=True)
class HandObserved:
    keypoints: object = None


@dataclass(frozen=True)
class AudioSampled:
    magnitudes: object


def approach(current: float, target: float, smoothing: float) -> float:
    """
    One step of exponential approach of ``current`` toward ``target``.

    >>> approach(0.0, 10.0, 0.1)
    1.0
    """
    return current + (target - current) * smoothing


def cursor_target(index_tip, viewport: Tuple[int, int]) -> Tuple[float, float]:
    """
    Where the cloud should go for a (normalized, mirrored) index finger tip position.

    The center of the image maps to the origin, and the edges to twice the viewport
    half-size, so the cloud can follow the finger past the screen borders.

    >>> cursor_target((0.5, 0.5, 0.0), (800, 600))
    (0.0, 0.0)
    >>> cursor_target((0.0, 1.0, 0.0), (800, 600))
    (800.0, -600.0)
    """
    width, height = viewport
    return ((0.5 - index_tip[0]) * width * 2, (0.5 - index_tip[1]) * height * 2)


# -------------------------------------------------------------------------------
# Engine
# -------------------------------------------------------------------------------


class AnimationEngine:
    """
    Drives the particle cloud from hand gestures and microphone loudness.

    Args:
        config: The animation constants
        clock: Monotonic clock used for the shape lock (``time.monotonic`` by default)
        rng: Random generator for the initial scatter and the jittery shapes
        audio_source: Callable returning frequency magnitudes, pulled once per tick
            while audio is active (e.g. ``MicrophoneSampler.read``)
        notify: Called with a message for the user when something they asked for
            fails (e.g. the microphone can't be opened)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        clock: Clock = time.monotonic,
        rng: Rng = None,
        audio_source: Optional[Callable[[], object]] = None,
        notify: Callable[[str], None] = return_none,
    ):
        self.config = config or EngineConfig()
        self.particles = ParticleState(self.config.particle_count, rng=rng)
        self.classifier = GestureClassifier(
            clock,
            pinch_threshold=self.config.pinch_threshold,
            fist_threshold=self.config.fist_threshold,
            lock_duration=self.config.lock_duration,
        )
        self.shape_state = ShapeState()
        self.audio = AudioReactor(
            scale_mapper=RangeMapper(
                (0.0, 1.0), (1.0, 1.0 + self.config.audio_scale_gain), egress=float
            )
        )
        self.audio_source = audio_source
        self.notify = notify
        self.transform = CloudTransform()
        self.viewport = tuple(self.config.viewport)
        self.cursor = (0.0, 0.0)
        self._audio_failing = False
        self._resize_listeners: List[Callable[[int, int], None]] = []

    # ---------------------------------------------------------------------------
    # Read-only views

    @property
    def is_exploded(self) -> bool:
        return self.classifier.is_exploded

    @property
    def shape(self) -> ShapeKind:
        return self.shape_state.kind

    @property
    def gesture(self) -> Optional[GestureSnapshot]:
        return self.classifier.last_snapshot

    @property
    def is_audio_active(self) -> bool:
        return self.audio.is_active

    # ---------------------------------------------------------------------------
    # Inbound events

    @singledispatchmethod
    def handle(self, event):
        raise TypeError(f"Unknown event type: {type(event).__name__}")

    @handle.register
    def _(self, event: HandObserved):
        return self.on_hand_observed(event.keypoints)

    @handle.register
    def _(self, event: AudioSampled):
        return self.on_audio_sampled(event.magnitudes)

    def on_hand_observed(self, keypoints):
        """
        Take in the latest hand detection (``None`` when no hand was found).

        Malformed or partial detections count as "no hand", which leaves the gesture
        state as it was.
        """
        result = self.classifier.observe(keypoints)
        if not result.hand_present:
            return result

        snapshot = result.snapshot
        self.cursor = cursor_target(snapshot.index_tip, self.viewport)
        self.particles.set_hue(snapshot.index_tip[0])

        if result.advance:
            kind = self.shape_state.advance()
            self.particles.set_shape(kind)
            logger.info("Shape changed to %s", kind.value)
        return result

    def on_audio_sampled(self, magnitudes) -> float:
        return self.audio.on_audio_sampled(magnitudes)

    def enable_audio(self, opener: Optional[Callable[[], object]] = None) -> bool:
        """
        Opt in to audio reactivity, once.

        ``opener`` acquires the microphone (for instance ``MicrophoneSampler.open``).
        If it raises, the user is notified and audio stays off; the engine keeps
        running either way. Once audio is active, further calls do nothing.

        Returns:
            Whether audio is active after the call
        """
        if self.audio.is_active:
            return True
        if opener is not None:
            try:
                opener()
            except Exception as e:
                logger.error("Microphone access denied: %s", e)
                self.notify("Please allow microphone access to use music mode!")
                return False
        self.audio.activate()
        return True

    def add_resize_listener(self, listener: Callable[[int, int], None]):
        self._resize_listeners.append(listener)

    def resize(self, width: int, height: int):
        """Record the new viewport size and pass it on to the renderer(s)."""
        self.viewport = (width, height)
        for listener in self._resize_listeners:
            listener(width, height)

    # ---------------------------------------------------------------------------
    # Frame

    def tick(self) -> FrameState:
        """Advance the animation by one frame."""
        cfg = self.config
        transform = self.transform

        self.particles.update_positions(
            self.is_exploded,
            smoothing=cfg.smoothing,
            explode_multiplier=cfg.explode_multiplier,
        )

        if self.audio.is_active:
            if self.audio_source is not None:
                self._pull_audio()
            intensity = self.audio.intensity
            transform.scale = approach(
                transform.scale, self.audio.target_scale, cfg.smoothing
            )
            transform.rotation[2] += (
                cfg.audio_rotation_base + intensity * cfg.audio_rotation_gain
            )
        else:
            transform.rotation[1] += cfg.idle_rotation

        transform.position[0] = approach(
            transform.position[0], self.cursor[0], cfg.smoothing
        )
        transform.position[1] = approach(
            transform.position[1], self.cursor[1], cfg.smoothing
        )

        return self.frame_state()

    def _pull_audio(self):
        """Sample the audio source, keeping the last intensity if it fails."""
        try:
            magnitudes = self.audio_source()
        except (AudioUnavailableError, OSError) as e:
            if not self._audio_failing:
                logger.error("Audio input failed, keeping the last level: %s", e)
                self._audio_failing = True
            return
        if self._audio_failing:
            logger.info("Audio input recovered")
            self._audio_failing = False
        self.audio.on_audio_sampled(magnitudes)

    def frame_state(self) -> FrameState:
        transform = self.transform
        return FrameState(
            positions=self.particles.positions,
            color=self.particles.color,
            scale=transform.scale,
            rotation=tuple(transform.rotation),
            position=tuple(transform.position),
            shape=self.shape,
            is_exploded=self.is_exploded,
            audio_intensity=self.audio.intensity,
        )
