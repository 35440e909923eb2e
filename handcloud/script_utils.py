"""Utility functions for running the particle cloud scripts."""

import json
import time
import logging
from collections import deque
from functools import partial
from typing import Union, Callable, Dict, Optional, Any, TypeVar

import argh
import cv2

from handcloud.util import return_none as do_nothing, configure_logging
from handcloud.hand_features import hand_feature_funcs
from handcloud.engine import AnimationEngine, EngineConfig, DFLT_VIEWPORT
from handcloud.audio import MicrophoneSampler
from handcloud.display import (
    PointCloudRenderer,
    display_features_on_image,
    draw_on_screen as DFLT_DRAW_ON_SCREEN,
)

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------------------
# Object resolution
# -------------------------------------------------------------------------------

T = TypeVar('T')


def resolve_object(
    obj: Union[str, T],
    *,
    object_map: Dict[str, T],
    expected_type: type = None,
    error_message: str = None,
) -> T:
    """
    Resolves an object by either returning it directly if it's of the correct type,
    or looking it up in a mapping if it's a string.

    Args:
        obj: The object to resolve. Can be a string (to be looked up in object_map)
             or the object itself (if it's already of type T).
        object_map: A dictionary mapping strings to objects of type T.
        expected_type: (Optional) The expected type of the resolved object.
        error_message: (Optional) A custom error message to use if a ValueError
                       or TypeError is raised. If None, a default message is used.

    Returns:
        The resolved object of type T.

    Raises:
        TypeError: If obj is not a string or of the expected type.
        ValueError: If obj is a string but is not found in object_map.

    >>> resolve_object('a', object_map={'a': 1})
    1
    >>> resolve_object(2, object_map={'a': 1}, expected_type=int)
    2
    """
    if isinstance(obj, str):
        if obj in object_map:
            resolved_obj = object_map[obj]
        else:
            msg = error_message or f"Unknown object identifier: {obj}"
            raise ValueError(msg)
    elif expected_type is None or isinstance(obj, expected_type):
        resolved_obj = obj
    else:
        msg = error_message or f"Expected type {expected_type}, got {type(obj)}"
        raise TypeError(msg)

    if expected_type and not isinstance(resolved_obj, expected_type):
        msg = (
            error_message
            or f"Resolved object should be of type {expected_type}, got {type(resolved_obj)}"
        )
        raise TypeError(msg)

    return resolved_obj


resolve_hand_features = partial(resolve_object, object_map=hand_feature_funcs)


# -------------------------------------------------------------------------------
# Logging utilities
# -------------------------------------------------------------------------------


def print_json_if_possible(x):
    """Prints the input (as json, if it can be serialized) and adds a newline."""
    try:
        x = json.dumps(x)
    except (TypeError, ValueError):
        pass
    print(x)
    print()


# -------------------------------------------------------------------------------
# Keyboard handling functions
# -------------------------------------------------------------------------------

ESCAPE_KEY_ASCII = 27
BREAK_KEYS = {ESCAPE_KEY_ASCII, ord('q')}
AUDIO_KEYS = {ord('a')}


class KeyboardBreakSignal(Exception):
    """Exception raised when a break key is pressed."""

    pass


def read_keyboard(wait_time: int = 1) -> int:
    """
    Read keyboard input with the specified wait time.

    Args:
        wait_time: Time to wait for keyboard input in milliseconds

    Returns:
        The key code (255 if no key was pressed)
    """
    return cv2.waitKey(wait_time) & 0xFF


def keyboard_feature_vector(key_code: int) -> Dict[str, Any]:
    """
    Convert a key code into a feature vector with keyboard information.

    Args:
        key_code: The key code from cv2.waitKey

    Returns:
        Dictionary containing keyboard features

    Raises:
        KeyboardBreakSignal: If a key that signals program termination is pressed

    >>> keyboard_feature_vector(ord('a'))['enable_audio']
    True
    """
    keyboard_fv = {
        'key_code': key_code,
        'key_pressed': 0 < key_code < 255,
        'enable_audio': key_code in AUDIO_KEYS,
        'timestamp': time.time(),
    }

    # Check if this is a break key and raise the exception if so
    if keyboard_fv['key_code'] in BREAK_KEYS:
        raise KeyboardBreakSignal(f"Break key pressed: {key_code}")

    return keyboard_fv


# -------------------------------------------------------------------------------
# Camera handling functions
# -------------------------------------------------------------------------------


class CameraReadError(Exception):
    """Exception raised when camera read fails."""

    pass


def read_camera(cap: cv2.VideoCapture, *, mirror: bool = False) -> Any:
    """
    Read a frame from the camera.

    Args:
        cap: OpenCV video capture object
        mirror: Whether to flip the image horizontally

    Returns:
        The image if successful

    Raises:
        CameraReadError: If the camera read operation fails
    """
    success, img = cap.read()
    if not success:
        raise CameraReadError("Failed to read from camera")
    return cv2.flip(img, 1) if mirror else img


class FpsMeter:
    """Frames per second over a sliding window of frame durations."""

    def __init__(self, window_size: int = 30, clock=time.perf_counter):
        self.clock = clock
        self.frame_times = deque(maxlen=window_size)
        self.last_time = clock()

    def update(self) -> float:
        now = self.clock()
        self.frame_times.append(now - self.last_time)
        self.last_time = now
        return self.fps

    @property
    def fps(self) -> float:
        total = sum(self.frame_times)
        return len(self.frame_times) / total if total > 0 else 0.0


# -------------------------------------------------------------------------------
# Main run function
# -------------------------------------------------------------------------------

DFLT_HAND_FEATURES = "many_single_hand_features"
DFLT_WINDOW_NAME = "Particle Hand Tracker"


def run_handcloud(
    *,
    config: Optional[EngineConfig] = None,
    camera_index: int = 0,
    enable_audio: bool = False,
    hand_features: Union[str, Callable] = DFLT_HAND_FEATURES,
    log_hand_features: Optional[Callable] = None,
    window_name: str = DFLT_WINDOW_NAME,
    draw_on_screen: Optional[Callable] = DFLT_DRAW_ON_SCREEN,
    show_features: bool = True,
):
    """
    Run the hand-tracked particle cloud application.

    Args:
        config: Engine configuration (defaults to ``EngineConfig()``)
        camera_index: Index of the camera to capture from
        enable_audio: Try to turn audio reactivity on right away (else press 'a')
        hand_features: Hand feature extraction function or name (for logging)
        log_hand_features: Function to log hand features (or None to disable)
        window_name: Title for the display window
        draw_on_screen: Function rendering a frame to an image
        show_features: Whether to overlay the current features on the image
    """
    # Import here so the rest of the package does not need mediapipe
    from handcloud.detection import HandDetector

    config = config or EngineConfig()
    hand_features = resolve_hand_features(hand_features)
    log_hand_features = log_hand_features or do_nothing

    width, height = config.viewport
    renderer = PointCloudRenderer(width, height)
    microphone = MicrophoneSampler()
    engine = AnimationEngine(
        config,
        audio_source=microphone.read,
        notify=logger.warning,
    )
    engine.add_resize_listener(renderer.resize)

    cap = cv2.VideoCapture(camera_index)
    detector = HandDetector()
    fps_meter = FpsMeter()

    if enable_audio:
        engine.enable_audio(microphone.open)

    cv2.namedWindow(window_name, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(window_name, width, height)

    try:
        while cap.isOpened():
            try:
                keyboard_fv = keyboard_feature_vector(read_keyboard())
                if keyboard_fv['enable_audio']:
                    engine.enable_audio(microphone.open)

                img = read_camera(cap)
                keypoints = detector.detect(img)
                if keypoints is not None:
                    log_hand_features(hand_features(keypoints))
                engine.on_hand_observed(keypoints)

                frame = engine.tick()
                fps = fps_meter.update()

                if draw_on_screen:
                    out = draw_on_screen(
                        renderer,
                        frame,
                        fps=fps,
                        draw_features=display_features_on_image if show_features else None,
                    )
                    cv2.imshow(window_name, out)
                    _sync_viewport(engine, window_name)

            except (CameraReadError, KeyboardBreakSignal) as e:
                logger.info("Stopping: %s", e)
                break
    finally:
        cap.release()
        detector.close()
        microphone.close()
        cv2.destroyAllWindows()


def _sync_viewport(engine: AnimationEngine, window_name: str):
    """Forward window size changes to the engine (and from there to the renderer)."""
    try:
        _, _, w, h = cv2.getWindowImageRect(window_name)
    except cv2.error:
        return
    if w > 0 and h > 0 and (w, h) != engine.viewport:
        engine.resize(w, h)


def handcloud_cli(
    # Engine options
    particle_count: int = 6000,
    # Input options
    camera_index: int = 0,
    audio: bool = False,
    # Display options
    width: int = DFLT_VIEWPORT[0],
    height: int = DFLT_VIEWPORT[1],
    window_name: str = DFLT_WINDOW_NAME,
    no_features: bool = False,
    # Logging options
    log_hand_features: bool = False,
    verbose: bool = False,
    # List available components
    list_hand_features: bool = False,
):
    """
    Run the particle cloud application with the specified parameters.

    Args:
        particle_count: Number of particles in the cloud
        camera_index: Index of the camera to capture from
        audio: Turn on microphone reactivity at startup (else press 'a')
        width: Initial window width
        height: Initial window height
        window_name: Title for the display window
        no_features: Don't overlay the features on the image
        log_hand_features: Whether to print the hand features of every detection
        verbose: Log debug messages
        list_hand_features: List available hand feature extraction functions and exit
    """
    if list_hand_features:
        print("Available hand feature extraction functions:")
        for name in sorted(hand_feature_funcs.keys()):
            print(f"  - {name}")
        return

    configure_logging(logging.DEBUG if verbose else logging.INFO)

    run_handcloud(
        config=EngineConfig(particle_count=particle_count, viewport=(width, height)),
        camera_index=camera_index,
        enable_audio=audio,
        log_hand_features=print_json_if_possible if log_hand_features else None,
        window_name=window_name,
        show_features=not no_features,
    )


def dispatched_handcloud_cli():
    argh.dispatch_command(handcloud_cli)
