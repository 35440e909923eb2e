"""Display utilities for the particle cloud visualization."""

import math
import logging
from typing import Union, Tuple, Optional, Callable

import cv2
import numpy as np

from handcloud.engine import FrameState

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------------------
# Types
# -------------------------------------------------------------------------------

Color = Union[Tuple[int, int, int], Tuple[int, int, int, int]]  # BGR or BGRA

DFLT_FOV = 75  # vertical field of view, in degrees
DFLT_CAMERA_Z = 1000
DFLT_NEAR, DFLT_FAR = 1, 10000
DFLT_POINT_SIZE = 6
DFLT_OPACITY = 0.8
DFLT_FOG_DENSITY = 0.001
MAX_SPRITE_SIZE = 15

# -------------------------------------------------------------------------------
# 3-D helpers
# -------------------------------------------------------------------------------


def rotation_matrix(rx: float, ry: float, rz: float) -> np.ndarray:
    """
    Rotation matrix for Euler angles applied in XYZ order (``Rx @ Ry @ Rz``).

    >>> bool(np.allclose(rotation_matrix(0, 0, 0), np.eye(3)))
    True
    """
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    rot_x = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    rot_y = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    rot_z = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return rot_x @ rot_y @ rot_z


def world_positions(frame: FrameState) -> np.ndarray:
    """Apply the cloud's scale, rotation and translation to its particle positions."""
    rot = rotation_matrix(*frame.rotation)
    world = (frame.positions * frame.scale) @ rot.T
    world[:, 0] += frame.position[0]
    world[:, 1] += frame.position[1]
    return world


def project_points(
    points: np.ndarray,
    width: int,
    height: int,
    *,
    fov: float = DFLT_FOV,
    camera_z: float = DFLT_CAMERA_Z,
    near: float = DFLT_NEAR,
    far: float = DFLT_FAR,
):
    """
    Perspective projection for a camera on the z axis looking toward the origin.

    Returns:
        tuple: (pixel coordinates as an (n, 2) float array, depths, visible mask)

    >>> xy, depth, visible = project_points(np.array([[0.0, 0.0, 0.0]]), 200, 100)
    >>> xy.tolist(), depth.tolist(), visible.tolist()
    ([[100.0, 50.0]], [1000.0], [True])
    """
    depth = camera_z - points[:, 2]
    focal = 1 / math.tan(math.radians(fov) / 2)
    aspect = width / height
    with np.errstate(divide='ignore', invalid='ignore'):
        ndc_x = focal / aspect * points[:, 0] / depth
        ndc_y = focal * points[:, 1] / depth
    xy = np.column_stack([(ndc_x + 1) / 2 * width, (1 - ndc_y) / 2 * height])
    visible = (
        (depth > near)
        & (depth < far)
        & (xy[:, 0] >= 0)
        & (xy[:, 0] < width)
        & (xy[:, 1] >= 0)
        & (xy[:, 1] < height)
    )
    return xy, depth, visible


# -------------------------------------------------------------------------------
# Renderer
# -------------------------------------------------------------------------------


class PointCloudRenderer:
    """
    Draws the particle cloud with additive blending and exponential fog.

    >>> from handcloud.engine import AnimationEngine, EngineConfig
    >>> from handcloud.util import ManualClock
    >>> engine = AnimationEngine(EngineConfig(particle_count=50), clock=ManualClock())
    >>> renderer = PointCloudRenderer(320, 240)
    >>> renderer.render(engine.tick()).shape
    (240, 320, 3)
    """

    def __init__(
        self,
        width: int,
        height: int,
        *,
        point_size: float = DFLT_POINT_SIZE,
        opacity: float = DFLT_OPACITY,
        fog_density: float = DFLT_FOG_DENSITY,
        fov: float = DFLT_FOV,
        camera_z: float = DFLT_CAMERA_Z,
    ):
        self.width = width
        self.height = height
        self.point_size = point_size
        self.opacity = opacity
        self.fog_density = fog_density
        self.fov = fov
        self.camera_z = camera_z

    def resize(self, width: int, height: int):
        self.width, self.height = width, height
        logger.debug("Renderer resized to %dx%d", width, height)

    def render(self, frame: FrameState) -> np.ndarray:
        """Render a frame as a BGR uint8 image."""
        h, w = self.height, self.width
        xy, depth, visible = project_points(
            world_positions(frame), w, h, fov=self.fov, camera_z=self.camera_z
        )
        xy, depth = xy[visible], depth[visible]

        weight = self.opacity * np.exp(-((self.fog_density * depth) ** 2))
        weight = weight.astype(np.float32)
        cols = xy[:, 0].astype(int)
        rows = xy[:, 1].astype(int)
        energy = np.zeros((h, w), dtype=np.float32)
        np.add.at(energy, (rows, cols), weight)

        # sprite size shrinks with distance, like size-attenuated points
        if len(depth):
            size = self.point_size * (h / 2) / float(np.median(depth))
            ksize = min(max(1, int(round(size))), MAX_SPRITE_SIZE)
            energy = cv2.dilate(energy, np.ones((ksize, ksize), np.uint8))

        r, g, b = frame.color
        bgr = np.array([b, g, r], dtype=np.float32)
        img = np.clip(energy[..., None] * bgr * 255, 0, 255)
        return img.astype(np.uint8)


# -------------------------------------------------------------------------------
# Screen drawing functions
# -------------------------------------------------------------------------------


def display_features_on_image(
    img: np.ndarray,
    features: dict,
    *,
    font=cv2.FONT_HERSHEY_SIMPLEX,
    font_scale: float = 0.6,
    color: Color = (0, 255, 0),
    thickness: float = 1,
    float_format: str = ".2f",
    x_pos=10,
    y_pos=25,
    y_increment=25,
    bg_color: Color = (
        150,
        150,
        150,
        128,
    ),  # Light grey, semi-transparent (BGR + alpha)
):
    """
    Display features on the image with a semi-transparent background.

    Args:
        img: The image to draw on
        features: Dictionary of features
        font: Font type to use
        font_scale: Size of the font
        color: Text color in BGR format
        thickness: Line thickness of text
        float_format: Format string for float values
        x_pos: Starting x position for text
        y_pos: Starting y position for text
        y_increment: Vertical space between lines
        bg_color: Background color (BGR + alpha) where alpha is 0-255
    """
    if not features:
        return img

    # Create an overlay for the background
    overlay = img.copy()

    # Process bg_color to separate BGR and alpha
    if len(bg_color) == 4:
        bg_rgb = bg_color[:3]
        alpha = bg_color[3] / 255.0  # Convert to 0-1 range
    else:
        bg_rgb = bg_color
        alpha = 0.5  # Default alpha

    lines = []
    for key, value in features.items():
        if isinstance(value, float):
            formatted_value = f"{value:{float_format}}"
        else:
            formatted_value = str(value)
        lines.append(f"{key}: {formatted_value}")

    # Draw background rectangles
    for idx, text in enumerate(lines):
        (text_width, text_height), _ = cv2.getTextSize(
            text, font, font_scale, thickness
        )
        padding = 5  # Padding around the text
        cv2.rectangle(
            overlay,
            (x_pos - padding, y_pos + idx * y_increment - text_height - padding),
            (x_pos + text_width + padding, y_pos + idx * y_increment + padding),
            bg_rgb,
            -1,  # Filled rectangle
        )

    # Apply the overlay with transparency
    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, img)

    # Draw text on top
    for idx, text in enumerate(lines):
        cv2.putText(
            img,
            text,
            (x_pos, y_pos + idx * y_increment),
            font,
            font_scale,
            color,
            thickness,
        )

    return img


def frame_features(frame: FrameState, *, fps: Optional[float] = None) -> dict:
    """The human-readable summary of a frame shown in the overlay."""
    features = {
        "shape": frame.shape.value,
        "exploded": frame.is_exploded,
        "scale": float(frame.scale),
        "audio": float(frame.audio_intensity),
    }
    if fps is not None:
        features["fps"] = float(fps)
    return features


def draw_on_screen(
    renderer: PointCloudRenderer,
    frame: FrameState,
    *,
    fps: Optional[float] = None,
    draw_features: Optional[Callable] = display_features_on_image,
):
    """
    Render the cloud and, optionally, the features overlay.

    Args:
        renderer: The PointCloudRenderer to draw with
        frame: The frame state returned by ``AnimationEngine.tick``
        fps: Frames per second to display, if known
        draw_features: Function to draw the features (or None to skip)

    Returns:
        img: The rendered image
    """
    img = renderer.render(frame)
    if draw_features:
        img = draw_features(img, frame_features(frame, fps=fps))
    return img
