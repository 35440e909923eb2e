import numpy as np
import pytest

cv2 = pytest.importorskip('cv2')

from handcloud.display import (
    PointCloudRenderer,
    display_features_on_image,
    draw_on_screen,
    frame_features,
    project_points,
    rotation_matrix,
    world_positions,
)
from handcloud.engine import FrameState
from handcloud.shapes import ShapeKind


def make_frame(positions, *, color=(1.0, 0.0, 0.0), scale=1.0, rotation=(0, 0, 0),
               position=(0.0, 0.0)):
    return FrameState(
        positions=np.asarray(positions, dtype=float),
        color=color,
        scale=scale,
        rotation=rotation,
        position=position,
        shape=ShapeKind.SPHERE,
        is_exploded=False,
        audio_intensity=0.0,
    )


def test_rotation_about_y_turns_x_into_minus_z():
    rotated = rotation_matrix(0, np.pi / 2, 0) @ np.array([1.0, 0.0, 0.0])
    assert np.allclose(rotated, [0, 0, -1])


def test_world_positions_scale_then_translate():
    frame = make_frame([[1.0, 2.0, 3.0]], scale=2.0, position=(10.0, -10.0))
    assert np.allclose(world_positions(frame), [[12.0, -6.0, 6.0]])


def test_points_behind_the_camera_are_hidden():
    _, _, visible = project_points(np.array([[0.0, 0.0, 1500.0]]), 200, 100)
    assert not visible[0]


def test_render_uses_the_cloud_color():
    renderer = PointCloudRenderer(200, 100)
    img = renderer.render(make_frame([[0.0, 0.0, 0.0]] * 5, color=(1.0, 0.0, 0.0)))
    assert img.shape == (100, 200, 3)
    assert img[..., 2].max() > 0  # red, in BGR
    assert img[..., 0].max() == 0
    assert img[..., 1].max() == 0


def test_render_of_an_offscreen_cloud_is_black():
    renderer = PointCloudRenderer(200, 100)
    img = renderer.render(make_frame([[0.0, 0.0, 0.0]], position=(1e6, 0.0)))
    assert img.max() == 0


def test_resize_changes_the_output_size():
    renderer = PointCloudRenderer(200, 100)
    renderer.resize(64, 48)
    assert renderer.render(make_frame([[0.0, 0.0, 0.0]])).shape == (48, 64, 3)


def test_features_overlay_draws_on_the_image():
    img = np.zeros((100, 300, 3), dtype=np.uint8)
    out = display_features_on_image(img, {'shape': 'sphere', 'scale': 1.0})
    assert out is img
    assert img.max() > 0


def test_draw_on_screen_with_and_without_features():
    renderer = PointCloudRenderer(300, 200)
    frame = make_frame([[1e6, 0.0, 0.0]])
    assert draw_on_screen(renderer, frame, draw_features=None).max() == 0
    assert draw_on_screen(renderer, frame, fps=30.0).max() > 0


def test_frame_features():
    features = frame_features(make_frame([[0.0, 0.0, 0.0]]), fps=60.0)
    assert features == {
        'shape': 'sphere',
        'exploded': False,
        'scale': 1.0,
        'audio': 0.0,
        'fps': 60.0,
    }
