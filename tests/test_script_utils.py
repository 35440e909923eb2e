import pytest

pytest.importorskip('cv2')
pytest.importorskip('argh')

from handcloud.script_utils import (
    CameraReadError,
    FpsMeter,
    KeyboardBreakSignal,
    keyboard_feature_vector,
    read_camera,
    resolve_hand_features,
    ESCAPE_KEY_ASCII,
)
from handcloud.hand_features import many_single_hand_features


@pytest.mark.parametrize('key', [ESCAPE_KEY_ASCII, ord('q')])
def test_break_keys_stop_the_loop(key):
    with pytest.raises(KeyboardBreakSignal):
        keyboard_feature_vector(key)


def test_no_key_pressed():
    fv = keyboard_feature_vector(255)
    assert not fv['key_pressed']
    assert not fv['enable_audio']


def test_hand_features_resolve_by_name():
    assert resolve_hand_features('many_single_hand_features') is many_single_hand_features
    assert resolve_hand_features(many_single_hand_features) is many_single_hand_features
    with pytest.raises(ValueError):
        resolve_hand_features('nope')


class FailingCapture:
    def read(self):
        return False, None


def test_failed_camera_read_raises():
    with pytest.raises(CameraReadError):
        read_camera(FailingCapture())


def test_fps_meter():
    times = iter([0.0, 0.5, 1.0, 1.5])
    meter = FpsMeter(clock=lambda: next(times))
    assert meter.fps == 0.0
    meter.update()
    meter.update()
    assert meter.update() == pytest.approx(2.0)
