import numpy as np
import pytest

cv2 = pytest.importorskip("cv2")

from pipeline import step1_frame_capture
from pipeline.errors import CaptureUnavailableError
from pipeline.step1_frame_capture import FrameCapture, ImageCapture


def test_image_capture_yields_one_resized_frame(tmp_path):
    path = tmp_path / 'pose.png'
    cv2.imwrite(str(path), np.zeros((240, 320, 3), dtype=np.uint8))

    with ImageCapture(str(path), width=640, height=480) as capture:
        frames = list(capture.frames())

    assert len(frames) == 1
    assert frames[0].shape == (480, 640, 3)


def test_missing_image_raises_capture_error(tmp_path):
    with pytest.raises(CaptureUnavailableError):
        ImageCapture(str(tmp_path / 'missing.png'))


def test_only_webcam_and_image_sources():
    sources = {
        name for name, obj in vars(step1_frame_capture).items()
        if isinstance(obj, type) and issubclass(obj, FrameCapture) and obj is not FrameCapture
    }
    assert sources == {'WebcamCapture', 'ImageCapture'}
