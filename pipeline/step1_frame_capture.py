"""
Step 1: Frame Capture
Captures frames from a webcam or a still image.

Frames are resized to the normalization size so that pixel keypoints from the
estimator can be normalized with the same dimensions used for the reference.
"""

import cv2
import numpy as np
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Generator

from .errors import CaptureUnavailableError


class FrameCapture(ABC):
    """Abstract base class for frame capture."""

    output_size: Optional[Tuple[int, int]] = None  # (width, height) or None to keep

    @abstractmethod
    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        """Read a single frame."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    def is_opened(self) -> bool:
        """Check if capture is opened."""
        pass

    def get_frame(self) -> Optional[np.ndarray]:
        """Read one frame resized to output_size, None on failure."""
        ret, frame = self.read()
        if not ret or frame is None:
            return None
        return self._fit(frame)

    def frames(self) -> Generator[np.ndarray, None, None]:
        """Generator that yields frames."""
        while self.is_opened():
            frame = self.get_frame()
            if frame is None:
                break
            yield frame
        self.release()

    def _fit(self, frame: np.ndarray) -> np.ndarray:
        if self.output_size is None:
            return frame
        w, h = self.output_size
        if frame.shape[1] == w and frame.shape[0] == h:
            return frame
        return cv2.resize(frame, (w, h), interpolation=cv2.INTER_LINEAR)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class WebcamCapture(FrameCapture):
    """Capture frames from webcam."""

    def __init__(
        self,
        camera_id: int = 0,
        width: int = 640,
        height: int = 480,
        fps: Optional[int] = None,
        output_size: Optional[Tuple[int, int]] = None
    ):
        """
        Open the webcam.

        Args:
            camera_id: Camera index (0 = default camera)
            width: Requested camera frame width
            height: Requested camera frame height
            fps: Requested camera frame rate (driver may ignore it)
            output_size: (width, height) of returned frames, defaults to the requested size

        Raises:
            CaptureUnavailableError: if the camera cannot be opened
        """
        self.camera_id = camera_id
        self.output_size = output_size or (width, height)
        self.cap = cv2.VideoCapture(camera_id)
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if fps:
            self.cap.set(cv2.CAP_PROP_FPS, fps)

        if not self.cap.isOpened():
            raise CaptureUnavailableError(f"cannot open camera {camera_id}")

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        return self.cap.read()

    def get_fps(self) -> float:
        """Actual camera FPS reported by the driver."""
        return self.cap.get(cv2.CAP_PROP_FPS)

    def release(self) -> None:
        if self.cap.isOpened():
            self.cap.release()

    def is_opened(self) -> bool:
        return self.cap.isOpened()


class ImageCapture(FrameCapture):
    """Capture from a single image (reference capture from a photo)."""

    def __init__(self, image_path: str, width: int = 640, height: int = 480):
        self.image_path = image_path
        self.output_size = (width, height)
        self.image = cv2.imread(image_path)
        if self.image is None:
            raise CaptureUnavailableError(f"cannot read image {image_path}")
        self.read_count = 0

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        if self.read_count == 0 and self.image is not None:
            self.read_count += 1
            return True, self.image.copy()
        return False, None

    def release(self) -> None:
        self.image = None

    def is_opened(self) -> bool:
        return self.image is not None and self.read_count == 0
