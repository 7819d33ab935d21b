"""
Step 2: Pose Estimation
Produces PoseSample objects (pixel coordinates) from camera frames.

Backends:
- YOLOv8-Pose (ultralytics), 17 COCO keypoints
- MediaPipe Pose, mapped onto the same 17 COCO keypoints

The loaded model is held by ModelRegistry so the expensive load happens once
per process, no matter how many estimators are created.
"""

import logging
import threading
import time
import numpy as np
from queue import Empty, Full, Queue
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from .errors import ModelUnavailableError
from .pose_data import PoseKeypoint, PoseSample

logger = logging.getLogger(__name__)


# COCO keypoint names (17 keypoints)
COCO_KEYPOINT_NAMES = [
    'nose',           # 0
    'left_eye',       # 1
    'right_eye',      # 2
    'left_ear',       # 3
    'right_ear',      # 4
    'left_shoulder',  # 5
    'right_shoulder', # 6
    'left_elbow',     # 7
    'right_elbow',    # 8
    'left_wrist',     # 9
    'right_wrist',    # 10
    'left_hip',       # 11
    'right_hip',      # 12
    'left_knee',      # 13
    'right_knee',     # 14
    'left_ankle',     # 15
    'right_ankle'     # 16
]

# MediaPipe Pose landmark index for each COCO keypoint
MEDIAPIPE_TO_COCO = [0, 2, 5, 7, 8, 11, 12, 13, 14, 15, 16, 23, 24, 25, 26, 27, 28]


class ModelRegistry:
    """
    Process-wide holder for loaded pose models.

    Models are created lazily on the first get() for a key and live until
    close() is called for that key (or for all keys). Loader failures are
    re-raised as ModelUnavailableError and nothing is cached, so a later get()
    retries the load.
    """

    _models: Dict[str, Any] = {}

    @classmethod
    def get(cls, key: str, loader: Callable[[], Any]) -> Any:
        if key not in cls._models:
            logger.info("Loading pose model %s", key)
            try:
                cls._models[key] = loader()
            except ModelUnavailableError:
                raise
            except Exception as e:
                raise ModelUnavailableError(f"failed to load {key}: {e}") from e
        return cls._models[key]

    @classmethod
    def is_loaded(cls, key: str) -> bool:
        return key in cls._models

    @classmethod
    def close(cls, key: Optional[str] = None) -> None:
        """Tear down one model, or every model when key is None."""
        keys = [key] if key is not None else list(cls._models)
        for k in keys:
            model = cls._models.pop(k, None)
            if model is None:
                continue
            close = getattr(model, 'close', None)
            if callable(close):
                close()
            logger.info("Released pose model %s", k)


class PoseEstimator(ABC):
    """Pose estimation collaborator: frame in, PoseSample (pixels) out."""

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def estimate(self, frame: np.ndarray) -> Optional[PoseSample]:
        """
        Estimate the pose of the most confident person.

        Args:
            frame: Input image (BGR format)

        Returns:
            PoseSample in pixel coordinates, or None if no person detected
        """

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class YoloPoseEstimator(PoseEstimator):
    """Estimate pose using YOLOv8-Pose (person detection + keypoints in one step)."""

    def __init__(
        self,
        model_path: str = "yolov8n-pose.pt",
        confidence_threshold: float = 0.25,
        device: Optional[str] = None
    ):
        """
        Args:
            model_path: Path to YOLOv8-Pose model (nano/small/medium)
            confidence_threshold: Minimum confidence for person detection
            device: 'cuda' or 'cpu' (auto-detect if None)

        Raises:
            ModelUnavailableError: if ultralytics is missing or the model fails to load
        """
        self.model_path = model_path
        self.confidence_threshold = confidence_threshold
        self.device = device or self._detect_device()
        self.model = ModelRegistry.get(f"yolov8:{model_path}", self._load_model)
        logger.info("Using YOLOv8-Pose (%s) on %s", model_path, self.device.upper())

    @staticmethod
    def _detect_device() -> str:
        try:
            import torch
        except ImportError:
            return 'cpu'
        return 'cuda' if torch.cuda.is_available() else 'cpu'

    def _load_model(self):
        try:
            from ultralytics import YOLO
        except ImportError as e:
            raise ModelUnavailableError(
                "ultralytics not installed. Run: pip install ultralytics"
            ) from e
        return YOLO(self.model_path)

    def name(self) -> str:
        return "yolov8_pose"

    def estimate(self, frame: np.ndarray) -> Optional[PoseSample]:
        results = self.model(frame, verbose=False, device=self.device)

        # Keep the person with highest box confidence
        best_result = None
        best_index = 0
        best_conf = 0.0

        for result in results:
            if result.keypoints is None or len(result.keypoints) == 0:
                continue
            boxes = result.boxes
            if boxes is None or len(boxes) == 0:
                continue

            for i in range(len(boxes)):
                conf = float(boxes[i].conf[0])
                if conf >= self.confidence_threshold and conf > best_conf:
                    best_conf = conf
                    best_result = result
                    best_index = i

        if best_result is None:
            return None

        # Shape: [17, 3] where 3 = x_px, y_px, conf
        data = best_result.keypoints.data[best_index]
        keypoints = []
        for i in range(min(len(data), len(COCO_KEYPOINT_NAMES))):
            keypoints.append(PoseKeypoint(
                x=float(data[i, 0]),
                y=float(data[i, 1]),
                confidence=float(data[i, 2]),
                name=COCO_KEYPOINT_NAMES[i],
            ))

        return PoseSample(keypoints=tuple(keypoints), confidence=best_conf)

    def close(self) -> None:
        # The registry owns the model; ModelRegistry.close() releases it
        pass


class MediaPipePoseEstimator(PoseEstimator):
    """
    MediaPipe Pose mapped onto the COCO-17 keypoint order.

    MediaPipe returns normalized coordinates; they are scaled to pixels so
    both backends feed the same normalization step. Visibility is used as
    confidence.
    """

    def __init__(
        self,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        smooth_landmarks: bool = True
    ):
        try:
            import cv2
            import mediapipe as mp
        except ImportError as e:
            raise ModelUnavailableError(
                "MediaPipe is not installed. Run: pip install mediapipe"
            ) from e

        self._cv2 = cv2
        self.key = f"mediapipe:{model_complexity}"
        self.pose = ModelRegistry.get(self.key, lambda: mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=int(model_complexity),
            smooth_landmarks=smooth_landmarks,
            min_detection_confidence=float(min_detection_confidence),
            min_tracking_confidence=float(min_tracking_confidence),
        ))

    def name(self) -> str:
        return "mediapipe_pose"

    def estimate(self, frame: np.ndarray) -> Optional[PoseSample]:
        h, w = frame.shape[:2]
        rgb_frame = self._cv2.cvtColor(frame, self._cv2.COLOR_BGR2RGB)
        rgb_frame.flags.writeable = False
        results = self.pose.process(rgb_frame)

        if not results or not results.pose_landmarks:
            return None

        landmarks = results.pose_landmarks.landmark
        keypoints = []
        for name, idx in zip(COCO_KEYPOINT_NAMES, MEDIAPIPE_TO_COCO):
            lm = landmarks[idx]
            keypoints.append(PoseKeypoint(
                x=float(lm.x) * w,
                y=float(lm.y) * h,
                z=float(lm.z),
                confidence=float(getattr(lm, 'visibility', 0.0) or 0.0),
                name=name,
            ))

        return PoseSample(keypoints=tuple(keypoints))

    def close(self) -> None:
        ModelRegistry.close(self.key)


def create_estimator(backend: str = "yolov8", **kwargs) -> PoseEstimator:
    """
    Create a pose estimator by backend name.

    Args:
        backend: "yolov8" or "mediapipe"
        **kwargs: Passed to the estimator constructor

    Raises:
        ValueError: unknown backend
        ModelUnavailableError: backend library or model missing
    """
    if backend == "yolov8":
        return YoloPoseEstimator(**kwargs)
    if backend == "mediapipe":
        return MediaPipePoseEstimator(**kwargs)
    raise ValueError(f"Unknown pose backend: {backend}")


class SampleThrottle:
    """
    Rate-limits pose sample delivery.

    At most one non-null sample is delivered per min_interval_ms. A None
    sample ("no pose visible") is always delivered so downstream state can
    react immediately.
    """

    def __init__(
        self,
        deliver: Callable[[Optional[PoseSample]], None],
        min_interval_ms: float = 50,
        clock: Optional[Callable[[], float]] = None
    ):
        if min_interval_ms < 0:
            raise ValueError("min_interval_ms must be >= 0")
        self.deliver = deliver
        self.min_interval_ms = min_interval_ms
        self.clock = clock or (lambda: time.monotonic() * 1000.0)
        self._last_delivery_ms: Optional[float] = None
        self.dropped = 0

    def push(self, sample: Optional[PoseSample], now_ms: Optional[float] = None) -> bool:
        """
        Offer a sample for delivery.

        Returns:
            True if the sample was delivered, False if it was dropped
        """
        if sample is None:
            self.deliver(None)
            return True

        now = self.clock() if now_ms is None else now_ms
        if (self._last_delivery_ms is not None
                and now - self._last_delivery_ms < self.min_interval_ms):
            self.dropped += 1
            return False

        self._last_delivery_ms = now
        self.deliver(sample)
        return True

    def reset(self) -> None:
        self._last_delivery_ms = None
        self.dropped = 0


class AsyncPoseAnalyzer:
    """
    Background thread for pose estimation.

    The display loop submits frames without blocking and reads the latest
    result slot. Only one worker ever runs: stop() waits for an in-flight
    estimate to finish, and every start() gets its own stop event, so a
    worker from an earlier start can never resume.
    """

    def __init__(self, estimator: PoseEstimator, skip_frames: int = 0):
        self.estimator = estimator
        self.skip_frames = max(0, skip_frames)

        self.frame_queue = Queue(maxsize=2)

        # Latest result slot, seq increases on every completed estimation
        self.latest_sample: Optional[PoseSample] = None
        self.seq = 0
        self.result_lock = threading.Lock()

        self.thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self.analysis_fps = 0.0
        self._submitted = 0

    @property
    def running(self) -> bool:
        return (self.thread is not None
                and self.thread.is_alive()
                and not self._stop_event.is_set())

    def start(self):
        """Start the worker; a running worker is stopped first."""
        self.stop()
        self._stop_event = threading.Event()
        self.thread = threading.Thread(
            target=self._analysis_loop, args=(self._stop_event,), daemon=True
        )
        self.thread.start()

    def stop(self):
        """Stop the worker and wait until it has left the estimator."""
        if self.thread is None:
            return
        self._stop_event.set()
        self.thread.join()
        self.thread = None
        # Frames queued for the old worker are stale
        while True:
            try:
                self.frame_queue.get_nowait()
            except Empty:
                break

    def submit_frame(self, frame: np.ndarray) -> None:
        """Submit frame for analysis (non-blocking), honoring skip_frames."""
        self._submitted += 1
        if self.skip_frames and (self._submitted - 1) % (self.skip_frames + 1):
            return
        # Replace old frame if queue full
        if self.frame_queue.full():
            try:
                self.frame_queue.get_nowait()
            except Empty:
                pass
        try:
            self.frame_queue.put_nowait(frame.copy())
        except Full:
            pass

    def get_latest(self):
        """(sample, seq, analysis_fps) without blocking."""
        with self.result_lock:
            return self.latest_sample, self.seq, self.analysis_fps

    def _analysis_loop(self, stop_event: threading.Event):
        prev_time = time.time()

        while not stop_event.is_set():
            try:
                frame = self.frame_queue.get(timeout=0.1)
            except Empty:
                continue

            try:
                sample = self.estimator.estimate(frame)
            except Exception as e:
                logger.error("Pose estimation failed: %s", e)
                sample = None

            curr_time = time.time()
            fps = 1.0 / (curr_time - prev_time + 1e-6)
            prev_time = curr_time

            with self.result_lock:
                self.latest_sample = sample
                self.seq += 1
                self.analysis_fps = fps
