"""
Pose Timing AI - Reference Capture
==================================

Records the reference pose that live poses are scored against.

Flow: 5 second countdown, then the next detected pose is normalized with the
reference dimensions and saved (overwriting any previous reference).

Usage:
    python capture_reference.py
    python capture_reference.py --image reference.jpg

Controls:
    Q - Cancel
"""

import argparse
import logging
import sys
import time
from typing import Callable, Optional

import cv2

import config
from pipeline.errors import CollaboratorError
from pipeline.pose_data import PoseSample
from pipeline.step1_frame_capture import FrameCapture, ImageCapture, WebcamCapture
from pipeline.step2_pose_estimation import PoseEstimator, create_estimator
from pipeline.step4_pose_similarity import normalize
from utils.reference_store import JsonFileStore, ReferencePoseRepository
from utils.visualization import draw_countdown, draw_skeleton, draw_status_panel

logger = logging.getLogger(__name__)

# Confirmation stays on screen this long before the window closes
SAVED_MESSAGE_MS = 500


def save_reference(
    sample: PoseSample,
    repository: ReferencePoseRepository,
    width: float = config.NORMALIZATION_WIDTH,
    height: float = config.NORMALIZATION_HEIGHT
) -> PoseSample:
    """Normalize a pixel-space sample and store it as the reference."""
    reference = normalize(sample, width, height)
    repository.save(reference)
    return reference


def capture_reference(
    capture: FrameCapture,
    estimator: PoseEstimator,
    repository: ReferencePoseRepository,
    countdown_seconds: int = config.REFERENCE_COUNTDOWN_SECONDS,
    show: bool = True,
    clock: Callable[[], float] = time.monotonic
) -> Optional[PoseSample]:
    """
    Run the countdown-then-capture flow on a frame source.

    Returns:
        The saved (normalized) reference, or None if cancelled or the source
        ran out before a pose was found
    """
    started = clock()
    for frame in capture.frames():
        if show:
            frame = cv2.flip(frame, 1)

        remaining = countdown_seconds - (clock() - started)
        sample = None
        if remaining <= 0:
            sample = estimator.estimate(frame)
            if sample is not None:
                reference = save_reference(sample, repository)
                if show:
                    shown = draw_skeleton(frame, sample)
                    shown = draw_status_panel(shown, ["Reference saved!"])
                    cv2.imshow(config.CAPTURE_WINDOW_NAME, shown)
                    cv2.waitKey(SAVED_MESSAGE_MS)
                return reference

        if show:
            if remaining > 0:
                shown = draw_countdown(frame, int(remaining) + 1)
            else:
                shown = draw_status_panel(frame, ["No pose detected..."])
            cv2.imshow(config.CAPTURE_WINDOW_NAME, shown)
            key = cv2.waitKey(1) & 0xFF
            if key == ord('q') or key == ord('Q'):
                print("Capture cancelled")
                return None

    return None


def capture_from_image(
    image_path: str,
    estimator: PoseEstimator,
    repository: ReferencePoseRepository
) -> Optional[PoseSample]:
    """Use a still photo as the reference (no countdown)."""
    with ImageCapture(image_path,
                      width=config.NORMALIZATION_WIDTH,
                      height=config.NORMALIZATION_HEIGHT) as capture:
        frame = capture.get_frame()
    if frame is None:
        return None
    sample = estimator.estimate(frame)
    if sample is None:
        return None
    return save_reference(sample, repository)


def main():
    parser = argparse.ArgumentParser(description="Pose Timing AI - Capture Reference")
    parser.add_argument('--image', type=str, default=None,
                        help='Capture the reference from an image instead of the webcam')
    parser.add_argument('--backend', type=str, default=config.POSE_BACKEND,
                        choices=['yolov8', 'mediapipe'], help='Pose estimation backend')
    parser.add_argument('--store', type=str, default=config.REFERENCE_STORE_PATH,
                        help='Reference store file')
    parser.add_argument('--countdown', type=int, default=config.REFERENCE_COUNTDOWN_SECONDS,
                        help='Countdown before capture (seconds)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    print("=" * 50)
    print("Pose Timing AI - Capture Reference")
    print("=" * 50)

    repository = ReferencePoseRepository(JsonFileStore(args.store))

    try:
        print(f"  [1/2] Loading pose model ({args.backend})...")
        if args.backend == 'yolov8':
            estimator = create_estimator('yolov8',
                                         model_path=config.YOLOV8_POSE_MODEL,
                                         confidence_threshold=config.YOLOV8_CONFIDENCE,
                                         device=config.YOLOV8_DEVICE)
        else:
            estimator = create_estimator('mediapipe',
                                         model_complexity=config.MODEL_COMPLEXITY,
                                         min_detection_confidence=config.MIN_DETECTION_CONFIDENCE,
                                         min_tracking_confidence=config.MIN_TRACKING_CONFIDENCE)

        if args.image:
            print(f"  [2/2] Reading {args.image}...")
            reference = capture_from_image(args.image, estimator, repository)
        else:
            print("  [2/2] Opening webcam...")
            capture = WebcamCapture(
                camera_id=config.CAMERA_ID,
                width=config.CAMERA_WIDTH,
                height=config.CAMERA_HEIGHT,
                output_size=(config.NORMALIZATION_WIDTH, config.NORMALIZATION_HEIGHT)
            )
            print(f"\nGet into position! Capturing in {args.countdown} seconds...")
            try:
                reference = capture_reference(capture, estimator, repository,
                                              countdown_seconds=args.countdown)
            finally:
                capture.release()
                cv2.destroyAllWindows()
        estimator.close()
    except CollaboratorError as e:
        print(f"Error: {e.user_message()}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(1)

    if reference is None:
        print("No reference saved")
        sys.exit(1)

    print(f"Reference saved ({len(reference)} keypoints) -> {args.store}")


if __name__ == "__main__":
    main()
