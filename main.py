"""
Pose Timing AI - Real-time Assessment
=====================================

Display loop runs at the target FPS and drives the timing marker; pose
estimation runs in a background thread. When the marker crosses the capture
zone the latest pose is scored against the stored reference and the score is
held on screen for the assessment duration.

Usage:
    python main.py
    python main.py --performance auto --record data/session.jsonl

Controls:
    Q - Quit
    R - Reset session
    C - Capture a new reference pose
"""

import argparse
import logging
import sys
import time
from collections import deque
from typing import Optional

import cv2

import config
from capture_reference import capture_reference
from pipeline.errors import CollaboratorError
from pipeline.pose_data import PoseSample
from pipeline.step1_frame_capture import WebcamCapture
from pipeline.step2_pose_estimation import (
    AsyncPoseAnalyzer, ModelRegistry, PoseEstimator, SampleThrottle, create_estimator
)
from pipeline.step3_timing_indicator import TimingIndicator, Zone
from pipeline.step5_score_stabilizer import ScoreStabilizer
from pipeline.step6_assessment import (
    AssessmentOrchestrator, AssessmentSettings, SessionCallbacks, SessionRunner,
    monotonic_ms
)
from utils.performance import (
    PerformanceLevel, detect_device_performance, get_performance_config,
    load_performance_preference, load_performance_profiles,
    save_performance_preference
)
from utils.recording import SampleRecorder
from utils.reference_store import JsonFileStore, ReferencePoseRepository
from utils.visualization import (
    draw_countdown, draw_fps, draw_score_overlay, draw_skeleton,
    draw_status_panel, draw_timing_track
)

logger = logging.getLogger(__name__)


class TimedPoseApp:
    """Real-time timed pose assessment."""

    FRAME_TIME = 1.0 / config.TARGET_FPS  # ~16.67ms

    def __init__(
        self,
        backend: str = config.POSE_BACKEND,
        performance: str = "auto",
        store_path: str = config.REFERENCE_STORE_PATH,
        record_path: Optional[str] = None
    ):
        print("=" * 50)
        print("Initializing Pose Timing AI...")
        print("=" * 50)

        store = JsonFileStore(store_path)
        self.repository = ReferencePoseRepository(store)

        # Performance profile
        print("  [1/4] Selecting performance profile...")
        if performance == "auto":
            level = load_performance_preference(store) or detect_device_performance()
        else:
            level = PerformanceLevel(performance)
            save_performance_preference(store, level)
        self.performance = get_performance_config(level, load_performance_profiles())
        print(f"        Level: {level.value} "
              f"({self.performance.video_width}x{self.performance.video_height} "
              f"@ {self.performance.frame_rate} FPS)")

        # Webcam: camera runs at the profile size, frames come out at the
        # normalization size the reference was captured with
        print("  [2/4] Initializing webcam...")
        self.settings = AssessmentSettings()
        self.webcam = WebcamCapture(
            camera_id=config.CAMERA_ID,
            width=self.performance.video_width,
            height=self.performance.video_height,
            fps=self.performance.frame_rate,
            output_size=(int(self.settings.normalization_width),
                         int(self.settings.normalization_height))
        )
        print(f"        Camera FPS: {self.webcam.get_fps()}")

        print(f"  [3/4] Loading pose model ({backend})...")
        self.estimator = self._create_estimator(backend)

        print("  [4/4] Initializing assessment...")
        self.stabilizer = ScoreStabilizer()
        self.orchestrator = AssessmentOrchestrator(
            self.repository,
            stabilizer=self.stabilizer,
            callbacks=SessionCallbacks(
                session_started=lambda: print("Session started - get ready!"),
                score_computed=lambda score: print(f"Score: {score:.1f}"),
                session_complete=lambda: print("Session complete"),
            ),
            settings=self.settings,
        )
        self.indicator = TimingIndicator(
            velocity=self.settings.indicator_velocity,
            on_zone_change=self._on_zone_change,
        )
        self.runner = SessionRunner(self.orchestrator, self.indicator,
                                    on_result=self._on_result)
        self.throttle = SampleThrottle(self._deliver_sample,
                                       min_interval_ms=self.settings.sample_throttle_ms)
        self.recorder = SampleRecorder(record_path) if record_path else None

        self.analyzer = AsyncPoseAnalyzer(self.estimator, self.performance.skip_frames)
        self.countdown: Optional[int] = None
        self.classification = ""
        self.latest_sample: Optional[PoseSample] = None

        print("=" * 50)
        print("Pipeline ready! Mode: 60 FPS Async")
        print("Controls: Q=Quit, R=Reset, C=Capture reference")
        print("=" * 50)

    def _create_estimator(self, backend: str) -> PoseEstimator:
        if backend == "yolov8":
            return create_estimator(
                "yolov8",
                model_path=self.performance.pose_model,
                confidence_threshold=self.performance.min_pose_score,
                device=config.YOLOV8_DEVICE,
            )
        return create_estimator(
            "mediapipe",
            model_complexity=config.MODEL_COMPLEXITY,
            min_detection_confidence=config.MIN_DETECTION_CONFIDENCE,
            min_tracking_confidence=config.MIN_TRACKING_CONFIDENCE,
            smooth_landmarks=self.performance.enable_smoothing,
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _deliver_sample(self, sample: Optional[PoseSample]) -> None:
        self.orchestrator.on_pose_sample(sample)
        if self.recorder is not None:
            self.recorder.write(monotonic_ms(), sample)

    def _on_zone_change(self, zone: Zone, seconds_remaining: Optional[int]) -> None:
        self.countdown = seconds_remaining if zone is Zone.PREPARE else None

    def _on_result(self, result) -> None:
        self.classification = result.classification

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def draw_overlay(self, frame, display_fps, analysis_fps):
        display_frame = draw_skeleton(frame, self.latest_sample,
                                      self.performance.min_pose_score)
        display_frame = draw_timing_track(display_frame, self.indicator.position,
                                          self.indicator.zone)
        display_frame = draw_countdown(display_frame, self.countdown)
        display_frame = draw_score_overlay(display_frame, self.stabilizer.display,
                                           self.classification)

        if self.orchestrator.reference is None:
            status = ["No reference pose", "Press C to capture"]
        elif self.orchestrator.is_locked:
            status = ["Assessment locked"]
        else:
            status = ["Hold the reference pose"]
        if self.stabilizer.last is not None:
            status.append(f"Last score: {self.stabilizer.last:.0f}")
        display_frame = draw_status_panel(display_frame, status)

        return draw_fps(display_frame, display_fps, analysis_fps)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def start_session(self) -> None:
        if not self.runner.start():
            print("No reference pose stored. Press C to capture one.")

    def recapture_reference(self) -> None:
        """Pause analysis, run the capture flow on the same camera, restart."""
        self.analyzer.stop()
        self.runner.reset()
        print("\nCapturing reference pose...")
        reference = capture_reference(self.webcam, self.estimator, self.repository,
                                      countdown_seconds=config.REFERENCE_COUNTDOWN_SECONDS)
        cv2.destroyWindow(config.CAPTURE_WINDOW_NAME)
        if reference is not None:
            print(f"Reference saved ({len(reference)} keypoints)")
        self.throttle.reset()
        self.analyzer.start()
        self.start_session()

    def run(self):
        self.analyzer.start()
        self.start_session()

        fps_counter = deque(maxlen=30)
        prev_time = time.time()
        last_seq = 0

        print(f"\nRunning at target {config.TARGET_FPS} FPS...")

        while True:
            loop_start = time.time()

            frame = self.webcam.get_frame()
            if frame is None:
                print("Error: Could not read frame")
                break

            # Flip for mirror effect
            frame = cv2.flip(frame, 1)
            self.analyzer.submit_frame(frame)

            sample, seq, analysis_fps = self.analyzer.get_latest()
            now = monotonic_ms()
            if seq != last_seq:
                last_seq = seq
                self.latest_sample = sample
                self.throttle.push(sample, now)

            self.runner.step(now)

            curr_time = time.time()
            fps_counter.append(curr_time - prev_time)
            display_fps = len(fps_counter) / sum(fps_counter) if sum(fps_counter) else 0
            prev_time = curr_time

            display_frame = self.draw_overlay(frame, display_fps, analysis_fps)
            if self.performance.canvas_scale != 1.0:
                display_frame = cv2.resize(display_frame, None,
                                           fx=self.performance.canvas_scale,
                                           fy=self.performance.canvas_scale)
            cv2.imshow(config.WINDOW_NAME, display_frame)

            key = cv2.waitKey(1) & 0xFF
            if key == ord('q') or key == ord('Q'):
                print("\nExiting...")
                break
            elif key == ord('r') or key == ord('R'):
                self.classification = ""
                self.start_session()
                print("Session reset!")
            elif key == ord('c') or key == ord('C'):
                self.recapture_reference()

            elapsed = time.time() - loop_start
            sleep_time = self.FRAME_TIME - elapsed
            if sleep_time > 0:
                time.sleep(sleep_time)

        self.cleanup()

    def cleanup(self):
        self.analyzer.stop()
        self.runner.reset()
        if self.recorder is not None:
            self.recorder.close()
        self.webcam.release()
        ModelRegistry.close()
        cv2.destroyAllWindows()


def main():
    parser = argparse.ArgumentParser(description="Pose Timing AI - Real-time Assessment")
    parser.add_argument('--backend', type=str, default=config.POSE_BACKEND,
                        choices=['yolov8', 'mediapipe'], help='Pose estimation backend')
    parser.add_argument('--performance', type=str, default='auto',
                        choices=['auto', 'low', 'medium', 'high'],
                        help='Performance level (auto = saved preference or device detection)')
    parser.add_argument('--store', type=str, default=config.REFERENCE_STORE_PATH,
                        help='Reference store file')
    parser.add_argument('--record', type=str, default=None,
                        help='Write delivered pose samples to a .jsonl file for replay')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        app = TimedPoseApp(
            backend=args.backend,
            performance=args.performance,
            store_path=args.store,
            record_path=args.record,
        )
        app.run()
    except CollaboratorError as e:
        print(f"Error: {e.user_message()}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user")


if __name__ == "__main__":
    main()
