import threading
import time

import numpy as np

from conftest import make_pose
from pipeline.step2_pose_estimation import AsyncPoseAnalyzer, PoseEstimator


class SlowEstimator(PoseEstimator):
    """Blocks in estimate() until released and records overlapping calls."""

    def __init__(self, delay=0.0):
        self.delay = delay
        self.entered = threading.Event()
        self.release = threading.Event()
        self.release.set()
        self.lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.calls = 0

    def estimate(self, frame):
        with self.lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        self.release.wait(timeout=5.0)
        time.sleep(self.delay)
        with self.lock:
            self.active -= 1
        return make_pose([(float(frame[0, 0]), 0.0)])

    def name(self):
        return "slow"

    def close(self):
        pass


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def frame(value=0):
    return np.full((4, 4), value, dtype=np.uint8)


def test_latest_result_and_sequence():
    estimator = SlowEstimator()
    analyzer = AsyncPoseAnalyzer(estimator)
    analyzer.start()
    try:
        analyzer.submit_frame(frame(7))
        assert wait_for(lambda: analyzer.get_latest()[1] == 1)
        sample, seq, _ = analyzer.get_latest()
        assert sample.keypoints[0].x == 7.0
    finally:
        analyzer.stop()
    assert not analyzer.running


def test_stop_waits_for_in_flight_estimate():
    estimator = SlowEstimator()
    estimator.release.clear()
    analyzer = AsyncPoseAnalyzer(estimator)
    analyzer.start()
    analyzer.submit_frame(frame())
    assert estimator.entered.wait(timeout=5.0)

    stopper = threading.Thread(target=analyzer.stop)
    stopper.start()
    time.sleep(1.5)
    # Still inside estimate(), so stop() must not have returned
    assert stopper.is_alive()

    estimator.release.set()
    stopper.join(timeout=5.0)
    assert not stopper.is_alive()
    assert estimator.active == 0
    assert analyzer.thread is None


def test_restart_after_slow_estimate_keeps_one_worker():
    estimator = SlowEstimator(delay=0.2)
    analyzer = AsyncPoseAnalyzer(estimator)

    analyzer.start()
    analyzer.submit_frame(frame())
    assert estimator.entered.wait(timeout=5.0)
    analyzer.stop()

    analyzer.start()
    try:
        for i in range(5):
            analyzer.submit_frame(frame(i))
            time.sleep(0.05)
        assert wait_for(lambda: estimator.calls >= 3)
    finally:
        analyzer.stop()

    assert estimator.max_active == 1


def test_start_twice_replaces_worker():
    estimator = SlowEstimator()
    analyzer = AsyncPoseAnalyzer(estimator)
    analyzer.start()
    first = analyzer.thread
    analyzer.start()
    try:
        assert not first.is_alive()
        assert analyzer.thread is not first
        assert analyzer.running
    finally:
        analyzer.stop()


def test_skip_frames_analyzes_every_nth_frame():
    analyzer = AsyncPoseAnalyzer(SlowEstimator(), skip_frames=2)
    # Not started, so submitted frames stay queued (at most two)
    for i in range(3):
        analyzer.submit_frame(frame(i))
    assert analyzer.frame_queue.qsize() == 1

    for i in range(3, 7):
        analyzer.submit_frame(frame(i))
    # Frames 0, 3 and 6 pass; the oldest is dropped when full
    assert analyzer.frame_queue.qsize() == 2
    assert analyzer.frame_queue.get_nowait()[0, 0] == 3
    assert analyzer.frame_queue.get_nowait()[0, 0] == 6


def test_estimator_error_gives_empty_result():
    class FailingEstimator(PoseEstimator):
        def estimate(self, frame):
            raise RuntimeError("model crashed")

        def name(self):
            return "failing"

        def close(self):
            pass

    analyzer = AsyncPoseAnalyzer(FailingEstimator())
    analyzer.start()
    try:
        analyzer.submit_frame(frame())
        assert wait_for(lambda: analyzer.get_latest()[1] == 1)
        assert analyzer.get_latest()[0] is None
    finally:
        analyzer.stop()
