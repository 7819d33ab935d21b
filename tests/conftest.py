import pytest

from pipeline.pose_data import PoseSample
from pipeline.step6_assessment import ExpiryTimer
from utils.reference_store import MemoryStore, ReferencePoseRepository

# Three keypoints in the unit square, and the same pose in 640x480 pixels
REFERENCE_COORDS = [(0.1, 0.1), (0.5, 0.5), (0.9, 0.9)]
PIXEL_COORDS = [(64.0, 48.0), (320.0, 240.0), (576.0, 432.0)]


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def make_pose(coords, confidence=0.9):
    confidences = confidence if isinstance(confidence, list) else [confidence] * len(coords)
    return PoseSample.from_arrays(coords, confidences)


@pytest.fixture
def reference_pose():
    return make_pose(REFERENCE_COORDS)


@pytest.fixture
def pixel_pose():
    return make_pose(PIXEL_COORDS)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timer(clock):
    return ExpiryTimer(clock=clock)


@pytest.fixture
def repository(reference_pose):
    repo = ReferencePoseRepository(MemoryStore())
    repo.save(reference_pose)
    return repo
