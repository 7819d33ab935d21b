import numpy as np
import pytest

from pipeline.pose_data import PoseKeypoint, PoseSample


def test_record_uses_score_for_confidence():
    sample = PoseSample.from_arrays([(0.1, 0.2, 0.3)], [0.8], names=['nose'], confidence=0.7)
    record = sample.to_record()
    assert record == {
        'keypoints': [{'x': 0.1, 'y': 0.2, 'z': 0.3, 'score': 0.8, 'name': 'nose'}],
        'score': 0.7,
    }
    assert PoseSample.from_record(record) == sample


def test_optional_fields_are_omitted():
    record = PoseKeypoint(x=1.0, y=2.0).to_record()
    assert record == {'x': 1.0, 'y': 2.0}


def test_from_record_accepts_confidence_key():
    sample = PoseSample.from_record({'keypoints': [{'x': 1, 'y': 2, 'confidence': 0.5}]})
    assert sample.keypoints[0].confidence == 0.5
    assert sample.keypoints[0].z is None


@pytest.mark.parametrize("record", [
    {},
    {'keypoints': 'nope'},
    {'keypoints': [{'x': 1.0}]},
    {'keypoints': [{'x': 'a', 'y': 1.0}]},
    ['not', 'a', 'dict'],
])
def test_from_record_rejects_invalid(record):
    with pytest.raises(ValueError):
        PoseSample.from_record(record)


def test_to_numpy_fills_missing_z():
    sample = PoseSample.from_arrays([(1, 2), (3, 4, 5)])
    np.testing.assert_array_equal(sample.to_numpy(), [[1, 2, 0], [3, 4, 5]])


def test_confidences_nan_when_missing():
    sample = PoseSample.from_arrays([(1, 2), (3, 4)], [0.5, None])
    conf = sample.confidences()
    assert conf[0] == 0.5
    assert np.isnan(conf[1])


def test_keypoints_stored_as_tuple():
    sample = PoseSample(keypoints=[PoseKeypoint(x=0, y=0)])
    assert isinstance(sample.keypoints, tuple)
    assert len(sample) == 1


def test_get_keypoint_by_name():
    sample = PoseSample.from_arrays([(1, 2), (3, 4)], names=['nose', 'left_eye'])
    assert sample.get_keypoint('left_eye').x == 3
    assert sample.get_keypoint('right_eye') is None
