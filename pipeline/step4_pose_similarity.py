"""
Step 4: Pose Similarity
Scores how closely a live pose matches the reference pose.

Both samples are normalized into the unit square first, then compared
keypoint by keypoint with 3D Euclidean distance. Only keypoints that both
samples see with confidence above the threshold take part.
"""

import numpy as np
from typing import NamedTuple

import config
from .pose_data import PoseKeypoint, PoseSample


class AssessmentResult(NamedTuple):
    """Similarity score with its label."""
    score: float             # 0-100
    classification: str      # "Excellent" ... "Very Poor"
    matched_keypoints: int   # Pairs that passed the confidence filter


def normalize(pose: PoseSample, width: float, height: float) -> PoseSample:
    """
    Rescale pixel coordinates into the unit square.

    Args:
        pose: Sample in pixel coordinates
        width: Reference width used when the reference pose was captured
        height: Reference height

    Returns:
        New sample with x / width and y / height, z untouched
    """
    if width <= 0 or height <= 0:
        raise ValueError("Normalization width and height must be positive")

    keypoints = tuple(
        PoseKeypoint(
            x=kp.x / width,
            y=kp.y / height,
            z=kp.z,
            confidence=kp.confidence,
            name=kp.name,
        )
        for kp in pose.keypoints
    )
    return PoseSample(keypoints=keypoints, confidence=pose.confidence)


def matched_mask(
    pose_a: PoseSample,
    pose_b: PoseSample,
    threshold: float = config.KEYPOINT_CONFIDENCE_THRESHOLD
) -> np.ndarray:
    """Boolean mask of index pairs where both confidences exceed threshold."""
    conf_a = pose_a.confidences()
    conf_b = pose_b.confidences()
    # NaN (missing confidence) compares False, so it never qualifies
    with np.errstate(invalid='ignore'):
        return (conf_a > threshold) & (conf_b > threshold)


def compute(
    pose_a: PoseSample,
    pose_b: PoseSample,
    threshold: float = config.KEYPOINT_CONFIDENCE_THRESHOLD,
    max_distance: float = config.MAX_NORMALIZED_DISTANCE
) -> float:
    """
    Similarity score between two normalized samples.

    Returns:
        Score in [0, 100]. 0 when keypoint counts differ or when no keypoint
        pair is confident on both sides. NaN or infinite coordinates are
        treated as 0.
    """
    if len(pose_a) != len(pose_b) or len(pose_a) == 0:
        return 0.0

    mask = matched_mask(pose_a, pose_b, threshold)
    if not np.any(mask):
        return 0.0

    # Non-finite coordinates count as 0
    coords_a = np.nan_to_num(pose_a.to_numpy(), nan=0.0, posinf=0.0, neginf=0.0)
    coords_b = np.nan_to_num(pose_b.to_numpy(), nan=0.0, posinf=0.0, neginf=0.0)
    diff = coords_a[mask] - coords_b[mask]
    average_distance = float(np.mean(np.linalg.norm(diff, axis=1)))

    score = 100.0 * (1.0 - average_distance / max_distance)
    return float(np.clip(score, 0.0, 100.0))


def classify(score: float) -> str:
    """Map a score to its label (inclusive lower bounds)."""
    for lower_bound, label in config.SCORE_CLASSIFICATIONS:
        if score >= lower_bound:
            return label
    return config.LOWEST_CLASSIFICATION


def assess(reference: PoseSample, sample: PoseSample) -> AssessmentResult:
    """Score a normalized sample against a normalized reference."""
    score = compute(reference, sample)
    if len(reference) == len(sample):
        matched = int(np.count_nonzero(matched_mask(reference, sample)))
    else:
        matched = 0
    return AssessmentResult(
        score=score,
        classification=classify(score),
        matched_keypoints=matched
    )
