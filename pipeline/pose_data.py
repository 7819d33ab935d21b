"""
Pose Data Model
Keypoints and pose samples shared by every pipeline step.

A PoseSample is index-stable: keypoint i always refers to the same landmark,
so two samples from the same detector can be compared position by position.
"""

import numpy as np
from typing import Any, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field


@dataclass(frozen=True)
class PoseKeypoint:
    """Single tracked landmark."""
    x: float  # Pixel or normalized [0, 1], caller must be consistent
    y: float
    z: Optional[float] = None
    confidence: Optional[float] = None  # [0, 1], None if the detector gives none
    name: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the stored keypoint format (confidence is stored as 'score')."""
        record: Dict[str, Any] = {'x': self.x, 'y': self.y}
        if self.z is not None:
            record['z'] = self.z
        if self.confidence is not None:
            record['score'] = self.confidence
        if self.name is not None:
            record['name'] = self.name
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "PoseKeypoint":
        confidence = record.get('score', record.get('confidence'))
        z = record.get('z')
        return cls(
            x=float(record['x']),
            y=float(record['y']),
            z=float(z) if z is not None else None,
            confidence=float(confidence) if confidence is not None else None,
            name=record.get('name'),
        )


@dataclass(frozen=True)
class PoseSample:
    """
    One detected pose.

    Created by the pose estimator per frame and never mutated; normalization
    returns a new sample.
    """
    keypoints: Tuple[PoseKeypoint, ...] = field(default_factory=tuple)
    confidence: Optional[float] = None

    def __post_init__(self):
        # Accept any iterable but store a tuple so samples stay immutable
        if not isinstance(self.keypoints, tuple):
            object.__setattr__(self, 'keypoints', tuple(self.keypoints))

    def __len__(self) -> int:
        return len(self.keypoints)

    def __iter__(self):
        return iter(self.keypoints)

    def to_numpy(self) -> np.ndarray:
        """Convert keypoints to numpy array (N, 3), missing z as 0."""
        if not self.keypoints:
            return np.zeros((0, 3), dtype=np.float64)
        return np.array([
            [kp.x, kp.y, kp.z if kp.z is not None else 0.0]
            for kp in self.keypoints
        ], dtype=np.float64)

    def confidences(self) -> np.ndarray:
        """Per-keypoint confidence (N,), missing confidence as NaN."""
        return np.array([
            kp.confidence if kp.confidence is not None else np.nan
            for kp in self.keypoints
        ], dtype=np.float64)

    def get_keypoint(self, name: str) -> Optional[PoseKeypoint]:
        """Get keypoint by name."""
        for kp in self.keypoints:
            if kp.name == name:
                return kp
        return None

    def to_record(self) -> Dict[str, Any]:
        """Serialize to {keypoints: [...], score?}."""
        record: Dict[str, Any] = {
            'keypoints': [kp.to_record() for kp in self.keypoints]
        }
        if self.confidence is not None:
            record['score'] = self.confidence
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "PoseSample":
        """
        Build a sample from a stored record.

        Raises:
            ValueError: if the record has no keypoint list or a keypoint lacks x/y
        """
        if not isinstance(record, dict) or not isinstance(record.get('keypoints'), list):
            raise ValueError("Pose record must contain a 'keypoints' list")

        try:
            keypoints = [PoseKeypoint.from_record(kp) for kp in record['keypoints']]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid keypoint in pose record: {e}") from e

        confidence = record.get('score', record.get('confidence'))
        return cls(
            keypoints=tuple(keypoints),
            confidence=float(confidence) if confidence is not None else None,
        )

    @classmethod
    def from_arrays(
        cls,
        coords: Iterable[Iterable[float]],
        confidences: Optional[Iterable[float]] = None,
        names: Optional[List[str]] = None,
        confidence: Optional[float] = None
    ) -> "PoseSample":
        """
        Build a sample from (N, 2) or (N, 3) coordinates.

        Args:
            coords: Rows of (x, y) or (x, y, z)
            confidences: Per-keypoint confidence, same length as coords
            names: Optional landmark names
            confidence: Overall detection confidence
        """
        rows = [list(row) for row in coords]
        scores = list(confidences) if confidences is not None else [None] * len(rows)
        keypoints = []
        for i, row in enumerate(rows):
            keypoints.append(PoseKeypoint(
                x=float(row[0]),
                y=float(row[1]),
                z=float(row[2]) if len(row) > 2 else None,
                confidence=float(scores[i]) if scores[i] is not None else None,
                name=names[i] if names and i < len(names) else None,
            ))
        return cls(keypoints=tuple(keypoints), confidence=confidence)
