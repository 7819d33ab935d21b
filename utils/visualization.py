"""
Utils: Visualization
Drawing helpers for the assessment and capture screens.
"""

import cv2
import numpy as np
from typing import Optional, Sequence

import config
from pipeline.pose_data import PoseSample
from pipeline.step3_timing_indicator import Zone

# COCO skeleton without face connections
SKELETON_CONNECTIONS = [
    (5, 6),             # shoulders
    (5, 7), (7, 9),     # left arm
    (6, 8), (8, 10),    # right arm
    (5, 11), (6, 12),   # shoulders to hips
    (11, 12),           # hips
    (11, 13), (13, 15), # left leg
    (12, 14), (14, 16)  # right leg
]


def _track_x(position: float, left: int, width: int) -> int:
    """Map a track position (percent) to a pixel column."""
    return int(left + width * position / 100.0)


def draw_timing_track(
    frame: np.ndarray,
    position: float,
    zone: Zone,
    height: int = 70
) -> np.ndarray:
    """
    Draw the timing track along the bottom of the frame.

    Args:
        frame: Input frame (BGR)
        position: Marker position in percent of track
        zone: Current zone (for the status label)
        height: Track band height in pixels
    """
    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]
    top = h - height
    mid_y = top + height // 2

    # Dark band
    overlay = frame_copy.copy()
    cv2.rectangle(overlay, (0, top), (w, h), config.COLOR_BLACK, -1)
    frame_copy = cv2.addWeighted(overlay, 0.5, frame_copy, 0.5, 0)

    # Prepare zone
    x1 = _track_x(config.PREPARE_ZONE_START, 0, w)
    x2 = _track_x(config.CAPTURE_ZONE_START, 0, w)
    cv2.rectangle(frame_copy, (x1, top), (x2, h), config.COLOR_YELLOW, 1)

    # Capture zone, drawn wider than it is so it stays visible
    cx = _track_x(config.TRACK_TARGET, 0, w)
    cv2.line(frame_copy, (cx, top), (cx, h), config.COLOR_GREEN, 3)
    cv2.circle(frame_copy, (cx, mid_y), height // 2 - 6, config.COLOR_GREEN, 2)

    # Marker
    mx = _track_x(position, 0, w)
    cv2.circle(frame_copy, (mx, mid_y), 14, config.COLOR_BLUE, -1)
    cv2.circle(frame_copy, (mx, mid_y), 9, config.COLOR_WHITE, -1)

    if zone is Zone.CAPTURE:
        label, color = "CAPTURE!", config.COLOR_GREEN
    elif zone is Zone.PREPARE:
        label, color = "GET READY!", config.COLOR_YELLOW
    else:
        label, color = "Hold the pose when the marker hits the center", config.COLOR_GRAY
    cv2.putText(frame_copy, label, (10, top + 18),
                cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)

    return frame_copy


def draw_countdown(frame: np.ndarray, seconds: Optional[int]) -> np.ndarray:
    """Countdown badge in the top-left corner."""
    if seconds is None:
        return frame

    frame_copy = frame.copy()
    cv2.rectangle(frame_copy, (10, 10), (130, 110), config.COLOR_BLACK, -1)
    cv2.rectangle(frame_copy, (10, 10), (130, 110), config.COLOR_YELLOW, 2)
    cv2.putText(frame_copy, str(seconds), (45, 75),
                cv2.FONT_HERSHEY_SIMPLEX, 2.0, config.COLOR_YELLOW, 4)
    cv2.putText(frame_copy, "Get ready", (25, 100),
                cv2.FONT_HERSHEY_SIMPLEX, 0.5, config.COLOR_YELLOW, 1)
    return frame_copy


def draw_score_overlay(
    frame: np.ndarray,
    score: Optional[float],
    classification: str = ""
) -> np.ndarray:
    """
    Show the locked score in the center of the frame.

    Args:
        frame: Input frame (BGR)
        score: Display score (0-100) or None to draw nothing
        classification: Label for the score
    """
    if score is None:
        return frame

    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]

    if score >= 80:
        color = config.COLOR_GREEN
    elif score >= 60:
        color = config.COLOR_YELLOW
    else:
        color = config.COLOR_RED

    box_w, box_h = 260, 130
    x1, y1 = (w - box_w) // 2, (h - box_h) // 2 - 40
    cv2.rectangle(frame_copy, (x1, y1), (x1 + box_w, y1 + box_h), config.COLOR_BLACK, -1)
    cv2.rectangle(frame_copy, (x1, y1), (x1 + box_w, y1 + box_h), color, 2)
    cv2.putText(frame_copy, f"{score:.0f}", (x1 + 20, y1 + 80),
                cv2.FONT_HERSHEY_SIMPLEX, 2.4, color, 5)
    cv2.putText(frame_copy, classification, (x1 + 140, y1 + 70),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, config.COLOR_WHITE, 2)
    return frame_copy


def draw_skeleton(
    frame: np.ndarray,
    sample: Optional[PoseSample],
    min_confidence: float = config.KEYPOINT_CONFIDENCE_THRESHOLD
) -> np.ndarray:
    """Draw a pixel-space sample (COCO-17 order) onto the frame."""
    if sample is None:
        return frame

    frame_copy = frame.copy()
    kps = sample.keypoints

    def visible(i: int) -> bool:
        return i < len(kps) and (kps[i].confidence or 0.0) > min_confidence

    for i, j in SKELETON_CONNECTIONS:
        if visible(i) and visible(j):
            cv2.line(frame_copy,
                     (int(kps[i].x), int(kps[i].y)),
                     (int(kps[j].x), int(kps[j].y)),
                     config.COLOR_GREEN, 2)

    for i in range(len(kps)):
        if visible(i):
            center = (int(kps[i].x), int(kps[i].y))
            cv2.circle(frame_copy, center, 4, config.COLOR_GREEN, -1)
            cv2.circle(frame_copy, center, 4, config.COLOR_WHITE, 1)

    return frame_copy


def draw_status_panel(frame: np.ndarray, lines: Sequence[str]) -> np.ndarray:
    """Small text panel in the top-right corner."""
    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]
    for i, text in enumerate(lines):
        cv2.putText(frame_copy, text, (w - 220, 25 + i * 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, config.COLOR_WHITE, 1)
    return frame_copy


def draw_fps(frame: np.ndarray, display_fps: float, analysis_fps: float) -> np.ndarray:
    """Display and analysis FPS in the bottom-right corner above the track."""
    frame_copy = frame.copy()
    h, w = frame_copy.shape[:2]

    cv2.putText(frame_copy, f"Display: {display_fps:.0f} FPS",
                (w - 160, h - 100), cv2.FONT_HERSHEY_SIMPLEX, 0.45, config.COLOR_GREEN, 1)
    cv2.putText(frame_copy, f"Analysis: {analysis_fps:.0f} FPS",
                (w - 160, h - 80), cv2.FONT_HERSHEY_SIMPLEX, 0.45, config.COLOR_YELLOW, 1)

    return frame_copy
