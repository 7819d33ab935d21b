"""
Timed Pose Assessment Configuration
===================================

Central configuration file for all pipeline parameters.
"""

# =============================================================================
# Camera Settings
# =============================================================================
CAMERA_ID = 0
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480
TARGET_FPS = 60

# =============================================================================
# YOLOv8-Pose Settings
# =============================================================================
POSE_BACKEND = "yolov8"  # Options: "yolov8", "mediapipe"
YOLOV8_POSE_MODEL = "yolov8n-pose.pt"  # Options: yolov8n-pose.pt, yolov8s-pose.pt, yolov8m-pose.pt
YOLOV8_CONFIDENCE = 0.25  # Minimum person detection confidence
YOLOV8_DEVICE = None  # None=auto-detect, "cuda" or "cpu"

# MediaPipe settings (alternative backend)
MIN_DETECTION_CONFIDENCE = 0.5
MIN_TRACKING_CONFIDENCE = 0.5
MODEL_COMPLEXITY = 1

# Sample delivery is rate-limited to one update per interval
SAMPLE_THROTTLE_MS = 50

# =============================================================================
# Timing Indicator Settings
# =============================================================================
# Track scale is 0-100, the marker starts off-track and wraps past the end
TRACK_START = -10.0
TRACK_END = 110.0
TRACK_TARGET = 50.0

PREPARE_ZONE_START = 30.0
CAPTURE_ZONE_START = 49.5
CAPTURE_ZONE_END = 50.5

# Velocity is percent-of-track per nominal 60Hz tick
NOMINAL_TICK_MS = 16.67
INDICATOR_VELOCITY = 0.08

# =============================================================================
# Assessment Settings
# =============================================================================
ASSESSMENT_DURATION_MS = 8000  # How long a locked score stays on screen

# Pixel dimensions used to normalize samples into the unit square.
# Must match the dimensions used when the reference was captured.
NORMALIZATION_WIDTH = 640
NORMALIZATION_HEIGHT = 480

# Similarity metric
KEYPOINT_CONFIDENCE_THRESHOLD = 0.3
MAX_NORMALIZED_DISTANCE = 0.3

# Score classification (inclusive lower bounds, checked top-down)
SCORE_CLASSIFICATIONS = [
    (90, "Excellent"),
    (80, "Very Good"),
    (70, "Good"),
    (60, "Fair"),
    (50, "Poor"),
]
LOWEST_CLASSIFICATION = "Very Poor"

# =============================================================================
# Storage Settings
# =============================================================================
REFERENCE_STORE_PATH = "data/reference_store.json"
REFERENCE_POSE_KEY = "referencePose"
PERFORMANCE_LEVEL_KEY = "performanceLevel"
PERFORMANCE_PROFILES_PATH = "data/performance_profiles.yaml"

# Reference capture flow
REFERENCE_COUNTDOWN_SECONDS = 5

# =============================================================================
# Display Settings
# =============================================================================
WINDOW_NAME = "Pose Timing AI - Real-time Assessment"
CAPTURE_WINDOW_NAME = "Pose Timing AI - Capture Reference"

# Colors (BGR format)
COLOR_GREEN = (0, 255, 0)
COLOR_YELLOW = (0, 255, 255)
COLOR_BLUE = (255, 128, 0)
COLOR_RED = (0, 0, 255)
COLOR_WHITE = (255, 255, 255)
COLOR_BLACK = (0, 0, 0)
COLOR_GRAY = (160, 160, 160)
