"""
Timed Pose Assessment Pipeline

6-Step Pipeline:
1. Frame Capture - Capture frames from webcam/video/image
2. Pose Estimation - YOLOv8-Pose or MediaPipe, throttled sample stream
3. Timing Indicator - Moving marker with prepare/capture zones
4. Pose Similarity - Score live pose against the reference
5. Score Stabilizer - Lock the displayed score
6. Assessment - Trigger-gated comparison and session expiry

Step 1 needs OpenCV and is imported directly by the applications.
"""

from .errors import CollaboratorError, CaptureUnavailableError, ModelUnavailableError
from .pose_data import PoseKeypoint, PoseSample
from .step2_pose_estimation import (
    PoseEstimator, YoloPoseEstimator, MediaPipePoseEstimator,
    ModelRegistry, SampleThrottle, AsyncPoseAnalyzer, create_estimator
)
from .step3_timing_indicator import TimingIndicator, TimingState, Zone
from .step4_pose_similarity import AssessmentResult, assess, classify, compute, normalize
from .step5_score_stabilizer import ScoreStabilizer
from .step6_assessment import (
    AssessmentOrchestrator, AssessmentSession, AssessmentSettings,
    ExpiryTimer, SessionCallbacks, SessionRunner
)

__all__ = [
    'CollaboratorError',
    'CaptureUnavailableError',
    'ModelUnavailableError',
    'PoseKeypoint',
    'PoseSample',
    'PoseEstimator',
    'YoloPoseEstimator',
    'MediaPipePoseEstimator',
    'ModelRegistry',
    'SampleThrottle',
    'AsyncPoseAnalyzer',
    'create_estimator',
    'TimingIndicator',
    'TimingState',
    'Zone',
    'AssessmentResult',
    'assess',
    'classify',
    'compute',
    'normalize',
    'ScoreStabilizer',
    'AssessmentOrchestrator',
    'AssessmentSession',
    'AssessmentSettings',
    'ExpiryTimer',
    'SessionCallbacks',
    'SessionRunner',
]
