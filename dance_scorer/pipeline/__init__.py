"""
Dance Scoring Pipeline

5-Step Pipeline:
1. Frame Capture - Reference video and webcam sources
2. Pose Estimation - Single-pose model (YOLOv8-Pose / MediaPipe)
3. Angle Extraction - Named joint angles from keypoints
4. Angle Comparison - Angular deviation between two poses
5. Score Integration - FPS-normalized cumulative score

The SessionDriver runs the steps once per tick for a timed session.
"""

from .step1_frame_capture import FrameSource, StreamHandle, StreamRole, VideoFileSource, WebcamSource
from .step2_pose_estimation import Keypoint, Pose, PoseModel, load_model
from .step3_angle_extraction import AngleSet, NamedAngle, extract_angles
from .step4_angle_comparison import ComparisonResult, compare_angles
from .step5_score_integration import ScoreIntegrator, compute_delta, deg_angle_score, similarity
from .session_state import FrameScore, SessionState, SessionStatus
from .session import PeriodicTask, SessionDriver, StreamView

__all__ = [
    'FrameSource',
    'StreamHandle',
    'StreamRole',
    'VideoFileSource',
    'WebcamSource',
    'Keypoint',
    'Pose',
    'PoseModel',
    'load_model',
    'AngleSet',
    'NamedAngle',
    'extract_angles',
    'ComparisonResult',
    'compare_angles',
    'ScoreIntegrator',
    'compute_delta',
    'deg_angle_score',
    'similarity',
    'FrameScore',
    'SessionState',
    'SessionStatus',
    'PeriodicTask',
    'SessionDriver',
    'StreamView',
]
