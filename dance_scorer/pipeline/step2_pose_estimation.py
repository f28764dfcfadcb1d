"""
Step 2: Pose Estimation
Single-person pose estimation behind a small model interface.

Two backends are available: YOLOv8-Pose (ultralytics, default) and MediaPipe
Pose. Both return keypoints named after the 17 COCO body parts, in pixel
coordinates of the frame that was passed in (mirrored when
``flip_horizontal`` is set).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, NamedTuple, Optional, Tuple

import cv2
import numpy as np

from ..config import normalize_architecture
from ..errors import ModelLoadError
from ..utils.logger import info


# COCO keypoint names (17 keypoints)
KEYPOINT_NAMES = [
    'nose',           # 0
    'left_eye',       # 1
    'right_eye',      # 2
    'left_ear',       # 3
    'right_ear',      # 4
    'left_shoulder',  # 5
    'right_shoulder', # 6
    'left_elbow',     # 7
    'right_elbow',    # 8
    'left_wrist',     # 9
    'right_wrist',    # 10
    'left_hip',       # 11
    'right_hip',      # 12
    'left_knee',      # 13
    'right_knee',     # 14
    'left_ankle',     # 15
    'right_ankle'     # 16
]


class Keypoint(NamedTuple):
    """A detected body part."""
    part: str
    x: float      # Pixels
    y: float      # Pixels
    score: float  # Confidence [0, 1]


@dataclass(frozen=True)
class Pose:
    """Single-pose estimation result."""
    score: float
    keypoints: Tuple[Keypoint, ...] = ()
    keypoint_dict: Dict[str, Keypoint] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'keypoints', tuple(self.keypoints))
        object.__setattr__(self, 'keypoint_dict', {kp.part: kp for kp in self.keypoints})

    def get_keypoint(self, part: str) -> Optional[Keypoint]:
        return self.keypoint_dict.get(part)

    def to_numpy(self) -> np.ndarray:
        """Convert keypoints to numpy array (N, 3) of x, y, score."""
        return np.array([[kp.x, kp.y, kp.score] for kp in self.keypoints]).reshape(-1, 3)

    @classmethod
    def empty(cls) -> "Pose":
        return cls(score=0.0)


class PoseModel(ABC):
    """Interface of a loaded single-pose estimator."""

    architecture: str = ""

    @abstractmethod
    def estimate_single_pose(
        self,
        frame: np.ndarray,
        image_scale_factor: float = 0.5,
        flip_horizontal: bool = False,
        output_stride: int = 16
    ) -> Pose:
        """
        Estimate the pose of the single most prominent person.

        Args:
            frame: Input image (BGR)
            image_scale_factor: Scale applied before inference (0.2 - 1.0)
            flip_horizontal: Mirror the image, e.g. for a user-facing webcam
            output_stride: Network stride; the inference size is a multiple of it

        Returns:
            Pose; an empty Pose with score 0 when nobody is found
        """
        pass

    @abstractmethod
    def dispose(self) -> None:
        """Release model resources."""
        pass


def prepare_input(
    frame: np.ndarray,
    image_scale_factor: float,
    flip_horizontal: bool
) -> np.ndarray:
    """Mirror and downscale a frame before inference."""
    image = cv2.flip(frame, 1) if flip_horizontal else frame
    if image_scale_factor != 1.0:
        h, w = image.shape[:2]
        size = (max(1, int(round(w * image_scale_factor))),
                max(1, int(round(h * image_scale_factor))))
        image = cv2.resize(image, size, interpolation=cv2.INTER_LINEAR)
    return image


def stride_aligned_size(width: int, height: int, output_stride: int) -> int:
    """Largest image side rounded up to a multiple of the stride."""
    side = max(width, height)
    return max(output_stride, -(-side // output_stride) * output_stride)


class YoloPoseModel(PoseModel):
    """YOLOv8-Pose backend (person detection + pose in one step)."""

    # Larger architecture -> larger, slower and more accurate network
    ARCHITECTURE_WEIGHTS = {
        '0.50': 'yolov8n-pose.pt',
        '0.75': 'yolov8s-pose.pt',
        '1.00': 'yolov8m-pose.pt',
        '1.01': 'yolov8l-pose.pt',
    }

    def __init__(self, architecture: str = '0.75', device: Optional[str] = None):
        self.architecture = normalize_architecture(architecture)
        self.model_path = self.ARCHITECTURE_WEIGHTS[self.architecture]
        self.device = device
        self.model = None
        self._init_yolo()

    def _init_yolo(self) -> None:
        """Initialize YOLOv8-Pose model."""
        try:
            from ultralytics import YOLO
            import torch
        except ImportError as e:
            raise ModelLoadError(
                "ultralytics is not installed. Run: pip install ultralytics"
            ) from e

        if self.device is None:
            self.device = 'cuda' if torch.cuda.is_available() else 'cpu'

        try:
            self.model = YOLO(self.model_path)
        except Exception as e:
            raise ModelLoadError(f"Failed to load YOLOv8-Pose model {self.model_path}: {e}") from e

        info(f"Using YOLOv8-Pose ({self.model_path}) on {self.device.upper()}")

    def estimate_single_pose(self, frame, image_scale_factor=0.5,
                             flip_horizontal=False, output_stride=16) -> Pose:
        if self.model is None:
            raise ModelLoadError("Model has been disposed")

        image = prepare_input(frame, image_scale_factor, flip_horizontal)
        h, w = image.shape[:2]
        imgsz = stride_aligned_size(w, h, output_stride)

        results = self.model(image, verbose=False, device=self.device, imgsz=imgsz)

        # Keep the most confident person
        best_conf = 0.0
        best_keypoints = None
        for result in results:
            if result.keypoints is None or len(result.keypoints) == 0:
                continue
            boxes = result.boxes
            if boxes is None or len(boxes) == 0:
                continue
            confs = boxes.conf.tolist()
            idx = int(np.argmax(confs))
            if confs[idx] > best_conf:
                best_conf = float(confs[idx])
                best_keypoints = result.keypoints.data[idx].tolist()

        if best_keypoints is None:
            return Pose.empty()

        # Map back from the scaled image to frame pixels
        keypoints = [
            Keypoint(name, x / image_scale_factor, y / image_scale_factor, float(conf))
            for name, (x, y, conf) in zip(KEYPOINT_NAMES, best_keypoints)
        ]
        return Pose(score=best_conf, keypoints=keypoints)

    def dispose(self) -> None:
        if self.model is None:
            return
        self.model = None

        # Free GPU memory before a replacement model is loaded
        import torch
        if torch.cuda.is_available():
            torch.cuda.empty_cache()


class MediaPipePoseModel(PoseModel):
    """MediaPipe Pose backend, reduced to the COCO keypoints."""

    ARCHITECTURE_COMPLEXITY = {
        '0.50': 0,
        '0.75': 1,
        '1.00': 1,
        '1.01': 2,
    }

    # COCO name -> MediaPipe landmark index
    COCO_LANDMARKS = {
        'nose': 0,
        'left_eye': 2,
        'right_eye': 5,
        'left_ear': 7,
        'right_ear': 8,
        'left_shoulder': 11,
        'right_shoulder': 12,
        'left_elbow': 13,
        'right_elbow': 14,
        'left_wrist': 15,
        'right_wrist': 16,
        'left_hip': 23,
        'right_hip': 24,
        'left_knee': 25,
        'right_knee': 26,
        'left_ankle': 27,
        'right_ankle': 28,
    }

    def __init__(self, architecture: str = '0.75', min_detection_confidence: float = 0.5):
        self.architecture = normalize_architecture(architecture)
        self.model_complexity = self.ARCHITECTURE_COMPLEXITY[self.architecture]
        try:
            import mediapipe as mp
        except ImportError as e:
            raise ModelLoadError("mediapipe is not installed. Run: pip install mediapipe") from e

        try:
            self.pose = mp.solutions.pose.Pose(
                static_image_mode=False,  # Video mode for better tracking
                model_complexity=self.model_complexity,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=0.5
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to create MediaPipe Pose: {e}") from e

        info(f"Using MediaPipe Pose (complexity {self.model_complexity})")

    def estimate_single_pose(self, frame, image_scale_factor=0.5,
                             flip_horizontal=False, output_stride=16) -> Pose:
        if self.pose is None:
            raise ModelLoadError("Model has been disposed")

        image = prepare_input(frame, image_scale_factor, flip_horizontal)

        # MediaPipe needs RGB
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        rgb.flags.writeable = False
        results = self.pose.process(rgb)

        if not results.pose_landmarks:
            return Pose.empty()

        # Landmarks are normalized to the scaled image; output stays in frame pixels
        h, w = frame.shape[:2]
        landmarks = results.pose_landmarks.landmark
        keypoints = [
            Keypoint(name, landmarks[idx].x * w, landmarks[idx].y * h, float(landmarks[idx].visibility))
            for name, idx in self.COCO_LANDMARKS.items()
        ]
        score = float(np.mean([kp.score for kp in keypoints]))
        return Pose(score=score, keypoints=keypoints)

    def dispose(self) -> None:
        if self.pose is not None:
            self.pose.close()
            self.pose = None


def load_model(architecture: str = '0.75', backend: str = 'yolo',
               device: Optional[str] = None) -> PoseModel:
    """
    Load a pose model.

    Args:
        architecture: "0.50", "0.75", "1.00" or "1.01"
        backend: "yolo" or "mediapipe"
        device: Torch device for the YOLO backend (auto-detect if None)

    Raises:
        ModelLoadError: if the backend is unknown or the weights fail to load
    """
    if backend == 'yolo':
        return YoloPoseModel(architecture, device=device)
    if backend == 'mediapipe':
        return MediaPipePoseModel(architecture)
    raise ModelLoadError(f"Unknown pose backend: {backend!r}")
