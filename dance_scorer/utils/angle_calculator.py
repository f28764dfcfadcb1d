"""
Angle Calculator Utility
Calculates joint angles from pose keypoints.
"""

import numpy as np
from typing import Dict, Optional, Sequence, Tuple


# Bone vectors shorter than this are treated as degenerate
MIN_BONE_LENGTH = 1e-6


class AngleCalculator:
    """
    Calculate joint angles from pose keypoints.

    Uses 8 key angles for dance matching:
    - left_elbow, right_elbow
    - left_shoulder, right_shoulder
    - left_hip, right_hip
    - left_knee, right_knee
    """

    # Angle definitions: (proximal, joint, distal)
    ANGLE_DEFINITIONS = {
        'left_elbow': ('left_shoulder', 'left_elbow', 'left_wrist'),
        'right_elbow': ('right_shoulder', 'right_elbow', 'right_wrist'),
        'left_shoulder': ('left_elbow', 'left_shoulder', 'left_hip'),
        'right_shoulder': ('right_elbow', 'right_shoulder', 'right_hip'),
        'left_hip': ('left_shoulder', 'left_hip', 'left_knee'),
        'right_hip': ('right_shoulder', 'right_hip', 'right_knee'),
        'left_knee': ('left_hip', 'left_knee', 'left_ankle'),
        'right_knee': ('right_hip', 'right_knee', 'right_ankle'),
    }

    # Catalog order, used for AngleSet ordering and display
    ANGLE_ORDER = [
        'left_elbow', 'right_elbow',
        'left_shoulder', 'right_shoulder',
        'left_hip', 'right_hip',
        'left_knee', 'right_knee',
    ]

    @staticmethod
    def calculate_angle(
        proximal: Sequence[float],
        joint: Sequence[float],
        distal: Sequence[float]
    ) -> Optional[float]:
        """
        Calculate the angle between the two bone segments meeting at ``joint``.

        The bones are u = joint - proximal and v = distal - joint, so a fully
        straight limb measures 0 degrees and a folded one approaches 180.

        Args:
            proximal: Point before the joint (x, y)
            joint: Joint point
            distal: Point after the joint

        Returns:
            Angle in degrees [0, 180], or None if a bone has (near) zero length
        """
        p = np.asarray(proximal, dtype=float)
        j = np.asarray(joint, dtype=float)
        d = np.asarray(distal, dtype=float)

        u = j - p
        v = d - j

        norm_u = np.linalg.norm(u)
        norm_v = np.linalg.norm(v)
        if norm_u < MIN_BONE_LENGTH or norm_v < MIN_BONE_LENGTH:
            return None

        cos_angle = np.dot(u, v) / (norm_u * norm_v)

        # Rounding can push the cosine slightly outside [-1, 1]
        cos_angle = np.clip(cos_angle, -1.0, 1.0)

        angle = float(np.degrees(np.arccos(cos_angle)))
        if not np.isfinite(angle):
            return None
        return angle

    @classmethod
    def calculate_all_angles(
        cls,
        keypoint_dict: Dict[str, object],
        min_part_confidence: float = 0.0
    ) -> Dict[str, float]:
        """
        Calculate all catalog angles whose three keypoints are confident.

        Args:
            keypoint_dict: Maps part name to an object with x, y and score
            min_part_confidence: Keypoints scoring below this are ignored

        Returns:
            Dict of angle name -> degrees in catalog order; angles that could
            not be measured are left out
        """
        angles = {}

        for angle_name in cls.ANGLE_ORDER:
            part_names = cls.ANGLE_DEFINITIONS[angle_name]
            parts = [keypoint_dict.get(name) for name in part_names]

            if any(kp is None or not kp.score >= min_part_confidence for kp in parts):
                continue

            points: Tuple = tuple((kp.x, kp.y) for kp in parts)
            angle = cls.calculate_angle(*points)
            if angle is not None:
                angles[angle_name] = angle

        return angles
