"""
Step 3: Angle Extraction
Turns one pose's keypoints into a set of named joint angles.
"""

from typing import Dict, Iterator, List, NamedTuple, Optional

from ..utils.angle_calculator import AngleCalculator
from .step2_pose_estimation import Pose


class NamedAngle(NamedTuple):
    """A joint angle in degrees [0, 180]."""
    name: str
    angle: float


class AngleSet:
    """
    Named joint angles of one pose in one frame.

    Iteration follows the joint catalog order. Joints whose keypoints were
    missing or not confident enough are simply absent.
    """

    __slots__ = ('_angles',)

    def __init__(self, angles: Optional[Dict[str, float]] = None):
        self._angles = dict(angles or {})

    @classmethod
    def from_angles(cls, named_angles) -> "AngleSet":
        return cls({a.name: a.angle for a in named_angles})

    def get(self, name: str) -> Optional[float]:
        return self._angles.get(name)

    def names(self) -> List[str]:
        return list(self._angles)

    def as_dict(self) -> Dict[str, float]:
        return dict(self._angles)

    def __contains__(self, name) -> bool:
        return name in self._angles

    def __len__(self) -> int:
        return len(self._angles)

    def __iter__(self) -> Iterator[NamedAngle]:
        return (NamedAngle(name, angle) for name, angle in self._angles.items())

    def __eq__(self, other) -> bool:
        if not isinstance(other, AngleSet):
            return NotImplemented
        return self._angles == other._angles

    def __repr__(self) -> str:
        inner = ", ".join(f"{name}={angle:.1f}" for name, angle in self._angles.items())
        return f"AngleSet({inner})"


def extract_angles(
    pose: Optional[Pose],
    min_part_confidence: float,
    min_pose_confidence: float = 0.0
) -> AngleSet:
    """
    Extract the catalog joint angles from a pose.

    Args:
        pose: Pose from the model (None is treated as no pose)
        min_part_confidence: All three keypoints of a joint must reach this
        min_pose_confidence: Poses scoring below this yield no angles

    Returns:
        AngleSet, possibly empty
    """
    if pose is None or not pose.score >= min_pose_confidence:
        return AngleSet()

    return AngleSet(AngleCalculator.calculate_all_angles(pose.keypoint_dict, min_part_confidence))
