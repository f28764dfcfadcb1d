"""
Step 4: Angle Comparison
Matches the performer's joint angles against the reference's.
"""

from typing import NamedTuple, Optional

from .step3_angle_extraction import AngleSet


class ComparisonResult(NamedTuple):
    """Aggregate angular deviation of one frame pair."""
    match_count: int
    total_abs_diff: float

    @property
    def mean_abs_diff(self) -> Optional[float]:
        """Mean deviation in degrees, None when nothing matched."""
        if self.match_count == 0:
            return None
        return self.total_abs_diff / self.match_count


def compare_angles(reference: AngleSet, performer: AngleSet) -> ComparisonResult:
    """
    Sum |reference - performer| over the joints present in both sets.

    Joints the reference lacks are skipped; they only lower the match count.
    """
    match_count = 0
    total = 0.0

    for name, angle in performer:
        ref_angle = reference.get(name)
        if ref_angle is None:
            continue
        total += abs(ref_angle - angle)
        match_count += 1

    return ComparisonResult(match_count=match_count, total_abs_diff=total)
