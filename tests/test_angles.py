import unittest

from dance_scorer.pipeline.step3_angle_extraction import AngleSet, NamedAngle, extract_angles
from dance_scorer.utils.angle_calculator import AngleCalculator

from tests.helpers import BENT, STANDING, make_pose


class TestCalculateAngle(unittest.TestCase):
    """Angle between the two bones meeting at a joint"""

    def test_right_angle(self):
        angle = AngleCalculator.calculate_angle((0, 0), (1, 0), (1, 1))
        self.assertAlmostEqual(angle, 90.0)

    def test_straight_limb_is_zero(self):
        angle = AngleCalculator.calculate_angle((0, 0), (1, 1), (2, 2))
        self.assertAlmostEqual(angle, 0.0, places=5)

    def test_folded_limb_is_180(self):
        angle = AngleCalculator.calculate_angle((0, 0), (1, 0), (0, 0))
        self.assertAlmostEqual(angle, 180.0, places=5)

    def test_degenerate_bone_is_none(self):
        self.assertIsNone(AngleCalculator.calculate_angle((1, 1), (1, 1), (2, 3)))
        self.assertIsNone(AngleCalculator.calculate_angle((0, 0), (2, 3), (2, 3)))

    def test_scale_invariance(self):
        points = [(3, 7), (11, 2), (14, 19)]
        base = AngleCalculator.calculate_angle(*points)
        for factor in (0.01, 2.5, 1000):
            scaled = [(x * factor, y * factor) for x, y in points]
            self.assertAlmostEqual(AngleCalculator.calculate_angle(*scaled), base, places=6)

    def test_range(self):
        triples = [
            ((0, 0), (5, 1), (3, 9)),
            ((-4, 2), (0, 0), (7, -1)),
            ((1, 1), (2, 3), (2.5, 10)),
        ]
        for triple in triples:
            angle = AngleCalculator.calculate_angle(*triple)
            self.assertGreaterEqual(angle, 0.0)
            self.assertLessEqual(angle, 180.0)


class TestExtractAngles(unittest.TestCase):
    """AngleSet extraction from a pose"""

    def test_all_catalog_joints(self):
        angles = extract_angles(make_pose(), min_part_confidence=0.5)
        self.assertEqual(angles.names(), AngleCalculator.ANGLE_ORDER)
        for named in angles:
            self.assertIsInstance(named, NamedAngle)
            self.assertGreaterEqual(named.angle, 0.0)
            self.assertLessEqual(named.angle, 180.0)

    def test_known_values(self):
        angles = extract_angles(make_pose(BENT), min_part_confidence=0.5)
        self.assertAlmostEqual(angles.get('left_elbow'), 135.0)
        self.assertAlmostEqual(angles.get('left_knee'), 90.0)
        standing = extract_angles(make_pose(STANDING), min_part_confidence=0.5)
        self.assertAlmostEqual(standing.get('left_elbow'), 45.0)
        self.assertAlmostEqual(standing.get('left_knee'), 0.0)

    def test_low_confidence_part_drops_its_joints(self):
        pose = make_pose(overrides={'left_elbow': 0.3})
        angles = extract_angles(pose, min_part_confidence=0.5)
        # left_elbow is the joint of one angle and an end of the left shoulder angle
        self.assertNotIn('left_elbow', angles)
        self.assertNotIn('left_shoulder', angles)
        self.assertEqual(len(angles), 6)

    def test_any_member_below_threshold(self):
        for part in ('left_hip', 'left_knee', 'left_ankle'):
            pose = make_pose(overrides={part: 0.89})
            angles = extract_angles(pose, min_part_confidence=0.9)
            self.assertNotIn('left_knee', angles, part)

    def test_threshold_is_inclusive(self):
        pose = make_pose(part_score=0.9)
        self.assertEqual(len(extract_angles(pose, min_part_confidence=0.9)), 8)

    def test_missing_keypoint(self):
        points = dict(STANDING)
        del points['right_ankle']
        angles = extract_angles(make_pose(points), min_part_confidence=0.5)
        self.assertNotIn('right_knee', angles)
        self.assertIn('left_knee', angles)

    def test_degenerate_joint_is_omitted(self):
        points = dict(STANDING, left_wrist=STANDING['left_elbow'])
        angles = extract_angles(make_pose(points), min_part_confidence=0.5)
        self.assertNotIn('left_elbow', angles)

    def test_low_pose_confidence(self):
        pose = make_pose(score=0.4)
        self.assertEqual(len(extract_angles(pose, 0.5, min_pose_confidence=0.7)), 0)

    def test_no_pose(self):
        self.assertEqual(len(extract_angles(None, 0.5)), 0)


class TestAngleSet(unittest.TestCase):

    def test_from_angles(self):
        angles = AngleSet.from_angles([NamedAngle('left_knee', 170.0), NamedAngle('left_elbow', 90.0)])
        self.assertEqual(angles.as_dict(), {'left_knee': 170.0, 'left_elbow': 90.0})
        self.assertEqual(angles.get('right_knee'), None)
        self.assertEqual(AngleSet({'a': 1.0}), AngleSet({'a': 1.0}))


if __name__ == '__main__':
    unittest.main()
