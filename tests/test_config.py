import os
import tempfile
import unittest

from dance_scorer import config
from dance_scorer.config import (
    AppConfig,
    InputConfig,
    ScoringConfig,
    config_from_dict,
    load_config,
    normalize_architecture,
    with_overrides,
)
from dance_scorer.errors import ConfigError
from dance_scorer.main import config_from_args, parse_args


class TestAppConfig(unittest.TestCase):
    """Immutable configuration tree"""

    def test_defaults(self):
        cfg = AppConfig()
        self.assertEqual(cfg.algorithm, 'single-pose')
        self.assertEqual(cfg.input.architecture, config.ARCHITECTURE)
        self.assertEqual(cfg.input.output_stride, 16)
        self.assertEqual(cfg.detection.min_part_confidence, config.MIN_PART_CONFIDENCE)
        self.assertEqual(cfg.scoring.min_matches, 3)
        self.assertEqual(cfg.session_duration, 60.0)
        self.assertFalse(cfg.output.show_bounding_box)

    def test_frozen(self):
        cfg = AppConfig()
        with self.assertRaises(AttributeError):
            cfg.session_duration = 10

    def test_architecture_normalized(self):
        self.assertEqual(normalize_architecture(0.5), '0.50')
        self.assertEqual(normalize_architecture('1'), '1.00')
        self.assertEqual(InputConfig(architecture=1.01).architecture, '1.01')
        with self.assertRaises(ConfigError):
            normalize_architecture('0.6')
        with self.assertRaises(ConfigError):
            normalize_architecture('large')

    def test_invalid_values(self):
        with self.assertRaises(ConfigError):
            InputConfig(output_stride=12)
        with self.assertRaises(ConfigError):
            InputConfig(image_scale_factor=0.1)
        with self.assertRaises(ConfigError):
            AppConfig(algorithm='multi-pose')
        with self.assertRaises(ConfigError):
            AppConfig(session_duration=0)
        with self.assertRaises(ConfigError):
            ScoringConfig(kernel='cosine')
        with self.assertRaises(ValueError):
            config_from_dict({'detection': {'min_part_confidence': 1.5}})

    def test_from_dict(self):
        cfg = config_from_dict({
            'session_duration': 30,
            'input': {'architecture': 0.5, 'output_stride': 8},
            'scoring': {'floor_bias': 0.0},
        })
        self.assertEqual(cfg.session_duration, 30)
        self.assertEqual(cfg.input.architecture, '0.50')
        self.assertEqual(cfg.input.output_stride, 8)
        self.assertEqual(cfg.input.image_scale_factor, config.IMAGE_SCALE_FACTOR)
        self.assertEqual(cfg.scoring.floor_bias, 0.0)
        self.assertEqual(cfg.scoring.reward_threshold, 0.1)

    def test_unknown_option(self):
        with self.assertRaises(ConfigError):
            config_from_dict({'input': {'stride': 8}})
        with self.assertRaises(ConfigError):
            config_from_dict({'colour': 'red'})

    def test_with_overrides(self):
        cfg = with_overrides(AppConfig(), app={'session_duration': 90, 'camera_id': None},
                             output={'show_video': False, 'show_points': None})
        self.assertEqual(cfg.session_duration, 90)
        self.assertEqual(cfg.camera_id, config.CAMERA_ID)
        self.assertFalse(cfg.output.show_video)
        self.assertTrue(cfg.output.show_points)
        base = AppConfig()
        self.assertIs(with_overrides(base, input={'output_stride': None}), base)


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix='.yaml')
        os.close(fd)

    def tearDown(self):
        os.remove(self.path)

    def write(self, text):
        with open(self.path, 'w', encoding='utf-8') as f:
            f.write(text)

    def test_yaml(self):
        self.write(
            "reference_video: routine.mp4\n"
            "detection:\n"
            "  min_pose_confidence: 0.5\n"
            "  min_part_confidence: 0.6\n"
            "output:\n"
            "  show_bounding_box: true\n"
        )
        cfg = load_config(self.path)
        self.assertEqual(cfg.reference_video, 'routine.mp4')
        self.assertEqual(cfg.detection.min_part_confidence, 0.6)
        self.assertTrue(cfg.output.show_bounding_box)

    def test_empty_file(self):
        self.write("")
        self.assertEqual(load_config(self.path), AppConfig())

    def test_bad_yaml(self):
        self.write("input: [unclosed\n")
        with self.assertRaises(ConfigError):
            load_config(self.path)

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_config(self.path + '.missing')

    def test_none_is_defaults(self):
        self.assertEqual(load_config(None), AppConfig())


class TestCommandLine(unittest.TestCase):

    def test_flags_override_defaults(self):
        args = parse_args(['--video', 'a.mp4', '--architecture', '1.01', '--duration', '45',
                           '--min-part-confidence', '0.5', '--hide-points', '--show-bbox',
                           '--kernel', 'chord'])
        cfg = config_from_args(args)
        self.assertEqual(cfg.reference_video, 'a.mp4')
        self.assertEqual(cfg.input.architecture, '1.01')
        self.assertEqual(cfg.session_duration, 45.0)
        self.assertEqual(cfg.detection.min_part_confidence, 0.5)
        self.assertFalse(cfg.output.show_points)
        self.assertTrue(cfg.output.show_skeleton)
        self.assertTrue(cfg.output.show_bounding_box)
        self.assertEqual(cfg.scoring.kernel, 'chord')

    def test_no_flags(self):
        self.assertEqual(config_from_args(parse_args([])), AppConfig())


if __name__ == '__main__':
    unittest.main()
