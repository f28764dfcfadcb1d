"""Fakes shared by the test cases: clock, frame source, pose model."""

import numpy as np

from dance_scorer.errors import ModelLoadError, SourceAcquisitionError
from dance_scorer.pipeline.step1_frame_capture import FrameSource, StreamHandle, StreamRole
from dance_scorer.pipeline.step2_pose_estimation import Keypoint, Pose, PoseModel


# A standing pose with arms out; every catalog joint is measurable
STANDING = {
    'left_shoulder': (60, 40), 'left_elbow': (80, 60), 'left_wrist': (100, 60),
    'right_shoulder': (40, 40), 'right_elbow': (20, 60), 'right_wrist': (0, 60),
    'left_hip': (55, 100), 'right_hip': (45, 100),
    'left_knee': (55, 140), 'right_knee': (45, 140),
    'left_ankle': (55, 180), 'right_ankle': (45, 180),
}

# Same body with both elbows bent and one knee lifted
BENT = dict(STANDING, left_wrist=(80, 20), right_wrist=(20, 20), left_ankle=(90, 140))


def make_pose(points=None, score=1.0, part_score=1.0, overrides=None):
    """Build a Pose from {part: (x, y)}; ``overrides`` maps part -> confidence."""
    points = STANDING if points is None else points
    overrides = overrides or {}
    keypoints = [
        Keypoint(part, float(x), float(y), overrides.get(part, part_score))
        for part, (x, y) in points.items()
    ]
    return Pose(score=score, keypoints=keypoints)


class FakeClock:
    """Manually advanced clock; keeps integer milliseconds to avoid drift."""

    def __init__(self, start_ms=0):
        self.ms = start_ms

    def advance(self, seconds):
        self.ms += int(round(seconds * 1000))

    def __call__(self):
        return self.ms / 1000.0


class FakeSource(FrameSource):
    def __init__(self, fail=False):
        super().__init__()
        self.fail = fail
        self.released = False
        self.frame = np.zeros((36, 64, 3), dtype=np.uint8)

    def _open(self):
        if self.fail:
            raise SourceAcquisitionError("camera permission denied")

    def read(self):
        return self.frame if self.ready else None

    def release(self):
        self.released = True


class FakeModel(PoseModel):
    """Returns the reference pose for unflipped frames, the performer pose otherwise."""

    def __init__(self, architecture, events, reference_pose, performer_pose,
                 clock=None, step=0.0):
        self.architecture = architecture
        self.events = events
        self.reference_pose = reference_pose
        self.performer_pose = performer_pose
        self.clock = clock
        self.step = step
        self.calls = []

    def estimate_single_pose(self, frame, image_scale_factor=0.5,
                             flip_horizontal=False, output_stride=16):
        self.calls.append('performer' if flip_horizontal else 'reference')
        if self.clock is not None:
            self.clock.advance(self.step)
        return self.performer_pose if flip_horizontal else self.reference_pose

    def dispose(self):
        self.events.append(('dispose', self.architecture))


class FakeLoader:
    """Model loader recording load/dispose order."""

    def __init__(self, reference_pose=None, performer_pose=None, clock=None, step=0.0,
                 fail_for=()):
        self.events = []
        self.models = []
        self.reference_pose = reference_pose or make_pose()
        self.performer_pose = performer_pose or make_pose()
        self.clock = clock
        self.step = step
        self.fail_for = set(fail_for)

    def __call__(self, architecture):
        self.events.append(('load', architecture))
        if architecture in self.fail_for:
            raise ModelLoadError(f"no weights for {architecture}")
        model = FakeModel(architecture, self.events, self.reference_pose,
                          self.performer_pose, self.clock, self.step)
        self.models.append(model)
        return model


def handle_factory(role, source):
    def factory():
        return StreamHandle(role=role, source=source,
                            flip_horizontal=role is StreamRole.PERFORMER,
                            width=64, height=36)
    return factory
