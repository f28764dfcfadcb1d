"""
Utils: Visualization
Drawing and display helpers for the dance scorer (OpenCV).
"""

from typing import Callable, Iterable, Optional, Sequence

import cv2
import numpy as np

from .. import config
from ..config import OutputConfig

# Body connections (COCO names, face skipped)
SKELETON = [
    ('left_shoulder', 'right_shoulder'),
    ('left_shoulder', 'left_elbow'), ('left_elbow', 'left_wrist'),
    ('right_shoulder', 'right_elbow'), ('right_elbow', 'right_wrist'),
    ('left_shoulder', 'left_hip'), ('right_shoulder', 'right_hip'),
    ('left_hip', 'right_hip'),
    ('left_hip', 'left_knee'), ('left_knee', 'left_ankle'),
    ('right_hip', 'right_knee'), ('right_knee', 'right_ankle'),
]


def _to_px(kp, scale_x: float, scale_y: float):
    return int(kp.x * scale_x), int(kp.y * scale_y)


def draw_keypoints(frame: np.ndarray, keypoints: Iterable, min_confidence: float,
                   scale_x: float = 1.0, scale_y: float = 1.0) -> np.ndarray:
    """Draw keypoints scoring at least ``min_confidence``."""
    for kp in keypoints:
        if kp.score < min_confidence:
            continue
        x, y = _to_px(kp, scale_x, scale_y)
        cv2.circle(frame, (x, y), 4, config.COLOR_AQUA, -1)
        cv2.circle(frame, (x, y), 4, config.COLOR_WHITE, 1)
    return frame


def draw_skeleton(frame: np.ndarray, keypoint_dict: dict, min_confidence: float,
                  scale_x: float = 1.0, scale_y: float = 1.0) -> np.ndarray:
    """Draw bones whose two ends are both confident."""
    for a, b in SKELETON:
        kp_a, kp_b = keypoint_dict.get(a), keypoint_dict.get(b)
        if kp_a is None or kp_b is None:
            continue
        if kp_a.score < min_confidence or kp_b.score < min_confidence:
            continue
        cv2.line(frame, _to_px(kp_a, scale_x, scale_y), _to_px(kp_b, scale_x, scale_y),
                 config.COLOR_AQUA, 2)
    return frame


def draw_bounding_box(frame: np.ndarray, keypoints: Sequence,
                      scale_x: float = 1.0, scale_y: float = 1.0) -> np.ndarray:
    """Draw the box enclosing all keypoints."""
    if not keypoints:
        return frame
    xs = [kp.x * scale_x for kp in keypoints]
    ys = [kp.y * scale_y for kp in keypoints]
    cv2.rectangle(frame, (int(min(xs)), int(min(ys))), (int(max(xs)), int(max(ys))),
                  config.COLOR_GREEN, 1)
    return frame


def draw_angles(frame: np.ndarray, keypoint_dict: dict, angle_set,
                scale_x: float = 1.0, scale_y: float = 1.0) -> np.ndarray:
    """Write each measured joint angle next to its joint."""
    for name, angle in angle_set:
        joint = keypoint_dict.get(name)
        if joint is None:
            continue
        x, y = _to_px(joint, scale_x, scale_y)
        cv2.putText(frame, f"{angle:.0f}", (x + 6, y - 6),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.45, config.COLOR_ORANGE, 1)
    return frame


def draw_score_panel(frame: np.ndarray, state) -> np.ndarray:
    """
    Draw score, angle deviation, last delta and remaining time.

    Args:
        frame: Composite frame
        state: SessionState
    """
    h, w = frame.shape[:2]
    overlay = frame.copy()
    cv2.rectangle(overlay, (0, 0), (w, 40), (20, 20, 20), -1)
    cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)

    fs = state.last_frame_score
    diff = "--" if fs is None or fs.mean_abs_diff is None else f"{fs.mean_abs_diff:.2f}"
    delta = "--" if fs is None else f"{fs.similarity:.4f}"

    text = (f"Score: {state.score:.2f}   Angle diff: {diff}   "
            f"Delta: {delta}   Time: {int(np.ceil(state.remaining))}s")
    cv2.putText(frame, text, (10, 27), cv2.FONT_HERSHEY_SIMPLEX,
                config.FONT_SCALE, config.COLOR_WHITE, 1)

    # Progress bar of elapsed time
    progress = 1.0 - state.remaining / state.duration if state.duration else 1.0
    cv2.rectangle(frame, (0, 38), (int(w * progress), 40), config.COLOR_GREEN, -1)
    return frame


def draw_message(frame: np.ndarray, message: str) -> np.ndarray:
    """Centered banner, used for the terminal message."""
    h, w = frame.shape[:2]
    (tw, th), _ = cv2.getTextSize(message, cv2.FONT_HERSHEY_SIMPLEX, 0.8, 2)
    x, y = max(0, (w - tw) // 2), h // 2
    cv2.rectangle(frame, (x - 10, y - th - 10), (x + tw + 10, y + 10), config.COLOR_BLACK, -1)
    cv2.putText(frame, message, (x, y), cv2.FONT_HERSHEY_SIMPLEX, 0.8, config.COLOR_WHITE, 2)
    return frame


def render_stream(view, output: OutputConfig, min_part_confidence: float) -> np.ndarray:
    """
    Draw one stream at its display size.

    Keypoints of mirrored streams are already in mirrored coordinates, so
    the frame is mirrored to match.
    """
    handle = view.handle
    canvas = np.zeros((handle.height, handle.width, 3), dtype=np.uint8)
    if view.frame is None:
        return canvas

    fh, fw = view.frame.shape[:2]
    sx, sy = handle.width / fw, handle.height / fh

    if output.show_video:
        frame = cv2.flip(view.frame, 1) if handle.flip_horizontal else view.frame
        canvas = cv2.resize(frame, (handle.width, handle.height))

    pose = view.pose
    if pose is None or not view.pose_confident:
        return canvas

    if output.show_points:
        draw_keypoints(canvas, pose.keypoints, min_part_confidence, sx, sy)
    if output.show_skeleton:
        draw_skeleton(canvas, pose.keypoint_dict, min_part_confidence, sx, sy)
        draw_angles(canvas, pose.keypoint_dict, view.angles, sx, sy)
    if output.show_bounding_box:
        draw_bounding_box(canvas, pose.keypoints, sx, sy)
    return canvas


class OpenCVRenderer:
    """Shows both streams side by side with the score panel in one window."""

    def __init__(self, app_config, window_name: str = config.WINDOW_NAME,
                 key_handler: Optional[Callable[[int], None]] = None):
        self.config = app_config
        self.window_name = window_name
        self.key_handler = key_handler
        self._last: Optional[np.ndarray] = None

    def _compose(self, views, state) -> np.ndarray:
        panels = [
            render_stream(v, self.config.output, self.config.detection.min_part_confidence)
            for v in views
        ]
        height = max(p.shape[0] for p in panels)
        panels = [
            cv2.copyMakeBorder(p, 0, height - p.shape[0], 0, 0, cv2.BORDER_CONSTANT)
            for p in panels
        ]
        composite = np.hstack(panels)
        return draw_score_panel(composite, state)

    def render(self, views, state) -> None:
        self._last = self._compose(views, state)
        self._show(self._last)

    def render_terminal(self, state) -> None:
        if self._last is None:
            frame = np.zeros((config.VIDEO_HEIGHT, config.VIDEO_WIDTH, 3), dtype=np.uint8)
        else:
            frame = self._last.copy()
        draw_score_panel(frame, state)
        draw_message(frame, state.message)
        self._show(frame)

    def _show(self, frame: np.ndarray) -> None:
        cv2.imshow(self.window_name, frame)
        key = cv2.waitKey(1) & 0xFF
        if key != 0xFF and self.key_handler is not None:
            self.key_handler(key)

    def wait_key(self) -> int:
        """Block until a key is pressed."""
        return cv2.waitKey(0) & 0xFF

    def close(self) -> None:
        cv2.destroyAllWindows()
