"""
Dance Scorer - Real-time Dance Scoring
======================================

Plays a reference dance video next to the webcam, estimates the pose in
both and scores how closely the performer follows the reference.

Pipeline (once per displayed frame):
1. Frame Capture - reference video + webcam
2. Pose Estimation - YOLOv8-Pose or MediaPipe
3. Angle Extraction - 8 joint angles per pose
4. Angle Comparison - mean angular deviation between the two poses
5. Score Integration - FPS-normalized reward / penalty

Usage:
    python -m dance_scorer.main --video dance.mp4
    python -m dance_scorer.main --video dance.mp4 --camera 1 --duration 90
    python -m dance_scorer.main --config settings.yaml

Controls:
    Q / ESC - Stop the session
    1-4     - Switch model architecture (0.50, 0.75, 1.00, 1.01)
    R       - Restart after the session ended
"""

import argparse
import asyncio
import logging
import sys
from functools import partial

from . import config
from .config import AppConfig, load_config, with_overrides
from .errors import ConfigError
from .pipeline import (
    SessionDriver,
    SessionStatus,
    StreamHandle,
    StreamRole,
    VideoFileSource,
    WebcamSource,
    load_model,
)
from .utils.logger import set_level
from .utils.visualization import OpenCVRenderer

ARCHITECTURE_KEYS = {ord(str(i + 1)): arch for i, arch in enumerate(config.ARCHITECTURES)}


def build_driver(app_config: AppConfig) -> SessionDriver:
    """Wire sources, model loader and renderer into a SessionDriver."""
    renderer = OpenCVRenderer(app_config)

    def reference_factory() -> StreamHandle:
        return StreamHandle(
            role=StreamRole.REFERENCE,
            source=VideoFileSource(app_config.reference_video),
            flip_horizontal=False,
            width=config.VIDEO_WIDTH,
            height=config.VIDEO_HEIGHT,
        )

    def performer_factory() -> StreamHandle:
        # Mirror the webcam so the performer sees themselves like in a mirror
        return StreamHandle(
            role=StreamRole.PERFORMER,
            source=WebcamSource(app_config.camera_id, config.CAMERA_WIDTH, config.CAMERA_HEIGHT),
            flip_horizontal=True,
            width=config.CAMERA_WIDTH,
            height=config.CAMERA_HEIGHT,
        )

    model_loader = partial(load_model, backend=app_config.backend, device=app_config.device)

    driver = SessionDriver(
        app_config,
        model_loader=model_loader,
        reference_factory=reference_factory,
        performer_factory=performer_factory,
        renderer=renderer,
    )

    def on_key(key: int) -> None:
        if key in (ord('q'), 27):
            driver.stop()
        elif key in ARCHITECTURE_KEYS:
            driver.request_architecture(ARCHITECTURE_KEYS[key])

    renderer.key_handler = on_key
    return driver


async def run_sessions(driver: SessionDriver) -> int:
    """Run sessions until the user quits. Returns the process exit code."""
    state = await driver.run()
    try:
        while True:
            if state.status == SessionStatus.FAILED:
                print(f"\n{state.message}")
                return 1

            print(f"\nFinal score: {state.score:.2f} ({state.frame_count} frames)")
            print("Press R to play again, any other key to quit")
            key = driver.renderer.wait_key()
            if key != ord('r'):
                return 0
            state = await driver.restart()
    finally:
        driver.release()
        driver.renderer.close()


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Dance Scorer - follow the reference dance in front of your webcam',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument('--config', type=str, default=None,
                        help='YAML file with configuration overrides')

    # Sources
    parser.add_argument('--video', type=str, default=None,
                        help=f'Reference dance video (default: {config.REFERENCE_VIDEO})')
    parser.add_argument('--camera', type=int, default=None,
                        help=f'Camera ID for the performer (default: {config.CAMERA_ID})')

    # Model
    parser.add_argument('--backend', choices=config.BACKENDS, default=None,
                        help=f'Pose model backend (default: {config.BACKEND})')
    parser.add_argument('--device', type=str, default=None,
                        help='Torch device for the YOLO backend (auto-detect if unset)')
    parser.add_argument('--architecture', choices=config.ARCHITECTURES, default=None,
                        help=f'Model size (default: {config.ARCHITECTURE})')
    parser.add_argument('--output-stride', type=int, choices=config.OUTPUT_STRIDES, default=None,
                        help=f'Output stride (default: {config.OUTPUT_STRIDE})')
    parser.add_argument('--image-scale-factor', type=float, default=None,
                        help=f'Scale applied before inference (default: {config.IMAGE_SCALE_FACTOR})')

    # Detection
    parser.add_argument('--min-pose-confidence', type=float, default=None,
                        help=f'Minimum pose confidence (default: {config.MIN_POSE_CONFIDENCE})')
    parser.add_argument('--min-part-confidence', type=float, default=None,
                        help=f'Minimum keypoint confidence (default: {config.MIN_PART_CONFIDENCE})')

    # Session / scoring
    parser.add_argument('--duration', type=float, default=None,
                        help=f'Session length in seconds (default: {config.SESSION_DURATION})')
    parser.add_argument('--kernel', choices=config.KERNELS, default=None,
                        help=f'Similarity kernel (default: {config.KERNEL})')

    # Output toggles
    parser.add_argument('--hide-video', action='store_true', help='Do not draw the video')
    parser.add_argument('--hide-skeleton', action='store_true', help='Do not draw the skeleton')
    parser.add_argument('--hide-points', action='store_true', help='Do not draw keypoints')
    parser.add_argument('--show-bbox', action='store_true', help='Draw bounding boxes')

    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    return parser.parse_args(argv)


def config_from_args(args) -> AppConfig:
    """Load the YAML config (if any) and apply command line overrides."""
    app_config = load_config(args.config)
    return with_overrides(
        app_config,
        app={
            'reference_video': args.video,
            'camera_id': args.camera,
            'backend': args.backend,
            'device': args.device,
            'session_duration': args.duration,
        },
        input={
            'architecture': args.architecture,
            'output_stride': args.output_stride,
            'image_scale_factor': args.image_scale_factor,
        },
        detection={
            'min_pose_confidence': args.min_pose_confidence,
            'min_part_confidence': args.min_part_confidence,
        },
        output={
            'show_video': False if args.hide_video else None,
            'show_skeleton': False if args.hide_skeleton else None,
            'show_points': False if args.hide_points else None,
            'show_bounding_box': True if args.show_bbox else None,
        },
        scoring={
            'kernel': args.kernel,
        },
    )


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    if args.verbose:
        set_level(logging.DEBUG)

    try:
        app_config = config_from_args(args)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    driver = build_driver(app_config)
    return asyncio.run(run_sessions(driver))


if __name__ == '__main__':
    sys.exit(main())
