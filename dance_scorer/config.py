"""
Dance Scorer Configuration
==========================

Central configuration for the scoring pipeline and the timed session.

Module-level constants are the defaults. ``AppConfig`` bundles them into an
immutable tree that is passed explicitly into every component; overrides come
from a YAML file (``load_config``) and from command line flags.
"""

from dataclasses import MISSING, dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigError

# =============================================================================
# Media Settings
# =============================================================================
REFERENCE_VIDEO = "dance3_frag_silent.mp4"
CAMERA_ID = 0
VIDEO_WIDTH = 640
VIDEO_HEIGHT = 360
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 360

# =============================================================================
# Pose Model Settings
# =============================================================================
ALGORITHM = "single-pose"  # Only single-pose is supported
ALGORITHMS = ("single-pose",)

BACKEND = "yolo"  # Options: "yolo", "mediapipe"
BACKENDS = ("yolo", "mediapipe")
DEVICE = None  # None=auto-detect, "cuda" or "cpu"

ARCHITECTURE = "0.75"
ARCHITECTURES = ("0.50", "0.75", "1.00", "1.01")  # 1.01 largest/slowest, 0.50 fastest
OUTPUT_STRIDE = 16
OUTPUT_STRIDES = (8, 16, 32)
IMAGE_SCALE_FACTOR = 0.5
IMAGE_SCALE_RANGE = (0.2, 1.0)

# =============================================================================
# Detection Thresholds
# =============================================================================
MIN_POSE_CONFIDENCE = 0.7
MIN_PART_CONFIDENCE = 0.9

# =============================================================================
# Scoring Settings
# =============================================================================
MIN_MATCHES = 3          # Fewer matched angles -> frame pair is not comparable
DECAY_SCALE = 10.0       # Degrees; b = exp(-(mean/DECAY_SCALE)^2) - FLOOR_BIAS
FLOOR_BIAS = 0.01        # Strictness bias subtracted from the similarity
REWARD_THRESHOLD = 0.1   # Similarity above this earns reward, otherwise penalty
PENALTY_RATE = 0.1       # Points per second lost while below the threshold
BASELINE_SCORE = 0.0
KERNEL = "gaussian"      # Options: "gaussian", "chord"
KERNELS = ("gaussian", "chord")
KERNEL_ALPHA = 60.0      # Angle (deg) at which the chord kernel reaches ~0.1

# =============================================================================
# Session Settings
# =============================================================================
SESSION_DURATION = 60.0  # Seconds
TICK_INTERVAL = 0.0      # Seconds between ticks; 0 = as fast as frames arrive

# =============================================================================
# Display Settings
# =============================================================================
WINDOW_NAME = "Dance Scorer"
FONT_SCALE = 0.6
SHOW_VIDEO = True
SHOW_SKELETON = True
SHOW_POINTS = True
SHOW_BOUNDING_BOX = False

# Colors (BGR format)
COLOR_GREEN = (0, 255, 0)
COLOR_AQUA = (255, 255, 0)
COLOR_ORANGE = (0, 165, 255)
COLOR_RED = (0, 0, 255)
COLOR_WHITE = (255, 255, 255)
COLOR_BLACK = (0, 0, 0)


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise ConfigError(f"{name} must be in [{low}, {high}], got {value}")


@dataclass(frozen=True)
class InputConfig:
    """Model input parameters; these trade accuracy for speed."""
    architecture: str = ARCHITECTURE
    output_stride: int = OUTPUT_STRIDE
    image_scale_factor: float = IMAGE_SCALE_FACTOR

    def __post_init__(self):
        # Accept 0.75 as well as "0.75"
        object.__setattr__(self, "architecture", normalize_architecture(self.architecture))
        if self.output_stride not in OUTPUT_STRIDES:
            raise ConfigError(
                f"output_stride must be one of {OUTPUT_STRIDES}, got {self.output_stride}"
            )
        _check_range("image_scale_factor", self.image_scale_factor, *IMAGE_SCALE_RANGE)


@dataclass(frozen=True)
class DetectionConfig:
    """Single-pose confidence thresholds."""
    min_pose_confidence: float = MIN_POSE_CONFIDENCE
    min_part_confidence: float = MIN_PART_CONFIDENCE

    def __post_init__(self):
        _check_range("min_pose_confidence", self.min_pose_confidence, 0.0, 1.0)
        _check_range("min_part_confidence", self.min_part_confidence, 0.0, 1.0)


@dataclass(frozen=True)
class OutputConfig:
    show_video: bool = SHOW_VIDEO
    show_skeleton: bool = SHOW_SKELETON
    show_points: bool = SHOW_POINTS
    show_bounding_box: bool = SHOW_BOUNDING_BOX


@dataclass(frozen=True)
class ScoringConfig:
    """Tunables of the score integrator."""
    min_matches: int = MIN_MATCHES
    decay_scale: float = DECAY_SCALE
    floor_bias: float = FLOOR_BIAS
    reward_threshold: float = REWARD_THRESHOLD
    penalty_rate: float = PENALTY_RATE
    baseline: float = BASELINE_SCORE
    kernel: str = KERNEL
    kernel_alpha: float = KERNEL_ALPHA

    def __post_init__(self):
        if self.min_matches < 1:
            raise ConfigError(f"min_matches must be >= 1, got {self.min_matches}")
        if self.decay_scale <= 0:
            raise ConfigError(f"decay_scale must be > 0, got {self.decay_scale}")
        if self.kernel_alpha <= 0:
            raise ConfigError(f"kernel_alpha must be > 0, got {self.kernel_alpha}")
        if self.kernel not in KERNELS:
            raise ConfigError(f"kernel must be one of {KERNELS}, got {self.kernel!r}")


@dataclass(frozen=True)
class AppConfig:
    """Complete, immutable application configuration."""
    algorithm: str = ALGORITHM
    backend: str = BACKEND
    device: Optional[str] = DEVICE
    reference_video: str = REFERENCE_VIDEO
    camera_id: int = CAMERA_ID
    session_duration: float = SESSION_DURATION
    tick_interval: float = TICK_INTERVAL
    input: InputConfig = field(default_factory=InputConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def __post_init__(self):
        if self.algorithm not in ALGORITHMS:
            raise ConfigError(f"algorithm must be one of {ALGORITHMS}, got {self.algorithm!r}")
        if self.backend not in BACKENDS:
            raise ConfigError(f"backend must be one of {BACKENDS}, got {self.backend!r}")
        if self.session_duration <= 0:
            raise ConfigError(f"session_duration must be > 0, got {self.session_duration}")
        if self.tick_interval < 0:
            raise ConfigError(f"tick_interval must be >= 0, got {self.tick_interval}")


def normalize_architecture(architecture: Union[str, float]) -> str:
    """Return the canonical two-decimal architecture string ("0.75")."""
    try:
        value = f"{float(architecture):.2f}"
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid architecture: {architecture!r}") from None
    if value not in ARCHITECTURES:
        raise ConfigError(f"architecture must be one of {ARCHITECTURES}, got {architecture!r}")
    return value


def _build(cls, data: Dict[str, Any]):
    """Build a (possibly nested) config dataclass from a plain dict."""
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping for {cls.__name__}, got {type(data).__name__}")

    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ConfigError(f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}")

    kwargs = {}
    for name, value in data.items():
        factory = known[name].default_factory
        if factory is not MISSING and is_dataclass(factory):
            kwargs[name] = _build(factory, value)
        else:
            kwargs[name] = value
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigError(str(e)) from e


def config_from_dict(data: Optional[Dict[str, Any]]) -> AppConfig:
    """Create an AppConfig from a nested dict (as read from YAML)."""
    return _build(AppConfig, data or {})


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: YAML file; sections mirror AppConfig
              (input, detection, output, scoring). None returns defaults.

    Returns:
        AppConfig
    """
    if path is None:
        return AppConfig()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    return config_from_dict(data)


def with_overrides(config: AppConfig, **sections: Dict[str, Any]) -> AppConfig:
    """
    Return a copy of ``config`` with section values replaced.

    Top-level fields are passed under the ``app`` key, e.g.
    ``with_overrides(cfg, app={"session_duration": 30}, input={"output_stride": 8})``.
    None values are ignored so unset CLI flags keep the current value.
    """
    top = {k: v for k, v in sections.pop("app", {}).items() if v is not None}
    for section, values in sections.items():
        values = {k: v for k, v in values.items() if v is not None}
        if values:
            top[section] = replace(getattr(config, section), **values)
    return replace(config, **top) if top else config
