"""
Step 5: Score Integration
Converts a frame pair's angular deviation into a change of the session score.

The similarity of a frame pair is

    b = exp(-(mean_abs_diff / decay_scale)^2) - floor_bias

which is ~1 for identical poses and decays towards -floor_bias. Above
``reward_threshold`` the performer earns b points per second; below it they
lose ``penalty_rate`` points per second. Both are divided by the estimated
FPS so the total over a wall-clock span does not depend on the frame rate.
"""

import math
from typing import Optional, Tuple

from ..config import ScoringConfig
from .session_state import FrameScore, SessionState
from .step4_angle_comparison import ComparisonResult


def deg_angle_score(x: float, alpha: float = 60.0) -> float:
    """
    Chord-length kernel for an angle difference in degrees.

    sqrt(2 * (1 - cos x)) is the distance between two unit vectors x degrees
    apart, so the kernel is rotation invariant. Returns 1 at x = 0 and about
    0.1 at x = alpha.
    """
    chord = math.sqrt(max(0.0, 2.0 * (1.0 - math.cos(math.radians(x)))))
    return math.exp(-(135.0 / alpha) * chord)


def similarity(mean_abs_diff: float, config: ScoringConfig) -> float:
    """Similarity b of a mean angular deviation, using the configured kernel."""
    if config.kernel == "chord":
        return deg_angle_score(mean_abs_diff, config.kernel_alpha) - config.floor_bias
    return math.exp(-((mean_abs_diff / config.decay_scale) ** 2)) - config.floor_bias


def estimate_fps(elapsed_ms: float) -> Optional[float]:
    """Instantaneous FPS, None when no time has elapsed."""
    if not elapsed_ms > 0:
        return None
    return 1000.0 / elapsed_ms


def compute_delta(
    comparison: ComparisonResult,
    elapsed_ms: float,
    config: ScoringConfig
) -> Tuple[float, float]:
    """
    Per-frame score change.

    Args:
        comparison: Matched angle count and summed deviation
        elapsed_ms: Milliseconds since the previous frame
        config: Scoring tunables

    Returns:
        (b, delta) where b is the similarity before FPS normalization
        (0 when the pair is not comparable) and delta the score change
    """
    if comparison.match_count < config.min_matches:
        return 0.0, 0.0

    b = similarity(comparison.mean_abs_diff, config)

    fps = estimate_fps(elapsed_ms)
    if fps is None or not math.isfinite(fps):
        # Zero elapsed time: infinite FPS, the contribution vanishes
        return b, 0.0

    if b > config.reward_threshold:
        delta = b / fps
    else:
        delta = -config.penalty_rate / fps
    return b, delta


class ScoreIntegrator:
    """Applies per-frame deltas to a SessionState."""

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def integrate(self, comparison: ComparisonResult, state: SessionState, now: float) -> FrameScore:
        """
        Score one frame pair at time ``now`` (seconds) and update ``state``.

        A state that was never ``reset`` has no previous timestamp; its first
        frame counts as zero elapsed time and gets a zero delta.

        Returns:
            FrameScore with the values published for display
        """
        if state.last_timestamp is None:
            elapsed_ms = 0.0
        else:
            elapsed_ms = (now - state.last_timestamp) * 1000.0

        b, delta = compute_delta(comparison, elapsed_ms, self.config)
        score = state.apply_delta(delta, now)

        frame_score = FrameScore(
            match_count=comparison.match_count,
            mean_abs_diff=comparison.mean_abs_diff,
            similarity=b,
            delta=delta,
            fps=estimate_fps(elapsed_ms),
            score=score,
        )
        state.record(frame_score)
        return frame_score
