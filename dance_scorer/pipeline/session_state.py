"""
Session State
The single mutable record of a play-through.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    RUNNING = "running"
    EXPIRED = "expired"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.EXPIRED, SessionStatus.FAILED)


@dataclass(frozen=True)
class FrameScore:
    """What one tick published."""
    match_count: int
    mean_abs_diff: Optional[float]  # None when no angle matched
    similarity: float               # b before FPS normalization (0 if not comparable)
    delta: float                    # Applied to the cumulative score
    fps: Optional[float]            # None when no time elapsed
    score: float                    # Cumulative score after this tick


class SessionState:
    """
    Cumulative score, frame timestamp and countdown of one session.

    Only the score integrator changes the score; the driver owns status and
    countdown. Everything resets on (re)start.
    """

    def __init__(self, baseline: float = 0.0, duration: float = 60.0):
        self.baseline = baseline
        self.duration = duration
        self.status = SessionStatus.IDLE
        self.message = ""
        self.score = baseline
        self.started_at: Optional[float] = None
        self.last_timestamp: Optional[float] = None
        self.remaining = duration
        self.last_frame_score: Optional[FrameScore] = None
        self.frame_count = 0

    def reset(self, now: float) -> None:
        """Start a fresh countdown at ``now``."""
        self.score = self.baseline
        self.started_at = now
        self.last_timestamp = now
        self.remaining = self.duration
        self.last_frame_score = None
        self.frame_count = 0
        self.message = ""

    def set_status(self, status: SessionStatus, message: str = "") -> None:
        self.status = status
        self.message = message

    def set_remaining(self, now: float) -> float:
        """Update and return the seconds left at ``now``."""
        if self.started_at is None:
            return self.remaining
        self.remaining = max(0.0, self.duration - (now - self.started_at))
        return self.remaining

    def apply_delta(self, delta: float, now: float) -> float:
        """Add ``delta`` to the score and stamp the frame time."""
        if self.status.is_terminal:
            raise RuntimeError(f"Score is frozen once the session is {self.status.value}")
        self.score += delta
        self.last_timestamp = now
        self.frame_count += 1
        return self.score

    def record(self, frame_score: FrameScore) -> None:
        self.last_frame_score = frame_score

    @property
    def expired(self) -> bool:
        return self.remaining <= 0.0

    def __repr__(self) -> str:
        return (f"SessionState(status={self.status.value}, score={self.score:.2f}, "
                f"remaining={self.remaining:.1f})")
