"""
Step 1: Frame Capture
Reference video and webcam sources with async readiness and play/pause.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import cv2
import numpy as np

from ..errors import SourceAcquisitionError
from ..utils.logger import debug, info


class FrameSource(ABC):
    """Abstract base class for a playable, frame-bearing source."""

    def __init__(self):
        self.playing = False
        self.ready = False

    async def open(self) -> None:
        """
        Open the source and wait until a first frame can be decoded.

        Raises:
            SourceAcquisitionError: if the source cannot be opened
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._open)
        self.ready = True

    @abstractmethod
    def _open(self) -> None:
        """Blocking open; runs in an executor."""
        pass

    @abstractmethod
    def read(self) -> Optional[np.ndarray]:
        """Return the frame to show now, or None if nothing is available."""
        pass

    def play(self) -> None:
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    @abstractmethod
    def release(self) -> None:
        """Release resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class VideoFileSource(FrameSource):
    """
    Reference video played in wall-clock time.

    ``read`` returns the frame matching the time played so far, skipping
    decoded frames when ticks are slower than the video. Paused or finished
    videos keep returning their last frame.
    """

    def __init__(self, video_path: str, clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.video_path = video_path
        self.clock = clock
        self.cap = None
        self.fps = 0.0
        self.total_frames = 0
        self.width = 0
        self.height = 0
        self.current_frame = -1
        self.last_frame: Optional[np.ndarray] = None
        self._played = 0.0            # Seconds played before the current run
        self._play_started: Optional[float] = None

    def _open(self) -> None:
        cap = cv2.VideoCapture(self.video_path)
        if not cap.isOpened():
            raise SourceAcquisitionError(f"Cannot open video {self.video_path}")

        ret, frame = cap.read()
        if not ret:
            cap.release()
            raise SourceAcquisitionError(f"Cannot decode a frame from {self.video_path}")

        self.cap = cap
        self.fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        self.total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.current_frame = 0
        self.last_frame = frame
        info(f"Video loaded: {self.video_path} ({self.width}x{self.height} @ {self.fps:.1f} fps)")

    def play(self) -> None:
        if not self.playing:
            self._play_started = self.clock()
        super().play()

    def pause(self) -> None:
        if self.playing and self._play_started is not None:
            self._played += self.clock() - self._play_started
            self._play_started = None
        super().pause()

    def position(self) -> float:
        """Seconds of video played so far."""
        if self.playing and self._play_started is not None:
            return self._played + (self.clock() - self._play_started)
        return self._played

    def read(self) -> Optional[np.ndarray]:
        if self.cap is None:
            return None

        target = int(self.position() * self.fps)
        if self.total_frames > 0:
            target = min(target, self.total_frames - 1)

        # Grab without decoding until just before the wanted frame
        while self.current_frame < target - 1:
            if not self.cap.grab():
                return self.last_frame
            self.current_frame += 1

        if self.current_frame < target:
            ret, frame = self.cap.read()
            if ret:
                self.current_frame += 1
                self.last_frame = frame

        return self.last_frame

    def release(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class WebcamSource(FrameSource):
    """Live camera source."""

    def __init__(self, camera_id: int = 0, width: int = 640, height: int = 480):
        super().__init__()
        self.camera_id = camera_id
        self.width = width
        self.height = height
        self.cap = None
        self.last_frame: Optional[np.ndarray] = None

    def _open(self) -> None:
        cap = cv2.VideoCapture(self.camera_id)
        if not cap.isOpened():
            raise SourceAcquisitionError(f"Cannot open camera {self.camera_id}")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        ret, frame = cap.read()
        if not ret:
            cap.release()
            raise SourceAcquisitionError(f"Camera {self.camera_id} returned no frame")
        self.cap = cap
        self.last_frame = frame
        info(f"Camera {self.camera_id} opened - {frame.shape[1]}x{frame.shape[0]}")

    def read(self) -> Optional[np.ndarray]:
        if self.cap is None:
            return None
        # A paused camera shows its last frame, like a paused <video>
        if self.playing:
            ret, frame = self.cap.read()
            if ret:
                self.last_frame = frame
            else:
                debug(f"Camera {self.camera_id} read failed")
        return self.last_frame

    def release(self) -> None:
        if self.cap is not None and self.cap.isOpened():
            self.cap.release()
        self.cap = None


class StreamRole(Enum):
    """Which side of the comparison a stream feeds."""
    REFERENCE = "reference"
    PERFORMER = "performer"


@dataclass
class StreamHandle:
    """One stream threaded through the pipeline: its role, source and display geometry."""
    role: StreamRole
    source: FrameSource
    flip_horizontal: bool = False
    width: int = 640
    height: int = 360

    @property
    def name(self) -> str:
        return self.role.value
