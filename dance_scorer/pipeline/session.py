"""
Session Driver
Runs one timed play-through: loads the model and both streams, then scores
every tick until the countdown expires.

    IDLE -> LOADING -> RUNNING -> EXPIRED
                   \\-> FAILED

Blocking work (opening sources, loading the model, inference) runs in the
default executor, one call at a time: reference inference, then performer
inference, then comparison, then the score update, then the next tick.
"""

import asyncio
import functools
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import numpy as np

from ..config import AppConfig, normalize_architecture
from ..errors import DanceScorerError
from ..utils.logger import debug, error, info, warn
from .session_state import FrameScore, SessionState, SessionStatus
from .step1_frame_capture import StreamHandle
from .step2_pose_estimation import Pose, PoseModel
from .step3_angle_extraction import AngleSet, extract_angles
from .step4_angle_comparison import compare_angles
from .step5_score_integration import ScoreIntegrator

GAME_OVER_MESSAGE = "Game Over! Restart to try again!"
STOPPED_MESSAGE = "Session stopped."
SOURCE_FAILED_MESSAGE = ("Could not start video capture: the reference video cannot "
                         "be played or this device does not have a camera")
MODEL_FAILED_MESSAGE = "Could not load the pose model"


@dataclass
class StreamView:
    """One stream's results for the current tick."""
    handle: StreamHandle
    frame: Optional[np.ndarray]
    pose: Optional[Pose]
    angles: AngleSet
    pose_confident: bool = False


class PeriodicTask:
    """
    Calls an async callback repeatedly until cancelled.

    Cancellation is a token: it is only checked between calls, so a call
    that has started always runs to completion.
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], interval: float = 0.0):
        self.callback = callback
        self.interval = interval
        self.token = asyncio.Event()
        self.task: Optional[asyncio.Task] = None
        self.iterations = 0

    def start(self) -> "PeriodicTask":
        self.task = asyncio.get_running_loop().create_task(self._run())
        return self

    async def _run(self) -> None:
        while not self.token.is_set():
            await self.callback()
            self.iterations += 1
            if self.token.is_set():
                break
            # Yields to the loop even with a zero interval
            await asyncio.sleep(self.interval)

    def cancel(self) -> None:
        self.token.set()

    @property
    def cancelled(self) -> bool:
        return self.token.is_set()

    async def wait(self) -> None:
        if self.task is not None:
            await self.task


ModelLoader = Callable[[str], PoseModel]
HandleFactory = Callable[[], StreamHandle]


class SessionDriver:
    """
    Timed scoring session over a reference and a performer stream.

    Args:
        config: Application configuration
        model_loader: Loads a PoseModel for an architecture string
        reference_factory: Builds the (unopened) reference StreamHandle
        performer_factory: Builds the (unopened) performer StreamHandle
        renderer: Optional object with ``render(views, state)`` and
                  ``render_terminal(state)``
        clock: Seconds, monotonic
    """

    def __init__(
        self,
        config: AppConfig,
        model_loader: ModelLoader,
        reference_factory: HandleFactory,
        performer_factory: HandleFactory,
        renderer=None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config
        self.model_loader = model_loader
        self.reference_factory = reference_factory
        self.performer_factory = performer_factory
        self.renderer = renderer
        self.clock = clock

        self.state = SessionState(config.scoring.baseline, config.session_duration)
        self.integrator = ScoreIntegrator(config.scoring)
        self.model: Optional[PoseModel] = None
        self.reference: Optional[StreamHandle] = None
        self.performer: Optional[StreamHandle] = None
        self.loop_task: Optional[PeriodicTask] = None
        self.architecture = config.input.architecture
        self.pending_architecture: Optional[str] = None

        self._listeners: List[Callable[[FrameScore], None]] = []
        self._status_listeners: List[Callable[[SessionStatus], None]] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_listener(self, callback: Callable[[FrameScore], None]) -> None:
        """Receive every published FrameScore."""
        self._listeners.append(callback)

    def on_status_change(self, callback: Callable[[SessionStatus], None]) -> None:
        self._status_listeners.append(callback)

    def _set_status(self, status: SessionStatus, message: str = "") -> None:
        self.state.set_status(status, message)
        debug(f"Session -> {status.value}")
        for callback in self._status_listeners:
            callback(status)

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def _call(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    async def start(self) -> bool:
        """
        Load the model and both streams, then start the countdown and tick loop.

        Returns:
            True if the session is RUNNING, False if it FAILED
        """
        if self.state.status != SessionStatus.IDLE:
            raise RuntimeError(f"Cannot start a session that is {self.state.status.value}")

        self._set_status(SessionStatus.LOADING)

        try:
            info(f"Loading pose model (architecture {self.architecture})...")
            self.model = await self._call(self.model_loader, self.architecture)
        except DanceScorerError as e:
            return self._fail(f"{MODEL_FAILED_MESSAGE}: {e}")

        try:
            self.reference = self.reference_factory()
            self.performer = self.performer_factory()
            await self.reference.source.open()
            await self.performer.source.open()
        except DanceScorerError as e:
            return self._fail(f"{SOURCE_FAILED_MESSAGE} ({e})")

        info("Both streams ready")

        self.state.reset(self.clock())
        self.reference.source.play()
        self.performer.source.play()
        self._set_status(SessionStatus.RUNNING)
        info(f"Session started: {self.state.duration:.0f}s")

        self.loop_task = PeriodicTask(self.tick, self.config.tick_interval).start()
        return True

    async def run(self) -> SessionState:
        """Start the session and wait until it expires or fails."""
        if await self.start():
            await self.loop_task.wait()
        return self.state

    async def restart(self) -> SessionState:
        """Release everything and run a fresh session."""
        if self.loop_task is not None:
            self.loop_task.cancel()
            await self.loop_task.wait()
        self.release()
        self.state = SessionState(self.config.scoring.baseline, self.config.session_duration)
        return await self.run()

    def _fail(self, message: str) -> bool:
        error(message)
        self.release()
        self._set_status(SessionStatus.FAILED, message)
        if self.renderer is not None:
            self.renderer.render_terminal(self.state)
        return False

    def _expire(self, message: str = GAME_OVER_MESSAGE) -> None:
        """Enter EXPIRED once: pause sources, stop ticking, show the message."""
        if self.state.status != SessionStatus.RUNNING:
            return
        if self.loop_task is not None:
            self.loop_task.cancel()
        for handle in (self.reference, self.performer):
            if handle is not None:
                handle.source.pause()
        self._set_status(SessionStatus.EXPIRED, message)
        info(f"{message} Final score: {self.state.score:.2f}")
        if self.renderer is not None:
            self.renderer.render_terminal(self.state)

    def stop(self, message: str = STOPPED_MESSAGE) -> None:
        """End a running session early."""
        self._expire(message)

    def release(self) -> None:
        """Release the model and both sources."""
        if self.model is not None:
            self.model.dispose()
            self.model = None
        for handle in (self.reference, self.performer):
            if handle is not None:
                handle.source.release()
        self.reference = None
        self.performer = None

    def request_architecture(self, architecture: str) -> None:
        """Swap the model architecture before the next tick."""
        architecture = normalize_architecture(architecture)
        if architecture != self.architecture:
            self.pending_architecture = architecture

    async def _swap_model(self) -> bool:
        architecture, self.pending_architecture = self.pending_architecture, None
        info(f"Switching pose model to architecture {architecture}")

        # Free the old model first
        if self.model is not None:
            self.model.dispose()
            self.model = None

        try:
            self.model = await self._call(self.model_loader, architecture)
        except DanceScorerError as e:
            if self.loop_task is not None:
                self.loop_task.cancel()
            for handle in (self.reference, self.performer):
                handle.source.pause()
            self._fail(f"{MODEL_FAILED_MESSAGE}: {e}")
            return False

        self.architecture = architecture
        return True

    # ------------------------------------------------------------------
    # Per-frame work
    # ------------------------------------------------------------------
    async def _process(self, handle: StreamHandle) -> StreamView:
        cfg = self.config
        frame = await self._call(handle.source.read)
        if frame is None:
            warn(f"No frame from {handle.name} stream")
            return StreamView(handle, None, None, AngleSet())

        pose = await self._call(
            self.model.estimate_single_pose,
            frame,
            cfg.input.image_scale_factor,
            handle.flip_horizontal,
            cfg.input.output_stride,
        )
        confident = pose.score >= cfg.detection.min_pose_confidence
        angles = extract_angles(pose, cfg.detection.min_part_confidence,
                                cfg.detection.min_pose_confidence)
        return StreamView(handle, frame, pose, angles, confident)

    async def tick(self) -> Optional[FrameScore]:
        """
        Score one frame pair.

        Returns:
            The published FrameScore, or None if the session ended instead
        """
        if self.state.status != SessionStatus.RUNNING:
            return None

        if self.state.set_remaining(self.clock()) <= 0:
            self._expire()
            return None

        if self.pending_architecture is not None:
            if not await self._swap_model():
                return None

        reference = await self._process(self.reference)
        performer = await self._process(self.performer)

        # stop() may have been called while inference was running
        if self.state.status != SessionStatus.RUNNING:
            return None

        comparison = compare_angles(reference.angles, performer.angles)
        # Time after the deadline is not scored
        now = min(self.clock(), self.state.started_at + self.state.duration)
        frame_score = self.integrator.integrate(comparison, self.state, now)

        for callback in self._listeners:
            callback(frame_score)
        if self.renderer is not None:
            self.renderer.render([reference, performer], self.state)

        if self.state.set_remaining(now) <= 0:
            self._expire()
        return frame_score
