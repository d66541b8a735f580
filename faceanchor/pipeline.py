"""
High-level pipeline orchestrating all components.

This module provides:
- LatestFrameSlot: latest-value-wins handoff from the detector thread to the
  render loop
- AppState: the mutable per-session state, owned by the pipeline
- AnchorPipeline: one frame of PoseEstimator -> OrientationSmoother ->
  ViewportProjector -> AnchorBinding
- FrameLoop: pull-based render loop with a cancellation flag

Example:
    pipeline = AnchorPipeline.from_config(config)
    slot = LatestFrameSlot()
    loop = FrameLoop(pipeline, slot, on_result=renderer.apply, fps=60)
    loop.run()
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .assets import AssetCalibration, AssetVariant, DEFAULT_VARIANT, get_variant
from .binding import HIDDEN, AnchorBinding, MaybeTransform
from .config import Config
from .landmarks import LandmarkFrame
from .pose import ABSENT, MaybePose, PoseEstimator
from .projector import ViewportProjector
from .smoothing import OrientationSmoother
from .viewport import ViewportResizeHandler

logger = logging.getLogger(__name__)


class AcquisitionError(RuntimeError):
    """Camera or detector failed; the session must be restarted."""


class LatestFrameSlot:
    """
    Single-slot mailbox where the newest frame replaces any unread one.

    The detector thread publishes; the render loop takes. A frame is handed
    out at most once, and stale frames are dropped instead of queued.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[LandmarkFrame] = None
        self.dropped = 0

    def publish(self, frame: LandmarkFrame) -> None:
        with self._lock:
            if self._frame is not None:
                self.dropped += 1
            self._frame = frame

    @property
    def pending(self) -> bool:
        """True if a published frame has not been taken yet."""
        with self._lock:
            return self._frame is not None

    def take(self) -> Optional[LandmarkFrame]:
        """Return the newest unread frame, or None if nothing new arrived."""
        with self._lock:
            frame, self._frame = self._frame, None
            return frame


@dataclass(frozen=True, eq=False)
class FrameResult:
    """Output of one render iteration."""
    transform: MaybeTransform = HIDDEN
    mask: MaybeTransform = HIDDEN
    timestamp: float = 0.0
    new_detection: bool = False

    @property
    def visible(self) -> bool:
        return self.transform is not HIDDEN

    def to_dict(self) -> Dict[str, Any]:
        record = {
            "timestamp": self.timestamp,
            "visible": self.visible,
            "transform": self.transform.to_dict() if self.visible else None,
        }
        if self.mask is not HIDDEN:
            record["mask"] = self.mask.to_dict()
        return record


@dataclass
class AppState:
    """
    Per-session state.

    Attributes:
        asset: Selected catalog entry
        calibration: Calibration in effect (the asset's, unless overridden)
        target: Latest raw estimate, or ABSENT
        applied: Smoothed pose in normalized space, or ABSENT
        output: Last committed frame result
        last_time: Time of the last processed iteration
        detections: Number of landmark frames consumed
    """
    asset: AssetVariant = DEFAULT_VARIANT
    calibration: AssetCalibration = field(default=DEFAULT_VARIANT.calibration)
    target: MaybePose = ABSENT
    applied: MaybePose = ABSENT
    output: FrameResult = field(default_factory=FrameResult)
    last_time: Optional[float] = None
    detections: int = 0


class AnchorPipeline:
    """
    Per-frame pose pipeline.

    Each call to process() reads the viewport once, so a resize reported
    while a frame is being computed takes effect on the next frame.
    Between detections, the applied pose keeps easing toward the last
    estimate and is re-projected with the current viewport.
    """

    def __init__(
        self,
        estimator: Optional[PoseEstimator] = None,
        smoother: Optional[OrientationSmoother] = None,
        projector: Optional[ViewportProjector] = None,
        binding: Optional[AnchorBinding] = None,
        viewport: Optional[ViewportResizeHandler] = None,
        asset: AssetVariant = DEFAULT_VARIANT
    ):
        self.estimator = estimator or PoseEstimator()
        self.smoother = smoother or OrientationSmoother()
        self.projector = projector or ViewportProjector()
        self.binding = binding or AnchorBinding()
        self.viewport = viewport or ViewportResizeHandler(width=640, height=480)
        self.state = AppState(asset=asset, calibration=asset.calibration)

    @classmethod
    def from_config(cls, config: Config) -> "AnchorPipeline":
        """
        Create pipeline from a Config.

        Raises:
            ValueError: If the configured asset is not in the catalog
        """
        try:
            asset = get_variant(config.asset)
        except KeyError as e:
            raise ValueError(str(e.args[0])) from None

        return cls(
            estimator=PoseEstimator(config.estimator),
            smoother=OrientationSmoother(config.smoothing),
            projector=ViewportProjector(config.projector),
            viewport=ViewportResizeHandler.from_config(config.camera),
            asset=asset,
        )

    def select_asset(
        self,
        asset: AssetVariant,
        calibration: Optional[AssetCalibration] = None
    ) -> None:
        """Switch to another asset; its calibration applies from the next frame."""
        self.state.asset = asset
        self.state.calibration = calibration or asset.calibration
        logger.info("Selected asset %s", asset.id)

    def reset(self) -> None:
        """Forget tracking state (e.g. after a session restart)."""
        asset, calibration = self.state.asset, self.state.calibration
        self.state = AppState(asset=asset, calibration=calibration)

    def process(self, frame: Optional[LandmarkFrame], now: float) -> FrameResult:
        """
        Run one render iteration.

        Args:
            frame: New detector result, or None if none arrived since the
                   last iteration
            now: Current time in seconds (monotonic)

        Returns:
            FrameResult, also committed as state.output
        """
        state = self.state
        viewport = self.viewport.current

        if frame is not None:
            state.target = self.estimator.estimate(frame)
            state.detections += 1

        dt = 0.0 if state.last_time is None else now - state.last_time
        state.applied = self.smoother.smooth(state.applied, state.target, dt)

        world = self.projector.project_pose(state.applied, viewport, state.calibration)
        result = FrameResult(
            transform=self.binding.bind(world, state.calibration),
            mask=self.binding.bind_mask(world, state.calibration),
            timestamp=now,
            new_detection=frame is not None,
        )

        state.output = result
        state.last_time = now
        return result

    def step(self, slot: LatestFrameSlot, now: float) -> FrameResult:
        """Take the newest frame (if any) from `slot` and process it."""
        return self.process(slot.take(), now)

    def run_frames(self, frames: List[LandmarkFrame]) -> List[FrameResult]:
        """
        Process recorded frames in order, one iteration per frame.

        Frame timestamps drive the smoothing time step.
        """
        return [self.process(frame, frame.timestamp) for frame in frames]


class FrameLoop:
    """
    Pull-based render loop.

    Each iteration (a) takes the newest frame or none, (b) runs the
    pipeline, (c) hands the result to `on_result` and waits for the next
    tick. stop() may be called from any thread; it is honored at the next
    iteration boundary and a result computed after it is discarded.
    When the check reports the end of the stream, a frame still waiting in
    the slot is rendered before the loop returns.
    """

    def __init__(
        self,
        pipeline: AnchorPipeline,
        slot: LatestFrameSlot,
        on_result: Optional[Callable[[FrameResult], None]] = None,
        fps: float = 30.0,
        check: Optional[Callable[[], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            pipeline: Pipeline to drive
            slot: Handoff slot filled by the detector
            on_result: Receives every FrameResult (the renderer)
            fps: Target iteration rate
            check: Called before each iteration; returns False to end the
                   loop, raises AcquisitionError on capture failure
            clock: Time source in seconds
            sleep: Sleep function
        """
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")

        self.pipeline = pipeline
        self.slot = slot
        self.on_result = on_result
        self.interval = 1.0 / fps
        self.check = check
        self.clock = clock
        self.sleep = sleep
        self._alive = threading.Event()

    @property
    def running(self) -> bool:
        return self._alive.is_set()

    def stop(self) -> None:
        self._alive.clear()

    def run(self, max_frames: Optional[int] = None) -> int:
        """
        Run until stopped, the check ends the loop, or `max_frames` results
        were delivered.

        Returns:
            Number of results delivered

        Raises:
            AcquisitionError: Propagated from `check`
        """
        self._alive.set()
        delivered = 0

        try:
            while self._alive.is_set():
                finished = self.check is not None and not self.check()
                if finished and not self.slot.pending:
                    logger.info("Frame source finished")
                    break

                started = self.clock()
                result = self.pipeline.step(self.slot, started)

                if not self._alive.is_set():
                    break

                if self.on_result is not None:
                    self.on_result(result)
                delivered += 1

                if finished:
                    # Last detection of the stream has been rendered
                    logger.info("Frame source finished")
                    break
                if max_frames is not None and delivered >= max_frames:
                    break

                remaining = self.interval - (self.clock() - started)
                if remaining > 0:
                    self.sleep(remaining)
        finally:
            self._alive.clear()

        logger.debug("Frame loop delivered %d frames", delivered)
        return delivered
