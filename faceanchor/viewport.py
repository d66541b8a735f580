"""
Viewport state and resize handling.

A ViewportState is an immutable snapshot of the rendering surface size and
the camera derived from it. ViewportResizeHandler is the only place new
snapshots are made: every resize builds a complete state (size, aspect or
bounds, camera position) and swaps it in under a lock, so readers never see
a size from one report paired with a camera from another.
"""

import logging
import threading
import numpy as np
from dataclasses import dataclass
from typing import Callable, List, Optional

from .camera import Camera, ORTHOGRAPHIC, PERSPECTIVE, PROJECTION_MODES
from .config import CameraConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CameraIntrinsics:
    """Size-independent camera parameters."""
    projection: str = PERSPECTIVE
    fov_deg: float = 50.0
    near: float = 0.1
    far: float = 1000.0
    distance: float = 5.0

    def __post_init__(self):
        if self.projection not in PROJECTION_MODES:
            raise ValueError(
                f"Unknown projection '{self.projection}'. Use one of {PROJECTION_MODES}"
            )

    @classmethod
    def from_config(cls, config: CameraConfig) -> "CameraIntrinsics":
        return cls(
            projection=config.projection,
            fov_deg=config.fov_deg,
            near=config.near,
            far=config.far,
            distance=config.distance,
        )


@dataclass(frozen=True, eq=False)
class ViewportState:
    """
    Rendering surface size plus the camera configured for it.

    Attributes:
        width, height: Surface size in device pixels (0 = not laid out yet)
        device_pixel_ratio: Device pixels per logical pixel
        intrinsics: Size-independent camera parameters
        camera: Camera with projection derived from the size
    """
    width: int
    height: int
    device_pixel_ratio: float
    intrinsics: CameraIntrinsics
    camera: Camera

    @property
    def is_laid_out(self) -> bool:
        return self.width > 0 and self.height > 0

    @property
    def aspect(self) -> float:
        return self.width / self.height if self.height > 0 else 1.0

    @property
    def logical_size(self):
        """(width, height) in logical (CSS) pixels."""
        return (
            self.width / self.device_pixel_ratio,
            self.height / self.device_pixel_ratio,
        )

    def same_size(self, width: int, height: int, device_pixel_ratio: float) -> bool:
        return (
            self.width == width
            and self.height == height
            and self.device_pixel_ratio == device_pixel_ratio
        )

    def __repr__(self) -> str:
        return (
            f"ViewportState({self.width}x{self.height}@{self.device_pixel_ratio}, "
            f"{self.camera!r})"
        )


def build_camera(
    intrinsics: CameraIntrinsics,
    width: int,
    height: int,
    device_pixel_ratio: float = 1.0
) -> Camera:
    """
    Create the camera for a surface size.

    Perspective cameras only need the aspect ratio. Orthographic cameras get
    bounds spanning the surface in logical pixels and are recentered on it,
    so world X/Y coincide with logical pixel coordinates (origin bottom-left).

    Args:
        intrinsics: Size-independent camera parameters
        width, height: Surface size in device pixels
        device_pixel_ratio: Device pixels per logical pixel

    Returns:
        Camera looking down -Z
    """
    if intrinsics.projection == ORTHOGRAPHIC:
        logical_w = width / device_pixel_ratio
        logical_h = height / device_pixel_ratio
        return Camera.orthographic(
            left=-logical_w / 2.0,
            right=logical_w / 2.0,
            top=logical_h / 2.0,
            bottom=-logical_h / 2.0,
            near=intrinsics.near,
            far=intrinsics.far,
            position=np.array([logical_w / 2.0, logical_h / 2.0, intrinsics.distance]),
        )

    aspect = width / height if height > 0 else 1.0
    return Camera(
        projection=PERSPECTIVE,
        fov_deg=intrinsics.fov_deg,
        aspect=aspect,
        near=intrinsics.near,
        far=intrinsics.far,
        position=np.array([0.0, 0.0, intrinsics.distance]),
    )


def make_viewport_state(
    intrinsics: CameraIntrinsics,
    width: int,
    height: int,
    device_pixel_ratio: float = 1.0
) -> ViewportState:
    """Build a complete ViewportState for a surface size."""
    if width < 0 or height < 0:
        raise ValueError(f"Viewport size must be non-negative, got {width}x{height}")
    if device_pixel_ratio <= 0:
        raise ValueError(f"device_pixel_ratio must be positive, got {device_pixel_ratio}")

    return ViewportState(
        width=int(width),
        height=int(height),
        device_pixel_ratio=float(device_pixel_ratio),
        intrinsics=intrinsics,
        camera=build_camera(intrinsics, width, height, device_pixel_ratio),
    )


Listener = Callable[[ViewportState], None]


class ViewportResizeHandler:
    """
    Keep the camera consistent with the rendering surface size.

    Resize reports may arrive from any thread. Each one that changes the size
    replaces the whole ViewportState atomically; the frame pipeline reads
    `current` once per frame and uses that snapshot for the entire frame.

    Example:
        handler = ViewportResizeHandler(CameraIntrinsics(), 640, 480)
        handler.resize(1280, 960)
        state = handler.current
    """

    def __init__(
        self,
        intrinsics: Optional[CameraIntrinsics] = None,
        width: int = 0,
        height: int = 0,
        device_pixel_ratio: float = 1.0
    ):
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        self._state = make_viewport_state(
            intrinsics or CameraIntrinsics(), width, height, device_pixel_ratio
        )

    @classmethod
    def from_config(cls, config: CameraConfig) -> "ViewportResizeHandler":
        width, height = config.viewport
        return cls(
            CameraIntrinsics.from_config(config),
            width,
            height,
            config.device_pixel_ratio,
        )

    @property
    def current(self) -> ViewportState:
        """Latest complete viewport state."""
        with self._lock:
            return self._state

    def resize(
        self,
        width: int,
        height: int,
        device_pixel_ratio: Optional[float] = None
    ) -> bool:
        """
        Report a new surface content-box size.

        Args:
            width, height: Size in device pixels
            device_pixel_ratio: New ratio, or None to keep the current one

        Returns:
            True if the state changed, False for a repeated identical report
        """
        with self._lock:
            old = self._state
            dpr = old.device_pixel_ratio if device_pixel_ratio is None else device_pixel_ratio

            if old.same_size(width, height, dpr):
                return False

            new = make_viewport_state(old.intrinsics, width, height, dpr)
            self._state = new
            listeners = list(self._listeners)

        logger.debug("Viewport resized %dx%d -> %dx%d", old.width, old.height, width, height)
        for listener in listeners:
            listener(new)
        return True

    def set_intrinsics(self, intrinsics: CameraIntrinsics) -> None:
        """Switch camera parameters (e.g. projection mode) keeping the size."""
        with self._lock:
            old = self._state
            new = make_viewport_state(
                intrinsics, old.width, old.height, old.device_pixel_ratio
            )
            self._state = new
            listeners = list(self._listeners)

        for listener in listeners:
            listener(new)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked with each new state.

        Returns:
            Function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
