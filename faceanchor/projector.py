"""
Projection of normalized face positions into world space.

The estimator reports the anchor as normalized image coordinates plus a
detector-relative depth. ViewportProjector maps that onto the rendering
camera: the image point becomes a ray through the camera frustum, the depth
selects a plane of constant world Z, and the anchor lands where the ray meets
the plane. Because the camera comes from the ViewportState passed in on every
call, a resize between frames changes the next result and nothing else.
"""

import logging
import numpy as np
from typing import Optional, Tuple
from numpy.typing import NDArray

from .assets import AssetCalibration
from .config import ProjectorConfig
from .coordinates import ndc_to_normalized, normalized_to_ndc
from .pose import ABSENT, MaybePose
from .viewport import ViewportState

logger = logging.getLogger(__name__)


class ViewportProjector:
    """
    Map an estimated pose position to a world-space anchor point.

    Example:
        projector = ViewportProjector()
        world = projector.project(pose, handler.current, calibration)
        if world is None:
            ...  # nothing to draw this frame
    """

    def __init__(self, config: Optional[ProjectorConfig] = None):
        self.config = config or ProjectorConfig()

    def depth_to_world_z(self, depth: float) -> float:
        """Linear map from detector depth to the world Z of the target plane."""
        return self.config.depth_origin - depth * self.config.depth_scale

    def project(
        self,
        pose: MaybePose,
        viewport: ViewportState,
        calibration: Optional[AssetCalibration] = None
    ) -> Optional[NDArray[np.float64]]:
        """
        Project a pose position into world space.

        Args:
            pose: Pose with normalized (x, y, depth) position, or ABSENT
            viewport: Current viewport state (its camera is used as-is)
            calibration: Asset calibration whose offsets are added in world
                         units after projection

        Returns:
            World-space point, shape (3,), or None when there is no pose or
            the viewport has not been laid out yet
        """
        if pose is ABSENT:
            return None

        if not viewport.is_laid_out:
            logger.debug(
                "Viewport not laid out (%dx%d), skipping projection",
                viewport.width, viewport.height
            )
            return None

        x, y, depth = (float(v) for v in pose.position)
        ndc_x, ndc_y = normalized_to_ndc(x, y)
        world_z = self.depth_to_world_z(depth)

        point = self._intersect_depth_plane(viewport, ndc_x, ndc_y, world_z)

        if calibration is not None:
            point = point + calibration.offset

        return point

    def project_pose(
        self,
        pose: MaybePose,
        viewport: ViewportState,
        calibration: Optional[AssetCalibration] = None
    ) -> MaybePose:
        """Same as project() but returns the pose moved to world space."""
        point = self.project(pose, viewport, calibration)
        if point is None:
            return ABSENT
        return pose.with_position(point)

    def _intersect_depth_plane(
        self,
        viewport: ViewportState,
        ndc_x: float,
        ndc_y: float,
        world_z: float
    ) -> NDArray[np.float64]:
        camera = viewport.camera
        ndc_depth = self.config.reference_ndc_depth
        origin, direction = camera.ray_through(ndc_x, ndc_y, ndc_depth)

        if abs(direction[2]) < self.config.parallel_epsilon:
            # No intersection: keep the unprojected point, pinned to the plane
            logger.warning(
                "Projection ray parallel to depth plane z=%.3f, using fallback",
                world_z
            )
            point = camera.unproject([ndc_x, ndc_y, ndc_depth])
            point[2] = world_z
            return point

        t = (world_z - origin[2]) / direction[2]
        return origin + t * direction

    @staticmethod
    def to_screen(
        point: NDArray[np.float64],
        viewport: ViewportState
    ) -> Optional[Tuple[float, float]]:
        """
        Project a world point back to normalized screen coordinates.

        Args:
            point: World-space point, shape (3,)
            viewport: Viewport whose camera to project with

        Returns:
            (x, y) in [0, 1] image convention (Y down) when on screen, or
            None if the viewport has not been laid out
        """
        if not viewport.is_laid_out:
            return None
        ndc = viewport.camera.project(point)
        return ndc_to_normalized(float(ndc[0]), float(ndc[1]))
