"""
Renderer camera with projection and extrinsics.

This module provides a Camera class that encapsulates the projection
parameters of the rendering camera (perspective field of view or orthographic
bounds, near/far planes) and its pose in world space.

The Camera handles the conversions the anchoring pipeline needs between
world space and normalized device coordinates (NDC): projection,
unprojection and ray casting through an NDC point.
"""


import numpy as np
from typing import Optional, Tuple
from numpy.typing import NDArray

from . import coordinates

PERSPECTIVE = "perspective"
ORTHOGRAPHIC = "orthographic"
PROJECTION_MODES = (PERSPECTIVE, ORTHOGRAPHIC)


class Camera:
    """
    Camera with projection and extrinsic parameters.

    Projection parameters:
    - projection: "perspective" or "orthographic"
    - fov_deg: vertical field of view (perspective)
    - aspect: width / height (perspective)
    - bounds: (left, right, top, bottom) in camera space (orthographic)
    - near, far: clip plane distances

    Extrinsics define the camera's pose in world coordinates:
    - position: 3D point in world space
    - rotation: 3x3 matrix (camera-to-world)

    The camera looks down its local -Z axis (see coordinates.py).
    """

    def __init__(
        self,
        projection: str = PERSPECTIVE,
        fov_deg: float = 50.0,
        aspect: float = 1.0,
        near: float = 0.1,
        far: float = 1000.0,
        bounds: Optional[Tuple[float, float, float, float]] = None,
        position: Optional[NDArray[np.float64]] = None,
        rotation: Optional[NDArray[np.float64]] = None
    ):
        """
        Initialize a Camera.

        Args:
            projection: "perspective" or "orthographic"
            fov_deg: Vertical field of view in degrees (perspective only)
            aspect: Viewport width / height (perspective only)
            near: Near clip plane distance
            far: Far clip plane distance
            bounds: (left, right, top, bottom) frustum bounds in camera space
                    (orthographic only). If None, defaults to (-1, 1, 1, -1)
            position: Camera position in world coords, shape (3,)
                     If None, defaults to [0, 0, 5]
            rotation: Camera-to-world rotation matrix, shape (3, 3)
                     If None, defaults to identity (camera looks down -Z)

        Raises:
            ValueError: If projection mode or clip planes are invalid
        """
        if projection not in PROJECTION_MODES:
            raise ValueError(
                f"Unknown projection '{projection}'. Use one of {PROJECTION_MODES}"
            )
        if near <= 0 or far <= near:
            raise ValueError(f"Invalid clip planes: near={near}, far={far}")

        self.projection = projection
        self.fov_deg = float(fov_deg)
        self.aspect = float(aspect)
        self.near = float(near)
        self.far = float(far)

        if bounds is None:
            self.bounds = (-1.0, 1.0, 1.0, -1.0)
        else:
            self.bounds = tuple(float(b) for b in bounds)

        if position is None:
            self.position = np.array([0.0, 0.0, 5.0], dtype=np.float64)
        else:
            self.position = np.array(position, dtype=np.float64)

        if rotation is None:
            self.rotation = np.eye(3, dtype=np.float64)
        else:
            self.rotation = np.array(rotation, dtype=np.float64)

    @classmethod
    def orthographic(
        cls,
        left: float,
        right: float,
        top: float,
        bottom: float,
        near: float = 0.1,
        far: float = 1000.0,
        position: Optional[NDArray[np.float64]] = None
    ) -> "Camera":
        """Create an orthographic camera from its frustum bounds."""
        return cls(
            projection=ORTHOGRAPHIC,
            near=near,
            far=far,
            bounds=(left, right, top, bottom),
            position=position
        )

    @property
    def is_perspective(self) -> bool:
        return self.projection == PERSPECTIVE

    def look_at(
        self,
        target: NDArray[np.float64],
        up: Optional[NDArray[np.float64]] = None
    ) -> None:
        """
        Orient camera to look at target point.

        Updates the camera's rotation matrix so it looks at the target.
        Position remains unchanged.

        Args:
            target: 3D point to look at in world coords
            up: Up direction hint in world coords
                Default: [0, 1, 0] (Y-up)
        """
        c2w_matrix = coordinates.look_at_matrix(self.position, target, up)
        self.rotation = c2w_matrix[:3, :3]

    def get_w2c(self) -> NDArray[np.float64]:
        """
        Get world-to-camera transformation matrix.

        Returns:
            4x4 matrix that transforms points from world space to camera space
            (inverse of the camera pose: rotation.T, -rotation.T @ position)
        """
        R_w2c = self.rotation.T
        t_w2c = -R_w2c @ self.position

        w2c = np.eye(4, dtype=np.float64)
        w2c[:3, :3] = R_w2c
        w2c[:3, 3] = t_w2c
        return w2c

    def get_projection_matrix(self) -> NDArray[np.float64]:
        """
        Get the OpenGL-style projection matrix.

        Maps camera-space points into clip space; after the perspective divide
        the visible frustum spans [-1, 1] on every axis.

        Returns:
            4x4 projection matrix
        """
        n, f = self.near, self.far
        P = np.zeros((4, 4), dtype=np.float64)

        if self.is_perspective:
            focal = 1.0 / np.tan(np.radians(self.fov_deg) / 2.0)
            P[0, 0] = focal / self.aspect
            P[1, 1] = focal
            P[2, 2] = (f + n) / (n - f)
            P[2, 3] = 2.0 * f * n / (n - f)
            P[3, 2] = -1.0
        else:
            left, right, top, bottom = self.bounds
            P[0, 0] = 2.0 / (right - left)
            P[1, 1] = 2.0 / (top - bottom)
            P[2, 2] = -2.0 / (f - n)
            P[0, 3] = -(right + left) / (right - left)
            P[1, 3] = -(top + bottom) / (top - bottom)
            P[2, 3] = -(f + n) / (f - n)
            P[3, 3] = 1.0

        return P

    def project(self, points_3d: NDArray[np.float64]) -> NDArray[np.float64]:
        """
        Project 3D world points to normalized device coordinates.

        Args:
            points_3d: 3D points in world coords, shape (N, 3) or (3,)

        Returns:
            NDC points with the same leading shape as the input.
            Points may be outside [-1, 1] (outside the frustum).
        """
        points = np.asarray(points_3d, dtype=np.float64)
        single = points.ndim == 1
        points = np.atleast_2d(points)

        homogeneous = np.column_stack([points, np.ones(len(points))])
        clip = (self.get_projection_matrix() @ self.get_w2c() @ homogeneous.T).T
        ndc = clip[:, :3] / clip[:, 3:4]

        return ndc[0] if single else ndc

    def unproject(self, ndc: NDArray[np.float64]) -> NDArray[np.float64]:
        """
        Map an NDC point back into world space.

        Args:
            ndc: (x, y, z) in normalized device coordinates

        Returns:
            World-space point, shape (3,)
        """
        clip = np.append(np.asarray(ndc, dtype=np.float64), 1.0)
        cam = np.linalg.inv(self.get_projection_matrix()) @ clip
        cam = cam[:3] / cam[3]
        return self.rotation @ cam + self.position

    def ray_through(
        self,
        ndc_x: float,
        ndc_y: float,
        ndc_depth: float = 0.5
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Cast a ray from the camera through an NDC point.

        Perspective rays start at the camera position; orthographic rays
        start on the near plane under the NDC point and run parallel to the
        view direction.

        Args:
            ndc_x: Horizontal NDC coordinate
            ndc_y: Vertical NDC coordinate
            ndc_depth: NDC depth of the reference point the ray passes through

        Returns:
            origin: Ray origin in world coords, shape (3,)
            direction: Unit ray direction in world coords, shape (3,)
        """
        through = self.unproject([ndc_x, ndc_y, ndc_depth])

        if self.is_perspective:
            origin = self.position.copy()
            direction = through - origin
        else:
            origin = self.unproject([ndc_x, ndc_y, -1.0])
            direction = self.get_forward_vector()

        return origin, direction / np.linalg.norm(direction)

    def get_forward_vector(self) -> NDArray[np.float64]:
        """
        Get camera's forward direction in world coordinates.

        In camera local space, camera looks down -Z.
        """
        return -self.rotation[:, 2]

    def __repr__(self) -> str:
        """String representation for debugging."""
        if self.is_perspective:
            lens = f"fov={self.fov_deg:.1f}, aspect={self.aspect:.3f}"
        else:
            lens = "bounds=({:.1f}, {:.1f}, {:.1f}, {:.1f})".format(*self.bounds)
        return f"Camera({self.projection}, pos={self.position}, {lens})"
