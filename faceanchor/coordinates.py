"""
Coordinate system definitions and rotation/conversion functions.

This module defines the canonical coordinate systems used throughout faceanchor
and the conversions between them.

Landmark space (detector output):
    x: [0, 1] left to right across the detector input frame
    y: [0, 1] top to bottom (image Y grows downward)
    z: detector-relative depth, smaller = closer to the camera

Normalized device coordinates (NDC):
    x, y, z in [-1, 1], Y up, aligned with the rendering camera frustum

World/Renderer coords:
    +X: Right
    +Y: Up
    +Z: Out of screen (toward viewer)
    Camera: Located in world space, looks down -Z axis

Quaternions are stored in (w, x, y, z) order everywhere in this package.
Euler angles are (pitch, yaw, roll) about (X, Y, Z), applied in intrinsic
XYZ order, matching the renderer's default Euler order.
"""

import numpy as np
from typing import Tuple
from numpy.typing import NDArray


class WorldCoordinates:
    """
    Documentation of the canonical world coordinate system.

    - +X: Right (from camera's perspective)
    - +Y: Up
    - +Z: Out of screen (toward viewer/camera)

    Camera convention:
    - Camera position: 3D point in world space
    - Camera orientation: c2w rotation matrix
    - Camera looks: Down -Z axis in its local frame
    - Camera up: +Y axis in its local frame
    """

    UP_AXIS = np.array([0.0, 1.0, 0.0])
    FORWARD_AXIS = np.array([0.0, 0.0, -1.0])  # Camera looks down -Z
    RIGHT_AXIS = np.array([1.0, 0.0, 0.0])


# =============================================================================
# Landmark <-> NDC
# =============================================================================

def normalized_to_ndc(x: float, y: float) -> Tuple[float, float]:
    """
    Convert normalized image coordinates to NDC.

    Image Y grows downward while device Y grows upward, so Y is flipped.

    Args:
        x: Normalized horizontal coordinate in [0, 1]
        y: Normalized vertical coordinate in [0, 1]

    Returns:
        (ndc_x, ndc_y) in [-1, 1]
    """
    return 2.0 * x - 1.0, -(2.0 * y - 1.0)


def ndc_to_normalized(ndc_x: float, ndc_y: float) -> Tuple[float, float]:
    """Inverse of normalized_to_ndc()."""
    return (ndc_x + 1.0) / 2.0, (1.0 - ndc_y) / 2.0


# =============================================================================
# Quaternions
# =============================================================================

def quaternion_multiply(
    q1: NDArray[np.float64],
    q2: NDArray[np.float64]
) -> NDArray[np.float64]:
    """
    Hamilton product q1 * q2 of two (w, x, y, z) quaternions.

    The result applied to a vector rotates by q2 first, then by q1.
    """
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
    ], dtype=np.float64)


def quaternion_normalize(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return q scaled to unit length (identity for a zero quaternion)."""
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q)
    if norm < 1e-12:
        return np.array([1.0, 0.0, 0.0, 0.0])
    return q / norm


def axis_angle_to_quaternion(
    axis: NDArray[np.float64],
    angle: float
) -> NDArray[np.float64]:
    """
    Quaternion for a rotation of `angle` radians about `axis`.

    Args:
        axis: Rotation axis, shape (3,), need not be unit length
        angle: Rotation angle in radians (right-hand rule)

    Returns:
        Unit quaternion (w, x, y, z)
    """
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    half = angle / 2.0
    return np.concatenate([[np.cos(half)], np.sin(half) * axis])


def euler_to_quaternion(euler: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert (pitch, yaw, roll) Euler angles to a quaternion.

    Intrinsic XYZ order: q = qx(pitch) * qy(yaw) * qz(roll).

    Args:
        euler: Angles in radians, shape (3,)

    Returns:
        Unit quaternion (w, x, y, z)
    """
    pitch, yaw, roll = (float(a) for a in euler)
    qx = axis_angle_to_quaternion(WorldCoordinates.RIGHT_AXIS, pitch)
    qy = axis_angle_to_quaternion(WorldCoordinates.UP_AXIS, yaw)
    qz = axis_angle_to_quaternion(np.array([0.0, 0.0, 1.0]), roll)
    return quaternion_multiply(quaternion_multiply(qx, qy), qz)


def quaternion_to_rotation(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert a (w, x, y, z) quaternion to a 3x3 rotation matrix.
    """
    w, x, y, z = quaternion_normalize(q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ], dtype=np.float64)


def quaternion_to_euler(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Convert a quaternion to (pitch, yaw, roll) in intrinsic XYZ order.

    Inverse of euler_to_quaternion() away from gimbal lock
    (|yaw| = pi/2), where roll is reported as 0.
    """
    R = quaternion_to_rotation(q)
    yaw = float(np.arcsin(np.clip(R[0, 2], -1.0, 1.0)))

    if abs(R[0, 2]) < 0.9999999:
        pitch = float(np.arctan2(-R[1, 2], R[2, 2]))
        roll = float(np.arctan2(-R[0, 1], R[0, 0]))
    else:
        pitch = float(np.arctan2(R[2, 1], R[1, 1]))
        roll = 0.0

    return np.array([pitch, yaw, roll], dtype=np.float64)


def quaternion_slerp(
    q0: NDArray[np.float64],
    q1: NDArray[np.float64],
    t: float
) -> NDArray[np.float64]:
    """
    Spherical linear interpolation from q0 (t=0) to q1 (t=1).

    Takes the shortest arc: q1 is negated when the two quaternions lie in
    opposite hemispheres.
    """
    q0 = quaternion_normalize(q0)
    q1 = quaternion_normalize(q1)

    dot = float(np.dot(q0, q1))
    if dot < 0.0:
        q1 = -q1
        dot = -dot

    # Nearly parallel: fall back to normalized lerp
    if dot > 0.9995:
        return quaternion_normalize(q0 + t * (q1 - q0))

    theta_0 = np.arccos(dot)
    theta = theta_0 * t
    sin_theta_0 = np.sin(theta_0)

    s0 = np.sin(theta_0 - theta) / sin_theta_0
    s1 = np.sin(theta) / sin_theta_0
    return s0 * q0 + s1 * q1


def quaternion_angle(q0: NDArray[np.float64], q1: NDArray[np.float64]) -> float:
    """Angle in radians of the rotation taking q0 to q1."""
    dot = abs(float(np.dot(quaternion_normalize(q0), quaternion_normalize(q1))))
    return float(2.0 * np.arccos(np.clip(dot, -1.0, 1.0)))


# =============================================================================
# Camera orientation
# =============================================================================

def look_at_matrix(
    eye: NDArray[np.float64],
    target: NDArray[np.float64],
    up: NDArray[np.float64] = None
) -> NDArray[np.float64]:
    """
    Construct camera-to-world matrix for camera at 'eye' looking at 'target'.

    Args:
        eye: Camera position in world coords, shape (3,)
        target: Point camera looks at in world coords, shape (3,)
        up: Up direction hint in world coords, shape (3,)
            Default: [0, 1, 0] (Y-up)

    Returns:
        4x4 camera-to-world transform matrix
        - Upper-left 3x3: rotation (c2w)
        - Upper-right 3x1: translation (camera position)
        - Bottom row: [0, 0, 0, 1]

    Note:
        Camera local axes:
        - forward = (target - eye) normalized
        - right = cross(forward, up) normalized
        - actual_up = cross(right, forward)

        In camera local frame, camera looks down -Z (so forward maps to -Z).
    """
    if up is None:
        up = WorldCoordinates.UP_AXIS

    eye = np.asarray(eye, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)

    forward = target - eye
    forward = forward / np.linalg.norm(forward)

    right = np.cross(forward, up)
    right = right / np.linalg.norm(right)

    actual_up = np.cross(right, forward)

    # Columns are camera's local axes in world coords
    R_c2w = np.column_stack([right, actual_up, -forward])

    c2w = np.eye(4, dtype=np.float64)
    c2w[:3, :3] = R_c2w
    c2w[:3, 3] = eye

    return c2w
