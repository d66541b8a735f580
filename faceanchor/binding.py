"""
Binding of a world-space pose to an asset.

AnchorBinding composes the asset's static calibration with the dynamic head
pose and produces the Transform handed to the renderer. A missing face yields
HIDDEN: the renderer must neither draw the asset nor reuse an older transform.
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, Union
from numpy.typing import NDArray

from .assets import AssetCalibration
from .coordinates import euler_to_quaternion, quaternion_multiply, quaternion_to_euler
from .pose import ABSENT, MaybePose


class _Hidden:
    """Sentinel type for "do not draw the asset"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "HIDDEN"


HIDDEN = _Hidden()


@dataclass(frozen=True, eq=False)
class Transform:
    """
    Renderer-ready transform.

    Attributes:
        position: World-space position, shape (3,)
        rotation: Unit quaternion (w, x, y, z)
        scale: Uniform scale, > 0
    """
    position: NDArray[np.float64]
    rotation: NDArray[np.float64]
    scale: float

    @property
    def euler(self) -> NDArray[np.float64]:
        """Rotation as (pitch, yaw, roll), intrinsic XYZ order."""
        return quaternion_to_euler(self.rotation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": [float(v) for v in self.position],
            "rotation": [float(v) for v in self.rotation],
            "scale": float(self.scale),
        }


MaybeTransform = Union[Transform, _Hidden]


class AnchorBinding:
    """
    Compose asset calibration with the dynamic pose.

    The base rotation is applied first (it corrects the model's rest pose),
    then the head rotation: q = q_dynamic * q_base. Position is forwarded
    untouched because calibration offsets are added during projection.
    """

    @staticmethod
    def dynamic_quaternion(
        pose,
        calibration: AssetCalibration
    ) -> NDArray[np.float64]:
        signs = np.asarray(calibration.rotation_signs, dtype=np.float64)
        euler = np.asarray(pose.rotation, dtype=np.float64) * signs
        return euler_to_quaternion(euler)

    def bind(self, pose: MaybePose, calibration: AssetCalibration) -> MaybeTransform:
        """
        Produce the asset transform.

        Args:
            pose: World-space pose, or ABSENT
            calibration: Asset calibration

        Returns:
            Transform, or HIDDEN if there is no pose
        """
        if pose is ABSENT:
            return HIDDEN

        q_base = euler_to_quaternion(calibration.base_rotation)
        q_dynamic = self.dynamic_quaternion(pose, calibration)

        return Transform(
            position=np.array(pose.position, dtype=np.float64),
            rotation=quaternion_multiply(q_dynamic, q_base),
            scale=float(pose.scale * calibration.scale_factor),
        )

    def bind_mask(self, pose: MaybePose, calibration: AssetCalibration) -> MaybeTransform:
        """
        Produce the transform of the depth-only occlusion mask.

        Tracks the primary anchor's position and scale exactly and carries
        its own rotation correction instead of the base rotation.

        Returns:
            Transform, or HIDDEN if there is no pose or the asset has no mask
        """
        if pose is ABSENT or calibration.mask_rotation is None:
            return HIDDEN

        q_mask = euler_to_quaternion(calibration.mask_rotation)
        q_dynamic = self.dynamic_quaternion(pose, calibration)

        return Transform(
            position=np.array(pose.position, dtype=np.float64),
            rotation=quaternion_multiply(q_dynamic, q_mask),
            scale=float(pose.scale * calibration.scale_factor),
        )
