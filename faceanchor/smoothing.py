"""
Temporal smoothing of head poses.

OrientationSmoother is a first-order low-pass filter: each step moves the
applied pose a fraction `1 - exp(-dt / tau)` of the way toward the latest
estimate. Rotation is interpolated on the quaternion sphere; position and scale
are interpolated linearly, each with its own time constant.
"""

import math
from typing import Optional

import numpy as np

from .config import SmoothingConfig
from .coordinates import euler_to_quaternion, quaternion_slerp, quaternion_to_euler
from .pose import ABSENT, EulerAngles, MaybePose, Pose


def blend_factor(dt: float, time_constant: float) -> float:
    """
    Fraction of the remaining distance covered in `dt` seconds.

    A time constant of 0 snaps to the target. A non-positive dt leaves the
    value where it is.
    """
    if time_constant <= 0:
        return 1.0
    if dt <= 0:
        return 0.0
    return 1.0 - math.exp(-dt / time_constant)


class OrientationSmoother:
    """
    Low-pass filter over successive poses.

    `smooth` is a pure function of (previous, target, dt); `update` and
    `reset` keep the previously applied pose for callers that want state.

    When the target is ABSENT the result is ABSENT immediately and no
    interpolation toward the last target continues.
    """

    def __init__(self, config: Optional[SmoothingConfig] = None):
        self.config = config or SmoothingConfig()
        self._applied: MaybePose = ABSENT

    @property
    def applied(self) -> MaybePose:
        return self._applied

    def smooth(self, previous: MaybePose, target: MaybePose, dt: float) -> MaybePose:
        """
        Move `previous` toward `target` over `dt` seconds.

        Args:
            previous: Pose applied on the previous frame, or ABSENT
            target: Latest estimate, or ABSENT
            dt: Seconds since the previous frame

        Returns:
            Smoothed pose; `target` itself if there is nothing to smooth
            from; ABSENT if the target is ABSENT
        """
        if target is ABSENT:
            return ABSENT
        if previous is ABSENT:
            return target

        a_rot = blend_factor(dt, self.config.rotation_time_constant)
        a_pos = blend_factor(dt, self.config.position_time_constant)
        a_scale = blend_factor(dt, self.config.scale_time_constant)

        if a_rot >= 1.0:
            rotation = target.rotation
        else:
            q = quaternion_slerp(
                euler_to_quaternion(previous.rotation),
                euler_to_quaternion(target.rotation),
                a_rot,
            )
            rotation = EulerAngles(*(float(a) for a in quaternion_to_euler(q)))

        position = previous.position + a_pos * (target.position - previous.position)
        scale = previous.scale + a_scale * (target.scale - previous.scale)

        return Pose(
            position=np.asarray(position, dtype=np.float64),
            rotation=rotation,
            scale=float(scale),
        )

    def update(self, target: MaybePose, dt: float) -> MaybePose:
        """Smooth from the last applied pose and remember the result."""
        self._applied = self.smooth(self._applied, target, dt)
        return self._applied

    def reset(self) -> None:
        self._applied = ABSENT
