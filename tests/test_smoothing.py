"""
Tests for temporal pose smoothing.
"""

import math

import numpy as np
import pytest

from faceanchor.config import SmoothingConfig
from faceanchor.coordinates import euler_to_quaternion, quaternion_angle
from faceanchor.pose import ABSENT, EulerAngles, Pose
from faceanchor.smoothing import OrientationSmoother, blend_factor


def _pose(yaw=0.0, position=(0.0, 0.0, 0.0), scale=1.0):
    return Pose(np.array(position, dtype=np.float64), EulerAngles(0.0, yaw, 0.0), scale)


def _angle(a, b):
    return quaternion_angle(euler_to_quaternion(a.rotation), euler_to_quaternion(b.rotation))


class TestBlendFactor:
    """Test the first-order low-pass weight."""

    def test_zero_time_constant_snaps(self):
        assert blend_factor(0.016, 0.0) == 1.0

    def test_zero_dt_holds(self):
        assert blend_factor(0.0, 0.1) == 0.0

    def test_one_time_constant(self):
        assert np.isclose(blend_factor(0.1, 0.1), 1.0 - math.exp(-1.0))

    def test_increases_with_dt(self):
        values = [blend_factor(dt, 0.1) for dt in (0.01, 0.05, 0.2, 1.0)]
        assert values == sorted(values)
        assert all(0.0 < v < 1.0 for v in values)


class TestSmooth:
    """Test OrientationSmoother.smooth()."""

    def test_absent_target_is_absent(self):
        smoother = OrientationSmoother()

        assert smoother.smooth(_pose(), ABSENT, 0.016) is ABSENT
        assert smoother.smooth(ABSENT, ABSENT, 0.016) is ABSENT

    def test_first_pose_passes_through(self):
        target = _pose(yaw=0.5)

        assert OrientationSmoother().smooth(ABSENT, target, 0.016) is target

    def test_moves_part_way(self):
        """One step covers 1 - exp(-dt/tau) of the rotation angle."""
        smoother = OrientationSmoother(SmoothingConfig(rotation_time_constant=0.1))
        previous, target = _pose(yaw=0.0), _pose(yaw=1.0)

        result = smoother.smooth(previous, target, 0.1)

        covered = _angle(previous, result)
        assert np.isclose(covered, 1.0 - math.exp(-1.0), atol=1e-6)
        assert _angle(result, target) < _angle(previous, target)

    def test_converges(self):
        smoother = OrientationSmoother(SmoothingConfig(rotation_time_constant=0.1))
        pose, target = _pose(yaw=0.0), _pose(yaw=1.0)

        for _ in range(100):
            pose = smoother.smooth(pose, target, 1 / 30)

        assert _angle(pose, target) < 1e-6

    def test_zero_time_constant_is_target(self):
        smoother = OrientationSmoother(SmoothingConfig(rotation_time_constant=0.0))
        target = _pose(yaw=1.0)

        result = smoother.smooth(_pose(yaw=0.0), target, 0.016)

        assert result.rotation == target.rotation

    def test_zero_dt_keeps_previous_rotation(self):
        smoother = OrientationSmoother()
        previous = _pose(yaw=0.2)

        result = smoother.smooth(previous, _pose(yaw=1.0), 0.0)

        assert np.isclose(result.rotation.yaw, 0.2)

    def test_position_and_scale_pass_through_by_default(self):
        smoother = OrientationSmoother()
        target = _pose(yaw=1.0, position=(1.0, 2.0, 3.0), scale=2.0)

        result = smoother.smooth(_pose(), target, 0.016)

        assert np.allclose(result.position, [1.0, 2.0, 3.0])
        assert result.scale == 2.0

    def test_position_time_constant(self):
        smoother = OrientationSmoother(SmoothingConfig(position_time_constant=0.1))
        target = _pose(position=(1.0, 0.0, 0.0))

        result = smoother.smooth(_pose(), target, 0.1)

        assert np.isclose(result.position[0], 1.0 - math.exp(-1.0))

    def test_deterministic(self):
        smoother = OrientationSmoother()
        previous, target = _pose(yaw=0.1), _pose(yaw=0.9)

        a = smoother.smooth(previous, target, 0.03)
        b = smoother.smooth(previous, target, 0.03)

        assert a.rotation == b.rotation


class TestStatefulSmoother:
    """Test update()/reset()."""

    def test_update_remembers_applied(self):
        smoother = OrientationSmoother()

        first = smoother.update(_pose(yaw=0.0), 0.0)
        second = smoother.update(_pose(yaw=1.0), 0.05)

        assert smoother.applied is second
        assert 0.0 < second.rotation.yaw < 1.0
        assert first.rotation.yaw == 0.0

    def test_absent_clears(self):
        smoother = OrientationSmoother()
        smoother.update(_pose(yaw=0.5), 0.0)

        assert smoother.update(ABSENT, 0.016) is ABSENT
        assert smoother.applied is ABSENT

    def test_reset(self):
        smoother = OrientationSmoother()
        smoother.update(_pose(), 0.0)
        smoother.reset()

        assert smoother.applied is ABSENT
