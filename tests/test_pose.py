"""
Tests for head pose estimation.
"""

import math

import numpy as np
import pytest

from faceanchor.config import EstimatorConfig
from faceanchor.landmarks import LandmarkFrame
from faceanchor.pose import ABSENT, EulerAngles, Pose, PoseEstimator, fold_roll


class TestAbsent:
    """Test the no-face sentinel."""

    def test_is_falsy_singleton(self):
        from faceanchor.pose import _Absent

        assert not ABSENT
        assert _Absent() is ABSENT
        assert repr(ABSENT) == "ABSENT"


class TestEstimateVisibility:
    """A pose exists only when the full face mesh is present."""

    def test_none_frame(self):
        assert PoseEstimator().estimate(None) is ABSENT

    def test_empty_frame(self):
        assert PoseEstimator().estimate(LandmarkFrame.empty()) is ABSENT

    def test_partial_mesh(self):
        frame = LandmarkFrame(np.full((467, 3), 0.5))
        assert PoseEstimator().estimate(frame) is ABSENT

    def test_minimal_mesh(self, make_frame):
        pose = PoseEstimator().estimate(make_frame(n_points=468))
        assert isinstance(pose, Pose)

    def test_pose_fields(self, face_frame):
        pose = PoseEstimator().estimate(face_frame)

        assert pose.position.shape == (3,)
        assert isinstance(pose.rotation, EulerAngles)
        assert pose.scale > 0


class TestPosition:
    """Test the anchor position."""

    def test_centered_face(self, face_frame):
        pose = PoseEstimator().estimate(face_frame)

        assert np.allclose(pose.position, [0.5, 0.45, -0.01 / 3])

    def test_vertical_weighting(self, make_frame):
        """Only Y is weighted toward the anchor landmark."""
        frame = make_frame(nose_bridge=(0.5, 0.6, 0.0))

        pose = PoseEstimator().estimate(frame)

        expected_y = (0.45 + 0.45 + 1.2 * 0.6) / 3.2
        assert np.isclose(pose.position[1], expected_y)
        assert np.isclose(pose.position[0], 0.5)

    def test_nose_tip_anchor(self, make_frame):
        estimator = PoseEstimator(EstimatorConfig(anchor_landmark="nose_tip"))

        pose = estimator.estimate(make_frame())

        expected_y = (0.45 + 0.45 + 1.2 * 0.55) / 3.2
        assert np.isclose(pose.position[1], expected_y)

    def test_unknown_anchor_raises(self):
        with pytest.raises(ValueError, match="anchor"):
            PoseEstimator(EstimatorConfig(anchor_landmark="chin"))


class TestScale:
    """Test scale from inter-ocular distance."""

    def test_reference_distance_is_unit_scale(self, make_frame):
        frame = make_frame(left_outer=(0.46, 0.45, 0.0), right_outer=(0.54, 0.45, 0.0))

        assert np.isclose(PoseEstimator().estimate(frame).scale, 1.0)

    def test_monotonic_in_eye_distance(self, make_frame):
        estimator = PoseEstimator()
        scales = [
            estimator.estimate(
                make_frame(left_outer=(0.5 - d, 0.45, 0.0), right_outer=(0.5 + d, 0.45, 0.0))
            ).scale
            for d in (0.02, 0.05, 0.1, 0.2)
        ]

        assert scales == sorted(scales)
        assert len(set(scales)) == len(scales)

    def test_coincident_eyes_clamped_positive(self, make_frame):
        frame = make_frame(left_outer=(0.5, 0.45, 0.0), right_outer=(0.5, 0.45, 0.0))

        pose = PoseEstimator().estimate(frame)

        assert pose.scale == EstimatorConfig().min_scale
        assert pose.scale > 0


class TestRotation:
    """Test yaw, roll and pitch."""

    def test_level_face_has_no_yaw_or_roll(self, face_frame):
        pose = PoseEstimator().estimate(face_frame)

        assert np.isclose(pose.rotation.yaw, 0.0)
        assert np.isclose(pose.rotation.roll, 0.0)

    def test_level_eyes_at_mid_height(self, make_frame):
        frame = make_frame(left_outer=(0.4, 0.5, 0.0), right_outer=(0.6, 0.5, 0.0))

        pose = PoseEstimator().estimate(frame)

        assert pose.rotation.yaw == 0.0
        assert pose.rotation.roll == 0.0

    def test_yaw_from_depth_difference(self, make_frame):
        frame = make_frame(right_outer=(0.6, 0.45, 0.05))

        pose = PoseEstimator().estimate(frame)

        assert np.isclose(pose.rotation.yaw, math.atan2(0.05, 0.2))

    def test_roll_is_amplified(self, make_frame):
        tilt = 0.05
        frame = make_frame(right_outer=(0.6, 0.45 + 0.2 * math.tan(tilt), 0.0))

        pose = PoseEstimator().estimate(frame)

        assert np.isclose(pose.rotation.roll, 4.0 * tilt)

    def test_large_roll_is_folded(self, make_frame):
        tilt = 0.7  # amplified to 2.8 > 0.8 pi
        frame = make_frame(right_outer=(0.6, 0.45 + 0.2 * math.tan(tilt), 0.0))

        pose = PoseEstimator().estimate(frame)

        assert np.isclose(pose.rotation.roll, 4.0 * tilt - math.pi)
        assert abs(pose.rotation.roll) <= 0.8 * math.pi

    def test_pitch_formula(self, face_frame):
        estimator = PoseEstimator()
        pose = estimator.estimate(face_frame)

        tip = face_frame.point(1)
        anchor = face_frame.point(6)
        raw = math.atan2(tip[1] - anchor[1], tip[2] - anchor[2])
        assert np.isclose(pose.rotation.pitch, (raw + 3.0) * 0.1)

    def test_pitch_tuning(self, face_frame):
        config = EstimatorConfig(pitch_baseline=0.0, pitch_scale=1.0)
        pose = PoseEstimator(config).estimate(face_frame)

        tip = face_frame.point(1)
        anchor = face_frame.point(6)
        raw = math.atan2(tip[1] - anchor[1], tip[2] - anchor[2])
        assert np.isclose(pose.rotation.pitch, raw)

    def test_pitch_ignores_inner_eyes(self, make_frame):
        """Pitch depends only on the nose tip and the anchor landmark."""
        estimator = PoseEstimator()
        level = estimator.estimate(make_frame())
        lowered = estimator.estimate(
            make_frame(left_inner=(0.45, 0.6, 0.03), right_inner=(0.55, 0.6, 0.03))
        )

        assert np.isclose(lowered.rotation.pitch, level.rotation.pitch)
        assert not np.allclose(lowered.position, level.position)


class TestFoldRoll:
    """Test the roll fold."""

    def test_small_values_unchanged(self):
        for roll in (-2.0, -0.3, 0.0, 0.5, 2.5):
            assert fold_roll(roll) == roll

    def test_result_within_threshold(self):
        threshold = 0.8 * math.pi
        for roll in np.linspace(-4 * math.pi, 4 * math.pi, 97):
            assert abs(fold_roll(roll, threshold)) <= threshold + 1e-12

    def test_idempotent(self):
        for roll in np.linspace(-4 * math.pi, 4 * math.pi, 97):
            once = fold_roll(roll)
            assert fold_roll(once) == once

    def test_folds_by_pi(self):
        assert np.isclose(fold_roll(3.0), 3.0 - math.pi)
        assert np.isclose(fold_roll(-3.0), -3.0 + math.pi)

    def test_threshold_below_half_pi_raises(self):
        with pytest.raises(ValueError):
            fold_roll(1.0, threshold=1.0)
