"""
Head pose estimation from face landmarks.

PoseEstimator turns one LandmarkFrame into a Pose: an anchor position
(normalized image coordinates plus detector depth), Euler rotation and a
uniform scale. Every estimate is single-frame; temporal filtering happens
downstream in smoothing.py.

Landmarks used (MediaPipe Face Mesh indices):
    33 / 263:  outer eye corners  -> scale, yaw, roll
    133 / 362: inner eye corners  -> position
    6:         nose bridge        -> position (default anchor)
    1:         nose tip           -> pitch (and optional anchor)
"""

import logging
import math
import numpy as np
from dataclasses import dataclass, replace
from typing import NamedTuple, Optional, Union
from numpy.typing import NDArray

from . import landmarks as lm
from .config import EstimatorConfig
from .landmarks import LandmarkFrame

logger = logging.getLogger(__name__)


class _Absent:
    """Sentinel type for "no face in view"."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


class EulerAngles(NamedTuple):
    """Rotation in radians about X (pitch), Y (yaw) and Z (roll)."""
    pitch: float = 0.0
    yaw: float = 0.0
    roll: float = 0.0


@dataclass(frozen=True, eq=False)
class Pose:
    """
    Estimated head pose for one frame.

    Attributes:
        position: Anchor position, shape (3,). Normalized (x, y, depth) as
                  produced by PoseEstimator; world space after projection.
        rotation: Euler angles in radians
        scale: Unit-less scale ratio, always > 0
    """
    position: NDArray[np.float64]
    rotation: EulerAngles
    scale: float

    def with_position(self, position: NDArray[np.float64]) -> "Pose":
        return replace(self, position=np.asarray(position, dtype=np.float64))

    def __repr__(self) -> str:
        p = self.position
        r = self.rotation
        return (
            f"Pose(pos=({p[0]:.4f}, {p[1]:.4f}, {p[2]:.4f}), "
            f"rot=({r.pitch:.4f}, {r.yaw:.4f}, {r.roll:.4f}), "
            f"scale={self.scale:.4f})"
        )


MaybePose = Union[Pose, _Absent]


def fold_roll(roll: float, threshold: float = 0.8 * math.pi) -> float:
    """
    Fold an amplified roll angle back into [-threshold, threshold].

    Amplified roll can wrap past vertical and read as a 180 degree flip;
    values beyond the threshold are shifted by pi until they fall inside it.
    Applying the fold twice gives the same result as applying it once.

    Args:
        roll: Roll angle in radians
        threshold: Fold threshold in radians (must be >= pi / 2)

    Returns:
        Folded roll angle in radians

    Raises:
        ValueError: If threshold < pi / 2 (no stable fold exists)
    """
    if threshold < math.pi / 2:
        raise ValueError(f"fold threshold must be >= pi/2, got {threshold}")

    while roll > threshold:
        roll -= math.pi
    while roll < -threshold:
        roll += math.pi
    return roll


class PoseEstimator:
    """
    Derive position, rotation and scale from a subset of face landmarks.

    Example:
        estimator = PoseEstimator()
        pose = estimator.estimate(frame)
        if pose is ABSENT:
            ...  # face out of view
    """

    def __init__(self, config: Optional[EstimatorConfig] = None):
        self.config = config or EstimatorConfig()

        if self.config.anchor_landmark == "nose_tip":
            self.anchor_index = lm.NOSE_TIP
        elif self.config.anchor_landmark == "nose_bridge":
            self.anchor_index = lm.NOSE_BRIDGE
        else:
            raise ValueError(
                f"Unknown anchor landmark: {self.config.anchor_landmark}"
            )

    def estimate(self, frame: Optional[LandmarkFrame]) -> MaybePose:
        """
        Estimate the head pose for one frame.

        Args:
            frame: Detector output; None or an empty frame means no face

        Returns:
            Pose, or ABSENT when the frame has fewer than 468 landmarks
        """
        if frame is None or not frame.has_face:
            return ABSENT

        position = self.estimate_position(frame)
        scale = self.estimate_scale(frame)
        rotation = EulerAngles(
            pitch=self.estimate_pitch(frame),
            yaw=self.estimate_yaw(frame),
            roll=self.estimate_roll(frame),
        )

        pose = Pose(position=position, rotation=rotation, scale=scale)
        logger.debug("Estimated %r", pose)
        return pose

    def estimate_position(self, frame: LandmarkFrame) -> NDArray[np.float64]:
        """
        Weighted centroid of the inner eye corners and the anchor landmark.

        Only the vertical component is weighted; biasing it toward the nose
        keeps the anchor steady while the jaw moves.
        """
        left_inner = frame.point(lm.LEFT_EYE_INNER)
        right_inner = frame.point(lm.RIGHT_EYE_INNER)
        anchor = frame.point(self.anchor_index)
        w = self.config.vertical_weight

        x = (left_inner[0] + right_inner[0] + anchor[0]) / 3.0
        y = (left_inner[1] + right_inner[1] + w * anchor[1]) / (2.0 + w)
        z = (left_inner[2] + right_inner[2] + anchor[2]) / 3.0

        return np.array([x, y, z], dtype=np.float64)

    def eye_distance(self, frame: LandmarkFrame) -> float:
        """3D distance between the outer eye corners."""
        delta = frame.point(lm.RIGHT_EYE_OUTER) - frame.point(lm.LEFT_EYE_OUTER)
        return float(np.linalg.norm(delta))

    def estimate_scale(self, frame: LandmarkFrame) -> float:
        """Inter-ocular distance relative to the reference asset's, clamped > 0."""
        scale = self.eye_distance(frame) / self.config.reference_eye_distance

        if scale < self.config.min_scale:
            logger.warning(
                "Outer eye corners nearly coincide (scale=%.2e), clamping to %.2e",
                scale, self.config.min_scale
            )
            return self.config.min_scale

        return scale

    def estimate_yaw(self, frame: LandmarkFrame) -> float:
        """Yaw from the depth difference of the outer eye corners."""
        delta = frame.point(lm.RIGHT_EYE_OUTER) - frame.point(lm.LEFT_EYE_OUTER)
        return math.atan2(delta[2], delta[0])

    def estimate_roll(self, frame: LandmarkFrame) -> float:
        """In-plane head tilt, amplified and folded."""
        delta = frame.point(lm.RIGHT_EYE_OUTER) - frame.point(lm.LEFT_EYE_OUTER)
        roll = math.atan2(delta[1], delta[0]) * self.config.roll_multiplier
        return fold_roll(roll, self.config.fold_threshold)

    def estimate_pitch(self, frame: LandmarkFrame) -> float:
        """Nose tip elevation relative to the anchor landmark, re-centered and damped."""
        nose_tip = frame.point(lm.NOSE_TIP)
        anchor = frame.point(self.anchor_index)
        raw = math.atan2(nose_tip[1] - anchor[1], nose_tip[2] - anchor[2])
        return (raw + self.config.pitch_baseline) * self.config.pitch_scale
