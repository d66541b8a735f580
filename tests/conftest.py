"""
Shared fixtures: synthetic MediaPipe landmark frames.
"""

import numpy as np
import pytest

from faceanchor import landmarks as lm
from faceanchor.landmarks import LandmarkFrame


def build_frame(
    left_outer=(0.4, 0.45, 0.0),
    right_outer=(0.6, 0.45, 0.0),
    left_inner=(0.45, 0.45, 0.0),
    right_inner=(0.55, 0.45, 0.0),
    nose_bridge=(0.5, 0.45, -0.01),
    nose_tip=(0.5, 0.55, -0.05),
    n_points=478,
    timestamp=0.0,
):
    """Frontal face with only the landmarks the estimator reads placed."""
    points = np.full((n_points, 3), 0.5, dtype=np.float64)
    points[:, 2] = 0.0
    placed = {
        lm.LEFT_EYE_OUTER: left_outer,
        lm.RIGHT_EYE_OUTER: right_outer,
        lm.LEFT_EYE_INNER: left_inner,
        lm.RIGHT_EYE_INNER: right_inner,
        lm.NOSE_BRIDGE: nose_bridge,
        lm.NOSE_TIP: nose_tip,
    }
    for index, point in placed.items():
        if index < n_points:
            points[index] = point
    return LandmarkFrame(points, timestamp)


@pytest.fixture
def make_frame():
    """Factory for synthetic landmark frames (see build_frame)."""
    return build_frame


@pytest.fixture
def face_frame():
    """A level, frontal face centered horizontally."""
    return build_frame()
