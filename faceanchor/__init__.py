"""
faceanchor - Anchor 3D eyewear to a tracked face in live video.

This package turns MediaPipe face landmarks into a stable transform for an
eyewear model:
- Head pose (position, pitch/yaw/roll, scale) from a few facial landmarks
- Viewport-aware projection into the rendering camera's world space
- Temporal smoothing of rotation
- Per-asset calibration and visibility gating

Example usage:
    from faceanchor import AnchorPipeline, LandmarkIngest

    pipeline = AnchorPipeline()
    pipeline.viewport.resize(1280, 720)
    for frame in LandmarkIngest.from_json("session.json"):
        result = pipeline.process(frame, frame.timestamp)
        if result.visible:
            renderer.apply(result.transform)
"""

__version__ = "0.1.0"

from .assets import AssetCalibration, AssetVariant, get_variant
from .binding import HIDDEN, AnchorBinding, Transform
from .camera import Camera
from .landmarks import LandmarkFrame, LandmarkIngest
from .pipeline import (
    AcquisitionError,
    AnchorPipeline,
    AppState,
    FrameLoop,
    FrameResult,
    LatestFrameSlot,
)
from .pose import ABSENT, EulerAngles, Pose, PoseEstimator, fold_roll
from .projector import ViewportProjector
from .smoothing import OrientationSmoother
from .viewport import CameraIntrinsics, ViewportResizeHandler, ViewportState

__all__ = [
    "ABSENT",
    "AcquisitionError",
    "AnchorBinding",
    "AnchorPipeline",
    "AppState",
    "AssetCalibration",
    "AssetVariant",
    "Camera",
    "CameraIntrinsics",
    "EulerAngles",
    "FrameLoop",
    "FrameResult",
    "HIDDEN",
    "LandmarkFrame",
    "LandmarkIngest",
    "LatestFrameSlot",
    "OrientationSmoother",
    "Pose",
    "PoseEstimator",
    "Transform",
    "ViewportProjector",
    "ViewportResizeHandler",
    "ViewportState",
    "fold_roll",
    "get_variant",
]
