"""
Configuration management for faceanchor.

Handles:
- Command-line argument parsing
- YAML config file loading
- Configuration validation
- Merging configs with defaults

The numeric defaults of the estimator and projector were tuned empirically
against the catalog eyewear models; they are exposed here so they can be
retuned per deployment without code changes.
"""

import argparse
import math
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional, Tuple

ANCHOR_LANDMARKS = ("nose_bridge", "nose_tip")


@dataclass
class EstimatorConfig:
    """Pose estimator tuning."""
    anchor_landmark: str = "nose_bridge"  # "nose_bridge" or "nose_tip"
    vertical_weight: float = 1.2  # Weight of the anchor landmark's Y
    reference_eye_distance: float = 0.08  # Inter-ocular distance at unit scale
    min_scale: float = 1e-3
    roll_multiplier: float = 4.0
    fold_threshold: float = 0.8 * math.pi
    pitch_baseline: float = 3.0
    pitch_scale: float = 0.1


@dataclass
class ProjectorConfig:
    """Viewport projection tuning."""
    depth_origin: float = 1.0  # World Z of a landmark at detector depth 0
    depth_scale: float = 5.0  # World units per unit of detector depth
    reference_ndc_depth: float = 0.5
    parallel_epsilon: float = 1e-6


@dataclass
class SmoothingConfig:
    """Temporal smoothing time constants in seconds (0 = pass through)."""
    rotation_time_constant: float = 0.1
    position_time_constant: float = 0.0
    scale_time_constant: float = 0.0


@dataclass
class CameraConfig:
    """Rendering camera and viewport configuration."""
    projection: str = "perspective"  # "perspective" or "orthographic"
    fov_deg: float = 50.0
    near: float = 0.1
    far: float = 1000.0
    distance: float = 5.0  # Camera Z position
    viewport: Tuple[int, int] = (640, 480)
    device_pixel_ratio: float = 1.0


@dataclass
class CaptureConfig:
    """Video capture and detector configuration."""
    device: str = "0"  # Camera index or video file path
    width: int = 640
    height: int = 480
    fps: float = 30.0
    model_path: Optional[str] = None  # None = download FaceLandmarker model
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5


def _section(cls, data: Optional[Dict[str, Any]], name: str):
    """Build a config section dataclass from a YAML mapping."""
    data = data or {}
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(
            f"Unknown option(s) in '{name}' section: {', '.join(sorted(unknown))}"
        )
    values = dict(data)
    if "viewport" in values:
        values["viewport"] = tuple(values["viewport"])
    return cls(**values)


@dataclass
class Config:
    """Complete configuration."""
    asset: str = "cove/pandan"
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    projector: ProjectorConfig = field(default_factory=ProjectorConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)

    def validate(self) -> None:
        """
        Check option ranges.

        Raises:
            ValueError: On the first invalid option found
        """
        if self.estimator.anchor_landmark not in ANCHOR_LANDMARKS:
            raise ValueError(
                f"Invalid anchor_landmark: {self.estimator.anchor_landmark}. "
                f"Use one of {ANCHOR_LANDMARKS}"
            )
        if self.estimator.reference_eye_distance <= 0:
            raise ValueError("reference_eye_distance must be positive")
        if self.estimator.min_scale <= 0:
            raise ValueError("min_scale must be positive")
        if self.estimator.vertical_weight <= 0:
            raise ValueError("vertical_weight must be positive")
        if self.estimator.fold_threshold < math.pi / 2:
            raise ValueError("fold_threshold must be >= pi/2")

        for name in ("rotation_time_constant", "position_time_constant",
                     "scale_time_constant"):
            if getattr(self.smoothing, name) < 0:
                raise ValueError(f"{name} must be >= 0")

        if self.camera.projection not in ("perspective", "orthographic"):
            raise ValueError(
                f"Invalid projection: {self.camera.projection}. "
                "Use perspective or orthographic"
            )
        if not 0 < self.camera.fov_deg < 180:
            raise ValueError(f"fov_deg must be in (0, 180), got {self.camera.fov_deg}")
        if self.camera.near <= 0 or self.camera.far <= self.camera.near:
            raise ValueError(
                f"Invalid clip planes: near={self.camera.near}, far={self.camera.far}"
            )
        if len(self.camera.viewport) != 2 or min(self.camera.viewport) < 0:
            raise ValueError(f"Invalid viewport size: {self.camera.viewport}")
        if self.camera.device_pixel_ratio <= 0:
            raise ValueError("device_pixel_ratio must be positive")

        if self.capture.fps <= 0:
            raise ValueError("capture fps must be positive")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "Config":
        """
        Create config from parsed command-line arguments.

        Loads config file if specified, then applies command-line overrides.

        Args:
            args: Parsed arguments from argparse

        Returns:
            Config instance

        Raises:
            ValueError: If any option is invalid
        """
        if args.config:
            config = cls.from_yaml(args.config)
        else:
            config = cls()

        if args.asset:
            config.asset = args.asset

        # Camera overrides
        if args.projection:
            config.camera.projection = args.projection
        if args.fov is not None:
            config.camera.fov_deg = args.fov
        if args.viewport:
            try:
                w, h = args.viewport.lower().split('x')
                config.camera.viewport = (int(w), int(h))
            except ValueError:
                raise ValueError(
                    f"Invalid viewport format: {args.viewport}. Use WxH (e.g., 640x480)"
                )

        # Capture overrides
        if args.device is not None:
            config.capture.device = args.device
        if args.width is not None:
            config.capture.width = args.width
        if args.height is not None:
            config.capture.height = args.height
        if args.fps is not None:
            config.capture.fps = args.fps
        if args.model_path:
            config.capture.model_path = args.model_path

        # Smoothing overrides
        if args.smoothing is not None:
            config.smoothing.rotation_time_constant = args.smoothing

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, filepath: str) -> "Config":
        """
        Load config from YAML file.

        Sections and options that are absent keep their defaults.

        Args:
            filepath: Path to YAML config file

        Returns:
            Config instance

        Raises:
            ValueError: If the file contains unknown or invalid options
        """
        try:
            import yaml
        except ImportError:
            raise ImportError(
                "PyYAML is required for config files. "
                "Install with: pip install pyyaml"
            )

        with open(filepath, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {filepath} must contain a mapping")

        config = cls(
            asset=str(data.get('asset', 'cove/pandan')),
            estimator=_section(EstimatorConfig, data.get('estimator'), 'estimator'),
            projector=_section(ProjectorConfig, data.get('projector'), 'projector'),
            smoothing=_section(SmoothingConfig, data.get('smoothing'), 'smoothing'),
            camera=_section(CameraConfig, data.get('camera'), 'camera'),
            capture=_section(CaptureConfig, data.get('capture'), 'capture'),
        )
        config.validate()
        return config

    def to_yaml(self, filepath: str) -> None:
        """
        Save config to YAML file.

        Args:
            filepath: Path to save YAML config file
        """
        try:
            import yaml
        except ImportError:
            raise ImportError(
                "PyYAML is required for config files. "
                "Install with: pip install pyyaml"
            )

        data = asdict(self)
        data['camera']['viewport'] = list(self.camera.viewport)

        with open(filepath, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @staticmethod
    def generate_default_config_template() -> str:
        """
        Generate a default configuration template with comments.

        Returns:
            YAML string with comments explaining each option
        """
        return """# faceanchor configuration file
#
# Command-line arguments override values specified here.

# Eyewear asset, as "model/variant" (see: faceanchor --list-assets)
asset: "cove/pandan"

# Pose estimation from face landmarks
estimator:
  # Landmark blended with the inner eye corners for the anchor position:
  # nose_bridge or nose_tip
  anchor_landmark: "nose_bridge"

  # Weight of the anchor landmark's vertical coordinate
  vertical_weight: 1.2

  # Outer-eye-corner distance (normalized units) that maps to scale 1.0
  reference_eye_distance: 0.08

  # Lower clamp for the scale when eye corners coincide
  min_scale: 0.001

  # Roll amplification and fold threshold (radians)
  roll_multiplier: 4.0
  fold_threshold: 2.5132741228718345

  # Pitch = (raw_pitch + pitch_baseline) * pitch_scale
  pitch_baseline: 3.0
  pitch_scale: 0.1

# Mapping of landmark position and depth into world space
projector:
  # world_z = depth_origin - depth * depth_scale
  depth_origin: 1.0
  depth_scale: 5.0

  # NDC depth of the point the projection ray passes through
  reference_ndc_depth: 0.5

  # Rays with |direction.z| below this are treated as parallel to the target plane
  parallel_epsilon: 0.000001

# Temporal smoothing time constants in seconds (0 = no smoothing)
smoothing:
  rotation_time_constant: 0.1
  position_time_constant: 0.0
  scale_time_constant: 0.0

# Rendering camera
camera:
  # perspective or orthographic
  projection: "perspective"

  # Vertical field of view in degrees (perspective)
  fov_deg: 50.0

  near: 0.1
  far: 1000.0

  # Camera distance from the origin along +Z
  distance: 5.0

  # Initial viewport [width, height] in device pixels and device pixel ratio
  viewport: [640, 480]
  device_pixel_ratio: 1.0

# Live capture
capture:
  # Camera index or video file path
  device: "0"
  width: 640
  height: 480
  fps: 30.0

  # FaceLandmarker .task model (null = download on first run)
  model_path: null

  min_detection_confidence: 0.5
  min_tracking_confidence: 0.5
"""


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create command-line argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="faceanchor",
        description="Anchor an eyewear asset to a tracked face: live from a camera, or replayed from recorded landmarks",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        epilog="Configuration file (YAML) can be used to set all options. Command-line arguments override config file values."
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to YAML configuration file"
    )
    parser.add_argument(
        "--save-config",
        metavar="PATH",
        help="Save default configuration to YAML file and exit"
    )

    # Input/output
    parser.add_argument(
        "--replay",
        metavar="JSON",
        help="Run over a recorded landmark session instead of a live camera"
    )
    parser.add_argument(
        "--output", "-o",
        metavar="PATH",
        help="Write one JSON transform record per frame to this file (default: stdout)"
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        metavar="N",
        help="Stop live tracking after N rendered frames"
    )

    # Asset options
    asset_group = parser.add_argument_group("Asset Options")
    asset_group.add_argument(
        "--asset",
        metavar="MODEL/VARIANT",
        help="Eyewear asset to anchor (e.g., cove/pandan)"
    )
    asset_group.add_argument(
        "--list-assets",
        action="store_true",
        help="List available assets and exit"
    )

    # Camera options
    camera_group = parser.add_argument_group("Camera Options")
    camera_group.add_argument(
        "--projection",
        choices=["perspective", "orthographic"],
        help="Rendering camera projection"
    )
    camera_group.add_argument(
        "--fov",
        type=float,
        metavar="DEGREES",
        help="Vertical field of view (perspective)"
    )
    camera_group.add_argument(
        "--viewport",
        type=str,
        metavar="WxH",
        help="Viewport size in device pixels (e.g., 640x480)"
    )

    # Capture options
    capture_group = parser.add_argument_group("Capture Options")
    capture_group.add_argument(
        "--device",
        metavar="INDEX|PATH",
        help="Camera index or video file"
    )
    capture_group.add_argument(
        "--width",
        type=int,
        metavar="PIXELS",
        help="Capture width"
    )
    capture_group.add_argument(
        "--height",
        type=int,
        metavar="PIXELS",
        help="Capture height"
    )
    capture_group.add_argument(
        "--fps",
        type=float,
        help="Render loop rate"
    )
    capture_group.add_argument(
        "--model-path",
        metavar="PATH",
        help="FaceLandmarker .task model (downloaded if not specified)"
    )

    # Smoothing options
    smoothing_group = parser.add_argument_group("Smoothing Options")
    smoothing_group.add_argument(
        "--smoothing",
        type=float,
        metavar="SECONDS",
        help="Rotation smoothing time constant (0 disables smoothing)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )

    return parser
