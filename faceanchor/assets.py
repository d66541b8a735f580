"""
Eyewear asset catalog and per-asset calibration.

Each catalog entry is one color variant of an eyewear model, with the path of
its model file (resolved by the renderer, never loaded here) and the static
calibration that aligns the model's rest pose with the face anchor.

Calibration values are in-memory constants; there is no persisted per-asset
configuration.
"""

import math
import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from numpy.typing import NDArray

Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class AssetCalibration:
    """
    Static alignment of one asset.

    Attributes:
        base_rotation: Rest-pose correction (pitch, yaw, roll) in radians,
                       applied before the dynamic head rotation
        scale_factor: Multiplier on the estimated face scale, > 0
        offset_x, offset_y, offset_z: World-space offset added after projection
        mask_rotation: Rotation correction of the occlusion mask anchor, or
                       None if the asset has no mask
        rotation_signs: Per-axis sign (+1 or -1) applied to the dynamic
                        (pitch, yaw, roll) before composition
    """
    base_rotation: Vec3 = (0.0, 0.0, 0.0)
    scale_factor: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    offset_z: float = 0.0
    mask_rotation: Optional[Vec3] = None
    rotation_signs: Vec3 = (1.0, 1.0, 1.0)

    def __post_init__(self):
        if not self.scale_factor > 0:
            raise ValueError(f"scale_factor must be positive, got {self.scale_factor}")
        if len(self.base_rotation) != 3:
            raise ValueError(f"base_rotation must have 3 angles, got {self.base_rotation}")
        if self.mask_rotation is not None and len(self.mask_rotation) != 3:
            raise ValueError(f"mask_rotation must have 3 angles, got {self.mask_rotation}")
        if len(self.rotation_signs) != 3 or any(s not in (1, -1) for s in self.rotation_signs):
            raise ValueError(
                f"rotation_signs must be three values of +1 or -1, got {self.rotation_signs}"
            )

    @property
    def offset(self) -> NDArray[np.float64]:
        return np.array([self.offset_x, self.offset_y, self.offset_z], dtype=np.float64)


# Rest pose of the exported eyewear models faces away from the camera
DEFAULT_CALIBRATION = AssetCalibration(
    base_rotation=(math.pi, math.pi, 0.0),
    scale_factor=0.3,
)


@dataclass(frozen=True)
class AssetVariant:
    """One color variant of an eyewear model."""
    model: str
    variant: str
    path: str
    calibration: AssetCalibration = field(default=DEFAULT_CALIBRATION)

    @property
    def id(self) -> str:
        """Catalog key, e.g. "cove/pandan"."""
        return f"{self.model}/{self.variant}".lower().replace(" ", "-")


def _variants(model: str, names: List[str]) -> List[AssetVariant]:
    return [
        AssetVariant(
            model=model,
            variant=name,
            path=f"/rescaled-models/{model}/{name.lower().replace(' ', '-')}.glb",
        )
        for name in names
    ]


VARIANTS: List[AssetVariant] = (
    _variants("Cove", ["Pandan", "Petal", "Rich Black", "Space Gray"])
    + _variants("Bennett", ["Ash", "Honey Tort", "Matcha", "Rich Black"])
    + _variants("Leto", ["Quartz", "Rich Black", "Stone"])
    + _variants("Lana", ["Amber Tort", "Mint", "Rich Black", "Space Gray"])
    + _variants("Jax", ["Honey Tort", "Peony", "Pickle", "Rich Black"])
    + _variants("Lindy", [
        "Cherry", "Chestnut", "Horchata", "Lemonade", "Milk",
        "Pear", "Plum", "Rich Black", "Smoke",
    ])
    + _variants("Lou", ["Cherry", "Jelly", "Rich Black", "Smoke"])
    + _variants("Elba", ["Almond", "Cherry", "Jelly", "Rich Black"])
)

MODELS: List[str] = sorted({v.model for v in VARIANTS})

_BY_ID: Dict[str, AssetVariant] = {v.id: v for v in VARIANTS}

DEFAULT_VARIANT = _BY_ID["cove/pandan"]


def get_variant(asset_id: str) -> AssetVariant:
    """
    Look up a catalog entry.

    Args:
        asset_id: "model/variant", case-insensitive; spaces and dashes are
                  interchangeable (e.g. "Lana/Space Gray" or "lana/space-gray")

    Returns:
        AssetVariant

    Raises:
        KeyError: If no such variant exists
    """
    key = asset_id.strip().lower().replace(" ", "-")
    try:
        return _BY_ID[key]
    except KeyError:
        raise KeyError(f"Unknown asset '{asset_id}'") from None


def variants_of(model: str) -> List[AssetVariant]:
    """All variants of one model, in catalog order."""
    return [v for v in VARIANTS if v.model.lower() == model.lower()]
