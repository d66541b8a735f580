"""
Face landmark frames and ingestion of detector output.

This module provides:
- MediaPipe Face Mesh landmark indices read by the pose estimator
- LandmarkFrame: one detector result (possibly empty = no face)
- LandmarkIngest: Convert raw detector output and recorded JSON sessions
  into LandmarkFrames

MediaPipe landmarks are normalized: x to image width, y to image height,
z a relative depth (roughly the same scale as x, smaller = closer).
No MediaPipe dependency is required here; only its output contract.
"""

import json
import logging
import numpy as np
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


# =============================================================================
# MediaPipe Face Mesh indices
# =============================================================================
# "left"/"right" follow image space: LEFT_EYE_OUTER has the smaller x on an
# unmirrored frontal face.

LEFT_EYE_OUTER = 33
RIGHT_EYE_OUTER = 263
LEFT_EYE_INNER = 133
RIGHT_EYE_INNER = 362
NOSE_BRIDGE = 6
NOSE_TIP = 1

# Minimum landmark count of a Face Mesh result (478 with iris refinement)
MIN_LANDMARKS = 468


@dataclass(frozen=True, eq=False)
class LandmarkFrame:
    """
    One detector result.

    Attributes:
        landmarks: (N, 3) float array. N == 0 means no face was detected.
        timestamp: Capture time of the source video frame, in seconds.
    """
    landmarks: NDArray[np.float64] = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.float64)
    )
    timestamp: float = 0.0

    @classmethod
    def empty(cls, timestamp: float = 0.0) -> "LandmarkFrame":
        """Frame signalling that no face is in view."""
        return cls(np.zeros((0, 3), dtype=np.float64), timestamp)

    @property
    def has_face(self) -> bool:
        return len(self.landmarks) >= MIN_LANDMARKS

    def __len__(self) -> int:
        return len(self.landmarks)

    def point(self, index: int) -> NDArray[np.float64]:
        return self.landmarks[index]


class LandmarkIngest:
    """
    Convert external face landmark formats to LandmarkFrames.

    Supported input formats:
    - "mediapipe": MediaPipe Face Mesh / FaceLandmarker (468 or 478 landmarks)

    Usage:
        # From raw detector output (list of [x, y, z] or landmark objects):
        frame = LandmarkIngest.from_mediapipe(result.face_landmarks[0], timestamp)

        # From a recorded session:
        frames = LandmarkIngest.from_json("session.json")
    """

    @staticmethod
    def from_mediapipe(
        landmarks: Optional[Union[Sequence[Any], NDArray[np.float64]]],
        timestamp: float = 0.0,
    ) -> LandmarkFrame:
        """
        Convert MediaPipe face landmarks to a LandmarkFrame.

        Args:
            landmarks: Shape (N, 3) array-like, a sequence of objects with
                .x/.y/.z attributes, or None / empty when no face was found.
            timestamp: Capture time in seconds.

        Returns:
            LandmarkFrame (empty when no landmarks were given)

        Raises:
            ValueError: If landmarks have the wrong shape.
        """
        if landmarks is None or len(landmarks) == 0:
            return LandmarkFrame.empty(timestamp)

        first = landmarks[0]
        if hasattr(first, "x"):
            lm = np.array([[p.x, p.y, p.z] for p in landmarks], dtype=np.float64)
        else:
            lm = np.array(landmarks, dtype=np.float64)

        if lm.ndim != 2 or lm.shape[1] != 3:
            raise ValueError(
                f"Expected landmarks shape (N, 3), got {lm.shape}"
            )

        if lm.shape[0] < MIN_LANDMARKS:
            logger.debug(
                "Partial landmark set (%d < %d points)", lm.shape[0], MIN_LANDMARKS
            )

        lm.setflags(write=False)
        return LandmarkFrame(lm, float(timestamp))

    @staticmethod
    def from_json(filepath: Union[str, Path]) -> List[LandmarkFrame]:
        """
        Load a recorded landmark session from a JSON file.

        Supported JSON formats:
        - Session: {"source": "mediapipe",
                    "frames": [{"timestamp": t, "landmarks": [[x,y,z], ...] | null}]}
        - Single frame: {"source": "mediapipe", "landmarks": [[x,y,z], ...]}

        Args:
            filepath: Path to JSON file.

        Returns:
            List of LandmarkFrames in file order.

        Raises:
            ValueError: If format is unrecognized or data is invalid.
            FileNotFoundError: If file does not exist.
        """
        filepath = Path(filepath)
        with open(filepath, 'r') as f:
            data = json.load(f)

        source = data.get("source", "").lower()
        if source != "mediapipe":
            raise ValueError(
                f"Unsupported face landmark source: '{source}' in {filepath}. "
                f"Supported: 'mediapipe'"
            )

        if "frames" in data:
            raw_frames = data["frames"]
        elif "landmarks" in data:
            raw_frames = [{"timestamp": 0.0, "landmarks": data["landmarks"]}]
        else:
            raise ValueError(
                f"MediaPipe JSON missing 'frames' or 'landmarks' field in {filepath}"
            )

        frames = [
            LandmarkIngest.from_mediapipe(
                raw.get("landmarks"), timestamp=raw.get("timestamp", 0.0)
            )
            for raw in raw_frames
        ]
        logger.debug("Loaded %d landmark frames from %s", len(frames), filepath)
        return frames

    @staticmethod
    def to_json(frames: Sequence[LandmarkFrame], filepath: Union[str, Path]) -> None:
        """Write frames as a session file readable by from_json()."""
        data = {
            "version": "1.0",
            "source": "mediapipe",
            "frames": [
                {
                    "timestamp": frame.timestamp,
                    "landmarks": (
                        np.round(frame.landmarks, 6).tolist() if len(frame) else None
                    ),
                }
                for frame in frames
            ],
        }
        with open(filepath, 'w') as f:
            json.dump(data, f)
            f.write('\n')
