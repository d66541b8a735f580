"""
Tests for landmark frames and detector output ingestion.
"""

import json
from types import SimpleNamespace

import numpy as np
import pytest

from faceanchor.landmarks import (
    LandmarkFrame,
    LandmarkIngest,
    MIN_LANDMARKS,
    NOSE_TIP,
)


def _points(n=478, value=0.5):
    return np.full((n, 3), value).tolist()


class TestLandmarkFrame:
    """Test LandmarkFrame."""

    def test_empty_frame_has_no_face(self):
        frame = LandmarkFrame.empty(1.5)

        assert not frame.has_face
        assert len(frame) == 0
        assert frame.timestamp == 1.5

    def test_face_needs_full_mesh(self):
        assert LandmarkFrame(np.zeros((MIN_LANDMARKS, 3))).has_face
        assert not LandmarkFrame(np.zeros((MIN_LANDMARKS - 1, 3))).has_face

    def test_point(self, face_frame):
        assert np.allclose(face_frame.point(NOSE_TIP), [0.5, 0.55, -0.05])


class TestFromMediapipe:
    """Test conversion of raw detector output."""

    def test_array_input(self):
        frame = LandmarkIngest.from_mediapipe(np.zeros((478, 3)), timestamp=0.25)

        assert frame.has_face
        assert frame.landmarks.shape == (478, 3)
        assert frame.timestamp == 0.25

    def test_landmark_objects(self):
        """MediaPipe NormalizedLandmark-like objects with .x/.y/.z."""
        raw = [SimpleNamespace(x=0.1, y=0.2, z=-0.01) for _ in range(468)]

        frame = LandmarkIngest.from_mediapipe(raw)

        assert frame.has_face
        assert np.allclose(frame.point(0), [0.1, 0.2, -0.01])

    @pytest.mark.parametrize("raw", [None, []])
    def test_no_face(self, raw):
        frame = LandmarkIngest.from_mediapipe(raw, timestamp=3.0)

        assert not frame.has_face
        assert frame.timestamp == 3.0

    def test_wrong_shape_raises(self):
        with pytest.raises(ValueError, match="shape"):
            LandmarkIngest.from_mediapipe(np.zeros((478, 2)))

    def test_landmarks_are_read_only(self):
        frame = LandmarkIngest.from_mediapipe(np.zeros((478, 3)))

        with pytest.raises(ValueError):
            frame.landmarks[0, 0] = 1.0


class TestSessionFiles:
    """Test JSON session loading and saving."""

    def test_load_session(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({
            "source": "mediapipe",
            "frames": [
                {"timestamp": 0.0, "landmarks": _points()},
                {"timestamp": 0.033, "landmarks": None},
            ],
        }))

        frames = LandmarkIngest.from_json(path)

        assert len(frames) == 2
        assert frames[0].has_face
        assert not frames[1].has_face
        assert frames[1].timestamp == 0.033

    def test_load_single_frame(self, tmp_path):
        path = tmp_path / "face.json"
        path.write_text(json.dumps({"source": "MediaPipe", "landmarks": _points()}))

        frames = LandmarkIngest.from_json(path)

        assert len(frames) == 1
        assert frames[0].has_face

    def test_unsupported_source(self, tmp_path):
        path = tmp_path / "face.json"
        path.write_text(json.dumps({"source": "dlib", "landmarks": _points(68)}))

        with pytest.raises(ValueError, match="Unsupported"):
            LandmarkIngest.from_json(path)

    def test_missing_landmarks(self, tmp_path):
        path = tmp_path / "face.json"
        path.write_text(json.dumps({"source": "mediapipe"}))

        with pytest.raises(ValueError, match="missing"):
            LandmarkIngest.from_json(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            LandmarkIngest.from_json(tmp_path / "nope.json")

    def test_saved_session_loads_back(self, tmp_path, face_frame):
        path = tmp_path / "session.json"
        LandmarkIngest.to_json([face_frame, LandmarkFrame.empty(0.5)], path)

        frames = LandmarkIngest.from_json(path)

        assert len(frames) == 2
        assert np.allclose(frames[0].landmarks, face_frame.landmarks)
        assert not frames[1].has_face
        assert frames[1].timestamp == 0.5
