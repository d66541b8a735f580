#!/usr/bin/env python3
"""
Record a face landmark session from a camera or video file.

Runs MediaPipe FaceLandmarker over every frame and writes the raw landmarks
(478 points, or null when no face is found) with their timestamps to a JSON
session file, which can be replayed through the anchoring pipeline without
a camera.

Requirements:
    pip install mediapipe opencv-python

Usage:
    python record_landmarks.py clip.mp4 -o session.json
    python record_landmarks.py 0 -o session.json --frames 300
    faceanchor --replay session.json -o transforms.jsonl
"""

import argparse
import sys

from faceanchor.capture import FaceMeshDetector, VideoSource
from faceanchor.landmarks import LandmarkFrame, LandmarkIngest
from faceanchor.pipeline import AcquisitionError


def record(source: VideoSource, detector: FaceMeshDetector, max_frames: int = None) -> list:
    """
    Detect landmarks on consecutive frames.

    Timestamps are rebased so the session starts at 0.

    Returns:
        List of LandmarkFrames
    """
    frames = []
    start = None

    while max_frames is None or len(frames) < max_frames:
        image, timestamp = source.read()
        if image is None:
            break
        if start is None:
            start = timestamp

        frame = detector.detect(image, timestamp)
        frames.append(LandmarkFrame(frame.landmarks, timestamp - start))

    return frames


def main():
    parser = argparse.ArgumentParser(
        description="Record face landmarks from a camera or video for faceanchor --replay"
    )
    parser.add_argument(
        "source",
        help="Camera index or video file path"
    )
    parser.add_argument(
        "-o", "--output",
        required=True,
        help="Output JSON session path"
    )
    parser.add_argument(
        "--frames",
        type=int,
        help="Stop after this many frames (default: until end of stream)"
    )
    parser.add_argument(
        "--landmarker-model",
        help="Path to FaceLandmarker .task model (auto-downloaded if not specified)"
    )
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=0.5,
        help="Minimum face detection confidence 0-1 (default: 0.5)"
    )

    args = parser.parse_args()

    try:
        with VideoSource(args.source) as source, FaceMeshDetector(
            model_path=args.landmarker_model,
            min_detection_confidence=args.min_confidence,
        ) as detector:
            frames = record(source, detector, args.frames)
    except AcquisitionError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    LandmarkIngest.to_json(frames, args.output)
    n_faces = sum(1 for f in frames if f.has_face)
    print(
        f"Recorded {len(frames)} frames ({n_faces} with a face) to: {args.output}",
        file=sys.stderr
    )


if __name__ == "__main__":
    main()
