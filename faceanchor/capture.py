"""
Live video capture and face landmark detection.

This module provides:
- VideoSource: OpenCV camera or video file reader
- FaceMeshDetector: MediaPipe FaceLandmarker producing LandmarkFrames
- DetectorWorker: background thread feeding a LatestFrameSlot
- TrackingSession: scoped ownership of capture, detector, worker and loop

OpenCV and MediaPipe are only needed for live tracking and are imported
lazily:
    pip install opencv-python mediapipe

On first run, the FaceLandmarker model (~4MB) is downloaded automatically
to ~/.cache/faceanchor/face_landmarker.task.
"""

import logging
import sys
import threading
import time
import urllib.request
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from .config import CaptureConfig, Config
from .landmarks import LandmarkFrame, LandmarkIngest
from .pipeline import (
    AcquisitionError,
    AnchorPipeline,
    FrameLoop,
    FrameResult,
    LatestFrameSlot,
)

logger = logging.getLogger(__name__)

LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "face_landmarker/face_landmarker/float16/1/face_landmarker.task"
)
MODEL_CACHE_DIR = Path.home() / ".cache" / "faceanchor"
LANDMARKER_MODEL_PATH = MODEL_CACHE_DIR / "face_landmarker.task"


def _ensure_model(url: str, path: Path) -> Path:
    """Download a model file if not cached."""
    if path.exists():
        return path

    path.parent.mkdir(parents=True, exist_ok=True)
    print(f"Downloading {path.name}...", file=sys.stderr)
    urllib.request.urlretrieve(url, str(path))
    print("Done.", file=sys.stderr)
    return path


def _parse_device(device: Union[int, str]) -> Union[int, str]:
    """Camera indices may arrive as strings from config files."""
    if isinstance(device, str) and device.isdigit():
        return int(device)
    return device


class VideoSource:
    """
    Frame reader over cv2.VideoCapture.

    Usage:
        with VideoSource(0, 640, 480) as source:
            image, timestamp = source.read()
    """

    def __init__(self, device: Union[int, str] = 0, width: int = 640, height: int = 480):
        self.device = _parse_device(device)
        self.width = width
        self.height = height
        self._cap = None

    def open(self) -> "VideoSource":
        """
        Acquire the capture device.

        Raises:
            AcquisitionError: If the device or file cannot be opened
        """
        try:
            import cv2
        except ImportError:
            raise ImportError(
                "OpenCV is required for live capture. "
                "Install with: pip install opencv-python"
            )

        cap = cv2.VideoCapture(self.device)
        if self.width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        if not cap.isOpened():
            cap.release()
            raise AcquisitionError(f"Cannot open video source: {self.device}")

        self._cap = cap
        logger.info("Opened video source %s", self.device)
        return self

    def read(self) -> Tuple[Optional[object], float]:
        """
        Read the next frame.

        Returns:
            (BGR image, timestamp in seconds); image is None at the end of a
            video file

        Raises:
            AcquisitionError: If the source is not open, or a camera read fails
        """
        if self._cap is None:
            raise AcquisitionError("Video source is not open")

        ok, image = self._cap.read()
        timestamp = time.monotonic()
        if not ok:
            if isinstance(self.device, int):
                raise AcquisitionError(f"Lost video source: camera {self.device}")
            return None, timestamp
        return image, timestamp

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Released video source %s", self.device)

    def __enter__(self) -> "VideoSource":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()


class FaceMeshDetector:
    """
    MediaPipe FaceLandmarker in video mode, one face, 478 landmarks.
    """

    def __init__(
        self,
        model_path: Optional[str] = None,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5
    ):
        self.model_path = model_path
        self.min_detection_confidence = min_detection_confidence
        self.min_tracking_confidence = min_tracking_confidence
        self._landmarker = None
        self._mp = None
        self._last_ms = -1

    @classmethod
    def from_config(cls, config: CaptureConfig) -> "FaceMeshDetector":
        return cls(
            model_path=config.model_path,
            min_detection_confidence=config.min_detection_confidence,
            min_tracking_confidence=config.min_tracking_confidence,
        )

    def open(self) -> "FaceMeshDetector":
        """
        Load the landmark model.

        Raises:
            AcquisitionError: If the model cannot be loaded
        """
        try:
            import mediapipe as mp
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision
        except ImportError:
            raise ImportError(
                "mediapipe is required for live tracking. "
                "Install with: pip install mediapipe"
            )

        try:
            model_path = self.model_path or str(
                _ensure_model(LANDMARKER_MODEL_URL, LANDMARKER_MODEL_PATH)
            )
            options = vision.FaceLandmarkerOptions(
                base_options=python.BaseOptions(model_asset_path=model_path),
                running_mode=vision.RunningMode.VIDEO,
                num_faces=1,
                min_face_detection_confidence=self.min_detection_confidence,
                min_face_presence_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
        except (OSError, RuntimeError, ValueError) as e:
            raise AcquisitionError(f"Cannot load face landmark model: {e}") from e

        self._mp = mp
        return self

    def detect(self, image_bgr, timestamp: float) -> LandmarkFrame:
        """
        Run the landmarker on one BGR frame.

        Returns:
            LandmarkFrame, empty when no face was found
        """
        import cv2
        import numpy as np

        if self._landmarker is None:
            raise AcquisitionError("Face detector is not open")

        rgb = np.ascontiguousarray(cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB))
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=rgb)

        # Video mode requires strictly increasing timestamps
        ms = max(int(timestamp * 1000), self._last_ms + 1)
        self._last_ms = ms

        result = self._landmarker.detect_for_video(image, ms)
        if not result.face_landmarks:
            return LandmarkFrame.empty(timestamp)
        return LandmarkIngest.from_mediapipe(result.face_landmarks[0], timestamp)

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None

    def __enter__(self) -> "FaceMeshDetector":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()


class DetectorWorker:
    """
    Background thread: read a frame, detect landmarks, publish, repeat.

    Runs at whatever pace capture and detection allow. After stop() the
    worker never publishes again, even if a detection was in flight.
    """

    def __init__(self, source, detector, slot: LatestFrameSlot):
        self.source = source
        self.detector = detector
        self.slot = slot
        self.error: Optional[BaseException] = None
        self.finished = False
        self._alive = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._alive.set()
        self._thread = threading.Thread(
            target=self._run, name="faceanchor-detector", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        try:
            while self._alive.is_set():
                image, timestamp = self.source.read()
                if image is None:
                    logger.info("End of video stream")
                    break

                frame = self.detector.detect(image, timestamp)
                if not self._alive.is_set():
                    break
                self.slot.publish(frame)
        except Exception as e:
            logger.error("Detector worker failed: %s", e)
            self.error = e
        finally:
            self.finished = True

    def check(self) -> bool:
        """
        Report worker health to the render loop.

        Returns:
            False once the stream has ended

        Raises:
            AcquisitionError: If capture or detection failed
        """
        if self.error is not None:
            if isinstance(self.error, AcquisitionError):
                raise self.error
            raise AcquisitionError(f"Detector failed: {self.error}") from self.error
        return not self.finished

    def stop(self, timeout: float = 2.0) -> None:
        self._alive.clear()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Detector thread did not stop within %.1fs", timeout)
            self._thread = None


class TrackingSession:
    """
    One live tracking session.

    Acquires the video source and detector on entry and releases both on
    exit, whether the loop ended normally, was stopped, or failed.

    Usage:
        with TrackingSession(config, on_result=print) as session:
            session.run(max_frames=300)
    """

    def __init__(
        self,
        config: Config,
        on_result: Optional[Callable[[FrameResult], None]] = None,
        pipeline: Optional[AnchorPipeline] = None,
        source: Optional[VideoSource] = None,
        detector: Optional[FaceMeshDetector] = None
    ):
        self.config = config
        self.pipeline = pipeline or AnchorPipeline.from_config(config)
        self.source = source or VideoSource(
            config.capture.device, config.capture.width, config.capture.height
        )
        self.detector = detector or FaceMeshDetector.from_config(config.capture)
        self.slot = LatestFrameSlot()
        self.worker = DetectorWorker(self.source, self.detector, self.slot)
        self.loop = FrameLoop(
            self.pipeline,
            self.slot,
            on_result=on_result,
            fps=config.capture.fps,
            check=self.worker.check,
        )

    def __enter__(self) -> "TrackingSession":
        try:
            self.source.open()
            self.detector.open()
        except Exception:
            self.close()
            raise

        self.pipeline.reset()
        self.worker.start()
        logger.info("Tracking session started")
        return self

    def run(self, max_frames: Optional[int] = None) -> int:
        """Run the render loop; see FrameLoop.run()."""
        return self.loop.run(max_frames)

    def stop(self) -> None:
        """Request the render loop to end (thread-safe)."""
        self.loop.stop()

    def close(self) -> None:
        self.loop.stop()
        self.worker.stop()
        self.detector.close()
        self.source.close()

    def __exit__(self, *exc) -> None:
        self.close()
        logger.info("Tracking session closed")
