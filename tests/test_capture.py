"""
Tests for the detector worker and tracking session.

Capture and detection are replaced by fakes, so OpenCV and MediaPipe are
not needed.
"""

import threading
import time

import pytest

from faceanchor.capture import DetectorWorker, TrackingSession, VideoSource, _parse_device
from faceanchor.config import Config
from faceanchor.landmarks import LandmarkFrame
from faceanchor.pipeline import AcquisitionError, LatestFrameSlot


class FakeSource:
    """Yields `n_frames` dummy images (endless if None), then end of stream."""

    def __init__(self, n_frames=3, fail_open=False, delay=0.0):
        self.n_frames = n_frames
        self.delay = delay
        self.fail_open = fail_open
        self.opened = False
        self.closed = False
        self.reads = 0

    def open(self):
        if self.fail_open:
            raise AcquisitionError("no camera")
        self.opened = True
        return self

    def read(self):
        self.reads += 1
        time.sleep(self.delay)
        if self.n_frames is not None and self.reads > self.n_frames:
            return None, float(self.reads)
        return object(), float(self.reads)

    def close(self):
        self.closed = True


class FakeDetector:
    """Returns a prepared frame for every image."""

    def __init__(self, frame, error=None):
        self.frame = frame
        self.error = error
        self.closed = False

    def open(self):
        return self

    def detect(self, image, timestamp):
        if self.error is not None:
            raise self.error
        return self.frame

    def close(self):
        self.closed = True


class FailingCapture:
    """cv2.VideoCapture stand-in whose reads always fail."""

    def __init__(self):
        self.released = False

    def read(self):
        return False, None

    def release(self):
        self.released = True


def _failing_source(device):
    source = VideoSource(device)
    source._cap = FailingCapture()
    return source


def _wait(worker, timeout=2.0):
    worker._thread.join(timeout)


class TestParseDevice:

    def test_index(self):
        assert _parse_device("1") == 1

    def test_path(self):
        assert _parse_device("clip.mp4") == "clip.mp4"


class TestVideoSourceRead:
    """Test how a failed read is reported."""

    def test_not_open_raises(self):
        with pytest.raises(AcquisitionError, match="not open"):
            VideoSource(0).read()

    def test_camera_read_failure_raises(self):
        source = _failing_source(0)

        with pytest.raises(AcquisitionError, match="camera 0"):
            source.read()

    def test_file_read_failure_is_end_of_stream(self):
        image, timestamp = _failing_source("clip.mp4").read()

        assert image is None
        assert isinstance(timestamp, float)

    def test_close_releases_capture(self):
        source = _failing_source(0)
        capture = source._cap

        source.close()

        assert capture.released
        assert source._cap is None


class TestDetectorWorker:
    """Test the background detection thread."""

    def test_publishes_until_end_of_stream(self, face_frame):
        slot = LatestFrameSlot()
        worker = DetectorWorker(FakeSource(3), FakeDetector(face_frame), slot)

        worker.start()
        _wait(worker)

        assert slot.take() is face_frame
        assert slot.dropped == 2
        assert worker.check() is False

    def test_detector_error_surfaces(self, face_frame):
        worker = DetectorWorker(
            FakeSource(3), FakeDetector(face_frame, error=RuntimeError("bad model")),
            LatestFrameSlot()
        )

        worker.start()
        _wait(worker)

        with pytest.raises(AcquisitionError, match="bad model"):
            worker.check()

    def test_lost_camera_surfaces(self, face_frame):
        """A failed camera read is reported as an error, not end of stream."""
        worker = DetectorWorker(
            _failing_source(0), FakeDetector(face_frame), LatestFrameSlot()
        )

        worker.start()
        _wait(worker)

        with pytest.raises(AcquisitionError, match="Lost video source"):
            worker.check()

    def test_no_publish_after_stop(self, face_frame):
        slot = LatestFrameSlot()
        entered = threading.Event()
        release = threading.Event()

        class SlowDetector(FakeDetector):
            def detect(self, image, timestamp):
                entered.set()
                release.wait(2.0)
                return self.frame

        worker = DetectorWorker(FakeSource(100), SlowDetector(face_frame), slot)
        worker.start()
        assert entered.wait(2.0)

        worker._alive.clear()
        release.set()
        worker.stop()

        assert slot.take() is None


class TestTrackingSession:
    """Test session resource ownership."""

    def test_runs_and_releases(self, face_frame):
        source, detector = FakeSource(None, delay=0.001), FakeDetector(face_frame)
        results = []
        config = Config()
        config.capture.fps = 1000.0

        with TrackingSession(
            config, on_result=results.append, source=source, detector=detector
        ) as session:
            delivered = session.run(max_frames=2)

        assert delivered == 2
        assert len(results) == 2
        assert source.opened
        assert source.closed and detector.closed

    def test_open_failure_releases(self, face_frame):
        source, detector = FakeSource(fail_open=True), FakeDetector(face_frame)

        with pytest.raises(AcquisitionError):
            with TrackingSession(Config(), source=source, detector=detector):
                pass

        assert source.closed and detector.closed

    def test_stream_end_stops_loop(self):
        config = Config()
        config.capture.fps = 1000.0
        session = TrackingSession(
            config, source=FakeSource(2), detector=FakeDetector(LandmarkFrame.empty())
        )

        with session:
            delivered = session.run()

        assert delivered >= 0
        assert not session.loop.running
