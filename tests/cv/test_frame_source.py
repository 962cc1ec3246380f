"""
Unit tests for platescan.cv.frame_source and platescan.cv.device.

Uses a fake VideoCapture so no camera is needed.
"""

import numpy as np
import pytest

from platescan.cv.device import (
    CaptureDevice,
    DeviceUnavailable,
    build_device_request,
    parse_card_name,
    parse_has_capture_formats,
    select_rear_device,
)
from platescan.cv.frame_source import FrameSource, compute_crop_box, crop_to_output


class FakeCapture:
    """Minimal stand-in for cv2.VideoCapture."""

    def __init__(self, frames, opened=True):
        self.frames = list(frames)
        self.opened = opened
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def get(self, prop):
        return self.props.get(prop, 0)

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


def _devices(*names):
    return [CaptureDevice(f"index://{i}", i, name) for i, name in enumerate(names)]


class TestCropBox:

    def test_wider_source_crops_width(self):
        assert compute_crop_box(1280, 720, 640, 480) == (160, 0, 960, 720)

    def test_taller_source_crops_height(self):
        assert compute_crop_box(480, 640, 640, 480) == (0, 140, 480, 360)

    def test_matching_aspect_keeps_everything(self):
        assert compute_crop_box(1280, 960, 640, 480) == (0, 0, 1280, 960)

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            compute_crop_box(0, 720, 640, 480)

    def test_crop_to_output_full_bleed(self):
        raw = np.zeros((720, 1280, 3), dtype=np.uint8)
        # Mark the columns that must be cropped away
        raw[:, :160] = 255
        raw[:, 1120:] = 255
        out = crop_to_output(raw, 640, 480, "fill")
        assert out.shape == (480, 640, 3)
        assert out.max() == 0

    def test_stretch_mode_keeps_edges(self):
        raw = np.zeros((720, 1280, 3), dtype=np.uint8)
        raw[:, :160] = 255
        out = crop_to_output(raw, 640, 480, "stretch")
        assert out.shape == (480, 640, 3)
        assert out[:, :40].min() == 255

    def test_invalid_crop_mode(self):
        with pytest.raises(ValueError):
            crop_to_output(np.zeros((10, 10, 3), dtype=np.uint8), 4, 3, "letterbox")


class TestDeviceSelection:

    def test_rear_label_match_is_case_insensitive(self):
        devices = _devices("Front Camera", "Back Camera", "REAR wide")
        assert select_rear_device(devices).name == "Back Camera"
        assert select_rear_device(_devices("USB Webcam")) is None

    def test_generic_request_when_no_rear(self):
        request = build_device_request(_devices("USB Webcam"))
        assert request.device is None
        assert request.facing == "environment"
        assert request.target == 0

    def test_preference_overrides_rear(self):
        devices = _devices("Back Camera", "USB Webcam")
        request = build_device_request(devices, preference="webcam")
        assert request.device.name == "USB Webcam"

    def test_missing_numeric_preference_used_as_fallback(self):
        request = build_device_request([], preference="3")
        assert request.device is None
        assert request.target == 3


class TestFrameSource:

    def _source(self, capture, devices=None):
        return FrameSource(
            output_width=640,
            output_height=480,
            capture_factory=lambda target: capture,
            device_lister=lambda: devices or [],
        )

    def test_start_and_read(self):
        frames = [np.full((720, 1280, 3), 10, dtype=np.uint8) for _ in range(3)]
        capture = FakeCapture(frames)
        source = self._source(capture, _devices("Back Camera"))

        request = source.start()
        assert request.device.name == "Back Camera"
        assert source.is_open

        frame = source.read()
        assert frame.width == 640 and frame.height == 480
        assert frame.image.shape == (480, 640, 3)

    def test_read_returns_none_when_no_frame(self):
        capture = FakeCapture([np.zeros((480, 640, 3), dtype=np.uint8)])
        source = self._source(capture)
        source.start()  # consumes the test frame
        assert source.read() is None
        assert source.get_status()["frames_failed"] == 1

    def test_read_before_start(self):
        assert self._source(FakeCapture([])).read() is None

    def test_unopened_device_raises(self):
        capture = FakeCapture([], opened=False)
        source = self._source(capture)
        with pytest.raises(DeviceUnavailable):
            source.start()
        assert capture.released
        assert not source.is_open

    def test_unreadable_device_raises(self):
        capture = FakeCapture([])
        with pytest.raises(DeviceUnavailable):
            self._source(capture).start()
        assert capture.released

    def test_stop_releases(self):
        capture = FakeCapture([np.zeros((480, 640, 3), dtype=np.uint8)])
        source = self._source(capture)
        source.start()
        source.stop()
        assert capture.released
        assert not source.is_open


V4L2_INFO = """Driver Info:
	Driver name      : uvcvideo
	Card type        : Rear Camera: Rear Camera
	Bus info         : usb-0000:00:14.0-6
"""

V4L2_FORMATS = """ioctl: VIDIOC_ENUM_FMT
	Type: Video Capture

	[0]: 'MJPG' (Motion-JPEG, compressed)
		Size: Discrete 1280x720
"""

V4L2_METADATA_ONLY = """ioctl: VIDIOC_ENUM_FMT
	Type: Video Capture
"""


class TestV4l2Parsing:

    def test_card_name_becomes_rear_label(self):
        name = parse_card_name(V4L2_INFO)
        assert name == "Rear Camera: Rear Camera"
        devices = [CaptureDevice("/dev/video0", 0, ""), CaptureDevice("/dev/video2", 2, name)]
        assert select_rear_device(devices).device_index == 2

    def test_missing_card_name(self):
        assert parse_card_name("Driver Info:\n\tDriver name : uvcvideo\n") == ""

    def test_capture_formats(self):
        assert parse_has_capture_formats(V4L2_FORMATS)
        assert not parse_has_capture_formats(V4L2_METADATA_ONLY)
