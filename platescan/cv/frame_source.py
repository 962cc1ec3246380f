"""
Frame source for the live camera feed using OpenCV.

Owns the capture device, reads successive frames and normalizes each one to
the fixed output frame size (aspect-preserving center crop, full bleed).
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

from .device import (
    CaptureDevice,
    DeviceAcquisitionError,
    DeviceRequest,
    DeviceUnavailable,
    PermissionDenied,
    build_device_request,
    check_device_access,
    list_video_devices,
)

logger = logging.getLogger(__name__)

CROP_MODES = ("fill", "stretch")


@dataclass(frozen=True)
class Frame:
    """A single output frame owned by one pipeline cycle."""
    image: np.ndarray
    width: int
    height: int
    timestamp: float

    @classmethod
    def from_image(cls, image: np.ndarray, timestamp: Optional[float] = None) -> "Frame":
        height, width = image.shape[:2]
        return cls(
            image=image,
            width=width,
            height=height,
            timestamp=timestamp if timestamp is not None else time.monotonic(),
        )


def compute_crop_box(in_w: int, in_h: int, out_w: int, out_h: int) -> Tuple[int, int, int, int]:
    """
    Compute the centered source crop matching the output aspect ratio.

    If the source is wider than the target, the width is cropped to
    ``in_h * target`` and centered horizontally (full height); otherwise the
    height is cropped to ``in_w / target`` and centered vertically (full width).

    Args:
        in_w, in_h: Source frame size
        out_w, out_h: Output frame size

    Returns:
        Tuple of (x, y, width, height) in source pixels
    """
    if in_w <= 0 or in_h <= 0 or out_w <= 0 or out_h <= 0:
        raise ValueError(f"Invalid sizes: source {in_w}x{in_h}, output {out_w}x{out_h}")

    target = out_w / out_h
    src = in_w / in_h

    if src > target:
        crop_w = max(1, int(round(in_h * target)))
        crop_x = (in_w - crop_w) // 2
        return (crop_x, 0, crop_w, in_h)

    crop_h = max(1, int(round(in_w / target)))
    crop_y = (in_h - crop_h) // 2
    return (0, crop_y, in_w, crop_h)


def crop_to_output(image: np.ndarray, out_w: int, out_h: int, crop_mode: str = "fill") -> np.ndarray:
    """
    Scale a raw camera image into the fixed output size.

    ``fill`` crops to the output aspect first (no letterbox bars);
    ``stretch`` resizes the whole image.
    """
    in_h, in_w = image.shape[:2]
    if crop_mode == "fill":
        x, y, w, h = compute_crop_box(in_w, in_h, out_w, out_h)
        image = image[y:y + h, x:x + w]
    elif crop_mode != "stretch":
        raise ValueError(f"Invalid crop_mode: {crop_mode}. Must be one of {CROP_MODES}")

    if image.shape[1] == out_w and image.shape[0] == out_h:
        return image.copy()
    return cv2.resize(image, (out_w, out_h), interpolation=cv2.INTER_AREA)


class FrameSource:
    """
    Camera frame source.

    This class manages:
    - Device selection (rear camera preferred)
    - Opening the device with resolution and frame-rate hints
    - Reading frames and normalizing them to the output size
    """

    def __init__(
        self,
        output_width: int = 640,
        output_height: int = 480,
        crop_mode: str = "fill",
        preference: str = "",
        capture_width: int = 1280,
        capture_height: int = 720,
        max_fps: float = 30.0,
        capture_factory: Callable[..., Any] = cv2.VideoCapture,
        device_lister: Callable[[], List[CaptureDevice]] = list_video_devices,
    ):
        if crop_mode not in CROP_MODES:
            raise ValueError(f"Invalid crop_mode: {crop_mode}. Must be one of {CROP_MODES}")
        self.output_width = output_width
        self.output_height = output_height
        self.crop_mode = crop_mode
        self.preference = preference
        self.capture_width = capture_width
        self.capture_height = capture_height
        self.max_fps = max_fps
        self._capture_factory = capture_factory
        self._device_lister = device_lister

        self._capture = None
        self._request: Optional[DeviceRequest] = None

        # Statistics
        self._frames_read = 0
        self._frames_failed = 0

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    @property
    def request(self) -> Optional[DeviceRequest]:
        return self._request

    def start(self) -> DeviceRequest:
        """
        Acquire and open the capture device.

        Returns:
            The DeviceRequest that was opened

        Raises:
            DeviceUnavailable: No device could be opened or read
            PermissionDenied: The device node is not accessible
        """
        if self._capture is not None:
            logger.warning("Frame source already started")
            return self._request

        devices = self._device_lister()
        logger.info(f"Found {len(devices)} capture device(s)")
        for dev in devices:
            logger.debug(f"  - {dev}")

        request = build_device_request(
            devices,
            preference=self.preference,
            width=self.capture_width,
            height=self.capture_height,
            max_fps=self.max_fps,
        )
        check_device_access(request)
        self._capture = self._open(request)
        self._request = request
        return request

    def _open(self, request: DeviceRequest):
        logger.info(f"Opening capture device: {request.describe()}")
        cap = self._capture_factory(request.target)
        try:
            if cap is None or not cap.isOpened():
                raise DeviceUnavailable(f"OpenCV could not open {request.describe()}")

            cap.set(cv2.CAP_PROP_FRAME_WIDTH, request.width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, request.height)
            cap.set(cv2.CAP_PROP_FPS, request.max_fps)

            ret, test_frame = cap.read()
            if not ret or test_frame is None:
                raise DeviceUnavailable(f"Opened {request.describe()} but could not read frames")
        except DeviceAcquisitionError:
            if cap is not None:
                cap.release()
            raise
        except cv2.error as e:
            if cap is not None:
                cap.release()
            raise DeviceUnavailable(f"OpenCV error opening {request.describe()}: {e}") from e

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = cap.get(cv2.CAP_PROP_FPS)
        logger.info(f"Capture initialized: {width}x{height} @ {fps} FPS")
        return cap

    def read(self) -> Optional[Frame]:
        """
        Read the next frame normalized to the output size.

        Returns:
            Frame, or None if the device has not produced a usable frame
        """
        capture = self._capture
        if capture is None:
            return None

        ret, raw = capture.read()
        if not ret or raw is None or raw.size == 0:
            self._frames_failed += 1
            logger.debug("Failed to read frame")
            return None

        # Device-reported dimensions may change between reads
        image = crop_to_output(raw, self.output_width, self.output_height, self.crop_mode)
        del raw
        self._frames_read += 1
        return Frame.from_image(image)

    def stop(self) -> None:
        """Release the OpenCV VideoCapture."""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Capture device released")

    def get_status(self) -> Dict[str, Any]:
        status = {
            "open": self.is_open,
            "frames_read": self._frames_read,
            "frames_failed": self._frames_failed,
            "output": {"width": self.output_width, "height": self.output_height},
            "crop_mode": self.crop_mode,
        }
        if self._request is not None:
            status["device"] = self._request.describe()
        return status


__all__ = [
    "CROP_MODES",
    "DeviceAcquisitionError",
    "DeviceUnavailable",
    "Frame",
    "FrameSource",
    "PermissionDenied",
    "compute_crop_box",
    "crop_to_output",
]
