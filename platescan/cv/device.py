"""
Camera device enumeration and selection for plate scanning.

Plates are read through the camera facing away from the operator, so
selection prefers a device whose label says "back" or "rear". Labels come
from the V4L2 card name on Linux (``v4l2-ctl --info``); other platforms only
expose numbered indices, which never match and fall through to a generic
request carrying an environment-facing hint.
"""

import logging
import platform
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import cv2

logger = logging.getLogger(__name__)

IS_LINUX = platform.system() == "Linux"

REAR_LABEL_KEYWORDS = ("back", "rear")


class DeviceAcquisitionError(Exception):
    """Raised when no usable capture device can be acquired."""
    pass


class DeviceUnavailable(DeviceAcquisitionError):
    """No device found, or the device could not be opened or read."""
    pass


class PermissionDenied(DeviceAcquisitionError):
    """The device exists but the process is not allowed to open it."""
    pass


class CaptureDevice:
    """Represents a video capture device."""

    def __init__(self, device_path: str, device_index: int, name: str = ""):
        self.device_path = device_path
        self.device_index = device_index
        self.name = name or f"Video Device {device_index}"

    def __repr__(self):
        return f"CaptureDevice(path={self.device_path}, index={self.device_index}, name={self.name})"


@dataclass
class DeviceRequest:
    """
    Capture configuration handed to OpenCV when opening a device.

    ``device`` is None for a generic request; ``facing`` is only a hint
    (OpenCV has no facing selection, it is kept for logging and status).
    """
    device: Optional[CaptureDevice] = None
    facing: str = "environment"
    width: int = 1280
    height: int = 720
    max_fps: float = 30.0
    fallback_index: int = 0

    @property
    def target(self):
        """Value passed to cv2.VideoCapture."""
        if self.device is not None:
            return self.device.device_index
        return self.fallback_index

    def describe(self) -> str:
        if self.device is not None:
            return f"{self.device.name} ({self.device.device_path})"
        return f"default device index {self.fallback_index} (facing={self.facing})"


def list_video_devices() -> List[CaptureDevice]:
    """
    Enumerate all video devices available on the system.

    Returns:
        List of CaptureDevice objects with actual capture capability
    """
    if IS_LINUX:
        return _list_video_devices_linux()
    return _list_video_devices_probe()


def _list_video_devices_linux() -> List[CaptureDevice]:
    """
    List /dev/video* nodes that can deliver frames, labelled with their card name.

    The label is what rear-camera matching looks at, so a node whose name
    cannot be read falls back to "Video Device N" and is never picked as rear.
    Phone and laptop drivers expose extra nodes per sensor that carry no
    pixel formats; those are skipped so they are never opened.
    """
    devices = []
    for video_path in sorted(Path("/dev").glob("video*")):
        suffix = video_path.name[len("video"):]
        if not suffix.isdigit() or not video_path.is_char_device():
            continue

        path = str(video_path)
        formats = _v4l2_query(path, "--list-formats-ext")
        if formats is not None and not parse_has_capture_formats(formats):
            logger.debug(f"Skipping {path}: no capture formats")
            continue

        info = _v4l2_query(path, "--info")
        device = CaptureDevice(
            device_path=path,
            device_index=int(suffix),
            name=parse_card_name(info) if info else "",
        )
        devices.append(device)
        logger.debug(f"Capture device: {device}")

    return devices


def _list_video_devices_probe(max_devices_to_check: int = 10) -> List[CaptureDevice]:
    """Probe device indices with OpenCV where no device filesystem is available."""
    devices = []
    for device_index in range(max_devices_to_check):
        cap = cv2.VideoCapture(device_index)
        try:
            if cap.isOpened():
                devices.append(CaptureDevice(
                    device_path=f"index://{device_index}",
                    device_index=device_index,
                    name=f"Camera {device_index}",
                ))
            else:
                logger.debug(f"No device at index {device_index}")
        finally:
            cap.release()
    return devices


def _v4l2_query(device_path: str, *args: str) -> Optional[str]:
    """
    Run ``v4l2-ctl --device PATH ARGS`` and return its stdout.

    Returns None when the tool is missing, times out or fails, so callers
    can tell "unknown" apart from an empty answer.
    """
    try:
        result = subprocess.run(
            ["v4l2-ctl", "--device", device_path, *args],
            capture_output=True,
            text=True,
            timeout=2,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"v4l2-ctl {' '.join(args)} failed for {device_path}: {e}")
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def parse_card_name(info: str) -> str:
    """Extract the "Card type" label from ``v4l2-ctl --info`` output."""
    for line in info.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "Card type":
            return value.strip()
    return ""


def parse_has_capture_formats(formats: str) -> bool:
    """True if ``--list-formats-ext`` lists at least one entry like "[0]: 'MJPG'"."""
    return any(
        line.strip().startswith("[") and ":" in line
        for line in formats.splitlines()
    )


def select_rear_device(devices: List[CaptureDevice]) -> Optional[CaptureDevice]:
    """
    Return the first device whose label names a rear/back camera.

    Matching is a case-insensitive substring test, in enumeration order.
    """
    for device in devices:
        name_lower = (device.name or "").lower()
        if any(keyword in name_lower for keyword in REAR_LABEL_KEYWORDS):
            return device
    return None


def _matches_preference(device: CaptureDevice, preference: str) -> bool:
    if preference.isdigit():
        return device.device_index == int(preference)
    if preference.startswith("/dev/"):
        return device.device_path == preference
    return preference.lower() in (device.name or "").lower()


def build_device_request(
    devices: List[CaptureDevice],
    preference: str = "",
    width: int = 1280,
    height: int = 720,
    max_fps: float = 30.0,
) -> DeviceRequest:
    """
    Decide which device to open.

    Priority order:
    1. Device matching an explicit preference (index, path or name fragment)
    2. Device labelled as rear/back facing
    3. Generic request with an environment-facing hint

    Args:
        devices: Enumerated devices (may be empty)
        preference: Optional explicit device preference
        width, height: Resolution hints
        max_fps: Frame-rate cap

    Returns:
        DeviceRequest describing what to open
    """
    request = DeviceRequest(width=width, height=height, max_fps=max_fps)

    if preference:
        for device in devices:
            if _matches_preference(device, preference):
                logger.info(f"Selected preferred device: {device}")
                request.device = device
                return request
        if preference.isdigit():
            request.fallback_index = int(preference)
        logger.warning(f"Preferred device {preference!r} not found among {len(devices)} device(s)")

    rear = select_rear_device(devices)
    if rear is not None:
        logger.info(f"Found rear camera: {rear.name}")
        request.device = rear
        return request

    logger.warning("Rear camera not found, using default.")
    return request


def check_device_access(request: DeviceRequest) -> None:
    """
    Validate that the requested device node can be opened.

    Only applies to devices with a filesystem path; generic requests are
    validated by actually opening them.

    Raises:
        DeviceUnavailable: Device node is missing or not a character device
        PermissionDenied: Device node exists but cannot be opened
    """
    if request.device is None or not request.device.device_path.startswith("/dev/"):
        return

    device_path = Path(request.device.device_path)
    if not device_path.exists():
        raise DeviceUnavailable(f"Device does not exist: {device_path}")
    if not device_path.is_char_device():
        raise DeviceUnavailable(f"Device is not a character device: {device_path}")

    try:
        with open(device_path, "rb"):
            pass
    except PermissionError as e:
        raise PermissionDenied(f"Permission denied accessing device: {device_path}") from e
    except OSError as e:
        raise DeviceUnavailable(f"Error accessing device {device_path}: {e}") from e
