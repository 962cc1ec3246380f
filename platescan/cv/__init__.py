"""
Computer Vision module for plate scanning.

This module provides:
- Camera device enumeration and rear-camera selection
- Frame capture with aspect-preserving crop to the output size
- Edge/contour region detection and plate-shape selection
- Plate crop encoding for the recognition service
- Overlay rendering into an in-memory JPEG buffer
"""

from .candidate_selector import SelectorConfig, filter_candidates, is_plate_shaped, select_candidate
from .capture_encoder import CaptureEncodeError, CaptureEncoder, build_capture_request, to_data_url
from .device import CaptureDevice, DeviceRequest, build_device_request, list_video_devices, select_rear_device
from .frame_buffer import FrameBuffer, FrameMetadata
from .frame_source import (
    DeviceAcquisitionError,
    DeviceUnavailable,
    Frame,
    FrameSource,
    PermissionDenied,
    compute_crop_box,
    crop_to_output,
)
from .overlay import OverlayRenderer
from .region_detector import FrameProcessingError, RegionDetector
from .regions import Rect, SearchWindow, to_frame_coords, to_window_coords

__all__ = [
    # Geometry
    "Rect",
    "SearchWindow",
    "to_frame_coords",
    "to_window_coords",

    # Device management
    "CaptureDevice",
    "DeviceRequest",
    "build_device_request",
    "list_video_devices",
    "select_rear_device",

    # Frame source
    "DeviceAcquisitionError",
    "DeviceUnavailable",
    "PermissionDenied",
    "Frame",
    "FrameSource",
    "compute_crop_box",
    "crop_to_output",

    # Detection
    "FrameProcessingError",
    "RegionDetector",
    "SelectorConfig",
    "filter_candidates",
    "is_plate_shaped",
    "select_candidate",

    # Encoding
    "CaptureEncodeError",
    "CaptureEncoder",
    "build_capture_request",
    "to_data_url",

    # Rendering
    "FrameBuffer",
    "FrameMetadata",
    "OverlayRenderer",
]
