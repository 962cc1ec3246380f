"""
Crop the selected plate region and serialize it for the recognition service.
"""

import base64
import logging
from typing import Any, Dict

import cv2
import numpy as np

from .regions import Rect

logger = logging.getLogger(__name__)

IMAGE_FIELD = "image"


class CaptureEncodeError(Exception):
    """Raised when a crop cannot be encoded."""
    pass


def trim_rect(rect: Rect, vertical_trim_margin: int = 0) -> Rect:
    """
    Shrink a rect by ``vertical_trim_margin`` pixels at top and bottom.

    Height is clamped to at least 1 pixel. When the margins would eat the
    whole rect, the remaining row is its middle one, so the result always
    lies inside ``rect``.
    """
    if vertical_trim_margin <= 0:
        return rect
    height = rect.height - 2 * vertical_trim_margin
    if height < 1:
        return Rect(rect.x, rect.y + (rect.height - 1) // 2, rect.width, 1)
    return Rect(rect.x, rect.y + vertical_trim_margin, rect.width, height)


class CaptureEncoder:
    """JPEG encoder for plate crops."""

    def __init__(self, jpeg_quality: int = 90, vertical_trim_margin: int = 0):
        """
        Args:
            jpeg_quality: JPEG compression quality (0-100, higher is better)
            vertical_trim_margin: Pixels removed from top and bottom of each
                crop to exclude plate-frame artifacts
        """
        self.jpeg_quality = jpeg_quality
        self.vertical_trim_margin = vertical_trim_margin

    def crop(self, image: np.ndarray, rect: Rect) -> np.ndarray:
        """
        Copy the (trimmed) rect into a standalone buffer.

        The rect must be frame-local. It is clamped to the frame so the
        result is never empty.
        """
        frame_h, frame_w = image.shape[:2]
        region = trim_rect(rect, self.vertical_trim_margin).clamp(frame_w, frame_h)
        # Copy so the crop doesn't keep the whole frame alive
        return image[region.y:region.y + region.height, region.x:region.x + region.width].copy()

    def encode(self, image: np.ndarray, rect: Rect) -> bytes:
        """
        Crop and JPEG-compress a region.

        Args:
            image: Full output frame (BGR)
            rect: Frame-local region to send

        Returns:
            JPEG bytes

        Raises:
            CaptureEncodeError: If OpenCV fails to encode the crop
        """
        crop = self.crop(image, rect)
        encode_param = [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
        try:
            ok, jpeg_data = cv2.imencode(".jpg", crop, encode_param)
        except cv2.error as e:
            raise CaptureEncodeError(f"Failed to encode crop: {e}") from e
        if not ok or jpeg_data is None:
            raise CaptureEncodeError("Failed to encode crop as JPEG")

        jpeg_bytes = jpeg_data.tobytes()
        logger.debug(f"Encoded {crop.shape[1]}x{crop.shape[0]} crop to {len(jpeg_bytes)} bytes")
        return jpeg_bytes


def to_data_url(jpeg_bytes: bytes) -> str:
    """Wrap JPEG bytes as a base64 data URL."""
    return "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode("ascii")


def build_capture_request(jpeg_bytes: bytes) -> Dict[str, Any]:
    """Request body for the recognition service."""
    return {IMAGE_FIELD: to_data_url(jpeg_bytes)}
