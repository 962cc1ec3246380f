"""
Rendering boundary: draws the selected candidate and status lines on the
frame and publishes the result to a FrameBuffer.
"""

import logging
import time
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from .frame_buffer import FrameBuffer, FrameMetadata
from .regions import Rect

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    def render(self, image: np.ndarray, rect: Optional[Rect], color: Tuple[int, int, int],
               status: str, feedback_text: str) -> None:
        ...


def draw_rect(
    image: np.ndarray,
    rect: Rect,
    color: Tuple[int, int, int] = (0, 0, 255),
    thickness: int = 2,
) -> np.ndarray:
    """Draw a rect outline in place and return the image."""
    cv2.rectangle(image, (rect.x, rect.y), (rect.x + rect.width, rect.y + rect.height), color, thickness)
    return image


def draw_status_lines(image: np.ndarray, lines, origin: Tuple[int, int] = (8, 8)) -> np.ndarray:
    """Draw text lines on a filled background box in the top-left corner."""
    font = cv2.FONT_HERSHEY_SIMPLEX
    font_scale = 0.55
    font_thickness = 1
    x, y = origin
    for line in lines:
        text_size = cv2.getTextSize(line, font, font_scale, font_thickness)[0]
        cv2.rectangle(
            image,
            (x - 4, y - 2),
            (x + text_size[0] + 4, y + text_size[1] + 6),
            (32, 32, 32),
            -1  # Filled
        )
        cv2.putText(
            image,
            line,
            (x, y + text_size[1] + 2),
            font,
            font_scale,
            (255, 255, 255),  # White text
            font_thickness
        )
        y += text_size[1] + 12
    return image


class OverlayRenderer:
    """Annotates frames and stores them as JPEG for the web surface."""

    def __init__(self, frame_buffer: Optional[FrameBuffer] = None, jpeg_quality: int = 70):
        self.frame_buffer = frame_buffer or FrameBuffer()
        self.jpeg_quality = jpeg_quality
        self._frames_rendered = 0

    @property
    def frames_rendered(self) -> int:
        return self._frames_rendered

    def annotate(
        self,
        image: np.ndarray,
        rect: Optional[Rect],
        color: Tuple[int, int, int],
        status: str,
        feedback_text: str,
    ) -> np.ndarray:
        """Return an annotated copy of the frame."""
        result = image.copy()
        if rect is not None:
            draw_rect(result, rect, color)
        draw_status_lines(result, [f"Status: {status}", f"Detected Plate: {feedback_text}"])
        return result

    def render(
        self,
        image: np.ndarray,
        rect: Optional[Rect],
        color: Tuple[int, int, int],
        status: str,
        feedback_text: str,
    ) -> None:
        annotated = self.annotate(image, rect, color, status, feedback_text)
        encode_param = [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
        ok, jpeg_data = cv2.imencode(".jpg", annotated, encode_param)
        if not ok or jpeg_data is None:
            logger.warning("Failed to encode frame as JPEG")
            return

        height, width = annotated.shape[:2]
        metadata = FrameMetadata(
            timestamp=time.time(),
            width=width,
            height=height,
            size_bytes=0,
            status=status,
            feedback=feedback_text,
        )
        if rect is not None:
            metadata.region_detected = True
            metadata.region_x, metadata.region_y = rect.x, rect.y
            metadata.region_width, metadata.region_height = rect.width, rect.height

        self.frame_buffer.update(jpeg_data.tobytes(), metadata)
        self._frames_rendered += 1
