"""
Edge/contour based region detection.

Turns a frame (or the search window inside it) into candidate rectangles:
grayscale -> Canny edges -> contour tree -> bounding rectangles.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from .regions import Rect, to_frame_coords

logger = logging.getLogger(__name__)

CANNY_LOW_THRESHOLD = 50
CANNY_HIGH_THRESHOLD = 150
CANNY_APERTURE = 3


class FrameProcessingError(Exception):
    """Raised when a single frame cannot be processed."""
    pass


class FrameBuffers:
    """
    Per-call holder for intermediate images.

    Every buffer attached during the ``with`` block is dropped on exit,
    whether the block returns normally or raises.
    """

    def __init__(self):
        self._buffers: Dict[str, Any] = {}

    def __enter__(self) -> "FrameBuffers":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __setitem__(self, name: str, value: Any) -> None:
        self._buffers[name] = value

    def __getitem__(self, name: str) -> Any:
        return self._buffers[name]

    def __len__(self) -> int:
        return len(self._buffers)

    def release(self) -> None:
        self._buffers.clear()


def _validate_image(image: Any) -> None:
    if image is None:
        raise FrameProcessingError("Empty frame")
    if not isinstance(image, np.ndarray):
        raise FrameProcessingError(f"Frame is not an image array (got {type(image).__name__})")
    if image.size == 0 or image.ndim not in (2, 3):
        raise FrameProcessingError(f"Malformed frame with shape {image.shape}")
    if image.ndim == 3 and image.shape[2] not in (3, 4):
        raise FrameProcessingError(f"Unsupported channel count: {image.shape[2]}")
    if image.dtype != np.uint8:
        raise FrameProcessingError(f"Unsupported frame dtype: {image.dtype}")


class RegionDetector:
    """Produces candidate rectangles from edges and contours."""

    def __init__(
        self,
        low_threshold: int = CANNY_LOW_THRESHOLD,
        high_threshold: int = CANNY_HIGH_THRESHOLD,
        aperture: int = CANNY_APERTURE,
    ):
        self.low_threshold = low_threshold
        self.high_threshold = high_threshold
        self.aperture = aperture

        # Performance tracking
        self._count = 0
        self._total_time_ms = 0.0
        self._max_time_ms = 0.0

    def detect(self, image: np.ndarray, window: Optional[Rect] = None) -> List[Rect]:
        """
        Detect candidate rectangles.

        Args:
            image: BGR, BGRA or grayscale uint8 image
            window: Optional frame-local search window. When given, only
                that sub-image is analyzed and the returned rects are
                window-local (translate them with ``to_frame_coords``).

        Returns:
            Bounding rectangles in contour enumeration order

        Raises:
            FrameProcessingError: Frame is empty/malformed or OpenCV failed
        """
        _validate_image(image)
        start = time.perf_counter()

        with FrameBuffers() as buffers:
            try:
                if window is not None:
                    frame_h, frame_w = image.shape[:2]
                    clamped = window.clamp(frame_w, frame_h)
                    buffers["src"] = image[
                        clamped.y:clamped.y + clamped.height,
                        clamped.x:clamped.x + clamped.width,
                    ]
                else:
                    buffers["src"] = image

                src = buffers["src"]
                if src.ndim == 2:
                    buffers["gray"] = src
                elif src.shape[2] == 4:
                    buffers["gray"] = cv2.cvtColor(src, cv2.COLOR_BGRA2GRAY)
                else:
                    buffers["gray"] = cv2.cvtColor(src, cv2.COLOR_BGR2GRAY)

                buffers["edges"] = cv2.Canny(
                    buffers["gray"],
                    self.low_threshold,
                    self.high_threshold,
                    apertureSize=self.aperture,
                    L2gradient=False,
                )
                contours, hierarchy = cv2.findContours(
                    buffers["edges"], cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE
                )
                buffers["contours"] = contours
                buffers["hierarchy"] = hierarchy

                rects = []
                for contour in buffers["contours"]:
                    x, y, w, h = cv2.boundingRect(contour)
                    if w > 0 and h > 0:
                        rects.append(Rect(x, y, w, h))
            except cv2.error as e:
                raise FrameProcessingError(f"OpenCV failed during detection: {e}") from e

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        self._count += 1
        self._total_time_ms += elapsed_ms
        self._max_time_ms = max(self._max_time_ms, elapsed_ms)
        logger.debug(f"Detected {len(rects)} contour rect(s) in {elapsed_ms:.2f}ms")
        return rects

    def detect_in_frame(self, image: np.ndarray, window: Optional[Rect] = None) -> List[Rect]:
        """Detect and return rects in frame-local coordinates."""
        rects = self.detect(image, window)
        if window is None:
            return rects
        frame_h, frame_w = image.shape[:2]
        return to_frame_coords(rects, window.clamp(frame_w, frame_h))

    def warm_up(self, width: int = 64, height: int = 48) -> None:
        """Run one detection on a blank image so OpenCV initializes its kernels."""
        self.detect(np.zeros((height, width, 3), dtype=np.uint8))
        self.reset_performance_stats()

    def get_performance_stats(self) -> Dict[str, float]:
        avg = self._total_time_ms / self._count if self._count else 0.0
        return {"count": self._count, "avg_ms": avg, "max_ms": self._max_time_ms}

    def reset_performance_stats(self) -> None:
        self._count = 0
        self._total_time_ms = 0.0
        self._max_time_ms = 0.0
