"""
Thread-safe frame buffer for storing the latest annotated frame in memory.
"""

import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple


@dataclass
class FrameMetadata:
    """Metadata for a rendered frame."""
    timestamp: float
    width: int
    height: int
    size_bytes: int
    # Selected plate candidate (frame-local), if any
    region_detected: bool = False
    region_x: int = 0
    region_y: int = 0
    region_width: int = 0
    region_height: int = 0
    status: str = ""
    feedback: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class FrameBuffer:
    """
    Thread-safe in-memory storage for the latest rendered frame.

    Stores frames as JPEG-encoded bytes so the web surface can serve them
    without re-encoding.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame_data: Optional[bytes] = None
        self._metadata: Optional[FrameMetadata] = None

    def update(self, jpeg_data: bytes, metadata: FrameMetadata) -> None:
        """
        Update the buffer with a new JPEG-encoded frame.

        Args:
            jpeg_data: JPEG-encoded frame data
            metadata: Frame metadata (size_bytes is recomputed)
        """
        metadata.size_bytes = len(jpeg_data)
        with self._lock:
            self._frame_data = jpeg_data
            self._metadata = metadata

    def get_latest(self) -> Optional[Tuple[bytes, FrameMetadata]]:
        """
        Retrieve the latest frame and its metadata.

        Returns:
            Tuple of (jpeg_data, metadata) or None if no frame available
        """
        with self._lock:
            if self._frame_data is None or self._metadata is None:
                return None
            return (self._frame_data, self._metadata)

    def age_seconds(self) -> Optional[float]:
        with self._lock:
            if self._metadata is None:
                return None
            return time.time() - self._metadata.timestamp

    def clear(self) -> None:
        """Clear the frame buffer."""
        with self._lock:
            self._frame_data = None
            self._metadata = None

    def has_frame(self) -> bool:
        """Check if a frame is available."""
        with self._lock:
            return self._frame_data is not None
