"""
Debounce + cooldown gate for recognition requests.

A capture fires only after a candidate has been seen on
``detection_frame_threshold`` consecutive frames AND more than
``cooldown_seconds`` have passed since the previous capture.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict

logger = logging.getLogger(__name__)


@dataclass
class ThrottleConfig:
    detection_frame_threshold: int = 60
    cooldown_seconds: float = 3.0


@dataclass
class ThrottleState:
    """Process-lifetime throttle counters."""
    consecutive_detection_frames: int = 0
    last_capture_timestamp: float = -math.inf

    def reset(self) -> None:
        self.consecutive_detection_frames = 0
        self.last_capture_timestamp = -math.inf

    def to_dict(self) -> Dict[str, Any]:
        last = self.last_capture_timestamp
        return {
            "consecutive_detection_frames": self.consecutive_detection_frames,
            "last_capture_timestamp": None if math.isinf(last) else last,
        }


class CaptureThrottler:
    """Owns and mutates a ThrottleState."""

    def __init__(self, config: ThrottleConfig = None, state: ThrottleState = None):
        self.config = config or ThrottleConfig()
        self.state = state if state is not None else ThrottleState()

    def evaluate(self, has_candidate: bool, now: float) -> bool:
        """
        Update counters for one frame and decide whether to capture.

        Args:
            has_candidate: Whether this frame produced a selected candidate
            now: Current monotonic time in seconds

        Returns:
            True if a capture should be sent for this frame
        """
        state = self.state
        if not has_candidate:
            state.consecutive_detection_frames = 0
            return False

        state.consecutive_detection_frames += 1
        if state.consecutive_detection_frames < self.config.detection_frame_threshold:
            return False
        if now - state.last_capture_timestamp <= self.config.cooldown_seconds:
            return False

        logger.debug(
            f"Throttle fired after {state.consecutive_detection_frames} frames "
            f"(since last capture: {now - state.last_capture_timestamp:.2f}s)"
        )
        state.consecutive_detection_frames = 0
        state.last_capture_timestamp = now
        return True

    def reset(self) -> None:
        self.state.reset()
