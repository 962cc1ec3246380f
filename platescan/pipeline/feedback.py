"""
Transient feedback state driven by recognition responses.

NEUTRAL -> (response) -> SUCCESS(text) | FAILURE(reason) -> (revert timer) -> NEUTRAL

Every applied response cancels the previously scheduled revert and bumps a
generation counter; a revert only applies if its generation is still current,
so an older timer can never clear a newer result.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

NO_TEXT_DETECTED = "No text detected"
RECOGNITION_ERROR = "API error"

# BGR highlight colors
NEUTRAL_COLOR = (0, 0, 255)
SUCCESS_COLOR = (0, 200, 0)
FAILURE_COLOR = (0, 140, 255)


class FeedbackKind(str, Enum):
    NEUTRAL = "neutral"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class FeedbackState:
    kind: FeedbackKind = FeedbackKind.NEUTRAL
    text: str = ""
    revert_deadline: Optional[float] = None
    generation: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "text": self.text,
            "revert_deadline": self.revert_deadline,
            "generation": self.generation,
        }


class FeedbackController:
    """
    Owns the FeedbackState.

    Must be used from the event loop thread; response callbacks and the
    revert timer both run there.
    """

    def __init__(self, revert_seconds: float = 3.0, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.revert_seconds = revert_seconds
        self._loop = loop
        self._state = FeedbackState()
        self._revert_handle: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> FeedbackState:
        return self._state

    def apply_result(self, text: Optional[str]) -> FeedbackState:
        """Apply a recognition response; empty or missing text is a failure."""
        cleaned = (text or "").strip()
        if cleaned:
            logger.info(f"Plate recognized: {cleaned}")
            return self._transition(FeedbackKind.SUCCESS, cleaned)
        logger.info("Recognition returned no text")
        return self._transition(FeedbackKind.FAILURE, NO_TEXT_DETECTED)

    def apply_error(self, error: Optional[BaseException] = None) -> FeedbackState:
        """Apply a failed recognition request."""
        logger.warning(f"Recognition request failed: {error}")
        return self._transition(FeedbackKind.FAILURE, RECOGNITION_ERROR)

    def _transition(self, kind: FeedbackKind, text: str) -> FeedbackState:
        loop = self._loop or asyncio.get_running_loop()
        self._cancel_revert()
        generation = self._state.generation + 1
        deadline = loop.time() + self.revert_seconds
        self._state = FeedbackState(kind=kind, text=text, revert_deadline=deadline, generation=generation)
        self._revert_handle = loop.call_later(self.revert_seconds, self._revert, generation)
        return self._state

    def _revert(self, generation: int) -> None:
        if generation != self._state.generation:
            logger.debug(f"Ignoring stale revert (generation {generation}, current {self._state.generation})")
            return
        self._revert_handle = None
        self._state = replace(self._state, kind=FeedbackKind.NEUTRAL, text="", revert_deadline=None)
        logger.debug("Feedback reverted to neutral")

    def _cancel_revert(self) -> None:
        if self._revert_handle is not None:
            self._revert_handle.cancel()
            self._revert_handle = None

    def highlight_color(self) -> Tuple[int, int, int]:
        if self._state.kind is FeedbackKind.SUCCESS:
            return SUCCESS_COLOR
        if self._state.kind is FeedbackKind.FAILURE:
            return FAILURE_COLOR
        return NEUTRAL_COLOR

    def display_text(self) -> str:
        return self._state.text

    def close(self) -> None:
        """Cancel any pending revert."""
        self._cancel_revert()
