"""
Plate scanning pipeline.

One PlateScanPipeline owns all mutable scanning state (throttle counters,
feedback, status, statistics) and runs a cooperative asyncio loop that
processes exactly one frame per cycle. Recognition requests are dispatched as
background tasks; their results are applied on the loop thread whenever they
arrive.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import numpy as np

from ..cv.candidate_selector import SelectorConfig, select_candidate
from ..cv.capture_encoder import CaptureEncodeError, CaptureEncoder
from ..cv.frame_source import DeviceAcquisitionError, Frame, FrameSource
from ..cv.overlay import OverlayRenderer, Renderer
from ..cv.region_detector import FrameProcessingError, RegionDetector
from ..cv.regions import Rect, SearchWindow, to_frame_coords
from .config import PipelineConfig
from .feedback import FeedbackController
from .recognition import RecognitionRequestError
from .throttle import CaptureThrottler, ThrottleState

logger = logging.getLogger(__name__)

STATUS_LOADING = "Loading..."
STATUS_NO_PLATE = "No plate detected"
STATUS_POSSIBLE_PLATE = "Possible plate detected"
STATUS_CAMERA_ERROR = "Camera error"


@dataclass
class PipelineState:
    """Everything the frame loop and response callbacks mutate."""
    throttle: ThrottleState = field(default_factory=ThrottleState)
    status: str = STATUS_LOADING
    selected_rect: Optional[Rect] = None
    frames_processed: int = 0
    frames_failed: int = 0
    captures_fired: int = 0
    device_error: Optional[str] = None
    last_error: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "selected_rect": self.selected_rect.to_dict() if self.selected_rect else None,
            "throttle": self.throttle.to_dict(),
            "frames_processed": self.frames_processed,
            "frames_failed": self.frames_failed,
            "captures_fired": self.captures_fired,
            "device_error": self.device_error,
            "last_error": self.last_error,
        }


def analyze_image(
    image: np.ndarray,
    detector: RegionDetector,
    selector_config: Optional[SelectorConfig] = None,
    search_window: Optional[SearchWindow] = None,
) -> Tuple[List[Rect], Optional[Rect]]:
    """
    Run detection and selection on one image.

    Returns:
        (frame-local candidate rects, selected rect or None)

    Raises:
        FrameProcessingError: If detection fails
    """
    if search_window is not None and isinstance(image, np.ndarray) and image.ndim >= 2:
        frame_h, frame_w = image.shape[:2]
        window = search_window.to_rect(frame_w, frame_h)
        local = detector.detect(image, window)
        rects = to_frame_coords(local, window)
    else:
        rects = detector.detect(image)
    return rects, select_candidate(rects, selector_config)


class PlateScanPipeline:
    """
    Frame loop plus candidate/throttle/feedback state machine.

    Collaborators (frame source, recognizer, renderer) are injectable so the
    state machine can be exercised without a camera or network.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        source: Optional[FrameSource] = None,
        recognizer=None,
        renderer: Optional[Renderer] = None,
        detector: Optional[RegionDetector] = None,
    ):
        self.config = config or PipelineConfig()
        self.source = source or FrameSource(
            output_width=self.config.output_width,
            output_height=self.config.output_height,
            crop_mode=self.config.crop_mode,
            capture_width=self.config.capture_width,
            capture_height=self.config.capture_height,
            max_fps=self.config.max_fps,
        )
        self.recognizer = recognizer
        self.renderer = renderer if renderer is not None else OverlayRenderer(
            jpeg_quality=self.config.preview_jpeg_quality
        )
        self.detector = detector or RegionDetector()
        self.encoder = CaptureEncoder(
            jpeg_quality=self.config.jpeg_quality,
            vertical_trim_margin=self.config.vertical_trim_margin,
        )

        self.state = PipelineState()
        self.throttler = CaptureThrottler(self.config.throttle_config(), self.state.throttle)
        self.feedback = FeedbackController(revert_seconds=self.config.revert_seconds)
        self._selector_config = self.config.selector_config()

        self._ready = asyncio.Event()
        self._stop_requested = False
        self._running = False
        self._pending: Set[asyncio.Task] = set()
        # Serializes start/read/stop on the frame source
        self._source_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    # ---------- lifecycle ----------

    async def start(self) -> None:
        """
        Acquire the camera and signal readiness.

        Raises:
            DeviceAcquisitionError: Not retried; call restart() to try again
        """
        self._stop_requested = False
        async with self._source_lock:
            await self._acquire()

    async def _acquire(self) -> None:
        # Caller holds _source_lock
        self.state.status = STATUS_LOADING
        self.state.throttle.reset()
        try:
            request = await asyncio.to_thread(self.source.start)
        except DeviceAcquisitionError as e:
            self.state.device_error = str(e)
            self.state.status = STATUS_CAMERA_ERROR
            logger.error(f"Error accessing camera: {e}")
            raise

        self.detector.warm_up()
        self.state.device_error = None
        self.state.status = STATUS_NO_PLATE
        logger.info(f"Pipeline ready with {request.describe() if request else 'frame source'}")
        self._ready.set()

    async def restart(self) -> None:
        """
        Release the device and acquire it again (user-initiated retry).

        Waits for an in-flight frame read to finish first, so the loop and
        the restart never touch the device at the same time.
        """
        logger.info("Restarting frame source...")
        self._ready.clear()
        async with self._source_lock:
            await asyncio.to_thread(self.source.stop)
            await self._acquire()

    async def run(self) -> None:
        """
        Process frames until stop() is called.

        Waits once for the readiness signal, then handles one frame per
        cycle. Cycles never overlap, and a failing read or cycle does not
        end the loop.
        """
        await self._ready.wait()
        if self._stop_requested:
            return
        self._running = True
        logger.info("Frame loop started")
        try:
            while not self._stop_requested:
                if not self._ready.is_set():
                    await self._ready.wait()
                    continue
                frame = await self._read_frame()
                if frame is not None:
                    self.process_frame(frame)
                await asyncio.sleep(self.config.frame_interval)
        finally:
            self._running = False
            logger.info("Frame loop stopped")

    async def _read_frame(self) -> Optional[Frame]:
        async with self._source_lock:
            # restart() or stop() may have run while we waited for the lock
            if not self._ready.is_set() or self._stop_requested:
                return None
            try:
                return await asyncio.to_thread(self.source.read)
            except Exception as e:
                self.state.frames_failed += 1
                self._set_last_error("Frame read failed", e)
                self.throttler.evaluate(False, time.monotonic())
                logger.warning(f"Frame read failed: {e}")
                return None

    async def stop(self, timeout: float = 2.0) -> None:
        """Stop the loop, drain in-flight requests and release resources."""
        self._stop_requested = True
        # Unblock run() if it is still waiting for readiness
        self._ready.set()

        if self._pending:
            done, pending = await asyncio.wait(set(self._pending), timeout=timeout)
            for task in pending:
                task.cancel()
            logger.debug(f"Drained {len(done)} recognition request(s), cancelled {len(pending)}")

        self.feedback.close()
        if self.recognizer is not None and hasattr(self.recognizer, "close"):
            await self.recognizer.close()
        async with self._source_lock:
            await asyncio.to_thread(self.source.stop)
        self._ready.clear()

    # ---------- per-frame cycle ----------

    def process_frame(self, frame: Frame) -> Optional[Rect]:
        """
        Run one pipeline cycle.

        Detection errors are contained: the cycle counts as "no candidate"
        and the loop carries on.

        Returns:
            The selected frame-local rect, or None
        """
        rect = None
        try:
            _, rect = analyze_image(
                frame.image, self.detector, self._selector_config, self.config.search_window
            )
        except FrameProcessingError as e:
            self.state.frames_failed += 1
            self._set_last_error("Frame processing failed", e)
            logger.debug(f"processFrame error: {e}")
        except Exception as e:
            self.state.frames_failed += 1
            self._set_last_error("Unexpected error in frame cycle", e)
            logger.error(f"Unexpected error in frame cycle: {e}", exc_info=True)

        self.state.selected_rect = rect
        self.state.status = STATUS_POSSIBLE_PLATE if rect is not None else STATUS_NO_PLATE

        if self.throttler.evaluate(rect is not None, frame.timestamp):
            self._dispatch_capture(frame, rect)

        self._render(frame, rect)
        self.state.frames_processed += 1
        return rect

    def _dispatch_capture(self, frame: Frame, rect: Rect) -> None:
        try:
            jpeg = self.encoder.encode(frame.image, rect)
        except CaptureEncodeError as e:
            self._set_last_error("Capture encoding failed", e)
            logger.warning(f"Skipping capture: {e}")
            return

        self.state.captures_fired += 1
        if self.recognizer is None:
            logger.info("Plate stable but no recognizer configured; capture dropped")
            return

        logger.info(f"Detected plate for {self.config.detection_frame_threshold} frames, making API call.")
        task = asyncio.get_running_loop().create_task(self._recognize(jpeg))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _recognize(self, jpeg: bytes) -> None:
        try:
            text = await self.recognizer.recognize(jpeg)
        except RecognitionRequestError as e:
            self.feedback.apply_error(e)
            return
        except Exception as e:
            logger.error(f"Recognizer raised unexpectedly: {e}", exc_info=True)
            self.feedback.apply_error(e)
            return
        self.feedback.apply_result(text)

    def _render(self, frame: Frame, rect: Optional[Rect]) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer.render(
                frame.image,
                rect,
                self.feedback.highlight_color(),
                self.state.status,
                self.feedback.display_text(),
            )
        except Exception as e:
            self._set_last_error("Rendering failed", e)
            logger.warning(f"Rendering failed: {e}")

    # ---------- status ----------

    def _set_last_error(self, message: str, exception: Optional[Exception] = None) -> None:
        error: Dict[str, Any] = {"message": message, "timestamp": time.time()}
        if exception is not None:
            error["detail"] = str(exception)
        self.state.last_error = error

    def get_status(self) -> Dict[str, Any]:
        status = self.state.to_dict()
        status["ready"] = self.is_ready
        status["running"] = self.is_running
        status["pending_requests"] = self.pending_requests
        status["feedback"] = self.feedback.state.to_dict()
        status["source"] = self.source.get_status()
        status["detector"] = self.detector.get_performance_stats()
        status["config"] = self.config.to_dict()
        return status
