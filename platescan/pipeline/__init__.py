"""
Scanning pipeline: throttle gate, feedback state, recognition client and the
frame loop that ties them together.
"""

from .config import PipelineConfig, load_config, save_config, validate_config
from .feedback import FeedbackController, FeedbackKind, FeedbackState
from .recognition import RecognitionClient, RecognitionRequestError
from .runner import PipelineState, PlateScanPipeline, analyze_image
from .throttle import CaptureThrottler, ThrottleConfig, ThrottleState

__all__ = [
    "PipelineConfig",
    "load_config",
    "save_config",
    "validate_config",
    "FeedbackController",
    "FeedbackKind",
    "FeedbackState",
    "RecognitionClient",
    "RecognitionRequestError",
    "PipelineState",
    "PlateScanPipeline",
    "analyze_image",
    "CaptureThrottler",
    "ThrottleConfig",
    "ThrottleState",
]
