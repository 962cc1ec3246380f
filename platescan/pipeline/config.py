"""
Pipeline tuning configuration.

Handles loading/saving the pipeline config from:
1. Config file (<config_dir>/pipeline_config.json)
2. Environment variables (PLATESCAN_*)
3. Defaults
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..cv.candidate_selector import SelectorConfig
from ..cv.frame_source import CROP_MODES
from ..cv.regions import SearchWindow
from ..utils.config import SETTINGS
from .throttle import ThrottleConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "pipeline_config.json"


@dataclass
class PipelineConfig:
    """All knobs of one scanning pipeline."""
    # Output frame
    output_width: int = 640
    output_height: int = 480
    crop_mode: str = "fill"

    # Capture device hints
    capture_width: int = 1280
    capture_height: int = 720
    max_fps: float = 30.0

    # Throttle
    detection_frame_threshold: int = 60
    cooldown_seconds: float = 3.0

    # Feedback
    revert_seconds: float = 3.0

    # Candidate shape
    min_aspect: float = 1.8
    max_aspect: float = 5.0
    min_width: int = 120

    # Optional search window around the plate guide (None = full frame)
    search_window: Optional[SearchWindow] = None

    # Capture encoding
    vertical_trim_margin: int = 0
    jpeg_quality: int = 90
    preview_jpeg_quality: int = 70

    # Loop pacing (display refresh interval)
    frame_interval: float = 1.0 / 60.0

    def throttle_config(self) -> ThrottleConfig:
        return ThrottleConfig(
            detection_frame_threshold=self.detection_frame_threshold,
            cooldown_seconds=self.cooldown_seconds,
        )

    def selector_config(self) -> SelectorConfig:
        return SelectorConfig(
            min_aspect=self.min_aspect,
            max_aspect=self.max_aspect,
            min_width=self.min_width,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {k: v for k, v in self.__dict__.items() if k != "search_window"}
        data["search_window"] = self.search_window.to_dict() if self.search_window else None
        return data


def get_config_path(config_dir: Optional[Path] = None) -> Path:
    """Get path to the pipeline config file."""
    return Path(config_dir or SETTINGS.config_dir) / CONFIG_FILENAME


def validate_config(config: PipelineConfig) -> List[str]:
    """
    Validate a pipeline config.

    Returns:
        List of problems (empty when valid)
    """
    errors = []

    if config.output_width <= 0 or config.output_height <= 0:
        errors.append(f"output size must be positive (got {config.output_width}x{config.output_height})")
    if config.crop_mode not in CROP_MODES:
        errors.append(f"crop_mode must be one of {CROP_MODES} (got {config.crop_mode!r})")
    if config.detection_frame_threshold < 1:
        errors.append(f"detection_frame_threshold must be >= 1 (got {config.detection_frame_threshold})")
    if config.cooldown_seconds < 0:
        errors.append(f"cooldown_seconds must be >= 0 (got {config.cooldown_seconds})")
    if config.revert_seconds <= 0:
        errors.append(f"revert_seconds must be > 0 (got {config.revert_seconds})")
    if config.min_aspect >= config.max_aspect:
        errors.append(f"min_aspect ({config.min_aspect}) must be < max_aspect ({config.max_aspect})")
    if config.min_width < 0:
        errors.append(f"min_width must be >= 0 (got {config.min_width})")
    if config.vertical_trim_margin < 0:
        errors.append(f"vertical_trim_margin must be >= 0 (got {config.vertical_trim_margin})")
    for name in ("jpeg_quality", "preview_jpeg_quality"):
        value = getattr(config, name)
        if not (0 <= value <= 100):
            errors.append(f"{name} must be 0-100 (got {value})")
    if config.frame_interval < 0:
        errors.append(f"frame_interval must be >= 0 (got {config.frame_interval})")
    if config.max_fps <= 0:
        errors.append(f"max_fps must be > 0 (got {config.max_fps})")

    window = config.search_window
    if window is not None and (
        window.guide_width + 2 * window.margin > config.output_width
        or window.guide_height + 2 * window.margin > config.output_height
    ):
        logger.warning("Search window is larger than the output frame and will be clamped")

    return errors


def load_config(config_dir: Optional[Path] = None) -> PipelineConfig:
    """
    Load pipeline configuration from file and environment.

    Priority: environment > config file > defaults

    Raises:
        ValueError: If the resulting config is invalid
    """
    config_dict: Dict[str, Any] = {}

    config_path = get_config_path(config_dir)
    if config_path.exists():
        try:
            with open(config_path) as f:
                config_dict = json.load(f)
            logger.info(f"Loaded pipeline config from {config_path}")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load config file {config_path}: {e}")
            config_dict = {}

    config_dict.update(_load_from_env())
    config = _dict_to_config(config_dict)

    errors = validate_config(config)
    if errors:
        raise ValueError("Config validation failed:\n" + "\n".join(f"  - {e}" for e in errors))
    return config


def save_config(config: PipelineConfig, config_dir: Optional[Path] = None) -> Path:
    """
    Validate and atomically write the config.

    Raises:
        ValueError: If validation fails
        IOError: If file write fails
    """
    errors = validate_config(config)
    if errors:
        error_msg = "Config validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise ValueError(error_msg)

    config_path = get_config_path(config_dir)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = config_path.with_suffix(".json.tmp")
        with open(temp_path, "w") as f:
            json.dump(config.to_dict(), f, indent=2)
        temp_path.replace(config_path)
    except OSError as e:
        logger.error(f"Failed to save config to {config_path}: {e}", exc_info=True)
        raise IOError(f"Failed to save config: {e}") from e

    logger.info(
        f"Saved pipeline config to {config_path} | "
        f"threshold={config.detection_frame_threshold} cooldown={config.cooldown_seconds}s"
    )
    return config_path


_ENV_FIELDS = {
    "PLATESCAN_OUTPUT_WIDTH": ("output_width", int),
    "PLATESCAN_OUTPUT_HEIGHT": ("output_height", int),
    "PLATESCAN_CROP_MODE": ("crop_mode", str),
    "PLATESCAN_DETECTION_FRAMES": ("detection_frame_threshold", int),
    "PLATESCAN_COOLDOWN": ("cooldown_seconds", float),
    "PLATESCAN_REVERT": ("revert_seconds", float),
    "PLATESCAN_TRIM_MARGIN": ("vertical_trim_margin", int),
    "PLATESCAN_JPEG_QUALITY": ("jpeg_quality", int),
    "PLATESCAN_FRAME_INTERVAL": ("frame_interval", float),
}


def _load_from_env() -> Dict[str, Any]:
    """Load configuration overrides from environment variables."""
    config = {}
    for env_name, (key, cast) in _ENV_FIELDS.items():
        if env_name in os.environ:
            config[key] = cast(os.environ[env_name])

    # "W,H,MARGIN" e.g. "300,100,40"
    if "PLATESCAN_SEARCH_WINDOW" in os.environ:
        parts = [int(x) for x in os.environ["PLATESCAN_SEARCH_WINDOW"].split(",")]
        if len(parts) in (2, 3):
            config["search_window"] = {
                "guide_width": parts[0],
                "guide_height": parts[1],
                "margin": parts[2] if len(parts) == 3 else 0,
            }
    return config


def _dict_to_config(config_dict: Dict[str, Any]) -> PipelineConfig:
    """Convert a flat dict to PipelineConfig, ignoring unknown keys."""
    defaults = PipelineConfig()
    known = {k for k in defaults.__dict__ if k != "search_window"}
    kwargs = {k: v for k, v in config_dict.items() if k in known}
    kwargs["search_window"] = SearchWindow.from_dict(config_dict.get("search_window"))
    return PipelineConfig(**kwargs)
