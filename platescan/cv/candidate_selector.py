"""
Plate-shape filtering and best-candidate selection.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .regions import Rect

logger = logging.getLogger(__name__)


@dataclass
class SelectorConfig:
    """Shape thresholds; all comparisons are strict."""
    min_aspect: float = 1.8
    max_aspect: float = 5.0
    min_width: int = 120


def is_plate_shaped(rect: Rect, config: Optional[SelectorConfig] = None) -> bool:
    """Return True if the rect's aspect ratio and width look like a plate."""
    cfg = config or SelectorConfig()
    return cfg.min_aspect < rect.aspect < cfg.max_aspect and rect.width > cfg.min_width


def filter_candidates(rects: List[Rect], config: Optional[SelectorConfig] = None) -> List[Rect]:
    """Keep plate-shaped rects, preserving enumeration order."""
    return [r for r in rects if is_plate_shaped(r, config)]


def select_candidate(rects: List[Rect], config: Optional[SelectorConfig] = None) -> Optional[Rect]:
    """
    Pick the largest plate-shaped rect.

    ``sorted`` is stable, so among equal areas the earliest enumerated
    rect wins.

    Args:
        rects: Candidate rects in detection order
        config: Optional shape thresholds

    Returns:
        Selected Rect or None if nothing passes the filter
    """
    candidates = filter_candidates(rects, config)
    if not candidates:
        return None
    ranked = sorted(candidates, key=lambda r: r.area, reverse=True)
    logger.debug(f"{len(candidates)}/{len(rects)} candidate(s) passed shape filter, best={ranked[0]}")
    return ranked[0]
