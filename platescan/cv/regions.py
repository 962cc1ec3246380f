"""
Rectangle geometry for candidate regions and the detection search window.

Rects are integer pixel rectangles in a declared coordinate space: either
frame-local (origin at the output frame's top-left) or window-local (origin
at the search window's top-left). Window-local rects must be translated by
the window origin before they are used for cropping or drawing.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixels."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Rect requires positive size (got {self.width}x{self.height})")

    @property
    def aspect(self) -> float:
        """Width divided by height."""
        return self.width / self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def translate(self, dx: int, dy: int) -> "Rect":
        """Return a copy shifted by (dx, dy)."""
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def clamp(self, frame_width: int, frame_height: int) -> "Rect":
        """
        Clamp the rectangle to frame boundaries.

        The result always keeps at least one pixel in each dimension.
        """
        x = max(0, min(self.x, frame_width - 1))
        y = max(0, min(self.y, frame_height - 1))
        w = max(1, min(self.x + self.width, frame_width) - x)
        h = max(1, min(self.y + self.height, frame_height) - y)
        return Rect(x, y, w, h)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_tuple(cls, values: Iterable[int]) -> "Rect":
        x, y, w, h = (int(v) for v in values)
        return cls(x, y, w, h)


@dataclass(frozen=True)
class SearchWindow:
    """
    Fixed detection area centered on the plate guide.

    The guide is a ``guide_width`` x ``guide_height`` box centered in the
    output frame; the window extends it by ``margin`` pixels on every side.
    """
    guide_width: int
    guide_height: int
    margin: int = 0

    def __post_init__(self):
        if self.guide_width <= 0 or self.guide_height <= 0:
            raise ValueError("SearchWindow guide size must be positive")
        if self.margin < 0:
            raise ValueError("SearchWindow margin must be >= 0")

    def to_rect(self, frame_width: int, frame_height: int) -> Rect:
        """
        Resolve the window to a frame-local Rect.

        Args:
            frame_width: Output frame width in pixels
            frame_height: Output frame height in pixels

        Returns:
            Window rectangle clamped to the frame
        """
        guide_x = (frame_width - self.guide_width) // 2
        guide_y = (frame_height - self.guide_height) // 2
        window = Rect(
            guide_x - self.margin,
            guide_y - self.margin,
            self.guide_width + 2 * self.margin,
            self.guide_height + 2 * self.margin,
        )
        return window.clamp(frame_width, frame_height)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["SearchWindow"]:
        if not data:
            return None
        return cls(
            guide_width=int(data["guide_width"]),
            guide_height=int(data["guide_height"]),
            margin=int(data.get("margin", 0)),
        )


def to_frame_coords(rects: List[Rect], origin: Rect) -> List[Rect]:
    """Translate window-local rects into frame-local coordinates."""
    return [r.translate(origin.x, origin.y) for r in rects]


def to_window_coords(rects: List[Rect], origin: Rect) -> List[Rect]:
    """Translate frame-local rects back into window-local coordinates."""
    return [r.translate(-origin.x, -origin.y) for r in rects]
