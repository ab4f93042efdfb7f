"""Axis-aligned rectangles in frame pixel coordinates."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def aspect(self) -> float:
        """width / height; 0.0 for a degenerate box."""
        if self.height <= 0:
            return 0.0
        return self.width / self.height

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0

    def looks_like_vehicle(self, min_aspect: float = 1.0) -> bool:
        """Tall, person-like boxes (height > width) are rejected."""
        return self.is_valid and self.aspect >= min_aspect

    def center_distance(self, other: "Box") -> float:
        (ax, ay), (bx, by) = self.center, other.center
        return math.hypot(ax - bx, ay - by)

    def union(self, other: "Box") -> "Box":
        x0 = min(self.x, other.x)
        y0 = min(self.y, other.y)
        x1 = max(self.right, other.right)
        y1 = max(self.bottom, other.bottom)
        return Box(x0, y0, x1 - x0, y1 - y0)

    def clipped(self, frame_width: int, frame_height: int) -> Optional["Box"]:
        """Intersect with the frame rectangle; ``None`` if nothing is left."""
        x0 = max(0.0, self.x)
        y0 = max(0.0, self.y)
        x1 = min(float(frame_width), self.right)
        y1 = min(float(frame_height), self.bottom)
        if x1 <= x0 or y1 <= y0:
            return None
        return Box(x0, y0, x1 - x0, y1 - y0)

    def as_int_tuple(self) -> tuple[int, int, int, int]:
        return int(round(self.x)), int(round(self.y)), int(round(self.width)), int(round(self.height))


def fallback_box(frame_width: int, frame_height: int) -> Optional[Box]:
    """Centred placeholder used while the detector model is warming up:
    10 % horizontal padding, 60 % of the frame height starting 20 % down."""
    if frame_width <= 0 or frame_height <= 0:
        return None
    padding = 0.1
    return Box(
        x=frame_width * padding,
        y=frame_height * 0.2,
        width=frame_width * (1.0 - 2.0 * padding),
        height=frame_height * 0.6,
    )
