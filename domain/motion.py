"""Distance zone and walking-speed estimation from the tracked vehicle box."""

from __future__ import annotations

import logging
from typing import Optional

from domain.geometry import Box
from domain.models import DistanceStatus

logger = logging.getLogger(__name__)

SPEED_WARNING = "You are moving too fast. Slow down for better capture."

DISTANCE_MESSAGES: dict[DistanceStatus, str] = {
    DistanceStatus.TOO_CLOSE: "Move back slightly - vehicle too large in frame.",
    DistanceStatus.TOO_FAR: "Move closer to the car - vehicle too small in frame.",
    DistanceStatus.OK: "Good distance - continue walking slowly around the vehicle.",
    DistanceStatus.NO_VEHICLE: "Ensure the full vehicle is visible in frame.",
}

DISTANCE_BADGES: dict[DistanceStatus, str] = {
    DistanceStatus.TOO_CLOSE: "Too Close",
    DistanceStatus.TOO_FAR: "Too Far",
    DistanceStatus.OK: "Good Distance",
    DistanceStatus.NO_VEHICLE: "No Vehicle Detected",
}


def classify_distance(
    box: Optional[Box],
    frame_width: int,
    too_far_ratio: float = 0.55,
    too_close_ratio: float = 0.85,
) -> DistanceStatus:
    """Zone from the share of the frame width the vehicle occupies."""
    if box is None or frame_width <= 0:
        return DistanceStatus.NO_VEHICLE
    ratio = box.width / frame_width
    if ratio > too_close_ratio:
        return DistanceStatus.TOO_CLOSE
    if ratio < too_far_ratio:
        return DistanceStatus.TOO_FAR
    return DistanceStatus.OK


class MotionEstimator:
    """Horizontal speed of the vehicle centre in px/s.

    The warning reflects only the latest delta between two samples; ticks
    without a vehicle clear it but keep the last seen centre, so the next
    delta is measured against that position.
    """

    def __init__(self, max_speed_px_s: float = 600.0) -> None:
        self.max_speed_px_s = max_speed_px_s
        self._last_x: Optional[float] = None
        self._last_t: Optional[float] = None
        self._speed: float = 0.0
        self._warning = False

    def reset(self) -> None:
        self._last_x = None
        self._last_t = None
        self._speed = 0.0
        self._warning = False

    def update(self, box: Optional[Box], timestamp: float) -> bool:
        """Feed the current box; return ``True`` when moving too fast."""
        if box is None:
            self._warning = False
            self._speed = 0.0
            return False

        center_x = box.center_x
        if self._last_x is not None and self._last_t is not None:
            dt = timestamp - self._last_t
            if dt > 0:
                self._speed = abs(center_x - self._last_x) / dt
                self._warning = self._speed > self.max_speed_px_s
                if self._warning:
                    logger.debug("Speed warning: %.0f px/s", self._speed)
            # dt == 0: same sample seen again, keep the last verdict

        self._last_x = center_x
        self._last_t = timestamp
        return self._warning

    @property
    def speed_px_s(self) -> float:
        return self._speed

    @property
    def warning(self) -> Optional[str]:
        return SPEED_WARNING if self._warning else None
