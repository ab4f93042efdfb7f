"""Time-based proxy for how much of the walk-around has been recorded."""

from __future__ import annotations

import logging
from typing import Optional

from domain.models import CoverageState

logger = logging.getLogger(__name__)


class CoverageTracker:
    """``percent = min(100, elapsed / target_s * 100)`` while recording.

    Stopping freezes the last value; only a new :meth:`start` resets it.
    """

    def __init__(self, target_s: float = 30.0) -> None:
        self.target_s = target_s
        self._state = CoverageState()
        self._running = False

    def start(self, now: float) -> None:
        self._state = CoverageState(started_at=now, percent=0.0)
        self._running = True
        logger.debug("Coverage timer started (target %.0fs).", self.target_s)

    def stop(self) -> None:
        self._running = False

    def update(self, now: float) -> float:
        if not self._running or self._state.started_at is None:
            return self._state.percent
        elapsed = max(0.0, now - self._state.started_at)
        pct = min(100.0, elapsed / self.target_s * 100.0) if self.target_s > 0 else 100.0
        # Never step backwards within one recording
        self._state.percent = max(self._state.percent, pct)
        return self._state.percent

    @property
    def percent(self) -> float:
        return self._state.percent

    @property
    def started_at(self) -> Optional[float]:
        return self._state.started_at

    @property
    def is_running(self) -> bool:
        return self._running
