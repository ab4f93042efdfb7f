"""Best-current-guess vehicle box, refreshed asynchronously by the detector.

The render loop never waits on the detector.  Every N ticks the cache hands
out a :class:`DetectionRequest` stamped with the current session epoch; the
worker answers later with a :class:`DetectionResult`, which the tick loop
feeds back through :meth:`VehicleDetectorCache.apply`.  Results from an
older epoch are dropped, so a reset session never sees late completions.
"""

from __future__ import annotations

import logging
import numbers
from typing import Any, Iterable, Mapping, Optional

import numpy as np

from domain.geometry import Box, fallback_box
from domain.models import DetectionRequest, DetectionResult, DetectionSample, TrackState

logger = logging.getLogger(__name__)

VEHICLE_CLASSES = frozenset({"car", "truck", "bus", "motorcycle"})


def parse_candidate(candidate: Any) -> Optional[tuple[str, Box]]:
    """``(class_name, box)`` from one raw detector entry, or ``None`` when
    the entry is malformed."""
    if not isinstance(candidate, Mapping):
        return None
    cls = candidate.get("class")
    raw = candidate.get("box")
    if not isinstance(cls, str) or raw is None:
        return None
    try:
        values = list(raw)
    except TypeError:
        return None
    if len(values) != 4 or not all(isinstance(v, numbers.Real) for v in values):
        return None
    box = Box(*(float(v) for v in values))
    if not box.is_valid:
        return None
    return cls, box


def select_vehicle(candidates: Iterable[Any], allowed: Iterable[str] = VEHICLE_CLASSES) -> Optional[Box]:
    """Largest-area box among the allowed classes; the first one seen wins
    a tie."""
    allowed_set = set(allowed)
    boxes = []
    for c in candidates:
        parsed = parse_candidate(c)
        if parsed is not None and parsed[0] in allowed_set:
            boxes.append(parsed[1])
    if not boxes:
        return None
    return max(boxes, key=lambda b: b.area)


class VehicleDetectorCache:
    """Owns :class:`TrackState` plus the detection cadence and staleness rules.

    Must only be touched from the tick loop; detector completions arrive as
    messages and are applied here, so the state is replaced in one
    assignment and never observed half-written.
    """

    def __init__(
        self,
        allowed_classes: Iterable[str] = VEHICLE_CLASSES,
        preview_interval: int = 6,
        recording_interval: int = 3,
        miss_clear_ms: float = 1000.0,
        stale_gate_ms: float = 1500.0,
        stale_clear_ms: float = 2000.0,
        min_aspect: float = 1.0,
    ) -> None:
        self.allowed_classes = frozenset(allowed_classes)
        self.preview_interval = preview_interval
        self.recording_interval = recording_interval
        self.miss_clear_ms = miss_clear_ms
        self.stale_gate_ms = stale_gate_ms
        self.stale_clear_ms = stale_clear_ms
        self.min_aspect = min_aspect

        self._track = TrackState()
        self._epoch = 0
        self._frame_counter = 0
        self._force_next = True

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Start a fresh session: new epoch, empty track, immediate request."""
        self._epoch += 1
        self._track = TrackState()
        self.restart_cadence()
        logger.debug("Detector cache reset (epoch %d).", self._epoch)

    def cancel_pending(self) -> None:
        """Invalidate every request already in flight."""
        self._epoch += 1
        logger.debug("Detector cache cancelled in-flight work (epoch %d).", self._epoch)

    def restart_cadence(self) -> None:
        self._frame_counter = 0
        self._force_next = True

    # ------------------------------------------------------------------
    # Tick-side API
    # ------------------------------------------------------------------

    def detection_interval(self, is_recording: bool) -> int:
        return self.recording_interval if is_recording else self.preview_interval

    def next_request(self, frame: np.ndarray, now: float, is_recording: bool) -> Optional[DetectionRequest]:
        """Advance the frame counter; return a request when one is due."""
        self._frame_counter += 1
        interval = max(1, self.detection_interval(is_recording))
        if not self._force_next and self._frame_counter % interval != 0:
            return None
        self._force_next = False
        return DetectionRequest(epoch=self._epoch, frame=frame, observed_at=now)

    def apply(self, result: DetectionResult) -> bool:
        """Fold one completed detection into the track.  Returns ``True``
        when a new vehicle box was stored."""
        if result.epoch != self._epoch:
            logger.debug("Dropped detection from epoch %d (current %d).", result.epoch, self._epoch)
            return False

        track = self._track
        box = select_vehicle(result.candidates, self.allowed_classes)

        if box is not None:
            if track.last_updated is not None and result.observed_at < track.last_updated:
                # A newer detection already landed
                return False
            self._track = TrackState.from_sample(DetectionSample(box=box, observed_at=result.observed_at))
            return True

        # Tolerate momentary misses; only forget the box once it is old
        if track.last_updated is not None:
            age_ms = (result.observed_at - track.last_updated) * 1000.0
            if age_ms > self.miss_clear_ms:
                logger.debug("No vehicle for %.0f ms; clearing cached box.", age_ms)
                self._track = TrackState()
        return False

    def current_box(
        self,
        now: float,
        is_recording: bool,
        frame_width: int,
        frame_height: int,
        detector_ready: bool = True,
    ) -> Optional[Box]:
        """The box to use this tick, or ``None`` when there is no
        trustworthy vehicle."""
        if not detector_ready:
            box = fallback_box(frame_width, frame_height)
        else:
            track = self._track
            box = track.last_box
            if box is None or track.last_updated is None:
                return None
            if is_recording:
                age_ms = (now - track.last_updated) * 1000.0
                if age_ms > self.stale_clear_ms:
                    logger.debug("Cached box %.0f ms old while recording; clearing.", age_ms)
                    self._track = TrackState()
                    return None
                if age_ms > self.stale_gate_ms:
                    return None

        if box is None or not box.looks_like_vehicle(self.min_aspect):
            return None
        return box

    def passes_recording_gate(self, now: float) -> bool:
        """Whether the cached box is young enough to be used while recording.
        Read-only, unlike :meth:`current_box`."""
        last = self._track.last_updated
        if self._track.last_box is None or last is None:
            return False
        return (now - last) * 1000.0 <= self.stale_gate_ms

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def track(self) -> TrackState:
        return self._track

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def frame_counter(self) -> int:
        return self._frame_counter
