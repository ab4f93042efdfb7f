"""Per-tick guidance: turns one camera frame into one :class:`GuidanceFrame`."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import cv2
import numpy as np

from app.config import Config
from domain.coverage import CoverageTracker
from domain.damage import DamageScanner
from domain.models import (
    DetectionRequest,
    DetectionResult,
    DetectorStatus,
    GuidanceFrame,
    SessionState,
)
from domain.motion import DISTANCE_MESSAGES, MotionEstimator, classify_distance
from vision.detector_cache import VehicleDetectorCache

logger = logging.getLogger(__name__)

DETECTOR_LOADING = "Loading vehicle detector..."
DETECTOR_FAILED = "Vehicle detector failed to load."


class DetectorLink(Protocol):
    """The asynchronous side of detection, as seen from the tick loop."""

    @property
    def status(self) -> DetectorStatus: ...

    def submit(self, request: DetectionRequest) -> bool: ...

    def poll_result(self) -> Optional[DetectionResult]: ...


class GuidanceEngine:
    """Runs the synchronous part of one tick.

    Order per tick: apply finished detections, maybe issue a new one, read
    the cached box, derive distance and speed, update coverage, refresh or
    invalidate the damage overlay.  The caller supplies one timestamp per
    tick and it is used throughout.
    """

    def __init__(
        self,
        detector: DetectorLink,
        cache: Optional[VehicleDetectorCache] = None,
        motion: Optional[MotionEstimator] = None,
        coverage: Optional[CoverageTracker] = None,
        scanner: Optional[DamageScanner] = None,
        too_far_ratio: float = 0.55,
        too_close_ratio: float = 0.85,
        damage_scan_multiplier: int = 3,
    ) -> None:
        self.detector = detector
        self.cache = cache or VehicleDetectorCache()
        self.motion = motion or MotionEstimator()
        self.coverage = coverage or CoverageTracker()
        self.scanner = scanner or DamageScanner()
        self.too_far_ratio = too_far_ratio
        self.too_close_ratio = too_close_ratio
        self.damage_scan_multiplier = damage_scan_multiplier
        self._detector_was_ready: Optional[bool] = None

    @classmethod
    def from_config(cls, config: Config, detector: DetectorLink) -> "GuidanceEngine":
        return cls(
            detector=detector,
            cache=VehicleDetectorCache(
                allowed_classes=config.vehicle_classes,
                preview_interval=config.detect_every_preview,
                recording_interval=config.detect_every_recording,
                miss_clear_ms=config.miss_clear_ms,
                stale_gate_ms=config.stale_gate_ms,
                stale_clear_ms=config.stale_clear_ms,
            ),
            motion=MotionEstimator(max_speed_px_s=config.max_speed_px_s),
            coverage=CoverageTracker(target_s=config.coverage_target_s),
            scanner=DamageScanner(
                block_size=config.damage_block_size,
                contrast_threshold=config.damage_contrast_threshold,
                max_diff_threshold=config.damage_max_diff_threshold,
                merge_distance=config.damage_merge_distance,
                invalidate_distance=config.damage_invalidate_distance,
            ),
            too_far_ratio=config.too_far_ratio,
            too_close_ratio=config.too_close_ratio,
            damage_scan_multiplier=config.damage_scan_multiplier,
        )

    # ------------------------------------------------------------------
    # Session hooks
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """New preview session."""
        self.cache.reset()
        self.motion.reset()
        self.scanner.reset()
        self._detector_was_ready = None

    def begin_recording(self, now: float) -> None:
        self.coverage.start(now)
        self.cache.restart_cadence()

    def end_recording(self) -> None:
        self.coverage.stop()
        self.cache.cancel_pending()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, frame: np.ndarray, now: float, session_state: SessionState) -> GuidanceFrame:
        is_recording = session_state == SessionState.RECORDING
        frame_h, frame_w = frame.shape[:2]

        while True:
            result = self.detector.poll_result()
            if result is None:
                break
            self.cache.apply(result)

        status = self.detector.status
        ready = status == DetectorStatus.READY
        if self._detector_was_ready is not None and ready != self._detector_was_ready:
            # The placeholder box and real detections are not the same track
            self.motion.reset()
            self.scanner.reset()
        self._detector_was_ready = ready

        request = self.cache.next_request(frame, now, is_recording)
        if request is not None and ready:
            self.detector.submit(request)

        box = self.cache.current_box(now, is_recording, frame_w, frame_h, detector_ready=ready)
        distance = classify_distance(box, frame_w, self.too_far_ratio, self.too_close_ratio)

        # Speed is measured between detection samples, not between ticks
        # re-reading the same cached box.
        sample_time = now
        if ready and self.cache.track.last_center_time is not None:
            sample_time = self.cache.track.last_center_time
        self.motion.update(box, sample_time)

        coverage = self.coverage.update(now) if is_recording else self.coverage.percent

        self.scanner.track(box)
        if box is not None and self._damage_scan_due(is_recording):
            self.scanner.scan(_to_gray(frame), box)

        return GuidanceFrame(
            timestamp=now,
            frame_width=frame_w,
            frame_height=frame_h,
            vehicle_box=box,
            distance_status=distance,
            distance_message=DISTANCE_MESSAGES[distance],
            speed_warning=self.motion.warning,
            coverage_percent=coverage,
            damage_regions=self.scanner.regions,
            session_state=session_state,
            detector_status=status,
            advisory=_advisory(status),
        )

    def _damage_scan_due(self, is_recording: bool) -> bool:
        period = max(1, self.cache.detection_interval(is_recording) * self.damage_scan_multiplier)
        return self.cache.frame_counter % period == 0


def _to_gray(frame: np.ndarray) -> np.ndarray:
    if frame.ndim == 2:
        return frame
    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)


def _advisory(status: DetectorStatus) -> Optional[str]:
    if status == DetectorStatus.LOADING:
        return DETECTOR_LOADING
    if status == DetectorStatus.FAILED:
        return DETECTOR_FAILED
    return None
