"""Tests for the per-tick guidance engine, driven by a scripted detector link."""

from typing import Optional

import numpy as np
import pytest

from domain.geometry import Box
from domain.models import (
    DetectionRequest,
    DetectionResult,
    DetectorStatus,
    DistanceStatus,
    SessionState,
)
from domain.motion import SPEED_WARNING
from vision.detector_cache import VehicleDetectorCache
from vision.guidance import DETECTOR_FAILED, DETECTOR_LOADING, GuidanceEngine

S = SessionState


class FakeDetector:
    """Answers every submitted request with a fixed list of candidates on
    the next poll."""

    def __init__(self, status: DetectorStatus = DetectorStatus.READY) -> None:
        self.status = status
        self.candidates: list = []
        self.submitted: list[DetectionRequest] = []
        self._pending: list[DetectionResult] = []

    def submit(self, request: DetectionRequest) -> bool:
        self.submitted.append(request)
        self._pending.append(
            DetectionResult(request.epoch, request.observed_at, list(self.candidates))
        )
        return True

    def poll_result(self) -> Optional[DetectionResult]:
        return self._pending.pop(0) if self._pending else None


def _frame(w: int = 640, h: int = 480) -> np.ndarray:
    return np.full((h, w, 3), 128, dtype=np.uint8)


def _engine(detector: FakeDetector, **kwargs) -> GuidanceEngine:
    cache = VehicleDetectorCache(preview_interval=1, recording_interval=1)
    return GuidanceEngine(detector, cache=cache, **kwargs)


def test_loading_detector_uses_fallback_box():
    det = FakeDetector(DetectorStatus.LOADING)
    engine = _engine(det)
    f = engine.tick(_frame(), 0.0, S.PREVIEWING)

    assert f.vehicle_box == Box(64.0, 96.0, 512.0, 288.0)
    # 512 / 640 = 0.8 is inside the OK band
    assert f.distance_status == DistanceStatus.OK
    assert f.can_record
    assert f.advisory == DETECTOR_LOADING
    assert det.submitted == []


def test_failed_detector_reports_advisory():
    engine = _engine(FakeDetector(DetectorStatus.FAILED))
    f = engine.tick(_frame(), 0.0, S.PREVIEWING)
    assert f.advisory == DETECTOR_FAILED
    assert f.vehicle_box is not None


def test_detection_lands_on_following_tick():
    det = FakeDetector()
    det.candidates = [{"class": "car", "box": (100, 100, 400, 200)}]
    engine = _engine(det)

    first = engine.tick(_frame(), 0.0, S.PREVIEWING)
    assert first.vehicle_box is None
    assert first.distance_status == DistanceStatus.NO_VEHICLE
    assert not first.can_record

    second = engine.tick(_frame(), 0.033, S.PREVIEWING)
    assert second.vehicle_box == Box(100, 100, 400, 200)
    assert second.distance_status == DistanceStatus.OK
    assert second.timestamp == 0.033
    assert second.advisory is None


def test_too_close_vehicle():
    det = FakeDetector()
    det.candidates = [{"class": "truck", "box": (0, 50, 600, 300)}]
    engine = _engine(det)
    engine.tick(_frame(), 0.0, S.PREVIEWING)
    f = engine.tick(_frame(), 0.1, S.PREVIEWING)
    assert f.distance_status == DistanceStatus.TOO_CLOSE


def test_speed_uses_detection_timestamps():
    det = FakeDetector()
    engine = _engine(det, motion=None)
    det.candidates = [{"class": "car", "box": (0, 100, 200, 100)}]
    engine.tick(_frame(), 0.0, S.PREVIEWING)
    engine.tick(_frame(), 0.1, S.PREVIEWING)

    # Centre jumps 300 px between detections 0.1 s apart; each result
    # is applied one tick after its request
    det.candidates = [{"class": "car", "box": (300, 100, 200, 100)}]
    f = engine.tick(_frame(), 0.2, S.PREVIEWING)
    assert f.speed_warning is None
    f = engine.tick(_frame(), 0.3, S.PREVIEWING)
    assert f.speed_warning == SPEED_WARNING

    # Next detection finds the car where it was
    f = engine.tick(_frame(), 0.4, S.PREVIEWING)
    assert f.speed_warning is None


def test_coverage_only_advances_while_recording():
    det = FakeDetector()
    engine = _engine(det)
    f = engine.tick(_frame(), 5.0, S.PREVIEWING)
    assert f.coverage_percent == 0.0

    engine.begin_recording(10.0)
    f = engine.tick(_frame(), 25.0, S.RECORDING)
    assert f.coverage_percent == pytest.approx(50.0)

    engine.end_recording()
    f = engine.tick(_frame(), 40.0, S.PREVIEWING)
    assert f.coverage_percent == pytest.approx(50.0)


def test_end_recording_drops_in_flight_detection():
    det = FakeDetector()
    det.candidates = [{"class": "car", "box": (100, 100, 400, 200)}]
    engine = _engine(det)
    engine.begin_recording(0.0)
    engine.tick(_frame(), 0.0, S.RECORDING)
    engine.end_recording()
    assert engine.cache.track.is_empty
    engine.tick(_frame(), 0.1, S.UPLOADING)
    assert engine.cache.track.is_empty


def test_damage_overlay_on_scratched_vehicle():
    det = FakeDetector()
    det.candidates = [{"class": "car", "box": (100, 100, 400, 200)}]
    cache = VehicleDetectorCache(preview_interval=1)
    engine = GuidanceEngine(det, cache=cache, damage_scan_multiplier=1)

    img = _frame()
    img[150:152, 150:190] = 255
    engine.tick(img, 0.0, S.PREVIEWING)
    f = engine.tick(img, 0.1, S.PREVIEWING)
    assert len(f.damage_regions) == 1
    assert f.damage_regions[0].label == "possible damage"


def test_reset_starts_new_epoch():
    det = FakeDetector()
    det.candidates = [{"class": "car", "box": (100, 100, 400, 200)}]
    engine = _engine(det)
    engine.tick(_frame(), 0.0, S.PREVIEWING)
    engine.reset()
    # Result from before the reset is still queued and must be ignored
    f = engine.tick(_frame(), 0.1, S.PREVIEWING)
    assert f.vehicle_box is None


def test_detector_warm_up_does_not_trigger_speed_warning():
    det = FakeDetector(DetectorStatus.LOADING)
    det.candidates = [{"class": "car", "box": (40, 100, 400, 200)}]
    engine = _engine(det)

    # Placeholder box is centred at x=320
    t = 0.0
    for _ in range(30):
        engine.tick(_frame(), t, S.PREVIEWING)
        t += 0.033

    det.status = DetectorStatus.READY
    frames = []
    for _ in range(5):
        frames.append(engine.tick(_frame(), t, S.PREVIEWING))
        t += 0.033

    assert frames[-1].vehicle_box == Box(40.0, 100.0, 400.0, 200.0)
    assert all(f.speed_warning is None for f in frames)
