"""Tests for the cached vehicle box, detection cadence and staleness rules."""

import numpy as np
import pytest

from domain.geometry import Box
from domain.models import DetectionResult
from vision.detector_cache import VehicleDetectorCache, parse_candidate, select_vehicle

_FRAME = np.zeros((480, 640, 3), dtype=np.uint8)


def _car(x=100, y=100, w=300, h=150, cls="car"):
    return {"class": cls, "box": (x, y, w, h), "score": 0.9}


def _hit(cache: VehicleDetectorCache, t: float, *candidates) -> DetectionResult:
    return DetectionResult(epoch=cache.epoch, observed_at=t, candidates=list(candidates or [_car()]))


def _miss(cache: VehicleDetectorCache, t: float) -> DetectionResult:
    return DetectionResult(epoch=cache.epoch, observed_at=t, candidates=[])


# ── Candidate parsing ──────────────────────────────────────────────────

@pytest.mark.parametrize(
    "candidate",
    [
        None,
        "car",
        {"box": (0, 0, 10, 10)},
        {"class": 3, "box": (0, 0, 10, 10)},
        {"class": "car", "box": (0, 0, 10)},
        {"class": "car", "box": (0, 0, "10", 10)},
        {"class": "car", "box": 5},
        {"class": "car", "box": (0, 0, 0, 10)},
    ],
)
def test_malformed_candidates_are_skipped(candidate):
    assert parse_candidate(candidate) is None


def test_largest_allowed_box_wins():
    candidates = [
        _car(w=100, h=50),
        _car(w=300, h=200, cls="person"),
        _car(w=200, h=100, cls="truck"),
        "garbage",
    ]
    assert select_vehicle(candidates) == Box(100, 100, 200, 100)


def test_tie_keeps_first_seen():
    first = _car(x=0, w=100, h=50)
    second = _car(x=300, w=50, h=100, cls="bus")
    assert select_vehicle([first, second]) == Box(0, 100, 100, 50)


def test_no_allowed_class():
    assert select_vehicle([_car(cls="person"), _car(cls="dog")]) is None


# ── Cadence ────────────────────────────────────────────────────────────

def test_first_tick_requests_immediately():
    cache = VehicleDetectorCache(preview_interval=6)
    assert cache.next_request(_FRAME, 0.0, is_recording=False) is not None


def test_preview_cadence_every_sixth_tick():
    cache = VehicleDetectorCache(preview_interval=6)
    cache.next_request(_FRAME, 0.0, False)
    issued = [cache.next_request(_FRAME, i * 0.03, False) is not None for i in range(2, 13)]
    # Counter values 2..12: due at 6 and 12
    assert [i for i, due in zip(range(2, 13), issued) if due] == [6, 12]


def test_recording_cadence_every_third_tick():
    cache = VehicleDetectorCache(recording_interval=3)
    cache.next_request(_FRAME, 0.0, True)
    issued = [cache.next_request(_FRAME, 0.0, True) is not None for _ in range(2, 8)]
    assert issued == [False, True, False, False, True, False]


def test_restart_cadence_forces_request():
    cache = VehicleDetectorCache(preview_interval=6)
    cache.next_request(_FRAME, 0.0, False)
    cache.next_request(_FRAME, 0.0, False)
    cache.restart_cadence()
    assert cache.frame_counter == 0
    assert cache.next_request(_FRAME, 0.0, True) is not None


def test_request_carries_epoch_and_time():
    cache = VehicleDetectorCache()
    req = cache.next_request(_FRAME, 12.5, False)
    assert req.epoch == cache.epoch
    assert req.observed_at == 12.5
    assert req.frame is _FRAME


# ── Applying results ───────────────────────────────────────────────────

def test_hit_updates_track():
    cache = VehicleDetectorCache()
    assert cache.apply(_hit(cache, 1.0))
    assert cache.track.last_box == Box(100, 100, 300, 150)
    assert cache.track.last_updated == 1.0
    assert cache.track.last_center_x == 250


def test_stale_epoch_is_ignored():
    cache = VehicleDetectorCache()
    old = _hit(cache, 1.0)
    cache.reset()
    assert cache.apply(old) is False
    assert cache.track.is_empty


def test_cancel_pending_drops_in_flight_results():
    cache = VehicleDetectorCache()
    cache.apply(_hit(cache, 1.0))
    late = _hit(cache, 2.0, _car(x=0))
    cache.cancel_pending()
    cache.apply(late)
    # Track kept, late result discarded
    assert cache.track.last_box == Box(100, 100, 300, 150)


def test_out_of_order_completion_is_discarded():
    cache = VehicleDetectorCache()
    cache.apply(_hit(cache, 2.0, _car(x=200)))
    assert cache.apply(_hit(cache, 1.5, _car(x=10))) is False
    assert cache.track.last_box.x == 200


def test_short_miss_keeps_box():
    cache = VehicleDetectorCache(miss_clear_ms=1000)
    cache.apply(_hit(cache, 1.0))
    cache.apply(_miss(cache, 1.5))
    assert not cache.track.is_empty


def test_long_miss_clears_box():
    cache = VehicleDetectorCache(miss_clear_ms=1000)
    cache.apply(_hit(cache, 1.0))
    cache.apply(_miss(cache, 2.1))
    assert cache.track.is_empty


# ── Reading the box ────────────────────────────────────────────────────

def test_fallback_while_detector_loading():
    cache = VehicleDetectorCache()
    box = cache.current_box(0.0, False, 640, 480, detector_ready=False)
    assert box == Box(64.0, 96.0, 512.0, 288.0)


def test_no_box_before_first_detection():
    cache = VehicleDetectorCache()
    assert cache.current_box(0.0, False, 640, 480) is None


def test_preview_ignores_age():
    cache = VehicleDetectorCache()
    cache.apply(_hit(cache, 1.0))
    assert cache.current_box(10.0, False, 640, 480) is not None


def test_recording_gate_and_clear():
    cache = VehicleDetectorCache(stale_gate_ms=1500, stale_clear_ms=2000)
    cache.apply(_hit(cache, 1.0))
    assert cache.current_box(2.0, True, 640, 480) is not None
    # 1.8 s old: reported absent but kept
    assert cache.current_box(2.8, True, 640, 480) is None
    assert not cache.track.is_empty
    # 2.5 s old: dropped
    assert cache.current_box(3.5, True, 640, 480) is None
    assert cache.track.is_empty


def test_recording_gate_check_leaves_track_alone():
    cache = VehicleDetectorCache(stale_gate_ms=1500, stale_clear_ms=2000)
    assert cache.passes_recording_gate(0.0) is False
    cache.apply(_hit(cache, 1.0))
    assert cache.passes_recording_gate(2.5)
    assert cache.passes_recording_gate(5.0) is False
    assert not cache.track.is_empty


def test_tall_box_is_rejected():
    cache = VehicleDetectorCache()
    cache.apply(_hit(cache, 1.0, _car(w=100, h=250)))
    assert cache.current_box(1.0, False, 640, 480) is None


def test_reset_empties_track_and_bumps_epoch():
    cache = VehicleDetectorCache()
    cache.apply(_hit(cache, 1.0))
    epoch = cache.epoch
    cache.reset()
    assert cache.epoch == epoch + 1
    assert cache.track.is_empty
