"""Tests for capture summary computation."""

import pytest

from domain.geometry import Box
from domain.metrics import compute_capture_summary
from domain.models import (
    DamageRegion,
    DetectorStatus,
    DistanceStatus,
    GuidanceFrame,
    SessionState,
)
from domain.motion import DISTANCE_MESSAGES, SPEED_WARNING


def _frame(
    t: float,
    status: DistanceStatus = DistanceStatus.OK,
    coverage: float = 0.0,
    speeding: bool = False,
    n_damage: int = 0,
) -> GuidanceFrame:
    return GuidanceFrame(
        timestamp=t,
        frame_width=640,
        frame_height=480,
        vehicle_box=None if status == DistanceStatus.NO_VEHICLE else Box(100, 100, 400, 200),
        distance_status=status,
        distance_message=DISTANCE_MESSAGES[status],
        speed_warning=SPEED_WARNING if speeding else None,
        coverage_percent=coverage,
        damage_regions=tuple(DamageRegion(Box(0, 0, 10, 10), 0.5) for _ in range(n_damage)),
        session_state=SessionState.RECORDING,
        detector_status=DetectorStatus.READY,
    )


def test_empty_recording():
    result = compute_capture_summary([], 0.0)
    assert result["total_ticks"] == 0
    assert result["final_coverage_pct"] == 0.0
    assert result["n_speed_warnings"] == 0
    assert result["timeline"] == []


def test_distance_shares():
    frames = (
        [_frame(i * 0.1) for i in range(6)]
        + [_frame(0.6 + i * 0.1, DistanceStatus.TOO_CLOSE) for i in range(2)]
        + [_frame(0.8 + i * 0.1, DistanceStatus.NO_VEHICLE) for i in range(2)]
    )
    result = compute_capture_summary(frames, 1.0)
    assert result["ok_distance_pct"] == pytest.approx(60.0)
    assert result["too_close_pct"] == pytest.approx(20.0)
    assert result["too_far_pct"] == 0.0
    assert result["no_vehicle_pct"] == pytest.approx(20.0)


def test_speed_warnings_count_episodes_not_ticks():
    flags = [False, True, True, True, False, True, False]
    frames = [_frame(i * 0.1, speeding=f) for i, f in enumerate(flags)]
    assert compute_capture_summary(frames, 0.7)["n_speed_warnings"] == 2


def test_final_coverage_and_peak_damage():
    frames = [
        _frame(0.0, coverage=10.0, n_damage=1),
        _frame(0.1, coverage=40.0, n_damage=3),
        _frame(0.2, coverage=55.5, n_damage=0),
    ]
    result = compute_capture_summary(frames, 16.0)
    assert result["final_coverage_pct"] == pytest.approx(55.5)
    assert result["peak_damage_regions"] == 3
    assert result["recording_duration_s"] == pytest.approx(16.0)


def test_timeline_is_downsampled_and_relative():
    frames = [_frame(100.0 + i / 30.0, coverage=float(i)) for i in range(9)]
    timeline = compute_capture_summary(frames, 0.3)["timeline"]
    assert len(timeline) == 3
    assert timeline[0] == {"t_s": 0.0, "status": "OK", "coverage": 0.0}
    assert timeline[1]["t_s"] == pytest.approx(0.1, abs=1e-3)
