"""Compute capture-quality statistics from the guidance frames of a recording."""

from __future__ import annotations

from typing import Any

from domain.models import DistanceStatus, GuidanceFrame


def compute_capture_summary(
    frames: list[GuidanceFrame],
    recording_duration_s: float,
) -> dict[str, Any]:
    """Return a flat dict of capture metrics suitable for JSON serialisation."""

    # ── Share of ticks per distance zone ──────────────────────────────────
    counts: dict[DistanceStatus, int] = {s: 0 for s in DistanceStatus}
    for f in frames:
        counts[f.distance_status] += 1
    n = len(frames)
    total = n if n > 0 else 1

    # ── Speed-warning episodes (rising edges, not ticks) ─────────────────
    n_speed_warnings = 0
    warned = False
    for f in frames:
        now_warned = f.speed_warning is not None
        if now_warned and not warned:
            n_speed_warnings += 1
        warned = now_warned

    final_coverage = frames[-1].coverage_percent if frames else 0.0
    peak_regions = max((len(f.damage_regions) for f in frames), default=0)

    # ── Timeline for charts (downsampled to ~10 Hz) ──────────────────────
    timeline: list[dict[str, Any]] = []
    if frames:
        t0 = frames[0].timestamp
        timeline = [
            {
                "t_s": round(f.timestamp - t0, 3),
                "status": f.distance_status.value,
                "coverage": round(f.coverage_percent, 1),
            }
            for f in frames[::3]  # every 3rd tick ≈ 10 Hz at 30 fps
        ]

    return {
        "recording_duration_s": round(recording_duration_s, 3),
        "final_coverage_pct": round(final_coverage, 1),
        "ok_distance_pct": round(counts[DistanceStatus.OK] / total * 100, 1),
        "too_close_pct": round(counts[DistanceStatus.TOO_CLOSE] / total * 100, 1),
        "too_far_pct": round(counts[DistanceStatus.TOO_FAR] / total * 100, 1),
        "no_vehicle_pct": round(counts[DistanceStatus.NO_VEHICLE] / total * 100, 1),
        "n_speed_warnings": n_speed_warnings,
        "peak_damage_regions": peak_regions,
        "total_ticks": n,
        "timeline": timeline,
    }
