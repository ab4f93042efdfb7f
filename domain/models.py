"""Core data models for the walk-around capture guide."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import numpy as np

from domain.geometry import Box


class DistanceStatus(str, Enum):
    TOO_CLOSE = "TOO_CLOSE"
    TOO_FAR = "TOO_FAR"
    OK = "OK"
    NO_VEHICLE = "NO_VEHICLE"


class SessionState(str, Enum):
    IDLE = "IDLE"
    PREVIEWING = "PREVIEWING"
    RECORDING = "RECORDING"
    UPLOADING = "UPLOADING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class DetectorStatus(str, Enum):
    LOADING = "LOADING"
    READY = "READY"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DetectionSample:
    box: Box
    observed_at: float  # time.monotonic()


@dataclass(frozen=True)
class TrackState:
    """Replaced as a whole on every write, never patched field by field."""

    last_box: Optional[Box] = None
    last_updated: Optional[float] = None
    last_center_x: Optional[float] = None
    last_center_time: Optional[float] = None

    @classmethod
    def from_sample(cls, sample: DetectionSample) -> "TrackState":
        return cls(
            last_box=sample.box,
            last_updated=sample.observed_at,
            last_center_x=sample.box.center_x,
            last_center_time=sample.observed_at,
        )

    @property
    def is_empty(self) -> bool:
        return self.last_box is None


@dataclass(frozen=True)
class DamageRegion:
    box: Box
    confidence: float  # 0-1
    label: str = "possible damage"


@dataclass
class CoverageState:
    started_at: Optional[float] = None
    percent: float = 0.0  # 0-100


# ------------------------------------------------------------------
# Messages crossing the detector thread boundary
# ------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class DetectionRequest:
    epoch: int
    frame: np.ndarray
    observed_at: float


@dataclass(frozen=True)
class DetectionResult:
    epoch: int
    observed_at: float
    candidates: list[Any] = field(default_factory=list)
    error: Optional[str] = None


# ------------------------------------------------------------------
# Per-tick output
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GuidanceFrame:
    """Everything the presentation layer needs to draw one tick."""

    timestamp: float
    frame_width: int
    frame_height: int
    vehicle_box: Optional[Box]
    distance_status: DistanceStatus
    distance_message: str
    speed_warning: Optional[str]
    coverage_percent: float
    damage_regions: tuple[DamageRegion, ...]
    session_state: SessionState
    detector_status: DetectorStatus
    advisory: Optional[str] = None

    @property
    def can_record(self) -> bool:
        return self.vehicle_box is not None


@dataclass
class SessionEvent:
    """A committed session transition."""

    from_state: SessionState
    to_state: SessionState
    timestamp: float  # monotonic seconds
    reason: str = ""


# ------------------------------------------------------------------
# Upload / analysis result
# ------------------------------------------------------------------

@dataclass
class VehicleInfo:
    make: str = ""
    model: str = ""
    year: Optional[int] = None
    mileage: Optional[int] = None
    vin: str = ""

    @property
    def display_name(self) -> str:
        parts = [str(self.year) if self.year else "", self.make, self.model]
        name = " ".join(p for p in parts if p)
        return name or "Unknown vehicle"


@dataclass
class ReportedDamage:
    panel_id: str = ""
    panel_name: str = ""
    damage_type: str = ""
    severity: str = ""
    location: Optional[Box] = None
    description: str = ""
    estimated_cost: float = 0.0


@dataclass
class ConditionSummary:
    total_damages: int = 0
    estimated_repair_cost: float = 0.0
    condition_rating: float = 5.0
    adjusted_value: float = 0.0


@dataclass
class InspectionResult:
    inspection_id: str = ""
    video_url: str = ""
    vehicle_info: VehicleInfo = field(default_factory=VehicleInfo)
    damages: list[ReportedDamage] = field(default_factory=list)
    summary: ConditionSummary = field(default_factory=ConditionSummary)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InspectionResult":
        """Lenient parse of the analysis service response; absent sections
        fall back to empty defaults."""
        info = _section(data.get("vehicleInfo"))
        summary = _section(data.get("summary"))

        damages = []
        raw_damages = data.get("damages")
        for d in raw_damages if isinstance(raw_damages, list) else []:
            if not isinstance(d, dict):
                continue
            loc = _section(d.get("location"))
            location = None
            if all(k in loc for k in ("x", "y", "width", "height")):
                location = Box(
                    float(loc["x"]), float(loc["y"]),
                    float(loc["width"]), float(loc["height"]),
                )
            damages.append(
                ReportedDamage(
                    panel_id=str(d.get("panelId", "")),
                    panel_name=str(d.get("panelName", "")),
                    damage_type=str(d.get("damageType", "")),
                    severity=str(d.get("severity", "")),
                    location=location,
                    description=str(d.get("description", "")),
                    estimated_cost=float(d.get("estimatedCost") or 0.0),
                )
            )

        return cls(
            inspection_id=str(data.get("id") or data.get("_id") or ""),
            video_url=str(data.get("videoUrl", "")),
            vehicle_info=VehicleInfo(
                make=str(info.get("make") or ""),
                model=str(info.get("model") or ""),
                year=_opt_int(info.get("year")),
                mileage=_opt_int(info.get("mileage")),
                vin=str(info.get("vin") or ""),
            ),
            damages=damages,
            summary=ConditionSummary(
                total_damages=int(summary.get("totalDamages", len(damages)) or 0),
                estimated_repair_cost=float(summary.get("estimatedRepairCost") or 0.0),
                condition_rating=float(summary.get("conditionRating") or 5.0),
                adjusted_value=float(summary.get("adjustedValue") or 0.0),
            ),
            raw=data,
        )

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


def _section(value: Any) -> dict[str, Any]:
    """Nested objects the service sent as anything but a JSON object are
    treated as absent."""
    return value if isinstance(value, dict) else {}


def _opt_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
