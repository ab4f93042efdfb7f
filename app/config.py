"""Application-wide configuration with typed fields and sane defaults."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path("config.json")


@dataclass
class Config:
    # Camera
    camera_index: int = 0
    camera_width: int = 1280
    camera_height: int = 720
    camera_fps: int = 30

    # Vehicle detector
    detector_model_path: Optional[str] = None   # None = download default model
    detector_score_threshold: float = 0.3
    detector_max_results: int = 10
    vehicle_classes: list[str] = field(
        default_factory=lambda: ["car", "truck", "bus", "motorcycle"]
    )
    detect_every_preview: int = 6     # frames between detections while previewing
    detect_every_recording: int = 3   # tighter tracking once footage is captured
    miss_clear_ms: float = 1000.0     # forget the box after this long without a hit
    stale_gate_ms: float = 1500.0     # recording: older boxes read as absent
    stale_clear_ms: float = 2000.0    # recording: older boxes are dropped

    # Guidance
    too_far_ratio: float = 0.55       # box width / frame width
    too_close_ratio: float = 0.85
    max_speed_px_s: float = 600.0
    coverage_target_s: float = 30.0   # time for a full walk-around

    # Damage heuristic
    damage_block_size: int = 40
    damage_contrast_threshold: float = 0.3
    damage_max_diff_threshold: float = 50.0
    damage_merge_distance: float = 60.0
    damage_invalidate_distance: float = 50.0
    damage_scan_multiplier: int = 3   # scan every detection interval × this

    # Upload / analysis service
    api_base_url: str = "http://localhost:3001"
    upload_timeout_s: float = 120.0
    recordings_dir: str = "recordings"

    # UI
    window_width: int = 1280
    window_height: int = 800
    fps_target: int = 30

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Path = _CONFIG_PATH) -> None:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(asdict(self), fh, indent=2)
        logger.debug("Config saved.")

    @classmethod
    def load(cls, path: Path = _CONFIG_PATH) -> "Config":
        if not path.exists():
            return cls()
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
            cfg = cls()
            for k, v in data.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
            logger.debug("Config loaded from %s", path)
            return cfg
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not load config (%s); using defaults.", exc)
            return cls()
