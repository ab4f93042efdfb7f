"""MediaPipe ObjectDetector (Tasks API) wrapper.

Uses the COCO-trained EfficientDet-Lite0 model, which already knows the
``car``, ``truck``, ``bus`` and ``motorcycle`` classes, so no training is
involved.  The model file is downloaded once into ``assets/``.
"""

from __future__ import annotations

import logging
import urllib.request
from pathlib import Path
from typing import Any, Optional

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks.python import vision
from mediapipe.tasks.python.core.base_options import BaseOptions

logger = logging.getLogger(__name__)

# ── Model file ────────────────────────────────────────────────────────────────
_MODEL_FILENAME = "efficientdet_lite0.tflite"
_MODEL_PATH = Path("assets") / _MODEL_FILENAME
_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "object_detector/efficientdet_lite0/int8/1/efficientdet_lite0.tflite"
)


# ── Model download ─────────────────────────────────────────────────────────────

def ensure_model(model_path: Path = _MODEL_PATH) -> Path:
    """Return the model path, downloading it first if necessary.

    Raises ``RuntimeError`` on network failure so the caller can report the
    detector as unavailable and keep running on the fallback box.
    """
    if model_path.exists():
        return model_path

    model_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading ObjectDetector model → %s", model_path)

    try:
        urllib.request.urlretrieve(_MODEL_URL, str(model_path))
        logger.info("Model saved: %s", model_path)
    except Exception as exc:
        model_path.unlink(missing_ok=True)  # remove partial file
        raise RuntimeError(
            f"Failed to download ObjectDetector model from:\n{_MODEL_URL}\n\n"
            f"Error: {exc}\n\n"
            "Check your internet connection, or download the file manually\n"
            f"and place it at:  {model_path.resolve()}"
        ) from exc

    return model_path


# ── Detector class ─────────────────────────────────────────────────────────────

class VehicleDetector:
    """Thin wrapper around the MediaPipe Tasks ObjectDetector.

    Must be used from a **single thread**; the detection worker owns this
    instance exclusively.
    """

    def __init__(
        self,
        model_path: Optional[Path] = None,
        score_threshold: float = 0.3,
        max_results: int = 10,
    ) -> None:
        path = model_path or ensure_model()
        base_options = BaseOptions(model_asset_path=str(path.resolve()))
        options = vision.ObjectDetectorOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.IMAGE,
            max_results=max_results,
            score_threshold=score_threshold,
        )
        self._detector = vision.ObjectDetector.create_from_options(options)
        logger.info("VehicleDetector initialised (Tasks API, model=%s)", path.name)

    def detect(self, frame_bgr: np.ndarray) -> list[dict[str, Any]]:
        """Return ``[{"class", "box": (x, y, w, h), "score"}, ...]`` in
        frame pixels for every object the model reports."""
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        result = self._detector.detect(mp_image)

        out: list[dict[str, Any]] = []
        for det in result.detections:
            if not det.categories:
                continue
            cat = det.categories[0]
            bb = det.bounding_box
            out.append(
                {
                    "class": cat.category_name,
                    "box": (float(bb.origin_x), float(bb.origin_y), float(bb.width), float(bb.height)),
                    "score": float(cat.score),
                }
            )
        return out

    def close(self) -> None:
        self._detector.close()
        logger.debug("VehicleDetector closed.")
