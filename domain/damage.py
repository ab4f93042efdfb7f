"""Block-wise contrast heuristic that flags probable damage on the vehicle.

This is a coarse visual hint, not a classifier: reflections and strong
body lines will be flagged too. The authoritative assessment comes back
from the analysis service after upload.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from domain.geometry import Box
from domain.models import DamageRegion

logger = logging.getLogger(__name__)

DAMAGE_LABEL = "possible damage"


def block_contrast(block: np.ndarray) -> tuple[float, float]:
    """Return ``(normalised_mean, max)`` of the absolute brightness step
    between each pixel and its lower-right diagonal neighbour."""
    b = block.astype(np.int16)
    diff = np.abs(b[1:, 1:] - b[:-1, :-1])
    if diff.size == 0:
        return 0.0, 0.0
    return float(diff.mean()) / 255.0, float(diff.max())


def block_confidence(norm_contrast: float, max_diff: float) -> float:
    return min(0.95, 0.4 + 0.5 * norm_contrast + 0.3 * (max_diff / 255.0))


def scan_blocks(
    gray: np.ndarray,
    region: Box,
    block_size: int = 40,
    contrast_threshold: float = 0.3,
    max_diff_threshold: float = 50.0,
) -> list[DamageRegion]:
    """Flag blocks of *region* whose local contrast is anomalous.

    A block is flagged when its mean diagonal step exceeds
    *contrast_threshold* (diffuse texture) or its largest single step
    exceeds *max_diff_threshold* grey levels (sharp scratch or crease).
    """
    h, w = gray.shape[:2]
    clipped = region.clipped(w, h)
    if clipped is None:
        return []

    x0, y0 = int(clipped.x), int(clipped.y)
    x1, y1 = int(clipped.right), int(clipped.bottom)

    flagged: list[DamageRegion] = []
    for by in range(y0, y1, block_size):
        for bx in range(x0, x1, block_size):
            ey = min(by + block_size, y1)
            ex = min(bx + block_size, x1)
            if ey - by < 2 or ex - bx < 2:
                continue
            norm, max_diff = block_contrast(gray[by:ey, bx:ex])
            if norm > contrast_threshold or max_diff > max_diff_threshold:
                flagged.append(
                    DamageRegion(
                        box=Box(float(bx), float(by), float(ex - bx), float(ey - by)),
                        confidence=block_confidence(norm, max_diff),
                        label=DAMAGE_LABEL,
                    )
                )
    return flagged


def merge_regions(regions: Sequence[DamageRegion], max_distance: float = 60.0) -> list[DamageRegion]:
    """Fuse regions whose centres lie within *max_distance* px into their
    union box (keeping the higher confidence) until nothing else merges."""
    merged = list(regions)
    changed = True
    while changed:
        changed = False
        i = 0
        while i < len(merged):
            grew = False
            j = i + 1
            while j < len(merged):
                a, b = merged[i], merged[j]
                if a.box.center_distance(b.box) <= max_distance:
                    merged[i] = DamageRegion(
                        box=a.box.union(b.box),
                        confidence=max(a.confidence, b.confidence),
                        label=a.label,
                    )
                    del merged[j]
                    grew = changed = True
                else:
                    j += 1
            if not grew:
                i += 1
    return merged


class DamageScanner:
    """Holds the current damage overlay for the tracked vehicle."""

    def __init__(
        self,
        block_size: int = 40,
        contrast_threshold: float = 0.3,
        max_diff_threshold: float = 50.0,
        merge_distance: float = 60.0,
        invalidate_distance: float = 50.0,
    ) -> None:
        self.block_size = block_size
        self.contrast_threshold = contrast_threshold
        self.max_diff_threshold = max_diff_threshold
        self.merge_distance = merge_distance
        self.invalidate_distance = invalidate_distance

        self._regions: tuple[DamageRegion, ...] = ()
        self._last_box: Optional[Box] = None

    def reset(self) -> None:
        self._regions = ()
        self._last_box = None

    def track(self, box: Optional[Box]) -> None:
        """Drop the overlay when the vehicle is lost or its centre jumps,
        otherwise the regions would stick to the background."""
        if box is None:
            if self._regions:
                logger.debug("Vehicle lost; clearing %d damage regions.", len(self._regions))
            self._regions = ()
        elif self._last_box is not None:
            moved = box.center_distance(self._last_box)
            if moved > self.invalidate_distance and self._regions:
                logger.debug("Vehicle moved %.0f px; clearing damage regions.", moved)
                self._regions = ()
        self._last_box = box

    def scan(self, gray: np.ndarray, box: Box) -> tuple[DamageRegion, ...]:
        blocks = scan_blocks(
            gray,
            box,
            block_size=self.block_size,
            contrast_threshold=self.contrast_threshold,
            max_diff_threshold=self.max_diff_threshold,
        )
        self._regions = tuple(merge_regions(blocks, self.merge_distance))
        logger.debug("Damage scan: %d blocks -> %d regions", len(blocks), len(self._regions))
        return self._regions

    @property
    def regions(self) -> tuple[DamageRegion, ...]:
        return self._regions
