"""Threaded capture device reader with per-frame timestamps."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Consecutive failed reads before the device is reported as lost
_MAX_READ_FAILURES = 200


class Camera:
    """Reads the capture device on a daemon thread and keeps only the
    newest frame, so a slow tick never queues up stale video.

    :meth:`get_frame` returns ``(frame_bgr, captured_at)``; ``captured_at``
    is ``time.monotonic()`` at grab time and changes only when a new frame
    has arrived.
    """

    def __init__(self, index: int = 0, width: int = 1280, height: int = 720, fps: int = 30) -> None:
        self.index = index
        self.requested_size = (width, height)
        self.requested_fps = fps

        self._cap: Optional[cv2.VideoCapture] = None
        self._latest: Optional[tuple[np.ndarray, float]] = None
        self._frames_read = 0
        self._lost = False
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._frame_size = (0, 0)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the device.  Raises ``RuntimeError`` when it cannot be
        opened (no permission, busy, absent)."""
        if self._thread is not None:
            return
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(
                f"Cannot open camera at index {self.index} (permission denied or device busy)."
            )

        w, h = self.requested_size
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
        cap.set(cv2.CAP_PROP_FPS, self.requested_fps)
        # Drivers may silently pick another mode
        self._frame_size = (
            int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

        self._cap = cap
        with self._lock:
            self._latest = None
        self._frames_read = 0
        self._lost = False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._read_loop, daemon=True, name="CameraCapture")
        self._thread.start()
        logger.info(
            "Camera %d opened at %dx%d (requested %dx%d @ %d fps)",
            self.index, *self._frame_size, w, h, self.requested_fps,
        )

    def stop(self) -> None:
        if self._thread is None and self._cap is None:
            return
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        logger.info("Camera %d released after %d frames.", self.index, self._frames_read)

    # ------------------------------------------------------------------
    # Frame access
    # ------------------------------------------------------------------

    def get_frame(self) -> Optional[tuple[np.ndarray, float]]:
        """Newest ``(frame_bgr, captured_at)``, or ``None`` before the
        first frame.  The array is a copy owned by the caller."""
        with self._lock:
            if self._latest is None:
                return None
            frame, captured_at = self._latest
        return frame.copy(), captured_at

    @property
    def lost(self) -> bool:
        """The device stopped delivering frames while open."""
        return self._lost

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _read_loop(self) -> None:
        cap = self._cap
        assert cap is not None
        failures = 0
        while not self._stop_event.is_set():
            ok, frame = cap.read()
            if not ok:
                failures += 1
                if failures == _MAX_READ_FAILURES and not self._lost:
                    self._lost = True
                    logger.warning("Camera %d stopped delivering frames.", self.index)
                time.sleep(0.005)
                continue

            failures = 0
            self._lost = False
            captured_at = time.monotonic()
            with self._lock:
                self._latest = (frame, captured_at)
            self._frames_read += 1
