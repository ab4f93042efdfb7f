"""Writes the walk-around footage to a local video file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)

_FOURCC = "mp4v"
_SUFFIX = ".mp4"


class VideoRecorder:
    """Opens an OpenCV ``VideoWriter`` on :meth:`start` and hands the finished
    file over on :meth:`stop`; after that the recorder keeps no reference to
    it."""

    def __init__(self, recordings_dir: Path, fps: float = 30.0) -> None:
        self.recordings_dir = recordings_dir
        self.fps = fps
        self._writer: Optional[cv2.VideoWriter] = None
        self._path: Optional[Path] = None
        self._size: Optional[tuple[int, int]] = None
        self._frames = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, session_id: str, frame_size: tuple[int, int]) -> Path:
        """*frame_size* is ``(width, height)``."""
        if self._writer is not None:
            raise RuntimeError("Recorder already running.")
        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        path = self.recordings_dir / f"{session_id}{_SUFFIX}"

        writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*_FOURCC), self.fps, frame_size)
        if not writer.isOpened():
            raise RuntimeError(f"Cannot open video writer for {path}.")

        self._writer = writer
        self._path = path
        self._size = frame_size
        self._frames = 0
        logger.info("Recording to %s  (%dx%d @ %.0f fps)", path, frame_size[0], frame_size[1], self.fps)
        return path

    def write(self, frame: np.ndarray) -> None:
        if self._writer is None or self._size is None:
            return
        h, w = frame.shape[:2]
        if (w, h) != self._size:
            frame = cv2.resize(frame, self._size)
        self._writer.write(frame)
        self._frames += 1

    def stop(self) -> Optional[Path]:
        """Finalise the file and return its path (``None`` if not recording)."""
        if self._writer is None:
            return None
        self._writer.release()
        path = self._path
        logger.info("Recording finished: %s  (%d frames)", path, self._frames)
        self._writer = None
        self._path = None
        self._size = None
        return path
