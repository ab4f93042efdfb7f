"""Background thread that runs the object detector off the tick loop."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, Optional, Protocol

from domain.models import DetectionRequest, DetectionResult, DetectorStatus

logger = logging.getLogger(__name__)


class Detector(Protocol):
    def detect(self, frame: Any) -> list[Any]: ...

    def close(self) -> None: ...


class DetectionWorker:
    """Loads the detector, then answers :class:`DetectionRequest` messages.

    Requests go in through a one-slot queue (a busy worker simply skips the
    tick's request); results come back through :meth:`poll_result`.  Model
    loading happens on the worker thread so the UI keeps running on the
    fallback box during warm-up.
    """

    def __init__(self, detector_factory: Callable[[], Detector]) -> None:
        self._factory = detector_factory
        self._detector: Optional[Detector] = None
        self._status = DetectorStatus.LOADING
        self._error: Optional[str] = None

        self._requests: queue.Queue[DetectionRequest] = queue.Queue(maxsize=1)
        self._results: queue.Queue[DetectionResult] = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name="DetectionWorker")
        self._thread.start()

    def stop(self) -> None:
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        if self._detector is not None:
            self._detector.close()
            self._detector = None
        logger.info("Detection worker stopped.")

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def submit(self, request: DetectionRequest) -> bool:
        """Non-blocking; ``False`` when the worker is busy or not ready."""
        if self._status != DetectorStatus.READY:
            return False
        try:
            self._requests.put_nowait(request)
            return True
        except queue.Full:
            return False

    def poll_result(self) -> Optional[DetectionResult]:
        try:
            return self._results.get_nowait()
        except queue.Empty:
            return None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> DetectorStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _run(self) -> None:
        try:
            self._detector = self._factory()
        except Exception as exc:
            self._error = str(exc)
            self._status = DetectorStatus.FAILED
            logger.error("Vehicle detector failed to load: %s", exc)
            return

        self._status = DetectorStatus.READY
        logger.info("Vehicle detector ready.")

        while self._running:
            try:
                request = self._requests.get(timeout=0.1)
            except queue.Empty:
                continue
            self._results.put(self._process(request))

    def _process(self, request: DetectionRequest) -> DetectionResult:
        assert self._detector is not None
        try:
            candidates = self._detector.detect(request.frame)
        except Exception as exc:
            # Counts as "no qualifying detection" for this call
            logger.warning("Detection failed: %s", exc)
            return DetectionResult(
                epoch=request.epoch,
                observed_at=request.observed_at,
                candidates=[],
                error=str(exc),
            )
        return DetectionResult(
            epoch=request.epoch,
            observed_at=request.observed_at,
            candidates=list(candidates or []),
        )
