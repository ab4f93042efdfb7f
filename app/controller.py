"""Inspection session controller – ties camera, guidance, recording and upload."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np

from app.config import Config
from app.uploader import InspectionUploader, UploadOutcome
from domain.metrics import compute_capture_summary
from domain.models import (
    DetectorStatus,
    GuidanceFrame,
    InspectionResult,
    SessionEvent,
    SessionState,
)
from domain.state_machine import SessionStateMachine
from storage.video_recorder import VideoRecorder
from vision.camera import Camera
from vision.detection_worker import DetectionWorker
from vision.guidance import GuidanceEngine
from vision.vehicle_detector import VehicleDetector

logger = logging.getLogger(__name__)


class Controller:
    """Owns the camera, detector worker, guidance engine and session state.

    The UI drives :meth:`tick` from its refresh timer; every tick samples the
    clock once and either returns a :class:`GuidanceFrame` or ``None`` when
    there is nothing live to analyse.  Detection and upload run on their own
    threads and report back through queues drained here.
    """

    # Signals (set by the UI)
    on_state_changed: Optional[Callable[[SessionEvent], None]] = None

    def __init__(
        self,
        config: Config,
        camera: Optional[Camera] = None,
        detection_worker: Optional[DetectionWorker] = None,
        recorder: Optional[VideoRecorder] = None,
        uploader: Optional[InspectionUploader] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.camera = camera or Camera(
            config.camera_index, config.camera_width, config.camera_height, config.camera_fps
        )
        self.detection_worker = detection_worker or DetectionWorker(self._make_detector)
        self.engine = GuidanceEngine.from_config(config, self.detection_worker)
        self.session = SessionStateMachine()
        self.session.set_on_transition(self._on_transition)
        self.recorder = recorder or VideoRecorder(Path(config.recordings_dir), fps=config.camera_fps)
        self.uploader = uploader or InspectionUploader(config.api_base_url, config.upload_timeout_s)
        self._clock = clock

        self._session_id: Optional[str] = None
        self._last_frame: Optional[GuidanceFrame] = None
        self._recorded_frames: list[GuidanceFrame] = []
        self._recording_start: float = 0.0
        self._capture_summary: dict[str, Any] = {}
        self._result: Optional[InspectionResult] = None
        self._deferred_error: Optional[str] = None
        self._last_image: Optional[np.ndarray] = None
        self._last_captured_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Startup / Shutdown
    # ------------------------------------------------------------------

    def start_detector(self) -> None:
        """Begin loading the detector model in the background."""
        self.detection_worker.start()

    def shutdown(self) -> None:
        self.recorder.stop()
        self.camera.stop()
        self.detection_worker.stop()
        logger.info("Controller shut down.")

    def apply_config(self, config: Config) -> bool:
        """Adopt edited settings.  Only possible while IDLE, since the engine
        and camera are rebuilt."""
        if self.session.state != SessionState.IDLE:
            logger.warning("Settings change ignored while %s", self.session.state.value)
            return False
        self.config = config
        self.engine = GuidanceEngine.from_config(config, self.detection_worker)
        if config.camera_index != self.camera.index:
            self.camera = Camera(
                config.camera_index, config.camera_width, config.camera_height, config.camera_fps
            )
        self.uploader.base_url = config.api_base_url
        self.uploader.timeout_s = config.upload_timeout_s
        return True

    # ------------------------------------------------------------------
    # Session lifecycle (user actions)
    # ------------------------------------------------------------------

    def start_preview(self) -> None:
        """IDLE → PREVIEWING.  Raises ``RuntimeError`` if the camera cannot
        be opened; the session then stays IDLE."""
        if not self.session.can_transition(SessionState.PREVIEWING):
            return
        if self.session.state == SessionState.IDLE:
            self.camera.start()
        self.session.start_preview(self._clock())

    def start_recording(self) -> bool:
        """PREVIEWING → RECORDING, only with a fresh vehicle box in view.

        Freshness is judged by the recording staleness rule, so a box the
        first recording tick would discard cannot start a recording.
        """
        now = self._clock()
        frame = self._last_frame
        vehicle_present = frame is not None and frame.can_record
        if vehicle_present and self.detection_worker.status == DetectorStatus.READY:
            vehicle_present = self.engine.cache.passes_recording_gate(now)
        if not self.session.can_transition(SessionState.RECORDING) or not vehicle_present:
            return self.session.start_recording(vehicle_present, now)

        assert frame is not None
        self._session_id = datetime.now().strftime("%Y-%m-%d_%H-%M-%S-%f")
        self.recorder.start(self._session_id, (frame.frame_width, frame.frame_height))
        return self.session.start_recording(vehicle_present, now)

    def stop_recording(self) -> bool:
        """RECORDING → UPLOADING; the file is handed to the uploader."""
        return self.session.stop_recording(self._clock())

    def retry(self) -> bool:
        """FAILED → PREVIEWING (camera still open)."""
        return self.session.retry(self._clock())

    def restart(self) -> bool:
        """COMPLETE/FAILED → IDLE; releases the camera."""
        return self.session.restart(self._clock())

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> Optional[GuidanceFrame]:
        now = self._clock()
        self._poll_upload(now)

        if not self.session.is_live:
            return None

        frame_data = self.camera.get_frame()
        if frame_data is None:
            return None
        frame, captured_at = frame_data

        guidance = self.engine.tick(frame, now, self.session.state)
        if self.session.is_recording:
            # The tick can outrun the camera; write each captured frame once
            if captured_at != self._last_captured_at:
                self.recorder.write(frame)
            self._recorded_frames.append(guidance)
        self._last_captured_at = captured_at

        self._last_frame = guidance
        self._last_image = frame
        return guidance

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def detector_status(self) -> DetectorStatus:
        return self.detection_worker.status

    @property
    def detector_error(self) -> Optional[str]:
        return self.detection_worker.error

    @property
    def camera_lost(self) -> bool:
        return self.camera.lost

    @property
    def last_frame(self) -> Optional[GuidanceFrame]:
        return self._last_frame

    @property
    def last_image(self) -> Optional[np.ndarray]:
        return self._last_image

    @property
    def result(self) -> Optional[InspectionResult]:
        return self._result

    @property
    def error(self) -> Optional[str]:
        return self.session.error

    @property
    def capture_summary(self) -> dict[str, Any]:
        return self._capture_summary

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _make_detector(self) -> VehicleDetector:
        path = Path(self.config.detector_model_path) if self.config.detector_model_path else None
        return VehicleDetector(
            model_path=path,
            score_threshold=self.config.detector_score_threshold,
            max_results=self.config.detector_max_results,
        )

    def _on_transition(self, event: SessionEvent) -> None:
        to = event.to_state
        if to == SessionState.PREVIEWING:
            self.engine.reset()
            self._last_frame = None
        elif to == SessionState.RECORDING:
            self.engine.begin_recording(event.timestamp)
            self._recorded_frames = []
            self._recording_start = event.timestamp
            self._result = None
        elif to == SessionState.UPLOADING:
            self._finish_recording(event.timestamp)
        elif to == SessionState.IDLE:
            self.engine.cache.cancel_pending()
            self.camera.stop()
            self._last_frame = None

        if self.on_state_changed:
            self.on_state_changed(event)

    def _finish_recording(self, end_time: float) -> None:
        self.engine.end_recording()
        path = self.recorder.stop()
        duration = end_time - self._recording_start
        self._capture_summary = compute_capture_summary(self._recorded_frames, duration)
        logger.info(
            "Recording stopped.  Duration=%.1fs  Coverage=%.0f%%  Ticks=%d",
            duration,
            self._capture_summary["final_coverage_pct"],
            len(self._recorded_frames),
        )
        if path is None:
            # Reported on the next tick, once UPLOADING has been announced
            self._deferred_error = "No recording available to upload."
            return
        assert self._session_id is not None
        self.uploader.upload(self._session_id, path)

    def _poll_upload(self, now: float) -> None:
        if self._deferred_error is not None:
            error, self._deferred_error = self._deferred_error, None
            self.session.upload_failed(error, now)
        while True:
            outcome = self.uploader.poll()
            if outcome is None:
                return
            self._apply_upload(outcome, now)

    def _apply_upload(self, outcome: UploadOutcome, now: float) -> None:
        if outcome.session_id != self._session_id or self.session.state != SessionState.UPLOADING:
            logger.debug("Ignoring upload outcome for stale session %s", outcome.session_id)
            return
        if outcome.ok:
            self._result = outcome.result
            self.session.upload_succeeded(now)
        else:
            self.session.upload_failed(outcome.error or "Video processing failed.", now)
