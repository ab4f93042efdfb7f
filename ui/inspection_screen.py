"""Live inspection screen – camera view, guidance overlay and record controls."""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np
from PySide6.QtCore import QTimer, Qt
from PySide6.QtGui import QColor, QFont, QImage, QPainter
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QProgressBar,
    QPushButton,
    QSizePolicy,
    QVBoxLayout,
    QWidget,
)

from app.controller import Controller
from domain.models import DistanceStatus, GuidanceFrame, SessionState
from domain.motion import DISTANCE_BADGES
from ui.guidance_overlay import GuidanceOverlay, letterbox

logger = logging.getLogger(__name__)

_BADGE_STYLES = {
    DistanceStatus.TOO_CLOSE: "background: #ff4b5c; color: white;",
    DistanceStatus.TOO_FAR: "background: #f5a623; color: black;",
    DistanceStatus.OK: "background: #11c770; color: black;",
    DistanceStatus.NO_VEHICLE: "background: #555566; color: white;",
}


class CameraCanvas(QWidget):
    """Draws the latest camera frame letterboxed into the widget."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._image: Optional[QImage] = None
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

    def set_frame(self, frame_bgr: np.ndarray) -> None:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        h, w = rgb.shape[:2]
        # copy() detaches the QImage from the numpy buffer
        self._image = QImage(rgb.data, w, h, rgb.strides[0], QImage.Format.Format_RGB888).copy()
        self.update()

    def paintEvent(self, _event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(10, 10, 20))
        if self._image is None:
            painter.setPen(QColor(180, 180, 200))
            painter.setFont(QFont("Segoe UI", 14))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "Starting camera…")
            return
        scale, ox, oy = letterbox(self._image.width(), self._image.height(), self.width(), self.height())
        target_w = int(self._image.width() * scale)
        target_h = int(self._image.height() * scale)
        scaled = self._image.scaled(
            target_w,
            target_h,
            Qt.AspectRatioMode.IgnoreAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        painter.drawImage(int(ox), int(oy), scaled)


class InspectionScreen(QWidget):
    """Preview and recording view.

    A ``QTimer`` drives :meth:`Controller.tick`; each returned guidance frame
    is handed to the overlay and the status bar.
    """

    def __init__(self, controller: Controller, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._ctrl = controller

        # ── Build UI ──────────────────────────────────────────────────
        self._canvas = CameraCanvas()
        self._overlay = GuidanceOverlay(self._canvas)
        self._overlay.setGeometry(self._canvas.rect())

        self._badge = QLabel(DISTANCE_BADGES[DistanceStatus.NO_VEHICLE])
        self._badge.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._badge.setMinimumWidth(160)

        self._speed_label = QLabel("")
        self._speed_label.setStyleSheet("color: #ffcc00; font-weight: bold;")

        self._coverage_bar = QProgressBar()
        self._coverage_bar.setRange(0, 100)
        self._coverage_bar.setFormat("360° Coverage  %p%")
        self._coverage_bar.setFixedWidth(220)

        self._guidance_label = QLabel("Center the vehicle in view to begin.")
        self._guidance_label.setStyleSheet("font-size: 13px; color: #d0d0f0;")
        hint = QLabel("Walk slowly around the car in a full circle while keeping it centered in the frame.")
        hint.setStyleSheet("font-size: 11px; color: #8888aa;")

        self._advisory_label = QLabel("")
        self._advisory_label.setStyleSheet("font-size: 11px; color: #dd8844;")

        self._record_btn = QPushButton("● Start 360° Video Inspection")
        self._record_btn.setFixedHeight(40)
        self._record_btn.setStyleSheet(
            "background: #228833; color: white; font-weight: bold; font-size: 13px;"
            "border: none; padding: 0 20px; border-radius: 4px;"
        )
        self._record_btn.clicked.connect(self._on_record_clicked)

        self._wait_hint = QLabel("Waiting for vehicle detection...")
        self._wait_hint.setStyleSheet("font-size: 11px; color: #9ca3af;")

        status_row = QHBoxLayout()
        status_row.setContentsMargins(8, 4, 8, 4)
        status_row.addWidget(self._badge)
        status_row.addWidget(self._speed_label, 1)
        status_row.addWidget(self._coverage_bar)

        text_col = QVBoxLayout()
        text_col.addWidget(self._guidance_label)
        text_col.addWidget(hint)
        text_col.addWidget(self._advisory_label)

        controls = QVBoxLayout()
        controls.addWidget(self._record_btn)
        controls.addWidget(self._wait_hint, 0, Qt.AlignmentFlag.AlignHCenter)

        bottom = QHBoxLayout()
        bottom.setContentsMargins(8, 4, 8, 8)
        bottom.addLayout(text_col, 1)
        bottom.addLayout(controls)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._canvas, 1)
        layout.addLayout(status_row)
        layout.addLayout(bottom)

        # ── Timer ─────────────────────────────────────────────────────
        self._tick_timer = QTimer(self)
        self._tick_timer.setInterval(max(1, 1000 // max(1, controller.config.fps_target)))
        self._tick_timer.timeout.connect(self._tick)

        self._set_badge(DistanceStatus.NO_VEHICLE)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._tick_timer.start()

    def stop(self) -> None:
        self._tick_timer.stop()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        frame = self._ctrl.tick()
        if frame is None:
            return
        image = self._ctrl.last_image
        if image is not None:
            self._canvas.set_frame(image)
        self._overlay.update_frame(frame)
        self._apply_frame(frame)

    def _apply_frame(self, f: GuidanceFrame) -> None:
        self._set_badge(f.distance_status)
        self._speed_label.setText(f.speed_warning or "")
        self._coverage_bar.setValue(int(round(f.coverage_percent)))
        self._guidance_label.setText(f.distance_message)
        if self._ctrl.camera_lost:
            self._advisory_label.setText("Camera stopped delivering frames. Check the connection.")
        else:
            self._advisory_label.setText(f.advisory or "")

        recording = f.session_state == SessionState.RECORDING
        if recording:
            self._record_btn.setEnabled(True)
            self._wait_hint.setVisible(False)
        else:
            self._record_btn.setEnabled(f.can_record)
            self._wait_hint.setVisible(not f.can_record)

    def _set_badge(self, status: DistanceStatus) -> None:
        self._badge.setText(DISTANCE_BADGES[status])
        self._badge.setStyleSheet(
            _BADGE_STYLES[status] + "padding: 4px 12px; border-radius: 10px; font-weight: bold;"
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _on_record_clicked(self) -> None:
        if self._ctrl.state == SessionState.RECORDING:
            self._ctrl.stop_recording()
            return

        try:
            started = self._ctrl.start_recording()
        except RuntimeError as exc:
            logger.error("Cannot start recording: %s", exc)
            self._advisory_label.setText(str(exc))
            return

        if started:
            self._record_btn.setText("■ Complete Loop && Analyze")
            self._record_btn.setStyleSheet(
                "background: #cc3333; color: white; font-weight: bold; font-size: 13px;"
                "border: none; padding: 0 20px; border-radius: 4px;"
            )

    # ------------------------------------------------------------------
    # Resize
    # ------------------------------------------------------------------

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        if self._canvas:
            self._overlay.setGeometry(self._canvas.rect())
