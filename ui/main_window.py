"""Main application window – stacked screens for all app states."""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QTimer, Qt, Signal
from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QFrame,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QSpinBox,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from app.config import Config
from app.controller import Controller
from domain.models import DetectorStatus, SessionEvent, SessionState
from ui.inspection_screen import InspectionScreen
from ui.summary_screen import SummaryScreen

logger = logging.getLogger(__name__)

# Screen indices in the stacked widget
_IDX_HOME = 0
_IDX_INSPECT = 1
_IDX_UPLOADING = 2
_IDX_SUMMARY = 3

_INSTRUCTIONS = [
    "Position yourself 3–5 feet from the vehicle.",
    "Keep the whole car inside the frame.",
    "Start recording once the vehicle box turns green.",
    "Walk slowly around the car in a full circle.",
    "Finish the loop and press “Complete Loop & Analyze”.",
]


class SettingsDialog(QDialog):
    """Operator settings panel for tuning the guidance thresholds."""

    def __init__(self, config: Config, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Guidance Settings")
        self.setMinimumWidth(360)
        self._config = config

        form = QFormLayout()

        self._far = QDoubleSpinBox()
        self._far.setRange(0.05, 1.0)
        self._far.setSingleStep(0.05)
        self._far.setValue(config.too_far_ratio)
        form.addRow("Too far below (width ratio):", self._far)

        self._close = QDoubleSpinBox()
        self._close.setRange(0.05, 1.0)
        self._close.setSingleStep(0.05)
        self._close.setValue(config.too_close_ratio)
        form.addRow("Too close above (width ratio):", self._close)

        self._speed = QDoubleSpinBox()
        self._speed.setRange(50, 5000)
        self._speed.setSingleStep(50)
        self._speed.setSuffix(" px/s")
        self._speed.setValue(config.max_speed_px_s)
        form.addRow("Max walking speed:", self._speed)

        self._target = QDoubleSpinBox()
        self._target.setRange(5, 600)
        self._target.setSingleStep(5)
        self._target.setSuffix(" s")
        self._target.setValue(config.coverage_target_s)
        form.addRow("Full loop duration:", self._target)

        self._cam_idx = QSpinBox()
        self._cam_idx.setRange(0, 9)
        self._cam_idx.setValue(config.camera_index)
        form.addRow("Camera index:", self._cam_idx)

        self._api = QLineEdit(config.api_base_url)
        form.addRow("Analysis service:", self._api)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self._apply)
        buttons.rejected.connect(self.reject)

        layout = QVBoxLayout(self)
        layout.addLayout(form)
        layout.addWidget(buttons)

    def _apply(self) -> None:
        if self._far.value() >= self._close.value():
            QMessageBox.warning(self, "Settings", "The 'too far' ratio must be below the 'too close' ratio.")
            return
        self._config.too_far_ratio = self._far.value()
        self._config.too_close_ratio = self._close.value()
        self._config.max_speed_px_s = self._speed.value()
        self._config.coverage_target_s = self._target.value()
        self._config.camera_index = self._cam_idx.value()
        self._config.api_base_url = self._api.text().strip() or self._config.api_base_url
        self._config.save()
        self.accept()


class HomeScreen(QWidget):
    """Landing screen with capture instructions and detector status."""

    start_inspection = Signal()
    open_settings = Signal()

    def __init__(self, controller: Controller, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._ctrl = controller
        self._build_ui()

        self._status_timer = QTimer(self)
        self._status_timer.setInterval(500)
        self._status_timer.timeout.connect(self.refresh)
        self._status_timer.start()
        self.refresh()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.setSpacing(20)

        title = QLabel("360° Vehicle Inspection")
        title.setStyleSheet("font-size: 32px; font-weight: bold; color: #e8e8ff;")
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        sub = QLabel("Guided walk-around video capture")
        sub.setStyleSheet("font-size: 14px; color: #8888aa;")
        sub.setAlignment(Qt.AlignmentFlag.AlignCenter)

        layout.addStretch()
        layout.addWidget(title)
        layout.addWidget(sub)

        # ── Instructions ──────────────────────────────────────────────
        steps = QFrame()
        steps.setStyleSheet("QFrame { background: #1e2240; border-radius: 10px; }")
        sl = QVBoxLayout(steps)
        sl.setContentsMargins(24, 16, 24, 16)
        heading = QLabel("Before you start")
        heading.setStyleSheet("font-weight: bold; color: #aaaaee;")
        sl.addWidget(heading)
        for i, text in enumerate(_INSTRUCTIONS, start=1):
            sl.addWidget(QLabel(f"{i}.  {text}"))
        layout.addWidget(steps, 0, Qt.AlignmentFlag.AlignHCenter)

        self._detector_label = QLabel()
        self._detector_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self._detector_label)

        # ── Action buttons ────────────────────────────────────────────
        self._btn_start = QPushButton("▶  Open Camera")
        self._btn_start.setFixedSize(200, 48)
        self._btn_start.setStyleSheet(
            "background: #228833; color: white; font-size: 14px;"
            "border: none; border-radius: 6px; font-weight: bold;"
        )
        self._btn_start.clicked.connect(self.start_inspection)

        btn_settings = QPushButton("⚙ Settings")
        btn_settings.setStyleSheet("color: #aaaacc; border: none; font-size: 11px;")
        btn_settings.clicked.connect(self.open_settings)

        layout.addWidget(self._btn_start, 0, Qt.AlignmentFlag.AlignHCenter)
        layout.addWidget(btn_settings, 0, Qt.AlignmentFlag.AlignRight)
        layout.addStretch()

    def refresh(self) -> None:
        status = self._ctrl.detector_status
        if status == DetectorStatus.READY:
            self._detector_label.setText("✓ Vehicle detector ready")
            self._detector_label.setStyleSheet("color: #44dd88;")
        elif status == DetectorStatus.LOADING:
            self._detector_label.setText("Loading vehicle detector…")
            self._detector_label.setStyleSheet("color: #aaaacc;")
        else:
            # Capture still works with the fallback frame
            self._detector_label.setText(
                f"✗ Vehicle detector unavailable ({self._ctrl.detector_error}) – "
                "guidance will use a fixed frame."
            )
            self._detector_label.setStyleSheet("color: #dd4444;")


class UploadingScreen(QWidget):
    """Shown while the recording is being analysed by the service."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setAlignment(Qt.AlignmentFlag.AlignCenter)

        label = QLabel("Analyzing video…")
        label.setStyleSheet("font-size: 22px; font-weight: bold; color: #e0e0ff;")
        label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        hint = QLabel("Uploading the walk-around and detecting damage. This can take a minute.")
        hint.setStyleSheet("color: #8888aa;")
        hint.setAlignment(Qt.AlignmentFlag.AlignCenter)

        busy = QProgressBar()
        busy.setRange(0, 0)  # indeterminate
        busy.setFixedWidth(320)

        layout.addWidget(label)
        layout.addWidget(hint)
        layout.addWidget(busy, 0, Qt.AlignmentFlag.AlignHCenter)


class MainWindow(QMainWindow):
    """Root application window.

    Screens follow the session state: the controller reports transitions
    through ``on_state_changed`` and the window switches the stack.
    """

    def __init__(self, config: Config, controller: Controller) -> None:
        super().__init__()
        self._config = config
        self._controller = controller

        self.setWindowTitle("Walk-around Capture Guide")
        self.resize(config.window_width, config.window_height)

        # ── Stacked widget ─────────────────────────────────────────────
        self._stack = QStackedWidget()
        self.setCentralWidget(self._stack)

        self._home = HomeScreen(controller)
        self._home.start_inspection.connect(self._start_inspection)
        self._home.open_settings.connect(self._open_settings)

        self._inspection: Optional[InspectionScreen] = None

        self._stack.addWidget(self._home)            # 0
        self._stack.addWidget(QWidget())             # 1 – inspection placeholder
        self._stack.addWidget(UploadingScreen())     # 2
        self._stack.addWidget(QWidget())             # 3 – summary placeholder
        self._stack.setCurrentIndex(_IDX_HOME)

        # Keeps upload results flowing while no live screen is ticking
        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(200)
        self._poll_timer.timeout.connect(self._controller.tick)

        controller.on_state_changed = self._on_state_changed

        self._apply_dark_theme()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _start_inspection(self) -> None:
        try:
            self._controller.start_preview()
        except RuntimeError as exc:
            logger.error("Camera start failed: %s", exc)
            QMessageBox.critical(self, "Camera Error", str(exc))

    def _on_state_changed(self, event: SessionEvent) -> None:
        to = event.to_state
        if to == SessionState.PREVIEWING:
            self._show_inspection()
        elif to == SessionState.UPLOADING:
            self._stop_inspection()
            self._poll_timer.start()
            self._stack.setCurrentIndex(_IDX_UPLOADING)
        elif to in (SessionState.COMPLETE, SessionState.FAILED):
            self._poll_timer.stop()
            self._show_summary()
        elif to == SessionState.IDLE:
            self._stop_inspection()
            self._home.refresh()
            self._stack.setCurrentIndex(_IDX_HOME)

    def _show_inspection(self) -> None:
        self._stop_inspection()
        screen = InspectionScreen(self._controller)
        self._stack.removeWidget(self._stack.widget(_IDX_INSPECT))
        self._stack.insertWidget(_IDX_INSPECT, screen)
        self._inspection = screen
        self._stack.setCurrentIndex(_IDX_INSPECT)
        screen.start()

    def _stop_inspection(self) -> None:
        if self._inspection is not None:
            self._inspection.stop()

    def _show_summary(self) -> None:
        summary = SummaryScreen(
            result=self._controller.result,
            error=self._controller.error,
            capture=self._controller.capture_summary,
        )
        summary.home_requested.connect(self._controller.restart)
        summary.retry_requested.connect(self._controller.retry)

        self._stack.removeWidget(self._stack.widget(_IDX_SUMMARY))
        self._stack.insertWidget(_IDX_SUMMARY, summary)
        self._stack.setCurrentIndex(_IDX_SUMMARY)

    def _open_settings(self) -> None:
        dlg = SettingsDialog(self._config, self)
        if dlg.exec() == QDialog.DialogCode.Accepted:
            self._controller.apply_config(self._config)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._stop_inspection()
        self._poll_timer.stop()
        super().closeEvent(event)

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------

    def _apply_dark_theme(self) -> None:
        self.setStyleSheet(
            """
            QMainWindow, QWidget {
                background: #0e0e1e;
                color: #d0d0f0;
                font-family: 'Segoe UI', sans-serif;
            }
            QPushButton {
                background: #1e2240;
                color: #d0d0f0;
                border: 1px solid #334466;
                border-radius: 4px;
                padding: 6px 14px;
                font-size: 12px;
            }
            QPushButton:hover { background: #2a3060; }
            QPushButton:pressed { background: #151530; }
            QPushButton:disabled { color: #555566; background: #141425; }
            QProgressBar {
                background: #1e2240;
                border: 1px solid #334466;
                border-radius: 4px;
                text-align: center;
                color: #d0d0f0;
            }
            QProgressBar::chunk { background: #11c770; border-radius: 3px; }
            QTableWidget {
                background: #141430;
                gridline-color: #334466;
            }
            QHeaderView::section {
                background: #1e2240;
                color: #aaaaee;
                border: none;
                padding: 4px;
            }
            QLabel { color: #d0d0f0; }
            QLineEdit, QDoubleSpinBox, QSpinBox {
                background: #1e2240;
                color: #d0d0f0;
                border: 1px solid #334466;
                border-radius: 4px;
                padding: 2px 6px;
            }
            """
        )
