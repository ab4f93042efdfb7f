"""Summary screen – analysis result, capture statistics and charts."""

from __future__ import annotations

from typing import Any, Optional

import matplotlib

matplotlib.use("QtAgg")
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg
from matplotlib.figure import Figure
from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QSplitter,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from domain.models import InspectionResult


_SEVERITY_COLOURS = {"minor": "#f5d547", "moderate": "#f5a623", "severe": "#ff4b5c"}


class StatCard(QFrame):
    """Small card widget for displaying a key metric."""

    def __init__(self, title: str, value: str, colour: str = "#aaaacc") -> None:
        super().__init__()
        self.setFrameShape(QFrame.Shape.StyledPanel)
        self.setStyleSheet("QFrame { background: #1e2240; border-radius: 8px; }")
        lay = QVBoxLayout(self)
        lay.setContentsMargins(12, 8, 12, 8)

        v_lbl = QLabel(value)
        v_lbl.setStyleSheet(f"font-size: 24px; font-weight: bold; color: {colour};")
        t_lbl = QLabel(title)
        t_lbl.setStyleSheet("font-size: 10px; color: #888; text-transform: uppercase;")

        lay.addWidget(v_lbl)
        lay.addWidget(t_lbl)


class SummaryScreen(QWidget):
    """Shown once the session reaches COMPLETE or FAILED."""

    home_requested = Signal()
    retry_requested = Signal()

    def __init__(
        self,
        result: Optional[InspectionResult],
        error: Optional[str],
        capture: dict[str, Any],
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._result = result
        self._error = error
        self._capture = capture
        self._build_ui()

    # ------------------------------------------------------------------
    # Build UI
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(16, 16, 16, 16)

        title = QLabel("Inspection Summary" if self._error is None else "Inspection Failed")
        title.setStyleSheet("font-size: 24px; font-weight: bold; color: #e0e0ff;")
        root.addWidget(title)

        if self._error is not None:
            err = QLabel(self._error)
            err.setWordWrap(True)
            err.setStyleSheet(
                "background: #3a1420; color: #ff8899; padding: 8px; border-radius: 6px;"
            )
            root.addWidget(err)

        root.addLayout(self._build_cards())

        splitter = QSplitter(Qt.Orientation.Horizontal)
        splitter.addWidget(self._build_charts())
        splitter.addWidget(self._build_damage_panel())
        splitter.setSizes([500, 500])
        root.addWidget(splitter, 1)

        # ── Action buttons ────────────────────────────────────────────
        btn_row = QHBoxLayout()
        btn_home = QPushButton("← New Inspection")
        btn_home.setStyleSheet("font-weight: bold;")
        btn_home.clicked.connect(self.home_requested)
        btn_row.addWidget(btn_home)
        btn_row.addStretch()
        if self._error is not None:
            btn_retry = QPushButton("↻ Retry Capture")
            btn_retry.clicked.connect(self.retry_requested)
            btn_row.addWidget(btn_retry)
        root.addLayout(btn_row)

    def _build_cards(self) -> QHBoxLayout:
        c = self._capture
        cards = QHBoxLayout()
        cards.addWidget(StatCard("Recording", f"{c.get('recording_duration_s', 0):.1f}s"))
        cards.addWidget(StatCard("Coverage", f"{c.get('final_coverage_pct', 0):.0f}%", "#11c770"))
        cards.addWidget(StatCard("Good Distance", f"{c.get('ok_distance_pct', 0):.0f}%", "#11c770"))
        cards.addWidget(StatCard("Speed Warnings", str(c.get("n_speed_warnings", 0)), "#ffcc00"))

        if self._result is not None:
            s = self._result.summary
            cards.addWidget(StatCard("Vehicle", self._result.vehicle_info.display_name, "#d0d0f0"))
            cards.addWidget(StatCard("Damages", str(s.total_damages), "#ff4b5c"))
            cards.addWidget(StatCard("Repair Est.", f"${s.estimated_repair_cost:,.0f}", "#f5a623"))
            cards.addWidget(StatCard("Condition", f"{s.condition_rating:.1f}/5"))
        return cards

    def _build_charts(self) -> QWidget:
        """Matplotlib charts embedded in a widget."""
        container = QWidget()
        lay = QVBoxLayout(container)
        lay.setContentsMargins(0, 0, 0, 0)

        c = self._capture
        fig = Figure(figsize=(5.5, 6), facecolor="#12122a")

        # ── Distance zone share ───────────────────────────────────────
        ax1 = fig.add_subplot(2, 1, 1)
        ax1.set_facecolor("#12122a")
        labels = ["Good", "Too close", "Too far", "No vehicle"]
        sizes = [
            c.get("ok_distance_pct", 0),
            c.get("too_close_pct", 0),
            c.get("too_far_pct", 0),
            c.get("no_vehicle_pct", 0),
        ]
        colours = ["#11c770", "#ff4b5c", "#f5a623", "#666688"]
        non_zero = [(s, l, col) for s, l, col in zip(sizes, labels, colours) if s > 0]
        if non_zero:
            sz, lb, co = zip(*non_zero)
            ax1.pie(
                sz, labels=lb, colors=co, autopct="%1.0f%%",
                textprops={"color": "#ccccee", "fontsize": 8},
            )
        ax1.set_title("Distance During Recording", color="#ccccee", fontsize=10)

        # ── Coverage timeline ─────────────────────────────────────────
        ax2 = fig.add_subplot(2, 1, 2)
        ax2.set_facecolor("#1a1a2e")
        timeline = c.get("timeline", [])
        if timeline:
            ts = [pt["t_s"] for pt in timeline]
            cov = [pt["coverage"] for pt in timeline]
            ax2.plot(ts, cov, color="#11c770", linewidth=1.5)
            bad = [pt["t_s"] for pt in timeline if pt["status"] != "OK"]
            ax2.scatter(bad, [0] * len(bad), c="#ff4b5c", s=4, linewidths=0)
        ax2.set_ylim(-5, 105)
        ax2.set_xlabel("Time (s)", color="#aaaacc", fontsize=8)
        ax2.set_ylabel("Coverage %", color="#aaaacc", fontsize=8)
        ax2.set_title("Walk-around Coverage", color="#ccccee", fontsize=10)
        ax2.tick_params(colors="#aaaacc", labelsize=7)
        for spine in ax2.spines.values():
            spine.set_edgecolor("#334466")

        fig.tight_layout(pad=1.5)
        lay.addWidget(FigureCanvasQTAgg(fig))
        return container

    def _build_damage_panel(self) -> QWidget:
        box = QGroupBox("Reported Damage")
        box.setStyleSheet(
            "QGroupBox { font-size: 13px; font-weight: bold; color: #aaaaee; "
            "border: 1px solid #334; border-radius: 6px; margin-top: 6px; }"
            "QGroupBox::title { subcontrol-origin: margin; left: 10px; }"
        )
        lay = QVBoxLayout(box)

        damages = self._result.damages if self._result is not None else []
        if not damages:
            empty = QLabel("No damage reported." if self._result is not None else "No analysis available.")
            empty.setAlignment(Qt.AlignmentFlag.AlignCenter)
            empty.setStyleSheet("color: #8888aa;")
            lay.addWidget(empty)
            return box

        table = QTableWidget(len(damages), 4)
        table.setHorizontalHeaderLabels(["Panel", "Type", "Severity", "Est. Cost"])
        table.verticalHeader().setVisible(False)
        for row, d in enumerate(damages):
            table.setItem(row, 0, QTableWidgetItem(d.panel_name or d.panel_id))
            table.setItem(row, 1, QTableWidgetItem(d.damage_type.replace("_", " ")))
            sev = QTableWidgetItem(d.severity)
            sev.setForeground(QColor(_SEVERITY_COLOURS.get(d.severity.lower(), "#d0d0f0")))
            table.setItem(row, 2, sev)
            table.setItem(row, 3, QTableWidgetItem(f"${d.estimated_cost:,.0f}"))
            if d.description:
                for col in range(4):
                    table.item(row, col).setToolTip(d.description)
        table.resizeColumnsToContents()
        table.horizontalHeader().setStretchLastSection(True)
        lay.addWidget(table)
        return box
