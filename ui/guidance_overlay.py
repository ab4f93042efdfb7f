"""Transparent overlay widget that renders one GuidanceFrame over the video."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QColor, QFont, QPainter, QPen
from PySide6.QtWidgets import QWidget

from domain.geometry import Box
from domain.models import DistanceStatus, GuidanceFrame

_STATUS_COLOURS = {
    DistanceStatus.TOO_CLOSE: QColor("#ff4b5c"),
    DistanceStatus.TOO_FAR: QColor("#f5a623"),
    DistanceStatus.OK: QColor("#11c770"),
    DistanceStatus.NO_VEHICLE: QColor("#888888"),
}


class GuidanceOverlay(QWidget):
    """Completely transparent child widget placed on top of the camera view.

    Frame coordinates are mapped onto the widget with the same letterbox
    transform the canvas uses to draw the video.
    """

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setWindowFlags(Qt.WindowType.Widget)

        self._frame: Optional[GuidanceFrame] = None
        self._show_damage = True

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def update_frame(self, frame: GuidanceFrame) -> None:
        self._frame = frame
        self.update()

    def set_show_damage(self, show: bool) -> None:
        self._show_damage = show

    # ------------------------------------------------------------------
    # Paint
    # ------------------------------------------------------------------

    def paintEvent(self, _event) -> None:  # type: ignore[override]
        f = self._frame
        if f is None or f.frame_width <= 0 or f.frame_height <= 0:
            return

        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        scale, ox, oy = letterbox(f.frame_width, f.frame_height, self.width(), self.height())

        def to_widget(b: Box) -> QRectF:
            return QRectF(ox + b.x * scale, oy + b.y * scale, b.width * scale, b.height * scale)

        # ── Vehicle box ────────────────────────────────────────────────
        if f.vehicle_box is not None:
            painter.setPen(QPen(QColor("#00ff88"), 3))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(to_widget(f.vehicle_box))

        # ── Damage regions ─────────────────────────────────────────────
        if self._show_damage:
            painter.setFont(QFont("Segoe UI", 9))
            for region in f.damage_regions:
                rect = to_widget(region.box)
                alpha = int(80 + 150 * region.confidence)
                painter.setPen(QPen(QColor(255, 60, 60, alpha), 2, Qt.PenStyle.DashLine))
                painter.setBrush(QColor(255, 60, 60, 40))
                painter.drawRect(rect)
                painter.setPen(QColor(255, 200, 200))
                painter.drawText(
                    rect.topLeft() + QPointF(2, -4),
                    f"{region.label} {region.confidence:.0%}",
                )

        self._draw_distance_pill(painter, f)
        self._draw_speed_warning(painter, f)
        self._draw_coverage_ring(painter, f.coverage_percent)

    def _draw_distance_pill(self, painter: QPainter, f: GuidanceFrame) -> None:
        colour = _STATUS_COLOURS[f.distance_status]
        w, h = self.width(), self.height()
        pill_w, pill_h = 420, 34
        rect = QRectF((w - pill_w) / 2, h - 90, pill_w, pill_h)

        painter.setBrush(QColor(0, 0, 0, 140))
        painter.setPen(QPen(colour, 2))
        painter.drawRoundedRect(rect, 17, 17)

        painter.setFont(QFont("Segoe UI", 11))
        painter.setPen(colour)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, f.distance_message)

    def _draw_speed_warning(self, painter: QPainter, f: GuidanceFrame) -> None:
        if not f.speed_warning:
            return
        w, h = self.width(), self.height()
        band = QRectF(0, h - 150, w, 30)
        painter.fillRect(band, QColor(0, 0, 0, 165))
        painter.setFont(QFont("Segoe UI", 11, QFont.Weight.Bold))
        painter.setPen(QColor("#ffcc00"))
        painter.drawText(band, Qt.AlignmentFlag.AlignCenter, f.speed_warning)

    def _draw_coverage_ring(self, painter: QPainter, percent: float) -> None:
        radius = 30
        cx, cy = self.width() - 80, 70
        rect = QRectF(cx - radius, cy - radius, radius * 2, radius * 2)

        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.setPen(QPen(QColor(255, 255, 255, 64), 6))
        painter.drawEllipse(rect)

        # Qt angles are in 1/16 degree, counter-clockwise from 3 o'clock
        painter.setPen(QPen(QColor("#11c770"), 6))
        painter.drawArc(rect, 90 * 16, int(-360 * 16 * percent / 100.0))

        painter.setFont(QFont("Segoe UI", 10))
        painter.setPen(QColor("#ffffff"))
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, f"{round(percent)}%")


def letterbox(src_w: int, src_h: int, dst_w: int, dst_h: int) -> tuple[float, float, float]:
    """``(scale, offset_x, offset_y)`` fitting the source inside the
    destination while keeping the aspect ratio."""
    if src_w <= 0 or src_h <= 0:
        return 1.0, 0.0, 0.0
    scale = min(dst_w / src_w, dst_h / src_h)
    return scale, (dst_w - src_w * scale) / 2.0, (dst_h - src_h * scale) / 2.0
