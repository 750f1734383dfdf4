"""
mmap offline client — PyQt5 map window.

    ┌──────────────────────────────────────────────┐
    │  toolbar: Rect Ellipse Confirm Cancel │ Draw │
    │           Undo Finish │ history │ Import ... │
    ├──────────────────────────────────────────────┤
    │  MapCanvas   tiles via TileRequestHandler    │
    │    ├── saved buildings, vertex path          │
    │    └── ShapeOverlay (shape editor handles)   │
    └──────────────────────────────────────────────┘

Confirmed shapes and finished vertex paths both end in the same name
dialog and become saved buildings.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Dict, Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from .config import ClientConfig
from .draw.shape_editor import ShapeKind
from .geo.tile_index import TileKey
from .gui.shape_overlay import ShapeOverlay
from .services import MapServices, build_services

log = logging.getLogger(__name__)

_PATH_COLOR = QtGui.QColor("#2563eb")
_EMPTY_TILE = QtGui.QColor("#e5e7eb")


# ---------------------------------------------------------------------------
# Map canvas
# ---------------------------------------------------------------------------

class MapCanvas(QtWidgets.QWidget):
    """Tile map with buildings; drag pans, wheel zooms, clicks add vertices."""

    def __init__(self, services: MapServices, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self._s = services
        self._pixmaps: Dict[TileKey, Optional[QtGui.QPixmap]] = {}
        self._press: Optional[QtCore.QPointF] = None
        self._dragged = False
        self.freehand = False
        self.setMinimumSize(320, 240)

        self.overlay = ShapeOverlay(services.drawing, self)

    # ── tiles ─────────────────────────────────────────────────────────

    def _pixmap(self, key: TileKey) -> Optional[QtGui.QPixmap]:
        if key in self._pixmaps:
            return self._pixmaps[key]
        cfg = self._s.config
        server = cfg.servers[(key.x + key.y) % len(cfg.servers)]
        resp = self._s.handler.handle(cfg.tile_url(server, key.z, key.x, key.y))
        pix = None
        if resp.ok:
            pix = QtGui.QPixmap()
            if not pix.loadFromData(resp.body):
                log.warning("Tile %s is not a readable image", key)
                pix = None
        self._pixmaps[key] = pix
        return pix

    def _paint_tiles(self, painter: QtGui.QPainter) -> None:
        vp = self._s.viewport
        tz = min(int(vp.zoom), self._s.config.max_native_zoom)
        span = vp.tile_size * 2.0 ** (vp.zoom - tz)
        n = 2 ** tz
        ox, oy = vp.world_origin()
        x0, x1 = max(int(ox // span), 0), min(int((ox + vp.width) // span), n - 1)
        y0, y1 = max(int(oy // span), 0), min(int((oy + vp.height) // span), n - 1)
        for x in range(x0, x1 + 1):
            for y in range(y0, y1 + 1):
                target = QtCore.QRectF(x * span - ox, y * span - oy, span, span)
                pix = self._pixmap(TileKey(tz, x, y))
                if pix is None:
                    painter.fillRect(target, _EMPTY_TILE)
                else:
                    painter.drawPixmap(target, pix, QtCore.QRectF(pix.rect()))

    # ── overlays ──────────────────────────────────────────────────────

    def _polygon(self, points) -> QtGui.QPolygonF:
        vp = self._s.viewport
        return QtGui.QPolygonF([
            QtCore.QPointF(*vp.geo_to_screen_point(lat, lon)) for lat, lon in points
        ])

    def _paint_buildings(self, painter: QtGui.QPainter) -> None:
        for b in self._s.buildings.all():
            color = QtGui.QColor(b.color)
            fill = QtGui.QColor(color)
            fill.setAlpha(64)
            painter.setPen(QtGui.QPen(color, 2))
            painter.setBrush(fill)
            painter.drawPolygon(self._polygon(b.points))

    def _paint_path(self, painter: QtGui.QPainter) -> None:
        points = self._s.path.points
        if not points:
            return
        poly = self._polygon(points)
        pen = QtGui.QPen(_PATH_COLOR, 2, QtCore.Qt.DashLine)
        painter.setPen(pen)
        if len(points) >= 3:
            fill = QtGui.QColor(_PATH_COLOR)
            fill.setAlpha(64)
            painter.setBrush(fill)
            painter.drawPolygon(poly)
        else:
            painter.drawPolyline(poly)
        painter.setPen(QtGui.QPen(QtGui.QColor("white"), 2))
        painter.setBrush(_PATH_COLOR)
        for i in range(poly.count()):
            painter.drawEllipse(poly.at(i), 6, 6)

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:
        painter = QtGui.QPainter(self)
        painter.setRenderHint(QtGui.QPainter.Antialiasing)
        self._paint_tiles(painter)
        self._paint_buildings(painter)
        self._paint_path(painter)
        painter.end()

    # ── Qt events ─────────────────────────────────────────────────────

    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:
        self._s.viewport.resize(self.width(), self.height())
        self.overlay.setGeometry(self.rect())
        super().resizeEvent(event)

    def mousePressEvent(self, event: QtGui.QMouseEvent) -> None:
        self._press = event.localPos()
        self._dragged = False

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:
        vp = self._s.viewport
        if self._press is None or not vp.interactive:
            return
        pos = event.localPos()
        dx, dy = pos.x() - self._press.x(), pos.y() - self._press.y()
        if not self._dragged and abs(dx) + abs(dy) < 4:
            return
        self._dragged = True
        cx, cy = vp.center_point()
        vp.pan_to(*vp.screen_point_to_geo(cx - dx, cy - dy))
        self._press = pos
        self.update()

    def mouseReleaseEvent(self, event: QtGui.QMouseEvent) -> None:
        if self._press is not None and not self._dragged and self.freehand \
                and not self._s.drawing.editor.active:
            pos = event.localPos()
            n = self._s.path.add(*self._s.viewport.screen_point_to_geo(pos.x(), pos.y()))
            log.debug("Vertex %d added", n)
            self.update()
        self._press = None

    def wheelEvent(self, event: QtGui.QWheelEvent) -> None:
        vp = self._s.viewport
        if not vp.interactive:
            return
        step = 1 if event.angleDelta().y() > 0 else -1
        cfg = self._s.config
        zoom = max(cfg.min_zoom, min(cfg.max_view_zoom, int(vp.zoom) + step))
        if zoom != vp.zoom:
            vp.set_zoom(zoom)
            self.update()


# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------

class MapWindow(QtWidgets.QMainWindow):

    def __init__(self, services: MapServices):
        super().__init__()
        self._s = services
        self.setWindowTitle("mmap offline")
        self.canvas = MapCanvas(services, self)
        self.setCentralWidget(self.canvas)
        self.canvas.overlay.shape_confirmed.connect(self._on_shape_confirmed)

        tb = self.addToolBar("Draw")
        tb.addAction("Rect").triggered.connect(lambda: self._toggle(ShapeKind.RECT))
        tb.addAction("Ellipse").triggered.connect(lambda: self._toggle(ShapeKind.ELLIPSE))
        tb.addAction("Confirm").triggered.connect(self.canvas.overlay.confirm)
        tb.addAction("Cancel").triggered.connect(self.canvas.overlay.cancel)
        tb.addSeparator()
        self._draw_action = tb.addAction("Draw")
        self._draw_action.setCheckable(True)
        self._draw_action.toggled.connect(self._set_freehand)
        tb.addAction("Undo point").triggered.connect(self._undo_point)
        tb.addAction("Finish").triggered.connect(self._finish)
        tb.addSeparator()
        self._history_bar = self.addToolBar("History")
        self._rebuild_history()

        io = self.addToolBar("Buildings")
        io.addAction("Import…").triggered.connect(self._import)
        io.addAction("Export…").triggered.connect(self._export)

    # ── shapes ────────────────────────────────────────────────────────

    def _toggle(self, kind: ShapeKind) -> None:
        if self._s.drawing.toggle(kind) is None:
            self.canvas.overlay.hide()
        else:
            self.canvas.overlay.show()
            self.canvas.overlay.setFocus()
        self.canvas.overlay.update()

    def _rebuild_history(self) -> None:
        self._history_bar.clear()
        for i, preset in enumerate(self._s.history.entries()):
            label = f"{preset.kind.value} {preset.width:.0f}×{preset.height:.0f}"
            action = self._history_bar.addAction(label)
            action.triggered.connect(
                lambda _checked=False, idx=i: self.canvas.overlay.activate_from_history(idx)
            )

    def _on_shape_confirmed(self, points) -> None:
        self._rebuild_history()
        self._s.path.replace(points)
        self._finish()

    # ── vertex path ───────────────────────────────────────────────────

    def _set_freehand(self, on: bool) -> None:
        self.canvas.freehand = on
        if not on:
            self._s.path.clear()
            self.canvas.update()

    def _undo_point(self) -> None:
        if self._s.path.undo() is not None:
            self.canvas.update()

    def _finish(self) -> None:
        points = self._s.path.finish()
        if points is None:
            self.statusBar().showMessage("At least 3 vertices are needed.", 3000)
            return
        name, ok = QtWidgets.QInputDialog.getText(self, "Save building", "Name:")
        if ok and name.strip():
            b = self._s.buildings.add(name, points)
            self.statusBar().showMessage(f"Saved {b.name}", 3000)
            self._s.path.clear()
            self._draw_action.setChecked(False)
        self.canvas.update()

    # ── import / export ───────────────────────────────────────────────

    def _import(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Import buildings", "", "JSON (*.json)")
        if not path:
            return
        try:
            with open(path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, ValueError) as exc:
            log.warning("Import of %s failed: %s", path, exc)
            self.statusBar().showMessage(f"Import failed: {exc}", 5000)
            return
        if not isinstance(records, list):
            self.statusBar().showMessage("Import failed: expected a JSON list", 5000)
            return
        result = self._s.buildings.import_records(records)
        self.statusBar().showMessage(
            f"Imported {result.imported}, skipped {result.skipped}, "
            f"rejected {result.rejected}", 5000)
        self.canvas.update()

    def _export(self) -> None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(
            self, "Export buildings", "buildings.json", "JSON (*.json)")
        if not path:
            return
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self._s.buildings.export_records(), f, ensure_ascii=False, indent=2)
        except OSError as exc:
            log.warning("Export to %s failed: %s", path, exc)
            self.statusBar().showMessage(f"Export failed: {exc}", 5000)
            return
        log.info("Exported %d buildings to %s", len(self._s.buildings), path)

    def closeEvent(self, ev: QtGui.QCloseEvent) -> None:
        self._s.close()
        log.info("mmap client shutdown complete.")
        super().closeEvent(ev)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run(config: ClientConfig) -> int:
    app = QtWidgets.QApplication(sys.argv)
    app.setStyle("Fusion")
    services = build_services(config)
    win = MapWindow(services)
    win.resize(1024, 768)
    win.show()
    return app.exec_()
