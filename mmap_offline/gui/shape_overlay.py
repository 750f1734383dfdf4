"""
Shape editing overlay — transparent widget laid over the map view.

Draws the active shape with its corner and rotate handles and forwards
mouse input to the shape editor.  All geometry lives in
``draw/shape_editor.py``; this widget only translates Qt events into
``pointer_down`` / ``pointer_move`` / ``pointer_up`` calls and repaints.

A press that misses every handle is ignored so it reaches whatever is
underneath (the confirm button, the map).
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from ..draw.session import DrawSession
from ..draw.shape_editor import ShapeKind

log = logging.getLogger(__name__)

_HANDLE_PX = 10
_FILL = QtGui.QColor(37, 99, 235, 60)
_OUTLINE = QtGui.QColor(37, 99, 235)
_HANDLE = QtGui.QColor(255, 255, 255)


class ShapeOverlay(QtWidgets.QWidget):
    """Paints and drives the shape editor of a ``DrawSession``."""

    shape_confirmed = QtCore.pyqtSignal(list)   # [(lat, lon), ...]

    def __init__(self, session: DrawSession, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self._session = session
        self.setAttribute(QtCore.Qt.WA_TranslucentBackground)
        self.setMouseTracking(False)
        self.setFocusPolicy(QtCore.Qt.StrongFocus)
        self.hide()

    @property
    def editor(self):
        return self._session.editor

    # ── commands ──────────────────────────────────────────────────────

    def activate(self, kind: ShapeKind, preset=None) -> None:
        self._session.activate(kind, preset)
        self.show()
        self.update()

    def activate_from_history(self, index: int) -> None:
        if self._session.activate_from_history(index) is not None:
            self.show()
            self.update()

    def confirm(self) -> None:
        points = self._session.confirm()
        self.hide()
        if points:
            self.shape_confirmed.emit(points)

    def cancel(self) -> None:
        self._session.cancel()
        self.hide()

    # ── Qt events ─────────────────────────────────────────────────────

    def mousePressEvent(self, event: QtGui.QMouseEvent) -> None:
        pos = event.localPos()
        if self.editor.pointer_down(pos.x(), pos.y()) is None:
            event.ignore()
            return
        event.accept()

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:
        pos = event.localPos()
        if self.editor.pointer_move(pos.x(), pos.y()):
            event.accept()
            self.update()
        else:
            event.ignore()

    def mouseReleaseEvent(self, event: QtGui.QMouseEvent) -> None:
        self.editor.pointer_up()
        event.accept()

    def keyPressEvent(self, event: QtGui.QKeyEvent) -> None:
        if event.key() == QtCore.Qt.Key_Escape:
            self.cancel()
        elif event.key() in (QtCore.Qt.Key_Return, QtCore.Qt.Key_Enter):
            self.confirm()
        else:
            super().keyPressEvent(event)

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:
        s = self.editor.state
        if s is None:
            return
        painter = QtGui.QPainter(self)
        painter.setRenderHint(QtGui.QPainter.Antialiasing)

        # Body, drawn in the shape's local frame
        painter.save()
        painter.translate(s.center_x, s.center_y)
        painter.rotate(math.degrees(s.rotation))
        body = QtCore.QRectF(-s.width / 2.0, -s.height / 2.0, s.width, s.height)
        painter.setPen(QtGui.QPen(_OUTLINE, 2))
        painter.setBrush(_FILL)
        if self.editor.kind is ShapeKind.ELLIPSE:
            painter.drawEllipse(body)
        else:
            painter.drawRect(body)
        painter.restore()

        # Handles, already in screen space
        handles = self.editor.handles()
        top_mid = s.to_screen(0.0, -s.height / 2.0)
        rx, ry = handles["rotate"]
        painter.setPen(QtGui.QPen(_OUTLINE, 1))
        painter.drawLine(QtCore.QPointF(*top_mid), QtCore.QPointF(rx, ry))

        painter.setBrush(_HANDLE)
        half = _HANDLE_PX / 2.0
        for name, (hx, hy) in handles.items():
            if name == "rotate":
                painter.drawEllipse(QtCore.QPointF(hx, hy), half + 2, half + 2)
            else:
                painter.drawRect(QtCore.QRectF(hx - half, hy - half, _HANDLE_PX, _HANDLE_PX))
        painter.end()
