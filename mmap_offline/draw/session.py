"""Shape drawing session: editor + projector + history on one viewport."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from ..geo.shape_projector import project_shape
from .shape_editor import ShapeKind, ShapeManipulator, ShapePreset, ShapeState
from .shape_history import ShapeHistory

log = logging.getLogger(__name__)


class DrawSession:
    """Ties the shape editor to the map viewport and the preset history."""

    def __init__(self, viewport, history: ShapeHistory):
        self.viewport = viewport
        self.history = history
        self.editor = ShapeManipulator(viewport)

    def activate(self, kind: ShapeKind, preset: Optional[ShapePreset] = None) -> ShapeState:
        return self.editor.activate(kind, preset)

    def toggle(self, kind: ShapeKind) -> Optional[ShapeState]:
        """Toolbar behaviour: pressing the active shape's button closes it."""
        if self.editor.active and self.editor.kind is ShapeKind(kind):
            self.editor.deactivate()
            return None
        return self.editor.activate(kind)

    def activate_from_history(self, index: int) -> Optional[ShapeState]:
        preset = self.history.get(index)
        if preset is None:
            log.debug("No history entry at index %d", index)
            return None
        return self.editor.activate(preset.kind, preset)

    def confirm(self) -> Optional[List[Tuple[float, float]]]:
        """Project the active shape to (lat, lon) points and record it."""
        shape = self.editor.confirm()
        if shape is None:
            return None
        points = project_shape(shape.kind, shape.state, self.viewport)
        self.history.record_confirmed(shape)
        log.info("Shape confirmed: %s %.0fx%.0f → %d points",
                 shape.kind.value, shape.state.width, shape.state.height, len(points))
        return points

    def cancel(self) -> None:
        self.editor.deactivate()
