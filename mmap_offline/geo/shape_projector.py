"""
Convert a confirmed screen-space shape into a geographic polygon.

Rectangles become their 4 corners (clockwise from the local top-left);
ellipses are sampled at 32 evenly spaced angles.  Each screen point is
inverse-projected on its own through the viewport, so rotation and the
Mercator stretch are both preserved.  No smoothing is applied.
"""
from __future__ import annotations

from typing import List, Tuple

import numpy as np

from ..draw.shape_editor import ShapeKind, ShapeState

ELLIPSE_SEGMENTS = 32

LatLon = Tuple[float, float]

# Unit-square corners in local space: tl, tr, br, bl
_RECT_UNIT = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])


def _rotation_matrix(angle: float) -> np.ndarray:
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s], [s, c]])


def local_outline(kind: ShapeKind, width: float, height: float,
                  segments: int = ELLIPSE_SEGMENTS) -> np.ndarray:
    """Outline vertices relative to the shape centre, before rotation."""
    half = np.array([width / 2.0, height / 2.0])
    if ShapeKind(kind) is ShapeKind.RECT:
        return _RECT_UNIT * half
    angles = 2.0 * np.pi * np.arange(segments) / segments
    return np.column_stack([np.cos(angles), np.sin(angles)]) * half


def screen_outline(kind: ShapeKind, state: ShapeState,
                   segments: int = ELLIPSE_SEGMENTS) -> np.ndarray:
    """Outline vertices in screen pixels, shape (n, 2)."""
    local = local_outline(kind, state.width, state.height, segments)
    rotated = local @ _rotation_matrix(state.rotation).T
    return rotated + np.array([state.center_x, state.center_y])


def project_shape(kind: ShapeKind, state: ShapeState, viewport,
                  segments: int = ELLIPSE_SEGMENTS) -> List[LatLon]:
    """Screen shape → ordered (lat, lon) polygon, first point not repeated."""
    points = screen_outline(kind, state, segments)
    return [viewport.screen_point_to_geo(float(x), float(y)) for x, y in points]
