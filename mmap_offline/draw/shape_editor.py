"""
Interactive shape editor for drawing building outlines.

A shape is a rectangle or ellipse held in screen-pixel space as a centre,
a width / height and a rotation.  The user edits it with three kinds of
handle:

  - the body          → move
  - 4 corner handles  → resize, keeping the opposite corner fixed
  - the rotate handle → rotate about the centre

The editor is a small state machine::

    INACTIVE ──activate──▶ IDLE ──pointer_down──▶ MOVING | RESIZING | ROTATING
        ▲                   │  ▲                        │
        └─confirm/deactivate┘  └──────pointer_up────────┘

Host toolkits feed it pointer events (see ``gui/shape_overlay.py``); the
editor itself knows nothing about widgets.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

log = logging.getLogger(__name__)

MIN_SIZE = 20.0             # px — smallest width / height a shape can have
DEFAULT_SIZE = 120.0        # px — width / height of a fresh shape
ROTATE_HANDLE_OFFSET = 28.0  # px beyond the top edge (local frame)
HANDLE_RADIUS = 14.0        # px — hit radius for corner / rotate handles

Point = Tuple[float, float]


class ShapeKind(str, enum.Enum):
    RECT = "rect"
    ELLIPSE = "ellipse"


class EditorMode(enum.Enum):
    INACTIVE = "inactive"
    IDLE = "active-idle"
    MOVING = "dragging-move"
    RESIZING = "dragging-resize"
    ROTATING = "dragging-rotate"


# Corner name → (sign of local x, sign of local y); y grows downward
CORNERS: Dict[str, Tuple[int, int]] = {
    "tl": (-1, -1),
    "tr": (1, -1),
    "br": (1, 1),
    "bl": (-1, 1),
}


def rotate(x: float, y: float, angle: float) -> Point:
    """Rotate (x, y) about the origin by *angle* radians."""
    c = math.cos(angle)
    s = math.sin(angle)
    return x * c - y * s, x * s + y * c


@dataclass
class ShapeState:
    """Live geometry of the shape being edited (screen pixels)."""

    center_x: float
    center_y: float
    width: float
    height: float
    rotation: float = 0.0

    def to_screen(self, lx: float, ly: float) -> Point:
        """Local (unrotated, centre-relative) offset → screen point."""
        rx, ry = rotate(lx, ly, self.rotation)
        return self.center_x + rx, self.center_y + ry

    def to_local(self, x: float, y: float) -> Point:
        """Screen point → local (unrotated, centre-relative) offset."""
        return rotate(x - self.center_x, y - self.center_y, -self.rotation)

    def corner(self, name: str) -> Point:
        sx, sy = CORNERS[name]
        return self.to_screen(sx * self.width / 2.0, sy * self.height / 2.0)

    def corners(self) -> List[Point]:
        """Screen corners, clockwise from top-left."""
        return [self.corner(name) for name in ("tl", "tr", "br", "bl")]

    def rotate_handle(self) -> Point:
        return self.to_screen(0.0, -self.height / 2.0 - ROTATE_HANDLE_OFFSET)


@dataclass(frozen=True)
class ShapePreset:
    """Position-free snapshot of a shape, used by the history."""

    kind: ShapeKind
    width: float
    height: float
    rotation: float = 0.0

    @classmethod
    def from_state(cls, kind: ShapeKind, state: ShapeState) -> "ShapePreset":
        return cls(kind, state.width, state.height, state.rotation)

    def matches(self, state: ShapeState, tolerance: float = 0.01) -> bool:
        """True when *state* is this preset used without a real change."""
        return (
            round(state.width) == round(self.width)
            and round(state.height) == round(self.height)
            and abs(state.rotation - self.rotation) < tolerance
        )


@dataclass(frozen=True)
class ConfirmedShape:
    """Result of confirming the editor: the final geometry and its origin."""

    kind: ShapeKind
    state: ShapeState
    origin: Optional[ShapePreset] = None

    @property
    def preset(self) -> ShapePreset:
        return ShapePreset.from_state(self.kind, self.state)

    @property
    def is_unchanged_preset(self) -> bool:
        return self.origin is not None and self.origin.matches(self.state)


@dataclass
class _Drag:
    """Values captured at pointer-down for the active drag."""

    mode: EditorMode
    start_x: float = 0.0
    start_y: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    handle: str = ""
    start_w: float = 0.0
    start_h: float = 0.0
    start_cx: float = 0.0
    start_cy: float = 0.0
    start_angle: float = 0.0
    start_rotation: float = 0.0


class ShapeManipulator:
    """Move / resize / rotate editor for one shape at a time.

    Parameters
    ----------
    viewport : Viewport
        Anything with ``center_point()`` and a writable ``interactive``
        flag.  New shapes are centred on it and map gestures are switched
        off while a shape is active.
    """

    def __init__(self, viewport):
        self._viewport = viewport
        self.kind: Optional[ShapeKind] = None
        self.state: Optional[ShapeState] = None
        self.origin: Optional[ShapePreset] = None
        self._drag: Optional[_Drag] = None

    # ── state ─────────────────────────────────────────────────────────

    @property
    def mode(self) -> EditorMode:
        if self.state is None:
            return EditorMode.INACTIVE
        if self._drag is None:
            return EditorMode.IDLE
        return self._drag.mode

    @property
    def active(self) -> bool:
        return self.state is not None

    # ── lifecycle ─────────────────────────────────────────────────────

    def activate(self, kind: ShapeKind, preset: Optional[ShapePreset] = None) -> ShapeState:
        """Put a new shape in the middle of the viewport."""
        if self.active:
            self.deactivate()

        kind = ShapeKind(kind)
        cx, cy = self._viewport.center_point()
        if preset is not None:
            width, height, rotation = preset.width, preset.height, preset.rotation
        else:
            width, height, rotation = DEFAULT_SIZE, DEFAULT_SIZE, 0.0

        self.kind = kind
        self.state = ShapeState(cx, cy, float(width), float(height), float(rotation))
        self.origin = replace(preset, kind=kind) if preset is not None else None
        self._drag = None
        self._viewport.interactive = False
        log.debug("Shape activated: %s %.0fx%.0f rot=%.3f",
                  kind.value, width, height, rotation)
        return self.state

    def deactivate(self) -> None:
        self.kind = None
        self.state = None
        self.origin = None
        self._drag = None
        self._viewport.interactive = True

    def confirm(self) -> Optional[ConfirmedShape]:
        """Finish the session and hand back the final shape."""
        if self.state is None or self.kind is None:
            log.debug("confirm() ignored: no active shape")
            return None
        result = ConfirmedShape(self.kind, replace(self.state), self.origin)
        self.deactivate()
        return result

    # ── rendering ─────────────────────────────────────────────────────

    def handles(self) -> Dict[str, Point]:
        """Screen positions of the corner handles and the rotate handle."""
        if self.state is None:
            return {}
        positions = {name: self.state.corner(name) for name in CORNERS}
        positions["rotate"] = self.state.rotate_handle()
        return positions

    def hit_test(self, x: float, y: float) -> Optional[str]:
        """Which handle is under (x, y): ``rotate``, a corner name, ``body`` or None."""
        s = self.state
        if s is None:
            return None
        r2 = HANDLE_RADIUS * HANDLE_RADIUS

        hx, hy = s.rotate_handle()
        if (x - hx) ** 2 + (y - hy) ** 2 <= r2:
            return "rotate"
        for name in CORNERS:
            cx, cy = s.corner(name)
            if (x - cx) ** 2 + (y - cy) ** 2 <= r2:
                return name

        lx, ly = s.to_local(x, y)
        if abs(lx) <= s.width / 2.0 and abs(ly) <= s.height / 2.0:
            return "body"
        return None

    # ── pointer events ────────────────────────────────────────────────

    def pointer_down(self, x: float, y: float) -> Optional[str]:
        """Start a drag if the point hits a handle; returns the hit name."""
        s = self.state
        if s is None or self._drag is not None:
            return None

        hit = self.hit_test(x, y)
        if hit is None:
            return None

        if hit == "rotate":
            self._drag = _Drag(
                mode=EditorMode.ROTATING,
                start_angle=math.atan2(y - s.center_y, x - s.center_x),
                start_rotation=s.rotation,
            )
        elif hit in CORNERS:
            self._drag = _Drag(
                mode=EditorMode.RESIZING,
                handle=hit,
                start_x=x,
                start_y=y,
                start_w=s.width,
                start_h=s.height,
                start_cx=s.center_x,
                start_cy=s.center_y,
            )
        else:
            self._drag = _Drag(
                mode=EditorMode.MOVING,
                offset_x=x - s.center_x,
                offset_y=y - s.center_y,
            )
        return hit

    def pointer_move(self, x: float, y: float) -> bool:
        """Apply the active drag; returns False when there is nothing to drag."""
        s = self.state
        drag = self._drag
        if s is None or drag is None:
            return False

        if drag.mode is EditorMode.MOVING:
            s.center_x = x - drag.offset_x
            s.center_y = y - drag.offset_y
        elif drag.mode is EditorMode.RESIZING:
            self._resize(s, drag, x, y)
        elif drag.mode is EditorMode.ROTATING:
            angle = math.atan2(y - s.center_y, x - s.center_x)
            s.rotation = drag.start_rotation + (angle - drag.start_angle)
        return True

    def pointer_up(self) -> None:
        self._drag = None

    @staticmethod
    def _resize(s: ShapeState, drag: _Drag, x: float, y: float) -> None:
        # Pointer delta in the shape's own (unrotated) frame
        ldx, ldy = rotate(x - drag.start_x, y - drag.start_y, -s.rotation)
        sx, sy = CORNERS[drag.handle]

        new_w = max(MIN_SIZE, drag.start_w + sx * ldx)
        new_h = max(MIN_SIZE, drag.start_h + sy * ldy)

        # Shift the centre by half the growth toward the grabbed corner so
        # the opposite corner stays where it was
        shift_x = sx * (new_w - drag.start_w) / 2.0
        shift_y = sy * (new_h - drag.start_h) / 2.0
        dx, dy = rotate(shift_x, shift_y, s.rotation)

        s.center_x = drag.start_cx + dx
        s.center_y = drag.start_cy + dy
        s.width = new_w
        s.height = new_h
