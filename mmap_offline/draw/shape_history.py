"""
Recently used shape presets.

Keeps the last three confirmed shapes (kind, size, rotation), newest
first, so the user can drop the same footprint again without re-dragging
it.  Entries are persisted as JSON through the key-value store::

    [{"mode": "rect", "w": 80, "h": 40, "rotation": 0.52}, ...]

``mode`` uses ``"circle"`` for ellipses, matching data saved by earlier
versions of the app.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional

from .shape_editor import ConfirmedShape, ShapeKind, ShapePreset

log = logging.getLogger(__name__)

HISTORY_KEY = "mmap_shape_history"
MAX_ENTRIES = 3

_MODE_TAGS = {ShapeKind.RECT: "rect", ShapeKind.ELLIPSE: "circle"}
_TAG_MODES = {"rect": ShapeKind.RECT, "circle": ShapeKind.ELLIPSE, "ellipse": ShapeKind.ELLIPSE}


def preset_to_dict(preset: ShapePreset) -> dict:
    return {
        "mode": _MODE_TAGS[preset.kind],
        "w": int(round(preset.width)),
        "h": int(round(preset.height)),
        "rotation": preset.rotation,
    }


def preset_from_dict(data: dict) -> Optional[ShapePreset]:
    try:
        kind = _TAG_MODES[data["mode"]]
        return ShapePreset(
            kind=kind,
            width=float(data["w"]),
            height=float(data["h"]),
            rotation=float(data.get("rotation", 0.0) or 0.0),
        )
    except (KeyError, TypeError, ValueError) as exc:
        log.debug("Skipping malformed history entry %r: %s", data, exc)
        return None


class ShapeHistory:
    """Most-recent-first list of at most three shape presets."""

    def __init__(self, kv, key: str = HISTORY_KEY):
        self._kv = kv
        self._key = key

    def entries(self) -> List[ShapePreset]:
        data = self._kv.get_json(self._key, [])
        if not isinstance(data, list):
            return []
        presets = [preset_from_dict(d) for d in data[:MAX_ENTRIES] if isinstance(d, dict)]
        return [p for p in presets if p is not None]

    def get(self, index: int) -> Optional[ShapePreset]:
        entries = self.entries()
        if 0 <= index < len(entries):
            return entries[index]
        return None

    def record(self, preset: ShapePreset) -> List[ShapePreset]:
        """Push *preset* to the front and drop anything past three entries."""
        raw = self._kv.get_json(self._key, [])
        if not isinstance(raw, list):
            raw = []
        raw.insert(0, preset_to_dict(preset))
        del raw[MAX_ENTRIES:]
        if not self._kv.set_json(self._key, raw):
            log.warning("Shape history not persisted (store unavailable)")
        return self.entries()

    def record_confirmed(self, shape: ConfirmedShape) -> bool:
        """Record a confirmed shape unless it is an untouched history preset.

        Returns True if a new entry was written.
        """
        if shape.is_unchanged_preset:
            log.debug("Shape unchanged from its preset; history left as is")
            return False
        self.record(shape.preset)
        return True

    def clear(self) -> None:
        self._kv.delete(self._key)


def preview_svg(preset: ShapePreset, size: int = 24, extent: float = 14.0) -> str:
    """Small SVG thumbnail of a preset, as shown on the history buttons."""
    max_dim = max(preset.width, preset.height) or 1.0
    nw = preset.width / max_dim * extent
    nh = preset.height / max_dim * extent
    mid = size / 2.0
    rot = f"{math.degrees(preset.rotation):.1f}"
    head = f'<svg viewBox="0 0 {size} {size}" width="{size}" height="{size}">'
    style = 'fill="none" stroke="currentColor" stroke-width="1.5"'
    transform = f'transform="rotate({rot} {mid:g} {mid:g})"'
    if preset.kind is ShapeKind.RECT:
        body = (
            f'<rect x="{mid - nw / 2:g}" y="{mid - nh / 2:g}" '
            f'width="{nw:g}" height="{nh:g}" {style} rx="0.5" {transform}/>'
        )
    else:
        body = (
            f'<ellipse cx="{mid:g}" cy="{mid:g}" rx="{nw / 2:g}" ry="{nh / 2:g}" '
            f'{style} {transform}/>'
        )
    return head + body + "</svg>"
