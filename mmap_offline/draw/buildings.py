"""
Saved building footprints.

A building is a named, coloured GeoPolygon.  The store keeps them in memory
and mirrors them to the key-value store under ``mmap_buildings``; that
mirror is best-effort, so a failed write never loses the in-memory list.

Import is the one place outside data enters, so it is also where bad
geometry is filtered out: records without a name or with fewer than three
points are rejected, and records that look like an existing building (same
name, same vertex count, same first vertex) are skipped.

Outlines come either from a confirmed shape or from ``VertexPath``, the
click-by-click vertex list with undo.
"""
from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import asdict, dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from shapely.geometry import Polygon

log = logging.getLogger(__name__)

BUILDINGS_KEY = "mmap_buildings"
DEFAULT_COLOR = "#2563eb"
MIN_POINTS = 3

LatLon = Tuple[float, float]

_B36 = string.digits + string.ascii_lowercase


def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _B36[r] + out
    return out or "0"


def new_building_id() -> str:
    """Millisecond timestamp plus 4 random chars, both base 36."""
    suffix = "".join(random.choice(_B36) for _ in range(4))
    return _base36(int(time.time() * 1000)) + suffix


def finish_points(points: Sequence[LatLon]) -> Optional[List[LatLon]]:
    """Return the vertex list if it can form a polygon, else None."""
    if len(points) < MIN_POINTS:
        return None
    return [(float(lat), float(lon)) for lat, lon in points]


class VertexPath:
    """Vertices of a building being drawn point by point."""

    def __init__(self):
        self._points: List[LatLon] = []

    @property
    def points(self) -> List[LatLon]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def add(self, lat: float, lon: float) -> int:
        self._points.append((float(lat), float(lon)))
        return len(self._points)

    def undo(self) -> Optional[LatLon]:
        """Drop the newest vertex; None when the path is already empty."""
        if not self._points:
            return None
        return self._points.pop()

    def replace(self, points: Sequence[LatLon]) -> None:
        """Take over a whole outline, e.g. a confirmed shape."""
        self._points = [(float(lat), float(lon)) for lat, lon in points]

    def clear(self) -> None:
        self._points = []

    def finish(self) -> Optional[List[LatLon]]:
        pts = finish_points(self._points)
        if pts is None:
            log.debug("Path has %d vertices, need %d", len(self._points), MIN_POINTS)
        return pts


@dataclass
class Building:
    id: str
    name: str
    points: List[LatLon]
    desc: str = ""
    color: str = DEFAULT_COLOR

    def polygon(self) -> Polygon:
        """Shapely polygon in (lon, lat) axis order."""
        return Polygon([(lon, lat) for lat, lon in self.points])

    def center(self) -> LatLon:
        """Centre of the bounding box, as (lat, lon)."""
        min_lon, min_lat, max_lon, max_lat = self.polygon().bounds
        return (min_lat + max_lat) / 2.0, (min_lon + max_lon) / 2.0

    def to_record(self) -> dict:
        rec = asdict(self)
        rec["points"] = [[lat, lon] for lat, lon in self.points]
        return rec


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    rejected: int = 0
    buildings: List[Building] = field(default_factory=list)


def _clean_points(raw) -> Optional[List[LatLon]]:
    try:
        pts = [(float(p[0]), float(p[1])) for p in raw]
    except (TypeError, ValueError, IndexError):
        return None
    return finish_points(pts)


class BuildingStore:
    """In-memory building list mirrored to a key-value store."""

    def __init__(self, kv, key: str = BUILDINGS_KEY):
        self._kv = kv
        self._key = key
        self._buildings: List[Building] = []
        self.load()

    # ── persistence ───────────────────────────────────────────────────

    def load(self) -> None:
        data = self._kv.get_json(self._key, [])
        self._buildings = []
        if not isinstance(data, list):
            return
        for rec in data:
            if not isinstance(rec, dict):
                continue
            pts = _clean_points(rec.get("points") or [])
            if pts is None:
                continue
            self._buildings.append(Building(
                id=str(rec.get("id") or new_building_id()),
                name=str(rec.get("name", "")),
                points=pts,
                desc=rec.get("desc", "") or "",
                color=rec.get("color") or DEFAULT_COLOR,
            ))
        log.info("Loaded %d buildings", len(self._buildings))

    def save(self) -> bool:
        ok = self._kv.set_json(self._key, self.export_records())
        if not ok:
            log.warning("Buildings not persisted (store unavailable)")
        return ok

    # ── queries ───────────────────────────────────────────────────────

    def all(self) -> List[Building]:
        return list(self._buildings)

    def get(self, building_id: str) -> Optional[Building]:
        for b in self._buildings:
            if b.id == building_id:
                return b
        return None

    def __len__(self) -> int:
        return len(self._buildings)

    # ── mutation ──────────────────────────────────────────────────────

    def add(
        self,
        name: str,
        points: Sequence[LatLon],
        desc: str = "",
        color: str = DEFAULT_COLOR,
    ) -> Building:
        name = name.strip()
        if not name:
            raise ValueError("building name is required")
        pts = finish_points(points)
        if pts is None:
            raise ValueError(f"a building needs at least {MIN_POINTS} points")
        building = Building(new_building_id(), name, pts, desc.strip(), color)
        self._buildings.append(building)
        self.save()
        log.info("Saved building %r (%d points)", name, len(pts))
        return building

    def remove(self, building_id: str) -> bool:
        for i, b in enumerate(self._buildings):
            if b.id == building_id:
                del self._buildings[i]
                self.save()
                return True
        return False

    # ── import / export ───────────────────────────────────────────────

    def export_records(self) -> List[dict]:
        return [b.to_record() for b in self._buildings]

    def _is_duplicate(self, name: str, points: List[LatLon]) -> bool:
        for ex in self._buildings:
            if ex.name != name or len(ex.points) != len(points):
                continue
            if tuple(ex.points[0]) == tuple(points[0]):
                return True
        return False

    def import_records(self, records: Iterable) -> ImportResult:
        result = ImportResult()
        for rec in records:
            if not isinstance(rec, dict) or not rec.get("name"):
                result.rejected += 1
                continue
            pts = _clean_points(rec.get("points") or [])
            if pts is None:
                result.rejected += 1
                continue
            name = str(rec["name"])
            if self._is_duplicate(name, pts):
                result.skipped += 1
                continue
            building = Building(
                id=new_building_id(),
                name=name,
                points=pts,
                desc=rec.get("desc") or "",
                color=rec.get("color") or DEFAULT_COLOR,
            )
            self._buildings.append(building)
            result.buildings.append(building)
            result.imported += 1

        if result.imported:
            self.save()
        log.info("Import: %d added, %d duplicates, %d rejected",
                 result.imported, result.skipped, result.rejected)
        return result
