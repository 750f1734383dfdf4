"""
Screen ↔ geographic projection for the map viewport.

The viewport is a window of ``width × height`` pixels onto the Web Mercator
(EPSG:3857) world at a given zoom, where the whole world is
``tile_size * 2**zoom`` pixels square.  Screen pixel (0, 0) is the top-left
corner of the viewport.

Projection between WGS84 and metres is done with pyproj; the metres → pixel
step is a plain affine scale.
"""
from __future__ import annotations

import logging
from typing import Tuple

import pyproj

log = logging.getLogger(__name__)

WGS84 = pyproj.CRS("EPSG:4326")
WEB_MERCATOR = pyproj.CRS("EPSG:3857")

_to_metric = pyproj.Transformer.from_crs(WGS84, WEB_MERCATOR, always_xy=True).transform
_to_lonlat = pyproj.Transformer.from_crs(WEB_MERCATOR, WGS84, always_xy=True).transform

# Half the circumference of the Web Mercator sphere (metres)
ORIGIN_SHIFT = 20037508.342789244


class Viewport:
    """Map viewport with a Web Mercator pixel space.

    ``interactive`` mirrors whether the host map accepts pan / zoom
    gestures; the shape editor turns it off while a shape is on screen.
    """

    def __init__(
        self,
        center_lat: float,
        center_lon: float,
        zoom: float,
        width: int,
        height: int,
        tile_size: int = 256,
    ):
        self.zoom = zoom
        self.width = width
        self.height = height
        self.tile_size = tile_size
        self.interactive = True
        self._center_world = self._lonlat_to_world(center_lon, center_lat)

    # ── world pixel space ─────────────────────────────────────────────

    @property
    def world_size(self) -> float:
        return self.tile_size * (2.0 ** self.zoom)

    def _lonlat_to_world(self, lon: float, lat: float) -> Tuple[float, float]:
        mx, my = _to_metric(lon, lat)
        scale = self.world_size / (2.0 * ORIGIN_SHIFT)
        return (mx + ORIGIN_SHIFT) * scale, (ORIGIN_SHIFT - my) * scale

    def _world_to_lonlat(self, wx: float, wy: float) -> Tuple[float, float]:
        scale = (2.0 * ORIGIN_SHIFT) / self.world_size
        mx = wx * scale - ORIGIN_SHIFT
        my = ORIGIN_SHIFT - wy * scale
        return _to_lonlat(mx, my)

    # ── public API ────────────────────────────────────────────────────

    @property
    def center(self) -> Tuple[float, float]:
        """Current centre as (lat, lon)."""
        lon, lat = self._world_to_lonlat(*self._center_world)
        return lat, lon

    def world_origin(self) -> Tuple[float, float]:
        """World pixel under the viewport's top-left corner."""
        cwx, cwy = self._center_world
        return cwx - self.width / 2.0, cwy - self.height / 2.0

    def center_point(self) -> Tuple[float, float]:
        """Screen pixel at the middle of the viewport."""
        return self.width / 2.0, self.height / 2.0

    def pan_to(self, lat: float, lon: float) -> None:
        self._center_world = self._lonlat_to_world(lon, lat)

    def set_zoom(self, zoom: float) -> None:
        lat, lon = self.center
        self.zoom = zoom
        self._center_world = self._lonlat_to_world(lon, lat)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def screen_point_to_geo(self, x: float, y: float) -> Tuple[float, float]:
        """Viewport pixel → (lat, lon)."""
        cwx, cwy = self._center_world
        wx = cwx + (x - self.width / 2.0)
        wy = cwy + (y - self.height / 2.0)
        lon, lat = self._world_to_lonlat(wx, wy)
        return lat, lon

    def geo_to_screen_point(self, lat: float, lon: float) -> Tuple[float, float]:
        """(lat, lon) → viewport pixel."""
        wx, wy = self._lonlat_to_world(lon, lat)
        cwx, cwy = self._center_world
        return wx - cwx + self.width / 2.0, wy - cwy + self.height / 2.0

    def __repr__(self) -> str:
        lat, lon = self.center
        return (
            f"Viewport(center=({lat:.5f}, {lon:.5f}), zoom={self.zoom}, "
            f"size={self.width}x{self.height})"
        )
