"""
Web Mercator tile indexing.

Maps a geographic bounding box onto the integer (z, x, y) tile rectangle
that covers it at each zoom level.  These are the same slippy-map tile
coordinates used by OpenStreetMap: x grows eastward, y grows southward,
and both lie in ``[0, 2**z)``.

Usage
-----
    from mmap_offline.geo.tile_index import GeoBoundingBox, build_zoom_plans

    bounds = GeoBoundingBox(north=35.525, south=35.495, east=129.445, west=129.410)
    plans = build_zoom_plans(bounds, 10, 19)
    for plan in plans:
        print(plan.zoom, plan.tile_count)
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, List, Tuple

# Latitude limit of the square Web Mercator world
MAX_LATITUDE = 85.0511287798


@dataclass(frozen=True)
class GeoBoundingBox:
    """Geographic bounding box in decimal degrees."""

    north: float
    south: float
    east: float
    west: float

    def validate(self) -> "GeoBoundingBox":
        if not self.north > self.south:
            raise ValueError(
                f"north ({self.north}) must be greater than south ({self.south})"
            )
        if not self.east > self.west:
            raise ValueError(
                f"east ({self.east}) must be greater than west ({self.west})"
            )
        return self

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """(west, south, east, north), the usual bbox order."""
        return (self.west, self.south, self.east, self.north)


@dataclass(frozen=True, order=True)
class TileKey:
    """Address of one raster tile."""

    z: int
    x: int
    y: int

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


@dataclass(frozen=True)
class ZoomPlan:
    """Tile rectangle covering a bounding box at one zoom level."""

    zoom: int
    x_min: int
    x_max: int
    y_min: int
    y_max: int

    @property
    def tile_count(self) -> int:
        return (self.x_max - self.x_min + 1) * (self.y_max - self.y_min + 1)

    def keys(self) -> Iterator[TileKey]:
        """Yield every key in ascending x, then ascending y order."""
        for x in range(self.x_min, self.x_max + 1):
            for y in range(self.y_min, self.y_max + 1):
                yield TileKey(self.zoom, x, y)

    def __str__(self) -> str:
        return (
            f"Zoom {self.zoom}: {self.tile_count} tiles "
            f"(x:{self.x_min}-{self.x_max}, y:{self.y_min}-{self.y_max})"
        )


def lon_to_tile_x(lon: float, zoom: int) -> int:
    """Tile column containing *lon* at *zoom*."""
    n = 2 ** zoom
    x = math.floor(((lon + 180.0) / 360.0) * n)
    # lon == 180 lands exactly on the right edge of the world
    return min(max(x, 0), n - 1)


def lat_to_tile_y(lat: float, zoom: int) -> int:
    """Tile row containing *lat* at *zoom* (row 0 is the northern edge)."""
    n = 2 ** zoom
    lat = max(min(lat, MAX_LATITUDE), -MAX_LATITUDE)
    lat_rad = math.radians(lat)
    y = math.floor(((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0) * n)
    return min(max(y, 0), n - 1)


def zoom_plan(bounds: GeoBoundingBox, zoom: int) -> ZoomPlan:
    """Compute the tile rectangle covering *bounds* at *zoom*."""
    return ZoomPlan(
        zoom=zoom,
        x_min=lon_to_tile_x(bounds.west, zoom),
        x_max=lon_to_tile_x(bounds.east, zoom),
        y_min=lat_to_tile_y(bounds.north, zoom),
        y_max=lat_to_tile_y(bounds.south, zoom),
    )


def build_zoom_plans(
    bounds: GeoBoundingBox,
    min_zoom: int,
    max_zoom: int,
) -> List[ZoomPlan]:
    """One plan per zoom level in ``[min_zoom, max_zoom]``, ascending."""
    if min_zoom < 0 or max_zoom < 0:
        raise ValueError("zoom levels must be non-negative")
    if min_zoom > max_zoom:
        raise ValueError(f"min_zoom ({min_zoom}) > max_zoom ({max_zoom})")
    return [zoom_plan(bounds, z) for z in range(min_zoom, max_zoom + 1)]


def total_tiles(plans: List[ZoomPlan]) -> int:
    return sum(p.tile_count for p in plans)


def iter_plan_keys(plans: List[ZoomPlan]) -> Iterator[TileKey]:
    """Walk plans in ascending zoom, then x, then y."""
    for plan in sorted(plans, key=lambda p: p.zoom):
        yield from plan.keys()
