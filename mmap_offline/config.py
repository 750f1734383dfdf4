"""
Client configuration.

Defaults cover the Bangeo-dong (Dong-gu, Ulsan) offline area and the public
OpenStreetMap tile servers.  A JSON file can override any field::

    {
      "bounds": {"north": 35.53, "south": 35.49, "east": 129.45, "west": 129.40},
      "max_zoom": 17,
      "tile_dir": "/sdcard/mmap/tiles"
    }
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional, Tuple

from .geo.tile_index import GeoBoundingBox

log = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = ROOT_DIR / "data"

# 울산 동구 방어동
DEFAULT_BOUNDS = GeoBoundingBox(north=35.525, south=35.495, east=129.445, west=129.410)


@dataclass
class ClientConfig:
    """Settings for tile provisioning, tile serving and local state."""

    tile_host: str = "tile.openstreetmap.org"
    servers: List[str] = field(default_factory=lambda: ["a", "b", "c"])
    user_agent: str = "MmapOfflineBuilder/1.0"
    timeout_s: float = 15.0
    request_interval_s: float = 0.05
    progress_every: int = 100
    bounds: GeoBoundingBox = DEFAULT_BOUNDS
    min_zoom: int = 10
    max_zoom: int = 19
    tile_dir: Path = ROOT_DIR / "www" / "tiles"
    state_db: Path = DATA_DIR / "mmap_state.db"
    # Map view on start-up; tiles above max_native_zoom are scaled up
    view_zoom: int = 15
    max_view_zoom: int = 21
    max_native_zoom: int = 19
    # Where app files are fetched from for precaching; None skips it
    app_base_url: Optional[str] = None
    # Application files kept available offline by the asset cache
    app_files: List[str] = field(default_factory=lambda: [
        "/",
        "/index.html",
        "/app.js",
        "/style.css",
    ])

    def tile_url(self, server: str, z: int, x: int, y: int) -> str:
        return f"https://{server}.{self.tile_host}/{z}/{x}/{y}.png"

    @property
    def zoom_range(self) -> Tuple[int, int]:
        return self.min_zoom, self.max_zoom


def _coerce(name: str, value):
    if name == "bounds":
        if isinstance(value, GeoBoundingBox):
            return value
        return GeoBoundingBox(
            north=float(value["north"]),
            south=float(value["south"]),
            east=float(value["east"]),
            west=float(value["west"]),
        )
    if name in ("tile_dir", "state_db"):
        return Path(value)
    if name in ("min_zoom", "max_zoom", "progress_every",
                "view_zoom", "max_view_zoom", "max_native_zoom"):
        return int(value)
    if name in ("timeout_s", "request_interval_s"):
        return float(value)
    return value


def load_config(path: Optional[Path] = None, **overrides) -> ClientConfig:
    """Build a config from defaults, an optional JSON file and keyword overrides.

    Keyword overrides whose value is None are ignored, so CLI arguments can
    be passed straight through.
    """
    values = {}
    if path is not None:
        path = Path(path)
        with path.open("r", encoding="utf-8") as f:
            values.update(json.load(f))
        log.info("Loaded config from %s", path)
    values.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(ClientConfig)}
    unknown = set(values) - known
    if unknown:
        raise KeyError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    cfg = ClientConfig(**{k: _coerce(k, v) for k, v in values.items()})
    cfg.bounds.validate()
    if cfg.min_zoom > cfg.max_zoom:
        raise ValueError(f"min_zoom ({cfg.min_zoom}) > max_zoom ({cfg.max_zoom})")
    return cfg
