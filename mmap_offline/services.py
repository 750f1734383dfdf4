"""
Client object graph.

Builds every runtime collaborator of the map client from one
``ClientConfig``: the state database, the tile and asset caches with their
request handler, the viewport, the shape drawing session and the building
store.  Nothing here imports Qt, so the GUI and the tests share it.

Usage
-----
    services = build_services(load_config())
    resp = services.handler.handle("https://a.tile.openstreetmap.org/15/27994/12949.png")
    services.close()
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from .config import ClientConfig
from .draw.buildings import BuildingStore, VertexPath
from .draw.session import DrawSession
from .draw.shape_history import ShapeHistory
from .geo.projection import Viewport
from .ingest import make_session
from .storage.kv_store import KeyValueStore
from .storage.tile_cache import AssetCache, TileCache, TileRequestHandler

log = logging.getLogger(__name__)


@dataclass
class MapServices:
    config: ClientConfig
    kv: KeyValueStore
    tiles: TileCache
    assets: AssetCache
    handler: TileRequestHandler
    viewport: Viewport
    history: ShapeHistory
    drawing: DrawSession
    buildings: BuildingStore
    path: VertexPath = field(default_factory=VertexPath)

    def close(self) -> None:
        self.kv.close()


def build_services(
    config: ClientConfig,
    session: Optional[requests.Session] = None,
    width: int = 800,
    height: int = 600,
) -> MapServices:
    """Wire the client together; precaches app files when a base URL is set."""
    session = session or make_session(config.user_agent)
    kv = KeyValueStore(config.state_db)

    tiles = TileCache(config.tile_dir)
    assets = AssetCache()
    if config.app_base_url:
        assets.precache(config.app_base_url, config.app_files,
                        session=session, timeout=config.timeout_s)
    handler = TileRequestHandler(tiles, assets, config, session=session)

    b = config.bounds
    viewport = Viewport(
        center_lat=(b.north + b.south) / 2.0,
        center_lon=(b.east + b.west) / 2.0,
        zoom=config.view_zoom,
        width=width,
        height=height,
    )
    history = ShapeHistory(kv)
    log.info("Client ready: %r, %d cached tiles",
             viewport, tiles.stats()["cached_tiles"])
    return MapServices(
        config=config,
        kv=kv,
        tiles=tiles,
        assets=assets,
        handler=handler,
        viewport=viewport,
        history=history,
        drawing=DrawSession(viewport, history),
        buildings=BuildingStore(kv),
    )
