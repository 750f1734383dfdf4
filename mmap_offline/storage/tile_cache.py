"""
Offline tile cache and request handling.

Tiles live on disk as ``{root}/{z}/{x}/{y}.png``.  A file that exists is a
valid tile, forever: there is no TTL, no checksum and no eviction.  Writes
are write-once.  A second ``put`` for the same key is a no-op, so tiles
seeded by the downloader are never clobbered by a later fetch.

``TileRequestHandler`` is the runtime serving policy in front of the cache:

  - tile host URLs  → cache first, then network; successful network
                      responses are written back; offline misses get an
                      empty 404 placeholder instead of an error
  - anything else   → app asset cache first, then network, no write-back

Usage
-----
    cache = TileCache(Path("www/tiles"))
    handler = TileRequestHandler(cache, AssetCache(), config)
    resp = handler.handle("https://a.tile.openstreetmap.org/12/3520/1614.png")
    resp.status, resp.source   # 200, "cache"
"""
from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional
from urllib.parse import urlsplit

import requests

from ..geo.tile_index import TileKey
from ..ingest import make_session

log = logging.getLogger(__name__)

_TILE_PATH = re.compile(r"^/(\d+)/(\d+)/(\d+)\.png$")


class TileCache:
    """Write-once ``TileKey → bytes`` store on the filesystem."""

    def __init__(self, root: Path):
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: TileKey) -> Path:
        return self._root / str(key.z) / str(key.x) / f"{key.y}.png"

    def contains(self, key: TileKey) -> bool:
        return self.path_for(key).exists()

    def get(self, key: TileKey) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: TileKey, data: bytes) -> bool:
        """Store *data* unless the key already has a tile.

        Returns True if this call wrote the file.  The bytes go to a temp
        file first and are hard-linked into place, which fails if the
        target appeared in the meantime; readers never see a partial tile.
        """
        path = self.path_for(key)
        if path.exists():
            return False
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{key.y}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            try:
                os.link(tmp, path)
            except FileExistsError:
                return False
        finally:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
        return True

    def stats(self) -> dict:
        files = list(self._root.glob("*/*/*.png")) if self._root.exists() else []
        total_bytes = sum(f.stat().st_size for f in files)
        return {
            "cached_tiles": len(files),
            "total_mb": round(total_bytes / (1024 * 1024), 1),
            "cache_dir": str(self._root),
        }


class AssetCache:
    """Pre-cached application files, keyed by URL path."""

    def __init__(self):
        self._assets: Dict[str, bytes] = {}

    def get(self, path: str) -> Optional[bytes]:
        return self._assets.get(path)

    def add(self, path: str, data: bytes) -> None:
        self._assets[path] = data

    def __contains__(self, path: str) -> bool:
        return path in self._assets

    def precache(
        self,
        base_url: str,
        paths: Iterable[str],
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
    ) -> int:
        """Fetch each app file once; returns how many were cached."""
        session = session or make_session()
        count = 0
        for path in paths:
            url = base_url.rstrip("/") + path
            try:
                resp = session.get(url, timeout=timeout)
            except requests.RequestException as exc:
                log.warning("Asset precache failed for %s: %s", url, exc)
                continue
            if resp.status_code == 200:
                self._assets[path] = resp.content
                count += 1
            else:
                log.warning("Asset precache got HTTP %d for %s", resp.status_code, url)
        log.info("Precached %d app files", count)
        return count


@dataclass(frozen=True)
class TileResponse:
    status: int
    body: bytes
    source: str     # "cache", "network" or "placeholder"

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def placeholder() -> TileResponse:
    """Empty 404 returned when a resource is neither cached nor reachable."""
    return TileResponse(404, b"", "placeholder")


class TileRequestHandler:
    """Offline-first responder for map tile and app asset requests."""

    def __init__(
        self,
        cache: TileCache,
        assets: AssetCache,
        config,
        session: Optional[requests.Session] = None,
    ):
        self._cache = cache
        self._assets = assets
        self._config = config
        self._session = session or make_session(config.user_agent)

    def parse_tile_url(self, url: str) -> Optional[TileKey]:
        """TileKey for a URL on the tile host, or None for anything else."""
        parts = urlsplit(url)
        host = parts.hostname or ""
        if host != self._config.tile_host and not host.endswith("." + self._config.tile_host):
            return None
        m = _TILE_PATH.match(parts.path)
        if not m:
            return None
        z, x, y = (int(g) for g in m.groups())
        return TileKey(z, x, y)

    def handle(self, url: str) -> TileResponse:
        key = self.parse_tile_url(url)
        if key is not None:
            return self._handle_tile(url, key)
        return self._handle_asset(url)

    def _handle_tile(self, url: str, key: TileKey) -> TileResponse:
        cached = self._cache.get(key)
        if cached is not None:
            return TileResponse(200, cached, "cache")

        try:
            resp = self._session.get(url, timeout=self._config.timeout_s)
        except requests.RequestException as exc:
            log.debug("Tile %s unavailable offline: %s", key, exc)
            return placeholder()

        if resp.status_code == 200:
            try:
                self._cache.put(key, resp.content)
            except OSError as exc:
                # The tile is still served; the next request fetches it again
                log.warning("Tile %s not written to cache: %s", key, exc)
        return TileResponse(resp.status_code, resp.content, "network")

    def _handle_asset(self, url: str) -> TileResponse:
        path = urlsplit(url).path or "/"
        cached = self._assets.get(path)
        if cached is not None:
            return TileResponse(200, cached, "cache")
        try:
            resp = self._session.get(url, timeout=self._config.timeout_s)
        except requests.RequestException as exc:
            log.debug("Asset %s unavailable offline: %s", url, exc)
            return placeholder()
        return TileResponse(resp.status_code, resp.content, "network")
