"""
Offline tile provisioning.

Walks every tile of every zoom plan (ascending zoom, then x, then y) and
makes sure each one is in the tile cache.  Tiles already on disk count as
downloaded and cost no request.  Missing tiles are fetched from the mirror
servers in round-robin order.

The download is strictly sequential: one request in flight at a time,
followed by a fixed pause after every attempt.  This is the usage policy
agreed with the public tile servers.  Do not parallelise it.

Failures (non-200, connection errors, timeouts, disk errors) are counted
and skipped; there are no retries within a run.  Running the download again
later only fetches what is still missing.

Usage
-----
    from mmap_offline.config import load_config
    from mmap_offline.geo.tile_index import build_zoom_plans
    from mmap_offline.storage.tile_cache import TileCache
    from mmap_offline.ingest.tile_downloader import download_tiles

    cfg = load_config()
    plans = build_zoom_plans(cfg.bounds, cfg.min_zoom, cfg.max_zoom)
    tally = download_tiles(plans, TileCache(cfg.tile_dir), cfg)
    print(tally.downloaded, tally.failed)
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from ..geo.tile_index import TileKey, ZoomPlan, iter_plan_keys, total_tiles
from ..storage.tile_cache import TileCache
from . import fetch_tile_bytes, make_session

log = logging.getLogger(__name__)

# Rough average size of an OSM raster tile, for the pre-run estimate
_AVG_TILE_KB = 15

ProgressCallback = Callable[["DownloadTally", int], None]


@dataclass
class DownloadTally:
    """Counters for one provisioning run."""

    downloaded: int = 0
    failed: int = 0
    fetched: int = 0        # network requests issued
    total: int = 0

    @property
    def processed(self) -> int:
        return self.downloaded + self.failed


class ProvisionRun:
    """State for one pass over a set of zoom plans.

    Holds the counters and the round-robin server index so repeated runs
    never share state.
    """

    def __init__(
        self,
        plans: List[ZoomPlan],
        cache: TileCache,
        config,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.plans = sorted(plans, key=lambda p: p.zoom)
        self.cache = cache
        self.config = config
        self.session = session or make_session(config.user_agent)
        self.tally = DownloadTally(total=total_tiles(self.plans))
        self._sleep = sleep
        self._progress = progress_callback
        self._server_idx = 0

    def next_server(self) -> str:
        servers = self.config.servers
        server = servers[self._server_idx % len(servers)]
        self._server_idx += 1
        return server

    def run(self) -> DownloadTally:
        log.info("Downloading %d tiles (%d zoom levels)",
                 self.tally.total, len(self.plans))
        current_zoom = None
        for key in iter_plan_keys(self.plans):
            if key.z != current_zoom:
                current_zoom = key.z
                log.info("Zoom %d...", current_zoom)
            self.process(key)

        log.info("Done! Downloaded: %d, Failed: %d (%d requests)",
                 self.tally.downloaded, self.tally.failed, self.tally.fetched)
        return self.tally

    def process(self, key: TileKey) -> None:
        """Ensure one tile is cached; never raises."""
        if self.cache.contains(key):
            self._count_success()
            return

        server = self.next_server()
        url = self.config.tile_url(server, key.z, key.x, key.y)
        self.tally.fetched += 1
        try:
            data = fetch_tile_bytes(url, session=self.session, timeout=self.config.timeout_s)
            self.cache.put(key, data)
        except requests.RequestException as exc:
            self.tally.failed += 1
            log.warning("Tile %s failed via %s: %s", key, server, exc)
        except OSError as exc:
            self.tally.failed += 1
            log.warning("Tile %s could not be written: %s", key, exc)
        else:
            self._count_success()
        finally:
            self._sleep(self.config.request_interval_s)

    def _count_success(self) -> None:
        self.tally.downloaded += 1
        every = self.config.progress_every
        if every > 0 and self.tally.downloaded % every == 0:
            log.info("Downloaded: %d/%d (failed: %d)",
                     self.tally.downloaded, self.tally.total, self.tally.failed)
            if self._progress is not None:
                try:
                    self._progress(self.tally, self.tally.total)
                except Exception as exc:
                    log.warning("Progress callback failed: %s", exc)


def describe_plans(plans: List[ZoomPlan]) -> int:
    """Log the per-zoom plan and size estimate; returns the tile total."""
    for plan in plans:
        log.info("%s", plan)
    total = total_tiles(plans)
    log.info("Total tiles: %d", total)
    log.info("Estimated size: ~%d MB", round(total * _AVG_TILE_KB / 1024))
    return total


def download_tiles(
    plans: List[ZoomPlan],
    cache: TileCache,
    config,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
    progress_callback: Optional[ProgressCallback] = None,
) -> DownloadTally:
    """Run one provisioning pass and return its counters."""
    run = ProvisionRun(
        plans, cache, config,
        session=session, sleep=sleep, progress_callback=progress_callback,
    )
    return run.run()
