from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .config import load_config
from .geo.tile_index import GeoBoundingBox, build_zoom_plans
from .ingest.tile_downloader import describe_plans, download_tiles
from .logger import setup_logging
from .storage.tile_cache import TileCache

log = logging.getLogger(__name__)


def _bounds_from_args(args: argparse.Namespace) -> Optional[GeoBoundingBox]:
    edges = (args.north, args.south, args.east, args.west)
    if all(v is None for v in edges):
        return None
    if any(v is None for v in edges):
        raise SystemExit("--north, --south, --east and --west must be given together")
    return GeoBoundingBox(
        north=args.north, south=args.south, east=args.east, west=args.west,
    ).validate()


def run_download(args: argparse.Namespace) -> int:
    cfg = load_config(
        args.config,
        bounds=_bounds_from_args(args),
        min_zoom=args.min_zoom,
        max_zoom=args.max_zoom,
        tile_dir=args.tile_dir,
    )
    plans = build_zoom_plans(cfg.bounds, cfg.min_zoom, cfg.max_zoom)
    for plan in plans:
        print(plan)
    total = describe_plans(plans)
    print(f"\nTotal tiles: {total}")
    if args.plan_only:
        return 0

    def _progress(tally, total_tiles):
        print(
            f"\rDownloaded: {tally.downloaded}/{total_tiles} (failed: {tally.failed})",
            end="", flush=True,
        )

    tally = download_tiles(plans, TileCache(cfg.tile_dir), cfg, progress_callback=_progress)
    print(f"\n\nDone! Downloaded: {tally.downloaded}, Failed: {tally.failed}")
    return 0


def run_stats(args: argparse.Namespace) -> int:
    cfg = load_config(args.config, tile_dir=args.tile_dir)
    stats = TileCache(cfg.tile_dir).stats()
    print(f"Cached tiles: {stats['cached_tiles']}")
    print(f"Size:         {stats['total_mb']} MB")
    print(f"Directory:    {stats['cache_dir']}")
    return 0


def run_gui(args: argparse.Namespace) -> int:
    cfg = load_config(args.config, tile_dir=args.tile_dir)
    # Imported here so download and stats work without a Qt installation
    from .gui_main import run
    return run(cfg)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mmap_offline",
        description="Offline map client: tile provisioning and the map window.",
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON file overriding the built-in settings.")
    parser.add_argument("--tile-dir", type=Path, default=None,
                        help="Tile cache directory ({z}/{x}/{y}.png layout).")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log at DEBUG level.")
    sub = parser.add_subparsers(dest="command", required=True)

    dl = sub.add_parser("download", help="Fetch every missing tile for an area.")
    dl.add_argument("--north", type=float)
    dl.add_argument("--south", type=float)
    dl.add_argument("--east", type=float)
    dl.add_argument("--west", type=float)
    dl.add_argument("--min-zoom", type=int, default=None)
    dl.add_argument("--max-zoom", type=int, default=None)
    dl.add_argument("--plan-only", action="store_true",
                    help="Print the per-zoom tile plan and exit.")
    dl.set_defaults(func=run_download)

    st = sub.add_parser("stats", help="Show tile cache statistics.")
    st.set_defaults(func=run_stats)

    gui = sub.add_parser("gui", help="Open the offline map window.")
    gui.set_defaults(func=run_gui)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return args.func(args)
    except (KeyError, ValueError) as exc:
        parser.error(str(exc))
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
