"""
mmap_offline — offline map client core.

Entry point: python -m mmap_offline

Provides:
- Web Mercator tile indexing (geo.tile_index)
- Screen <-> geographic viewport projection (geo.projection)
- Sequential, rate-limited tile provisioning (ingest.tile_downloader)
- Write-once offline tile cache and request handling (storage.tile_cache)
- Move / resize / rotate shape editor and preset history (draw/)
- PyQt5 overlay that drives the shape editor (gui.shape_overlay)
"""
