"""Tests for Web Mercator tile indexing."""

import pytest

from mmap_offline.geo.tile_index import (
    GeoBoundingBox,
    TileKey,
    ZoomPlan,
    build_zoom_plans,
    iter_plan_keys,
    lat_to_tile_y,
    lon_to_tile_x,
    total_tiles,
    zoom_plan,
)


class TestTileCoordinates:
    """Tests for lon/lat → tile column/row."""

    def test_known_tiles(self):
        """Reference points from the OSM slippy-map convention."""
        assert lon_to_tile_x(-180.0, 0) == 0
        assert lon_to_tile_x(0.0, 1) == 1
        assert lat_to_tile_y(0.0, 1) == 1
        assert lat_to_tile_y(85.0, 1) == 0
        # Ulsan at z12
        assert lon_to_tile_x(129.410, 12) == 3520
        assert lat_to_tile_y(35.525, 12) == 1615

    @pytest.mark.parametrize("zoom", [0, 1, 5, 12, 19])
    def test_tile_x_in_range_and_monotonic(self, zoom):
        """tileX stays in [0, 2^z) and never decreases as lon grows."""
        prev = -1
        lon = -180.0
        while lon <= 180.0:
            x = lon_to_tile_x(lon, zoom)
            assert 0 <= x < 2 ** zoom
            assert x >= prev
            prev = x
            lon += 7.3
        assert lon_to_tile_x(180.0, zoom) == 2 ** zoom - 1

    @pytest.mark.parametrize("zoom", [0, 3, 10, 19])
    def test_tile_y_in_range(self, zoom):
        lat = -85.0
        while lat < 85.05:
            y = lat_to_tile_y(lat, zoom)
            assert 0 <= y < 2 ** zoom
            lat += 2.5

    def test_tile_y_grows_southward(self):
        assert lat_to_tile_y(35.525, 15) <= lat_to_tile_y(35.495, 15)


class TestZoomPlan:
    """Tests for the per-zoom tile rectangle."""

    def test_ulsan_z12_count(self, ulsan_bounds):
        """Tile count has no off-by-one against the inclusive rectangle."""
        plan = zoom_plan(ulsan_bounds, 12)
        expected = (plan.x_max - plan.x_min + 1) * (plan.y_max - plan.y_min + 1)
        assert plan.tile_count == expected
        assert plan.tile_count == len(list(plan.keys()))
        assert plan.x_min == lon_to_tile_x(129.410, 12)
        assert plan.x_max == lon_to_tile_x(129.445, 12)
        assert plan.y_min == lat_to_tile_y(35.525, 12)
        assert plan.y_max == lat_to_tile_y(35.495, 12)

    def test_single_tile_plan(self):
        plan = ZoomPlan(zoom=3, x_min=5, x_max=5, y_min=2, y_max=2)
        assert plan.tile_count == 1
        assert list(plan.keys()) == [TileKey(3, 5, 2)]

    def test_key_order_is_x_then_y(self):
        plan = ZoomPlan(zoom=4, x_min=1, x_max=2, y_min=7, y_max=8)
        assert list(plan.keys()) == [
            TileKey(4, 1, 7), TileKey(4, 1, 8), TileKey(4, 2, 7), TileKey(4, 2, 8),
        ]

    def test_str_matches_log_format(self):
        plan = ZoomPlan(zoom=10, x_min=880, x_max=880, y_min=406, y_max=407)
        assert str(plan) == "Zoom 10: 2 tiles (x:880-880, y:406-407)"


class TestBuildZoomPlans:
    """Tests for multi-zoom planning."""

    def test_one_plan_per_zoom(self, ulsan_bounds):
        plans = build_zoom_plans(ulsan_bounds, 10, 14)
        assert [p.zoom for p in plans] == [10, 11, 12, 13, 14]
        assert total_tiles(plans) == sum(p.tile_count for p in plans)

    def test_counts_grow_with_zoom(self, ulsan_bounds):
        plans = build_zoom_plans(ulsan_bounds, 12, 18)
        counts = [p.tile_count for p in plans]
        assert counts == sorted(counts)

    def test_iteration_order(self, ulsan_bounds):
        plans = build_zoom_plans(ulsan_bounds, 13, 14)
        keys = list(iter_plan_keys(list(reversed(plans))))
        assert keys == sorted(keys)
        assert len(keys) == len(set(keys)) == total_tiles(plans)

    def test_invalid_range(self, ulsan_bounds):
        with pytest.raises(ValueError):
            build_zoom_plans(ulsan_bounds, 12, 10)
        with pytest.raises(ValueError):
            build_zoom_plans(ulsan_bounds, -1, 3)


class TestGeoBoundingBox:
    def test_validate_accepts_ordered_box(self, ulsan_bounds):
        assert ulsan_bounds.validate() is ulsan_bounds

    def test_validate_rejects_inverted_box(self):
        with pytest.raises(ValueError):
            GeoBoundingBox(north=1.0, south=2.0, east=5.0, west=4.0).validate()
        with pytest.raises(ValueError):
            GeoBoundingBox(north=2.0, south=1.0, east=4.0, west=5.0).validate()
