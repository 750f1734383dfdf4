"""Tests for the key-value store and saved buildings."""

import pytest

from mmap_offline.draw.buildings import (
    BUILDINGS_KEY,
    DEFAULT_COLOR,
    BuildingStore,
    VertexPath,
    finish_points,
)
from mmap_offline.storage.kv_store import KeyValueStore

SQUARE = [(35.51, 129.42), (35.51, 129.43), (35.50, 129.43), (35.50, 129.42)]


class TestKeyValueStore:
    def test_set_get(self, kv):
        assert kv.get("missing") is None
        assert kv.set("k", "v") is True
        assert kv.get("k") == "v"
        kv.set("k", "w")
        assert kv.get("k") == "w"

    def test_json(self, kv):
        kv.set_json("list", [1, {"a": 2}])
        assert kv.get_json("list") == [1, {"a": 2}]
        assert kv.get_json("nothing", []) == []

    def test_corrupt_json_returns_default(self, kv):
        kv.set("bad", "{oops")
        assert kv.get_json("bad", "fallback") == "fallback"

    def test_persists_to_disk(self, tmp_path):
        path = tmp_path / "state" / "kv.db"
        with KeyValueStore(path) as store:
            store.set("x", "1")
        with KeyValueStore(path) as store:
            assert store.get("x") == "1"

    def test_failed_write_is_reported_not_raised(self, kv):
        kv.close()
        assert kv.set("k", "v") is False
        assert kv.get("k") is None

    def test_delete(self, kv):
        kv.set("k", "v")
        assert kv.delete("k") is True
        assert kv.get("k") is None
        assert kv.delete("k") is True

    def test_failed_delete_is_reported_not_raised(self, kv):
        kv.set("k", "v")
        kv.close()
        assert kv.delete("k") is False


class FullStore(KeyValueStore):
    """Store whose writes always fail, like a full localStorage."""

    def set(self, key, value):
        return False


class TestBuildingStore:
    """Tests for building persistence and the import boundary."""

    def test_add_and_reload(self, kv):
        store = BuildingStore(kv)
        b = store.add("  Office  ", SQUARE, desc="HQ")
        assert b.name == "Office"
        assert b.color == DEFAULT_COLOR
        assert BuildingStore(kv).get(b.id).points == SQUARE

    def test_add_rejects_bad_input(self, kv):
        store = BuildingStore(kv)
        with pytest.raises(ValueError):
            store.add("", SQUARE)
        with pytest.raises(ValueError):
            store.add("Shed", SQUARE[:2])
        assert len(store) == 0

    def test_remove(self, kv):
        store = BuildingStore(kv)
        b = store.add("Shed", SQUARE)
        assert store.remove(b.id) is True
        assert store.remove(b.id) is False
        assert BuildingStore(kv).all() == []

    def test_load_skips_short_polygons(self, kv):
        kv.set_json(BUILDINGS_KEY, [
            {"id": "a", "name": "ok", "points": SQUARE},
            {"id": "b", "name": "line", "points": SQUARE[:2]},
            "garbage",
        ])
        assert [b.id for b in BuildingStore(kv).all()] == ["a"]

    def test_center(self, kv):
        b = BuildingStore(kv).add("Shed", SQUARE)
        assert b.center() == pytest.approx((35.505, 129.425))

    def test_export_records(self, kv):
        store = BuildingStore(kv)
        store.add("Shed", SQUARE, color="#e53e3e")
        (rec,) = store.export_records()
        assert set(rec) == {"id", "name", "desc", "color", "points"}
        assert rec["points"][0] == [35.51, 129.42]
        assert rec["color"] == "#e53e3e"

    def test_import_filters_and_dedups(self, kv):
        store = BuildingStore(kv)
        store.add("Office", SQUARE)
        result = store.import_records([
            {"name": "Office", "points": SQUARE},                    # duplicate
            {"name": "Office", "points": SQUARE[:3]},                # different count
            {"name": "", "points": SQUARE},                          # no name
            {"name": "Line", "points": SQUARE[:2]},                  # too few points
            {"name": "Bad", "points": [["x", 1], [2, 3], [4, 5]]},   # not numeric
            {"name": "Annex", "points": SQUARE, "color": "#000"},
        ])
        assert (result.imported, result.skipped, result.rejected) == (2, 1, 3)
        assert [b.name for b in store.all()] == ["Office", "Office", "Annex"]
        assert store.all()[-1].color == "#000"
        assert len(BuildingStore(kv)) == 3

    def test_import_nothing_does_not_write(self, kv):
        store = BuildingStore(kv)
        result = store.import_records([{"name": "Line", "points": SQUARE[:2]}])
        assert result.imported == 0
        assert kv.get(BUILDINGS_KEY) is None

    def test_storage_failure_keeps_memory(self):
        store = BuildingStore(FullStore(":memory:"))
        b = store.add("Shed", SQUARE)
        assert store.get(b.id) is b
        assert store.save() is False

    def test_finish_points(self):
        assert finish_points(SQUARE[:2]) is None
        assert finish_points(SQUARE[:3]) == SQUARE[:3]


class TestVertexPath:
    """Tests for click-by-click building outlines."""

    def test_add_and_finish(self):
        path = VertexPath()
        for lat, lon in SQUARE[:2]:
            path.add(lat, lon)
        assert path.finish() is None
        assert path.add(*SQUARE[2]) == 3
        assert path.finish() == SQUARE[:3]

    def test_undo(self):
        path = VertexPath()
        assert path.undo() is None
        path.add(*SQUARE[0])
        path.add(*SQUARE[1])
        assert path.undo() == SQUARE[1]
        assert path.points == [SQUARE[0]]

    def test_replace_with_confirmed_shape(self):
        path = VertexPath()
        path.add(1.0, 2.0)
        path.replace(SQUARE)
        assert len(path) == 4
        assert path.finish() == SQUARE
        path.clear()
        assert path.points == []

    def test_points_is_a_copy(self):
        path = VertexPath()
        path.add(*SQUARE[0])
        path.points.append((0.0, 0.0))
        assert len(path) == 1
