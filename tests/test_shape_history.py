"""Tests for the shape preset history and the drawing session."""

import math

import pytest

from mmap_offline.draw.session import DrawSession
from mmap_offline.draw.shape_editor import (
    ConfirmedShape,
    EditorMode,
    ShapeKind,
    ShapePreset,
    ShapeState,
)
from mmap_offline.draw.shape_history import (
    HISTORY_KEY,
    ShapeHistory,
    preset_from_dict,
    preset_to_dict,
    preview_svg,
)


@pytest.fixture
def history(kv):
    return ShapeHistory(kv)


def _preset(w, h=40, rot=0.0, kind=ShapeKind.RECT):
    return ShapePreset(kind, w, h, rot)


class TestShapeHistory:
    """Tests for the three-entry most-recent-first list."""

    def test_empty(self, history):
        assert history.entries() == []
        assert history.get(0) is None

    def test_most_recent_first_and_bounded(self, history):
        for w in (10, 20, 30, 40):
            history.record(_preset(w))
        assert [p.width for p in history.entries()] == [40, 30, 20]

    def test_entries_are_rounded(self, history, kv):
        history.record(ShapePreset(ShapeKind.ELLIPSE, 80.6, 39.2, 0.25))
        stored = kv.get_json(HISTORY_KEY)
        assert stored == [{"mode": "circle", "w": 81, "h": 39, "rotation": 0.25}]
        assert history.get(0) == ShapePreset(ShapeKind.ELLIPSE, 81.0, 39.0, 0.25)

    def test_tolerates_corrupt_storage(self, history, kv):
        kv.set(HISTORY_KEY, "{not json")
        assert history.entries() == []
        kv.set_json(HISTORY_KEY, {"mode": "rect"})
        assert history.entries() == []
        history.record(_preset(50))
        assert len(history.entries()) == 1

    def test_skips_malformed_entries(self, history, kv):
        kv.set_json(HISTORY_KEY, [{"mode": "hexagon", "w": 1, "h": 1}, {"mode": "rect", "w": 5, "h": 6}])
        assert history.entries() == [ShapePreset(ShapeKind.RECT, 5.0, 6.0, 0.0)]

    def test_unchanged_preset_not_recorded(self, history):
        for w in (30, 20, 10):
            history.record(_preset(w))
        before = history.entries()
        origin = before[2]
        state = ShapeState(400, 300, origin.width + 0.3, origin.height - 0.2, origin.rotation + 0.005)
        assert history.record_confirmed(ConfirmedShape(origin.kind, state, origin)) is False
        assert history.entries() == before

    def test_changed_preset_recorded(self, history):
        origin = _preset(60)
        history.record(origin)
        state = ShapeState(400, 300, 60, 40, 0.02)
        assert history.record_confirmed(ConfirmedShape(ShapeKind.RECT, state, origin)) is True
        assert len(history.entries()) == 2

    def test_fresh_shape_always_recorded(self, history):
        state = ShapeState(400, 300, 120, 120, 0.0)
        assert history.record_confirmed(ConfirmedShape(ShapeKind.RECT, state, None)) is True

    def test_clear(self, history, kv):
        history.record(_preset(50))
        history.clear()
        assert history.entries() == []
        assert kv.get(HISTORY_KEY) is None

    def test_dict_round_trip_uses_circle_tag(self):
        data = preset_to_dict(_preset(10, 20, 0.1, ShapeKind.ELLIPSE))
        assert data["mode"] == "circle"
        assert preset_from_dict(data).kind is ShapeKind.ELLIPSE

    def test_preview_svg(self):
        svg = preview_svg(ShapePreset(ShapeKind.RECT, 100, 50, math.pi / 2))
        assert svg.startswith('<svg viewBox="0 0 24 24"')
        assert 'width="14" height="7"' in svg
        assert "rotate(90.0 12 12)" in svg
        assert "<ellipse" in preview_svg(_preset(10, 10, kind=ShapeKind.ELLIPSE))


class TestDrawSession:
    """Tests for confirm / history wiring on a real viewport."""

    def test_confirm_projects_and_records(self, viewport, history):
        session = DrawSession(viewport, history)
        session.activate(ShapeKind.RECT)
        points = session.confirm()
        assert len(points) == 4
        assert history.get(0) == ShapePreset(ShapeKind.RECT, 120.0, 120.0, 0.0)
        assert session.editor.mode is EditorMode.INACTIVE
        assert viewport.interactive is True

    def test_confirm_inactive(self, viewport, history):
        assert DrawSession(viewport, history).confirm() is None

    def test_history_reuse_without_change(self, viewport, history):
        """Re-using a preset untouched neither grows nor reorders the list."""
        for w in (30, 60, 90):
            history.record(_preset(w))
        before = history.entries()
        session = DrawSession(viewport, history)
        state = session.activate_from_history(2)
        assert (state.width, state.height) == (30.0, 40.0)
        assert (state.center_x, state.center_y) == viewport.center_point()
        assert len(session.confirm()) == 4
        assert history.entries() == before

    def test_history_reuse_with_change(self, viewport, history):
        history.record(_preset(30))
        session = DrawSession(viewport, history)
        session.activate_from_history(0)
        hx, hy = session.editor.handles()["br"]
        session.editor.pointer_down(hx, hy)
        session.editor.pointer_move(hx + 10, hy)
        session.editor.pointer_up()
        session.confirm()
        assert [p.width for p in history.entries()] == [40.0, 30.0]

    def test_missing_history_index(self, viewport, history):
        assert DrawSession(viewport, history).activate_from_history(1) is None

    def test_toggle(self, viewport, history):
        session = DrawSession(viewport, history)
        assert session.toggle(ShapeKind.RECT) is not None
        assert session.toggle(ShapeKind.RECT) is None
        assert session.editor.mode is EditorMode.INACTIVE
        session.toggle(ShapeKind.RECT)
        session.toggle(ShapeKind.ELLIPSE)
        assert session.editor.kind is ShapeKind.ELLIPSE
