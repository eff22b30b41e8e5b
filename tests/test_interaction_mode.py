"""
Tests for Select/Erase pointer handling.
"""

import pytest

from editor_models import EraserStroke
from interaction_mode import EditorMode, InteractionModeController
from overlay_store import OverlayElementStore
from render_surface import NodeInteractivity, RasterSurface
from render_sync import RenderPresence, RenderSync
from conftest import make_detection


def build(image, detections, scale=1.0, eraser_size=20):
    surface = RasterSurface(image, scale=scale)
    sync = RenderSync(surface)
    store = OverlayElementStore()
    store.subscribe(sync.reconcile)
    store.initialize(detections)
    controller = InteractionModeController(store, sync, surface, eraser_size=eraser_size)
    return store, sync, surface, controller


@pytest.fixture
def editor(white_image, two_detections):
    return build(white_image, two_detections)


class TestModeSwitching:
    def test_erase_disables_interaction(self, editor):
        store, sync, surface, controller = editor
        controller.set_mode(EditorMode.ERASE)

        assert controller.mode == EditorMode.ERASE
        assert surface.selection_enabled is False
        assert surface.cursor == "none"
        assert surface.hover_cursor == "none"
        for node_id in surface.node_ids():
            interactivity = surface.get_interactivity(node_id)
            assert interactivity.selectable is False
            assert interactivity.evented is False

    def test_select_restores_saved_interactivity(self, editor):
        store, sync, surface, controller = editor
        before = {node_id: surface.get_interactivity(node_id) for node_id in surface.node_ids()}

        controller.set_mode(EditorMode.ERASE)
        controller.set_mode(EditorMode.SELECT)

        after = {node_id: surface.get_interactivity(node_id) for node_id in surface.node_ids()}
        assert after == before
        assert surface.selection_enabled is True
        assert surface.cursor == "default"
        assert surface.hover_cursor == "move"
        assert controller._saved_interactivity == {}

    def test_text_nodes_selectable_rects_not(self, editor):
        store, sync, surface, controller = editor
        text = surface.get_interactivity(sync.text_node_for(0))
        rect = surface.get_interactivity(sync.rect_node_for(0))
        assert text == NodeInteractivity(selectable=True, evented=True, hover_cursor="move")
        assert rect.selectable is False and rect.evented is False

    def test_same_mode_is_noop(self, editor):
        store, sync, surface, controller = editor
        controller.set_mode(EditorMode.SELECT)
        assert surface.cursor == "default"
        assert controller._saved_interactivity == {}

    def test_mode_accepts_string_value(self, editor):
        controller = editor[3]
        controller.set_mode("erase")
        assert controller.mode == EditorMode.ERASE

    def test_invalid_eraser_size(self, editor):
        with pytest.raises(ValueError):
            editor[3].set_eraser_size(0)


class TestErasing:
    def test_stroke_in_image_pixels(self, editor):
        store, sync, surface, controller = editor
        controller.set_mode(EditorMode.ERASE)

        assert controller.pointer_down(30, 30) == 0
        assert store.get(0).eraser_strokes == (EraserStroke(30, 30, 10),)
        assert sync.presence(0) == RenderPresence.BACKGROUND_MASKED

    def test_display_scale_is_applied(self, white_image, two_detections):
        store, sync, surface, controller = build(white_image, two_detections, scale=0.5)
        controller.set_mode(EditorMode.ERASE)

        assert controller.pointer_down(15, 15) == 0
        assert store.get(0).eraser_strokes == (EraserStroke(30, 30, 20),)

    def test_drag_appends_until_pointer_up(self, editor):
        store, sync, surface, controller = editor
        controller.set_mode(EditorMode.ERASE)

        controller.pointer_move(30, 30)
        assert store.get(0).eraser_strokes == ()

        controller.pointer_down(30, 30)
        controller.pointer_move(31, 30)
        controller.pointer_move(32, 31)
        assert len(store.get(0).eraser_strokes) == 3

        controller.pointer_up()
        controller.pointer_move(33, 31)
        assert len(store.get(0).eraser_strokes) == 3
        assert controller.cursor_position == (33, 31)

    def test_miss_does_nothing(self, editor):
        store, sync, surface, controller = editor
        controller.set_mode(EditorMode.ERASE)
        version = store.snapshot.version

        assert controller.pointer_down(5, 5) is None
        assert store.snapshot.version == version

    def test_cover_margin_is_erasable(self, editor):
        store, sync, surface, controller = editor
        controller.set_mode(EditorMode.ERASE)
        # Inside the expanded cover but outside the detection box
        assert controller.pointer_down(17, 19) == 0

    def test_hidden_background_is_skipped(self, editor):
        store, sync, surface, controller = editor
        store.toggle_background(0)
        controller.set_mode(EditorMode.ERASE)
        assert controller.pointer_down(30, 30) is None

    @pytest.mark.parametrize("order, expected", [((0, 1), 0), ((1, 0), 1)])
    def test_first_element_in_store_order_wins(self, white_image, order, expected):
        detections = {
            0: make_detection(0, 20, 20, 40, 20),
            1: make_detection(1, 30, 25, 40, 20),
        }
        store, sync, surface, controller = build(white_image, [detections[i] for i in order])
        controller.set_mode(EditorMode.ERASE)
        assert controller.pointer_down(40, 30) == expected

    def test_select_mode_never_erases(self, editor):
        store, sync, surface, controller = editor
        controller.pointer_down(30, 30)
        controller.pointer_move(31, 30)
        assert store.get(0).eraser_strokes == ()

    def test_leaving_erase_stops_drawing(self, editor):
        store, sync, surface, controller = editor
        controller.set_mode(EditorMode.ERASE)
        controller.pointer_down(30, 30)
        controller.set_mode(EditorMode.SELECT)
        assert controller.is_drawing is False
        assert controller.cursor_position is None


class TestSelecting:
    def test_click_selects_and_drag_moves(self, editor):
        store, sync, surface, controller = editor

        assert controller.pointer_down(110, 60) == 1
        assert store.selected_id == 1

        controller.pointer_move(120, 70)
        assert store.get(1).position == (110, 60)

        controller.pointer_up()
        controller.pointer_move(150, 90)
        assert store.get(1).position == (110, 60)

    def test_drag_uses_display_scale(self, white_image, two_detections):
        store, sync, surface, controller = build(white_image, two_detections, scale=0.5)
        assert controller.pointer_down(55, 30) == 1
        controller.pointer_move(60, 30)
        assert store.get(1).position == (110, 50)

    def test_click_on_empty_area_clears_selection(self, editor):
        store, sync, surface, controller = editor
        controller.pointer_down(110, 60)
        assert controller.pointer_down(5, 5) is None
        assert store.selected_id is None

    def test_hidden_text_cannot_be_picked(self, editor):
        store, sync, surface, controller = editor
        store.toggle_text(1)
        assert controller.pointer_down(110, 60) is None
