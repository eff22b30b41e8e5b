"""
🧽 INTERACTION MODE MODULE
==========================
Select / Erase pointer handling on top of the render surface
"""

import logging
from enum import Enum
from typing import Dict, Optional, Tuple

from editor_models import EraserStroke
from overlay_store import OverlayElementStore
from render_surface import NodeInteractivity, RenderSurface
from render_sync import RenderSync

logger = logging.getLogger(__name__)


class EditorMode(str, Enum):
    SELECT = "select"
    ERASE = "erase"


class InteractionModeController:
    """
    Routes pointer events according to the current editor mode.

    Pointer coordinates are in display (canvas) pixels and are converted to
    image pixels with the surface scale. Node interactivity captured when
    entering Erase lives in ``_saved_interactivity``, keyed by node id, and is
    written back unchanged on exit.
    """

    def __init__(
        self,
        store: OverlayElementStore,
        render_sync: RenderSync,
        surface: RenderSurface,
        eraser_size: float = 20
    ):
        self.store = store
        self.render_sync = render_sync
        self.surface = surface
        self.eraser_size = eraser_size
        self.mode = EditorMode.SELECT
        self.is_drawing = False
        self.cursor_position: Optional[Tuple[float, float]] = None
        self._saved_interactivity: Dict[int, NodeInteractivity] = {}
        self._drag: Optional[Tuple[int, Tuple[float, float], Tuple[float, float]]] = None

    def _to_image(self, x: float, y: float) -> Tuple[float, float]:
        scale = self.surface.scale or 1.0
        return x / scale, y / scale

    def set_eraser_size(self, size: float):
        if size <= 0:
            raise ValueError(f"Eraser size must be positive, got {size}")
        self.eraser_size = size

    def set_mode(self, mode: EditorMode):
        """Switch mode; switching to the current mode does nothing"""
        mode = EditorMode(mode)
        if mode == self.mode:
            return
        if mode == EditorMode.ERASE:
            self._enter_erase()
        else:
            self._exit_erase()
        self.mode = mode
        logger.info(f"🧽 Editor mode: {mode.value}")

    def _enter_erase(self):
        self._drag = None
        self.surface.set_selection_enabled(False)
        for node_id in self.surface.node_ids():
            self._saved_interactivity[node_id] = self.surface.get_interactivity(node_id)
            self.surface.set_interactivity(
                node_id, NodeInteractivity(selectable=False, evented=False, hover_cursor="none")
            )
        self.surface.set_cursor("none", "none")

    def _exit_erase(self):
        live = set(self.surface.node_ids())
        for node_id, interactivity in self._saved_interactivity.items():
            if node_id in live:
                self.surface.set_interactivity(node_id, interactivity)
        self._saved_interactivity.clear()
        self.is_drawing = False
        self.cursor_position = None
        self.surface.set_selection_enabled(True)
        self.surface.set_cursor("default", "move")

    def find_element_at(self, x: float, y: float) -> Optional[int]:
        """
        First element, in store order, whose covering rectangle contains the
        image-space point
        """
        for element in self.store.snapshot:
            if not element.show_background:
                continue
            rect_node = self.render_sync.rect_node_for(element.id)
            if rect_node is None:
                continue
            bounds = self.surface.node_bounds(rect_node)
            if bounds is not None and bounds.contains_point(x, y):
                return element.id
        return None

    def _erase_at(self, x: float, y: float) -> Optional[int]:
        ix, iy = self._to_image(x, y)
        element_id = self.find_element_at(ix, iy)
        if element_id is None:
            return None
        radius = (self.eraser_size / 2) / (self.surface.scale or 1.0)
        if self.store.append_eraser_stroke(element_id, EraserStroke(ix, iy, radius)):
            return element_id
        return None

    def pointer_down(self, x: float, y: float) -> Optional[int]:
        """
        Handle a press at display coordinates

        Returns:
            Element ID that was erased or selected, None otherwise
        """
        if self.mode == EditorMode.ERASE:
            self.is_drawing = True
            return self._erase_at(x, y)

        ix, iy = self._to_image(x, y)
        node_id = self.surface.hit_test_point(ix, iy)
        element_id = self.render_sync.element_for_node(node_id) if node_id is not None else None
        if element_id is None or node_id != self.render_sync.text_node_for(element_id):
            self.store.select(None)
            return None

        if not self.surface.get_interactivity(node_id).selectable:
            return None
        self.store.select(element_id)
        self._drag = (element_id, (ix, iy), self.store.get(element_id).position)
        return element_id

    def pointer_move(self, x: float, y: float) -> Optional[int]:
        """Erase while pressed in Erase mode, drag the selection in Select mode"""
        if self.mode == EditorMode.ERASE:
            self.cursor_position = (x, y)
            if self.is_drawing:
                return self._erase_at(x, y)
            return None

        if self._drag is None:
            return None
        element_id, (start_x, start_y), (left, top) = self._drag
        ix, iy = self._to_image(x, y)
        self.store.update(element_id, position=(left + ix - start_x, top + iy - start_y))
        return element_id

    def pointer_up(self):
        """End the current stroke or drag; never mutates the store"""
        self.is_drawing = False
        self._drag = None

    def pointer_leave(self):
        self.cursor_position = None

    def reset(self):
        """Back to Select with no captured state"""
        self._saved_interactivity.clear()
        self._drag = None
        self.is_drawing = False
        self.cursor_position = None
        self.mode = EditorMode.SELECT
