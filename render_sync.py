"""
🔄 RENDER SYNC MODULE
=====================
One-way reconciliation from store snapshots to render-surface nodes
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from editor_models import BoundingBox, OverlayElement
from mask_compositor import MaskCompositionError, MaskCompositor, SolidFill
from overlay_store import StoreSnapshot
from render_surface import FontSpec, RenderSurface

logger = logging.getLogger(__name__)


class RenderPresence(Enum):
    NO_BACKGROUND = "no_background"
    BACKGROUND_SOLID = "background_solid"
    BACKGROUND_MASKED = "background_masked"


class TextPresence(Enum):
    TEXT_HIDDEN = "text_hidden"
    TEXT_VISIBLE = "text_visible"


@dataclass
class ReconcileReport:
    """What one reconciliation pass did"""

    created: int = 0
    removed: int = 0
    recomposited: int = 0
    failures: List[Tuple[int, MaskCompositionError]] = field(default_factory=list)
    # Earlier failures retried on an unchanged element
    retried_failures: List[Tuple[int, MaskCompositionError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class _ElementNodes:
    text_node: Optional[int] = None
    rect_node: Optional[int] = None
    fill_key: Optional[tuple] = None
    masked: bool = False
    text_visible: bool = False


class RenderSync:
    """
    Owns every render node it creates. Elements are matched to nodes by
    element id only, through ``text_node_for`` / ``rect_node_for``.

    While comparing, every owned node is hidden and the visibility it should
    have is kept in ``_saved_visibility``, keyed by node id, until
    comparing ends.
    """

    def __init__(
        self,
        surface: RenderSurface,
        compositor: Optional[MaskCompositor] = None,
        cover_expand_factor: float = 0.1
    ):
        self.surface = surface
        self.compositor = compositor or MaskCompositor()
        self.cover_expand_factor = cover_expand_factor
        self._nodes: Dict[int, _ElementNodes] = {}
        self._last_seen: Dict[int, OverlayElement] = {}
        self._previous: Dict[int, OverlayElement] = {}
        self.comparing = False
        self._saved_visibility: Dict[int, bool] = {}

    def cover_bounds(self, element: OverlayElement) -> BoundingBox:
        """Covering rectangle geometry for an element"""
        return element.bounds.expanded(self.cover_expand_factor)

    def text_node_for(self, element_id: int) -> Optional[int]:
        nodes = self._nodes.get(element_id)
        return nodes.text_node if nodes else None

    def rect_node_for(self, element_id: int) -> Optional[int]:
        nodes = self._nodes.get(element_id)
        return nodes.rect_node if nodes else None

    def element_for_node(self, node_id: int) -> Optional[int]:
        for element_id, nodes in self._nodes.items():
            if node_id in (nodes.text_node, nodes.rect_node):
                return element_id
        return None

    def owned_nodes(self) -> List[int]:
        owned = []
        for nodes in self._nodes.values():
            owned.extend(node for node in (nodes.rect_node, nodes.text_node) if node is not None)
        return owned

    def presence(self, element_id: int) -> RenderPresence:
        nodes = self._nodes.get(element_id)
        if nodes is None or nodes.rect_node is None:
            return RenderPresence.NO_BACKGROUND
        return RenderPresence.BACKGROUND_MASKED if nodes.masked else RenderPresence.BACKGROUND_SOLID

    def text_presence(self, element_id: int) -> TextPresence:
        nodes = self._nodes.get(element_id)
        if nodes is None or nodes.text_node is None or not nodes.text_visible:
            return TextPresence.TEXT_HIDDEN
        return TextPresence.TEXT_VISIBLE

    def reconcile(self, snapshot: StoreSnapshot) -> ReconcileReport:
        """
        Bring the surface in line with a store snapshot

        Args:
            snapshot: Latest committed store state

        Returns:
            Report of node changes and any failed mask recompositions
        """
        report = ReconcileReport()

        for element_id in [eid for eid in self._nodes if eid not in snapshot.elements]:
            report.removed += self._remove_element(element_id)

        for element in snapshot:
            nodes = self._nodes.get(element.id)
            # Snapshots are copy-on-write: an identical object means no change
            if nodes is not None and self._last_seen.get(element.id) is element:
                continue
            if nodes is None:
                nodes = self._nodes[element.id] = _ElementNodes()

            retry = self._previous.get(element.id) is element
            self._sync_text(element, nodes, report)
            if self._sync_background(element, nodes, report, retry):
                self._last_seen[element.id] = element
            else:
                self._last_seen.pop(element.id, None)

        self._previous = dict(snapshot.elements)
        if report.failures:
            logger.error(f"❌ {len(report.failures)} mask recompositions failed; previous fills kept")
        return report

    def _show(self, node_id: int, visible: bool):
        if self.comparing:
            self._saved_visibility[node_id] = visible
            self.surface.set_visible(node_id, False)
        else:
            self.surface.set_visible(node_id, visible)

    def set_comparing(self, comparing: bool):
        """
        Hide every owned node to show the untouched image, or bring the
        nodes back with the visibility they had (or gained) meanwhile
        """
        if comparing == self.comparing:
            return

        if comparing:
            for node_id in self.owned_nodes():
                self._saved_visibility[node_id] = self.surface.is_visible(node_id)
                self.surface.set_visible(node_id, False)
        else:
            live = set(self.surface.node_ids())
            for node_id, visible in self._saved_visibility.items():
                if node_id in live:
                    self.surface.set_visible(node_id, visible)
            self._saved_visibility.clear()
        self.comparing = comparing
        logger.info(f"👀 Compare view {'on' if comparing else 'off'}")

    def _sync_text(self, element: OverlayElement, nodes: _ElementNodes, report: ReconcileReport):
        font = FontSpec(element.font_family, element.font_size)
        if nodes.text_node is None:
            nodes.text_node = self.surface.create_text_node(
                element.text, element.bounds, font, element.font_color
            )
            report.created += 1
        self.surface.update_text_node(nodes.text_node, element.text, element.position, font, element.font_color)
        self._show(nodes.text_node, element.show_text)
        nodes.text_visible = element.show_text

    def _drop_rect(self, nodes: _ElementNodes):
        self.surface.remove_node(nodes.rect_node)
        self._saved_visibility.pop(nodes.rect_node, None)

    def _sync_background(
        self, element: OverlayElement, nodes: _ElementNodes, report: ReconcileReport, retry: bool = False
    ) -> bool:
        if not element.show_background:
            if nodes.rect_node is not None:
                self._drop_rect(nodes)
                nodes.rect_node = None
                nodes.fill_key = None
                nodes.masked = False
                report.removed += 1
            return True

        bounds = self.cover_bounds(element)
        if nodes.rect_node is not None and self.surface.node_bounds(nodes.rect_node) != bounds:
            self._drop_rect(nodes)
            nodes.rect_node = None
            report.removed += 1

        if nodes.rect_node is None:
            nodes.rect_node = self.surface.create_rect_node(bounds, SolidFill(element.bg_color))
            self._show(nodes.rect_node, True)
            nodes.fill_key = (bounds, element.bg_color, ())
            nodes.masked = False
            report.created += 1

        fill_key = (bounds, element.bg_color, element.eraser_strokes)
        if fill_key == nodes.fill_key:
            return True

        try:
            fill = self.compositor.composite(bounds, element.bg_color, element.eraser_strokes)
        except MaskCompositionError as e:
            if retry:
                logger.warning(f"⚠️ Mask recomposition still failing for element {element.id}: {e}")
                report.retried_failures.append((element.id, e))
            else:
                logger.error(f"❌ Mask recomposition failed for element {element.id}: {e}")
                report.failures.append((element.id, e))
            return False

        self.surface.set_fill(nodes.rect_node, fill)
        nodes.fill_key = fill_key
        nodes.masked = not isinstance(fill, SolidFill)
        report.recomposited += 1
        return True

    def _remove_element(self, element_id: int) -> int:
        nodes = self._nodes.pop(element_id)
        self._last_seen.pop(element_id, None)
        removed = 0
        for node_id in (nodes.rect_node, nodes.text_node):
            if node_id is not None:
                self.surface.remove_node(node_id)
                self._saved_visibility.pop(node_id, None)
                removed += 1
        return removed

    def dispose(self) -> int:
        """Remove every owned node; returns how many were removed"""
        removed = sum(self._remove_element(element_id) for element_id in list(self._nodes))
        self._previous.clear()
        self._saved_visibility.clear()
        self.comparing = False
        self.compositor.clear_cache()
        logger.info(f"🧹 Disposed {removed} render nodes")
        return removed
