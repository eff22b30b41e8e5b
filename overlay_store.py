"""
🗂️ OVERLAY ELEMENT STORE
========================
Per-detection editable state with copy-on-write snapshots
"""

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from editor_models import (
    MUTABLE_FIELDS,
    Detection,
    EraserStroke,
    OverlayElement,
    color_or_none,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSnapshot:
    """Read-only view published after every committed mutation"""

    elements: Mapping[int, OverlayElement]
    selected_id: Optional[int]
    version: int

    def __iter__(self) -> Iterator[OverlayElement]:
        return iter(self.elements.values())

    def get(self, element_id: int) -> Optional[OverlayElement]:
        return self.elements.get(element_id)


Listener = Callable[[StoreSnapshot], None]


class OverlayElementStore:
    """
    Canonical editing state, one element per detection.

    Mutations never edit an element in place: each one builds a new element
    map and publishes it as a fresh ``StoreSnapshot``, so observers can
    compare elements by identity.
    """

    def __init__(self, default_font: str = "Noto Sans SC", max_strokes: Optional[int] = None):
        self.default_font = default_font
        self.max_strokes = max_strokes
        self._listeners: List[Listener] = []
        self._snapshot = StoreSnapshot(MappingProxyType({}), None, 0)

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    @property
    def selected_id(self) -> Optional[int]:
        return self._snapshot.selected_id

    def get(self, element_id: int) -> Optional[OverlayElement]:
        return self._snapshot.elements.get(element_id)

    def __len__(self) -> int:
        return len(self._snapshot.elements)

    def __contains__(self, element_id: int) -> bool:
        return element_id in self._snapshot.elements

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, elements: Dict[int, OverlayElement], selected_id: Optional[int]):
        self._snapshot = StoreSnapshot(
            MappingProxyType(elements), selected_id, self._snapshot.version + 1
        )
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _replace(self, element: OverlayElement) -> bool:
        elements = dict(self._snapshot.elements)
        elements[element.id] = element
        self._commit(elements, self._snapshot.selected_id)
        return True

    def initialize(self, detections: List[Detection]):
        """
        Replace every element with a fresh one per detection

        Args:
            detections: Detections with unique indices
        """
        elements: Dict[int, OverlayElement] = {}
        for detection in detections:
            if detection.index in elements:
                raise ValueError(f"Duplicate detection index: {detection.index}")
            elements[detection.index] = OverlayElement.from_detection(detection, self.default_font)

        self._commit(elements, None)
        logger.info(f"🗂️ Store initialized with {len(elements)} elements")

    def clear(self):
        """Drop every element and the selection"""
        self._commit({}, None)

    def update(self, element_id: int, **updates) -> bool:
        """
        Merge the given fields into an element

        Args:
            element_id: Element ID
            **updates: Any of the mutable element fields

        Returns:
            True if successful, False if element not found
        """
        element = self.get(element_id)
        if element is None:
            return False

        changes = {key: value for key, value in updates.items() if key in MUTABLE_FIELDS}
        ignored = set(updates) - set(changes)
        if ignored:
            logger.debug(f"Ignoring non-editable fields {sorted(ignored)} for element {element_id}")

        for key in ("font_color", "bg_color"):
            if key in changes:
                changes[key] = color_or_none(changes[key])
        if "position" in changes:
            changes["position"] = tuple(changes["position"])

        if not changes:
            return True
        return self._replace(replace(element, **changes))

    def toggle_background(self, element_id: int) -> bool:
        element = self.get(element_id)
        if element is None:
            return False
        return self._replace(replace(element, show_background=not element.show_background))

    def toggle_text(self, element_id: int) -> bool:
        element = self.get(element_id)
        if element is None:
            return False
        return self._replace(replace(element, show_text=not element.show_text))

    def append_eraser_stroke(self, element_id: int, stroke: EraserStroke) -> bool:
        """
        Append one stroke to an element's stroke list

        Returns:
            True if the stroke was recorded
        """
        element = self.get(element_id)
        if element is None:
            return False

        if self.max_strokes is not None and len(element.eraser_strokes) >= self.max_strokes:
            logger.warning(f"Stroke limit {self.max_strokes} reached for element {element_id}")
            return False

        return self._replace(replace(element, eraser_strokes=element.eraser_strokes + (stroke,)))

    def reset_element(self, element_id: int) -> bool:
        """Restore an element to its original snapshot and clear its strokes"""
        element = self.get(element_id)
        if element is None:
            return False
        return self._replace(element.restored())

    def restore_all(self):
        """Reset every element in one commit"""
        elements = {
            element_id: element.restored()
            for element_id, element in self._snapshot.elements.items()
        }
        self._commit(elements, self._snapshot.selected_id)
        logger.info(f"↩️ Restored {len(elements)} elements")

    def select(self, element_id: Optional[int]) -> bool:
        """Set or clear the single selected element"""
        if element_id is not None and element_id not in self:
            return False
        if element_id == self._snapshot.selected_id:
            return True
        self._commit(dict(self._snapshot.elements), element_id)
        return True
