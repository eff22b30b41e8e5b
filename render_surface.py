"""
🖼️ RENDER SURFACE MODULE
========================
Abstract drawing-surface operations and a Pillow-backed implementation
"""

import io
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw

from editor_models import BoundingBox, RGBColor
from font_registry import FontRegistry
from mask_compositor import FillDescriptor, PatternFill, SolidFill

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class FontSpec:
    family: str
    size: float


@dataclass(frozen=True)
class NodeInteractivity:
    """Per-node pointer behaviour"""

    selectable: bool
    evented: bool
    hover_cursor: Optional[str] = None


class RenderSurface(ABC):
    """
    Operations the editor core needs from a drawing surface.

    Geometry is always in source image pixels; node ids are opaque ints.
    """

    scale: float = 1.0

    @abstractmethod
    def create_text_node(self, text: str, bounds: BoundingBox, font: FontSpec, color: RGBColor) -> int:
        pass

    @abstractmethod
    def update_text_node(
        self, node_id: int, text: str, position: Tuple[float, float], font: FontSpec, color: RGBColor
    ):
        pass

    @abstractmethod
    def create_rect_node(self, bounds: BoundingBox, fill: FillDescriptor) -> int:
        pass

    @abstractmethod
    def set_visible(self, node_id: int, visible: bool):
        pass

    @abstractmethod
    def is_visible(self, node_id: int) -> bool:
        pass

    @abstractmethod
    def set_fill(self, node_id: int, fill: FillDescriptor):
        pass

    @abstractmethod
    def remove_node(self, node_id: int):
        pass

    @abstractmethod
    def hit_test_point(self, x: float, y: float) -> Optional[int]:
        pass

    @abstractmethod
    def node_bounds(self, node_id: int) -> Optional[BoundingBox]:
        pass

    @abstractmethod
    def get_interactivity(self, node_id: int) -> NodeInteractivity:
        pass

    @abstractmethod
    def set_interactivity(self, node_id: int, interactivity: NodeInteractivity):
        pass

    @abstractmethod
    def set_cursor(self, cursor: str, hover_cursor: Optional[str] = None):
        pass

    @abstractmethod
    def set_selection_enabled(self, enabled: bool):
        pass

    @abstractmethod
    def node_ids(self) -> List[int]:
        pass


@dataclass
class _Node:
    id: int
    kind: str
    bounds: BoundingBox
    visible: bool = True
    interactivity: NodeInteractivity = field(
        default_factory=lambda: NodeInteractivity(selectable=True, evented=True, hover_cursor="move")
    )
    text: str = ""
    font: Optional[FontSpec] = None
    color: Optional[RGBColor] = None
    fill: Optional[FillDescriptor] = None


class RasterSurface(RenderSurface):
    """
    In-memory surface drawn with Pillow over a background image.

    The on-screen canvas is the source image scaled by ``scale``;
    ``export`` renders at a multiplier of ``1 / scale`` so output always has
    the source resolution.
    """

    def __init__(self, background: np.ndarray, scale: float = 1.0, fonts: Optional[FontRegistry] = None):
        if scale <= 0:
            raise ValueError(f"Display scale must be positive, got {scale}")
        self.background = Image.fromarray(np.ascontiguousarray(background[:, :, :3]))
        self.scale = scale
        self.fonts = fonts or FontRegistry()
        self.cursor = "default"
        self.hover_cursor = "move"
        self.selection_enabled = True
        self._nodes: Dict[int, _Node] = {}
        self._next_id = 1

    @classmethod
    def fit(
        cls,
        background: np.ndarray,
        max_width: int,
        max_height: int,
        fonts: Optional[FontRegistry] = None
    ) -> 'RasterSurface':
        """Create a surface scaled down to fit a display area, never up"""
        height, width = background.shape[:2]
        scale = min(max_width / width, max_height / height, 1.0)
        return cls(background, scale=scale, fonts=fonts)

    @property
    def source_size(self) -> Tuple[int, int]:
        return self.background.size

    def _size_at(self, factor: float) -> Tuple[int, int]:
        width, height = self.background.size
        return max(1, _round_half_up(width * factor)), max(1, _round_half_up(height * factor))

    @property
    def canvas_size(self) -> Tuple[int, int]:
        return self._size_at(self.scale)

    def _add(self, node: _Node) -> int:
        self._nodes[node.id] = node
        self._next_id += 1
        return node.id

    def create_text_node(self, text: str, bounds: BoundingBox, font: FontSpec, color: RGBColor) -> int:
        return self._add(_Node(self._next_id, "text", bounds, text=text, font=font, color=color))

    def update_text_node(
        self, node_id: int, text: str, position: Tuple[float, float], font: FontSpec, color: RGBColor
    ):
        node = self._nodes[node_id]
        node.text = text
        node.font = font
        node.color = color
        node.bounds = replace(node.bounds, x=position[0], y=position[1])

    def create_rect_node(self, bounds: BoundingBox, fill: FillDescriptor) -> int:
        interactivity = NodeInteractivity(selectable=False, evented=False)
        return self._add(_Node(self._next_id, "rect", bounds, interactivity=interactivity, fill=fill))

    def set_visible(self, node_id: int, visible: bool):
        self._nodes[node_id].visible = visible

    def is_visible(self, node_id: int) -> bool:
        return self._nodes[node_id].visible

    def set_fill(self, node_id: int, fill: FillDescriptor):
        self._nodes[node_id].fill = fill

    def remove_node(self, node_id: int):
        self._nodes.pop(node_id, None)

    def get_node(self, node_id: int) -> Optional[_Node]:
        return self._nodes.get(node_id)

    def node_ids(self) -> List[int]:
        return list(self._nodes)

    def node_bounds(self, node_id: int) -> Optional[BoundingBox]:
        node = self._nodes.get(node_id)
        return node.bounds if node else None

    def _z_ordered(self) -> List[_Node]:
        # Covering rectangles stay behind every text node
        rects = [node for node in self._nodes.values() if node.kind == "rect"]
        texts = [node for node in self._nodes.values() if node.kind == "text"]
        return rects + texts

    def hit_test_point(self, x: float, y: float) -> Optional[int]:
        """Topmost visible, evented node containing the point"""
        for node in reversed(self._z_ordered()):
            if node.visible and node.interactivity.evented and node.bounds.contains_point(x, y):
                return node.id
        return None

    def get_interactivity(self, node_id: int) -> NodeInteractivity:
        return self._nodes[node_id].interactivity

    def set_interactivity(self, node_id: int, interactivity: NodeInteractivity):
        self._nodes[node_id].interactivity = interactivity

    def set_cursor(self, cursor: str, hover_cursor: Optional[str] = None):
        self.cursor = cursor
        self.hover_cursor = hover_cursor or cursor

    def set_selection_enabled(self, enabled: bool):
        self.selection_enabled = enabled

    def clear(self):
        self._nodes.clear()

    def render(self, multiplier: float = 1.0) -> Image.Image:
        """
        Rasterize the scene

        Args:
            multiplier: Extra scale on top of the display scale

        Returns:
            RGB image of the canvas size times ``multiplier``
        """
        factor = self.scale * multiplier
        size = self._size_at(factor)
        canvas = self.background.copy() if size == self.background.size else self.background.resize(size)
        draw = ImageDraw.Draw(canvas)

        for node in self._z_ordered():
            if not node.visible:
                continue
            if node.kind == "rect":
                self._draw_rect(canvas, draw, node, factor)
            else:
                self._draw_text(draw, node, factor)

        return canvas

    def _draw_rect(self, canvas: Image.Image, draw: ImageDraw.ImageDraw, node: _Node, factor: float):
        left = int(math.floor(node.bounds.x * factor))
        top = int(math.floor(node.bounds.y * factor))
        width = max(1, _round_half_up(node.bounds.width * factor))
        height = max(1, _round_half_up(node.bounds.height * factor))

        if isinstance(node.fill, SolidFill):
            draw.rectangle([left, top, left + width - 1, top + height - 1], fill=node.fill.color.as_tuple())
        elif isinstance(node.fill, PatternFill):
            pattern = node.fill.to_image()
            if pattern.size != (width, height):
                pattern = pattern.resize((width, height), Image.NEAREST)
            canvas.paste(pattern.convert("RGB"), (left, top), pattern.getchannel("A"))

    def _draw_text(self, draw: ImageDraw.ImageDraw, node: _Node, factor: float):
        if not node.text or node.font is None:
            return
        font = self.fonts.get(node.font.family, node.font.size * factor)
        position = (node.bounds.x * factor, node.bounds.y * factor)
        draw.text(position, node.text, fill=node.color.as_tuple(), font=font)

    def export(self, multiplier: Optional[float] = None) -> Image.Image:
        """Render at source resolution (multiplier defaults to 1 / scale)"""
        if multiplier is None:
            multiplier = 1.0 / self.scale if self.scale > 0 else 1.0
        image = self.render(multiplier)
        logger.info(f"📤 Exported {image.size[0]}x{image.size[1]} image (multiplier {multiplier:.3f})")
        return image

    def export_png(self, multiplier: Optional[float] = None) -> bytes:
        buffer = io.BytesIO()
        self.export(multiplier).save(buffer, format="PNG")
        return buffer.getvalue()

    def describe(self) -> Dict[str, Any]:
        return {
            "canvas_size": list(self.canvas_size),
            "source_size": list(self.source_size),
            "scale": self.scale,
            "node_count": len(self._nodes),
            "cursor": self.cursor,
        }
