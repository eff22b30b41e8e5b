"""
🧩 EDITOR MODELS
================
Immutable value types shared by the sampler, the element store and the renderer
"""

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class RGBColor:
    """8-bit RGB colour"""

    r: int
    g: int
    b: int

    def __post_init__(self):
        for channel in (self.r, self.g, self.b):
            if not 0 <= int(channel) <= 255:
                raise ValueError(f"Colour channel out of range: {channel}")

    def as_tuple(self) -> Tuple[int, int, int]:
        return (int(self.r), int(self.g), int(self.b))

    def to_dict(self) -> Dict[str, int]:
        return {"r": int(self.r), "g": int(self.g), "b": int(self.b)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RGBColor':
        return cls(int(data["r"]), int(data["g"]), int(data["b"]))


WHITE = RGBColor(255, 255, 255)
BLACK = RGBColor(0, 0, 0)


def rgb_to_string(color: RGBColor) -> str:
    """Convert colour to a CSS rgb() string"""
    return f"rgb({color.r}, {color.g}, {color.b})"


def rgb_to_hex(color: RGBColor) -> str:
    """Convert colour to #rrggbb"""
    return f"#{color.r:02x}{color.g:02x}{color.b:02x}"


_HEX_PATTERN = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def hex_to_rgb(hex_color: str) -> RGBColor:
    """Convert #rrggbb (or rrggbb) to a colour, black when unparseable"""
    match = _HEX_PATTERN.match(hex_color or "")
    if not match:
        return BLACK
    return RGBColor(*(int(group, 16) for group in match.groups()))


def estimate_font_size(height: float) -> int:
    """Approximate font size from the height of a text box"""
    return max(12, int(round(height * 0.8)))


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in source image pixel space"""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains_point(self, x: float, y: float) -> bool:
        """Edges are inclusive"""
        return self.x <= x <= self.right and self.y <= y <= self.bottom

    def expanded(self, factor: float) -> 'BoundingBox':
        """Grow the box by ``factor`` of its size on every side"""
        dx = self.width * factor
        dy = self.height * factor
        return BoundingBox(self.x - dx, self.y - dy, self.width + dx * 2, self.height + dy * 2)

    def scaled(self, scale: float) -> 'BoundingBox':
        return BoundingBox(self.x * scale, self.y * scale, self.width * scale, self.height * scale)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BoundingBox':
        return cls(float(data["x"]), float(data["y"]), float(data["width"]), float(data["height"]))

    @classmethod
    def from_polygon(cls, points: Sequence[Sequence[float]]) -> 'BoundingBox':
        """
        Compute the enclosing box of an OCR polygon

        Args:
            points: Ordered polygon points as (x, y) pairs

        Returns:
            Enclosing box, or a 100x20 placeholder for malformed polygons
        """
        if not points or len(points) < 4:
            return cls(0.0, 0.0, 100.0, 20.0)

        xs = [float(p[0]) for p in points]
        ys = [float(p[1]) for p in points]
        return cls(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))


@dataclass(frozen=True)
class Detection:
    """
    One OCR-reported text region. Never mutated once produced;
    use ``with_colors`` to derive a recoloured copy.
    """

    index: int
    polygon: Tuple[Tuple[float, float], ...]
    text: str
    confidence: float
    text_color: RGBColor
    bg_color: RGBColor
    font_size: float
    bounds: BoundingBox

    def with_colors(self, text_color: RGBColor, bg_color: RGBColor) -> 'Detection':
        return replace(self, text_color=text_color, bg_color=bg_color)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "bbox": [list(point) for point in self.polygon],
            "text": self.text,
            "confidence": self.confidence,
            "textColor": self.text_color.to_dict(),
            "bgColor": self.bg_color.to_dict(),
            "fontSize": self.font_size,
            "bounds": self.bounds.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Detection':
        """Build a detection from the OCR collaborator's JSON shape"""
        polygon = tuple((float(p[0]), float(p[1])) for p in data.get("bbox") or [])
        if data.get("bounds"):
            bounds = BoundingBox.from_dict(data["bounds"])
        else:
            bounds = BoundingBox.from_polygon(polygon)

        text_color = RGBColor.from_dict(data["textColor"]) if data.get("textColor") else BLACK
        bg_color = RGBColor.from_dict(data["bgColor"]) if data.get("bgColor") else WHITE
        font_size = data.get("fontSize")
        if font_size is None:
            font_size = estimate_font_size(bounds.height)

        return cls(
            index=int(data["index"]),
            polygon=polygon,
            text=str(data.get("text", "")),
            confidence=float(data.get("confidence", 0.0)),
            text_color=text_color,
            bg_color=bg_color,
            font_size=float(font_size),
            bounds=bounds,
        )


@dataclass(frozen=True)
class EraserStroke:
    """One erase dab in source image pixel space"""

    x: float
    y: float
    radius: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "radius": self.radius}


@dataclass(frozen=True)
class OriginalState:
    """Snapshot taken at initialize time and restored on reset"""

    detection: Detection
    font_family: str
    position: Tuple[float, float]


@dataclass(frozen=True)
class OverlayElement:
    """
    Editable state of one detection.

    ``render_key`` is only a lookup key into the render layer; the element
    never holds a render node itself.
    """

    id: int
    original: OriginalState
    text: str
    font_family: str
    font_size: float
    font_color: RGBColor
    bg_color: RGBColor
    position: Tuple[float, float]
    show_background: bool = True
    show_text: bool = True
    eraser_strokes: Tuple[EraserStroke, ...] = field(default_factory=tuple)

    @property
    def render_key(self) -> int:
        return self.id

    @property
    def bounds(self) -> BoundingBox:
        return self.original.detection.bounds

    @classmethod
    def from_detection(cls, detection: Detection, font_family: str) -> 'OverlayElement':
        position = (detection.bounds.x, detection.bounds.y)
        original = OriginalState(detection=detection, font_family=font_family, position=position)
        return cls(
            id=detection.index,
            original=original,
            text=detection.text,
            font_family=font_family,
            font_size=detection.font_size,
            font_color=detection.text_color,
            bg_color=detection.bg_color,
            position=position,
        )

    def restored(self) -> 'OverlayElement':
        """Copy with every mutable field back at its original value"""
        return OverlayElement.from_detection(self.original.detection, self.original.font_family)

    def is_modified(self) -> bool:
        return self != self.restored()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "original_text": self.original.detection.text,
            "font_family": self.font_family,
            "font_size": self.font_size,
            "font_color": self.font_color.to_dict(),
            "bg_color": self.bg_color.to_dict(),
            "position": list(self.position),
            "show_background": self.show_background,
            "show_text": self.show_text,
            "eraser_strokes": [stroke.to_dict() for stroke in self.eraser_strokes],
            "bounds": self.bounds.to_dict(),
            "confidence": self.original.detection.confidence,
            "is_modified": self.is_modified(),
        }


# Fields ``OverlayElementStore.update`` may merge; strokes only grow through
# ``append_eraser_stroke`` and only reset clears them
MUTABLE_FIELDS = (
    "text",
    "font_family",
    "font_size",
    "font_color",
    "bg_color",
    "position",
    "show_background",
    "show_text",
)


def detections_from_json(items: List[Dict[str, Any]]) -> List[Detection]:
    return [Detection.from_dict(item) for item in items]


def color_or_none(value: Optional[Any]) -> Optional[RGBColor]:
    """Accept an RGBColor, an {r,g,b} dict or a hex string"""
    if value is None or isinstance(value, RGBColor):
        return value
    if isinstance(value, str):
        return hex_to_rgb(value)
    return RGBColor.from_dict(value)
