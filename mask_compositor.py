"""
🖌️ MASK COMPOSITOR MODULE
=========================
Turns a covering rectangle plus eraser strokes into a solid or holed fill
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np
from PIL import Image

from editor_models import BoundingBox, EraserStroke, RGBColor

logger = logging.getLogger(__name__)


class MaskCompositionError(RuntimeError):
    """Raised when the offscreen raster for a mask cannot be allocated"""


@dataclass(frozen=True)
class SolidFill:
    color: RGBColor


@dataclass(frozen=True, eq=False)
class PatternFill:
    """
    RGBA raster anchored at the rectangle's own origin, drawn once
    (no repeat). ``raster`` is read-only.
    """

    raster: np.ndarray
    origin: Tuple[float, float]
    repeat: str = "no-repeat"

    @property
    def size(self) -> Tuple[int, int]:
        height, width = self.raster.shape[:2]
        return width, height

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.raster))

    def __eq__(self, other):
        if not isinstance(other, PatternFill):
            return NotImplemented
        return (
            self.origin == other.origin
            and self.repeat == other.repeat
            and self.raster.shape == other.raster.shape
            and self.raster.tobytes() == other.raster.tobytes()
        )

    def __hash__(self):
        return hash((self.origin, self.repeat, self.raster.shape, self.raster.tobytes()))


FillDescriptor = Union[SolidFill, PatternFill]


def raster_size(bounds: BoundingBox) -> Tuple[int, int]:
    """Pixel size of the raster backing ``bounds``"""
    return int(math.floor(bounds.width + 0.5)), int(math.floor(bounds.height + 0.5))


class MaskCompositor:
    """
    Deterministic compositor: identical (bounds, colour, strokes) always
    produce byte-identical rasters, whatever the stroke order.

    Results are memoised in a small per-instance LRU cache.
    """

    def __init__(self, cache_size: int = 64):
        self.cache_size = cache_size
        self._cache: "OrderedDict[tuple, PatternFill]" = OrderedDict()

    def clear_cache(self):
        self._cache.clear()

    def composite(
        self,
        bounds: BoundingBox,
        bg_color: RGBColor,
        strokes: Sequence[EraserStroke]
    ) -> FillDescriptor:
        """
        Build the fill for a covering rectangle

        Args:
            bounds: Rectangle geometry in image pixels
            bg_color: Cover colour
            strokes: Eraser strokes in image pixels

        Returns:
            ``SolidFill`` without strokes, otherwise a ``PatternFill`` whose
            erased disks are fully transparent

        Raises:
            MaskCompositionError: if the raster cannot be allocated
        """
        if not strokes:
            return SolidFill(bg_color)

        ordered = tuple(sorted(strokes, key=lambda s: (s.x, s.y, s.radius)))
        key = (bounds, bg_color, ordered)
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached

        raster = self._allocate(bounds, bg_color)
        height, width = raster.shape[:2]
        rows, cols = np.ogrid[:height, :width]

        erased = np.zeros((height, width), dtype=bool)
        for stroke in ordered:
            cx = stroke.x - bounds.x
            cy = stroke.y - bounds.y
            erased |= (cols - cx) ** 2 + (rows - cy) ** 2 <= stroke.radius ** 2
        raster[erased] = 0
        raster.flags.writeable = False
        logger.debug(f"Composited {len(ordered)} strokes into a {width}x{height} mask")

        fill = PatternFill(raster=raster, origin=(bounds.x, bounds.y))
        if self.cache_size > 0:
            self._cache[key] = fill
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)
        return fill

    def _allocate(self, bounds: BoundingBox, bg_color: RGBColor) -> np.ndarray:
        width, height = raster_size(bounds)
        if width <= 0 or height <= 0:
            raise MaskCompositionError(f"Cannot allocate a {width}x{height} mask raster")

        try:
            raster = np.empty((height, width, 4), dtype=np.uint8)
        except (MemoryError, ValueError) as e:
            raise MaskCompositionError(f"Cannot allocate a {width}x{height} mask raster: {e}") from e

        raster[:, :] = (bg_color.r, bg_color.g, bg_color.b, 255)
        return raster
