"""
Tests for covering-rectangle mask composition.
"""

import numpy as np
import pytest

from editor_models import BoundingBox, EraserStroke, RGBColor
from mask_compositor import (
    MaskCompositionError,
    MaskCompositor,
    PatternFill,
    SolidFill,
    raster_size,
)

BOUNDS = BoundingBox(10, 20, 40, 30)
COLOR = RGBColor(200, 100, 50)


def test_no_strokes_gives_solid_fill():
    fill = MaskCompositor().composite(BOUNDS, COLOR, [])
    assert fill == SolidFill(COLOR)


def test_single_stroke_punches_a_hole():
    fill = MaskCompositor().composite(BOUNDS, COLOR, [EraserStroke(20, 30, 5)])

    assert isinstance(fill, PatternFill)
    assert fill.raster.shape == (30, 40, 4)
    assert fill.size == (40, 30)
    assert fill.origin == (10, 20)
    assert fill.repeat == "no-repeat"

    # Stroke centre in rectangle coordinates is (10, 10)
    assert tuple(fill.raster[10, 10]) == (0, 0, 0, 0)
    assert fill.raster[10, 15, 3] == 0      # exactly on the radius
    assert tuple(fill.raster[10, 16]) == (200, 100, 50, 255)
    assert tuple(fill.raster[0, 0]) == (200, 100, 50, 255)
    assert tuple(fill.raster[29, 39]) == (200, 100, 50, 255)


def test_erased_area_matches_disk():
    fill = MaskCompositor().composite(BOUNDS, COLOR, [EraserStroke(30, 35, 4)])
    rows, cols = np.ogrid[:30, :40]
    disk = (cols - 20) ** 2 + (rows - 15) ** 2 <= 16
    alpha = fill.raster[:, :, 3]
    assert np.all(alpha[disk] == 0)
    assert np.all(alpha[~disk] == 255)


def test_overlapping_strokes_union():
    strokes = [EraserStroke(20, 30, 5), EraserStroke(24, 30, 5)]
    fill = MaskCompositor().composite(BOUNDS, COLOR, strokes)
    assert fill.raster[10, 6, 3] == 0
    assert fill.raster[10, 19, 3] == 0
    assert fill.raster[10, 21, 3] == 255


def test_stroke_outside_leaves_raster_opaque():
    fill = MaskCompositor().composite(BOUNDS, COLOR, [EraserStroke(500, 500, 3)])
    assert np.all(fill.raster[:, :, 3] == 255)


def test_order_independent_bytes():
    strokes = [EraserStroke(15, 25, 3), EraserStroke(40, 40, 6), EraserStroke(30, 22, 2.5)]
    first = MaskCompositor(cache_size=0).composite(BOUNDS, COLOR, strokes)
    second = MaskCompositor(cache_size=0).composite(BOUNDS, COLOR, list(reversed(strokes)))
    assert first.raster.tobytes() == second.raster.tobytes()
    assert first == second
    assert hash(first) == hash(second)


def test_raster_is_read_only():
    fill = MaskCompositor().composite(BOUNDS, COLOR, [EraserStroke(20, 30, 5)])
    with pytest.raises(ValueError):
        fill.raster[0, 0] = 0


def test_cache_returns_same_fill():
    compositor = MaskCompositor()
    strokes = [EraserStroke(20, 30, 5)]
    assert compositor.composite(BOUNDS, COLOR, strokes) is compositor.composite(BOUNDS, COLOR, strokes)
    compositor.clear_cache()
    assert compositor._cache == {}


def test_cache_is_bounded():
    compositor = MaskCompositor(cache_size=2)
    for x in range(5):
        compositor.composite(BOUNDS, COLOR, [EraserStroke(15 + x, 30, 2)])
    assert len(compositor._cache) == 2


@pytest.mark.parametrize("bounds", [BoundingBox(0, 0, 0, 10), BoundingBox(0, 0, 10, 0.2)])
def test_empty_raster_raises(bounds):
    with pytest.raises(MaskCompositionError):
        MaskCompositor().composite(bounds, COLOR, [EraserStroke(1, 1, 1)])


def test_raster_size_rounds_half_up():
    assert raster_size(BoundingBox(0, 0, 48.5, 24.4)) == (49, 24)


def test_to_image_is_rgba():
    fill = MaskCompositor().composite(BOUNDS, COLOR, [EraserStroke(20, 30, 5)])
    image = fill.to_image()
    assert image.mode == "RGBA"
    assert image.size == (40, 30)
