"""
Tests for the Pillow-backed render surface.
"""

import numpy as np

from editor_models import BoundingBox, RGBColor
from mask_compositor import SolidFill
from render_surface import RasterSurface


def test_odd_sizes_round_half_up():
    surface = RasterSurface(np.full((61, 101, 3), 255, dtype=np.uint8), scale=0.5)
    assert surface.canvas_size == (51, 31)
    assert surface.render().size == (51, 31)
    assert surface.export().size == (101, 61)


def test_fit_never_scales_up():
    surface = RasterSurface.fit(np.zeros((50, 80, 3), dtype=np.uint8), 1200, 800)
    assert surface.scale == 1.0
    assert surface.canvas_size == (80, 50)


def test_hidden_rect_is_not_drawn():
    surface = RasterSurface(np.full((20, 20, 3), 255, dtype=np.uint8))
    node = surface.create_rect_node(BoundingBox(0, 0, 10, 10), SolidFill(RGBColor(0, 0, 0)))
    assert tuple(np.asarray(surface.render())[5, 5]) == (0, 0, 0)

    surface.set_visible(node, False)
    assert surface.is_visible(node) is False
    assert tuple(np.asarray(surface.render())[5, 5]) == (255, 255, 255)
