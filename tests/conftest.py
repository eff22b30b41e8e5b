"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Modules live at the repository root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from editor_models import BLACK, WHITE, BoundingBox, Detection  # noqa: E402


def make_detection(index, x, y, width, height, text="Hello", text_color=BLACK, bg_color=WHITE):
    """Create a Detection with a rectangular polygon."""
    polygon = ((x, y), (x + width, y), (x + width, y + height), (x, y + height))
    return Detection(
        index=index,
        polygon=polygon,
        text=text,
        confidence=0.95,
        text_color=text_color,
        bg_color=bg_color,
        font_size=16,
        bounds=BoundingBox(x, y, width, height),
    )


@pytest.fixture
def white_image():
    """200x100 white RGB image."""
    return np.full((100, 200, 3), 255, dtype=np.uint8)


@pytest.fixture
def red_image_with_blue_text():
    """100x100 red image with blue ink strokes inside {x:10, y:10, w:50, h:20}."""
    pixels = np.zeros((100, 100, 3), dtype=np.uint8)
    pixels[:, :] = (255, 0, 0)
    for col in range(14, 56, 6):
        pixels[14:26, col:col + 3] = (0, 0, 255)
    return pixels


@pytest.fixture
def two_detections():
    return [
        make_detection(0, 20, 20, 40, 20, text="First"),
        make_detection(1, 100, 50, 60, 30, text="Second"),
    ]
