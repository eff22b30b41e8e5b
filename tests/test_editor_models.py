"""
Tests for the shared value types and colour helpers.
"""

import os

import pytest

from editor_config import EditorSettings, load_settings
from editor_models import (
    BLACK,
    BoundingBox,
    Detection,
    RGBColor,
    color_or_none,
    estimate_font_size,
    hex_to_rgb,
    rgb_to_hex,
    rgb_to_string,
)


class TestColors:
    def test_string_forms(self):
        color = RGBColor(255, 128, 0)
        assert rgb_to_string(color) == "rgb(255, 128, 0)"
        assert rgb_to_hex(color) == "#ff8000"

    @pytest.mark.parametrize("value, expected", [
        ("#FF8000", RGBColor(255, 128, 0)),
        ("00ff10", RGBColor(0, 255, 16)),
        ("nonsense", BLACK),
        ("", BLACK),
    ])
    def test_hex_to_rgb(self, value, expected):
        assert hex_to_rgb(value) == expected

    def test_channel_range_checked(self):
        with pytest.raises(ValueError):
            RGBColor(256, 0, 0)

    def test_color_or_none(self):
        assert color_or_none(None) is None
        assert color_or_none({"r": 1, "g": 2, "b": 3}) == RGBColor(1, 2, 3)
        assert color_or_none("#010203") == RGBColor(1, 2, 3)


class TestBoundingBox:
    def test_contains_point_inclusive(self):
        box = BoundingBox(10, 10, 20, 10)
        assert box.contains_point(10, 10)
        assert box.contains_point(30, 20)
        assert not box.contains_point(30.5, 20)

    def test_expanded(self):
        assert BoundingBox(20, 20, 40, 20).expanded(0.1) == BoundingBox(16, 18, 48, 24)

    def test_from_polygon(self):
        box = BoundingBox.from_polygon([[12, 5], [50, 7], [48, 30], [10, 28]])
        assert box == BoundingBox(10, 5, 40, 25)

    def test_malformed_polygon_placeholder(self):
        assert BoundingBox.from_polygon([[1, 2], [3, 4]]) == BoundingBox(0, 0, 100, 20)


class TestDetection:
    def test_from_dict_defaults(self):
        detection = Detection.from_dict({
            "index": 4,
            "bbox": [[0, 0], [30, 0], [30, 25], [0, 25]],
            "text": "Hi",
        })
        assert detection.bounds == BoundingBox(0, 0, 30, 25)
        assert detection.font_size == 20
        assert detection.text_color == BLACK
        assert detection.bg_color == RGBColor(255, 255, 255)

    def test_json_shape(self):
        detection = Detection.from_dict({
            "index": 1,
            "bbox": [[0, 0], [10, 0], [10, 10], [0, 10]],
            "text": "a",
            "confidence": 0.5,
            "textColor": {"r": 1, "g": 2, "b": 3},
            "bgColor": {"r": 4, "g": 5, "b": 6},
            "fontSize": 14,
        })
        data = detection.to_dict()
        assert data["textColor"] == {"r": 1, "g": 2, "b": 3}
        assert data["bgColor"] == {"r": 4, "g": 5, "b": 6}
        assert data["fontSize"] == 14
        assert Detection.from_dict(data) == detection

    def test_small_boxes_get_minimum_font(self):
        assert estimate_font_size(5) == 12
        assert estimate_font_size(40) == 32


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in [name for name in os.environ if name.startswith("EDITOR_")]:
            monkeypatch.delenv(name)
        assert load_settings() == EditorSettings()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("EDITOR_ERASER_SIZE", "32")
        monkeypatch.setenv("EDITOR_DEFAULT_FONT", "Lato")
        monkeypatch.setenv("EDITOR_COVER_EXPAND", "0.2")
        settings = load_settings()
        assert settings.eraser_size == 32
        assert settings.default_font == "Lato"
        assert settings.cover_expand_factor == 0.2
