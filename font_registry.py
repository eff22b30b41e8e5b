"""
🔤 FONT REGISTRY
================
Explicit, per-surface font lookup with lazy loading and caching
"""

import logging
import os
import platform
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import ImageFont

logger = logging.getLogger(__name__)

# Tried in order when a family cannot be found by name
FALLBACK_FONT_FILES = [
    "NotoSansSC-Regular.otf",
    "DejaVuSans.ttf",
    "LiberationSans-Regular.ttf",
    "arial.ttf",
    "Arial.ttf",
    "Helvetica.ttc",
]


def system_font_dirs() -> List[str]:
    """Get system fonts directories"""
    system = platform.system()

    if system == "Windows":
        return ["C:/Windows/Fonts/"]
    elif system == "Darwin":  # macOS
        return ["/System/Library/Fonts/", "/Library/Fonts/"]
    else:  # Linux
        return ["/usr/share/fonts/", "/usr/local/share/fonts/", os.path.expanduser("~/.fonts")]


def _normalize(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


class FontRegistry:
    """
    Font cache owned by one rendering surface.

    The directory index is built on first lookup only, and every
    (family, size) pair is loaded at most once.
    """

    def __init__(self, font_dirs: Optional[Sequence[str]] = None):
        self.font_dirs = list(font_dirs) if font_dirs else system_font_dirs()
        self.font_cache: Dict[Tuple[str, int], ImageFont.ImageFont] = {}
        self._index: Optional[Dict[str, Path]] = None

    @property
    def loaded_families(self) -> List[str]:
        return sorted({family for family, _ in self.font_cache})

    def _build_index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        for directory in self.font_dirs:
            root = Path(directory)
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if path.suffix.lower() in (".ttf", ".otf", ".ttc"):
                    index.setdefault(_normalize(path.stem), path)
        logger.debug(f"Indexed {len(index)} font files")
        return index

    def resolve(self, font_family: str) -> Optional[Path]:
        """Find a font file for a family name, or None"""
        if self._index is None:
            self._index = self._build_index()

        wanted = _normalize(font_family)
        for key in (wanted, wanted + "regular"):
            if key in self._index:
                return self._index[key]
        for key, path in self._index.items():
            if key.startswith(wanted):
                return path
        for filename in FALLBACK_FONT_FILES:
            path = self._index.get(_normalize(Path(filename).stem))
            if path is not None:
                return path
        return None

    def get(self, font_family: str, font_size: float) -> ImageFont.ImageFont:
        """Get font object with caching"""
        size = max(1, int(round(font_size)))
        cache_key = (font_family, size)

        if cache_key in self.font_cache:
            return self.font_cache[cache_key]

        path = self.resolve(font_family)
        font = None
        if path is not None:
            try:
                font = ImageFont.truetype(str(path), size)
            except OSError as e:
                logger.warning(f"Failed to load font {path} for {font_family}: {e}")

        if font is None:
            font = ImageFont.load_default(size=size)

        self.font_cache[cache_key] = font
        return font

    def clear(self):
        self.font_cache.clear()
        self._index = None
