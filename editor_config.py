"""
⚙️ EDITOR CONFIGURATION
=======================
Settings with environment overrides, plus logging setup
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class EditorSettings:
    """Tunables for a single editing session"""

    default_font: str = "Noto Sans SC"
    eraser_size: int = 20            # Diameter in display pixels
    sample_margin: int = 5           # Strip depth for background sampling
    samples_per_strip: int = 50
    cover_expand_factor: float = 0.1
    max_strokes: int = 10000         # Per element
    max_display_width: int = 1200
    max_display_height: int = 800
    font_dirs: List[str] = field(default_factory=list)
    log_level: str = "INFO"


def load_settings() -> EditorSettings:
    """Build settings from ``EDITOR_*`` environment variables"""
    font_dirs = os.getenv("EDITOR_FONT_DIRS", "")
    return EditorSettings(
        default_font=os.getenv("EDITOR_DEFAULT_FONT", "Noto Sans SC"),
        eraser_size=_env_int("EDITOR_ERASER_SIZE", 20),
        sample_margin=_env_int("EDITOR_SAMPLE_MARGIN", 5),
        samples_per_strip=_env_int("EDITOR_SAMPLES_PER_STRIP", 50),
        cover_expand_factor=_env_float("EDITOR_COVER_EXPAND", 0.1),
        max_strokes=_env_int("EDITOR_MAX_STROKES", 10000),
        max_display_width=_env_int("EDITOR_MAX_DISPLAY_WIDTH", 1200),
        max_display_height=_env_int("EDITOR_MAX_DISPLAY_HEIGHT", 800),
        font_dirs=[path for path in font_dirs.split(os.pathsep) if path],
        log_level=os.getenv("EDITOR_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO"):
    """Configure root logging once for the process"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(levelname)s:%(name)s:%(message)s'
    )
