"""
🎨 COLOR SAMPLER MODULE
=======================
Background and text colour estimation from raw pixels around OCR regions
"""

import base64
import logging
import math
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from editor_models import BLACK, WHITE, BoundingBox, Detection, RGBColor

logger = logging.getLogger(__name__)


class ImageDecodeError(ValueError):
    """Raised when an image source cannot be turned into pixels"""


def decode_image(source: Any) -> np.ndarray:
    """
    Decode an image source into an RGB uint8 array of shape (H, W, 3)

    Args:
        source: numpy array, PIL image, encoded bytes, data URL or file path

    Returns:
        RGB pixel array
    """
    if isinstance(source, np.ndarray):
        pixels = source
    elif isinstance(source, Image.Image):
        pixels = np.asarray(source.convert("RGB"))
    else:
        if isinstance(source, str) and source.startswith("data:"):
            try:
                data = base64.b64decode(source.split(",", 1)[1])
            except (IndexError, ValueError) as e:
                raise ImageDecodeError(f"Invalid data URL: {e}") from e
        elif isinstance(source, (str, Path)):
            try:
                data = Path(source).read_bytes()
            except OSError as e:
                raise ImageDecodeError(f"Cannot read image file {source}: {e}") from e
        elif isinstance(source, (bytes, bytearray, memoryview)):
            data = bytes(source)
        else:
            raise ImageDecodeError(f"Unsupported image source: {type(source).__name__}")

        buffer = np.frombuffer(data, np.uint8)
        decoded = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
        if decoded is None:
            raise ImageDecodeError(f"Could not decode {len(data)} bytes of image data")
        return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)

    if pixels.ndim == 2:
        pixels = np.stack([pixels] * 3, axis=-1)
    if pixels.ndim != 3 or pixels.shape[2] < 3:
        raise ImageDecodeError(f"Unsupported pixel array shape: {pixels.shape}")
    return np.ascontiguousarray(pixels[:, :, :3], dtype=np.uint8)


async def load_pixels(source: Any) -> np.ndarray:
    """Default asynchronous decoder used by ``ColorSampler.enhance``"""
    return decode_image(source)


def median_color(samples: np.ndarray) -> RGBColor:
    """
    Per-channel median of an (N, 3) sample array.

    Each channel is sorted on its own and indexed at N // 2, so the result
    does not depend on sample order. Empty input yields white.
    """
    if samples is None or len(samples) == 0:
        return WHITE
    ordered = np.sort(np.asarray(samples)[:, :3], axis=0)
    r, g, b = ordered[len(ordered) // 2]
    return RGBColor(int(r), int(g), int(b))


def _round(value: float) -> int:
    # Half-up rounding on pixel coordinates
    return int(math.floor(value + 0.5))


def _clamp_region(
    x: float, y: float, w: float, h: float, img_w: int, img_h: int
) -> Optional[Tuple[int, int, int, int]]:
    if not all(math.isfinite(v) for v in (x, y, w, h)):
        return None
    x1 = max(0, _round(x))
    y1 = max(0, _round(y))
    x2 = min(int(img_w), _round(x + w))
    y2 = min(int(img_h), _round(y + h))
    if x2 - x1 <= 0 or y2 - y1 <= 0:
        return None
    return x1, y1, x2, y2


class ColorSampler:
    """
    Pure pixel maths for colour estimation.

    Geometry problems never raise: they resolve to white for backgrounds and
    black for foregrounds.
    """

    def __init__(
        self,
        samples_per_strip: int = 50,
        decoder: Optional[Callable[[Any], Awaitable[np.ndarray]]] = None
    ):
        self.samples_per_strip = max(1, samples_per_strip)
        self.decoder = decoder or load_pixels

    def _sample_strip(
        self, pixels: np.ndarray, x: float, y: float, w: float, h: float, img_w: int, img_h: int
    ) -> np.ndarray:
        region = _clamp_region(x, y, w, h, img_w, img_h)
        if region is None:
            return np.empty((0, 3), dtype=np.uint8)

        x1, y1, x2, y2 = region
        flat = pixels[y1:y2, x1:x2, :3].reshape(-1, 3)
        step = max(1, len(flat) // self.samples_per_strip)
        return flat[::step]

    def sample_background(
        self,
        pixels: np.ndarray,
        img_w: int,
        img_h: int,
        bounds: BoundingBox,
        margin: int = 5
    ) -> RGBColor:
        """
        Estimate the background colour from strips just outside ``bounds``

        Args:
            pixels: RGB array (H, W, 3+)
            img_w: Image width
            img_h: Image height
            bounds: Text region in image pixels
            margin: Strip depth in pixels

        Returns:
            Median colour of the sampled strips, white when nothing was sampled
        """
        x, y, w, h = bounds.x, bounds.y, bounds.width, bounds.height
        strips = []

        if y > margin:
            strips.append(self._sample_strip(pixels, x, max(0, y - margin), w, margin, img_w, img_h))
        if y + h + margin < img_h:
            strips.append(self._sample_strip(pixels, x, y + h, w, margin, img_w, img_h))
        if x > margin:
            strips.append(self._sample_strip(pixels, max(0, x - margin), y, margin, h, img_w, img_h))
        if x + w + margin < img_w:
            strips.append(self._sample_strip(pixels, x + w, y, margin, h, img_w, img_h))

        strips = [strip for strip in strips if len(strip)]
        if not strips:
            return WHITE
        return median_color(np.concatenate(strips))

    def sample_foreground(
        self, pixels: np.ndarray, img_w: int, img_h: int, bounds: BoundingBox
    ) -> RGBColor:
        """
        Estimate the ink colour inside ``bounds``.

        Pixels darker than the mean luma of the region count as ink; their
        median is returned. Without ink the darkest pixel wins.
        """
        region = _clamp_region(bounds.x, bounds.y, bounds.width, bounds.height, img_w, img_h)
        if region is None:
            return BLACK

        x1, y1, x2, y2 = region
        flat = pixels[y1:y2, x1:x2, :3].reshape(-1, 3)
        rgb = flat.astype(np.float64)
        luma = 0.299 * rgb[:, 0] + 0.587 * rgb[:, 1] + 0.114 * rgb[:, 2]
        ink = flat[luma < luma.mean()]

        if len(ink):
            return median_color(ink)

        darkest = flat[int(np.argmin(flat.astype(np.int32).sum(axis=1)))]
        return RGBColor(int(darkest[0]), int(darkest[1]), int(darkest[2]))

    def enhance_pixels(
        self, detections: List[Detection], pixels: np.ndarray, margin: int = 5
    ) -> List[Detection]:
        """Recolour detections against already decoded pixels"""
        img_h, img_w = pixels.shape[:2]
        enhanced = []
        for detection in detections:
            bg_color = self.sample_background(pixels, img_w, img_h, detection.bounds, margin)
            text_color = self.sample_foreground(pixels, img_w, img_h, detection.bounds)
            enhanced.append(detection.with_colors(text_color=text_color, bg_color=bg_color))
        return enhanced

    async def enhance(
        self, detections: List[Detection], image: Any, margin: int = 5
    ) -> List[Detection]:
        """
        Decode ``image`` once and sample colours for every detection

        Args:
            detections: Detections to recolour (left untouched)
            image: Any source accepted by the decoder
            margin: Background strip depth

        Returns:
            New detections with ``bg_color`` and ``text_color`` replaced

        Raises:
            ImageDecodeError: if the image cannot be decoded
        """
        try:
            pixels = await self.decoder(image)
        except ImageDecodeError as e:
            logger.error(f"❌ Colour enhancement aborted: {e}")
            raise

        enhanced = self.enhance_pixels(detections, pixels, margin)
        logger.info(f"🎨 Sampled colours for {len(enhanced)} detections")
        return enhanced
