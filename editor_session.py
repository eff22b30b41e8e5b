"""
🎯 EDITOR SESSION
=================
Ties sampling, element state, reconciliation and pointer modes into one editing session
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from PIL import Image

from color_sampler import ColorSampler, ImageDecodeError, decode_image
from editor_config import EditorSettings
from editor_models import Detection, EraserStroke
from font_registry import FontRegistry
from interaction_mode import EditorMode, InteractionModeController
from mask_compositor import MaskCompositionError, MaskCompositor
from overlay_store import OverlayElementStore, StoreSnapshot
from render_surface import RasterSurface, RenderSurface
from render_sync import ReconcileReport, RenderSync

logger = logging.getLogger(__name__)


class EditorSession:
    """
    One image being edited.

    Every committed store mutation triggers exactly one reconciliation pass.
    ``reset`` bumps a generation counter so colour enhancement that was in
    flight at the time is discarded when it completes.
    """

    def __init__(self, settings: Optional[EditorSettings] = None):
        self.settings = settings or EditorSettings()
        self.sampler = ColorSampler(samples_per_strip=self.settings.samples_per_strip)
        self.compositor = MaskCompositor()
        self.fonts = FontRegistry(self.settings.font_dirs or None)
        self.store = self._new_store()
        self.surface: Optional[RenderSurface] = None
        self.render_sync: Optional[RenderSync] = None
        self.controller: Optional[InteractionModeController] = None
        self.detections: List[Detection] = []
        self.last_report: Optional[ReconcileReport] = None
        self._generation = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    def _new_store(self) -> OverlayElementStore:
        return OverlayElementStore(
            default_font=self.settings.default_font,
            max_strokes=self.settings.max_strokes
        )

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def mode(self) -> EditorMode:
        return self.controller.mode if self.controller else EditorMode.SELECT

    def attach_surface(self, surface: RenderSurface):
        """Connect a rendering surface and draw the current state on it"""
        if self.surface is not None:
            raise RuntimeError("A surface is already attached; reset the session first")

        self.surface = surface
        self.render_sync = RenderSync(surface, self.compositor, self.settings.cover_expand_factor)
        self.controller = InteractionModeController(
            self.store, self.render_sync, surface, self.settings.eraser_size
        )
        self._unsubscribe = self.store.subscribe(self._on_commit)
        self._on_commit(self.store.snapshot)

    def _on_commit(self, snapshot: StoreSnapshot):
        self.last_report = self.render_sync.reconcile(snapshot)

    def start(self, detections: List[Detection]):
        """Initialize elements from detections as they are"""
        self.detections = list(detections)
        self._command(self.store.initialize, self.detections)

    async def load(self, detections: List[Detection], image: Any) -> bool:
        """
        Sample colours from ``image`` and start editing the detections

        Args:
            detections: Detections from the OCR collaborator
            image: Source the sampler's decoder accepts

        Returns:
            True if applied, False if a reset made the result stale

        Raises:
            ImageDecodeError: if decoding failed; the uncoloured detections
                are still loaded with their default colours
        """
        generation = self._generation
        try:
            enhanced = await self.sampler.enhance(detections, image, self.settings.sample_margin)
        except ImageDecodeError:
            if generation == self._generation:
                self.start(detections)
            raise

        if generation != self._generation:
            logger.info(f"⏭️ Discarding colour enhancement from generation {generation}")
            return False

        self.start(enhanced)
        return True

    async def open_image(self, image: Any, detections: List[Detection]) -> bool:
        """Decode ``image``, fit a raster surface to the display and load the detections"""
        pixels = decode_image(image)
        surface = RasterSurface.fit(
            pixels,
            self.settings.max_display_width,
            self.settings.max_display_height,
            fonts=self.fonts
        )
        self.attach_surface(surface)
        logger.info(f"🖼️ Opened {pixels.shape[1]}x{pixels.shape[0]} image at scale {surface.scale:.3f}")
        return await self.load(detections, pixels)

    def _raise_for_report(self):
        # Only failures caused by this command; retries of older ones are logged by RenderSync
        if self.last_report is not None and self.last_report.failures:
            element_id, error = self.last_report.failures[0]
            raise MaskCompositionError(f"Element {element_id}: {error}") from error

    def _command(self, action: Callable, *args, **kwargs):
        self.last_report = None
        result = action(*args, **kwargs)
        self._raise_for_report()
        return result

    # Element commands

    def update_element(self, element_id: int, **updates) -> bool:
        return self._command(self.store.update, element_id, **updates)

    def toggle_background(self, element_id: int) -> bool:
        return self._command(self.store.toggle_background, element_id)

    def toggle_text(self, element_id: int) -> bool:
        return self._command(self.store.toggle_text, element_id)

    def append_eraser_stroke(self, element_id: int, stroke: EraserStroke) -> bool:
        return self._command(self.store.append_eraser_stroke, element_id, stroke)

    def reset_element(self, element_id: int) -> bool:
        return self._command(self.store.reset_element, element_id)

    def restore_all(self):
        self._command(self.store.restore_all)

    def select(self, element_id: Optional[int]) -> bool:
        return self.store.select(element_id)

    # Pointer and mode commands

    def _require_controller(self) -> InteractionModeController:
        if self.controller is None:
            raise RuntimeError("No surface attached")
        return self.controller

    def set_mode(self, mode: EditorMode):
        self._require_controller().set_mode(mode)

    def set_eraser_size(self, size: float):
        self._require_controller().set_eraser_size(size)

    def pointer_down(self, x: float, y: float) -> Optional[int]:
        return self._command(self._require_controller().pointer_down, x, y)

    def pointer_move(self, x: float, y: float) -> Optional[int]:
        return self._command(self._require_controller().pointer_move, x, y)

    def pointer_up(self):
        self._require_controller().pointer_up()

    @property
    def comparing(self) -> bool:
        return self.render_sync.comparing if self.render_sync else False

    def set_comparing(self, comparing: bool):
        """Show the untouched image (True) or the edited overlays (False)"""
        if self.render_sync is None:
            raise RuntimeError("No surface attached")
        self.render_sync.set_comparing(comparing)

    # Output

    def export(self) -> Image.Image:
        """Final raster at the source image resolution"""
        if not isinstance(self.surface, RasterSurface):
            raise RuntimeError("Export needs an attached raster surface")
        return self.surface.export(1.0 / self.surface.scale)

    def export_png(self) -> bytes:
        if not isinstance(self.surface, RasterSurface):
            raise RuntimeError("Export needs an attached raster surface")
        return self.surface.export_png(1.0 / self.surface.scale)

    def reset(self):
        """Discard everything; the session is left as freshly constructed"""
        self._generation += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.render_sync is not None:
            self.render_sync.dispose()
        self.store = self._new_store()
        self.surface = None
        self.render_sync = None
        self.controller = None
        self.detections = []
        self.last_report = None
        logger.info(f"🧹 Session reset (generation {self._generation})")

    def get_editor_state(self) -> Dict[str, Any]:
        """Get complete editor state for frontend"""
        snapshot = self.store.snapshot
        return {
            "elements": [element.to_dict() for element in snapshot],
            "selected_element_id": snapshot.selected_id,
            "mode": self.mode.value,
            "comparing": self.comparing,
            "eraser_size": self.controller.eraser_size if self.controller else self.settings.eraser_size,
            "surface": self.surface.describe() if isinstance(self.surface, RasterSurface) else None,
            "generation": self._generation,
            "version": snapshot.version,
            "total_elements": len(snapshot.elements),
            "modified_elements": sum(1 for element in snapshot if element.is_modified()),
        }
