"""
🌐 OVERLAY EDITOR SERVER
========================
HTTP API hosting in-memory editing sessions
"""

import json
import uuid
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from color_sampler import ImageDecodeError
from editor_config import configure_logging, load_settings
from editor_models import detections_from_json
from editor_session import EditorSession
from interaction_mode import EditorMode
from mask_compositor import MaskCompositionError

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Overlay Text Editor",
    description="Replace OCR-detected text regions with editable, colour-matched overlays",
    version="1.0.0"
)

# Session storage
sessions: Dict[str, EditorSession] = {}

ALLOWED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".webp")


class OpenSessionRequest(BaseModel):
    image: str = Field(..., description="Image as a data URL")
    detections: List[Dict[str, Any]] = Field(default_factory=list)
    max_display_width: Optional[int] = Field(None, gt=0)
    max_display_height: Optional[int] = Field(None, gt=0)


class ElementUpdate(BaseModel):
    text: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[float] = None
    font_color: Optional[Any] = None
    bg_color: Optional[Any] = None
    position: Optional[List[float]] = None


class ModeRequest(BaseModel):
    mode: EditorMode
    eraser_size: Optional[float] = None


class CompareRequest(BaseModel):
    comparing: bool


class PointerEvent(BaseModel):
    action: str = Field(..., pattern="^(down|move|up)$")
    x: float = 0.0
    y: float = 0.0


def _get_session(session_id: str) -> EditorSession:
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    return sessions[session_id]


def _run(action, *args, **kwargs):
    try:
        return action(*args, **kwargs)
    except MaskCompositionError as e:
        logger.error(f"❌ Mask composition error: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Mask composition failed: {str(e)}")
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid value: {str(e)}")


def _parse_detections(items: List[Dict[str, Any]]):
    try:
        return detections_from_json(items)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid detections: {str(e)}")


async def _open(image: Any, detections, session_settings=None) -> Dict[str, Any]:
    session = EditorSession(session_settings or settings)
    try:
        await session.open_image(image, detections)
    except ImageDecodeError as e:
        raise HTTPException(status_code=422, detail=f"Image could not be decoded: {str(e)}")

    session_id = str(uuid.uuid4())
    sessions[session_id] = session
    logger.info(f"🆕 Session {session_id} opened with {len(detections)} detections")
    return {"session_id": session_id, "state": session.get_editor_state()}


@app.post("/sessions")
async def open_session(request: OpenSessionRequest):
    """Create a session from an image and OCR detections"""
    detections = _parse_detections(request.detections)

    overrides = {}
    if request.max_display_width:
        overrides["max_display_width"] = request.max_display_width
    if request.max_display_height:
        overrides["max_display_height"] = request.max_display_height

    return await _open(request.image, detections, replace(settings, **overrides))


@app.post("/upload")
async def upload_image(file: UploadFile = File(...), detections: str = Form("[]")):
    """Create a session from an uploaded image file and a JSON list of detections"""
    if not (file.filename or "").lower().endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(status_code=400, detail="Only PNG, JPEG, BMP or WebP images are allowed")

    try:
        items = json.loads(detections)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=422, detail=f"Detections are not valid JSON: {str(e)}")
    if not isinstance(items, list):
        raise HTTPException(status_code=422, detail="Detections must be a JSON list")

    content = await file.read()
    return await _open(content, _parse_detections(items))


@app.get("/sessions/{session_id}")
async def get_session(session_id: str):
    return _get_session(session_id).get_editor_state()


@app.patch("/sessions/{session_id}/elements/{element_id}")
async def update_element(session_id: str, element_id: int, update: ElementUpdate):
    """Update text, font, colours or position of an element"""
    session = _get_session(session_id)
    changes = {key: value for key, value in update.model_dump().items() if value is not None}
    if not _run(session.update_element, element_id, **changes):
        raise HTTPException(status_code=404, detail="Element not found")
    return session.get_editor_state()


@app.post("/sessions/{session_id}/elements/{element_id}/{command}")
async def element_command(session_id: str, element_id: int, command: str):
    """Run toggle-background, toggle-text or reset on an element"""
    session = _get_session(session_id)
    commands = {
        "toggle-background": session.toggle_background,
        "toggle-text": session.toggle_text,
        "reset": session.reset_element,
        "select": session.select,
    }
    if command not in commands:
        raise HTTPException(status_code=404, detail=f"Unknown command: {command}")
    if not _run(commands[command], element_id):
        raise HTTPException(status_code=404, detail="Element not found")
    return session.get_editor_state()


@app.post("/sessions/{session_id}/restore-all")
async def restore_all(session_id: str):
    session = _get_session(session_id)
    _run(session.restore_all)
    return session.get_editor_state()


@app.post("/sessions/{session_id}/mode")
async def set_mode(session_id: str, request: ModeRequest):
    session = _get_session(session_id)
    session.set_mode(request.mode)
    if request.eraser_size is not None:
        try:
            session.set_eraser_size(request.eraser_size)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
    return session.get_editor_state()


@app.post("/sessions/{session_id}/compare")
async def compare(session_id: str, request: CompareRequest):
    """Toggle the before/after view"""
    session = _get_session(session_id)
    session.set_comparing(request.comparing)
    return session.get_editor_state()


@app.post("/sessions/{session_id}/pointer")
async def pointer(session_id: str, event: PointerEvent):
    """Forward a pointer event in display coordinates"""
    session = _get_session(session_id)
    element_id = None
    if event.action == "down":
        element_id = _run(session.pointer_down, event.x, event.y)
    elif event.action == "move":
        element_id = _run(session.pointer_move, event.x, event.y)
    else:
        session.pointer_up()
    return {"element_id": element_id, "mode": session.mode.value}


@app.get("/sessions/{session_id}/export")
async def export_image(session_id: str):
    """Download the edited image at source resolution"""
    session = _get_session(session_id)
    return Response(content=session.export_png(), media_type="image/png")


@app.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    session = _get_session(session_id)
    session.reset()
    del sessions[session_id]
    return {"success": True, "message": "Session closed"}


if __name__ == "__main__":
    logger.info("🚀 Starting Overlay Text Editor")
    logger.info("🌐 Access at: http://localhost:8000")

    uvicorn.run(
        "editor_server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        access_log=True
    )
