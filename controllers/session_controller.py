"""Session lifecycle helpers for the HTTP surface."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException, Request, UploadFile

from models.session_models import PhotoSource
from services.session.session_controller import SessionController
from services.session.session_store import SessionStore
from utils.media_validation import read_image


def _get_store(request: Request) -> SessionStore:
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="Session store not initialized.")
    return store


def _get_session(request: Request, session_id: str) -> SessionController:
    try:
        return _get_store(request).get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found") from exc


def _require_active(controller: SessionController) -> None:
    if not controller.is_active:
        raise HTTPException(status_code=409, detail="Session is closed.")


def _require_direct_capture(controller: SessionController) -> None:
    if controller.photo_source is not PhotoSource.DIRECT_CAPTURE:
        raise HTTPException(status_code=409, detail="Only direct capture sessions hold uploaded photos.")


async def start_session(request: Request, source: PhotoSource) -> Dict[str, Any]:
    """Create a new session and return its snapshot."""
    controller = _get_store(request).create(source)
    return controller.current_state().to_dict()


async def get_session(request: Request, session_id: str) -> Dict[str, Any]:
    return _get_session(request, session_id).current_state().to_dict()


async def close_session(request: Request, session_id: str) -> Dict[str, Any]:
    """End a session, stopping its timers and speech."""
    _get_session(request, session_id)
    controller = _get_store(request).close(session_id)
    return controller.current_state().to_dict()


async def tap_expected(request: Request, session_id: str) -> Dict[str, Any]:
    controller = _get_session(request, session_id)
    _require_active(controller)
    return controller.tap_expected().to_dict()


async def reset_expected(request: Request, session_id: str) -> Dict[str, Any]:
    controller = _get_session(request, session_id)
    _require_active(controller)
    return controller.reset_expected().to_dict()


async def add_image(request: Request, session_id: str, image_file: UploadFile) -> Dict[str, Any]:
    """Hold one uploaded photo for a direct capture session."""
    controller = _get_session(request, session_id)
    _require_active(controller)
    _require_direct_capture(controller)

    image = await read_image(image_file)
    accepted = controller.add_captured_image(image)
    return {"accepted": accepted, **controller.current_state().to_dict()}


async def process_batch(request: Request, session_id: str, auto_start_reading: bool) -> Dict[str, Any]:
    controller = _get_session(request, session_id)
    _require_active(controller)
    _require_direct_capture(controller)
    controller.process_captured_batch(auto_start_reading=auto_start_reading)
    return controller.current_state().to_dict()


async def toggle_reading(request: Request, session_id: str) -> Dict[str, Any]:
    controller = _get_session(request, session_id)
    _require_active(controller)
    controller.toggle_reading()
    return controller.current_state().to_dict()


async def restart_reading(request: Request, session_id: str) -> Dict[str, Any]:
    controller = _get_session(request, session_id)
    _require_active(controller)
    controller.restart_reading()
    return controller.current_state().to_dict()


async def process_latest_photo(request: Request, session_id: str) -> Dict[str, Any]:
    """Debug helper: solve only the newest synced photo."""
    controller = _get_session(request, session_id)
    _require_active(controller)
    await controller.process_latest_photo()
    return controller.current_state().to_dict()
