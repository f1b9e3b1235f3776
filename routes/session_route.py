"""FastAPI routes for test sessions and their reading controls."""

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.session_controller import (
    add_image,
    close_session,
    get_session,
    process_batch,
    process_latest_photo,
    reset_expected,
    restart_reading,
    start_session,
    tap_expected,
    toggle_reading,
)
from models.session_models import PhotoSource

router = APIRouter(prefix="/sessions", tags=["sessions"])


class StartPayload(BaseModel):
    source: PhotoSource = PhotoSource.GLASSES_SYNC


class ProcessPayload(BaseModel):
    auto_start_reading: bool = False


async def _run(call):
    try:
        return await call
    except HTTPException:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("")
async def start_session_route(request: Request, payload: StartPayload):
    """Start a session, ending any other active one."""
    return await _run(start_session(request, payload.source))


@router.get("/{session_id}")
async def get_session_route(request: Request, session_id: str):
    return await _run(get_session(request, session_id))


@router.post("/{session_id}/close")
async def close_session_route(request: Request, session_id: str):
    return await _run(close_session(request, session_id))


@router.post("/{session_id}/taps")
async def tap_route(request: Request, session_id: str):
    """Count one expected photo."""
    return await _run(tap_expected(request, session_id))


@router.delete("/{session_id}/taps")
async def reset_taps_route(request: Request, session_id: str):
    return await _run(reset_expected(request, session_id))


@router.post("/{session_id}/images")
async def upload_image_route(request: Request, session_id: str, image: UploadFile = File(...)):
    """Hold a photo taken with the phone camera."""
    return await _run(add_image(request, session_id, image))


@router.post("/{session_id}/process")
async def process_route(request: Request, session_id: str, payload: ProcessPayload):
    return await _run(process_batch(request, session_id, payload.auto_start_reading))


@router.post("/{session_id}/reading/toggle")
async def toggle_reading_route(request: Request, session_id: str):
    return await _run(toggle_reading(request, session_id))


@router.post("/{session_id}/reading/restart")
async def restart_reading_route(request: Request, session_id: str):
    return await _run(restart_reading(request, session_id))


@router.post("/{session_id}/debug/latest")
async def process_latest_route(request: Request, session_id: str):
    """Solve only the newest synced photo, without marking it processed."""
    return await _run(process_latest_photo(request, session_id))
