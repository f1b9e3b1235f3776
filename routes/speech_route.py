from fastapi import APIRouter, HTTPException, Request

from controllers.speech_controller import get_latest_clip, test_speech

router = APIRouter(prefix="/speech", tags=["speech"])


@router.get("/latest")
async def latest_clip_route(request: Request):
    """Return the audio for the answer being read."""
    try:
        return await get_latest_clip(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/test")
async def test_speech_route(request: Request):
    try:
        return await test_speech(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
