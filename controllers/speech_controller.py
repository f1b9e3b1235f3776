from typing import Any, Dict

from fastapi import HTTPException, Request
from fastapi.responses import Response

from services.session.session_controller import SPEECH_TEST_TEXT


def _get_speech(request: Request):
    speech = getattr(request.app.state, "speech_service", None)
    if speech is None:
        raise HTTPException(status_code=500, detail="Speech service not initialized.")
    return speech


async def get_latest_clip(request: Request) -> Response:
    """Return the most recently synthesized answer audio."""
    clip = getattr(_get_speech(request), "latest_clip", None)
    if clip is None:
        raise HTTPException(status_code=404, detail="No speech clip available.")
    return Response(
        content=clip.audio,
        media_type=clip.media_type,
        headers={"X-Clip-Sequence": str(clip.sequence)},
    )


async def test_speech(request: Request) -> Dict[str, Any]:
    """Speak a fixed test sentence, through the active session when there is one."""
    speech = _get_speech(request)
    store = getattr(request.app.state, "session_store", None)
    controller = store.active() if store is not None else None
    if controller is not None:
        status = controller.test_speech()
    else:
        speech.speak(SPEECH_TEST_TEXT)
        status = "Testing voice output…"
    return {"status": status, "text": SPEECH_TEST_TEXT}
