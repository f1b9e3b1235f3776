from typing import Any, Dict

from fastapi import HTTPException, Request, UploadFile

from models.solve_models import QuestionsResponse
from services.errors import EmptyInput, TransportError
from services.openai.solve_service import SolveOrchestrator
from utils.media_validation import read_image


def _get_solver(request: Request) -> SolveOrchestrator:
    solver = getattr(request.app.state, "solver", None)
    if solver is None:
        raise HTTPException(status_code=500, detail="Solver not initialized.")
    return solver


def _payload(response: QuestionsResponse) -> Dict[str, Any]:
    return {**response.to_payload(), "fallback": response.is_fallback}


async def solve_text(request: Request, text: str) -> Dict[str, Any]:
    """Solve questions from already-extracted problem text."""
    if not text or not text.strip():
        raise HTTPException(status_code=400, detail="Problem text is empty.")
    solver = _get_solver(request)
    try:
        response = await solver.solve_text(text.strip())
    except TransportError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return _payload(response)


async def solve_image(request: Request, image_file: UploadFile) -> Dict[str, Any]:
    """OCR an uploaded photo, pick the question block and solve it."""
    image = await read_image(image_file)
    solver = _get_solver(request)
    try:
        response = await solver.solve_image(image)
    except EmptyInput as exc:
        raise HTTPException(status_code=422, detail=exc.message) from exc
    except TransportError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc
    return _payload(response)
