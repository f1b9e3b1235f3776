from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile

from controllers.solve_controller import solve_image, solve_text

router = APIRouter(tags=["solve"])


@router.post("/solve")
async def solve_route(
    request: Request,
    text: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
):
    """Solve questions from a photo, or from text when no photo is sent."""
    if image is None and text is None:
        raise HTTPException(status_code=400, detail="Send either an image or text.")
    try:
        if image is not None:
            return await solve_image(request, image)
        return await solve_text(request, text)
    except HTTPException:
        raise
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:  # pylint: disable=broad-exception-caught
        raise HTTPException(status_code=500, detail="Failed to solve questions.") from exc
