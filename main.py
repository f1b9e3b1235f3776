import inspect
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from routes.session_route import router as session_router
from routes.solve_route import router as solve_router
from routes.speech_route import router as speech_router
from services.ocr.line_recognizer import TesseractLineRecognizer
from services.openai.solve_service import SolveOrchestrator
from services.photos.photo_library import DirectoryPhotoLibrary
from services.session.session_controller import SessionController
from services.session.session_store import SessionStore
from services.speech.speech_service import OpenAISpeechService
from utils.settings import AssistantSettings

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)


def _create_openai_client() -> AsyncOpenAI:
    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        return AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc


async def _close_client(client) -> None:
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        result = aclose()
        if inspect.isawaitable(result):
            await result
    except Exception as exc:  # pylint: disable=broad-exception-caught
        LOGGER.warning("Error while closing the OpenAI client: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the settings (from the environment)
      - the OpenAI async client, solver and speech service
      - the session store
    and attach them to `app.state`. Anything already set on `app.state`
    is kept as is.
    """
    state = app.state
    if getattr(state, "settings", None) is None:
        state.settings = AssistantSettings.from_env()
    settings: AssistantSettings = state.settings

    if getattr(state, "solver", None) is None or getattr(state, "speech_service", None) is None:
        state.openai_client = _create_openai_client()

    if getattr(state, "solver", None) is None:
        state.solver = SolveOrchestrator(
            state.openai_client,
            recognizer=TesseractLineRecognizer(),
            model=settings.solve_model,
        )

    if getattr(state, "speech_service", None) is None:
        state.speech_service = OpenAISpeechService(
            state.openai_client,
            model=settings.tts_model,
            voice=settings.tts_voice,
            tone=settings.voice_tone,
            speed=settings.voice_speed,
        )

    if getattr(state, "photo_library", None) is None and settings.photo_sync_dir is not None:
        state.photo_library = DirectoryPhotoLibrary(settings.photo_sync_dir)

    if getattr(state, "session_store", None) is None:
        state.session_store = SessionStore(
            lambda: SessionController(
                settings,
                state.solver,
                state.speech_service,
                photo_library=getattr(state, "photo_library", None),
            )
        )

    LOGGER.info(
        "Assistant ready (solve model %s, voice %s, sync folder %s)",
        settings.solve_model,
        settings.tts_voice,
        settings.photo_sync_dir or "not set",
    )

    try:
        yield
    finally:
        state.session_store.close_all()
        state.speech_service.stop()
        client = getattr(state, "openai_client", None)
        if client is not None:
            await _close_client(client)


def create_app(
    *,
    settings: Optional[AssistantSettings] = None,
    solver=None,
    speech_service=None,
    photo_library=None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Any collaborator passed in is used instead of the one the lifespan
    would build from the environment.
    """
    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.solver = solver
    app.state.speech_service = speech_service
    app.state.photo_library = photo_library
    app.state.session_store = session_store
    app.state.openai_client = None

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports which collaborators are available.
        """
        state = request.app.state
        store = getattr(state, "session_store", None)
        active = store.active() if store is not None else None
        return {
            "ok": True,
            "openai_available": getattr(state, "openai_client", None) is not None,
            "photo_library_configured": getattr(state, "photo_library", None) is not None,
            "active_session": active.session_id if active else None,
        }

    # Register application routers
    app.include_router(session_router)
    app.include_router(solve_router)
    app.include_router(speech_router)

    return app


app = create_app()
