"""Simple in-memory store for test sessions."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional
from uuid import uuid4

from models.session_models import PhotoSource
from services.session.session_controller import SessionController

LOGGER = logging.getLogger(__name__)


class SessionStore:
    """Create, look up and close session controllers.

    Only one session is active at a time: creating a session ends any other
    active one so their timers and speech cannot overlap.
    """

    def __init__(self, controller_factory: Callable[[], SessionController]) -> None:
        if controller_factory is None:
            raise ValueError("A controller factory is required.")
        self._factory = controller_factory
        self._sessions: Dict[str, SessionController] = {}

    def create(self, source: PhotoSource) -> SessionController:
        """Start a new session with the requested photo source."""
        for controller in self._sessions.values():
            if controller.is_active:
                LOGGER.info("Ending session %s before starting a new one", controller.session_id)
                controller.end_session()

        controller = self._factory()
        session_id = uuid4().hex
        controller.start_session(source, session_id=session_id)
        self._sessions[session_id] = controller
        return controller

    def get(self, session_id: str) -> SessionController:
        """Return a session or raise KeyError if missing."""
        controller = self._sessions.get(session_id)
        if controller is None:
            raise KeyError(f"Session {session_id} not found")
        return controller

    def active(self) -> Optional[SessionController]:
        for controller in self._sessions.values():
            if controller.is_active:
                return controller
        return None

    def close(self, session_id: str) -> SessionController:
        """End a session while keeping its final state readable."""
        controller = self.get(session_id)
        controller.end_session()
        return controller

    def close_all(self) -> None:
        for controller in self._sessions.values():
            if controller.is_active:
                controller.end_session()
