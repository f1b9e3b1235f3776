"""Pause/resume/restart-able cursor that reads answers aloud in order."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from models.session_models import AnswerItem, ReadoutState
from services.session.scheduler import SessionScheduler
from services.speech.speech_service import SpeechOutput

LOGGER = logging.getLogger(__name__)

EMPTY_QUEUE_STATUS = "No answers in the queue yet."


class ReadoutQueue:
    """Read ``items`` one by one, waiting ``pace_seconds`` per item.

    The wait stands in for speech duration. After each wait the cursor only
    advances if nobody moved it in the meantime, so a restart or pause during
    the wait is never overwritten by a stale advance.
    """

    def __init__(
        self,
        speech: SpeechOutput,
        scheduler: SessionScheduler,
        *,
        pace_seconds: float = 2.0,
        on_change: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.speech = speech
        self.scheduler = scheduler
        self.pace_seconds = pace_seconds
        self.on_change = on_change
        self.items: List[AnswerItem] = []
        self.index = 0
        self.state = ReadoutState.IDLE
        self._task: Optional[asyncio.Task] = None

    @property
    def is_reading(self) -> bool:
        return self.state is ReadoutState.READING

    @property
    def current_item(self) -> Optional[AnswerItem]:
        if 0 <= self.index < len(self.items):
            return self.items[self.index]
        return None

    def load(self, items: List[AnswerItem]) -> None:
        """Replace the queue and rewind to the first item."""
        self._cancel_loop()
        if self.state is ReadoutState.READING:
            self.speech.stop()
        self.items = list(items)
        self.index = 0
        self.state = ReadoutState.IDLE

    def clear(self) -> None:
        self.load([])

    def toggle(self) -> str:
        if self.state is ReadoutState.READING:
            self._cancel_loop()
            self.speech.stop()
            self.state = ReadoutState.PAUSED
            return self._notify("Reading paused.")

        if not self.items:
            return self._notify(EMPTY_QUEUE_STATUS)

        if self.index >= len(self.items):
            self.index = 0
        return self._start("Reading answers…")

    def restart(self) -> str:
        if not self.items:
            return self._notify("No answers to restart.")
        self._cancel_loop()
        self.speech.stop()
        self.index = 0
        return self._start("Restarting from beginning…")

    def stop(self) -> None:
        """Silence playback and go idle, keeping the cursor."""
        self._cancel_loop()
        self.speech.stop()
        if self.state is ReadoutState.READING:
            self.state = ReadoutState.PAUSED

    def _start(self, status: str) -> str:
        self.state = ReadoutState.READING
        self._task = self.scheduler.spawn(self._play_loop())
        return self._notify(status)

    async def _play_loop(self) -> None:
        while self.state is ReadoutState.READING:
            index = self.index
            if index >= len(self.items):
                self.state = ReadoutState.FINISHED
                self._notify("Finished reading all answers.")
                return

            item = self.items[index]
            self.speech.speak(item.spoken_text)
            self._notify(f"Reading answer {index + 1} of {len(self.items)}.")

            await asyncio.sleep(self.pace_seconds)
            if self.state is not ReadoutState.READING:
                return
            if self.index == index:
                self.index += 1

    def _cancel_loop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _notify(self, status: str) -> str:
        LOGGER.debug("Readout %s at %d/%d: %s", self.state.value, self.index, len(self.items), status)
        if self.on_change is not None:
            self.on_change(status)
        return status
