"""One test session: photo acquisition, solving and read-out.

Everything here runs on the event loop that owns the session. Timers and
background work go through the session's ``SessionScheduler`` so that ending
or restarting a session cancels them, and every await in a dispatch is
followed by an epoch check before state is touched.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, List, Optional, Sequence

from models.session_models import AssetRef, PhotoSource, SessionSnapshot, SessionState
from services.errors import AssistantError, PermissionDenied
from services.photos.photo_library import PhotoLibrary
from services.session.acquisition_window import AcquisitionDecision, AcquisitionWindow
from services.session.readout_queue import ReadoutQueue
from services.session.scheduler import ScheduledHandle, SessionScheduler
from services.session.sequential_processor import (
    ProcessingOutcome,
    SequentialProcessor,
    Solver,
    answers_from_response,
)
from services.session.tap_counter import TapExpectationCounter
from services.speech.speech_service import SpeechOutput
from utils.settings import AssistantSettings

LOGGER = logging.getLogger(__name__)

IDLE_STATUS = "Idle"
SPEECH_TEST_TEXT = "This is a test of the reading voice."
EXPECTATION_RESET_STATUS = "Session reset. Tap once per photo to start a new batch."
PHOTO_READ_ERROR_STATUS = "Could not read the photo folder. Retrying on the next check."

Listener = Callable[[SessionSnapshot], None]


class SessionController:
    """Own the state machines of a single session and expose its controls.

    Args:
        settings: Timers, limits and model settings.
        solver: Object with an async ``solve(image)`` returning a ``QuestionsResponse``.
        speech: Non-blocking ``speak``/``stop`` output.
        photo_library: Synced photo folder, required for glasses sessions.
        scheduler: Timer owner; a fresh one is created when omitted.
        clock: Wall-clock source, compared against photo creation times.
    """

    def __init__(
        self,
        settings: AssistantSettings,
        solver: Solver,
        speech: SpeechOutput,
        *,
        photo_library: Optional[PhotoLibrary] = None,
        scheduler: Optional[SessionScheduler] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if solver is None:
            raise ValueError("A solver is required for a session.")
        if speech is None:
            raise ValueError("A speech output is required for a session.")
        self.settings = settings
        self.solver = solver
        self.speech = speech
        self.photo_library = photo_library
        self.scheduler = scheduler or SessionScheduler()
        self.clock = clock

        self.taps = TapExpectationCounter(
            max_count=settings.max_photos, window_seconds=settings.tap_window_seconds
        )
        self.window = AcquisitionWindow(settle_seconds=settings.settle_seconds, max_photos=settings.max_photos)
        self.readout = ReadoutQueue(
            speech, self.scheduler, pace_seconds=settings.reading_pace_seconds, on_change=self._set_status
        )

        self.session: Optional[SessionState] = None
        self.status_message = IDLE_STATUS
        self.is_processing = False
        self._polling = False
        self._listeners: List[Listener] = []
        self._tap_handle: Optional[ScheduledHandle] = None
        self._reset_handle: Optional[ScheduledHandle] = None
        self._batch_task: Optional[asyncio.Task] = None

    # Lifecycle

    @property
    def session_id(self) -> Optional[str]:
        return self.session.session_id if self.session else None

    @property
    def is_active(self) -> bool:
        return self.session is not None and self.session.is_active

    @property
    def photo_source(self) -> Optional[PhotoSource]:
        return self.session.photo_source if self.session else None

    def start_session(self, source: PhotoSource, session_id: Optional[str] = None) -> SessionSnapshot:
        """Start a fresh session, discarding everything from the previous one."""
        source = PhotoSource(source)
        if source is PhotoSource.GLASSES_SYNC and self.photo_library is None:
            raise ValueError("Glasses sync needs a photo library. Set GLASSES_SYNC_DIR.")

        self.scheduler.invalidate()
        self.speech.stop()
        self.readout.clear()
        self.taps.reset()
        self.window.reset()
        self.is_processing = False
        self._polling = False
        self._tap_handle = None
        self._reset_handle = None
        self._batch_task = None

        self.session = SessionState(
            session_id=session_id or uuid.uuid4().hex,
            photo_source=source,
            start_time=self.clock(),
        )
        LOGGER.info("Session %s started (%s)", self.session.session_id, source.value)

        if source is PhotoSource.GLASSES_SYNC:
            self.scheduler.call_every(self.settings.poll_interval_seconds, self.poll_once)
            self._set_status(
                f"Session started ({source.display_name}). Tap once per expected photo "
                f"(up to {self.settings.max_photos}), then start taking glasses photos."
            )
        else:
            self._set_status(
                f"Session started ({source.display_name}). Capture up to "
                f"{self.settings.max_photos} photos, then process them."
            )
        return self.current_state()

    def end_session(self) -> SessionSnapshot:
        self.scheduler.invalidate()
        self.readout.stop()
        self.speech.stop()
        self.is_processing = False
        self._polling = False
        self._tap_handle = None
        self._reset_handle = None
        self._batch_task = None
        if self.session is not None:
            self.session.is_active = False
            LOGGER.info("Session %s ended", self.session.session_id)
        self._set_status(IDLE_STATUS)
        return self.current_state()

    # Expected count (glasses sync)

    def tap_expected(self) -> SessionSnapshot:
        """Count one expected photo; ignored outside glasses mode or while processing."""
        if not self.is_active or self.photo_source is not PhotoSource.GLASSES_SYNC or self.is_processing:
            return self.current_state()

        self.taps.tap()
        self._stop_tap_window()
        self._tap_handle = self.scheduler.call_every(self.settings.tap_tick_seconds, self._tap_tick)
        self._set_status(self.taps.status_text())
        return self.current_state()

    def reset_expected(self) -> SessionSnapshot:
        self._stop_tap_window()
        self.taps.reset()
        self._set_status("Expected photo count reset.")
        return self.current_state()

    def _tap_tick(self) -> None:
        still_open = self.taps.tick()
        if not still_open:
            self._stop_tap_window()
        self._set_status(self.taps.status_text())

    def _stop_tap_window(self) -> None:
        handle, self._tap_handle = self._tap_handle, None
        if handle is not None:
            handle.cancel()

    # Glasses sync polling

    async def poll_once(self) -> Optional[AcquisitionDecision]:
        """Run one poll tick; skipped while a batch is being processed."""
        session = self.session
        if session is None or not session.is_active or session.photo_source is not PhotoSource.GLASSES_SYNC:
            return None
        if self.is_processing or self._polling:
            return None

        epoch = self.scheduler.epoch
        self._polling = True
        try:
            return await self._poll(session, epoch)
        finally:
            if self.scheduler.is_current(epoch):
                self._polling = False

    async def _poll(self, session: SessionState, epoch: int) -> Optional[AcquisitionDecision]:
        try:
            allowed = await self.photo_library.request_access()
            assets = await self.photo_library.fetch_new_assets(session.start_time) if allowed else []
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Photo library poll failed: %s", exc)
            if self.scheduler.is_current(epoch):
                self.window.reset()
                self._set_status(PHOTO_READ_ERROR_STATUS)
            return None

        if not allowed:
            if self.scheduler.is_current(epoch):
                self.window.reset()
                self._set_status(PermissionDenied.status_message)
            return None

        if not self.scheduler.is_current(epoch):
            return None

        unprocessed = [asset for asset in assets if asset.asset_id not in session.processed_ids]
        decision = self.window.observe(len(unprocessed), self.taps.count, self.clock())
        if decision.status:
            self._set_status(decision.status)
        if decision.should_dispatch:
            await self._dispatch(session, unprocessed[: decision.dispatch_count], epoch)
        return decision

    async def _dispatch(self, session: SessionState, batch: Sequence[AssetRef], epoch: int) -> None:
        if not batch:
            self._set_status("No new photos found to process.")
            return

        session.processed_ids.update(asset.asset_id for asset in batch)
        self.is_processing = True
        self.readout.clear()
        LOGGER.info("Dispatching %d photos for session %s", len(batch), session.session_id)

        processor = SequentialProcessor(
            self.solver,
            load_image=self.photo_library.load_image,
            include_question=True,
            on_status=self._status_for(epoch),
        )
        try:
            outcome = await processor.run(batch)
        finally:
            if self.scheduler.is_current(epoch):
                self.is_processing = False
        if not self.scheduler.is_current(epoch):
            return
        self._finish_batch(outcome, auto_start_reading=False)

    # Direct capture

    def add_captured_image(self, image: Any) -> bool:
        session = self.session
        if session is None or not session.is_active or session.photo_source is not PhotoSource.DIRECT_CAPTURE:
            return False
        if len(session.captured_images) >= self.settings.max_photos:
            self._set_status(f"Max of {self.settings.max_photos} camera photos reached.")
            return False
        session.captured_images.append(image)
        self._set_status(f"Captured {len(session.captured_images)} camera photo(s).")
        return True

    def process_captured_batch(self, auto_start_reading: bool = False) -> str:
        """Start solving the captured photos in the background."""
        session = self.session
        if session is None or not session.is_active or session.photo_source is not PhotoSource.DIRECT_CAPTURE:
            return self.status_message
        if not session.captured_images:
            return self._set_status("No camera photos to process.")
        if self.is_processing:
            return self._set_status("Already processing camera photos…")

        self.is_processing = True
        self.readout.clear()
        images = list(session.captured_images)
        epoch = self.scheduler.epoch
        self._batch_task = self.scheduler.spawn(self._run_captured_batch(images, auto_start_reading, epoch))
        return self._set_status(f"Processing {len(images)} camera photo(s)…")

    async def _run_captured_batch(self, images: List[Any], auto_start_reading: bool, epoch: int) -> None:
        processor = SequentialProcessor(self.solver, include_question=False, on_status=self._status_for(epoch))
        try:
            outcome = await processor.run(images)
        finally:
            if self.scheduler.is_current(epoch):
                self.is_processing = False
        if self.scheduler.is_current(epoch):
            self._finish_batch(outcome, auto_start_reading=auto_start_reading)

    def _finish_batch(self, outcome: ProcessingOutcome, *, auto_start_reading: bool) -> None:
        self.readout.load(outcome.answers)
        self._set_status(outcome.status)
        if not outcome.answers:
            return
        if self.photo_source is PhotoSource.GLASSES_SYNC:
            self._schedule_expectation_reset()
        if auto_start_reading:
            self.readout.toggle()

    def _schedule_expectation_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
        self._reset_handle = self.scheduler.call_later(
            self.settings.expectation_reset_seconds, self._reset_expectation
        )

    def _reset_expectation(self) -> None:
        self._reset_handle = None
        self._stop_tap_window()
        self.taps.reset()
        self._set_status(EXPECTATION_RESET_STATUS)

    # Reading controls

    def toggle_reading(self) -> str:
        if self.readout.is_reading:
            return self.readout.toggle()

        if self.photo_source is PhotoSource.DIRECT_CAPTURE and not self.readout.items:
            if not self.session.captured_images:
                return self._set_status("No camera photos to process yet.")
            return self.process_captured_batch(auto_start_reading=True)

        return self.readout.toggle()

    def restart_reading(self) -> str:
        return self.readout.restart()

    def test_speech(self) -> str:
        self.speech.speak(SPEECH_TEST_TEXT)
        return self._set_status("Testing voice output…")

    async def process_latest_photo(self) -> str:
        """Solve only the newest photo since the session started, without marking it processed."""
        session = self.session
        if session is None or not session.is_active:
            return self._set_status("No active session. Start a test session first.")
        if self.photo_library is None:
            return self._set_status("No photo library configured. Set GLASSES_SYNC_DIR.")
        if self.is_processing:
            return self._set_status("Already processing photos…")

        epoch = self.scheduler.epoch
        self.is_processing = True
        try:
            status = await self._solve_latest(session, epoch)
        finally:
            if self.scheduler.is_current(epoch):
                self.is_processing = False
        if not self.scheduler.is_current(epoch):
            return self.status_message
        return self._set_status(status)

    async def _solve_latest(self, session: SessionState, epoch: int) -> str:
        if not await self.photo_library.request_access():
            return PermissionDenied.status_message

        assets = await self.photo_library.fetch_new_assets(session.start_time)
        if not assets:
            return "No recent photos found."

        image = await self.photo_library.load_image(assets[-1])
        if image is None:
            return "Failed to load latest photo."

        try:
            response = await self.solver.solve(image)
        except AssistantError as exc:
            LOGGER.error("Debug solve failed: %s", exc)
            return f"DEBUG: Failed to solve image. {exc.message}"

        if self.scheduler.is_current(epoch):
            self.readout.load(answers_from_response(image, response, include_question=True))
        return "DEBUG: Latest photo processed. Toggle reading to hear answers."

    # State

    def current_state(self) -> SessionSnapshot:
        item = self.readout.current_item
        return SessionSnapshot(
            session_id=self.session_id,
            status_message=self.status_message,
            is_active=self.is_active,
            is_processing=self.is_processing,
            is_reading=self.readout.is_reading,
            readout_state=self.readout.state,
            photo_source=self.photo_source,
            expected_count=self.taps.count,
            tap_window_open=self.taps.window_open,
            tap_window_remaining=self.taps.remaining,
            captured_count=len(self.session.captured_images) if self.session else 0,
            answer_count=len(self.readout.items),
            current_index=self.readout.index,
            current_answer=item.spoken_text if item else "",
            current_explanation=item.explanation_text if item else "",
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot on every change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_until_idle(self) -> None:
        """Wait for a background batch started by ``process_captured_batch``."""
        task = self._batch_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _status_for(self, epoch: int) -> Callable[[str], None]:
        def report(message: str) -> None:
            if self.scheduler.is_current(epoch):
                self._set_status(message)

        return report

    def _set_status(self, message: str) -> str:
        self.status_message = message
        LOGGER.debug("Session %s: %s", self.session_id, message)
        self._emit()
        return message

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.current_state()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception("Session listener failed")
