"""Cancellable timers and tasks owned by a single session.

Every callback captures the scheduler epoch when it is scheduled and is
dropped if the epoch has moved on by the time it fires. ``invalidate`` bumps
the epoch and cancels everything, so nothing from a previous session can
touch the state of the next one.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set

LOGGER = logging.getLogger(__name__)


class ScheduledHandle:
    """Handle for a one-shot or repeating callback."""

    def __init__(self, scheduler: "SessionScheduler", epoch: int) -> None:
        self._scheduler = scheduler
        self.epoch = epoch
        self.cancelled = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return not self.cancelled and self.epoch == self._scheduler.epoch

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._scheduler._forget(self)


class SessionScheduler:
    def __init__(self) -> None:
        self.epoch = 0
        self._handles: Set[ScheduledHandle] = set()
        self._tasks: Set[asyncio.Task] = set()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledHandle:
        """Run ``callback`` once after ``delay`` seconds unless cancelled first."""
        handle = ScheduledHandle(self, self.epoch)

        def _fire() -> None:
            self._forget(handle)
            if handle.active:
                self._invoke(callback)

        handle._timer = asyncio.get_running_loop().call_later(delay, _fire)
        self._handles.add(handle)
        return handle

    def call_every(self, interval: float, callback: Callable[[], Any]) -> ScheduledHandle:
        """Run ``callback`` every ``interval`` seconds; async callbacks are awaited in turn."""
        handle = ScheduledHandle(self, self.epoch)

        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                if not handle.active:
                    return
                try:
                    result = callback()
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    LOGGER.error("Repeating session callback failed: %s", exc, exc_info=exc)

        handle._task = self._create_task(_loop())
        self._handles.add(handle)
        return handle

    def spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        """Start a task that is cancelled on ``invalidate``."""
        return self._create_task(coro)

    def is_current(self, epoch: int) -> bool:
        return epoch == self.epoch

    def invalidate(self) -> int:
        """Cancel every timer and task and start a new epoch."""
        self.epoch += 1
        for handle in list(self._handles):
            handle.cancel()
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        self._tasks.clear()
        return self.epoch

    def _create_task(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Session task failed: %s", exc, exc_info=exc)

    def _invoke(self, callback: Callable[[], Any]) -> None:
        result = callback()
        if inspect.isawaitable(result):
            self._create_task(result)

    def _forget(self, handle: ScheduledHandle) -> None:
        self._handles.discard(handle)
