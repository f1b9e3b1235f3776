"""Count "one tap per expected photo" within a rolling window."""

from __future__ import annotations


class TapExpectationCounter:
    """Debounce taps into a single expected photo count.

    Each tap bumps the count (capped at ``max_count``) and reopens the
    countdown window. ``tick`` is driven once per second by the session; when
    the countdown runs out the window closes and the count stays frozen until
    the next tap or ``reset``.
    """

    def __init__(self, *, max_count: int = 10, window_seconds: int = 5) -> None:
        self.max_count = max_count
        self.window_seconds = window_seconds
        self.count = 0
        self.window_open = False
        self.remaining = 0

    def tap(self) -> int:
        if self.count < self.max_count:
            self.count += 1
        self.window_open = True
        self.remaining = self.window_seconds
        return self.count

    def tick(self) -> bool:
        """Advance the countdown by one step; return True while the window stays open."""
        if not self.window_open:
            return False
        if self.remaining <= 1:
            self.window_open = False
            self.remaining = 0
            return False
        self.remaining -= 1
        return True

    def reset(self) -> None:
        self.count = 0
        self.window_open = False
        self.remaining = 0

    def status_text(self) -> str:
        if self.window_open:
            return f"Tap once per photo. {self.remaining}s left. Expecting {self.count} photos."
        return f"Expecting {self.count} photos this session. Start taking them with your glasses."
