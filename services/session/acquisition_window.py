"""Decide when a batch of synced glasses photos is complete.

There is no "capture finished" signal: photos trickle into the library as
the glasses sync. The window waits for the unprocessed count to stop
growing for ``settle_seconds`` and then dispatches what it has, capped by
the user's expected count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from models.session_models import AcquisitionState

IDLE = "idle"
WAIT = "wait"
DISPATCH = "dispatch"


@dataclass(frozen=True)
class AcquisitionDecision:
    action: str
    found_count: int
    dispatch_count: int = 0
    status: Optional[str] = None

    @property
    def should_dispatch(self) -> bool:
        return self.action == DISPATCH


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


class AcquisitionWindow:
    def __init__(self, *, settle_seconds: float = 5.0, max_photos: int = 10) -> None:
        self.settle_seconds = settle_seconds
        self.max_photos = max_photos
        self.state = AcquisitionState()

    def reset(self) -> None:
        self.state.reset()

    def observe(self, found_count: int, expected_count: int, now: float) -> AcquisitionDecision:
        """Feed one poll result; ``found_count`` counts unprocessed photos since session start."""
        if found_count <= 0:
            return AcquisitionDecision(IDLE, found_count)

        total_expected = min(max(expected_count, 0), self.max_photos)
        state = self.state

        if state.first_detected_at is None or found_count > state.last_unprocessed_count:
            state.first_detected_at = now
            state.last_unprocessed_count = found_count
            return AcquisitionDecision(WAIT, found_count, status=self._waiting(found_count, total_expected))

        elapsed = now - state.first_detected_at
        if elapsed < self.settle_seconds:
            return AcquisitionDecision(
                WAIT, found_count, status=self._waiting(found_count, total_expected, elapsed=elapsed)
            )

        # Settled with no growth. An overestimated tap count must not stall the batch.
        effective_expected = total_expected if total_expected > 0 else min(found_count, self.max_photos)
        to_process = min(found_count, effective_expected)
        self.reset()
        return AcquisitionDecision(
            DISPATCH,
            found_count,
            dispatch_count=to_process,
            status=(
                f"Processing {to_process} photo{_plural(to_process)} "
                f"(found {found_count}, expected {total_expected})."
            ),
        )

    def _waiting(self, found: int, expected: int, *, elapsed: Optional[float] = None) -> str:
        remaining = max(expected - found, 0)
        if elapsed is None:
            if remaining > 0 and expected > 0:
                return f"Found {found}. Waiting for {remaining} more…"
            return f"Found {found} photo{_plural(found)}. Waiting briefly before processing…"
        left = max(int(round(self.settle_seconds - elapsed)), 1)
        if remaining > 0 and expected > 0:
            return f"Found {found}. Waiting up to {left}s for {remaining} more…"
        return f"Found {found} photo{_plural(found)}. Waiting up to {left}s before processing…"
