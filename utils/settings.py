"""Environment-driven settings for the assistant.

Values are read from the process environment (``main.py`` loads a local
``.env`` first). Timing values are in seconds.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

VOICE_TONES = ("neutral", "calm", "energetic", "serious")


def _env_float(name: str, default: float, *, minimum: float = 0.0, maximum: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be a number.") from exc
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise RuntimeError(f"{name}={raw!r} must be {bounds}.")
    return value


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} must be an integer.") from exc
    if value < minimum:
        raise RuntimeError(f"{name}={raw!r} must be >= {minimum}.")
    return value


@dataclass(frozen=True)
class AssistantSettings:
    """Tunable limits, timers and model names for one assistant process."""

    max_photos: int = 10
    poll_interval_seconds: float = 5.0
    settle_seconds: float = 5.0
    tap_window_seconds: int = 5
    tap_tick_seconds: float = 1.0
    reading_pace_seconds: float = 2.0
    expectation_reset_seconds: float = 5.0
    solve_model: str = "gpt-4o-mini"
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "alloy"
    voice_tone: str = "neutral"
    voice_speed: float = 1.0
    photo_sync_dir: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "AssistantSettings":
        """Build settings from environment variables, validating each value."""
        tone = (os.getenv("VOICE_TONE") or "neutral").strip().lower()
        if tone not in VOICE_TONES:
            raise RuntimeError(f"VOICE_TONE={tone!r} must be one of: {', '.join(VOICE_TONES)}.")

        sync_dir_raw = os.getenv("GLASSES_SYNC_DIR")
        sync_dir: Optional[Path] = None
        if sync_dir_raw and sync_dir_raw.strip():
            sync_dir = Path(sync_dir_raw).expanduser()
            # A file here is a configuration error; a missing folder may appear later.
            if sync_dir.exists() and not sync_dir.is_dir():
                raise RuntimeError(
                    f"GLASSES_SYNC_DIR={sync_dir_raw!r} points to a file, not a directory ({sync_dir})."
                )

        return cls(
            max_photos=_env_int("MAX_PHOTOS_PER_SESSION", 10, minimum=1),
            poll_interval_seconds=_env_float("PHOTO_POLL_SECONDS", 5.0, minimum=0.01),
            settle_seconds=_env_float("SETTLE_SECONDS", 5.0),
            tap_window_seconds=_env_int("TAP_WINDOW_SECONDS", 5, minimum=1),
            reading_pace_seconds=_env_float("READING_PACE_SECONDS", 2.0),
            expectation_reset_seconds=_env_float("EXPECTATION_RESET_SECONDS", 5.0),
            solve_model=os.getenv("OPENAI_SOLVE_MODEL", "gpt-4o-mini"),
            tts_model=os.getenv("OPENAI_TTS_MODEL", "gpt-4o-mini-tts"),
            tts_voice=os.getenv("OPENAI_TTS_VOICE", "alloy"),
            voice_tone=tone,
            voice_speed=_env_float("VOICE_SPEED", 1.0, minimum=0.25, maximum=4.0),
            photo_sync_dir=sync_dir,
        )
