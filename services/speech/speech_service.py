"""Speech output for reading answers aloud."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from openai import APIError, AsyncOpenAI

LOGGER = logging.getLogger(__name__)

TONE_INSTRUCTIONS = {
    "neutral": "Speak clearly at an even pace.",
    "calm": "Speak calmly and softly, with a relaxed pace.",
    "energetic": "Speak with upbeat, lively energy.",
    "serious": "Speak in a serious, focused tone.",
}


class SpeechOutput(Protocol):
    def speak(self, text: str) -> None: ...

    def stop(self) -> None: ...


@dataclass
class SpeechClip:
    sequence: int
    text: str
    audio: bytes
    media_type: str
    created_at: float


class OpenAISpeechService:
    """Synthesize answers with OpenAI text-to-speech without blocking the caller.

    ``speak`` starts a background synthesis; the finished clip is kept as
    ``latest_clip`` for the client to fetch and play. ``stop`` cancels any
    synthesis in flight and drops the current clip.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "gpt-4o-mini-tts",
        voice: str = "alloy",
        tone: str = "neutral",
        speed: float = 1.0,
        response_format: str = "mp3",
    ) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required for speech.")
        self.client = client
        self.model = model
        self.voice = voice
        self.tone = tone
        self.speed = speed
        self.response_format = response_format
        self.latest_clip: Optional[SpeechClip] = None
        self._sequence = 0
        self._task: Optional[asyncio.Task] = None

    def speak(self, text: str) -> None:
        trimmed = (text or "").strip()
        if not trimmed:
            return
        self._cancel_pending()
        self._sequence += 1
        self._task = asyncio.get_running_loop().create_task(self._synthesize(self._sequence, trimmed))

    def stop(self) -> None:
        self._cancel_pending()
        self.latest_clip = None

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _synthesize(self, sequence: int, text: str) -> None:
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=self.voice,
                input=text,
                instructions=TONE_INSTRUCTIONS.get(self.tone, TONE_INSTRUCTIONS["neutral"]),
                speed=self.speed,
                response_format=self.response_format,
            )
            audio = response.content
        except APIError as exc:
            LOGGER.error("OpenAI speech request failed: %s", exc)
            return
        if sequence != self._sequence:
            return
        self.latest_clip = SpeechClip(
            sequence=sequence,
            text=text,
            audio=audio,
            media_type=f"audio/{'mpeg' if self.response_format == 'mp3' else self.response_format}",
            created_at=time.time(),
        )
        LOGGER.info("Speech clip %d ready (%d bytes)", sequence, len(audio))
