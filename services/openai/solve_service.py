"""Worksheet solving: OCR -> question block -> Responses API -> structured answers."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Union

from openai import APIError, AsyncOpenAI
from PIL import Image

from models.solve_models import QuestionsResponse
from services.errors import EmptyInput, ParseError, TransportError
from services.ocr.text_block_selector import RecognizedLine, TextBlockSelector
from services.openai.response_parser import extract_text, extract_usage, parse_questions
from services.openai.solve_prompts import build_system_prompt, build_user_prompt

LOGGER = logging.getLogger(__name__)
DEFAULT_MODEL = "gpt-4o-mini"


class LineRecognizer(Protocol):
    def recognize(self, image: Image.Image) -> Awaitable[List[RecognizedLine]]: ...


class SolveOrchestrator:
    """Solve the questions in a photo or text with one stricter retry and a fallback."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        recognizer: Optional[LineRecognizer] = None,
        selector: Optional[TextBlockSelector] = None,
        model: str = DEFAULT_MODEL,
        max_output_tokens: int = 800,
    ) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.recognizer = recognizer
        self.selector = selector or TextBlockSelector()
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.last_usage: Dict[str, Optional[int]] = {}

    async def solve(self, source: Union[str, Image.Image]) -> QuestionsResponse:
        """Return answers for raw text or an image.

        Raises:
            EmptyInput: No usable text could be extracted.
            TransportError: The answer service could not be reached.
        """
        if isinstance(source, Image.Image):
            return await self.solve_image(source)
        return await self.solve_text(source)

    async def solve_image(self, image: Image.Image) -> QuestionsResponse:
        if self.recognizer is None:
            raise ValueError("An OCR recognizer is required to solve images.")
        lines = await self.recognizer.recognize(image)
        problem_text = self.selector.select(lines)
        if not problem_text.strip():
            raise EmptyInput()
        return await self.solve_text(problem_text)

    async def solve_text(self, problem_text: str) -> QuestionsResponse:
        if not problem_text or not problem_text.strip():
            raise EmptyInput("No question text was provided.")

        last_error: Optional[ParseError] = None
        for attempt in range(2):
            raw = await self._request(problem_text, strict=attempt > 0)
            try:
                return parse_questions(raw)
            except ParseError as exc:
                LOGGER.warning("Solve attempt %d returned an unparseable reply: %s", attempt, exc)
                last_error = exc

        raw_reply = last_error.raw_reply if last_error else ""
        LOGGER.error("Falling back to the raw assistant reply after two parse failures.")
        return QuestionsResponse.fallback(problem_text, raw_reply)

    async def _request(self, problem_text: str, *, strict: bool) -> str:
        """Send one solve request and return the model's text."""
        inputs: List[Dict[str, Any]] = [
            {"role": "system", "content": [{"type": "input_text", "text": build_system_prompt(strict)}]},
            {"role": "user", "content": [{"type": "input_text", "text": build_user_prompt(problem_text)}]},
        ]
        start = time.time()
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=inputs,
                temperature=0,
                max_output_tokens=self.max_output_tokens,
                text={"format": {"type": "json_object"}},
            )
        except APIError as exc:
            LOGGER.error("Error during OpenAI Responses API call: %s", exc)
            raise TransportError(f"Answer service request failed: {exc}") from exc

        self.last_usage = extract_usage(response)
        LOGGER.info(
            "Solve reply received in %.2fs (strict=%s, usage=%s)", time.time() - start, strict, self.last_usage
        )
        return extract_text(response)
